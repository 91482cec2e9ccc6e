import pytest

from anchorpatch.patch import build_patch_specs, describe_patches, get_patch_keys
from anchorpatch.patch.catalog import (
    locate_chrome_command_message,
    locate_chrome_startup_notification,
    locate_chrome_subscription_check,
    locate_context_low_condition,
    locate_context_low_function,
    locate_context_low_message,
    locate_esc_interrupt_condition,
    locate_esc_interrupt_condition_legacy,
    locate_esc_interrupt_condition_new,
    locate_verbose_property,
    render_context_low_message,
)
from anchorpatch.settings import Settings
from tests import bundle_fixtures as fx


def test_default_specs_follow_catalog_order():
    specs = build_patch_specs()
    assert [s.key for s in specs] == [
        "verbose_property",
        "context_low_warnings",
        "esc_interrupt_display",
        "chrome_subscription_check",
        "chrome_command_message",
        "chrome_startup_notification",
    ]
    assert "context_low_message" in get_patch_keys()


def test_context_low_message_patch_enabled_when_configured():
    specs = build_patch_specs(Settings(context_low_message="Left: ,%"))
    assert specs[-1].key == "context_low_message"


def test_enabled_and_disabled_selection():
    settings = Settings(
        enabled=["verbose_property", "chrome_command_message"],
        disabled=["chrome_command_message"],
    )
    assert [s.key for s in build_patch_specs(settings)] == ["verbose_property"]


def test_unknown_patch_key_is_rejected():
    with pytest.raises(ValueError, match="Unknown patch key"):
        build_patch_specs(Settings(disabled=["no_such_patch"]))


def test_enabling_unconfigured_optional_patch_is_rejected():
    with pytest.raises(ValueError, match="not configured"):
        build_patch_specs(Settings(enabled=["context_low_message"]))


def test_describe_patches_marks_selection():
    rows = describe_patches(Settings(disabled=["esc_interrupt_display"]))
    selected = {key: flag for key, _name, flag in rows}
    assert selected["esc_interrupt_display"] is False
    assert selected["verbose_property"] is True
    assert selected["context_low_message"] is False


def test_verbose_property_renders_configured_value():
    spec = build_patch_specs(Settings(verbose=False, enabled=["verbose_property"]))[0]
    loc = spec.locate(fx.make_buffer(fx.BUNDLE))
    assert spec.render_replacement(loc) == "verbose:false"


@pytest.mark.parametrize(
    "locate,expected",
    [
        (locate_verbose_property, "verbose:Q"),
        (locate_context_low_condition, "if(!Q||D)return null"),
        (locate_esc_interrupt_condition, "H1"),
        (locate_chrome_subscription_check, "&&zB()"),
        (locate_chrome_command_message, "!G&&"),
        (locate_chrome_startup_notification, "!zB()"),
    ],
)
def test_locators_find_fixture_constructs(locate, expected):
    buf = fx.make_buffer(fx.BUNDLE)
    loc = locate(buf)
    assert loc is not None
    assert loc.matched == expected
    assert buf.text[loc.start : loc.end] == expected


def test_context_low_function_span_starts_at_declaration():
    buf = fx.make_buffer(fx.BUNDLE)
    loc = locate_context_low_function(buf)
    assert loc is not None
    assert loc.start == fx.BUNDLE.index("function Kx2")
    assert "Context low (" in loc.matched


def test_context_low_condition_missing_inside_function_fails():
    text = fx.join_bundle(fx.CONTEXT_LOW.replace("if(!Q||D)return null;", ""))
    assert locate_context_low_condition(fx.make_buffer(text)) is None


def test_esc_legacy_fixture_uses_fallback_only():
    buf = fx.make_buffer(fx.join_bundle(fx.ESC_LEGACY))

    assert locate_esc_interrupt_condition_new(buf) is None
    legacy = locate_esc_interrupt_condition_legacy(buf)
    assert legacy is not None
    assert legacy.matched == "Y1"
    assert locate_esc_interrupt_condition(buf) == legacy


def test_esc_new_fixture_uses_primary_only():
    buf = fx.make_buffer(fx.join_bundle(fx.ESC_NEW))

    assert locate_esc_interrupt_condition_legacy(buf) is None
    primary = locate_esc_interrupt_condition_new(buf)
    assert primary is not None
    assert primary.matched == "H1"
    assert locate_esc_interrupt_condition(buf) == primary


def test_context_low_message_reuses_captured_variable():
    buf = fx.make_buffer(fx.BUNDLE)
    loc = locate_context_low_message(buf)
    assert loc is not None
    assert loc.captured == "B"

    render = render_context_low_message('Context left: ,% "free"')
    assert render(loc) == '"Context left: ",B,"% \\"free\\""'


def test_context_low_message_suffix_keeps_later_commas():
    buf = fx.make_buffer(fx.BUNDLE)
    loc = locate_context_low_message(buf)

    render = render_context_low_message("Left: ,% (run /compact, then continue)")

    assert render(loc) == '"Left: ",B,"% (run /compact, then continue)"'


def test_context_low_message_without_suffix():
    buf = fx.make_buffer(fx.BUNDLE)
    loc = locate_context_low_message(buf)
    assert render_context_low_message("Low context")(loc) == '"Low context",B,""'
