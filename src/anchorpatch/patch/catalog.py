"""
Concrete bundle patches, in the order they are applied.

Each patch pairs a locator built from the generic strategies with a
replacement renderer. Anchors and windows come from ``anchors``.
"""

from __future__ import annotations

import json
from typing import Callable, Dict, List, Optional, Tuple

from anchorpatch.settings import Settings

from . import anchors
from .locate import (
    find_after_anchor,
    find_before_anchor,
    find_enclosing_declaration,
    find_nested,
    find_spread_condition,
    find_with_capture,
    find_within,
    first_of,
)
from .models import LocationResult, PatchSpec, ReplacementRenderer, SourceBuffer


def locate_verbose_property(buffer: SourceBuffer) -> Optional[LocationResult]:
    return find_nested(
        buffer, anchors.VERBOSE_ELEMENT_RE, anchors.VERBOSE_PROPERTY_RE
    )


def locate_context_low_function(buffer: SourceBuffer) -> Optional[LocationResult]:
    return find_enclosing_declaration(
        buffer,
        anchors.CONTEXT_LOW_ANCHOR,
        anchors.CONTEXT_LOW_DECLARATION,
        anchors.CONTEXT_LOW_MARKER,
        window=anchors.CONTEXT_LOW_WINDOW,
        lookahead=anchors.CONTEXT_LOW_LOOKAHEAD,
    )


def locate_context_low_condition(buffer: SourceBuffer) -> Optional[LocationResult]:
    # No fuzzy fallback: a missing condition fails the whole patch.
    scope = locate_context_low_function(buffer)
    if scope is None:
        return None
    return find_within(buffer, scope, anchors.CONTEXT_LOW_CONDITION_RE)


def locate_context_low_message(buffer: SourceBuffer) -> Optional[LocationResult]:
    return find_with_capture(buffer, anchors.CONTEXT_LOW_MESSAGE_RE)


def locate_esc_interrupt_condition_new(
    buffer: SourceBuffer,
) -> Optional[LocationResult]:
    return find_after_anchor(
        buffer,
        anchors.ESC_INTERRUPT_ANCHOR_RE,
        anchors.ESC_INTERRUPT_SPREAD_RE,
        window=anchors.ESC_INTERRUPT_WINDOW,
        group=1,
    )


def locate_esc_interrupt_condition_legacy(
    buffer: SourceBuffer,
) -> Optional[LocationResult]:
    return find_spread_condition(
        buffer,
        anchors.ESC_INTERRUPT_LEGACY_KEY,
        anchors.ESC_INTERRUPT_LEGACY_LABEL,
        window=anchors.ESC_INTERRUPT_LEGACY_WINDOW,
    )


locate_esc_interrupt_condition = first_of(
    locate_esc_interrupt_condition_new, locate_esc_interrupt_condition_legacy
)


def locate_chrome_subscription_check(
    buffer: SourceBuffer,
) -> Optional[LocationResult]:
    return find_before_anchor(
        buffer,
        anchors.CHROME_SETUP_ANCHOR,
        anchors.CHROME_SUBSCRIPTION_RE,
        window=anchors.CHROME_SETUP_WINDOW,
        group=1,
    )


def locate_chrome_command_message(buffer: SourceBuffer) -> Optional[LocationResult]:
    return find_before_anchor(
        buffer,
        anchors.CHROME_COMMAND_ANCHOR,
        anchors.CHROME_COMMAND_GUARD_RE,
        window=anchors.CHROME_COMMAND_WINDOW,
        closest=True,
    )


def locate_chrome_startup_notification(
    buffer: SourceBuffer,
) -> Optional[LocationResult]:
    return find_before_anchor(
        buffer,
        anchors.CHROME_STARTUP_ANCHOR,
        anchors.CHROME_STARTUP_GUARD_RE,
        window=anchors.CHROME_STARTUP_WINDOW,
        group=1,
        closest=True,
    )


def constant(text: str) -> ReplacementRenderer:
    return lambda _location: text


def render_verbose_property(value: bool) -> ReplacementRenderer:
    return constant(f"verbose:{'true' if value else 'false'}")


def render_context_low_message(message: str) -> ReplacementRenderer:
    """
    ``message`` is "prefix,suffix", split on the first comma; the captured
    percentage variable is placed between the two string literals.
    """
    prefix, _, suffix = message.partition(",")

    def render(location: LocationResult) -> str:
        if not location.captured:
            raise ValueError("Context low message location has no captured variable")
        return ",".join(
            [
                json.dumps(prefix, ensure_ascii=False),
                location.captured,
                json.dumps(suffix, ensure_ascii=False),
            ]
        )

    return render


_Factory = Callable[[Settings], PatchSpec]

# Internal registry of patches in application order
_REGISTRY: Dict[str, _Factory] = {
    "verbose_property": lambda s: PatchSpec(
        key="verbose_property",
        name="Verbose property",
        locate=locate_verbose_property,
        render_replacement=render_verbose_property(s.verbose),
        description="Set the spinner element's verbose property",
    ),
    "context_low_warnings": lambda s: PatchSpec(
        key="context_low_warnings",
        name="Context low warnings",
        locate=locate_context_low_condition,
        render_replacement=constant("if(true)return null"),
        description="Make the context low warning component always render nothing",
    ),
    "esc_interrupt_display": lambda s: PatchSpec(
        key="esc_interrupt_display",
        name="ESC interrupt display",
        locate=locate_esc_interrupt_condition,
        render_replacement=constant("(false)"),
        description='Hide the "esc to interrupt" hint',
    ),
    "chrome_subscription_check": lambda s: PatchSpec(
        key="chrome_subscription_check",
        name="Chrome subscription check",
        locate=locate_chrome_subscription_check,
        render_replacement=constant(""),
        description="Drop the subscription clause from the Chrome integration gate",
    ),
    "chrome_command_message": lambda s: PatchSpec(
        key="chrome_command_message",
        name="/chrome command message",
        locate=locate_chrome_command_message,
        render_replacement=constant("false&&"),
        description="Suppress the /chrome subscription message",
    ),
    "chrome_startup_notification": lambda s: PatchSpec(
        key="chrome_startup_notification",
        name="Chrome startup notification",
        locate=locate_chrome_startup_notification,
        render_replacement=constant("false"),
        description="Suppress the Chrome subscription notification at startup",
    ),
    "context_low_message": lambda s: PatchSpec(
        key="context_low_message",
        name="Context low message",
        locate=locate_context_low_message,
        render_replacement=render_context_low_message(s.context_low_message or ""),
        description="Rewrite the context low message text",
    ),
}

# Patches that only run when their settings are present
_OPTIONAL: Dict[str, Callable[[Settings], bool]] = {
    "context_low_message": lambda s: s.context_low_message is not None,
}


def get_patch_keys() -> Tuple[str, ...]:
    return tuple(_REGISTRY.keys())


def _validate_keys(keys: List[str], field: str) -> None:
    unknown = [k for k in keys if k not in _REGISTRY]
    if unknown:
        available = ", ".join(_REGISTRY.keys())
        raise ValueError(
            f"Unknown patch key(s) in {field}: {', '.join(unknown)}. Available: {available}"
        )


def _is_selected(key: str, settings: Settings) -> bool:
    if key in settings.disabled:
        return False
    if settings.enabled is not None:
        return key in settings.enabled
    available = _OPTIONAL.get(key)
    return available is None or available(settings)


def describe_patches(settings: Optional[Settings] = None) -> List[Tuple[str, str, bool]]:
    """Return (key, name, selected) for every known patch, in order."""
    settings = settings or Settings()
    _validate_keys(list(settings.enabled or []), "enabled")
    _validate_keys(settings.disabled, "disabled")
    return [
        (key, factory(settings).name, _is_selected(key, settings))
        for key, factory in _REGISTRY.items()
    ]


def build_patch_specs(settings: Optional[Settings] = None) -> List[PatchSpec]:
    settings = settings or Settings()
    _validate_keys(list(settings.enabled or []), "enabled")
    _validate_keys(settings.disabled, "disabled")

    specs: List[PatchSpec] = []
    for key, factory in _REGISTRY.items():
        if not _is_selected(key, settings):
            continue
        available = _OPTIONAL.get(key)
        if available is not None and not available(settings):
            raise ValueError(f"Patch {key!r} is enabled but not configured")
        specs.append(factory(settings))
    return specs
