import re

import pytest

from anchorpatch.patch import StaleLocationError, apply_location
from anchorpatch.patch import anchors
from anchorpatch.patch.locate import (
    find_after_anchor,
    find_before_anchor,
    find_enclosing_declaration,
    find_nested,
    find_spread_condition,
    find_with_capture,
    find_within,
    first_of,
)
from tests.bundle_fixtures import make_buffer

CLAUSE = "let qA=XV1(X.chrome)&&zB()"


def _assert_consistent(buffer, loc):
    assert 0 <= loc.start <= loc.end <= len(buffer)
    assert buffer.text[loc.start : loc.end] == loc.matched
    assert loc.revision == buffer.revision


def test_find_nested_returns_absolute_inner_span():
    text = 'x=1;R.createElement(Sp,{a:1,spinnerTip:t,overrideMessage:m,verbose:V,b:2});'
    buf = make_buffer(text)

    loc = find_nested(buf, anchors.VERBOSE_ELEMENT_RE, anchors.VERBOSE_PROPERTY_RE)

    assert loc is not None
    assert loc.matched == "verbose:V"
    assert loc.start == text.index("verbose:V")
    _assert_consistent(buf, loc)


def test_find_nested_ignores_inner_match_outside_outer_scope():
    text = (
        "R.createElement(Sp,{a:1,spinnerTip:t,overrideMessage:m,b:2});"
        "other({verbose:V})"
    )
    buf = make_buffer(text)

    assert find_nested(buf, anchors.VERBOSE_ELEMENT_RE, anchors.VERBOSE_PROPERTY_RE) is None


def test_find_nested_requires_outer_anchor():
    buf = make_buffer("R.createElement(Sp,{verbose:V})")
    assert find_nested(buf, anchors.VERBOSE_ELEMENT_RE, anchors.VERBOSE_PROPERTY_RE) is None


def test_find_with_capture_reports_renamed_variable():
    literal = '"Context low (",pct,"% remaining) · Run /compact to compact & continue"'
    text = "h(T,null," + literal + ")"
    buf = make_buffer(text)

    loc = find_with_capture(buf, anchors.CONTEXT_LOW_MESSAGE_RE)

    assert loc is not None
    assert loc.captured == "pct"
    assert loc.matched == literal
    assert loc.start == text.index(literal)
    _assert_consistent(buf, loc)


def test_find_with_capture_missing_returns_none():
    buf = make_buffer('"Context low (",B,"% left"')
    assert find_with_capture(buf, anchors.CONTEXT_LOW_MESSAGE_RE) is None


def _declaration_text(gap: int) -> str:
    return (
        "var a=1;"
        + "function Kx({tokenUsage:A}){"
        + "y" * gap
        + "Context low ("
        + "tail"
    )


def _find_declaration(buf, *, window=50, lookahead=100):
    return find_enclosing_declaration(
        buf,
        "Context low (",
        "function ",
        "tokenUsage:",
        window=window,
        lookahead=lookahead,
    )


def test_enclosing_declaration_selects_candidate_closest_to_anchor():
    text = (
        "function outer(){return 1};"
        "function first({tokenUsage:A}){return 2};"
        "function second({tokenUsage:B}){if(!B)return null;return h(\"Context low (\",B)}"
    )
    buf = make_buffer(text)

    loc = _find_declaration(buf, window=800)

    assert loc is not None
    assert loc.start == text.index("function second")
    assert loc.end == len(text)
    _assert_consistent(buf, loc)


def test_enclosing_declaration_skips_candidates_without_marker():
    text = "function a(){return 1};function b(){return h(\"Context low (\")}"
    buf = make_buffer(text)

    assert _find_declaration(buf, window=800) is None


def test_enclosing_declaration_keyword_at_window_edge_is_found():
    window = 50
    decl_len = len("function Kx({tokenUsage:A}){")
    buf = make_buffer(_declaration_text(window - decl_len))

    loc = _find_declaration(buf, window=window)

    assert loc is not None
    assert loc.start == len("var a=1;")
    assert buf.text.index("Context low (") - loc.start == window


def test_enclosing_declaration_keyword_just_outside_window_is_not_found():
    window = 50
    decl_len = len("function Kx({tokenUsage:A}){")
    buf = make_buffer(_declaration_text(window - decl_len + 1))

    assert _find_declaration(buf, window=window) is None


@pytest.mark.parametrize("gap,found", [(76, True), (77, False)])
def test_enclosing_declaration_marker_lookahead_boundary(gap, found):
    # Marker placed after the anchor; it must end within the lookahead.
    text = "function Kx(A){" + "Context low (" + "z" * gap + "tokenUsage:" + "rest"
    buf = make_buffer(text)

    loc = _find_declaration(buf, window=800, lookahead=100)

    assert (loc is not None) is found


def test_find_within_returns_absolute_offset():
    text = "prefix;function f({tokenUsage:A}){if(!Q||D)return null;h(\"Context low (\")}"
    buf = make_buffer(text)
    scope = _find_declaration(buf, window=800)

    loc = find_within(buf, scope, anchors.CONTEXT_LOW_CONDITION_RE)

    assert loc is not None
    assert loc.matched == "if(!Q||D)return null"
    assert loc.start == text.index("if(!Q||D)")
    _assert_consistent(buf, loc)


def test_find_within_does_not_search_outside_scope():
    text = "if(!Q)return null;function f({tokenUsage:A}){h(\"Context low (\")}"
    buf = make_buffer(text)
    scope = _find_declaration(buf, window=800)

    assert scope is not None
    assert find_within(buf, scope, anchors.CONTEXT_LOW_CONDITION_RE) is None


def test_find_within_rejects_scope_from_other_revision():
    text = "function f({tokenUsage:A}){if(!Q)return null;h(\"Context low (\")}"
    buf = make_buffer(text)
    scope = _find_declaration(buf, window=800)
    newer = buf.with_text(buf.text)

    with pytest.raises(StaleLocationError):
        find_within(newer, scope, anchors.CONTEXT_LOW_CONDITION_RE)


def test_first_of_uses_fallback_only_when_primary_misses():
    calls = []

    def primary(buf):
        calls.append("primary")
        return None

    def fallback(buf):
        calls.append("fallback")
        return find_with_capture(buf, re.compile(r"(b)"))

    loc = first_of(primary, fallback)(make_buffer("abc"))

    assert calls == ["primary", "fallback"]
    assert loc is not None and loc.start == 1


def test_first_of_stops_at_primary_hit():
    def fallback(buf):
        raise AssertionError("fallback must not run")

    loc = first_of(lambda buf: find_with_capture(buf, re.compile(r"(a)")), fallback)(
        make_buffer("abc")
    )
    assert loc is not None and loc.start == 0


def test_find_after_anchor_respects_forward_window():
    text = 'SA="esc",_A="interrupt";' + "y" * 30 + "...H1?[x]:[]"
    buf = make_buffer(text)

    near = find_after_anchor(
        buf,
        anchors.ESC_INTERRUPT_ANCHOR_RE,
        anchors.ESC_INTERRUPT_SPREAD_RE,
        window=200,
        group=1,
    )
    far = find_after_anchor(
        buf,
        anchors.ESC_INTERRUPT_ANCHOR_RE,
        anchors.ESC_INTERRUPT_SPREAD_RE,
        window=40,
        group=1,
    )

    assert near is not None
    assert near.matched == "H1"
    assert near.captured == "H1"
    assert near.start == text.index("H1?[")
    _assert_consistent(buf, near)
    assert far is None


def test_find_spread_condition_uses_nearest_spread_before_key():
    text = (
        "a(...Z0?[1]:[]);"
        'b(...Y1?[h(P,{key:"esc"}),h(L,null,"to interrupt")]:[])'
    )
    buf = make_buffer(text)

    loc = find_spread_condition(buf, '{key:"esc"}', '"to interrupt"', window=200)

    assert loc is not None
    assert loc.matched == "Y1"
    assert loc.start == text.index("Y1?[")
    _assert_consistent(buf, loc)


def test_find_spread_condition_requires_label_near_key():
    text = 'b(...Y1?[h(P,{key:"esc"})' + "y" * 300 + '"to interrupt"]:[])'
    buf = make_buffer(text)

    assert find_spread_condition(buf, '{key:"esc"}', '"to interrupt"', window=200) is None


def test_chrome_clause_span_is_exactly_the_removable_tail():
    text = 'function s(X){let qA=XV1(X.chrome)&&zB();if(qA)S1("tengu_claude_in_chrome_setup")}'
    buf = make_buffer(text)

    loc = find_before_anchor(
        buf,
        anchors.CHROME_SETUP_ANCHOR,
        anchors.CHROME_SUBSCRIPTION_RE,
        window=anchors.CHROME_SETUP_WINDOW,
        group=1,
    )

    assert loc is not None
    assert loc.matched == "&&zB()"
    assert buf.text[loc.start : loc.end] == "&&zB()"

    patched = apply_location(buf, loc, "")
    assert patched.text == text.replace("let qA=XV1(X.chrome)&&zB();", "let qA=XV1(X.chrome);")
    assert len(patched) == len(text) - len("&&zB()")


def _window_text(gap: int) -> str:
    return "var a=1;" + CLAUSE + "y" * gap + anchors.CHROME_SETUP_ANCHOR


@pytest.mark.parametrize("extra,found", [(0, True), (1, False)])
def test_before_anchor_window_boundary(extra, found):
    window = 60
    buf = make_buffer(_window_text(window - len(CLAUSE) + extra))

    loc = find_before_anchor(
        buf,
        anchors.CHROME_SETUP_ANCHOR,
        anchors.CHROME_SUBSCRIPTION_RE,
        window=window,
        group=1,
    )

    assert (loc is not None) is found
    if found:
        assert loc.matched == "&&zB()"


def test_before_anchor_first_versus_closest_match():
    text = "!A&&x;!B&&y;" + anchors.CHROME_COMMAND_ANCHOR
    buf = make_buffer(text)

    first = find_before_anchor(
        buf, anchors.CHROME_COMMAND_ANCHOR, anchors.CHROME_COMMAND_GUARD_RE, window=100
    )
    closest = find_before_anchor(
        buf,
        anchors.CHROME_COMMAND_ANCHOR,
        anchors.CHROME_COMMAND_GUARD_RE,
        window=100,
        closest=True,
    )

    assert first is not None and first.matched == "!A&&"
    assert closest is not None and closest.matched == "!B&&"
    assert closest.captured == "B"
    _assert_consistent(buf, closest)


def test_before_anchor_missing_anchor_returns_none():
    buf = make_buffer(CLAUSE)
    assert (
        find_before_anchor(
            buf, anchors.CHROME_SETUP_ANCHOR, anchors.CHROME_SUBSCRIPTION_RE, window=300
        )
        is None
    )
