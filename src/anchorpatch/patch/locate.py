"""
Generic anchor-based locating strategies.

Each strategy reads a SourceBuffer and returns a LocationResult computed
against that exact snapshot, or None when an anchor or a secondary marker
is missing. None is the normal signal for "already patched" or "upstream
changed beyond recognition"; it is never raised as an error.
"""

from __future__ import annotations

from typing import Optional, Pattern

from anchorpatch.logger import logger

from .models import LocationResult, Locator, SourceBuffer, StaleLocationError


def _location(
    buffer: SourceBuffer,
    start: int,
    end: int,
    matched: str,
    captured: Optional[str] = None,
) -> LocationResult:
    return LocationResult(
        start=start,
        end=end,
        matched=matched,
        captured=captured,
        revision=buffer.revision,
    )


def find_nested(
    buffer: SourceBuffer, outer: Pattern[str], inner: Pattern[str]
) -> Optional[LocationResult]:
    """
    Structural literal match: a coarse pattern selects one construct, a
    narrower pattern is searched only inside that match.
    """
    outer_match = outer.search(buffer.text)
    if outer_match is None:
        logger.debug("Outer pattern not found", pattern=outer.pattern)
        return None

    scope = outer_match.group(0)
    logger.debug(
        "Outer pattern matched",
        start=outer_match.start(),
        end=outer_match.end(),
        excerpt=scope[:200],
    )

    inner_match = inner.search(scope)
    if inner_match is None:
        logger.debug("Inner pattern not found in scope", pattern=inner.pattern)
        return None

    start = outer_match.start() + inner_match.start()
    matched = inner_match.group(0)
    return _location(buffer, start, start + len(matched), matched)


def find_with_capture(
    buffer: SourceBuffer, pattern: Pattern[str], group: int = 1
) -> Optional[LocationResult]:
    """Anchor + capture: whole-match span, with one renamed token captured."""
    match = pattern.search(buffer.text)
    if match is None:
        logger.debug("Capture pattern not found", pattern=pattern.pattern)
        return None
    logger.debug(
        "Capture pattern matched",
        start=match.start(),
        end=match.end(),
        captured=match.group(group),
    )
    return _location(
        buffer, match.start(), match.end(), match.group(0), match.group(group)
    )


def find_enclosing_declaration(
    buffer: SourceBuffer,
    anchor: str,
    keyword: str,
    marker: str,
    *,
    window: int,
    lookahead: int,
) -> Optional[LocationResult]:
    """
    Windowed backward structural scan.

    Scans ``window`` characters before ``anchor`` for ``keyword``. A
    candidate is kept only if the text from the candidate up to
    ``lookahead`` characters past the anchor contains ``marker``. The
    candidate closest to the anchor wins. The returned span runs from the
    selected keyword to the end of the lookahead.
    """
    text = buffer.text
    anchor_pos = text.find(anchor)
    if anchor_pos < 0:
        logger.debug("Anchor not found", anchor=anchor)
        return None

    search_start = max(0, anchor_pos - window)
    scope_end = min(len(text), anchor_pos + lookahead)
    backward = text[search_start:anchor_pos]

    candidates: list[int] = []
    pos = backward.find(keyword)
    while pos >= 0:
        candidate = search_start + pos
        if marker in text[candidate:scope_end]:
            candidates.append(candidate)
            logger.debug("Declaration candidate", offset=candidate)
        pos = backward.find(keyword, pos + len(keyword))

    if not candidates:
        logger.debug(
            "No declaration candidate carries the marker",
            anchor=anchor,
            marker=marker,
            window=window,
        )
        return None

    start = candidates[-1]
    logger.debug("Selected declaration", offset=start)
    return _location(buffer, start, scope_end, text[start:scope_end])


def find_within(
    buffer: SourceBuffer, scope: LocationResult, pattern: Pattern[str]
) -> Optional[LocationResult]:
    """Nested condition extraction: search ``pattern`` only inside ``scope``."""
    if scope.revision != buffer.revision:
        raise StaleLocationError(
            f"Scope computed against revision {scope.revision}, buffer is at {buffer.revision}"
        )
    match = pattern.search(buffer.text[scope.start : scope.end])
    if match is None:
        logger.debug("Pattern not found within scope", pattern=pattern.pattern)
        return None
    return _location(
        buffer,
        scope.start + match.start(),
        scope.start + match.end(),
        match.group(0),
        match.group(0),
    )


def first_of(primary: Locator, *fallbacks: Locator) -> Locator:
    """Primary/fallback pair: the first locator that yields a location wins."""

    def locate(buffer: SourceBuffer) -> Optional[LocationResult]:
        result = primary(buffer)
        if result is not None:
            return result
        for fallback in fallbacks:
            logger.debug("Primary pattern not found, trying fallback")
            result = fallback(buffer)
            if result is not None:
                return result
        return None

    return locate


def find_after_anchor(
    buffer: SourceBuffer,
    anchor: Pattern[str],
    pattern: Pattern[str],
    *,
    window: int,
    group: int = 0,
) -> Optional[LocationResult]:
    """Search ``window`` characters forward from a regex anchor."""
    text = buffer.text
    anchor_match = anchor.search(text)
    if anchor_match is None:
        logger.debug("Anchor pattern not found", pattern=anchor.pattern)
        return None

    anchor_pos = anchor_match.start()
    forward = text[anchor_pos : min(len(text), anchor_pos + window)]
    match = pattern.search(forward)
    if match is None:
        logger.debug(
            "Pattern not found after anchor",
            anchor=anchor_match.group(0),
            pattern=pattern.pattern,
        )
        return None

    start = anchor_pos + match.start(group)
    matched = match.group(group)
    captured = match.group(1) if pattern.groups else None
    return _location(buffer, start, start + len(matched), matched, captured)


def find_spread_condition(
    buffer: SourceBuffer, key: str, label: str, *, window: int
) -> Optional[LocationResult]:
    """
    Locate ``COND`` in ``...COND?[ ... key ... label ... ]``.

    Every occurrence of ``key`` followed within ``window`` characters by
    ``label`` is tried in order. The condition runs from the nearest
    preceding spread operator to the first ``?`` after it.
    """
    text = buffer.text
    pos = text.find(key)
    while pos >= 0:
        if label in text[pos : pos + window]:
            spread = text.rfind("...", 0, pos)
            if spread >= 0:
                question = text.find("?", spread, pos)
                if question >= 0:
                    start = spread + 3
                    condition = text[start:question]
                    logger.debug(
                        "Spread condition found",
                        condition=condition.strip(),
                        start=start,
                        end=question,
                    )
                    return _location(
                        buffer, start, question, condition, condition.strip()
                    )
        pos = text.find(key, pos + 1)
    return None


def find_before_anchor(
    buffer: SourceBuffer,
    anchor: str,
    pattern: Pattern[str],
    *,
    window: int,
    group: int = 0,
    closest: bool = False,
) -> Optional[LocationResult]:
    """
    Backward window + capture-group span.

    Searches ``window`` characters before a literal anchor and returns the
    span of ``group`` only, so a single clause can be removed or rewritten
    without touching the rest of the statement. With ``closest`` the match
    nearest to the anchor wins, otherwise the first match in the window.
    """
    text = buffer.text
    anchor_pos = text.find(anchor)
    if anchor_pos < 0:
        logger.debug("Anchor not found", anchor=anchor)
        return None

    search_start = max(0, anchor_pos - window)
    backward = text[search_start:anchor_pos]

    match = None
    for match in pattern.finditer(backward):
        if not closest:
            break
    if match is None:
        logger.debug(
            "Pattern not found before anchor", anchor=anchor, pattern=pattern.pattern
        )
        return None

    start = search_start + match.start(group)
    matched = match.group(group)
    captured = match.group(1) if pattern.groups else None
    logger.debug("Found clause before anchor", clause=matched, start=start)
    return _location(buffer, start, start + len(matched), matched, captured)
