from __future__ import annotations

from typing import Callable, List, Optional, Sequence, Tuple

from anchorpatch.logger import logger

from .buffer import apply_location
from .diff import DEFAULT_CONTEXT, render_diff
from .models import (
    DiffReport,
    PatchOutcome,
    PatchRun,
    PatchSpec,
    PatchState,
    SourceBuffer,
)

ANCHOR_NOT_FOUND = "anchor not found"
ALREADY_PATCHED = "already patched"
NO_PATCHES_SELECTED = "⚠️ No patches selected"


def run_patch_step(
    buffer: SourceBuffer,
    spec: PatchSpec,
    *,
    context: int = DEFAULT_CONTEXT,
) -> Tuple[SourceBuffer, PatchOutcome, Optional[DiffReport]]:
    """
    Locate and apply a single patch against ``buffer``.
    Returns (next_buffer, outcome, diff_report). On any miss or failure
    next_buffer is ``buffer`` itself and no report is produced.
    """
    log = logger.bind(patch=spec.key)

    def outcome(state: PatchState, detail: Optional[str] = None) -> PatchOutcome:
        log.debug("Patch state", state=state.value)
        return PatchOutcome(key=spec.key, name=spec.name, state=state, detail=detail)

    log.debug("Patch state", state=PatchState.PENDING.value)
    try:
        location = spec.locate(buffer)
        if location is None:
            log.warning("Anchor not found", name=spec.name)
            return buffer, outcome(PatchState.SKIPPED, ANCHOR_NOT_FOUND), None

        log.debug(
            "Patch state",
            state=PatchState.LOCATED.value,
            start=location.start,
            end=location.end,
            matched=location.matched[:200],
        )
        replacement = spec.render_replacement(location)
        if buffer.text[location.start : location.end] == replacement:
            log.info("Already patched", name=spec.name)
            return buffer, outcome(PatchState.SKIPPED, ALREADY_PATCHED), None

        patched = apply_location(buffer, location, replacement)
    except Exception as e:
        log.error("Patch failed", name=spec.name, error=f"{type(e).__name__}: {e}")
        return buffer, outcome(PatchState.FAILED, f"{type(e).__name__}: {e}"), None

    report = render_diff(spec.name, buffer, patched, location, context=context)
    log.info("Patch applied", name=spec.name, start=location.start, end=location.end)
    return patched, outcome(PatchState.APPLIED), report


class PatchOrchestrator:
    """
    Runs an ordered list of patches, one best-effort pass, never aborting on
    an individual miss. Each patch locates against the buffer produced by
    the previous step, so offsets never outlive the snapshot they came from.
    """

    def __init__(
        self,
        specs: Sequence[PatchSpec],
        *,
        context: int = DEFAULT_CONTEXT,
        on_report: Optional[Callable[[DiffReport], None]] = None,
    ) -> None:
        self._specs: List[PatchSpec] = list(specs)
        self._context = context
        self._on_report = on_report

    @property
    def specs(self) -> List[PatchSpec]:
        return list(self._specs)

    def run(self, buffer: SourceBuffer) -> PatchRun:
        run = PatchRun(initial=buffer, buffer=buffer)
        for spec in self._specs:
            run.buffer, result, report = run_patch_step(
                run.buffer, spec, context=self._context
            )
            run.outcomes.append(result)
            if report is not None:
                run.reports.append(report)
                if self._on_report is not None:
                    self._on_report(report)
        logger.info(
            "Patch run finished",
            applied=run.applied_count,
            total=len(run.outcomes),
            changed=run.changed,
        )
        return run


def format_summary(outcomes: Sequence[PatchOutcome]) -> str:
    lines: List[str] = ["📊 Patch Results:"]
    for o in outcomes:
        mark = "✅" if o.succeeded else "❌"
        line = f"  {mark} {o.name}"
        if not o.succeeded and o.detail:
            line += f" ({o.detail})"
        lines.append(line)

    applied = sum(1 for o in outcomes if o.succeeded)
    total = len(outcomes)
    lines.append("")
    if total == 0:
        lines.append(NO_PATCHES_SELECTED)
    elif applied == total:
        lines.append(f"✅ All {total} patches applied successfully!")
    else:
        lines.append(f"⚠️ {applied}/{total} patches applied successfully")
    return "\n".join(lines)


def looks_unpatched(run: PatchRun) -> bool:
    """True when the run changed the bundle and no patch was already in place."""
    return run.changed and not any(o.detail == ALREADY_PATCHED for o in run.outcomes)
