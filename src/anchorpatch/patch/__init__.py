from __future__ import annotations

from typing import Callable, Optional

from anchorpatch.settings import Settings

from .buffer import BundleFileOps, FileSystemBundleOps, apply_location
from .catalog import build_patch_specs, describe_patches, get_patch_keys
from .diff import diff_to_renderable, diff_to_text, render_diff
from .models import (
    BundleIOError,
    DiffReport,
    LocationResult,
    PatchOutcome,
    PatchRun,
    PatchSpec,
    PatchState,
    SourceBuffer,
    StaleLocationError,
)
from .orchestrator import (
    PatchOrchestrator,
    format_summary,
    looks_unpatched,
    run_patch_step,
)


def run_patches(
    buffer: SourceBuffer,
    settings: Optional[Settings] = None,
    *,
    on_report: Optional[Callable[[DiffReport], None]] = None,
) -> PatchRun:
    """Apply every patch selected by ``settings`` to ``buffer`` in catalog order."""
    settings = settings or Settings()
    orchestrator = PatchOrchestrator(
        build_patch_specs(settings),
        context=settings.diff_context,
        on_report=on_report,
    )
    return orchestrator.run(buffer)


__all__ = [
    "BundleFileOps",
    "BundleIOError",
    "DiffReport",
    "FileSystemBundleOps",
    "LocationResult",
    "PatchOrchestrator",
    "PatchOutcome",
    "PatchRun",
    "PatchSpec",
    "PatchState",
    "SourceBuffer",
    "StaleLocationError",
    "apply_location",
    "build_patch_specs",
    "describe_patches",
    "diff_to_renderable",
    "diff_to_text",
    "format_summary",
    "get_patch_keys",
    "looks_unpatched",
    "render_diff",
    "run_patch_step",
    "run_patches",
]
