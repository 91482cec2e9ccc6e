from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Callable, Optional


class BundleIOError(OSError):
    """Reading, backing up or writing the target bundle failed."""


class StaleLocationError(ValueError):
    """A location was applied to a buffer other than the one it was computed against."""


class PatchState(str, Enum):
    PENDING = "pending"
    LOCATED = "located"
    SKIPPED = "skipped"
    APPLIED = "applied"
    FAILED = "failed"


@dataclass(frozen=True)
class SourceBuffer:
    """
    Immutable snapshot of the bundle text.
    Every mutation yields a new buffer with a bumped revision so locations
    computed against an older snapshot can be detected and rejected.
    """

    path: Path
    text: str
    revision: int = 0

    def __len__(self) -> int:
        return len(self.text)

    def with_text(self, text: str) -> "SourceBuffer":
        return replace(self, text=text, revision=self.revision + 1)


@dataclass(frozen=True)
class LocationResult:
    start: int
    end: int
    # Substring reported by the locating match; must equal text[start:end]
    matched: str = ""
    captured: Optional[str] = None
    revision: int = 0

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(
                f"Invalid location range: start={self.start}, end={self.end}"
            )


Locator = Callable[[SourceBuffer], Optional[LocationResult]]
ReplacementRenderer = Callable[[LocationResult], str]


@dataclass(frozen=True)
class PatchSpec:
    # Stable identifier used by settings and the CLI, e.g. "verbose_property"
    key: str
    # Human-readable name shown in the summary
    name: str
    locate: Locator
    render_replacement: ReplacementRenderer
    description: str = ""


@dataclass(frozen=True)
class PatchOutcome:
    key: str
    name: str
    state: PatchState
    detail: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state == PatchState.APPLIED


@dataclass
class DiffReport:
    title: str
    start: int
    end: int
    before: str
    old: str
    new: str
    after: str


@dataclass
class PatchRun:
    initial: SourceBuffer
    buffer: SourceBuffer
    outcomes: list[PatchOutcome] = field(default_factory=list)
    reports: list[DiffReport] = field(default_factory=list)

    @property
    def applied_count(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)

    @property
    def all_applied(self) -> bool:
        return bool(self.outcomes) and self.applied_count == len(self.outcomes)

    @property
    def changed(self) -> bool:
        return self.buffer.text != self.initial.text
