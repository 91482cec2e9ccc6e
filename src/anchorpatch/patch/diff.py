from __future__ import annotations

from rich import console as rich_console
from rich import text as rich_text

from .models import DiffReport, LocationResult, SourceBuffer

DEFAULT_CONTEXT = 50

OLD_STYLE = "red"
NEW_STYLE = "green"
TITLE_STYLE = "bold"
CONTEXT_STYLE = "dim"


def render_diff(
    title: str,
    before: SourceBuffer,
    after: SourceBuffer,
    location: LocationResult,
    *,
    context: int = DEFAULT_CONTEXT,
) -> DiffReport:
    """
    Capture a bounded window around one replacement.
    ``location`` refers to ``before``; the new span in ``after`` is derived
    from the length change, since nothing outside the span moves.
    """
    start, end = location.start, location.end
    new_end = end + (len(after) - len(before))
    return DiffReport(
        title=title,
        start=start,
        end=end,
        before=before.text[max(0, start - context) : start],
        old=before.text[start:end],
        new=after.text[start:new_end],
        after=before.text[end : end + context],
    )


def diff_to_text(report: DiffReport) -> str:
    return "\n".join(
        [
            f"--- {report.title} Diff ---",
            f"OLD: {report.before}{report.old}{report.after}",
            f"NEW: {report.before}{report.new}{report.after}",
            "--- End Diff ---",
        ]
    )


def diff_to_renderable(report: DiffReport) -> rich_console.RenderableType:
    header = rich_text.Text(no_wrap=True)
    header.append(f"--- {report.title} Diff ", style=TITLE_STYLE)
    header.append(f"[{report.start}:{report.end}]", style=CONTEXT_STYLE)
    header.append(" ---", style=TITLE_STYLE)

    old_line = rich_text.Text("OLD: ")
    old_line.append(report.before, style=CONTEXT_STYLE)
    old_line.append(report.old, style=OLD_STYLE)
    old_line.append(report.after, style=CONTEXT_STYLE)

    new_line = rich_text.Text("NEW: ")
    new_line.append(report.before, style=CONTEXT_STYLE)
    new_line.append(report.new, style=NEW_STYLE)
    new_line.append(report.after, style=CONTEXT_STYLE)

    return rich_console.Group(header, old_line, new_line)
