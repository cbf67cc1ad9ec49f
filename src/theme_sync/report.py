"""Human-readable rendering of merge reports."""

from typing import List, Optional, Tuple

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .merger import MergeReport

KIND_STYLES = {
    "added": "green",
    "updated": "cyan",
    "removed": "red",
    "kept": "yellow",
    "conflict": "magenta bold",
}


def summarize_report(report: MergeReport) -> str:
    """One-line summary, e.g. ``2 added, 1 updated, 0 removed, 0 kept, 1 conflict``."""
    conflicts = len(report.conflicts)
    return (
        f"{len(report.added)} added, {len(report.updated)} updated, "
        f"{len(report.removed)} removed, {len(report.kept_modified)} kept, "
        f"{conflicts} conflict{'' if conflicts == 1 else 's'}"
    )


def report_rows(report: MergeReport) -> List[Tuple[str, str, str, str]]:
    """Flatten a report into (kind, scope, property, detail) rows."""
    rows = []
    for entry in report.added:
        rows.append(("added", entry.scope, entry.prop, ""))
    for entry in report.updated:
        rows.append(("updated", entry.scope, entry.prop, f"{entry.from_value} -> {entry.to_value}"))
    for entry in report.removed:
        rows.append(("removed", entry.scope, entry.prop, ""))
    for entry in report.kept_modified:
        detail = entry.current
        if entry.incoming is not None:
            detail += f" (incoming {entry.incoming})"
        rows.append(("kept", entry.scope, entry.prop, detail))
    for entry in report.conflicts:
        rows.append((
            "conflict", entry.scope, entry.prop,
            f"current {entry.current}, backup {entry.backup}, incoming {entry.incoming}",
        ))
    return rows


def build_report_table(report: MergeReport, title: Optional[str] = None) -> Table:
    """Build a rich table with one row per report entry."""
    table = Table(
        title=title or "Theme Merge",
        caption=summarize_report(report),
        show_header=True,
        header_style="bold",
    )

    table.add_column("Kind", min_width=8)
    table.add_column("Scope", style="blue")
    table.add_column("Property", style="cyan")
    table.add_column("Detail", style="default")

    for kind, scope, prop, detail in report_rows(report):
        style = KIND_STYLES[kind]
        table.add_row(f"[{style}]{kind}[/{style}]", escape(scope), escape(prop), escape(detail))

    return table


def print_report(report: MergeReport, console: Optional[Console] = None) -> None:
    """Print a merge report, or a short notice when nothing changed."""
    console = console or Console()
    if report.is_empty():
        console.print("[dim]Theme is up to date.[/dim]")
        return
    console.print()
    console.print(build_report_table(report))
    console.print()
