"""Bibliography presentation helpers for the CLI."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer

from bibsmith.core.bibliography import Entry, ParseResult
from bibsmith.core.diagnostics import DiagnosticSeverity

from .state import get_cli_state


if TYPE_CHECKING:
    from rich.panel import Panel


_SEVERITY_STYLES = {
    DiagnosticSeverity.ERROR: "red",
    DiagnosticSeverity.WARNING: "yellow",
    DiagnosticSeverity.INFO: "cyan",
}


@dataclass(frozen=True, slots=True)
class ParsedFile:
    """Parse result paired with the file it came from."""

    path: Path
    result: ParseResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "entries": [entry.to_dict() for entry in self.result.entries],
            "diagnostics": [diagnostic.to_dict() for diagnostic in self.result.diagnostics],
        }


def format_person_list(people: Sequence[str] | None) -> str | None:
    """Join formatted names the way a reference list would."""
    if not people:
        return None
    if len(people) == 1:
        return people[0]
    return ", ".join(people[:-1]) + " and " + people[-1]


def build_entry_panel(entry: Entry) -> Panel:
    """Create a Rich panel that visualises a single bibliography entry."""
    from rich import box
    from rich.panel import Panel
    from rich.table import Table
    from rich.text import Text

    grid = Table.grid(padding=(0, 1))
    grid.add_column(style="bold green", no_wrap=True)
    grid.add_column()

    def _add_field(label: str, value: object) -> None:
        if value is None:
            return
        grid.add_row(label, Text(str(value)))

    _add_field("Title", entry.title)
    _add_field("Year", entry.year)
    _add_field("Authors", format_person_list(entry.authors))
    _add_field("Editors", format_person_list(entry.editors))
    _add_field("Booktitle", entry.booktitle)
    _add_field("Series", entry.series)
    _add_field("Note", entry.note)
    _add_field("Slides", entry.slides)
    _add_field("PDF", entry.pdf)

    title = Text(f"{entry.key} ({entry.entry_type})")
    return Panel(grid, title=title, box=box.SIMPLE)


def print_json(parsed: Sequence[ParsedFile]) -> None:
    """Write parse results as a JSON array on stdout."""
    payload = [item.to_dict() for item in parsed]
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


def print_bibliography_overview(parsed: Sequence[ParsedFile]) -> None:
    """Render entries, diagnostics and per-file counts as Rich tables."""
    from rich import box
    from rich.table import Table
    from rich.text import Text

    console = get_cli_state().console

    for item in parsed:
        for entry in item.result.entries:
            console.print(build_entry_panel(entry))
            console.print()

    diagnostics = [
        (item.path, diagnostic) for item in parsed for diagnostic in item.result.diagnostics
    ]
    if diagnostics:
        issue_table = Table(
            title="Warnings",
            box=box.SQUARE,
            header_style="bold cyan",
            show_edge=True,
        )
        issue_table.add_column("File", overflow="fold")
        issue_table.add_column("Key", no_wrap=True)
        issue_table.add_column("Kind", no_wrap=True)
        issue_table.add_column("Message")
        for path, diagnostic in diagnostics:
            style = _SEVERITY_STYLES[diagnostic.severity]
            issue_table.add_row(
                Text(path.name),
                Text(diagnostic.key or "-", style=style),
                Text(diagnostic.kind.value, style=style),
                Text(diagnostic.message, style=style),
            )
        console.print(issue_table)

    if not any(item.result.entries for item in parsed):
        console.print("[dim]No entries found.[/]")

    summary_table = Table(
        title="Bibliography Summary",
        box=box.SQUARE,
        header_style="bold cyan",
        show_edge=True,
    )
    summary_table.add_column("File", overflow="fold")
    summary_table.add_column("Entries", justify="right")
    summary_table.add_column("Skipped", justify="right")
    summary_table.add_column("Diagnostics", justify="right")

    totals: Counter[str] = Counter()
    for item in parsed:
        skipped = sum(1 for diagnostic in item.result.diagnostics if diagnostic.kind.drops_entry)
        counts = {
            "entries": len(item.result.entries),
            "skipped": skipped,
            "diagnostics": len(item.result.diagnostics),
        }
        totals.update(counts)
        summary_table.add_row(
            Text(str(item.path)),
            str(counts["entries"]),
            str(counts["skipped"]),
            str(counts["diagnostics"]),
        )
    if len(parsed) > 1:
        summary_table.add_row(
            Text("Total", style="bold"),
            str(totals["entries"]),
            str(totals["skipped"]),
            str(totals["diagnostics"]),
        )
    console.print(summary_table)


__all__ = [
    "ParsedFile",
    "build_entry_panel",
    "format_person_list",
    "print_bibliography_overview",
    "print_json",
]
