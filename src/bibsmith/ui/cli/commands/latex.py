"""Implementation of the ``bibsmith latex`` command."""

from __future__ import annotations

from typing import Annotated

import typer

from bibsmith.core.latex_text import LatexRenderer

from .._options import OUTPUT_PANEL
from ..state import emit_warning


def latex(
    text: Annotated[
        str,
        typer.Argument(metavar="TEXT", help="LaTeX fragment as found in a BibTeX field."),
    ],
    show_unknown: Annotated[
        bool,
        typer.Option(
            "--show-unknown",
            help="Report commands that were passed through without a known rendering.",
            rich_help_panel=OUTPUT_PANEL,
        ),
    ] = False,
) -> None:
    """Render a LaTeX fragment to plain Unicode text."""

    rendered = LatexRenderer().render(text)
    typer.echo(rendered.text)
    if show_unknown:
        for command in dict.fromkeys(rendered.unknown_commands):
            emit_warning(f"Unrecognised LaTeX command '\\{command}'.")


__all__ = ["latex"]
