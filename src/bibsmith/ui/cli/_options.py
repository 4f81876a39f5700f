"""Shared Typer option definitions for CLI commands."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated

import typer


INPUTS_PANEL = "Input Handling"
PARSING_PANEL = "Parsing"
OUTPUT_PANEL = "Output"
DIAGNOSTICS_PANEL = "Diagnostics"


class OutputFormat(str, Enum):
    """Presentation used for parse results."""

    TABLE = "table"
    JSON = "json"


BibFilesArgument = Annotated[
    list[Path],
    typer.Argument(
        metavar="BIBFILE...",
        help="BibTeX files (.bib) to parse.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
        resolve_path=True,
        rich_help_panel=INPUTS_PANEL,
    ),
]

EncodingOption = Annotated[
    str,
    typer.Option(
        "--encoding",
        help="Text encoding of the input files. Latin-1 is tried when decoding fails.",
        rich_help_panel=INPUTS_PANEL,
    ),
]

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="YAML file holding parser settings.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
        resolve_path=True,
        rich_help_panel=PARSING_PANEL,
    ),
]

NoCrossrefOption = Annotated[
    bool,
    typer.Option(
        "--no-crossref",
        help="Do not inherit fields through 'crossref'.",
        rich_help_panel=PARSING_PANEL,
    ),
]

FormatOption = Annotated[
    OutputFormat,
    typer.Option(
        "--format",
        "-f",
        case_sensitive=False,
        help="Print entries as Rich tables or as JSON.",
        rich_help_panel=OUTPUT_PANEL,
    ),
]

StrictOption = Annotated[
    bool,
    typer.Option(
        "--strict",
        help="Exit with status 1 when any diagnostic is reported.",
        rich_help_panel=DIAGNOSTICS_PANEL,
    ),
]

VerboseOption = Annotated[
    int,
    typer.Option(
        "--verbose",
        "-v",
        count=True,
        help="Increase CLI verbosity. Combine multiple times for additional diagnostics.",
        rich_help_panel=DIAGNOSTICS_PANEL,
    ),
]

DebugOption = Annotated[
    bool,
    typer.Option(
        "--debug",
        help="Show full tracebacks when an unexpected error occurs.",
        rich_help_panel=DIAGNOSTICS_PANEL,
    ),
]


__all__ = [
    "DIAGNOSTICS_PANEL",
    "INPUTS_PANEL",
    "OUTPUT_PANEL",
    "PARSING_PANEL",
    "BibFilesArgument",
    "ConfigOption",
    "DebugOption",
    "EncodingOption",
    "FormatOption",
    "NoCrossrefOption",
    "OutputFormat",
    "StrictOption",
    "VerboseOption",
]
