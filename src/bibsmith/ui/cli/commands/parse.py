"""Implementation of the ``bibsmith parse`` command."""

from __future__ import annotations

from pathlib import Path

import click
from pydantic import ValidationError as ConfigValidationError
import typer

from bibsmith.core.bibliography import parse_file
from bibsmith.core.config import ParserConfig, load_config
from bibsmith.core.exceptions import exception_hint

from .._options import (
    BibFilesArgument,
    ConfigOption,
    DebugOption,
    EncodingOption,
    FormatOption,
    NoCrossrefOption,
    OutputFormat,
    StrictOption,
    VerboseOption,
)
from ..bibliography import ParsedFile, print_bibliography_overview, print_json
from ..diagnostics import CliEmitter
from ..state import configure_logging, debug_enabled, emit_error, set_cli_state


def _resolve_config(config_path: Path | None, no_crossref: bool) -> ParserConfig:
    config = load_config(config_path) if config_path is not None else ParserConfig()
    if no_crossref:
        config = config.model_copy(update={"resolve_crossrefs": False})
    return config


def parse(
    inputs: BibFilesArgument,
    config_path: ConfigOption = None,
    encoding: EncodingOption = "utf-8",
    no_crossref: NoCrossrefOption = False,
    output_format: FormatOption = OutputFormat.TABLE,
    strict: StrictOption = False,
    verbose: VerboseOption = 0,
    debug: DebugOption = False,
) -> None:
    """Parse BibTeX files and print their entries with any diagnostics."""

    ctx = click.get_current_context(silent=True)
    typer_ctx = ctx if isinstance(ctx, typer.Context) else None
    state = set_cli_state(ctx=typer_ctx, verbosity=verbose, debug=debug)
    configure_logging(state)

    try:
        config = _resolve_config(config_path, no_crossref)
    except (OSError, ValueError, ConfigValidationError) as exc:
        if debug_enabled():
            raise
        emit_error(f"Invalid configuration: {exception_hint(exc)}", exception=exc)
        raise typer.Exit(code=1) from exc

    # Diagnostics are streamed to stderr only on request; the tables and the
    # JSON payload already carry them.
    emitter = CliEmitter(state=state) if state.verbosity >= 1 else None

    parsed: list[ParsedFile] = []
    for path in inputs:
        try:
            result = parse_file(path, encoding=encoding, config=config, emitter=emitter)
        except OSError as exc:
            emit_error(f"Failed to read '{path}': {exc}", exception=exc)
            raise typer.Exit(code=1) from exc
        parsed.append(ParsedFile(path=path, result=result))

    if output_format is OutputFormat.JSON:
        print_json(parsed)
    else:
        print_bibliography_overview(parsed)

    if strict and any(item.result.diagnostics for item in parsed):
        raise typer.Exit(code=1)


__all__ = ["parse"]
