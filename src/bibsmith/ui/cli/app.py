"""Typer application wiring for the bibsmith CLI."""

from __future__ import annotations

import typer

from bibsmith.ui.cli.commands import latex, parse

from .state import debug_enabled, emit_error, get_cli_state


app = typer.Typer(
    help="Parse BibTeX bibliographies into plain-text entries.",
    context_settings={"help_option_names": ["--help"]},
    no_args_is_help=True,
)


app.command()(parse)
app.command()(latex)


def main() -> None:
    """Entry point compatible with console scripts."""
    try:
        app()
    except typer.Exit:
        raise
    except KeyboardInterrupt as exc:
        if debug_enabled():
            raise
        emit_error("Operation cancelled by user.", exception=exc)
        raise typer.Exit(code=1) from exc
    except SystemExit:
        raise
    except Exception as exc:  # pragma: no cover - last-resort reporting
        state = get_cli_state()
        if state.show_tracebacks:
            from rich.traceback import Traceback

            tb = Traceback.from_exception(
                type(exc),
                exc,
                exc.__traceback__,
                show_locals=state.verbosity >= 2,
            )
            state.err_console.print(tb)
        else:
            emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc


__all__ = ["app", "main"]
