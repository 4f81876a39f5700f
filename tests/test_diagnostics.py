from __future__ import annotations

import logging

import pytest

from bibsmith.core.diagnostics import (
    Diagnostic,
    DiagnosticEmitter,
    DiagnosticKind,
    DiagnosticSeverity,
    LoggingEmitter,
    NullEmitter,
    emit_diagnostic,
    format_event_message,
)
from bibsmith.core.exceptions import (
    BibliographyError,
    CrossrefError,
    LexError,
    MacroError,
    exception_hint,
    exception_messages,
)
from bibsmith.ui.cli.diagnostics import CliEmitter
from bibsmith.ui.cli.state import CLIState, set_cli_state


def _raise_lex_error() -> None:
    raise LexError("Unterminated brace group", 12)


def _raise_nested_macro_error() -> None:
    try:
        _raise_lex_error()
    except LexError as exc:
        raise MacroError("conf") from exc


def test_null_emitter_is_noop(caplog: pytest.LogCaptureFixture) -> None:
    emitter = NullEmitter()
    with caplog.at_level(logging.WARNING):
        emitter.warning("nothing to see")
        emitter.error("still quiet")
    assert not caplog.records
    emitter.event("ignored", {"value": 1})
    assert emitter.debug_enabled is False


def test_logging_emitter_logs_messages(caplog: pytest.LogCaptureFixture) -> None:
    emitter = LoggingEmitter(debug_enabled=True)
    with caplog.at_level(logging.ERROR):
        emitter.error("boom")
    assert any(record.message == "boom" for record in caplog.records)
    assert emitter.debug_enabled is True


def test_logging_emitter_formats_known_events(caplog: pytest.LogCaptureFixture) -> None:
    emitter = LoggingEmitter()
    with caplog.at_level(logging.DEBUG, logger="bibsmith.core.diagnostics"):
        emitter.event("document_parsed", {"entries": 3, "diagnostics": 1})
        emitter.event("custom", {"value": 1})
    messages = [record.getMessage() for record in caplog.records]
    assert "Parsed 3 entries (1 diagnostics)" in messages
    assert any("custom" in message for message in messages)


def test_emitters_satisfy_protocol() -> None:
    assert isinstance(NullEmitter(), DiagnosticEmitter)
    assert isinstance(LoggingEmitter(), DiagnosticEmitter)


@pytest.mark.parametrize(
    ("kind", "severity"),
    [
        (DiagnosticKind.LEX_ERROR, DiagnosticSeverity.ERROR),
        (DiagnosticKind.MACRO_ERROR, DiagnosticSeverity.WARNING),
        (DiagnosticKind.MISSING_TITLE, DiagnosticSeverity.WARNING),
        (DiagnosticKind.RENDER_FALLBACK, DiagnosticSeverity.INFO),
        (DiagnosticKind.EMPTY_DOCUMENT, DiagnosticSeverity.ERROR),
    ],
)
def test_diagnostic_severity(kind: DiagnosticKind, severity: DiagnosticSeverity) -> None:
    assert Diagnostic(kind, "message").severity is severity


def test_every_kind_has_a_severity() -> None:
    for kind in DiagnosticKind:
        assert isinstance(kind.severity, DiagnosticSeverity)


def test_drops_entry() -> None:
    assert DiagnosticKind.DUPLICATE_KEY.drops_entry
    assert DiagnosticKind.MISSING_TITLE.drops_entry
    assert not DiagnosticKind.MACRO_ERROR.drops_entry
    assert not DiagnosticKind.RENDER_FALLBACK.drops_entry


def test_describe_and_to_dict() -> None:
    diagnostic = Diagnostic(DiagnosticKind.MISSING_TITLE, "Entry has no title.", key="k", offset=7)

    assert diagnostic.describe() == "[missing_title] entry 'k', offset 7: Entry has no title."
    assert Diagnostic(DiagnosticKind.EMPTY_DOCUMENT, "Nothing.").describe() == (
        "[empty_document] Nothing."
    )
    assert diagnostic.to_dict() == {
        "kind": "missing_title",
        "severity": "warning",
        "message": "Entry has no title.",
        "key": "k",
        "offset": 7,
        "byte_offset": None,
    }


def test_emit_diagnostic_routes_by_severity(caplog: pytest.LogCaptureFixture) -> None:
    emitter = LoggingEmitter()
    with caplog.at_level(logging.INFO):
        emit_diagnostic(emitter, Diagnostic(DiagnosticKind.PARSE_ERROR, "bad"))
        emit_diagnostic(emitter, Diagnostic(DiagnosticKind.CROSSREF_ERROR, "dangling"))
        emit_diagnostic(
            emitter, Diagnostic(DiagnosticKind.RENDER_FALLBACK, "odd", key="k", offset=0)
        )

    levels = [(record.levelno, record.getMessage()) for record in caplog.records]
    assert levels == [
        (logging.ERROR, "[parse_error] bad"),
        (logging.WARNING, "[crossref_error] dangling"),
        (logging.INFO, "Rendering fallback in entry 'k': odd"),
    ]


def test_format_event_message_unknown_event() -> None:
    assert format_event_message("something_else", {}) is None


def test_positioned_errors_carry_offsets() -> None:
    error = LexError("Unterminated quoted value", 5)

    assert error.offset == 5
    assert error.reason == "Unterminated quoted value"
    assert str(error) == "Unterminated quoted value (at offset 5)"
    assert isinstance(error, BibliographyError)


def test_crossref_error_message() -> None:
    error = CrossrefError("child", "ghost")

    assert str(error) == "Entry 'child' cross-references unknown entry 'ghost'."


def test_exception_hint_uses_deepest_message() -> None:
    with pytest.raises(MacroError) as excinfo:
        _raise_nested_macro_error()

    messages = exception_messages(excinfo.value)
    assert messages == [
        "Undefined macro 'conf'.",
        "Unterminated brace group (at offset 12)",
    ]
    assert exception_hint(excinfo.value) == "Unterminated brace group (at offset 12)"


def test_cli_emitter_renders_events_and_warnings(
    capsys: pytest.CaptureFixture[str],
) -> None:
    state = set_cli_state(verbosity=1, debug=False)
    emitter = CliEmitter(state=state)

    emitter.event("document_parsed", {"entries": 2, "diagnostics": 0})
    emitter.event("not_summarised", {"value": 1})
    err = capsys.readouterr().err
    assert "Parsed 2 entries (0 diagnostics)" in err
    assert "not_summarised" not in err

    emitter.warning("entry skipped")
    assert "warning: entry skipped" in capsys.readouterr().err


def test_cli_emitter_follows_state_debug_flag() -> None:
    state = CLIState(show_tracebacks=True)

    assert CliEmitter(state=state).debug_enabled is True
    assert CliEmitter(state=state, debug_enabled=False).debug_enabled is False
