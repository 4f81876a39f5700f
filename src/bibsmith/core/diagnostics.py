"""Diagnostic records and emitters shared across the bibliography pipeline."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any, Protocol, runtime_checkable


logger = logging.getLogger(__name__)


class DiagnosticSeverity(Enum):
    """How a diagnostic affected the parse result."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class DiagnosticKind(Enum):
    """Classification of the conditions reported alongside parsed entries."""

    LEX_ERROR = "lex_error"
    PARSE_ERROR = "parse_error"
    MACRO_ERROR = "macro_error"
    CROSSREF_ERROR = "crossref_error"
    DUPLICATE_KEY = "duplicate_key"
    MISSING_TITLE = "missing_title"
    MISSING_OR_INVALID_YEAR = "missing_or_invalid_year"
    RENDER_FALLBACK = "render_fallback"
    EMPTY_DOCUMENT = "empty_document"

    @property
    def severity(self) -> DiagnosticSeverity:
        return _SEVERITIES[self]

    @property
    def drops_entry(self) -> bool:
        """Return whether the condition removed an entry from the output."""
        return self in _DROPPING_KINDS


_SEVERITIES: dict[DiagnosticKind, DiagnosticSeverity] = {
    DiagnosticKind.LEX_ERROR: DiagnosticSeverity.ERROR,
    DiagnosticKind.PARSE_ERROR: DiagnosticSeverity.ERROR,
    DiagnosticKind.MACRO_ERROR: DiagnosticSeverity.WARNING,
    DiagnosticKind.CROSSREF_ERROR: DiagnosticSeverity.WARNING,
    DiagnosticKind.DUPLICATE_KEY: DiagnosticSeverity.WARNING,
    DiagnosticKind.MISSING_TITLE: DiagnosticSeverity.WARNING,
    DiagnosticKind.MISSING_OR_INVALID_YEAR: DiagnosticSeverity.WARNING,
    DiagnosticKind.RENDER_FALLBACK: DiagnosticSeverity.INFO,
    DiagnosticKind.EMPTY_DOCUMENT: DiagnosticSeverity.ERROR,
}

_DROPPING_KINDS = frozenset(
    {
        DiagnosticKind.LEX_ERROR,
        DiagnosticKind.PARSE_ERROR,
        DiagnosticKind.DUPLICATE_KEY,
        DiagnosticKind.MISSING_TITLE,
        DiagnosticKind.MISSING_OR_INVALID_YEAR,
    }
)


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """Represents a problem encountered while parsing a bibliography.

    ``offset`` counts characters of the decoded text and ``byte_offset`` counts
    UTF-8 bytes up to the same position.
    """

    kind: DiagnosticKind
    message: str
    key: str | None = None
    offset: int | None = None
    byte_offset: int | None = None

    @property
    def severity(self) -> DiagnosticSeverity:
        return self.kind.severity

    def describe(self) -> str:
        """Return a one-line summary suitable for logs and terminals."""
        location: list[str] = []
        if self.key is not None:
            location.append(f"entry '{self.key}'")
        if self.offset is not None:
            location.append(f"offset {self.offset}")
        prefix = f"[{self.kind.value}]"
        if location:
            return f"{prefix} {', '.join(location)}: {self.message}"
        return f"{prefix} {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "message": self.message,
            "key": self.key,
            "offset": self.offset,
            "byte_offset": self.byte_offset,
        }


@runtime_checkable
class DiagnosticEmitter(Protocol):
    """Interface used to surface warnings, errors, and structured events."""

    debug_enabled: bool

    def warning(self, message: str, exc: BaseException | None = None) -> None: ...

    def error(self, message: str, exc: BaseException | None = None) -> None: ...

    def event(self, name: str, payload: Mapping[str, Any]) -> None: ...


class NullEmitter:
    """Emitter that ignores every diagnostic."""

    debug_enabled: bool = False

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        return

    def error(self, message: str, exc: BaseException | None = None) -> None:
        return

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        return


class LoggingEmitter:
    """Emitter that forwards diagnostics to the standard logging module."""

    def __init__(
        self, *, logger_obj: logging.Logger | None = None, debug_enabled: bool = False
    ) -> None:
        self._logger = logger_obj or logger
        self.debug_enabled = debug_enabled

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        if exc is not None:
            self._logger.warning(message, exc_info=exc)
        else:
            self._logger.warning(message)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        if exc is not None:
            self._logger.error(message, exc_info=exc)
        else:
            self._logger.error(message)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        message = format_event_message(name, payload)
        if message:
            self._logger.info(message)
            return
        self._logger.debug("diagnostic event %s: %s", name, dict(payload))


def emit_diagnostic(emitter: DiagnosticEmitter, diagnostic: Diagnostic) -> None:
    """Route a diagnostic to the emitter method matching its severity."""
    severity = diagnostic.severity
    if severity is DiagnosticSeverity.ERROR:
        emitter.error(diagnostic.describe())
    elif severity is DiagnosticSeverity.WARNING:
        emitter.warning(diagnostic.describe())
    else:
        emitter.event("render_fallback", diagnostic.to_dict())


def format_event_message(name: str, payload: Mapping[str, Any]) -> str | None:
    """Return a human-friendly summary for selected diagnostic events."""
    data = dict(payload)

    if name == "render_fallback":
        key = data.get("key") or "<unknown>"
        message = data.get("message") or ""
        return f"Rendering fallback in entry '{key}': {message}"

    if name == "document_parsed":
        entries = data.get("entries", 0)
        diagnostics = data.get("diagnostics", 0)
        return f"Parsed {entries} entries ({diagnostics} diagnostics)"

    return None


__all__ = [
    "Diagnostic",
    "DiagnosticEmitter",
    "DiagnosticKind",
    "DiagnosticSeverity",
    "LoggingEmitter",
    "NullEmitter",
    "emit_diagnostic",
    "format_event_message",
]
