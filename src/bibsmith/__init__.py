"""Primary public API for bibsmith."""

from __future__ import annotations

from bibsmith.core.bibliography import (
    Entry,
    ParseResult,
    PersonName,
    RawEntry,
    SkipReason,
    parse,
    parse_file,
    parse_names,
)
from bibsmith.core.config import ParserConfig, load_config
from bibsmith.core.diagnostics import (
    Diagnostic,
    DiagnosticKind,
    DiagnosticSeverity,
    LoggingEmitter,
    NullEmitter,
)
from bibsmith.core.exceptions import (
    BibliographyError,
    CrossrefError,
    LexError,
    MacroError,
    ParseError,
    ValidationError,
)
from bibsmith.core.latex_text import LatexRenderer, RenderedText, render_latex
from bibsmith.version import get_version


__version__ = get_version()


__all__ = [
    "BibliographyError",
    "CrossrefError",
    "Diagnostic",
    "DiagnosticKind",
    "DiagnosticSeverity",
    "Entry",
    "LatexRenderer",
    "LexError",
    "LoggingEmitter",
    "MacroError",
    "NullEmitter",
    "ParseError",
    "ParseResult",
    "ParserConfig",
    "PersonName",
    "RawEntry",
    "RenderedText",
    "SkipReason",
    "ValidationError",
    "__version__",
    "load_config",
    "parse",
    "parse_file",
    "parse_names",
    "render_latex",
]
