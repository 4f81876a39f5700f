"""BibTeX parsing facade exposed through the bibsmith public API.

Architecture
: `Lexer` turns a document into tokens, `EntryParser` assembles them into
  `RawEntry` objects (expanding `@string` macros and resolving `crossref`), and
  `EntryExtractor` renders the LaTeX field values into an immutable `Entry`.
: Every stage is a pure transformation of the input text. State such as the
  macro table lives for one `parse` call only, so independent documents can be
  parsed concurrently.

Error Model
: Malformed blocks, undefined macros, dangling cross-references and entries
  lacking a title or a year never abort the parse. Each is reported as a
  `Diagnostic` next to the entries that did parse.

Usage Example

```pycon
>>> from bibsmith.core.bibliography import parse
>>> result = parse(\"\"\"@article{doe2023,
...   author = {Doe, Jane},
...   title = {A {M}inimal Example},
...   year = {2023},
... }\"\"\")
>>> result.entries[0].title
'A Minimal Example'
>>> result.entries[0].authors
('Jane Doe',)
>>> result.diagnostics
()
```
"""

from __future__ import annotations

from dataclasses import replace
import logging
from pathlib import Path
from typing import NamedTuple

from bibsmith.core.config import ParserConfig
from bibsmith.core.diagnostics import Diagnostic, DiagnosticEmitter, emit_diagnostic

from .extract import Entry, EntryExtractor, Extraction, SkipReason, parse_year
from .macros import MacroTable
from .names import PersonName, format_name, parse_name, parse_names, split_names
from .parsing import EntryParser, ParsedDocument, RawEntry, parse_raw_entries
from .tokenizer import Lexer, Token, TokenKind, tokenize


logger = logging.getLogger(__name__)


class ParseResult(NamedTuple):
    """Entries parsed from a document and the diagnostics raised on the way."""

    entries: tuple[Entry, ...]
    diagnostics: tuple[Diagnostic, ...]


def _diagnostic_order(diagnostic: Diagnostic) -> tuple[bool, int]:
    offset = diagnostic.offset
    return (offset is None, offset if offset is not None else 0)


def _with_byte_offsets(text: str, diagnostics: list[Diagnostic]) -> list[Diagnostic]:
    """Fill ``byte_offset`` on diagnostics already sorted by ``offset``."""
    located: list[Diagnostic] = []
    position = consumed = 0
    for diagnostic in diagnostics:
        if diagnostic.offset is None:
            located.append(diagnostic)
            continue
        consumed += len(text[position : diagnostic.offset].encode("utf-8"))
        position = diagnostic.offset
        located.append(replace(diagnostic, byte_offset=consumed))
    return located


def parse(
    text: str,
    *,
    config: ParserConfig | None = None,
    emitter: DiagnosticEmitter | None = None,
) -> ParseResult:
    """Parse a BibTeX document held in memory.

    Entries are returned in source order. Diagnostics are ordered by the
    offset of the block they concern; document-level conditions come last.
    """
    config = config or ParserConfig()
    document = parse_raw_entries(text, config=config)
    extractor = EntryExtractor(config)

    entries: list[Entry] = []
    diagnostics: list[Diagnostic] = list(document.diagnostics)
    for raw in document.entries:
        extraction = extractor.extract(raw)
        diagnostics.extend(extraction.diagnostics)
        if extraction.entry is not None:
            entries.append(extraction.entry)

    diagnostics.sort(key=_diagnostic_order)
    diagnostics = _with_byte_offsets(text, diagnostics)

    if emitter is not None:
        for diagnostic in diagnostics:
            emit_diagnostic(emitter, diagnostic)
        emitter.event(
            "document_parsed",
            {"entries": len(entries), "diagnostics": len(diagnostics)},
        )

    return ParseResult(entries=tuple(entries), diagnostics=tuple(diagnostics))


def read_bibliography_text(path: Path | str, *, encoding: str = "utf-8") -> str:
    """Read a ``.bib`` file, falling back to Latin-1 when it is not ``encoding``."""
    file_path = Path(path)
    payload = file_path.read_bytes()
    try:
        return payload.decode(encoding)
    except UnicodeDecodeError:
        logger.warning("'%s' is not valid %s; decoding as latin-1.", file_path, encoding)
        return payload.decode("latin-1")


def parse_file(
    path: Path | str,
    *,
    encoding: str = "utf-8",
    config: ParserConfig | None = None,
    emitter: DiagnosticEmitter | None = None,
) -> ParseResult:
    """Read and parse a BibTeX file."""
    text = read_bibliography_text(path, encoding=encoding)
    return parse(text, config=config, emitter=emitter)


__all__ = [
    "Entry",
    "EntryExtractor",
    "EntryParser",
    "Extraction",
    "Lexer",
    "MacroTable",
    "ParseResult",
    "ParsedDocument",
    "PersonName",
    "RawEntry",
    "SkipReason",
    "Token",
    "TokenKind",
    "format_name",
    "parse",
    "parse_file",
    "parse_name",
    "parse_names",
    "parse_raw_entries",
    "parse_year",
    "read_bibliography_text",
    "split_names",
    "tokenize",
]
