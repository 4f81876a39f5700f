"""Grammar-driven parsing of BibTeX token streams into raw entries."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field, replace
import logging
import re

from bibsmith.core.config import ParserConfig
from bibsmith.core.diagnostics import Diagnostic, DiagnosticKind
from bibsmith.core.exceptions import CrossrefError, LexError, MacroError, ParseError

from .macros import MacroTable
from .tokenizer import Lexer, Token, TokenKind


logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True, slots=True)
class RawEntry:
    """An entry as written in the source, with macros expanded.

    Field names are lower-cased; values are the raw LaTeX strings with
    outer delimiters removed and white space collapsed. ``pending`` holds
    problems found while reading the entry; they are reported only if the
    entry ends up in the output.
    """

    entry_type: str
    key: str
    fields: Mapping[str, str]
    offset: int = 0
    pending: tuple[Diagnostic, ...] = ()

    def get(self, name: str) -> str | None:
        """Return a field value using BibTeX's case-insensitive lookup."""
        return self.fields.get(name.lower())


@dataclass(slots=True)
class ParsedDocument:
    """Raw entries of a document together with parse diagnostics."""

    entries: list[RawEntry] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    preambles: list[str] = field(default_factory=list)
    macros: MacroTable = field(default_factory=MacroTable)


class _TokenCursor:
    """One-token lookahead over a lexer stream."""

    def __init__(self, tokens: Iterator[Token], start: int) -> None:
        self._tokens = tokens
        self._peeked: Token | None = None
        self.block_start = start

    def peek(self) -> Token:
        if self._peeked is None:
            self._peeked = next(self._tokens)
            if self._peeked.kind is TokenKind.ENTRY_START:
                self.block_start = self._peeked.offset
        return self._peeked

    def advance(self) -> Token:
        token = self.peek()
        self._peeked = None
        return token

    def accept(self, kind: TokenKind) -> Token | None:
        if self.peek().kind is kind:
            return self.advance()
        return None

    def expect(self, kind: TokenKind, message: str) -> Token:
        token = self.peek()
        if token.kind is not kind:
            raise ParseError(message, token.offset)
        return self.advance()


class EntryParser:
    """Parse a complete BibTeX document into :class:`RawEntry` objects.

    Parsing is fault tolerant: a lexical or grammatical error aborts only the
    block where it occurs. The failure is recorded as a diagnostic and the
    parser resumes at the next ``@`` following the failed block.
    """

    def __init__(self, text: str, *, config: ParserConfig | None = None) -> None:
        self.text = text
        self.config = config or ParserConfig()
        self._lexer = Lexer(text)
        self._document = ParsedDocument(
            macros=MacroTable(predefined=self.config.predefined_macros)
        )
        self._seen_keys: set[str] = set()
        self._current_key: str | None = None
        self._blocks = 0

    def parse(self) -> ParsedDocument:
        """Parse the whole document and return the collected results."""
        document = self._document
        cursor = _TokenCursor(self._lexer.tokens(0), 0)
        while True:
            self._current_key = None
            try:
                if cursor.peek().kind is TokenKind.END_OF_INPUT:
                    break
                self._parse_block(cursor)
            except (LexError, ParseError) as exc:
                kind = (
                    DiagnosticKind.LEX_ERROR
                    if isinstance(exc, LexError)
                    else DiagnosticKind.PARSE_ERROR
                )
                logger.debug("skipping block at offset %d: %s", cursor.block_start, exc)
                document.diagnostics.append(
                    Diagnostic(kind, str(exc), key=self._current_key, offset=cursor.block_start)
                )
                self._blocks += 1
                resume = self._lexer.next_entry_offset(cursor.block_start)
                if resume is None:
                    break
                cursor = _TokenCursor(self._lexer.tokens(resume), resume)

        if self._blocks == 0 and self.text.strip():
            document.diagnostics.append(
                Diagnostic(
                    DiagnosticKind.EMPTY_DOCUMENT,
                    "Input does not contain any BibTeX block.",
                )
            )

        if self.config.resolve_crossrefs:
            document.entries = resolve_crossrefs(document.entries)
        return document

    def _parse_block(self, cursor: _TokenCursor) -> None:
        cursor.expect(TokenKind.ENTRY_START, "Expected '@'")
        self._blocks += 1
        entry_start = cursor.block_start
        entry_type = cursor.expect(TokenKind.IDENTIFIER, "Expected entry type").text.lower()
        cursor.expect(TokenKind.BRACE_OPEN, "Expected '{' or '(' after entry type")

        if entry_type == "comment":
            cursor.expect(TokenKind.TEXT, "Expected comment body")
            cursor.expect(TokenKind.BRACE_CLOSE, "Expected end of comment")
            return

        if entry_type == "preamble":
            value = self._parse_reported_value(cursor, "@preamble", entry_start)
            cursor.expect(TokenKind.BRACE_CLOSE, "Expected end of @preamble")
            if value is not None:
                self._document.preambles.append(value)
            return

        if entry_type == "string":
            name = cursor.expect(TokenKind.IDENTIFIER, "Expected macro name").text
            cursor.expect(TokenKind.EQUALS, "Expected '=' after macro name")
            value = self._parse_reported_value(cursor, f"@string '{name}'", entry_start)
            cursor.accept(TokenKind.COMMA)
            cursor.expect(TokenKind.BRACE_CLOSE, "Expected end of @string")
            if value is not None:
                self._document.macros.define(name, value)
            return

        self._parse_entry(cursor, entry_type, entry_start)

    def _parse_reported_value(
        self, cursor: _TokenCursor, context: str, offset: int
    ) -> str | None:
        try:
            return self._parse_value(cursor)
        except MacroError as exc:
            self._document.diagnostics.append(
                Diagnostic(
                    DiagnosticKind.MACRO_ERROR,
                    f"{context} ignored: {exc}",
                    offset=offset,
                )
            )
            return None

    def _parse_entry(self, cursor: _TokenCursor, entry_type: str, entry_start: int) -> None:
        key_token = cursor.peek()
        if key_token.kind not in (TokenKind.IDENTIFIER, TokenKind.NUMBER):
            raise ParseError("Missing entry key", key_token.offset)
        cursor.advance()
        following = cursor.peek()
        if following.kind not in (TokenKind.COMMA, TokenKind.BRACE_CLOSE):
            raise ParseError("Missing entry key", key_token.offset)
        key = key_token.text
        self._current_key = key

        fields: dict[str, str] = {}
        pending: list[Diagnostic] = []
        while cursor.accept(TokenKind.BRACE_CLOSE) is None:
            cursor.expect(TokenKind.COMMA, "Expected ',' or end of entry")
            if cursor.accept(TokenKind.BRACE_CLOSE) is not None:
                break
            name = cursor.expect(TokenKind.IDENTIFIER, "Expected field name").text.lower()
            cursor.expect(TokenKind.EQUALS, f"Expected '=' after field '{name}'")
            try:
                value = self._parse_value(cursor)
            except MacroError as exc:
                pending.append(
                    Diagnostic(
                        DiagnosticKind.MACRO_ERROR,
                        f"Field '{name}' omitted: {exc}",
                        key=key,
                        offset=entry_start,
                    )
                )
                continue
            if name in fields:
                logger.debug("field '%s' repeated in entry '%s'; keeping the last value", name, key)
            fields[name] = value

        normalized = key.lower()
        if normalized in self._seen_keys:
            self._document.diagnostics.append(
                Diagnostic(
                    DiagnosticKind.DUPLICATE_KEY,
                    "Duplicate entry key; ignoring the later definition.",
                    key=key,
                    offset=entry_start,
                )
            )
            return
        self._seen_keys.add(normalized)
        self._document.entries.append(
            RawEntry(
                entry_type=entry_type,
                key=key,
                fields=fields,
                offset=entry_start,
                pending=tuple(pending),
            )
        )

    def _parse_value(self, cursor: _TokenCursor) -> str:
        """Parse a ``#``-joined value expression.

        All pieces are consumed even when a macro is undefined so the cursor
        stays on the grammar; the first missing macro is raised afterwards.
        """
        pieces: list[str] = []
        missing: list[MacroError] = []
        while True:
            pieces.append(self._parse_piece(cursor, missing))
            if cursor.accept(TokenKind.HASH) is None:
                break
        if missing:
            raise missing[0]
        return "".join(pieces).strip()

    def _parse_piece(self, cursor: _TokenCursor, missing: list[MacroError]) -> str:
        token = cursor.advance()
        if token.kind is TokenKind.BRACE_OPEN:
            text = cursor.expect(TokenKind.TEXT, "Expected braced text").text
            cursor.expect(TokenKind.BRACE_CLOSE, "Expected '}'")
            return _WHITESPACE_RE.sub(" ", text)
        if token.kind is TokenKind.QUOTE_OPEN:
            text = cursor.expect(TokenKind.TEXT, "Expected quoted text").text
            cursor.expect(TokenKind.QUOTE_CLOSE, "Expected closing quote")
            return _WHITESPACE_RE.sub(" ", text)
        if token.kind is TokenKind.NUMBER:
            return token.text
        if token.kind is TokenKind.IDENTIFIER:
            try:
                return self._document.macros.expand(token.text)
            except MacroError as exc:
                missing.append(exc)
                return ""
        raise ParseError("Expected a braced value, quoted value, number or macro", token.offset)


def _crossref_parent(entry: RawEntry, target: str, index: Mapping[str, RawEntry]) -> RawEntry:
    parent = index.get(target.strip().lower())
    if parent is None or parent is entry:
        raise CrossrefError(entry.key, target)
    return parent


def resolve_crossrefs(entries: list[RawEntry]) -> list[RawEntry]:
    """Return ``entries`` with fields inherited through ``crossref``.

    Resolution is one level deep and reads each parent's own fields, so the
    outcome does not depend on entry order. A child's fields are never
    overwritten. An unknown target is kept on the child as a pending
    diagnostic.
    """
    index = {entry.key.lower(): entry for entry in entries}
    resolved: list[RawEntry] = []
    for entry in entries:
        target = entry.get("crossref")
        if target is None:
            resolved.append(entry)
            continue
        try:
            parent = _crossref_parent(entry, target, index)
        except CrossrefError as exc:
            diagnostic = Diagnostic(
                DiagnosticKind.CROSSREF_ERROR,
                str(exc),
                key=entry.key,
                offset=entry.offset,
            )
            resolved.append(replace(entry, pending=(*entry.pending, diagnostic)))
            continue
        fields = dict(entry.fields)
        for name, value in parent.fields.items():
            if name != "crossref":
                fields.setdefault(name, value)
        resolved.append(replace(entry, fields=fields))
    return resolved


def parse_raw_entries(text: str, *, config: ParserConfig | None = None) -> ParsedDocument:
    """Parse ``text`` and return raw entries, macros and diagnostics."""
    return EntryParser(text, config=config).parse()


__all__ = ["EntryParser", "ParsedDocument", "RawEntry", "parse_raw_entries", "resolve_crossrefs"]
