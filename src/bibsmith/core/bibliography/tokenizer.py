"""Lexical analysis of BibTeX sources.

The lexer is context sensitive in the same way BibTeX's own reader is: text
between entries is comment noise, an ``@`` followed by an identifier and an
opening delimiter starts an entry, and inside an entry brace- or
quote-delimited values are captured as a single balanced ``TEXT`` token
surrounded by their delimiter tokens.

Citation keys follow a looser rule than field names: any character except
white space, commas and delimiters, so ``o'brien2020`` is a valid key.
"""

from __future__ import annotations

from collections.abc import Generator, Iterator
from dataclasses import dataclass
from enum import Enum
import re

from bibsmith.core.exceptions import LexError


class TokenKind(Enum):
    """Lexical categories produced by :class:`Lexer`."""

    ENTRY_START = "entry_start"
    IDENTIFIER = "identifier"
    NUMBER = "number"
    TEXT = "text"
    BRACE_OPEN = "brace_open"
    BRACE_CLOSE = "brace_close"
    QUOTE_OPEN = "quote_open"
    QUOTE_CLOSE = "quote_close"
    COMMA = "comma"
    EQUALS = "equals"
    HASH = "hash"
    END_OF_INPUT = "end_of_input"


@dataclass(frozen=True, slots=True)
class Token:
    """A single lexical token and the offset where it starts."""

    kind: TokenKind
    text: str
    offset: int


# BibTeX identifiers: printable characters other than white space and the
# characters with a grammatical role.
_IDENT_CHARS = r"[^\s\"#%'(),={}@]"
_IDENT_RE = re.compile(_IDENT_CHARS + "+")
_ENTRY_HEAD_RE = re.compile(r"\s*(" + _IDENT_CHARS + r"+)\s*([{(])")
# Citation keys may hold any character except white space, the comma and the
# delimiters. Keys of entries opened with "(" cannot contain parentheses.
_KEY_RE = {
    "}": re.compile(r"\s*([^\s,{}@]+)"),
    ")": re.compile(r"\s*([^\s,{}()@]+)"),
}
_KEYLESS_TYPES = frozenset({"string", "preamble"})
_SPACE_RE = re.compile(r"\s*")

_PUNCTUATION = {
    ",": TokenKind.COMMA,
    "=": TokenKind.EQUALS,
    "#": TokenKind.HASH,
}


class Lexer:
    """Produce tokens lazily from an in-memory BibTeX document."""

    def __init__(self, text: str) -> None:
        self.text = text

    def tokens(self, start: int = 0) -> Iterator[Token]:
        """Yield tokens from ``start`` until ``END_OF_INPUT``.

        A fresh generator is returned on every call. When a :class:`LexError`
        is raised the generator is exhausted; callers resume by requesting a
        new stream at a later entry boundary (see :meth:`next_entry_offset`).
        """
        text = self.text
        pos = start
        while True:
            at = text.find("@", pos)
            if at == -1:
                yield Token(TokenKind.END_OF_INPUT, "", len(text))
                return
            head = _ENTRY_HEAD_RE.match(text, at + 1)
            if head is None:
                # A lone '@' in inter-entry text is comment noise.
                pos = at + 1
                continue

            entry_type, opener = head.group(1), head.group(2)
            closer = "}" if opener == "{" else ")"
            yield Token(TokenKind.ENTRY_START, "@", at)
            yield Token(TokenKind.IDENTIFIER, entry_type, head.start(1))
            yield Token(TokenKind.BRACE_OPEN, opener, head.start(2))
            pos = head.end()

            if entry_type.lower() == "comment":
                content, end = self._scan_balanced(pos, closer, opened_at=head.start(2))
                yield Token(TokenKind.TEXT, content, pos)
                yield Token(TokenKind.BRACE_CLOSE, closer, end)
                pos = end + 1
                continue

            if entry_type.lower() not in _KEYLESS_TYPES:
                key = _KEY_RE[closer].match(text, pos)
                if key is not None:
                    yield Token(TokenKind.IDENTIFIER, key.group(1), key.start(1))
                    pos = key.end()

            pos = yield from self._scan_body(pos, closer)

    def next_entry_offset(self, after: int) -> int | None:
        """Return the offset of the next ``@`` strictly after ``after``."""
        index = self.text.find("@", after + 1)
        return None if index == -1 else index

    def _error(self, message: str, offset: int) -> LexError:
        return LexError(message, offset, byte_offset=utf8_offset(self.text, offset))

    def _scan_body(self, pos: int, closer: str) -> Generator[Token, None, int]:
        text = self.text
        length = len(text)
        while True:
            pos = _SPACE_RE.match(text, pos).end()  # type: ignore[union-attr]
            if pos >= length:
                raise self._error("Unexpected end of input inside entry", pos)
            char = text[pos]

            if char == closer:
                yield Token(TokenKind.BRACE_CLOSE, char, pos)
                return pos + 1

            if char == "{":
                yield Token(TokenKind.BRACE_OPEN, char, pos)
                content, end = self._scan_balanced(pos + 1, "}", opened_at=pos)
                yield Token(TokenKind.TEXT, content, pos + 1)
                yield Token(TokenKind.BRACE_CLOSE, "}", end)
                pos = end + 1
                continue

            if char == '"':
                yield Token(TokenKind.QUOTE_OPEN, char, pos)
                content, end = self._scan_balanced(pos + 1, '"', opened_at=pos)
                yield Token(TokenKind.TEXT, content, pos + 1)
                yield Token(TokenKind.QUOTE_CLOSE, char, end)
                pos = end + 1
                continue

            kind = _PUNCTUATION.get(char)
            if kind is not None:
                yield Token(kind, char, pos)
                pos += 1
                continue

            match = _IDENT_RE.match(text, pos)
            if match is not None:
                word = match.group(0)
                kind = TokenKind.NUMBER if word.isascii() and word.isdigit() else TokenKind.IDENTIFIER
                yield Token(kind, word, pos)
                pos = match.end()
                continue

            if char == "@":
                raise self._error("Unexpected '@' inside entry (missing closing delimiter?)", pos)
            raise self._error(f"Unexpected character {char!r}", pos)

    def _scan_balanced(self, pos: int, terminator: str, *, opened_at: int) -> tuple[str, int]:
        """Scan brace-balanced text ending with ``terminator`` at depth zero."""
        text = self.text
        depth = 0
        index = pos
        while index < len(text):
            char = text[index]
            if char == "{":
                depth += 1
            elif char == "}":
                if depth == 0:
                    if terminator == "}":
                        return text[pos:index], index
                    raise self._error("Unbalanced closing brace", index)
                depth -= 1
            elif char == terminator and depth == 0:
                return text[pos:index], index
            index += 1

        if terminator == '"':
            raise self._error("Unterminated quoted value", opened_at)
        raise self._error("Unterminated brace group", opened_at)


def utf8_offset(text: str, offset: int) -> int:
    """Return the UTF-8 byte position of character ``offset`` in ``text``."""
    return len(text[:offset].encode("utf-8"))


def tokenize(text: str) -> Iterator[Token]:
    """Convenience wrapper returning the token stream for ``text``."""
    return Lexer(text).tokens()


__all__ = ["Lexer", "Token", "TokenKind", "tokenize", "utf8_offset"]
