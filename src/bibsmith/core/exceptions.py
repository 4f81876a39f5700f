"""Custom exception hierarchy for the bibliography pipeline."""

from __future__ import annotations


class BibliographyError(RuntimeError):
    """Base exception for BibTeX processing failures."""


class PositionedError(BibliographyError):
    """Error tied to a character offset in the source text.

    ``byte_offset`` is the same position counted in UTF-8 bytes, when known.
    """

    def __init__(self, message: str, offset: int, *, byte_offset: int | None = None) -> None:
        super().__init__(f"{message} (at offset {offset})")
        self.reason = message
        self.offset = offset
        self.byte_offset = byte_offset


class LexError(PositionedError):
    """Raised when the tokenizer meets an unterminated or invalid construct."""


class ParseError(PositionedError):
    """Raised when the token stream does not follow the entry grammar."""


class MacroError(BibliographyError):
    """Raised when a field value references an undefined ``@string`` macro."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Undefined macro '{name}'.")
        self.name = name


class CrossrefError(BibliographyError):
    """Raised when a ``crossref`` field names an unknown entry."""

    def __init__(self, key: str, target: str) -> None:
        super().__init__(f"Entry '{key}' cross-references unknown entry '{target}'.")
        self.key = key
        self.target = target


class ValidationError(BibliographyError):
    """Raised when an entry lacks a field required by the output schema."""

    def __init__(self, message: str, *, key: str | None = None, reason: object = None) -> None:
        super().__init__(message)
        self.key = key
        self.reason = reason


def exception_messages(exc: BaseException) -> list[str]:
    """Return the collected message chain for an exception and its causes."""
    messages: list[str] = []
    visited: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in visited:
        visited.add(id(current))
        text = str(current).strip()
        if text:
            first_line = text.splitlines()[0].strip()
            if first_line:
                messages.append(first_line)
        current = current.__cause__ or current.__context__
    return messages


def exception_hint(exc: BaseException) -> str | None:
    """Return the most specific message available for an exception chain."""
    messages = exception_messages(exc)
    return messages[-1] if messages else None


__all__ = [
    "BibliographyError",
    "CrossrefError",
    "LexError",
    "MacroError",
    "ParseError",
    "PositionedError",
    "ValidationError",
    "exception_hint",
    "exception_messages",
]
