"""Parsing and formatting of BibTeX person lists.

A person list such as ``author`` holds names separated by the word ``and``
at brace depth zero. Each name is written in one of three forms::

    First von Last
    von Last, First
    von Last, Jr, First

The von part is recognised by case: a word whose first letter is lower case
once rendered belongs to it. Words starting with a bare brace group are
case-less and never count as von.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from bibsmith.core.latex_text import LatexRenderer


_RENDERER = LatexRenderer()
_WORD_SEPARATORS = " \t\r\n~"


@dataclass(frozen=True, slots=True)
class PersonName:
    """A personal name split into its four BibTeX parts."""

    first: tuple[str, ...] = ()
    von: tuple[str, ...] = ()
    last: tuple[str, ...] = ()
    junior: tuple[str, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.first or self.von or self.last or self.junior)

    def format(self, junior_separator: str = ", ") -> str:
        """Return the name as ``First von Last, Jr``."""
        groups = [" ".join(part) for part in (self.first, self.von, self.last) if part]
        text = " ".join(groups)
        if self.junior:
            text = f"{text}{junior_separator}{' '.join(self.junior)}"
        return text

    def __str__(self) -> str:
        return self.format()


def _split_depth_zero(text: str, separators: str) -> Iterator[str]:
    """Split ``text`` on any of ``separators`` found outside brace groups."""
    depth = 0
    start = 0
    for index, char in enumerate(text):
        if char == "{":
            depth += 1
        elif char == "}":
            depth = max(depth - 1, 0)
        elif depth == 0 and char in separators:
            yield text[start:index]
            start = index + 1
    yield text[start:]


def _words(text: str) -> list[str]:
    return [word for word in _split_depth_zero(text, _WORD_SEPARATORS) if word]


def split_names(value: str) -> list[str]:
    """Split a person list on the ``and`` separator, outside braces only."""
    names: list[list[str]] = [[]]
    for word in _words(value):
        if word.lower() == "and":
            names.append([])
        else:
            names[-1].append(word)
    return [" ".join(words) for words in names if words]


class _WordRenderer:
    """Render name words while collecting unknown LaTeX commands."""

    def __init__(self, unknown_commands: list[str] | None) -> None:
        self._unknown = unknown_commands

    def __call__(self, words: list[str]) -> tuple[str, ...]:
        rendered: list[str] = []
        for word in words:
            result = _RENDERER.render(word)
            if self._unknown is not None:
                self._unknown.extend(result.unknown_commands)
            if result.text:
                rendered.append(result.text)
        return tuple(rendered)


def _is_von_word(word: str) -> bool:
    if word.startswith("{") and not word.startswith("{\\"):
        return False
    for char in _RENDERER(word):
        if char.isalpha():
            return char.islower()
    return False


def _split_von_last(words: list[str]) -> tuple[list[str], list[str]]:
    """Split the ``von Last`` words; the last word always belongs to Last."""
    von_end = 0
    for index, word in enumerate(words[:-1]):
        if _is_von_word(word):
            von_end = index + 1
    return words[:von_end], words[von_end:]


def parse_name(raw: str, *, unknown_commands: list[str] | None = None) -> PersonName:
    """Parse one name written in any of the BibTeX name forms."""
    render = _WordRenderer(unknown_commands)
    sections = [_words(section) for section in _split_depth_zero(raw, ",")]

    if len(sections) == 1:
        words = sections[0]
        if not words:
            return PersonName()
        von_start = next(
            (index for index, word in enumerate(words[:-1]) if _is_von_word(word)),
            None,
        )
        if von_start is None:
            return PersonName(first=render(words[:-1]), last=render(words[-1:]))
        von, last = _split_von_last(words[von_start:])
        return PersonName(first=render(words[:von_start]), von=render(von), last=render(last))

    von, last = _split_von_last(sections[0])
    if len(sections) == 2:
        junior: list[str] = []
        first = sections[1]
    else:
        junior = sections[1]
        first = [word for section in sections[2:] for word in section]
    return PersonName(
        first=render(first),
        von=render(von),
        last=render(last),
        junior=render(junior),
    )


def parse_names(value: str, *, unknown_commands: list[str] | None = None) -> list[PersonName]:
    """Parse a person-list field into names, preserving source order."""
    people: list[PersonName] = []
    for raw in split_names(value):
        person = parse_name(raw, unknown_commands=unknown_commands)
        if person:
            people.append(person)
    return people


def format_name(person: PersonName, *, junior_separator: str = ", ") -> str:
    """Render a parsed name for display."""
    return person.format(junior_separator)


__all__ = ["PersonName", "format_name", "parse_name", "parse_names", "split_names"]
