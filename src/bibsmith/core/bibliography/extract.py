"""Map raw entries onto the public :class:`Entry` schema."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import re
from typing import Any

from bibsmith.core.config import ParserConfig
from bibsmith.core.diagnostics import Diagnostic, DiagnosticKind
from bibsmith.core.exceptions import ValidationError
from bibsmith.core.latex_text import LatexRenderer

from .names import parse_names
from .parsing import RawEntry


logger = logging.getLogger(__name__)

_LEADING_DIGITS_RE = re.compile(r"[0-9]+")


class SkipReason(Enum):
    """Why an entry was left out of the output."""

    MISSING_TITLE = "MissingTitle"
    MISSING_OR_INVALID_YEAR = "MissingOrInvalidYear"

    @property
    def diagnostic_kind(self) -> DiagnosticKind:
        if self is SkipReason.MISSING_TITLE:
            return DiagnosticKind.MISSING_TITLE
        return DiagnosticKind.MISSING_OR_INVALID_YEAR


@dataclass(frozen=True, slots=True)
class Entry:
    """A bibliography entry with plain-text values.

    ``None`` marks an absent optional field; person lists are ``None`` when
    the field is missing or contains no names.
    """

    key: str
    title: str
    year: int
    authors: tuple[str, ...] | None = None
    booktitle: str | None = None
    series: str | None = None
    note: str | None = None
    slides: str | None = None
    pdf: str | None = None
    entry_type: str = "misc"
    editors: tuple[str, ...] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "type": self.entry_type,
            "title": self.title,
            "year": self.year,
            "authors": list(self.authors) if self.authors is not None else None,
            "editors": list(self.editors) if self.editors is not None else None,
            "booktitle": self.booktitle,
            "series": self.series,
            "note": self.note,
            "slides": self.slides,
            "pdf": self.pdf,
        }


@dataclass(frozen=True, slots=True)
class Extraction:
    """Outcome of extracting one raw entry."""

    entry: Entry | None
    skip_reason: SkipReason | None = None
    diagnostics: tuple[Diagnostic, ...] = ()


def parse_year(text: str, *, max_year: int = 9999) -> int | None:
    """Return the year held by the leading digit run of ``text``."""
    match = _LEADING_DIGITS_RE.match(text.strip())
    if match is None:
        return None
    year = int(match.group(0))
    if year > max_year:
        return None
    return year


class EntryExtractor:
    """Validate required fields and render values of raw entries."""

    def __init__(
        self,
        config: ParserConfig | None = None,
        *,
        renderer: LatexRenderer | None = None,
    ) -> None:
        self.config = config or ParserConfig()
        self.renderer = renderer or LatexRenderer()

    def extract(self, raw: RawEntry) -> Extraction:
        """Build an :class:`Entry` or explain why ``raw`` is skipped.

        Pending parse diagnostics and rendering fallbacks are reported only
        for entries that are kept. A skipped entry yields exactly one
        diagnostic whose message also names the pending problems.
        """
        fallbacks: list[Diagnostic] = []
        try:
            entry = self.build(raw, fallbacks)
        except ValidationError as exc:
            reason = exc.reason
            if not isinstance(reason, SkipReason):
                raise
            logger.debug("skipping entry '%s': %s", raw.key, exc)
            message = " ".join([str(exc), *(pending.message for pending in raw.pending)])
            diagnostic = Diagnostic(reason.diagnostic_kind, message, key=raw.key, offset=raw.offset)
            return Extraction(entry=None, skip_reason=reason, diagnostics=(diagnostic,))
        return Extraction(entry=entry, diagnostics=(*raw.pending, *fallbacks))

    def build(self, raw: RawEntry, fallbacks: list[Diagnostic] | None = None) -> Entry:
        """Return the :class:`Entry` for ``raw`` or raise :class:`ValidationError`.

        Required fields are checked in order: ``title`` first, then ``year``.
        """
        if fallbacks is None:
            fallbacks = []

        title = self._render_field(raw, "title", fallbacks)
        if not title:
            raise ValidationError(
                "Entry has no title.", key=raw.key, reason=SkipReason.MISSING_TITLE
            )

        year_source = raw.get("year")
        if year_source is None:
            raise ValidationError(
                "Entry has no year.", key=raw.key, reason=SkipReason.MISSING_OR_INVALID_YEAR
            )
        year = parse_year(self.renderer(year_source), max_year=self.config.max_year)
        if year is None:
            raise ValidationError(
                f"Year '{year_source}' is not a number between 0 and {self.config.max_year}.",
                key=raw.key,
                reason=SkipReason.MISSING_OR_INVALID_YEAR,
            )

        optional: dict[str, str | None] = {}
        for name, sources in self.config.field_sources.items():
            present = [candidate for candidate in sources if raw.get(candidate) is not None]
            optional[name] = self._render_field(raw, present[0], fallbacks) if present else None

        return Entry(
            key=raw.key,
            title=title,
            year=year,
            authors=self._people(raw, "author", fallbacks),
            editors=self._people(raw, "editor", fallbacks),
            entry_type=raw.entry_type,
            **optional,
        )

    def _render_field(self, raw: RawEntry, name: str, fallbacks: list[Diagnostic]) -> str | None:
        value = raw.get(name)
        if value is None:
            return None
        rendered = self.renderer.render(value)
        self._report_unknown(raw, name, rendered.unknown_commands, fallbacks)
        return rendered.text

    def _people(
        self, raw: RawEntry, name: str, fallbacks: list[Diagnostic]
    ) -> tuple[str, ...] | None:
        if name not in self.config.person_fields:
            return None
        value = raw.get(name)
        if value is None:
            return None
        unknown: list[str] = []
        people = parse_names(value, unknown_commands=unknown)
        self._report_unknown(raw, name, unknown, fallbacks)
        if not people:
            return None
        separator = self.config.junior_separator
        return tuple(person.format(separator) for person in people)

    def _report_unknown(
        self,
        raw: RawEntry,
        field_name: str,
        commands: tuple[str, ...] | list[str],
        fallbacks: list[Diagnostic],
    ) -> None:
        if not commands:
            return
        listed = ", ".join(f"\\{command}" for command in dict.fromkeys(commands))
        fallbacks.append(
            Diagnostic(
                DiagnosticKind.RENDER_FALLBACK,
                f"Unrecognised LaTeX in field '{field_name}': {listed}",
                key=raw.key,
                offset=raw.offset,
            )
        )


__all__ = ["Entry", "EntryExtractor", "Extraction", "SkipReason", "parse_year"]
