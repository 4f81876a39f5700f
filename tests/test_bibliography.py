from __future__ import annotations

from collections.abc import Mapping
import logging
from pathlib import Path
import textwrap
from typing import Any

import pytest

from bibsmith import Entry, ParserConfig, parse, parse_file
from bibsmith.core.bibliography import read_bibliography_text
from bibsmith.core.diagnostics import DiagnosticKind, LoggingEmitter


SAMPLE = textwrap.dedent(
    """
    @string{conf = "International Conference on Examples"}

    @inproceedings{lovelace1843,
        author = {Lovelace, Ada and Babbage, Charles},
        title = {Notes on the {A}nalytical {E}ngine},
        booktitle = conf # " (ICE)",
        year = {1843},
        _slides = {slides/lovelace.pdf},
    }

    @article{notitle,
        author = {Nobody, Ann},
        year = 2001,
    }

    @misc{undated,
        title = {Someday},
        year = {n.d.},
    }

    @book{knuth,
        author = {Donald E. Knuth},
        title = {The {\\TeX}book},
        year = 1984,
        month = feb,
    }
    """
)


class RecordingEmitter:
    def __init__(self) -> None:
        self.debug_enabled = False
        self.warnings: list[str] = []
        self.errors: list[str] = []
        self.events: list[tuple[str, dict[str, Any]]] = []

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        self.warnings.append(message)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        self.errors.append(message)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        self.events.append((name, dict(payload)))


def _write(tmp_path: Path, filename: str, payload: str) -> Path:
    file_path = tmp_path / filename
    file_path.write_text(textwrap.dedent(payload).strip() + "\n", encoding="utf-8")
    return file_path


@pytest.mark.parametrize("year", ["0", "7", "42", "999", "2023", "9999"])
def test_minimal_entry_round_trip(year: str) -> None:
    result = parse(f"@article{{k, title={{T}}, year={year}}}")

    assert result.entries == (Entry(key="k", title="T", year=int(year), entry_type="article"),)
    assert result.diagnostics == ()


def test_sample_document() -> None:
    result = parse(SAMPLE)

    assert [entry.key for entry in result.entries] == ["lovelace1843", "knuth"]
    lovelace, knuth = result.entries
    assert lovelace.title == "Notes on the Analytical Engine"
    assert lovelace.authors == ("Ada Lovelace", "Charles Babbage")
    assert lovelace.booktitle == "International Conference on Examples (ICE)"
    assert lovelace.slides == "slides/lovelace.pdf"
    assert lovelace.year == 1843
    assert knuth.title == "The TeXbook"
    assert knuth.authors == ("Donald E. Knuth",)

    kinds = [diagnostic.kind for diagnostic in result.diagnostics]
    assert kinds == [DiagnosticKind.MISSING_TITLE, DiagnosticKind.MISSING_OR_INVALID_YEAR]
    assert [diagnostic.key for diagnostic in result.diagnostics] == ["notitle", "undated"]


def test_each_skipped_entry_has_exactly_one_diagnostic() -> None:
    result = parse(
        """
        @misc{a, year = 2020, note = {\\unknown{x}}}
        @misc{b, title = {B}}
        @misc{c, title = {C}, year = {later}}
        @misc{d, title = {D}, year = 2020}
        """
    )

    assert [entry.key for entry in result.entries] == ["d"]
    assert [diagnostic.key for diagnostic in result.diagnostics] == ["a", "b", "c"]


@pytest.mark.parametrize(
    "payload",
    [
        "@article{k, title = nosuch, year = 2020}",
        "@article{k, title = {T}, year = 2020a}",
        "@article{k, year = 2020, crossref = {ghost}}",
    ],
)
def test_skipped_entry_folds_pending_problems_into_one_diagnostic(payload: str) -> None:
    result = parse(payload)

    assert result.entries == ()
    (diagnostic,) = result.diagnostics
    assert diagnostic.kind.drops_entry
    assert diagnostic.key == "k"


def test_skip_message_names_the_undefined_macro() -> None:
    result = parse("@article{k, title = nosuch, year = 2020}")

    (diagnostic,) = result.diagnostics
    assert diagnostic.kind is DiagnosticKind.MISSING_TITLE
    assert "nosuch" in diagnostic.message


def test_kept_entry_reports_undefined_macro() -> None:
    result = parse("@article{k, title = {T}, note = nosuch, year = 2020}")

    assert [entry.key for entry in result.entries] == ["k"]
    assert result.entries[0].note is None
    (diagnostic,) = result.diagnostics
    assert diagnostic.kind is DiagnosticKind.MACRO_ERROR
    assert "nosuch" in diagnostic.message


@pytest.mark.parametrize("key", ["o'brien2020", "smith(2020)", "doe#1", "x%y"])
def test_citation_keys_with_punctuation(key: str) -> None:
    result = parse(f"@article{{{key}, title = {{T}}, year = 2020}}")

    assert [entry.key for entry in result.entries] == [key]
    assert result.diagnostics == ()


def test_macro_expansion_with_concatenation() -> None:
    result = parse('@string{abc = "Foo"} @article{k, title=abc # " Bar", year=2020}')

    assert result.entries[0].title == "Foo Bar"


def test_crossref_inheritance() -> None:
    result = parse(
        """
        @proceedings{A, title = {Proceedings A}, booktitle = {Book A}, year = 2010}
        @inproceedings{B, title = {Paper B}, crossref = {A}}
        @inproceedings{C, title = {Paper C}, booktitle = {Own}, crossref = {A}}
        """
    )

    by_key = {entry.key: entry for entry in result.entries}
    assert by_key["B"].booktitle == "Book A"
    assert by_key["B"].year == 2010
    assert by_key["C"].booktitle == "Own"


def test_recovers_after_malformed_entry() -> None:
    text = textwrap.dedent(
        """
        @article{broken, title = {Never closed, year = 2020
        @article{good, title = {Fine}, year = 2021}
        """
    )

    result = parse(text)

    assert [entry.key for entry in result.entries] == ["good"]
    (diagnostic,) = result.diagnostics
    assert diagnostic.kind is DiagnosticKind.LEX_ERROR
    assert diagnostic.key == "broken"


def test_parsing_is_deterministic() -> None:
    first = parse(SAMPLE)
    second = parse(SAMPLE)

    assert first == second
    assert repr(first) == repr(second)


def test_diagnostics_are_ordered_by_offset() -> None:
    result = parse(
        """
        @misc{late, title = {Late}}
        @misc{dup, title = {X}, year = 2000}
        @misc{dup, title = {Y}, year = 2001}
        """
    )

    offsets = [diagnostic.offset for diagnostic in result.diagnostics]
    assert offsets == sorted(offsets)
    assert [diagnostic.kind for diagnostic in result.diagnostics] == [
        DiagnosticKind.MISSING_OR_INVALID_YEAR,
        DiagnosticKind.DUPLICATE_KEY,
    ]


def test_diagnostics_carry_utf8_byte_offsets() -> None:
    text = "@misc{é, title = {Café}, year = 2020}\n@misc{untitled, year = 2021}\n"

    result = parse(text)

    (diagnostic,) = result.diagnostics
    assert diagnostic.offset == text.index("@misc{untitled")
    assert diagnostic.byte_offset == diagnostic.offset + 2
    assert diagnostic.to_dict()["byte_offset"] == diagnostic.byte_offset


def test_empty_document_diagnostic() -> None:
    result = parse("no entries here")

    assert result.entries == ()
    assert [diagnostic.kind for diagnostic in result.diagnostics] == [
        DiagnosticKind.EMPTY_DOCUMENT
    ]


def test_config_max_year() -> None:
    result = parse("@misc{k, title = {T}, year = 2100}", config=ParserConfig(max_year=2050))

    assert result.entries == ()
    assert result.diagnostics[0].kind is DiagnosticKind.MISSING_OR_INVALID_YEAR


def test_emitter_receives_diagnostics_and_summary() -> None:
    emitter = RecordingEmitter()

    parse(
        """
        @misc{a, title = {\\strange A}, year = 2020}
        @misc{b, title = {B}}
        @misc{c, note = {unterminated
        """,
        emitter=emitter,
    )

    assert len(emitter.warnings) == 1
    assert "entry 'b'" in emitter.warnings[0]
    assert len(emitter.errors) == 1
    assert "[lex_error]" in emitter.errors[0]
    names = [name for name, _ in emitter.events]
    assert names == ["render_fallback", "document_parsed"]
    assert emitter.events[-1][1] == {"entries": 1, "diagnostics": 3}


def test_logging_emitter_integration(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO):
        parse("@misc{k, title = {T}}", emitter=LoggingEmitter())

    messages = [record.getMessage() for record in caplog.records]
    assert any("missing_or_invalid_year" in message for message in messages)
    assert any("Parsed 0 entries (1 diagnostics)" in message for message in messages)


def test_parse_file_reads_utf8(tmp_path: Path) -> None:
    bib_file = _write(
        tmp_path,
        "library.bib",
        """
        @book{eco, title = {Il nome della rosa}, author = {Eco, Umberto}, year = 1980}
        """,
    )

    result = parse_file(bib_file)

    assert result.entries[0].authors == ("Umberto Eco",)


def test_parse_file_falls_back_to_latin1(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    bib_file = tmp_path / "legacy.bib"
    bib_file.write_bytes("@book{k, title = {Café}, year = 1999}\n".encode("latin-1"))

    with caplog.at_level(logging.WARNING):
        result = parse_file(bib_file)

    assert result.entries[0].title == "Café"
    assert any("latin-1" in record.getMessage() for record in caplog.records)


def test_read_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        read_bibliography_text(tmp_path / "absent.bib")
