from __future__ import annotations

from collections.abc import Iterator
import json
import logging
from pathlib import Path
import textwrap

import pytest
from typer.testing import CliRunner

from bibsmith.ui.cli import app


LIBRARY = """
@string{ice = "International Conference on Examples"}

@inproceedings{lovelace1843,
    author = {Lovelace, Ada},
    title = {Notes on the {A}nalytical {E}ngine},
    booktitle = ice,
    year = 1843,
    _pdf = {papers/notes.pdf},
}

@article{untitled,
    year = 2001,
}
"""


def _write(tmp_path: Path, name: str, content: str) -> Path:
    path = tmp_path / name
    path.write_text(textwrap.dedent(content).strip() + "\n", encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def _restore_package_logger() -> Iterator[None]:
    package_logger = logging.getLogger("bibsmith")
    handlers = list(package_logger.handlers)
    level = package_logger.level
    yield
    package_logger.handlers = handlers
    package_logger.setLevel(level)


def test_parse_prints_entries_and_warnings(tmp_path: Path) -> None:
    bib_file = _write(tmp_path, "library.bib", LIBRARY)

    runner = CliRunner()
    result = runner.invoke(app, ["parse", str(bib_file)])

    assert result.exit_code == 0, result.stdout
    assert "lovelace1843 (inproceedings)" in result.stdout
    assert "Notes on the Analytical Engine" in result.stdout
    assert "Ada Lovelace" in result.stdout
    assert "papers/notes.pdf" in result.stdout
    assert "Warnings" in result.stdout
    assert "untitled" in result.stdout
    assert "missing_title" in result.stdout
    assert "Bibliography Summary" in result.stdout
    assert not result.stderr


def test_parse_json_output(tmp_path: Path) -> None:
    bib_file = _write(tmp_path, "library.bib", LIBRARY)

    runner = CliRunner()
    result = runner.invoke(app, ["parse", "--format", "json", str(bib_file)])

    assert result.exit_code == 0, result.stderr
    payload = json.loads(result.stdout)
    assert len(payload) == 1
    document = payload[0]
    assert document["path"] == str(bib_file.resolve())
    assert document["entries"] == [
        {
            "key": "lovelace1843",
            "type": "inproceedings",
            "title": "Notes on the Analytical Engine",
            "year": 1843,
            "authors": ["Ada Lovelace"],
            "editors": None,
            "booktitle": "International Conference on Examples",
            "series": None,
            "note": None,
            "slides": None,
            "pdf": "papers/notes.pdf",
        }
    ]
    (diagnostic,) = document["diagnostics"]
    assert diagnostic["kind"] == "missing_title"
    assert diagnostic["key"] == "untitled"
    assert diagnostic["severity"] == "warning"


def test_parse_multiple_files_as_json(tmp_path: Path) -> None:
    first = _write(tmp_path, "a.bib", "@misc{a, title = {A}, year = 2001}")
    second = _write(tmp_path, "b.bib", "@misc{b, title = {B}, year = 2002}")

    runner = CliRunner()
    result = runner.invoke(app, ["parse", "-f", "json", str(first), str(second)])

    assert result.exit_code == 0, result.stderr
    payload = json.loads(result.stdout)
    assert [item["entries"][0]["key"] for item in payload] == ["a", "b"]


def test_strict_mode_fails_on_diagnostics(tmp_path: Path) -> None:
    bib_file = _write(tmp_path, "library.bib", LIBRARY)
    clean = _write(tmp_path, "clean.bib", "@misc{k, title = {T}, year = 2020}")

    runner = CliRunner()
    failing = runner.invoke(app, ["parse", "--strict", "--format", "json", str(bib_file)])
    passing = runner.invoke(app, ["parse", "--strict", "--format", "json", str(clean)])

    assert failing.exit_code == 1
    assert json.loads(failing.stdout)[0]["diagnostics"]
    assert passing.exit_code == 0, passing.stderr


def test_config_file_is_applied(tmp_path: Path) -> None:
    bib_file = _write(tmp_path, "future.bib", "@misc{k, title = {T}, year = 2100}")
    config = _write(tmp_path, "bibsmith.yml", "max_year: 2050")

    runner = CliRunner()
    result = runner.invoke(
        app, ["parse", "--config", str(config), "--format", "json", str(bib_file)]
    )

    assert result.exit_code == 0, result.stderr
    payload = json.loads(result.stdout)
    assert payload[0]["entries"] == []
    assert payload[0]["diagnostics"][0]["kind"] == "missing_or_invalid_year"


def test_invalid_config_is_reported(tmp_path: Path) -> None:
    bib_file = _write(tmp_path, "library.bib", LIBRARY)
    config = _write(tmp_path, "bibsmith.yml", "max_years: 2050")

    runner = CliRunner()
    result = runner.invoke(app, ["parse", "--config", str(config), str(bib_file)])

    assert result.exit_code == 1
    assert "Invalid configuration" in result.stderr


def test_no_crossref_flag(tmp_path: Path) -> None:
    bib_file = _write(
        tmp_path,
        "crossref.bib",
        """
        @proceedings{conf, title = {Proceedings}, year = 2010}
        @inproceedings{paper, title = {Paper}, crossref = {conf}}
        """,
    )

    runner = CliRunner()
    linked = runner.invoke(app, ["parse", "-f", "json", str(bib_file)])
    unlinked = runner.invoke(app, ["parse", "-f", "json", "--no-crossref", str(bib_file)])

    assert [entry["key"] for entry in json.loads(linked.stdout)[0]["entries"]] == [
        "conf",
        "paper",
    ]
    assert [entry["key"] for entry in json.loads(unlinked.stdout)[0]["entries"]] == ["conf"]


def test_verbose_streams_diagnostics_to_stderr(tmp_path: Path) -> None:
    bib_file = _write(tmp_path, "library.bib", LIBRARY)

    runner = CliRunner()
    result = runner.invoke(app, ["parse", "-v", "--format", "json", str(bib_file)])

    assert result.exit_code == 0, result.stderr
    assert "missing_title" in result.stderr
    assert json.loads(result.stdout)[0]["entries"]


def test_missing_input_file_is_a_usage_error(tmp_path: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["parse", str(tmp_path / "absent.bib")])

    assert result.exit_code == 2


def test_empty_file_reports_no_entries(tmp_path: Path) -> None:
    bib_file = tmp_path / "empty.bib"
    bib_file.write_text("", encoding="utf-8")

    runner = CliRunner()
    result = runner.invoke(app, ["parse", str(bib_file)])

    assert result.exit_code == 0, result.stdout
    assert "No entries found." in result.stdout


def test_latex_command_renders_text() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["latex", "{\\'E}cole normale sup{\\'e}rieure"])

    assert result.exit_code == 0, result.stderr
    assert result.stdout.strip() == "École normale supérieure"


def test_latex_command_reports_unknown_commands() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["latex", "--show-unknown", "\\foo{Bar}"])

    assert result.exit_code == 0
    assert result.stdout.strip() == "Bar"
    assert "\\foo" in result.stderr
