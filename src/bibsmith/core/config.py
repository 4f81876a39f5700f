"""Configuration model controlling how bibliographies are parsed.

ParserConfig

`predefined_macros` (`bool`)
: Seed the macro table with the month abbreviations (`jan` to `dec`) that the
  standard BibTeX styles define. Disable to treat them as undefined macros.

`resolve_crossrefs` (`bool`)
: Copy missing fields from the entry named by `crossref` once every entry of
  the document has been read.

`max_year` (`int`)
: Largest accepted publication year. Entries whose year exceeds it are skipped.

`junior_separator` (`str`)
: Text placed between the last name and the junior part when formatting
  person names (`First von Last, Jr`).

`person_fields` (`list[str]`)
: Fields parsed as `and`-separated person lists.

`field_sources` (`dict[str, list[str]]`)
: For each optional output field, the BibTeX fields consulted in order. The
  first one present on the entry wins.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
import yaml


OPTIONAL_FIELDS: tuple[str, ...] = ("booktitle", "series", "note", "slides", "pdf")


def _default_field_sources() -> dict[str, list[str]]:
    return {
        "booktitle": ["booktitle"],
        "series": ["series"],
        "note": ["note"],
        "slides": ["_slides", "slides"],
        "pdf": ["_pdf", "pdf"],
    }


class ParserConfig(BaseModel):
    """Options shared by the parser, the name formatter and the extractor."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    predefined_macros: bool = True
    resolve_crossrefs: bool = True
    max_year: int = Field(default=9999, ge=0, le=9999)
    junior_separator: str = ", "
    person_fields: list[str] = Field(default_factory=lambda: ["author", "editor"])
    field_sources: dict[str, list[str]] = Field(default_factory=_default_field_sources)

    @field_validator("person_fields")
    @classmethod
    def _lower_person_fields(cls, value: list[str]) -> list[str]:
        return [name.lower() for name in value]

    @field_validator("field_sources")
    @classmethod
    def _complete_field_sources(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        unknown = sorted(set(value) - set(OPTIONAL_FIELDS))
        if unknown:
            raise ValueError(f"Unknown output fields in field_sources: {', '.join(unknown)}")
        merged = _default_field_sources()
        for name, sources in value.items():
            merged[name] = [source.lower() for source in sources]
        return merged


def load_config(path: Path | str) -> ParserConfig:
    """Load and validate a YAML parser configuration file."""
    payload: Any = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if payload is None:
        return ParserConfig()
    if not isinstance(payload, dict):
        raise ValueError(f"Configuration file '{path}' must contain a mapping.")
    return ParserConfig.model_validate(payload)


__all__ = ["OPTIONAL_FIELDS", "ParserConfig", "load_config"]
