"""CLI command implementations exposed via `bibsmith.ui.cli`."""

from __future__ import annotations

from .latex import latex
from .parse import parse


__all__ = ["latex", "parse"]
