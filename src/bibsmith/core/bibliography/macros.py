"""Per-document ``@string`` macro table."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
import logging

from bibsmith.core.exceptions import MacroError


logger = logging.getLogger(__name__)


MONTH_MACROS: dict[str, str] = {
    "jan": "January",
    "feb": "February",
    "mar": "March",
    "apr": "April",
    "may": "May",
    "jun": "June",
    "jul": "July",
    "aug": "August",
    "sep": "September",
    "oct": "October",
    "nov": "November",
    "dec": "December",
}


class MacroTable(Mapping[str, str]):
    """Case-insensitive mapping from macro name to its expansion.

    A table belongs to a single parse. Definitions are applied in source
    order, so a reference only sees macros declared before it.
    """

    def __init__(self, *, predefined: bool = True) -> None:
        self._macros: dict[str, str] = dict(MONTH_MACROS) if predefined else {}

    def define(self, name: str, value: str) -> None:
        """Register or replace the expansion for ``name``."""
        normalized = name.lower()
        if normalized in self._macros:
            logger.debug("@string '%s' redefined", name)
        self._macros[normalized] = value

    def expand(self, name: str) -> str:
        """Return the expansion for ``name`` or raise :class:`MacroError`."""
        try:
            return self._macros[name.lower()]
        except KeyError:
            raise MacroError(name) from None

    def __getitem__(self, name: str) -> str:
        return self._macros[name.lower()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._macros

    def __iter__(self) -> Iterator[str]:
        return iter(self._macros)

    def __len__(self) -> int:
        return len(self._macros)


__all__ = ["MONTH_MACROS", "MacroTable"]
