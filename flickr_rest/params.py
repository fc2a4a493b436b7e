"""Ordered parameter collection for the call currently being built."""

from __future__ import annotations

from typing import Iterator

from flickr_rest.errors import ParameterSetSealed


class ParameterSet:
    """Ordered, append-only (name, value) pairs for one logical call.

    Values may be None, meaning "not supplied"; such pairs are kept for
    inspection but never reach the signature or the wire. After finish()
    the set is sealed and add() raises ParameterSetSealed.

    Usage:
        params = ParameterSet()
        params.add("photo_id", "123")
        params.add("extras", None)
        params.finish()
        params.pairs()  # [("photo_id", "123")]
    """

    def __init__(self) -> None:
        self._items: list[tuple[str, str | None]] = []
        self._sealed = False

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[tuple[str, str | None]]:
        return iter(self._items)

    def __repr__(self) -> str:
        state = "sealed" if self._sealed else "open"
        return f"ParameterSet({self._items!r}, {state})"

    @property
    def sealed(self) -> bool:
        return self._sealed

    def add(self, key: str, value: str | int | None) -> None:
        """Append a pair. Non-string values are converted with str()."""
        if self._sealed:
            raise ParameterSetSealed(f"Cannot add parameter '{key}' after finish()")
        if not key:
            raise ValueError("Parameter name must be a non-empty string")
        if value is not None and not isinstance(value, str):
            value = str(value)
        self._items.append((key, value))

    def finish(self) -> None:
        """Seal the set. Safe to call more than once."""
        self._sealed = True

    def clear(self) -> None:
        """Drop every pair and reopen the set for a new call."""
        self._items = []
        self._sealed = False

    def pairs(self) -> list[tuple[str, str]]:
        """Pairs with a value, in insertion order."""
        return [(key, value) for key, value in self._items if value is not None]


def sort_pairs(pairs: list[tuple[str, str]]) -> list[tuple[str, str]]:
    """Sort pairs by name.

    Python compares str by code point, which matches byte-wise comparison
    of the UTF-8 encoding. The sort is stable for repeated names.
    """
    return sorted(pairs, key=lambda pair: pair[0])
