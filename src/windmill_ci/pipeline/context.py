"""Pipeline context: key-value store accumulated across chain nodes."""

from __future__ import annotations

import copy
from typing import Any, Mapping


class Context:
    """Key-value bag threaded through a chain and forwarded to published events.

    Merging never overwrites: the first node to write a key owns it for the
    rest of the chain, later merges only add keys that are not present yet.
    """

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(values or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def get_string(self, key: str, default: str = "") -> str:
        v = self.get(key)
        if v is None:
            return default
        return str(v)

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def snapshot(self) -> dict[str, Any]:
        return dict(self._values)

    def clone(self) -> Context:
        c = Context()
        c._values = copy.copy(self._values)
        return c

    def merge(self, updates: Mapping[str, Any] | None) -> list[str]:
        """Add keys from ``updates`` that are not already set. Returns the keys kept as-is."""
        if not updates:
            return []
        kept = []
        for key, value in updates.items():
            if key in self._values:
                if self._values[key] is not value and self._values[key] != value:
                    kept.append(key)
                continue
            self._values[key] = value
        return kept

    def merged(self, updates: Mapping[str, Any] | None) -> dict[str, Any]:
        """Snapshot of this context with ``updates`` merged keep-existing, without mutating it."""
        values = dict(updates or {})
        values.update(self._values)
        return values
