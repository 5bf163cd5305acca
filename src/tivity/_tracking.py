"""Dependency tracking — which fields has an observer read?

Each observer owns a DependencyRecord. Snapshots handed to the observer are
wrapped in a TrackedState that adds every data field read to the record.
Actions are returned untracked: reading an action never makes a commit
relevant.

A record only grows. Once a field has been read, changes to it matter to
that observer for the rest of its life.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Iterator

_MISSING = object()


def is_equal(a: Any, b: Any) -> bool:
    """Recursive structural equality.

    Mappings need the same keys and equal values; lists and tuples need the
    same length and equal elements; everything else compares with ==.
    Booleans never equal numbers.
    """
    if a is b:
        return True
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        if a.keys() != b.keys():
            return False
        return all(is_equal(a[key], b[key]) for key in a)
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        if len(a) != len(b):
            return False
        return all(is_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return a == b


class DependencyRecord:
    """Ordered, grow-only set of field names one observer has read."""

    __slots__ = ("_fields",)

    def __init__(self) -> None:
        self._fields: dict[str, None] = {}

    def add(self, field: str) -> None:
        self._fields[field] = None

    def changed(self, prev: Mapping[str, Any], next: Mapping[str, Any]) -> bool:
        """True when any recorded field differs structurally between snapshots."""
        for field in self._fields:
            if not is_equal(prev.get(field, _MISSING), next.get(field, _MISSING)):
                return True
        return False

    def __contains__(self, field: object) -> bool:
        return field in self._fields

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"DependencyRecord({list(self._fields)!r})"


class TrackedState(Mapping):
    """Read-only view over a snapshot that records data-field reads.

    Item access, attribute access, get(), items() and values() all go through
    __getitem__, so every path records the same way. Membership tests and
    key iteration do not read values and are not recorded.
    """

    __slots__ = ("_snapshot", "_record")

    def __init__(self, snapshot: Mapping[str, Any], record: DependencyRecord) -> None:
        self._snapshot = snapshot
        self._record = record

    def __getitem__(self, key: str) -> Any:
        value = self._snapshot.get(key, _MISSING)
        if value is _MISSING:
            # A field read before it exists still matters once it appears.
            self._record.add(key)
            raise KeyError(key)
        if not callable(value):
            self._record.add(key)
        return value

    def __getattr__(self, name: str) -> Any:
        if name in TrackedState.__slots__ or name.startswith("__"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def __contains__(self, key: object) -> bool:
        return key in self._snapshot

    def __iter__(self) -> Iterator[str]:
        return iter(self._snapshot)

    def __len__(self) -> int:
        return len(self._snapshot)

    @property
    def snapshot(self) -> Mapping[str, Any]:
        """The raw snapshot. Reading through it records nothing."""
        return self._snapshot

    def __repr__(self) -> str:
        return f"TrackedState({self._snapshot!r})"
