"""StoreObserver — per-consumer subscriptions scoped to the fields it reads.

An observer plays the part of a UI framework's external-store-with-selector
primitive: it subscribes to a store once, keeps the last snapshot it saw,
and only calls its own callbacks when a commit changed a field the consumer
actually read.

Usage:
    observer = StoreObserver(store)
    state = observer()             # TrackedState
    render(state.count)            # "count" is now a dependency
    observer.subscribe(rerender)   # fires only when count changes
"""

from __future__ import annotations

from typing import Any, Callable

from tivity._tracking import DependencyRecord, TrackedState
from tivity.store import Store

Selector = Callable[[TrackedState], Any]
Equality = Callable[[Any, Any], bool]


def _key_selector(key: str) -> Selector:
    def select(state: TrackedState) -> Any:
        return state.get(key)

    return select


class StoreObserver:
    """One consumer's view of a store, with its own dependency record.

    selector may be a callable or a field name; either way it is applied to a
    TrackedState, so single-key consumption records exactly like reading the
    field by hand. When equality is given, a commit that changed a tracked
    field still does not notify if equality(prev_selection, next_selection)
    holds, and the previous selection is kept.
    """

    def __init__(
        self,
        store: Store,
        selector: Selector | str | None = None,
        equality: Equality | None = None,
    ) -> None:
        if isinstance(selector, str):
            selector = _key_selector(selector)
        self._store = store
        self._selector = selector
        self._equality = equality
        self._record = DependencyRecord()
        self._callbacks: list[Callable[[], Any]] = []
        self._unsubscribe: Callable[[], bool] | None = None
        self._snapshot = store.get_snapshot()
        self._selection = self._select(self._snapshot)

    @property
    def record(self) -> DependencyRecord:
        return self._record

    def __call__(self) -> Any:
        """The current value to render."""
        self._refresh(self._store.get_snapshot())
        return self._selection

    def get_server_snapshot(self) -> dict[str, Any]:
        return self._store.get_snapshot()

    def subscribe(self, callback: Callable[[], Any]) -> Callable[[], None]:
        """Register a re-render callback. Returns a function that removes it.

        The store subscription is shared by all callbacks and released when
        the last one is removed.
        """
        self._callbacks.append(callback)
        if self._unsubscribe is None:
            self._unsubscribe = self._store.subscribe(self._on_store_change)

        def _remove() -> None:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                return  # already removed
            if not self._callbacks and self._unsubscribe is not None:
                self._unsubscribe()
                self._unsubscribe = None

        return _remove

    def dispose(self) -> None:
        """Detach from the store. The observer becomes inert."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._callbacks.clear()

    def _select(self, snapshot: dict[str, Any]) -> Any:
        state = TrackedState(snapshot, self._record)
        return state if self._selector is None else self._selector(state)

    def _refresh(self, snapshot: dict[str, Any]) -> bool:
        """Adopt snapshot. Returns True when the consumer must re-render."""
        if snapshot is self._snapshot:
            return False
        prev, self._snapshot = self._snapshot, snapshot
        changed = self._record.changed(prev, snapshot)
        selection = self._select(snapshot)
        if self._equality is not None and self._equality(self._selection, selection):
            return False
        self._selection = selection
        return changed

    def _on_store_change(self) -> None:
        if self._refresh(self._store.get_snapshot()):
            for callback in list(self._callbacks):
                callback()

    def __repr__(self) -> str:
        state = "subscribed" if self._unsubscribe is not None else "idle"
        return f"StoreObserver({list(self._record)!r}, {state})"
