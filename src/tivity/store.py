"""Store — one state mapping, atomic commits, and a subscriber set.

The initializer decides once which fields are actions: every callable is
replaced by a bound dispatcher that runs the original function against a
fresh sandbox and commits what it returns.

getSnapshot contract: the same dict is returned until the next commit, and
every commit installs a new dict. Subscribers compare snapshots by identity.
"""

from __future__ import annotations

import functools
from typing import Any, Callable, Mapping

from tivity.sandbox import ProxiedDict, StateCopy

Subscriber = Callable[[], Any]
Unsubscribe = Callable[[], bool]


def _evaluate(initializer) -> dict[str, Any]:
    init = initializer() if callable(initializer) else initializer
    return dict(init)


def _as_partial(result: Any) -> Mapping[str, Any] | None:
    """What an action returned, as something commit() can merge."""
    if isinstance(result, StateCopy):
        return result.to_partial()
    if isinstance(result, Mapping):
        return result
    return None


class Store:
    """Observable state container with action wiring.

    Usage:
        store = Store({
            "count": 0,
            "inc": lambda state: {"count": state.count + 1},
        })
        store.subscribe(lambda: print(store.get_snapshot()["count"]))
        store.get_snapshot()["inc"]()  # prints 1
    """

    def __init__(self, initializer) -> None:
        self._subscribers: dict[Subscriber, None] = {}
        self._actions: frozenset[str] = frozenset()
        state: dict[str, Any] = {}
        actions = []
        for key, value in _evaluate(initializer).items():
            if callable(value):
                state[key] = self._bind(value)
                actions.append(key)
            else:
                state[key] = value
        self._actions = frozenset(actions)
        self._state = state

    @property
    def actions(self) -> frozenset[str]:
        return self._actions

    def get_snapshot(self) -> dict[str, Any]:
        return self._state

    def subscribe(self, callback: Subscriber) -> Unsubscribe:
        """Register a zero-argument callback. Returns a function that removes it."""
        self._subscribers[callback] = None

        def _unsubscribe() -> bool:
            return self._subscribers.pop(callback, False) is None

        return _unsubscribe

    def commit(self, partial: Any, notify: bool = True) -> None:
        """Shallow-merge partial into a new snapshot, then notify subscribers.

        Non-mapping partials mean "nothing to merge" and are skipped. Keys
        naming an action are ignored; actions stay actions.
        """
        if not isinstance(partial, Mapping):
            return
        next_state = dict(self._state)
        for key, value in partial.items():
            if key not in self._actions:
                next_state[key] = value
        self._state = next_state
        if notify:
            for callback in list(self._subscribers):
                callback()

    def create_state_copy(self) -> StateCopy:
        return StateCopy(self)

    def proxied_state(self) -> ProxiedDict:
        """A direct-mutation view over a fresh copy of the current state."""
        return self.create_state_copy().proxied()

    def _bind(self, fn: Callable) -> Callable:
        @functools.wraps(fn)
        def dispatcher(*args):
            self.commit(_as_partial(fn(self.create_state_copy(), *args)))

        return dispatcher

    def __repr__(self) -> str:
        fields = {k: v for k, v in self._state.items() if k not in self._actions}
        return f"Store({fields!r}, actions={sorted(self._actions)!r})"
