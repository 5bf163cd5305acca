"""Mutation sandboxes — disposable working copies handed to actions.

Two styles share one rule: the authoritative snapshot is never handed out,
every sandbox holds a deep copy, and every write reaches the store through
Store.commit().

- StateCopy (copy-and-return): actions read fields, call set() or return a
  partial mapping.
- ProxiedDict / ProxiedList (direct mutation): every write, at any depth,
  commits the whole working copy. Nested containers are wrapped lazily the
  first time they are read.
"""

from __future__ import annotations

import copy
import functools
from typing import TYPE_CHECKING, Any, Callable, Iterator, Mapping

if TYPE_CHECKING:
    from tivity.store import Store


def copy_data(state: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-copy the data fields of a state mapping, dropping actions."""
    return {key: copy.deepcopy(value) for key, value in state.items() if not callable(value)}


class StateCopy:
    """Copy-and-return sandbox over one snapshot of a store.

    Fields are readable as items or attributes. Assignments stage into the
    copy; returning the copy from an action commits its data fields. An
    action that assigns and returns nothing (``s.count += 1``) commits
    nothing: wrap it with proxy() to have each assignment commit.
    """

    __slots__ = ("_store", "_data")

    def __init__(self, store: Store) -> None:
        snapshot = store.get_snapshot()
        data = copy_data(snapshot)
        for key, value in snapshot.items():
            if callable(value):
                data[key] = value
        object.__setattr__(self, "_store", store)
        object.__setattr__(self, "_data", data)

    def get(self, key: str | None = None) -> Any:
        """Read the latest committed state (a fresh copy), or one field of it."""
        current = copy_data(self._store.get_snapshot())
        return current if key is None else current.get(key)

    def set(self, partial: Mapping[str, Any], notify: bool = True) -> None:
        """Commit partial right away. notify=False merges without broadcasting."""
        if isinstance(partial, Mapping):
            self._data.update(partial)
        self._store.commit(partial, notify)

    def proxied(self) -> ProxiedDict:
        """Direct-mutation view: every write commits the whole copy."""
        return ProxiedDict(self._data, self._commit_all)

    def to_partial(self) -> dict[str, Any]:
        return {key: value for key, value in self._data.items() if not callable(value)}

    def _commit_all(self) -> None:
        self._store.commit(copy_data(self._data))

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = value

    def __getattr__(self, name: str) -> Any:
        if name in StateCopy.__slots__ or name.startswith("__"):
            raise AttributeError(name)
        try:
            return self._data[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value: Any) -> None:
        self._data[name] = value

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def keys(self):
        return self._data.keys()

    def items(self):
        return self._data.items()

    def __repr__(self) -> str:
        return f"StateCopy({self.to_partial()!r})"


def _wrap(value: Any, on_write: Callable[[], None]) -> Any:
    if isinstance(value, dict):
        return ProxiedDict(value, on_write)
    if isinstance(value, list):
        return ProxiedList(value, on_write)
    return value


def _unwrap(value: Any) -> Any:
    if isinstance(value, (ProxiedDict, ProxiedList)):
        return value._target
    return value


class _Proxied:
    """Shared plumbing: lazy child wrappers and write notification."""

    __slots__ = ("_target", "_on_write", "_children")

    def __init__(self, target, on_write: Callable[[], None]) -> None:
        object.__setattr__(self, "_target", target)
        object.__setattr__(self, "_on_write", on_write)
        object.__setattr__(self, "_children", {})

    def _child(self, key, value):
        """Wrap a nested container once; rewrap only if it was replaced."""
        if not isinstance(value, (dict, list)):
            return value
        cached = self._children.get(key)
        if cached is not None and cached._target is value:
            return cached
        wrapper = _wrap(value, self._on_write)
        self._children[key] = wrapper
        return wrapper

    def _notify(self) -> None:
        self._on_write()

    def __len__(self) -> int:
        return len(self._target)

    def __bool__(self) -> bool:
        return bool(self._target)

    def __contains__(self, item) -> bool:
        return _unwrap(item) in self._target

    def __eq__(self, other) -> bool:
        return self._target == _unwrap(other)

    __hash__ = None

    def __copy__(self):
        return copy.copy(self._target)

    def __deepcopy__(self, memo):
        return copy.deepcopy(self._target, memo)


class ProxiedDict(_Proxied):
    """Dict wrapper whose writes commit the root working copy."""

    __slots__ = ()

    # --- Read operations (wrap nested) ---

    def __getitem__(self, key):
        return self._child(key, self._target[key])

    def __getattr__(self, name: str):
        if name in _Proxied.__slots__ or name.startswith("__"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def get(self, key, default=None):
        if key not in self._target:
            return default
        return self[key]

    def __iter__(self) -> Iterator:
        return iter(self._target)

    def keys(self):
        return self._target.keys()

    def values(self) -> list:
        return [self[key] for key in self._target]

    def items(self) -> list:
        return [(key, self[key]) for key in self._target]

    # --- Write operations (notify) ---

    def __setitem__(self, key, value) -> None:
        self._target[key] = _unwrap(value)
        self._notify()

    def __setattr__(self, name: str, value) -> None:
        self[name] = value

    def __delitem__(self, key) -> None:
        del self._target[key]
        self._notify()

    def __delattr__(self, name: str) -> None:
        try:
            del self[name]
        except KeyError:
            raise AttributeError(name) from None

    def pop(self, key, *args):
        result = self._target.pop(key, *args)
        self._notify()
        return result

    def update(self, other=None, **kwargs) -> None:
        if other:
            self._target.update({k: _unwrap(v) for k, v in dict(other).items()})
        if kwargs:
            self._target.update({k: _unwrap(v) for k, v in kwargs.items()})
        self._notify()

    def setdefault(self, key, default=None):
        if key not in self._target:
            self._target[key] = _unwrap(default)
            self._notify()
        return self[key]

    def clear(self) -> None:
        self._target.clear()
        self._notify()

    def __repr__(self) -> str:
        return f"ProxiedDict({self._target!r})"


class ProxiedList(_Proxied):
    """List wrapper whose writes commit the root working copy."""

    __slots__ = ()

    # --- Read operations (wrap nested) ---

    def __getitem__(self, index):
        if isinstance(index, slice):
            return self._target[index]
        value = self._target[index]
        return self._child(index % len(self._target), value)

    def __iter__(self) -> Iterator:
        return (self[i] for i in range(len(self._target)))

    def index(self, item, *args) -> int:
        return self._target.index(_unwrap(item), *args)

    def count(self, item) -> int:
        return self._target.count(_unwrap(item))

    # --- Write operations (notify) ---

    def __setitem__(self, index, value) -> None:
        self._target[index] = _unwrap(value)
        self._notify()

    def __delitem__(self, index) -> None:
        del self._target[index]
        self._children.clear()
        self._notify()

    def append(self, item) -> None:
        self._target.append(_unwrap(item))
        self._notify()

    def extend(self, items) -> None:
        self._target.extend(_unwrap(item) for item in items)
        self._notify()

    def insert(self, index: int, item) -> None:
        self._target.insert(index, _unwrap(item))
        self._children.clear()
        self._notify()

    def pop(self, index: int = -1):
        result = self._target.pop(index)
        self._children.clear()
        self._notify()
        return result

    def remove(self, item) -> None:
        self._target.remove(_unwrap(item))
        self._children.clear()
        self._notify()

    def clear(self) -> None:
        self._target.clear()
        self._children.clear()
        self._notify()

    def sort(self, **kwargs) -> None:
        self._target.sort(**kwargs)
        self._children.clear()
        self._notify()

    def reverse(self) -> None:
        self._target.reverse()
        self._children.clear()
        self._notify()

    def __repr__(self) -> str:
        return f"ProxiedList({self._target!r})"


def proxy(initializer):
    """Turn every action of an initializer into a direct-mutation action.

    Wrapped actions receive a ProxiedDict instead of a StateCopy, so they
    mutate fields in place; each write commits. Return values are ignored.

    Usage:
        store = Store(proxy({
            "todos": [],
            "add": lambda state, text: state.todos.append(text),
        }))
    """
    init = initializer() if callable(initializer) else initializer
    return {key: _direct(value) if callable(value) else value for key, value in init.items()}


def _direct(fn: Callable) -> Callable:
    @functools.wraps(fn)
    def method(state: StateCopy, *args):
        fn(state.proxied(), *args)
        return None

    return method
