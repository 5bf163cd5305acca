"""Public factories: create(), reduce(), persist() and hook().

Each factory builds a Store and returns a Hook. Calling the hook gives a
StoreObserver, the per-consumer handle a UI layer renders from.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping

from tivity.errors import ConfigurationError
from tivity.persist import STATUS, PersistConfig, Persistence
from tivity.sandbox import ProxiedDict, StateCopy
from tivity.selector import Equality, Selector, StoreObserver
from tivity.store import Store, Unsubscribe, _evaluate

Reducer = Callable[[dict[str, Any], Any], Any]


class Hook:
    """Handle over one store.

    hook() / hook(selector, equality) -> StoreObserver for one consumer.
    hook.state is a direct-mutation view: hook.state.count = 5 commits.
    """

    def __init__(
        self,
        store: Store,
        dispatch: Callable[[Any], None] | None = None,
        persistence: Persistence | None = None,
    ) -> None:
        self.store = store
        self.dispatch = dispatch
        self.persist = persistence

    def __call__(self, selector: Selector | str | None = None, equality: Equality | None = None) -> StoreObserver:
        return StoreObserver(self.store, selector, equality)

    def subscribe(self, callback: Callable[[], Any]) -> Unsubscribe:
        return self.store.subscribe(callback)

    def get_snapshot(self) -> dict[str, Any]:
        return self.store.get_snapshot()

    @property
    def state(self) -> ProxiedDict:
        return self.store.proxied_state()

    def __repr__(self) -> str:
        return f"Hook({self.store!r})"


def create(initializer) -> Hook:
    """Store from a mapping (or a function returning one) of fields and actions.

    Usage:
        counter = create({
            "count": 0,
            "inc": lambda state: {"count": state.count + 1},
            "dec": lambda state: state.set({"count": state.count - 1}),
        })
        counter.get_snapshot()["inc"]()
    """
    return Hook(Store(initializer))


def _validate_reducer_fields(init: Mapping[str, Any]) -> None:
    if any(callable(value) for value in init.values()):
        raise ConfigurationError("reduce does not accepts object methods")


def _reducer_action(reducer: Reducer) -> Callable:
    def dispatch(state: StateCopy, action: Any) -> Mapping[str, Any] | None:
        next_state = reducer(state.get(), action)
        if isinstance(next_state, Mapping) and next_state:
            return next_state
        return None

    dispatch.__name__ = getattr(reducer, "__name__", "dispatch")
    return dispatch


def reduce(reducer: Reducer, initializer) -> Hook:
    """Store driven by one reducer(state, action) instead of per-field actions.

    The reducer gets a deep copy of the data fields and returns a partial
    state; empty or non-mapping results commit nothing. Raise from the
    reducer to reject an action; nothing is committed.
    """
    init = _evaluate(initializer)
    _validate_reducer_fields(init)
    init["dispatch"] = _reducer_action(reducer)
    store = Store(init)
    return Hook(store, dispatch=store.get_snapshot()["dispatch"])


def persist(reducer_or_initializer, initializer=None) -> Hook:
    """Persisted store: persist(initializer) or persist(reducer, initializer).

    The initializer carries a "config" entry (a mapping or PersistConfig)
    that is removed from the state. A _status field is added; it turns True
    once hydration has finished.

    Usage:
        post = persist({"views": 2, "config": {"key": "@post", "storage": storage}})
        await post.persist.flush()
        post.get_snapshot()["_status"]  # True
    """
    reducer = reducer_or_initializer if initializer is not None else None
    init = _evaluate(initializer if reducer is not None else reducer_or_initializer)

    config = init.pop("config", None)
    if config is None:
        raise ConfigurationError("persist requires a config entry with at least a key")
    if reducer is not None:
        _validate_reducer_fields(init)
    if not isinstance(config, PersistConfig):
        config = PersistConfig.from_mapping(config)

    init[STATUS] = False
    if reducer is not None:
        init["dispatch"] = _reducer_action(reducer)
    store = Store(init)
    dispatch = store.get_snapshot()["dispatch"] if reducer is not None else None
    return Hook(store, dispatch=dispatch, persistence=Persistence(store, config))


class KeyedHook:
    """Ad-hoc keyed state: hook(fn) -> use(key, default, *args).

    The first use of a key seeds it with default without notifying anyone;
    fn(state_copy, key, *args) decides what the consumer gets back.

    Usage:
        use_state = hook(lambda state, key: (state.get(key), lambda v: state.set({key: v})))
        count, set_count = use_state("@count", 0)
    """

    def __init__(self, hook_fn: Callable[..., Any]) -> None:
        self._hook_fn = hook_fn
        self.store = Store({})

    def __call__(self, key: str, default: Any = None, *args: Any) -> Any:
        state = self.store.create_state_copy()
        if key not in self.store.get_snapshot() and default is not None:
            state.set({key: default}, notify=False)
        return self._hook_fn(state, key, *args)

    def subscribe(self, callback: Callable[[], Any]) -> Unsubscribe:
        return self.store.subscribe(callback)

    def get_snapshot(self) -> dict[str, Any]:
        return self.store.get_snapshot()


def hook(hook_fn: Callable[..., Any]) -> KeyedHook:
    return KeyedHook(hook_fn)
