"""Persistence middleware — hydrate from storage, write back on every commit.

Lifecycle of one persisted store:

    _status False  --hydrate-->  merge persisted values  -->  _status True
                                                              writes on commit

Hydration runs as an asyncio task on the running loop (or inline when no
loop is running). The store stays fully usable while it runs; commits made
before it resolves are not written and may be overwritten by the merge.
Consumers gate on _status.

Read failures fall back to the defaults and are logged, never retried.
Writes reach storage one at a time, in commit order, so the stored payload
always ends up matching the last commit. Write failures are logged and re-raised by flush(); with no running loop
they propagate straight to the commit that triggered the write.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Coroutine, Mapping

from tivity._tracking import is_equal
from tivity.errors import ConfigurationError
from tivity.sandbox import copy_data
from tivity.storage import Storage, init_storage
from tivity.store import Store

logger = logging.getLogger("tivity.persist")

STATUS = "_status"
VERSION = "version"


@dataclass
class PersistConfig:
    """How and where a store is persisted.

    storage may be a Storage object or "local"/"session". _status is always
    blacklisted; blacklisted fields live in memory but are never written.
    migrate(current, persisted) is called when the persisted version differs
    from version.
    """

    key: str
    storage: Storage | str = "local"
    serialize: Callable[[dict[str, Any]], str] = json.dumps
    deserialize: Callable[[str], Any] = json.loads
    blacklist: list[str] = field(default_factory=list)
    version: int = 0
    migrate: Callable[[dict[str, Any], dict[str, Any]], Any] | None = None

    def __post_init__(self) -> None:
        if not self.key:
            raise ConfigurationError("persist config requires a storage key")
        if isinstance(self.storage, str):
            self.storage = init_storage(self.storage)
        self.blacklist = list(self.blacklist)
        if STATUS not in self.blacklist:
            self.blacklist.append(STATUS)

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> PersistConfig:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(config) - known)
        if unknown:
            raise ConfigurationError(f"unknown persist config fields: {', '.join(unknown)}")
        if "key" not in config:
            raise ConfigurationError("persist config requires a storage key")
        return cls(**config)


class Persistence:
    """Binds a Store to a storage backend.

    The store must already carry the _status field (seeded False).
    """

    def __init__(self, store: Store, config: PersistConfig) -> None:
        self._store = store
        self._config = config
        self._hydrated = False
        self._pending: set[asyncio.Task] = set()
        self._errors: list[BaseException] = []
        self._last_write: asyncio.Task | None = None
        store.subscribe(self._on_commit)
        self._spawn(self._hydrate())

    @property
    def config(self) -> PersistConfig:
        return self._config

    @property
    def hydrated(self) -> bool:
        return self._hydrated

    async def clear_storage(self) -> None:
        """Remove the persisted value. In-memory state is left alone."""
        await self._config.storage.remove_item(self._config.key)

    async def flush(self) -> None:
        """Wait for hydration and every in-flight write. Write errors propagate."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        if self._errors:
            error = self._errors[0]
            self._errors.clear()
            raise error

    # --- Scheduling ---

    def _spawn(self, coro: Coroutine) -> asyncio.Task | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to defer to: run to completion, writes included.
            asyncio.run(self._run_inline(coro))
            return None
        task = loop.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Persistence task failed for %r", self._config.key, exc_info=error)
            self._errors.append(error)

    async def _run_inline(self, coro: Coroutine) -> None:
        await coro
        await self.flush()

    # --- Writing ---

    def _on_commit(self) -> None:
        if self._hydrated:
            save = self._save(self._store.get_snapshot(), self._last_write)
            self._last_write = self._spawn(save)

    async def _save(self, snapshot: Mapping[str, Any], previous: asyncio.Task | None = None) -> None:
        # Writes land in commit order: wait for the one before, whatever its outcome.
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        blacklist = self._config.blacklist
        to_save = {
            key: value
            for key, value in snapshot.items()
            if key not in blacklist and not callable(value)
        }
        to_save[VERSION] = self._config.version
        await self._config.storage.set_item(self._config.key, self._config.serialize(to_save))

    # --- Hydration ---

    async def _read(self) -> dict[str, Any] | None:
        key = self._config.key
        try:
            raw = await self._config.storage.get_item(key)
            if not raw:
                return None
            persisted = self._config.deserialize(raw)
        except Exception:
            logger.warning("Failed to read persisted state for %r, using defaults", key, exc_info=True)
            return None
        if not isinstance(persisted, Mapping):
            logger.warning(
                "Persisted state for %r is a %s, not a mapping; using defaults",
                key, type(persisted).__name__,
            )
            return None
        return dict(persisted)

    async def _hydrate(self) -> None:
        persisted = await self._read()
        current = copy_data(self._store.get_snapshot())
        merged = self._merge(current, persisted) if persisted is not None else None
        self._hydrated = True
        if merged is None:
            logger.debug("No usable persisted state for %r, writing defaults", self._config.key)
            self._store.commit({STATUS: True})
        else:
            logger.debug("Hydrated %r with %d fields", self._config.key, len(merged))
            self._store.commit({**merged, STATUS: True})

    def _merge(self, current: dict[str, Any], persisted: dict[str, Any]) -> dict[str, Any] | None:
        version = persisted.get(VERSION)
        if version is not None and version != self._config.version:
            merged = self._migrate(current, persisted)
            if merged is None:
                return None
        else:
            merged = {**current, **persisted}
        merged.pop(VERSION, None)
        # Keys the current schema does not define never reach the live store.
        return {key: value for key, value in merged.items() if key in current}

    def _migrate(self, current: dict[str, Any], persisted: dict[str, Any]) -> dict[str, Any] | None:
        """Run migrate(); persisted values win for keys it left at their default."""
        key = self._config.key
        migrate = self._config.migrate
        if migrate is None:
            logger.error(
                "Persisted state for %r has version %r but no migrate function is configured "
                "for version %r; using defaults",
                key, persisted.get(VERSION), self._config.version,
            )
            return None
        try:
            result = migrate(copy.deepcopy(current), persisted)
        except Exception:
            logger.exception("migrate failed for %r; using defaults", key)
            return None
        if not isinstance(result, Mapping):
            logger.error(
                "migrate returned %s for %r, expected a mapping; using defaults",
                type(result).__name__, key,
            )
            return None

        merged = dict(result)
        for field_name in list(merged):
            decided = field_name not in current or not is_equal(merged[field_name], current[field_name])
            if not decided and field_name in persisted:
                merged[field_name] = persisted[field_name]
        return merged

    def __repr__(self) -> str:
        state = "ready" if self._hydrated else "hydrating"
        return f"Persistence({self._config.key!r}, {state})"
