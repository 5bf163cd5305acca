"""Storage backends for persisted stores.

Any object with async get_item/set_item/remove_item works. The built-in
"local" and "session" kinds resolve through init_storage():

- "session": process-wide in-memory storage, gone when the process exits.
- "local": one file per key under $TIVITY_STORAGE_DIR. When that directory
  is not configured or not usable, a warning is logged and a no-op storage
  is returned, so the store keeps working without durability.
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from pathlib import Path
from typing import Protocol, runtime_checkable
from urllib.parse import quote

from tivity.errors import PREFIX, ConfigurationError

logger = logging.getLogger("tivity.storage")

STORAGE_DIR_ENV = "TIVITY_STORAGE_DIR"


@runtime_checkable
class Storage(Protocol):
    async def get_item(self, key: str) -> str | None: ...

    async def set_item(self, key: str, value: str) -> bool: ...

    async def remove_item(self, key: str) -> bool: ...


class MemoryStorage:
    """Dict-backed storage. Useful for tests and as the session storage."""

    def __init__(self, items: dict[str, str] | None = None) -> None:
        self.items: dict[str, str] = dict(items) if items else {}

    async def get_item(self, key: str) -> str | None:
        return self.items.get(key)

    async def set_item(self, key: str, value: str) -> bool:
        self.items[key] = value
        return True

    async def remove_item(self, key: str) -> bool:
        self.items.pop(key, None)
        return True


class NoopStorage:
    """Storage that forgets everything."""

    async def get_item(self, key: str) -> str | None:
        return None

    async def set_item(self, key: str, value: str) -> bool:
        return False

    async def remove_item(self, key: str) -> bool:
        return False


class FileStorage:
    """One UTF-8 file per key. Blocking I/O runs in a worker thread."""

    def __init__(self, directory: str | os.PathLike) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}.json"

    def _read(self, key: str) -> str | None:
        try:
            return self._path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def _write(self, key: str, value: str) -> bool:
        # Write aside, then swap in, so readers never see a partial file.
        # The temp name is per thread because writes may overlap.
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(f"{path.suffix}.{threading.get_ident()}.tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)
        return True

    def _remove(self, key: str) -> bool:
        self._path(key).unlink(missing_ok=True)
        return True

    async def get_item(self, key: str) -> str | None:
        return await asyncio.to_thread(self._read, key)

    async def set_item(self, key: str, value: str) -> bool:
        return await asyncio.to_thread(self._write, key, value)

    async def remove_item(self, key: str) -> bool:
        return await asyncio.to_thread(self._remove, key)

    def __repr__(self) -> str:
        return f"FileStorage({str(self.directory)!r})"


_session_storage = MemoryStorage()


def init_storage(kind: str) -> Storage:
    """Build the built-in storage for "local" or "session"."""
    if kind == "session":
        return _session_storage
    if kind != "local":
        raise ConfigurationError(f"unknown storage type {kind!r}, expected 'local' or 'session'")

    directory = os.environ.get(STORAGE_DIR_ENV)
    if not directory:
        reason = f"{STORAGE_DIR_ENV} is not set"
    else:
        try:
            Path(directory).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            reason = f"{directory!r} is not usable ({exc})"
        else:
            return FileStorage(directory)

    logger.warning(
        "%s %s, failed to build %sStorage falling back to noopStorage",
        PREFIX, reason, kind,
    )
    return NoopStorage()
