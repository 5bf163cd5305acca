"""tivity: observable state stores with per-consumer tracking and persistence."""

from importlib.metadata import version as _version

__version__ = _version("tivity")

from tivity.errors import TivityError, ConfigurationError
from tivity.store import Store
from tivity.sandbox import StateCopy, ProxiedDict, ProxiedList, proxy
from tivity._tracking import DependencyRecord, TrackedState, is_equal
from tivity.selector import StoreObserver
from tivity.storage import Storage, MemoryStorage, FileStorage, NoopStorage, init_storage
from tivity.persist import PersistConfig, Persistence
from tivity.api import Hook, KeyedHook, create, reduce, persist, hook
# textual NOT auto-imported — opt-in only

__all__ = [
    "TivityError",
    "ConfigurationError",
    "Store",
    "StateCopy",
    "ProxiedDict",
    "ProxiedList",
    "proxy",
    "DependencyRecord",
    "TrackedState",
    "is_equal",
    "StoreObserver",
    "Storage",
    "MemoryStorage",
    "FileStorage",
    "NoopStorage",
    "init_storage",
    "PersistConfig",
    "Persistence",
    "Hook",
    "KeyedHook",
    "create",
    "reduce",
    "persist",
    "hook",
]
