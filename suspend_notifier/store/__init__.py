"""State store for suspend-notifier.

Submodules:
    base    -- StateStore protocol, EntryNotFoundError, StoreError.
    memory  -- InMemoryStateStore (tests, throwaway runs).
    sqlite  -- SQLiteStateStore, the durable production store.
"""

from suspend_notifier.store.base import EntryNotFoundError, StateStore, StoreError
from suspend_notifier.store.memory import InMemoryStateStore
from suspend_notifier.store.sqlite import SQLiteStateStore

__all__ = [
    "EntryNotFoundError",
    "InMemoryStateStore",
    "SQLiteStateStore",
    "StateStore",
    "StoreError",
]
