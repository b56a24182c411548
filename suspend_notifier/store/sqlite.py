"""SQLite-backed StateStore.

One row per resource: the ``store_key`` and the JSON-encoded StateEntry.
Writes are upserts, so a StateEntry is never duplicated for a resource.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from pathlib import Path

from suspend_notifier.models.resources import ResourceReference
from suspend_notifier.models.state import StateEntry
from suspend_notifier.observability.logging import get_logger
from suspend_notifier.store.base import EntryNotFoundError, StoreError

_logger = get_logger("store.sqlite")

_MEMORY = ":memory:"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS entries (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""


class SQLiteStateStore:
    """Durable StateStore persisted to a single SQLite database file.

    Args:
        path: Database file path. Parent directories are created. Use
              ``":memory:"`` for a throwaway database.
    """

    def __init__(self, path: str) -> None:
        if not path:
            raise ValueError("store path cannot be empty")
        if path != _MEMORY:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = sqlite3.connect(path, check_same_thread=False)
            self._conn.execute(_SCHEMA)
            self._conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"failed to open state store at {path}: {exc}") from exc
        self._lock = threading.Lock()
        self._path = path
        _logger.info("state store opened", path=path)

    def get(self, resource: ResourceReference) -> StateEntry:
        key = resource.store_key
        try:
            with self._lock:
                row = self._conn.execute("SELECT value FROM entries WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"failed to get item {key}: {exc}") from exc
        if row is None:
            raise EntryNotFoundError(key)
        try:
            return StateEntry.from_dict(json.loads(row[0]))
        except (ValueError, KeyError) as exc:
            raise StoreError(f"failed to unmarshal entry {key}: {exc}") from exc

    def put(self, entry: StateEntry) -> None:
        key = entry.resource.store_key
        value = json.dumps(entry.to_dict(), sort_keys=True)
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    "INSERT INTO entries (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (key, value),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"failed to save entry {key}: {exc}") from exc

    def count(self) -> int:
        with self._lock:
            (total,) = self._conn.execute("SELECT COUNT(*) FROM entries").fetchone()
        return int(total)

    def close(self) -> None:
        with self._lock:
            self._conn.close()
        _logger.info("state store closed", path=self._path)
