"""Dict-backed StateStore."""

from __future__ import annotations

import copy

from suspend_notifier.models.resources import ResourceReference
from suspend_notifier.models.state import StateEntry
from suspend_notifier.store.base import EntryNotFoundError


class InMemoryStateStore:
    """Non-durable StateStore. Returns copies so callers cannot alias stored state."""

    def __init__(self) -> None:
        self._entries: dict[str, StateEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, resource: ResourceReference) -> StateEntry:
        try:
            return copy.copy(self._entries[resource.store_key])
        except KeyError:
            raise EntryNotFoundError(resource.store_key) from None

    def put(self, entry: StateEntry) -> None:
        self._entries[entry.resource.store_key] = copy.copy(entry)

    def close(self) -> None:
        self._entries.clear()
