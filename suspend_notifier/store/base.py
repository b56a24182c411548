"""State store interface and errors."""

from __future__ import annotations

from typing import Protocol

from suspend_notifier.models.resources import ResourceReference
from suspend_notifier.models.state import StateEntry


class StoreError(Exception):
    """Raised when the underlying store cannot be read or written."""


class EntryNotFoundError(StoreError):
    """Raised when no entry exists for the requested resource."""


class StateStore(Protocol):
    """Last known suspension state keyed by ResourceReference.store_key."""

    def get(self, resource: ResourceReference) -> StateEntry: ...

    def put(self, entry: StateEntry) -> None: ...

    def close(self) -> None: ...
