"""Persisted suspension state and change notification structures."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from suspend_notifier.models.resources import ResourceReference

# Recorded as the actor when state is established without a causal event.
UNKNOWN_PRINCIPAL = "<unknown>"


@dataclass
class StateEntry:
    """Last known suspension state of a single resource.

    One entry exists per ResourceReference; it is updated in place when
    the suspend flag flips and is never deleted by the watcher.
    """

    resource: ResourceReference
    suspended: bool
    updated_by: str
    updated_at: datetime

    def to_dict(self) -> dict[str, object]:
        return {
            "resource": self.resource.to_dict(),
            "suspended": self.suspended,
            "updatedBy": self.updated_by,
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> StateEntry:
        raw_resource = data.get("resource")
        return cls(
            resource=ResourceReference.from_dict(raw_resource if isinstance(raw_resource, dict) else {}),
            suspended=data.get("suspended") is True,
            updated_by=str(data.get("updatedBy", "")),
            updated_at=datetime.fromisoformat(str(data["updatedAt"])),
        )


@dataclass(frozen=True)
class ChangeEvent:
    """Emitted by the watcher when a resource's suspend flag changes."""

    resource: ResourceReference
    suspended: bool
    acting_principal: str
    cluster_context_id: str
