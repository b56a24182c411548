"""Watcher -- turns audit log writes into suspend/resume notifications.

Watch lifecycle:
    1. discover suspendable Flux resource types from installed CRDs
    2. bootstrap: record the suspend state of every existing instance
    3. tail audit logs; for each write, re-read the resource and diff

All state mutation happens sequentially inside the tail callback, so the
store never sees concurrent writes for the same resource.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

from suspend_notifier.auditlog.tail import AuditLogCallback, AuditLogTailer
from suspend_notifier.k8s.client import ResourceNotFoundError
from suspend_notifier.models.config import DEFAULT_CRD_LABEL_SELECTOR
from suspend_notifier.models.resources import (
    ResourceInstance,
    ResourceReference,
    ResourceType,
    TypeDefinition,
)
from suspend_notifier.models.state import UNKNOWN_PRINCIPAL, ChangeEvent, StateEntry
from suspend_notifier.observability.logging import get_logger
from suspend_notifier.store.base import EntryNotFoundError

if TYPE_CHECKING:
    from google.cloud.audit.audit_log_pb2 import AuditLog


class _ClusterClientProto(Protocol):
    """Minimal cluster interface required by Watcher."""

    async def list_type_definitions(self, label_selector: str) -> list[TypeDefinition]: ...

    async def list_instances(self, resource_type: ResourceType) -> list[ResourceInstance]: ...

    async def get_instance(self, reference: ResourceReference) -> ResourceInstance: ...


class _StoreProto(Protocol):
    """Minimal state store interface required by Watcher."""

    def get(self, resource: ResourceReference) -> StateEntry: ...

    def put(self, entry: StateEntry) -> None: ...


class _NotifierProto(Protocol):
    """Minimal notifier interface required by Watcher."""

    async def notify(self, event: ChangeEvent) -> None: ...


class _TailerProto(Protocol):
    """Minimal audit log source required by Watcher."""

    async def tail(self, callback: AuditLogCallback) -> None: ...


_logger = get_logger("watcher")


class WatchError(Exception):
    """Raised when type discovery or bootstrap fails."""


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class Watcher:
    """Discovers Flux resources, watches for changes, and notifies when the
    suspension status changes.

    Args:
        project_id:     Cloud project; also reported as the cluster context
                        on every ChangeEvent.
        cluster_name:   GKE cluster whose audit logs are tailed.
        k8s_client:     Cluster resource client.
        store:          Last known state per resource.
        notifier:       Sink for ChangeEvents.
        tailer:         Audit log source; an AuditLogTailer for
                        project_id/cluster_name when omitted.
        label_selector: Selects the CRDs considered for discovery.
        clock:          Timestamp source for StateEntry.updated_at.
    """

    def __init__(
        self,
        project_id: str,
        cluster_name: str,
        k8s_client: _ClusterClientProto,
        store: _StoreProto,
        notifier: _NotifierProto,
        *,
        tailer: _TailerProto | None = None,
        label_selector: str = DEFAULT_CRD_LABEL_SELECTOR,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._project_id = project_id
        self._k8s = k8s_client
        self._store = store
        self._notifier = notifier
        self._tailer = tailer or AuditLogTailer(project_id, cluster_name)
        self._label_selector = label_selector
        self._clock = clock
        self._tracked: frozenset[ResourceType] = frozenset()

    @property
    def tracked_types(self) -> frozenset[ResourceType]:
        return self._tracked

    async def watch(self) -> None:
        """Block until cancelled, notifying on every suspension change.

        Raises:
            WatchError:        discovery or bootstrap failed.
            AuditLogTailError: the audit log stream failed fatally.
        """
        try:
            resource_types = await self.resolve_resource_types()
        except Exception as exc:
            raise WatchError(f"could not resolve flux resource types: {exc}") from exc
        self._tracked = frozenset(resource_types)

        try:
            await self.bootstrap(resource_types)
        except Exception as exc:
            raise WatchError(f"failed to initialize: {exc}") from exc

        _logger.info("watching for resource modifications", tracked_types=len(self._tracked))
        await self._tailer.tail(self.handle_audit_log)

    async def resolve_resource_types(self) -> list[ResourceType]:
        """Return every served version of the suspendable Flux resource types."""
        definitions = await self._k8s.list_type_definitions(self._label_selector)
        resource_types = [t for definition in definitions for t in definition.resource_types()]
        _logger.info(
            "resolved flux resource types",
            definitions=len(definitions),
            kinds=sorted({f"{t.kind}.{t.group}" for t in resource_types}),
        )
        return resource_types

    async def bootstrap(self, resource_types: list[ResourceType]) -> None:
        """Record the state of every existing instance of *resource_types*.

        Covers a cold start with an empty store as well as downtime: drift
        from a stored value is reported with an unknown principal.
        """
        _logger.info("initializing")
        seen: set[tuple[str, str]] = set()
        processed = 0
        for resource_type in resource_types:
            # One version per group+kind is enough; the store key ignores version.
            if resource_type.group_kind in seen:
                continue
            seen.add(resource_type.group_kind)

            for instance in await self._k8s.list_instances(resource_type):
                reference = ResourceReference(
                    type=resource_type,
                    namespace=instance.namespace,
                    name=instance.name,
                )
                await self.process_resource(reference, instance.suspended, UNKNOWN_PRINCIPAL)
                processed += 1
        _logger.info("initialized", kinds=len(seen), resources=processed)

    async def handle_audit_log(self, audit_log: AuditLog) -> None:
        """Reconcile one audit log entry. Used as the tailer callback.

        Raises:
            ValueError: the entry's resource name is not a resource path.
        """
        code = audit_log.status.code
        if code != 0:
            _logger.warning("operation appeared to fail", code=code, resource=audit_log.resource_name)
            return

        reference = ResourceReference.from_path(audit_log.resource_name)
        if reference.type not in self._tracked:
            _logger.info("ignoring non-watched resource", kind=reference.type.kind, group=reference.type.group)
            return

        try:
            instance = await self._k8s.get_instance(reference)
        except ResourceNotFoundError:
            _logger.warning("resource no longer exists", resource=reference.path)
            return

        principal = audit_log.authentication_info.principal_email
        await self.process_resource(reference, instance.suspended, principal)

    async def process_resource(self, reference: ResourceReference, suspended: bool, updated_by: str) -> bool:
        """Diff *suspended* against stored state; persist and notify on change.

        A resource seen for the first time is recorded without notifying.
        State is persisted before notifying, so a failed delivery leaves
        the store consistent with the cluster.

        Returns:
            True if a ChangeEvent was emitted.
        """
        try:
            entry = self._store.get(reference)
        except EntryNotFoundError:
            _logger.info(
                "new resource discovered",
                kind=reference.type.kind,
                namespace=reference.namespace,
                resource=reference.name,
                suspended=suspended,
            )
            self._store.put(
                StateEntry(
                    resource=reference,
                    suspended=suspended,
                    updated_by=updated_by,
                    updated_at=self._clock(),
                )
            )
            return False

        if entry.suspended == suspended:
            return False  # some other field changed

        _logger.info(
            "suspension status updated",
            kind=reference.type.kind,
            namespace=reference.namespace,
            resource=reference.name,
            user=updated_by,
            suspended=suspended,
        )
        entry.resource = reference
        entry.suspended = suspended
        entry.updated_by = updated_by
        entry.updated_at = self._clock()
        self._store.put(entry)

        await self._notifier.notify(
            ChangeEvent(
                resource=entry.resource,
                suspended=entry.suspended,
                acting_principal=entry.updated_by,
                cluster_context_id=self._project_id,
            )
        )
        return True
