"""Shared fixtures for suspend-notifier integration tests.

Provides in-memory collaborators (cluster client, store, notifier, audit
log source) so integration tests can exercise the full reconciliation
pipeline without touching a real cluster, Cloud Logging or Slack.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from typing import Any

import pytest
from google.cloud.audit.audit_log_pb2 import AuditLog
from google.cloud.logging_v2.types import TailLogEntriesRequest
from google.protobuf import any_pb2

from suspend_notifier.auditlog.tail import AuditLogCallback
from suspend_notifier.k8s.client import ResourceNotFoundError
from suspend_notifier.models.resources import (
    ResourceInstance,
    ResourceReference,
    ResourceType,
    TypeDefinition,
    VersionDefinition,
)
from suspend_notifier.models.state import ChangeEvent
from suspend_notifier.notifications.manager import NotificationError, Notifier
from suspend_notifier.store.memory import InMemoryStateStore


# ---------------------------------------------------------------------------
# Resource types
# ---------------------------------------------------------------------------

HELM_GROUP = "helm.toolkit.fluxcd.io"
KUSTOMIZE_GROUP = "kustomize.toolkit.fluxcd.io"
NOTIFICATION_GROUP = "notification.toolkit.fluxcd.io"

HELM_RELEASE_V2 = ResourceType(group=HELM_GROUP, version="v2", kind="helmreleases")
HELM_RELEASE_V2BETA2 = ResourceType(group=HELM_GROUP, version="v2beta2", kind="helmreleases")
KUSTOMIZATION_V1 = ResourceType(group=KUSTOMIZE_GROUP, version="v1", kind="kustomizations")
RECEIVER_V1 = ResourceType(group=NOTIFICATION_GROUP, version="v1", kind="receivers")

FLUX_DEFINITIONS = [
    TypeDefinition(
        group=HELM_GROUP,
        plural="helmreleases",
        versions=(
            VersionDefinition(name="v2", suspendable=True),
            VersionDefinition(name="v2beta2", suspendable=True),
        ),
    ),
    TypeDefinition(
        group=KUSTOMIZE_GROUP,
        plural="kustomizations",
        versions=(VersionDefinition(name="v1", suspendable=True),),
    ),
    # Receivers have no spec.suspend and are never tracked.
    TypeDefinition(
        group=NOTIFICATION_GROUP,
        plural="receivers",
        versions=(VersionDefinition(name="v1", suspendable=False),),
    ),
]

_TS = datetime(2026, 3, 2, 9, 30, 0, tzinfo=UTC)


def ref(resource_type: ResourceType, namespace: str, name: str) -> ResourceReference:
    return ResourceReference(type=resource_type, namespace=namespace, name=name)


def make_audit_log(
    path: str,
    principal: str = "alice@example.com",
    code: int = 0,
    method: str = "io.fluxcd.toolkit.helm.v2.helmreleases.patch",
) -> AuditLog:
    """Create an AuditLog as found in a GKE admin activity entry."""
    audit_log = AuditLog()
    audit_log.resource_name = path
    audit_log.method_name = method
    audit_log.authentication_info.principal_email = principal
    audit_log.status.code = code
    return audit_log


def make_log_entry(audit_log: AuditLog, insert_id: str = "entry-1") -> SimpleNamespace:
    """Wrap an AuditLog the way TailLogEntries delivers it (packed in Any)."""
    payload = any_pb2.Any()
    payload.Pack(audit_log)
    return SimpleNamespace(proto_payload=payload, insert_id=insert_id)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeClusterClient:
    """In-memory cluster holding Flux objects keyed by (group, kind, namespace, name)."""

    def __init__(self, definitions: list[TypeDefinition] | None = None) -> None:
        self.definitions = FLUX_DEFINITIONS if definitions is None else definitions
        self._objects: dict[tuple[str, str, str, str], bool] = {}
        self.label_selectors: list[str] = []
        self.list_calls: list[ResourceType] = []
        self.get_calls: list[ResourceReference] = []

    def set(self, resource_type: ResourceType, namespace: str, name: str, suspended: bool) -> None:
        self._objects[(resource_type.group, resource_type.kind, namespace, name)] = suspended

    def delete(self, resource_type: ResourceType, namespace: str, name: str) -> None:
        self._objects.pop((resource_type.group, resource_type.kind, namespace, name), None)

    async def list_type_definitions(self, label_selector: str) -> list[TypeDefinition]:
        self.label_selectors.append(label_selector)
        return list(self.definitions)

    async def list_instances(self, resource_type: ResourceType) -> list[ResourceInstance]:
        self.list_calls.append(resource_type)
        return [
            ResourceInstance(namespace=namespace, name=name, suspended=suspended)
            for (group, kind, namespace, name), suspended in self._objects.items()
            if (group, kind) == resource_type.group_kind
        ]

    async def get_instance(self, reference: ResourceReference) -> ResourceInstance:
        self.get_calls.append(reference)
        key = (reference.type.group, reference.type.kind, reference.namespace, reference.name)
        if key not in self._objects:
            raise ResourceNotFoundError(f"resource not found: {reference.path}")
        return ResourceInstance(namespace=reference.namespace, name=reference.name, suspended=self._objects[key])


class SpyStore(InMemoryStateStore):
    """InMemoryStateStore that counts accesses."""

    def __init__(self) -> None:
        super().__init__()
        self.gets = 0
        self.puts = 0

    def get(self, resource: ResourceReference):  # type: ignore[override]
        self.gets += 1
        return super().get(resource)

    def put(self, entry) -> None:  # type: ignore[override]
        self.puts += 1
        super().put(entry)


class RecordingNotifier(Notifier):
    """Collects every delivered event; optionally fails delivery."""

    def __init__(self, fail: bool = False) -> None:
        self.events: list[ChangeEvent] = []
        self.fail = fail

    @property
    def channel_name(self) -> str:
        return "recording"

    async def notify(self, event: ChangeEvent) -> None:
        if self.fail:
            raise NotificationError("sink unavailable")
        self.events.append(event)


class FakeTailer:
    """Feeds a fixed list of audit logs to the callback, then returns."""

    def __init__(self, audit_logs: Iterable[AuditLog] = ()) -> None:
        self.audit_logs = list(audit_logs)
        self.started = False

    async def tail(self, callback: AuditLogCallback) -> None:
        self.started = True
        for audit_log in self.audit_logs:
            await callback(audit_log)


class StepClock:
    """Deterministic clock advancing one minute per call."""

    def __init__(self, start: datetime = _TS) -> None:
        self._now = start

    def __call__(self) -> datetime:
        self._now += timedelta(minutes=1)
        return self._now


class FakeLoggingClient:
    """Scripted stand-in for LoggingServiceV2AsyncClient.tail_log_entries.

    Each item in *sessions* describes one session: an exception is raised
    when the session is opened, a list is streamed in order where
    responses are yielded, exceptions are raised and BLOCK parks the
    stream until cancelled. Opening a session past the end of the script
    raises RuntimeError.
    """

    BLOCK = object()

    def __init__(self, sessions: Iterable[object]) -> None:
        self._sessions = list(sessions)
        self.requests: list[TailLogEntriesRequest] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def tail_log_entries(self, requests: AsyncIterator[TailLogEntriesRequest]) -> AsyncIterator[Any]:
        self.requests.append(await requests.__anext__())
        if not self._sessions:
            raise RuntimeError("no more scripted sessions")
        session = self._sessions.pop(0)
        if isinstance(session, BaseException):
            raise session
        assert isinstance(session, list)
        return self._stream(session)

    async def _stream(self, items: list[object]) -> AsyncIterator[Any]:
        for item in items:
            if item is self.BLOCK:
                await asyncio.Event().wait()
            if isinstance(item, BaseException):
                raise item
            yield item


def make_response(*entries: SimpleNamespace, suppressed: int = 0) -> SimpleNamespace:
    """Build a TailLogEntriesResponse-shaped object."""
    suppression_info = [SimpleNamespace(reason="RATE_LIMIT", suppressed_count=suppressed)] if suppressed else []
    return SimpleNamespace(entries=list(entries), suppression_info=suppression_info)


class FakeTime:
    """Manual monotonic clock whose sleep advances time instantly."""

    def __init__(self) -> None:
        self.now = 1000.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cluster() -> FakeClusterClient:
    return FakeClusterClient()


@pytest.fixture
def store() -> SpyStore:
    return SpyStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def clock() -> StepClock:
    return StepClock()
