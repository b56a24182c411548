"""Resilient tailing of GKE admin activity audit logs.

Cloud Logging's TailLogEntries API serves bounded sessions that are also
subject to transient failure. AuditLogTailer wraps it in a restart loop:

* IMMEDIATE -- the session exceeded its maximum duration; reopen at once.
* THROTTLED -- any other streaming-layer failure, or the server closing
               the session; reopen once the token bucket allows (3
               immediate attempts, then one every 15 s).
* FATAL     -- stream construction failures, callback failures and
               anything not raised by the streaming layer; propagated.

Entries that arrive while a new session is being opened are not replayed.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from enum import StrEnum
from typing import Any, Protocol

from google.api_core import exceptions as core_exceptions
from google.cloud.audit.audit_log_pb2 import AuditLog
from google.cloud.logging_v2.types import TailLogEntriesRequest
from google.protobuf.message import DecodeError

from suspend_notifier.auditlog.limiter import TokenBucket
from suspend_notifier.models.config import DEFAULT_EXCLUDED_PRINCIPAL
from suspend_notifier.observability.logging import get_logger

_logger = get_logger("auditlog.tail")

_AUDIT_LOG_TYPE = "type.googleapis.com/google.cloud.audit.AuditLog"
_WRITE_METHODS = r"io\.fluxcd\.toolkit\..*\.(patch|create)"

AuditLogCallback = Callable[[AuditLog], Awaitable[None]]


class RestartPolicy(StrEnum):
    """What the tail loop does after a session ends."""

    IMMEDIATE = "immediate"
    THROTTLED = "throttled"
    FATAL = "fatal"


class AuditLogTailError(Exception):
    """Raised when tailing cannot continue."""


class StreamOpenError(AuditLogTailError):
    """Raised when a tail session cannot be constructed."""


class CallbackError(AuditLogTailError):
    """Raised when the entry callback fails; aborts the tail loop."""


class _LoggingClientProto(Protocol):
    """Subset of LoggingServiceV2AsyncClient used by the tailer."""

    async def tail_log_entries(self, requests: AsyncIterator[TailLogEntriesRequest]) -> AsyncIterator[Any]: ...


def build_filter(
    project_id: str,
    cluster_name: str,
    excluded_principal: str = DEFAULT_EXCLUDED_PRINCIPAL,
) -> str:
    """Build the server-side filter selecting Flux write operations by people."""
    return " AND ".join(
        [
            'resource.type="k8s_cluster"',
            f'log_name="projects/{project_id}/logs/cloudaudit.googleapis.com%2Factivity"',
            f'resource.labels.cluster_name="{cluster_name}"',
            f'protoPayload."@type"="{_AUDIT_LOG_TYPE}"',
            f'protoPayload.methodName=~"{_WRITE_METHODS}"',
            f'-protoPayload.authenticationInfo.principalEmail=~"{excluded_principal}"',
        ]
    )


def classify_stream_error(exc: BaseException) -> RestartPolicy:
    """Map an exception raised by a tail session to a restart policy."""
    if isinstance(exc, AuditLogTailError):
        return RestartPolicy.FATAL
    # TailLogEntries sessions have a maximum duration; expiry is routine.
    if isinstance(exc, core_exceptions.DeadlineExceeded):
        return RestartPolicy.IMMEDIATE
    if isinstance(exc, core_exceptions.GoogleAPICallError):
        return RestartPolicy.THROTTLED
    return RestartPolicy.FATAL


def decode_entry(entry: Any) -> AuditLog | None:
    """Unpack the AuditLog carried in a LogEntry's protoPayload.

    Returns None (after logging) when the payload is absent, of another
    type, or cannot be decoded.
    """
    payload = entry.proto_payload
    insert_id = getattr(entry, "insert_id", "")
    if payload is None or not payload.type_url:
        _logger.warning("audit_entry_missing_payload", insert_id=insert_id)
        return None
    if not payload.Is(AuditLog.DESCRIPTOR):
        _logger.warning("audit_entry_unexpected_payload_type", insert_id=insert_id, type_url=payload.type_url)
        return None

    audit_log = AuditLog()
    try:
        unpacked = payload.Unpack(audit_log)
    except DecodeError as exc:
        _logger.warning("audit_entry_decode_failed", insert_id=insert_id, error=str(exc))
        return None
    if not unpacked:
        _logger.warning("audit_entry_decode_failed", insert_id=insert_id, error="unpack returned false")
        return None
    return audit_log


class AuditLogTailer:
    """Streams decoded audit entries for Flux resources to a callback.

    Args:
        project_id:         Google Cloud project hosting the cluster's logs.
        cluster_name:       GKE cluster name.
        excluded_principal: Regex of principals whose writes are ignored
                            server-side (the Flux controllers themselves).
        client:             Optional LoggingServiceV2AsyncClient; created on
                            first use when omitted.
        limiter:            Token bucket gating throttled reconnects.
    """

    def __init__(
        self,
        project_id: str,
        cluster_name: str,
        *,
        excluded_principal: str = DEFAULT_EXCLUDED_PRINCIPAL,
        client: _LoggingClientProto | None = None,
        limiter: TokenBucket | None = None,
    ) -> None:
        self._project_id = project_id
        self._filter = build_filter(project_id, cluster_name, excluded_principal)
        self._client = client
        self._limiter = limiter or TokenBucket(burst=3, interval=15.0)
        self.sessions_opened = 0

    @property
    def filter(self) -> str:
        return self._filter

    async def tail(self, callback: AuditLogCallback) -> None:
        """Run the restart loop until cancelled or a fatal error occurs.

        Raises:
            AuditLogTailError: on fatal failures (CallbackError when the
                callback raised).
        """
        client = self._client or self._create_client()
        _logger.info("audit_log_tail_starting", project_id=self._project_id, filter=self._filter)

        while True:
            try:
                await self._tail_session(client, callback)
            except Exception as exc:
                policy = classify_stream_error(exc)
                if policy is RestartPolicy.FATAL:
                    if isinstance(exc, AuditLogTailError):
                        raise
                    raise AuditLogTailError(f"log tailing failed: {exc}") from exc
                _logger.warning(
                    "audit_stream_terminated",
                    policy=policy.value,
                    error=str(exc),
                    sessions_opened=self.sessions_opened,
                )
            else:
                policy = RestartPolicy.THROTTLED
                _logger.warning("audit_stream_closed", sessions_opened=self.sessions_opened)

            if policy is RestartPolicy.THROTTLED:
                waited = await self._limiter.acquire()
                if waited:
                    _logger.info("audit_stream_restart_throttled", waited_seconds=round(waited, 2))
            _logger.info("audit_stream_restarting", policy=policy.value)

    def _create_client(self) -> _LoggingClientProto:
        from google.cloud.logging_v2.services.logging_service_v2 import LoggingServiceV2AsyncClient

        try:
            self._client = LoggingServiceV2AsyncClient()
        except Exception as exc:
            raise AuditLogTailError(f"failed to create logging client: {exc}") from exc
        return self._client

    async def _tail_session(self, client: _LoggingClientProto, callback: AuditLogCallback) -> None:
        """Open one session and forward entries until it ends."""
        request = TailLogEntriesRequest(
            resource_names=[f"projects/{self._project_id}"],
            filter=self._filter,
        )
        session_done = asyncio.Event()

        async def _requests() -> AsyncIterator[TailLogEntriesRequest]:
            yield request
            # Keep the request side open for the lifetime of the session.
            await session_done.wait()

        try:
            try:
                stream = await client.tail_log_entries(requests=_requests())
            except Exception as exc:
                raise StreamOpenError(f"request to tail log entries failed: {exc}") from exc
            self.sessions_opened += 1
            _logger.debug("audit_stream_opened", session=self.sessions_opened)

            async for response in stream:
                for suppression in getattr(response, "suppression_info", None) or []:
                    _logger.warning(
                        "audit_entries_suppressed",
                        reason=str(suppression.reason),
                        count=suppression.suppressed_count,
                    )
                for entry in response.entries:
                    audit_log = decode_entry(entry)
                    if audit_log is None:
                        continue
                    try:
                        await callback(audit_log)
                    except Exception as exc:
                        raise CallbackError(f"callback failed: {exc}") from exc
        finally:
            session_done.set()
