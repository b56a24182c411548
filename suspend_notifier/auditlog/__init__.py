"""Audit log tailing for suspend-notifier.

Submodules:
    limiter -- Token bucket throttling stream reconnects.
    tail    -- AuditLogTailer: filtered TailLogEntries sessions with a
               classify-and-restart loop.
"""

from suspend_notifier.auditlog.limiter import TokenBucket
from suspend_notifier.auditlog.tail import (
    AuditLogCallback,
    AuditLogTailer,
    AuditLogTailError,
    CallbackError,
    RestartPolicy,
    StreamOpenError,
    build_filter,
    classify_stream_error,
    decode_entry,
)

__all__ = [
    "AuditLogCallback",
    "AuditLogTailError",
    "AuditLogTailer",
    "CallbackError",
    "RestartPolicy",
    "StreamOpenError",
    "TokenBucket",
    "build_filter",
    "classify_stream_error",
    "decode_entry",
]
