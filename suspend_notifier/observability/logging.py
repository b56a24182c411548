"""Structured logging configuration using structlog.

Every line is a JSON object on stderr carrying ``ts``, ``level``,
``component`` and ``service``. Client libraries that log through the
standard library (google-auth, grpc, kubernetes-asyncio) are capped at
WARNING and written to the same stream.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

SERVICE_NAME = "suspend-notifier"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_LIBRARY_LOGGERS = ("google", "grpc", "kubernetes_asyncio", "urllib3", "httpx")


def setup_logging(level: str = "info", stream: TextIO | None = None) -> None:
    """Configure structlog for JSON output to *stream* (stderr by default)."""
    log_level = _LEVELS.get(level.lower(), logging.INFO)
    out = stream or sys.stderr

    logging.basicConfig(stream=out, format="%(message)s", level=logging.WARNING, force=True)
    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.format_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=out),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service=SERVICE_NAME)


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound with a component name."""
    return structlog.get_logger(component=component)  # type: ignore[return-value]
