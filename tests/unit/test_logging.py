"""Unit tests for structured logging setup."""

from __future__ import annotations

import io
import json
from collections.abc import Iterator

import pytest
import structlog

from suspend_notifier.observability.logging import get_logger, setup_logging


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


class TestSetupLogging:
    def test_emits_json_lines(self) -> None:
        buf = io.StringIO()
        setup_logging("info", stream=buf)

        get_logger("auditlog.tail").warning("audit_stream_terminated", policy="throttled")

        record = json.loads(buf.getvalue().splitlines()[-1])
        assert record["event"] == "audit_stream_terminated"
        assert record["level"] == "warning"
        assert record["component"] == "auditlog.tail"
        assert record["service"] == "suspend-notifier"
        assert record["policy"] == "throttled"
        assert "ts" in record

    def test_level_filters_lower_events(self) -> None:
        buf = io.StringIO()
        setup_logging("warning", stream=buf)

        log = get_logger("watcher")
        log.info("initialized")
        log.error("watcher terminated")

        events = [json.loads(line)["event"] for line in buf.getvalue().splitlines()]
        assert events == ["watcher terminated"]

    def test_unknown_level_falls_back_to_info(self) -> None:
        buf = io.StringIO()
        setup_logging("chatty", stream=buf)

        log = get_logger("watcher")
        log.debug("hidden")
        log.info("shown")

        events = [json.loads(line)["event"] for line in buf.getvalue().splitlines()]
        assert events == ["shown"]
