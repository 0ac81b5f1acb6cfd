"""Tests for structured logging helpers."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

from notification_service.infra.logging import (
    ContextInjectingFilter,
    JSONFormatter,
    clear_log_context,
    configure_logging,
    get_lazy_logger,
    get_log_context,
    get_logger,
    set_log_context,
    shutdown,
)


@pytest.fixture(autouse=True)
def _reset_context() -> Iterator[None]:
    clear_log_context()
    yield
    clear_log_context()


def make_record(message: str = "hello", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("notifications.test", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
class TestLogContext:
    """Tests for ContextVar-based context propagation."""

    def test_set_and_get(self) -> None:
        set_log_context(tenant_id="acme")
        set_log_context(notification_id="n-1")

        assert get_log_context() == {"tenant_id": "acme", "notification_id": "n-1"}

    def test_filter_injects_without_overriding(self) -> None:
        set_log_context(tenant_id="acme", channel="email")
        record = make_record(channel="sms")

        assert ContextInjectingFilter().filter(record) is True
        assert record.tenant_id == "acme"
        assert record.channel == "sms"


@pytest.mark.unit
class TestJSONFormatter:
    """Tests for JSON Lines output."""

    def test_includes_core_fields_and_extras(self) -> None:
        record = make_record("Dispatch cycle finished", status="delivered")

        data = json.loads(JSONFormatter(static={"service": "notification-service"}).format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "notifications.test"
        assert data["message"] == "Dispatch cycle finished"
        assert data["status"] == "delivered"
        assert data["service"] == "notification-service"
        assert data["timestamp"].endswith("Z")
        assert "trace_id" not in data

    def test_exception_is_single_line(self) -> None:
        try:
            raise ValueError("bad\nthing")
        except ValueError:
            record = logging.LogRecord(
                "x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
            )

        output = JSONFormatter().format(record)

        assert "\n" not in output
        assert "ValueError" in json.loads(output)["exception"]


@pytest.mark.unit
class TestLoggers:
    """Tests for lazy and context-bound loggers."""

    def test_lazy_logger_skips_callable_when_disabled(self, caplog: pytest.LogCaptureFixture) -> None:
        calls: list[int] = []
        logger = get_lazy_logger("notifications.lazy")

        with caplog.at_level(logging.INFO, logger="notifications.lazy"):
            logger.debug(lambda: calls.append(1) or "expensive")

        assert calls == []

    def test_lazy_logger_evaluates_when_enabled(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = get_lazy_logger("notifications.lazy")

        with caplog.at_level(logging.DEBUG, logger="notifications.lazy"):
            logger.debug(lambda: "built message")

        assert "built message" in caplog.text

    def test_bound_logger_adds_fields(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = get_logger("notifications.bound", channel="webhook").bind(tenant_id="acme")

        with caplog.at_level(logging.INFO, logger="notifications.bound"):
            logger.info("Webhook delivered")

        record = caplog.records[-1]
        assert record.channel == "webhook"
        assert record.tenant_id == "acme"


@pytest.mark.unit
def test_configure_logging_writes_json_lines(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "notifications.jsonl"
    root = logging.getLogger()
    saved_level, saved_handlers = root.level, list(root.handlers)
    try:
        configure_logging(
            log_level="INFO",
            file_path=log_file,
            console_enabled=False,
            capture_warnings=False,
            logger_levels={"notifications.noisy": "ERROR"},
        )
        set_log_context(tenant_id="acme")
        logging.getLogger("notifications.dispatch").info("Dispatch cycle finished")
        logging.getLogger("notifications.noisy").warning("dropped")
        shutdown()
    finally:
        root.setLevel(saved_level)
        root.handlers = saved_handlers
        logging.getLogger("notifications.noisy").setLevel(logging.NOTSET)

    records = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]

    assert [record["message"] for record in records] == ["Dispatch cycle finished"]
    assert records[0]["tenant_id"] == "acme"
    assert records[0]["service"] == "notification-service"
