"""Tests for the logging infrastructure."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from notify_service.infra.logging import (
    ContextInjectingFilter,
    JSONFormatter,
    clear_log_context,
    get_lazy_logger,
    set_log_context,
)


def _record(msg: str = "Retry sweep finished", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="notify_service.features.notifications.retry",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def _clean_context():
    clear_log_context()
    yield
    clear_log_context()


@pytest.mark.unit
class TestJSONFormatter:
    def test_formats_one_json_object_with_extras(self):
        formatter = JSONFormatter(static={"service": "notify-service"})

        payload = json.loads(formatter.format(_record(claimed=3)))

        assert payload["level"] == "INFO"
        assert payload["message"] == "Retry sweep finished"
        assert payload["service"] == "notify-service"
        assert payload["claimed"] == 3
        assert payload["timestamp"].endswith("Z")

    def test_exception_stays_on_one_line(self):
        formatter = JSONFormatter()
        try:
            raise ValueError("gateway unavailable")
        except ValueError:
            record = _record()
            record.exc_info = sys.exc_info()

        output = formatter.format(record)

        assert "\n" not in output
        assert "gateway unavailable" in json.loads(output)["exception"]


@pytest.mark.unit
class TestContextInjectingFilter:
    def test_copies_context_onto_record(self):
        set_log_context(sweep="digest", tenant_id="acme")
        record = _record()

        assert ContextInjectingFilter().filter(record) is True
        assert record.sweep == "digest"
        assert record.tenant_id == "acme"

    def test_does_not_overwrite_record_attributes(self):
        set_log_context(sweep="digest")
        record = _record(sweep="retry")

        ContextInjectingFilter().filter(record)

        assert record.sweep == "retry"

    def test_clear_drops_fields(self):
        set_log_context(sweep="digest")
        clear_log_context()
        record = _record()

        ContextInjectingFilter().filter(record)

        assert not hasattr(record, "sweep")


@pytest.mark.unit
class TestLazyLogger:
    def test_callable_not_evaluated_when_disabled(self):
        logger = get_lazy_logger("tests.lazy.disabled")
        logger.logger.setLevel(logging.INFO)
        calls: list[str] = []

        logger.debug(lambda: calls.append("evaluated") or "expensive")

        assert calls == []

    def test_callable_evaluated_when_enabled(self, caplog):
        logger = get_lazy_logger("tests.lazy.enabled", sweep="retry")

        with caplog.at_level(logging.DEBUG, logger="tests.lazy.enabled"):
            logger.debug(lambda: "Routes: 2")

        assert caplog.records[-1].getMessage() == "Routes: 2"
        assert caplog.records[-1].sweep == "retry"
