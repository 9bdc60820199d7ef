"""Tests for the structured logging system (ledger_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite configuration."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    """Parse all JSON log lines from a stream."""
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "ledger_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("period_closed", extra={"entry_count": 42, "period_name": "January 2025"})

        record = _parse_log(stream)
        assert record["entry_count"] == 42
        assert record["period_name"] == "January 2025"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(correlation_id="abc-123", period_id="per-456")
        logger.info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["period_id"] == "per-456"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_ledger_exception_code_extracted(self):
        """Ledger kernel exceptions carry .code and structured attributes."""
        from ledger_kernel.exceptions import PeriodClosedError

        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")

        try:
            raise PeriodClosedError("January 2025", "closed", "2025-01-15")
        except PeriodClosedError:
            logger.error("period_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "PERIOD_CLOSED"
        assert record["exc_type"] == "PeriodClosedError"
        assert record["exc_period_name"] == "January 2025"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "period_id" not in record

    def test_uuid_and_decimal_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        uid = uuid4()
        logger.info("with_values", extra={"closure_id": uid, "difference": Decimal("5.00")})

        record = _parse_log(stream)
        assert record["closure_id"] == str(uid)
        assert record["difference"] == "5.00"

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # default level is INFO, so the debug line is dropped
        assert len(logs) == 2
        for record in logs:
            assert "ts" in record
            assert "level" in record
            assert "logger" in record
            assert "message" in record


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", company_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "company_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner"):
            assert LogContext.get_all()["correlation_id"] == "inner"
        assert LogContext.get_all()["correlation_id"] == "outer"

    def test_bind_restores_none(self):
        """bind() restores to None if there was no previous value."""
        assert "period_id" not in LogContext.get_all()
        with LogContext.bind(period_id=uuid4()):
            assert "period_id" in LogContext.get_all()
        assert "period_id" not in LogContext.get_all()

    def test_bind_skips_none_values(self):
        with LogContext.bind(actor_id="a", company_id=None):
            assert LogContext.get_all() == {"actor_id": "a"}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            actor_id="a",
            company_id="co",
            period_id="p",
            entry_id="n",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 5
        assert ctx["entry_id"] == "n"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op
        root = logging.getLogger("ledger_kernel")
        assert root.handlers == [h1]

    def test_reset_detaches_every_handler(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        logging.getLogger("ledger_kernel").addHandler(logging.NullHandler())

        reset_logging()

        assert logging.getLogger("ledger_kernel").handlers == []

    def test_get_logger_returns_child(self):
        logger = get_logger("services.period_close")
        assert logger.name == "ledger_kernel.services.period_close"

    def test_logger_hierarchy(self):
        """Child loggers inherit the ledger_kernel root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        child = get_logger("deep.nested.module")
        child.debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "ledger_kernel.deep.nested.module"


# ---------------------------------------------------------------------------
# Close workflow log trail
# ---------------------------------------------------------------------------


class TestCloseLogTrail:
    """The close workflow logs one correlated trail per call."""

    def test_close_events_share_correlation_id(
        self, close_service, clean_january, january, test_actor_id,
    ):
        handler, stream = _make_handler()
        # The engine fixture already configured stderr output; replace it.
        reset_logging()
        configure_logging(handler=handler, level=logging.DEBUG)

        close_service.close_period(january.id, test_actor_id)

        logs = _parse_all_logs(stream)
        messages = [r["message"] for r in logs]
        assert messages.index("period_close_started") < messages.index("period_closed")
        assert "close_validation_passed" in messages
        assert "LEDGER_ENGINE_TRACE" in messages

        trail = [r for r in logs if r["message"] in ("period_close_started", "period_closed")]
        assert len({r["correlation_id"] for r in trail}) == 1
        assert all(r["period_id"] == str(january.id) for r in trail)
        assert all(r["company_id"] == str(january.company_id) for r in trail)
        assert all(r["actor_id"] == str(test_actor_id) for r in trail)
