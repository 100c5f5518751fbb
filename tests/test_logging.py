"""Tests for the structured logging system (voicecraft_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from voicecraft_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


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
        assert record["logger"] == "voicecraft_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("ledger_entry_recorded", extra={"account_seq": 42, "reason": "REFUND"})

        record = _parse_log(stream)
        assert record["account_seq"] == 42
        assert record["reason"] == "REFUND"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(correlation_id="abc-123", project_id="prj-456")
        logger.info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["project_id"] == "prj-456"

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

    def test_kernel_exception_code_extracted(self):
        """Kernel exceptions carry a .code attribute and structured fields."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from voicecraft_kernel.exceptions import InsufficientBalanceError

        account_id = uuid4()
        try:
            raise InsufficientBalanceError(account_id, required=500, available=120)
        except InsufficientBalanceError:
            logger.error("debit_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "INSUFFICIENT_BALANCE"
        assert record["exc_type"] == "InsufficientBalanceError"
        assert record["exc_account_id"] == str(account_id)
        assert record["exc_required"] == 500
        assert record["exc_shortfall"] == 380

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "project_id" not in record

    def test_uuid_and_decimal_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        uid = uuid4()
        logger.info("with_uuid", extra={"entry_id": uid, "estimated_cost": Decimal("12.50")})

        record = _parse_log(stream)
        assert record["entry_id"] == str(uid)
        assert record["estimated_cost"] == "12.50"

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
        LogContext.set(correlation_id="x", project_id="y")
        ctx = LogContext.get_all()
        assert ctx == {"correlation_id": "x", "project_id": "y"}

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
        assert "correlation_id" not in LogContext.get_all()
        with LogContext.bind(correlation_id="temp"):
            assert LogContext.get_all()["correlation_id"] == "temp"
        assert "correlation_id" not in LogContext.get_all()

    def test_bind_skips_none_values(self):
        with LogContext.bind(correlation_id="c", project_id=None):
            assert "project_id" not in LogContext.get_all()

    def test_additive_set(self):
        LogContext.set(correlation_id="a")
        LogContext.set(actor_id="b")
        ctx = LogContext.get_all()
        assert ctx["correlation_id"] == "a"
        assert ctx["actor_id"] == "b"

    def test_all_fields(self):
        project_id = uuid4()
        LogContext.set(
            correlation_id="c",
            project_id=project_id,
            actor_id="a",
            action="accept_estimate",
        )
        assert LogContext.get_all() == {
            "correlation_id": "c",
            "project_id": str(project_id),
            "actor_id": "a",
            "action": "accept_estimate",
        }

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError, match="account_id"):
            LogContext.set(account_id="acc")
        with pytest.raises(TypeError):
            with LogContext.bind(entry_id="e"):
                pass
        assert LogContext.get_all() == {}


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        assert configure_logging(handler=h2) is h1
        root = logging.getLogger("voicecraft_kernel")
        assert root.handlers.count(h1) == 1
        assert h2 not in root.handlers

    def test_reset_removes_only_the_json_handler(self):
        other = logging.NullHandler()
        root = logging.getLogger("voicecraft_kernel")
        root.addHandler(other)
        try:
            installed = configure_logging(stream=StringIO())
            reset_logging()
            assert installed not in root.handlers
            assert other in root.handlers
            assert root.propagate
        finally:
            root.removeHandler(other)

    def test_get_logger_returns_child(self):
        logger = get_logger("services.ledger")
        assert logger.name == "voicecraft_kernel.services.ledger"

    def test_logger_hierarchy(self):
        """Child loggers inherit the voicecraft_kernel root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        child = get_logger("deep.nested.module")
        child.debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "voicecraft_kernel.deep.nested.module"

    def test_level_accepts_name(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level="WARNING")
        logger = get_logger("test")
        logger.info("dropped")
        logger.warning("kept")

        logs = _parse_all_logs(stream)
        assert [r["message"] for r in logs] == ["kept"]
