"""Tests for the structured logging system (ledger_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from ledger_kernel.exceptions import PeriodClosedError, StoreError
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
    configure_logging(level=logging.DEBUG, handler=logging.NullHandler())


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


def _parse_log(stream: StringIO) -> dict:
    return _parse_all_logs(stream)[0]


# ---------------------------------------------------------------------------
# StructuredFormatter
# ---------------------------------------------------------------------------


class TestStructuredFormatter:

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "ledger_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info(
            "journal_entry_created",
            extra={"entry_number": "42", "line_count": 2, "total": Decimal("150.00")},
        )

        record = _parse_log(stream)
        assert record["entry_number"] == "42"
        assert record["line_count"] == 2
        assert record["total"] == "150.00"

    def test_uuid_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        entry_id = uuid4()
        get_logger("test").info("x", extra={"entry_ref": entry_id})

        assert _parse_log(stream)["entry_ref"] == str(entry_id)

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(operation="create_entry", actor_id="actor-1")
        get_logger("test").info("in context")

        record = _parse_log(stream)
        assert record["operation"] == "create_entry"
        assert record["actor_id"] == "actor-1"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare")

        record = _parse_log(stream)
        assert "operation" not in record
        assert "correlation_id" not in record

    def test_ledger_error_fields_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise PeriodClosedError("p-1", "January 2024")
        except PeriodClosedError:
            get_logger("test").exception("rejected")

        record = _parse_log(stream)
        assert record["exc_type"] == "PeriodClosedError"
        assert record["exc_code"] == PeriodClosedError.code
        assert record["exc_period_id"] == "p-1"
        assert "traceback" in record

    def test_store_error_cause_stringified(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise StoreError("create_entry", RuntimeError("disk full"))
        except StoreError:
            get_logger("test").exception("store failure")

        record = _parse_log(stream)
        assert record["exc_code"] == StoreError.code
        assert record["exc_operation"] == "create_entry"
        assert "disk full" in record["exc_cause"]

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.DEBUG, handler=handler)
        logger = get_logger("test")
        logger.debug("one")
        logger.warning("two", extra={"detail": {"nested": [1, 2]}})
        logger.error("three")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["one", "two", "three"]


# ---------------------------------------------------------------------------
# LogContext
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_and_get(self):
        LogContext.set(correlation_id="abc", entry_id="e-1")
        assert LogContext.get_all() == {"correlation_id": "abc", "entry_id": "e-1"}

    def test_clear(self):
        LogContext.set(period_id="p-1")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_additive_set(self):
        LogContext.set(operation="void_entry")
        LogContext.set(actor_id="a-1")
        assert LogContext.get_all() == {"operation": "void_entry", "actor_id": "a-1"}

    def test_bind_restores_previous(self):
        LogContext.set(operation="outer")
        with LogContext.bind(operation="inner", entry_id=uuid4()):
            assert LogContext.get_all()["operation"] == "inner"
        assert LogContext.get_all() == {"operation": "outer"}

    def test_bind_skips_none(self):
        with LogContext.bind(operation="x", period_id=None):
            assert LogContext.get_all() == {"operation": "x"}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError, match="not_a_field"):
            LogContext.set(not_a_field="y")
        with pytest.raises(TypeError):
            with LogContext.bind(not_a_field="y"):
                pass

    def test_bind_restores_on_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(entry_id="e-1"):
                raise RuntimeError("boom")
        assert LogContext.get_all() == {}


# ---------------------------------------------------------------------------
# configure_logging
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        first, _ = _make_handler()
        second, _ = _make_handler()
        configure_logging(handler=first)
        configure_logging(handler=second)

        # pytest's logging plugin may attach its own capture handlers
        handlers = logging.getLogger("ledger_kernel").handlers
        structured = [h for h in handlers if isinstance(h.formatter, StructuredFormatter)]
        assert structured == [first]
        assert second not in handlers

    def test_reset_removes_only_installed_handler(self):
        foreign = logging.NullHandler()
        namespace = logging.getLogger("ledger_kernel")
        namespace.addHandler(foreign)
        try:
            installed, _ = _make_handler()
            configure_logging(handler=installed)
            reset_logging()

            assert installed not in namespace.handlers
            assert foreign in namespace.handlers
        finally:
            namespace.removeHandler(foreign)

    def test_does_not_propagate(self):
        configure_logging(handler=logging.NullHandler())
        assert logging.getLogger("ledger_kernel").propagate is False

    def test_level_applied(self):
        handler, stream = _make_handler()
        configure_logging(level="WARNING", handler=handler)
        logger = get_logger("test")
        logger.info("hidden")
        logger.warning("shown")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["shown"]

    def test_get_logger_returns_child(self):
        assert get_logger("services.journal").name == "ledger_kernel.services.journal"
