"""
ledger_kernel.logging_config -- structured JSON logging.

Every record under the ``ledger_kernel`` logger is written as one JSON
object per line:

    ts, level, logger, message    always present
    LogContext fields             correlation_id, actor_id, operation,
                                  entry_id, period_id (when bound)
    extra fields                  whatever the call passed in ``extra``
    exc_* fields, traceback       when the record carries an exception;
                                  ``exc_code`` plus the structured
                                  attributes of LedgerKernelError subclasses

Usage:
    logger = get_logger("services.journal")
    with LogContext.bind(entry_id=entry.id, actor_id=actor_id):
        logger.info("journal_entry_approved", extra={"entry_number": "42"})
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from typing import Any

__all__ = [
    "LOGGER_NAMESPACE",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

LOGGER_NAMESPACE = "ledger_kernel"

CONTEXT_FIELDS = ("correlation_id", "actor_id", "operation", "entry_id", "period_id")

_context_vars: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"ledger_log_{name}", default=None) for name in CONTEXT_FIELDS
}


def _check_fields(fields: dict[str, Any]) -> None:
    unknown = sorted(set(fields) - set(_context_vars))
    if unknown:
        raise TypeError(f"unknown log context field(s): {', '.join(unknown)}")


class LogContext:
    """
    Fields merged into every log record of the current thread or task.

    Values are stored as strings; ``None`` leaves a field untouched.
    """

    @staticmethod
    def set(**fields: Any) -> None:
        _check_fields(fields)
        for name, value in fields.items():
            if value is not None:
                _context_vars[name].set(str(value))

    @staticmethod
    def get_all() -> dict[str, str]:
        values = {name: var.get() for name, var in _context_vars.items()}
        return {name: value for name, value in values.items() if value is not None}

    @staticmethod
    def clear() -> None:
        for var in _context_vars.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Set fields for the duration of the block, then restore them."""
        _check_fields(fields)
        tokens = [
            (_context_vars[name], _context_vars[name].set(str(value)))
            for name, value in fields.items()
            if value is not None
        ]
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

_RECORD_ATTRIBUTES = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "taskName",
}


def _to_json(value: Any) -> Any:
    # UUID, Decimal and exception causes all render through str()
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for key, value in vars(exc).items():
        if not key.startswith("_"):
            fields[f"exc_{key}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record. Context fields win over same-named extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRIBUTES:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

_lock = threading.Lock()
_installed_handler: logging.Handler | None = None


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Install one JSON handler on the ``ledger_kernel`` logger.

    Only the first call has an effect until reset_logging().  Records do
    not propagate to the root logger.
    """
    global _installed_handler
    with _lock:
        if _installed_handler is not None:
            return
        if handler is None:
            handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(StructuredFormatter())

        namespace = logging.getLogger(LOGGER_NAMESPACE)
        namespace.addHandler(handler)
        namespace.setLevel(level)
        namespace.propagate = False
        _installed_handler = handler


def reset_logging() -> None:
    """Remove the installed handler so configure_logging() applies again. Tests only."""
    global _installed_handler
    with _lock:
        namespace = logging.getLogger(LOGGER_NAMESPACE)
        if _installed_handler is not None:
            namespace.removeHandler(_installed_handler)
            _installed_handler = None
        namespace.setLevel(logging.NOTSET)
        namespace.propagate = True
