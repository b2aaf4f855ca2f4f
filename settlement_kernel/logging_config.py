"""
settlement_kernel.logging_config -- One JSON line per settlement log record.

Responsibility:
    Render every record under the ``settlement_kernel`` logger as a single
    JSON object carrying the run context (batch id, correlation id), the
    ``extra=`` fields the engines attach (property_id, investor_id,
    counts, amounts) and, when an engine error is logged with
    ``exc_info``, its ``code`` and the investor or settings source it names.

Architecture position:
    Kernel -- imported by every other layer; imports nothing from them.

Usage:
    from settlement_kernel.logging_config import LogContext, get_logger

    logger = get_logger("engines.planner")
    with LogContext.bind(batch_id="2024-03"):
        logger.info("settlement_plan_started", extra={"investor_count": 4})
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

__all__ = [
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

_ROOT_LOGGER = "settlement_kernel"

# Run-scoped fields; a fresh dict is set on every change so tokens restore cleanly.
_CONTEXT_FIELDS = ("correlation_id", "batch_id")
_run_context: ContextVar[dict[str, str] | None] = ContextVar(
    "settlement_run_context", default=None
)

# Structured attributes of SettlementError subclasses copied as exc_<name>.
_ERROR_ATTRIBUTES = ("investor_id", "source", "reason")


class LogContext:
    """Batch and correlation ids merged into every record of a run."""

    @staticmethod
    def set(*, correlation_id: str | None = None, batch_id: str | None = None) -> None:
        """Set fields for the rest of the current context; None leaves a field as is."""
        updates = {
            name: value
            for name, value in (("correlation_id", correlation_id), ("batch_id", batch_id))
            if value is not None
        }
        if updates:
            _run_context.set({**LogContext.get_all(), **updates})

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_run_context.get() or {})

    @staticmethod
    def clear() -> None:
        _run_context.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[None]:
        """Set fields inside a ``with`` block and restore the outer values on exit."""
        unknown = sorted(set(fields) - set(_CONTEXT_FIELDS))
        if unknown:
            raise TypeError(f"Unknown log context fields: {unknown}")
        merged = {**LogContext.get_all(), **{k: v for k, v in fields.items() if v is not None}}
        token = _run_context.set(merged)
        try:
            yield
        finally:
            _run_context.reset(token)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


_RECORD_ATTRIBUTES = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


class StructuredFormatter(logging.Formatter):
    """JSON formatter; Decimal amounts are written as strings."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRIBUTES and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._error_fields(record))

        return json.dumps(payload, default=_json_default)

    def _error_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        for name in _ERROR_ATTRIBUTES:
            if hasattr(exc, name):
                fields[f"exc_{name}"] = getattr(exc, name)
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``settlement_kernel`` namespace."""
    return logging.getLogger(f"{_ROOT_LOGGER}.{name}")


_installed_handler: logging.Handler | None = None


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach the JSON handler; later calls are no-ops until ``reset_logging``."""
    global _installed_handler
    if _installed_handler is not None:
        return

    _installed_handler = handler or logging.StreamHandler(stream or sys.stderr)
    _installed_handler.setFormatter(StructuredFormatter())

    root = logging.getLogger(_ROOT_LOGGER)
    root.addHandler(_installed_handler)
    root.setLevel(level)
    root.propagate = False


def reset_logging() -> None:
    """Drop all handlers and return to stdlib defaults. Tests only."""
    global _installed_handler
    _installed_handler = None
    root = logging.getLogger(_ROOT_LOGGER)
    for h in list(root.handlers):
        root.removeHandler(h)
    root.setLevel(logging.NOTSET)
    root.propagate = True
