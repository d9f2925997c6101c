"""
Structured JSON logging for the production kernel.

Every record leaves as one JSON line carrying:
    - ``ts``, ``level``, ``logger``, ``message``
    - the operation context bound through ``LogContext`` (order, article,
      floor, actor, correlation id)
    - any ``extra={...}`` fields passed by the caller
    - for exceptions: type, message, the kernel error ``code`` and every
      public attribute of the error as ``exc_<name>``

The context lives in a single ContextVar, so it follows the thread (and
the asyncio task) that bound it and never leaks across article workers.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

_LOGGER_PREFIX = "production_kernel"

# ---------------------------------------------------------------------------
# Operation context
# ---------------------------------------------------------------------------

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "order_id",
    "article_id",
    "floor",
    "actor_id",
)

_context: ContextVar[dict[str, str]] = ContextVar("production_kernel_log_context")


def _merged(fields: dict[str, Any]) -> dict[str, str]:
    current = dict(_context.get({}))
    for name, value in fields.items():
        if name in CONTEXT_FIELDS and value is not None:
            current[name] = str(value)
    return current


class LogContext:
    """Operation-scoped log fields, isolated per thread and per task."""

    @staticmethod
    def set(**fields: Any) -> None:
        """Set context fields.  ``None`` values leave the field untouched."""
        _context.set(_merged(fields))

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get({}))

    @staticmethod
    def clear() -> None:
        _context.set({})

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[type["LogContext"]]:
        """Set fields for the duration of a ``with`` block, then restore."""
        token = _context.set(_merged(fields))
        try:
            yield LogContext
        finally:
            _context.reset(token)


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

_RESERVED: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _to_json(value: Any) -> Any:
    match value:
        case UUID():
            return str(value)
        case datetime():
            return value.isoformat()
        case Enum():
            return value.value
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if name.startswith("_") or name in ("args", "code"):
            continue
        fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for name, value in vars(record).items():
            if name not in _RESERVED:
                line.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            line.update(_exception_fields(record.exc_info[1]))
            line["traceback"] = self.formatException(record.exc_info)

        return json.dumps(line, default=_to_json)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``production_kernel`` hierarchy."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_setup_lock = threading.Lock()
_handler_installed = False


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the ``production_kernel`` logger.

    Repeated calls are no-ops until ``reset_logging()``; the first caller
    (application entry point or test session) decides level and target.
    """
    global _handler_installed
    with _setup_lock:
        if _handler_installed:
            return
        _handler_installed = True

    target = handler or logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    kernel_logger = logging.getLogger(_LOGGER_PREFIX)
    kernel_logger.setLevel(level)
    kernel_logger.propagate = False
    kernel_logger.addHandler(target)


def reset_logging() -> None:
    """Remove the kernel handler so ``configure_logging`` applies again.  Tests only."""
    global _handler_installed
    with _setup_lock:
        _handler_installed = False
    kernel_logger = logging.getLogger(_LOGGER_PREFIX)
    kernel_logger.handlers.clear()
    kernel_logger.setLevel(logging.WARNING)
