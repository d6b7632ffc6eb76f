"""
Structured JSON logging for the bill engine.

Every record under the ``household_bills`` logger namespace is written as one
JSON object per line.  Request-scoped identifiers (correlation, actor, series,
budget) live in ``LogContext`` and are merged into each line; anything passed
via ``extra=`` becomes a top-level key.  ``BillEngineError`` fields are
flattened into ``exc_*`` keys so failures stay machine-searchable.
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
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------

_context: ContextVar[dict[str, str]] = ContextVar("household_bills_log_context")


class LogContext:
    """
    Request-scoped log fields, safe across threads and asyncio tasks.

    Only the names in ``FIELDS`` are carried; values are stored as strings so
    UUIDs can be bound directly.
    """

    FIELDS = ("correlation_id", "actor_id", "series_id", "budget_id")

    @classmethod
    def set(
        cls,
        *,
        correlation_id: str | None = None,
        actor_id: str | None = None,
        series_id: str | None = None,
        budget_id: str | None = None,
    ) -> None:
        """Set context fields. ``None`` leaves a field unchanged."""
        updates = {
            "correlation_id": correlation_id,
            "actor_id": actor_id,
            "series_id": series_id,
            "budget_id": budget_id,
        }
        _context.set(cls._merged(updates))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get({}))

    @classmethod
    def clear(cls) -> None:
        _context.set({})

    @classmethod
    def bind(cls, **fields: Any) -> "_BoundContext":
        """
        Context manager: set ``fields`` on entry, restore the previous
        context on exit.  Unknown names and ``None`` values are ignored.
        """
        return _BoundContext(fields)

    @classmethod
    def _merged(cls, updates: dict[str, Any]) -> dict[str, str]:
        current = dict(_context.get({}))
        for name, value in updates.items():
            if name in cls.FIELDS and value is not None:
                current[name] = str(value)
        return current


class _BoundContext:
    def __init__(self, fields: dict[str, Any]):
        self._fields = fields
        self._token = None

    def __enter__(self) -> type[LogContext]:
        self._token = _context.set(LogContext._merged(self._fields))
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        _context.reset(self._token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_RESERVED: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _to_json(obj: Any) -> Any:
    """Fallback serializer for domain values found in log payloads."""
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if not name.startswith("_"):
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: envelope, context, extras, exception."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }

        for key, value in vars(record).items():
            if key not in _RESERVED:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json)


# ---------------------------------------------------------------------------
# Logger factory and initialization
# ---------------------------------------------------------------------------

_NAMESPACE = "household_bills"

_configured = False
_lock = threading.Lock()


def get_logger(name: str) -> logging.Logger:
    """Logger ``household_bills.<name>``."""
    return logging.getLogger(f"{_NAMESPACE}.{name}")


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the ``household_bills`` logger.

    Idempotent: only the first call in a process (or after
    ``reset_logging``) has any effect.  Records do not propagate to the
    root logger.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())

    root = logging.getLogger(_NAMESPACE)
    root.setLevel(level)
    root.propagate = False
    root.addHandler(handler)


def reset_logging() -> None:
    """Drop handlers and allow reconfiguration. FOR TESTING ONLY."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_NAMESPACE)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
