"""
Structured JSON logging for the construction kernel.

Every record is one JSON object per line.  Operation-scoped fields bound
with ``LogContext.bind`` (project, actor, operation, scenario correlation)
are merged into each record.  A ``ProjectEvent`` passed as
``extra={"event": event}`` is flattened so ``event_type`` and ``sequence``
are first-class fields next to the event's payload.
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
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from construction_kernel.domain.records import ProjectEvent
from construction_kernel.exceptions import ConstructionKernelError

_LOGGER_PREFIX = "construction_kernel"

_CONTEXT_FIELDS: tuple[str, ...] = ("correlation_id", "project_id", "actor_id", "operation")

_context: ContextVar[dict[str, str] | None] = ContextVar("log_context", default=None)


class LogContext:
    """Context-local fields merged into every record."""

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get() or {})

    @staticmethod
    def clear() -> None:
        _context.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[None]:
        """Layer fields over the current context until the block exits.

        None values are skipped so an outer binding stays visible.
        """
        unknown = set(fields) - set(_CONTEXT_FIELDS)
        if unknown:
            raise ValueError(f"Unknown log context fields: {', '.join(sorted(unknown))}")
        merged = LogContext.get_all()
        merged.update({k: v for k, v in fields.items() if v is not None})
        token = _context.set(merged)
        try:
            yield
        finally:
            _context.reset(token)


# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _to_json(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    return str(obj)


def _event_fields(event: ProjectEvent) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "event_type": event.event_type.value,
        "sequence": event.sequence,
        "event_actor": event.actor,
    }
    if event.recorded_at is not None:
        fields["recorded_at"] = event.recorded_at
    for key, value in event.payload:
        fields.setdefault(key, value)
    return fields


def _error_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {"exc_type": type(exc).__name__, "exc_message": str(exc)}
    if isinstance(exc, ConstructionKernelError):
        fields["exc_code"] = exc.code
        for key, value in vars(exc).items():
            if not key.startswith("_"):
                fields[f"exc_{key}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())

        for key, value in vars(record).items():
            if key in _RECORD_ATTRS or key in payload:
                continue
            if isinstance(value, ProjectEvent):
                for name, field_value in _event_fields(value).items():
                    payload.setdefault(name, field_value)
            else:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_error_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json)


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the construction_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach one JSON handler to the construction_kernel logger (idempotent)."""
    global _configured
    if _configured:
        return
    _configured = True

    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.setLevel(level)
    root_logger.propagate = False

    h = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    h.setFormatter(StructuredFormatter())
    root_logger.addHandler(h)


def reset_logging() -> None:
    """Drop handlers and restore defaults. FOR TESTING ONLY."""
    global _configured
    _configured = False
    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.handlers.clear()
    root_logger.setLevel(logging.WARNING)
    root_logger.propagate = True
