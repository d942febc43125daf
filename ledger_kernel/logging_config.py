"""
Structured JSON logging for the ledger kernel.

Every ledger log line is one JSON object: timestamp, level, logger and the
snake_case event name as ``message``, followed by the request-scoped
context (actor, business reference, journal, ledger entry) and whatever
the call site passed in ``extra``.  Typed kernel exceptions contribute
their ``code`` and structured attributes as ``exc_*`` fields.
"""

__all__ = [
    "CONTEXT_FIELDS",
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
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "actor_id",
    "ref_type",
    "ref_id",
    "journal_id",
    "entry_id",
)

_CONTEXT: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"ledger_log_{name}", default=None) for name in CONTEXT_FIELDS
}


class LogContext:
    """
    Request-scoped log fields, safe across threads and asyncio tasks.

    Each field lives in its own ContextVar, so worker threads started by
    the concurrency tests never see each other's actor or reference.
    """

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Set context fields.  None leaves a field unchanged."""
        unknown = set(fields) - set(CONTEXT_FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context fields: {sorted(unknown)}")
        for name, value in fields.items():
            if value is not None:
                _CONTEXT[name].set(str(value))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        """The fields currently set, in declaration order."""
        return {
            name: value
            for name in CONTEXT_FIELDS
            if (value := _CONTEXT[name].get()) is not None
        }

    @classmethod
    def clear(cls) -> None:
        for var in _CONTEXT.values():
            var.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[type["LogContext"]]:
        """
        Set fields for the duration of a block, restoring previous values.

        None values and names outside CONTEXT_FIELDS are ignored, so callers
        can pass optional identifiers straight through.
        """
        tokens = [
            (_CONTEXT[name], _CONTEXT[name].set(str(value)))
            for name, value in fields.items()
            if value is not None and name in _CONTEXT
        ]
        try:
            yield cls
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_RESERVED_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
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
        if not name.startswith("_") and name != "code":
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record.  Context fields win over ``extra`` keys."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for name, value in vars(record).items():
            if name not in _RESERVED_ATTRS:
                payload.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Logger factory and initialization
# ---------------------------------------------------------------------------

ROOT_LOGGER = "ledger_kernel"

_configured = False
_lock = threading.Lock()


def get_logger(name: str) -> logging.Logger:
    """Logger under the ledger_kernel namespace, e.g. ``services.journal_poster``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach one JSON handler to the ledger_kernel logger.  Idempotent."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    root.propagate = False

    target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    root.addHandler(target)


def reset_logging() -> None:
    """Undo configure_logging.  Tests only."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(ROOT_LOGGER)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
