"""
ledger_engines.tracer -- LEDGER_ENGINE_TRACE records for costing calculations.

Responsibility:
    ``@traced_engine`` logs one record per successful call of a pure
    costing or aging calculation: engine name and version, the stock key
    when the call names one, a fingerprint of the inputs, the value it
    produced and how long it took.  Two calls with the same fingerprint
    and version must produce the same value; the record lets an auditor
    check that after the fact.

Architecture position:
    Engines -- support for the pure calculation layer.  Logging is the only
    side effect.

Failure modes:
    - A call that raises emits no trace; the exception propagates.
    - Fingerprint fields missing from the call are hashed as "null".

Usage:
    @traced_engine("fifo_issue", "1.0", fingerprint_fields=("lots", "qty"))
    def consume_fifo(*, item_id, warehouse_id, lots, qty):
        ...
"""

from __future__ import annotations

import functools
import hashlib
import time
from collections.abc import Callable, Mapping
from dataclasses import fields, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.tracer")

TRACE_MESSAGE = "LEDGER_ENGINE_TRACE"


def _canonicalize(value: Any) -> str:
    """Order-stable text form; Decimals compare by value (5 == 5.000)."""
    if value is None:
        return "null"
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        value = {f.name: getattr(value, f.name) for f in fields(value)}
    if isinstance(value, Mapping):
        return "{" + ",".join(
            f"{key}:{_canonicalize(value[key])}" for key in sorted(value)
        ) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(item) for item in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: Mapping[str, Any],
) -> str:
    """First 16 hex chars of SHA-256 over the named keyword arguments."""
    canonical = "|".join(
        f"{name}={_canonicalize(kwargs.get(name))}" for name in fingerprint_fields
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def _result_value(result: Any) -> str | None:
    value = getattr(result, "value", None)
    return str(value) if isinstance(value, Decimal) else None


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Wrap a keyword-argument engine function with a trace record."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = (
                compute_input_fingerprint(fingerprint_fields, kwargs)
                if fingerprint_fields
                else ""
            )
            started = time.perf_counter()
            result = func(*args, **kwargs)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 3)

            snapshot = kwargs.get("snapshot")
            logger.info(
                TRACE_MESSAGE,
                extra={
                    "trace_type": TRACE_MESSAGE,
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "function": func.__qualname__,
                    "item_id": kwargs.get("item_id", getattr(snapshot, "item_id", None)),
                    "warehouse_id": kwargs.get(
                        "warehouse_id", getattr(snapshot, "warehouse_id", None)
                    ),
                    "input_fingerprint": fingerprint,
                    "result_value": _result_value(result),
                    "duration_ms": elapsed_ms,
                },
            )
            return result

        return wrapper

    return decorator
