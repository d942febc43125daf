"""
Module: ledger_kernel.db.types
Responsibility: Annotated type aliases and utility functions for quantity and
    amount columns.  Centralizes precision, rounding and Decimal coercion so
    that every model, engine and service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, selectors/ and by ledger_engines.  MUST NOT import from any
    of those layers.

Invariants enforced:
    - No floats anywhere.  to_decimal() rejects float and bool inputs; every
      stored quantity, cost and value goes through quantize_amount().
    - AMOUNT_DECIMAL_PLACES is the canonical precision for quantities, unit
      costs, values and running balances.

Failure modes:
    - TypeError on float / bool / unsupported input to to_decimal().
    - ValueError on a non-numeric string passed to to_decimal().
    - fits_storage() is False for any amount finer than the storage precision;
      callers reject such input instead of letting the column round it.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated

from sqlalchemy import String

from ledger_kernel.db.base import STORAGE_DECIMAL_PLACES

# Stable external keys
ItemKey = Annotated[str, String(100)]
WarehouseKey = Annotated[str, String(100)]
AccountCode = Annotated[str, String(20)]
UserKey = Annotated[str, String(100)]
RefKey = Annotated[str, String(100)]


AMOUNT_DECIMAL_PLACES = STORAGE_DECIMAL_PLACES
DEFAULT_ROUNDING = ROUND_HALF_UP
ZERO = Decimal("0")

_AMOUNT_QUANTUM = Decimal(1).scaleb(-AMOUNT_DECIMAL_PLACES)


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Coerce a caller-supplied number to Decimal.

    Preconditions: value is a Decimal, int, or numeric string.
    Postconditions: Returns an equal Decimal (not rounded).

    Raises:
        TypeError: value is a float, bool, or other type.
        ValueError: value is a string that is not a number.
    """
    if isinstance(value, bool):
        raise TypeError("Booleans are not amounts")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation as exc:
            raise ValueError(f"Not a decimal number: {value!r}") from exc
    elif isinstance(value, float):
        raise TypeError(
            "Float amounts are not allowed; pass Decimal or a string"
        )
    else:
        raise TypeError(f"Cannot convert {type(value).__name__} to Decimal")
    if not result.is_finite():
        raise ValueError(f"Amount must be finite, got {value!r}")
    return result


def quantize_amount(value: Decimal) -> Decimal:
    """
    Round a quantity, cost or value to the storage precision.

    This is the only sanctioned rounding function for ledger amounts.
    """
    return value.quantize(_AMOUNT_QUANTUM, rounding=DEFAULT_ROUNDING)


def fits_storage(value: Decimal) -> bool:
    """True when ``value`` survives storage unchanged (at most 9 places)."""
    return quantize_amount(value) == value


def round_money(value: Decimal, decimal_places: int = 2) -> Decimal:
    """Round for display or reporting; never used on stored amounts."""
    return value.quantize(Decimal(1).scaleb(-decimal_places), rounding=DEFAULT_ROUNDING)
