"""
ledger_engines.valuation.weighted_average -- receipt and issue costing under
the weighted-average policy.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Receipts are valued at qty x unit_cost unless an exact value is given.
    - An issue is valued at running_value_prev x qty / running_qty_prev,
      quantised once, so the average cost is unchanged by the issue and an
      issue of the whole balance takes exactly running_value_prev.
    - Decimal-only arithmetic.

Failure modes:
    - InvalidQuantityError: qty <= 0, unit_cost < 0, value < 0, or any of
      them finer than the 9-place storage precision.
    - InsufficientStockError: qty > running_qty_prev.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ledger_engines.tracer import traced_engine
from ledger_kernel.db.types import ZERO, fits_storage, quantize_amount
from ledger_kernel.domain.costing import BalanceSnapshot, average_cost
from ledger_kernel.exceptions import InsufficientStockError, InvalidQuantityError


@dataclass(frozen=True, slots=True)
class CostedMovement:
    """Quantity, unit cost and total value of one movement."""

    qty: Decimal
    unit_cost: Decimal
    value: Decimal


def validate_quantity(qty: Decimal) -> None:
    if qty <= ZERO:
        raise InvalidQuantityError("qty", qty, "must be greater than zero")
    _require_storage_precision("qty", qty)


def _require_storage_precision(field: str, amount: Decimal) -> None:
    if not fits_storage(amount):
        raise InvalidQuantityError(field, amount, "finer than 9 decimal places")


def cost_receipt(
    qty: Decimal,
    unit_cost: Decimal,
    value: Decimal | None = None,
) -> CostedMovement:
    """
    Value an IN movement.

    With an explicit ``value`` (transfers, finished-goods receipts) the
    unit cost is derived from it; otherwise value = qty x unit_cost.
    """
    validate_quantity(qty)
    if value is not None:
        if value < ZERO:
            raise InvalidQuantityError("value", value, "cannot be negative")
        _require_storage_precision("value", value)
        return CostedMovement(qty=qty, unit_cost=quantize_amount(value / qty), value=value)
    if unit_cost < ZERO:
        raise InvalidQuantityError("unit_cost", unit_cost, "cannot be negative")
    _require_storage_precision("unit_cost", unit_cost)
    return CostedMovement(
        qty=qty,
        unit_cost=quantize_amount(unit_cost),
        value=quantize_amount(qty * unit_cost),
    )


@traced_engine("weighted_average_issue", "1.0", fingerprint_fields=("snapshot", "qty"))
def weighted_average_issue(*, snapshot: BalanceSnapshot, qty: Decimal) -> CostedMovement:
    """
    Cost an OUT movement at the running average.

    Raises:
        InsufficientStockError: qty exceeds the running quantity.
    """
    validate_quantity(qty)
    if qty > snapshot.running_qty:
        raise InsufficientStockError(
            snapshot.item_id, snapshot.warehouse_id, snapshot.running_qty, qty
        )
    if qty == snapshot.running_qty:
        value = snapshot.running_value
    else:
        value = quantize_amount(snapshot.running_value * qty / snapshot.running_qty)
    return CostedMovement(qty=qty, unit_cost=average_cost(qty, value), value=value)
