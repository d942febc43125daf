"""
ledger_engines.valuation.cost_layers -- FIFO consumption of open lots.

Responsibility:
    Given the open lots for a key (oldest first) and an issue quantity,
    decide how much to take from each lot and what it costs.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The persisted lot queue
    is read and decremented by ``ValuedLedgerStore``.

Invariants enforced:
    - Lots are consumed in (received_at, lot_seq) order.
    - A lot that is fully drained contributes its exact remaining_value; a
      partial draw contributes quantize(qty x unit_cost).
    - sum(draw.qty) == qty.

Failure modes:
    - InsufficientStockError: open lots hold less than qty.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from ledger_engines.tracer import traced_engine
from ledger_engines.valuation.weighted_average import validate_quantity
from ledger_kernel.db.types import ZERO, quantize_amount
from ledger_kernel.exceptions import InsufficientStockError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.valuation.cost_layers")


@dataclass(frozen=True, slots=True)
class OpenLot:
    """Read-only view of one open lot."""

    lot_id: UUID
    lot_seq: int
    received_at: datetime
    unit_cost: Decimal
    remaining_qty: Decimal
    remaining_value: Decimal


@dataclass(frozen=True, slots=True)
class LotDraw:
    """Quantity and value taken from one lot."""

    lot_id: UUID
    lot_seq: int
    qty: Decimal
    value: Decimal
    unit_cost: Decimal
    exhausts_lot: bool


@dataclass(frozen=True, slots=True)
class FifoIssue:
    """Cost of an issue drawn across one or more lots."""

    qty: Decimal
    value: Decimal
    unit_cost: Decimal
    draws: tuple[LotDraw, ...]

    @property
    def lots_touched(self) -> int:
        return len(self.draws)


def plan_draws(lots: Sequence[OpenLot], qty: Decimal) -> tuple[LotDraw, ...]:
    """
    Oldest-first draws totalling ``qty``.

    Caller has checked that the lots hold at least ``qty``.
    """
    ordered = sorted(lots, key=lambda lot: (lot.received_at, lot.lot_seq))
    draws = []
    outstanding = qty
    for lot in ordered:
        if outstanding <= ZERO:
            break
        if lot.remaining_qty <= ZERO:
            continue
        take = min(lot.remaining_qty, outstanding)
        exhausts = take == lot.remaining_qty
        value = lot.remaining_value if exhausts else quantize_amount(take * lot.unit_cost)
        draws.append(
            LotDraw(
                lot_id=lot.lot_id,
                lot_seq=lot.lot_seq,
                qty=take,
                value=value,
                unit_cost=lot.unit_cost,
                exhausts_lot=exhausts,
            )
        )
        outstanding -= take
    return tuple(draws)


@traced_engine("fifo_issue", "1.0", fingerprint_fields=("item_id", "warehouse_id", "lots", "qty"))
def consume_fifo(
    *,
    item_id: str,
    warehouse_id: str,
    lots: Sequence[OpenLot],
    qty: Decimal,
) -> FifoIssue:
    """
    Cost an issue of ``qty`` against the open lots.

    Raises:
        InsufficientStockError: the lots hold less than ``qty``.
    """
    validate_quantity(qty)
    available = sum((lot.remaining_qty for lot in lots), ZERO)
    if qty > available:
        raise InsufficientStockError(item_id, warehouse_id, available, qty)

    draws = plan_draws(lots, qty)
    value = quantize_amount(sum((draw.value for draw in draws), ZERO))
    logger.debug(
        "fifo_issue_costed",
        extra={
            "item_id": item_id,
            "warehouse_id": warehouse_id,
            "qty": str(qty),
            "value": str(value),
            "lots_touched": len(draws),
        },
    )
    return FifoIssue(
        qty=qty,
        value=value,
        unit_cost=quantize_amount(value / qty),
        draws=draws,
    )
