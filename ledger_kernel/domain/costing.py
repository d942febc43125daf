"""
Costing -- policy, movement and running-balance value types.

Responsibility:
    Declares the enums shared by the stock ledger (direction, reference
    type, item type, costing method), the explicit ``CostingPolicy`` passed
    to the costing engine on every call, the ``BalanceSnapshot`` read under
    the per-key lock, and the running-balance arithmetic used by
    ``ValuedLedgerStore.append``.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Running-balance continuity: ``next_running_balance`` is the single place
      where a new snapshot is derived from the previous one.
    - Non-negative stock: ``next_running_balance`` refuses a negative result.
    - Average cost is ``running_value / running_qty`` (9 places) when the
      quantity is positive, else zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.db.types import ZERO, quantize_amount
from ledger_kernel.domain.values import Money, Quantity


class CostingMethod(str, Enum):
    """Costing method applied to a movement."""

    WEIGHTED_AVG = "WEIGHTED_AVG"
    FIFO = "FIFO"


class ItemCostingMethod(str, Enum):
    """Costing method configured on an item; GLOBAL defers to the default."""

    WEIGHTED_AVG = "WEIGHTED_AVG"
    FIFO = "FIFO"
    GLOBAL = "GLOBAL"


class Direction(str, Enum):
    IN = "IN"
    OUT = "OUT"


class RefType(str, Enum):
    """Business event that originated a stock movement."""

    PURCHASE = "PURCHASE"
    PRODUCTION = "PRODUCTION"
    SALE = "SALE"
    ADJUSTMENT = "ADJUSTMENT"
    TRANSFER = "TRANSFER"
    OPENING_BALANCE = "OPENING_BALANCE"


class ItemType(str, Enum):
    RAW_MATERIAL = "RAW_MATERIAL"
    WIP = "WIP"
    FINISHED_GOOD = "FINISHED_GOOD"
    CONSUMABLE = "CONSUMABLE"


@dataclass(frozen=True, slots=True)
class CostingPolicy:
    """
    Costing policy in force for one engine call.

    Contract:
        Resolved by the caller (item setting or system default) and passed
        explicitly; the engine never reads ambient settings mid-calculation.
    """

    method: CostingMethod
    source: str = "explicit"

    @classmethod
    def weighted_average(cls, source: str = "explicit") -> CostingPolicy:
        return cls(method=CostingMethod.WEIGHTED_AVG, source=source)

    @classmethod
    def fifo(cls, source: str = "explicit") -> CostingPolicy:
        return cls(method=CostingMethod.FIFO, source=source)

    @property
    def is_fifo(self) -> bool:
        return self.method == CostingMethod.FIFO


@dataclass(frozen=True, slots=True)
class RunningBalance:
    """Quantity / value / average-cost snapshot after an entry."""

    qty: Decimal
    value: Decimal
    avg_cost: Decimal


@dataclass(frozen=True, slots=True)
class BalanceSnapshot:
    """
    Latest running balance for one (item, warehouse) key.

    ``seq`` is the key sequence of the latest entry (0 when the key has no
    entries); ``posted_at`` is that entry's timestamp and
    ``costing_method`` the method it was booked under.
    """

    item_id: str
    warehouse_id: str
    seq: int
    running_qty: Decimal
    running_value: Decimal
    running_avg_cost: Decimal
    posted_at: datetime | None = None
    entry_id: UUID | None = None
    version: int = 0
    costing_method: CostingMethod | None = None

    @classmethod
    def empty(cls, item_id: str, warehouse_id: str, version: int = 0) -> BalanceSnapshot:
        return cls(
            item_id=item_id,
            warehouse_id=warehouse_id,
            seq=0,
            running_qty=ZERO,
            running_value=ZERO,
            running_avg_cost=ZERO,
            version=version,
        )

    @property
    def is_empty(self) -> bool:
        return self.seq == 0


def average_cost(qty: Decimal, value: Decimal) -> Decimal:
    """Average unit cost, zero when there is no stock."""
    if qty > ZERO:
        return quantize_amount(value / qty)
    return ZERO


def next_running_balance(
    prev_qty: Decimal,
    prev_value: Decimal,
    direction: Direction,
    qty: Decimal,
    value: Decimal,
) -> RunningBalance:
    """
    Derive the running balance after one movement.

    Raises:
        ValueError: the movement would make the quantity negative.
    """
    if direction == Direction.IN:
        new_qty = prev_qty + qty
        new_value = prev_value + value
    else:
        new_qty = prev_qty - qty
        new_value = prev_value - value
    if new_qty < ZERO:
        raise ValueError(
            f"Running quantity would become negative: {prev_qty} - {qty}"
        )
    new_qty = quantize_amount(new_qty)
    new_value = quantize_amount(new_value)
    return RunningBalance(
        qty=new_qty,
        value=new_value,
        avg_cost=average_cost(new_qty, new_value),
    )


@dataclass(frozen=True, slots=True)
class CostingResult:
    """
    Outcome of one receive or issue.

    ``unit_cost`` and ``value`` are what the caller posts to the journal.
    """

    entry_id: UUID
    item_id: str
    warehouse_id: str
    direction: Direction
    qty: Quantity
    unit_cost: Money
    value: Money
    running_qty: Quantity
    running_value: Money
    running_avg_cost: Money
    method: CostingMethod
    posted_at: datetime


@dataclass(frozen=True, slots=True)
class InventoryValuation:
    """On-hand quantity and value for one key under its costing method."""

    item_id: str
    warehouse_id: str
    qty: Decimal
    value: Decimal
    avg_cost: Decimal
    method: CostingMethod
