"""Domain layer - pure value objects and calculations, zero I/O."""

from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.costing import (
    BalanceSnapshot,
    CostingMethod,
    CostingPolicy,
    CostingResult,
    Direction,
    InventoryValuation,
    ItemCostingMethod,
    ItemType,
    RefType,
    RunningBalance,
)
from ledger_kernel.domain.journal import JournalLineSpec
from ledger_kernel.domain.values import Money, Quantity

__all__ = [
    "BalanceSnapshot",
    "Clock",
    "CostingMethod",
    "CostingPolicy",
    "CostingResult",
    "DeterministicClock",
    "Direction",
    "InventoryValuation",
    "ItemCostingMethod",
    "ItemType",
    "JournalLineSpec",
    "Money",
    "Quantity",
    "RefType",
    "RunningBalance",
    "SystemClock",
]
