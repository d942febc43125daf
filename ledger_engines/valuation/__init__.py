"""Pure costing calculations: weighted average and FIFO lot consumption."""

from ledger_engines.valuation.cost_layers import (
    FifoIssue,
    LotDraw,
    OpenLot,
    consume_fifo,
    plan_draws,
)
from ledger_engines.valuation.weighted_average import (
    CostedMovement,
    cost_receipt,
    validate_quantity,
    weighted_average_issue,
)

__all__ = [
    "CostedMovement",
    "FifoIssue",
    "LotDraw",
    "OpenLot",
    "consume_fifo",
    "cost_receipt",
    "plan_draws",
    "validate_quantity",
    "weighted_average_issue",
]
