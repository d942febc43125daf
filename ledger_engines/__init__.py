"""
Module: ledger_engines
Responsibility:
    Pure calculation engines for the inventory ledger: weighted-average and
    FIFO costing, and inventory aging.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import ledger_kernel domain types, exceptions and logging.
    MUST NOT import ledger_services or ledger_config.

Invariants enforced:
    - Purity: engines never read the clock or the database.
    - Decimal-only arithmetic.

Audit relevance:
    Costing and aging calls are traced via ``@traced_engine``
    (LEDGER_ENGINE_TRACE records with an input fingerprint).
"""

from ledger_engines.aging import (
    INVENTORY_AGING_BUCKETS,
    AgeBucket,
    AgingCalculator,
    InventoryAgingReport,
    LotAgeInput,
)
from ledger_engines.valuation import (
    CostedMovement,
    FifoIssue,
    LotDraw,
    OpenLot,
    consume_fifo,
    cost_receipt,
    weighted_average_issue,
)

__all__ = [
    "INVENTORY_AGING_BUCKETS",
    "AgeBucket",
    "AgingCalculator",
    "CostedMovement",
    "FifoIssue",
    "InventoryAgingReport",
    "LotAgeInput",
    "LotDraw",
    "OpenLot",
    "consume_fifo",
    "cost_receipt",
    "weighted_average_issue",
]
