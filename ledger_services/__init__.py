"""
ledger_services -- Package init and public API.

Responsibility:
    Stateful orchestration over the pure engines (ledger_engines/) and the
    kernel (ledger_kernel/): the costing engine, costing-policy resolution,
    the inventory business events that post journals, the outer unit of
    work with retry, and the aging report.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction (enforced by tests/architecture/test_kernel_boundary.py):
        ledger_services/ -> ledger_engines/  (allowed)
        ledger_services/ -> ledger_kernel/   (allowed)
        ledger_services/ -> ledger_config/   (allowed)
        ledger_engines/  -> ledger_services/ (FORBIDDEN)
        ledger_kernel/   -> ledger_services/ (FORBIDDEN)

Invariants enforced:
    - Layer isolation: ledger_kernel and ledger_engines never import from
      this package.
    - Services receive their Session, Clock and configuration values via
      constructor injection.
"""

from ledger_services.costing_engine import CostingEngine
from ledger_services.inventory_posting import InventoryPostingService, PostingOutcome
from ledger_services.policy import CostingPolicyResolver
from ledger_services.reporting import inventory_aging
from ledger_services.unit_of_work import is_lock_conflict, run_in_transaction

__all__ = [
    "CostingEngine",
    "CostingPolicyResolver",
    "InventoryPostingService",
    "PostingOutcome",
    "inventory_aging",
    "is_lock_conflict",
    "run_in_transaction",
]
