"""
Ledger Invariants Contract.

These invariants are structural law for the stock ledger and the journal
poster. No configuration value or costing policy may override them.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across ValuedLedgerStore, CostingEngine,
JournalPoster, SequenceService and the ORM immutability listeners.
"""

from enum import Enum, unique


@unique
class LedgerInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel.

    Each value names one structural guarantee the kernel provides
    unconditionally. Configuration may choose the costing policy or the
    account codes, never whether these rules apply.
    """

    RUNNING_BALANCE_CONTINUITY = "running_balance_continuity"
    """Each entry's running quantity/value equals the previous entry's plus
    or minus its own movement. Enforced by ValuedLedgerStore.append under
    the per-key lock."""

    APPEND_ONLY_LEDGER = "append_only_ledger"
    """Ledger entries and lot consumptions are never updated or deleted.
    Enforced by ledger_kernel.db.immutability."""

    NON_NEGATIVE_STOCK = "non_negative_stock"
    """Running quantity never goes below zero. Enforced by CostingEngine
    before any write and re-checked by ValuedLedgerStore.append."""

    DOUBLE_ENTRY_BALANCE = "double_entry_balance"
    """Debits equal credits exactly in every journal. Enforced by
    JournalPoster before any write."""

    JOURNAL_IMMUTABILITY = "journal_immutability"
    """Posted journals and lines are append-only; corrections are
    reversals. Enforced by ledger_kernel.db.immutability."""

    SEQUENCE_MONOTONICITY = "sequence_monotonicity"
    """Journal numbers and per-key ledger sequences strictly increase.
    Enforced by locked counter rows (SequenceService, StockBalanceHead)."""

    STORAGE_PRECISION = "storage_precision"
    """Amounts and quantities carry at most 9 decimal places, so nothing is
    rounded on the way into the database. Enforced by the valuation engine
    and JournalPoster before any write."""

    COSTING_METHOD_CONSISTENCY = "costing_method_consistency"
    """Stock on hand is moved only under the method it was booked with.
    Enforced by CostingEngine and ItemRegistry.set_costing_method."""


ALL_LEDGER_INVARIANTS: frozenset[LedgerInvariant] = frozenset(LedgerInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "ledger_engines",
    "ledger_services",
    "ledger_config",
)
