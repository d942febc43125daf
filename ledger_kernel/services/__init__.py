"""Kernel services - imperative shell over the domain layer, flush-only."""

from ledger_kernel.services.chart_of_accounts import ChartOfAccountsRegistry
from ledger_kernel.services.item_registry import ItemRegistry
from ledger_kernel.services.journal_poster import JournalPoster
from ledger_kernel.services.sequence_service import SequenceCounter, SequenceService
from ledger_kernel.services.valued_ledger import ValuedLedgerStore

__all__ = [
    "ChartOfAccountsRegistry",
    "ItemRegistry",
    "JournalPoster",
    "SequenceCounter",
    "SequenceService",
    "ValuedLedgerStore",
]
