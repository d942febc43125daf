"""Read-only selectors returning DTOs."""

from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.selectors.stock_selector import StockSelector

__all__ = ["JournalSelector", "LedgerSelector", "StockSelector"]
