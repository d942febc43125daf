"""ORM models for the ledger kernel."""

from ledger_kernel.models.account import AccountType, ChartOfAccount, NormalBalance, StatementSection
from ledger_kernel.models.cost_layer import CostLayer, LotConsumption
from ledger_kernel.models.item import Item
from ledger_kernel.models.journal import Journal, JournalLine
from ledger_kernel.models.stock_ledger import StockBalanceHead, ValuedLedgerEntry


def import_all_models() -> None:
    """Import every module that declares tables so Base.metadata is complete."""
    import ledger_kernel.services.sequence_service  # noqa: F401  (SequenceCounter)


__all__ = [
    "AccountType",
    "ChartOfAccount",
    "CostLayer",
    "Item",
    "Journal",
    "JournalLine",
    "LotConsumption",
    "NormalBalance",
    "StatementSection",
    "StockBalanceHead",
    "ValuedLedgerEntry",
    "import_all_models",
]
