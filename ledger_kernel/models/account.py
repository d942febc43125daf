"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the Chart of Accounts -- the target of
    every journal line -- and the classification buckets used by reports.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - code is unique (uq_coa_code).
    - code and account_type are immutable once the account exists
      (db/immutability.py); only name and is_active may change.

Failure modes:
    - UnknownAccountError when a posting references a non-existent code.
    - AccountInactiveError when a posting targets an inactive account.

Audit relevance:
    Changing an account's type after lines were posted to it would silently
    move history between balance sheet and profit-and-loss, so the type is
    frozen at creation.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase

if TYPE_CHECKING:
    from ledger_kernel.models.journal import JournalLine


class AccountType(str, Enum):
    """Classification buckets used by the trial balance and statements."""

    CURRENT_ASSETS = "CURRENT_ASSETS"
    NON_CURRENT_ASSETS = "NON_CURRENT_ASSETS"
    TRADE_RECEIVABLES = "TRADE_RECEIVABLES"
    CURRENT_LIABILITY = "CURRENT_LIABILITY"
    NON_CURRENT_LIABILITY = "NON_CURRENT_LIABILITY"
    TRADE_PAYABLES = "TRADE_PAYABLES"
    EQUITY = "EQUITY"
    INCOME = "INCOME"
    OTHER_INCOME = "OTHER_INCOME"
    COST_OF_SALES = "COST_OF_SALES"
    EXPENSES = "EXPENSES"

    @property
    def normal_balance(self) -> NormalBalance:
        if self in _DEBIT_NORMAL:
            return NormalBalance.DEBIT
        return NormalBalance.CREDIT

    @property
    def section(self) -> StatementSection:
        if self in ASSET_TYPES:
            return StatementSection.ASSETS
        if self in LIABILITY_TYPES:
            return StatementSection.LIABILITIES
        if self == AccountType.EQUITY:
            return StatementSection.EQUITY
        if self in INCOME_TYPES:
            return StatementSection.INCOME
        return StatementSection.EXPENSES


class NormalBalance(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"


class StatementSection(str, Enum):
    ASSETS = "assets"
    LIABILITIES = "liabilities"
    EQUITY = "equity"
    INCOME = "income"
    EXPENSES = "expenses"


ASSET_TYPES = frozenset({
    AccountType.CURRENT_ASSETS,
    AccountType.NON_CURRENT_ASSETS,
    AccountType.TRADE_RECEIVABLES,
})
LIABILITY_TYPES = frozenset({
    AccountType.CURRENT_LIABILITY,
    AccountType.NON_CURRENT_LIABILITY,
    AccountType.TRADE_PAYABLES,
})
INCOME_TYPES = frozenset({AccountType.INCOME, AccountType.OTHER_INCOME})
EXPENSE_TYPES = frozenset({AccountType.COST_OF_SALES, AccountType.EXPENSES})
BALANCE_SHEET_TYPES = ASSET_TYPES | LIABILITY_TYPES | {AccountType.EQUITY}
PROFIT_AND_LOSS_TYPES = INCOME_TYPES | EXPENSE_TYPES

_DEBIT_NORMAL = ASSET_TYPES | EXPENSE_TYPES


class ChartOfAccount(TrackedBase):
    """
    Chart of Accounts entry.

    Contract:
        ``code`` is the stable external key callers use in journal lines.
        ``account_type`` places the account on a statement.

    Guarantees:
        - code is unique and non-null.
        - account_type is one of the AccountType buckets.
    """

    __tablename__ = "chart_of_accounts"

    __table_args__ = (
        UniqueConstraint("code", name="uq_coa_code"),
        Index("idx_coa_type", "account_type"),
    )

    code: Mapped[str] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(String(30), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    journal_lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<ChartOfAccount {self.code}: {self.name}>"

    @property
    def type(self) -> AccountType:
        return AccountType(self.account_type)

    @property
    def is_debit_normal(self) -> bool:
        return self.type.normal_balance == NormalBalance.DEBIT
