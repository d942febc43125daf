"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Financial statements derived from posted journal lines:
    trial balance, profit and loss, and balance sheet.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - No stored balances.  Every figure is summed at query time from
      JournalLine rows.
    - Accounts are classified only by ``account_type``; the normal balance
      of the type decides the sign of ``balance``.
    - Balance sheet: assets == liabilities + equity + current earnings
      whenever every posted journal balances.

Failure modes:
    - Returns zero totals when nothing is posted.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select

from ledger_kernel.db.types import ZERO
from ledger_kernel.models.account import (
    ASSET_TYPES,
    EXPENSE_TYPES,
    INCOME_TYPES,
    LIABILITY_TYPES,
    AccountType,
    ChartOfAccount,
    NormalBalance,
)
from ledger_kernel.models.journal import Journal, JournalLine
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class AccountBalanceRow:
    """Totals for one account; ``balance`` is signed by normal balance."""

    account_code: str
    account_name: str
    account_type: str
    debit_total: Decimal
    credit_total: Decimal

    @property
    def balance(self) -> Decimal:
        if AccountType(self.account_type).normal_balance == NormalBalance.DEBIT:
            return self.debit_total - self.credit_total
        return self.credit_total - self.debit_total


@dataclass(frozen=True)
class TrialBalance:
    as_of: date
    rows: tuple[AccountBalanceRow, ...]

    @property
    def total_debits(self) -> Decimal:
        return sum((row.debit_total for row in self.rows), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((row.credit_total for row in self.rows), ZERO)

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits

    def row(self, account_code: str) -> AccountBalanceRow | None:
        for row in self.rows:
            if row.account_code == account_code:
                return row
        return None


@dataclass(frozen=True)
class ProfitAndLoss:
    from_date: date
    to_date: date
    income: tuple[AccountBalanceRow, ...]
    expenses: tuple[AccountBalanceRow, ...]

    @property
    def total_income(self) -> Decimal:
        return sum((row.balance for row in self.income), ZERO)

    @property
    def total_expenses(self) -> Decimal:
        return sum((row.balance for row in self.expenses), ZERO)

    @property
    def net_income(self) -> Decimal:
        return self.total_income - self.total_expenses


@dataclass(frozen=True)
class BalanceSheet:
    as_of: date
    assets: tuple[AccountBalanceRow, ...]
    liabilities: tuple[AccountBalanceRow, ...]
    equity: tuple[AccountBalanceRow, ...]
    current_earnings: Decimal

    @property
    def total_assets(self) -> Decimal:
        return sum((row.balance for row in self.assets), ZERO)

    @property
    def total_liabilities(self) -> Decimal:
        return sum((row.balance for row in self.liabilities), ZERO)

    @property
    def total_equity(self) -> Decimal:
        """Equity accounts plus unclosed current earnings."""
        return sum((row.balance for row in self.equity), ZERO) + self.current_earnings

    @property
    def is_balanced(self) -> bool:
        return self.total_assets == self.total_liabilities + self.total_equity


class LedgerSelector(BaseSelector[JournalLine]):
    """Statement read models over posted journal lines."""

    def _balances(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
        active_only: bool = False,
    ) -> list[AccountBalanceRow]:
        stmt = select(ChartOfAccount).order_by(ChartOfAccount.code)
        if active_only:
            stmt = stmt.where(ChartOfAccount.is_active.is_(True))
        accounts = list(self.session.execute(stmt).scalars())

        line_stmt = (
            select(JournalLine.account_id, JournalLine.debit, JournalLine.credit)
            .join(Journal, JournalLine.journal_id == Journal.id)
        )
        if from_date is not None:
            line_stmt = line_stmt.where(Journal.journal_date >= from_date)
        if to_date is not None:
            line_stmt = line_stmt.where(Journal.journal_date <= to_date)

        debits: dict = defaultdict(lambda: ZERO)
        credits: dict = defaultdict(lambda: ZERO)
        for account_id, debit, credit in self.session.execute(line_stmt):
            debits[account_id] += debit
            credits[account_id] += credit

        return [
            AccountBalanceRow(
                account_code=account.code,
                account_name=account.name,
                account_type=account.account_type,
                debit_total=debits[account.id],
                credit_total=credits[account.id],
            )
            for account in accounts
        ]

    def trial_balance(self, as_of: date) -> TrialBalance:
        """Active accounts with totals for journals dated on or before ``as_of``."""
        return TrialBalance(as_of=as_of, rows=tuple(self._balances(to_date=as_of, active_only=True)))

    def profit_and_loss(self, from_date: date, to_date: date) -> ProfitAndLoss:
        rows = self._balances(from_date=from_date, to_date=to_date)
        return ProfitAndLoss(
            from_date=from_date,
            to_date=to_date,
            income=tuple(r for r in rows if AccountType(r.account_type) in INCOME_TYPES),
            expenses=tuple(r for r in rows if AccountType(r.account_type) in EXPENSE_TYPES),
        )

    def balance_sheet(self, as_of: date) -> BalanceSheet:
        rows = self._balances(to_date=as_of)
        income = sum(
            (r.balance for r in rows if AccountType(r.account_type) in INCOME_TYPES), ZERO
        )
        expenses = sum(
            (r.balance for r in rows if AccountType(r.account_type) in EXPENSE_TYPES), ZERO
        )
        return BalanceSheet(
            as_of=as_of,
            assets=tuple(r for r in rows if AccountType(r.account_type) in ASSET_TYPES),
            liabilities=tuple(r for r in rows if AccountType(r.account_type) in LIABILITY_TYPES),
            equity=tuple(r for r in rows if AccountType(r.account_type) == AccountType.EQUITY),
            current_earnings=income - expenses,
        )
