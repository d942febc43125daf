"""
Module: ledger_kernel.selectors.journal_selector
Responsibility: Read-only access to posted journals, the lines posted for a
    business reference, and the general ledger listing.
Architecture position: Kernel > Selectors.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from ledger_kernel.db.types import ZERO
from ledger_kernel.models.account import ChartOfAccount
from ledger_kernel.models.journal import Journal, JournalLine
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class JournalLineDTO:
    line_seq: int
    account_code: str
    account_name: str
    debit: Decimal
    credit: Decimal
    ref_type: str | None
    ref_id: str | None


@dataclass(frozen=True)
class JournalDTO:
    """A posted journal with its lines."""

    journal_id: UUID
    journal_no: str
    journal_date: date
    memo: str
    posted_by: str
    posted_at: datetime
    reversal_of_id: UUID | None
    lines: tuple[JournalLineDTO, ...]

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.lines), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.lines), ZERO)

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits


@dataclass(frozen=True)
class GeneralLedgerLine:
    journal_id: UUID
    journal_no: str
    journal_date: date
    line_seq: int
    account_code: str
    account_name: str
    memo: str
    debit: Decimal
    credit: Decimal
    ref_type: str | None
    ref_id: str | None


class JournalSelector(BaseSelector[Journal]):
    """Journal read models."""

    def _to_dto(self, journal: Journal) -> JournalDTO:
        return JournalDTO(
            journal_id=journal.id,
            journal_no=journal.journal_no,
            journal_date=journal.journal_date,
            memo=journal.memo,
            posted_by=journal.posted_by,
            posted_at=journal.posted_at,
            reversal_of_id=journal.reversal_of_id,
            lines=tuple(
                JournalLineDTO(
                    line_seq=line.line_seq,
                    account_code=line.account.code,
                    account_name=line.account.name,
                    debit=line.debit,
                    credit=line.credit,
                    ref_type=line.ref_type,
                    ref_id=line.ref_id,
                )
                for line in journal.lines
            ),
        )

    def _load(self, stmt) -> JournalDTO | None:
        journal = self.session.execute(
            stmt.options(selectinload(Journal.lines).selectinload(JournalLine.account))
        ).scalar_one_or_none()
        return self._to_dto(journal) if journal is not None else None

    def get(self, journal_id: UUID) -> JournalDTO | None:
        return self._load(select(Journal).where(Journal.id == journal_id))

    def get_by_number(self, journal_no: str) -> JournalDTO | None:
        return self._load(select(Journal).where(Journal.journal_no == journal_no))

    def reversal_of(self, journal_id: UUID) -> JournalDTO | None:
        """The journal that reverses ``journal_id``, if any."""
        return self._load(select(Journal).where(Journal.reversal_of_id == journal_id))

    def _ledger_lines(self, stmt) -> list[GeneralLedgerLine]:
        return [
            GeneralLedgerLine(
                journal_id=journal.id,
                journal_no=journal.journal_no,
                journal_date=journal.journal_date,
                line_seq=line.line_seq,
                account_code=account.code,
                account_name=account.name,
                memo=journal.memo,
                debit=line.debit,
                credit=line.credit,
                ref_type=line.ref_type,
                ref_id=line.ref_id,
            )
            for line, journal, account in self.session.execute(stmt).all()
        ]

    def _lines_query(self):
        return (
            select(JournalLine, Journal, ChartOfAccount)
            .join(Journal, JournalLine.journal_id == Journal.id)
            .join(ChartOfAccount, JournalLine.account_id == ChartOfAccount.id)
        )

    def lines_for_reference(self, ref_type: str, ref_id: str) -> list[GeneralLedgerLine]:
        """Every line posted for one business reference, in posting order."""
        ref_type = str(getattr(ref_type, "value", ref_type))
        return self._ledger_lines(
            self._lines_query()
            .where(JournalLine.ref_type == ref_type, JournalLine.ref_id == ref_id)
            .order_by(Journal.seq, JournalLine.line_seq)
        )

    def general_ledger(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
        account_code: str | None = None,
    ) -> list[GeneralLedgerLine]:
        """Lines with journal_date in [from_date, to_date], by date then number."""
        stmt = self._lines_query()
        if from_date is not None:
            stmt = stmt.where(Journal.journal_date >= from_date)
        if to_date is not None:
            stmt = stmt.where(Journal.journal_date <= to_date)
        if account_code is not None:
            stmt = stmt.where(ChartOfAccount.code == account_code)
        return self._ledger_lines(
            stmt.order_by(Journal.journal_date, Journal.seq, JournalLine.line_seq)
        )
