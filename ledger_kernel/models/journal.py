"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for posted journals and their lines.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Double-entry balance: sum(debit) == sum(credit) per journal, checked
      exactly by JournalPoster before any row is written.
    - Immutability: journals and lines are never updated or deleted once
      written (db/immutability.py); corrections are reversal journals linked
      through reversal_of_id.
    - journal_no and seq are unique and allocated from a locked counter row.
    - One side per line: exactly one of debit / credit is non-zero.

Failure modes:
    - IntegrityError on duplicate journal_no / seq, or on a second reversal
      of the same journal (uq_journal_reversal_of).

Audit relevance:
    Journals are the books.  Their numbering is gap-free under normal
    operation and strictly increasing.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import BigInteger, Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.account import ChartOfAccount


class Journal(Base):
    """
    A posted, balanced journal.

    Contract:
        Created exactly once by JournalPoster together with all its lines.
    """

    __tablename__ = "journals"

    __table_args__ = (
        UniqueConstraint("journal_no", name="uq_journal_no"),
        UniqueConstraint("seq", name="uq_journal_seq"),
        UniqueConstraint("reversal_of_id", name="uq_journal_reversal_of"),
        Index("idx_journal_date", "journal_date"),
    )

    # Human-readable number, e.g. J000042
    journal_no: Mapped[str] = mapped_column(String(20), nullable=False)

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    journal_date: Mapped[date] = mapped_column(Date, nullable=False)

    memo: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    posted_by: Mapped[str] = mapped_column(String(100), nullable=False)

    posted_at: Mapped[datetime] = mapped_column(nullable=False)

    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journals.id"),
        nullable=True,
    )

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="journal",
        order_by="JournalLine.line_seq",
    )

    def __repr__(self) -> str:
        return f"<Journal {self.journal_no} {self.journal_date}>"

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.lines), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.lines), Decimal("0"))


class JournalLine(Base):
    """One debit or credit against one account."""

    __tablename__ = "journal_lines"

    __table_args__ = (
        UniqueConstraint("journal_id", "line_seq", name="uq_journal_line_seq"),
        Index("idx_journal_line_account", "account_id"),
        Index("idx_journal_line_ref", "ref_type", "ref_id"),
    )

    journal_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journals.id"),
        nullable=False,
    )

    line_seq: Mapped[int] = mapped_column(Integer, nullable=False)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("chart_of_accounts.id"),
        nullable=False,
    )

    debit: Mapped[Decimal] = mapped_column(nullable=False)

    credit: Mapped[Decimal] = mapped_column(nullable=False)

    ref_type: Mapped[str | None] = mapped_column(String(30), nullable=True)

    ref_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    journal: Mapped["Journal"] = relationship(back_populates="lines")

    account: Mapped["ChartOfAccount"] = relationship(back_populates="journal_lines")

    def __repr__(self) -> str:
        return f"<JournalLine {self.line_seq} Dr {self.debit} Cr {self.credit}>"
