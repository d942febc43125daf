"""
JournalPoster -- validated, atomic posting of balanced journals.

Responsibility:
    Turns a list of ``JournalLineSpec`` into a persisted Journal with its
    JournalLines after validating line shape, account status and the
    double-entry balance.  Also posts reversals of existing journals.

Architecture position:
    Kernel > Services -- imperative shell.  Uses ChartOfAccountsRegistry to
    resolve codes and SequenceService for journal numbering.

Invariants enforced:
    - Double entry: sum(debit) == sum(credit), compared exactly as Decimal.
    - Line shape: amounts non-negative with at most 9 decimal places, exactly
      one side non-zero.
    - Atomicity: the journal and all its lines are written inside one
      savepoint; any failure leaves nothing behind.
    - Immutability: posted journals are never changed.  ``reverse_journal``
      posts a new journal with sides swapped, at most once per journal.

Failure modes:
    - InvalidJournalLineError, UnbalancedJournalError: rejected before any
      write.
    - UnknownAccountError, AccountInactiveError: from the registry.
    - JournalNotFoundError, JournalAlreadyReversedError: reversal only.

Audit relevance:
    Logs ``journal_posted`` with number, totals and line count, and
    ``journal_rejected`` with the reason for every refused journal.
"""

from collections.abc import Sequence
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ledger_kernel.db.types import fits_storage
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.journal import JournalLineSpec, journal_totals
from ledger_kernel.domain.values import Money
from ledger_kernel.exceptions import (
    InvalidJournalLineError,
    JournalAlreadyReversedError,
    JournalNotFoundError,
    UnbalancedJournalError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.journal import Journal, JournalLine
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.chart_of_accounts import ChartOfAccountsRegistry
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.journal_poster")


class JournalPoster(BaseService[Journal]):
    """
    Posts balanced journals.

    Contract:
        ``post_journal`` returns the new journal's id; nothing is written
        unless every check passes.

    Non-goals:
        - Does NOT commit; the caller's transaction decides.
        - Does NOT enforce period locks.
    """

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._accounts = ChartOfAccountsRegistry(session)
        self._sequences = SequenceService(session)

    def _reject(self, exc: Exception, memo: str) -> None:
        logger.warning(
            "journal_rejected",
            extra={"memo": memo, "error_code": getattr(exc, "code", None), "reason": str(exc)},
        )
        raise exc

    def _validate(self, lines: Sequence[JournalLineSpec], memo: str) -> None:
        if not lines:
            self._reject(InvalidJournalLineError(0, None, "journal has no lines"), memo)

        for index, line in enumerate(lines):
            if line.debit.is_negative or line.credit.is_negative:
                self._reject(
                    InvalidJournalLineError(index, line.account_code, "negative amount"),
                    memo,
                )
            if not (fits_storage(line.debit.amount) and fits_storage(line.credit.amount)):
                self._reject(
                    InvalidJournalLineError(
                        index, line.account_code, "amount finer than 9 decimal places"
                    ),
                    memo,
                )
            if line.debit.is_zero == line.credit.is_zero:
                self._reject(
                    InvalidJournalLineError(
                        index,
                        line.account_code,
                        "exactly one of debit or credit must be non-zero",
                    ),
                    memo,
                )

        debits, credits = journal_totals(lines)
        if debits != credits:
            self._reject(UnbalancedJournalError(debits.amount, credits.amount), memo)

    def post_journal(
        self,
        lines: Sequence[JournalLineSpec],
        memo: str,
        user_id: str,
        journal_date: date | None = None,
        reversal_of_id: UUID | None = None,
    ) -> UUID:
        """
        Validate and persist one journal.

        Preconditions:
            Called inside the caller's transaction.

        Postconditions:
            A Journal numbered from the journal sequence exists with one
            JournalLine per JournalLineSpec, in order.

        Raises:
            InvalidJournalLineError, UnbalancedJournalError,
            UnknownAccountError, AccountInactiveError.
        """
        lines = list(lines)
        self._validate(lines, memo)
        accounts = self._accounts.resolve_many(line.account_code for line in lines)

        now = self._clock.now()
        with self.session.begin_nested():
            seq, journal_no = self._sequences.next_journal_no()
            journal = Journal(
                journal_no=journal_no,
                seq=seq,
                journal_date=journal_date or now.date(),
                memo=memo,
                posted_by=user_id,
                posted_at=now,
                reversal_of_id=reversal_of_id,
            )
            self.session.add(journal)
            self.session.flush()
            for index, line in enumerate(lines, start=1):
                self.session.add(
                    JournalLine(
                        journal_id=journal.id,
                        line_seq=index,
                        account_id=accounts[line.account_code].id,
                        debit=line.debit.amount,
                        credit=line.credit.amount,
                        ref_type=line.ref_type,
                        ref_id=line.ref_id,
                    )
                )
            self.session.flush()

        debits, _ = journal_totals(lines)
        logger.info(
            "journal_posted",
            extra={
                "journal_id": str(journal.id),
                "journal_no": journal.journal_no,
                "journal_date": journal.journal_date.isoformat(),
                "line_count": len(lines),
                "total": str(debits.amount),
                "reversal_of_id": str(reversal_of_id) if reversal_of_id else None,
            },
        )
        return journal.id

    def reverse_journal(
        self,
        journal_id: UUID,
        user_id: str,
        memo: str | None = None,
        journal_date: date | None = None,
    ) -> UUID:
        """
        Post the mirror image of ``journal_id``.

        Raises:
            JournalNotFoundError: no such journal.
            JournalAlreadyReversedError: a reversal already exists.
        """
        original = self.session.get(Journal, journal_id)
        if original is None:
            raise JournalNotFoundError(str(journal_id))

        existing = self.session.execute(
            select(Journal.id).where(Journal.reversal_of_id == journal_id)
        ).scalar_one_or_none()
        if existing is not None:
            raise JournalAlreadyReversedError(str(journal_id), str(existing))

        mirrored = [
            JournalLineSpec(
                account_code=line.account.code,
                debit=Money.of(line.credit),
                credit=Money.of(line.debit),
                ref_type=line.ref_type,
                ref_id=line.ref_id,
            )
            for line in original.lines
        ]
        try:
            reversal_id = self.post_journal(
                mirrored,
                memo or f"Reversal of {original.journal_no}",
                user_id,
                journal_date=journal_date,
                reversal_of_id=original.id,
            )
        except IntegrityError as exc:
            # Concurrent reversal won the unique reversal_of_id slot
            raise JournalAlreadyReversedError(str(journal_id), "concurrent") from exc

        logger.info(
            "journal_reversed",
            extra={"journal_id": str(journal_id), "reversal_id": str(reversal_id)},
        )
        return reversal_id

