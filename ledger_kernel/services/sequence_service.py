"""
SequenceService -- journal numbers from a locked counter row.

Responsibility:
    Hands out the journal sequence (1, 2, 3, ...) and its display form
    (J000001, J000002, ...).  The counter row is read ``FOR UPDATE`` so two
    posting transactions can never draw the same number; on SQLite the
    BEGIN IMMEDIATE write lock gives the same guarantee.

Architecture position:
    Kernel > Services.  Used only by JournalPoster.

Invariants enforced:
    - Numbers strictly increase per counter; MAX(seq) + 1 is never used.
    - A number drawn inside a transaction that rolls back is returned with
      it, so committed journals carry no gaps from failed postings.

Failure modes:
    - IntegrityError from the first-use insert when another transaction
      created the counter first; absorbed by re-reading the row.
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from ledger_kernel.db.base import Base
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.sequence")

JOURNAL_PREFIX = "J"
JOURNAL_NO_WIDTH = 6


def format_journal_no(seq: int) -> str:
    """``J`` plus the zero-padded sequence: 1 -> J000001."""
    return f"{JOURNAL_PREFIX}{seq:0{JOURNAL_NO_WIDTH}d}"


class SequenceCounter(Base):
    """One row per named counter."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class SequenceService:
    """
    Contract:
        ``next_journal_no()`` returns ``(seq, journal_no)`` with ``seq``
        greater than every committed journal's.

    Non-goals:
        - Does NOT commit.
    """

    JOURNAL = "journal"

    def __init__(self, session: Session):
        self._session = session

    def _lock(self, name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _create(self, name: str) -> SequenceCounter:
        """Insert a zeroed counter, or lock the one a concurrent writer made."""
        try:
            with self._session.begin_nested():
                counter = SequenceCounter(name=name, current_value=0)
                self._session.add(counter)
                self._session.flush()
            return counter
        except IntegrityError:
            logger.debug("sequence_counter_exists", extra={"sequence_name": name})
            counter = self._lock(name)
            if counter is None:
                raise
            return counter

    def next_value(self, name: str) -> int:
        counter = self._lock(name) or self._create(name)
        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": name, "value": counter.current_value},
        )
        return counter.current_value

    def next_journal_no(self) -> tuple[int, str]:
        seq = self.next_value(self.JOURNAL)
        return seq, format_journal_no(seq)

    def current_value(self, name: str) -> int:
        """Last value handed out; 0 before first use."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == name)
        ).scalar_one_or_none()
        return counter.current_value if counter is not None else 0
