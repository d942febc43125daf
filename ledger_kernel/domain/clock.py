"""
Clock -- injectable time source.

Responsibility:
    Services stamp ledger entries (``posted_at``) and journals
    (``posted_at``, default ``journal_date``) from an injected Clock so tests
    and replays are deterministic.  Domain and engine code never call
    ``datetime.now()``.

Architecture position:
    Kernel > Domain.  SystemClock is the one sanctioned I/O boundary for time.
"""

from abc import ABC, abstractmethod
from datetime import UTC, date, datetime, timedelta


class Clock(ABC):
    """
    Abstract clock interface.

    Guarantees:
        - ``now()`` returns a timezone-aware UTC ``datetime``.
        - ``today()`` is the UTC calendar date of ``now()``.
    """

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Production clock returning the actual UTC time."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    ``now()`` returns the same value until ``advance()``, ``advance_days()``
    or ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)
        if self._current.tzinfo is None:
            self._current = self._current.replace(tzinfo=UTC)

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time if time.tzinfo else time.replace(tzinfo=UTC)

    def advance(self, seconds: int = 1) -> None:
        self._current = self._current + timedelta(seconds=seconds)

    def advance_days(self, days: int) -> None:
        self._current = self._current + timedelta(days=days)

    def tick(self) -> datetime:
        """Advance by 1 second and return the new time."""
        self.advance(1)
        return self._current
