"""
ledger_services.unit_of_work -- outer transaction with bounded retry.

Responsibility:
    Runs one business operation (costing call(s) plus journal post) in a
    fresh session and transaction, committing on success and rolling back
    on any error.  Lost updates and lock timeouts are retried a bounded
    number of times; everything else propagates on the first failure.

Invariants enforced:
    - One commit per business operation; kernel services only flush.
    - A retried attempt starts from a new session, so no state from the
      failed attempt survives.

Failure modes:
    - ConcurrencyConflictError (or the lock error) re-raised after
      ``max_attempts`` attempts.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from ledger_kernel.exceptions import ConcurrencyConflictError
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.unit_of_work")

T = TypeVar("T")

_LOCK_ERROR_MARKERS = (
    "database is locked",
    "deadlock detected",
    "could not serialize access",
    "lock timeout",
)


def is_lock_conflict(exc: OperationalError) -> bool:
    """True for lock timeouts and deadlocks reported by the database."""
    message = str(exc.orig or exc).lower()
    return any(marker in message for marker in _LOCK_ERROR_MARKERS)


def run_in_transaction(
    session_factory: sessionmaker[Session] | Callable[[], Session],
    work: Callable[[Session], T],
    *,
    max_attempts: int = 3,
    backoff_seconds: float = 0.01,
) -> T:
    """
    Run ``work(session)`` inside one committed transaction.

    Args:
        session_factory: Produces a new Session per attempt.
        work: The business operation; must not commit.
        max_attempts: Attempts before the last conflict is re-raised.
        backoff_seconds: Linear back-off between attempts.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    attempt = 0
    while True:
        attempt += 1
        session = session_factory()
        try:
            with session.begin():
                result = work(session)
            if attempt > 1:
                logger.info("transaction_retry_succeeded", extra={"attempt": attempt})
            return result
        except (ConcurrencyConflictError, OperationalError) as exc:
            if isinstance(exc, OperationalError) and not is_lock_conflict(exc):
                raise
            if attempt >= max_attempts:
                logger.error(
                    "transaction_retry_exhausted",
                    extra={"attempts": attempt, "error": str(exc)},
                )
                raise
            logger.warning(
                "transaction_retry",
                extra={
                    "attempt": attempt,
                    "max_attempts": max_attempts,
                    "error_type": type(exc).__name__,
                },
            )
            time.sleep(backoff_seconds * attempt)
        finally:
            session.close()
