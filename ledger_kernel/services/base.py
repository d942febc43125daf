"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write service in the kernel layer.  Services receive a
    SQLAlchemy ``Session`` and use ``session.flush()``, never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or roll back the outer transaction.
      They may open savepoints (``session.begin_nested()``) so a failed
      call leaves nothing behind.

Failure modes:
    - If a subclass commits, the atomicity of a costing call plus its
      journal post is broken.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and persists
        changes with ``session.flush()`` inside the active transaction.

    Non-goals:
        - Does NOT manage the transaction lifecycle.
        - Does NOT provide reporting queries -- those belong in
          ``ledger_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
