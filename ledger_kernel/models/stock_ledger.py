"""
Module: ledger_kernel.models.stock_ledger
Responsibility: ORM persistence for the valued stock ledger -- one immutable
    row per stock movement carrying the running balance after it -- and the
    per-key head row that serialises appends.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Running-balance continuity: (item_id, warehouse_id, key_seq) is unique
      and key_seq increments by one per append, so a lost update surfaces as
      an IntegrityError or a stale head version instead of a forked balance.
    - Append-only: ValuedLedgerEntry rows are never updated or deleted
      (db/immutability.py).
    - Non-negative stock: running_qty >= 0 is enforced by the writer and by
      the ck_vle_running_qty check constraint on PostgreSQL.

Failure modes:
    - IntegrityError on a duplicate (item_id, warehouse_id, key_seq).
    - StaleDataError on a StockBalanceHead flush with an outdated version.

Audit relevance:
    The ledger is the stock card.  It is never recomputed from scratch, so
    every row must be derived from exactly the previous row for its key.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, CheckConstraint, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, UUIDString


class ValuedLedgerEntry(Base):
    """
    One inventory movement with the running snapshot after it.

    Contract:
        ``value`` is a magnitude; ``direction`` carries the sign.
        ``running_*`` fields are the snapshot after applying this entry.
    """

    __tablename__ = "valued_ledger_entries"

    __table_args__ = (
        UniqueConstraint(
            "item_id", "warehouse_id", "key_seq", name="uq_vle_key_seq"
        ),
        Index("idx_vle_key_posted", "item_id", "warehouse_id", "posted_at"),
        Index("idx_vle_ref", "ref_type", "ref_id"),
        CheckConstraint("running_qty >= 0", name="ck_vle_running_qty"),
    )

    item_id: Mapped[str] = mapped_column(String(100), nullable=False)

    warehouse_id: Mapped[str] = mapped_column(String(100), nullable=False)

    # Insertion order within the key, starting at 1
    key_seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    direction: Mapped[str] = mapped_column(String(3), nullable=False)

    qty: Mapped[Decimal] = mapped_column(nullable=False)

    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)

    value: Mapped[Decimal] = mapped_column(nullable=False)

    running_qty: Mapped[Decimal] = mapped_column(nullable=False)

    running_value: Mapped[Decimal] = mapped_column(nullable=False)

    running_avg_cost: Mapped[Decimal] = mapped_column(nullable=False)

    costing_method: Mapped[str] = mapped_column(String(20), nullable=False)

    ref_type: Mapped[str] = mapped_column(String(30), nullable=False)

    ref_id: Mapped[str] = mapped_column(String(100), nullable=False)

    user_id: Mapped[str] = mapped_column(String(100), nullable=False)

    posted_at: Mapped[datetime] = mapped_column(nullable=False)

    @property
    def signed_qty(self) -> Decimal:
        return self.qty if self.direction == "IN" else -self.qty

    @property
    def signed_value(self) -> Decimal:
        return self.value if self.direction == "IN" else -self.value

    def __repr__(self) -> str:
        return (
            f"<ValuedLedgerEntry {self.item_id}@{self.warehouse_id}#{self.key_seq} "
            f"{self.direction} {self.qty}>"
        )


class StockBalanceHead(Base):
    """
    Per-key lock target and pointer to the latest ledger entry.

    Contract:
        Locked with SELECT ... FOR UPDATE before every append on PostgreSQL.
        ``version`` is an optimistic counter checked on every flush, so an
        append computed from a stale snapshot fails instead of committing.
    """

    __tablename__ = "stock_balance_heads"

    __table_args__ = (
        UniqueConstraint("item_id", "warehouse_id", name="uq_sbh_key"),
    )

    item_id: Mapped[str] = mapped_column(String(100), nullable=False)

    warehouse_id: Mapped[str] = mapped_column(String(100), nullable=False)

    last_seq: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    last_entry_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<StockBalanceHead {self.item_id}@{self.warehouse_id} seq={self.last_seq}>"
