"""
Module: ledger_kernel.models.cost_layer
Responsibility: ORM persistence for the open-lot queue per (item, warehouse)
    and the immutable record of every lot draw.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One lot per IN ledger entry (uq_cost_layer_source).  original_qty,
      unit_cost, received_at and source_entry_id never change.
    - remaining_qty / remaining_value only decrease, each draw exactly once
      (db/immutability.py).  is_depleted flips to True when remaining_qty
      reaches zero and is the only indexed open/closed flag, because amount
      columns are stored as strings on SQLite and cannot be compared in SQL.
    - LotConsumption rows are append-only.

Audit relevance:
    The lot queue is what FIFO issues consume and what the aging report
    reads, so a lot is decremented exactly once per consuming movement and
    every decrement is traceable to the OUT entry that caused it.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, UUIDString


class CostLayer(Base):
    """One receipt lot for an (item, warehouse) key."""

    __tablename__ = "cost_layers"

    __table_args__ = (
        UniqueConstraint("source_entry_id", name="uq_cost_layer_source"),
        UniqueConstraint("item_id", "warehouse_id", "lot_seq", name="uq_cost_layer_seq"),
        Index(
            "idx_cost_layer_open",
            "item_id",
            "warehouse_id",
            "is_depleted",
            "received_at",
        ),
    )

    item_id: Mapped[str] = mapped_column(String(100), nullable=False)

    warehouse_id: Mapped[str] = mapped_column(String(100), nullable=False)

    # Equals the key_seq of the IN entry that opened the lot
    lot_seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    received_at: Mapped[datetime] = mapped_column(nullable=False)

    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)

    original_qty: Mapped[Decimal] = mapped_column(nullable=False)

    remaining_qty: Mapped[Decimal] = mapped_column(nullable=False)

    remaining_value: Mapped[Decimal] = mapped_column(nullable=False)

    is_depleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    source_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("valued_ledger_entries.id"),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<CostLayer {self.item_id}@{self.warehouse_id} lot={self.lot_seq} "
            f"{self.remaining_qty}/{self.original_qty} @ {self.unit_cost}>"
        )


class LotConsumption(Base):
    """Quantity and value drawn from one lot by one OUT entry."""

    __tablename__ = "lot_consumptions"

    __table_args__ = (
        UniqueConstraint("entry_id", "lot_id", name="uq_lot_consumption"),
        Index("idx_lot_consumption_lot", "lot_id"),
    )

    entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("valued_ledger_entries.id"),
        nullable=False,
    )

    lot_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("cost_layers.id"),
        nullable=False,
    )

    qty: Mapped[Decimal] = mapped_column(nullable=False)

    value: Mapped[Decimal] = mapped_column(nullable=False)

    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<LotConsumption lot={self.lot_id} qty={self.qty} value={self.value}>"
