"""
Module: ledger_kernel.models.item
Responsibility: ORM persistence for stock-keeping units and their costing
    method setting.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain value enums only.

Invariants enforced:
    - item_id is unique (uq_item_item_id) and immutable.
    - item_type and uom are immutable once created (db/immutability.py).
      costing_method may change; callers must only change it while the item
      has no stock on hand, because open lots and running values are kept
      under the method in force when they were written.
"""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase
from ledger_kernel.domain.costing import ItemCostingMethod, ItemType


class Item(TrackedBase):
    """Stock-keeping unit."""

    __tablename__ = "items"

    __table_args__ = (
        UniqueConstraint("item_id", name="uq_item_item_id"),
    )

    # Stable external key used by the stock ledger
    item_id: Mapped[str] = mapped_column(String(100), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    uom: Mapped[str] = mapped_column(String(20), nullable=False, default="EA")

    item_type: Mapped[ItemType] = mapped_column(String(20), nullable=False)

    costing_method: Mapped[ItemCostingMethod] = mapped_column(
        String(20),
        nullable=False,
        default=ItemCostingMethod.GLOBAL.value,
    )

    def __repr__(self) -> str:
        return f"<Item {self.item_id}: {self.name}>"
