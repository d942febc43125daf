"""
ItemRegistry -- item master data used by the stock ledger.

Items are registered at setup; the only mutable setting is the costing
method, which can change only while no warehouse holds the item.
"""

from sqlalchemy import select

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.costing import ItemCostingMethod, ItemType
from ledger_kernel.exceptions import (
    CostingMethodChangeError,
    DuplicateItemError,
    UnknownItemError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.item import Item
from ledger_kernel.models.stock_ledger import StockBalanceHead, ValuedLedgerEntry
from ledger_kernel.services.base import BaseService

logger = get_logger("services.item_registry")


class ItemRegistry(BaseService[Item]):
    """Register and look up items."""

    def find(self, item_id: str) -> Item | None:
        return self.session.execute(
            select(Item).where(Item.item_id == item_id)
        ).scalar_one_or_none()

    def get_item(self, item_id: str) -> Item:
        item = self.find(item_id)
        if item is None:
            raise UnknownItemError(item_id)
        return item

    def register_item(
        self,
        item_id: str,
        name: str,
        item_type: ItemType | str,
        actor_id: str,
        uom: str = "EA",
        costing_method: ItemCostingMethod | str = ItemCostingMethod.GLOBAL,
    ) -> Item:
        if self.find(item_id) is not None:
            raise DuplicateItemError(item_id)
        item = Item(
            item_id=item_id,
            name=name,
            uom=uom,
            item_type=ItemType(item_type).value,
            costing_method=ItemCostingMethod(costing_method).value,
            created_by_id=actor_id,
        )
        self.session.add(item)
        self.session.flush()
        logger.info(
            "item_registered",
            extra={
                "item_id": item_id,
                "item_type": item.item_type,
                "costing_method": item.costing_method,
            },
        )
        return item

    def stocked_warehouses(self, item_id: str) -> list[str]:
        """Warehouses where the item's latest ledger entry leaves stock on hand."""
        rows = self.session.execute(
            select(StockBalanceHead.warehouse_id, ValuedLedgerEntry.running_qty)
            .join(ValuedLedgerEntry, ValuedLedgerEntry.id == StockBalanceHead.last_entry_id)
            .where(StockBalanceHead.item_id == item_id)
            .order_by(StockBalanceHead.warehouse_id)
        ).all()
        return [warehouse_id for warehouse_id, running_qty in rows if running_qty > ZERO]

    def set_costing_method(
        self,
        item_id: str,
        costing_method: ItemCostingMethod | str,
        actor_id: str,
    ) -> Item:
        """
        Change the item's costing method.

        Raises:
            CostingMethodChangeError: some warehouse still holds the item.
        """
        item = self.get_item(item_id)
        requested = ItemCostingMethod(costing_method).value
        if requested == item.costing_method:
            return item
        stocked = self.stocked_warehouses(item_id)
        if stocked:
            logger.warning(
                "costing_method_change_rejected",
                extra={"item_id": item_id, "costing_method": requested, "warehouse_id": stocked[0]},
            )
            raise CostingMethodChangeError(item_id, stocked[0], item.costing_method, requested)
        item.costing_method = requested
        item.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "item_costing_method_changed",
            extra={"item_id": item_id, "costing_method": item.costing_method},
        )
        return item
