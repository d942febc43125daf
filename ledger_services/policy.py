"""
ledger_services.policy -- resolve the costing policy for an item.

An item configured WEIGHTED_AVG or FIFO uses that method; GLOBAL falls back
to the configured system default.  The result is passed explicitly to the
costing engine.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from ledger_kernel.domain.costing import CostingMethod, CostingPolicy, ItemCostingMethod
from ledger_kernel.models.item import Item
from ledger_kernel.services.item_registry import ItemRegistry


class CostingPolicyResolver:
    """Item setting first, then the system default."""

    def __init__(
        self,
        session: Session,
        default_method: CostingMethod | str = CostingMethod.WEIGHTED_AVG,
    ):
        self._items = ItemRegistry(session)
        self._default = CostingMethod(default_method)

    @property
    def default_policy(self) -> CostingPolicy:
        return CostingPolicy(method=self._default, source="default")

    def for_item(self, item: Item) -> CostingPolicy:
        method = ItemCostingMethod(item.costing_method)
        if method == ItemCostingMethod.GLOBAL:
            return self.default_policy
        return CostingPolicy(method=CostingMethod(method.value), source="item")

    def resolve(self, item_id: str) -> CostingPolicy:
        """
        Raises:
            UnknownItemError: the item is not registered.
        """
        return self.for_item(self._items.get_item(item_id))
