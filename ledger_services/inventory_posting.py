"""
ledger_services.inventory_posting -- business events that move stock and
post the matching journal.

Responsibility:
    One method per inventory business event.  Each resolves the item's
    costing policy, runs the costing call(s), builds the journal legs from
    the account-code contract and posts them, all inside one savepoint of
    the caller's transaction.

Architecture position:
    Services -- orchestration over CostingEngine (ledger_services) and
    JournalPoster (ledger_kernel).  Account codes come from
    ``ledger_config.AccountCodeMap``; nothing is hard-coded.

Invariants enforced:
    - The journal amount is exactly the value returned by the costing call.
    - Stock movement and journal commit or roll back together.
    - Zero-value movements move stock without posting a journal.

Failure modes:
    - Any error from the costing engine, the registry or the poster
      propagates; the savepoint is rolled back.

Posting map:
    receive_purchase        Dr inventory        / Cr goods_received_not_invoiced
    issue_to_production     Dr wip              / Cr inventory
    receive_finished_goods  Dr finished_goods   / Cr wip   (+ Dr scrap_loss / Cr wip)
    deliver_sale            Dr cogs             / Cr finished_goods
                            (+ Dr accounts_receivable / Cr sales_revenue)
    adjust_inventory IN     Dr inventory        / Cr inventory_adjustment
    adjust_inventory OUT    Dr inventory_adjustment / Cr inventory
    transfer_inventory      no journal
    record_opening_balance  Dr inventory        / Cr opening_balance_equity

    "inventory" is the finished_goods account for FINISHED_GOOD items.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from ledger_config import AccountCodeMap, LedgerConfig
from ledger_kernel.db.types import ZERO, fits_storage, quantize_amount
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.costing import CostingResult, Direction, ItemType, RefType
from ledger_kernel.domain.journal import JournalLineSpec, double_entry
from ledger_kernel.domain.values import Money, Quantity
from ledger_kernel.exceptions import InvalidQuantityError, InvalidTransferError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.item import Item
from ledger_kernel.services.item_registry import ItemRegistry
from ledger_kernel.services.journal_poster import JournalPoster
from ledger_services.costing_engine import CostingEngine
from ledger_services.policy import CostingPolicyResolver

logger = get_logger("services.inventory_posting")


@dataclass(frozen=True)
class PostingOutcome:
    """Stock movements and the journal posted for one business event."""

    ref_type: str
    ref_id: str
    movements: tuple[CostingResult, ...]
    journal_id: UUID | None
    value: Money


class InventoryPostingService:
    """
    Inventory business events.

    Contract:
        Receives Session, account-code contract, default costing method and
        Clock via constructor injection.  Never commits; run each call
        through ``run_in_transaction`` for the outer transaction and retry.
    """

    def __init__(
        self,
        session: Session,
        account_codes: AccountCodeMap,
        default_costing_method: str = "WEIGHTED_AVG",
        clock: Clock | None = None,
    ):
        self._session = session
        self._codes = account_codes
        self._clock = clock or SystemClock()
        self._items = ItemRegistry(session)
        self._policies = CostingPolicyResolver(session, default_costing_method)
        self._engine = CostingEngine(session, self._clock)
        self._poster = JournalPoster(session, self._clock)

    @classmethod
    def from_config(
        cls,
        session: Session,
        config: LedgerConfig,
        clock: Clock | None = None,
    ) -> InventoryPostingService:
        return cls(session, config.account_codes, config.costing.default_method, clock)

    @property
    def engine(self) -> CostingEngine:
        return self._engine

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def inventory_account(self, item: Item) -> str:
        if ItemType(item.item_type) == ItemType.FINISHED_GOOD:
            return self._codes.finished_goods
        return self._codes.inventory

    def _post(
        self,
        lines: list[JournalLineSpec],
        memo: str,
        user_id: str,
        journal_date: date | None,
    ) -> UUID | None:
        lines = [line for line in lines if not (line.debit.is_zero and line.credit.is_zero)]
        if not lines:
            return None
        return self._poster.post_journal(lines, memo, user_id, journal_date=journal_date)

    def _outcome(
        self,
        ref_type: RefType,
        ref_id: str,
        movements: list[CostingResult],
        journal_id: UUID | None,
        value: Money,
    ) -> PostingOutcome:
        logger.info(
            "inventory_event_posted",
            extra={
                "ref_type": ref_type.value,
                "ref_id": ref_id,
                "movements": len(movements),
                "journal_id": str(journal_id) if journal_id else None,
                "value": str(value.amount),
            },
        )
        return PostingOutcome(
            ref_type=ref_type.value,
            ref_id=ref_id,
            movements=tuple(movements),
            journal_id=journal_id,
            value=value,
        )

    # ------------------------------------------------------------------
    # Business events
    # ------------------------------------------------------------------

    def receive_purchase(
        self,
        item_id: str,
        warehouse_id: str,
        qty: Decimal | int | str,
        unit_cost: Decimal | int | str,
        ref_id: str,
        user_id: str,
        journal_date: date | None = None,
    ) -> PostingOutcome:
        item = self._items.get_item(item_id)
        policy = self._policies.for_item(item)
        with LogContext.bind(actor_id=user_id), self._session.begin_nested():
            result = self._engine.receive_inventory(
                item_id, warehouse_id, qty, unit_cost,
                RefType.PURCHASE, ref_id, user_id, policy,
            )
            journal_id = self._post(
                double_entry(
                    self.inventory_account(item),
                    self._codes.goods_received_not_invoiced,
                    result.value,
                    RefType.PURCHASE.value,
                    ref_id,
                ),
                f"Purchase receipt {ref_id}",
                user_id,
                journal_date,
            )
        return self._outcome(RefType.PURCHASE, ref_id, [result], journal_id, result.value)

    def issue_to_production(
        self,
        item_id: str,
        warehouse_id: str,
        qty: Decimal | int | str,
        ref_id: str,
        user_id: str,
        journal_date: date | None = None,
    ) -> PostingOutcome:
        item = self._items.get_item(item_id)
        policy = self._policies.for_item(item)
        with LogContext.bind(actor_id=user_id), self._session.begin_nested():
            result = self._engine.issue_inventory(
                item_id, warehouse_id, qty, RefType.PRODUCTION, ref_id, user_id, policy
            )
            journal_id = self._post(
                double_entry(
                    self._codes.wip,
                    self.inventory_account(item),
                    result.value,
                    RefType.PRODUCTION.value,
                    ref_id,
                ),
                f"Material issue to production {ref_id}",
                user_id,
                journal_date,
            )
        return self._outcome(RefType.PRODUCTION, ref_id, [result], journal_id, result.value)

    def receive_finished_goods(
        self,
        item_id: str,
        warehouse_id: str,
        qty_good: Decimal | int | str,
        wip_cost: Decimal | int | str,
        ref_id: str,
        user_id: str,
        qty_scrap: Decimal | int | str = 0,
        journal_date: date | None = None,
    ) -> PostingOutcome:
        """
        Receive good units at the WIP cost spread over good plus scrap units.

        The scrap share is expensed to scrap_loss; the good units carry the
        rest, so the whole ``wip_cost`` leaves WIP exactly.
        """
        good = Quantity.of(qty_good).value
        scrap = Quantity.of(qty_scrap).value
        total_cost = Money.of(wip_cost).amount
        if scrap < ZERO:
            raise InvalidQuantityError("qty_scrap", scrap, "cannot be negative")
        if total_cost < ZERO:
            raise InvalidQuantityError("wip_cost", total_cost, "cannot be negative")
        if not fits_storage(total_cost):
            raise InvalidQuantityError("wip_cost", total_cost, "finer than 9 decimal places")
        if good <= ZERO:
            raise InvalidQuantityError("qty_good", good, "must be greater than zero")

        unit_cost = quantize_amount(total_cost / (good + scrap))
        scrap_value = quantize_amount(scrap * unit_cost)
        goods_value = quantize_amount(total_cost - scrap_value)

        item = self._items.get_item(item_id)
        policy = self._policies.for_item(item)
        with LogContext.bind(actor_id=user_id), self._session.begin_nested():
            result = self._engine.receive_inventory(
                item_id, warehouse_id, good, unit_cost,
                RefType.PRODUCTION, ref_id, user_id, policy,
                value=goods_value,
            )
            lines = double_entry(
                self.inventory_account(item),
                self._codes.wip,
                result.value,
                RefType.PRODUCTION.value,
                ref_id,
            )
            if scrap_value > ZERO:
                lines += double_entry(
                    self._codes.scrap_loss,
                    self._codes.wip,
                    Money.of(scrap_value),
                    RefType.PRODUCTION.value,
                    ref_id,
                )
            journal_id = self._post(
                lines, f"Finished goods receipt {ref_id}", user_id, journal_date
            )
        return self._outcome(
            RefType.PRODUCTION, ref_id, [result], journal_id, Money.of(total_cost)
        )

    def deliver_sale(
        self,
        item_id: str,
        warehouse_id: str,
        qty: Decimal | int | str,
        ref_id: str,
        user_id: str,
        sale_amount: Decimal | int | str | None = None,
        journal_date: date | None = None,
    ) -> PostingOutcome:
        """Issue sold goods at cost; optionally recognise the receivable and revenue."""
        item = self._items.get_item(item_id)
        policy = self._policies.for_item(item)
        with LogContext.bind(actor_id=user_id), self._session.begin_nested():
            result = self._engine.issue_inventory(
                item_id, warehouse_id, qty, RefType.SALE, ref_id, user_id, policy
            )
            lines = double_entry(
                self._codes.cogs,
                self.inventory_account(item),
                result.value,
                RefType.SALE.value,
                ref_id,
            )
            if sale_amount is not None:
                amount = Money.of(sale_amount)
                if amount.is_negative:
                    raise InvalidQuantityError("sale_amount", amount.amount, "cannot be negative")
                lines += double_entry(
                    self._codes.accounts_receivable,
                    self._codes.sales_revenue,
                    amount,
                    RefType.SALE.value,
                    ref_id,
                )
            journal_id = self._post(lines, f"Sales delivery {ref_id}", user_id, journal_date)
        return self._outcome(RefType.SALE, ref_id, [result], journal_id, result.value)

    def adjust_inventory(
        self,
        item_id: str,
        warehouse_id: str,
        direction: Direction | str,
        qty: Decimal | int | str,
        ref_id: str,
        user_id: str,
        reason: str = "",
        unit_cost: Decimal | int | str | None = None,
        journal_date: date | None = None,
    ) -> PostingOutcome:
        """
        Count gain (IN) or loss (OUT).

        An IN adjustment without ``unit_cost`` is valued at the key's
        average cost as read under the key lock.
        """
        direction = Direction(direction)
        item = self._items.get_item(item_id)
        policy = self._policies.for_item(item)
        inventory = self.inventory_account(item)
        memo = f"Inventory adjustment {ref_id}" + (f": {reason}" if reason else "")

        with LogContext.bind(actor_id=user_id), self._session.begin_nested():
            if direction == Direction.IN:
                result = self._engine.receive_inventory(
                    item_id, warehouse_id, qty, unit_cost,
                    RefType.ADJUSTMENT, ref_id, user_id, policy,
                )
                debit, credit = inventory, self._codes.inventory_adjustment
            else:
                result = self._engine.issue_inventory(
                    item_id, warehouse_id, qty, RefType.ADJUSTMENT, ref_id, user_id, policy
                )
                debit, credit = self._codes.inventory_adjustment, inventory
            journal_id = self._post(
                double_entry(debit, credit, result.value, RefType.ADJUSTMENT.value, ref_id),
                memo,
                user_id,
                journal_date,
            )
        return self._outcome(RefType.ADJUSTMENT, ref_id, [result], journal_id, result.value)

    def transfer_inventory(
        self,
        item_id: str,
        from_warehouse_id: str,
        to_warehouse_id: str,
        qty: Decimal | int | str,
        user_id: str,
        ref_id: str | None = None,
    ) -> PostingOutcome:
        """
        Move stock between warehouses at the source's issue cost.

        Both legs share one ``TRF-`` reference.  No journal: the value stays
        on the same inventory account.
        """
        if from_warehouse_id == to_warehouse_id:
            raise InvalidTransferError(item_id, from_warehouse_id)
        ref_id = ref_id or f"TRF-{uuid4().hex[:12].upper()}"
        item = self._items.get_item(item_id)
        policy = self._policies.for_item(item)

        with LogContext.bind(actor_id=user_id), self._session.begin_nested():
            issued = self._engine.issue_inventory(
                item_id, from_warehouse_id, qty, RefType.TRANSFER, ref_id, user_id, policy
            )
            received = self._engine.receive_inventory(
                item_id, to_warehouse_id, issued.qty.value, issued.unit_cost,
                RefType.TRANSFER, ref_id, user_id, policy,
                value=issued.value,
            )
        return self._outcome(RefType.TRANSFER, ref_id, [issued, received], None, issued.value)

    def record_opening_balance(
        self,
        item_id: str,
        warehouse_id: str,
        qty: Decimal | int | str,
        unit_cost: Decimal | int | str,
        ref_id: str,
        user_id: str,
        journal_date: date | None = None,
    ) -> PostingOutcome:
        item = self._items.get_item(item_id)
        policy = self._policies.for_item(item)
        with LogContext.bind(actor_id=user_id), self._session.begin_nested():
            result = self._engine.receive_inventory(
                item_id, warehouse_id, qty, unit_cost,
                RefType.OPENING_BALANCE, ref_id, user_id, policy,
            )
            journal_id = self._post(
                double_entry(
                    self.inventory_account(item),
                    self._codes.opening_balance_equity,
                    result.value,
                    RefType.OPENING_BALANCE.value,
                    ref_id,
                ),
                f"Opening balance {ref_id}",
                user_id,
                journal_date,
            )
        return self._outcome(
            RefType.OPENING_BALANCE, ref_id, [result], journal_id, result.value
        )

    def reverse_journal(
        self,
        journal_id: UUID,
        user_id: str,
        memo: str | None = None,
    ) -> UUID:
        """Reverse a posted journal; stock movements are not touched."""
        return self._poster.reverse_journal(journal_id, user_id, memo)
