"""
Module: ledger_kernel.selectors.stock_selector
Responsibility: Read models over the valued stock ledger and the lot queue:
    stock on hand, valuation, stock card, open lots, lots for aging and the
    running-balance replay check.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - The latest entry per key (found through StockBalanceHead) is the
      authoritative on-hand snapshot.
    - ``verify_running_balances`` recomputes every snapshot from zero with
      the same arithmetic the writer uses and reports the first break.

Audit relevance:
    The stock card is the per-item movement history; the replay check is
    the evidence that no running balance was forked or edited.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.costing import Direction, next_running_balance
from ledger_kernel.models.cost_layer import CostLayer, LotConsumption
from ledger_kernel.models.stock_ledger import StockBalanceHead, ValuedLedgerEntry
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class StockValuationRow:
    item_id: str
    warehouse_id: str
    qty: Decimal
    value: Decimal
    avg_cost: Decimal
    costing_method: str


@dataclass(frozen=True)
class StockCardLine:
    """One movement on the stock card."""

    entry_id: UUID
    item_id: str
    warehouse_id: str
    key_seq: int
    posted_at: datetime
    direction: str
    ref_type: str
    ref_id: str
    qty_in: Decimal
    qty_out: Decimal
    unit_cost: Decimal
    value_in: Decimal
    value_out: Decimal
    running_qty: Decimal
    running_value: Decimal
    running_avg_cost: Decimal
    user_id: str


@dataclass(frozen=True)
class OpenLotView:
    lot_id: UUID
    item_id: str
    warehouse_id: str
    lot_seq: int
    received_at: datetime
    unit_cost: Decimal
    original_qty: Decimal
    remaining_qty: Decimal
    remaining_value: Decimal


@dataclass(frozen=True)
class BalanceVerification:
    """Result of replaying one key's ledger."""

    item_id: str
    warehouse_id: str
    entries_checked: int
    is_valid: bool
    first_break_seq: int | None = None
    detail: str | None = None


class StockSelector(BaseSelector[ValuedLedgerEntry]):
    """Stock read models."""

    def stock_on_hand(self, item_id: str, warehouse_id: str) -> Decimal:
        entry = self._latest_entry(item_id, warehouse_id)
        return entry.running_qty if entry is not None else ZERO

    def _latest_entry(self, item_id: str, warehouse_id: str) -> ValuedLedgerEntry | None:
        return self.session.execute(
            select(ValuedLedgerEntry)
            .join(StockBalanceHead, StockBalanceHead.last_entry_id == ValuedLedgerEntry.id)
            .where(
                StockBalanceHead.item_id == item_id,
                StockBalanceHead.warehouse_id == warehouse_id,
            )
        ).scalar_one_or_none()

    def valuation(
        self,
        item_id: str | None = None,
        warehouse_id: str | None = None,
        include_empty: bool = False,
    ) -> list[StockValuationRow]:
        """Latest snapshot per key, sorted by item then warehouse."""
        stmt = select(ValuedLedgerEntry).join(
            StockBalanceHead, StockBalanceHead.last_entry_id == ValuedLedgerEntry.id
        )
        if item_id is not None:
            stmt = stmt.where(StockBalanceHead.item_id == item_id)
        if warehouse_id is not None:
            stmt = stmt.where(StockBalanceHead.warehouse_id == warehouse_id)
        stmt = stmt.order_by(StockBalanceHead.item_id, StockBalanceHead.warehouse_id)

        rows = []
        for entry in self.session.execute(stmt).scalars():
            if not include_empty and entry.running_qty == ZERO and entry.running_value == ZERO:
                continue
            rows.append(
                StockValuationRow(
                    item_id=entry.item_id,
                    warehouse_id=entry.warehouse_id,
                    qty=entry.running_qty,
                    value=entry.running_value,
                    avg_cost=entry.running_avg_cost,
                    costing_method=entry.costing_method,
                )
            )
        return rows

    def total_value(self, warehouse_id: str | None = None) -> Decimal:
        return sum((row.value for row in self.valuation(warehouse_id=warehouse_id)), ZERO)

    def stock_card(
        self,
        item_id: str,
        warehouse_id: str | None = None,
        from_time: datetime | None = None,
        to_time: datetime | None = None,
    ) -> list[StockCardLine]:
        """Movements for an item, oldest first, bounds inclusive."""
        stmt = select(ValuedLedgerEntry).where(ValuedLedgerEntry.item_id == item_id)
        if warehouse_id is not None:
            stmt = stmt.where(ValuedLedgerEntry.warehouse_id == warehouse_id)
        if from_time is not None:
            stmt = stmt.where(ValuedLedgerEntry.posted_at >= from_time)
        if to_time is not None:
            stmt = stmt.where(ValuedLedgerEntry.posted_at <= to_time)
        stmt = stmt.order_by(
            ValuedLedgerEntry.posted_at,
            ValuedLedgerEntry.warehouse_id,
            ValuedLedgerEntry.key_seq,
        )

        lines = []
        for entry in self.session.execute(stmt).scalars():
            inbound = entry.direction == Direction.IN.value
            lines.append(
                StockCardLine(
                    entry_id=entry.id,
                    item_id=entry.item_id,
                    warehouse_id=entry.warehouse_id,
                    key_seq=entry.key_seq,
                    posted_at=entry.posted_at,
                    direction=entry.direction,
                    ref_type=entry.ref_type,
                    ref_id=entry.ref_id,
                    qty_in=entry.qty if inbound else ZERO,
                    qty_out=ZERO if inbound else entry.qty,
                    unit_cost=entry.unit_cost,
                    value_in=entry.value if inbound else ZERO,
                    value_out=ZERO if inbound else entry.value,
                    running_qty=entry.running_qty,
                    running_value=entry.running_value,
                    running_avg_cost=entry.running_avg_cost,
                    user_id=entry.user_id,
                )
            )
        return lines

    def verify_running_balances(self, item_id: str, warehouse_id: str) -> BalanceVerification:
        """Replay the key from zero and compare every stored snapshot."""
        entries = self.session.execute(
            select(ValuedLedgerEntry)
            .where(
                ValuedLedgerEntry.item_id == item_id,
                ValuedLedgerEntry.warehouse_id == warehouse_id,
            )
            .order_by(ValuedLedgerEntry.posted_at, ValuedLedgerEntry.key_seq)
        ).scalars().all()

        qty = ZERO
        value = ZERO
        previous_posted_at = None
        for expected_seq, entry in enumerate(entries, start=1):
            problem = None
            if entry.key_seq != expected_seq:
                problem = f"expected key_seq {expected_seq}, found {entry.key_seq}"
            elif previous_posted_at is not None and entry.posted_at < previous_posted_at:
                problem = "posted_at went backwards"
            else:
                try:
                    balance = next_running_balance(
                        qty, value, Direction(entry.direction), entry.qty, entry.value
                    )
                except ValueError:
                    problem = "running quantity negative on replay"
                else:
                    if (
                        balance.qty != entry.running_qty
                        or balance.value != entry.running_value
                        or balance.avg_cost != entry.running_avg_cost
                    ):
                        problem = (
                            f"stored {entry.running_qty}/{entry.running_value}, "
                            f"replayed {balance.qty}/{balance.value}"
                        )
                    qty, value = balance.qty, balance.value
            if problem is not None:
                return BalanceVerification(
                    item_id=item_id,
                    warehouse_id=warehouse_id,
                    entries_checked=expected_seq,
                    is_valid=False,
                    first_break_seq=entry.key_seq,
                    detail=problem,
                )
            previous_posted_at = entry.posted_at

        return BalanceVerification(
            item_id=item_id,
            warehouse_id=warehouse_id,
            entries_checked=len(entries),
            is_valid=True,
        )

    def _lot_views(self, stmt) -> list[OpenLotView]:
        return [
            OpenLotView(
                lot_id=lot.id,
                item_id=lot.item_id,
                warehouse_id=lot.warehouse_id,
                lot_seq=lot.lot_seq,
                received_at=lot.received_at,
                unit_cost=lot.unit_cost,
                original_qty=lot.original_qty,
                remaining_qty=lot.remaining_qty,
                remaining_value=lot.remaining_value,
            )
            for lot in self.session.execute(stmt).scalars()
        ]

    def open_lots(self, item_id: str, warehouse_id: str) -> list[OpenLotView]:
        """Undepleted lots for one key, oldest first."""
        return self._lot_views(
            select(CostLayer)
            .where(
                CostLayer.item_id == item_id,
                CostLayer.warehouse_id == warehouse_id,
                CostLayer.is_depleted.is_(False),
            )
            .order_by(CostLayer.received_at, CostLayer.lot_seq)
        )

    def aging_lots(
        self,
        as_of: datetime,
        warehouse_id: str | None = None,
    ) -> list[OpenLotView]:
        """
        Lots holding stock at ``as_of``, with their remainder at that moment.

        A lot's remainder at ``as_of`` is today's remainder plus every draw
        posted after ``as_of``, so a past date reports the stock that was
        on hand then rather than what is left now.
        """
        stmt = select(CostLayer).where(CostLayer.received_at <= as_of)
        if warehouse_id is not None:
            stmt = stmt.where(CostLayer.warehouse_id == warehouse_id)
        lots = self._lot_views(
            stmt.order_by(
                CostLayer.item_id,
                CostLayer.warehouse_id,
                CostLayer.received_at,
                CostLayer.lot_seq,
            )
        )
        if not lots:
            return []

        drawn_after: dict[UUID, tuple[Decimal, Decimal]] = {}
        later_draws = self.session.execute(
            select(LotConsumption.lot_id, LotConsumption.qty, LotConsumption.value)
            .join(ValuedLedgerEntry, ValuedLedgerEntry.id == LotConsumption.entry_id)
            .where(
                ValuedLedgerEntry.posted_at > as_of,
                LotConsumption.lot_id.in_([lot.lot_id for lot in lots]),
            )
        )
        for lot_id, qty, value in later_draws:
            prev_qty, prev_value = drawn_after.get(lot_id, (ZERO, ZERO))
            drawn_after[lot_id] = (prev_qty + qty, prev_value + value)

        result = []
        for lot in lots:
            qty, value = drawn_after.get(lot.lot_id, (ZERO, ZERO))
            if lot.remaining_qty + qty > ZERO:
                result.append(
                    replace(
                        lot,
                        remaining_qty=lot.remaining_qty + qty,
                        remaining_value=lot.remaining_value + value,
                    )
                )
        return result
