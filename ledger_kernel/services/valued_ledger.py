"""
ValuedLedgerStore -- append-only persistence of valued stock movements.

Responsibility:
    Serialises appends per (item_id, warehouse_id) key, derives each new
    running balance from exactly the previous snapshot, and maintains the
    persisted open-lot queue that FIFO issues and the aging report read.

Architecture position:
    Kernel > Services -- imperative shell around the pure running-balance
    arithmetic in ``domain/costing.py``.  Called by the costing engine in
    ``ledger_services``.  Never commits.

Invariants enforced:
    - Running-balance continuity: ``append`` computes the new snapshot from
      the snapshot returned by ``lock_key`` and refuses to write if the head
      moved in between.  ``posted_at`` never goes backwards within a key.
    - Non-negative stock: ``next_running_balance`` refuses a negative
      quantity; the store turns that into InsufficientStockError.
    - Append-only: entries and lot consumptions are only ever inserted.
    - Lots are decremented exactly once per consuming entry, each draw
      recorded as a LotConsumption row.

Locking:
    ``lock_key`` selects the StockBalanceHead row ``FOR UPDATE``.  On
    PostgreSQL this blocks concurrent writers of the same key until commit;
    on SQLite the whole transaction already holds the write lock
    (``BEGIN IMMEDIATE``).  The head's version column is checked on every
    flush, so an append computed from a stale snapshot raises
    ConcurrencyConflictError instead of forking the balance.

Failure modes:
    - InsufficientStockError: the movement would make running_qty negative.
    - ConcurrencyConflictError: stale head version, or a duplicate key_seq
      inserted by a concurrent writer.

Audit relevance:
    Every append logs ``ledger_entry_appended`` with the key, sequence and
    the running snapshot after the entry.
"""

from collections.abc import Iterable, Sequence
from datetime import datetime
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ledger_kernel.db.types import ZERO, quantize_amount
from ledger_kernel.domain.costing import (
    BalanceSnapshot,
    CostingMethod,
    Direction,
    next_running_balance,
)
from ledger_kernel.exceptions import ConcurrencyConflictError, InsufficientStockError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.cost_layer import CostLayer, LotConsumption
from ledger_kernel.models.stock_ledger import StockBalanceHead, ValuedLedgerEntry
from ledger_kernel.services.base import BaseService

logger = get_logger("services.valued_ledger")


class LotDrawLike(Protocol):
    """Quantity and value to take from one lot."""

    lot_id: UUID
    qty: Decimal
    value: Decimal


class ValuedLedgerStore(BaseService[ValuedLedgerEntry]):
    """
    Per-key append-only stock ledger.

    Contract:
        Call ``lock_key`` first, then ``append`` with the returned
        snapshot, all within one transaction.

    Guarantees:
        - key_seq is 1, 2, 3, ... per key with no gaps.
        - Every entry's running_* fields equal the previous entry's plus or
          minus this entry's qty / value.

    Non-goals:
        - Does NOT compute costs; ``unit_cost`` and ``value`` arrive from
          the costing engine.
    """

    # ------------------------------------------------------------------
    # Head / snapshot
    # ------------------------------------------------------------------

    def _head(self, item_id: str, warehouse_id: str, *, lock: bool) -> StockBalanceHead | None:
        stmt = select(StockBalanceHead).where(
            StockBalanceHead.item_id == item_id,
            StockBalanceHead.warehouse_id == warehouse_id,
        )
        if lock:
            stmt = stmt.with_for_update()
        return self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _snapshot(self, head: StockBalanceHead) -> BalanceSnapshot:
        if head.last_entry_id is None:
            return BalanceSnapshot.empty(head.item_id, head.warehouse_id, head.version)
        entry = self.session.get(ValuedLedgerEntry, head.last_entry_id)
        return BalanceSnapshot(
            item_id=head.item_id,
            warehouse_id=head.warehouse_id,
            seq=entry.key_seq,
            running_qty=entry.running_qty,
            running_value=entry.running_value,
            running_avg_cost=entry.running_avg_cost,
            posted_at=entry.posted_at,
            entry_id=entry.id,
            version=head.version,
            costing_method=CostingMethod(entry.costing_method),
        )

    def lock_key(self, item_id: str, warehouse_id: str) -> BalanceSnapshot:
        """
        Acquire the per-key lock and return the latest snapshot.

        Postconditions:
            The head row exists and is locked until the transaction ends.
        """
        head = self._head(item_id, warehouse_id, lock=True)
        if head is None:
            savepoint = self.session.begin_nested()
            try:
                head = StockBalanceHead(
                    item_id=item_id,
                    warehouse_id=warehouse_id,
                    last_seq=0,
                    last_entry_id=None,
                )
                self.session.add(head)
                self.session.flush()
                savepoint.commit()
            except IntegrityError:
                logger.debug(
                    "stock_head_race_retry",
                    extra={"item_id": item_id, "warehouse_id": warehouse_id},
                )
                savepoint.rollback()
                head = self._head(item_id, warehouse_id, lock=True)
                if head is None:
                    raise
        return self._snapshot(head)

    def latest(self, item_id: str, warehouse_id: str) -> BalanceSnapshot:
        """Latest snapshot without locking; empty when the key has no entries."""
        head = self._head(item_id, warehouse_id, lock=False)
        if head is None:
            return BalanceSnapshot.empty(item_id, warehouse_id)
        return self._snapshot(head)

    # ------------------------------------------------------------------
    # Append
    # ------------------------------------------------------------------

    def append(
        self,
        snapshot: BalanceSnapshot,
        direction: Direction,
        qty: Decimal,
        unit_cost: Decimal,
        value: Decimal,
        ref_type: str,
        ref_id: str,
        user_id: str,
        costing_method: CostingMethod,
        posted_at: datetime,
    ) -> ValuedLedgerEntry:
        """
        Write one entry derived from ``snapshot``.

        Preconditions:
            ``snapshot`` came from ``lock_key`` in this transaction.

        Raises:
            InsufficientStockError: OUT larger than the running quantity.
            ConcurrencyConflictError: the head moved since ``snapshot``.
        """
        item_id = snapshot.item_id
        warehouse_id = snapshot.warehouse_id
        key = f"{item_id}@{warehouse_id}"

        head = self._head(item_id, warehouse_id, lock=True)
        if head is None or head.version != snapshot.version or head.last_seq != snapshot.seq:
            raise ConcurrencyConflictError(
                "StockBalanceHead", key, "snapshot is no longer the latest"
            )

        try:
            balance = next_running_balance(
                snapshot.running_qty, snapshot.running_value, direction, qty, value
            )
        except ValueError:
            logger.warning(
                "insufficient_stock",
                extra={
                    "item_id": item_id,
                    "warehouse_id": warehouse_id,
                    "available": str(snapshot.running_qty),
                    "requested": str(qty),
                },
            )
            raise InsufficientStockError(
                item_id, warehouse_id, snapshot.running_qty, qty
            ) from None

        if snapshot.posted_at is not None and posted_at < snapshot.posted_at:
            posted_at = snapshot.posted_at

        entry = ValuedLedgerEntry(
            item_id=item_id,
            warehouse_id=warehouse_id,
            key_seq=snapshot.seq + 1,
            direction=Direction(direction).value,
            qty=quantize_amount(qty),
            unit_cost=quantize_amount(unit_cost),
            value=quantize_amount(value),
            running_qty=balance.qty,
            running_value=balance.value,
            running_avg_cost=balance.avg_cost,
            costing_method=CostingMethod(costing_method).value,
            ref_type=str(getattr(ref_type, "value", ref_type)),
            ref_id=ref_id,
            user_id=user_id,
            posted_at=posted_at,
        )
        self.session.add(entry)
        try:
            self.session.flush()
            head.last_seq = entry.key_seq
            head.last_entry_id = entry.id
            self.session.flush()
        except (StaleDataError, IntegrityError) as exc:
            logger.warning(
                "ledger_append_conflict",
                extra={"item_id": item_id, "warehouse_id": warehouse_id},
            )
            raise ConcurrencyConflictError(
                "StockBalanceHead", key, type(exc).__name__
            ) from exc

        logger.info(
            "ledger_entry_appended",
            extra={
                "entry_id": str(entry.id),
                "item_id": item_id,
                "warehouse_id": warehouse_id,
                "key_seq": entry.key_seq,
                "direction": entry.direction,
                "qty": str(entry.qty),
                "value": str(entry.value),
                "running_qty": str(entry.running_qty),
                "running_value": str(entry.running_value),
            },
        )
        return entry

    def replay(
        self,
        item_id: str,
        warehouse_id: str,
        from_time: datetime | None = None,
        to_time: datetime | None = None,
    ) -> list[ValuedLedgerEntry]:
        """Entries for the key ordered by (posted_at, key_seq), bounds inclusive."""
        stmt = select(ValuedLedgerEntry).where(
            ValuedLedgerEntry.item_id == item_id,
            ValuedLedgerEntry.warehouse_id == warehouse_id,
        )
        if from_time is not None:
            stmt = stmt.where(ValuedLedgerEntry.posted_at >= from_time)
        if to_time is not None:
            stmt = stmt.where(ValuedLedgerEntry.posted_at <= to_time)
        stmt = stmt.order_by(ValuedLedgerEntry.posted_at, ValuedLedgerEntry.key_seq)
        return list(self.session.execute(stmt).scalars())

    # ------------------------------------------------------------------
    # Lots
    # ------------------------------------------------------------------

    def open_lot(self, entry: ValuedLedgerEntry) -> CostLayer:
        """Open the lot created by an IN entry."""
        lot = CostLayer(
            item_id=entry.item_id,
            warehouse_id=entry.warehouse_id,
            lot_seq=entry.key_seq,
            received_at=entry.posted_at,
            unit_cost=entry.unit_cost,
            original_qty=entry.qty,
            remaining_qty=entry.qty,
            remaining_value=entry.value,
            is_depleted=False,
            source_entry_id=entry.id,
        )
        self.session.add(lot)
        self.session.flush()
        logger.debug(
            "cost_layer_opened",
            extra={
                "lot_id": str(lot.id),
                "item_id": entry.item_id,
                "warehouse_id": entry.warehouse_id,
                "qty": str(entry.qty),
                "unit_cost": str(entry.unit_cost),
            },
        )
        return lot

    def open_lots(self, item_id: str, warehouse_id: str) -> Sequence[CostLayer]:
        """Undepleted lots, oldest first by (received_at, lot_seq)."""
        return list(
            self.session.execute(
                select(CostLayer)
                .where(
                    CostLayer.item_id == item_id,
                    CostLayer.warehouse_id == warehouse_id,
                    CostLayer.is_depleted.is_(False),
                )
                .order_by(CostLayer.received_at, CostLayer.lot_seq)
            ).scalars()
        )

    def draw_lots(
        self,
        entry: ValuedLedgerEntry,
        draws: Iterable[LotDrawLike],
    ) -> list[LotConsumption]:
        """
        Decrement lots for an OUT entry and record each draw.

        A draw that takes a lot's whole remaining quantity also takes its
        whole remaining value and marks the lot depleted.
        """
        consumptions = []
        for draw in draws:
            lot = self.session.get(CostLayer, draw.lot_id)
            if lot is None or lot.is_depleted or draw.qty > lot.remaining_qty:
                raise ConcurrencyConflictError(
                    "CostLayer", str(draw.lot_id), "lot changed since it was read"
                )
            qty = quantize_amount(draw.qty)
            remaining_qty = quantize_amount(lot.remaining_qty - qty)
            if remaining_qty == ZERO:
                value = lot.remaining_value
                remaining_value = ZERO
            else:
                value = quantize_amount(draw.value)
                remaining_value = quantize_amount(lot.remaining_value - value)

            lot.remaining_qty = remaining_qty
            lot.remaining_value = remaining_value
            lot.is_depleted = remaining_qty == ZERO

            consumption = LotConsumption(
                entry_id=entry.id,
                lot_id=lot.id,
                qty=qty,
                value=value,
                unit_cost=lot.unit_cost,
            )
            self.session.add(consumption)
            consumptions.append(consumption)

        self.session.flush()
        logger.debug(
            "cost_layers_drawn",
            extra={"entry_id": str(entry.id), "lots": len(consumptions)},
        )
        return consumptions
