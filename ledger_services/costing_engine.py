"""
ledger_services.costing_engine -- costed receipts and issues.

Responsibility:
    Prices every stock movement under an explicit ``CostingPolicy`` and
    records it through the ValuedLedgerStore: receipts open a lot, issues
    are costed at the running average or from the oldest lots and draw the
    lot queue down.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Pure pricing lives in ``ledger_engines.valuation``; persistence and
    per-key locking live in ``ledger_kernel.services.valued_ledger``.

Invariants enforced:
    - The policy is an argument, never read from ambient settings.
    - Every call runs inside a savepoint, so a rejected movement (invalid
      quantity, insufficient stock, conflict) leaves nothing behind.
    - The issue cost is computed from the snapshot read under the key lock,
      as is the price of a receipt valued at the running average.
    - A key holding stock is only moved under the method its latest entry
      used.

Failure modes:
    - InvalidQuantityError: qty <= 0, unit_cost < 0, or either finer than
      9 decimal places -- before any write.
    - InsufficientStockError: issue larger than the running quantity.
    - CostingMethodChangeError: the policy differs from the method the stock
      on hand was booked under.
    - ConcurrencyConflictError: the key moved underneath this call.

Audit relevance:
    Logs ``inventory_received`` / ``inventory_issued`` with the costed
    value, the method applied and the policy source.

Usage:
    engine = CostingEngine(session, clock)
    engine.receive_inventory("RM-001", "WH-1", Decimal("100"), Decimal("10"),
                             RefType.PURCHASE, "PO-1", "alice",
                             CostingPolicy.weighted_average())
    result = engine.issue_inventory("RM-001", "WH-1", Decimal("40"),
                                    RefType.PRODUCTION, "MO-7", "alice",
                                    CostingPolicy.weighted_average())
    result.value  # Money to post to the journal
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy.orm import Session

from ledger_engines.valuation import (
    OpenLot,
    consume_fifo,
    cost_receipt,
    plan_draws,
    validate_quantity,
    weighted_average_issue,
)
from ledger_kernel.db.types import ZERO, quantize_amount
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.costing import (
    BalanceSnapshot,
    CostingMethod,
    CostingPolicy,
    CostingResult,
    Direction,
    InventoryValuation,
    RefType,
    average_cost,
)
from ledger_kernel.domain.values import Money, Quantity
from ledger_kernel.exceptions import CostingMethodChangeError, InsufficientStockError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.stock_ledger import ValuedLedgerEntry
from ledger_kernel.services.valued_ledger import ValuedLedgerStore

logger = get_logger("services.costing_engine")


def _ref_type_value(ref_type: RefType | str) -> str:
    return RefType(ref_type).value


class CostingEngine:
    """
    Costing engine over the valued stock ledger.

    Contract:
        Receives Session and Clock via constructor injection.  Flushes,
        never commits.

    Guarantees:
        - Weighted average: issue value = running_value x qty / running_qty,
          quantised once; the average cost is unchanged by an issue.
        - FIFO: lots are consumed oldest first; a drained lot gives its exact
          remaining value.
        - Every receipt opens a lot whatever the policy, so lot quantities
          always sum to the running quantity.

    Non-goals:
        - Does not post journals; callers do that with the returned value.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._store = ValuedLedgerStore(session)

    @property
    def store(self) -> ValuedLedgerStore:
        return self._store

    def receive_inventory(
        self,
        item_id: str,
        warehouse_id: str,
        qty: Decimal | int | str,
        unit_cost: Decimal | int | str | Money | None,
        ref_type: RefType | str,
        ref_id: str,
        user_id: str,
        policy: CostingPolicy,
        value: Decimal | Money | None = None,
    ) -> CostingResult:
        """
        Record an IN movement and open its lot.

        ``value``, when given, is carried exactly and the unit cost derived
        from it (transfers and finished-goods receipts).  A ``unit_cost`` of
        None prices the receipt at the key's running average, read under
        the key lock.
        """
        qty_d = Quantity.of(qty).value
        value_d = Money.of(value).amount if value is not None else None
        if unit_cost is None and value_d is None:
            validate_quantity(qty_d)
            movement = None
        else:
            unit_cost_d = Money.of(unit_cost).amount if unit_cost is not None else ZERO
            movement = cost_receipt(qty_d, unit_cost_d, value_d)
        ref = _ref_type_value(ref_type)

        with LogContext.bind(actor_id=user_id, ref_type=ref, ref_id=ref_id):
            with self._session.begin_nested():
                snapshot = self._store.lock_key(item_id, warehouse_id)
                self._require_method(snapshot, policy)
                if movement is None:
                    movement = cost_receipt(qty_d, snapshot.running_avg_cost)
                entry = self._store.append(
                    snapshot,
                    Direction.IN,
                    movement.qty,
                    movement.unit_cost,
                    movement.value,
                    ref,
                    ref_id,
                    user_id,
                    policy.method,
                    self._clock.now(),
                )
                self._store.open_lot(entry)

            logger.info(
                "inventory_received",
                extra={
                    "item_id": item_id,
                    "warehouse_id": warehouse_id,
                    "qty": str(entry.qty),
                    "unit_cost": str(entry.unit_cost),
                    "value": str(entry.value),
                    "costing_method": policy.method.value,
                    "policy_source": policy.source,
                },
            )
        return self._result(entry)

    def issue_inventory(
        self,
        item_id: str,
        warehouse_id: str,
        qty: Decimal | int | str,
        ref_type: RefType | str,
        ref_id: str,
        user_id: str,
        policy: CostingPolicy,
    ) -> CostingResult:
        """
        Cost and record an OUT movement.

        Raises:
            InvalidQuantityError: qty <= 0.
            InsufficientStockError: qty exceeds the running quantity.
        """
        qty_d = Quantity.of(qty).value
        validate_quantity(qty_d)
        ref = _ref_type_value(ref_type)

        with LogContext.bind(actor_id=user_id, ref_type=ref, ref_id=ref_id):
            with self._session.begin_nested():
                snapshot = self._store.lock_key(item_id, warehouse_id)
                self._require_method(snapshot, policy)
                if qty_d > snapshot.running_qty:
                    logger.warning(
                        "insufficient_stock",
                        extra={
                            "item_id": item_id,
                            "warehouse_id": warehouse_id,
                            "available": str(snapshot.running_qty),
                            "requested": str(qty_d),
                        },
                    )
                    raise InsufficientStockError(
                        item_id, warehouse_id, snapshot.running_qty, qty_d
                    )

                lots = self._open_lots(item_id, warehouse_id)
                if policy.is_fifo:
                    issue = consume_fifo(
                        item_id=item_id,
                        warehouse_id=warehouse_id,
                        lots=lots,
                        qty=qty_d,
                    )
                    unit_cost, value, draws = issue.unit_cost, issue.value, issue.draws
                else:
                    movement = weighted_average_issue(snapshot=snapshot, qty=qty_d)
                    unit_cost, value = movement.unit_cost, movement.value
                    # Quantities still leave the oldest lots so aging stays true
                    draws = plan_draws(lots, qty_d)

                entry = self._store.append(
                    snapshot,
                    Direction.OUT,
                    qty_d,
                    unit_cost,
                    value,
                    ref,
                    ref_id,
                    user_id,
                    policy.method,
                    self._clock.now(),
                )
                self._store.draw_lots(entry, draws)

            logger.info(
                "inventory_issued",
                extra={
                    "item_id": item_id,
                    "warehouse_id": warehouse_id,
                    "qty": str(entry.qty),
                    "unit_cost": str(entry.unit_cost),
                    "value": str(entry.value),
                    "costing_method": policy.method.value,
                    "policy_source": policy.source,
                    "lots_drawn": len(draws),
                },
            )
        return self._result(entry)

    def get_inventory_value(
        self,
        item_id: str,
        warehouse_id: str,
        policy: CostingPolicy,
    ) -> InventoryValuation:
        """On-hand value: running snapshot (average) or sum of open lots (FIFO)."""
        if policy.is_fifo:
            lots = self._open_lots(item_id, warehouse_id)
            qty = quantize_amount(sum((lot.remaining_qty for lot in lots), ZERO))
            value = quantize_amount(sum((lot.remaining_value for lot in lots), ZERO))
            avg = average_cost(qty, value)
        else:
            snapshot = self._store.latest(item_id, warehouse_id)
            qty, value, avg = (
                snapshot.running_qty,
                snapshot.running_value,
                snapshot.running_avg_cost,
            )
        return InventoryValuation(
            item_id=item_id,
            warehouse_id=warehouse_id,
            qty=qty,
            value=value,
            avg_cost=avg,
            method=policy.method,
        )

    def _require_method(self, snapshot: BalanceSnapshot, policy: CostingPolicy) -> None:
        """Stock on hand stays under the method it was booked with."""
        current = snapshot.costing_method
        if snapshot.running_qty > ZERO and current is not None and current != policy.method:
            logger.warning(
                "costing_method_mismatch",
                extra={
                    "item_id": snapshot.item_id,
                    "warehouse_id": snapshot.warehouse_id,
                    "costing_method": policy.method.value,
                    "running_qty": str(snapshot.running_qty),
                },
            )
            raise CostingMethodChangeError(
                snapshot.item_id,
                snapshot.warehouse_id,
                current.value,
                policy.method.value,
            )

    def _open_lots(self, item_id: str, warehouse_id: str) -> list[OpenLot]:
        return [
            OpenLot(
                lot_id=lot.id,
                lot_seq=lot.lot_seq,
                received_at=lot.received_at,
                unit_cost=lot.unit_cost,
                remaining_qty=lot.remaining_qty,
                remaining_value=lot.remaining_value,
            )
            for lot in self._store.open_lots(item_id, warehouse_id)
        ]

    @staticmethod
    def _result(entry: ValuedLedgerEntry) -> CostingResult:
        return CostingResult(
            entry_id=entry.id,
            item_id=entry.item_id,
            warehouse_id=entry.warehouse_id,
            direction=Direction(entry.direction),
            qty=Quantity(entry.qty),
            unit_cost=Money(entry.unit_cost),
            value=Money(entry.value),
            running_qty=Quantity(entry.running_qty),
            running_value=Money(entry.running_value),
            running_avg_cost=Money(entry.running_avg_cost),
            method=CostingMethod(entry.costing_method),
            posted_at=entry.posted_at,
        )
