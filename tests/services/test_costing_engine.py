"""
Tests for CostingEngine over the persisted stock ledger.

Covers:
- Weighted-average and FIFO worked examples
- Lot queue maintenance under both methods
- Insufficient stock and invalid input leave no trace
- Inventory valuation per method
- Storage precision and costing-method consistency
- Receipts priced at the running average under the key lock
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from ledger_kernel.domain.costing import CostingMethod, CostingPolicy, Direction, RefType
from ledger_kernel.domain.values import Money, Quantity
from ledger_kernel.exceptions import (
    CostingMethodChangeError,
    InsufficientStockError,
    InvalidQuantityError,
)
from ledger_kernel.models.cost_layer import CostLayer, LotConsumption
from ledger_kernel.models.stock_ledger import ValuedLedgerEntry

WA = CostingPolicy.weighted_average()
FIFO = CostingPolicy.fifo()


def _entry_count(session) -> int:
    return session.execute(select(func.count()).select_from(ValuedLedgerEntry)).scalar_one()


def _receive(engine, item, qty, unit_cost, policy, ref_id="PO-1", warehouse="WH-1"):
    return engine.receive_inventory(
        item, warehouse, Decimal(qty), Decimal(unit_cost),
        RefType.PURCHASE, ref_id, "alice", policy,
    )


def _issue(engine, item, qty, policy, ref_id="MO-1", warehouse="WH-1"):
    return engine.issue_inventory(
        item, warehouse, Decimal(qty), RefType.PRODUCTION, ref_id, "alice", policy
    )


class TestReceiveInventory:

    def test_first_receipt(self, costing_engine):
        result = _receive(costing_engine, "RM-001", "100", "10", WA)

        assert result.direction == Direction.IN
        assert result.value == Money.of("1000")
        assert result.running_qty == Quantity.of("100")
        assert result.running_value == Money.of("1000")
        assert result.running_avg_cost == Money.of("10")
        assert result.method == CostingMethod.WEIGHTED_AVG

    def test_second_receipt_updates_average(self, costing_engine):
        _receive(costing_engine, "RM-001", "100", "10", WA)
        result = _receive(costing_engine, "RM-001", "50", "14", WA, ref_id="PO-2")

        assert result.running_qty == Quantity.of("150")
        assert result.running_value == Money.of("1700")
        assert result.running_avg_cost == Money.of("11.333333333")

    def test_receipt_opens_lot(self, costing_engine, session):
        result = _receive(costing_engine, "RM-001", "5", "2.5", WA)

        lot = session.execute(
            select(CostLayer).where(CostLayer.source_entry_id == result.entry_id)
        ).scalar_one()
        assert lot.original_qty == Decimal("5")
        assert lot.remaining_value == Decimal("12.5")
        assert not lot.is_depleted

    def test_explicit_value_carried(self, costing_engine):
        result = costing_engine.receive_inventory(
            "FG-001", "WH-1", Decimal("3"), Decimal("0"),
            RefType.PRODUCTION, "MO-9", "alice", WA, value=Decimal("10"),
        )
        assert result.value == Money.of("10")
        assert result.unit_cost == Money.of("3.333333333")

    def test_warehouses_are_independent_keys(self, costing_engine):
        _receive(costing_engine, "RM-001", "10", "1", WA, warehouse="WH-1")
        result = _receive(costing_engine, "RM-001", "4", "3", WA, warehouse="WH-2")
        assert result.running_qty == Quantity.of("4")

    @pytest.mark.parametrize("qty, unit_cost", [("0", "1"), ("-5", "1"), ("1", "-1")])
    def test_invalid_input_writes_nothing(self, costing_engine, session, qty, unit_cost):
        with pytest.raises(InvalidQuantityError):
            _receive(costing_engine, "RM-001", qty, unit_cost, WA)
        assert _entry_count(session) == 0


class TestWeightedAverageIssue:

    def test_worked_example(self, costing_engine):
        """100 @ 10, 50 @ 14, issue 120 -> 1360; 30 left worth 340."""
        _receive(costing_engine, "RM-001", "100", "10", WA)
        _receive(costing_engine, "RM-001", "50", "14", WA, ref_id="PO-2")
        result = _issue(costing_engine, "RM-001", "120", WA)

        assert result.direction == Direction.OUT
        assert result.value == Money.of("1360")
        assert result.unit_cost == Money.of("11.333333333")
        assert result.running_qty == Quantity.of("30")
        assert result.running_value == Money.of("340")
        assert result.running_avg_cost == Money.of("11.333333333")

    def test_issue_everything_zeroes_value(self, costing_engine):
        _receive(costing_engine, "RM-001", "3", "3.333333333", WA)
        _receive(costing_engine, "RM-001", "1", "0.000000001", WA, ref_id="PO-2")
        result = _issue(costing_engine, "RM-001", "4", WA)

        assert result.running_qty.is_zero
        assert result.running_value.is_zero
        assert result.value == Money.of("10.000000000")

    def test_lots_drawn_oldest_first(self, costing_engine, ledger_store):
        _receive(costing_engine, "RM-001", "100", "10", WA)
        _receive(costing_engine, "RM-001", "50", "14", WA, ref_id="PO-2")
        _issue(costing_engine, "RM-001", "120", WA)

        lots = ledger_store.open_lots("RM-001", "WH-1")
        assert len(lots) == 1
        assert lots[0].lot_seq == 2
        assert lots[0].remaining_qty == Decimal("30")


class TestFifoIssue:

    def test_worked_example(self, costing_engine, ledger_store):
        """100 @ 10, 50 @ 14, issue 120 -> 1280; 30 @ 14 = 420 left."""
        _receive(costing_engine, "RM-FIFO", "100", "10", FIFO)
        _receive(costing_engine, "RM-FIFO", "50", "14", FIFO, ref_id="PO-2")
        result = _issue(costing_engine, "RM-FIFO", "120", FIFO)

        assert result.value == Money.of("1280")
        assert result.unit_cost == Money.of("10.666666667")
        assert result.running_qty == Quantity.of("30")
        assert result.running_value == Money.of("420")
        assert result.method == CostingMethod.FIFO

        lots = ledger_store.open_lots("RM-FIFO", "WH-1")
        assert [(lot.remaining_qty, lot.remaining_value) for lot in lots] == [
            (Decimal("30"), Decimal("420"))
        ]

    def test_drained_lot_not_consumed_again(self, costing_engine):
        _receive(costing_engine, "RM-FIFO", "10", "1", FIFO)
        _receive(costing_engine, "RM-FIFO", "10", "2", FIFO, ref_id="PO-2")
        _issue(costing_engine, "RM-FIFO", "10", FIFO, ref_id="MO-1")
        second = _issue(costing_engine, "RM-FIFO", "5", FIFO, ref_id="MO-2")

        assert second.value == Money.of("10")

    def test_consumptions_recorded(self, costing_engine, session):
        _receive(costing_engine, "RM-FIFO", "10", "1", FIFO)
        _receive(costing_engine, "RM-FIFO", "10", "2", FIFO, ref_id="PO-2")
        result = _issue(costing_engine, "RM-FIFO", "15", FIFO)

        consumptions = session.execute(
            select(LotConsumption).where(LotConsumption.entry_id == result.entry_id)
        ).scalars().all()
        assert sorted(c.qty for c in consumptions) == [Decimal("5"), Decimal("10")]
        assert sum(c.value for c in consumptions) == Decimal("20")


class TestInsufficientStock:

    def test_over_issue_rejected_and_leaves_no_trace(self, costing_engine, ledger_store, session):
        _receive(costing_engine, "RM-001", "10", "5", WA)
        before = ledger_store.latest("RM-001", "WH-1")

        with pytest.raises(InsufficientStockError) as exc_info:
            _issue(costing_engine, "RM-001", "11", WA)

        assert exc_info.value.available == str(before.running_qty)
        after = ledger_store.latest("RM-001", "WH-1")
        assert after.seq == before.seq == 1
        assert after.running_qty == Decimal("10")
        assert _entry_count(session) == 1
        assert ledger_store.open_lots("RM-001", "WH-1")[0].remaining_qty == Decimal("10")

    def test_issue_from_unknown_key_rejected(self, costing_engine, session):
        with pytest.raises(InsufficientStockError):
            _issue(costing_engine, "RM-001", "1", FIFO, warehouse="EMPTY")
        assert _entry_count(session) == 0

    def test_invalid_issue_quantity(self, costing_engine):
        with pytest.raises(InvalidQuantityError):
            _issue(costing_engine, "RM-001", "0", WA)


class TestInventoryValue:

    def test_weighted_average_uses_running_snapshot(self, costing_engine):
        _receive(costing_engine, "RM-001", "100", "10", WA)
        _receive(costing_engine, "RM-001", "50", "14", WA, ref_id="PO-2")
        _issue(costing_engine, "RM-001", "120", WA)

        valuation = costing_engine.get_inventory_value("RM-001", "WH-1", WA)
        assert valuation.qty == Decimal("30")
        assert valuation.value == Decimal("340")
        assert valuation.method == CostingMethod.WEIGHTED_AVG

    def test_fifo_sums_open_lots(self, costing_engine):
        _receive(costing_engine, "RM-FIFO", "100", "10", FIFO)
        _receive(costing_engine, "RM-FIFO", "50", "14", FIFO, ref_id="PO-2")
        _issue(costing_engine, "RM-FIFO", "120", FIFO)

        valuation = costing_engine.get_inventory_value("RM-FIFO", "WH-1", FIFO)
        assert valuation.qty == Decimal("30")
        assert valuation.value == Decimal("420")
        assert valuation.avg_cost == Decimal("14")

    def test_empty_key(self, costing_engine):
        valuation = costing_engine.get_inventory_value("NONE", "WH-1", WA)
        assert valuation.qty == Decimal("0")
        assert valuation.value == Decimal("0")


class TestStoragePrecision:

    def test_sub_quantum_receipt_rejected(self, costing_engine, ledger_store, session):
        with pytest.raises(InvalidQuantityError) as exc_info:
            _receive(costing_engine, "RM-001", "0.0000000001", "10", WA)

        assert exc_info.value.field == "qty"
        assert _entry_count(session) == 0
        assert ledger_store.open_lots("RM-001", "WH-1") == []

    def test_over_precise_unit_cost_rejected(self, costing_engine, session):
        with pytest.raises(InvalidQuantityError) as exc_info:
            _receive(costing_engine, "RM-001", "3", "0.3333333333", WA)

        assert exc_info.value.field == "unit_cost"
        assert _entry_count(session) == 0

    def test_over_precise_issue_rejected(self, costing_engine, ledger_store):
        _receive(costing_engine, "RM-001", "10", "1", WA)

        with pytest.raises(InvalidQuantityError):
            _issue(costing_engine, "RM-001", "1.0000000001", WA)

        assert ledger_store.latest("RM-001", "WH-1").seq == 1

    def test_one_quantum_receipt_stored_exactly(self, costing_engine, ledger_store):
        result = _receive(costing_engine, "RM-001", "0.000000001", "1", WA)

        assert result.qty == Quantity.of("0.000000001")
        lots = ledger_store.open_lots("RM-001", "WH-1")
        assert lots[0].original_qty == Decimal("0.000000001")
        assert not lots[0].is_depleted


class TestCostingMethodConsistency:

    def test_switch_to_fifo_with_stock_on_hand_rejected(self, costing_engine, ledger_store, session):
        _receive(costing_engine, "RM-001", "100", "10", WA)
        _receive(costing_engine, "RM-001", "100", "20", WA, ref_id="PO-2")
        _issue(costing_engine, "RM-001", "100", WA)

        with pytest.raises(CostingMethodChangeError) as exc_info:
            _issue(costing_engine, "RM-001", "100", FIFO, ref_id="MO-2")

        assert exc_info.value.current_method == "WEIGHTED_AVG"
        assert exc_info.value.requested_method == "FIFO"
        snapshot = ledger_store.latest("RM-001", "WH-1")
        assert snapshot.seq == 3
        assert snapshot.running_qty == Decimal("100")
        assert snapshot.running_value == Decimal("1500")
        assert _entry_count(session) == 3

    def test_receipt_under_other_method_rejected(self, costing_engine):
        _receive(costing_engine, "RM-001", "10", "1", WA)

        with pytest.raises(CostingMethodChangeError):
            _receive(costing_engine, "RM-001", "10", "2", FIFO, ref_id="PO-2")

    def test_method_may_change_once_key_is_empty(self, costing_engine, ledger_store):
        _receive(costing_engine, "RM-001", "10", "1", WA)
        _issue(costing_engine, "RM-001", "10", WA)

        _receive(costing_engine, "RM-001", "5", "2", FIFO, ref_id="PO-2")
        result = _issue(costing_engine, "RM-001", "5", FIFO, ref_id="MO-2")

        assert result.method == CostingMethod.FIFO
        assert result.value == Money.of("10")
        assert result.running_value == Money.zero()
        assert ledger_store.latest("RM-001", "WH-1").costing_method == CostingMethod.FIFO


class TestReceiveAtRunningAverage:

    def test_unit_cost_none_uses_locked_average(self, costing_engine):
        _receive(costing_engine, "RM-001", "10", "10", WA)
        _receive(costing_engine, "RM-001", "10", "20", WA, ref_id="PO-2")

        result = costing_engine.receive_inventory(
            "RM-001", "WH-1", Decimal("4"), None,
            RefType.ADJUSTMENT, "ADJ-1", "alice", WA,
        )

        assert result.unit_cost == Money.of("15")
        assert result.value == Money.of("60")
        assert result.running_avg_cost == Money.of("15")

    def test_unit_cost_none_on_empty_key_is_zero(self, costing_engine):
        result = costing_engine.receive_inventory(
            "RM-001", "WH-1", Decimal("4"), None,
            RefType.ADJUSTMENT, "ADJ-1", "alice", WA,
        )
        assert result.value == Money.zero()

    def test_unit_cost_none_still_validates_quantity(self, costing_engine, session):
        with pytest.raises(InvalidQuantityError):
            costing_engine.receive_inventory(
                "RM-001", "WH-1", Decimal("0"), None,
                RefType.ADJUSTMENT, "ADJ-1", "alice", WA,
            )
        assert _entry_count(session) == 0
