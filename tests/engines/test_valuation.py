"""
Tests for the pure valuation engines.

Covers:
- Receipt costing (explicit value vs qty x unit_cost)
- Weighted-average issue costing
- FIFO lot consumption and draw planning
- Input validation
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_engines.valuation import (
    OpenLot,
    consume_fifo,
    cost_receipt,
    plan_draws,
    weighted_average_issue,
)
from ledger_kernel.domain.costing import BalanceSnapshot
from ledger_kernel.exceptions import InsufficientStockError, InvalidQuantityError

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


def _snapshot(qty: str, value: str) -> BalanceSnapshot:
    qty_d, value_d = Decimal(qty), Decimal(value)
    return BalanceSnapshot(
        item_id="RM-001",
        warehouse_id="WH-1",
        seq=2,
        running_qty=qty_d,
        running_value=value_d,
        running_avg_cost=(value_d / qty_d).quantize(Decimal("0.000000001")),
    )


def _lot(seq: int, qty: str, unit_cost: str, received_at: datetime = T0) -> OpenLot:
    return OpenLot(
        lot_id=uuid4(),
        lot_seq=seq,
        received_at=received_at,
        unit_cost=Decimal(unit_cost),
        remaining_qty=Decimal(qty),
        remaining_value=Decimal(qty) * Decimal(unit_cost),
    )


class TestCostReceipt:

    def test_value_is_qty_times_unit_cost(self):
        movement = cost_receipt(Decimal("100"), Decimal("10"))
        assert movement.value == Decimal("1000")
        assert movement.unit_cost == Decimal("10")

    def test_explicit_value_is_carried_exactly(self):
        movement = cost_receipt(Decimal("3"), Decimal("0"), Decimal("10"))
        assert movement.value == Decimal("10")
        assert movement.unit_cost == Decimal("3.333333333")

    def test_zero_unit_cost_allowed(self):
        assert cost_receipt(Decimal("5"), Decimal("0")).value == Decimal("0")

    @pytest.mark.parametrize("qty", ["0", "-1"])
    def test_non_positive_quantity_rejected(self, qty):
        with pytest.raises(InvalidQuantityError):
            cost_receipt(Decimal(qty), Decimal("10"))

    def test_negative_unit_cost_rejected(self):
        with pytest.raises(InvalidQuantityError) as exc_info:
            cost_receipt(Decimal("1"), Decimal("-0.01"))
        assert exc_info.value.field == "unit_cost"

    def test_negative_value_rejected(self):
        with pytest.raises(InvalidQuantityError):
            cost_receipt(Decimal("1"), Decimal("0"), Decimal("-1"))


class TestWeightedAverageIssue:

    def test_issue_120_of_150(self):
        """100 @ 10 + 50 @ 14, issue 120 -> 1360."""
        movement = weighted_average_issue(snapshot=_snapshot("150", "1700"), qty=Decimal("120"))
        assert movement.value == Decimal("1360")
        assert movement.unit_cost == Decimal("11.333333333")

    def test_full_issue_takes_exact_running_value(self):
        movement = weighted_average_issue(snapshot=_snapshot("3", "10"), qty=Decimal("3"))
        assert movement.value == Decimal("10")

    def test_partial_issue_is_proportional_and_quantised(self):
        movement = weighted_average_issue(snapshot=_snapshot("3", "10"), qty=Decimal("1"))
        assert movement.value == Decimal("3.333333333")

    def test_over_issue_rejected(self):
        with pytest.raises(InsufficientStockError) as exc_info:
            weighted_average_issue(snapshot=_snapshot("10", "100"), qty=Decimal("11"))
        assert exc_info.value.available == "10"
        assert exc_info.value.requested == "11"

    def test_zero_quantity_rejected(self):
        with pytest.raises(InvalidQuantityError):
            weighted_average_issue(snapshot=_snapshot("10", "100"), qty=Decimal("0"))


class TestConsumeFifo:

    def test_issue_120_across_two_lots(self):
        """100 @ 10 then 50 @ 14, issue 120 -> 1000 + 280."""
        lots = [_lot(1, "100", "10"), _lot(2, "50", "14")]
        issue = consume_fifo(item_id="RM-FIFO", warehouse_id="WH-1", lots=lots, qty=Decimal("120"))

        assert issue.value == Decimal("1280")
        assert issue.unit_cost == Decimal("10.666666667")
        assert issue.lots_touched == 2
        first, second = issue.draws
        assert first.exhausts_lot and first.value == Decimal("1000")
        assert not second.exhausts_lot and second.qty == Decimal("20")
        assert second.value == Decimal("280")

    def test_oldest_received_first_regardless_of_input_order(self):
        older = _lot(5, "10", "1", received_at=T0)
        newer = _lot(1, "10", "2", received_at=T0 + timedelta(days=1))
        issue = consume_fifo(item_id="X", warehouse_id="W", lots=[newer, older], qty=Decimal("10"))
        assert issue.draws[0].lot_id == older.lot_id
        assert issue.value == Decimal("10")

    def test_same_timestamp_ordered_by_lot_seq(self):
        lots = [_lot(2, "10", "2"), _lot(1, "10", "1")]
        issue = consume_fifo(item_id="X", warehouse_id="W", lots=lots, qty=Decimal("5"))
        assert issue.draws[0].lot_seq == 1

    def test_drained_lot_gives_exact_remaining_value(self):
        lot = OpenLot(
            lot_id=uuid4(),
            lot_seq=1,
            received_at=T0,
            unit_cost=Decimal("3.333333333"),
            remaining_qty=Decimal("3"),
            remaining_value=Decimal("10"),
        )
        issue = consume_fifo(item_id="X", warehouse_id="W", lots=[lot], qty=Decimal("3"))
        assert issue.value == Decimal("10")

    def test_insufficient_lots_rejected(self):
        with pytest.raises(InsufficientStockError):
            consume_fifo(
                item_id="X", warehouse_id="W", lots=[_lot(1, "5", "1")], qty=Decimal("6")
            )

    def test_empty_lots_skipped(self):
        empty = _lot(1, "0", "1")
        full = _lot(2, "5", "2")
        draws = plan_draws([empty, full], Decimal("5"))
        assert [d.lot_seq for d in draws] == [2]


class TestPlanDraws:

    def test_draw_quantities_sum_to_request(self):
        lots = [_lot(1, "4", "1"), _lot(2, "4", "1"), _lot(3, "4", "1")]
        draws = plan_draws(lots, Decimal("9"))
        assert sum(d.qty for d in draws) == Decimal("9")
        assert [d.exhausts_lot for d in draws] == [True, True, False]
