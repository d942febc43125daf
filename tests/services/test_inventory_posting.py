"""
Tests for InventoryPostingService.

Every business event moves stock through the costing engine and posts a
journal whose amount equals the costed value.  Account codes come from the
default configuration set:

    1300 raw materials    1350 finished goods    1400 WIP
    2150 GRNI             3000 opening equity    4000 revenue
    1200 receivables      5000 COGS              5150 scrap loss
    8100 inventory adjustments
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from ledger_kernel.domain.costing import Direction, RefType
from ledger_kernel.domain.values import Money
from ledger_kernel.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    InvalidTransferError,
    UnknownItemError,
)
from ledger_kernel.models.journal import Journal
from ledger_services.reporting import inventory_aging


def _legs(journal_selector, ref_type, ref_id):
    """(account, debit, credit) for every line posted against a reference."""
    return [
        (line.account_code, line.debit, line.credit)
        for line in journal_selector.lines_for_reference(ref_type, ref_id)
    ]


def _journal_count(session) -> int:
    return session.execute(select(func.count()).select_from(Journal)).scalar_one()


class TestReceivePurchase:

    def test_debits_inventory_credits_grni(self, posting_service, journal_selector, test_actor_id):
        outcome = posting_service.receive_purchase(
            "RM-001", "WH-1", Decimal("100"), Decimal("10"), "PO-1", test_actor_id
        )

        assert outcome.value == Money.of("1000")
        assert outcome.ref_type == "PURCHASE"
        assert outcome.journal_id is not None
        assert _legs(journal_selector, RefType.PURCHASE, "PO-1") == [
            ("1300", Decimal("1000"), Decimal("0")),
            ("2150", Decimal("0"), Decimal("1000")),
        ]

    def test_finished_good_posts_to_finished_goods_account(
        self, posting_service, journal_selector, test_actor_id
    ):
        posting_service.receive_purchase("FG-001", "WH-1", "2", "50", "PO-FG", test_actor_id)
        assert _legs(journal_selector, "PURCHASE", "PO-FG")[0][0] == "1350"

    def test_unknown_item(self, posting_service, session, test_actor_id):
        with pytest.raises(UnknownItemError):
            posting_service.receive_purchase("GHOST", "WH-1", "1", "1", "PO-X", test_actor_id)
        assert _journal_count(session) == 0

    def test_journal_date_passed_through(self, posting_service, journal_selector, test_actor_id):
        outcome = posting_service.receive_purchase(
            "RM-001", "WH-1", "1", "1", "PO-D", test_actor_id, journal_date=date(2024, 2, 29)
        )
        assert journal_selector.get(outcome.journal_id).journal_date == date(2024, 2, 29)

    def test_event_logged(self, posting_service, captured_logs, test_actor_id):
        posting_service.receive_purchase("RM-001", "WH-1", "1", "3", "PO-L", test_actor_id)

        logs = captured_logs()
        messages = [r["message"] for r in logs]
        assert "ledger_entry_appended" in messages
        assert "journal_posted" in messages
        event = next(r for r in logs if r["message"] == "inventory_event_posted")
        assert event["ref_id"] == "PO-L"
        assert Decimal(event["value"]) == Decimal("3")
        appended = next(r for r in logs if r["message"] == "ledger_entry_appended")
        assert appended["actor_id"] == test_actor_id


class TestIssueToProduction:

    def test_weighted_average_issue(self, posting_service, journal_selector, test_actor_id):
        posting_service.receive_purchase("RM-001", "WH-1", "100", "10", "PO-1", test_actor_id)
        posting_service.receive_purchase("RM-001", "WH-1", "50", "14", "PO-2", test_actor_id)
        outcome = posting_service.issue_to_production("RM-001", "WH-1", "120", "MO-1", test_actor_id)

        assert outcome.value == Money.of("1360")
        assert _legs(journal_selector, "PRODUCTION", "MO-1") == [
            ("1400", Decimal("1360"), Decimal("0")),
            ("1300", Decimal("0"), Decimal("1360")),
        ]

    def test_fifo_item_uses_item_policy(self, posting_service, test_actor_id):
        posting_service.receive_purchase("RM-FIFO", "WH-1", "100", "10", "PO-1", test_actor_id)
        posting_service.receive_purchase("RM-FIFO", "WH-1", "50", "14", "PO-2", test_actor_id)
        outcome = posting_service.issue_to_production("RM-FIFO", "WH-1", "120", "MO-1", test_actor_id)

        assert outcome.value == Money.of("1280")
        assert outcome.movements[0].method.value == "FIFO"

    def test_insufficient_stock_posts_nothing(self, posting_service, session, test_actor_id):
        posting_service.receive_purchase("RM-001", "WH-1", "5", "10", "PO-1", test_actor_id)
        journals_before = _journal_count(session)

        with pytest.raises(InsufficientStockError):
            posting_service.issue_to_production("RM-001", "WH-1", "6", "MO-1", test_actor_id)

        assert _journal_count(session) == journals_before
        assert posting_service.engine.store.latest("RM-001", "WH-1").seq == 1


class TestReceiveFinishedGoods:

    def test_scrap_share_expensed(self, posting_service, journal_selector, stock_selector, test_actor_id):
        outcome = posting_service.receive_finished_goods(
            "FG-001", "WH-1", qty_good="9", wip_cost="1000", ref_id="MO-7",
            user_id=test_actor_id, qty_scrap="1",
        )

        assert outcome.value == Money.of("1000")
        assert outcome.movements[0].value == Money.of("900")
        assert outcome.movements[0].unit_cost == Money.of("100")
        assert _legs(journal_selector, "PRODUCTION", "MO-7") == [
            ("1350", Decimal("900"), Decimal("0")),
            ("1400", Decimal("0"), Decimal("900")),
            ("5150", Decimal("100"), Decimal("0")),
            ("1400", Decimal("0"), Decimal("100")),
        ]
        assert stock_selector.stock_on_hand("FG-001", "WH-1") == Decimal("9")

    def test_uneven_split_leaves_wip_exactly(self, posting_service, journal_selector, test_actor_id):
        posting_service.receive_finished_goods(
            "FG-001", "WH-1", qty_good="2", wip_cost="10", ref_id="MO-8",
            user_id=test_actor_id, qty_scrap="1",
        )
        credits = sum(
            credit
            for account, _, credit in _legs(journal_selector, "PRODUCTION", "MO-8")
            if account == "1400"
        )
        assert credits == Decimal("10")

    def test_no_scrap_single_entry(self, posting_service, journal_selector, test_actor_id):
        posting_service.receive_finished_goods("FG-001", "WH-1", "4", "200", "MO-9", test_actor_id)
        assert len(_legs(journal_selector, "PRODUCTION", "MO-9")) == 2

    @pytest.mark.parametrize(
        "good, cost, scrap",
        [("0", "100", "0"), ("5", "-1", "0"), ("5", "100", "-1")],
    )
    def test_invalid_inputs(self, posting_service, session, test_actor_id, good, cost, scrap):
        with pytest.raises(InvalidQuantityError):
            posting_service.receive_finished_goods(
                "FG-001", "WH-1", good, cost, "MO-X", test_actor_id, qty_scrap=scrap
            )
        assert _journal_count(session) == 0


class TestDeliverSale:

    def test_cogs_and_revenue(self, posting_service, journal_selector, test_actor_id):
        posting_service.receive_finished_goods("FG-001", "WH-1", "9", "900", "MO-1", test_actor_id)
        outcome = posting_service.deliver_sale(
            "FG-001", "WH-1", "3", "SO-1", test_actor_id, sale_amount="500"
        )

        assert outcome.value == Money.of("300")
        assert _legs(journal_selector, "SALE", "SO-1") == [
            ("5000", Decimal("300"), Decimal("0")),
            ("1350", Decimal("0"), Decimal("300")),
            ("1200", Decimal("500"), Decimal("0")),
            ("4000", Decimal("0"), Decimal("500")),
        ]

    def test_cost_only(self, posting_service, journal_selector, test_actor_id):
        posting_service.receive_finished_goods("FG-001", "WH-1", "2", "100", "MO-1", test_actor_id)
        posting_service.deliver_sale("FG-001", "WH-1", "1", "SO-2", test_actor_id)
        assert [leg[0] for leg in _legs(journal_selector, "SALE", "SO-2")] == ["5000", "1350"]

    def test_negative_sale_amount_rolls_back_issue(self, posting_service, test_actor_id):
        posting_service.receive_finished_goods("FG-001", "WH-1", "2", "100", "MO-1", test_actor_id)
        with pytest.raises(InvalidQuantityError):
            posting_service.deliver_sale(
                "FG-001", "WH-1", "1", "SO-3", test_actor_id, sale_amount="-1"
            )
        assert posting_service.engine.store.latest("FG-001", "WH-1").running_qty == Decimal("2")


class TestAdjustInventory:

    def test_gain_defaults_to_average_cost(self, posting_service, journal_selector, test_actor_id):
        posting_service.receive_purchase("RM-001", "WH-1", "10", "12", "PO-1", test_actor_id)
        outcome = posting_service.adjust_inventory(
            "RM-001", "WH-1", Direction.IN, "5", "CNT-1", test_actor_id, reason="count gain"
        )

        assert outcome.value == Money.of("60")
        assert _legs(journal_selector, "ADJUSTMENT", "CNT-1") == [
            ("1300", Decimal("60"), Decimal("0")),
            ("8100", Decimal("0"), Decimal("60")),
        ]
        journal = journal_selector.get(outcome.journal_id)
        assert journal.memo == "Inventory adjustment CNT-1: count gain"

    def test_loss(self, posting_service, journal_selector, test_actor_id):
        posting_service.receive_purchase("RM-001", "WH-1", "10", "12", "PO-1", test_actor_id)
        posting_service.adjust_inventory("RM-001", "WH-1", "OUT", "2", "CNT-2", test_actor_id)

        assert _legs(journal_selector, "ADJUSTMENT", "CNT-2") == [
            ("8100", Decimal("24"), Decimal("0")),
            ("1300", Decimal("0"), Decimal("24")),
        ]

    def test_zero_value_gain_posts_no_journal(self, posting_service, stock_selector, test_actor_id):
        outcome = posting_service.adjust_inventory(
            "RM-001", "WH-9", Direction.IN, "3", "CNT-3", test_actor_id
        )
        assert outcome.journal_id is None
        assert outcome.value.is_zero
        assert stock_selector.stock_on_hand("RM-001", "WH-9") == Decimal("3")

    def test_explicit_unit_cost(self, posting_service, test_actor_id):
        outcome = posting_service.adjust_inventory(
            "RM-001", "WH-1", Direction.IN, "2", "CNT-4", test_actor_id, unit_cost="7.5"
        )
        assert outcome.value == Money.of("15")


class TestTransferInventory:

    def test_moves_value_without_journal(self, posting_service, stock_selector, session, test_actor_id):
        posting_service.receive_purchase("RM-001", "WH-1", "100", "10", "PO-1", test_actor_id)
        journals_before = _journal_count(session)

        outcome = posting_service.transfer_inventory("RM-001", "WH-1", "WH-2", "40", test_actor_id)

        assert outcome.ref_id.startswith("TRF-")
        assert len(outcome.ref_id) == 16
        assert outcome.journal_id is None
        assert _journal_count(session) == journals_before
        issued, received = outcome.movements
        assert issued.direction == Direction.OUT
        assert received.value == issued.value == Money.of("400")
        assert stock_selector.stock_on_hand("RM-001", "WH-1") == Decimal("60")
        assert stock_selector.stock_on_hand("RM-001", "WH-2") == Decimal("40")

    def test_both_legs_share_reference(self, posting_service, stock_selector, test_actor_id):
        posting_service.receive_purchase("RM-001", "WH-1", "10", "1", "PO-1", test_actor_id)
        outcome = posting_service.transfer_inventory(
            "RM-001", "WH-1", "WH-2", "4", test_actor_id, ref_id="TRF-FIXED"
        )
        card = stock_selector.stock_card("RM-001")
        assert [line.ref_id for line in card if line.ref_type == "TRANSFER"] == [
            outcome.ref_id,
            outcome.ref_id,
        ]

    def test_same_warehouse_refused(self, posting_service, test_actor_id):
        with pytest.raises(InvalidTransferError):
            posting_service.transfer_inventory("RM-001", "WH-1", "WH-1", "1", test_actor_id)

    def test_insufficient_source_moves_nothing(self, posting_service, stock_selector, test_actor_id):
        posting_service.receive_purchase("RM-001", "WH-1", "1", "1", "PO-1", test_actor_id)
        with pytest.raises(InsufficientStockError):
            posting_service.transfer_inventory("RM-001", "WH-1", "WH-2", "2", test_actor_id)
        assert stock_selector.stock_on_hand("RM-001", "WH-2") == Decimal("0")


class TestOpeningBalanceAndReversal:

    def test_opening_balance_credits_equity(self, posting_service, journal_selector, test_actor_id):
        posting_service.record_opening_balance("RM-001", "WH-1", "20", "5", "OB-1", test_actor_id)
        assert _legs(journal_selector, "OPENING_BALANCE", "OB-1") == [
            ("1300", Decimal("100"), Decimal("0")),
            ("3000", Decimal("0"), Decimal("100")),
        ]

    def test_reverse_leaves_stock_untouched(self, posting_service, stock_selector, journal_selector, test_actor_id):
        outcome = posting_service.receive_purchase("RM-001", "WH-1", "10", "10", "PO-1", test_actor_id)
        reversal_id = posting_service.reverse_journal(outcome.journal_id, test_actor_id)

        assert journal_selector.get(reversal_id).reversal_of_id == outcome.journal_id
        assert stock_selector.stock_on_hand("RM-001", "WH-1") == Decimal("10")


class TestBooksStayBalanced:

    def test_full_cycle(self, posting_service, ledger_selector, stock_selector, session, test_actor_id):
        posting_service.record_opening_balance("RM-001", "WH-1", "50", "8", "OB-1", test_actor_id)
        posting_service.receive_purchase("RM-001", "WH-1", "100", "10", "PO-1", test_actor_id)
        posting_service.issue_to_production("RM-001", "WH-1", "120", "MO-1", test_actor_id)
        posting_service.receive_finished_goods(
            "FG-001", "WH-1", "11", "1120", "MO-1", test_actor_id, qty_scrap="1"
        )
        posting_service.deliver_sale("FG-001", "WH-1", "5", "SO-1", test_actor_id, sale_amount="900")
        posting_service.adjust_inventory("RM-001", "WH-1", "OUT", "3", "CNT-1", test_actor_id)
        posting_service.transfer_inventory("RM-001", "WH-1", "WH-2", "10", test_actor_id)

        as_of = date(2024, 12, 31)
        trial = ledger_selector.trial_balance(as_of)
        assert trial.is_balanced
        sheet = ledger_selector.balance_sheet(as_of)
        assert sheet.is_balanced

        raw = trial.row("1300").balance
        finished = trial.row("1350").balance
        on_hand = stock_selector.valuation()
        assert raw == sum(r.value for r in on_hand if r.item_id == "RM-001")
        assert finished == sum(r.value for r in on_hand if r.item_id == "FG-001")
        assert trial.row("1400").balance == Decimal("0")

        aging = inventory_aging(session, as_of)
        assert aging.total_qty == sum(r.qty for r in on_hand)
