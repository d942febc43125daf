"""
Tests for the inventory aging report over persisted lots.
"""

from datetime import date
from decimal import Decimal

from ledger_engines.aging import AgeBucket
from ledger_services.reporting import inventory_aging


def _receive_aged(posting_service, clock, actor):
    """Receipts on 2024-01-01, 2024-03-01 and 2024-04-20."""
    posting_service.receive_purchase("RM-FIFO", "WH-1", "10", "1", "PO-1", actor)
    clock.advance_days(60)
    posting_service.receive_purchase("RM-FIFO", "WH-1", "10", "2", "PO-2", actor)
    clock.advance_days(50)
    posting_service.receive_purchase("RM-FIFO", "WH-1", "10", "3", "PO-3", actor)


class TestInventoryAging:

    def test_buckets_by_receipt_date(self, session, posting_service, deterministic_clock, test_actor_id):
        _receive_aged(posting_service, deterministic_clock, test_actor_id)

        report = inventory_aging(session, date(2024, 4, 30))

        assert report.bucket("0-30").value == Decimal("30")
        assert report.bucket("31-60").value == Decimal("20")
        assert report.bucket("61-90").value == Decimal("0")
        assert report.bucket("Over 90").value == Decimal("10")
        assert report.total_qty == Decimal("30")

    def test_drawn_lots_excluded(self, session, posting_service, deterministic_clock, test_actor_id):
        """
        Aging covers stock still on hand, not all-time receipts: the FIFO
        issue drains the oldest lot, so it drops out of Over 90.
        """
        _receive_aged(posting_service, deterministic_clock, test_actor_id)
        posting_service.issue_to_production("RM-FIFO", "WH-1", "15", "MO-1", test_actor_id)

        report = inventory_aging(session, date(2024, 4, 30))

        assert report.bucket("Over 90").qty == Decimal("0")
        assert report.bucket("31-60").qty == Decimal("5")
        assert report.total_value == Decimal("40")

    def test_past_date_restores_later_draws(self, session, posting_service, deterministic_clock, test_actor_id):
        _receive_aged(posting_service, deterministic_clock, test_actor_id)
        deterministic_clock.advance_days(20)
        posting_service.issue_to_production("RM-FIFO", "WH-1", "15", "MO-1", test_actor_id)

        before_issue = inventory_aging(session, date(2024, 4, 30))
        after_issue = inventory_aging(session, date(2024, 5, 10))

        assert before_issue.total_qty == Decimal("30")
        assert before_issue.bucket("Over 90").value == Decimal("10")
        assert before_issue.bucket("31-60").value == Decimal("20")
        assert after_issue.total_qty == Decimal("15")
        assert after_issue.bucket("Over 90").qty == Decimal("0")

    def test_lots_after_as_of_ignored(self, session, posting_service, deterministic_clock, test_actor_id):
        _receive_aged(posting_service, deterministic_clock, test_actor_id)

        report = inventory_aging(session, date(2024, 3, 15))

        assert report.total_qty == Decimal("20")

    def test_warehouse_filter(self, session, posting_service, test_actor_id):
        posting_service.receive_purchase("RM-001", "WH-1", "1", "1", "PO-1", test_actor_id)
        posting_service.receive_purchase("RM-001", "WH-2", "2", "1", "PO-2", test_actor_id)

        report = inventory_aging(session, date(2024, 1, 1), warehouse_id="WH-2")

        assert report.total_qty == Decimal("2")
        assert {lot.warehouse_id for lot in report.lots} == {"WH-2"}

    def test_custom_buckets(self, session, posting_service, deterministic_clock, test_actor_id):
        _receive_aged(posting_service, deterministic_clock, test_actor_id)
        buckets = (AgeBucket("fresh", 0, 14), AgeBucket("aged", 15, None))

        report = inventory_aging(session, date(2024, 4, 30), buckets=buckets)

        assert report.bucket("fresh").qty == Decimal("10")
        assert report.bucket("aged").qty == Decimal("20")
