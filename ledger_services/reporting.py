"""
ledger_services.reporting -- inventory aging report.

Reads open lots through ``StockSelector.aging_lots`` and ages them with the
pure ``AgingCalculator``.  Lots are dated by their receipt timestamp; the
age is counted in whole days up to ``as_of_date``.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, date, datetime, time

from sqlalchemy.orm import Session

from ledger_engines.aging import AgeBucket, AgingCalculator, InventoryAgingReport, LotAgeInput
from ledger_kernel.selectors.stock_selector import StockSelector


def _end_of_day(as_of_date: date) -> datetime:
    return datetime.combine(as_of_date, time.max, tzinfo=UTC)


def inventory_aging(
    session: Session,
    as_of_date: date,
    warehouse_id: str | None = None,
    buckets: Sequence[AgeBucket] | None = None,
) -> InventoryAgingReport:
    """Age what each lot still held at the end of ``as_of_date``."""
    lots = StockSelector(session).aging_lots(_end_of_day(as_of_date), warehouse_id)
    inputs = [
        LotAgeInput(
            lot_id=lot.lot_id,
            item_id=lot.item_id,
            warehouse_id=lot.warehouse_id,
            received_on=lot.received_at.astimezone(UTC).date(),
            remaining_qty=lot.remaining_qty,
            remaining_value=lot.remaining_value,
        )
        for lot in lots
    ]
    return AgingCalculator().age_lots(lots=inputs, as_of_date=as_of_date, buckets=buckets)
