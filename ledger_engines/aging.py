"""
Module: ledger_engines.aging
Responsibility:
    Age on-hand inventory lots and classify them into aging buckets for the
    slow-moving stock report.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Lots are read by ``StockSelector.aging_lots`` and passed in by
    ``ledger_services.reporting.inventory_aging``.

Invariants enforced:
    - Purity: no clock access; ``as_of_date`` is always a parameter.
    - Only remaining (undrawn) quantity and value are aged, so the report
      reconciles to the stock on hand in the lot queue.
    - Decimal-only arithmetic.

Failure modes:
    - ValueError when an age does not fall into any configured bucket.

Usage:
    from ledger_engines.aging import AgingCalculator

    calculator = AgingCalculator()
    calculator.calculate_age(date(2024, 1, 15), date(2024, 2, 15))  # 31
    calculator.classify(31)  # AgeBucket("31-60", 31, 60)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from ledger_engines.tracer import traced_engine
from ledger_kernel.db.types import ZERO
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.aging")


@dataclass(frozen=True)
class AgeBucket:
    """
    A contiguous range of ages in days.

    Guarantees:
        - min_days >= 0.
        - max_days >= min_days when bounded.
    """

    name: str
    min_days: int
    max_days: int | None  # None = unbounded

    def __post_init__(self) -> None:
        if self.min_days < 0:
            raise ValueError("min_days cannot be negative")
        if self.max_days is not None and self.max_days < self.min_days:
            raise ValueError("max_days cannot be less than min_days")

    def contains(self, age_days: int) -> bool:
        if age_days < self.min_days:
            return False
        if self.max_days is None:
            return True
        return age_days <= self.max_days


INVENTORY_AGING_BUCKETS: tuple[AgeBucket, ...] = (
    AgeBucket("0-30", 0, 30),
    AgeBucket("31-60", 31, 60),
    AgeBucket("61-90", 61, 90),
    AgeBucket("Over 90", 91, None),
)


@dataclass(frozen=True, slots=True)
class LotAgeInput:
    """One open lot as seen by the aging engine."""

    lot_id: UUID
    item_id: str
    warehouse_id: str
    received_on: date
    remaining_qty: Decimal
    remaining_value: Decimal


@dataclass(frozen=True, slots=True)
class AgedLot:
    lot_id: UUID
    item_id: str
    warehouse_id: str
    received_on: date
    age_days: int
    bucket: str
    qty: Decimal
    value: Decimal


@dataclass(frozen=True, slots=True)
class BucketTotal:
    bucket: str
    qty: Decimal
    value: Decimal


@dataclass(frozen=True)
class InventoryAgingReport:
    """
    Aged lots and per-bucket totals as of a date.

    Guarantees:
        - ``buckets`` lists every configured bucket, empty ones with zero.
        - sum of bucket values == sum of lot values.
    """

    as_of_date: date
    lots: tuple[AgedLot, ...]
    buckets: tuple[BucketTotal, ...]

    @property
    def total_qty(self) -> Decimal:
        return sum((b.qty for b in self.buckets), ZERO)

    @property
    def total_value(self) -> Decimal:
        return sum((b.value for b in self.buckets), ZERO)

    def bucket(self, name: str) -> BucketTotal:
        for total in self.buckets:
            if total.bucket == name:
                return total
        raise KeyError(name)

    def by_item(self) -> dict[tuple[str, str], dict[str, Decimal]]:
        """Value per bucket for each (item, warehouse)."""
        result: dict[tuple[str, str], dict[str, Decimal]] = {}
        for lot in self.lots:
            key = (lot.item_id, lot.warehouse_id)
            row = result.setdefault(key, {b.bucket: ZERO for b in self.buckets})
            row[lot.bucket] += lot.value
        return result


class AgingCalculator:
    """
    Ages lots into buckets.

    Contract:
        Pure functions -- all dates and data passed as parameters.
    """

    DEFAULT_BUCKETS = INVENTORY_AGING_BUCKETS

    def calculate_age(self, received_on: date, as_of_date: date) -> int:
        return (as_of_date - received_on).days

    def classify(
        self,
        age_days: int,
        buckets: Sequence[AgeBucket] | None = None,
    ) -> AgeBucket:
        """
        Bucket for ``age_days``; negative ages fall into the first bucket.

        Raises:
            ValueError: no bucket contains the age.
        """
        if buckets is None:
            buckets = self.DEFAULT_BUCKETS
        if age_days < 0:
            return buckets[0]
        for bucket in buckets:
            if bucket.contains(age_days):
                return bucket
        logger.warning("age_classification_no_bucket", extra={
            "age_days": age_days,
            "bucket_count": len(buckets),
        })
        raise ValueError(f"Age {age_days} does not fit any bucket")

    @traced_engine("inventory_aging", "1.0", fingerprint_fields=("lots", "as_of_date"))
    def age_lots(
        self,
        *,
        lots: Sequence[LotAgeInput],
        as_of_date: date,
        buckets: Sequence[AgeBucket] | None = None,
    ) -> InventoryAgingReport:
        """Age every lot and total per bucket."""
        if buckets is None:
            buckets = self.DEFAULT_BUCKETS

        aged = []
        qty_totals = {b.name: ZERO for b in buckets}
        value_totals = {b.name: ZERO for b in buckets}
        for lot in lots:
            age_days = self.calculate_age(lot.received_on, as_of_date)
            bucket = self.classify(age_days, buckets)
            aged.append(
                AgedLot(
                    lot_id=lot.lot_id,
                    item_id=lot.item_id,
                    warehouse_id=lot.warehouse_id,
                    received_on=lot.received_on,
                    age_days=age_days,
                    bucket=bucket.name,
                    qty=lot.remaining_qty,
                    value=lot.remaining_value,
                )
            )
            qty_totals[bucket.name] += lot.remaining_qty
            value_totals[bucket.name] += lot.remaining_value

        logger.info("inventory_aging_generated", extra={
            "as_of_date": as_of_date.isoformat(),
            "lot_count": len(aged),
        })
        return InventoryAgingReport(
            as_of_date=as_of_date,
            lots=tuple(aged),
            buckets=tuple(
                BucketTotal(bucket=b.name, qty=qty_totals[b.name], value=value_totals[b.name])
                for b in buckets
            ),
        )
