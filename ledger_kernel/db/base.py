"""
Module: ledger_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID primary key convention, the portable column types for exact
    decimals and UTC timestamps, the type annotation map, and the TrackedBase
    mixin for master-data audit columns.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  This module MUST NOT
    import from models/, services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - UUID primary keys: every model inherits a uuid4-generated primary key.
    - Decimal precision: Decimal maps to ExactDecimal, Numeric(38, 9) on
      PostgreSQL and a canonical fixed-point string on SQLite, so no backend
      ever rounds through binary floating point.  Floats are rejected at bind
      time.
    - Timestamps: datetime maps to UTCDateTime; values are normalised to UTC
      on the way in and always come back timezone-aware.

Failure modes:
    - TypeError at flush if a float reaches an ExactDecimal column.
    - IntegrityError if a model attempts to INSERT a duplicate UUID.

Audit relevance:
    TrackedBase.created_at / created_by_id record who registered each account
    and item.  Ledger and journal rows carry their own posted_at / user_id.
"""

from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

STORAGE_DECIMAL_PLACES = 9
_STORAGE_QUANTUM = Decimal(1).scaleb(-STORAGE_DECIMAL_PLACES)


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Guarantees:
        - process_bind_param: UUID -> str on INSERT/UPDATE.
        - process_result_value: str -> UUID on SELECT.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(str(value))
        return None


class ExactDecimal(TypeDecorator):
    """
    Fixed-point decimal with 9 fractional digits on every backend.

    Contract:
        PostgreSQL stores NUMERIC(38, 9).  SQLite has no exact numeric
        affinity, so the value is stored as its canonical fixed-point
        string and parsed back into a Decimal.

    Guarantees:
        - Bound values are quantised to 9 places with ROUND_HALF_UP.
        - Loaded values are always ``Decimal``.
        - Floats are rejected with TypeError.

    Non-goals:
        - SQL-side arithmetic or ordering on SQLite (string storage);
          aggregations over these columns are done in Python.
    """

    impl = Numeric(38, STORAGE_DECIMAL_PLACES)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(64))
        return dialect.type_descriptor(
            Numeric(38, STORAGE_DECIMAL_PLACES, asdecimal=True)
        )

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, float):
            raise TypeError("Float amounts are not allowed; use Decimal")
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        value = value.quantize(_STORAGE_QUANTUM, rounding=ROUND_HALF_UP)
        if dialect.name == "sqlite":
            return format(value, "f")
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, Decimal):
            return value
        return Decimal(str(value))


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp normalised to UTC.

    Naive inputs are taken to be UTC.  SQLite receives naive UTC values
    (it has no zone support), PostgreSQL receives aware UTC values; both
    come back as aware UTC datetimes.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        value = value.astimezone(UTC)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Contract:
        Every ORM model inherits from Base (or TrackedBase).  Base provides a
        UUID primary key and a type_annotation_map that enforces consistent
        column types across the schema.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - Decimal maps to ExactDecimal (38, 9).
        - datetime maps to UTCDateTime.
        - int maps to BigInteger.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: ExactDecimal(),
        datetime: UTCDateTime(),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamp and actor tracking for master data.

    Guarantees:
        - created_at is set to server NOW() on INSERT and never changes.
        - updated_at auto-updates on every UPDATE.
        - created_by_id is required; user ids are opaque strings.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    updated_by_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )


# Re-export UUID for convenience
UUID = PyUUID
