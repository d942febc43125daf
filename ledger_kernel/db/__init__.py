"""Database layer - engine, base classes, column types, immutability."""

from ledger_kernel.db.base import UUID, Base, ExactDecimal, TrackedBase, UTCDateTime, UUIDString
from ledger_kernel.db.engine import create_tables, get_engine, get_session, session_scope

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "ExactDecimal",
    "UTCDateTime",
    "UUID",
]
