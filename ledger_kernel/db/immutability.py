"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The stock ledger and the books are append-only.  A running balance is never
recomputed from scratch, so editing one ledger row in place would silently
corrupt every balance after it.  Journals are the audit trail; corrections
are reversal journals, never edits.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners below intercept them:

    session.flush()
         |
         v
    [before_update] --> _check_*() --> ImmutabilityViolationError
    [before_delete] --> _check_*() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity             | Rule
-------------------|----------------------------------------------------------
ValuedLedgerEntry  | Never updated, never deleted
LotConsumption     | Never updated, never deleted
Journal            | Never updated, never deleted
JournalLine        | Never updated, never deleted
CostLayer          | Only remaining_qty / remaining_value / is_depleted change,
                   | remaining_qty only decreases and never below zero;
                   | never deleted
ChartOfAccount     | code and account_type frozen; delete blocked once lines
                   | reference the account
Item               | item_id, item_type and uom frozen

Audit columns (updated_at / updated_by_id on TrackedBase) may always change.

===============================================================================
USAGE
===============================================================================

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

Tests that must bypass the rules call unregister_immutability_listeners()
and re-register afterwards.

Bulk UPDATE/DELETE statements bypass mapper events; the services never
issue them against protected tables.
===============================================================================
"""

from decimal import Decimal

from sqlalchemy import event, inspect, select

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_COLUMNS = frozenset({"updated_at", "updated_by_id"})
_COST_LAYER_MUTABLE = frozenset({"remaining_qty", "remaining_value", "is_depleted"})


def _block(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "reason": reason,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _changed_columns(target) -> set[str]:
    state = inspect(target)
    return {
        attr.key
        for attr in state.mapper.column_attrs
        if state.attrs[attr.key].history.has_changes()
    }


def _reject_append_only_update(mapper, connection, target):
    """Ledger entries, lot consumptions, journals and lines never change."""
    changed = _changed_columns(target) - _AUDIT_COLUMNS
    if not changed:
        return
    entity_type = type(target).__name__
    _block(
        entity_type,
        target,
        "UPDATE",
        f"{entity_type} is append-only; changed fields: {sorted(changed)}",
    )


def _reject_append_only_delete(mapper, connection, target):
    entity_type = type(target).__name__
    _block(entity_type, target, "DELETE", f"{entity_type} cannot be deleted")


def _check_cost_layer_update(mapper, connection, target):
    """Lots may only be drawn down."""
    changed = _changed_columns(target) - _COST_LAYER_MUTABLE
    if changed:
        _block(
            "CostLayer",
            target,
            "UPDATE",
            f"Lot identity fields are immutable: {sorted(changed)}",
        )

    history = inspect(target).attrs["remaining_qty"].history
    if history.deleted and history.added:
        before = Decimal(history.deleted[0])
        after = Decimal(history.added[0])
        if after > before:
            _block(
                "CostLayer",
                target,
                "UPDATE",
                f"remaining_qty may only decrease ({before} -> {after})",
            )
    if target.remaining_qty < 0:
        _block("CostLayer", target, "UPDATE", "remaining_qty cannot be negative")


def _check_account_update(mapper, connection, target):
    changed = _changed_columns(target) & {"code", "account_type"}
    if changed:
        _block(
            "ChartOfAccount",
            target,
            "UPDATE",
            f"Structural fields are immutable: {sorted(changed)}",
        )


def _check_account_delete(mapper, connection, target):
    from ledger_kernel.models.journal import JournalLine

    referenced = connection.execute(
        select(JournalLine.id).where(JournalLine.account_id == target.id).limit(1)
    ).first()
    if referenced is not None:
        _block(
            "ChartOfAccount",
            target,
            "DELETE",
            "Account is referenced by posted journal lines",
        )


def _check_item_update(mapper, connection, target):
    changed = _changed_columns(target) & {"item_id", "item_type", "uom"}
    if changed:
        _block(
            "Item",
            target,
            "UPDATE",
            f"Item identity fields are immutable: {sorted(changed)}",
        )


def _listener_table():
    from ledger_kernel.models.account import ChartOfAccount
    from ledger_kernel.models.cost_layer import CostLayer, LotConsumption
    from ledger_kernel.models.item import Item
    from ledger_kernel.models.journal import Journal, JournalLine
    from ledger_kernel.models.stock_ledger import ValuedLedgerEntry

    table = []
    for model in (ValuedLedgerEntry, LotConsumption, Journal, JournalLine):
        table.append((model, "before_update", _reject_append_only_update))
        table.append((model, "before_delete", _reject_append_only_delete))
    table.extend([
        (CostLayer, "before_update", _check_cost_layer_update),
        (CostLayer, "before_delete", _reject_append_only_delete),
        (ChartOfAccount, "before_update", _check_account_update),
        (ChartOfAccount, "before_delete", _check_account_delete),
        (Item, "before_update", _check_item_update),
    ])
    return table


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Call once after models are importable and before any writes.
    Idempotent.
    """
    for model, event_name, listener in _listener_table():
        if not event.contains(model, event_name, listener):
            event.listen(model, event_name, listener)
    logger.debug("immutability_listeners_registered")


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that intentionally violate the rules.
    """
    for model, event_name, listener in _listener_table():
        _safe_remove_listener(model, event_name, listener)
