"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the costing engine and the journal poster must react to failures
precisely: an insufficient-stock rejection is shown to the user, a concurrency
conflict is retried, an unbalanced journal is a programming error in the
caller.  Matching on message text is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - RIGHT way:
    try:
        engine.issue_inventory(...)
    except InsufficientStockError as e:
        api_response(code=e.code, available=e.available, requested=e.requested)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from LedgerKernelError:

    LedgerKernelError (base)
    |
    +-- InventoryError
    |   +-- InvalidQuantityError
    |   +-- InsufficientStockError
    |   +-- UnknownItemError
    |   +-- DuplicateItemError
    |   +-- InvalidTransferError
    |   +-- CostingMethodChangeError
    |
    +-- PostingError
    |   +-- UnbalancedJournalError
    |   +-- InvalidJournalLineError
    |   +-- JournalNotFoundError
    |   +-- JournalAlreadyReversedError
    |
    +-- AccountError
    |   +-- UnknownAccountError
    |   +-- AccountInactiveError
    |   +-- DuplicateAccountError
    |
    +-- ConcurrencyError
    |   +-- ConcurrencyConflictError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Inventory       | INVALID_QUANTITY            | qty <= 0 or unit cost < 0 or >9 dp
                | INSUFFICIENT_STOCK          | Issue exceeds quantity on hand
                | UNKNOWN_ITEM                | Item not registered
                | DUPLICATE_ITEM              | Item registered twice
                | INVALID_TRANSFER            | Transfer to the source warehouse
                | COSTING_METHOD_CHANGE       | Method differs while stock is on hand
----------------|-----------------------------|-----------------------------------------
Posting         | UNBALANCED_JOURNAL          | Debits != Credits
                | INVALID_JOURNAL_LINE        | Negative, two-sided, empty or over-precise line
                | JOURNAL_NOT_FOUND           | Journal ID doesn't exist
                | JOURNAL_ALREADY_REVERSED    | Journal already has a reversal
----------------|-----------------------------|-----------------------------------------
Account         | UNKNOWN_ACCOUNT             | Account code doesn't resolve
                | ACCOUNT_INACTIVE            | Account is deactivated
                | DUPLICATE_ACCOUNT           | Account code registered twice
----------------|-----------------------------|-----------------------------------------
Concurrency     | CONCURRENCY_CONFLICT        | Lost update on a running balance
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Modifying an append-only record

===============================================================================
HANDLING PATTERNS
===============================================================================

1. RETRY ONLY CONCURRENCY CONFLICTS:

    ConcurrencyConflictError is raised before anything commits, so the
    whole business transaction can be replayed.  ledger_services.unit_of_work
    does this a bounded number of times.  Every other error aborts the
    business transaction and is reported upward.

2. USE STRUCTURED DATA:

    except UnbalancedJournalError as e:
        return {"error": e.code, "debits": e.debits, "credits": e.credits}

===============================================================================
"""

from decimal import Decimal


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Inventory-related exceptions


class InventoryError(LedgerKernelError):
    """Base exception for stock movement errors."""

    code: str = "INVENTORY_ERROR"


class InvalidQuantityError(InventoryError):
    """Quantity is not positive, or unit cost is negative."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, field: str, value: Decimal | str, reason: str):
        self.field = field
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid {field} {value}: {reason}")


class InsufficientStockError(InventoryError):
    """An issue would drive the running quantity below zero."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        item_id: str,
        warehouse_id: str,
        available: Decimal,
        requested: Decimal,
    ):
        self.item_id = item_id
        self.warehouse_id = warehouse_id
        self.available = str(available)
        self.requested = str(requested)
        super().__init__(
            f"Insufficient stock for {item_id} at {warehouse_id}. "
            f"Available: {available}, Required: {requested}"
        )


class UnknownItemError(InventoryError):
    """Item is not registered."""

    code: str = "UNKNOWN_ITEM"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item {item_id} not found")


class DuplicateItemError(InventoryError):
    """Item is already registered."""

    code: str = "DUPLICATE_ITEM"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item {item_id} already exists")


class InvalidTransferError(InventoryError):
    """Transfer source and destination are the same warehouse."""

    code: str = "INVALID_TRANSFER"

    def __init__(self, item_id: str, warehouse_id: str):
        self.item_id = item_id
        self.warehouse_id = warehouse_id
        super().__init__(
            f"Cannot transfer {item_id} from {warehouse_id} to itself"
        )


class CostingMethodChangeError(InventoryError):
    """The costing method differs from the one the stock on hand was booked under."""

    code: str = "COSTING_METHOD_CHANGE"

    def __init__(
        self,
        item_id: str,
        warehouse_id: str | None,
        current_method: str,
        requested_method: str,
    ):
        self.item_id = item_id
        self.warehouse_id = warehouse_id
        self.current_method = current_method
        self.requested_method = requested_method
        where = f" at {warehouse_id}" if warehouse_id else ""
        super().__init__(
            f"Cannot cost {item_id}{where} under {requested_method}: "
            f"stock on hand is held under {current_method}"
        )


# Posting-related exceptions


class PostingError(LedgerKernelError):
    """Base exception for journal posting errors."""

    code: str = "POSTING_ERROR"


class UnbalancedJournalError(PostingError):
    """Journal debits do not equal credits."""

    code: str = "UNBALANCED_JOURNAL"

    def __init__(self, debits: Decimal, credits: Decimal):
        self.debits = str(debits)
        self.credits = str(credits)
        super().__init__(
            f"Journal entries are not balanced. "
            f"Debits: {debits}, Credits: {credits}"
        )


class InvalidJournalLineError(PostingError):
    """A journal line is malformed (negative, both sides, or no side)."""

    code: str = "INVALID_JOURNAL_LINE"

    def __init__(self, line_index: int, account_code: str | None, reason: str):
        self.line_index = line_index
        self.account_code = account_code
        self.reason = reason
        super().__init__(
            f"Invalid journal line {line_index} ({account_code}): {reason}"
        )


class JournalNotFoundError(PostingError):
    """Journal with given ID was not found."""

    code: str = "JOURNAL_NOT_FOUND"

    def __init__(self, journal_id: str):
        self.journal_id = journal_id
        super().__init__(f"Journal not found: {journal_id}")


class JournalAlreadyReversedError(PostingError):
    """Journal already has a reversal."""

    code: str = "JOURNAL_ALREADY_REVERSED"

    def __init__(self, journal_id: str, reversal_id: str):
        self.journal_id = journal_id
        self.reversal_id = reversal_id
        super().__init__(
            f"Journal {journal_id} already reversed by {reversal_id}"
        )


# Account-related exceptions


class AccountError(LedgerKernelError):
    """Base exception for chart-of-accounts errors."""

    code: str = "ACCOUNT_ERROR"


class UnknownAccountError(AccountError):
    """Account code does not resolve to an account."""

    code: str = "UNKNOWN_ACCOUNT"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account code {account_code} not found")


class AccountInactiveError(AccountError):
    """Account is deactivated and cannot receive postings."""

    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account {account_code} is inactive")


class DuplicateAccountError(AccountError):
    """Account code is already registered."""

    code: str = "DUPLICATE_ACCOUNT"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account code {account_code} already exists")


# Concurrency-related exceptions


class ConcurrencyError(LedgerKernelError):
    """Base exception for concurrency errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrencyConflictError(ConcurrencyError):
    """
    Lost update detected on a running-balance append.

    Raised before anything commits; safe to retry the enclosing business
    transaction.
    """

    code: str = "CONCURRENCY_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, detail: str = ""):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.detail = detail
        message = (
            f"Concurrency conflict on {entity_type} {entity_id}: "
            "modified by another transaction"
        )
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


# Immutability-related exceptions


class ImmutabilityError(LedgerKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an append-only record.

    Ledger entries, lot consumptions, journals and journal lines are
    immutable from creation.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
