"""
Configuration Validator (``ledger_config.validator``).

Responsibility
--------------
Checks a parsed ``LedgerConfig`` for structural integrity before it is
handed to callers.

Invariants enforced
-------------------
* Account codes are unique and every account type is a known bucket.
* Every role in the account-code contract resolves to a configured
  account.
* The default costing method is WEIGHTED_AVG or FIFO; item settings are
  WEIGHTED_AVG, FIFO or GLOBAL.
* Retry is bounded and at least one attempt.

Failure modes
-------------
* Errors  -> configuration MUST NOT be used.
* Warnings  -> usable, but should be reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ledger_config.schema import LedgerConfig

ACCOUNT_TYPES = frozenset({
    "CURRENT_ASSETS",
    "NON_CURRENT_ASSETS",
    "TRADE_RECEIVABLES",
    "CURRENT_LIABILITY",
    "NON_CURRENT_LIABILITY",
    "TRADE_PAYABLES",
    "EQUITY",
    "INCOME",
    "OTHER_INCOME",
    "COST_OF_SALES",
    "EXPENSES",
})
ASSET_ACCOUNT_TYPES = frozenset({"CURRENT_ASSETS", "NON_CURRENT_ASSETS", "TRADE_RECEIVABLES"})
COSTING_METHODS = frozenset({"WEIGHTED_AVG", "FIFO"})
ITEM_COSTING_METHODS = COSTING_METHODS | {"GLOBAL"}
ITEM_TYPES = frozenset({"RAW_MATERIAL", "WIP", "FINISHED_GOOD", "CONSUMABLE"})

# Roles that hold stock value and are expected on the balance sheet
_STOCK_ROLES = ("inventory", "wip", "finished_goods")


@dataclass
class ConfigValidationResult:
    """``is_valid`` is True only when ``errors`` is empty."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_configuration(config: LedgerConfig) -> ConfigValidationResult:
    result = ConfigValidationResult()

    seen: set[str] = set()
    for account in config.accounts:
        if account.code in seen:
            result.add_error(f"Duplicate account code: {account.code}")
        seen.add(account.code)
        if account.account_type not in ACCOUNT_TYPES:
            result.add_error(
                f"Account {account.code} has unknown account_type {account.account_type!r}"
            )

    for role, code in config.account_codes.as_dict().items():
        account = config.account(code)
        if account is None:
            result.add_error(f"Account role {role!r} maps to unknown account code {code}")
        elif role in _STOCK_ROLES and account.account_type not in ASSET_ACCOUNT_TYPES:
            result.add_warning(
                f"Account role {role!r} maps to non-asset account {code} ({account.account_type})"
            )

    if config.costing.default_method not in COSTING_METHODS:
        result.add_error(
            f"costing.default_method must be one of {sorted(COSTING_METHODS)}, "
            f"got {config.costing.default_method!r}"
        )

    if config.retry.max_attempts < 1:
        result.add_error("retry.max_attempts must be at least 1")

    item_ids: set[str] = set()
    for item in config.items:
        if item.item_id in item_ids:
            result.add_error(f"Duplicate item_id: {item.item_id}")
        item_ids.add(item.item_id)
        if item.item_type not in ITEM_TYPES:
            result.add_error(f"Item {item.item_id} has unknown item_type {item.item_type!r}")
        if item.costing_method not in ITEM_COSTING_METHODS:
            result.add_error(
                f"Item {item.item_id} has unknown costing_method {item.costing_method!r}"
            )

    return result
