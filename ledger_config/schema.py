"""
Configuration Schema (``ledger_config.schema``).

Responsibility
--------------
Frozen dataclasses for every section of the ledger configuration: the
database, the default costing policy, transaction retry, the chart of
accounts, the account-code contract and seed items.

Architecture position
---------------------
**Config layer** -- pure data definitions.  No dependency on kernel,
engines or services.

Invariants enforced
-------------------
* All dataclasses are frozen; configuration is immutable once loaded.
* The account-code contract names every role the posting callers need, so
  a missing role fails at load time rather than at the first posting.
"""

from __future__ import annotations

from dataclasses import dataclass, fields


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///inventory_ledger.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    busy_timeout: int = 30


@dataclass(frozen=True)
class CostingSettings:
    """System default used when an item's costing method is GLOBAL."""

    default_method: str = "WEIGHTED_AVG"


@dataclass(frozen=True)
class RetrySettings:
    """Bounded retry of a business transaction on a concurrency conflict."""

    max_attempts: int = 3


@dataclass(frozen=True)
class AccountDef:
    code: str
    name: str
    account_type: str


@dataclass(frozen=True)
class ItemDef:
    item_id: str
    name: str
    item_type: str
    uom: str = "EA"
    costing_method: str = "GLOBAL"


@dataclass(frozen=True)
class AccountCodeMap:
    """
    Account-code contract between the posting callers and the chart.

    Each attribute is a role; its value is the account code posted to.
    """

    inventory: str
    wip: str
    finished_goods: str
    accounts_payable: str
    goods_received_not_invoiced: str
    accounts_receivable: str
    cash: str
    sales_revenue: str
    cogs: str
    scrap_loss: str
    inventory_adjustment: str
    opening_balance_equity: str
    depreciation_expense: str
    accumulated_depreciation: str
    disposal_gain_loss: str

    @classmethod
    def role_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    def as_dict(self) -> dict[str, str]:
        return {name: getattr(self, name) for name in self.role_names()}


@dataclass(frozen=True)
class LedgerConfig:
    """
    Complete, validated configuration.

    ``checksum`` is the SHA-256 of the canonical JSON of the source YAML.
    """

    config_id: str
    version: int
    database: DatabaseSettings
    costing: CostingSettings
    retry: RetrySettings
    accounts: tuple[AccountDef, ...]
    account_codes: AccountCodeMap
    items: tuple[ItemDef, ...] = ()
    checksum: str = ""

    def account(self, code: str) -> AccountDef | None:
        for account in self.accounts:
            if account.code == code:
                return account
        return None
