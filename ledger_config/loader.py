"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen
``ledger_config.schema`` dataclasses.  Runtime callers go through
``ledger_config.get_active_config()``, not this module.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    AccountCodeMap,
    AccountDef,
    CostingSettings,
    DatabaseSettings,
    ItemDef,
    LedgerConfig,
    RetrySettings,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    defaults = DatabaseSettings()
    return DatabaseSettings(
        url=data.get("url", defaults.url),
        echo=bool(data.get("echo", defaults.echo)),
        pool_size=int(data.get("pool_size", defaults.pool_size)),
        max_overflow=int(data.get("max_overflow", defaults.max_overflow)),
        busy_timeout=int(data.get("busy_timeout", defaults.busy_timeout)),
    )


def parse_account(data: dict[str, Any]) -> AccountDef:
    return AccountDef(
        code=str(data["code"]),
        name=data["name"],
        account_type=data["account_type"],
    )


def parse_item(data: dict[str, Any]) -> ItemDef:
    return ItemDef(
        item_id=str(data["item_id"]),
        name=data["name"],
        item_type=data["item_type"],
        uom=data.get("uom", "EA"),
        costing_method=data.get("costing_method", "GLOBAL"),
    )


def parse_account_codes(data: dict[str, Any]) -> AccountCodeMap:
    """
    Parse the role -> account code contract.

    Raises:
        KeyError: a role is missing.
        ValueError: an unknown role is present.
    """
    roles = AccountCodeMap.role_names()
    unknown = sorted(set(data) - set(roles))
    if unknown:
        raise ValueError(f"Unknown account_codes roles: {unknown}")
    return AccountCodeMap(**{role: str(data[role]) for role in roles})


def parse_config(data: dict[str, Any]) -> LedgerConfig:
    return LedgerConfig(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        database=parse_database(data.get("database", {})),
        costing=CostingSettings(
            default_method=data.get("costing", {}).get(
                "default_method", CostingSettings().default_method
            ),
        ),
        retry=RetrySettings(
            max_attempts=int(data.get("retry", {}).get("max_attempts", RetrySettings().max_attempts)),
        ),
        accounts=tuple(parse_account(a) for a in data.get("accounts", [])),
        account_codes=parse_account_codes(data["account_codes"]),
        items=tuple(parse_item(i) for i in data.get("items", [])),
        checksum=compute_checksum(data),
    )


def load_config_file(path: Path) -> LedgerConfig:
    return parse_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialisation; deterministic."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
