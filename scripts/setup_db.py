#!/usr/bin/env python3
"""
Create the ledger tables and seed reference data from configuration.

Creates every table, then registers the chart of accounts and the seed
items of the configuration set.  Seeding is idempotent: accounts and items
already present are left as they are.

Usage:
    python3 scripts/setup_db.py
    python3 scripts/setup_db.py --config ledger_config/sets/default.yaml
    python3 scripts/setup_db.py --database-url sqlite:///ledger.db --reset
"""

import argparse
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

SETUP_ACTOR = "SYSTEM-SETUP"


def seed_reference_data(session, config, actor_id: str = SETUP_ACTOR) -> tuple[int, int]:
    """Register configured accounts and items; returns (accounts, items) created."""
    from ledger_kernel.services.chart_of_accounts import ChartOfAccountsRegistry
    from ledger_kernel.services.item_registry import ItemRegistry

    accounts_created = ChartOfAccountsRegistry(session).seed(config.accounts, actor_id)

    items = ItemRegistry(session)
    items_created = 0
    for item in config.items:
        if items.find(item.item_id) is None:
            items.register_item(
                item.item_id,
                item.name,
                item.item_type,
                actor_id,
                uom=item.uom,
                costing_method=item.costing_method,
            )
            items_created += 1
    return accounts_created, items_created


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Create ledger tables and seed accounts and items."
    )
    parser.add_argument(
        "--config",
        help="Configuration YAML (default: ledger_config/sets/default.yaml)",
    )
    parser.add_argument(
        "--database-url",
        help="Override the database URL from the configuration",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Drop all tables before creating them",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    from ledger_config import get_active_config
    from ledger_kernel.db.engine import (
        create_tables,
        drop_tables,
        init_engine_from_url,
        session_scope,
    )
    from ledger_kernel.db.immutability import register_immutability_listeners

    try:
        config = get_active_config(args.config)
    except (FileNotFoundError, ValueError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    database = config.database
    url = args.database_url or database.url
    init_engine_from_url(
        url,
        echo=database.echo,
        pool_size=database.pool_size,
        max_overflow=database.max_overflow,
        busy_timeout=database.busy_timeout,
    )
    if args.reset:
        drop_tables()
    create_tables()
    register_immutability_listeners()

    with session_scope() as session:
        accounts_created, items_created = seed_reference_data(session, config)

    print(f"Database:  {url}")
    print(f"Config:    {config.config_id} v{config.version} ({config.checksum[:12]})")
    print(f"Accounts:  {accounts_created} created, {len(config.accounts)} configured")
    print(f"Items:     {items_created} created, {len(config.items)} configured")
    return 0


if __name__ == "__main__":
    sys.exit(main())
