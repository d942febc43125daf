"""
Tests for the chart of accounts, the item registry and costing policy
resolution.
"""

from decimal import Decimal

import pytest

from ledger_kernel.domain.costing import CostingMethod
from ledger_kernel.exceptions import (
    AccountInactiveError,
    CostingMethodChangeError,
    DuplicateAccountError,
    DuplicateItemError,
    UnknownAccountError,
    UnknownItemError,
)
from ledger_kernel.models.account import AccountType
from ledger_kernel.services.chart_of_accounts import ChartOfAccountsRegistry
from ledger_kernel.services.item_registry import ItemRegistry
from ledger_services.policy import CostingPolicyResolver


class TestChartOfAccounts:

    def test_seed_is_idempotent(self, session, ledger_config, test_actor_id):
        registry = ChartOfAccountsRegistry(session)

        first = registry.seed(ledger_config.accounts, test_actor_id)
        second = registry.seed(ledger_config.accounts, test_actor_id)

        assert first == len(ledger_config.accounts)
        assert second == 0

    def test_seed_logs_count_at_info(self, session, ledger_config, test_actor_id, captured_logs):
        created = ChartOfAccountsRegistry(session).seed(ledger_config.accounts, test_actor_id)

        seeded = [r for r in captured_logs() if r["message"] == "chart_of_accounts_seeded"]
        assert len(seeded) == 1
        assert seeded[0]["level"] == "INFO"
        assert seeded[0]["accounts_created"] == created

    def test_seeded_types(self, standard_accounts):
        assert standard_accounts["1300"].type == AccountType.CURRENT_ASSETS
        assert standard_accounts["1300"].is_debit_normal
        assert not standard_accounts["4000"].is_debit_normal

    def test_duplicate_code(self, session, standard_accounts, test_actor_id):
        with pytest.raises(DuplicateAccountError):
            ChartOfAccountsRegistry(session).register_account(
                "1300", "Again", AccountType.CURRENT_ASSETS, test_actor_id
            )

    def test_unknown_account_type_rejected(self, session, test_actor_id):
        with pytest.raises(ValueError):
            ChartOfAccountsRegistry(session).register_account(
                "7777", "Odd", "SUSPENSE", test_actor_id
            )

    def test_resolve_many(self, session, standard_accounts):
        resolved = ChartOfAccountsRegistry(session).resolve_many(["1300", "2150", "1300"])
        assert set(resolved) == {"1300", "2150"}

    def test_resolve_unknown(self, session, standard_accounts):
        with pytest.raises(UnknownAccountError):
            ChartOfAccountsRegistry(session).resolve("0000")

    def test_deactivated_account_does_not_resolve(self, session, standard_accounts, test_actor_id):
        registry = ChartOfAccountsRegistry(session)
        account = registry.deactivate("6100", test_actor_id)

        assert account.updated_by_id == test_actor_id
        with pytest.raises(AccountInactiveError):
            registry.resolve("6100")

    def test_deactivate_unknown(self, session, test_actor_id):
        with pytest.raises(UnknownAccountError):
            ChartOfAccountsRegistry(session).deactivate("0000", test_actor_id)


class TestItemRegistry:

    def test_register_defaults(self, session, test_actor_id):
        item = ItemRegistry(session).register_item("CON-1", "Gloves", "CONSUMABLE", test_actor_id)
        assert item.uom == "EA"
        assert item.costing_method == "GLOBAL"

    def test_duplicate_item(self, session, standard_items, test_actor_id):
        with pytest.raises(DuplicateItemError):
            ItemRegistry(session).register_item("RM-001", "Again", "RAW_MATERIAL", test_actor_id)

    def test_unknown_item(self, session):
        with pytest.raises(UnknownItemError):
            ItemRegistry(session).get_item("NOPE")

    def test_set_costing_method(self, session, standard_items, test_actor_id):
        item = ItemRegistry(session).set_costing_method("RM-001", "FIFO", test_actor_id)
        assert item.costing_method == "FIFO"
        assert item.updated_by_id == test_actor_id

    def test_costing_method_locked_while_stocked(self, session, standard_items, costing_engine, test_actor_id):
        policy = CostingPolicyResolver(session).resolve("RM-001")
        costing_engine.receive_inventory(
            "RM-001", "WH-2", Decimal("5"), Decimal("3"), "PURCHASE", "PO-1", test_actor_id, policy
        )
        registry = ItemRegistry(session)

        with pytest.raises(CostingMethodChangeError) as exc_info:
            registry.set_costing_method("RM-001", "FIFO", test_actor_id)

        assert exc_info.value.warehouse_id == "WH-2"
        assert registry.get_item("RM-001").costing_method == "GLOBAL"
        assert registry.stocked_warehouses("RM-001") == ["WH-2"]

    def test_costing_method_unlocked_once_empty(self, session, standard_items, costing_engine, test_actor_id):
        policy = CostingPolicyResolver(session).resolve("RM-001")
        costing_engine.receive_inventory(
            "RM-001", "WH-1", Decimal("5"), Decimal("3"), "PURCHASE", "PO-1", test_actor_id, policy
        )
        costing_engine.issue_inventory(
            "RM-001", "WH-1", Decimal("5"), "PRODUCTION", "MO-1", test_actor_id, policy
        )

        item = ItemRegistry(session).set_costing_method("RM-001", "FIFO", test_actor_id)
        assert item.costing_method == "FIFO"

    def test_invalid_costing_method(self, session, standard_items, test_actor_id):
        with pytest.raises(ValueError):
            ItemRegistry(session).set_costing_method("RM-001", "LIFO", test_actor_id)


class TestCostingPolicyResolver:

    def test_global_item_uses_default(self, session, standard_items):
        policy = CostingPolicyResolver(session, "FIFO").resolve("RM-001")
        assert policy.method == CostingMethod.FIFO
        assert policy.source == "default"

    def test_item_setting_wins(self, session, standard_items):
        policy = CostingPolicyResolver(session, "WEIGHTED_AVG").resolve("RM-FIFO")
        assert policy.method == CostingMethod.FIFO
        assert policy.source == "item"

    def test_default_is_weighted_average(self, session, standard_items):
        assert CostingPolicyResolver(session).resolve("FG-001").method == CostingMethod.WEIGHTED_AVG

    def test_unknown_item(self, session):
        with pytest.raises(UnknownItemError):
            CostingPolicyResolver(session).resolve("NOPE")

    def test_invalid_default(self, session):
        with pytest.raises(ValueError):
            CostingPolicyResolver(session, "LIFO")
