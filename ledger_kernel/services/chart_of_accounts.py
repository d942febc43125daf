"""
ChartOfAccountsRegistry -- resolve account codes for posting.

Responsibility:
    Registers accounts (setup / seed only) and resolves the stable
    account codes that journal lines carry into ``ChartOfAccount`` rows,
    refusing unknown and inactive accounts.

Architecture position:
    Kernel > Services.  Called by JournalPoster and by the setup path.

Invariants enforced:
    - Only active accounts resolve for posting.
    - ``code`` and ``account_type`` are immutable after registration
      (db/immutability.py); accounts are deactivated, never deleted once
      referenced.

Failure modes:
    - UnknownAccountError: code is not registered.
    - AccountInactiveError: account is deactivated.
    - DuplicateAccountError: code already registered.
"""

from typing import Iterable, Protocol

from sqlalchemy import select

from ledger_kernel.exceptions import (
    AccountInactiveError,
    DuplicateAccountError,
    UnknownAccountError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import AccountType, ChartOfAccount
from ledger_kernel.services.base import BaseService

logger = get_logger("services.chart_of_accounts")


class AccountDefinition(Protocol):
    """Anything carrying the three fields needed to register an account."""

    code: str
    name: str
    account_type: str


class ChartOfAccountsRegistry(BaseService[ChartOfAccount]):
    """
    Account registration and code resolution.

    Guarantees:
        - ``resolve`` returns an active account or raises.
        - ``seed`` is idempotent: existing codes are left untouched.
    """

    def get(self, code: str) -> ChartOfAccount | None:
        return self.session.execute(
            select(ChartOfAccount).where(ChartOfAccount.code == code)
        ).scalar_one_or_none()

    def resolve(self, code: str) -> ChartOfAccount:
        """Return the active account for ``code``."""
        account = self.get(code)
        if account is None:
            raise UnknownAccountError(code)
        if not account.is_active:
            raise AccountInactiveError(code)
        return account

    def resolve_many(self, codes: Iterable[str]) -> dict[str, ChartOfAccount]:
        """Resolve each distinct code once; same errors as ``resolve``."""
        wanted = list(dict.fromkeys(codes))
        found = {
            account.code: account
            for account in self.session.execute(
                select(ChartOfAccount).where(ChartOfAccount.code.in_(wanted))
            ).scalars()
        }
        for code in wanted:
            account = found.get(code)
            if account is None:
                raise UnknownAccountError(code)
            if not account.is_active:
                raise AccountInactiveError(code)
        return found

    def register_account(
        self,
        code: str,
        name: str,
        account_type: AccountType | str,
        actor_id: str,
    ) -> ChartOfAccount:
        if self.get(code) is not None:
            raise DuplicateAccountError(code)
        account = ChartOfAccount(
            code=code,
            name=name,
            account_type=AccountType(account_type).value,
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(account)
        self.session.flush()
        logger.info(
            "account_registered",
            extra={"account_code": code, "account_type": account.account_type},
        )
        return account

    def seed(self, definitions: Iterable[AccountDefinition], actor_id: str) -> int:
        """Register every definition whose code is not yet present."""
        created = 0
        for definition in definitions:
            if self.get(definition.code) is None:
                self.register_account(
                    definition.code,
                    definition.name,
                    definition.account_type,
                    actor_id,
                )
                created += 1
        logger.info("chart_of_accounts_seeded", extra={"accounts_created": created})
        return created

    def deactivate(self, code: str, actor_id: str) -> ChartOfAccount:
        account = self.get(code)
        if account is None:
            raise UnknownAccountError(code)
        account.is_active = False
        account.updated_by_id = actor_id
        self.session.flush()
        logger.info("account_deactivated", extra={"account_code": code})
        return account
