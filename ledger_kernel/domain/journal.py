"""
JournalLineSpec -- caller-built journal lines passed to JournalPoster.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.

Contract:
    A ``JournalLineSpec`` names an account by its stable code and carries a
    debit or a credit as ``Money``.  Shape validation (non-negative, exactly
    one side) and the balance check happen in ``JournalPoster`` so the error
    can carry the offending line index.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from ledger_kernel.domain.values import Money


@dataclass(frozen=True, slots=True)
class JournalLineSpec:
    """One debit or credit leg of a journal to be posted."""

    account_code: str
    debit: Money
    credit: Money
    ref_type: str | None = None
    ref_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "debit", Money.of(self.debit))
        object.__setattr__(self, "credit", Money.of(self.credit))
        if self.ref_type is not None:
            object.__setattr__(self, "ref_type", str(getattr(self.ref_type, "value", self.ref_type)))

    @classmethod
    def debit_line(
        cls,
        account_code: str,
        amount: Money | Decimal | str | int,
        ref_type: str | None = None,
        ref_id: str | None = None,
    ) -> JournalLineSpec:
        return cls(account_code, Money.of(amount), Money.zero(), ref_type, ref_id)

    @classmethod
    def credit_line(
        cls,
        account_code: str,
        amount: Money | Decimal | str | int,
        ref_type: str | None = None,
        ref_id: str | None = None,
    ) -> JournalLineSpec:
        return cls(account_code, Money.zero(), Money.of(amount), ref_type, ref_id)

    def swapped(self) -> JournalLineSpec:
        """The offsetting leg: debit and credit exchanged."""
        return JournalLineSpec(
            self.account_code, self.credit, self.debit, self.ref_type, self.ref_id
        )


def journal_totals(lines: Iterable[JournalLineSpec]) -> tuple[Money, Money]:
    """Exact (debits, credits) totals."""
    debits = Money.zero()
    credits = Money.zero()
    for line in lines:
        debits = debits + line.debit
        credits = credits + line.credit
    return debits, credits


def double_entry(
    debit_account: str,
    credit_account: str,
    amount: Money,
    ref_type: str | None = None,
    ref_id: str | None = None,
) -> list[JournalLineSpec]:
    """A balanced two-leg entry."""
    return [
        JournalLineSpec.debit_line(debit_account, amount, ref_type, ref_id),
        JournalLineSpec.credit_line(credit_account, amount, ref_type, ref_id),
    ]
