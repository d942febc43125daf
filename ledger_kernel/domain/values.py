"""
Values -- Immutable, self-validating domain value objects.

Responsibility:
    Provides the shared value types for the costing engine and the journal
    poster: Money (an amount in the functional currency) and Quantity (a
    stock quantity).  These replace untyped numbers at every service
    boundary.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other domain module and by ledger_engines /
    ledger_services.

Invariants enforced:
    - Decimal-only arithmetic.  Floats and booleans are rejected at
      construction; there is no implicit float conversion anywhere.
    - Single functional currency (multi-currency is out of scope), so Money
      carries no currency code.

Failure modes:
    - TypeError on construction from float / bool, or when arithmetic mixes
      Money with Quantity.
    - ValueError on construction from a non-numeric string.

Audit relevance:
    Every cost, value and journal amount passes through these types, so no
    binary floating point drift can enter the running balances.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ledger_kernel.db.types import ZERO, quantize_amount, round_money, to_decimal


@dataclass(frozen=True, slots=True, order=True)
class Money:
    """
    Monetary amount value object.

    Contract:
        Wraps a Decimal amount.  Construct with ``Money.of`` which accepts
        Decimal, int or numeric string.

    Guarantees:
        - Immutable, hashable and totally ordered.
        - ``amount`` is always a Decimal (never float).

    Non-goals:
        - Does NOT auto-round; ``quantized()`` rounds to storage precision and
          ``rounded()`` to display precision.
    """

    amount: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))

    @classmethod
    def of(cls, amount: Decimal | str | int | Money) -> Money:
        """Create Money from a Decimal, int, numeric string or Money."""
        if isinstance(amount, Money):
            return amount
        return cls(amount=to_decimal(amount))

    @classmethod
    def zero(cls) -> Money:
        return cls(amount=ZERO)

    @property
    def is_zero(self) -> bool:
        return self.amount == ZERO

    @property
    def is_positive(self) -> bool:
        return self.amount > ZERO

    @property
    def is_negative(self) -> bool:
        return self.amount < ZERO

    def quantized(self) -> Money:
        """Round to the 9-place storage precision."""
        return Money(amount=quantize_amount(self.amount))

    def rounded(self, decimal_places: int = 2) -> Money:
        """Round for display."""
        return Money(amount=round_money(self.amount, decimal_places))

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(amount=self.amount + other.amount)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(amount=self.amount - other.amount)

    def __neg__(self) -> Money:
        return Money(amount=-self.amount)

    def __abs__(self) -> Money:
        return Money(amount=abs(self.amount))

    def __mul__(self, factor: Decimal | int | str) -> Money:
        if isinstance(factor, (Money, Quantity, float)):
            return NotImplemented
        return Money(amount=self.amount * to_decimal(factor))

    def __rmul__(self, factor: Decimal | int | str) -> Money:
        return self.__mul__(factor)

    def __truediv__(self, divisor: Decimal | int | str) -> Money:
        if isinstance(divisor, (Money, Quantity, float)):
            return NotImplemented
        return Money(amount=self.amount / to_decimal(divisor))

    def __str__(self) -> str:
        return str(self.amount)

    def __repr__(self) -> str:
        return f"Money({self.amount!r})"


@dataclass(frozen=True, slots=True, order=True)
class Quantity:
    """
    Stock quantity value object.

    Guarantees:
        - Immutable, hashable and totally ordered.
        - ``value`` is always a Decimal (never float).
    """

    value: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", to_decimal(self.value))

    @classmethod
    def of(cls, value: Decimal | str | int | Quantity) -> Quantity:
        if isinstance(value, Quantity):
            return value
        return cls(value=to_decimal(value))

    @classmethod
    def zero(cls) -> Quantity:
        return cls(value=ZERO)

    @property
    def is_zero(self) -> bool:
        return self.value == ZERO

    @property
    def is_positive(self) -> bool:
        return self.value > ZERO

    def __add__(self, other: Quantity) -> Quantity:
        if not isinstance(other, Quantity):
            return NotImplemented
        return Quantity(value=self.value + other.value)

    def __sub__(self, other: Quantity) -> Quantity:
        if not isinstance(other, Quantity):
            return NotImplemented
        return Quantity(value=self.value - other.value)

    def __mul__(self, unit_cost: Money) -> Money:
        """Quantity x unit cost = value."""
        if not isinstance(unit_cost, Money):
            return NotImplemented
        return Money(amount=self.value * unit_cost.amount)

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self) -> str:
        return f"Quantity({self.value!r})"
