"""Fixed-point money values.

All gift card arithmetic goes through ``Money``. Amounts are ``Decimal`` values
evaluated in a 28-digit ``ROUND_HALF_UP`` context and quantized to two places
whenever they leave the engine (persistence, API responses).
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation
from typing import Union

from libs.common.currency import (
    MINOR_UNITS_PER_MAJOR,
    TWO_PLACES,
    normalize_currency,
)
from services.giftcard_service.errors import (
    GiftCardValidationError,
    InsufficientFundsError,
)

MONEY_CONTEXT = Context(prec=28, rounding=ROUND_HALF_UP)

AmountLike = Union[Decimal, int, str]


def to_decimal(value: AmountLike) -> Decimal:
    """Coerce ``value`` to a finite Decimal. Floats are refused."""
    if isinstance(value, bool) or isinstance(value, float):
        raise GiftCardValidationError(
            "Monetary amounts must be decimal strings or integers, not floats",
            value=str(value),
        )
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = MONEY_CONTEXT.create_decimal(value)
        except InvalidOperation:
            raise GiftCardValidationError("Invalid monetary amount", value=str(value))
    else:
        raise GiftCardValidationError(
            "Unsupported monetary amount type", type=type(value).__name__
        )
    if not result.is_finite():
        raise GiftCardValidationError("Monetary amount must be finite", value=str(value))
    return MONEY_CONTEXT.plus(result)


@functools.total_ordering
@dataclass(frozen=True)
class Money:
    amount: Decimal
    currency: str = "USD"

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))
        try:
            object.__setattr__(self, "currency", normalize_currency(self.currency))
        except ValueError as exc:
            raise GiftCardValidationError(str(exc), currency=self.currency)

    # -- constructors -------------------------------------------------------

    @classmethod
    def zero(cls, currency: str = "USD") -> "Money":
        return cls(Decimal("0"), currency)

    @classmethod
    def from_minor_units(cls, minor: int, currency: str = "USD") -> "Money":
        return cls(Decimal(minor) / MINOR_UNITS_PER_MAJOR, currency)

    # -- conversions --------------------------------------------------------

    def quantized(self) -> Decimal:
        return self.amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP, context=MONEY_CONTEXT)

    def to_minor_units(self) -> int:
        return int(self.quantized() * MINOR_UNITS_PER_MAJOR)

    def __str__(self) -> str:
        return f"{self.quantized()} {self.currency}"

    # -- arithmetic ---------------------------------------------------------

    def _check_currency(self, other: "Money") -> None:
        if not isinstance(other, Money):
            raise TypeError(f"Cannot combine Money with {type(other).__name__}")
        if other.currency != self.currency:
            raise GiftCardValidationError(
                "Currency mismatch",
                expected_currency=self.currency,
                currency=other.currency,
            )

    def __add__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(MONEY_CONTEXT.add(self.amount, other.amount), self.currency)

    def __sub__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(MONEY_CONTEXT.subtract(self.amount, other.amount), self.currency)

    def percent(self, pct: AmountLike) -> "Money":
        """Return ``pct`` percent of this amount."""
        factor = MONEY_CONTEXT.divide(to_decimal(pct), Decimal(100))
        return Money(MONEY_CONTEXT.multiply(self.amount, factor), self.currency)

    def floor_zero(self) -> "Money":
        return self if self.amount >= 0 else Money.zero(self.currency)

    def debit(self, other: "Money") -> "Money":
        """Subtract ``other``, refusing to go below zero."""
        self._check_currency(other)
        if other.amount > self.amount:
            raise InsufficientFundsError(
                "Insufficient balance",
                requested=str(other.quantized()),
                available=str(self.quantized()),
                currency=self.currency,
            )
        return self - other

    # -- comparison ---------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.currency == other.currency and self.amount == other.amount

    def __lt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount < other.amount

    def __hash__(self) -> int:
        return hash((self.amount, self.currency))

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def is_positive(self) -> bool:
        return self.amount > 0
