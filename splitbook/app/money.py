"""
money.py — Fixed-point monetary values.

Every amount in SplitBook is an integer count of minor units (cents). The
request schema converts incoming decimals once, the database stores
BigInteger columns, and the engines only ever add and subtract ints.
Decimal strings reappear only when a response is serialised.

Rounding policy: to_minor_units() is round(amount * 100) with ROUND_HALF_UP.
The expense schema rejects more than two decimal places before this is
reached, so in practice the rounding step only normalises representation.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from splitbook.app.errors import AppError, ErrorCode

MINOR_UNITS_PER_UNIT = 100

_TWO_PLACES = Decimal("0.01")


def _as_decimal(amount) -> Decimal:
    if isinstance(amount, bool):
        raise AppError(
            ErrorCode.INVALID_AMOUNT,
            "Amount must be a number, not a boolean.",
            400,
            field="amount",
        )
    if isinstance(amount, Decimal):
        value = amount
    else:
        # str() first so floats convert by their shortest repr (0.1 -> "0.1")
        try:
            value = Decimal(str(amount))
        except (InvalidOperation, ValueError):
            raise AppError(
                ErrorCode.INVALID_AMOUNT,
                f"Amount {amount!r} is not a valid number.",
                400,
                field="amount",
            )
    if not value.is_finite():
        raise AppError(
            ErrorCode.INVALID_AMOUNT,
            f"Amount {amount!r} is not a finite number.",
            400,
            field="amount",
        )
    return value


def to_minor_units(amount) -> int:
    """Converts a decimal-like amount (Decimal, int, str, float) to minor units."""
    value = _as_decimal(amount)
    scaled = (value * MINOR_UNITS_PER_UNIT).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(scaled)


def from_minor_units(minor_units: int) -> Decimal:
    """Converts minor units back to a two-place Decimal. Exact."""
    return (Decimal(minor_units) / MINOR_UNITS_PER_UNIT).quantize(_TWO_PLACES)


def format_minor_units(minor_units: int) -> str:
    """Two-decimal string for the API boundary: 6000 -> "60.00", -5 -> "-0.05"."""
    return str(from_minor_units(minor_units))


@dataclass(frozen=True, order=True)
class Money:
    """An immutable amount of minor units."""

    minor_units: int = 0

    def __post_init__(self) -> None:
        if isinstance(self.minor_units, bool) or not isinstance(self.minor_units, int):
            raise TypeError(
                f"Money requires an integer count of minor units, got {self.minor_units!r}"
            )

    @classmethod
    def from_amount(cls, amount) -> "Money":
        return cls(to_minor_units(amount))

    @classmethod
    def zero(cls) -> "Money":
        return cls(0)

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.minor_units + other.minor_units)

    def __sub__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.minor_units - other.minor_units)

    def __neg__(self) -> "Money":
        return Money(-self.minor_units)

    def __bool__(self) -> bool:
        return self.minor_units != 0

    def __str__(self) -> str:
        return format_minor_units(self.minor_units)
