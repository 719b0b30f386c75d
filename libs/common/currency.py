"""Money helpers.

Prices are stored as ``Numeric(10, 2)`` and handled as ``Decimal`` in major units
(dollars). Gateways that want integer minor units (Stripe) get cents.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

CENTS_PER_UNIT: int = 100
TWO_PLACES = Decimal("0.01")

Number = Union[Decimal, int, float, str]


def to_money(value: Number) -> Decimal:
    """Coerce to a two-decimal Decimal (round half-up)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def to_cents(value: Number) -> int:
    """Major units to integer minor units. $12.34 -> 1234."""
    return int(to_money(value) * CENTS_PER_UNIT)


def from_cents(cents: int) -> Decimal:
    return to_money(Decimal(cents) / CENTS_PER_UNIT)


def format_amount(value: Number) -> str:
    """Two-decimal string as PayPal expects it ("12.30")."""
    return f"{to_money(value):.2f}"
