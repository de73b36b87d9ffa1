"""Money helpers.

Amounts are ``Decimal`` values with two places everywhere inside the
engine.  Integer minor units (cents) only exist at the gateway boundary.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, str]


def quantize(amount: Number) -> Decimal:
    """Round *amount* to cents (half-up)."""
    return Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Number) -> int:
    """Convert a currency amount to integer cents (``12.34`` -> ``1234``)."""
    return int((quantize(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_minor_units(minor: int) -> Decimal:
    """Convert integer cents back to a two-place ``Decimal``."""
    return quantize(Decimal(minor) / 100)


def floor_units(amount: Number) -> int:
    """Whole currency units contained in *amount*, rounded towards zero."""
    return int(Decimal(str(amount)).to_integral_value(rounding=ROUND_DOWN))
