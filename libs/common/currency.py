"""Currency helpers.

Internal storage unit: minor units (kobo for NGN, cents elsewhere; 100 minor = 1 major).
API input may carry major units as decimals; everything persisted is an int.

All rounding is half-up (away from zero for negative amounts), matching how
the revenue split and payout shares are rounded.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

MINOR_PER_MAJOR: int = 100

Number = Union[int, Decimal, str]


def round_minor(value: Decimal) -> int:
    """Round a fractional minor-unit amount to a whole minor unit (half-up)."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_minor(major: Number) -> int:
    """Convert major units to minor units. ``Decimal("12.345")`` → 1235."""
    return round_minor(Decimal(str(major)) * MINOR_PER_MAJOR)


def to_major(minor: int) -> Decimal:
    """Convert minor units to a 2-dp major-unit Decimal. 1235 → ``Decimal("12.35")``."""
    return (Decimal(minor) / MINOR_PER_MAJOR).quantize(Decimal("0.01"))
