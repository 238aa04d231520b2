"""
Booking price calculation.

Amounts are integer cents.  The discount is taken with a single
truncating division and the final price is derived from it, never
rounded on its own, so ``final + discount_amount == original`` always.
"""

from __future__ import annotations

import math
from fractions import Fraction
from numbers import Rational

from app.models import PriceQuote


def price(
    base_price_per_hour: int,
    duration_hours: int | Rational | float,
    discount_percentage: int,
) -> PriceQuote:
    """
    Price a booking of *duration_hours* at *base_price_per_hour* cents.

    Fractional durations (e.g. ``Fraction(90, 60)``) are floored to whole
    cents before the discount is applied.
    """
    original = math.floor(base_price_per_hour * Fraction(duration_hours))

    if discount_percentage == 0:
        return PriceQuote(original=original, discount_amount=0, final=original)

    discount_amount = original * discount_percentage // 100
    return PriceQuote(
        original=original,
        discount_amount=discount_amount,
        final=original - discount_amount,
    )
