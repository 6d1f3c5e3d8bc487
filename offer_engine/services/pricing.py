"""Rounding and discount arithmetic shared by the pattern and offer services."""

import math


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward positive infinity.

    Python's round() uses banker's rounding; day counts and averages here
    round .5 upward instead (2.5 -> 3, -2.5 -> -2).
    """
    return int(math.floor(value + 0.5))


def discounted_price(original_price: int, discount_percent: int) -> int:
    """Price after applying a percentage discount, rounded half up."""
    if not 0 <= discount_percent <= 100:
        raise ValueError(f"discount_percent must be between 0 and 100, got {discount_percent}")
    # original * (100 - percent) / 100 + 0.5, floored, in integers
    return (original_price * (100 - discount_percent) * 2 + 100) // 200
