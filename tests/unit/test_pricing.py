"""Unit tests for rounding and discount arithmetic."""

import pytest

from offer_engine.services.pricing import discounted_price, round_half_up


class TestRoundHalfUp:
    @pytest.mark.parametrize(
        "value,expected",
        [(0.5, 1), (1.5, 2), (2.5, 3), (2.49, 2), (20.0, 20), (-0.5, 0), (-2.5, -2)],
    )
    def test_halves_round_up(self, value, expected):
        assert round_half_up(value) == expected


class TestDiscountedPrice:
    @pytest.mark.parametrize(
        "original,percent,expected",
        [
            (200, 15, 170),
            (150, 15, 128),
            (150, 12, 132),
            (150, 20, 120),
            (99, 10, 89),
            (0, 15, 0),
            (150, 0, 150),
            (150, 100, 0),
            (1, 50, 1),
            (3, 50, 2),
            (5, 30, 4),
        ],
    )
    def test_rounded_half_up(self, original, percent, expected):
        assert discounted_price(original, percent) == expected

    @pytest.mark.parametrize("percent", [-1, 101])
    def test_percent_out_of_range(self, percent):
        with pytest.raises(ValueError):
            discounted_price(100, percent)

    def test_exact_for_prices_beyond_float_precision(self):
        # Half of an odd 18-digit price ends in .5 and rounds up
        assert discounted_price(10**17 + 1, 50) == 5 * 10**16 + 1
