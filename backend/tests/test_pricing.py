"""
Tests for markup pricing.

Display prices are the scraped price plus 20%, rounded half-up to whole yen.
"""

import math
from dataclasses import dataclass
from decimal import Decimal

import pytest

from storefront.errors import ValidationError
from storefront.services.pricing import (
    display_price,
    original_subtotal,
    subtotal_with_markup,
    to_minor_units,
)


@dataclass
class Item:
    original_price: float
    quantity: int


class TestDisplayPrice:

    @pytest.mark.parametrize("original,expected", [
        (1000, 1200),
        (0, 0),
        (1, 1),          # 1.2
        (3, 4),          # 3.6
        (1003, 1204),    # 1203.6
        (1001, 1201),    # 1201.2
        (1.25, 2),       # 1.5 rounds up
        (2499, 2999),    # 2998.8
    ])
    def test_markup_and_rounding(self, original, expected):
        assert display_price(original) == expected

    def test_matches_round_of_original_times_1_2(self):
        for original in range(0, 5000, 7):
            assert display_price(original) == int(Decimal(original) * Decimal("1.2") + Decimal("0.5"))

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError):
            display_price(-1)

    @pytest.mark.parametrize("bad", [math.nan, math.inf, -math.inf])
    def test_non_finite_price_rejected(self, bad):
        with pytest.raises(ValidationError):
            display_price(bad)

    @pytest.mark.parametrize("bad", [None, "1000", True])
    def test_non_numeric_price_rejected(self, bad):
        with pytest.raises(ValidationError):
            display_price(bad)


class TestSubtotals:

    def test_subtotal_uses_per_item_display_price(self):
        items = [Item(1000, 2), Item(1003, 1)]
        # 1200 * 2 + 1204
        assert subtotal_with_markup(items) == 3604

    def test_original_subtotal_has_no_markup(self):
        items = [Item(1000, 2), Item(1003, 1)]
        assert original_subtotal(items) == 3003

    def test_empty_cart(self):
        assert subtotal_with_markup([]) == 0
        assert original_subtotal([]) == 0

    def test_subtotal_is_at_least_original(self):
        items = [Item(p, q) for p, q in [(1, 3), (999, 2), (15000, 1)]]
        assert subtotal_with_markup(items) >= original_subtotal(items)


class TestMinorUnits:

    def test_jpy_is_zero_decimal(self):
        assert to_minor_units(1200, "jpy") == 1200
        assert to_minor_units(1200, "JPY") == 1200

    def test_usd_is_cents(self):
        assert to_minor_units(12, "usd") == 1200
        assert to_minor_units(12.345, "usd") == 1235
