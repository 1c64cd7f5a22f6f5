# storefront/services/pricing.py
"""
Markup Pricing
==============
Converts scraped (cost) prices into storefront prices and computes order
subtotals with and without the markup.

Everything here is pure: no I/O, no clock, no configuration lookups.
Amounts are whole yen.
"""

import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Protocol, Union

from storefront.errors import ValidationError

Number = Union[int, float, Decimal]

MARKUP_RATE = Decimal("1.2")  # 20% markup

# Currencies the processor expects in whole units rather than cents
ZERO_DECIMAL_CURRENCIES = frozenset({
    "bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga",
    "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf",
})


class PricedItem(Protocol):
    original_price: Number
    quantity: int


def _to_decimal(value: Number, field: str) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise ValidationError(f"{field} must be a number", field=field)
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(f"{field} must be finite", field=field)
    amount = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    if not amount.is_finite():
        raise ValidationError(f"{field} must be finite", field=field)
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative", field=field)
    return amount


def display_price(original_price: Number) -> int:
    """
    Storefront price for a scraped price: ``round(original_price * 1.2)``.

    Halves round up, matching the storefront's client-side rounding.
    Negative or non-finite prices are rejected with ValidationError.
    """
    amount = _to_decimal(original_price, "original_price") * MARKUP_RATE
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def subtotal_with_markup(items: Iterable[PricedItem]) -> int:
    """Sum of display_price(original_price) * quantity over all items."""
    return sum(display_price(item.original_price) * item.quantity for item in items)


def original_subtotal(items: Iterable[PricedItem]) -> int:
    """Sum of original_price * quantity over all items (no markup)."""
    total = Decimal(0)
    for item in items:
        total += _to_decimal(item.original_price, "original_price") * item.quantity
    return int(total.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def validate_priced_items(items: Iterable[PricedItem]):
    """Quantities are positive integers; scraped prices are finite, non-negative, whole."""
    for item in items:
        if isinstance(item.quantity, bool) or not isinstance(item.quantity, int) or item.quantity < 1:
            raise ValidationError("Item quantity must be a positive integer", field="quantity")
        if _to_decimal(item.original_price, "original_price") != int(item.original_price):
            raise ValidationError("Item price must be a whole amount", field="original_price")


def to_minor_units(amount: Number, currency: str) -> int:
    """Convert an amount to the processor's smallest currency unit."""
    value = _to_decimal(amount, "amount")
    if currency.lower() not in ZERO_DECIMAL_CURRENCIES:
        value = value * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
