# Overview: Pure totals calculation for a cart; no I/O, no session access.

"""
Pricing rules

Per line:
    line_total = max(0, unit_price * quantity - line_discount)

Transaction:
    subtotal        = sum(line_total)
    discount_amount = sum(line_discount) + transaction_discount   (combined figure)
    taxable         = max(0, subtotal - transaction_discount)
    tax_amount      = tax_rate * taxable
    total_amount    = taxable + tax_amount

All amounts are Decimal quantized to cents (ROUND_HALF_UP). Floats are never
accepted here; callers parse request input with validation.parse_money first.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from ..errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    if isinstance(value, float):
        raise TypeError("binary floats are not allowed for monetary values")
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricedLine:
    unit_price: Decimal
    quantity: int
    discount_amount: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class Totals:
    lines: tuple[PricedLine, ...]
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal


def price_line(unit_price, quantity: int, line_discount=ZERO) -> PricedLine:
    unit_price = to_money(unit_price)
    line_discount = to_money(line_discount)
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer")
    if line_discount < 0:
        raise ValidationError("discount_amount must be >= 0")

    gross = unit_price * quantity
    line_total = max(ZERO, gross - line_discount)
    return PricedLine(
        unit_price=unit_price,
        quantity=quantity,
        discount_amount=line_discount,
        line_total=to_money(line_total),
    )


def compute_totals(
    lines: Iterable[tuple],
    transaction_discount=ZERO,
    tax_rate=ZERO,
) -> Totals:
    """
    Price an ordered sequence of (unit_price, quantity, line_discount) tuples.
    """
    transaction_discount = to_money(transaction_discount)
    tax_rate = Decimal(tax_rate)
    if transaction_discount < 0:
        raise ValidationError("transaction_discount must be >= 0")
    if tax_rate < 0:
        raise ValidationError("tax_rate must be >= 0")

    priced = tuple(price_line(*line) for line in lines)

    subtotal = sum((line.line_total for line in priced), ZERO)
    line_discounts = sum((line.discount_amount for line in priced), ZERO)

    taxable = max(ZERO, subtotal - transaction_discount)
    tax_amount = to_money(taxable * tax_rate)

    return Totals(
        lines=priced,
        subtotal=to_money(subtotal),
        discount_amount=to_money(line_discounts + transaction_discount),
        tax_amount=tax_amount,
        total_amount=to_money(taxable + tax_amount),
    )
