from __future__ import annotations

from collections.abc import Iterable

from .models import CartLineItem, PriceBreakdown


def compute_branch_pricing(
    items: Iterable[CartLineItem],
    discount: float = 0.0,
    delivery_fee: float = 0.0,
    tax_rate: float = 0.0,
) -> PriceBreakdown:
    """
    Totals for one branch. Tax is charged on the post-discount, post-shipping base:
    final = ((subtotal - discount) + delivery_fee) * (1 + tax_rate / 100).

    The discount is not clamped here; coupon validation guarantees discount <= subtotal.
    """
    subtotal = sum(item.unit_price * item.quantity for item in items)
    taxable_amount = (subtotal - discount) + delivery_fee
    tax_amount = taxable_amount * (tax_rate / 100)
    return PriceBreakdown(
        subtotal=subtotal,
        discount=discount,
        shipping=delivery_fee,
        taxable_amount=taxable_amount,
        tax_rate=tax_rate,
        tax_amount=tax_amount,
        final_amount=taxable_amount + tax_amount,
    )
