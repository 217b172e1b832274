from __future__ import annotations

import pytest

from cartify.core.checkout import CartLineItem, compute_branch_pricing


def _line(price: float, quantity: int, branch_id: str = "branch-a") -> CartLineItem:
    return CartLineItem(product_id=f"p-{price}", branch_id=branch_id, name="Item", unit_price=price, quantity=quantity)


def test_branch_with_coupon_delivery_and_tax() -> None:
    pricing = compute_branch_pricing([_line(1000, 2)], discount=200, delivery_fee=100, tax_rate=10)

    assert pricing.subtotal == 2000
    assert pricing.taxable_amount == 1900
    assert pricing.tax_amount == pytest.approx(190)
    assert pricing.final_amount == pytest.approx(2090)


def test_branch_without_coupon_or_delivery() -> None:
    pricing = compute_branch_pricing([_line(500, 1, "branch-b")], discount=0, delivery_fee=0, tax_rate=5)

    assert pricing.final_amount == pytest.approx(525)
    assert pricing.discount == 0
    assert pricing.shipping == 0


def test_tax_is_charged_on_discounted_base_plus_shipping() -> None:
    pricing = compute_branch_pricing([_line(100, 1)], discount=100, delivery_fee=50, tax_rate=10)

    assert pricing.taxable_amount == 50
    assert pricing.final_amount == pytest.approx(55)


@pytest.mark.parametrize(
    ("prices", "discount", "fee", "rate"),
    [
        ([(10.5, 3)], 0.0, 0.0, 0.0),
        ([(99.99, 1), (0.01, 7)], 12.5, 3.25, 17.0),
        ([(250, 4), (75, 2)], 1150.0, 0.0, 8.5),
        ([(1, 1)], 1.0, 200.0, 100.0),
    ],
)
def test_final_amount_reconciles(prices, discount: float, fee: float, rate: float) -> None:  # noqa: ANN001
    items = [_line(price, qty) for price, qty in prices]
    subtotal = sum(price * qty for price, qty in prices)

    pricing = compute_branch_pricing(items, discount=discount, delivery_fee=fee, tax_rate=rate)

    expected = ((subtotal - discount) + fee) * (1 + rate / 100)
    assert pricing.final_amount == pytest.approx(expected)
    assert pricing.taxable_amount + pricing.tax_amount == pytest.approx(pricing.final_amount)


def test_empty_branch_only_charges_delivery() -> None:
    pricing = compute_branch_pricing([], delivery_fee=100, tax_rate=10)

    assert pricing.subtotal == 0
    assert pricing.final_amount == pytest.approx(110)
