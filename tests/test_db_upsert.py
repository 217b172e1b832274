from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from cartify.core.checkout import (
    OrderLine,
    OrderRejectedError,
    OrderSubmission,
    PaymentConfig,
    PaymentDetails,
    PriceBreakdown,
    Product,
    RegistryEntry,
    ShippingInfo,
    Variant,
)

SHIPPING = ShippingInfo(full_name="Sara Khan", address="12 Mall Road", city="Lahore", zip="54000", phone="0300")


def _submission(lines: tuple[OrderLine, ...], coupon_code: str | None = None, discount: float = 0.0) -> OrderSubmission:
    subtotal = sum(line.unit_price * line.quantity for line in lines)
    taxable = subtotal - discount + 100.0
    pricing = PriceBreakdown(
        subtotal=subtotal,
        discount=discount,
        shipping=100.0,
        taxable_amount=taxable,
        tax_rate=10.0,
        tax_amount=taxable * 0.1,
        final_amount=taxable * 1.1,
    )
    return OrderSubmission(
        buyer_id="buyer-1",
        branch_id="branch-a",
        lines=lines,
        pricing=pricing,
        shipping=SHIPPING,
        payment_method="Easypaisa",
        payment_details=PaymentDetails(account_number="0300-1234567", transaction_id="TX1"),
        coupon_code=coupon_code,
    )


def test_migrate_is_idempotent(repository) -> None:  # noqa: ANN001
    assert repository.migrate() == []


def test_seller_upsert_round_trips_configs_and_suspension(repository) -> None:  # noqa: ANN001
    until = datetime(2030, 1, 1, tzinfo=timezone.utc)
    repository.upsert_seller("branch-a", "Alpha", country="pakistan", delivery_fee=50.0, tax_rate=5.0)
    repository.upsert_seller(
        "branch-a",
        "Alpha Store",
        country="pakistan",
        delivery_fee=100.0,
        tax_rate=10.0,
        suspension_until=until,
        suspension_reason="Unpaid fees",
    )
    repository.upsert_payment_config("branch-a", PaymentConfig(provider_id="cod", provider_name="Cash on Delivery"))
    repository.upsert_payment_config(
        "branch-a",
        PaymentConfig(provider_id="easypaisa", provider_name="Easypaisa", enabled=False, account_number="0300"),
    )

    seller = repository.get_user_by_branch_id("branch-a")

    assert seller is not None
    assert seller.name == "Alpha Store"
    assert seller.delivery_fee == 100.0
    assert seller.suspension_until == until
    assert [(c.provider_id, c.enabled) for c in seller.payment_configs] == [("cod", True), ("easypaisa", False)]
    assert repository.get_user_by_branch_id("missing") is None


def test_registry_is_keyed_by_normalized_country(repository) -> None:  # noqa: ANN001
    repository.upsert_country_payment_method("Dubai", RegistryEntry(name="Cash on Delivery", type="cod"))
    repository.upsert_country_payment_method("UAE", RegistryEntry(name="Bank Transfer", enabled=False))

    names = [entry.name for entry in repository.get_country_payment_registry("united arab emirates")]
    enabled = [entry.name for entry in repository.get_country_payment_registry("uae", only_enabled=True)]

    assert names == ["Cash on Delivery", "Bank Transfer"]
    assert enabled == ["Cash on Delivery"]


def test_create_order_writes_items_and_decrements_stock(repository) -> None:  # noqa: ANN001
    repository.upsert_product(
        Product(
            id="p-shirt",
            branch_id="branch-a",
            name="Shirt",
            price=800.0,
            stock=10,
            variants=(Variant(id="v-red-m", color="Red", size="M", price=900.0, stock=3),),
        )
    )
    repository.upsert_product(Product(id="p-cap", branch_id="branch-a", name="Cap", price=300.0, stock=1))

    order_id = repository.create_order(
        _submission(
            (
                OrderLine(
                    product_id="p-shirt",
                    quantity=2,
                    name="Shirt",
                    unit_price=900.0,
                    variant_id="v-red-m",
                    variant_name="Red / M",
                ),
                OrderLine(product_id="p-cap", quantity=2, name="Cap", unit_price=300.0),
            )
        )
    )

    order = repository.list_orders(buyer_id="buyer-1")[0]
    assert order["id"] == order_id
    assert order["status"] == "pending"
    assert order["subtotal_amount"] == 2400.0
    assert order["final_amount"] == pytest.approx(2750.0)
    assert order["transaction_id"] == "TX1"

    items = repository.connection.execute(
        "SELECT product_id, variant_name FROM order_items WHERE order_id = ? ORDER BY id", (order_id,)
    ).fetchall()
    assert [(row["product_id"], row["variant_name"]) for row in items] == [("p-shirt", "Red / M"), ("p-cap", None)]

    shirt = repository.get_product("p-shirt")
    assert shirt.stock == 10
    assert shirt.variants[0].stock == 1
    assert repository.get_product("p-cap").stock == 0

    logs = repository.connection.execute(
        "SELECT product_name, change_amount, new_stock FROM inventory_logs ORDER BY id"
    ).fetchall()
    assert [tuple(row) for row in logs] == [("Shirt (Red / M)", -2, 1), ("Cap", -2, 0)]


def test_coupon_is_redeemed_once_per_buyer(repository) -> None:  # noqa: ANN001
    expiry = (datetime.now(timezone.utc) + timedelta(days=30)).isoformat()
    repository.upsert_coupon("SAVE200", "branch-a", "fixed", 200, expiry)
    lines = (OrderLine(product_id="p-unknown", quantity=1, name="Gift Card", unit_price=1000.0),)

    repository.create_order(_submission(lines, coupon_code="SAVE200", discount=200.0))

    with pytest.raises(OrderRejectedError, match="already used"):
        repository.create_order(_submission(lines, coupon_code="SAVE200", discount=200.0))

    usage = repository.connection.execute("SELECT usage_count FROM coupons WHERE code = 'SAVE200'").fetchone()
    assert usage["usage_count"] == 1
    assert len(repository.list_orders(buyer_id="buyer-1")) == 1


def test_checkout_run_is_upserted_by_correlation_id(repository) -> None:  # noqa: ANN001
    run_id = repository.start_checkout_run("run-1", "buyer-1", 2, "2026-02-01T10:00:00+00:00")
    assert repository.start_checkout_run("run-1", "buyer-1", 2, "2026-02-01T10:05:00+00:00") == run_id

    repository.finish_checkout_run("run-1", "2026-02-01T10:06:00+00:00", "success", {"committed": 2}, None)

    row = repository.connection.execute("SELECT status, stats_json FROM checkout_runs WHERE id = ?", (run_id,)).fetchone()
    assert row["status"] == "success"
    assert row["stats_json"] == '{"committed": 2}'
