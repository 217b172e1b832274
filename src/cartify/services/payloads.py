"""JSON payloads accepted by the CLI: marketplace seed data and checkout requests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from dateutil import parser as dt_parser

from cartify.core.checkout import (
    Buyer,
    Cart,
    PaymentConfig,
    PaymentSelection,
    Product,
    RegistryEntry,
    ShippingInfo,
    Variant,
)
from cartify.core.db import MarketplaceRepository


@dataclass(slots=True)
class CheckoutRequest:
    buyer: Buyer
    cart: Cart
    shipping: ShippingInfo
    coupon_inputs: dict[str, str] = field(default_factory=dict)
    selections: dict[str, PaymentSelection] = field(default_factory=dict)


def _product_from_payload(payload: dict[str, Any]) -> Product:
    variants = tuple(
        Variant(
            id=v["id"],
            color=v["color"],
            size=v["size"],
            price=float(v["price"]),
            stock=int(v.get("stock", 0)),
            image_url=v.get("image_url"),
        )
        for v in payload.get("variants", [])
    )
    return Product(
        id=payload["id"],
        branch_id=payload["branch_id"],
        name=payload["name"],
        price=float(payload["price"]),
        stock=int(payload.get("stock", 0)),
        image_url=payload.get("image_url"),
        variants=variants,
    )


def load_seed(repository: MarketplaceRepository, payload: dict[str, Any]) -> dict[str, int]:
    stats = {"registry_entries": 0, "sellers": 0, "payment_configs": 0, "coupons": 0, "products": 0}

    for country, entries in payload.get("country_payment_methods", {}).items():
        for entry in entries:
            repository.upsert_country_payment_method(
                country,
                RegistryEntry(
                    name=entry["name"],
                    enabled=bool(entry.get("enabled", True)),
                    type=entry.get("type", "manual"),
                    instructions=entry.get("instructions"),
                ),
            )
            stats["registry_entries"] += 1

    for seller in payload.get("sellers", []):
        suspension_raw = seller.get("suspension_until")
        repository.upsert_seller(
            branch_id=seller["branch_id"],
            name=seller["name"],
            country=seller.get("country"),
            delivery_fee=float(seller.get("delivery_fee", 0)),
            tax_rate=float(seller.get("tax_rate", 0)),
            suspension_until=dt_parser.parse(suspension_raw) if suspension_raw else None,
            suspension_reason=seller.get("suspension_reason"),
        )
        stats["sellers"] += 1
        for config in seller.get("payment_configs", []):
            repository.upsert_payment_config(
                seller["branch_id"],
                PaymentConfig(
                    provider_id=config["provider_id"],
                    provider_name=config["provider_name"],
                    enabled=bool(config.get("enabled", True)),
                    account_title=config.get("account_title"),
                    account_number=config.get("account_number"),
                    instructions=config.get("instructions"),
                ),
            )
            stats["payment_configs"] += 1

    for coupon in payload.get("coupons", []):
        repository.upsert_coupon(
            code=coupon["code"],
            branch_id=coupon["branch_id"],
            discount_type=coupon.get("discount_type", "fixed"),
            value=float(coupon["value"]),
            expiry_date=coupon["expiry_date"],
            min_order_amount=float(coupon.get("min_order_amount", 0)),
            is_active=bool(coupon.get("is_active", True)),
            usage_limit=coupon.get("usage_limit"),
        )
        stats["coupons"] += 1

    for product in payload.get("products", []):
        repository.upsert_product(_product_from_payload(product))
        stats["products"] += 1

    return stats


def parse_checkout_request(repository: MarketplaceRepository, payload: dict[str, Any]) -> CheckoutRequest:
    buyer_raw = payload["buyer"]
    buyer = Buyer(user_id=buyer_raw["user_id"], name=buyer_raw.get("name"), country=buyer_raw.get("country"))

    cart = Cart()
    for line in payload.get("cart", []):
        product = repository.get_product(line["product_id"])
        if product is None:
            raise ValueError(f"Unknown product: {line['product_id']}")
        variant = None
        if line.get("variant_id"):
            variant = product.variant(line["variant_id"])
            if variant is None:
                raise ValueError(f"Unknown variant {line['variant_id']} for product {product.id}")
        cart.add(product, variant, quantity=int(line.get("quantity", 1)))

    shipping_raw = payload.get("shipping", {})
    shipping = ShippingInfo(
        full_name=shipping_raw.get("full_name") or buyer.name or "",
        address=shipping_raw.get("address", ""),
        city=shipping_raw.get("city", ""),
        zip=str(shipping_raw.get("zip", "")),
        phone=str(shipping_raw.get("phone", "")),
    )

    selections = {
        branch_id: PaymentSelection(
            provider_id=choice.get("provider_id"),
            transaction_id=choice.get("transaction_id"),
        )
        for branch_id, choice in payload.get("payments", {}).items()
    }

    return CheckoutRequest(
        buyer=buyer,
        cart=cart,
        shipping=shipping,
        coupon_inputs=dict(payload.get("coupons", {})),
        selections=selections,
    )
