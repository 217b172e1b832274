from __future__ import annotations

import json
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from dateutil import parser as dt_parser

from cartify.config import normalize_country
from cartify.core.checkout.errors import OrderRejectedError
from cartify.core.checkout.models import (
    CouponResult,
    OrderSubmission,
    PaymentConfig,
    Product,
    RegistryEntry,
    Seller,
    Variant,
)

from .migrations import apply_migrations, connect_db

ORDER_STATUS_PENDING = "pending"


def _parse_dt(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = dt_parser.parse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


class MarketplaceRepository:
    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.connection = connect_db(db_path)
        self._lock = threading.RLock()

    def close(self) -> None:
        self.connection.close()

    def __enter__(self) -> MarketplaceRepository:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()

    def migrate(self) -> list[str]:
        migrations_dir = Path(__file__).parent / "migrations"
        with self._lock:
            return apply_migrations(self.connection, migrations_dir)

    @staticmethod
    def _to_json(payload: dict[str, Any] | list[Any] | None) -> str | None:
        if payload is None:
            return None
        return json.dumps(payload, ensure_ascii=False)

    def _fetch_id(self, query: str, params: tuple[Any, ...]) -> int:
        with self._lock:
            row = self.connection.execute(query, params).fetchone()
        if row is None:
            raise RuntimeError(f"No id found for query: {query}")
        return int(row["id"])

    # --- catalogue and seller setup ---

    def upsert_seller(
        self,
        branch_id: str,
        name: str,
        country: str | None = None,
        delivery_fee: float = 0.0,
        tax_rate: float = 0.0,
        suspension_until: datetime | None = None,
        suspension_reason: str | None = None,
    ) -> None:
        with self._lock, self.connection:
            self.connection.execute(
                """
                INSERT INTO sellers (
                    branch_id, name, country, delivery_fee, tax_rate, suspension_until, suspension_reason
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(branch_id) DO UPDATE SET
                    name = excluded.name,
                    country = excluded.country,
                    delivery_fee = excluded.delivery_fee,
                    tax_rate = excluded.tax_rate,
                    suspension_until = excluded.suspension_until,
                    suspension_reason = excluded.suspension_reason,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (
                    branch_id,
                    name,
                    country,
                    delivery_fee,
                    tax_rate,
                    _to_iso(suspension_until),
                    suspension_reason,
                ),
            )

    def upsert_payment_config(self, branch_id: str, config: PaymentConfig) -> None:
        with self._lock, self.connection:
            self.connection.execute(
                """
                INSERT INTO seller_payment_configs (
                    branch_id, provider_id, provider_name, account_title, account_number, instructions, enabled
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(branch_id, provider_id) DO UPDATE SET
                    provider_name = excluded.provider_name,
                    account_title = excluded.account_title,
                    account_number = excluded.account_number,
                    instructions = excluded.instructions,
                    enabled = excluded.enabled
                """,
                (
                    branch_id,
                    config.provider_id,
                    config.provider_name,
                    config.account_title,
                    config.account_number,
                    config.instructions,
                    int(config.enabled),
                ),
            )

    def upsert_country_payment_method(self, country: str, entry: RegistryEntry) -> None:
        with self._lock, self.connection:
            self.connection.execute(
                """
                INSERT INTO country_payment_methods (country, name, type, instructions, enabled)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(country, name) DO UPDATE SET
                    type = excluded.type,
                    instructions = excluded.instructions,
                    enabled = excluded.enabled
                """,
                (normalize_country(country), entry.name, entry.type, entry.instructions, int(entry.enabled)),
            )

    def upsert_coupon(
        self,
        code: str,
        branch_id: str,
        discount_type: str,
        value: float,
        expiry_date: str,
        min_order_amount: float = 0.0,
        is_active: bool = True,
        usage_limit: int | None = None,
    ) -> None:
        with self._lock, self.connection:
            self.connection.execute(
                """
                INSERT INTO coupons (
                    code, branch_id, discount_type, value, min_order_amount, expiry_date, is_active, usage_limit
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(code, branch_id) DO UPDATE SET
                    discount_type = excluded.discount_type,
                    value = excluded.value,
                    min_order_amount = excluded.min_order_amount,
                    expiry_date = excluded.expiry_date,
                    is_active = excluded.is_active,
                    usage_limit = excluded.usage_limit
                """,
                (
                    code.strip().upper(),
                    branch_id,
                    discount_type,
                    value,
                    min_order_amount,
                    expiry_date,
                    int(is_active),
                    usage_limit,
                ),
            )

    def upsert_product(self, product: Product) -> None:
        with self._lock, self.connection:
            self.connection.execute(
                """
                INSERT INTO products (id, branch_id, name, price, stock, image_url)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    branch_id = excluded.branch_id,
                    name = excluded.name,
                    price = excluded.price,
                    stock = excluded.stock,
                    image_url = COALESCE(excluded.image_url, products.image_url),
                    updated_at = CURRENT_TIMESTAMP
                """,
                (product.id, product.branch_id, product.name, product.price, product.stock, product.image_url),
            )
            for variant in product.variants:
                self.connection.execute(
                    """
                    INSERT INTO product_variants (id, product_id, color, size, price, stock, image_url)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        color = excluded.color,
                        size = excluded.size,
                        price = excluded.price,
                        stock = excluded.stock,
                        image_url = COALESCE(excluded.image_url, product_variants.image_url)
                    """,
                    (
                        variant.id,
                        product.id,
                        variant.color,
                        variant.size,
                        variant.price,
                        variant.stock,
                        variant.image_url,
                    ),
                )

    def get_product(self, product_id: str) -> Product | None:
        with self._lock:
            row = self.connection.execute("SELECT * FROM products WHERE id = ?", (product_id,)).fetchone()
            if row is None:
                return None
            variant_rows = self.connection.execute(
                "SELECT * FROM product_variants WHERE product_id = ? ORDER BY id",
                (product_id,),
            ).fetchall()

        variants = tuple(
            Variant(
                id=v["id"],
                color=v["color"],
                size=v["size"],
                price=v["price"],
                stock=v["stock"],
                image_url=v["image_url"],
            )
            for v in variant_rows
        )
        return Product(
            id=row["id"],
            branch_id=row["branch_id"],
            name=row["name"],
            price=row["price"],
            stock=row["stock"],
            image_url=row["image_url"],
            variants=variants,
        )

    # --- checkout collaborators ---

    def get_user_by_branch_id(self, branch_id: str) -> Seller | None:
        with self._lock:
            row = self.connection.execute("SELECT * FROM sellers WHERE branch_id = ?", (branch_id,)).fetchone()
            if row is None:
                return None
            config_rows = self.connection.execute(
                "SELECT * FROM seller_payment_configs WHERE branch_id = ? ORDER BY id",
                (branch_id,),
            ).fetchall()

        configs = tuple(
            PaymentConfig(
                provider_id=c["provider_id"],
                provider_name=c["provider_name"],
                enabled=bool(c["enabled"]),
                account_title=c["account_title"],
                account_number=c["account_number"],
                instructions=c["instructions"],
            )
            for c in config_rows
        )
        return Seller(
            branch_id=row["branch_id"],
            name=row["name"],
            country=row["country"],
            delivery_fee=row["delivery_fee"],
            tax_rate=row["tax_rate"],
            suspension_until=_parse_dt(row["suspension_until"]),
            suspension_reason=row["suspension_reason"],
            payment_configs=configs,
        )

    def get_country_payment_registry(self, country: str, only_enabled: bool = False) -> list[RegistryEntry]:
        query = "SELECT * FROM country_payment_methods WHERE country = ?"
        if only_enabled:
            query += " AND enabled = 1"
        with self._lock:
            rows = self.connection.execute(query + " ORDER BY id", (normalize_country(country),)).fetchall()
        return [
            RegistryEntry(
                name=row["name"],
                enabled=bool(row["enabled"]),
                type=row["type"],
                instructions=row["instructions"],
            )
            for row in rows
        ]

    def _active_coupon(self, code: str, branch_id: str) -> Any:
        return self.connection.execute(
            "SELECT * FROM coupons WHERE code = ? AND branch_id = ? AND is_active = 1",
            (code, branch_id),
        ).fetchone()

    def validate_coupon(self, code: str, branch_id: str, subtotal: float) -> CouponResult:
        with self._lock:
            coupon = self._active_coupon(code.strip().upper(), branch_id)

        if coupon is None:
            return CouponResult(is_valid=False, discount=0.0, message="Invalid coupon code")
        if _parse_dt(coupon["expiry_date"]) < datetime.now(timezone.utc):
            return CouponResult(is_valid=False, discount=0.0, message="Coupon expired")
        if subtotal < coupon["min_order_amount"]:
            return CouponResult(
                is_valid=False,
                discount=0.0,
                message=f"Minimum order of {coupon['min_order_amount']:g} required",
            )
        if coupon["usage_limit"] and coupon["usage_count"] >= coupon["usage_limit"]:
            return CouponResult(is_valid=False, discount=0.0, message="Coupon usage limit reached")

        if coupon["discount_type"] == "percentage":
            discount = subtotal * coupon["value"] / 100
        else:
            discount = coupon["value"]
        return CouponResult(is_valid=True, discount=min(discount, subtotal), message="Coupon applied")

    def _redeem_coupon(self, submission: OrderSubmission) -> None:
        code = submission.coupon_code
        coupon = self._active_coupon(code, submission.branch_id)
        if coupon is None:
            raise OrderRejectedError(f"Invalid coupon code: {code}")
        if _parse_dt(coupon["expiry_date"]) < datetime.now(timezone.utc):
            raise OrderRejectedError(f"Coupon {code} has expired.")
        if submission.pricing.subtotal < coupon["min_order_amount"]:
            raise OrderRejectedError(
                f"Order amount ({submission.pricing.subtotal:g}) is less than minimum required for coupon {code}."
            )
        if coupon["usage_limit"] and coupon["usage_count"] >= coupon["usage_limit"]:
            raise OrderRejectedError(f"Coupon {code} usage limit reached.")

        used = self.connection.execute(
            "SELECT 1 FROM orders WHERE buyer_id = ? AND branch_id = ? AND coupon_code = ? LIMIT 1",
            (submission.buyer_id, submission.branch_id, code),
        ).fetchone()
        if used is not None:
            raise OrderRejectedError(f"You have already used the coupon code {code}.")

        self.connection.execute("UPDATE coupons SET usage_count = usage_count + 1 WHERE id = ?", (coupon["id"],))

    def _decrement_stock(self, order_id: str, submission: OrderSubmission) -> None:
        for line in submission.lines:
            product = self.connection.execute("SELECT * FROM products WHERE id = ?", (line.product_id,)).fetchone()
            if product is None:
                continue

            variant = None
            if line.variant_id:
                variant = self.connection.execute(
                    "SELECT * FROM product_variants WHERE id = ? AND product_id = ?",
                    (line.variant_id, line.product_id),
                ).fetchone()

            if variant is not None:
                new_stock = max(0, variant["stock"] - line.quantity)
                self.connection.execute("UPDATE product_variants SET stock = ? WHERE id = ?", (new_stock, variant["id"]))
            else:
                new_stock = max(0, product["stock"] - line.quantity)
                self.connection.execute("UPDATE products SET stock = ? WHERE id = ?", (new_stock, product["id"]))

            self.connection.execute(
                """
                INSERT INTO inventory_logs (
                    product_id, product_name, branch_id, change_amount, new_stock, reason, performed_by
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    line.product_id,
                    line.name + (f" ({line.variant_name})" if line.variant_name else ""),
                    submission.branch_id,
                    -line.quantity,
                    new_stock,
                    f"Order #{order_id[:6]}",
                    "System (Order)",
                ),
            )

    def create_order(self, submission: OrderSubmission) -> str:
        order_id = uuid.uuid4().hex
        created_at = datetime.now(timezone.utc).isoformat()
        history = [{"status": ORDER_STATUS_PENDING, "timestamp": created_at, "updated_by": submission.buyer_id}]
        pricing = submission.pricing
        shipping = submission.shipping
        details = submission.payment_details

        with self._lock, self.connection:
            if submission.coupon_code:
                self._redeem_coupon(submission)

            self.connection.execute(
                """
                INSERT INTO orders (
                    id, buyer_id, branch_id, status, subtotal_amount, discount_amount, shipping_cost,
                    tax_rate, tax_amount, total_amount, final_amount, coupon_code,
                    shipping_full_name, shipping_address, shipping_city, shipping_zip, shipping_phone,
                    payment_method, account_title, account_number, payment_instructions, transaction_id,
                    status_history_json, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    order_id,
                    submission.buyer_id,
                    submission.branch_id,
                    ORDER_STATUS_PENDING,
                    pricing.subtotal,
                    pricing.discount,
                    pricing.shipping,
                    pricing.tax_rate,
                    pricing.tax_amount,
                    submission.total_amount,
                    pricing.final_amount,
                    submission.coupon_code,
                    shipping.full_name,
                    shipping.address,
                    shipping.city,
                    shipping.zip,
                    shipping.phone,
                    submission.payment_method,
                    details.account_title,
                    details.account_number,
                    details.instructions,
                    details.transaction_id,
                    self._to_json(history),
                    created_at,
                ),
            )
            self.connection.executemany(
                """
                INSERT INTO order_items (order_id, product_id, name, quantity, unit_price, variant_id, variant_name)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        order_id,
                        line.product_id,
                        line.name,
                        line.quantity,
                        line.unit_price,
                        line.variant_id,
                        line.variant_name,
                    )
                    for line in submission.lines
                ],
            )
            self._decrement_stock(order_id, submission)

        return order_id

    # --- audit and reporting ---

    def start_checkout_run(self, correlation_id: str, buyer_id: str, branch_count: int, started_at: str) -> int:
        with self._lock, self.connection:
            self.connection.execute(
                """
                INSERT INTO checkout_runs (correlation_id, buyer_id, branch_count, started_at, status)
                VALUES (?, ?, ?, ?, 'running')
                ON CONFLICT(correlation_id) DO UPDATE SET
                    started_at = excluded.started_at,
                    status = 'running',
                    finished_at = NULL,
                    stats_json = NULL,
                    error_text = NULL
                """,
                (correlation_id, buyer_id, branch_count, started_at),
            )
        return self._fetch_id("SELECT id FROM checkout_runs WHERE correlation_id = ?", (correlation_id,))

    def finish_checkout_run(
        self,
        correlation_id: str,
        finished_at: str,
        status: str,
        stats: dict[str, Any] | None,
        error_text: str | None,
    ) -> None:
        with self._lock, self.connection:
            self.connection.execute(
                """
                UPDATE checkout_runs
                SET finished_at = ?, status = ?, stats_json = ?, error_text = ?
                WHERE correlation_id = ?
                """,
                (finished_at, status, self._to_json(stats), error_text, correlation_id),
            )

    def list_orders(self, buyer_id: str | None = None, branch_id: str | None = None) -> list[dict[str, Any]]:
        query = "SELECT * FROM orders WHERE 1 = 1"
        params: list[Any] = []
        if buyer_id:
            query += " AND buyer_id = ?"
            params.append(buyer_id)
        if branch_id:
            query += " AND branch_id = ?"
            params.append(branch_id)
        with self._lock:
            rows = self.connection.execute(query + " ORDER BY created_at DESC, id", params).fetchall()
        return [dict(row) for row in rows]

    def fetch_export_rows(self) -> list[dict[str, Any]]:
        with self._lock:
            rows = self.connection.execute(
                """
                SELECT
                    o.id AS order_id,
                    o.created_at,
                    o.status,
                    o.buyer_id,
                    o.branch_id,
                    s.name AS branch_name,
                    o.subtotal_amount,
                    o.discount_amount,
                    o.coupon_code,
                    o.shipping_cost,
                    o.tax_rate,
                    o.tax_amount,
                    o.final_amount,
                    o.payment_method,
                    o.transaction_id,
                    oi.product_id,
                    oi.name AS item_name,
                    oi.variant_name,
                    oi.quantity,
                    oi.unit_price
                FROM order_items oi
                JOIN orders o ON o.id = oi.order_id
                LEFT JOIN sellers s ON s.branch_id = o.branch_id
                ORDER BY o.created_at DESC, o.id, oi.id
                """
            ).fetchall()
        return [dict(row) for row in rows]

    def fetch_counts(self) -> dict[str, int]:
        tables = [
            "sellers",
            "seller_payment_configs",
            "country_payment_methods",
            "coupons",
            "products",
            "orders",
            "order_items",
            "checkout_runs",
        ]
        counts: dict[str, int] = {}
        with self._lock:
            for table in tables:
                row = self.connection.execute(f"SELECT COUNT(*) AS cnt FROM {table}").fetchone()
                counts[table] = int(row["cnt"])
        return counts
