from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from cartify.config import Settings
from cartify.core.checkout import (
    Cart,
    CouponResult,
    OrderSubmission,
    PaymentConfig,
    Product,
    RegistryEntry,
    Seller,
    ShippingInfo,
)
from cartify.core.db import MarketplaceRepository


class FakeMarketplace:
    """In-memory stand-in for the storage calls the checkout makes."""

    def __init__(self) -> None:
        self.sellers: dict[str, Seller] = {}
        self.registries: dict[str, list[RegistryEntry]] = {}
        self.coupons: dict[tuple[str, str], float] = {}
        self.orders: dict[str, OrderSubmission] = {}
        self.fail_branches: set[str] = set()
        self.barrier: threading.Barrier | None = None
        self.registry_calls: list[str] = []
        self.runs: dict[str, dict[str, Any]] = {}
        self.on_run_started: Callable[[], None] | None = None
        self._lock = threading.Lock()

    def get_user_by_branch_id(self, branch_id: str) -> Seller | None:
        return self.sellers.get(branch_id)

    def get_country_payment_registry(self, country: str) -> list[RegistryEntry]:
        self.registry_calls.append(country)
        return list(self.registries.get(country, []))

    def validate_coupon(self, code: str, branch_id: str, subtotal: float) -> CouponResult:
        discount = self.coupons.get((code, branch_id))
        if discount is None:
            return CouponResult(is_valid=False, discount=0.0, message="Invalid coupon code")
        return CouponResult(is_valid=True, discount=min(discount, subtotal), message="Coupon applied")

    def create_order(self, submission: OrderSubmission) -> str:
        if self.barrier is not None:
            self.barrier.wait(timeout=5)
        if submission.branch_id in self.fail_branches:
            raise RuntimeError("storage unavailable")
        order_id = f"order-{submission.branch_id}"
        with self._lock:
            self.orders[order_id] = submission
        return order_id

    def start_checkout_run(self, correlation_id: str, buyer_id: str, branch_count: int, started_at: str) -> int:
        self.runs[correlation_id] = {"buyer_id": buyer_id, "branch_count": branch_count, "status": "running"}
        if self.on_run_started is not None:
            self.on_run_started()
        return len(self.runs)

    def finish_checkout_run(
        self,
        correlation_id: str,
        finished_at: str,
        status: str,
        stats: dict[str, Any] | None,
        error_text: str | None,
    ) -> None:
        self.runs[correlation_id].update(status=status, stats=stats, error_text=error_text)


COD = PaymentConfig(provider_id="cod", provider_name="Cash on Delivery", instructions="Pay the rider")
EASYPAISA = PaymentConfig(
    provider_id="easypaisa",
    provider_name="Easypaisa",
    account_title="Alpha Store",
    account_number="0300-1234567",
    instructions="Send to this wallet",
)
JAZZCASH = PaymentConfig(
    provider_id="jazzcash",
    provider_name="JazzCash",
    account_title="Beta Shop",
    account_number="0311-7654321",
)

PAKISTAN_REGISTRY = [
    RegistryEntry(name="Cash on Delivery", type="cod"),
    RegistryEntry(name="Easypaisa"),
    RegistryEntry(name="JazzCash"),
]

PRODUCT_A = Product(id="p-laptop", branch_id="branch-a", name="Laptop Stand", price=1000.0, stock=10)
PRODUCT_B = Product(id="p-mug", branch_id="branch-b", name="Coffee Mug", price=500.0, stock=5)


@pytest.fixture()
def marketplace() -> FakeMarketplace:
    fake = FakeMarketplace()
    fake.sellers["branch-a"] = Seller(
        branch_id="branch-a",
        name="Alpha Store",
        country="pakistan",
        delivery_fee=100.0,
        tax_rate=10.0,
        payment_configs=(COD, EASYPAISA),
    )
    fake.sellers["branch-b"] = Seller(
        branch_id="branch-b",
        name="Beta Shop",
        country="pakistan",
        delivery_fee=0.0,
        tax_rate=5.0,
        payment_configs=(COD, JAZZCASH),
    )
    fake.registries["pakistan"] = list(PAKISTAN_REGISTRY)
    fake.coupons[("SAVE200", "branch-a")] = 200.0
    return fake


@pytest.fixture()
def cart() -> Cart:
    c = Cart()
    c.add(PRODUCT_A, quantity=2)
    c.add(PRODUCT_B)
    return c


@pytest.fixture()
def shipping() -> ShippingInfo:
    return ShippingInfo(
        full_name="Sara Khan",
        address="12 Mall Road",
        city="Lahore",
        zip="54000",
        phone="0300-0000000",
    )


@pytest.fixture()
def future() -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=30)


@pytest.fixture()
def repository(tmp_path: Path):
    db_path = tmp_path / "cartify.sqlite3"
    repo = MarketplaceRepository(db_path)
    repo.migrate()
    try:
        yield repo
    finally:
        repo.close()


@pytest.fixture()
def settings(tmp_path: Path, monkeypatch) -> Settings:  # noqa: ANN001
    monkeypatch.delenv("CARTIFY_HOME", raising=False)
    monkeypatch.delenv("CARTIFY_DEFAULT_COUNTRY", raising=False)
    monkeypatch.delenv("CARTIFY_SETTLEMENT_WORKERS", raising=False)
    root = tmp_path / "project"
    root.mkdir(parents=True, exist_ok=True)
    s = Settings.load(base_dir=root)
    s.ensure_directories()
    return s


@pytest.fixture()
def test_logger() -> logging.Logger:
    logger = logging.getLogger("cartify-test")
    logger.handlers.clear()
    logger.addHandler(logging.NullHandler())
    logger.setLevel(logging.INFO)
    return logger
