from __future__ import annotations

from typing import Any, Protocol

from .models import CouponResult, OrderSubmission, RegistryEntry, Seller


class MarketplaceGateway(Protocol):
    """Storage calls the checkout consumes. MarketplaceRepository implements all of them."""

    def get_user_by_branch_id(self, branch_id: str) -> Seller | None: ...

    def get_country_payment_registry(self, country: str) -> list[RegistryEntry]: ...

    def validate_coupon(self, code: str, branch_id: str, subtotal: float) -> CouponResult: ...

    def create_order(self, submission: OrderSubmission) -> str: ...

    def start_checkout_run(self, correlation_id: str, buyer_id: str, branch_count: int, started_at: str) -> int: ...

    def finish_checkout_run(
        self,
        correlation_id: str,
        finished_at: str,
        status: str,
        stats: dict[str, Any] | None,
        error_text: str | None,
    ) -> None: ...
