from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any

from cartify.config import Settings, normalize_country
from cartify.core.checkout import (
    AppliedCoupon,
    BranchQuote,
    BranchSettlementContext,
    Buyer,
    Cart,
    CartLineItem,
    OrderLine,
    OrderSubmission,
    PaymentDetails,
    PaymentSelection,
    SettlementError,
    SettlementResult,
    SettlementWriteError,
    ShippingInfo,
    SuspendedBranchError,
    ValidationError,
    compute_branch_pricing,
    resolve_branch_contexts,
    validate_payment,
)
from cartify.core.checkout.ports import MarketplaceGateway


class SettlementService:
    """
    Turns a multi-branch cart into one order per branch.

    Every branch is validated and written on its own worker; a failing branch
    never stops its siblings, and orders already written are not rolled back.
    The buyer sees the first failure in cart order and keeps the cart.
    """

    def __init__(
        self,
        settings: Settings,
        gateway: MarketplaceGateway,
        logger: logging.Logger | logging.LoggerAdapter,
    ):
        self.settings = settings
        self.gateway = gateway
        self.logger = logger

    def resolve_contexts(self, cart: Cart) -> dict[str, BranchSettlementContext]:
        try:
            return resolve_branch_contexts(
                cart.group_by_branch().keys(),
                self.gateway,
                default_country=self.settings.default_country,
                logger=self.logger,
            )
        except Exception as exc:  # noqa: BLE001
            self.logger.error("Seller lookup failed: %s", exc)
            raise SettlementError(f"Could not load seller details: {exc}") from exc

    def quote(
        self,
        cart: Cart,
        coupons: Mapping[str, AppliedCoupon] | None = None,
        contexts: Mapping[str, BranchSettlementContext] | None = None,
    ) -> list[BranchQuote]:
        coupons = coupons or {}
        contexts = contexts if contexts is not None else self.resolve_contexts(cart)

        quotes: list[BranchQuote] = []
        for branch_id, items in cart.group_by_branch().items():
            context = contexts[branch_id]
            coupon = coupons.get(branch_id)
            discount = coupon.discount if coupon and coupon.applied else 0.0
            pricing = compute_branch_pricing(
                items,
                discount=discount,
                delivery_fee=context.delivery_fee,
                tax_rate=context.tax_rate,
            )
            quotes.append(BranchQuote(branch_id=branch_id, context=context, items=list(items), pricing=pricing))
        return quotes

    @staticmethod
    def grand_total(quotes: list[BranchQuote]) -> float:
        return sum(quote.pricing.final_amount for quote in quotes)

    def _log_cross_border(self, buyer: Buyer, quotes: list[BranchQuote]) -> None:
        if not buyer.country:
            return
        buyer_country = normalize_country(buyer.country)
        for quote in quotes:
            seller_country = quote.context.country
            if seller_country and seller_country != buyer_country:
                self.logger.info(
                    "Cross-border order: buyer %s in %s, branch %s settles in %s",
                    buyer.user_id,
                    buyer_country,
                    quote.branch_id,
                    seller_country,
                )

    @staticmethod
    def _order_lines(items: list[CartLineItem]) -> tuple[OrderLine, ...]:
        return tuple(
            OrderLine(
                product_id=item.product_id,
                quantity=item.quantity,
                name=item.name,
                unit_price=item.unit_price,
                variant_id=item.variant_id,
                variant_name=item.variant.label if item.variant else None,
            )
            for item in items
        )

    def _settle_branch(
        self,
        *,
        buyer: Buyer,
        quote: BranchQuote,
        shipping: ShippingInfo,
        selection: PaymentSelection | None,
        coupon: AppliedCoupon | None,
    ) -> str:
        context = quote.context
        if context.is_suspended:
            raise SuspendedBranchError(context.branch_id, context.name)

        config = validate_payment(context, selection)
        transaction_id = (selection.transaction_id or "").strip() if selection else ""

        submission = OrderSubmission(
            buyer_id=buyer.user_id,
            branch_id=context.branch_id,
            lines=self._order_lines(quote.items),
            pricing=quote.pricing,
            shipping=shipping,
            payment_method=config.provider_name,
            payment_details=PaymentDetails(
                account_title=config.account_title or None,
                account_number=config.account_number or None,
                instructions=config.instructions or None,
                transaction_id=transaction_id or None,
            ),
            coupon_code=coupon.code if coupon and coupon.applied else None,
        )

        try:
            order_id = self.gateway.create_order(submission)
        except Exception as exc:  # noqa: BLE001
            raise SettlementWriteError(context.branch_id, context.name, exc) from exc

        self.logger.info(
            "Order %s created for branch %s: final_amount=%.2f",
            order_id,
            context.branch_id,
            quote.pricing.final_amount,
        )
        return order_id

    def submit_order(
        self,
        *,
        buyer: Buyer,
        cart: Cart,
        shipping: ShippingInfo,
        selections: Mapping[str, PaymentSelection],
        coupons: Mapping[str, AppliedCoupon] | None = None,
        correlation_id: str | None = None,
    ) -> SettlementResult:
        if cart.is_empty():
            raise SettlementError("Your cart is empty.")

        missing = shipping.missing_fields()
        if missing:
            raise ValidationError(missing)

        correlation_id = correlation_id or uuid.uuid4().hex
        coupon_snapshot = dict(coupons or {})
        selection_snapshot = {
            branch_id: PaymentSelection(provider_id=s.provider_id, transaction_id=s.transaction_id)
            for branch_id, s in selections.items()
        }
        branch_count = len(cart.group_by_branch())

        self.gateway.start_checkout_run(
            correlation_id=correlation_id,
            buyer_id=buyer.user_id,
            branch_count=branch_count,
            started_at=datetime.now(timezone.utc).isoformat(),
        )
        try:
            quotes = self.quote(cart, coupon_snapshot)
        except SettlementError as exc:
            self.gateway.finish_checkout_run(
                correlation_id=correlation_id,
                finished_at=datetime.now(timezone.utc).isoformat(),
                status="failed",
                stats={"branches": branch_count, "committed": 0, "failed": branch_count, "order_ids": {}},
                error_text=exc.message,
            )
            raise
        self._log_cross_border(buyer, quotes)
        self.logger.info("Settling %s branches for buyer %s", len(quotes), buyer.user_id)

        outcomes: dict[str, str | SettlementError] = {}
        workers = min(self.settings.settlement_workers, len(quotes))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="settle") as pool:
            futures = {
                quote.branch_id: pool.submit(
                    self._settle_branch,
                    buyer=buyer,
                    quote=quote,
                    shipping=shipping,
                    selection=selection_snapshot.get(quote.branch_id),
                    coupon=coupon_snapshot.get(quote.branch_id),
                )
                for quote in quotes
            }
            for branch_id, future in futures.items():
                try:
                    outcomes[branch_id] = future.result()
                except SettlementError as exc:
                    outcomes[branch_id] = exc

        committed = {branch_id: value for branch_id, value in outcomes.items() if isinstance(value, str)}
        failures = [value for value in outcomes.values() if isinstance(value, SettlementError)]
        stats: dict[str, Any] = {
            "branches": len(quotes),
            "committed": len(committed),
            "failed": len(failures),
            "order_ids": committed,
        }

        if failures:
            for error in failures:
                self.logger.error("Branch %s settlement failed: %s", error.branch_id, error.message)
            if committed:
                self.logger.warning(
                    "Partial checkout: %s orders stay committed while %s branches failed",
                    len(committed),
                    len(failures),
                )
            first = failures[0]
            first.committed = committed
            self.gateway.finish_checkout_run(
                correlation_id=correlation_id,
                finished_at=datetime.now(timezone.utc).isoformat(),
                status="partially_committed" if committed else "failed",
                stats=stats,
                error_text=first.message,
            )
            raise first

        cart.clear()
        self.gateway.finish_checkout_run(
            correlation_id=correlation_id,
            finished_at=datetime.now(timezone.utc).isoformat(),
            status="success",
            stats=stats,
            error_text=None,
        )
        self.logger.info("Checkout %s completed: %s orders", correlation_id, len(committed))
        return SettlementResult(order_ids=committed, grand_total=self.grand_total(quotes))
