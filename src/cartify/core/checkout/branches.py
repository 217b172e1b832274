from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from cartify.config import normalize_country

from .models import BranchSettlementContext, PaymentConfig, RegistryEntry, Seller
from .ports import MarketplaceGateway

UNKNOWN_BRANCH_NAME = "Unknown Branch"

_module_logger = logging.getLogger(__name__)


def filter_payment_configs(
    configs: Iterable[PaymentConfig],
    registry: Iterable[RegistryEntry],
) -> tuple[PaymentConfig, ...]:
    """Keep configs enabled by the seller whose provider is also enabled in the country registry."""
    allowed = {}
    for entry in registry:
        allowed.setdefault(entry.name.strip().lower(), entry)

    result = []
    for config in configs:
        if not config.enabled:
            continue
        entry = allowed.get(config.provider_name.strip().lower())
        if entry is not None and entry.enabled:
            result.append(config)
    return tuple(result)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def is_suspended(seller: Seller, now: datetime) -> bool:
    # Naive timestamps from a gateway are read as UTC.
    if seller.suspension_until is None:
        return False
    return _as_utc(seller.suspension_until) > _as_utc(now)


def unknown_branch_context(branch_id: str) -> BranchSettlementContext:
    return BranchSettlementContext(branch_id=branch_id, name=UNKNOWN_BRANCH_NAME)


def resolve_branch_contexts(
    branch_ids: Iterable[str],
    gateway: MarketplaceGateway,
    *,
    default_country: str,
    now: datetime | None = None,
    logger: logging.Logger | logging.LoggerAdapter | None = None,
) -> dict[str, BranchSettlementContext]:
    """
    Build the settlement context of every distinct branch, in first-seen order.

    The country registry is fetched once per country for this call only, so a
    later checkout always sees the current registry. A branch whose seller
    cannot be found gets an empty-config context instead of failing the whole
    checkout.
    """
    log = logger or _module_logger
    now = now or datetime.now(timezone.utc)
    registry_cache: dict[str, list[RegistryEntry]] = {}
    contexts: dict[str, BranchSettlementContext] = {}

    for branch_id in branch_ids:
        if branch_id in contexts:
            continue

        try:
            seller = gateway.get_user_by_branch_id(branch_id)
        except LookupError:
            seller = None
        if seller is None:
            log.warning("Seller for branch %s not found, no payment methods available", branch_id)
            contexts[branch_id] = unknown_branch_context(branch_id)
            continue

        country_defaulted = not (seller.country or "").strip()
        if country_defaulted:
            log.warning(
                "Seller %s (%s) has no country set, using default country %s",
                seller.name,
                branch_id,
                default_country,
            )
        country = normalize_country(default_country if country_defaulted else seller.country)

        if country not in registry_cache:
            registry_cache[country] = gateway.get_country_payment_registry(country)

        configs = filter_payment_configs(seller.payment_configs, registry_cache[country])
        contexts[branch_id] = BranchSettlementContext(
            branch_id=branch_id,
            name=seller.name,
            delivery_fee=seller.delivery_fee or 0.0,
            tax_rate=seller.tax_rate or 0.0,
            is_suspended=is_suspended(seller, now),
            suspension_until=seller.suspension_until,
            suspension_reason=seller.suspension_reason,
            configs=configs,
            country=country,
            country_defaulted=country_defaulted,
        )

    return contexts
