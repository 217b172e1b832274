from __future__ import annotations

import platform
import sys

from cartify.config import Settings
from cartify.core.db import MarketplaceRepository


def run_doctor_checks(settings: Settings) -> list[dict[str, str]]:
    checks: list[dict[str, str]] = []

    checks.append(
        {
            "check": "python_version",
            "status": "ok" if sys.version_info >= (3, 11) else "warn",
            "detail": platform.python_version(),
        }
    )

    checks.append(
        {
            "check": "db_parent",
            "status": "ok" if settings.db_path.parent.exists() else "warn",
            "detail": str(settings.db_path.parent),
        }
    )

    if not settings.db_path.exists():
        checks.append({"check": "database", "status": "warn", "detail": "Run `cartify init` first"})
        return checks

    with MarketplaceRepository(settings.db_path) as repository:
        repository.migrate()
        counts = repository.fetch_counts()
        registry = repository.get_country_payment_registry(settings.default_country, only_enabled=True)

    checks.append(
        {
            "check": "sellers",
            "status": "ok" if counts["sellers"] else "warn",
            "detail": f"{counts['sellers']} sellers, {counts['seller_payment_configs']} payment configs",
        }
    )
    checks.append(
        {
            "check": f"registry_{settings.default_country}",
            "status": "ok" if registry else "warn",
            "detail": ", ".join(entry.name for entry in registry) or "No enabled payment methods for default country",
        }
    )

    return checks
