from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_COUNTRY = "pakistan"
DEFAULT_CURRENCY = "PKR "

COUNTRY_CURRENCIES = {
    "pakistan": "PKR ",
    "india": "INR ",
    "dubai": "AED ",
    "uae": "AED ",
}

COUNTRY_ALIASES = {
    "dubai": "uae",
    "united arab emirates": "uae",
}


def normalize_country(country: str) -> str:
    normalized = country.strip().lower()
    return COUNTRY_ALIASES.get(normalized, normalized)


@dataclass(slots=True)
class Settings:
    root_dir: Path
    data_dir: Path
    db_path: Path
    logs_dir: Path
    exports_dir: Path
    default_country: str = DEFAULT_COUNTRY
    settlement_workers: int = 8
    log_level: str = "INFO"
    currencies: dict[str, str] = field(default_factory=lambda: COUNTRY_CURRENCIES.copy())

    @classmethod
    def load(cls, base_dir: Path | None = None) -> Settings:
        load_dotenv(override=False)

        root_env = os.getenv("CARTIFY_HOME")
        root_dir = Path(root_env).expanduser().resolve() if root_env else (base_dir or Path.cwd()).resolve()

        data_dir = Path(os.getenv("CARTIFY_DATA_DIR", root_dir / "data")).expanduser().resolve()
        db_path = Path(os.getenv("CARTIFY_DB_PATH", data_dir / "cartify.sqlite3")).expanduser().resolve()
        logs_dir = Path(os.getenv("CARTIFY_LOG_DIR", root_dir / "logs")).expanduser().resolve()
        exports_dir = Path(os.getenv("CARTIFY_EXPORT_DIR", root_dir / "exports")).expanduser().resolve()

        default_country = normalize_country(os.getenv("CARTIFY_DEFAULT_COUNTRY", DEFAULT_COUNTRY))
        settlement_workers = int(os.getenv("CARTIFY_SETTLEMENT_WORKERS", "8"))
        if settlement_workers < 1:
            raise ValueError("CARTIFY_SETTLEMENT_WORKERS must be at least 1")

        log_level = os.getenv("CARTIFY_LOG_LEVEL", "INFO").strip().upper()
        if log_level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown CARTIFY_LOG_LEVEL: {log_level}")

        return cls(
            root_dir=root_dir,
            data_dir=data_dir,
            db_path=db_path,
            logs_dir=logs_dir,
            exports_dir=exports_dir,
            default_country=default_country,
            settlement_workers=settlement_workers,
            log_level=log_level,
        )

    def currency(self, country: str | None) -> str:
        if not country:
            return DEFAULT_CURRENCY
        return self.currencies.get(country.strip().lower(), DEFAULT_CURRENCY)

    def ensure_directories(self) -> None:
        for path in [self.root_dir, self.data_dir, self.logs_dir, self.exports_dir]:
            path.mkdir(parents=True, exist_ok=True)
