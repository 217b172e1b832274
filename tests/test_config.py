from __future__ import annotations

from pathlib import Path

import pytest

from cartify.config import Settings, normalize_country


def test_settings_defaults_under_project_root(monkeypatch, tmp_path: Path) -> None:  # noqa: ANN001
    for name in ("CARTIFY_HOME", "CARTIFY_DB_PATH", "CARTIFY_DATA_DIR", "CARTIFY_DEFAULT_COUNTRY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("CARTIFY_SETTLEMENT_WORKERS", raising=False)

    settings = Settings.load(base_dir=tmp_path)

    assert settings.db_path == (tmp_path / "data" / "cartify.sqlite3").resolve()
    assert settings.default_country == "pakistan"
    assert settings.settlement_workers == 8


def test_settings_reads_environment(monkeypatch, tmp_path: Path) -> None:  # noqa: ANN001
    monkeypatch.setenv("CARTIFY_HOME", str(tmp_path))
    monkeypatch.setenv("CARTIFY_DEFAULT_COUNTRY", " Dubai ")
    monkeypatch.setenv("CARTIFY_SETTLEMENT_WORKERS", "2")

    settings = Settings.load()

    assert settings.root_dir == tmp_path.resolve()
    assert settings.default_country == "uae"
    assert settings.settlement_workers == 2
    assert settings.currency("uae") == "AED "
    assert settings.currency(None) == "PKR "


def test_settings_rejects_zero_workers(monkeypatch, tmp_path: Path) -> None:  # noqa: ANN001
    monkeypatch.setenv("CARTIFY_SETTLEMENT_WORKERS", "0")

    with pytest.raises(ValueError):
        Settings.load(base_dir=tmp_path)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("Pakistan", "pakistan"), ("dubai", "uae"), ("United Arab Emirates", "uae"), (" India ", "india")],
)
def test_normalize_country(raw: str, expected: str) -> None:
    assert normalize_country(raw) == expected


def test_settings_log_level(monkeypatch, tmp_path: Path) -> None:  # noqa: ANN001
    monkeypatch.setenv("CARTIFY_LOG_LEVEL", "debug")
    assert Settings.load(base_dir=tmp_path).log_level == "DEBUG"

    monkeypatch.setenv("CARTIFY_LOG_LEVEL", "chatty")
    with pytest.raises(ValueError, match="CARTIFY_LOG_LEVEL"):
        Settings.load(base_dir=tmp_path)
