import logging
from decimal import Decimal

import pytest

import app_config.loader as loader
from app_config import get_config, load_config
from copy_calculator import StaticMinimumTable


def test_loaded_config_is_normalised(app_config) -> None:
    assert get_config() is app_config
    assert app_config.trading.currency_quantum == Decimal("0.01")
    assert app_config.trading.size_quantum == Decimal("0.00000001")
    assert app_config.trading.order_timeout_seconds == 1
    assert app_config.platforms["moonlander"].minimums == {"BTC": Decimal("15"), "*": Decimal("14")}
    assert app_config.logging.level == "DEBUG"


def test_empty_file_uses_defaults(tmp_path) -> None:
    config_path = tmp_path / "empty.yaml"
    config_path.write_text("")

    config = load_config(config_path)

    assert config.trading.default_platform == "hyperliquid"
    assert config.trading.percentage_tolerance == Decimal("0.000001")
    assert config.platforms["hyperliquid"].default_minimum_notional == Decimal("10")
    assert config.fallback_minimum_notional == Decimal("12")
    assert config.rebalance.delta_threshold_percent == Decimal("5.0")


def test_platform_names_are_lower_cased(tmp_path) -> None:
    config_path = tmp_path / "platforms.yaml"
    config_path.write_text("platforms:\n  HyperLiquid:\n    default_minimum_notional: 5\n")

    config = load_config(config_path)

    assert list(config.platforms) == ["hyperliquid"]


def test_invalid_values_are_rejected(tmp_path) -> None:
    config_path = tmp_path / "bad.yaml"
    config_path.write_text("trading:\n  order_timeout_seconds: 0\n")

    with pytest.raises(ValueError):
        load_config(config_path)


def test_missing_file_is_reported(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yaml")


def test_get_config_before_load_fails(monkeypatch) -> None:
    monkeypatch.setattr(loader, "_config", None)

    with pytest.raises(RuntimeError):
        get_config()


def test_minimum_lookup_order() -> None:
    minimums = StaticMinimumTable()

    assert minimums.get_minimum("moonlander", "btc") == Decimal("15")
    assert minimums.get_minimum("Moonlander", "ETH") == Decimal("14")
    assert minimums.get_minimum("hyperliquid", "ETH") == Decimal("12")
    assert minimums.get_minimum("bare", "ETH") == Decimal("11")
    assert minimums.get_minimum("unknown-dex", "ETH") == Decimal("11")


def test_load_logs_a_summary_per_section(tmp_path, caplog) -> None:
    config_path = tmp_path / "summary.yaml"
    config_path.write_text(
        "platforms:\n"
        "  moonlander:\n"
        "    default_minimum_notional: 12\n"
        "    minimums:\n"
        "      btc: 15\n"
        "      \"*\": 14\n"
        "  bare: {}\n"
        "fallback_minimum_notional: 11\n"
    )

    with caplog.at_level(logging.INFO, logger="app_config.loader"):
        load_config(config_path)

    lines = [record.getMessage() for record in caplog.records if record.name == "app_config.loader"]
    assert "platform moonlander: default=$12 [*=$14, BTC=$15]" in lines
    assert "platform bare: default=$11 (fallback)" in lines
    assert any(line.startswith("service: preview_ttl=900s max_pending=1000") for line in lines)
    assert any(line.startswith("rebalance: threshold=") for line in lines)
