"""Load config.yaml into an AppConfig and hold it as the process-wide singleton."""

import logging
import yaml
from pathlib import Path
from typing import Optional

from .models import AppConfig

logger = logging.getLogger(__name__)

_config: Optional[AppConfig] = None


def load_config(config_path: str | Path) -> AppConfig:
    """
    Parse and validate the YAML file, replacing any previously loaded config.

    An empty file yields the defaults.

    Raises:
        FileNotFoundError: config_path does not exist
        ValueError: the YAML does not validate against AppConfig
        yaml.YAMLError: the file is not valid YAML
    """
    global _config

    path = Path(config_path)
    if not path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    raw = yaml.safe_load(path.read_text()) or {}
    try:
        config = AppConfig.model_validate(raw)
    except Exception as e:
        logger.error(f"Invalid configuration in {path}: {e}")
        raise ValueError(f"Invalid configuration: {e}") from e

    _config = config
    _log_config_summary(path, config)
    return config


def _log_config_summary(path: Path, config: AppConfig):
    """One line per section so a log reader can reconstruct what was loaded"""
    trading = config.trading
    logger.info(f"====== CONFIGURATION ({path}) ======")
    logger.info(
        f"trading: platform={trading.default_platform} mode={trading.scaling_mode} "
        f"quantum={trading.currency_quantum}/{trading.size_quantum} "
        f"timeout={trading.order_timeout_seconds}s max_leverage={trading.max_leverage}x"
    )

    for name, platform in sorted(config.platforms.items()):
        if platform.default_minimum_notional is None:
            line = f"platform {name}: default=${config.fallback_minimum_notional} (fallback)"
        else:
            line = f"platform {name}: default=${platform.default_minimum_notional}"
        if platform.minimums:
            overrides = ", ".join(f"{symbol}=${minimum}" for symbol, minimum in sorted(platform.minimums.items()))
            line += f" [{overrides}]"
        logger.info(line)

    logger.info(
        f"rebalance: threshold={config.rebalance.delta_threshold_percent}% "
        f"poll={config.rebalance.poll_interval_seconds}s"
    )
    logger.info(
        f"hyperliquid: {config.hyperliquid.api_url} cache={config.hyperliquid.price_cache_ttl_seconds}s "
        f"stale_after={config.hyperliquid.price_stale_after_seconds}s"
    )
    logger.info(
        f"service: preview_ttl={config.service.preview_ttl_seconds}s "
        f"max_pending={config.service.max_pending_previews}"
    )
    logger.info(f"logging: level={config.logging.level} format={config.logging.format}")


def get_config() -> AppConfig:
    """Return the loaded config; RuntimeError if load_config() has not run"""
    if _config is None:
        raise RuntimeError("Configuration not loaded. Call load_config() first.")
    return _config
