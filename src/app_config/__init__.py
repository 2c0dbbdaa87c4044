"""Application configuration management for the position copy engine."""

from .models import (
    AppConfig,
    TradingConfig,
    PlatformMinimumsConfig,
    RebalanceConfig,
    HyperliquidConfig,
    LoggingConfig,
    ServiceConfig,
)
from .loader import load_config, get_config

__all__ = [
    "AppConfig",
    "TradingConfig",
    "PlatformMinimumsConfig",
    "RebalanceConfig",
    "HyperliquidConfig",
    "LoggingConfig",
    "ServiceConfig",
    "load_config",
    "get_config",
]
