"""Platform minimum order notionals backed by configuration"""

from decimal import Decimal
from typing import Dict, Optional

from exchange_connector_base import MinimumsProvider
from app_config import AppConfig, PlatformMinimumsConfig, get_config

WILDCARD = '*'


class StaticMinimumTable(MinimumsProvider):
    """Lookup order: platform+symbol, platform wildcard, platform default, global fallback"""

    def __init__(self, platforms: Optional[Dict[str, PlatformMinimumsConfig]] = None,
                 fallback: Optional[Decimal] = None):
        config = get_config()
        self.platforms = platforms if platforms is not None else config.platforms
        self.fallback = fallback if fallback is not None else config.fallback_minimum_notional

    @classmethod
    def from_config(cls, config: AppConfig) -> 'StaticMinimumTable':
        return cls(platforms=config.platforms, fallback=config.fallback_minimum_notional)

    def get_minimum(self, platform: str, symbol: str) -> Decimal:
        platform_config = self.platforms.get(platform.strip().lower())
        if platform_config is None:
            return self.fallback

        symbol = symbol.strip().upper()
        if symbol in platform_config.minimums:
            return platform_config.minimums[symbol]
        if WILDCARD in platform_config.minimums:
            return platform_config.minimums[WILDCARD]
        if platform_config.default_minimum_notional is not None:
            return platform_config.default_minimum_notional
        return self.fallback
