from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, List
from .models import OrderFill, PositionSnapshot, Side


class PortfolioProvider(ABC):
    """Abstract source of wallet positions"""

    @abstractmethod
    async def get_positions(self, wallet_address: str) -> List[PositionSnapshot]:
        """Get open positions for a wallet; raises Unavailable when the source is down"""
        pass


class MarketDataProvider(ABC):
    """Abstract source of current market prices"""

    @abstractmethod
    async def get_price(self, symbol: str) -> Decimal:
        """Get current price; raises SymbolNotFound, Stale or Unavailable"""
        pass

    async def get_prices(self, symbols: List[str]) -> Dict[str, Decimal]:
        """Get current prices for several symbols, one lookup at a time"""
        prices = {}
        for symbol in symbols:
            prices[symbol] = await self.get_price(symbol)
        return prices


class MinimumsProvider(ABC):
    """Abstract lookup of platform minimum order notionals"""

    @abstractmethod
    def get_minimum(self, platform: str, symbol: str) -> Decimal:
        """Minimum order notional, falling back to a configured default"""
        pass


class OrderClient(ABC):
    """Abstract order execution API"""

    @abstractmethod
    async def place_order(
        self,
        symbol: str,
        side: Side,
        size: Decimal,
        leverage: Decimal
    ) -> OrderFill:
        """Place an order; raises OrderFailed (or any broker error) on rejection"""
        pass
