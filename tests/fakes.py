import asyncio
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from exchange_connector_base import (
    MarketDataProvider,
    OrderClient,
    OrderFailed,
    OrderFill,
    PortfolioProvider,
    PositionCopyRequest,
    PositionSnapshot,
    Preview,
    SymbolNotFound,
)
from copy_calculator import CapitalValidator, DistributionCalculator, StaticMinimumTable

PRICES = {"BTC": Decimal("50000"), "ETH": Decimal("2000"), "SOL": Decimal("100")}


def position(symbol: str, notional, side: str = "long", **kwargs) -> PositionSnapshot:
    return PositionSnapshot(symbol=symbol, side=side, notional_value=Decimal(str(notional)), **kwargs)


def three_asset_portfolio() -> List[PositionSnapshot]:
    return [position("BTC", 500), position("ETH", 300), position("SOL", 200)]


def make_preview(portfolio: Sequence[PositionSnapshot], balance, prices: Optional[Dict[str, Decimal]] = None,
                 fraction="1", existing: Sequence[PositionSnapshot] = (), **kwargs) -> Preview:
    request = PositionCopyRequest(
        source_portfolio=list(portfolio),
        available_balance=Decimal(str(balance)),
        allocation_fraction=Decimal(str(fraction)),
        existing_user_positions=list(existing),
        **kwargs,
    )
    distribution = DistributionCalculator().compute_distribution(request)
    return CapitalValidator().build_preview(
        request=request,
        distribution=distribution,
        prices=prices or PRICES,
        minimums=StaticMinimumTable(),
    )


class FakeMarketData(MarketDataProvider):
    def __init__(self, prices: Optional[Dict[str, Decimal]] = None):
        self.prices = dict(prices or PRICES)
        self.calls = 0

    async def get_price(self, symbol: str) -> Decimal:
        self.calls += 1
        if symbol not in self.prices:
            raise SymbolNotFound(symbol)
        return self.prices[symbol]


class FakePortfolio(PortfolioProvider):
    def __init__(self, positions: Optional[Dict[str, List[PositionSnapshot]]] = None):
        self.positions = positions or {}
        self.calls: List[str] = []

    async def get_positions(self, wallet_address: str) -> List[PositionSnapshot]:
        self.calls.append(wallet_address)
        return list(self.positions.get(wallet_address, []))


class ScriptedOrderClient(OrderClient):
    """Fills at the given prices unless a symbol is scripted to misbehave"""

    def __init__(self, prices: Optional[Dict[str, Decimal]] = None,
                 behaviours: Optional[Dict[str, object]] = None,
                 on_fill=None):
        self.prices = dict(prices or PRICES)
        self.behaviours = behaviours or {}
        self.on_fill = on_fill
        self.calls: List[tuple] = []

    async def place_order(self, symbol: str, side: str, size: Decimal, leverage: Decimal) -> OrderFill:
        self.calls.append((symbol, side, size, leverage))
        await asyncio.sleep(0)

        behaviour = self.behaviours.get(symbol)
        if behaviour == "hang":
            await asyncio.sleep(30)
        elif behaviour == "reject":
            raise OrderFailed(symbol, "rejected by exchange")
        elif behaviour == "no_fill":
            return OrderFill(filled_size=Decimal("0"), entry_price=self.prices[symbol])
        elif isinstance(behaviour, Exception):
            raise behaviour

        fill = OrderFill(filled_size=size, entry_price=self.prices[symbol], order_id=f"test-{len(self.calls)}")
        if self.on_fill is not None:
            self.on_fill(symbol)
        return fill
