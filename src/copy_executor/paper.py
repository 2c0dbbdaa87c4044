"""Paper trading order client that fills at the current market price"""

from decimal import Decimal
from typing import Optional
import logging
import uuid

from exchange_connector_base import (
    CopyEngineError,
    MarketDataProvider,
    OrderClient,
    OrderFailed,
    OrderFill,
    Side,
)
from app_config import get_config
from app_logging import get_logger


class PaperOrderClient(OrderClient):
    """Simulated fills for previews, dry runs and paper accounts"""

    def __init__(self, market_data: MarketDataProvider, logger: Optional[logging.Logger] = None):
        self.market_data = market_data
        self.logger = logger or get_logger(__name__)
        self.config = get_config()

    async def place_order(self, symbol: str, side: Side, size: Decimal, leverage: Decimal) -> OrderFill:
        if size <= 0:
            raise OrderFailed(symbol, f"invalid size {size}")
        if leverage > self.config.trading.max_leverage:
            raise OrderFailed(symbol, f"leverage {leverage}x exceeds maximum {self.config.trading.max_leverage}x")

        try:
            price = await self.market_data.get_price(symbol)
        except CopyEngineError as e:
            raise OrderFailed(symbol, e.message) from e

        order_id = f"paper-{uuid.uuid4().hex[:12]}"
        self.logger.debug(f"Paper fill {order_id}: {side} {size} {symbol} @ ${price} ({leverage}x)")
        return OrderFill(filled_size=size, entry_price=price, order_id=order_id)
