"""Hyperliquid info API client for source positions and mid prices"""

import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import aiohttp

from exchange_connector_base import (
    MarketDataProvider,
    PortfolioProvider,
    PositionSnapshot,
    Stale,
    SymbolNotFound,
    Unavailable,
)
from app_config import get_config
from app_logging import get_logger
from .models import CachedPrice


class HyperliquidClient(PortfolioProvider, MarketDataProvider):
    """Read-only Hyperliquid client; order placement stays with the execution collaborator"""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None,
                 logger: Optional[logging.Logger] = None):
        self.config = get_config()
        self.logger = logger or get_logger(__name__)
        self.api_url = self.config.hyperliquid.api_url
        self._session = session

        # Price cache: symbol -> CachedPrice
        self._price_cache: Dict[str, CachedPrice] = {}
        self._cache_ttl_seconds = self.config.hyperliquid.price_cache_ttl_seconds
        self._stale_after_seconds = self.config.hyperliquid.price_stale_after_seconds

    async def _post(self, payload: Dict[str, Any]) -> Any:
        """POST to the info endpoint, mapping transport failures to Unavailable"""
        session = self._session
        owns_session = session is None
        if owns_session:
            session = aiohttp.ClientSession()

        try:
            async with session.post(
                self.api_url,
                json=payload,
                timeout=aiohttp.ClientTimeout(total=self.config.hyperliquid.request_timeout_seconds)
            ) as response:
                if response.status != 200:
                    response_text = await response.text()
                    raise Unavailable(f"Hyperliquid API returned status {response.status}: {response_text}")
                return await response.json()
        except aiohttp.ClientError as e:
            self.logger.error(f"HTTP error calling Hyperliquid ({payload.get('type')}): {e}")
            raise Unavailable(f"Hyperliquid API unreachable: {e}") from e
        except asyncio.TimeoutError as e:
            self.logger.error(f"Timeout calling Hyperliquid ({payload.get('type')})")
            raise Unavailable("Hyperliquid API timed out") from e
        finally:
            if owns_session:
                await session.close()

    async def get_positions(self, wallet_address: str) -> List[PositionSnapshot]:
        """Open positions of a wallet from its clearinghouse state"""
        data = await self._post({'type': 'clearinghouseState', 'user': wallet_address})

        if not isinstance(data, dict) or not isinstance(data.get('assetPositions'), list):
            raise Unavailable("Hyperliquid clearinghouseState response must contain an assetPositions list")

        positions = []
        for item in data['assetPositions']:
            try:
                snapshot = self._parse_position(item.get('position', {}))
            except (InvalidOperation, KeyError, TypeError, ValueError) as e:
                self.logger.error(f"Malformed position for {wallet_address}: {item} ({e})")
                raise Unavailable(f"Malformed position data from Hyperliquid: {e}") from e
            if snapshot is not None:
                positions.append(snapshot)

        self.logger.info(f"Found {len(positions)} open positions for wallet {wallet_address}")
        return positions

    def _parse_position(self, position: Dict[str, Any]) -> Optional[PositionSnapshot]:
        signed_size = Decimal(str(position['szi']))
        if signed_size == 0:
            return None

        size = abs(signed_size)
        entry_price = Decimal(str(position['entryPx'])) if position.get('entryPx') is not None else None

        if position.get('positionValue') is not None:
            notional = abs(Decimal(str(position['positionValue'])))
        elif entry_price is not None:
            notional = size * entry_price
        else:
            raise ValueError(f"No notional value for {position.get('coin')}")

        leverage = Decimal('1')
        leverage_info = position.get('leverage')
        if isinstance(leverage_info, dict) and leverage_info.get('value') is not None:
            leverage = Decimal(str(leverage_info['value']))

        return PositionSnapshot(
            symbol=position['coin'],
            side='long' if signed_size > 0 else 'short',
            notional_value=notional,
            leverage=leverage,
            size=size,
            entry_price=entry_price,
        )

    async def _fetch_mids(self) -> Dict[str, Decimal]:
        data = await self._post({'type': 'allMids'})
        if not isinstance(data, dict):
            raise Unavailable("Hyperliquid allMids response must be a JSON object")

        now = datetime.now(timezone.utc)
        mids = {}
        for symbol, raw_price in data.items():
            try:
                price = Decimal(str(raw_price))
            except InvalidOperation:
                self.logger.debug(f"Ignoring non-numeric mid for {symbol}: {raw_price}")
                continue
            symbol = symbol.upper()
            mids[symbol] = price
            self._price_cache[symbol] = CachedPrice(symbol=symbol, price=price, cached_at=now)
        return mids

    def _cache_age(self, cached: CachedPrice) -> float:
        return (datetime.now(timezone.utc) - cached.cached_at).total_seconds()

    async def get_price(self, symbol: str) -> Decimal:
        prices = await self.get_prices([symbol])
        return prices[symbol.upper()]

    async def get_prices(self, symbols: List[str]) -> Dict[str, Decimal]:
        """Mid prices for several symbols with a single allMids request when the cache is cold"""
        symbols = [s.upper() for s in symbols]
        prices = {}
        symbols_to_fetch = []

        for symbol in symbols:
            cached = self._price_cache.get(symbol)
            if cached and self._cache_age(cached) <= self._cache_ttl_seconds:
                prices[symbol] = cached.price
                self.logger.debug(f"Using cached price for {symbol} (age: {self._cache_age(cached):.1f}s)")
            else:
                symbols_to_fetch.append(symbol)

        if not symbols_to_fetch:
            return prices

        try:
            mids = await self._fetch_mids()
        except Unavailable:
            # Fall back to cached prices while they are not yet stale
            for symbol in symbols_to_fetch:
                cached = self._price_cache.get(symbol)
                if cached is None:
                    raise
                age = self._cache_age(cached)
                if age > self._stale_after_seconds:
                    raise Stale(symbol, age)
                self.logger.warning(f"Price refresh failed; using {age:.1f}s old price for {symbol}")
                prices[symbol] = cached.price
            return prices

        missing = [s for s in symbols_to_fetch if s not in mids]
        if missing:
            self.logger.error(f"No mid price for symbols: {missing}")
            raise SymbolNotFound(missing[0])

        for symbol in symbols_to_fetch:
            prices[symbol] = mids[symbol]

        self.logger.info(f"Retrieved prices: {', '.join(f'{s} -> ${prices[s]}' for s in symbols_to_fetch)}")
        return prices
