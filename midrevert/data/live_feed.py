"""
Live Mid-Price Feed.
Ideally would use WebSockets. For now, implements polling via CCXT fetch_ticker.
"""
import asyncio
import logging
from typing import AsyncIterator, Optional

import ccxt.async_support as ccxt

from ..common.interfaces import MarketDataFeed
from ..common.types import RawTick

logger = logging.getLogger("Feed")


def mid_price(ticker: dict) -> Optional[float]:
    """Midpoint of best bid and ask, falling back to the last trade."""
    bid = ticker.get('bid')
    ask = ticker.get('ask')
    if bid and ask:
        return (bid + ask) / 2.0
    return ticker.get('last')


class CCXTMidFeed(MarketDataFeed):
    def __init__(self, symbol: str, exchange, interval_seconds: float = 1.0):
        self.symbol = symbol
        self.exchange = exchange
        self.interval = interval_seconds
        self._running = True

    async def ticks(self) -> AsyncIterator[RawTick]:
        """
        Polls the ticker every interval and yields the mid-price as text.
        Fetch errors are logged and the poll retried on the next interval.
        """
        while self._running:
            try:
                ticker = await self.exchange.fetch_ticker(self.symbol)
            except ccxt.BaseError as e:
                logger.warning(f"Ticker error {self.symbol}: {e}")
                ticker = None

            if ticker:
                mid = mid_price(ticker)
                # Pass the raw value through; the loop decides whether it parses
                yield RawTick(self.symbol, str(mid))

            await asyncio.sleep(self.interval)

    async def close(self):
        self._running = False
        await self.exchange.close()
