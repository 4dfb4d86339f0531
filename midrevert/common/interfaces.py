"""
Abstract interfaces for the exchange connectivity layer.
"""
from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

from .types import RawTick, OrderIntent, OrderAck


class MarketDataFeed(ABC):
    """
    Abstract base class for a mid-price feed.

    Yields raw (symbol, price_text) messages. The stream is lazy and cannot
    be restarted; iteration ends when the feed closes.
    """

    @abstractmethod
    def ticks(self) -> AsyncIterator[RawTick]:
        """
        Async iterator over incoming ticks.
        """
        pass

    @abstractmethod
    async def close(self):
        """
        Close connections or file handles.
        """
        pass


class ExchangeClient(ABC):
    """
    Order entry and account queries for a single trading pair.
    """

    @abstractmethod
    async def submit(self, intent: OrderIntent) -> OrderAck:
        """
        Place a limit order.

        Raises TransportError, EmptyStatusError or OrderRejectedError when no
        order was placed.
        """
        pass

    @abstractmethod
    async def cancel(self, order_id: str) -> None:
        """
        Cancel an open order.

        Raises CancelRejectedError if the exchange refused (usually: already
        filled) or TransportError on network failure.
        """
        pass

    @abstractmethod
    async def balance(self, asset: str) -> Optional[float]:
        """
        Available quantity of an asset, or None if the account holds none.
        """
        pass

    async def close(self):
        pass
