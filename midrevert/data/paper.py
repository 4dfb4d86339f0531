"""
Paper exchange.

In-memory balances and resting limit orders for one symbol. Orders fill
when a marked price crosses the limit (buys at or below, sells at or
above), and marketable orders fill on submit. Prices are marked through
track(), which wraps a live feed.

Resting orders reserve what they would spend (quote for buys, base for
sells), so balance() and new submits only see the free remainder. Filled
and cancelled orders leave the book.
"""
import itertools
import math
import logging
from collections import deque
from dataclasses import dataclass
from typing import AsyncIterator, Deque, Dict, Optional

from ..common.errors import CancelRejectedError, OrderRejectedError
from ..common.interfaces import ExchangeClient, MarketDataFeed
from ..common.types import OrderAck, OrderIntent, OrderStatus, RawTick


@dataclass
class PaperOrder:
    order_id: str
    intent: OrderIntent
    status: OrderStatus = OrderStatus.RESTING
    reserved: float = 0.0


class PaperExchange(ExchangeClient):
    def __init__(self, symbol: str, base_asset: str, quote_asset: str,
                 balances: Optional[Dict[str, float]] = None):
        self._log = logging.getLogger("PaperExchange")
        self.symbol = symbol
        self.base_asset = base_asset
        self.quote_asset = quote_asset
        self.balances: Dict[str, float] = dict(balances or {})
        self.reserved: Dict[str, float] = {}
        # Resting orders only
        self.orders: Dict[str, PaperOrder] = {}
        self.fills: Deque[PaperOrder] = deque(maxlen=100)
        self.last_mark: Optional[float] = None
        self._ids = itertools.count(1)

    async def submit(self, intent: OrderIntent) -> OrderAck:
        asset, amount = self._cost(intent)
        if amount > self._free(asset):
            raise OrderRejectedError(f"Insufficient {asset}: need {amount}, free {self._free(asset)}")

        order = PaperOrder(str(next(self._ids)), intent)
        self._log.info(f"paper_submit id={order.order_id} {intent}")

        if self.last_mark is not None and self._crosses(intent, self.last_mark):
            self._fill(order, self.last_mark)
        else:
            order.reserved = amount
            self.reserved[asset] = self.reserved.get(asset, 0.0) + amount
            self.orders[order.order_id] = order
        return OrderAck(order.order_id, order.status)

    async def cancel(self, order_id: str) -> None:
        order = self.orders.pop(order_id, None)
        if order is None:
            raise CancelRejectedError(f"Order {order_id} is not open (filled or unknown)")
        self._release(order)
        self._log.info(f"paper_cancel id={order_id}")

    async def balance(self, asset: str) -> Optional[float]:
        if asset not in self.balances:
            return None
        return self._free(asset)

    def mark(self, price: float):
        """Record a market price and fill every resting order it crosses."""
        self.last_mark = price
        for order in list(self.orders.values()):
            if self._crosses(order.intent, price):
                del self.orders[order.order_id]
                self._release(order)
                self._fill(order, price)

    def track(self, feed: MarketDataFeed) -> MarketDataFeed:
        return _MarkingFeed(feed, self)

    def _cost(self, intent: OrderIntent):
        if intent.side.is_buy:
            return self.quote_asset, intent.size * intent.limit_price
        return self.base_asset, intent.size

    def _crosses(self, intent: OrderIntent, price: float) -> bool:
        if intent.side.is_buy:
            return price <= intent.limit_price
        return price >= intent.limit_price

    def _release(self, order: PaperOrder):
        asset, _ = self._cost(order.intent)
        self.reserved[asset] = self.reserved.get(asset, 0.0) - order.reserved
        if abs(self.reserved[asset]) < 1e-9:
            del self.reserved[asset]
        order.reserved = 0.0

    def _fill(self, order: PaperOrder, mark: float):
        intent = order.intent
        # Limit orders fill at their limit
        notional = intent.size * intent.limit_price
        if intent.side.is_buy:
            self.balances[self.quote_asset] = self._total(self.quote_asset) - notional
            self.balances[self.base_asset] = self._total(self.base_asset) + intent.size
        else:
            self.balances[self.base_asset] = self._total(self.base_asset) - intent.size
            self.balances[self.quote_asset] = self._total(self.quote_asset) + notional
        order.status = OrderStatus.FILLED
        self.fills.append(order)
        self._log.info(
            f"paper_fill id={order.order_id} {intent.side.value} {intent.size} @ {intent.limit_price} "
            f"mark={mark} {self.base_asset}={self.balances[self.base_asset]} "
            f"{self.quote_asset}={self.balances[self.quote_asset]}"
        )

    def _total(self, asset: str) -> float:
        return self.balances.get(asset, 0.0)

    def _free(self, asset: str) -> float:
        return self._total(asset) - self.reserved.get(asset, 0.0)


class _MarkingFeed(MarketDataFeed):
    """Passes ticks through unchanged, marking parsable prices on the paper exchange."""

    def __init__(self, inner: MarketDataFeed, exchange: PaperExchange):
        self.inner = inner
        self.exchange = exchange

    async def ticks(self) -> AsyncIterator[RawTick]:
        async for tick in self.inner.ticks():
            if tick.symbol == self.exchange.symbol:
                try:
                    price = float(tick.price_text)
                except (TypeError, ValueError):
                    price = None
                if price is not None and math.isfinite(price) and price > 0:
                    self.exchange.mark(price)
            yield tick

    async def close(self):
        await self.inner.close()
