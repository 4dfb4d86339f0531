"""
Order sizing.

Two policies:
- balance: buys spend the whole quote balance at the limit price, sells
  liquidate the whole base balance; both floored to the lot size. Below the
  configured floors the position is taken to already reflect the trade and
  nothing is submitted.
- fixed: a constant size, no balance queries.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from ..common.errors import TransportError
from ..common.interfaces import ExchangeClient
from ..common.types import OrderSide, floor_to_lot
from ..config.config import SizingConfig

logger = logging.getLogger("Lifecycle")


@dataclass(frozen=True)
class SizingDecision:
    size: float
    skip_reason: Optional[str] = None

    @property
    def should_skip(self) -> bool:
        return self.skip_reason is not None


class SizingPolicy:
    def __init__(self, config: SizingConfig, base_asset: str, quote_asset: str):
        self.config = config
        self.base_asset = base_asset
        self.quote_asset = quote_asset

    async def size_for(self, side: OrderSide, limit_price: float, exchange: ExchangeClient) -> SizingDecision:
        if self.config.policy == "fixed":
            return SizingDecision(self.config.fixed_size)

        if side.is_buy:
            quote = await self._balance(exchange, self.quote_asset)
            if quote < self.config.min_quote_balance:
                return SizingDecision(0.0, f"{self.quote_asset} balance {quote} below floor {self.config.min_quote_balance}")
            raw = quote / limit_price
        else:
            base = await self._balance(exchange, self.base_asset)
            if base < self.config.min_base_balance:
                return SizingDecision(0.0, f"{self.base_asset} balance {base} below floor {self.config.min_base_balance}")
            raw = base

        size = floor_to_lot(raw, self.config.lot_size)
        if size <= 0:
            return SizingDecision(0.0, f"size {raw} rounds to zero lots")
        return SizingDecision(size)

    async def _balance(self, exchange: ExchangeClient, asset: str) -> float:
        try:
            amount = await exchange.balance(asset)
        except TransportError as e:
            logger.warning(f"Balance query for {asset} failed, assuming 0: {e}")
            return 0.0
        return amount if amount is not None else 0.0
