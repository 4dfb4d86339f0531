"""
Mean reversion signal.

Maps a new price and the rolling average into BUY / SELL / HOLD using
fixed multiplicative bands around the average.
"""
from ..common.types import TradeAction, round_price
from ..config.config import SignalConfig


class SignalEvaluator:
    def __init__(self, upper: float = 1.015, lower: float = 0.99, price_decimals: int = 5):
        if not lower < 1.0 < upper:
            raise ValueError(f"bands must satisfy lower < 1 < upper, got {lower}/{upper}")
        self.upper = upper
        self.lower = lower
        self.price_decimals = price_decimals

    @classmethod
    def from_config(cls, config: SignalConfig) -> "SignalEvaluator":
        return cls(config.upper, config.lower, config.price_decimals)

    def evaluate(self, new_price: float, average: float) -> TradeAction:
        # Price stretched above the mean -> expect reversion down
        if new_price > average * self.upper:
            return TradeAction.SELL
        if new_price < average * self.lower:
            return TradeAction.BUY
        return TradeAction.HOLD

    def limit_price(self, price: float) -> float:
        """Round a price for use as an order limit (never applied to window input)."""
        return round_price(price, self.price_decimals)

    def __repr__(self):
        return f"SignalEvaluator(lower={self.lower}, upper={self.upper})"
