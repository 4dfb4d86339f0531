"""
Common types and utilities for the midrevert engine.
"""
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

# --- Math Utilities ---

def round_price(price: float, decimals: int = 5) -> float:
    """Round a limit price to the venue's price precision (5 decimals by default)."""
    return round(price, decimals)

def floor_to_lot(size: float, lot_size: float = 1.0) -> float:
    """Round an order size down to a whole number of lots."""
    if lot_size <= 0:
        raise ValueError(f"lot_size must be > 0, got {lot_size}")
    lots = math.floor(size / lot_size)
    return round(lots * lot_size, 12)

def format_price(price: float) -> str:
    """Format price with dynamic precision up to 8 decimals."""
    return f"{price:.8f}".rstrip('0').rstrip('.')


# --- Enums ---

class TradeAction(Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"

    @property
    def is_trade(self) -> bool:
        return self is not TradeAction.HOLD

    def to_side(self) -> "OrderSide":
        if self is TradeAction.BUY:
            return OrderSide.BUY
        if self is TradeAction.SELL:
            return OrderSide.SELL
        raise ValueError("HOLD has no order side")

class OrderSide(Enum):
    BUY = "BUY"
    SELL = "SELL"

    @property
    def is_buy(self) -> bool:
        return self is OrderSide.BUY

class OrderStatus(Enum):
    RESTING = "resting"
    FILLED = "filled"


# --- Core Data Structures ---

@dataclass(frozen=True)
class RawTick:
    """
    A single feed message: the pair symbol and its mid-price as text.
    """
    symbol: str
    price_text: str

@dataclass(frozen=True)
class OrderIntent:
    side: OrderSide
    limit_price: float
    size: float
    time_in_force: str = "GTC"

    def __post_init__(self):
        if not self.limit_price > 0:
            raise ValueError(f"limit_price must be > 0, got {self.limit_price}")
        if not self.size > 0:
            raise ValueError(f"size must be > 0, got {self.size}")

    def __repr__(self):
        return f"OrderIntent({self.side.value} {self.size} @ {format_price(self.limit_price)} {self.time_in_force})"

@dataclass(frozen=True)
class OrderAck:
    """
    Exchange acknowledgement of an accepted order.
    """
    order_id: str
    status: OrderStatus = OrderStatus.RESTING

@dataclass(frozen=True)
class OpenOrderHandle:
    order_id: str
    intent: Optional[OrderIntent] = None
