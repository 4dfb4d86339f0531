"""
Rolling price window.

Fixed-capacity sliding window over recent prices with a running sum, so the
mean is O(1) per tick.
"""
from collections import deque
from typing import Deque, Tuple


class RollingAverage:
    """
    Arithmetic mean of the last `capacity` prices.

    The running sum is maintained incrementally: on eviction the oldest
    price is subtracted before the new price is added.
    """

    def __init__(self, capacity: int):
        if not isinstance(capacity, int) or capacity <= 0:
            raise ValueError(f"capacity must be a positive int, got {capacity!r}")
        self.capacity = capacity
        self._prices: Deque[float] = deque()
        self._sum = 0.0

    def push(self, price: float) -> float:
        """Add a price, evicting the oldest at capacity, and return the new average."""
        if len(self._prices) == self.capacity:
            oldest = self._prices.popleft()
            self._sum -= oldest

        self._prices.append(price)
        self._sum += price
        return self.average

    @property
    def average(self) -> float:
        if not self._prices:
            raise ValueError("average of an empty window")
        return self._sum / len(self._prices)

    @property
    def sum(self) -> float:
        return self._sum

    @property
    def prices(self) -> Tuple[float, ...]:
        return tuple(self._prices)

    @property
    def is_full(self) -> bool:
        return len(self._prices) == self.capacity

    def __len__(self) -> int:
        return len(self._prices)

    def __repr__(self):
        return f"RollingAverage({len(self._prices)}/{self.capacity}, sum={self._sum:.5f})"
