"""
Price feed loop.

Single consumer of the mid-price feed. Every tick for the traded symbol
goes through the rolling window and the signal evaluator; a fresh BUY or
SELL runs the whole order lifecycle before the next tick is looked at.

Ingestion and decisions run as two asyncio tasks joined by a queue, so the
tick policy decides what happens to ticks that arrive mid-lifecycle:
"drop" discards them, "buffer" keeps them queued for afterwards.
"""
import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Dict, Optional

from ..common.errors import FeedParseError
from ..common.interfaces import ExchangeClient, MarketDataFeed
from ..common.types import RawTick, TradeAction
from ..config.config import EngineConfig
from ..engine.lifecycle import LifecycleOutcome, OrderLifecycleController
from ..engine.logger import DecisionJournal
from ..engine.rolling import RollingAverage
from ..engine.signals import SignalEvaluator
from ..engine.state import DecisionState
from ..engine.timers import GraceTimer

logger = logging.getLogger("Runner")

_FEED_CLOSED = object()


def parse_price(price_text) -> float:
    try:
        price = float(price_text)
    except (TypeError, ValueError):
        raise FeedParseError(price_text)
    if not math.isfinite(price):
        raise FeedParseError(price_text, "not finite")
    if price <= 0:
        raise FeedParseError(price_text, "not positive")
    return price


@dataclass
class LoopStats:
    ticks_seen: int = 0
    ticks_processed: int = 0
    ticks_ignored: int = 0
    ticks_malformed: int = 0
    ticks_dropped: int = 0
    signals: int = 0
    duplicates_suppressed: int = 0
    lifecycles: int = 0
    errors: int = 0
    last_price: Optional[float] = None
    last_average: Optional[float] = None
    last_signal: TradeAction = TradeAction.HOLD


class PriceFeedLoop:
    def __init__(self, symbol: str, window: RollingAverage, evaluator: SignalEvaluator,
                 decision_state: DecisionState, controller: OrderLifecycleController,
                 tick_policy: str = "drop", buffer_limit: int = 0,
                 journal: DecisionJournal = None):
        if tick_policy not in ("drop", "buffer"):
            raise ValueError(f"Unknown tick policy: {tick_policy}")
        self.symbol = symbol
        self.window = window
        self.evaluator = evaluator
        self.decision_state = decision_state
        self.controller = controller
        self.tick_policy = tick_policy
        self.buffer_limit = buffer_limit
        self.journal = journal or controller.journal
        self.stats = LoopStats()
        self.running = False
        # One lifecycle at a time
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: EngineConfig, exchange: ExchangeClient,
                    timer: GraceTimer = None, journal: DecisionJournal = None) -> "PriceFeedLoop":
        decision_state = DecisionState()
        controller = OrderLifecycleController.from_config(config, exchange, decision_state,
                                                          timer=timer, journal=journal)
        return cls(
            config.symbol,
            RollingAverage(config.signal.window_capacity),
            SignalEvaluator.from_config(config.signal),
            decision_state,
            controller,
            tick_policy=config.feed.tick_policy,
            buffer_limit=config.feed.buffer_limit,
            journal=journal,
        )

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def run(self, feed: MarketDataFeed) -> LoopStats:
        """
        Consume the feed until it closes.
        """
        self.running = True
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.buffer_limit if self.tick_policy == "buffer" else 0)
        ingest = asyncio.create_task(self._ingest(feed, queue))
        logger.info(f"Feed loop started for {self.symbol} (ticks: {self.tick_policy})")

        try:
            while True:
                tick = await queue.get()
                if tick is _FEED_CLOSED:
                    break
                await self.process_tick(tick)
        finally:
            self.running = False
            if not ingest.done():
                ingest.cancel()
                await asyncio.gather(ingest, return_exceptions=True)

        logger.info(f"Feed closed after {self.stats.ticks_seen} ticks, {self.stats.lifecycles} lifecycles")
        return self.stats

    async def _ingest(self, feed: MarketDataFeed, queue: asyncio.Queue):
        try:
            async for tick in feed.ticks():
                self.stats.ticks_seen += 1
                if self.busy and self.tick_policy == "drop":
                    self.stats.ticks_dropped += 1
                    continue
                await queue.put(tick)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Feed error, stopping ingestion: {e}")
        await queue.put(_FEED_CLOSED)

    async def process_tick(self, tick: RawTick) -> Optional[LifecycleOutcome]:
        if tick.symbol != self.symbol:
            self.stats.ticks_ignored += 1
            return None

        try:
            price = parse_price(tick.price_text)
        except FeedParseError as e:
            self.stats.ticks_malformed += 1
            self.journal.log_event("TICK_MALFORMED", logging.WARNING,
                                   price_text=str(e.price_text), reason=e.reason)
            return None

        return await self.on_price(price)

    async def on_price(self, price: float) -> Optional[LifecycleOutcome]:
        self.stats.ticks_processed += 1
        average = self.window.push(price)
        decision = self.evaluator.evaluate(price, average)

        self.stats.last_price = price
        self.stats.last_average = average
        self.stats.last_signal = decision
        logger.debug(f"Price {price} avg {average:.6f} -> {decision.value}")

        if not decision.is_trade:
            return None
        if self.decision_state.is_duplicate(decision):
            self.stats.duplicates_suppressed += 1
            return None

        self.stats.signals += 1
        self.journal.log_event("SIGNAL", action=decision, price=price, average=average)

        async with self._lock:
            try:
                outcome = await self.controller.handle(decision, price)
            except Exception as e:
                self.stats.errors += 1
                logger.exception(f"Lifecycle for {decision.value} failed: {e}")
                self.decision_state.record(decision)
                return None

        self.stats.lifecycles += 1
        return outcome

    def get_stats(self) -> Dict:
        s = self.stats
        return {
            "symbol": self.symbol,
            "price": s.last_price,
            "average": s.last_average,
            "window": f"{len(self.window)}/{self.window.capacity}",
            "signal": s.last_signal.value,
            "last_action": self.decision_state.last_executed_action.value,
            "state": self.controller.state.name,
            "ticks": s.ticks_seen,
            "malformed": s.ticks_malformed,
            "dropped": s.ticks_dropped,
            "lifecycles": s.lifecycles,
            "errors": s.errors,
        }
