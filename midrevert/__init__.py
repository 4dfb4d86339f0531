"""
midrevert - mean reversion trading engine

Watches a single pair's mid-price, compares every tick against a rolling
average and trades the stretch back toward the mean with limit orders.

Modules:
- common: Shared types, errors and the exchange/feed interfaces
- config: YAML configuration with validation
- engine: Rolling window, signal bands, sizing, order lifecycle, journal
- runner: Price feed loop (ingestion, dedup, one lifecycle at a time)
- data: CCXT exchange client, polling mid-price feed, paper exchange
- dashboard: Rich terminal monitor

Key principles:
- One order lifecycle in flight at a time
- Never the same trade twice in a row
- Explicit state transitions, every decision journaled
"""

__version__ = "1.0.0"

from .config.config import EngineConfig, DEFAULT_CONFIG, load_config
from .common.types import TradeAction, OrderSide, OrderIntent, OrderAck, RawTick
from .engine.rolling import RollingAverage
from .engine.signals import SignalEvaluator
from .engine.state import DecisionState, LifecycleState
from .engine.lifecycle import OrderLifecycleController, LifecycleOutcome, OutcomeKind
from .runner.runner import PriceFeedLoop

__all__ = [
    # Config
    'EngineConfig',
    'DEFAULT_CONFIG',
    'load_config',

    # Types
    'TradeAction',
    'OrderSide',
    'OrderIntent',
    'OrderAck',
    'RawTick',

    # Engine
    'RollingAverage',
    'SignalEvaluator',
    'DecisionState',
    'LifecycleState',
    'OrderLifecycleController',
    'LifecycleOutcome',
    'OutcomeKind',

    # Runner
    'PriceFeedLoop',
]
