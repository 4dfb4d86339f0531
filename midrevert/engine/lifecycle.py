"""
Order lifecycle controller.

Handles one trading opportunity end to end:

    IDLE -> PLACING -> RESTING -> CANCELLING -> FILLED -> IDLE
                                             -> REPRICING -> IDLE
            PLACING -> IDLE  (nothing placed: short-circuit or failure)

A cancel that the exchange refuses means the order already filled. A
cancel that succeeds means it was still open, so the same side is
resubmitted once at a worse price to force a fill. That second order is
not checked again; its outcome is only journaled.

Whatever the path, the handled action ends up as the last executed action
so the same trade is not attempted twice in a row.
"""
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

from ..common.errors import (
    CancelRejectedError, EmptyStatusError, OrderRejectedError, TransportError
)
from ..common.interfaces import ExchangeClient
from ..common.types import (
    OpenOrderHandle, OrderAck, OrderIntent, OrderSide, TradeAction, round_price
)
from ..config.config import EngineConfig, LifecycleConfig
from .logger import DecisionJournal
from .sizing import SizingPolicy
from .state import DecisionState, LifecycleState, LifecycleStateMachine
from .timers import AsyncioGraceTimer, GraceTimer


class OutcomeKind(Enum):
    SKIPPED = auto()           # sizing short-circuit, nothing submitted
    PLACEMENT_FAILED = auto()  # submit raised, nothing placed
    FILLED = auto()            # cancel refused
    REPRICED = auto()          # cancel succeeded, resubmitted
    CANCEL_FAILED = auto()     # cancel transport error, when not read as a fill


@dataclass
class PlacementResult:
    intent: Optional[OrderIntent] = None
    ack: Optional[OrderAck] = None
    skip_reason: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def placed(self) -> bool:
        return self.ack is not None


@dataclass
class LifecycleOutcome:
    action: TradeAction
    kind: OutcomeKind
    intent: Optional[OrderIntent] = None
    order_id: Optional[str] = None
    reason: Optional[str] = None
    reprice: Optional[PlacementResult] = None

    @property
    def reprice_order_id(self) -> Optional[str]:
        if self.reprice and self.reprice.ack:
            return self.reprice.ack.order_id
        return None


class OrderLifecycleController:
    def __init__(self, exchange: ExchangeClient, decision_state: DecisionState,
                 sizing: SizingPolicy, config: LifecycleConfig = None,
                 timer: GraceTimer = None, journal: DecisionJournal = None,
                 price_decimals: int = 5):
        self.exchange = exchange
        self.decision_state = decision_state
        self.sizing = sizing
        self.config = config or LifecycleConfig()
        self.timer = timer or AsyncioGraceTimer()
        self.journal = journal or DecisionJournal(None)
        self.price_decimals = price_decimals
        self.machine = LifecycleStateMachine()

    @classmethod
    def from_config(cls, config: EngineConfig, exchange: ExchangeClient,
                    decision_state: DecisionState, timer: GraceTimer = None,
                    journal: DecisionJournal = None) -> "OrderLifecycleController":
        sizing = SizingPolicy(config.sizing, config.base_asset, config.quote_asset)
        return cls(exchange, decision_state, sizing, config.lifecycle,
                   timer=timer, journal=journal,
                   price_decimals=config.signal.price_decimals)

    @property
    def state(self) -> LifecycleState:
        return self.machine.state

    async def handle(self, action: TradeAction, price: float) -> LifecycleOutcome:
        """
        Run the full lifecycle for a BUY or SELL at the given price.
        Returns once the opportunity is resolved and the action recorded.
        """
        if not action.is_trade:
            raise ValueError("OrderLifecycleController only handles BUY or SELL")
        if self.machine.state != LifecycleState.IDLE:
            raise RuntimeError(f"Lifecycle already in progress ({self.machine.state.name})")

        try:
            outcome = await self._run(action, price)
        except Exception:
            self._reset("unexpected_error")
            raise

        self.decision_state.record(action)
        self.journal.log_event("ACTION_RECORDED", action=action, outcome=outcome.kind,
                               order_id=outcome.order_id)
        return outcome

    async def _run(self, action: TradeAction, price: float) -> LifecycleOutcome:
        side = action.to_side()
        limit_price = round_price(price, self.price_decimals)

        # 1. Place
        self._move(LifecycleState.PLACING, "signal", action=action, price=price)
        placement = await self._place(side, limit_price)

        if not placement.placed:
            kind = OutcomeKind.SKIPPED if placement.skip_reason else OutcomeKind.PLACEMENT_FAILED
            reason = placement.skip_reason or str(placement.error)
            self._move(LifecycleState.IDLE, "nothing_placed", action=action, detail=reason)
            return LifecycleOutcome(action, kind, intent=placement.intent, reason=reason)

        handle = OpenOrderHandle(placement.ack.order_id, placement.intent)
        self._move(LifecycleState.RESTING, "order_placed", action=action, order_id=handle.order_id)

        # 2. Wait out the grace period
        await self.timer.wait(self.config.grace_seconds)

        # 3. Cancel, and read the result as open vs filled
        self._move(LifecycleState.CANCELLING, "grace_elapsed", action=action, order_id=handle.order_id)
        try:
            await self.exchange.cancel(handle.order_id)
        except CancelRejectedError as e:
            return self._filled(action, handle, f"cancel refused: {e}")
        except TransportError as e:
            if self.config.cancel_transport_error_is_fill:
                return self._filled(action, handle, f"cancel transport error: {e}")
            self.journal.log_event("CANCEL_FAILED", logging.ERROR, action=action,
                                   order_id=handle.order_id, error=e)
            self._move(LifecycleState.IDLE, "cancel_transport_error", action=action)
            return LifecycleOutcome(action, OutcomeKind.CANCEL_FAILED, intent=handle.intent,
                                    order_id=handle.order_id, reason=str(e))

        # 4. Still open: resubmit at a worse price
        self._move(LifecycleState.REPRICING, "cancelled_open_order", action=action, order_id=handle.order_id)
        reprice_price = self.reprice_price(side, limit_price)
        retry = await self._place(side, reprice_price)
        self.journal.log_event(
            "REPRICE_SUBMITTED" if retry.placed else "REPRICE_NOT_PLACED",
            logging.INFO if retry.placed else logging.WARNING,
            action=action,
            limit_price=reprice_price,
            order_id=retry.ack.order_id if retry.placed else None,
            reason=retry.skip_reason,
            error=retry.error,
        )
        self._move(LifecycleState.IDLE, "repriced", action=action)
        return LifecycleOutcome(action, OutcomeKind.REPRICED, intent=handle.intent,
                                order_id=handle.order_id, reprice=retry)

    def reprice_price(self, side: OrderSide, limit_price: float) -> float:
        slip = self.config.reprice_slippage
        factor = 1.0 + slip if side.is_buy else 1.0 - slip
        return round_price(limit_price * factor, self.price_decimals)

    async def _place(self, side: OrderSide, limit_price: float) -> PlacementResult:
        sizing = await self.sizing.size_for(side, limit_price, self.exchange)
        if sizing.should_skip:
            self.journal.log_event("PLACEMENT_SKIPPED", side=side, limit_price=limit_price,
                                   reason=sizing.skip_reason)
            return PlacementResult(skip_reason=sizing.skip_reason)

        intent = OrderIntent(side, limit_price, sizing.size)
        try:
            ack = await self.exchange.submit(intent)
        except (TransportError, EmptyStatusError, OrderRejectedError) as e:
            self.journal.log_event("PLACEMENT_FAILED", logging.WARNING, side=side,
                                   limit_price=limit_price, size=intent.size, error=e)
            return PlacementResult(intent=intent, error=e)

        self.journal.log_event("ORDER_PLACED", side=side, limit_price=limit_price,
                               size=intent.size, order_id=ack.order_id, status=ack.status.value)
        return PlacementResult(intent=intent, ack=ack)

    def _filled(self, action: TradeAction, handle: OpenOrderHandle, reason: str) -> LifecycleOutcome:
        self._move(LifecycleState.FILLED, reason, action=action, order_id=handle.order_id)
        self._move(LifecycleState.IDLE, "filled", action=action)
        return LifecycleOutcome(action, OutcomeKind.FILLED, intent=handle.intent,
                                order_id=handle.order_id, reason=reason)

    def _move(self, new_state: LifecycleState, reason: str, **fields):
        t = self.machine.transition(new_state, reason)
        self.journal.log_event("TRANSITION", state=t.to_state, from_state=t.from_state,
                               reason=reason, **fields)

    def _reset(self, reason: str):
        if self.machine.state != LifecycleState.IDLE:
            t = self.machine.reset(reason)
            self.journal.log_event("RESET", logging.ERROR, state=t.to_state,
                                   from_state=t.from_state, reason=reason)
