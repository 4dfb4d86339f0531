"""
Decision and order lifecycle state.

DecisionState remembers the last action that was acted upon, which is what
suppresses repeated same-direction trades. LifecycleStateMachine tracks one
trading opportunity through placement, grace period and cancel/reprice,
with explicit transition rules and a transition log.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Dict, FrozenSet, List, Optional

from ..common.errors import InvalidTransitionError
from ..common.types import TradeAction


class LifecycleState(Enum):
    """
    IDLE: No order in flight
    PLACING: Sizing and submitting the initial order
    RESTING: Order accepted, grace period running
    CANCELLING: Grace period over, cancel requested
    FILLED: Cancel refused, order treated as filled
    REPRICING: Cancel succeeded, resubmitting at a worse price
    """
    IDLE = auto()
    PLACING = auto()
    RESTING = auto()
    CANCELLING = auto()
    FILLED = auto()
    REPRICING = auto()


ALLOWED_TRANSITIONS: Dict[LifecycleState, FrozenSet[LifecycleState]] = {
    LifecycleState.IDLE: frozenset({LifecycleState.PLACING}),
    LifecycleState.PLACING: frozenset({LifecycleState.RESTING, LifecycleState.IDLE}),
    LifecycleState.RESTING: frozenset({LifecycleState.CANCELLING}),
    # IDLE from CANCELLING only when cancel transport errors are not read as fills
    LifecycleState.CANCELLING: frozenset({LifecycleState.FILLED, LifecycleState.REPRICING, LifecycleState.IDLE}),
    LifecycleState.FILLED: frozenset({LifecycleState.IDLE}),
    LifecycleState.REPRICING: frozenset({LifecycleState.IDLE}),
}


@dataclass
class DecisionState:
    last_executed_action: TradeAction = TradeAction.HOLD
    last_executed_time: Optional[datetime] = None

    def is_duplicate(self, action: TradeAction) -> bool:
        return action == self.last_executed_action

    def record(self, action: TradeAction, when: Optional[datetime] = None):
        if not action.is_trade:
            raise ValueError("HOLD is never recorded as executed")
        self.last_executed_action = action
        self.last_executed_time = when or datetime.now(timezone.utc)


@dataclass(frozen=True)
class Transition:
    from_state: LifecycleState
    to_state: LifecycleState
    reason: str
    time: datetime


@dataclass
class LifecycleStateMachine:
    state: LifecycleState = LifecycleState.IDLE
    history: List[Transition] = field(default_factory=list)
    max_history: int = 200

    def transition(self, new_state: LifecycleState, reason: str) -> Transition:
        """Execute a state transition, rejecting moves the lifecycle does not allow."""
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransitionError(f"{self.state.name} -> {new_state.name} ({reason})")

        t = Transition(self.state, new_state, reason, datetime.now(timezone.utc))
        self.state = new_state
        self._append(t)
        return t

    def reset(self, reason: str) -> Transition:
        """Force the machine back to IDLE after an aborted lifecycle."""
        t = Transition(self.state, LifecycleState.IDLE, reason, datetime.now(timezone.utc))
        self.state = LifecycleState.IDLE
        self._append(t)
        return t

    def _append(self, t: Transition):
        self.history.append(t)
        if len(self.history) > self.max_history:
            del self.history[0]

    @property
    def last_transition(self) -> Optional[Transition]:
        return self.history[-1] if self.history else None

    def path(self) -> List[LifecycleState]:
        """States visited, starting from the first recorded origin."""
        if not self.history:
            return [self.state]
        return [self.history[0].from_state] + [t.to_state for t in self.history]
