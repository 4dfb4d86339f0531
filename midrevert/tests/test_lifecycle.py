"""
Test the order lifecycle: place, wait, cancel, reprice.
"""
import pytest
from unittest.mock import MagicMock, AsyncMock

from midrevert.common.errors import (
    CancelRejectedError, OrderRejectedError, TransportError
)
from midrevert.common.types import OrderAck, OrderSide, OrderStatus, TradeAction
from midrevert.config.config import LifecycleConfig, SizingConfig
from midrevert.engine.lifecycle import OrderLifecycleController, OutcomeKind
from midrevert.engine.logger import DecisionJournal
from midrevert.engine.sizing import SizingPolicy
from midrevert.engine.state import DecisionState, LifecycleState
from midrevert.engine.timers import InstantGraceTimer


def make_exchange(balance=1000.0, acks=None):
    exchange = MagicMock()
    exchange.submit = AsyncMock(side_effect=acks or [OrderAck("42"), OrderAck("43")])
    exchange.cancel = AsyncMock(return_value=None)
    exchange.balance = AsyncMock(return_value=balance)
    return exchange


def make_controller(exchange, sizing=None, lifecycle=None):
    controller = OrderLifecycleController(
        exchange,
        DecisionState(),
        SizingPolicy(sizing or SizingConfig(), "PURR", "USDC"),
        lifecycle or LifecycleConfig(),
        timer=InstantGraceTimer(),
        journal=DecisionJournal(None),
    )
    return controller


@pytest.mark.asyncio
async def test_buy_cancelled_open_order_is_repriced():
    exchange = make_exchange()
    controller = make_controller(exchange)

    outcome = await controller.handle(TradeAction.BUY, 10.123456)

    limit = 10.12346
    assert outcome.kind == OutcomeKind.REPRICED
    assert outcome.order_id == "42"
    assert outcome.reprice_order_id == "43"
    assert exchange.submit.await_count == 2
    exchange.cancel.assert_awaited_once_with("42")

    first = exchange.submit.await_args_list[0].args[0]
    retry = exchange.submit.await_args_list[1].args[0]
    assert first.side == OrderSide.BUY
    assert first.limit_price == limit
    assert first.size == 98.0  # floor(1000 / 10.12346)
    assert retry.side == OrderSide.BUY
    assert retry.limit_price == round(limit * 1.01, 5)

    assert controller.decision_state.last_executed_action == TradeAction.BUY
    assert controller.state == LifecycleState.IDLE
    assert controller.timer.waits == [30.0]


@pytest.mark.asyncio
async def test_sell_refused_cancel_is_filled():
    exchange = make_exchange(acks=[OrderAck("7")])
    exchange.cancel.side_effect = CancelRejectedError("order already filled")
    controller = make_controller(exchange)

    outcome = await controller.handle(TradeAction.SELL, 2.5)

    assert outcome.kind == OutcomeKind.FILLED
    assert outcome.order_id == "7"
    assert exchange.submit.await_count == 1
    intent = exchange.submit.await_args.args[0]
    assert intent.side == OrderSide.SELL
    assert intent.size == 1000.0
    assert controller.decision_state.last_executed_action == TradeAction.SELL


@pytest.mark.asyncio
async def test_sell_reprice_is_lower():
    exchange = make_exchange()
    controller = make_controller(exchange)

    await controller.handle(TradeAction.SELL, 2.0)

    retry = exchange.submit.await_args_list[1].args[0]
    assert retry.limit_price == round(2.0 * 0.99, 5)


@pytest.mark.asyncio
async def test_state_path_for_repriced_lifecycle():
    controller = make_controller(make_exchange())
    await controller.handle(TradeAction.BUY, 1.0)

    assert controller.machine.path() == [
        LifecycleState.IDLE,
        LifecycleState.PLACING,
        LifecycleState.RESTING,
        LifecycleState.CANCELLING,
        LifecycleState.REPRICING,
        LifecycleState.IDLE,
    ]


@pytest.mark.asyncio
async def test_state_path_for_filled_lifecycle():
    exchange = make_exchange()
    exchange.cancel.side_effect = CancelRejectedError("filled")
    controller = make_controller(exchange)
    await controller.handle(TradeAction.SELL, 1.0)

    assert controller.machine.path() == [
        LifecycleState.IDLE,
        LifecycleState.PLACING,
        LifecycleState.RESTING,
        LifecycleState.CANCELLING,
        LifecycleState.FILLED,
        LifecycleState.IDLE,
    ]


@pytest.mark.asyncio
async def test_quote_balance_below_floor_short_circuits():
    exchange = make_exchange(balance=50.0)
    controller = make_controller(exchange)

    outcome = await controller.handle(TradeAction.BUY, 1.0)

    assert outcome.kind == OutcomeKind.SKIPPED
    exchange.submit.assert_not_awaited()
    exchange.cancel.assert_not_awaited()
    # Still recorded, so the same BUY is not retried
    assert controller.decision_state.last_executed_action == TradeAction.BUY
    assert controller.machine.path() == [LifecycleState.IDLE, LifecycleState.PLACING, LifecycleState.IDLE]


@pytest.mark.asyncio
async def test_missing_base_balance_short_circuits_sell():
    exchange = make_exchange(balance=None)
    controller = make_controller(exchange)

    outcome = await controller.handle(TradeAction.SELL, 1.0)

    assert outcome.kind == OutcomeKind.SKIPPED
    exchange.balance.assert_awaited_once_with("PURR")
    exchange.submit.assert_not_awaited()


@pytest.mark.asyncio
async def test_placement_failure_records_action():
    exchange = make_exchange()
    exchange.submit.side_effect = OrderRejectedError("post only would cross")
    controller = make_controller(exchange)

    outcome = await controller.handle(TradeAction.BUY, 1.0)

    assert outcome.kind == OutcomeKind.PLACEMENT_FAILED
    assert "post only" in outcome.reason
    exchange.cancel.assert_not_awaited()
    assert controller.decision_state.last_executed_action == TradeAction.BUY
    assert controller.state == LifecycleState.IDLE


@pytest.mark.asyncio
async def test_cancel_transport_error_read_as_fill_by_default():
    exchange = make_exchange()
    exchange.cancel.side_effect = TransportError("timeout")
    controller = make_controller(exchange)

    outcome = await controller.handle(TradeAction.BUY, 1.0)

    assert outcome.kind == OutcomeKind.FILLED
    assert exchange.submit.await_count == 1


@pytest.mark.asyncio
async def test_cancel_transport_error_kept_distinct():
    exchange = make_exchange()
    exchange.cancel.side_effect = TransportError("timeout")
    controller = make_controller(exchange, lifecycle=LifecycleConfig(cancel_transport_error_is_fill=False))

    outcome = await controller.handle(TradeAction.BUY, 1.0)

    assert outcome.kind == OutcomeKind.CANCEL_FAILED
    assert exchange.submit.await_count == 1
    assert controller.state == LifecycleState.IDLE
    assert controller.decision_state.last_executed_action == TradeAction.BUY
    assert any(line.startswith("CANCEL_FAILED") for line in controller.journal.recent)


@pytest.mark.asyncio
async def test_failed_reprice_is_only_journaled():
    exchange = make_exchange(acks=[OrderAck("42"), TransportError("connection reset")])
    controller = make_controller(exchange)

    outcome = await controller.handle(TradeAction.BUY, 1.0)

    assert outcome.kind == OutcomeKind.REPRICED
    assert outcome.reprice_order_id is None
    assert not outcome.reprice.placed
    assert any(line.startswith("REPRICE_NOT_PLACED") for line in controller.journal.recent)


@pytest.mark.asyncio
async def test_immediately_filled_ack_still_cancels():
    exchange = make_exchange(acks=[OrderAck("9", OrderStatus.FILLED)])
    exchange.cancel.side_effect = CancelRejectedError("filled")
    controller = make_controller(exchange)

    outcome = await controller.handle(TradeAction.BUY, 1.0)

    exchange.cancel.assert_awaited_once_with("9")
    assert outcome.kind == OutcomeKind.FILLED


@pytest.mark.asyncio
async def test_fixed_sizing_skips_balance_queries():
    exchange = make_exchange()
    controller = make_controller(exchange, sizing=SizingConfig(policy="fixed", fixed_size=5.0))

    await controller.handle(TradeAction.BUY, 1.0)

    exchange.balance.assert_not_awaited()
    assert exchange.submit.await_args_list[0].args[0].size == 5.0


@pytest.mark.asyncio
async def test_unexpected_error_resets_to_idle():
    exchange = make_exchange()
    exchange.cancel.side_effect = RuntimeError("boom")
    controller = make_controller(exchange)

    with pytest.raises(RuntimeError):
        await controller.handle(TradeAction.BUY, 1.0)

    assert controller.state == LifecycleState.IDLE
    assert controller.decision_state.last_executed_action == TradeAction.HOLD


@pytest.mark.asyncio
async def test_hold_is_not_handled():
    controller = make_controller(make_exchange())
    with pytest.raises(ValueError):
        await controller.handle(TradeAction.HOLD, 1.0)


@pytest.mark.asyncio
async def test_sizing_floors_to_lot():
    policy = SizingPolicy(SizingConfig(lot_size=10.0), "PURR", "USDC")
    exchange = make_exchange(balance=1000.0)

    decision = await policy.size_for(OrderSide.BUY, 3.0, exchange)

    assert decision.size == 330.0  # 333.33 floored to lots of 10
    assert not decision.should_skip


@pytest.mark.asyncio
async def test_sizing_balance_transport_error_skips():
    policy = SizingPolicy(SizingConfig(), "PURR", "USDC")
    exchange = make_exchange()
    exchange.balance.side_effect = TransportError("down")

    decision = await policy.size_for(OrderSide.SELL, 1.0, exchange)

    assert decision.should_skip


@pytest.mark.asyncio
async def test_reset_is_journaled():
    exchange = make_exchange()
    exchange.cancel.side_effect = RuntimeError("boom")
    controller = make_controller(exchange)

    with pytest.raises(RuntimeError):
        await controller.handle(TradeAction.BUY, 1.0)

    assert controller.journal.recent[-1].startswith("RESET [IDLE]")
    last = controller.machine.last_transition
    assert last.from_state == LifecycleState.CANCELLING
    assert last.reason == "unexpected_error"
