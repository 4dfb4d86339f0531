"""
Test the paper exchange and its marking feed.
"""
import asyncio
import pytest

from midrevert.common.errors import CancelRejectedError, OrderRejectedError
from midrevert.common.interfaces import MarketDataFeed
from midrevert.common.types import OrderIntent, OrderSide, OrderStatus, RawTick, TradeAction
from midrevert.config.config import EngineConfig, FeedConfig
from midrevert.data.paper import PaperExchange
from midrevert.engine.logger import DecisionJournal
from midrevert.engine.timers import InstantGraceTimer
from midrevert.runner.runner import PriceFeedLoop

SYMBOL = "PURR/USDC"


class ListFeed(MarketDataFeed):
    def __init__(self, prices):
        self.prices = prices

    async def ticks(self):
        for p in self.prices:
            yield RawTick(SYMBOL, p)
            await asyncio.sleep(0)

    async def close(self):
        pass


def make_paper(usdc=1000.0, purr=0.0):
    return PaperExchange(SYMBOL, "PURR", "USDC", {"USDC": usdc, "PURR": purr})


@pytest.mark.asyncio
async def test_resting_buy_fills_when_price_crosses():
    paper = make_paper()
    ack = await paper.submit(OrderIntent(OrderSide.BUY, 1.0, 10.0))
    assert ack.status == OrderStatus.RESTING

    paper.mark(1.2)
    assert paper.orders[ack.order_id].status == OrderStatus.RESTING

    paper.mark(0.95)
    assert ack.order_id not in paper.orders
    assert paper.fills[-1].order_id == ack.order_id
    # Filled at the limit, not the mark
    assert paper.balances["USDC"] == pytest.approx(990.0)
    assert paper.balances["PURR"] == pytest.approx(10.0)


@pytest.mark.asyncio
async def test_marketable_order_fills_on_submit():
    paper = make_paper(purr=50.0)
    paper.mark(2.0)

    ack = await paper.submit(OrderIntent(OrderSide.SELL, 1.9, 50.0))

    assert ack.status == OrderStatus.FILLED
    assert paper.balances["PURR"] == pytest.approx(0.0)
    assert paper.balances["USDC"] == pytest.approx(1095.0)


@pytest.mark.asyncio
async def test_insufficient_balance_is_rejected():
    paper = make_paper(usdc=5.0)
    with pytest.raises(OrderRejectedError):
        await paper.submit(OrderIntent(OrderSide.BUY, 1.0, 10.0))
    with pytest.raises(OrderRejectedError):
        await paper.submit(OrderIntent(OrderSide.SELL, 1.0, 1.0))
    assert paper.orders == {}


@pytest.mark.asyncio
async def test_cancel_semantics():
    paper = make_paper()
    resting = await paper.submit(OrderIntent(OrderSide.BUY, 1.0, 10.0))

    await paper.cancel(resting.order_id)
    assert resting.order_id not in paper.orders
    with pytest.raises(CancelRejectedError):
        await paper.cancel(resting.order_id)

    filled = await paper.submit(OrderIntent(OrderSide.BUY, 1.0, 10.0))
    paper.mark(1.0)
    with pytest.raises(CancelRejectedError):
        await paper.cancel(filled.order_id)


@pytest.mark.asyncio
async def test_balance_of_unknown_asset_is_none():
    assert await make_paper().balance("HYPE") is None


@pytest.mark.asyncio
async def test_track_marks_prices_and_passes_ticks_through():
    paper = make_paper()
    feed = paper.track(ListFeed(["1.5", "abc", "1.25"]))

    ticks = [t async for t in feed.ticks()]

    assert [t.price_text for t in ticks] == ["1.5", "abc", "1.25"]
    assert paper.last_mark == 1.25


@pytest.mark.asyncio
async def test_paper_session_buy_is_filled():
    paper = make_paper()
    config = EngineConfig(symbol=SYMBOL, feed=FeedConfig(tick_policy="buffer"))
    loop = PriceFeedLoop.from_config(config, paper, timer=InstantGraceTimer(),
                                     journal=DecisionJournal(None))

    stats = await loop.run(paper.track(ListFeed(["1.0", "0.9"])))

    # BUY at 0.9 is marketable against the 0.9 mark, so the cancel is refused
    assert stats.lifecycles == 1
    assert loop.decision_state.last_executed_action == TradeAction.BUY
    assert paper.balances["PURR"] == pytest.approx(1111.0)
    assert paper.balances["USDC"] == pytest.approx(1000.0 - 1111 * 0.9)


@pytest.mark.asyncio
async def test_resting_orders_reserve_funds():
    paper = make_paper(usdc=1000.0)
    first = await paper.submit(OrderIntent(OrderSide.BUY, 1.0, 1000.0))

    assert await paper.balance("USDC") == pytest.approx(0.0)
    with pytest.raises(OrderRejectedError):
        await paper.submit(OrderIntent(OrderSide.BUY, 1.0, 1000.0))

    paper.mark(0.9)

    assert paper.orders == {}
    assert paper.reserved == {}
    assert paper.balances["USDC"] == pytest.approx(0.0)
    assert paper.balances["PURR"] == pytest.approx(1000.0)
    assert paper.fills[-1].order_id == first.order_id


@pytest.mark.asyncio
async def test_resting_sell_reserves_base():
    paper = make_paper(purr=100.0)
    await paper.submit(OrderIntent(OrderSide.SELL, 2.0, 60.0))

    assert await paper.balance("PURR") == pytest.approx(40.0)
    with pytest.raises(OrderRejectedError):
        await paper.submit(OrderIntent(OrderSide.SELL, 2.0, 50.0))


@pytest.mark.asyncio
async def test_cancel_releases_reservation():
    paper = make_paper(usdc=1000.0)
    ack = await paper.submit(OrderIntent(OrderSide.BUY, 1.0, 600.0))
    assert await paper.balance("USDC") == pytest.approx(400.0)

    await paper.cancel(ack.order_id)

    assert await paper.balance("USDC") == pytest.approx(1000.0)
    await paper.submit(OrderIntent(OrderSide.BUY, 1.0, 1000.0))


@pytest.mark.asyncio
async def test_track_passes_through_non_text_prices():
    paper = make_paper()
    feed = paper.track(ListFeed([None, "1.5"]))

    ticks = [t async for t in feed.ticks()]

    assert [t.price_text for t in ticks] == [None, "1.5"]
    assert paper.last_mark == 1.5
