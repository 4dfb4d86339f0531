"""
Main Entry Point.
"""
import argparse
import asyncio
import logging
import sys

from rich.live import Live

from .common.errors import ConfigError
from .config.config import EngineConfig, load_config
from .dashboard.tui import Dashboard
from .data.ccxt_provider import CCXTExchange, create_exchange
from .data.live_feed import CCXTMidFeed
from .data.paper import PaperExchange
from .engine.logger import DecisionJournal
from .runner.runner import PriceFeedLoop
from .utils import setup_logging

logger = logging.getLogger("Main")


def build_session(config: EngineConfig, journal: DecisionJournal):
    """
    Wire feed, exchange client and loop for the configured mode.
    Returns (loop, feed, exchange).
    """
    # Market data always comes from the venue; no credentials needed
    feed = CCXTMidFeed(config.symbol, create_exchange(config.exchange), config.feed.poll_interval)

    if config.mode == "paper":
        exchange = PaperExchange(config.symbol, config.base_asset, config.quote_asset,
                                 balances=config.exchange.paper_balances)
        feed = exchange.track(feed)
    else:
        exchange = CCXTExchange.from_config(config.symbol, config.exchange)

    loop = PriceFeedLoop.from_config(config, exchange, journal=journal)
    return loop, feed, exchange


async def main(config_path: str, no_ui: bool = False, overrides: dict = None):
    # 1. Load Config
    try:
        config = load_config(config_path, overrides)
    except FileNotFoundError:
        print(f"Config file not found: {config_path}")
        return 1
    except ConfigError as e:
        print(f"Invalid config: {e}")
        return 1

    # 2. Logging and journal
    setup_logging(config.logging.log_file, config.logging.log_level, use_console=no_ui)
    journal = DecisionJournal(config.logging.journal_file)
    journal.log_config(config.to_dict())
    logger.info(str(config))

    # 3. Setup Loop
    loop, feed, exchange = build_session(config, journal)
    dashboard = Dashboard(loop, journal)

    # 4. Run
    task = asyncio.create_task(loop.run(feed))
    try:
        if no_ui:
            print(f"Trading {config.symbol} ({config.mode}, no UI)...")
            await task
        else:
            with Live(dashboard.create_layout(), refresh_per_second=2) as live:
                while not task.done():
                    live.update(dashboard.create_layout())
                    await asyncio.sleep(0.5)
                live.update(dashboard.create_layout())
    finally:
        if not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        await feed.close()
        await exchange.close()
        journal.close()

    # Summary
    print("\nSession Ended.")
    stats = loop.get_stats()
    print(f"{stats['symbol']}: {stats['ticks']} ticks, {stats['lifecycles']} lifecycles, "
          f"last action {stats['last_action']}, {stats['errors']} errors")
    return 0


def cli():
    parser = argparse.ArgumentParser(description="Mean reversion limit order engine")
    parser.add_argument("--config", type=str, default="midrevert/config.yaml", help="Path to config file")
    parser.add_argument("--no-ui", action="store_true", help="Disable TUI")
    parser.add_argument("--symbol", type=str, help="Override traded pair, e.g. PURR/USDC")
    parser.add_argument("--mode", type=str, choices=['paper', 'live'], help="Override trading mode")

    args = parser.parse_args()

    overrides = {}
    if args.symbol:
        base, _, quote = args.symbol.partition('/')
        overrides.update({'symbol': args.symbol, 'base_asset': base, 'quote_asset': quote})
    if args.mode:
        overrides['mode'] = args.mode

    try:
        code = asyncio.run(main(args.config, args.no_ui, overrides))
    except KeyboardInterrupt:
        print("Stopped by user.")
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    cli()
