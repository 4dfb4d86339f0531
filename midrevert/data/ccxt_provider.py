"""
CCXT Exchange Client.
Wraps the async CCXT library behind the ExchangeClient interface.
"""
import logging
import os
from typing import Any, Dict, Optional

import ccxt.async_support as ccxt  # Use async version

from ..common.errors import (
    CancelRejectedError, EmptyStatusError, OrderRejectedError, TransportError
)
from ..common.interfaces import ExchangeClient
from ..common.types import OrderAck, OrderIntent, OrderStatus
from ..config.config import ExchangeConfig

logger = logging.getLogger("Exchange")


def credentials_from_env(config: ExchangeConfig) -> Dict[str, str]:
    """
    Read exchange credentials from the environment variables named in config.
    Unset variables are left out.
    """
    mapping = {
        'apiKey': config.api_key_env,
        'secret': config.secret_env,
        'walletAddress': config.wallet_address_env,
        'privateKey': config.private_key_env,
    }
    creds = {}
    for key, env_name in mapping.items():
        value = os.getenv(env_name) if env_name else None
        if value:
            creds[key] = value
    return creds


def create_exchange(config: ExchangeConfig, credentials: Dict[str, str] = None):
    exchange_class = getattr(ccxt, config.exchange_id)
    exchange = exchange_class({
        'enableRateLimit': True,
        'options': {'defaultType': 'spot'},
        **(credentials or {}),
    })
    if config.sandbox:
        exchange.set_sandbox_mode(True)
    return exchange


class CCXTExchange(ExchangeClient):
    """
    Async CCXT order entry for one symbol.
    """
    def __init__(self, symbol: str, exchange):
        self.symbol = symbol
        self.exchange = exchange

    @classmethod
    def from_config(cls, symbol: str, config: ExchangeConfig) -> "CCXTExchange":
        return cls(symbol, create_exchange(config, credentials_from_env(config)))

    async def submit(self, intent: OrderIntent) -> OrderAck:
        try:
            order = await self.exchange.create_order(
                self.symbol, 'limit', intent.side.value.lower(), intent.size, intent.limit_price,
                {'timeInForce': intent.time_in_force},
            )
        except ccxt.NetworkError as e:
            raise TransportError(f"create_order: {e}") from e
        except ccxt.BaseError as e:
            raise OrderRejectedError(str(e)) from e

        return self._ack(order)

    def _ack(self, order: Optional[Dict[str, Any]]) -> OrderAck:
        if not order or not order.get('id'):
            raise EmptyStatusError(f"No order id in response: {order}")

        status = OrderStatus.FILLED if order.get('status') == 'closed' else OrderStatus.RESTING
        return OrderAck(str(order['id']), status)

    async def cancel(self, order_id: str) -> None:
        try:
            await self.exchange.cancel_order(order_id, self.symbol)
        except ccxt.NetworkError as e:
            raise TransportError(f"cancel_order: {e}") from e
        except ccxt.BaseError as e:
            raise CancelRejectedError(str(e)) from e

    async def balance(self, asset: str) -> Optional[float]:
        try:
            balances = await self.exchange.fetch_balance()
        except ccxt.BaseError as e:
            raise TransportError(f"fetch_balance: {e}") from e

        free = balances.get('free') or {}
        amount = free.get(asset)
        return float(amount) if amount is not None else None

    async def close(self):
        await self.exchange.close()
