"""
Configuration Schemas.
"""
from dataclasses import dataclass, field, asdict
from numbers import Real
from typing import Dict, Any, Optional
import yaml

from ..common.errors import ConfigError

SIZING_POLICIES = ("balance", "fixed")
TICK_POLICIES = ("drop", "buffer")
MODES = ("paper", "live")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

@dataclass(frozen=True)
class SignalConfig:
    window_capacity: int = 500
    upper: float = 1.015   # sell above average * upper
    lower: float = 0.99    # buy below average * lower
    price_decimals: int = 5

@dataclass(frozen=True)
class SizingConfig:
    policy: str = "balance"  # "balance" or "fixed"
    fixed_size: float = 0.0
    lot_size: float = 1.0
    min_quote_balance: float = 100.0  # buys need at least this much quote currency
    min_base_balance: float = 100.0   # sells need at least this much base asset

@dataclass(frozen=True)
class LifecycleConfig:
    grace_seconds: float = 30.0
    reprice_slippage: float = 0.01
    cancel_transport_error_is_fill: bool = True

@dataclass(frozen=True)
class FeedConfig:
    tick_policy: str = "drop"  # "drop" or "buffer"
    buffer_limit: int = 0      # 0 = unbounded
    poll_interval: float = 1.0

@dataclass(frozen=True)
class ExchangeConfig:
    exchange_id: str = "hyperliquid"
    sandbox: bool = False
    api_key_env: str = "MIDREVERT_API_KEY"
    secret_env: str = "MIDREVERT_SECRET"
    wallet_address_env: str = "MIDREVERT_WALLET_ADDRESS"
    private_key_env: str = "MIDREVERT_PRIVATE_KEY"
    # Paper mode starting balances
    paper_balances: Dict[str, float] = field(default_factory=lambda: {"USDC": 1000.0})

@dataclass(frozen=True)
class LoggingConfig:
    log_file: Optional[str] = "logs/midrevert.log"
    journal_file: Optional[str] = "logs/journal.jsonl"
    log_level: str = "INFO"

@dataclass(frozen=True)
class EngineConfig:
    symbol: str = "PURR/USDC"
    base_asset: str = "PURR"
    quote_asset: str = "USDC"
    mode: str = "paper"  # "paper" or "live"

    signal: SignalConfig = field(default_factory=SignalConfig)
    sizing: SizingConfig = field(default_factory=SizingConfig)
    lifecycle: LifecycleConfig = field(default_factory=LifecycleConfig)
    feed: FeedConfig = field(default_factory=FeedConfig)
    exchange: ExchangeConfig = field(default_factory=ExchangeConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary for logging."""
        return asdict(self)

    def __str__(self) -> str:
        return (
            f"EngineConfig({self.symbol}, mode={self.mode})\n"
            f"  Window: {self.signal.window_capacity} ticks, bands {self.signal.lower}/{self.signal.upper}\n"
            f"  Sizing: {self.sizing.policy}, lot={self.sizing.lot_size}\n"
            f"  Lifecycle: grace={self.lifecycle.grace_seconds}s, slippage={self.lifecycle.reprice_slippage*100}%\n"
            f"  Ticks: {self.feed.tick_policy}\n"
            f")"
        )

DEFAULT_CONFIG = EngineConfig()

def _section(cls, data: Dict[str, Any], name: str):
    raw = data.get(name) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    try:
        return cls(**raw)
    except TypeError as e:
        raise ConfigError(f"Invalid '{name}' section: {e}") from e

def build_config(data: Dict[str, Any]) -> EngineConfig:
    """Build and validate an EngineConfig from a plain dict (parsed YAML)."""
    known = {"symbol", "base_asset", "quote_asset", "mode",
             "signal", "sizing", "lifecycle", "feed", "exchange", "logging"}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"Unknown config keys: {sorted(unknown)}")

    config = EngineConfig(
        symbol=data.get('symbol', DEFAULT_CONFIG.symbol),
        base_asset=data.get('base_asset', DEFAULT_CONFIG.base_asset),
        quote_asset=data.get('quote_asset', DEFAULT_CONFIG.quote_asset),
        mode=data.get('mode', DEFAULT_CONFIG.mode),
        signal=_section(SignalConfig, data, 'signal'),
        sizing=_section(SizingConfig, data, 'sizing'),
        lifecycle=_section(LifecycleConfig, data, 'lifecycle'),
        feed=_section(FeedConfig, data, 'feed'),
        exchange=_section(ExchangeConfig, data, 'exchange'),
        logging=_section(LoggingConfig, data, 'logging'),
    )
    validate_config(config)
    return config

def load_config(path: str, user_overrides: Dict = None) -> EngineConfig:
    with open(path, 'r') as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    if user_overrides:
        data.update(user_overrides)

    return build_config(data)

def _check_types(config: EngineConfig) -> None:
    ints = {
        "signal.window_capacity": config.signal.window_capacity,
        "signal.price_decimals": config.signal.price_decimals,
        "feed.buffer_limit": config.feed.buffer_limit,
    }
    for name, value in ints.items():
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"{name} must be an integer, got {value!r}")

    reals = {
        "signal.upper": config.signal.upper,
        "signal.lower": config.signal.lower,
        "sizing.fixed_size": config.sizing.fixed_size,
        "sizing.lot_size": config.sizing.lot_size,
        "sizing.min_quote_balance": config.sizing.min_quote_balance,
        "sizing.min_base_balance": config.sizing.min_base_balance,
        "lifecycle.grace_seconds": config.lifecycle.grace_seconds,
        "lifecycle.reprice_slippage": config.lifecycle.reprice_slippage,
        "feed.poll_interval": config.feed.poll_interval,
    }
    for name, value in reals.items():
        if isinstance(value, bool) or not isinstance(value, Real):
            raise ConfigError(f"{name} must be a number, got {value!r}")

    if not isinstance(config.lifecycle.cancel_transport_error_is_fill, bool):
        raise ConfigError("lifecycle.cancel_transport_error_is_fill must be true or false")
    for name in ("symbol", "base_asset", "quote_asset", "mode"):
        if not isinstance(getattr(config, name), str):
            raise ConfigError(f"{name} must be a string")
    if not isinstance(config.sizing.policy, str):
        raise ConfigError("sizing.policy must be a string")
    if not isinstance(config.feed.tick_policy, str):
        raise ConfigError("feed.tick_policy must be a string")
    if not isinstance(config.logging.log_level, str):
        raise ConfigError("logging.log_level must be a string")

def validate_config(config: EngineConfig) -> None:
    _check_types(config)

    s = config.signal
    if s.window_capacity <= 0:
        raise ConfigError("signal.window_capacity must be > 0")
    if s.upper <= 1.0:
        raise ConfigError("signal.upper must be > 1")
    if not 0.0 < s.lower < 1.0:
        raise ConfigError("signal.lower must be between 0 and 1")
    if s.price_decimals < 0:
        raise ConfigError("signal.price_decimals must be >= 0")

    z = config.sizing
    if z.policy not in SIZING_POLICIES:
        raise ConfigError(f"sizing.policy must be one of {'|'.join(SIZING_POLICIES)}")
    if z.policy == "fixed" and z.fixed_size <= 0:
        raise ConfigError("sizing.fixed_size must be > 0 with the fixed policy")
    if z.lot_size <= 0:
        raise ConfigError("sizing.lot_size must be > 0")
    if z.min_quote_balance < 0 or z.min_base_balance < 0:
        raise ConfigError("sizing balance floors must be >= 0")

    lc = config.lifecycle
    if lc.grace_seconds <= 0:
        raise ConfigError("lifecycle.grace_seconds must be > 0")
    if not 0.0 <= lc.reprice_slippage < 1.0:
        raise ConfigError("lifecycle.reprice_slippage must be in [0, 1)")

    f = config.feed
    if f.tick_policy not in TICK_POLICIES:
        raise ConfigError(f"feed.tick_policy must be one of {'|'.join(TICK_POLICIES)}")
    if f.buffer_limit < 0:
        raise ConfigError("feed.buffer_limit must be >= 0")
    if f.poll_interval <= 0:
        raise ConfigError("feed.poll_interval must be > 0")

    if config.mode not in MODES:
        raise ConfigError(f"mode must be one of {'|'.join(MODES)}")
    if not config.symbol or not config.base_asset or not config.quote_asset:
        raise ConfigError("symbol, base_asset and quote_asset must be set")

    if config.logging.log_level.upper() not in LOG_LEVELS:
        raise ConfigError(f"logging.log_level must be one of {'|'.join(LOG_LEVELS)}")
