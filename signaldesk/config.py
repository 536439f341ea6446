"""SignalDesk — application configuration.

Loads .env variables into a typed config object.
Validates values on startup.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from signaldesk.strategy.registry import CLASSIFIER_REGISTRY


# Smallest batch that yields a full snapshot (MACD slow + signal).
MIN_KLINE_LIMIT = 35


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    symbol: str
    kline_interval: str
    kline_limit: int
    refresh_interval_seconds: int
    binance_rest_url: str
    binance_ws_url: str
    default_mode: str  # "standard" or "scalping"
    log_level: str
    api_port: int

    @property
    def ticker_stream_url(self) -> str:
        """Return the Binance 24h-ticker stream URL for the configured symbol."""
        return f"{self.binance_ws_url}/ws/{self.symbol.lower()}@ticker"


def _int_env(name: str, default: int, minimum: int) -> int:
    """Read an integer variable, raising ``ValueError`` that names it."""
    raw = os.environ.get(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'") from None
    if value < minimum:
        raise ValueError(f"{name} must be at least {minimum}, got {value}")
    return value


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the offending variable when
    a value is malformed or out of range.
    """
    load_dotenv(dotenv_path=env_path)

    default_mode = os.environ.get("SIGNAL_MODE", "standard").lower()
    if default_mode not in CLASSIFIER_REGISTRY:
        raise ValueError(
            f"SIGNAL_MODE must be one of {', '.join(CLASSIFIER_REGISTRY)}, "
            f"got '{default_mode}'"
        )

    return Config(
        symbol=os.environ.get("SIGNAL_SYMBOL", "SOLUSDT").upper(),
        kline_interval=os.environ.get("KLINE_INTERVAL", "1m"),
        kline_limit=_int_env("KLINE_LIMIT", 100, MIN_KLINE_LIMIT),
        refresh_interval_seconds=_int_env("REFRESH_INTERVAL_SECONDS", 60, 1),
        binance_rest_url=os.environ.get("BINANCE_REST_URL", "https://api.binance.com"),
        binance_ws_url=os.environ.get("BINANCE_WS_URL", "wss://stream.binance.com:9443"),
        default_mode=default_mode,
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        api_port=_int_env("API_PORT", 8080, 1),
    )
