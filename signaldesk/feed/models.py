"""Feed data models — typed representations of Binance market-data payloads."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Kline:
    """A single candlestick bar from the Binance klines endpoint."""

    time: str  # ISO-8601 UTC open time
    open: float
    high: float
    low: float
    close: float
    volume: float
    close_time: int  # epoch milliseconds
