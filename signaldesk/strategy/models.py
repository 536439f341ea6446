"""Strategy data models — typed representations for indicator and signal outputs."""

from dataclasses import dataclass
from typing import Optional


# ── Actions & modes ──────────────────────────────────────────────────────

BUY = "BUY"
SELL = "SELL"
HOLD = "HOLD"

MODE_STANDARD = "standard"
MODE_SCALPING = "scalping"


@dataclass(frozen=True)
class CandleData:
    """A single OHLCV bar for indicator consumption."""

    time: str
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class Tick:
    """A streamed last-price update."""

    price: float
    volume: float


@dataclass(frozen=True)
class MACDValue:
    """MACD line, signal line and histogram at one bar."""

    macd: float
    signal: float
    histogram: float


@dataclass(frozen=True)
class BollingerValue:
    """Bollinger Bands at one bar."""

    upper: float
    middle: float
    lower: float


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Current-state summary of every indicator at the latest bar.

    Indicator fields always come from the last candle of the batch.
    ``price`` / ``volume`` may be overridden by a streamed tick.
    """

    price: float
    volume: float
    average_volume: float
    macd: MACDValue
    rsi: float
    atr: float
    ema9: Optional[float] = None
    ema20: Optional[float] = None
    bollinger_bands: Optional[BollingerValue] = None


@dataclass(frozen=True)
class Recommendation:
    """A BUY / SELL / HOLD call with its target and stop-loss."""

    action: str  # BUY, SELL or HOLD
    confidence: float
    target_price: float
    stop_loss: float
    reason: str
    reason_tag: str
    is_scalping: bool = False
