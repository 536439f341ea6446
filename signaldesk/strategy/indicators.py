"""Technical indicators — EMA, MACD, RSI, ATR, Bollinger Bands. Pure functions, no I/O.

Every function returns a series the same length as its input.  Entries
before the warm-up index are ``float('nan')``, so the last element is
always the current value.
"""

import math

from signaldesk.strategy.errors import InsufficientDataError, InvalidInputError
from signaldesk.strategy.models import BollingerValue, MACDValue


_NAN = float("nan")


def _check_period(period: int) -> None:
    if period < 1:
        raise InvalidInputError(f"Indicator period must be >= 1, got {period}")


# ── EMA ──────────────────────────────────────────────────────────────────


def calculate_ema(values: list[float], period: int) -> list[float]:
    """Calculate an Exponential Moving Average series.

    Uses the standard EMA formula:
        ``EMA_today = value × k + EMA_yesterday × (1 - k)``
    where ``k = 2 / (period + 1)``.

    The first EMA value is seeded with the SMA of the first *period*
    values and placed at index ``period - 1``.

    Raises ``InsufficientDataError`` if fewer than *period* values are
    provided.
    """
    _check_period(period)
    if len(values) < period:
        raise InsufficientDataError(f"EMA({period})", period, len(values))

    k = 2.0 / (period + 1)
    ema: list[float] = [_NAN] * len(values)

    # Seed: SMA of first *period* values
    ema[period - 1] = sum(values[:period]) / period

    for i in range(period, len(values)):
        ema[i] = values[i] * k + ema[i - 1] * (1 - k)

    return ema


# ── MACD ─────────────────────────────────────────────────────────────────


def calculate_macd(
    closes: list[float],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> list[MACDValue]:
    """Calculate MACD (EMA-based line, EMA signal line, histogram).

    macd      = EMA(fast) − EMA(slow), valid from index ``slow - 1``
    signal    = EMA(signal) over the valid macd values
    histogram = macd − signal

    Requires at least ``slow + signal`` closes.  Bars where the signal
    line is not yet seeded carry NaN in every field.
    """
    for p in (fast, slow, signal):
        _check_period(p)
    required = slow + signal
    if len(closes) < required:
        raise InsufficientDataError(
            f"MACD({fast},{slow},{signal})", required, len(closes)
        )

    ema_fast = calculate_ema(closes, fast)
    ema_slow = calculate_ema(closes, slow)

    start = slow - 1
    macd_line = [ema_fast[i] - ema_slow[i] for i in range(start, len(closes))]
    signal_line = calculate_ema(macd_line, signal)

    result: list[MACDValue] = [MACDValue(_NAN, _NAN, _NAN)] * len(closes)
    for j in range(signal - 1, len(macd_line)):
        m = macd_line[j]
        s = signal_line[j]
        result[start + j] = MACDValue(macd=m, signal=s, histogram=m - s)

    return result


# ── RSI ──────────────────────────────────────────────────────────────────


def calculate_rsi(closes: list[float], period: int = 14) -> list[float]:
    """Calculate Wilder's Relative Strength Index.

    Algorithm (Wilder-smoothed):
        1. delta = close[i] - close[i-1]
        2. Separate gains (positive) and losses (|negative|).
        3. Seed average gain/loss = SMA of first *period* deltas.
        4. Subsequent: avg = (prev_avg × (period-1) + current) / period
        5. RS = avg_gain / avg_loss
        6. RSI = 100 - 100 / (1 + RS)

    Requires at least ``period + 1`` closes.  Output is bounded to [0, 100].
    """
    _check_period(period)
    if len(closes) < period + 1:
        raise InsufficientDataError(f"RSI({period})", period + 1, len(closes))

    deltas = [closes[i] - closes[i - 1] for i in range(1, len(closes))]
    gains = [max(d, 0.0) for d in deltas]
    losses = [abs(min(d, 0.0)) for d in deltas]

    rsi: list[float] = [_NAN] * len(closes)

    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period

    def _rsi_from_avgs(ag: float, al: float) -> float:
        if al == 0:
            return 100.0
        rs = ag / al
        return 100.0 - 100.0 / (1.0 + rs)

    rsi[period] = _rsi_from_avgs(avg_gain, avg_loss)

    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        # Index in rsi is i+1 because deltas are offset by 1
        rsi[i + 1] = _rsi_from_avgs(avg_gain, avg_loss)

    return rsi


# ── ATR ──────────────────────────────────────────────────────────────────


def calculate_atr(
    highs: list[float],
    lows: list[float],
    closes: list[float],
    period: int = 14,
) -> list[float]:
    """Calculate the Average True Range series.

    True Range from the second bar onward:
        TR = max(high - low, |high - prev_close|, |low - prev_close|)

    The first ATR (index *period*) is the mean of the first *period* true
    ranges; later values are Wilder-smoothed.

    Requires at least ``period + 1`` bars of equal-length input.
    """
    _check_period(period)
    if not (len(highs) == len(lows) == len(closes)):
        raise InvalidInputError(
            f"ATR inputs must have equal lengths, got "
            f"{len(highs)}/{len(lows)}/{len(closes)}"
        )
    if len(closes) < period + 1:
        raise InsufficientDataError(f"ATR({period})", period + 1, len(closes))

    true_ranges: list[float] = []
    for i in range(1, len(closes)):
        prev_close = closes[i - 1]
        true_ranges.append(max(
            highs[i] - lows[i],
            abs(highs[i] - prev_close),
            abs(lows[i] - prev_close),
        ))

    atr: list[float] = [_NAN] * len(closes)
    current = sum(true_ranges[:period]) / period
    atr[period] = current

    for i in range(period, len(true_ranges)):
        current = (current * (period - 1) + true_ranges[i]) / period
        atr[i + 1] = current

    return atr


# ── Bollinger Bands ──────────────────────────────────────────────────────


def calculate_bollinger(
    values: list[float],
    period: int = 20,
    std_dev: float = 2.0,
) -> list[BollingerValue]:
    """Calculate Bollinger Bands.

    Middle = SMA(values, *period*)
    Upper  = middle + *std_dev* × σ
    Lower  = middle − *std_dev* × σ

    σ is the population standard deviation of the window.  Requires at
    least *period* values.
    """
    _check_period(period)
    if len(values) < period:
        raise InsufficientDataError(f"Bollinger({period})", period, len(values))

    n = len(values)
    bands: list[BollingerValue] = [BollingerValue(_NAN, _NAN, _NAN)] * n

    for i in range(period - 1, n):
        window = values[i - period + 1 : i + 1]
        sma = sum(window) / period
        variance = sum((x - sma) ** 2 for x in window) / period
        sigma = math.sqrt(variance)
        bands[i] = BollingerValue(
            upper=sma + std_dev * sigma,
            middle=sma,
            lower=sma - std_dev * sigma,
        )

    return bands
