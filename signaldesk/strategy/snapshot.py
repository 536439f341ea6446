"""Snapshot builder — reduces an OHLCV batch to one IndicatorSnapshot.

Indicators are recomputed only when a full batch arrives.  Streamed ticks
override ``price`` / ``volume`` on the existing snapshot and never trigger
a recomputation.
"""

import dataclasses
import math
from typing import Optional

from signaldesk.strategy.errors import InsufficientDataError, InvalidInputError
from signaldesk.strategy.indicators import (
    calculate_atr,
    calculate_bollinger,
    calculate_ema,
    calculate_macd,
    calculate_rsi,
)
from signaldesk.strategy.models import CandleData, IndicatorSnapshot, Tick


# Longest indicator period (MACD slow EMA).  MACD itself additionally
# needs slow + signal values and raises on shorter batches.
MIN_BATCH_LENGTH = 26


def _is_valid_number(value: float) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value) and value >= 0


def validate_observation(price: float, volume: float) -> None:
    """Reject a non-finite or negative price / volume pair.

    Raises ``InvalidInputError``.
    """
    if not _is_valid_number(price):
        raise InvalidInputError(f"Invalid price: {price!r}")
    if not _is_valid_number(volume):
        raise InvalidInputError(f"Invalid volume: {volume!r}")


def _validate_candle(candle: CandleData) -> None:
    for name in ("open", "high", "low", "close", "volume"):
        value = getattr(candle, name)
        if not _is_valid_number(value):
            raise InvalidInputError(
                f"Invalid {name} {value!r} in candle at {candle.time}"
            )


def build_snapshot(
    candles: list[CandleData],
    tick: Optional[Tick] = None,
) -> IndicatorSnapshot:
    """Run every indicator over *candles* and keep the latest value of each.

    Args:
        candles: OHLCV batch, oldest-first.
        tick: Optional latest streamed tick; its price/volume replace the
            final candle's close/volume in the snapshot.

    Returns:
        A fresh ``IndicatorSnapshot``.

    Raises:
        InsufficientDataError: batch shorter than an indicator window.
        InvalidInputError: non-finite or negative value in batch or tick.
    """
    if len(candles) < MIN_BATCH_LENGTH:
        raise InsufficientDataError("snapshot batch", MIN_BATCH_LENGTH, len(candles))

    for candle in candles:
        _validate_candle(candle)
    if tick is not None:
        validate_observation(tick.price, tick.volume)

    closes = [c.close for c in candles]
    highs = [c.high for c in candles]
    lows = [c.low for c in candles]
    volumes = [c.volume for c in candles]

    macd = calculate_macd(closes)[-1]
    rsi = calculate_rsi(closes)[-1]
    atr = calculate_atr(highs, lows, closes)[-1]
    ema9 = calculate_ema(closes, 9)[-1]
    ema20 = calculate_ema(closes, 20)[-1]
    bands = calculate_bollinger(closes)[-1]

    price = closes[-1]
    volume = volumes[-1]
    if tick is not None:
        price = tick.price
        volume = tick.volume

    return IndicatorSnapshot(
        price=price,
        volume=volume,
        average_volume=sum(volumes) / len(volumes),
        macd=macd,
        rsi=rsi,
        atr=atr,
        ema9=ema9,
        ema20=ema20,
        bollinger_bands=bands,
    )


def apply_tick(
    snapshot: IndicatorSnapshot, price: float, volume: float
) -> IndicatorSnapshot:
    """Return a copy of *snapshot* with a fresher price and volume.

    Indicator fields stay batch-derived.  Raises ``InvalidInputError`` on
    a bad tick; *snapshot* is never mutated.
    """
    validate_observation(price, volume)
    return dataclasses.replace(snapshot, price=float(price), volume=float(volume))
