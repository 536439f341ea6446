"""Scalp signal classification — EMA(9/20) cross + Bollinger geometry + volume.

Tighter targets than the standard classifier.  Needs the optional EMA and
Bollinger fields of the snapshot; raises ``MissingFieldError`` otherwise.
"""

import math
from dataclasses import dataclass

from signaldesk.strategy.errors import MissingFieldError
from signaldesk.strategy.models import BUY, HOLD, SELL, IndicatorSnapshot, Recommendation


SQUEEZE_WIDTH = 0.02  # band width / middle below this = squeeze
BAND_PROXIMITY = 0.2  # fraction of the half-band counted as "near"
HIGH_VOLUME_MULT = 1.5

BUY_TARGET_MULT = 1.008
BUY_STOP_MULT = 0.995
SELL_TARGET_MULT = 0.992
SELL_STOP_MULT = 1.005

REASONS: dict[str, str] = {
    "scalp-buy": "Scalping BUY: EMA crossover with price near the lower band and high volume",
    "scalp-sell": "Scalping SELL: bearish EMA with price near the upper band and high volume",
    "squeeze-breakout-pending": "Possible breakout ahead: Bollinger Band squeeze detected",
    "no-clear-scalp": "No clear scalping setup",
}


@dataclass(frozen=True)
class ScalpConditions:
    """Derived predicates the scalp decision table runs on."""

    ema_crossover: bool
    bands_squeeze: bool
    price_near_upper: bool
    price_near_lower: bool
    high_volume: bool


def _require(snapshot: IndicatorSnapshot, name: str):
    value = getattr(snapshot, name)
    if value is None or (isinstance(value, float) and math.isnan(value)):
        raise MissingFieldError(name)
    return value


def evaluate_conditions(snapshot: IndicatorSnapshot) -> ScalpConditions:
    """Compute the scalp predicates for *snapshot*.

    Raises ``MissingFieldError`` if ``ema9``, ``ema20``,
    ``bollinger_bands`` or ``average_volume`` is absent.
    """
    ema9 = _require(snapshot, "ema9")
    ema20 = _require(snapshot, "ema20")
    bands = _require(snapshot, "bollinger_bands")
    average_volume = _require(snapshot, "average_volume")

    price = snapshot.price
    upper, middle, lower = bands.upper, bands.middle, bands.lower

    return ScalpConditions(
        ema_crossover=ema9 > ema20,
        bands_squeeze=middle > 0 and (upper - lower) / middle < SQUEEZE_WIDTH,
        price_near_upper=price > upper - (upper - middle) * BAND_PROXIMITY,
        price_near_lower=price < lower + (middle - lower) * BAND_PROXIMITY,
        high_volume=snapshot.volume > average_volume * HIGH_VOLUME_MULT,
    )


def classify_scalping(snapshot: IndicatorSnapshot) -> Recommendation:
    """Classify *snapshot* with the scalping rule set (first match wins)."""
    cond = evaluate_conditions(snapshot)

    if cond.ema_crossover and cond.price_near_lower and cond.high_volume:
        action, confidence, tag = BUY, 0.8, "scalp-buy"
    elif not cond.ema_crossover and cond.price_near_upper and cond.high_volume:
        action, confidence, tag = SELL, 0.8, "scalp-sell"
    elif cond.bands_squeeze:
        action, confidence, tag = HOLD, 0.7, "squeeze-breakout-pending"
    else:
        action, confidence, tag = HOLD, 0.5, "no-clear-scalp"

    if action == BUY:
        target_mult, stop_mult = BUY_TARGET_MULT, BUY_STOP_MULT
    else:
        target_mult, stop_mult = SELL_TARGET_MULT, SELL_STOP_MULT

    return Recommendation(
        action=action,
        confidence=confidence,
        target_price=snapshot.price * target_mult,
        stop_loss=snapshot.price * stop_mult,
        reason=REASONS[tag],
        reason_tag=tag,
        is_scalping=True,
    )
