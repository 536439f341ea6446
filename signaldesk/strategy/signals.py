"""Standard-horizon signal classification — pure functions, no I/O.

Given an indicator snapshot, combines MACD direction with RSI zones and
produces a recommendation with fixed-percentage target and stop-loss.

Rules are an ordered decision table: the first matching row wins.  Rows
are NOT mutually exclusive (rows 1 and 3 can both hold), so order matters.
"""

from signaldesk.strategy.models import BUY, HOLD, SELL, IndicatorSnapshot, Recommendation


# ── RSI zones ────────────────────────────────────────────────────────────

RSI_OVERSOLD = 30.0
RSI_OVERBOUGHT = 70.0
RSI_NEUTRAL_LOW = 40.0
RSI_NEUTRAL_HIGH = 60.0

# ── Target / stop multipliers ────────────────────────────────────────────
# Long: target +2.5%, stop −1.5%.  Everything else uses the short side.

BUY_TARGET_MULT = 1.025
BUY_STOP_MULT = 0.985
SELL_TARGET_MULT = 0.975
SELL_STOP_MULT = 1.015

REASONS: dict[str, str] = {
    "strong-buy-oversold": "Strong buy signal: MACD crossover with oversold RSI",
    "strong-sell-overbought": "Strong sell signal: bearish MACD with overbought RSI",
    "moderate-buy-neutral": "Moderate buy signal: MACD crossover with neutral RSI",
    "moderate-sell-neutral": "Moderate sell signal: bearish MACD with neutral RSI",
    "no-clear-signal": "No clear signal: waiting for better conditions",
}


def _decide(macd_bullish: bool, rsi: float) -> tuple[str, float, str]:
    """Walk the decision table and return ``(action, confidence, tag)``."""
    rsi_neutral = RSI_NEUTRAL_LOW < rsi < RSI_NEUTRAL_HIGH

    if macd_bullish and rsi < RSI_OVERSOLD:
        return BUY, 0.8, "strong-buy-oversold"
    if not macd_bullish and rsi > RSI_OVERBOUGHT:
        return SELL, 0.8, "strong-sell-overbought"
    if macd_bullish and rsi_neutral:
        return BUY, 0.6, "moderate-buy-neutral"
    if not macd_bullish and rsi_neutral:
        return SELL, 0.6, "moderate-sell-neutral"
    return HOLD, 0.5, "no-clear-signal"


def classify_standard(snapshot: IndicatorSnapshot) -> Recommendation:
    """Classify *snapshot* with the MACD + RSI rule set.

    Target and stop depend on the action only.  HOLD deliberately takes
    the SELL-side multipliers: only BUY selects the long side.
    """
    macd_bullish = snapshot.macd.macd > snapshot.macd.signal
    action, confidence, tag = _decide(macd_bullish, snapshot.rsi)

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
        is_scalping=False,
    )
