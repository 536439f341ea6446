"""CLI dashboard — prints the current snapshot and recommendation to the console."""

from typing import Optional

from signaldesk.strategy.models import IndicatorSnapshot, Recommendation


def _rsi_zone(rsi: float) -> str:
    if rsi < 30:
        return "Oversold"
    if rsi > 70:
        return "Overbought"
    return "Neutral"


def format_panel(
    symbol: str,
    snapshot: Optional[IndicatorSnapshot],
    recommendation: Optional[Recommendation],
    session: dict,
) -> str:
    """Format the status panel.

    Args:
        symbol: Watched symbol, e.g. ``"SOLUSDT"``.
        snapshot: Latest snapshot, or ``None`` while warming up.
        recommendation: Current recommendation, or ``None``.
        session: ``{"last_signal_price", "mode"}`` from the engine.

    Returns:
        The formatted multi-line string.
    """
    mode = session.get("mode", "standard")
    signal_price = session.get("last_signal_price")
    title = "Scalping" if mode == "scalping" else "Trading"

    lines = [f"──────────────── {symbol} · {title} ────────────────"]

    if snapshot is None:
        lines.append("  Waiting for first kline batch…")
    else:
        lines += [
            f"  Price:           ${snapshot.price:,.2f}",
            f"  Volume:          {snapshot.volume:,.2f}",
            f"  Signal price:    "
            + (f"${signal_price:,.2f}" if signal_price else "N/A"),
            f"  MACD:            {snapshot.macd.macd:.4f} / "
            f"signal {snapshot.macd.signal:.4f} / hist {snapshot.macd.histogram:.4f}",
            f"  RSI:             {snapshot.rsi:.2f} ({_rsi_zone(snapshot.rsi)})",
            f"  ATR:             {snapshot.atr:.4f}",
        ]
        if mode == "scalping" and snapshot.ema9 is not None and snapshot.ema20 is not None:
            trend = "Bullish" if snapshot.ema9 > snapshot.ema20 else "Bearish"
            lines.append(
                f"  EMA 9 / 20:      {snapshot.ema9:.2f} / {snapshot.ema20:.2f} ({trend})"
            )
        if mode == "scalping" and snapshot.bollinger_bands is not None:
            bb = snapshot.bollinger_bands
            lines.append(
                f"  Bollinger:       {bb.upper:.2f} / {bb.middle:.2f} / {bb.lower:.2f}"
            )

    if recommendation is not None:
        lines += [
            f"  Action:          {recommendation.action} "
            f"({recommendation.confidence:.0%})",
            f"  Reason:          {recommendation.reason}",
            f"  Target:          ${recommendation.target_price:,.2f}",
            f"  Stop loss:       ${recommendation.stop_loss:,.2f}",
        ]
    lines.append("─" * 50)
    return "\n".join(lines)


def print_status(engine) -> str:
    """Engine listener: print the panel for *engine*'s current state."""
    output = format_panel(
        engine.symbol,
        engine.get_snapshot(),
        engine.get_recommendation(),
        engine.get_session_state(),
    )
    print(output)
    return output
