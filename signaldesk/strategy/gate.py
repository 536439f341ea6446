"""Recommendation gate — rate-limits recommendation churn. Pure logic, no I/O.

A new classification is computed only after a meaningful price move since
the last accepted signal, and is only surfaced when it changes the
directional call.  Confidence or target changes alone never replace the
current recommendation.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from signaldesk.strategy.models import (
    MODE_SCALPING,
    MODE_STANDARD,
    IndicatorSnapshot,
    Recommendation,
)
from signaldesk.strategy.registry import get_classifier

logger = logging.getLogger("signaldesk.gate")


STANDARD_MOVE_THRESHOLD = 0.02
SCALPING_MOVE_THRESHOLD = 0.005


@dataclass
class SessionState:
    """Mutable per-session recommendation state.

    Owned by exactly one updater (the engine); passed explicitly to
    :func:`update_recommendation`.
    """

    mode: str = MODE_STANDARD
    current_recommendation: Optional[Recommendation] = None
    last_signal_price: Optional[float] = None

    def reset(self) -> None:
        """Clear the current recommendation and signal price."""
        self.current_recommendation = None
        self.last_signal_price = None

    def switch_mode(self, mode: str) -> None:
        """Set *mode* and reset the recommendation state in one step.

        Raises ``KeyError`` for an unknown mode; state is left untouched.
        """
        get_classifier(mode)
        self.mode = mode
        self.reset()


def price_change_threshold(mode: str) -> float:
    """Relative move required before re-classifying in *mode*."""
    if mode == MODE_SCALPING:
        return SCALPING_MOVE_THRESHOLD
    return STANDARD_MOVE_THRESHOLD


def is_significant_move(
    price: float,
    last_signal_price: Optional[float],
    threshold: float,
) -> bool:
    """``True`` if no signal price is set or *price* moved beyond *threshold*."""
    if not last_signal_price:
        return True
    return abs(price - last_signal_price) / last_signal_price > threshold


def update_recommendation(
    state: SessionState,
    snapshot: IndicatorSnapshot,
) -> Optional[Recommendation]:
    """Run the gate against *snapshot* and update *state* in place.

    Steps:
        1. Threshold by mode (0.5 % scalping, 2 % standard).
        2. Classify only if there is no current recommendation or the price
           moved significantly since the last accepted signal.
        3. Accept the candidate only if there is no current recommendation
           or its action differs from the current one.

    Returns:
        The newly accepted ``Recommendation``, or ``None`` when the current
        one is retained.

    Raises:
        MissingFieldError: propagated from the scalping classifier; *state*
            is not modified.
    """
    threshold = price_change_threshold(state.mode)
    significant = is_significant_move(
        snapshot.price, state.last_signal_price, threshold,
    )
    current = state.current_recommendation

    if current is not None and not significant:
        return None

    candidate = get_classifier(state.mode)(snapshot)

    if current is not None and candidate.action == current.action:
        logger.debug(
            "Gate: %s re-classified as %s — keeping current recommendation",
            state.mode, candidate.action,
        )
        return None

    state.current_recommendation = candidate
    state.last_signal_price = snapshot.price
    return candidate
