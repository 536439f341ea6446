"""Classifier registry — maps trading modes to classifier functions.

Used by the recommendation gate to pick the classifier for the active mode.
"""

from typing import Callable

from signaldesk.strategy.models import (
    MODE_SCALPING,
    MODE_STANDARD,
    IndicatorSnapshot,
    Recommendation,
)
from signaldesk.strategy.scalp_signals import classify_scalping
from signaldesk.strategy.signals import classify_standard


Classifier = Callable[[IndicatorSnapshot], Recommendation]

CLASSIFIER_REGISTRY: dict[str, Classifier] = {
    MODE_STANDARD: classify_standard,
    MODE_SCALPING: classify_scalping,
}


def get_classifier(mode: str) -> Classifier:
    """Look up the classifier for *mode*.

    Raises ``KeyError`` if the mode is not registered.
    """
    if mode not in CLASSIFIER_REGISTRY:
        raise KeyError(
            f"Unknown mode '{mode}'. "
            f"Available: {', '.join(CLASSIFIER_REGISTRY.keys())}"
        )
    return CLASSIFIER_REGISTRY[mode]
