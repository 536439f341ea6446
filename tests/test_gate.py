"""Tests for the recommendation gate and session state."""

import pytest

from signaldesk.strategy import registry
from signaldesk.strategy.errors import MissingFieldError
from signaldesk.strategy.gate import (
    SCALPING_MOVE_THRESHOLD,
    STANDARD_MOVE_THRESHOLD,
    SessionState,
    is_significant_move,
    price_change_threshold,
    update_recommendation,
)
from signaldesk.strategy.models import (
    BUY,
    HOLD,
    MODE_SCALPING,
    MODE_STANDARD,
    SELL,
    BollingerValue,
    IndicatorSnapshot,
    MACDValue,
    Recommendation,
)


# ── Helpers ──────────────────────────────────────────────────────────────


def _make_snapshot(price: float = 100.0, **overrides) -> IndicatorSnapshot:
    fields = dict(
        price=price,
        volume=1000.0,
        average_volume=1000.0,
        macd=MACDValue(macd=0.5, signal=0.1, histogram=0.4),
        rsi=25.0,
        atr=1.0,
        ema9=100.0,
        ema20=100.0,
        bollinger_bands=BollingerValue(102.0, 100.0, 98.0),
    )
    fields.update(overrides)
    return IndicatorSnapshot(**fields)


def _make_rec(action: str = BUY, price: float = 100.0) -> Recommendation:
    return Recommendation(
        action=action,
        confidence=0.6,
        target_price=price * 1.025,
        stop_loss=price * 0.985,
        reason="test",
        reason_tag="test",
    )


class _SpyClassifier:
    """Records calls and returns a fixed action."""

    def __init__(self, action: str = BUY):
        self.action = action
        self.calls = 0

    def __call__(self, snapshot):
        self.calls += 1
        return _make_rec(self.action, snapshot.price)


@pytest.fixture
def spy(monkeypatch):
    classifier = _SpyClassifier()
    monkeypatch.setitem(registry.CLASSIFIER_REGISTRY, MODE_STANDARD, classifier)
    monkeypatch.setitem(registry.CLASSIFIER_REGISTRY, MODE_SCALPING, classifier)
    return classifier


# ── Thresholds ───────────────────────────────────────────────────────────


class TestThresholds:
    def test_per_mode(self):
        assert price_change_threshold(MODE_STANDARD) == STANDARD_MOVE_THRESHOLD == 0.02
        assert price_change_threshold(MODE_SCALPING) == SCALPING_MOVE_THRESHOLD == 0.005

    def test_unset_last_price_is_significant(self):
        assert is_significant_move(100.0, None, 0.02) is True
        assert is_significant_move(100.0, 0.0, 0.02) is True

    def test_exact_threshold_is_not_significant(self):
        assert is_significant_move(102.0, 100.0, 0.02) is False
        assert is_significant_move(102.5, 100.0, 0.02) is True

    def test_downward_move(self):
        assert is_significant_move(97.0, 100.0, 0.02) is True


# ── Gate ─────────────────────────────────────────────────────────────────


class TestUpdateRecommendation:
    def test_first_evaluation_accepts(self, spy):
        state = SessionState()
        rec = update_recommendation(state, _make_snapshot(100.0))
        assert rec is not None
        assert state.current_recommendation is rec
        assert state.last_signal_price == 100.0
        assert spy.calls == 1

    def test_small_move_standard_skips_classifier(self, spy):
        """1 % move under the 2 % standard threshold is ignored."""
        state = SessionState(
            mode=MODE_STANDARD,
            current_recommendation=_make_rec(BUY),
            last_signal_price=100.0,
        )
        before = state.current_recommendation
        assert update_recommendation(state, _make_snapshot(101.0)) is None
        assert spy.calls == 0
        assert state.current_recommendation is before
        assert state.last_signal_price == 100.0

    def test_small_move_scalping_recomputes(self, spy):
        """The same 1 % move exceeds the 0.5 % scalping threshold."""
        spy.action = SELL
        state = SessionState(
            mode=MODE_SCALPING,
            current_recommendation=_make_rec(BUY),
            last_signal_price=100.0,
        )
        rec = update_recommendation(state, _make_snapshot(101.0))
        assert spy.calls == 1
        assert rec.action == SELL
        assert state.last_signal_price == 101.0

    def test_same_action_retains_current(self, spy):
        current = _make_rec(BUY)
        state = SessionState(current_recommendation=current, last_signal_price=100.0)
        assert update_recommendation(state, _make_snapshot(110.0)) is None
        assert spy.calls == 1
        assert state.current_recommendation is current
        assert state.last_signal_price == 100.0

    def test_action_change_replaces(self, spy):
        spy.action = HOLD
        state = SessionState(current_recommendation=_make_rec(BUY), last_signal_price=100.0)
        rec = update_recommendation(state, _make_snapshot(95.0))
        assert rec.action == HOLD
        assert state.current_recommendation is rec
        assert state.last_signal_price == 95.0

    def test_idempotent_on_same_snapshot(self, spy):
        state = SessionState()
        snap = _make_snapshot(100.0)
        assert update_recommendation(state, snap) is not None
        accepted = state.current_recommendation
        assert update_recommendation(state, snap) is None
        assert state.current_recommendation is accepted

    def test_real_classifier(self):
        state = SessionState()
        rec = update_recommendation(state, _make_snapshot(100.0))
        assert rec.action == BUY
        assert rec.reason_tag == "strong-buy-oversold"

    def test_missing_field_leaves_state(self):
        state = SessionState(mode=MODE_SCALPING)
        with pytest.raises(MissingFieldError):
            update_recommendation(state, _make_snapshot(100.0, ema9=None))
        assert state.current_recommendation is None
        assert state.last_signal_price is None


# ── Session state ────────────────────────────────────────────────────────


class TestSessionState:
    def test_defaults(self):
        state = SessionState()
        assert state.mode == MODE_STANDARD
        assert state.current_recommendation is None
        assert state.last_signal_price is None

    def test_switch_mode_resets(self):
        state = SessionState(current_recommendation=_make_rec(), last_signal_price=100.0)
        state.switch_mode(MODE_SCALPING)
        assert state.mode == MODE_SCALPING
        assert state.current_recommendation is None
        assert state.last_signal_price is None

    def test_unknown_mode_rejected(self):
        current = _make_rec()
        state = SessionState(current_recommendation=current, last_signal_price=100.0)
        with pytest.raises(KeyError, match="Unknown mode"):
            state.switch_mode("swing")
        assert state.mode == MODE_STANDARD
        assert state.current_recommendation is current

    def test_registry_lookup(self):
        assert registry.get_classifier(MODE_STANDARD) is registry.CLASSIFIER_REGISTRY[MODE_STANDARD]
        with pytest.raises(KeyError):
            registry.get_classifier("nope")
