"""Tests for signal_core/signal_composer.py"""

import numpy as np
import pytest


def _swing():
    from signal_core.parameters import TradeHorizonPolicy
    return TradeHorizonPolicy.for_trade_type("swing")


class TestExitLevels:
    def test_long_ordering(self):
        from signal_core.parameters import AnalysisParameters, Direction
        from signal_core.signal_composer import compute_exit_levels
        lv = compute_exit_levels(Direction.LONG, 100.0, 2.0, 10.0, AnalysisParameters(), _swing())
        assert lv.stop_loss < lv.entry < lv.take_profit_1 < lv.take_profit_2 < lv.take_profit_3

    def test_short_ordering(self):
        from signal_core.parameters import AnalysisParameters, Direction
        from signal_core.signal_composer import compute_exit_levels
        lv = compute_exit_levels(Direction.SHORT, 100.0, 2.0, 10.0, AnalysisParameters(), _swing())
        assert lv.take_profit_3 < lv.take_profit_2 < lv.take_profit_1 < lv.entry < lv.stop_loss

    def test_swing_levels(self):
        from signal_core.parameters import AnalysisParameters, Direction
        from signal_core.signal_composer import compute_exit_levels
        lv = compute_exit_levels(Direction.LONG, 100.0, 2.0, 10.0, AnalysisParameters(), _swing())
        assert lv.stop_loss == pytest.approx(98.0)
        assert lv.take_profit_1 == pytest.approx(104.0)
        assert lv.take_profit_2 == pytest.approx(108.0)
        assert lv.risk_reward == 4.0

    def test_strong_trend_stretches_targets(self):
        from signal_core.parameters import AnalysisParameters, Direction
        from signal_core.signal_composer import compute_exit_levels
        params = AnalysisParameters()
        calm = compute_exit_levels(Direction.LONG, 100.0, 2.0, 10.0, params, _swing())
        trend = compute_exit_levels(Direction.LONG, 100.0, 2.0, 30.0, params, _swing())
        assert trend.take_profit_2 - 100 == pytest.approx((calm.take_profit_2 - 100) * 1.2)
        assert trend.stop_loss == calm.stop_loss

    def test_neutral_collapses_to_entry(self):
        from signal_core.parameters import AnalysisParameters, Direction
        from signal_core.signal_composer import compute_exit_levels
        lv = compute_exit_levels(Direction.NEUTRAL, 100.0, 2.0, 30.0, AnalysisParameters(), _swing())
        assert set(lv.take_profits) == {100.0}
        assert lv.stop_loss == 100.0
        assert lv.risk_reward == 0.0

    def test_zero_atr_uses_floor(self):
        from signal_core.parameters import AnalysisParameters, Direction
        from signal_core.signal_composer import compute_exit_levels
        lv = compute_exit_levels(Direction.LONG, 100.0, 0.0, 10.0, AnalysisParameters(), _swing())
        assert lv.stop_loss < 100.0 < lv.take_profit_1

    def test_scalp_tighter_than_position(self):
        from signal_core.parameters import AnalysisParameters, Direction, TradeHorizonPolicy
        from signal_core.signal_composer import compute_exit_levels
        params = AnalysisParameters()
        scalp = compute_exit_levels(Direction.LONG, 100.0, 2.0, 10.0, params,
                                    TradeHorizonPolicy.for_trade_type("scalp"))
        position = compute_exit_levels(Direction.LONG, 100.0, 2.0, 10.0, params,
                                       TradeHorizonPolicy.for_trade_type("position"))
        assert scalp.take_profit_2 < position.take_profit_2
        assert scalp.stop_distance < position.stop_distance


class TestTimeHorizon:
    def test_insufficient_history(self):
        from signal_core.signal_composer import estimate_time_horizon
        assert estimate_time_horizon([100.0] * 5, 100.0, 105.0, 1e8).label == "INSUFFICIENT"

    def test_flat_market_caps_at_four_weeks(self):
        from signal_core.signal_composer import estimate_time_horizon
        horizon = estimate_time_horizon([100.0] * 30, 100.0, 105.0, 100.0 * 1_000_000)
        assert horizon.label == "LONG_TERM"
        assert horizon.estimate == "4w+"
        assert horizon.hours == 28 * 24

    def test_volatile_market_is_quick(self):
        from signal_core.signal_composer import estimate_time_horizon
        closes = 100 * np.cumprod(np.where(np.arange(40) % 2 == 0, 1.05, 1 / 1.05))
        horizon = estimate_time_horizon(closes, 100.0, 101.0, 1e9)
        assert horizon.label == "INTRADAY"
        assert 40 <= horizon.confidence <= 95


class TestSignal:
    def test_from_levels(self):
        from signal_core.parameters import Direction
        from signal_core.signal_composer import ExitLevels, Signal
        levels = ExitLevels(100.0, 98.0, 104.0, 108.0, 114.0, 4.0)
        sig = Signal.from_levels("ETHUSDT", Direction.LONG, levels, 3, 71.234)
        data = sig.to_dict()
        assert data["direction"] == "LONG"
        assert data["confidence"] == 71.2
        assert data["take_profit_3"] == 114.0
