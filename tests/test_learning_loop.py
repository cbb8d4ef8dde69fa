"""Tests for signal_core/learning_loop.py"""

from datetime import datetime, timedelta, timezone

import pytest

from tests.conftest import make_trade


def mixed_trades():
    """6 wins of +3%, 4 losses of -2%; LONG wins 5/6, SHORT 1/4."""
    trades = [make_trade("LONG", 5, 3.0, aligned=True) for _ in range(3)]
    trades += [make_trade("LONG", 5, -2.0, aligned=False)]
    trades += [make_trade("SHORT", 5, 3.0, aligned=True)]
    trades += [make_trade("SHORT", 5, -2.0, aligned=False) for _ in range(3)]
    trades += [make_trade("LONG", 5, 3.0, aligned=True) for _ in range(2)]
    return trades


class TestTradeStats:
    def test_empty(self):
        from signal_core.learning_loop import compute_trade_stats
        stats = compute_trade_stats([])
        assert stats.total_trades == 0
        assert stats.win_rate == 0.0

    def test_core_metrics(self):
        from signal_core.learning_loop import compute_trade_stats
        stats = compute_trade_stats(mixed_trades())
        assert stats.total_trades == 10
        assert stats.win_rate == pytest.approx(60.0)
        assert stats.average_win == pytest.approx(3.0)
        assert stats.average_loss == pytest.approx(2.0)
        assert stats.payoff_ratio == pytest.approx(1.5)
        assert stats.expectancy == pytest.approx(1.0)

    def test_direction_rates(self):
        from signal_core.learning_loop import compute_trade_stats
        stats = compute_trade_stats(mixed_trades())
        assert stats.long_win_rate == pytest.approx(5 / 6 * 100)
        assert stats.short_win_rate == pytest.approx(25.0)
        assert stats.best_signal == "LONG"

    def test_direction_tie_goes_short(self):
        from signal_core.learning_loop import compute_trade_stats
        trades = [make_trade(signal, 5, pnl) for signal in ("LONG", "SHORT") for pnl in (3.0, -2.0)]
        stats = compute_trade_stats(trades)
        assert stats.long_win_rate == stats.short_win_rate == 50.0
        assert stats.best_signal == "SHORT"

    def test_optimal_leverage_needs_three_trades(self):
        from signal_core.learning_loop import compute_trade_stats
        trades = [make_trade(leverage=3, result_percent=4.0) for _ in range(3)]
        trades += [make_trade(leverage=10, result_percent=-2.0) for _ in range(3)]
        trades += [make_trade(leverage=20, result_percent=50.0) for _ in range(2)]
        assert compute_trade_stats(trades).optimal_leverage == 3

    def test_alignment_buckets(self):
        from signal_core.learning_loop import compute_trade_stats
        stats = compute_trade_stats(mixed_trades())
        assert stats.alignment["aligned"] == {"wins": 6, "total": 6}
        assert stats.alignment["divergent"] == {"wins": 0, "total": 4}

    def test_camel_case_alignment_key(self):
        from signal_core.learning_loop import compute_trade_stats
        trade = make_trade()
        trade["analysis_data"] = {"trendAlignment": True}
        assert compute_trade_stats([trade]).alignment["aligned"]["total"] == 1


class TestDeriveParameters:
    def test_healthy_stats_keep_defaults(self):
        from signal_core.learning_loop import compute_trade_stats, derive_parameters
        params = derive_parameters(compute_trade_stats(mixed_trades()))
        assert params.confidence_threshold == 60.0
        assert params.min_bullish_score == 8
        assert params.atr_multiplier_tp == 2.0
        assert params.preferred_signal == "LONG"

    def test_losing_stats_tighten(self):
        from signal_core.learning_loop import TradeStats, derive_parameters
        stats = TradeStats(total_trades=20, win_rate=40.0, payoff_ratio=1.0,
                           expectancy=-0.5, best_signal="SHORT", optimal_leverage=5)
        params = derive_parameters(stats)
        assert params.confidence_threshold == 70.0
        assert params.min_bullish_score == 10
        assert params.atr_multiplier_tp == 2.5
        assert params.max_leverage == 3
        assert params.preferred_signal == "SHORT"

    def test_leverage_floor(self):
        from signal_core.learning_loop import TradeStats, derive_parameters
        stats = TradeStats(expectancy=-1.0, optimal_leverage=2)
        assert derive_parameters(stats).max_leverage == 2


class TestInsights:
    def test_alignment_note(self):
        from signal_core.learning_loop import build_insights, compute_trade_stats
        insights = build_insights(compute_trade_stats(mixed_trades()))
        assert insights["performance"] == "excellent"
        assert any("Aligned timeframes" in n for n in insights["recommendations"])
        assert any("Focus on LONG" in n for n in insights["recommendations"])


class TestLearningEngine:
    def test_nine_trades_is_insufficient(self, mock_db):
        from signal_core.learning_loop import STATUS_INSUFFICIENT, LearningEngine
        mock_db.get_closed_trades.return_value = [make_trade() for _ in range(9)]
        report = LearningEngine(mock_db).run("user-1")
        assert report.status == STATUS_INSUFFICIENT
        assert report.trade_count == 9
        assert not report.sufficient
        mock_db.upsert_analysis_params.assert_not_called()

    def test_ten_trades_upserts(self, mock_db):
        from signal_core.learning_loop import STATUS_COMPLETE, LearningEngine
        mock_db.get_closed_trades.return_value = mixed_trades()
        report = LearningEngine(mock_db).run("user-1")
        assert report.status == STATUS_COMPLETE
        assert report.parameters_updated is True
        user_id, row = mock_db.upsert_analysis_params.call_args[0]
        assert user_id == "user-1"
        assert row["preferred_signal"] == "LONG"

    def test_lookback_window(self, mock_db):
        from signal_core.learning_loop import LOOKBACK_DAYS, LearningEngine
        now = datetime(2026, 3, 1, tzinfo=timezone.utc)
        LearningEngine(mock_db).run("user-1", now=now)
        mock_db.get_closed_trades.assert_called_once_with("user-1", now - timedelta(days=LOOKBACK_DAYS))

    def test_failed_upsert_reported(self, mock_db):
        from signal_core.learning_loop import LearningEngine
        mock_db.get_closed_trades.return_value = mixed_trades()
        mock_db.upsert_analysis_params.return_value = False
        assert LearningEngine(mock_db).run("user-1").parameters_updated is False

    def test_run_learning_engine_dict(self, mock_db):
        from signal_core.learning_loop import run_learning_engine
        mock_db.get_closed_trades.return_value = mixed_trades()
        result = run_learning_engine("user-1", db=mock_db)
        assert result["status"] == "complete"
        assert result["stats"]["total_trades"] == 10
        assert result["adjustments"]["max_leverage"] == 5
