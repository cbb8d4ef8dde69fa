"""Tests for signal_core/opportunity_scorer.py"""

import numpy as np
import pytest

from tests.conftest import FakeSource, make_candles, make_ticker, trending


def _daily(symbol, closes):
    return make_candles(closes, symbol, "1d", volumes=np.linspace(1000, 3000, len(closes)))


def _market(btc_change=1.0):
    """Four pairs with different shapes plus the reference BTC ticker."""
    crash_then_recover = np.concatenate([np.linspace(300, 60, 70), np.linspace(60, 80, 30)])
    series = {
        "BTCUSDT": trending(100, 20000, 50),
        "ETHUSDT": trending(100, 1000, 5),
        "SOLUSDT": crash_then_recover,
        "ADAUSDT": 1 + 0.01 * np.sin(np.arange(100)),
    }
    candles = {(sym, "1d"): _daily(sym, closes) for sym, closes in series.items()}
    tickers = [
        make_ticker("BTCUSDT", series["BTCUSDT"][-1], btc_change, 2e9),
        make_ticker("ETHUSDT", series["ETHUSDT"][-1], 2.0, 1e9),
        make_ticker("SOLUSDT", series["SOLUSDT"][-1], 9.0, 6e8),
        make_ticker("ADAUSDT", series["ADAUSDT"][-1], 0.5, 8e7),
        make_ticker("DOGEUSDT", 0.1, 1.0, 7e7),  # no candles
    ]
    return FakeSource(candles, tickers)


class TestEligiblePairs:
    def test_filters_and_sorts(self):
        from signal_core.opportunity_scorer import eligible_pairs
        tickers = [
            make_ticker("ETHUSDT", quote_volume=1e9),
            make_ticker("BTCUSDT", quote_volume=2e9),
            make_ticker("BTCUPUSDT", quote_volume=5e9),
            make_ticker("ETHBTC", quote_volume=9e9),
            make_ticker("XRPUSDT", quote_volume=1e8),
        ]
        pairs = eligible_pairs(tickers, "USDT", limit=2)
        assert [t.symbol for t in pairs] == ["BTCUSDT", "ETHUSDT"]

    def test_min_quote_volume(self):
        from signal_core.opportunity_scorer import eligible_pairs
        tickers = [make_ticker("ETHUSDT", quote_volume=1e9), make_ticker("XRPUSDT", quote_volume=1e6)]
        assert len(eligible_pairs(tickers, min_quote_volume=5e7)) == 1


class TestScoreOpportunity:
    def test_requires_fifty_daily_bars(self):
        from signal_core.exceptions import NoDataError
        from signal_core.opportunity_scorer import score_opportunity
        with pytest.raises(NoDataError):
            score_opportunity(make_ticker("ETHUSDT"), _daily("ETHUSDT", trending(30)))

    def test_components_sum(self):
        from signal_core.opportunity_scorer import score_opportunity
        opp = score_opportunity(make_ticker("ETHUSDT", 1495.0, 2.0, 1e9),
                                _daily("ETHUSDT", trending(100, 1000, 5)))
        assert opp.name == "ETH"
        assert opp.score == pytest.approx(opp.technical_score + opp.fundamental_score
                                          + opp.sentiment_score, abs=0.1)
        assert opp.momentum > 0
        assert opp.catalysts
        assert "ETH" in opp.thesis

    def test_deep_drawdown_recovery_catalyst(self):
        from signal_core.opportunity_scorer import score_opportunity
        closes = np.concatenate([np.linspace(300, 60, 70), np.linspace(60, 80, 30)])
        opp = score_opportunity(make_ticker("SOLUSDT", closes[-1], 9.0, 6e8), _daily("SOLUSDT", closes))
        assert opp.drawdown_from_high < -60
        assert any("drawdown" in c for c in opp.catalysts)

    def test_safety_mode_threshold(self):
        from signal_core.opportunity_scorer import safety_mode_active
        assert safety_mode_active(make_ticker(change=-12.0)) is True
        assert safety_mode_active(make_ticker(change=4.0)) is False
        assert safety_mode_active(None) is False


class TestMarketScanner:
    def test_failed_symbols_are_skipped(self, mock_db):
        from signal_core.opportunity_scorer import MarketScanner
        report = MarketScanner(_market(), db=mock_db, max_workers=2).scan(limit=10, score_threshold=-100)
        assert "DOGEUSDT" in report.failures
        assert {o.symbol for o in report.opportunities} == {"BTCUSDT", "ETHUSDT", "SOLUSDT", "ADAUSDT"}

    def test_sorted_by_score(self, mock_db):
        from signal_core.opportunity_scorer import MarketScanner
        report = MarketScanner(_market(), db=mock_db, max_workers=2).scan(limit=10, score_threshold=-100)
        scores = [o.score for o in report.opportunities]
        assert scores == sorted(scores, reverse=True)

    def test_safety_mode_never_adds_results(self, mock_db):
        from signal_core.opportunity_scorer import MarketScanner
        for threshold in (-100, 0, 20, 40):
            calm = MarketScanner(_market(1.0), db=mock_db, max_workers=2).scan(10, threshold)
            stressed = MarketScanner(_market(-15.0), db=mock_db, max_workers=2).scan(10, threshold)
            assert not calm.safety_mode
            assert stressed.safety_mode
            assert stressed.effective_threshold == threshold + 10
            assert len(stressed.opportunities) <= len(calm.opportunities)
            assert all(o.score >= threshold + 10 for o in stressed.opportunities)

    def test_user_params_loaded(self, mock_db):
        from signal_core.opportunity_scorer import MarketScanner
        MarketScanner(_market(), db=mock_db, max_workers=2).scan(10, 0, user_id="u1")
        mock_db.get_analysis_params.assert_called_once_with("u1")
