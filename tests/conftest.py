"""Shared test fixtures for signal engine tests."""

import pytest
import numpy as np
from unittest.mock import MagicMock

from signal_core.data_layer import CandleSeries, MarketDataSource, Ticker24h
from signal_core.exceptions import NoDataError


def make_candles(closes, symbol="BTCUSDT", timeframe="1h", spread=0.5,
                 volumes=None, opens=None, highs=None, lows=None):
    """Build a CandleSeries around a close path with a fixed high/low spread."""
    closes = np.asarray(closes, dtype=float)
    n = len(closes)
    if opens is None:
        opens = np.concatenate([[closes[0]], closes[:-1]]) if n else closes
    return CandleSeries(
        symbol=symbol,
        timeframe=timeframe,
        opens=np.asarray(opens, dtype=float),
        highs=np.asarray(highs if highs is not None else closes + spread, dtype=float),
        lows=np.asarray(lows if lows is not None else closes - spread, dtype=float),
        closes=closes,
        volumes=np.asarray(volumes if volumes is not None else np.full(n, 1000.0), dtype=float),
        timestamps=np.arange(n, dtype=np.int64) * 3_600_000,
    )


def trending(n=120, start=100.0, step=0.5):
    return start + step * np.arange(n)


def make_ticker(symbol="BTCUSDT", price=100.0, change=1.0, quote_volume=5e8):
    return Ticker24h(symbol, price, change, quote_volume, price * 1.02, price * 0.98)


def make_trade(signal="LONG", leverage=5, result_percent=2.0, aligned=None):
    """Closed trade row as stored in the trades table."""
    trade = {
        "signal": signal,
        "leverage": leverage,
        "result_percent": result_percent,
        "status": "closed",
        "analysis_data": {},
    }
    if aligned is not None:
        trade["analysis_data"]["trend_alignment"] = aligned
    return trade


class FakeSource(MarketDataSource):
    """In-memory market data; missing symbols/timeframes raise NoDataError."""

    def __init__(self, candles=None, tickers=None):
        self.candles = candles or {}
        self.tickers = {t.symbol: t for t in (tickers or [])}
        self.calls = []

    def get_candles(self, symbol, timeframe, limit):
        self.calls.append((symbol, timeframe, limit))
        series = self.candles.get((symbol, timeframe))
        if series is None:
            raise NoDataError(symbol, f"no {timeframe} candles")
        return series

    def get_ticker_24h(self, symbol):
        if symbol not in self.tickers:
            raise NoDataError(symbol, "no ticker")
        return self.tickers[symbol]

    def get_all_tickers(self):
        return list(self.tickers.values())


@pytest.fixture
def mock_db():
    """Mock SignalDB that returns empty but doesn't crash."""
    db = MagicMock()
    db.connected = True
    db.get_analysis_params.return_value = None
    db.get_user_settings.return_value = None
    db.get_closed_trades.return_value = []
    db.list_user_ids.return_value = []
    db.upsert_analysis_params.return_value = True
    db.log_signal.return_value = True
    return db


@pytest.fixture
def disabled_adjuster():
    from signal_core.external_factors import ExternalFactorAdjuster
    return ExternalFactorAdjuster(client=MagicMock(), enabled=False)


def make_snapshot(**overrides):
    """Neutral snapshot: only the EMA cross fires (bearish, ema12 == ema26)."""
    from signal_core.trading_model import IndicatorSnapshot
    values = dict(
        price=100.0, rsi14=50.0, stoch_rsi=50.0,
        sma20=100.0, sma50=100.0, sma200=100.0, ema12=100.0, ema26=100.0,
        macd=0.0, macd_signal=0.0, macd_hist=0.0, macd_prev_hist=0.0,
        bb_upper=100.0, bb_middle=100.0, bb_lower=100.0,
        atr14=1.0, obv=0.0, adx=0.0, vwap=100.0,
        supertrend=99.0, supertrend_direction="BULLISH",
        volume_spike=False, price_up=False, daily_volatility_pct=2.0,
    )
    values.update(overrides)
    return IndicatorSnapshot(**values)
