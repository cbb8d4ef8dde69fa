#!/usr/bin/env python3
"""
INTRADAY SCANNER - VWAP / Supertrend setups on short timeframes

Looks at the most liquid USDT pairs on 5m candles (configurable) and keeps
setups where momentum, VWAP position, Supertrend and order-flow imbalance
agree. Exits are tight ATR multiples sized for holds of minutes to hours.
"""

import logging
from dataclasses import dataclass, asdict, field
from typing import Dict, List, Optional

import numpy as np

from . import indicators as ind
from .config import get_config
from .data_layer import CandleSeries, MarketDataSource, get_market_data
from .db import get_db
from .exceptions import NoDataError
from .opportunity_scorer import eligible_pairs, run_concurrently
from .parameters import AnalysisParameters, Direction
from .patterns import BREAKOUT, BULL_FLAG, VWAP_BOUNCE, VWAP_BREAKOUT, detect_patterns

logger = logging.getLogger(__name__)

MIN_QUOTE_VOLUME = 50_000_000
MIN_BARS = 50
IMBALANCE_BARS = 10
LONG_TRIGGERS = {BULL_FLAG, VWAP_BOUNCE, VWAP_BREAKOUT, BREAKOUT}

EXPECTED_DURATION = {
    "1m": "5-15 min",
    "5m": "15-45 min",
    "15m": "1-3 hours",
    "1h": "3-8 hours",
}

# ATR multiples
STOP_ATR = 0.5
TARGET_ATR = (0.8, 1.5, 2.5)


@dataclass
class IntradaySetup:
    symbol: str
    direction: Direction
    confidence: float
    entry_price: float
    stop_loss: float
    take_profits: List[float]
    timeframe: str
    expected_duration: str
    rsi: float
    vwap: float
    supertrend: str
    volume_imbalance: float
    volume_spike: bool
    patterns: List[str] = field(default_factory=list)
    reasons: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["direction"] = self.direction.value
        return data


def volume_imbalance(series: CandleSeries, bars: int = IMBALANCE_BARS) -> float:
    """(buy - sell) / total volume over the last bars; up-closes count as buying."""
    opens = series.opens[-bars:]
    closes = series.closes[-bars:]
    volumes = series.volumes[-bars:]
    total = float(np.sum(volumes))
    if total <= 0:
        return 0.0
    buy = float(np.sum(volumes[closes > opens]))
    sell = float(np.sum(volumes[closes < opens]))
    return (buy - sell) / total


def _volume_spike(volumes: np.ndarray) -> bool:
    if len(volumes) < 20:
        return False
    avg = float(np.mean(volumes[-20:-1]))
    return avg > 0 and volumes[-1] > avg * 2


def evaluate_setup(series: CandleSeries, params: Optional[AnalysisParameters] = None,
                   timeframe: str = "5m") -> Optional[IntradaySetup]:
    """Return a setup when every condition agrees, else None."""
    params = params or AnalysisParameters()
    if len(series) < MIN_BARS:
        raise NoDataError(series.symbol, f"only {len(series)} {timeframe} bars")

    highs, lows, closes = series.highs, series.lows, series.closes
    price = series.last_close
    rsi = ind.rsi(closes, 14)
    ema9, ema21 = ind.ema(closes, 9), ind.ema(closes, 21)
    atr = ind.atr(highs, lows, closes, 14)
    vwap = ind.vwap(highs, lows, closes, series.volumes)
    trend = ind.supertrend(highs, lows, closes)
    imbalance = volume_imbalance(series)
    spike = _volume_spike(series.volumes)
    patterns = detect_patterns(highs, lows, closes, vwap=vwap)

    direction = None
    reasons = []
    confidence = 65.0

    long_ok = (
        rsi < params.rsi_oversold_threshold + 5
        and ema9 > ema21
        and price > vwap * 0.998
        and trend.direction == "BULLISH"
        and imbalance > 0.2
        and any(p in LONG_TRIGGERS for p in patterns)
    )
    short_ok = (
        rsi > params.rsi_overbought_threshold - 5
        and ema9 < ema21
        and price < vwap * 1.002
        and trend.direction == "BEARISH"
        and imbalance < -0.2
    )

    if long_ok:
        direction = Direction.LONG
        reasons.append("EMA9 above EMA21 with price holding VWAP")
        if spike:
            confidence += 12
            reasons.append("Volume spike")
        if imbalance > 0.4:
            confidence += 8
            reasons.append(f"Strong buy imbalance ({imbalance:+.2f})")
        if BREAKOUT in patterns or VWAP_BREAKOUT in patterns:
            confidence += 10
            reasons.append("Breakout confirmed")
        if price > vwap * 1.002:
            confidence += 5
        if rsi < 30:
            confidence += 5
            reasons.append(f"RSI oversold ({rsi:.1f})")
    elif short_ok:
        direction = Direction.SHORT
        reasons.append("EMA9 below EMA21 with price under VWAP")
        if spike:
            confidence += 12
            reasons.append("Volume spike")
        if imbalance < -0.4:
            confidence += 8
            reasons.append(f"Strong sell imbalance ({imbalance:+.2f})")
        if price < vwap * 0.998:
            confidence += 5
        if rsi > 70:
            confidence += 5
            reasons.append(f"RSI overbought ({rsi:.1f})")

    if direction is None or confidence < params.confidence_threshold:
        return None

    atr = max(atr, price * 0.001)
    sign = 1 if direction == Direction.LONG else -1
    return IntradaySetup(
        symbol=series.symbol,
        direction=direction,
        confidence=min(confidence, 95.0),
        entry_price=price,
        stop_loss=price - sign * atr * STOP_ATR,
        take_profits=[price + sign * atr * m for m in TARGET_ATR],
        timeframe=timeframe,
        expected_duration=EXPECTED_DURATION.get(timeframe, "intraday"),
        rsi=round(rsi, 1),
        vwap=vwap,
        supertrend=trend.direction,
        volume_imbalance=round(imbalance, 3),
        volume_spike=spike,
        patterns=patterns,
        reasons=reasons,
    )


class IntradayScanner:
    """Scans liquid pairs for short-hold VWAP setups"""

    def __init__(self, source: Optional[MarketDataSource] = None, db=None,
                 max_workers: Optional[int] = None):
        cfg = get_config()
        self.source = source or get_market_data()
        self.db = db or get_db()
        self.max_workers = max_workers or cfg.market_data.max_workers
        self.quote = cfg.market_data.quote_asset

    def scan(self, timeframe: str = "5m", limit: int = 20,
             user_id: Optional[str] = None) -> List[IntradaySetup]:
        params = AnalysisParameters()
        if user_id:
            params = AnalysisParameters.from_row(self.db.get_analysis_params(user_id))

        pairs = eligible_pairs(self.source.get_all_tickers(), self.quote, limit,
                               min_quote_volume=MIN_QUOTE_VOLUME)
        symbols = [t.symbol for t in pairs]

        def analyze_pair(symbol: str) -> Optional[IntradaySetup]:
            series = self.source.get_candles(symbol, timeframe, 200)
            return evaluate_setup(series, params, timeframe)

        results, failures = run_concurrently(symbols, analyze_pair, self.max_workers,
                                             label="intraday-scan")
        setups = [s for s in results.values() if s is not None]
        setups.sort(key=lambda s: s.confidence, reverse=True)
        logger.info(f"Intraday scan ({timeframe}): {len(setups)} setups from "
                    f"{len(symbols)} pairs ({len(failures)} skipped)")
        return setups


def scan_intraday(timeframe: str = "5m", limit: int = 20,
                  user_id: Optional[str] = None, **kwargs) -> List[IntradaySetup]:
    return IntradayScanner(**kwargs).scan(timeframe, limit, user_id)
