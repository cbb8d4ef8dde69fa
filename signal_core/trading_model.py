#!/usr/bin/env python3
"""
TRADING MODEL - The Core Signal Scoring Engine

Turns the latest bar of a candle series into an immutable indicator
snapshot, then accumulates two point totals (bullish, bearish) from a
deterministic rule table:

1. RSI - tiered against the user's oversold/overbought thresholds
2. Stochastic RSI - <20 / >80
3. MACD - histogram polarity, with momentum and zero-line bonuses
4. Bollinger Bands - position inside the band
5. Moving Average stack (SMA 20/50/200) and EMA 12/26 cross
6. ADX - strong trend bonus to the short-term side
7. Multi-timeframe alignment (1h/4h/1d)
8. Volume spike with price confirmation

Confidence = max(bull, bear) / (bull + bear) * 100, 50 when both are zero.

Direction:
- FORCE_DIRECTION: higher score wins, ties go to the daily master trend
- ALLOW_NEUTRAL: a side wins only past the confidence and min-score gates
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from . import indicators as ind
from .data_layer import CandleSeries
from .parameters import AnalysisParameters, Direction, SignalPolicy

logger = logging.getLogger(__name__)

BULLISH = "bullish"
BEARISH = "bearish"


@dataclass(frozen=True)
class IndicatorSnapshot:
    """All computed indicators for the latest bar of one series"""
    price: float
    rsi14: float
    stoch_rsi: float
    sma20: float
    sma50: float
    sma200: float
    ema12: float
    ema26: float
    macd: float
    macd_signal: float
    macd_hist: float
    macd_prev_hist: float
    bb_upper: float
    bb_middle: float
    bb_lower: float
    atr14: float
    obv: float
    adx: float
    vwap: float
    supertrend: float
    supertrend_direction: str
    volume_spike: bool
    price_up: bool
    daily_volatility_pct: float

    @property
    def bb_position(self) -> float:
        """0 = at lower band, 1 = at upper band."""
        width = self.bb_upper - self.bb_lower
        if width <= 0:
            return 0.5
        return (self.price - self.bb_lower) / width

    @property
    def volatility_pct(self) -> float:
        """ATR as a percent of price."""
        return self.atr14 / self.price * 100 if self.price > 0 else 0.0

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["bb_position"] = round(self.bb_position, 4)
        data["volatility_pct"] = round(self.volatility_pct, 4)
        return data


def compute_snapshot(series: CandleSeries,
                     daily_closes: Optional[Sequence[float]] = None) -> IndicatorSnapshot:
    """Compute every indicator for the latest bar of `series`."""
    c, h, l, v = series.closes, series.highs, series.lows, series.volumes
    price = series.last_close

    macd_result = ind.macd(c)
    bands = ind.bollinger_bands(c, 20, 2.0)
    trend = ind.supertrend(h, l, c)
    vol_source = daily_closes if daily_closes is not None and len(daily_closes) >= 3 else c

    return IndicatorSnapshot(
        price=price,
        rsi14=ind.rsi(c, 14),
        stoch_rsi=ind.stoch_rsi(c, 14),
        sma20=ind.sma(c, 20),
        sma50=ind.sma(c, 50),
        sma200=ind.sma(c, 200),
        ema12=ind.ema(c, 12),
        ema26=ind.ema(c, 26),
        macd=macd_result.macd,
        macd_signal=macd_result.signal,
        macd_hist=macd_result.histogram,
        macd_prev_hist=macd_result.prev_histogram,
        bb_upper=bands.upper,
        bb_middle=bands.middle,
        bb_lower=bands.lower,
        atr14=ind.atr(h, l, c, 14),
        obv=ind.obv(c, v),
        adx=ind.adx(h, l, c, 14),
        vwap=ind.vwap(h[-24:], l[-24:], c[-24:], v[-24:]),
        supertrend=trend.value,
        supertrend_direction=trend.direction,
        volume_spike=ind.volume_spike(v, 20, 1.5),
        price_up=bool(len(c) >= 2 and c[-1] > c[-2]),
        daily_volatility_pct=ind.daily_volatility(vol_source),
    )


# === MULTI-TIMEFRAME ===

@dataclass(frozen=True)
class TimeframeTrends:
    h1: Optional[str]
    h4: Optional[str]
    d1: Optional[str]

    @property
    def aligned(self) -> bool:
        return self.h1 is not None and self.h1 == self.h4 == self.d1

    def to_dict(self) -> Dict:
        return {"1h": self.h1, "4h": self.h4, "1d": self.d1, "aligned": self.aligned}


def _above(closes: np.ndarray, period: int) -> Optional[str]:
    if not len(closes):
        return None
    return BULLISH if closes[-1] > ind.sma(closes, period) else BEARISH


def compute_trends(snapshot: IndicatorSnapshot, closes_4h: Sequence[float],
                   closes_1d: Sequence[float]) -> TimeframeTrends:
    """1h from EMA 12/26, 4h from price vs SMA20, 1d from price vs SMA50."""
    h1 = BULLISH if snapshot.ema12 > snapshot.ema26 else BEARISH
    return TimeframeTrends(
        h1=h1,
        h4=_above(np.asarray(closes_4h, dtype=float), 20),
        d1=_above(np.asarray(closes_1d, dtype=float), 50),
    )


def master_trend(price: float, closes_1d: Sequence[float],
                 params: AnalysisParameters) -> Direction:
    """Price vs EMA20 of daily closes; falls back to the preferred signal."""
    daily = np.asarray(closes_1d, dtype=float)
    if not len(daily) or price <= 0:
        return params.preferred_direction
    reference = ind.ema(daily, 20)
    if price > reference:
        return Direction.LONG
    if price < reference:
        return Direction.SHORT
    return params.preferred_direction


# === SCORING ===

@dataclass(frozen=True)
class ScoringWeights:
    """Point values per rule tier. Hand-tuned defaults, not a fitted model."""
    rsi_extreme: int = 3
    rsi_strong: int = 2
    rsi_mild: int = 1
    stoch_rsi: int = 2
    macd_cross: int = 2
    macd_zero_line: int = 1
    macd_momentum: int = 1
    bb_extreme: int = 3
    bb_strong: int = 2
    ma_full_stack: int = 3
    ma_partial_stack: int = 2
    ema_cross: int = 2
    adx_trend: int = 1
    adx_threshold: float = 25.0
    timeframe_alignment: int = 3
    volume_spike: int = 2


DEFAULT_WEIGHTS = ScoringWeights()


class Contribution(NamedTuple):
    indicator: str
    side: str
    points: int
    detail: str


@dataclass(frozen=True)
class ScoringResult:
    bullish_score: int
    bearish_score: int
    contributions: Tuple[Contribution, ...] = ()

    @property
    def confidence(self) -> float:
        total = self.bullish_score + self.bearish_score
        if total <= 0:
            return 50.0
        return max(self.bullish_score, self.bearish_score) / total * 100

    def fired(self, indicator: str) -> bool:
        return any(c.indicator == indicator for c in self.contributions)

    def to_dict(self) -> Dict:
        return {
            "bullish_score": self.bullish_score,
            "bearish_score": self.bearish_score,
            "confidence": round(self.confidence, 1),
            "contributions": [c._asdict() for c in self.contributions],
        }


class TradingModel:
    """
    The core scoring engine.

    Holds the per-request parameters, policy and weights; every method is
    a pure function of its arguments plus those values.
    """

    def __init__(self, params: Optional[AnalysisParameters] = None,
                 policy: SignalPolicy = SignalPolicy.FORCE_DIRECTION,
                 weights: ScoringWeights = DEFAULT_WEIGHTS):
        self.params = params or AnalysisParameters()
        self.policy = policy
        self.weights = weights

    def score(self, snap: IndicatorSnapshot, trends: TimeframeTrends) -> ScoringResult:
        w = self.weights
        found: List[Contribution] = []

        def add(indicator: str, side: str, points: int, detail: str):
            found.append(Contribution(indicator, side, points, detail))

        # === RSI ===
        oversold = self.params.rsi_oversold_threshold
        overbought = self.params.rsi_overbought_threshold
        r = snap.rsi14
        if r < oversold - 5:
            add("rsi", BULLISH, w.rsi_extreme, f"RSI {r:.1f} deeply oversold")
        elif r < oversold:
            add("rsi", BULLISH, w.rsi_strong, f"RSI {r:.1f} oversold")
        elif r < oversold + 10:
            add("rsi", BULLISH, w.rsi_mild, f"RSI {r:.1f} near oversold")
        elif r > overbought + 5:
            add("rsi", BEARISH, w.rsi_extreme, f"RSI {r:.1f} deeply overbought")
        elif r > overbought:
            add("rsi", BEARISH, w.rsi_strong, f"RSI {r:.1f} overbought")
        elif r > overbought - 10:
            add("rsi", BEARISH, w.rsi_mild, f"RSI {r:.1f} near overbought")

        # === STOCH RSI ===
        if snap.stoch_rsi < 20:
            add("stoch_rsi", BULLISH, w.stoch_rsi, f"StochRSI {snap.stoch_rsi:.0f}")
        elif snap.stoch_rsi > 80:
            add("stoch_rsi", BEARISH, w.stoch_rsi, f"StochRSI {snap.stoch_rsi:.0f}")

        # === MACD ===
        if snap.macd_hist > 0 and snap.macd > snap.macd_signal:
            bonus = w.macd_zero_line if snap.macd > 0 else 0
            add("macd", BULLISH, w.macd_cross + bonus, "MACD above signal")
        elif snap.macd_hist < 0 and snap.macd < snap.macd_signal:
            bonus = w.macd_zero_line if snap.macd < 0 else 0
            add("macd", BEARISH, w.macd_cross + bonus, "MACD below signal")

        if snap.macd_hist > 0 and snap.macd_hist > snap.macd_prev_hist:
            add("macd_momentum", BULLISH, w.macd_momentum, "MACD histogram rising")
        elif snap.macd_hist < 0 and snap.macd_hist < snap.macd_prev_hist:
            add("macd_momentum", BEARISH, w.macd_momentum, "MACD histogram falling")

        # === BOLLINGER ===
        pos = snap.bb_position
        if pos < 0.1:
            add("bollinger", BULLISH, w.bb_extreme, "price at lower Bollinger band")
        elif pos < 0.25:
            add("bollinger", BULLISH, w.bb_strong, "price in lower Bollinger quarter")
        elif pos > 0.9:
            add("bollinger", BEARISH, w.bb_extreme, "price at upper Bollinger band")
        elif pos > 0.75:
            add("bollinger", BEARISH, w.bb_strong, "price in upper Bollinger quarter")

        # === MOVING AVERAGES ===
        p = snap.price
        if p > snap.sma20 > snap.sma50 > snap.sma200:
            add("ma_stack", BULLISH, w.ma_full_stack, "price > SMA20 > SMA50 > SMA200")
        elif p < snap.sma20 < snap.sma50 < snap.sma200:
            add("ma_stack", BEARISH, w.ma_full_stack, "price < SMA20 < SMA50 < SMA200")
        elif p > snap.sma20 > snap.sma50:
            add("ma_stack", BULLISH, w.ma_partial_stack, "price > SMA20 > SMA50")
        elif p < snap.sma20 < snap.sma50:
            add("ma_stack", BEARISH, w.ma_partial_stack, "price < SMA20 < SMA50")

        if snap.ema12 > snap.ema26:
            add("ema_cross", BULLISH, w.ema_cross, "EMA12 above EMA26")
        else:
            add("ema_cross", BEARISH, w.ema_cross, "EMA12 below EMA26")

        # === ADX ===
        if snap.adx > w.adx_threshold:
            add("adx", trends.h1 or BULLISH, w.adx_trend, f"strong trend (ADX {snap.adx:.0f})")

        # === MULTI-TIMEFRAME ===
        if trends.aligned:
            add("timeframes", trends.h1, w.timeframe_alignment, "1h/4h/1d trends aligned")

        # === VOLUME ===
        if snap.volume_spike:
            side = BULLISH if snap.price_up else BEARISH
            add("volume", side, w.volume_spike, "volume spike above 1.5x average")

        bull = sum(c.points for c in found if c.side == BULLISH)
        bear = sum(c.points for c in found if c.side == BEARISH)
        return ScoringResult(bull, bear, tuple(found))

    def resolve_direction(self, result: ScoringResult,
                          master: Optional[Direction] = None) -> Direction:
        bull, bear = result.bullish_score, result.bearish_score

        if self.policy == SignalPolicy.FORCE_DIRECTION:
            if bull > bear:
                return Direction.LONG
            if bear > bull:
                return Direction.SHORT
            tiebreak = master or self.params.preferred_direction
            logger.debug(f"Score tie {bull}-{bear}, master trend {tiebreak.value}")
            return tiebreak

        gate = self.params.confidence_threshold - 2
        if bull > bear and result.confidence > gate and bull >= self.params.min_bullish_score:
            return Direction.LONG
        if bear > bull and result.confidence > gate and bear >= self.params.min_bullish_score:
            return Direction.SHORT
        return Direction.NEUTRAL
