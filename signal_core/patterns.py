#!/usr/bin/env python3
"""
PATTERN DETECTOR - Heuristic chart-pattern scan over the most recent bars

Each check runs independently so several labels can fire on the same bar.
Series shorter than 20 bars return an empty list.
"""

from typing import List, Optional, Sequence

import numpy as np

DOUBLE_TOP = "Double Top"
DOUBLE_BOTTOM = "Double Bottom"
ASCENDING_TRIANGLE = "Ascending Triangle"
DESCENDING_TRIANGLE = "Descending Triangle"
HEAD_AND_SHOULDERS = "Head and Shoulders"
BULL_FLAG = "Bull Flag"
PENNANT = "Pennant"
BREAKOUT = "Breakout"
SUPPORT_BOUNCE = "Support Bounce"
VWAP_BOUNCE = "VWAP Bounce"
VWAP_BREAKOUT = "VWAP Breakout"
VWAP_REJECTION = "VWAP Rejection"

BULLISH_PATTERNS = {
    DOUBLE_BOTTOM, ASCENDING_TRIANGLE, BULL_FLAG, BREAKOUT,
    SUPPORT_BOUNCE, VWAP_BOUNCE, VWAP_BREAKOUT,
}
BEARISH_PATTERNS = {
    DOUBLE_TOP, DESCENDING_TRIANGLE, HEAD_AND_SHOULDERS, VWAP_REJECTION,
}

MIN_BARS = 20
EXTREMA_TOLERANCE = 0.003
MIN_EXTREMA_GAP = 5


def _double_extrema(values: np.ndarray, top: bool) -> bool:
    """Two near-equal extremes at least MIN_EXTREMA_GAP bars apart."""
    extreme = values.max() if top else values.min()
    if extreme <= 0:
        return False
    if top:
        near = np.where(values >= extreme * (1 - EXTREMA_TOLERANCE))[0]
    else:
        near = np.where(values <= extreme * (1 + EXTREMA_TOLERANCE))[0]
    return len(near) >= 2 and near[-1] - near[0] >= MIN_EXTREMA_GAP


def _flat(values: np.ndarray) -> bool:
    mean = float(np.mean(values))
    return mean > 0 and float(np.std(values)) / mean < 0.01


def detect_patterns(highs: Sequence[float], lows: Sequence[float],
                    closes: Sequence[float],
                    vwap: Optional[float] = None) -> List[str]:
    h = np.asarray(highs, dtype=float)
    l = np.asarray(lows, dtype=float)
    c = np.asarray(closes, dtype=float)
    if min(len(h), len(l), len(c)) < MIN_BARS:
        return []

    patterns: List[str] = []
    price = float(c[-1])
    recent_highs, recent_lows = h[-20:], l[-20:]

    # === DOUBLE TOP / BOTTOM ===
    if _double_extrema(recent_highs, top=True):
        patterns.append(DOUBLE_TOP)
    if _double_extrema(recent_lows, top=False):
        patterns.append(DOUBLE_BOTTOM)

    # === TRIANGLES ===
    mid_highs, mid_lows = h[-15:], l[-15:]
    if _flat(mid_highs) and mid_lows[-1] > mid_lows[0]:
        patterns.append(ASCENDING_TRIANGLE)
    if _flat(mid_lows) and mid_highs[-1] < mid_highs[0]:
        patterns.append(DESCENDING_TRIANGLE)

    # === HEAD AND SHOULDERS ===
    if len(h) >= 30:
        window = h[-30:]
        left, head, right = window[:10].max(), window[10:20].max(), window[20:].max()
        if head > left and head > right and abs(left - right) < left * 0.05:
            patterns.append(HEAD_AND_SHOULDERS)

    # === FLAG / PENNANT ===
    consolidation = recent_highs[-5:].max() - recent_lows[-5:].min()
    half_range = (recent_highs.max() - recent_lows.min()) / 2
    if c[-1] > c[-10] and half_range > 0 and consolidation < half_range * 0.3:
        patterns.append(BULL_FLAG)
    if recent_lows[-1] > recent_lows[-5] and recent_highs[-1] < recent_highs[-5]:
        patterns.append(PENNANT)

    # === BREAKOUT / SUPPORT ===
    prior_high = recent_highs[:-2].max()
    prior_low = recent_lows[:-2].min()
    if price > prior_high * 1.01:
        patterns.append(BREAKOUT)
    if prior_low < price < prior_low * 1.005:
        patterns.append(SUPPORT_BOUNCE)

    # === VWAP ===
    if vwap and vwap > 0:
        prev = float(c[-2])
        if abs(price - vwap) / vwap < 0.001 and price > prev:
            patterns.append(VWAP_BOUNCE)
        if price > vwap * 1.005 and prev < vwap:
            patterns.append(VWAP_BREAKOUT)
        if price < vwap * 0.995 and prev > vwap:
            patterns.append(VWAP_REJECTION)

    return patterns
