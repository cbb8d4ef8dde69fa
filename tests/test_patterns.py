"""Tests for signal_core/patterns.py"""

import numpy as np


def _bars(closes, spread=0.5):
    closes = np.asarray(closes, dtype=float)
    return closes + spread, closes - spread, closes


class TestDetectPatterns:
    def test_too_few_bars(self):
        from signal_core.patterns import detect_patterns
        h, l, c = _bars([100.0] * 10)
        assert detect_patterns(h, l, c) == []

    def test_breakout_and_vwap_breakout(self):
        from signal_core.patterns import BREAKOUT, VWAP_BREAKOUT, detect_patterns
        h, l, c = _bars([100.0] * 19 + [105.0])
        found = detect_patterns(h, l, c, vwap=100.2)
        assert BREAKOUT in found
        assert VWAP_BREAKOUT in found

    def test_vwap_rejection(self):
        from signal_core.patterns import VWAP_REJECTION, detect_patterns
        h, l, c = _bars([100.0] * 19 + [98.0])
        assert VWAP_REJECTION in detect_patterns(h, l, c, vwap=99.5)

    def test_double_top(self):
        from signal_core.patterns import DOUBLE_TOP, detect_patterns
        closes = np.full(20, 100.0)
        highs = closes + 0.5
        highs[3] = highs[12] = 110.0
        assert DOUBLE_TOP in detect_patterns(highs, closes - 0.5, closes)

    def test_single_peak_is_not_double_top(self):
        from signal_core.patterns import DOUBLE_TOP, detect_patterns
        closes = np.full(20, 100.0)
        highs = closes + 0.5
        highs[8] = 110.0
        assert DOUBLE_TOP not in detect_patterns(highs, closes - 0.5, closes)

    def test_no_vwap_patterns_without_vwap(self):
        from signal_core.patterns import VWAP_BOUNCE, VWAP_BREAKOUT, VWAP_REJECTION, detect_patterns
        h, l, c = _bars([100.0] * 19 + [105.0])
        found = detect_patterns(h, l, c)
        assert not {VWAP_BOUNCE, VWAP_BREAKOUT, VWAP_REJECTION} & set(found)

    def test_pattern_sets_disjoint(self):
        from signal_core.patterns import BEARISH_PATTERNS, BULLISH_PATTERNS
        assert not BULLISH_PATTERNS & BEARISH_PATTERNS

    def test_double_bottom(self):
        from signal_core.patterns import DOUBLE_BOTTOM, detect_patterns
        closes = np.full(20, 100.0)
        lows = closes - 0.5
        lows[3] = lows[12] = 90.0
        assert DOUBLE_BOTTOM in detect_patterns(closes + 0.5, lows, closes)

    def test_ascending_triangle(self):
        from signal_core.patterns import ASCENDING_TRIANGLE, DESCENDING_TRIANGLE, detect_patterns
        closes = np.linspace(95.0, 100.0, 20)
        found = detect_patterns(np.full(20, 101.0), closes - 1.0, closes)
        assert ASCENDING_TRIANGLE in found
        assert DESCENDING_TRIANGLE not in found

    def test_head_and_shoulders(self):
        from signal_core.patterns import HEAD_AND_SHOULDERS, detect_patterns
        closes = np.full(30, 100.0)
        highs = closes + 0.5
        highs[5], highs[15], highs[25] = 110.0, 120.0, 110.5
        assert HEAD_AND_SHOULDERS in detect_patterns(highs, closes - 0.5, closes)

    def test_uneven_shoulders_are_not_head_and_shoulders(self):
        from signal_core.patterns import HEAD_AND_SHOULDERS, detect_patterns
        closes = np.full(30, 100.0)
        highs = closes + 0.5
        highs[5], highs[15], highs[25] = 110.0, 120.0, 118.0
        assert HEAD_AND_SHOULDERS not in detect_patterns(highs, closes - 0.5, closes)

    def test_support_bounce(self):
        from signal_core.patterns import BREAKOUT, SUPPORT_BOUNCE, detect_patterns
        closes = np.full(20, 100.0)
        found = detect_patterns(closes + 1.0, closes - 0.2, closes)
        assert SUPPORT_BOUNCE in found
        assert BREAKOUT not in found

    def test_vwap_bounce(self):
        from signal_core.patterns import VWAP_BOUNCE, VWAP_BREAKOUT, detect_patterns
        h, l, c = _bars([100.0] * 19 + [100.5])
        found = detect_patterns(h, l, c, vwap=100.45)
        assert VWAP_BOUNCE in found
        assert VWAP_BREAKOUT not in found
