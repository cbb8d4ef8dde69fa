#!/usr/bin/env python3
"""
INDICATORS - Stateless technical indicator library

Every function takes numeric arrays (oldest first) and returns a scalar or a
small result tuple. Short or empty windows return a neutral default instead
of raising or producing NaN:

- RSI / StochRSI: 50
- SMA / EMA: last value (0.0 when empty)
- MACD: zeros
- Bollinger: all bands at the last close
- ATR / ADX / OBV: 0
- VWAP: last close
- Supertrend: last close, NEUTRAL direction
"""

from typing import NamedTuple, Sequence

import numpy as np


class MACDResult(NamedTuple):
    macd: float
    signal: float
    histogram: float
    prev_histogram: float


class BollingerBands(NamedTuple):
    upper: float
    middle: float
    lower: float


class SupertrendResult(NamedTuple):
    value: float
    direction: str  # "BULLISH", "BEARISH", "NEUTRAL"


def _arr(data: Sequence[float]) -> np.ndarray:
    return np.asarray(data, dtype=float)


def _last(data: np.ndarray) -> float:
    return float(data[-1]) if len(data) else 0.0


# === RSI ===

def rsi(closes: Sequence[float], period: int = 14) -> float:
    """Simple-average RSI over the last `period` deltas."""
    c = _arr(closes)
    if len(c) < period + 1:
        return 50.0
    deltas = np.diff(c[-(period + 1):])
    avg_gain = float(np.sum(deltas[deltas > 0])) / period
    avg_loss = float(-np.sum(deltas[deltas < 0])) / period
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return float(100 - (100 / (1 + rs)))


def stoch_rsi(closes: Sequence[float], period: int = 14) -> float:
    """Latest RSI normalised against the min/max of the last 14 RSI readings."""
    c = _arr(closes)
    rsi_values = [rsi(c[i - period:i + 1], period) for i in range(period, len(c))]
    if len(rsi_values) < 14:
        return 50.0
    recent = rsi_values[-14:]
    lo, hi = min(recent), max(recent)
    if hi == lo:
        return 50.0
    return float((recent[-1] - lo) / (hi - lo) * 100)


# === MOVING AVERAGES ===

def sma(data: Sequence[float], period: int) -> float:
    d = _arr(data)
    if len(d) < period:
        return _last(d)
    return float(np.mean(d[-period:]))


def ema_series(data: Sequence[float], period: int) -> np.ndarray:
    """EMA values from index period-1 onward, seeded with the SMA of the first window."""
    d = _arr(data)
    if len(d) < period:
        return np.array([], dtype=float)
    k = 2.0 / (period + 1)
    out = np.empty(len(d) - period + 1)
    out[0] = np.mean(d[:period])
    for i, price in enumerate(d[period:], start=1):
        out[i] = price * k + out[i - 1] * (1 - k)
    return out


def ema(data: Sequence[float], period: int) -> float:
    series = ema_series(data, period)
    if not len(series):
        return _last(_arr(data))
    return float(series[-1])


# === MACD ===

def macd(closes: Sequence[float], fast: int = 12, slow: int = 26,
         signal: int = 9) -> MACDResult:
    """MACD line, EMA(signal) of the reconstructed MACD series, and histograms."""
    c = _arr(closes)
    if len(c) < slow:
        return MACDResult(0.0, 0.0, 0.0, 0.0)

    fast_series = ema_series(c, fast)[slow - fast:]
    slow_series = ema_series(c, slow)
    macd_line = fast_series - slow_series

    if len(macd_line) < signal:
        value = float(macd_line[-1])
        return MACDResult(value, value, 0.0, 0.0)

    signal_line = ema_series(macd_line, signal)
    hist = float(macd_line[-1] - signal_line[-1])
    prev_hist = float(macd_line[-2] - signal_line[-2]) if len(signal_line) > 1 else hist
    return MACDResult(float(macd_line[-1]), float(signal_line[-1]), hist, prev_hist)


# === BOLLINGER BANDS ===

def bollinger_bands(closes: Sequence[float], period: int = 20,
                    std_mult: float = 2.0) -> BollingerBands:
    c = _arr(closes)
    if len(c) < period:
        last = _last(c)
        return BollingerBands(last, last, last)
    window = c[-period:]
    middle = float(np.mean(window))
    std = float(np.std(window))
    return BollingerBands(middle + std_mult * std, middle, middle - std_mult * std)


# === VOLATILITY ===

def true_range(highs: Sequence[float], lows: Sequence[float],
               closes: Sequence[float]) -> np.ndarray:
    h, l, c = _arr(highs), _arr(lows), _arr(closes)
    if len(c) < 2:
        return np.array([], dtype=float)
    return np.maximum(
        h[1:] - l[1:],
        np.maximum(np.abs(h[1:] - c[:-1]), np.abs(l[1:] - c[:-1])),
    )


def atr(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float],
        period: int = 14) -> float:
    """SMA of true range; fewer bars than the period averages what exists."""
    tr = true_range(highs, lows, closes)
    if not len(tr):
        return 0.0
    return float(np.mean(tr[-period:]))


def daily_volatility(closes: Sequence[float]) -> float:
    """Standard deviation of close-to-close returns, in percent."""
    c = _arr(closes)
    if len(c) < 3:
        return 0.0
    prev = c[:-1]
    returns = np.divide(np.diff(c), prev, out=np.zeros(len(prev)), where=prev != 0)
    return float(np.std(returns) * 100)


# === VOLUME ===

def obv(closes: Sequence[float], volumes: Sequence[float]) -> float:
    c, v = _arr(closes), _arr(volumes)
    if len(c) < 2 or len(v) != len(c):
        return 0.0
    direction = np.sign(np.diff(c))
    return float(np.sum(direction * v[1:]))


def volume_spike(volumes: Sequence[float], lookback: int = 20,
                 factor: float = 1.5) -> bool:
    """Current volume above factor x the average of the last `lookback` bars."""
    v = _arr(volumes)
    if len(v) < lookback:
        return False
    avg = float(np.mean(v[-lookback:]))
    return avg > 0 and float(v[-1]) > avg * factor


def vwap(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float],
         volumes: Sequence[float]) -> float:
    h, l, c, v = _arr(highs), _arr(lows), _arr(closes), _arr(volumes)
    if not len(c):
        return 0.0
    total_volume = float(np.sum(v))
    if total_volume <= 0:
        return _last(c)
    typical = (h + l + c) / 3
    return float(np.sum(typical * v) / total_volume)


# === TREND STRENGTH ===

def adx(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float],
        period: int = 14) -> float:
    """Wilder-smoothed ADX, 0-100."""
    h, l, c = _arr(highs), _arr(lows), _arr(closes)
    if len(c) < period + 1:
        return 0.0

    tr = true_range(h, l, c)
    up_move = h[1:] - h[:-1]
    down_move = l[:-1] - l[1:]
    plus_dm = np.where((up_move > down_move) & (up_move > 0), up_move, 0.0)
    minus_dm = np.where((down_move > up_move) & (down_move > 0), down_move, 0.0)

    atr_s = float(np.mean(tr[:period]))
    plus_s = float(np.mean(plus_dm[:period]))
    minus_s = float(np.mean(minus_dm[:period]))

    dx_list = []
    for i in range(period, len(tr)):
        atr_s = (atr_s * (period - 1) + tr[i]) / period
        plus_s = (plus_s * (period - 1) + plus_dm[i]) / period
        minus_s = (minus_s * (period - 1) + minus_dm[i]) / period

        plus_di = plus_s / atr_s * 100 if atr_s > 0 else 0.0
        minus_di = minus_s / atr_s * 100 if atr_s > 0 else 0.0
        di_sum = plus_di + minus_di
        dx_list.append(abs(plus_di - minus_di) / di_sum * 100 if di_sum > 0 else 0.0)

    if not dx_list:
        return 0.0
    return float(np.mean(dx_list[-period:]))


def supertrend(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float],
               period: int = 10, multiplier: float = 3.0) -> SupertrendResult:
    """ATR band trend follower: flips bullish above the upper band, bearish below the lower."""
    h, l, c = _arr(highs), _arr(lows), _arr(closes)
    if len(c) < period + 1:
        return SupertrendResult(_last(c), "NEUTRAL")

    tr = true_range(h, l, c)
    hl2 = (h + l) / 2
    direction = "BULLISH"
    final_upper = final_lower = None

    for i in range(period, len(c)):
        band_atr = float(np.mean(tr[i - period:i]))
        basic_upper = hl2[i] + multiplier * band_atr
        basic_lower = hl2[i] - multiplier * band_atr

        if final_upper is None:
            final_upper, final_lower = basic_upper, basic_lower
            continue

        prev_close = c[i - 1]
        final_upper = basic_upper if (basic_upper < final_upper or prev_close > final_upper) else final_upper
        final_lower = basic_lower if (basic_lower > final_lower or prev_close < final_lower) else final_lower

        if direction == "BEARISH" and c[i] > final_upper:
            direction = "BULLISH"
        elif direction == "BULLISH" and c[i] < final_lower:
            direction = "BEARISH"

    value = final_lower if direction == "BULLISH" else final_upper
    return SupertrendResult(float(value), direction)
