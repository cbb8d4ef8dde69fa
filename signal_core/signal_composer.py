#!/usr/bin/env python3
"""
SIGNAL COMPOSER - Exit levels, risk/reward and time-to-target

Take-profits and stop-loss are ATR multiples:

    TPn = entry ± ATR × base_tp × horizon.tp_multiples[n]
    SL  = entry ∓ ATR × atr_multiplier_sl × horizon.sl_multiplier

where base_tp is the user's atr_multiplier_tp, boosted 20% when ADX > 25.
TP2 is the primary target used for risk/reward.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, Optional, Sequence

import numpy as np

from .parameters import AnalysisParameters, Direction, TradeHorizonPolicy

logger = logging.getLogger(__name__)

STRONG_TREND_ADX = 25.0
STRONG_TREND_TP_BOOST = 1.2
MIN_ATR_FRACTION = 0.001
MAX_HORIZON_DAYS = 28


@dataclass(frozen=True)
class ExitLevels:
    entry: float
    stop_loss: float
    take_profit_1: float
    take_profit_2: float
    take_profit_3: float
    risk_reward: float

    @property
    def take_profits(self):
        return (self.take_profit_1, self.take_profit_2, self.take_profit_3)

    @property
    def stop_distance(self) -> float:
        return abs(self.entry - self.stop_loss)

    def to_dict(self) -> Dict:
        return asdict(self)


def compute_exit_levels(direction: Direction, entry: float, atr: float, adx: float,
                        params: AnalysisParameters,
                        horizon: TradeHorizonPolicy) -> ExitLevels:
    """Three take-profits and one stop, ordered away from entry on each side."""
    if direction == Direction.NEUTRAL or entry <= 0:
        return ExitLevels(entry, entry, entry, entry, entry, 0.0)

    # Flat candles would collapse every level onto entry
    unit = max(atr, entry * MIN_ATR_FRACTION)
    base_tp = params.atr_multiplier_tp
    if adx > STRONG_TREND_ADX:
        base_tp *= STRONG_TREND_TP_BOOST

    sign = 1 if direction == Direction.LONG else -1
    tp1, tp2, tp3 = (entry + sign * unit * base_tp * m for m in horizon.tp_multiples)
    stop = entry - sign * unit * params.atr_multiplier_sl * horizon.sl_multiplier

    risk = abs(entry - stop)
    rr = abs(tp2 - entry) / risk if risk > 0 else 0.0
    return ExitLevels(entry, stop, tp1, tp2, tp3, round(rr, 2))


# === TIME HORIZON ===

@dataclass(frozen=True)
class TimeHorizon:
    label: str          # INTRADAY, SHORT_TERM, SWING, LONG_TERM, INSUFFICIENT
    estimate: str       # "6h", "3d", "2w", "4w+"
    hours: int
    confidence: int

    def to_dict(self) -> Dict:
        return asdict(self)


def estimate_time_horizon(closes: Sequence[float], entry: float, target: float,
                          quote_volume: float) -> TimeHorizon:
    """
    Days-to-target from return volatility, shortened by 24h liquidity.

    days = |target - entry| / entry / vol, divided by a volume factor
    clamped to [0.7, 1.5], capped at 28. Confidence drops as the absolute
    returns disperse around the volatility.
    """
    c = np.asarray(closes, dtype=float)
    if len(c) < 20 or entry <= 0:
        return TimeHorizon("INSUFFICIENT", "n/a", 0, 0)

    prev = c[:-1]
    returns = np.divide(np.diff(c), prev, out=np.zeros(len(prev)), where=prev != 0)
    vol = float(np.std(returns))
    distance = abs(target - entry) / entry

    if vol > 0:
        days = distance / vol
        dispersion = float(np.sqrt(np.mean((np.abs(returns) - vol) ** 2)))
        confidence = max(40.0, min(95.0, 100 - dispersion / vol * 100))
    else:
        days = float(MAX_HORIZON_DAYS)
        confidence = 40.0

    volume_factor = min(1.5, max(0.7, quote_volume / (entry * 1_000_000)))
    days = min(days / volume_factor, MAX_HORIZON_DAYS)
    hours = int(round(days * 24))

    if days < 1:
        label, estimate = "INTRADAY", f"{hours}h"
    elif days < 7:
        label, estimate = "SHORT_TERM", f"{round(days)}d"
    elif days < 21:
        label, estimate = "SWING", f"{round(days / 7)}w"
    else:
        label, estimate = "LONG_TERM", "4w+"

    return TimeHorizon(label, estimate, hours, int(round(confidence)))


# === SIGNAL ===

@dataclass
class Signal:
    """A directional call with its exit plan and presentation text"""
    symbol: str
    direction: Direction
    entry: float
    stop_loss: float
    take_profit_1: float
    take_profit_2: float
    take_profit_3: float
    risk_reward: float
    leverage: int
    confidence: float
    rationale: str = ""

    @classmethod
    def from_levels(cls, symbol: str, direction: Direction, levels: ExitLevels,
                    leverage: int, confidence: float,
                    rationale: str = "") -> "Signal":
        return cls(
            symbol=symbol,
            direction=direction,
            entry=levels.entry,
            stop_loss=levels.stop_loss,
            take_profit_1=levels.take_profit_1,
            take_profit_2=levels.take_profit_2,
            take_profit_3=levels.take_profit_3,
            risk_reward=levels.risk_reward,
            leverage=leverage,
            confidence=round(confidence, 1),
            rationale=rationale,
        )

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["direction"] = self.direction.value
        return data
