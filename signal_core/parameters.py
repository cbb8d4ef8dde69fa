#!/usr/bin/env python3
"""
PARAMETERS - Value objects injected into every scoring and sizing call

- AnalysisParameters: per-user thresholds learned by the learning loop
- UserRiskSettings: capital, per-trade risk and daily loss limits
- SignalPolicy: whether NEUTRAL signals are allowed
- TradeHorizonPolicy: horizon-specific TP/SL/leverage coefficients

The calling layer resolves these once per request; nothing below this
module looks anything up on its own.
"""

import logging
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class Direction(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"
    NEUTRAL = "NEUTRAL"


class SignalPolicy(str, Enum):
    ALLOW_NEUTRAL = "allow_neutral"
    FORCE_DIRECTION = "force_direction"

    @classmethod
    def from_name(cls, name: Optional[str]) -> "SignalPolicy":
        try:
            return cls((name or "").lower())
        except ValueError:
            return cls.FORCE_DIRECTION


@dataclass(frozen=True)
class AnalysisParameters:
    """Tunable thresholds, one record per user."""
    rsi_oversold_threshold: float = 30.0
    rsi_overbought_threshold: float = 70.0
    atr_multiplier_tp: float = 2.0
    atr_multiplier_sl: float = 1.0
    confidence_threshold: float = 60.0
    min_bullish_score: int = 8
    preferred_signal: str = "LONG"
    max_leverage: int = 5

    @classmethod
    def from_row(cls, row: Optional[Dict]) -> "AnalysisParameters":
        """Build from a persisted row; missing or invalid fields keep defaults."""
        if not row:
            return cls()
        defaults = cls()
        values = {}
        for name, default in asdict(defaults).items():
            raw = row.get(name)
            if raw is None:
                values[name] = default
                continue
            try:
                if isinstance(default, str):
                    values[name] = str(raw)
                else:
                    values[name] = type(default)(float(raw))
            except (TypeError, ValueError):
                logger.warning(f"Invalid analysis param {name}={raw!r}, using default")
                values[name] = default
        values["preferred_signal"] = str(values["preferred_signal"]).upper()
        if values["preferred_signal"] not in (Direction.LONG.value, Direction.SHORT.value):
            values["preferred_signal"] = defaults.preferred_signal
        values["max_leverage"] = max(1, values["max_leverage"])
        return cls(**values)

    def to_row(self) -> Dict:
        return asdict(self)

    @property
    def preferred_direction(self) -> Direction:
        return Direction(self.preferred_signal)


@dataclass(frozen=True)
class UserRiskSettings:
    capital: float = 1000.0
    risk_percent_per_trade: float = 1.0
    max_loss_per_day: float = 50.0
    current_loss_today: float = 0.0
    preferred_trade_style: str = "swing"
    exit_strategy: str = "partial"

    @classmethod
    def from_row(cls, row: Optional[Dict]) -> "UserRiskSettings":
        """Build from a user_settings row; only missing or invalid fields keep defaults."""
        if not row:
            return cls()
        values = {}
        for name, default in asdict(cls()).items():
            raw = row.get(name)
            if raw is None:
                values[name] = default
                continue
            try:
                values[name] = str(raw) if isinstance(default, str) else float(raw)
            except (TypeError, ValueError):
                logger.warning(f"Invalid risk setting {name}={raw!r}, using default")
                values[name] = default
        return cls(**values)


# ── Trade Horizon ────────────────────────────────────────────────────

class TradeType(str, Enum):
    SCALP = "scalp"
    INTRADAY = "intraday"
    SWING = "swing"
    POSITION = "position"


@dataclass(frozen=True)
class TradeHorizonPolicy:
    """Horizon-specific coefficients applied on top of the user's ATR multipliers."""
    trade_type: TradeType
    tp_multiples: tuple
    sl_multiplier: float
    leverage_factor: float
    max_minutes: Optional[int]

    @classmethod
    def for_trade_type(cls, trade_type) -> "TradeHorizonPolicy":
        try:
            key = TradeType(str(getattr(trade_type, "value", trade_type)).lower())
        except ValueError:
            logger.warning(f"Unknown trade type {trade_type!r}, using swing")
            key = TradeType.SWING
        return HORIZON_POLICIES[key]

    @classmethod
    def from_duration(cls, minutes: float) -> "TradeHorizonPolicy":
        for policy in HORIZON_POLICIES.values():
            if policy.max_minutes is not None and minutes <= policy.max_minutes:
                return policy
        return HORIZON_POLICIES[TradeType.POSITION]

    @classmethod
    def infer(cls, price: float, atr: float, daily_volatility_pct: float,
              params: AnalysisParameters) -> "TradeHorizonPolicy":
        """Estimate the horizon from expected move (TP2 in ATR terms) vs daily volatility."""
        if price <= 0 or atr <= 0 or daily_volatility_pct <= 0:
            return HORIZON_POLICIES[TradeType.SWING]
        expected_move_pct = atr * params.atr_multiplier_tp * 2.0 / price * 100
        days = expected_move_pct / daily_volatility_pct
        return cls.from_duration(days * 1440)

    @classmethod
    def resolve(cls, target_duration_minutes: Optional[float] = None,
                trade_type: Optional[str] = None,
                price: float = 0.0, atr: float = 0.0,
                daily_volatility_pct: float = 0.0,
                params: Optional[AnalysisParameters] = None) -> "TradeHorizonPolicy":
        """Explicit duration wins, then explicit trade type, then inference."""
        if target_duration_minutes is not None and target_duration_minutes > 0:
            return cls.from_duration(target_duration_minutes)
        if trade_type:
            return cls.for_trade_type(trade_type)
        return cls.infer(price, atr, daily_volatility_pct, params or AnalysisParameters())


HORIZON_POLICIES: Dict[TradeType, TradeHorizonPolicy] = {
    TradeType.SCALP: TradeHorizonPolicy(TradeType.SCALP, (0.5, 1.0, 1.5), 0.7, 1.5, 60),
    TradeType.INTRADAY: TradeHorizonPolicy(TradeType.INTRADAY, (0.75, 1.5, 2.5), 0.85, 1.25, 1440),
    TradeType.SWING: TradeHorizonPolicy(TradeType.SWING, (1.0, 2.0, 3.5), 1.0, 1.0, 7 * 1440),
    TradeType.POSITION: TradeHorizonPolicy(TradeType.POSITION, (1.5, 3.0, 5.0), 1.5, 0.7, None),
}
