#!/usr/bin/env python3
"""
RISK ENGINE - Position sizing and leverage advice

Key components:
1. Daily-loss gate - hard stop before any sizing is returned
2. Fixed-fractional sizing - risk amount / stop distance
3. Margin cap - margin never exceeds 95% of capital
4. Leverage advisor - volatility/trend/confidence tiers, scaled by horizon,
   capital fraction and per-trade risk, clamped to [1, max_leverage]
5. Trade risk assessment - liquidation price and risk level for a given setup

The #1 factor in trading success is NOT signal quality - it's risk management.
"""

import logging
from dataclasses import dataclass, asdict, field
from typing import Dict, List, Optional, Sequence

from .exceptions import DailyLossLimitError
from .parameters import (
    AnalysisParameters, TradeHorizonPolicy, UserRiskSettings,
)

logger = logging.getLogger(__name__)

MAX_MARGIN_FRACTION = 0.95
EXIT_SPLIT = (50, 30, 20)
LIQUIDATION_BUFFER = 0.9


@dataclass
class ExitStep:
    target: float
    percent: int
    units: float
    profit: float


@dataclass
class PositionSizing:
    risk_amount: float
    position_size: float
    position_value: float
    margin: float
    leverage: int
    margin_capped: bool
    profit_at_tp: List[float] = field(default_factory=list)
    exit_plan: List[ExitStep] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class TradeRiskAssessment:
    risk_percent: float
    reward_percent: float
    leveraged_position: float
    potential_loss: float
    potential_loss_percent: float
    potential_gain: float
    potential_gain_percent: float
    risk_reward: float
    liquidation_price: float
    risk_level: str
    is_long: bool
    recommendations: List[str]

    def to_dict(self) -> Dict:
        return asdict(self)


class RiskEngine:
    """
    Manages sizing and leverage for one user request
    """

    def __init__(self, settings: Optional[UserRiskSettings] = None,
                 params: Optional[AnalysisParameters] = None):
        self.settings = settings or UserRiskSettings()
        self.params = params or AnalysisParameters()

    # ── Leverage ─────────────────────────────────────────────────────

    def base_leverage(self, volatility_pct: float, adx: float, confidence: float) -> int:
        """Lower volatility, stronger trend and higher confidence allow more leverage."""
        if volatility_pct < 0.8 and adx > 25 and confidence > 70:
            tier = 10
        elif volatility_pct < 1.5 and adx > 20 and confidence > 65:
            tier = 7
        elif volatility_pct < 2.5 and confidence > 60:
            tier = 5
        elif volatility_pct < 4:
            tier = 3
        else:
            tier = 2
        return min(tier, self.params.max_leverage)

    @staticmethod
    def capital_fraction_factor(capital_percent: Optional[float]) -> float:
        if capital_percent is None:
            return 1.0
        if capital_percent <= 10:
            return 0.6
        if capital_percent <= 25:
            return 0.8
        if capital_percent <= 50:
            return 0.9
        return 1.0

    @staticmethod
    def risk_percent_factor(risk_percent: float) -> float:
        if risk_percent <= 1:
            return 1.0
        if risk_percent <= 2:
            return 0.85
        if risk_percent <= 3:
            return 0.7
        return 0.5

    def suggest_leverage(self, volatility_pct: float, adx: float, confidence: float,
                         horizon: TradeHorizonPolicy,
                         capital_percent: Optional[float] = None) -> int:
        lev = float(self.base_leverage(volatility_pct, adx, confidence))
        lev *= horizon.leverage_factor
        lev *= self.capital_fraction_factor(capital_percent)
        lev *= self.risk_percent_factor(self.settings.risk_percent_per_trade)
        return int(max(1, min(self.params.max_leverage, round(lev))))

    # ── Sizing ───────────────────────────────────────────────────────

    @property
    def risk_amount(self) -> float:
        return self.settings.capital * self.settings.risk_percent_per_trade / 100

    def check_daily_loss(self, risk_amount: Optional[float] = None):
        """Raise DailyLossLimitError when this trade could breach today's loss cap."""
        projected = self.risk_amount if risk_amount is None else risk_amount
        current = self.settings.current_loss_today
        if current + projected > self.settings.max_loss_per_day:
            logger.warning(
                f"Daily loss gate: {current:.2f} + {projected:.2f} "
                f"> {self.settings.max_loss_per_day:.2f}"
            )
            raise DailyLossLimitError(current, projected, self.settings.max_loss_per_day)

    def size_position(self, entry: float, stop_loss: float,
                      take_profits: Sequence[float], leverage: int) -> PositionSizing:
        risk_amount = self.risk_amount
        self.check_daily_loss(risk_amount)

        leverage = max(1, int(leverage))
        stop_distance = abs(entry - stop_loss)
        if entry <= 0 or stop_distance <= 0:
            return PositionSizing(risk_amount, 0.0, 0.0, 0.0, leverage, False)

        size = risk_amount / stop_distance
        margin = size * entry / leverage
        margin_cap = self.settings.capital * MAX_MARGIN_FRACTION
        capped = margin > margin_cap
        if capped:
            size = margin_cap * leverage / entry
            margin = margin_cap
            logger.info(f"Margin capped at {margin_cap:.2f}, size reduced to {size:.6f}")

        profits = [size * abs(tp - entry) for tp in take_profits]
        plan = [
            ExitStep(
                target=tp,
                percent=pct,
                units=size * pct / 100,
                profit=size * pct / 100 * abs(tp - entry),
            )
            for tp, pct in zip(take_profits, EXIT_SPLIT)
        ]
        return PositionSizing(
            risk_amount=round(risk_amount, 2),
            position_size=size,
            position_value=size * entry,
            margin=margin,
            leverage=leverage,
            margin_capped=capped,
            profit_at_tp=profits,
            exit_plan=plan,
        )


def assess_trade_risk(entry: float, stop_loss: float, take_profit: float,
                      leverage: int, capital: float) -> TradeRiskAssessment:
    """Leveraged loss/gain, liquidation price and a risk level for one setup."""
    if min(entry, stop_loss, take_profit, capital) <= 0 or leverage <= 0:
        raise ValueError("entry, stop, target, leverage and capital must be positive")

    risk_pct = abs(stop_loss - entry) / entry * 100
    reward_pct = abs(take_profit - entry) / entry * 100
    leveraged = capital * leverage
    loss = risk_pct / 100 * leveraged
    gain = reward_pct / 100 * leveraged
    loss_pct = loss / capital * 100
    gain_pct = gain / capital * 100
    rr = reward_pct / risk_pct if risk_pct > 0 else 0.0

    is_long = take_profit > entry
    offset = LIQUIDATION_BUFFER / leverage
    liquidation = entry * (1 - offset) if is_long else entry * (1 + offset)

    if leverage > 10 or loss_pct > 50:
        level = "HIGH"
    elif leverage > 5 or loss_pct > 25:
        level = "MEDIUM"
    else:
        level = "LOW"

    return TradeRiskAssessment(
        risk_percent=round(risk_pct, 2),
        reward_percent=round(reward_pct, 2),
        leveraged_position=round(leveraged, 2),
        potential_loss=round(loss, 2),
        potential_loss_percent=round(loss_pct, 2),
        potential_gain=round(gain, 2),
        potential_gain_percent=round(gain_pct, 2),
        risk_reward=round(rr, 2),
        liquidation_price=round(liquidation, 8),
        risk_level=level,
        is_long=is_long,
        recommendations=_risk_recommendations(leverage, rr, loss_pct),
    )


def _risk_recommendations(leverage: int, rr: float, loss_pct: float) -> List[str]:
    notes = []
    if leverage > 10:
        notes.append("Very high leverage - significant liquidation risk")
    elif leverage > 5:
        notes.append("Moderate leverage - monitor the position")
    else:
        notes.append("Reasonable leverage - risk under control")

    if rr < 1.5:
        notes.append("Risk/reward too low - look for a better entry")
    elif rr < 2:
        notes.append("Risk/reward acceptable but could be improved")
    elif rr >= 3:
        notes.append("Excellent risk/reward")
    else:
        notes.append("Good risk/reward")

    if loss_pct > 50:
        notes.append("Potential loss too large - reduce leverage")
    elif loss_pct > 25:
        notes.append("Significant potential loss - be careful")
    elif loss_pct < 10:
        notes.append("Potential loss well contained")

    notes.append("Always use a stop loss")
    return notes
