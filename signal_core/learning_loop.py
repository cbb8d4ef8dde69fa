#!/usr/bin/env python3
"""
LEARNING LOOP - Adaptive thresholds from closed-trade outcomes.

Nightly batch per user:
1. Fetch closed trades from the last 90 days (minimum 10)
2. Win rate, average win/loss, payoff ratio, expectancy
3. Direction and leverage-bucket performance
4. Derive a fresh AnalysisParameters record and upsert it wholesale

Fewer than 10 trades is a normal outcome, not an error: the report says
so and nothing is written.
"""

import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone, timedelta
from typing import Dict, List, Optional

from .db import get_db
from .parameters import AnalysisParameters, Direction

logger = logging.getLogger(__name__)

# ── Constants ──────────────────────────────────────────────────────
LOOKBACK_DAYS = 90
MIN_TRADES = 10
MIN_TRADES_PER_LEVERAGE = 3
DEFAULT_LEVERAGE = 5

STATUS_COMPLETE = "complete"
STATUS_INSUFFICIENT = "insufficient_data"


@dataclass
class TradeStats:
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0           # percent
    average_win: float = 0.0        # percent
    average_loss: float = 0.0       # percent, positive
    payoff_ratio: float = 0.0
    expectancy: float = 0.0
    long_win_rate: float = 0.0
    short_win_rate: float = 0.0
    best_signal: str = "LONG"
    optimal_leverage: int = DEFAULT_LEVERAGE
    alignment: Dict[str, Dict[str, int]] = field(default_factory=dict)


@dataclass
class LearningReport:
    """Outcome of one learning pass."""
    user_id: str
    status: str
    trade_count: int = 0
    stats: Optional[TradeStats] = None
    insights: Dict = field(default_factory=dict)
    adjustments: Optional[AnalysisParameters] = None
    parameters_updated: bool = False
    runtime_seconds: float = 0.0

    @property
    def sufficient(self) -> bool:
        return self.status == STATUS_COMPLETE

    def to_dict(self) -> Dict:
        return {
            "user_id": self.user_id,
            "status": self.status,
            "trade_count": self.trade_count,
            "stats": asdict(self.stats) if self.stats else None,
            "insights": self.insights,
            "adjustments": self.adjustments.to_row() if self.adjustments else None,
            "parameters_updated": self.parameters_updated,
        }


def _result(trade: Dict) -> float:
    try:
        return float(trade.get("result_percent") or 0)
    except (TypeError, ValueError):
        return 0.0


def compute_trade_stats(trades: List[Dict]) -> TradeStats:
    stats = TradeStats(total_trades=len(trades))
    if not trades:
        return stats

    total_win = total_loss = 0.0
    by_direction = {d: [0, 0] for d in (Direction.LONG.value, Direction.SHORT.value)}
    by_leverage = defaultdict(list)

    for trade in trades:
        pnl = _result(trade)
        won = pnl > 0
        if won:
            stats.winning_trades += 1
            total_win += pnl
        else:
            stats.losing_trades += 1
            total_loss += abs(pnl)

        direction = str(trade.get("signal") or "").upper()
        if direction in by_direction:
            by_direction[direction][1] += 1
            by_direction[direction][0] += int(won)

        try:
            leverage = int(float(trade.get("leverage") or DEFAULT_LEVERAGE))
        except (TypeError, ValueError):
            leverage = DEFAULT_LEVERAGE
        by_leverage[leverage].append(pnl)

        analysis = trade.get("analysis_data")
        if isinstance(analysis, dict):
            aligned = analysis.get("trend_alignment", analysis.get("trendAlignment"))
            bucket = stats.alignment.setdefault(
                "aligned" if aligned else "divergent", {"wins": 0, "total": 0}
            )
            bucket["total"] += 1
            bucket["wins"] += int(won)

    n = stats.total_trades
    stats.win_rate = stats.winning_trades / n * 100
    stats.average_win = total_win / stats.winning_trades if stats.winning_trades else 0.0
    stats.average_loss = total_loss / stats.losing_trades if stats.losing_trades else 0.0
    stats.payoff_ratio = stats.average_win / stats.average_loss if stats.average_loss > 0 else 0.0
    p = stats.win_rate / 100
    stats.expectancy = p * stats.average_win - (1 - p) * stats.average_loss

    wins, total = by_direction[Direction.LONG.value]
    stats.long_win_rate = wins / total * 100 if total else 0.0
    wins, total = by_direction[Direction.SHORT.value]
    stats.short_win_rate = wins / total * 100 if total else 0.0
    stats.best_signal = "LONG" if stats.long_win_rate > stats.short_win_rate else "SHORT"

    best_avg = None
    for leverage, results in sorted(by_leverage.items()):
        if len(results) < MIN_TRADES_PER_LEVERAGE:
            continue
        avg = sum(results) / len(results)
        if best_avg is None or avg > best_avg:
            best_avg = avg
            stats.optimal_leverage = leverage

    return stats


def derive_parameters(stats: TradeStats) -> AnalysisParameters:
    """Fresh parameter record: defaults, then tightened by what the stats show."""
    defaults = AnalysisParameters()
    confidence = defaults.confidence_threshold
    min_score = defaults.min_bullish_score
    tp_mult = defaults.atr_multiplier_tp
    max_leverage = max(1, stats.optimal_leverage)

    if stats.win_rate < 50:
        confidence = 65.0
        min_score = 10
    if stats.payoff_ratio < 1.5:
        tp_mult = 2.5
    if stats.expectancy < 0:
        max_leverage = max(2, stats.optimal_leverage - 2)
        confidence = 70.0

    return AnalysisParameters(
        rsi_oversold_threshold=defaults.rsi_oversold_threshold,
        rsi_overbought_threshold=defaults.rsi_overbought_threshold,
        atr_multiplier_tp=tp_mult,
        atr_multiplier_sl=defaults.atr_multiplier_sl,
        confidence_threshold=confidence,
        min_bullish_score=min_score,
        preferred_signal=stats.best_signal,
        max_leverage=max_leverage,
    )


def build_insights(stats: TradeStats) -> Dict:
    if stats.win_rate > 55:
        performance = "excellent"
    elif stats.win_rate > 45:
        performance = "good"
    else:
        performance = "needs_improvement"

    notes = []
    if stats.win_rate < 50:
        notes.append("Low win rate - raise the minimum confidence threshold")
    if stats.payoff_ratio < 1.5:
        notes.append("Payoff ratio too low - widen take-profits")
    if stats.expectancy < 0:
        notes.append("Negative expectancy - reduce leverage and be more selective")
    if stats.long_win_rate > 0 and stats.short_win_rate > 0:
        if abs(stats.long_win_rate - stats.short_win_rate) > 15:
            notes.append(f"Focus on {stats.best_signal} positions (better win rate)")
    best_rate = stats.long_win_rate if stats.best_signal == "LONG" else stats.short_win_rate
    notes.append(f"Optimal leverage: {stats.optimal_leverage}x")
    notes.append(f"Best performing signal: {stats.best_signal} ({best_rate:.1f}%)")

    aligned = stats.alignment.get("aligned")
    divergent = stats.alignment.get("divergent")
    if aligned and divergent and aligned["total"] and divergent["total"]:
        a = aligned["wins"] / aligned["total"] * 100
        d = divergent["wins"] / divergent["total"] * 100
        notes.append(f"Aligned timeframes win {a:.0f}% vs {d:.0f}% when divergent")

    return {"performance": performance, "recommendations": notes}


class LearningEngine:
    """Runs the learning pass for one user and persists the outcome."""

    def __init__(self, db=None):
        self.db = db or get_db()

    def run(self, user_id: str, now: Optional[datetime] = None) -> LearningReport:
        t0 = time.time()
        now = now or datetime.now(timezone.utc)
        since = now - timedelta(days=LOOKBACK_DAYS)

        trades = self.db.get_closed_trades(user_id, since)
        if len(trades) < MIN_TRADES:
            logger.info(
                f"Learning pass for {user_id}: {len(trades)} closed trades, "
                f"minimum {MIN_TRADES} required"
            )
            return LearningReport(
                user_id=user_id,
                status=STATUS_INSUFFICIENT,
                trade_count=len(trades),
                insights={"message": f"Insufficient data: {len(trades)}/{MIN_TRADES} closed trades"},
                runtime_seconds=time.time() - t0,
            )

        stats = compute_trade_stats(trades)
        params = derive_parameters(stats)
        insights = build_insights(stats)
        updated = self.db.upsert_analysis_params(user_id, params.to_row())
        if not updated:
            logger.error(f"Learning pass for {user_id}: parameter upsert failed")

        logger.info(
            f"Learning pass for {user_id}: {stats.total_trades} trades, "
            f"win rate {stats.win_rate:.1f}%, expectancy {stats.expectancy:.2f}, "
            f"max leverage -> {params.max_leverage}x"
        )
        return LearningReport(
            user_id=user_id,
            status=STATUS_COMPLETE,
            trade_count=len(trades),
            stats=stats,
            insights=insights,
            adjustments=params,
            parameters_updated=bool(updated),
            runtime_seconds=time.time() - t0,
        )


def run_learning_engine(user_id: str, db=None) -> Dict:
    """Learning pass as a plain dict: {status, stats, insights, adjustments, ...}."""
    return LearningEngine(db).run(user_id).to_dict()
