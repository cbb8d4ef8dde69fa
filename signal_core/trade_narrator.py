#!/usr/bin/env python3
"""
TRADE NARRATOR - Template-based explanations for every signal

Pure presentation: consumes the scoring contributions, exit levels,
horizon estimate and detected patterns, and renders text. Nothing here
feeds back into the numbers.
"""

from typing import Iterable, List, Optional

from .parameters import Direction
from .patterns import BEARISH_PATTERNS, BULLISH_PATTERNS
from .signal_composer import ExitLevels, TimeHorizon
from .trading_model import BEARISH, BULLISH, ScoringResult, TimeframeTrends


def confidence_label(confidence: float) -> str:
    if confidence >= 75:
        return "High Conviction"
    if confidence >= 60:
        return "Moderate"
    return "Speculative"


def _price(value: float) -> str:
    if value >= 100:
        return f"${value:,.2f}"
    if value >= 1:
        return f"${value:,.4f}"
    return f"${value:.8f}"


class TradeNarrator:
    """Renders rationale strings from already-computed signal data."""

    def __init__(self, max_reasons: int = 5):
        self.max_reasons = max_reasons

    def _reasons(self, scoring: ScoringResult, side: str) -> List[str]:
        picked = sorted(
            (c for c in scoring.contributions if c.side == side),
            key=lambda c: c.points,
            reverse=True,
        )
        return [c.detail for c in picked[:self.max_reasons]]

    def rationale(self, symbol: str, direction: Direction, confidence: float,
                  scoring: ScoringResult, levels: ExitLevels,
                  horizon: Optional[TimeHorizon] = None,
                  patterns: Iterable[str] = (),
                  trends: Optional[TimeframeTrends] = None) -> str:
        patterns = list(patterns)

        if direction == Direction.NEUTRAL:
            return (
                f"{symbol}: no trade. Bullish {scoring.bullish_score} vs bearish "
                f"{scoring.bearish_score} points ({scoring.confidence:.0f}% agreement) "
                f"is below the entry gates."
            )

        side = BULLISH if direction == Direction.LONG else BEARISH
        against = BEARISH if side == BULLISH else BULLISH
        parts = [
            f"{direction.value} {symbol} ({confidence_label(confidence)}, "
            f"{confidence:.0f}% confidence). Score {scoring.bullish_score} bullish "
            f"vs {scoring.bearish_score} bearish."
        ]

        reasons = self._reasons(scoring, side)
        if reasons:
            parts.append("Supporting: " + "; ".join(reasons) + ".")
        if scoring.bullish_score == scoring.bearish_score:
            parts.append("Scores tied, direction taken from the daily master trend.")
        counter = self._reasons(scoring, against)
        if counter:
            parts.append("Against: " + "; ".join(counter[:2]) + ".")

        if trends is not None and trends.aligned:
            parts.append("All timeframes agree.")

        confirming = [p for p in patterns
                      if p in (BULLISH_PATTERNS if side == BULLISH else BEARISH_PATTERNS)]
        conflicting = [p for p in patterns if p not in confirming]
        if confirming:
            parts.append("Patterns: " + ", ".join(confirming) + ".")
        if conflicting:
            parts.append("Watch: " + ", ".join(conflicting) + ".")

        parts.append(
            f"Entry {_price(levels.entry)}, stop {_price(levels.stop_loss)}, targets "
            f"{_price(levels.take_profit_1)} / {_price(levels.take_profit_2)} / "
            f"{_price(levels.take_profit_3)} (R:R {levels.risk_reward:.1f})."
        )
        if horizon is not None and horizon.label != "INSUFFICIENT":
            parts.append(
                f"Expected to reach TP2 in about {horizon.estimate} "
                f"({horizon.label.replace('_', ' ').lower()}, {horizon.confidence}% confidence)."
            )
        return " ".join(parts)

    def opportunity_thesis(self, symbol: str, score: float, catalysts: List[str],
                           strategy: str, timeframe: str) -> str:
        lead = catalysts[0] if catalysts else "mixed signals"
        return (
            f"{symbol} scores {score:.0f}/100 led by {lead.lower()}. "
            f"Suggested approach: {strategy} over {timeframe}."
        )
