#!/usr/bin/env python3
"""
MAIN ORCHESTRATOR - The single analyze() entry point

Flow:
1. Resolve user parameters and risk settings once
2. Fetch 1h/4h/1d candles concurrently (1h is mandatory)
3. Indicator snapshot, multi-timeframe trends, master trend
4. Score and resolve direction under the configured SignalPolicy
5. Horizon policy -> exit levels -> time-to-target
6. External-factor adjustment of confidence
7. Leverage and position sizing (daily-loss gate enforced)
8. Patterns + rationale, optional signal log
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Union

from .config import get_config, get_feature_flags
from .data_layer import CandleSeries, MarketDataSource, Ticker24h, get_market_data
from .db import get_db
from .exceptions import NoDataError
from .external_factors import ExternalAdjustment, ExternalFactorAdjuster
from .parameters import (
    AnalysisParameters, Direction, SignalPolicy, TradeHorizonPolicy, UserRiskSettings,
)
from .patterns import detect_patterns
from .risk_engine import PositionSizing, RiskEngine
from .signal_composer import (
    ExitLevels, Signal, TimeHorizon, compute_exit_levels, estimate_time_horizon,
)
from .trade_narrator import TradeNarrator
from .trading_model import (
    IndicatorSnapshot, ScoringResult, TimeframeTrends, TradingModel,
    compute_snapshot, compute_trends, master_trend,
)

logger = logging.getLogger(__name__)

PRIMARY_TIMEFRAME = "1h"
TIMEFRAMES = {"1h": 500, "4h": 200, "1d": 100}


@dataclass
class AnalysisResult:
    symbol: str
    direction: Direction
    base_confidence: float
    confidence: float
    leverage: int
    levels: ExitLevels
    indicators: IndicatorSnapshot
    scoring: ScoringResult
    trends: TimeframeTrends
    master_trend: Direction
    patterns: List[str]
    trade_type: str
    time_horizon: Optional[TimeHorizon]
    sizing: Optional[PositionSizing]
    external: ExternalAdjustment
    rationale: str
    change_24h: float = 0.0
    volume_24h: float = 0.0
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def entry_price(self) -> float:
        return self.levels.entry

    @property
    def signal(self) -> Signal:
        return Signal.from_levels(
            self.symbol, self.direction, self.levels, self.leverage,
            self.confidence, self.rationale,
        )

    def to_dict(self) -> Dict:
        data = self.signal.to_dict()
        data["entry_price"] = data.pop("entry")
        data.update({
            "base_confidence": round(self.base_confidence, 1),
            "indicators": self.indicators.to_dict(),
            "scoring": self.scoring.to_dict(),
            "trends": self.trends.to_dict(),
            "trend_alignment": self.trends.aligned,
            "master_trend": self.master_trend.value,
            "patterns": self.patterns,
            "trade_type": self.trade_type,
            "time_horizon": self.time_horizon.to_dict() if self.time_horizon else None,
            "position_sizing": self.sizing.to_dict() if self.sizing else None,
            "external_factors": self.external.to_dict(),
            "change_24h": self.change_24h,
            "volume_24h": self.volume_24h,
            "timestamp": self.timestamp,
        })
        return data


class SignalOrchestrator:
    """
    Coordinates data, scoring, composition, risk and presentation
    """

    def __init__(self, source: Optional[MarketDataSource] = None, db=None,
                 adjuster: Optional[ExternalFactorAdjuster] = None,
                 policy: Optional[SignalPolicy] = None,
                 narrator: Optional[TradeNarrator] = None):
        cfg = get_config()
        flags = get_feature_flags()
        self.source = source or get_market_data()
        self.db = db or get_db()
        self.adjuster = adjuster or ExternalFactorAdjuster(enabled=flags.external_factors_enabled)
        self.policy = policy or SignalPolicy.from_name(cfg.engine.signal_policy)
        self.narrator = narrator or TradeNarrator()
        self.log_signals = flags.signal_logging_enabled

    # ── Inputs ───────────────────────────────────────────────────────

    def resolve_params(self, user_params=None, user_id: Optional[str] = None) -> AnalysisParameters:
        if isinstance(user_params, AnalysisParameters):
            return user_params
        if isinstance(user_params, dict):
            return AnalysisParameters.from_row(user_params)
        if user_id:
            return AnalysisParameters.from_row(self.db.get_analysis_params(user_id))
        return AnalysisParameters()

    def resolve_settings(self, settings=None, user_id: Optional[str] = None) -> UserRiskSettings:
        if isinstance(settings, UserRiskSettings):
            return settings
        if isinstance(settings, dict):
            return UserRiskSettings.from_row(settings)
        if user_id:
            return UserRiskSettings.from_row(self.db.get_user_settings(user_id))
        return UserRiskSettings()

    def fetch_candles(self, symbol: str) -> Dict[str, CandleSeries]:
        with ThreadPoolExecutor(max_workers=len(TIMEFRAMES)) as pool:
            futures = {
                tf: pool.submit(self.source.get_candles, symbol, tf, limit)
                for tf, limit in TIMEFRAMES.items()
            }
            candles = {PRIMARY_TIMEFRAME: futures[PRIMARY_TIMEFRAME].result()}
            for tf, future in futures.items():
                if tf == PRIMARY_TIMEFRAME:
                    continue
                try:
                    candles[tf] = future.result()
                except NoDataError as e:
                    logger.warning(f"{symbol} {tf} candles unavailable, trend ignored: {e}")
                    candles[tf] = CandleSeries.empty(symbol, tf)

        if len(candles[PRIMARY_TIMEFRAME]) == 0:
            raise NoDataError(symbol, "empty 1h candles")
        return candles

    def fetch_ticker(self, symbol: str, fallback_price: float) -> Ticker24h:
        try:
            return self.source.get_ticker_24h(symbol)
        except NoDataError as e:
            logger.warning(f"{symbol} ticker unavailable, using last close: {e}")
            return Ticker24h(symbol, fallback_price, 0.0, 0.0, fallback_price, fallback_price)

    # ── Pipeline ─────────────────────────────────────────────────────

    def analyze(self, symbol: str, trade_type: Optional[str] = None,
                target_duration_minutes: Optional[float] = None,
                capital_percent: Optional[float] = None,
                user_params: Union[AnalysisParameters, Dict, None] = None,
                user_id: Optional[str] = None,
                settings: Union[UserRiskSettings, Dict, None] = None) -> AnalysisResult:
        """
        Full analysis for one symbol.

        Raises NoDataError when the 1h series is unavailable and
        DailyLossLimitError when the trade would breach the daily loss cap.
        """
        symbol = symbol.upper()
        params = self.resolve_params(user_params, user_id)
        risk_settings = self.resolve_settings(settings, user_id)

        candles = self.fetch_candles(symbol)
        primary = candles[PRIMARY_TIMEFRAME]
        closes_4h = candles["4h"].closes
        closes_1d = candles["1d"].closes
        ticker = self.fetch_ticker(symbol, primary.last_close)

        # 1. Indicators and trends
        snap = compute_snapshot(primary, daily_closes=closes_1d)
        trends = compute_trends(snap, closes_4h, closes_1d)
        master = master_trend(snap.price, closes_1d, params)

        # 2. Score and direction
        model = TradingModel(params, self.policy)
        scoring = model.score(snap, trends)
        direction = model.resolve_direction(scoring, master)
        base_confidence = scoring.confidence

        # 3. Exit levels
        horizon = TradeHorizonPolicy.resolve(
            target_duration_minutes=target_duration_minutes,
            trade_type=trade_type,
            price=snap.price,
            atr=snap.atr14,
            daily_volatility_pct=snap.daily_volatility_pct,
            params=params,
        )
        levels = compute_exit_levels(direction, snap.price, snap.atr14, snap.adx, params, horizon)
        time_horizon = None
        if direction != Direction.NEUTRAL:
            horizon_closes = closes_1d if len(closes_1d) >= 20 else primary.closes
            time_horizon = estimate_time_horizon(
                horizon_closes, levels.entry, levels.take_profit_2, ticker.quote_volume,
            )

        # 4. External factors
        external = self.adjuster.adjust(symbol, direction, base_confidence, snap, params)
        confidence = external.adjusted_confidence

        # 5. Leverage and sizing
        risk = RiskEngine(risk_settings, params)
        sizing = None
        leverage = 1
        if direction != Direction.NEUTRAL:
            leverage = risk.suggest_leverage(
                snap.volatility_pct, snap.adx, confidence, horizon, capital_percent,
            )
            sizing = risk.size_position(
                levels.entry, levels.stop_loss, levels.take_profits, leverage,
            )

        # 6. Presentation
        patterns = detect_patterns(primary.highs, primary.lows, primary.closes, vwap=snap.vwap)
        rationale = self.narrator.rationale(
            symbol, direction, confidence, scoring, levels,
            horizon=time_horizon, patterns=patterns, trends=trends,
        )

        result = AnalysisResult(
            symbol=symbol,
            direction=direction,
            base_confidence=base_confidence,
            confidence=confidence,
            leverage=leverage,
            levels=levels,
            indicators=snap,
            scoring=scoring,
            trends=trends,
            master_trend=master,
            patterns=patterns,
            trade_type=horizon.trade_type.value,
            time_horizon=time_horizon,
            sizing=sizing,
            external=external,
            rationale=rationale,
            change_24h=ticker.price_change_percent,
            volume_24h=ticker.quote_volume,
        )
        logger.info(
            f"{symbol}: {direction.value} conf {base_confidence:.1f}->{confidence:.1f} "
            f"lev {leverage}x score {scoring.bullish_score}/{scoring.bearish_score}"
        )

        if self.log_signals:
            self.db.log_signal({**result.to_dict(), "user_id": user_id})
        return result


def analyze(symbol: str, trade_type: Optional[str] = None,
            target_duration_minutes: Optional[float] = None,
            capital_percent: Optional[float] = None,
            user_params: Union[AnalysisParameters, Dict, None] = None,
            **kwargs) -> AnalysisResult:
    return SignalOrchestrator().analyze(
        symbol, trade_type, target_duration_minutes, capital_percent, user_params, **kwargs
    )
