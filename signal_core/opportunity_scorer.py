#!/usr/bin/env python3
"""
OPPORTUNITY SCORER - Market-wide scan with 0-100 conviction scores

Scores every liquid USDT pair from its daily candles and 24h ticker:
1. Technical Score (40) - drawdown from high, RSI, MA20/MA50 momentum, volume
2. Fundamental Score (30) - liquidity, price stability, volume consistency
3. Sentiment Score (30) - price action with volume, recovery setups

Safety mode: when the reference asset (BTC) moves more than 10% in 24h the
threshold is raised by 10 points for the whole scan.

Symbols are analyzed concurrently; a symbol that fails is logged and
skipped, never aborting the batch. Results sort by descending score.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, asdict, field
from typing import Callable, Dict, Iterable, List, Optional

import numpy as np

from . import indicators as ind
from .config import get_config
from .data_layer import CandleSeries, MarketDataSource, Ticker24h, get_market_data
from .db import get_db
from .exceptions import NoDataError
from .parameters import AnalysisParameters
from .trade_narrator import TradeNarrator

logger = logging.getLogger(__name__)

LEVERAGED_TOKENS = ("UP", "DOWN", "BULL", "BEAR")
MIN_DAILY_BARS = 50


@dataclass
class Opportunity:
    symbol: str
    name: str
    score: float
    price: float
    change_24h: float
    drawdown_from_high: float
    rsi: float
    momentum: float
    volume_increase: float
    technical_score: float
    fundamental_score: float
    sentiment_score: float
    strategy: str
    timeframe: str
    catalysts: List[str] = field(default_factory=list)
    thesis: str = ""
    safety_mode: bool = False

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class ScanReport:
    opportunities: List[Opportunity]
    analyzed: int
    threshold: float
    effective_threshold: float
    safety_mode: bool
    reference_move_pct: float
    failures: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["results_count"] = len(self.opportunities)
        return data


# === UNIVERSE ===

def eligible_pairs(tickers: Iterable[Ticker24h], quote: str = "USDT",
                   limit: Optional[int] = None,
                   min_quote_volume: float = 0.0) -> List[Ticker24h]:
    """Quote-asset pairs without leveraged tokens, most liquid first."""
    pairs = []
    for t in tickers:
        if not t.symbol.endswith(quote):
            continue
        base = t.symbol[:-len(quote)]
        if any(tag in base for tag in LEVERAGED_TOKENS):
            continue
        if t.quote_volume < min_quote_volume:
            continue
        pairs.append(t)
    pairs.sort(key=lambda t: t.quote_volume, reverse=True)
    return pairs[:limit] if limit else pairs


def run_concurrently(items: List, fn: Callable, max_workers: int,
                     label: str = "scan"):
    """Map fn over items in a thread pool. Returns (results, failures) keyed by item."""
    results, failures = {}, {}
    if not items:
        return results, failures
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(items)))) as pool:
        futures = {pool.submit(fn, item): item for item in items}
        for future in as_completed(futures):
            item = futures[future]
            try:
                results[item] = future.result()
            except NoDataError as e:
                logger.warning(f"[{label}] skipping {item}: {e.reason}")
                failures[item] = e.reason
            except Exception as e:
                logger.error(f"[{label}] {item} failed: {e}")
                failures[item] = str(e)
    return results, failures


def safety_mode_active(reference: Optional[Ticker24h], move_pct: float = 10.0) -> bool:
    return reference is not None and abs(reference.price_change_percent) > move_pct


# === SCORING ===

def _technical(drawdown: float, rsi: float, momentum: float, volume_increase: float,
               params: AnalysisParameters) -> float:
    score = 0.0
    if drawdown < -70:
        score += 15
    elif drawdown < -50:
        score += 12
    elif drawdown < -30:
        score += 8
    elif drawdown > -10:
        score -= 5

    oversold = params.rsi_oversold_threshold
    if rsi < oversold - 5:
        score += 10
    elif rsi < oversold + 5:
        score += 7
    elif rsi < oversold + 15:
        score += 4
    elif rsi > params.rsi_overbought_threshold + 5:
        score -= 5

    if momentum > 8:
        score += 10
    elif momentum > 4:
        score += 7
    elif momentum > 1:
        score += 4
    elif momentum < -5:
        score -= 5

    if volume_increase > 80:
        score += 5
    elif volume_increase > 40:
        score += 3
    elif volume_increase > 15:
        score += 1
    return score


def _fundamental(quote_volume: float, change_24h: float, momentum: float,
                 volume_cv: float) -> float:
    score = 0.0
    if quote_volume > 1e9:
        score += 15
    elif quote_volume > 5e8:
        score += 12
    elif quote_volume > 1e8:
        score += 8
    elif quote_volume > 5e7:
        score += 5
    else:
        score -= 5

    swing = abs(change_24h)
    if swing < 3 and momentum > 0:
        score += 10
    elif swing < 5:
        score += 6
    elif swing > 20:
        score -= 5

    if volume_cv < 0.5:
        score += 5
    elif volume_cv < 1:
        score += 2
    return score


def _sentiment(change_24h: float, volume_increase: float, drawdown: float,
               momentum: float, rsi: float) -> float:
    score = 0.0
    if change_24h > 15 and volume_increase > 50:
        score += 15
    elif change_24h > 8 and volume_increase > 25:
        score += 12
    elif change_24h > 3:
        score += 8
    elif change_24h < -15:
        score -= 10

    if drawdown < -50 and momentum > 3 and rsi < 50:
        score += 15
    elif drawdown < -30 and momentum > 0:
        score += 10
    return score


def identify_catalysts(drawdown: float, momentum: float, volume_increase: float,
                       change_24h: float, rsi: float) -> List[str]:
    catalysts = []
    if drawdown < -60:
        catalysts.append("Extreme drawdown from high - major rebound potential")
    if momentum > 5 and volume_increase > 40:
        catalysts.append("Bullish momentum confirmed by rising volume")
    if rsi < 30 and change_24h > 5:
        catalysts.append("Leaving oversold with positive momentum")
    if volume_increase > 100:
        catalysts.append("Volume explosion - heavy attention")
    if change_24h > 20:
        catalysts.append("Parabolic move in progress")
    if drawdown < -40 and momentum > 3:
        catalysts.append("Bottoming reversal pattern")
    return catalysts or ["Standard technical setup"]


def suggest_timeframe(momentum: float, volume_increase: float, drawdown: float) -> str:
    if momentum > 8 and volume_increase > 60:
        return "short term (1-7 days)"
    if momentum > 3 and volume_increase > 30:
        return "medium term (1-4 weeks)"
    if drawdown < -50:
        return "long term (1-6 months)"
    return "swing (2-4 weeks)"


def suggest_strategy(drawdown: float, rsi: float, momentum: float) -> str:
    if drawdown < -60 and rsi < 40:
        return "aggressive DCA"
    if drawdown < -40 and momentum > 0:
        return "DCA plus swing"
    if momentum > 5 and rsi < 70:
        return "momentum trading"
    if momentum > 3:
        return "swing trading"
    return "gradual accumulation"


def score_opportunity(ticker: Ticker24h, daily: CandleSeries,
                      params: Optional[AnalysisParameters] = None,
                      narrator: Optional[TradeNarrator] = None,
                      quote: str = "USDT") -> Opportunity:
    """Score one pair; raises NoDataError when there are too few daily bars."""
    params = params or AnalysisParameters()
    if len(daily) < MIN_DAILY_BARS:
        raise NoDataError(ticker.symbol, f"only {len(daily)} daily bars")

    closes, volumes = daily.closes, daily.volumes
    price = ticker.last_price or daily.last_close
    high = float(np.max(daily.highs))
    drawdown = (price - high) / high * 100 if high > 0 else 0.0
    rsi = ind.rsi(closes, 14)

    ma20, ma50 = ind.sma(closes, 20), ind.sma(closes, 50)
    momentum = (ma20 - ma50) / ma50 * 100 if ma50 > 0 else 0.0

    avg_volume = float(np.mean(volumes[-21:-1]))
    volume_increase = (volumes[-1] - avg_volume) / avg_volume * 100 if avg_volume > 0 else 0.0
    recent = volumes[-20:]
    volume_cv = float(np.std(recent) / np.mean(recent)) if np.mean(recent) > 0 else 1.0

    technical = _technical(drawdown, rsi, momentum, volume_increase, params)
    fundamental = _fundamental(ticker.quote_volume, ticker.price_change_percent, momentum, volume_cv)
    sentiment = _sentiment(ticker.price_change_percent, volume_increase, drawdown, momentum, rsi)
    total = technical + fundamental + sentiment

    catalysts = identify_catalysts(drawdown, momentum, volume_increase,
                                   ticker.price_change_percent, rsi)
    timeframe = suggest_timeframe(momentum, volume_increase, drawdown)
    strategy = suggest_strategy(drawdown, rsi, momentum)
    name = ticker.symbol[:-len(quote)] if ticker.symbol.endswith(quote) else ticker.symbol
    narrator = narrator or TradeNarrator()

    return Opportunity(
        symbol=ticker.symbol,
        name=name,
        score=round(total, 1),
        price=price,
        change_24h=ticker.price_change_percent,
        drawdown_from_high=round(drawdown, 2),
        rsi=round(rsi, 1),
        momentum=round(momentum, 2),
        volume_increase=round(volume_increase, 1),
        technical_score=technical,
        fundamental_score=fundamental,
        sentiment_score=sentiment,
        strategy=strategy,
        timeframe=timeframe,
        catalysts=catalysts,
        thesis=narrator.opportunity_thesis(name, total, catalysts, strategy, timeframe),
    )


# === SCANNER ===

class MarketScanner:
    """Scans the liquid universe and ranks opportunities"""

    def __init__(self, source: Optional[MarketDataSource] = None, db=None,
                 max_workers: Optional[int] = None):
        cfg = get_config()
        self.source = source or get_market_data()
        self.db = db or get_db()
        self.max_workers = max_workers or cfg.market_data.max_workers
        self.quote = cfg.market_data.quote_asset
        self.reference_symbol = cfg.market_data.reference_symbol
        self.safety_move_pct = cfg.engine.safety_move_pct
        self.safety_bump = cfg.engine.safety_threshold_bump
        self.narrator = TradeNarrator()

    def _reference(self, tickers: List[Ticker24h]) -> Optional[Ticker24h]:
        for t in tickers:
            if t.symbol == self.reference_symbol:
                return t
        try:
            return self.source.get_ticker_24h(self.reference_symbol)
        except NoDataError as e:
            logger.warning(f"Reference ticker unavailable, safety mode off: {e}")
            return None

    def scan(self, limit: int = 50, score_threshold: float = 65,
             user_id: Optional[str] = None) -> ScanReport:
        params = AnalysisParameters()
        if user_id:
            params = AnalysisParameters.from_row(self.db.get_analysis_params(user_id))

        tickers = self.source.get_all_tickers()
        pairs = eligible_pairs(tickers, self.quote, limit)
        reference = self._reference(tickers)
        safety = safety_mode_active(reference, self.safety_move_pct)
        effective = score_threshold + self.safety_bump if safety else score_threshold
        if safety:
            logger.warning(
                f"Safety mode: {self.reference_symbol} moved "
                f"{reference.price_change_percent:+.1f}% in 24h, threshold {effective}"
            )

        by_symbol = {t.symbol: t for t in pairs}

        def analyze_pair(symbol: str) -> Opportunity:
            daily = self.source.get_candles(symbol, "1d", 100)
            return score_opportunity(by_symbol[symbol], daily, params, self.narrator, self.quote)

        results, failures = run_concurrently(
            list(by_symbol), analyze_pair, self.max_workers, label="market-scan"
        )

        opportunities = []
        for opp in results.values():
            opp.safety_mode = safety
            if opp.score >= effective:
                opportunities.append(opp)
        opportunities.sort(key=lambda o: o.score, reverse=True)

        logger.info(
            f"Market scan: {len(opportunities)}/{len(pairs)} above {effective} "
            f"({len(failures)} skipped)"
        )
        return ScanReport(
            opportunities=opportunities,
            analyzed=len(pairs),
            threshold=score_threshold,
            effective_threshold=effective,
            safety_mode=safety,
            reference_move_pct=reference.price_change_percent if reference else 0.0,
            failures=failures,
        )


def scan_market(limit: int = 50, score_threshold: float = 65,
                user_id: Optional[str] = None, **kwargs) -> List[Opportunity]:
    """Ordered opportunities above the (safety-adjusted) threshold."""
    return MarketScanner(**kwargs).scan(limit, score_threshold, user_id).opportunities
