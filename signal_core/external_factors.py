#!/usr/bin/env python3
"""
EXTERNAL FACTORS - Confidence corrections from outside the price series

Terms (each independent, summed onto the base confidence, clamped to [30, 95]):
- Calendar events: exchange announcements weighted by category and proximity
- Fundamentals: 0-100 tokenomics/activity/liquidity/community composite
- News sentiment: keyword polarity over recent RSS headlines, amplified 1.5x
- Coherence: fixed penalties when RSI, MACD or Bollinger contradict the direction

Lookups run concurrently, each with its own deadline. A failed or slow
lookup contributes zero and is logged.
"""

import logging
import re
import time
import xml.etree.ElementTree as ET
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

import requests

from .config import get_config
from .parameters import AnalysisParameters, Direction
from .trading_model import IndicatorSnapshot

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 30.0
MAX_CONFIDENCE = 95.0

# === CALENDAR ===

IMPACT_WEIGHTS = {"high": 3.0, "medium": 2.0, "low": 1.0}
CATEGORY_BONUS = {
    "listing": 2.0,
    "upgrade": 2.0,
    "partnership": 1.5,
    "fork": 1.0,
    "airdrop": 0.5,
    "conference": 0.2,
    "other": 0.0,
}
CATEGORY_PENALTY = {
    "delisting": -10.0,
    "hack": -8.0,
    "exploit": -8.0,
}
CALENDAR_CAP = 15.0

_CATEGORY_KEYWORDS = [
    ("delisting", ("DELIST", "WILL REMOVE")),
    ("hack", ("HACK", "STOLEN", "BREACH")),
    ("exploit", ("EXPLOIT", "VULNERABILITY")),
    ("listing", ("LISTING", "LISTS", "WILL LIST")),
    ("upgrade", ("UPGRADE", "MAINNET", "HARD FORK UPGRADE")),
    ("partnership", ("PARTNERSHIP", "PARTNERS")),
    ("airdrop", ("AIRDROP",)),
    ("fork", ("FORK",)),
    ("conference", ("CONFERENCE", "SUMMIT", "AMA")),
]
_HIGH_IMPACT = {"listing", "upgrade", "fork", "delisting", "hack", "exploit"}


@dataclass
class CalendarEvent:
    title: str
    category: str
    impact: str
    date: datetime


def classify_event(title: str):
    upper = title.upper()
    for category, words in _CATEGORY_KEYWORDS:
        if any(w in upper for w in words):
            impact = "high" if category in _HIGH_IMPACT else "medium"
            if category == "conference":
                impact = "low"
            return category, impact
    return "other", "medium"


def event_impact(event: CalendarEvent, now: Optional[datetime] = None) -> float:
    """Signed impact of one event for a LONG position."""
    now = now or datetime.now(timezone.utc)
    days_away = abs((event.date - now).total_seconds()) / 86400
    if days_away <= 7:
        proximity = 1.5
    elif days_away <= 30:
        proximity = 1.2
    else:
        proximity = 1.0

    if event.category in CATEGORY_PENALTY:
        return CATEGORY_PENALTY[event.category] * proximity
    base = IMPACT_WEIGHTS.get(event.impact, 1.0) + CATEGORY_BONUS.get(event.category, 0.0)
    return base * proximity


def calendar_adjustment(events: List[CalendarEvent], direction: Direction,
                        now: Optional[datetime] = None) -> float:
    total = sum(event_impact(e, now) for e in events)
    total = max(-CALENDAR_CAP, min(CALENDAR_CAP, total))
    return -total if direction == Direction.SHORT else total


# === FUNDAMENTALS ===

def fundamental_adjustment(score: Optional[float], direction: Direction) -> float:
    """Rescale a 0-100 composite to 0-25 and centre it, so 50 is neutral."""
    if score is None:
        return 0.0
    contribution = max(0.0, min(100.0, score)) * 0.25
    delta = contribution - 12.5
    return -delta if direction == Direction.SHORT else delta


def _tiered(value: float, tiers, default: float = 0.0) -> float:
    for threshold, points in tiers:
        if value > threshold:
            return points
    return default


def fundamental_score(coin: Dict) -> float:
    """0-100 composite from a CoinGecko coin document."""
    market = coin.get("market_data") or {}
    community = coin.get("community_data") or {}
    developer = coin.get("developer_data") or {}

    def usd(key):
        value = market.get(key)
        if isinstance(value, dict):
            value = value.get("usd")
        return float(value or 0)

    circulating = float(market.get("circulating_supply") or 0)
    total = float(market.get("total_supply") or 0)
    max_supply = float(market.get("max_supply") or 0)
    market_cap = usd("market_cap")
    fdv = usd("fully_diluted_valuation")

    # Tokenomics (30)
    tokenomics = 3.0
    if total and circulating:
        ratio = circulating / total
        tokenomics = 15.0 if ratio > 0.9 else 8.0 if ratio > 0.7 else 3.0
    inflation = (max_supply - circulating) / circulating * 100 if max_supply and circulating else 0.0
    if inflation == 0:
        tokenomics += 10
    elif inflation < 5:
        tokenomics += 7
    elif inflation < 20:
        tokenomics += 4
    else:
        tokenomics += 1
    if fdv and market_cap:
        tokenomics += _tiered(market_cap / fdv, [(0.95, 5), (0.8, 3), (0.6, 1)])

    # Activity (25)
    commits = float(developer.get("commit_count_4_weeks") or 0)
    activity = min(15.0, commits * 0.15)
    audience = float(community.get("twitter_followers") or 0) + float(
        community.get("reddit_subscribers") or 0
    )
    activity += _tiered(audience, [(1_000_000, 10), (500_000, 7), (100_000, 4), (10_000, 2)])

    # Liquidity (25)
    volume = usd("total_volume")
    liquidity = _tiered(volume, [(1e9, 15), (5e8, 12), (1e8, 8), (5e7, 4)])
    liquidity += _tiered(market_cap, [(1e10, 10), (1e9, 7), (1e8, 4), (1e7, 2)])

    # Community (20)
    comments = float(community.get("reddit_average_comments_48h") or 0)
    community_score = _tiered(comments, [(50, 10), (20, 7), (5, 4)])
    votes_up = float(coin.get("sentiment_votes_up_percentage") or 0)
    community_score += _tiered(votes_up, [(75, 10), (60, 7), (50, 4)])

    return round(min(100.0, tokenomics + activity + liquidity + community_score), 1)


# === NEWS ===

CRITICAL_POSITIVE = ["listing", "partnership", "upgrade", "mainnet", "institutional",
                     "breakthrough", "etf approval", "adoption"]
CRITICAL_NEGATIVE = ["hack", "scam", "rug pull", "exploit", "regulation", "ban",
                     "lawsuit", "fraud", "ponzi", "delisting"]
POSITIVE_WORDS = ["gain", "bull", "bullish", "rally", "surge", "rise", "soar", "pump",
                  "growth", "record", "profit", "breakout"]
NEGATIVE_WORDS = ["bear", "bearish", "crash", "drop", "plunge", "dump", "decline",
                  "loss", "risk", "warning", "selloff", "slump"]

NEWS_AMPLIFIER = 1.5


def _matches(text: str, word: str) -> bool:
    return re.search(rf"\b{re.escape(word)}\b", text) is not None


def score_headline(text: str) -> float:
    """Keyword polarity of one headline, normalised to [-2, 2]."""
    lower = text.lower()
    score = 0
    score += 2 * sum(1 for w in CRITICAL_POSITIVE if _matches(lower, w))
    score -= 2 * sum(1 for w in CRITICAL_NEGATIVE if _matches(lower, w))
    score += sum(1 for w in POSITIVE_WORDS if _matches(lower, w))
    score -= sum(1 for w in NEGATIVE_WORDS if _matches(lower, w))
    return max(-2.0, min(2.0, score / 3))


def news_sentiment(headlines: List[str]) -> float:
    """Mean headline polarity in [-1, 1]; 0 when there are no headlines."""
    if not headlines:
        return 0.0
    return sum(score_headline(h) / 2 for h in headlines) / len(headlines)


def news_adjustment(sentiment: float, direction: Direction) -> float:
    delta = sentiment * 10 * NEWS_AMPLIFIER
    return -delta if direction == Direction.SHORT else delta


# === COHERENCE ===

def coherence_penalty(direction: Direction, snap: IndicatorSnapshot,
                      params: AnalysisParameters) -> float:
    """Non-positive penalty when sub-indicators contradict the chosen direction."""
    penalty = 0.0
    if direction == Direction.LONG:
        if snap.rsi14 > params.rsi_overbought_threshold:
            penalty -= 10
        if snap.macd_hist < 0:
            penalty -= 5
        if snap.bb_position > 0.9:
            penalty -= 5
    elif direction == Direction.SHORT:
        if snap.rsi14 < params.rsi_oversold_threshold:
            penalty -= 10
        if snap.macd_hist > 0:
            penalty -= 5
        if snap.bb_position < 0.1:
            penalty -= 5
    return penalty


# === FETCHERS ===

COINGECKO_IDS = {
    "BTC": "bitcoin", "ETH": "ethereum", "BNB": "binancecoin", "SOL": "solana",
    "ADA": "cardano", "XRP": "ripple", "DOT": "polkadot", "DOGE": "dogecoin",
    "AVAX": "avalanche-2", "MATIC": "matic-network", "LINK": "chainlink",
    "UNI": "uniswap", "ATOM": "cosmos", "LTC": "litecoin", "XLM": "stellar",
    "TRX": "tron", "NEAR": "near", "ARB": "arbitrum", "OP": "optimism",
}

RSS_FEEDS = [
    "https://cointelegraph.com/rss",
    "https://www.coindesk.com/arc/outboundfeeds/rss/",
    "https://decrypt.co/feed",
]

ANNOUNCEMENTS_URL = (
    "https://www.binance.com/bapi/composite/v1/public/cms/article/list/query"
)


def base_asset(symbol: str, quote: str = "USDT") -> str:
    return symbol[:-len(quote)] if symbol.endswith(quote) else symbol


class ExternalDataClient:
    """HTTP lookups for events, fundamentals and headlines. Errors propagate."""

    def __init__(self, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        cfg = get_config()
        self.timeout = timeout or cfg.engine.external_timeout
        self.session = session or requests.Session()
        self.coingecko_key = cfg.coingecko_api_key
        self.feeds = list(RSS_FEEDS)

    def fetch_events(self, asset: str) -> List[CalendarEvent]:
        resp = self.session.get(
            ANNOUNCEMENTS_URL,
            params={"type": 1, "pageSize": 20, "pageNo": 1},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        catalogs = (resp.json().get("data") or {}).get("catalogs") or []
        articles = catalogs[0].get("articles", []) if catalogs else []

        events = []
        for article in articles:
            title = article.get("title") or ""
            if not re.search(rf"\b{re.escape(asset.upper())}\b", title.upper()):
                continue
            category, impact = classify_event(title)
            released = article.get("releaseDate")
            date = (
                datetime.fromtimestamp(released / 1000, tz=timezone.utc)
                if released else datetime.now(timezone.utc)
            )
            events.append(CalendarEvent(title, category, impact, date))
        return events

    def fetch_fundamental_score(self, asset: str) -> Optional[float]:
        coin_id = COINGECKO_IDS.get(asset.upper())
        headers = {"x-cg-demo-api-key": self.coingecko_key} if self.coingecko_key else {}
        if coin_id is None:
            resp = self.session.get(
                "https://api.coingecko.com/api/v3/search",
                params={"query": asset}, headers=headers, timeout=self.timeout,
            )
            resp.raise_for_status()
            coins = [c for c in resp.json().get("coins", [])
                     if (c.get("symbol") or "").upper() == asset.upper()]
            if not coins:
                return None
            coin_id = coins[0]["id"]

        resp = self.session.get(
            f"https://api.coingecko.com/api/v3/coins/{coin_id}",
            params={
                "localization": "false", "tickers": "false",
                "community_data": "true", "developer_data": "true",
            },
            headers=headers,
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return fundamental_score(resp.json())

    def _asset_names(self, asset: str) -> set:
        names = {asset.lower()}
        coin_id = COINGECKO_IDS.get(asset.upper())
        if coin_id:
            names.add(coin_id.split("-")[0])
        return names

    def fetch_feed(self, url: str, asset: str) -> List[str]:
        """Headlines from one RSS feed that mention the asset."""
        resp = self.session.get(url, timeout=self.timeout)
        resp.raise_for_status()
        root = ET.fromstring(resp.content)
        names = self._asset_names(asset)

        headlines = []
        for item in root.findall(".//item"):
            title = item.find("title")
            if title is None or not title.text:
                continue
            lower = title.text.lower()
            if any(_matches(lower, n) for n in names):
                headlines.append(title.text.strip())
        return headlines

    def fetch_headlines(self, asset: str) -> List[str]:
        headlines = []
        for url in self.feeds:
            try:
                headlines.extend(self.fetch_feed(url, asset))
            except (requests.RequestException, ET.ParseError) as e:
                logger.warning(f"RSS feed {url} unavailable: {e}")
        return headlines


# === ADJUSTER ===

@dataclass
class ExternalAdjustment:
    base_confidence: float
    calendar: float = 0.0
    fundamental: float = 0.0
    news: float = 0.0
    coherence: float = 0.0
    fundamental_score: Optional[float] = None
    news_sentiment: float = 0.0
    events: List[str] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)

    @property
    def adjusted_confidence(self) -> float:
        total = self.base_confidence + self.calendar + self.fundamental + self.news + self.coherence
        return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, total))

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["adjusted_confidence"] = round(self.adjusted_confidence, 1)
        return data


class ExternalFactorAdjuster:
    """Concurrent fan-out over the external lookups, merged into one adjustment."""

    def __init__(self, client: Optional[ExternalDataClient] = None,
                 timeout: Optional[float] = None, enabled: bool = True):
        self.client = client or ExternalDataClient()
        self.timeout = timeout or get_config().engine.external_timeout
        self.enabled = enabled

    def _gather(self, asset: str) -> Dict:
        lookups = {
            "events": (self.client.fetch_events, (asset,)),
            "fundamentals": (self.client.fetch_fundamental_score, (asset,)),
        }
        # one future per RSS feed
        for url in self.client.feeds:
            lookups[f"news:{url}"] = (self.client.fetch_feed, (url, asset))

        results: Dict = {}
        executor = ThreadPoolExecutor(max_workers=len(lookups))
        try:
            futures = {name: executor.submit(fn, *args) for name, (fn, args) in lookups.items()}
            deadline = time.monotonic() + self.timeout
            for name, future in futures.items():
                remaining = max(0.0, deadline - time.monotonic())
                try:
                    results[name] = future.result(timeout=remaining)
                except FutureTimeout:
                    logger.warning(f"{name} lookup for {asset} timed out after {self.timeout}s")
                    results[name] = None
                except Exception as e:
                    logger.warning(f"{name} lookup for {asset} failed: {e}")
                    results[name] = None
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        feeds = [v for k, v in results.items() if k.startswith("news:")]
        if feeds and all(v is None for v in feeds):
            results["news"] = None
        else:
            results["news"] = [h for v in feeds if v for h in v]
        return results

    def adjust(self, symbol: str, direction: Direction, base_confidence: float,
               snap: IndicatorSnapshot, params: AnalysisParameters) -> ExternalAdjustment:
        result = ExternalAdjustment(base_confidence=base_confidence)
        result.coherence = coherence_penalty(direction, snap, params)
        if not self.enabled or direction == Direction.NEUTRAL:
            return result

        asset = base_asset(symbol, get_config().market_data.quote_asset)
        gathered = self._gather(asset)

        events = gathered.get("events")
        if events is None:
            result.failures.append("events")
        else:
            result.calendar = calendar_adjustment(events, direction)
            result.events = [e.title for e in events]

        score = gathered.get("fundamentals")
        if score is None:
            result.failures.append("fundamentals")
        else:
            result.fundamental_score = score
            result.fundamental = fundamental_adjustment(score, direction)

        headlines = gathered.get("news")
        if headlines is None:
            result.failures.append("news")
        else:
            result.news_sentiment = news_sentiment(headlines)
            result.news = news_adjustment(result.news_sentiment, direction)

        logger.info(
            f"{symbol} external: calendar={result.calendar:+.1f} "
            f"fundamental={result.fundamental:+.1f} news={result.news:+.1f} "
            f"coherence={result.coherence:+.1f}"
        )
        return result
