#!/usr/bin/env python3
"""
DATA LAYER - Candle and ticker access for the signal engine

Sources:
- Price: Binance public REST API (free, no key)

The engine only depends on MarketDataSource; tests and alternative
venues plug in their own implementation.
"""

import logging
import requests
import numpy as np
import pandas as pd
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterator, List, NamedTuple, Optional

from .config import get_config
from .exceptions import NoDataError

logger = logging.getLogger(__name__)


class Candle(NamedTuple):
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass
class CandleSeries:
    """OHLCV bars for one symbol/timeframe, oldest first."""
    symbol: str
    timeframe: str
    opens: np.ndarray
    highs: np.ndarray
    lows: np.ndarray
    closes: np.ndarray
    volumes: np.ndarray
    timestamps: np.ndarray

    def __len__(self) -> int:
        return len(self.closes)

    @property
    def last_close(self) -> float:
        return float(self.closes[-1]) if len(self.closes) else 0.0

    @classmethod
    def empty(cls, symbol: str, timeframe: str) -> "CandleSeries":
        blank = np.array([], dtype=float)
        return cls(symbol, timeframe, blank, blank, blank, blank, blank,
                   np.array([], dtype=np.int64))

    @classmethod
    def from_rows(cls, symbol: str, timeframe: str, rows: List[Dict]) -> "CandleSeries":
        """Build from dicts with open/high/low/close/volume/timestamp keys."""
        if not rows:
            return cls.empty(symbol, timeframe)
        return cls(
            symbol=symbol,
            timeframe=timeframe,
            opens=np.array([r["open"] for r in rows], dtype=float),
            highs=np.array([r["high"] for r in rows], dtype=float),
            lows=np.array([r["low"] for r in rows], dtype=float),
            closes=np.array([r["close"] for r in rows], dtype=float),
            volumes=np.array([r["volume"] for r in rows], dtype=float),
            timestamps=np.array([r["timestamp"] for r in rows], dtype=np.int64),
        )

    @classmethod
    def from_candles(cls, symbol: str, timeframe: str, candles: List[Candle]) -> "CandleSeries":
        return cls.from_rows(symbol, timeframe, [c._asdict() for c in candles])

    def candles(self) -> Iterator[Candle]:
        for i in range(len(self.closes)):
            yield Candle(int(self.timestamps[i]), float(self.opens[i]), float(self.highs[i]),
                         float(self.lows[i]), float(self.closes[i]), float(self.volumes[i]))

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame({
            "open": self.opens,
            "high": self.highs,
            "low": self.lows,
            "close": self.closes,
            "volume": self.volumes,
        }, index=pd.to_datetime(self.timestamps, unit="ms", utc=True))
        df.index.name = "timestamp"
        return df


@dataclass
class Ticker24h:
    symbol: str
    last_price: float
    price_change_percent: float
    quote_volume: float
    high_price: float
    low_price: float

    @classmethod
    def from_payload(cls, data: Dict) -> "Ticker24h":
        return cls(
            symbol=data["symbol"],
            last_price=float(data["lastPrice"]),
            price_change_percent=float(data["priceChangePercent"]),
            quote_volume=float(data["quoteVolume"]),
            high_price=float(data["highPrice"]),
            low_price=float(data["lowPrice"]),
        )


class MarketDataSource(ABC):
    """Base class for market data collaborators"""

    @abstractmethod
    def get_candles(self, symbol: str, timeframe: str, limit: int) -> CandleSeries:
        pass

    @abstractmethod
    def get_ticker_24h(self, symbol: str) -> Ticker24h:
        pass

    @abstractmethod
    def get_all_tickers(self) -> List[Ticker24h]:
        pass


# === BINANCE ===

class BinanceSource(MarketDataSource):
    """Binance spot REST API for klines and 24h tickers"""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        cfg = get_config().market_data
        self.base_url = (base_url or cfg.base_url).rstrip("/")
        self.timeout = timeout or cfg.timeout
        self.session = session or requests.Session()

    def _get(self, path: str, params: Dict, symbol: str):
        try:
            resp = self.session.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except (requests.RequestException, ValueError) as e:
            raise NoDataError(symbol, f"request to {path} failed: {e}") from e

    def get_candles(self, symbol: str, timeframe: str, limit: int) -> CandleSeries:
        payload = self._get(
            "/api/v3/klines",
            {"symbol": symbol, "interval": timeframe, "limit": limit},
            symbol,
        )
        if not isinstance(payload, list) or not payload:
            raise NoDataError(symbol, f"empty {timeframe} candles")
        try:
            candles = [
                Candle(int(k[0]), float(k[1]), float(k[2]), float(k[3]), float(k[4]), float(k[5]))
                for k in payload
            ]
        except (TypeError, ValueError, IndexError) as e:
            raise NoDataError(symbol, f"malformed {timeframe} candles: {e}") from e
        return CandleSeries.from_candles(symbol, timeframe, candles)

    def get_ticker_24h(self, symbol: str) -> Ticker24h:
        payload = self._get("/api/v3/ticker/24hr", {"symbol": symbol}, symbol)
        try:
            return Ticker24h.from_payload(payload)
        except (KeyError, TypeError, ValueError) as e:
            raise NoDataError(symbol, f"malformed ticker: {e}") from e

    def get_all_tickers(self) -> List[Ticker24h]:
        payload = self._get("/api/v3/ticker/24hr", {}, "*")
        if not isinstance(payload, list):
            raise NoDataError("*", "ticker list unavailable")
        tickers = []
        for item in payload:
            try:
                tickers.append(Ticker24h.from_payload(item))
            except (KeyError, TypeError, ValueError):
                continue
        return tickers


_source: Optional[MarketDataSource] = None


def get_market_data() -> MarketDataSource:
    global _source
    if _source is None:
        _source = BinanceSource()
    return _source
