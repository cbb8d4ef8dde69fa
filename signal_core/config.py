#!/usr/bin/env python3
"""
CENTRALIZED CONFIG - Single source of truth for all configuration.

Loads from .env file and provides typed access to all settings.
"""

import os
from pathlib import Path
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

# Load .env from project root
BASE_DIR = Path(__file__).parent.parent
load_dotenv(BASE_DIR / ".env")


@dataclass(frozen=True)
class SupabaseConfig:
    url: str
    anon_key: str
    service_role_key: str


@dataclass(frozen=True)
class MarketDataConfig:
    base_url: str = "https://api.binance.com"
    timeout: float = 10.0
    max_workers: int = 8
    quote_asset: str = "USDT"
    reference_symbol: str = "BTCUSDT"


@dataclass(frozen=True)
class EngineConfig:
    signal_policy: str = "force_direction"
    # External factor lookups (seconds, per service)
    external_timeout: float = 8.0
    # Market scan safety mode
    safety_move_pct: float = 10.0
    safety_threshold_bump: int = 10
    # Scheduler
    scan_interval: int = 900             # 15 min
    learning_hour_utc: int = 0


@dataclass(frozen=True)
class FeatureFlags:
    external_factors_enabled: bool = True
    learning_loop_enabled: bool = True
    signal_logging_enabled: bool = False


class Config:
    """Centralized configuration with typed access."""

    def __init__(self):
        self.supabase = SupabaseConfig(
            url=os.getenv("SUPABASE_URL", ""),
            anon_key=os.getenv("SUPABASE_ANON_KEY", ""),
            service_role_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY", ""),
        )
        self.market_data = MarketDataConfig(
            base_url=os.getenv("BINANCE_BASE_URL", "https://api.binance.com"),
            timeout=float(os.getenv("MARKET_DATA_TIMEOUT", "10")),
            max_workers=int(os.getenv("SCAN_MAX_WORKERS", "8")),
        )
        self.engine = EngineConfig(
            signal_policy=os.getenv("SIGNAL_POLICY", "force_direction").lower(),
            external_timeout=float(os.getenv("EXTERNAL_FACTOR_TIMEOUT", "8")),
            scan_interval=int(os.getenv("SCAN_INTERVAL", "900")),
        )
        self.coingecko_api_key = os.getenv("COINGECKO_API_KEY", "")
        self.base_dir = BASE_DIR

    @property
    def has_supabase(self) -> bool:
        return bool(self.supabase.url and self.supabase.service_role_key)


# Singletons
_config: Optional[Config] = None
_feature_flags: Optional[FeatureFlags] = None


def get_config() -> Config:
    global _config
    if _config is None:
        _config = Config()
    return _config


def get_feature_flags() -> FeatureFlags:
    global _feature_flags
    if _feature_flags is None:
        _feature_flags = FeatureFlags(
            external_factors_enabled=os.getenv("FEATURE_EXTERNAL_FACTORS", "true").lower() == "true",
            learning_loop_enabled=os.getenv("FEATURE_LEARNING_LOOP", "true").lower() == "true",
            signal_logging_enabled=os.getenv("FEATURE_SIGNAL_LOGGING", "false").lower() == "true",
        )
    return _feature_flags
