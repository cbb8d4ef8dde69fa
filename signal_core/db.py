#!/usr/bin/env python3
"""
DATABASE CLIENT - Typed Supabase wrapper for the signal engine's state.

Owns reads of user settings and closed trades, and writes of the learned
analysis parameters. Falls back gracefully when Supabase is not configured.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from supabase import create_client

from .config import get_config

logger = logging.getLogger(__name__)

_client = None


def _get_client():
    global _client
    if _client is not None:
        return _client

    cfg = get_config()
    if not cfg.has_supabase:
        logger.warning("Supabase not configured, DB operations will be no-ops")
        return None

    try:
        _client = create_client(cfg.supabase.url, cfg.supabase.service_role_key)
        return _client
    except Exception as e:
        logger.error(f"Failed to connect to Supabase: {e}")
        return None


class SignalDB:
    """Typed wrapper around Supabase for parameters, settings and trade history."""

    def __init__(self, client=None):
        self._client = client if client is not None else _get_client()

    @property
    def connected(self) -> bool:
        return self._client is not None

    # ── Analysis Parameters ──────────────────────────────────────────

    def get_analysis_params(self, user_id: str) -> Optional[Dict]:
        if not self.connected or not user_id:
            return None
        try:
            resp = (
                self._client.table("analysis_params")
                .select("*")
                .eq("user_id", user_id)
                .limit(1)
                .execute()
            )
            return resp.data[0] if resp.data else None
        except Exception as e:
            logger.error(f"get_analysis_params: {e}")
            return None

    def upsert_analysis_params(self, user_id: str, params: Dict) -> bool:
        if not self.connected:
            return False
        try:
            row = {
                **params,
                "user_id": user_id,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }
            self._client.table("analysis_params").upsert(
                row, on_conflict="user_id"
            ).execute()
            return True
        except Exception as e:
            logger.error(f"upsert_analysis_params: {e}")
            return False

    # ── User Settings ────────────────────────────────────────────────

    def get_user_settings(self, user_id: str) -> Optional[Dict]:
        if not self.connected or not user_id:
            return None
        try:
            resp = (
                self._client.table("user_settings")
                .select("*")
                .eq("user_id", user_id)
                .limit(1)
                .execute()
            )
            return resp.data[0] if resp.data else None
        except Exception as e:
            logger.error(f"get_user_settings: {e}")
            return None

    def list_user_ids(self) -> List[str]:
        if not self.connected:
            return []
        try:
            resp = self._client.table("user_settings").select("user_id").execute()
            return [r["user_id"] for r in (resp.data or []) if r.get("user_id")]
        except Exception as e:
            logger.error(f"list_user_ids: {e}")
            return []

    # ── Trades ───────────────────────────────────────────────────────

    def get_closed_trades(self, user_id: str, since: datetime) -> List[Dict]:
        if not self.connected:
            return []
        try:
            resp = (
                self._client.table("trades")
                .select("*")
                .eq("user_id", user_id)
                .eq("status", "closed")
                .gte("created_at", since.isoformat())
                .order("created_at", desc=True)
                .execute()
            )
            return resp.data or []
        except Exception as e:
            logger.error(f"get_closed_trades: {e}")
            return []

    # ── Signal Log ───────────────────────────────────────────────────

    def log_signal(self, signal: Dict) -> bool:
        if not self.connected:
            return False
        try:
            row = {
                "user_id": signal.get("user_id"),
                "symbol": signal.get("symbol", ""),
                "direction": signal.get("direction", ""),
                "confidence": signal.get("confidence", 0),
                "base_confidence": signal.get("base_confidence", 0),
                "entry_price": signal.get("entry_price", 0),
                "stop_loss": signal.get("stop_loss", 0),
                "take_profit": signal.get("take_profit_2", 0),
                "leverage": signal.get("leverage", 1),
                "analysis_data": signal,
                "created_at": datetime.now(timezone.utc).isoformat(),
            }
            self._client.table("signal_log").insert(row).execute()
            return True
        except Exception as e:
            logger.error(f"log_signal: {e}")
            return False


# Singleton
_db: Optional[SignalDB] = None


def get_db() -> SignalDB:
    global _db
    if _db is None:
        _db = SignalDB()
    return _db
