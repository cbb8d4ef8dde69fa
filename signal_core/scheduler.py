#!/usr/bin/env python3
"""
SCHEDULER - Runs the signal engine on a timer.

Schedules:
- Market scan: every SCAN_INTERVAL seconds (default 15 min), 24/7
- Learning engine: once a day at LEARNING_HOUR_UTC for every user

Run as: python -m signal_core.scheduler
"""

import time
import logging
import signal
from datetime import datetime, timezone
from typing import Optional

from .config import get_config, get_feature_flags
from .db import get_db
from .learning_loop import LearningEngine
from .opportunity_scorer import MarketScanner

logger = logging.getLogger(__name__)

LOOP_SLEEP = 30
HEARTBEAT_LOOPS = 10


def run_learning_cycle(db=None) -> int:
    """Run the learning engine for every known user. Returns users updated."""
    flags = get_feature_flags()
    if not flags.learning_loop_enabled:
        return 0

    db = db or get_db()
    engine = LearningEngine(db)
    updated = 0
    for user_id in db.list_user_ids():
        try:
            report = engine.run(user_id)
            if report.sufficient:
                updated += 1
        except Exception as e:
            logger.error(f"Learning run failed for {user_id}: {e}")
    logger.info(f"Learning cycle complete: {updated} users updated")
    return updated


class SignalScheduler:
    """Coordinates the periodic scan and the nightly learning pass."""

    def __init__(self, scanner: Optional[MarketScanner] = None, db=None):
        self.cfg = get_config()
        self.db = db or get_db()
        self.scanner = scanner or MarketScanner(db=self.db)
        self.running = True
        self._last_scan = 0.0
        self._last_learning_day = ""
        self._loop_count = 0

    def _shutdown(self, signum, frame):
        logger.info("Scheduler shutting down...")
        self.running = False

    def _run_scan(self):
        t0 = time.time()
        try:
            report = self.scanner.scan()
            logger.info(
                f"[SCAN] {len(report.opportunities)} opportunities | "
                f"safety={report.safety_mode} | {time.time() - t0:.1f}s"
            )
            if report.opportunities:
                top = report.opportunities[0]
                logger.info(f"[SCAN] Top pick: {top.symbol} score={top.score:.0f}")
        except Exception as e:
            logger.error(f"[SCAN] failed ({time.time() - t0:.1f}s): {e}", exc_info=True)

    def tick(self, now: Optional[float] = None, utc: Optional[datetime] = None):
        """One pass of the schedule."""
        now = now if now is not None else time.time()
        utc = utc or datetime.now(timezone.utc)
        today = utc.strftime("%Y-%m-%d")
        self._loop_count += 1

        if self._loop_count % HEARTBEAT_LOOPS == 0:
            logger.info(f"Heartbeat: loop {self._loop_count} | UTC={utc.strftime('%H:%M')}")

        if now - self._last_scan >= self.cfg.engine.scan_interval:
            self._run_scan()
            self._last_scan = now

        if utc.hour == self.cfg.engine.learning_hour_utc and self._last_learning_day != today:
            run_learning_cycle(self.db)
            self._last_learning_day = today

    def run(self):
        """Main loop - runs until SIGINT/SIGTERM."""
        signal.signal(signal.SIGINT, self._shutdown)
        signal.signal(signal.SIGTERM, self._shutdown)

        logger.info("=" * 60)
        logger.info("Signal Scheduler started")
        logger.info("=" * 60)
        logger.info(f"  Scan interval: {self.cfg.engine.scan_interval}s")
        logger.info(f"  Learning hour (UTC): {self.cfg.engine.learning_hour_utc}")
        logger.info(f"  Database: {'connected' if self.db.connected else 'offline'}")

        while self.running:
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Scheduler loop error: {e}", exc_info=True)
            time.sleep(LOOP_SLEEP)

        logger.info("Scheduler stopped")


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )
    SignalScheduler().run()
