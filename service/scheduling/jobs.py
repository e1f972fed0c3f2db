"""
Background jobs using APScheduler.

APScheduler's AsyncIOScheduler integrates cleanly with FastAPI's event loop.
Three jobs, all owned by one BackgroundJobs instance and removed on stop():
  - tor_refresh      interval   keeps the Tor list fresh off the request path
  - request_log_flush interval  persists the request-log buffer
  - vpn_ranges_load  one-shot   best-effort VPN range load at startup

The flush job is a plain function, so APScheduler runs it on its worker
thread pool rather than blocking the event loop with file I/O.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from stats.request_log import RequestLog
from threat_lists.store import ThreatListStore

logger = logging.getLogger(__name__)

TOR_REFRESH_JOB = "tor_refresh"
LOG_FLUSH_JOB = "request_log_flush"
VPN_LOAD_JOB = "vpn_ranges_load"


class BackgroundJobs:
    def __init__(
        self,
        store: ThreatListStore,
        request_log: RequestLog,
        tor_refresh_interval_seconds: int,
        flush_interval_seconds: int,
    ):
        self.store = store
        self.request_log = request_log
        self.tor_refresh_interval_seconds = tor_refresh_interval_seconds
        self.flush_interval_seconds = flush_interval_seconds
        self.scheduler = AsyncIOScheduler()
        self._manual_refresh: Optional[asyncio.Task] = None

    async def _refresh_tor(self) -> None:
        await self.store.refresh_tor()

    async def _load_vpn_ranges(self) -> None:
        await self.store.load_vpn_ranges()

    def _flush_logs(self) -> None:
        self.request_log.flush()

    def start(self) -> None:
        """Register jobs and start the scheduler. Must run inside the event loop."""
        self.scheduler.add_job(
            self._refresh_tor,
            trigger="interval",
            seconds=self.tor_refresh_interval_seconds,
            id=TOR_REFRESH_JOB,
            replace_existing=True,
        )
        self.scheduler.add_job(
            self._flush_logs,
            trigger="interval",
            seconds=self.flush_interval_seconds,
            id=LOG_FLUSH_JOB,
            replace_existing=True,
        )
        self.scheduler.add_job(
            self._load_vpn_ranges,
            next_run_time=datetime.now(timezone.utc),
            id=VPN_LOAD_JOB,
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info(
            "Scheduler started (tor_refresh=%ds, log_flush=%ds)",
            self.tor_refresh_interval_seconds,
            self.flush_interval_seconds,
        )

    def stop(self) -> None:
        """Remove jobs and stop the scheduler. Called on app shutdown."""
        if self._manual_refresh and not self._manual_refresh.done():
            self._manual_refresh.cancel()
        if self.scheduler.running:
            self.scheduler.remove_all_jobs()
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    def trigger_refresh(self) -> dict:
        """
        Called by POST /threat-lists/refresh for an immediate refresh.

        Returns quickly. The refresh runs in a background task so the HTTP
        response is not held for up to 25 seconds of upstream timeouts.
        """
        if self.store.refreshing or (self._manual_refresh and not self._manual_refresh.done()):
            return {"status": "conflict", "message": "Threat list refresh already in progress"}

        self._manual_refresh = asyncio.create_task(self.store.force_refresh())
        return {"status": "refresh_triggered", "message": "Threat list refresh started in background"}
