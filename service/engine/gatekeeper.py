"""
Gatekeeper: the cached, logged evaluation used for live traffic.

  fingerprint → cache → (miss) engine.analyze → cache → request log

Only the caller that actually ran the analysis logs it, and when that fills
the log buffer it waits for the flush on a worker thread. Requests answered
from the cache, or by piggybacking on an in-flight analysis, are not
re-logged.
"""

import asyncio
import logging
import uuid
from typing import Optional

import events
from engine.analyzer import RiskEngine
from engine.cache import AnalysisCache
from models import ClientFingerprint, RiskAnalysis
from stats.request_log import RequestLog

logger = logging.getLogger(__name__)


def new_request_id() -> str:
    return uuid.uuid4().hex[:16]


class Gatekeeper:
    def __init__(self, engine: RiskEngine, cache: AnalysisCache, request_log: RequestLog):
        self.engine = engine
        self.cache = cache
        self.request_log = request_log
        self._flushing = False

    async def check(
        self,
        ip: str,
        user_agent: str = "",
        method: str = "GET",
        url: str = "/",
        request_id: Optional[str] = None,
    ) -> RiskAnalysis:
        fingerprint = ClientFingerprint(ip=ip, user_agent=user_agent or "")
        analysis, computed = await self.cache.get_or_compute(
            fingerprint, lambda: self.engine.analyze(fingerprint.ip, fingerprint.user_agent)
        )

        if computed:
            self.request_log.record(
                fingerprint,
                analysis,
                method=method,
                url=url,
                request_id=request_id or new_request_id(),
            )
            if analysis.is_blocked:
                logger.warning(
                    "BLOCKED REQUEST: %s - %s (risk %d)",
                    ip,
                    analysis.reason.value if analysis.reason else None,
                    analysis.risk_score,
                )
                events.record_block(ip, analysis.reason.value if analysis.reason else None, analysis.risk_score)
            if self.request_log.full:
                await self._flush_log()

        return analysis

    async def _flush_log(self) -> None:
        if self._flushing:
            return
        self._flushing = True
        try:
            # File I/O on a worker thread so other requests keep being served
            await asyncio.to_thread(self.request_log.flush)
        finally:
            self._flushing = False
