"""
Risk engine: fan out to the collectors, then score and decide.

Two failure policies on purpose:
  - a collector that cannot reach its source reports "not performed" and
    zero points (fail open, handled inside the collector)
  - anything that escapes a collector, or breaks scoring, turns into a
    blocked ANALYSIS_ERROR decision (fail closed, handled here)
"""

import asyncio
import logging
from typing import List, Sequence

from engine.scorer import decide, failed_analysis
from models import Policy, RiskAnalysis, SignalResult
from signals.base import SignalCollector

logger = logging.getLogger(__name__)


class RiskEngine:
    def __init__(self, collectors: Sequence[SignalCollector], policy: Policy):
        self.collectors = list(collectors)
        self.policy = policy

    async def analyze(self, ip: str, user_agent: str = "") -> RiskAnalysis:
        """Evaluate one client from scratch. Never raises."""
        try:
            results: List[SignalResult] = await asyncio.gather(
                *(collector.collect(ip, user_agent or "") for collector in self.collectors)
            )
            analysis = decide(ip, results, self.policy)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Risk analysis failed for %s, failing closed", ip)
            return failed_analysis(ip)

        logger.debug(
            "Analysed %s: score=%d level=%s blocked=%s reason=%s",
            ip,
            analysis.risk_score,
            analysis.risk_level.value,
            analysis.is_blocked,
            analysis.reason.value if analysis.reason else None,
        )
        return analysis
