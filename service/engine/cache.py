"""
In-memory analysis cache keyed by client fingerprint.

Cache-aside with a per-entry TTL: an entry is served while
now - inserted_at < ttl and evicted lazily on the first read after that.
A hit is returned as-is, even if the threat lists changed since; that
staleness window is the price of not re-running the collectors.

get_or_compute() coalesces concurrent misses: while one caller computes a
key, others for the same key await its result instead of repeating the
upstream lookups.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Tuple

from models import ClientFingerprint, RiskAnalysis

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300


@dataclass(frozen=True)
class CacheEntry:
    analysis: RiskAnalysis
    inserted_at: float
    ttl: float

    def is_live(self, now: float) -> bool:
        return now - self.inserted_at < self.ttl


class AnalysisCache:
    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[ClientFingerprint, CacheEntry] = {}
        self._inflight: Dict[ClientFingerprint, asyncio.Future] = {}
        self.hits = 0
        self.misses = 0
        self.sets = 0

    def get(self, key: ClientFingerprint) -> Optional[RiskAnalysis]:
        entry = self._entries.get(key)
        if entry is not None and entry.is_live(self._clock()):
            self.hits += 1
            return entry.analysis

        if entry is not None:
            # Only drop the entry we looked at; a concurrent set() may have replaced it
            if self._entries.get(key) is entry:
                del self._entries[key]
            logger.debug("Cache EXPIRED: %s", key.ip)
        self.misses += 1
        return None

    def set(self, key: ClientFingerprint, analysis: RiskAnalysis, ttl: Optional[float] = None) -> None:
        self._entries[key] = CacheEntry(analysis, self._clock(), self.ttl if ttl is None else ttl)
        self.sets += 1

    def delete(self, key: ClientFingerprint) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()
        logger.info("Cache cleared")

    async def get_or_compute(
        self,
        key: ClientFingerprint,
        factory: Callable[[], Awaitable[RiskAnalysis]],
    ) -> Tuple[RiskAnalysis, bool]:
        """
        Return (analysis, computed). computed is True only for the caller
        that actually ran the factory.

        A factory error is not cached; it is raised to the computing caller
        and to everyone waiting on it. If the computing caller is cancelled,
        its waiters are released with None and one of them computes instead.
        """
        while True:
            cached = self.get(key)
            if cached is not None:
                return cached, False

            pending = self._inflight.get(key)
            if pending is None:
                break
            analysis = await asyncio.shield(pending)
            if analysis is not None:
                return analysis, False
            logger.debug("In-flight analysis for %s was cancelled, retrying", key.ip)

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            analysis = await factory()
        except asyncio.CancelledError:
            future.set_result(None)
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Mark retrieved so an unawaited future does not log a warning
            future.exception()
            raise
        else:
            self.set(key, analysis)
            future.set_result(analysis)
            return analysis, True
        finally:
            if self._inflight.get(key) is future:
                del self._inflight[key]

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, float]:
        lookups = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "keys": len(self._entries),
            "hit_rate": round(self.hits / lookups, 4) if lookups else 0.0,
        }
