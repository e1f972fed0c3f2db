"""
Request log: in-memory buffer + per-day JSON files.

Records are appended to a bounded buffer and merged into
<log_dir>/requests-YYYY-MM-DD.json (UTC day, one JSON array per file) when
the buffer fills up or the flush job fires, whichever comes first. record()
never touches the disk; flush() does blocking file I/O and is run on a
worker thread by its callers.

Disk problems never reach the request path: a failed flush is logged and
the records stay buffered for the next attempt.
"""

import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

from models import ClientFingerprint, LogRecord, RiskAnalysis, StatsResponse
from pydantic import ValidationError
from stats.summary import summarize

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 1000
DEFAULT_STATS_SAMPLE = 1000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RequestLog:
    def __init__(
        self,
        log_dir: str,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.log_dir = Path(log_dir)
        self.buffer_size = buffer_size
        self._clock = clock
        self._buffer: List[LogRecord] = []
        self._buffer_lock = threading.Lock()
        # Serialises read-merge-write of the day file between the timer and a full buffer
        self._flush_lock = threading.Lock()

    def record(
        self,
        fingerprint: ClientFingerprint,
        analysis: RiskAnalysis,
        method: str,
        url: str,
        request_id: str,
        timestamp: Optional[datetime] = None,
    ) -> LogRecord:
        entry = LogRecord(
            timestamp=timestamp or self._clock(),
            request_id=request_id,
            fingerprint=fingerprint,
            method=method,
            url=url,
            analysis=analysis,
        )
        with self._buffer_lock:
            self._buffer.append(entry)
        return entry

    @property
    def buffered(self) -> int:
        with self._buffer_lock:
            return len(self._buffer)

    @property
    def full(self) -> bool:
        """True once the buffer reached its cap; the owner should flush off the event loop."""
        with self._buffer_lock:
            return len(self._buffer) >= self.buffer_size

    def day_file(self, day: Optional[datetime] = None) -> Path:
        day = day or self._clock()
        return self.log_dir / f"requests-{day.strftime('%Y-%m-%d')}.json"

    def flush(self) -> int:
        """Merge the buffer into today's file. Returns the number of records written."""
        with self._flush_lock:
            with self._buffer_lock:
                pending, self._buffer = self._buffer, []
            if not pending:
                return 0

            path = self.day_file()
            try:
                existing = self._load_for_merge(path)
                existing.extend(record.model_dump(mode="json") for record in pending)
                self._write_atomic(path, existing)
            except (OSError, TypeError, ValueError) as exc:
                logger.error("Failed to flush %d request logs to %s: %s", len(pending), path, exc)
                self._restore(pending)
                return 0

            logger.debug("Flushed %d request logs to %s", len(pending), path)
            return len(pending)

    def _restore(self, pending: List[LogRecord]) -> None:
        with self._buffer_lock:
            self._buffer = pending + self._buffer
            overflow = len(self._buffer) - self.buffer_size
            if overflow > 0:
                del self._buffer[:overflow]
        if overflow > 0:
            logger.warning("Request log buffer over capacity, dropped %d oldest records", overflow)

    def _load_for_merge(self, path: Path) -> list:
        if not path.exists():
            return []
        try:
            with path.open(encoding="utf-8") as fh:
                content = json.load(fh)
            if isinstance(content, list):
                return content
            raise ValueError("log file is not a JSON array")
        except ValueError as exc:
            aside = path.with_name(f"{path.name}.corrupt-{self._clock().strftime('%H%M%S')}")
            logger.warning("Could not parse %s (%s), moving it to %s", path, exc, aside.name)
            path.rename(aside)
            return []

    def _write_atomic(self, path: Path, records: list) -> None:
        self.log_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.log_dir, prefix=".requests-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(records, fh, indent=2)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _read_persisted(self, limit: int) -> List[LogRecord]:
        path = self.day_file()
        if not path.exists():
            return []
        try:
            with path.open(encoding="utf-8") as fh:
                raw = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning("Could not read log file %s: %s", path, exc)
            return []
        if not isinstance(raw, list):
            return []

        records = []
        for item in raw[-limit:]:
            try:
                records.append(LogRecord.model_validate(item))
            except ValidationError:
                logger.debug("Skipping malformed log record in %s", path)
        return records

    def get_recent_logs(self, limit: int = 100) -> List[LogRecord]:
        """Newest first, from today's file and the unflushed buffer."""
        if limit <= 0:
            return []
        with self._buffer_lock:
            in_memory = self._buffer[-limit:]
        combined = self._read_persisted(limit) + in_memory
        combined.sort(key=lambda record: record.timestamp, reverse=True)
        return combined[:limit]

    def get_stats(self, sample: int = DEFAULT_STATS_SAMPLE) -> StatsResponse:
        """Statistics over the most recent `sample` records, not a lifetime counter."""
        return summarize(self.get_recent_logs(sample), now=self._clock())
