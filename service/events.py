"""
Structured operational events written as JSON lines.

Events go through a dedicated stdlib logger so that, until
configure_event_log() attaches the rotating file handler, they simply
propagate to the normal service log. Each line looks like:

  {"timestamp": "...", "event": "list_update", "list_type": "tor", ...}
"""

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

EVENT_LOGGER_NAME = "guardian.events"

event_logger = logging.getLogger(EVENT_LOGGER_NAME)


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "event": record.getMessage(),
        }
        entry.update(getattr(record, "event_data", {}))
        return json.dumps(entry, default=str)


def configure_event_log(path: str, max_bytes: int, backup_count: int) -> RotatingFileHandler:
    """Attach a size-rotated JSONL handler. Safe to call more than once."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    for existing in list(event_logger.handlers):
        if isinstance(existing, RotatingFileHandler):
            event_logger.removeHandler(existing)
            existing.close()

    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    handler.setFormatter(JsonLineFormatter())
    event_logger.addHandler(handler)
    event_logger.setLevel(logging.INFO)
    return handler


def emit(event: str, **data: Any) -> None:
    event_logger.info(event, extra={"event_data": data})


def record_list_update(
    list_type: str,
    count: int,
    success: bool,
    source: str,
    error: Optional[str] = None,
) -> None:
    emit("list_update", list_type=list_type, count=count, success=success, source=source, error=error)


def record_block(ip: str, reason: Optional[str], risk_score: int) -> None:
    emit("block", ip=ip, reason=reason, risk_score=risk_score, severity="high")


def record_startup(block_vpn_tor: bool, strict_mode: bool) -> None:
    emit("startup", version="1.0.0", block_vpn_tor=block_vpn_tor, strict_mode=strict_mode)
