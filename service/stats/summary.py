"""Rolling statistics over a sample of request log records."""

from collections import Counter
from datetime import datetime, timedelta
from typing import Sequence

from models import LastHourStats, LogRecord, StatsResponse

UNKNOWN_COUNTRY = "Unknown"


def summarize(records: Sequence[LogRecord], now: datetime) -> StatsResponse:
    if not records:
        return StatsResponse()

    blocked = [record for record in records if record.analysis.is_blocked]
    reasons = Counter(
        record.analysis.reason.value for record in blocked if record.analysis.reason is not None
    )
    countries = Counter(record.analysis.details.get("country") or UNKNOWN_COUNTRY for record in records)

    hour_ago = now - timedelta(hours=1)
    last_hour = [record for record in records if record.timestamp > hour_ago]

    return StatsResponse(
        total_requests=len(records),
        blocked_requests=len(blocked),
        allowed_requests=len(records) - len(blocked),
        avg_risk_score=round(sum(record.analysis.risk_score for record in records) / len(records), 2),
        top_block_reasons=dict(reasons.most_common()),
        top_countries=dict(countries.most_common()),
        last_hour=LastHourStats(
            total=len(last_hour),
            blocked=sum(1 for record in last_hour if record.analysis.is_blocked),
        ),
    )
