"""
AbuseIPDB reputation signal.

Only runs with reputation_api_key configured. The remote confidence
percentage becomes points once it passes 25%, capped at 50.
"""

import logging

import httpx
from models import Policy, SignalName, SignalResult
from signals.base import SignalCollector

logger = logging.getLogger(__name__)

REPUTATION_TIMEOUT_SECONDS = 5.0
CONFIDENCE_THRESHOLD = 25
MAX_REPUTATION_POINTS = 50
MAX_REPORT_AGE_DAYS = 90


def reputation_points(confidence: int) -> int:
    if confidence > CONFIDENCE_THRESHOLD:
        return min(confidence, MAX_REPUTATION_POINTS)
    return 0


class ReputationCollector(SignalCollector):
    name = SignalName.reputation

    def __init__(self, policy: Policy, client: httpx.AsyncClient, api_url: str):
        self.policy = policy
        self.client = client
        self.api_url = api_url

    async def collect(self, ip: str, user_agent: str) -> SignalResult:
        if not self.policy.reputation_api_key:
            return self.skipped()

        try:
            response = await self.client.get(
                self.api_url,
                params={"ipAddress": ip, "maxAgeInDays": MAX_REPORT_AGE_DAYS},
                headers={"Key": self.policy.reputation_api_key, "Accept": "application/json"},
                timeout=REPUTATION_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("IP reputation check failed for %s: %s", ip, exc)
            return self.skipped()

        data = payload.get("data") if isinstance(payload, dict) else None
        if not data or not isinstance(data, dict):
            return self.skipped()

        try:
            confidence = int(data.get("abuseConfidencePercentage") or 0)
        except (TypeError, ValueError):
            logger.warning("Unexpected abuse confidence for %s: %r", ip, data.get("abuseConfidencePercentage"))
            return self.skipped()

        details = {
            "abuse_confidence": confidence,
            "is_whitelisted": data.get("isWhitelisted"),
        }

        points = reputation_points(confidence)
        if points:
            details["bad_reputation"] = True

        return SignalResult(name=self.name, performed=True, points=points, details=details)
