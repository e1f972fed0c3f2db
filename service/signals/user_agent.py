"""
User-agent heuristics.

A missing user-agent is evidence, not a reason to skip: real browsers always
send one, so this collector always runs.
"""

import re

from models import SignalName, SignalResult
from signals.base import SignalCollector
from user_agents import parse as parse_user_agent

MIN_USER_AGENT_LENGTH = 10
SHORT_USER_AGENT_POINTS = 20
BOT_SIGNATURE_POINTS = 15

BOT_SIGNATURES = ("bot", "crawler", "spider", "scraper", "curl", "wget", "python", "java")
_BOT_PATTERN = re.compile("|".join(BOT_SIGNATURES), re.IGNORECASE)


class UserAgentCollector(SignalCollector):
    name = SignalName.user_agent

    async def collect(self, ip: str, user_agent: str) -> SignalResult:
        user_agent = user_agent or ""
        parsed = parse_user_agent(user_agent)

        details = {
            "browser": parsed.browser.family,
            "browser_version": parsed.browser.version_string,
            "os": parsed.os.family,
            "device": parsed.device.family,
        }
        points = 0

        if len(user_agent) < MIN_USER_AGENT_LENGTH:
            points += SHORT_USER_AGENT_POINTS
            details["suspicious_ua"] = "Empty or too short"

        if _BOT_PATTERN.search(user_agent):
            points += BOT_SIGNATURE_POINTS
            details["possible_bot"] = True

        return SignalResult(name=self.name, performed=True, points=points, details=details)
