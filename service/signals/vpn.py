"""
VPN / proxy signal.

Two independent sources of evidence:
  - membership in the VPN range list (local, no I/O)
  - the ip-api proxy/hosting flags, only when vpn_api_key is configured

Either one is enough; the points are added once.
"""

import logging

import httpx
from models import Policy, SignalName, SignalResult
from signals.base import SignalCollector
from threat_lists.store import ThreatListStore

logger = logging.getLogger(__name__)

VPN_POINTS = 60
VPN_API_TIMEOUT_SECONDS = 3.0


class VPNProxyCollector(SignalCollector):
    name = SignalName.vpn

    def __init__(self, store: ThreatListStore, policy: Policy, client: httpx.AsyncClient, api_url: str):
        self.store = store
        self.policy = policy
        self.client = client
        self.api_url = api_url.rstrip("/")

    async def collect(self, ip: str, user_agent: str) -> SignalResult:
        details = {}
        performed = False

        if self.store.vpn.snapshot is not None:
            details["in_vpn_range"] = self.store.in_vpn_range(ip)
            performed = True

        if self.policy.vpn_api_key:
            flags = await self._lookup(ip)
            if flags is not None:
                details.update(flags)
                performed = True

        if not performed:
            return self.skipped()

        points = 0
        flagged = details.get("in_vpn_range") or details.get("is_proxy") or details.get("is_hosting")
        if flagged and self.policy.block_vpn_tor:
            points = VPN_POINTS
            details["vpn_blocked"] = True

        return SignalResult(name=self.name, performed=True, points=points, details=details)

    async def _lookup(self, ip: str):
        """Return {"is_proxy", "is_hosting"} or None if the lookup failed."""
        try:
            response = await self.client.get(
                f"{self.api_url}/{ip}",
                params={"fields": "proxy,hosting", "key": self.policy.vpn_api_key},
                timeout=VPN_API_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("VPN check failed for %s: %s", ip, exc)
            return None

        if not isinstance(data, dict):
            return None
        return {"is_proxy": bool(data.get("proxy")), "is_hosting": bool(data.get("hosting"))}
