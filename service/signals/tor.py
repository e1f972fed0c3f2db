"""
Tor exit-node signal.

Membership is reported whatever the policy says (is_tor feeds the block
reason), but points are only added when block_vpn_tor is on.
"""

from models import Policy, SignalName, SignalResult
from signals.base import SignalCollector
from threat_lists.store import ThreatListStore

TOR_POINTS = 80


class TorCollector(SignalCollector):
    name = SignalName.tor

    def __init__(self, store: ThreatListStore, policy: Policy):
        self.store = store
        self.policy = policy

    async def collect(self, ip: str, user_agent: str) -> SignalResult:
        # The store never raises: a failed refresh answers from the last snapshot
        is_tor = await self.store.is_tor_exit_node(ip)
        details = {"is_tor": is_tor}

        points = 0
        if is_tor and self.policy.block_vpn_tor:
            points = TOR_POINTS
            details["tor_blocked"] = True

        return SignalResult(name=self.name, performed=True, points=points, details=details)
