"""
Last-resort threat list contents.

HARDCODED_TOR_EXIT_NODES is only published when both remote Tor sources fail
and the store has never loaded a list. It is deliberately tiny: long-lived
exit relays that are unlikely to disappear between releases.

There is no equivalent VPN set: an empty VPN snapshot just means range
membership never fires until the background load succeeds.
"""

HARDCODED_TOR_EXIT_NODES: frozenset = frozenset(
    {
        "199.87.154.255",
        "104.244.76.13",
        "185.220.101.1",
        "199.195.249.84",
        "185.220.100.240",
    }
)

HARDCODED_VPN_RANGES: frozenset = frozenset()

# Sent to list providers so they can identify us
FETCH_USER_AGENT = "Guardian-RiskGate/1.0"
