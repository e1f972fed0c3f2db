"""
Mock threat-feed upstreams for local development.

Serves the same shapes as the real providers so the gate can be pointed at
it through environment variables (TOR_PRIMARY_URL, TOR_MIRROR_URL,
VPN_RANGES_URL, REPUTATION_API_URL, VPN_API_URL):

  GET /torbulkexitlist         Tor Project bulk exit list (plain text)
  GET /tor-exit-nodes.lst      mirror copy of the same list
  GET /vpn/ipv4.txt            VPN/hosting CIDR ranges (plain text)
  GET /api/v2/check            AbuseIPDB-style reputation lookup
  GET /json/<ip>               ip-api-style proxy/hosting lookup

Every feed randomly answers HTTP 500 at the configured failure rate to
simulate upstream instability. The fallback chain must cope with it.
"""

import ipaddress
import logging
import os
import random

from flask import Flask, Response, jsonify, request

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

app = Flask(__name__)

FAILURE_RATE = float(os.getenv("MOCK_FAILURE_RATE", "0.20"))

TOR_EXIT_NODES = [
    "185.220.101.35",
    "185.220.101.47",
    "104.244.72.115",
    "199.87.154.255",
    "162.247.74.27",
    "176.10.104.240",
    "23.129.64.131",
    "171.25.193.77",
    "109.70.100.28",
    "46.165.230.5",
]

VPN_RANGES = [
    "45.76.0.0/16",
    "104.238.128.0/18",
    "138.68.0.0/16",
    "159.89.0.0/16",
]

# Fixed confidence for a few addresses so manual testing is repeatable
ABUSE_CONFIDENCE = {
    "185.220.101.35": 100,
    "45.76.10.10": 40,
}


def _should_fail() -> bool:
    return random.random() < FAILURE_RATE


def _failure() -> tuple[Response, int]:
    logger.warning("Simulating upstream failure (500)")
    return jsonify({"error": "upstream_unavailable", "message": "Service temporarily unavailable"}), 500


def _plain_list(entries: list, header: str) -> Response:
    body = "\n".join([f"# {header}"] + entries) + "\n"
    return Response(body, mimetype="text/plain")


@app.route("/health")
def health() -> tuple[Response, int]:
    return jsonify({"status": "ok"}), 200


@app.route("/torbulkexitlist")
def tor_bulk_exit_list():
    if _should_fail():
        return _failure()
    logger.info("Serving %d Tor exit nodes", len(TOR_EXIT_NODES))
    return _plain_list(TOR_EXIT_NODES, "mock Tor bulk exit list")


@app.route("/tor-exit-nodes.lst")
def tor_mirror_list():
    if _should_fail():
        return _failure()
    return _plain_list(TOR_EXIT_NODES, "mock Tor exit node mirror")


@app.route("/vpn/ipv4.txt")
def vpn_ranges():
    if _should_fail():
        return _failure()
    return _plain_list(VPN_RANGES, "mock VPN ranges")


@app.route("/api/v2/check")
def reputation_check() -> tuple[Response, int]:
    """
    GET /api/v2/check?ipAddress=<ip>

    Requires a Key header like the real API. Unknown addresses get a random
    low-to-medium confidence.
    """
    if not request.headers.get("Key"):
        return jsonify({"errors": [{"detail": "Authentication failed"}]}), 401
    if _should_fail():
        return _failure()

    ip = request.args.get("ipAddress")
    if not ip:
        return jsonify({"errors": [{"detail": "The ip address field is required."}]}), 422

    confidence = ABUSE_CONFIDENCE.get(ip, random.randint(0, 30))
    return jsonify(
        {
            "data": {
                "ipAddress": ip,
                "abuseConfidencePercentage": confidence,
                "isWhitelisted": False,
                "countryCode": None,
            }
        }
    ), 200


@app.route("/json/<ip>")
def ip_api_lookup(ip: str) -> tuple[Response, int]:
    if _should_fail():
        return _failure()
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return jsonify({"status": "fail", "message": "invalid query"}), 200
    hosting = any(address in ipaddress.ip_network(cidr) for cidr in VPN_RANGES)
    return jsonify({"proxy": ip in ABUSE_CONFIDENCE, "hosting": hosting}), 200


if __name__ == "__main__":
    port = int(os.getenv("MOCK_PORT", "9000"))
    logger.info("Starting mock threat feeds on port %d (failure_rate=%.0f%%)", port, FAILURE_RATE * 100)
    app.run(host="0.0.0.0", port=port)
