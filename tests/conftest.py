"""
Shared pytest fixtures and configuration.

conftest.py is auto-loaded by pytest; fixtures defined here are available
to all test files without explicit imports.

Upstream HTTP is never real: every test client is an httpx.AsyncClient on a
MockTransport, driven by the FakeUpstream fixture.
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import httpx
import pytest

# Add the service and simulator directories to the path so tests can import their modules
ROOT = os.path.join(os.path.dirname(__file__), "..")
sys.path.insert(0, os.path.join(ROOT, "service"))
sys.path.insert(0, os.path.join(ROOT, "threat_feed_simulator"))

import geoip2.errors  # noqa: E402
from config import Settings  # noqa: E402
from context import GuardianContext  # noqa: E402

TOR_PRIMARY_URL = "https://tor.test/torbulkexitlist"
TOR_MIRROR_URL = "https://mirror.test/tor-exit-nodes.lst"
VPN_RANGES_URL = "https://vpn.test/ipv4.txt"
REPUTATION_URL = "https://reputation.test/api/v2/check"
VPN_API_URL = "https://ipapi.test/json"

NORMAL_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class FakeUpstream:
    """Routes requests by URL (query string ignored) to canned responses."""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def text(self, url, body, status=200):
        self.routes[url] = ("text", body, status)

    def json(self, url, payload, status=200):
        self.routes[url] = ("json", payload, status)

    def fail(self, url, status=500):
        self.routes[url] = ("text", "upstream down", status)

    def timeout(self, url):
        self.routes[url] = ("timeout", None, None)

    def count(self, url):
        return sum(1 for call in self.calls if call.split("?")[0] == url)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url).split("?")[0]
        self.calls.append(str(request.url))
        kind, body, status = self.routes.get(url, ("text", "not found", 404))
        if kind == "timeout":
            raise httpx.ReadTimeout("simulated timeout", request=request)
        if kind == "json":
            return httpx.Response(status, json=body)
        return httpx.Response(status, text=body)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class FakeGeoReader:
    """Stands in for geoip2.database.Reader with a fixed ip → country table."""

    def __init__(self, countries):
        self.countries = countries
        self.closed = False

    def city(self, ip):
        if ip not in self.countries:
            raise geoip2.errors.AddressNotFoundError(f"The address {ip} is not in the database.")
        return SimpleNamespace(
            country=SimpleNamespace(iso_code=self.countries[ip]),
            subdivisions=SimpleNamespace(most_specific=SimpleNamespace(iso_code="01")),
            city=SimpleNamespace(name="Testville"),
            location=SimpleNamespace(time_zone="Etc/UTC"),
        )

    def close(self):
        self.closed = True


class FailingGeoReader:
    """A reader whose every lookup raises, like a wrong edition or a damaged file."""

    def __init__(self, error):
        self.error = error

    def city(self, ip):
        raise self.error


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_settings(tmp_path):
    def _make(**overrides):
        values = {
            "tor_primary_url": TOR_PRIMARY_URL,
            "tor_mirror_url": TOR_MIRROR_URL,
            "vpn_ranges_url": VPN_RANGES_URL,
            "reputation_api_url": REPUTATION_URL,
            "vpn_api_url": VPN_API_URL,
            "geoip_db_path": str(tmp_path / "missing.mmdb"),
            "log_dir": str(tmp_path / "logs"),
            "event_log_path": str(tmp_path / "logs" / "events.jsonl"),
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def make_context(make_settings, upstream):
    def _make(geoip_reader=None, **overrides):
        return GuardianContext(make_settings(**overrides), http_client=upstream.client(), geoip_reader=geoip_reader)

    return _make
