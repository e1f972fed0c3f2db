"""
Tests for the HTTP API.

Focus: the gate's status codes, the bulk cap, and the operator endpoints
reading from the same context the gate writes to.
"""

import pytest
from conftest import NORMAL_UA, TOR_PRIMARY_URL, VPN_RANGES_URL
from fastapi.testclient import TestClient
from server import create_app

TOR_IP = "185.220.101.35"


@pytest.fixture
def client(make_context, upstream):
    upstream.text(TOR_PRIMARY_URL, f"{TOR_IP}\n")
    ctx = make_context(block_vpn_tor=True)
    return TestClient(create_app(ctx))


class TestGuard:
    def test_tor_client_blocked(self, client):
        response = client.get("/guard", headers={"X-Forwarded-For": f"{TOR_IP}, 10.0.0.1", "User-Agent": NORMAL_UA})
        assert response.status_code == 403
        body = response.json()
        assert body["allowed"] is False
        assert body["reason"] == "TOR_EXIT_NODE"
        assert body["risk_score"] == 80

    def test_clean_client_allowed(self, client):
        response = client.get("/guard", headers={"X-Real-IP": "8.8.8.8", "User-Agent": NORMAL_UA})
        assert response.status_code == 200
        body = response.json()
        assert body["allowed"] is True
        assert body["details"]["is_tor"] is False

    def test_decisions_show_up_in_logs_and_stats(self, client):
        client.get(
            "/guard",
            headers={
                "X-Forwarded-For": TOR_IP,
                "User-Agent": NORMAL_UA,
                "X-Original-Method": "POST",
                "X-Original-URI": "/wp-login.php",
            },
        )
        client.get("/guard", headers={"X-Forwarded-For": "8.8.8.8", "User-Agent": NORMAL_UA})
        client.get("/guard", headers={"X-Forwarded-For": "8.8.8.8", "User-Agent": NORMAL_UA})  # cached

        logs = client.get("/logs", params={"limit": 10}).json()
        assert logs["total"] == 2
        assert {entry["url"] for entry in logs["logs"]} == {"/wp-login.php", "/guard"}

        stats = client.get("/stats").json()
        assert stats["total_requests"] == 2
        assert stats["blocked_requests"] == 1
        assert stats["top_block_reasons"] == {"TOR_EXIT_NODE": 1}


class TestAnalyze:
    def test_single(self, client):
        response = client.post("/analyze", json={"ip": TOR_IP, "user_agent": NORMAL_UA})
        assert response.status_code == 200
        assert response.json()["reason"] == "TOR_EXIT_NODE"

    def test_missing_ip_rejected(self, client):
        assert client.post("/analyze", json={"user_agent": NORMAL_UA}).status_code == 422

    def test_bulk_keeps_order(self, client):
        response = client.post("/analyze/bulk", json={"ips": ["8.8.8.8", TOR_IP]})
        assert response.status_code == 200
        body = response.json()
        assert [result["ip"] for result in body["results"]] == ["8.8.8.8", TOR_IP]
        assert body["blocked"] == 1

    def test_bulk_cap(self, client):
        ips = [f"10.0.{i // 250}.{i % 250}" for i in range(101)]
        assert client.post("/analyze/bulk", json={"ips": ips}).status_code == 422
        assert client.post("/analyze/bulk", json={"ips": []}).status_code == 422

    def test_logs_limit_validated(self, client):
        assert client.get("/logs", params={"limit": 0}).status_code == 422

    def test_refresh_accepted(self, client):
        response = client.post("/threat-lists/refresh")
        assert response.status_code == 202
        assert response.json()["status"] == "refresh_triggered"


class TestLifecycle:
    def test_startup_loads_lists_and_shutdown_flushes(self, make_context, upstream, tmp_path):
        upstream.text(TOR_PRIMARY_URL, f"{TOR_IP}\n")
        upstream.text(VPN_RANGES_URL, "45.76.0.0/16\n")
        ctx = make_context()

        with TestClient(create_app(ctx)) as client:
            health = client.get("/health").json()
            assert health["status"] == "ok"
            assert health["tor_exit_nodes"]["count"] == 1
            assert health["tor_exit_nodes"]["source"] == "primary"

            client.get("/guard", headers={"X-Forwarded-For": "8.8.8.8", "User-Agent": NORMAL_UA})

        # Shutdown flushed the buffered decision to disk
        assert ctx.request_log.buffered == 0
        assert ctx.request_log.day_file().exists()
        assert (tmp_path / "logs" / "events.jsonl").exists()

    def test_health_degraded_on_hardcoded_list(self, make_context):
        ctx = make_context()
        client = TestClient(create_app(ctx))
        client.post("/analyze", json={"ip": "8.8.8.8"})

        health = client.get("/health").json()
        assert health["status"] == "degraded"
        assert health["tor_exit_nodes"]["source"] == "hardcoded"
