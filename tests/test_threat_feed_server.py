"""
Tests for the mock threat-feed server used in local development.
"""

import pytest
import threat_feed_server


@pytest.fixture
def feeds(monkeypatch):
    monkeypatch.setattr(threat_feed_server, "FAILURE_RATE", 0.0)
    return threat_feed_server.app.test_client()


class TestLists:
    def test_tor_list_has_comment_header(self, feeds):
        response = feeds.get("/torbulkexitlist")
        assert response.status_code == 200
        lines = response.get_data(as_text=True).splitlines()
        assert lines[0].startswith("#")
        assert "185.220.101.35" in lines

    def test_vpn_ranges(self, feeds):
        body = feeds.get("/vpn/ipv4.txt").get_data(as_text=True)
        assert "45.76.0.0/16" in body.splitlines()

    def test_failure_rate_one_always_fails(self, feeds, monkeypatch):
        monkeypatch.setattr(threat_feed_server, "FAILURE_RATE", 1.0)
        assert feeds.get("/torbulkexitlist").status_code == 500
        assert feeds.get("/tor-exit-nodes.lst").status_code == 500


class TestLookups:
    def test_reputation_requires_key(self, feeds):
        assert feeds.get("/api/v2/check", query_string={"ipAddress": "1.2.3.4"}).status_code == 401

    def test_reputation_requires_address(self, feeds):
        assert feeds.get("/api/v2/check", headers={"Key": "k"}).status_code == 422

    def test_reputation_fixed_confidence(self, feeds):
        response = feeds.get("/api/v2/check", query_string={"ipAddress": "185.220.101.35"}, headers={"Key": "k"})
        assert response.status_code == 200
        assert response.get_json()["data"]["abuseConfidencePercentage"] == 100

    def test_hosting_range_flagged(self, feeds):
        body = feeds.get("/json/45.76.10.10").get_json()
        assert body == {"proxy": True, "hosting": True}

    def test_invalid_address(self, feeds):
        assert feeds.get("/json/not-an-ip").get_json()["status"] == "fail"
