"""
Centralised configuration loaded from environment variables.

All settings live here, not scattered across modules.
Policy flags (block_vpn_tor, strict_mode, API keys) are read-only inputs to
the engine; nothing in the service writes them back.
"""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Policy
    block_vpn_tor: bool = False
    strict_mode: bool = False
    reputation_api_key: Optional[str] = None
    vpn_api_key: Optional[str] = None

    # Upstream sources
    reputation_api_url: str = "https://api.abuseipdb.com/api/v2/check"
    vpn_api_url: str = "https://pro.ip-api.com/json"
    tor_primary_url: str = "https://check.torproject.org/torbulkexitlist"
    tor_mirror_url: str = (
        "https://raw.githubusercontent.com/SecOps-Institute/Tor-IP-Addresses/master/tor-exit-nodes.lst"
    )
    vpn_ranges_url: str = "https://raw.githubusercontent.com/X4BNet/lists_vpn/main/ipv4.txt"
    vpn_ranges_mirror_url: Optional[str] = None
    tor_refresh_interval_seconds: int = 3600

    # Engine
    cache_ttl_seconds: int = 300
    geoip_db_path: str = "/data/GeoLite2-City.mmdb"

    # Request log / stats
    log_dir: str = "/data/logs"
    log_buffer_size: int = 1000
    log_flush_interval_seconds: int = 30
    stats_sample_size: int = 1000

    # Structured event log
    event_log_path: str = "/data/logs/guardian-events.jsonl"
    event_log_max_bytes: int = 100 * 1024 * 1024
    event_log_backup_count: int = 10

    log_level: str = "INFO"

    class Config:
        env_file = ".env"


# Single shared instance, read once by the server when it builds the context
settings = Settings()
