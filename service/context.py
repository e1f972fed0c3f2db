"""
Process-wide service context.

Built once at startup and handed to the HTTP layer. There are no module
level singletons for the store, cache or request log. Tests build their own
context around a mocked HTTP client.

Lifecycle:
  start()    configure the event log, load the Tor list, start jobs
  shutdown() stop jobs, flush the request log, close the GeoIP reader
             and the shared HTTP client
"""

import logging
from typing import Optional

import events
import httpx
from config import Settings
from engine.analyzer import RiskEngine
from engine.cache import AnalysisCache
from engine.gatekeeper import Gatekeeper
from models import Policy
from scheduling.jobs import BackgroundJobs
from signals.geo_ip import GeoIPCollector, open_reader
from signals.reputation import ReputationCollector
from signals.tor import TorCollector
from signals.user_agent import UserAgentCollector
from signals.vpn import VPNProxyCollector
from stats.request_log import RequestLog
from threat_lists.constants import HARDCODED_TOR_EXIT_NODES, HARDCODED_VPN_RANGES
from threat_lists.store import ListSource, ThreatList, ThreatListStore

logger = logging.getLogger(__name__)

TOR_PRIMARY_TIMEOUT = 15.0
TOR_MIRROR_TIMEOUT = 10.0
VPN_RANGES_TIMEOUT = 10.0


class GuardianContext:
    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None, geoip_reader=None):
        self.settings = settings
        self.policy = Policy.from_settings(settings)
        self.http_client = http_client or httpx.AsyncClient()
        self.geoip_reader = geoip_reader if geoip_reader is not None else open_reader(settings.geoip_db_path)

        self.threat_lists = ThreatListStore(
            tor=ThreatList(
                "tor",
                sources=[
                    ListSource("primary", settings.tor_primary_url, TOR_PRIMARY_TIMEOUT),
                    ListSource("mirror", settings.tor_mirror_url, TOR_MIRROR_TIMEOUT),
                ],
                fallback_entries=HARDCODED_TOR_EXIT_NODES,
                client=self.http_client,
                refresh_interval_seconds=settings.tor_refresh_interval_seconds,
            ),
            vpn=ThreatList(
                "vpn",
                sources=_vpn_sources(settings),
                fallback_entries=HARDCODED_VPN_RANGES,
                client=self.http_client,
                refresh_interval_seconds=settings.tor_refresh_interval_seconds,
                parse_networks=True,
            ),
        )

        self.engine = RiskEngine(
            [
                GeoIPCollector(self.geoip_reader),
                TorCollector(self.threat_lists, self.policy),
                VPNProxyCollector(self.threat_lists, self.policy, self.http_client, settings.vpn_api_url),
                UserAgentCollector(),
                ReputationCollector(self.policy, self.http_client, settings.reputation_api_url),
            ],
            self.policy,
        )
        self.cache = AnalysisCache(ttl_seconds=settings.cache_ttl_seconds)
        self.request_log = RequestLog(settings.log_dir, buffer_size=settings.log_buffer_size)
        self.gatekeeper = Gatekeeper(self.engine, self.cache, self.request_log)
        self.jobs = BackgroundJobs(
            self.threat_lists,
            self.request_log,
            tor_refresh_interval_seconds=settings.tor_refresh_interval_seconds,
            flush_interval_seconds=settings.log_flush_interval_seconds,
        )

    async def start(self) -> None:
        events.configure_event_log(
            self.settings.event_log_path,
            self.settings.event_log_max_bytes,
            self.settings.event_log_backup_count,
        )
        events.record_startup(self.policy.block_vpn_tor, self.policy.strict_mode)

        snapshot = await self.threat_lists.refresh_tor()
        logger.info("Tor list ready: %d exit nodes from %s", len(snapshot), snapshot.source)

        self.jobs.start()

    async def shutdown(self) -> None:
        self.jobs.stop()
        flushed = self.request_log.flush()
        logger.info("Flushed %d request logs on shutdown", flushed)
        if self.geoip_reader is not None and hasattr(self.geoip_reader, "close"):
            self.geoip_reader.close()
        await self.http_client.aclose()

    def get_stats(self):
        return self.request_log.get_stats(self.settings.stats_sample_size)


def _vpn_sources(settings: Settings) -> list:
    sources = [ListSource("primary", settings.vpn_ranges_url, VPN_RANGES_TIMEOUT)]
    if settings.vpn_ranges_mirror_url:
        sources.append(ListSource("mirror", settings.vpn_ranges_mirror_url, VPN_RANGES_TIMEOUT))
    return sources
