"""
Threat-list store: the Tor exit-node set and the VPN/proxy range set.

Each list is held as an immutable ThreatListSnapshot. A refresh builds a
complete new snapshot and publishes it with one reference assignment, so a
reader either sees the old list or the new one, never a half-built set.

Refresh walks a fallback chain:
  1. primary source
  2. mirror source
  3. hardcoded set, only if both remote sources failed AND nothing has
     ever been loaded

If every remote source fails and a snapshot already exists, it is kept and
the attempt time is recorded so that a dead upstream does not turn every
request into a 25 second refresh.
"""

import asyncio
import bisect
import ipaddress
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple, Union

import events
import httpx
from threat_lists.fetcher import fetch_list

logger = logging.getLogger(__name__)

Network = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]
Address = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

HARDCODED_SOURCE = "hardcoded"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ListSource:
    name: str
    url: str
    timeout: float


@dataclass(frozen=True)
class RangeIndex:
    """
    CIDR ranges as merged, sorted [first, last] integer intervals per IP
    version. Overlapping and adjacent ranges are merged at build time, so a
    lookup is one bisect instead of a scan over every network.
    """

    starts: Dict[int, Tuple[int, ...]]
    ends: Dict[int, Tuple[int, ...]]

    @classmethod
    def build(cls, networks: Iterable[Network]) -> "RangeIndex":
        spans: Dict[int, List[Tuple[int, int]]] = {4: [], 6: []}
        for network in networks:
            spans[network.version].append((int(network.network_address), int(network.broadcast_address)))

        starts, ends = {}, {}
        for version, intervals in spans.items():
            merged: List[List[int]] = []
            for first, last in sorted(intervals):
                if merged and first <= merged[-1][1] + 1:
                    merged[-1][1] = max(merged[-1][1], last)
                else:
                    merged.append([first, last])
            starts[version] = tuple(first for first, _ in merged)
            ends[version] = tuple(last for _, last in merged)
        return cls(starts, ends)

    def __contains__(self, address: Address) -> bool:
        starts = self.starts.get(address.version, ())
        value = int(address)
        i = bisect.bisect_right(starts, value) - 1
        return i >= 0 and value <= self.ends[address.version][i]

    def __len__(self) -> int:
        return sum(len(starts) for starts in self.starts.values())


@dataclass(frozen=True)
class ThreatListSnapshot:
    kind: str
    entries: FrozenSet[str]
    source: str
    last_update: datetime
    version: int
    ranges: Optional[RangeIndex] = field(default=None, repr=False)

    def __len__(self) -> int:
        return len(self.entries)


def _parse_ranges(entries: Iterable[str]) -> RangeIndex:
    networks = []
    for entry in entries:
        try:
            networks.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            logger.debug("Skipping unparseable range %r", entry)
    return RangeIndex.build(networks)


class ThreatList:
    """One refreshable list (Tor or VPN) with its own fallback chain."""

    def __init__(
        self,
        kind: str,
        sources: Sequence[ListSource],
        fallback_entries: FrozenSet[str],
        client: httpx.AsyncClient,
        refresh_interval_seconds: int,
        parse_networks: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.kind = kind
        self._sources = list(sources)
        self._fallback_entries = frozenset(fallback_entries)
        self._client = client
        self._interval = timedelta(seconds=refresh_interval_seconds)
        self._parse_networks = parse_networks
        self._clock = clock
        self._snapshot: Optional[ThreatListSnapshot] = None
        self._last_attempt: Optional[datetime] = None
        self._lock = asyncio.Lock()

    @property
    def snapshot(self) -> Optional[ThreatListSnapshot]:
        return self._snapshot

    @property
    def refreshing(self) -> bool:
        return self._lock.locked()

    def is_stale(self) -> bool:
        if self._snapshot is None:
            return True
        reference = self._snapshot.last_update
        if self._last_attempt and self._last_attempt > reference:
            reference = self._last_attempt
        return self._clock() - reference >= self._interval

    async def ensure_fresh(self) -> None:
        """Refresh only if stale. Callers that queued behind a refresh skip theirs."""
        if not self.is_stale():
            return
        async with self._lock:
            if self.is_stale():
                await self._refresh_locked()

    async def refresh(self) -> ThreatListSnapshot:
        """Unconditional refresh through the fallback chain."""
        async with self._lock:
            return await self._refresh_locked()

    async def _refresh_locked(self) -> ThreatListSnapshot:
        self._last_attempt = self._clock()

        for source in self._sources:
            try:
                entries = await fetch_list(self._client, source.url, source.timeout)
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning("%s list refresh from %s failed: %s", self.kind, source.name, exc)
                events.record_list_update(self.kind, 0, success=False, source=source.name, error=str(exc))
                continue
            return self._publish(entries, source.name)

        if self._snapshot is None:
            logger.warning("All %s sources failed, loading hardcoded list", self.kind)
            return self._publish(self._fallback_entries, HARDCODED_SOURCE)

        logger.error(
            "All %s sources failed, keeping snapshot v%d (%d entries)",
            self.kind,
            self._snapshot.version,
            len(self._snapshot),
        )
        return self._snapshot

    def _publish(self, entries: Iterable[str], source: str) -> ThreatListSnapshot:
        entry_set = frozenset(entries)
        previous = self._snapshot
        snapshot = ThreatListSnapshot(
            kind=self.kind,
            entries=entry_set,
            source=source,
            last_update=self._clock(),
            version=previous.version + 1 if previous else 1,
            ranges=_parse_ranges(entry_set) if self._parse_networks else None,
        )
        self._snapshot = snapshot

        logger.info("Published %s list v%d: %d entries from %s", self.kind, snapshot.version, len(snapshot), source)
        events.record_list_update(self.kind, len(snapshot), success=True, source=source)
        return snapshot


class ThreatListStore:
    """
    Holds the Tor and VPN lists.

    Tor membership is deadline-driven: a stale list is refreshed before
    answering. VPN ranges are loaded in the background and read as-is.
    """

    def __init__(self, tor: ThreatList, vpn: ThreatList):
        self.tor = tor
        self.vpn = vpn

    async def is_tor_exit_node(self, ip: str) -> bool:
        await self.tor.ensure_fresh()
        snapshot = self.tor.snapshot
        return snapshot is not None and ip in snapshot.entries

    def in_vpn_range(self, ip: str) -> bool:
        snapshot = self.vpn.snapshot
        if snapshot is None or not snapshot.ranges:
            return False
        try:
            address = ipaddress.ip_address(ip)
        except ValueError:
            return False
        return address in snapshot.ranges

    async def load_vpn_ranges(self) -> ThreatListSnapshot:
        return await self.vpn.refresh()

    async def refresh_tor(self) -> ThreatListSnapshot:
        return await self.tor.refresh()

    async def force_refresh(self) -> None:
        """Operator-triggered refresh of both lists, outside the schedule."""
        await asyncio.gather(self.tor.refresh(), self.vpn.refresh())

    @property
    def refreshing(self) -> bool:
        return self.tor.refreshing or self.vpn.refreshing
