"""
Plain-text threat list fetcher.

Both the Tor bulk exit list and the VPN range lists are served as text, one
entry per line, with optional "#" comments. No retry here: the caller walks
its fallback chain instead, and each source carries its own timeout.
"""

import logging
from typing import List

import httpx
from threat_lists.constants import FETCH_USER_AGENT

logger = logging.getLogger(__name__)


class EmptyListError(ValueError):
    """Raised when a source answers successfully but lists nothing."""


def parse_list(text: str) -> List[str]:
    """Return the non-blank, non-comment lines of a list body, stripped."""
    entries = []
    for line in text.splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            entries.append(line)
    return entries


async def fetch_list(client: httpx.AsyncClient, url: str, timeout: float) -> List[str]:
    """
    Fetch and parse one list.

    Raises httpx.HTTPError on network failure, timeout or non-2xx status, and
    EmptyListError if the body has no entries. An empty answer must never
    replace a populated snapshot.
    """
    logger.info("Fetching threat list from %s (timeout=%.0fs)", url, timeout)

    response = await client.get(url, timeout=timeout, headers={"User-Agent": FETCH_USER_AGENT})
    response.raise_for_status()

    entries = parse_list(response.text)
    if not entries:
        raise EmptyListError(f"{url} returned an empty list")

    logger.info("Received %d entries from %s", len(entries), url)
    return entries
