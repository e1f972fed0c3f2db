"""
GeoIP signal.

Looks the address up in a local MaxMind City database, never a network
call, so it cannot stall a request. Without a database the signal is simply
not performed.
"""

import logging
from pathlib import Path
from typing import Optional

import geoip2.database
import geoip2.errors
import maxminddb
from models import SignalName, SignalResult
from signals.base import SignalCollector

logger = logging.getLogger(__name__)

HIGH_RISK_COUNTRIES = frozenset({"CN", "RU", "KP", "IR"})
HIGH_RISK_COUNTRY_POINTS = 30


def open_reader(db_path: Optional[str]) -> Optional[geoip2.database.Reader]:
    """Open the City database if it is present and readable, else return None."""
    if not db_path or not Path(db_path).exists():
        logger.warning("GeoIP database not found at %s, geoip signal disabled", db_path)
        return None
    try:
        reader = geoip2.database.Reader(db_path)
    except (OSError, maxminddb.InvalidDatabaseError) as exc:
        logger.warning("Failed to load GeoIP database %s: %s", db_path, exc)
        return None
    database_type = reader.metadata().database_type
    if "City" not in database_type:
        logger.warning("GeoIP database %s is a %s edition, a City edition is required", db_path, database_type)
        reader.close()
        return None
    logger.info("GeoIP database loaded: %s (%s)", db_path, database_type)
    return reader


class GeoIPCollector(SignalCollector):
    name = SignalName.geoip

    def __init__(self, reader=None):
        # Anything with a geoip2-style city(ip) method
        self.reader = reader

    async def collect(self, ip: str, user_agent: str) -> SignalResult:
        if self.reader is None:
            return self.skipped()

        try:
            response = self.reader.city(ip)
        except (geoip2.errors.AddressNotFoundError, ValueError) as exc:
            logger.debug("GeoIP lookup failed for %s: %s", ip, exc)
            return self.skipped()
        except (TypeError, maxminddb.InvalidDatabaseError) as exc:
            # Wrong edition or a damaged data section; every lookup will fail the same way
            logger.warning("GeoIP database unusable for %s: %s", ip, exc)
            return self.skipped()

        country = response.country.iso_code
        details = {
            "country": country,
            "region": response.subdivisions.most_specific.iso_code,
            "city": response.city.name,
            "timezone": response.location.time_zone,
        }

        points = 0
        if country in HIGH_RISK_COUNTRIES:
            points = HIGH_RISK_COUNTRY_POINTS
            details["risky_country"] = True

        return SignalResult(name=self.name, performed=True, points=points, details=details)
