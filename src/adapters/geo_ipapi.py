"""
IP geolocation via an ip-api compatible HTTP endpoint.

Lookups are best-effort: any network, status or payload problem yields a
location carrying only the IP.
"""

from __future__ import annotations

import logging

import httpx

from src.core.entities import LocationInfo
from src.rules.models import GeoRules

logger = logging.getLogger(__name__)


class IpApiGeoLookup:
    """GeoLookupPort over httpx."""

    def __init__(self, rules: GeoRules | None = None, client: httpx.Client | None = None):
        self.rules = rules or GeoRules()
        self._client = client

    def lookup(self, ip: str) -> LocationInfo:
        if not ip or ip in self.rules.skip_ips:
            return LocationInfo()
        if not self.rules.enabled:
            return LocationInfo(ip=ip)

        url = self.rules.provider_url.format(ip=ip)
        try:
            if self._client is not None:
                response = self._client.get(url, timeout=self.rules.timeout_seconds)
            else:
                with httpx.Client(timeout=self.rules.timeout_seconds) as client:
                    response = client.get(url)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Geolocation lookup failed for %s: %s", ip, e)
            return LocationInfo(ip=ip)

        if not isinstance(data, dict) or data.get("status") != "success":
            logger.info("Geolocation unavailable for %s", ip)
            return LocationInfo(ip=ip)

        return LocationInfo(
            country=data.get("country") or None,
            region=data.get("regionName") or None,
            city=data.get("city") or None,
            ip=ip,
        )
