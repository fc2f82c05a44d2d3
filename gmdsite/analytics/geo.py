"""IP-to-country lookup with an in-process cache."""
from __future__ import annotations

import ipaddress
import logging
import threading
from typing import Dict, Optional, Protocol

import httpx

logger = logging.getLogger("uvicorn.error")

UNKNOWN_COUNTRY = "Unknown"
DEFAULT_LOOKUP_URL = "http://ip-api.com/json/{address}"


class CountryLookup(Protocol):
    def resolve(self, address: str) -> str:
        ...


def _is_public_address(address: str) -> bool:
    try:
        return ipaddress.ip_address(address).is_global
    except ValueError:
        return False


class CountryResolver:
    """Resolve client addresses to ISO country codes via an HTTP service.

    Every outcome is cached, failures included, so an address costs at most
    one request per process. The request runs outside the cache lock.
    """

    def __init__(
        self,
        lookup_url: str = DEFAULT_LOOKUP_URL,
        timeout: float = 3.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.lookup_url = lookup_url
        self.timeout = timeout
        self._transport = transport
        self._cache: Dict[str, str] = {}
        self._lock = threading.Lock()
        self.lookups = 0

    def cached(self, address: str) -> Optional[str]:
        with self._lock:
            return self._cache.get(address)

    def resolve(self, address: str) -> str:
        if not address:
            return UNKNOWN_COUNTRY

        cached = self.cached(address)
        if cached is not None:
            return cached or UNKNOWN_COUNTRY

        if not _is_public_address(address):
            country = UNKNOWN_COUNTRY
        else:
            country = self._fetch(address)

        with self._lock:
            # A concurrent lookup may have resolved the address meanwhile;
            # a failure never replaces a resolved code.
            existing = self._cache.get(address)
            if existing and existing != UNKNOWN_COUNTRY and country == UNKNOWN_COUNTRY:
                return existing
            self._cache[address] = country
        return country

    def _fetch(self, address: str) -> str:
        with self._lock:
            self.lookups += 1
        url = self.lookup_url.format(address=address)
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.get(url, params={"fields": "countryCode"})
        except httpx.HTTPError as exc:
            logger.warning("Country lookup for %s failed: %s", address, exc)
            return UNKNOWN_COUNTRY

        if not response.is_success:
            logger.warning("Country lookup for %s returned HTTP %s", address, response.status_code)
            return UNKNOWN_COUNTRY
        try:
            payload = response.json()
        except ValueError:
            logger.warning("Country lookup for %s returned invalid JSON", address)
            return UNKNOWN_COUNTRY

        code = payload.get("countryCode") if isinstance(payload, dict) else None
        if not isinstance(code, str) or not code.strip():
            return UNKNOWN_COUNTRY
        return code.strip()
