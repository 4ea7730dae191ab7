"""
Detail providers - third-party sources of aircraft descriptive data.

Every provider implements the same small interface:

    lookup(identifier, callsign=None) -> Optional[PartialDetail]

and returns None when it has nothing (network failure, HTTP error,
explicit "not found" response, malformed body). Providers never raise
for upstream trouble; the resolver still guards against it.

Supported sources:
- adsbdb.com    flight-data aggregator, the only source of route data
- hexdb.io      registry lookup, reachable directly or through a local proxy

Successful and explicitly-missing lookups are cached per identifier to
spare upstream quota. Transport failures are not cached.
"""

import logging
import threading
import time
from typing import Any, Dict, Optional, Tuple

import requests

from planewatch.models import AirlineInfo, AirportInfo, PartialDetail

logger = logging.getLogger(__name__)


class DetailProvider:
    """Base class for anything the resolver can ask for aircraft details."""

    name = 'provider'

    def lookup(self, identifier: str, callsign: Optional[str] = None) -> Optional[PartialDetail]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f'<{type(self).__name__} {self.name}>'


class HttpDetailProvider(DetailProvider):
    """
    Shared plumbing for JSON-over-HTTP providers.

    Implements caching and failure containment; subclasses supply the
    URL and the body parsing.
    """

    def __init__(
        self,
        base_url: str,
        name: Optional[str] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        cache_ttl: float = 3600,
        max_cache_entries: int = 500,
    ):
        self.base_url = base_url.rstrip('/')
        if name:
            self.name = name
        self.timeout = timeout
        self.session = session or requests.Session()

        # Cache: key -> (PartialDetail or None for explicit miss, timestamp)
        self._cache: Dict[str, Tuple[Optional[PartialDetail], float]] = {}
        self._cache_ttl = cache_ttl
        self._max_cache_entries = max_cache_entries
        self._lock = threading.RLock()

        # Track API usage
        self._requests = 0
        self._failures = 0

    def _build_request(self, identifier: str, callsign: Optional[str]) -> Tuple[str, dict]:
        raise NotImplementedError

    def _parse(self, data: Any) -> Optional[PartialDetail]:
        raise NotImplementedError

    def _cache_key(self, identifier: str, callsign: Optional[str]) -> str:
        return identifier.lower()

    def lookup(self, identifier: str, callsign: Optional[str] = None) -> Optional[PartialDetail]:
        key = self._cache_key(identifier, callsign)

        with self._lock:
            if key in self._cache:
                result, timestamp = self._cache[key]
                if time.time() - timestamp < self._cache_ttl:
                    logger.debug(f'{self.name} cache hit for {key}')
                    return result
                del self._cache[key]

        url, params = self._build_request(identifier, callsign)
        logger.debug(f'{self.name}: fetching {url}')
        with self._lock:
            self._requests += 1

        try:
            response = self.session.get(url, params=params or None, timeout=self.timeout)
        except requests.RequestException as e:
            self._count_failure()
            logger.warning(f'{self.name} request failed for {identifier}: {e}')
            return None

        if response.status_code == 404:
            self._set_cached(key, None)
            logger.debug(f'{self.name} has no record for {identifier}')
            return None

        if not response.ok:
            self._count_failure()
            logger.warning(f'{self.name} API error: {response.status_code}')
            return None

        try:
            data = response.json()
        except ValueError as e:
            self._count_failure()
            logger.warning(f'{self.name} returned invalid JSON: {e}')
            return None

        result = self._parse(data)
        self._set_cached(key, result)
        return result

    def _count_failure(self) -> None:
        with self._lock:
            self._failures += 1

    def _set_cached(self, key: str, result: Optional[PartialDetail]) -> None:
        with self._lock:
            self._cache[key] = (result, time.time())

            # Limit cache size
            if len(self._cache) > self._max_cache_entries:
                sorted_items = sorted(self._cache.items(), key=lambda x: x[1][1])
                for old_key, _ in sorted_items[:len(sorted_items) // 5]:
                    del self._cache[old_key]

    @property
    def stats(self) -> dict:
        with self._lock:
            return {
                'name': self.name,
                'cache_size': len(self._cache),
                'requests': self._requests,
                'failures': self._failures,
            }


class AdsbdbProvider(HttpDetailProvider):
    """
    adsbdb.com flight-data aggregator.

    GET /aircraft/{hex}?callsign={callsign}
    {
      "response": {
        "aircraft": {"registration", "manufacturer", "type", "icao_type", "registered_owner", ...},
        "flightroute": {"origin": {...}, "destination": {...}, "airline": {...}}
      }
    }

    An unknown aircraft comes back as {"response": "unknown aircraft"}.
    Route data is only present when a callsign was supplied.
    """

    name = 'adsbdb'

    def _cache_key(self, identifier: str, callsign: Optional[str]) -> str:
        return f'{identifier.lower()}:{(callsign or "").strip().upper()}'

    def _build_request(self, identifier: str, callsign: Optional[str]) -> Tuple[str, dict]:
        params = {}
        if callsign and callsign.strip():
            params['callsign'] = callsign.strip()
        return f'{self.base_url}/aircraft/{identifier}', params

    def _parse(self, data: Any) -> Optional[PartialDetail]:
        body = data.get('response') if isinstance(data, dict) else None
        if not isinstance(body, dict):
            # "unknown aircraft" and similar string responses
            return None

        aircraft = body.get('aircraft') or {}
        route = body.get('flightroute') or {}
        if not aircraft and not route:
            return None

        return PartialDetail(
            registration=aircraft.get('registration'),
            manufacturer=aircraft.get('manufacturer'),
            type=aircraft.get('type') or aircraft.get('icao_type'),
            owner=aircraft.get('registered_owner'),
            origin=AirportInfo.from_dict(route.get('origin')),
            destination=AirportInfo.from_dict(route.get('destination')),
            airline=AirlineInfo.from_dict(route.get('airline')),
        )


class HexdbProvider(HttpDetailProvider):
    """
    hexdb.io aircraft registry.

    GET /aircraft/{hex}
    {"Registration", "Manufacturer", "Type", "ICAOTypeCode", "RegisteredOwners", ...}

    A miss is reported explicitly as {"status": "404", "error": "..."}.
    The same format is served by the local details proxy.
    """

    name = 'hexdb'

    def _build_request(self, identifier: str, callsign: Optional[str]) -> Tuple[str, dict]:
        return f'{self.base_url}/aircraft/{identifier}', {}

    def _parse(self, data: Any) -> Optional[PartialDetail]:
        if not isinstance(data, dict) or data.get('error'):
            return None

        return PartialDetail(
            registration=data.get('Registration'),
            manufacturer=data.get('Manufacturer'),
            type=data.get('Type') or data.get('ICAOTypeCode'),
            owner=data.get('RegisteredOwners'),
        )
