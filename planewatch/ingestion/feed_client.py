"""
Position feed API client.

Queries an ADS-B aggregator for every aircraft within a radius (in
nautical miles) of a reference point. Two aggregators expose the same
v2 entry format and are interchangeable:

- adsb.fi:          GET /lat/{lat}/lon/{lon}/dist/{nm}  -> {"aircraft": [...]}
- airplanes.live:   GET /point/{lat}/{lon}/{nm}         -> {"ac": [...]}

A failed query never raises. HTTP errors, rate limiting (429) and
malformed bodies all yield an empty list for that cycle; the next poll
supersedes it, so there is no retry.
"""

import logging
import threading
from typing import Any, List, Optional

import requests

from planewatch.config import config
from planewatch.models import AircraftPosition

logger = logging.getLogger(__name__)

ADSBFI = 'adsb.fi'
AIRPLANES_LIVE = 'airplanes.live'

FEED_SOURCES = (ADSBFI, AIRPLANES_LIVE)


class PositionFeedClient:
    """
    Client for the position feed.

    Handles:
    - URL construction per feed source
    - Failure containment (every failure is an empty cycle)
    - Parsing entries into AircraftPosition, skipping malformed ones
    """

    def __init__(
        self,
        source: str = ADSBFI,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        if source not in FEED_SOURCES:
            raise ValueError(f'Unknown feed source: {source}')

        self.source = source
        self.base_url = (base_url or self._default_base_url(source)).rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

        # Statistics, shared by the poll and tracker threads
        self._lock = threading.RLock()
        self._request_count = 0
        self._failure_count = 0

    @classmethod
    def from_config(cls) -> 'PositionFeedClient':
        """Create client from application configuration."""
        return cls(
            source=config.feed.source,
            base_url=config.feed.base_url,
            timeout=config.feed.timeout,
        )

    @staticmethod
    def _default_base_url(source: str) -> str:
        if source == AIRPLANES_LIVE:
            return config.feed.airplanes_live_base_url
        return config.feed.adsbfi_base_url

    def _build_url(self, lat: float, lon: float, radius_nm: float) -> str:
        if self.source == AIRPLANES_LIVE:
            return f'{self.base_url}/point/{lat}/{lon}/{radius_nm:g}'
        return f'{self.base_url}/lat/{lat}/lon/{lon}/dist/{radius_nm:g}'

    def _extract_entries(self, payload: Any) -> Optional[List[Any]]:
        """Pull the aircraft list out of the body, or None if malformed."""
        if not isinstance(payload, dict):
            return None
        key = 'ac' if self.source == AIRPLANES_LIVE else 'aircraft'
        entries = payload.get(key)
        if entries is None:
            # Some mirrors use the other key; an absent list means nobody in range
            entries = payload.get('aircraft', payload.get('ac', []))
        if not isinstance(entries, list):
            return None
        return entries

    def get_aircraft(
        self,
        lat: float,
        lon: float,
        radius_nm: float,
    ) -> List[AircraftPosition]:
        """
        Fetch all aircraft within radius_nm of (lat, lon).

        Returns an empty list on any failure.
        """
        url = self._build_url(lat, lon, radius_nm)
        with self._lock:
            self._request_count += 1

        logger.debug(f'Fetching aircraft: {url}')

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.exceptions.Timeout:
            self._count_failure()
            logger.warning(f'{self.source} request timed out')
            return []
        except requests.exceptions.RequestException as e:
            self._count_failure()
            logger.warning(f'{self.source} request failed: {e}')
            return []

        if response.status_code == 429:
            self._count_failure()
            logger.warning(f'{self.source} rate limit encountered')
            return []

        if not response.ok:
            self._count_failure()
            logger.warning(f'{self.source} returned HTTP {response.status_code}')
            return []

        try:
            payload = response.json()
        except ValueError as e:
            self._count_failure()
            logger.warning(f'Failed to parse {self.source} response: {e}')
            return []

        entries = self._extract_entries(payload)
        if entries is None:
            self._count_failure()
            logger.warning(f'Malformed {self.source} payload, treating cycle as empty')
            return []

        aircraft = []
        for entry in entries:
            position = AircraftPosition.from_feed(entry)
            if position:
                aircraft.append(position)

        logger.debug(f'Parsed {len(aircraft)} of {len(entries)} aircraft entries')
        return aircraft

    def _count_failure(self) -> None:
        with self._lock:
            self._failure_count += 1

    @property
    def stats(self) -> dict:
        with self._lock:
            return {
                'source': self.source,
                'requests': self._request_count,
                'failures': self._failure_count,
            }
