"""
Geocoding helpers built on the `geocoder` package.

- Airport lookup (OpenStreetMap Nominatim) to place route endpoints
- Free-text location search for the reference point
- Observer location detection: configured value, IP lookup, fixed default

None of this is required for core tracking; every failure degrades to
"no coordinates" and is logged.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import geocoder

from planewatch.config import config
from planewatch.models import AirportInfo

logger = logging.getLogger(__name__)


@dataclass
class LocationResult:
    latitude: float
    longitude: float
    display_name: str


def search_location(query: str) -> Optional[LocationResult]:
    """Geocode a free-text query (city, airport, address). First result wins."""
    if not query or not query.strip():
        return None
    try:
        g = geocoder.osm(query.strip())
    except Exception as e:
        logger.warning(f'Location search failed for {query!r}: {e}')
        return None

    if not g.ok or not g.latlng:
        logger.info(f'No location found for {query!r}')
        return None

    lat, lon = g.latlng
    return LocationResult(latitude=float(lat), longitude=float(lon), display_name=g.address or query)


def detect_observer_location() -> Tuple[float, float]:
    """
    Pick the reference point.

    Order: USER_LOCATION, then IP auto-detection, then the fixed default.
    Never blocks startup on failure.
    """
    if config.user_location:
        return config.user_location

    try:
        g = geocoder.ip('me')
        if g.ok and g.latlng:
            location = (float(g.latlng[0]), float(g.latlng[1]))
            logger.info(f'Auto-detected location: {location} ({g.city}, {g.country})')
            return location
    except Exception as e:
        logger.warning(f'Location auto-detect failed: {e}')

    logger.warning(f'Location unavailable, using default {config.default_location}')
    return config.default_location


class AirportGeocoder:
    """
    Resolves route endpoints to coordinates.

    Results (including misses) are cached per query since airports do
    not move.
    """

    def __init__(self):
        self._cache: Dict[str, Optional[Tuple[float, float]]] = {}
        self._lock = threading.RLock()

    @staticmethod
    def _query(airport: AirportInfo) -> str:
        if airport.name:
            return f'{airport.name} airport'
        return f'{airport.iata_code} airport'

    def locate(self, airport: AirportInfo) -> Optional[Tuple[float, float]]:
        if not airport.name and not airport.iata_code:
            return None

        query = self._query(airport)
        with self._lock:
            if query in self._cache:
                return self._cache[query]

        result = search_location(query)
        coords = (result.latitude, result.longitude) if result else None

        with self._lock:
            self._cache[query] = coords
        return coords

    def geocode(self, airport: AirportInfo) -> bool:
        """
        Fill in airport coordinates in place, unless already set.

        Returns True if the airport has coordinates afterwards.
        """
        if airport.has_coordinates:
            return True
        coords = self.locate(airport)
        if coords:
            airport.latitude, airport.longitude = coords
            return True
        logger.debug(f'Could not geocode {airport.iata_code or airport.name}')
        return False
