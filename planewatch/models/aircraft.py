"""
AircraftPosition - one aircraft as reported by the position feed.

Produced fresh every poll cycle and never persisted across cycles.

Feed entry fields (adsb.fi / airplanes.live v2 format):
    hex         - ICAO24 hex address ('~' prefix = non-ICAO address)
    r           - Registration (tail number)
    t           - ICAO type designator (e.g., 'B738')
    desc        - Free-text type description
    flight      - Callsign, space padded
    lat, lon    - WGS84 position
    alt_baro    - Barometric altitude in feet, or the string 'ground'
    gs          - Ground speed in knots
    mach        - Mach number
    track       - True track over ground (degrees)
    calc_track  - Track calculated from successive positions
    dir         - Direction derived by the aggregator
    type        - Message source kind (adsb_icao, tisb_other, mlat, ...)
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

# Mach 1 at sea level in km/h
MACH_TO_KMH = 1234.8
KNOTS_TO_KMH = 1.852

GROUND = 'ground'

Altitude = Union[float, str]


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_text(value: Any) -> str:
    if value is None:
        return ''
    return str(value).strip()


@dataclass
class AircraftPosition:
    """
    Parsed feed entry.

    All optional values may be None if not reported by the aircraft.
    """
    identifier: str
    registration: str
    type_code: str
    description: str
    callsign: str
    latitude: float
    longitude: float
    altitude: Optional[Altitude] = None
    ground_speed: Optional[float] = None
    mach: Optional[float] = None
    track: Optional[float] = None
    calc_track: Optional[float] = None
    direction: Optional[float] = None
    source_type: Optional[str] = None

    @classmethod
    def from_feed(cls, entry: Dict[str, Any]) -> Optional['AircraftPosition']:
        """
        Parse one feed entry into an AircraftPosition.

        Returns None if the entry is malformed or has no position.
        """
        if not isinstance(entry, dict):
            return None

        identifier = entry.get('hex')
        if not identifier or not isinstance(identifier, str):
            return None

        lat = _to_float(entry.get('lat'))
        lon = _to_float(entry.get('lon'))
        if lat is None or lon is None:
            return None

        altitude = entry.get('alt_baro')
        if altitude != GROUND:
            altitude = _to_float(altitude)

        return cls(
            identifier=identifier.strip().lower(),
            registration=_to_text(entry.get('r')),
            type_code=_to_text(entry.get('t')),
            description=_to_text(entry.get('desc')),
            callsign=_to_text(entry.get('flight')),
            latitude=lat,
            longitude=lon,
            altitude=altitude,
            ground_speed=_to_float(entry.get('gs')),
            mach=_to_float(entry.get('mach')),
            track=_to_float(entry.get('track')),
            calc_track=_to_float(entry.get('calc_track')),
            direction=_to_float(entry.get('dir')),
            source_type=_to_text(entry.get('type')) or None,
        )

    @property
    def clean_identifier(self) -> str:
        """Identifier without the non-ICAO '~' marker, as providers expect it."""
        return self.identifier.replace('~', '')

    @property
    def heading(self) -> Optional[float]:
        """Best available heading: primary > calculated > derived."""
        for value in (self.track, self.calc_track, self.direction):
            if value is not None:
                return value
        return None

    @property
    def rotation(self) -> float:
        """Marker rotation in degrees. Missing heading is a neutral 0."""
        heading = self.heading
        return heading if heading is not None else 0.0

    @property
    def on_ground(self) -> bool:
        return self.altitude == GROUND

    def derived_speed_kmh(self) -> Optional[int]:
        """
        Speed in km/h, preferring Mach over ground speed.

        Computed once per resolution and carried unchanged through
        every provider stage.
        """
        if self.mach:
            return int(round(self.mach * MACH_TO_KMH))
        if self.ground_speed:
            return int(round(self.ground_speed * KNOTS_TO_KMH))
        return None

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict for API responses."""
        return {
            'identifier': self.identifier,
            'registration': self.registration or None,
            'type_code': self.type_code or None,
            'description': self.description or None,
            'callsign': self.callsign or None,
            'position': {
                'latitude': self.latitude,
                'longitude': self.longitude,
            },
            'altitude': self.altitude,
            'ground_speed': self.ground_speed,
            'mach': self.mach,
            'heading': self.heading,
            'source_type': self.source_type,
        }
