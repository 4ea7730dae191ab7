"""
AircraftDetail - descriptive record shown for a spotlighted aircraft.

A record starts life as a provisional record built purely from feed
telemetry and is then enriched by the first detail provider that
succeeds. Enrichment is a field-level merge: a populated field is never
downgraded to unknown by a partial record.
"""

import re
from dataclasses import dataclass, asdict, replace
from enum import Enum
from typing import Optional, Union

UNKNOWN = 'Unknown'
PROVISIONAL_SOURCE = 'provisional'


class DetailStatus(str, Enum):
    """Lifecycle of a published detail record."""
    PROVISIONAL = 'provisional'
    RESOLVED = 'resolved'
    EXHAUSTED = 'exhausted'


def is_known(value) -> bool:
    """True when a value carries information (not None, blank or 'Unknown')."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip()) and value.strip().lower() != UNKNOWN.lower()
    return True


def _coordinate(value) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


@dataclass
class AirportInfo:
    """Route endpoint. Coordinates come from the provider or from geocoding, if at all."""
    name: str = ''
    iata_code: str = ''
    municipality: str = ''
    country_name: str = ''
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional['AirportInfo']:
        if not data or not isinstance(data, dict):
            return None
        return cls(
            name=data.get('name') or '',
            iata_code=data.get('iata_code') or '',
            municipality=data.get('municipality') or '',
            country_name=data.get('country_name') or '',
            latitude=_coordinate(data.get('latitude')),
            longitude=_coordinate(data.get('longitude')),
        )

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass
class AirlineInfo:
    name: str = ''
    iata: str = ''
    country: str = ''

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional['AirlineInfo']:
        if not data or not isinstance(data, dict):
            return None
        return cls(
            name=data.get('name') or '',
            iata=data.get('iata') or '',
            country=data.get('country') or '',
        )


# Fields a provider result may carry into a record
MERGEABLE_FIELDS = (
    'registration', 'manufacturer', 'type', 'owner',
    'origin', 'destination', 'airline',
)


@dataclass
class AircraftDetail:
    """
    Descriptive data for one aircraft.

    Fields:
        identifier: ICAO24 hex address, without the '~' marker
        registration: Tail number (falls back to identifier when unknown)
        manufacturer, type, owner: 'Unknown' until a provider supplies them
        callsign, altitude, speed: telemetry snapshot (speed in km/h)
        origin, destination, airline: route data, flight-data aggregator only
        source: provider that enriched the record, or 'provisional'
        status: provisional / resolved / exhausted
    """
    identifier: str
    registration: str = UNKNOWN
    manufacturer: str = UNKNOWN
    type: str = UNKNOWN
    owner: str = UNKNOWN
    callsign: Optional[str] = None
    altitude: Optional[Union[float, str]] = None
    speed: Optional[int] = None
    origin: Optional[AirportInfo] = None
    destination: Optional[AirportInfo] = None
    airline: Optional[AirlineInfo] = None
    source: str = PROVISIONAL_SOURCE
    status: DetailStatus = DetailStatus.PROVISIONAL

    @property
    def has_route(self) -> bool:
        return self.origin is not None and self.destination is not None

    @property
    def external_link(self) -> Optional[str]:
        """FlightRadar24 page for this registration."""
        if not is_known(self.registration) or self.registration == self.identifier:
            return None
        slug = re.sub(r'[^a-z0-9]', '', self.registration.lower())
        return f'https://www.flightradar24.com/{slug}' if slug else None

    def merge(self, partial: 'PartialDetail') -> 'AircraftDetail':
        """
        Return a new record with every known field of `partial` applied.

        Unknown or empty values in `partial` never overwrite what this
        record already holds.
        """
        updates = {}
        for name in MERGEABLE_FIELDS:
            value = getattr(partial, name)
            if is_known(value):
                updates[name] = value
        return replace(self, **updates)

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict for API responses."""
        data = asdict(self)
        data['status'] = self.status.value
        data['external_link'] = self.external_link
        return data


@dataclass
class PartialDetail:
    """
    What a single provider returned.

    Any field may be None. A result only counts as a success when it
    carries at least a registration or a type.
    """
    registration: Optional[str] = None
    manufacturer: Optional[str] = None
    type: Optional[str] = None
    owner: Optional[str] = None
    origin: Optional[AirportInfo] = None
    destination: Optional[AirportInfo] = None
    airline: Optional[AirlineInfo] = None

    @property
    def is_useful(self) -> bool:
        return is_known(self.registration) or is_known(self.type)
