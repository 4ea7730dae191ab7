import pytest

from planewatch.config import PACKAGE_DIR
from planewatch.ingestion.taxonomy import Taxonomy
from planewatch.models import AircraftPosition


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text or ''

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError('No JSON object could be decoded')
        return self._payload


class FakeSession:
    """Stands in for requests.Session; routes every GET through `handler`."""

    def __init__(self, handler):
        self.handler = handler
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params))
        result = self.handler(url, params)
        if isinstance(result, Exception):
            raise result
        return result


def feed_entry(hex_id='abc123', lat=34.0, lon=-118.0, **fields):
    entry = {
        'hex': hex_id,
        'r': 'N1',
        't': 'B738',
        'desc': 'BOEING 737-800',
        'flight': 'UAL100  ',
        'lat': lat,
        'lon': lon,
        'alt_baro': 35000,
        'gs': 450,
        'track': 90.0,
        'type': 'adsb_icao',
    }
    entry.update(fields)
    return entry


def make_aircraft(hex_id='abc123', lat=34.0, lon=-118.0, **fields) -> AircraftPosition:
    return AircraftPosition.from_feed(feed_entry(hex_id, lat, lon, **fields))


@pytest.fixture(scope='session')
def taxonomy():
    return Taxonomy.load(PACKAGE_DIR / 'data' / 'taxonomy.json')
