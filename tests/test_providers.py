import json

import requests

from planewatch.services.offline_registry import OfflineRegistry
from planewatch.services.providers import AdsbdbProvider, HexdbProvider

from conftest import FakeResponse, FakeSession


ADSBDB_PAYLOAD = {
    'response': {
        'aircraft': {
            'type': '737-824',
            'icao_type': 'B738',
            'manufacturer': 'Boeing',
            'registration': 'N12345',
            'registered_owner': 'United Airlines',
        },
        'flightroute': {
            'callsign': 'UAL100',
            'airline': {'name': 'United Airlines', 'iata': 'UA', 'country': 'United States'},
            'origin': {
                'name': 'Los Angeles International Airport',
                'iata_code': 'LAX',
                'municipality': 'Los Angeles',
                'country_name': 'United States',
                'latitude': 33.9425,
                'longitude': -118.408,
            },
            'destination': {
                'name': 'San Francisco International Airport',
                'iata_code': 'SFO',
                'municipality': 'San Francisco',
                'country_name': 'United States',
            },
        },
    },
}


def test_adsbdb_parses_aircraft_and_route():
    session = FakeSession(lambda url, params: FakeResponse(200, ADSBDB_PAYLOAD))
    provider = AdsbdbProvider('https://adsbdb.test/v0', session=session)

    result = provider.lookup('abc123', 'UAL100')

    assert session.calls == [('https://adsbdb.test/v0/aircraft/abc123', {'callsign': 'UAL100'})]
    assert result.registration == 'N12345'
    assert result.type == '737-824'
    assert result.owner == 'United Airlines'
    assert result.origin.iata_code == 'LAX'
    assert result.origin.has_coordinates
    assert not result.destination.has_coordinates
    assert result.airline.iata == 'UA'


def test_adsbdb_unknown_aircraft_is_a_miss():
    session = FakeSession(lambda url, params: FakeResponse(200, {'response': 'unknown aircraft'}))
    provider = AdsbdbProvider('https://adsbdb.test/v0', session=session)

    assert provider.lookup('abc123') is None
    assert session.calls[0][1] is None


def test_successful_lookups_are_cached():
    session = FakeSession(lambda url, params: FakeResponse(200, ADSBDB_PAYLOAD))
    provider = AdsbdbProvider('https://adsbdb.test/v0', session=session)

    provider.lookup('abc123', 'UAL100')
    provider.lookup('ABC123', 'ual100')

    assert len(session.calls) == 1


def test_hexdb_parses_registry_record():
    payload = {
        'ModeS': 'ABC123',
        'Registration': 'N12345',
        'Manufacturer': 'Boeing',
        'ICAOTypeCode': 'B738',
        'Type': '737-824',
        'RegisteredOwners': 'United Airlines',
    }
    session = FakeSession(lambda url, params: FakeResponse(200, payload))
    provider = HexdbProvider('http://localhost:8080/api/v1/', name='proxy', session=session)

    result = provider.lookup('abc123')

    assert session.calls[0][0] == 'http://localhost:8080/api/v1/aircraft/abc123'
    assert provider.name == 'proxy'
    assert result.manufacturer == 'Boeing'
    assert result.type == '737-824'


def test_hexdb_explicit_miss():
    session = FakeSession(lambda url, params: FakeResponse(200, {'status': '404', 'error': 'Aircraft not found'}))
    provider = HexdbProvider('https://hexdb.test/api/v1', session=session)

    assert provider.lookup('abc123') is None


def test_transport_failures_are_not_cached():
    responses = [requests.exceptions.ConnectionError('down'), FakeResponse(200, {'Registration': 'N1'})]
    session = FakeSession(lambda url, params: responses.pop(0))
    provider = HexdbProvider('https://hexdb.test/api/v1', session=session)

    assert provider.lookup('abc123') is None
    assert provider.lookup('abc123').registration == 'N1'
    assert provider.stats['failures'] == 1


def test_http_errors_return_none():
    session = FakeSession(lambda url, params: FakeResponse(500, text='oops'))
    provider = HexdbProvider('https://hexdb.test/api/v1', session=session)

    assert provider.lookup('abc123') is None


def test_offline_registry_object_layout_with_aliases(tmp_path):
    path = tmp_path / 'registry.json'
    path.write_text(json.dumps({
        'ABC123': {'reg': 'N12345', 'icaotype': 'B738', 'model': 'Boeing 737-800', 'ownop': 'United'},
        'def456': {'r': 'G-ABCD', 't': 'A320', 'm': 'Airbus'},
    }))

    registry = OfflineRegistry.load(path)

    result = registry.lookup('abc123')
    assert result.registration == 'N12345'
    assert result.type == 'B738'
    assert result.manufacturer == 'Boeing 737-800'
    assert result.owner == 'United'
    assert registry.lookup('~DEF456').manufacturer == 'Airbus'
    assert registry.lookup('000000') is None


def test_offline_registry_ndjson_layout(tmp_path):
    path = tmp_path / 'registry.ndjson'
    path.write_text(
        '{"icao": "abc123", "registration": "N1", "short_type": "B738"}\n'
        'not json\n'
        '\n'
        '{"icao": "def456", "registration": "N2"}\n'
    )

    registry = OfflineRegistry.load(path)

    assert len(registry) == 2
    assert registry.lookup('ABC123').type == 'B738'


def test_offline_registry_missing_file(tmp_path):
    registry = OfflineRegistry.load(tmp_path / 'nope.json')

    assert len(registry) == 0
    assert registry.lookup('abc123') is None
