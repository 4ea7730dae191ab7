import threading
from unittest.mock import Mock

import pytest

from planewatch.models import AirportInfo, DetailStatus, PartialDetail
from planewatch.services.detail_resolver import DetailResolver
from planewatch.services.providers import DetailProvider
from planewatch.tracking import ReacquisitionTracker, TrackingState

from conftest import make_aircraft


class RouteProvider(DetailProvider):
    name = 'route'

    def lookup(self, identifier, callsign=None):
        return PartialDetail(
            registration='N12345',
            manufacturer='Boeing',
            origin=AirportInfo(name='Los Angeles International', iata_code='LAX'),
            destination=AirportInfo(name='San Francisco International', iata_code='SFO'),
        )


@pytest.fixture
def resolver():
    resolver = DetailResolver([RouteProvider()], max_workers=1)
    yield resolver
    resolver.shutdown()


@pytest.fixture
def airport_geocoder():
    geocoder = Mock()
    coords = {'LAX': (33.94, -118.41), 'SFO': (37.62, -122.38)}

    def geocode(airport):
        airport.latitude, airport.longitude = coords[airport.iata_code]
        return True

    geocoder.geocode.side_effect = geocode
    return geocoder


def make_tracker(cycles, resolver=None, geocoder=None, lost_after=3):
    client = Mock()
    client.get_aircraft.side_effect = cycles
    tracker = ReacquisitionTracker(
        client=client,
        resolver=resolver,
        geocoder=geocoder,
        radius_nm=10,
        lost_after_misses=lost_after,
    )
    return tracker, client


def test_anchor_follows_target():
    tracker, client = make_tracker([
        [make_aircraft('abc', lat=34.1, lon=-118.1, gs=400), make_aircraft('zzz')],
        [make_aircraft('abc', lat=34.2, lon=-118.2, gs=410, alt_baro=36000)],
    ])
    tracker.start(make_aircraft('abc', lat=34.0, lon=-118.0))

    assert tracker.step() == TrackingState.FOLLOWING
    assert tracker.anchor == (34.1, -118.1)
    assert tracker.step() == TrackingState.FOLLOWING
    assert tracker.anchor == (34.2, -118.2)

    calls = [c[0] for c in client.get_aircraft.call_args_list]
    assert calls == [(34.0, -118.0, 10), (34.1, -118.1, 10)]
    assert tracker.detail.speed == round(410 * 1.852)
    assert tracker.detail.altitude == 36000


def test_miss_keeps_stale_anchor_and_previous_speed():
    tracker, client = make_tracker([[make_aircraft('abc', lat=34.1, lon=-118.1, gs=400)], [], [make_aircraft('abc', lat=34.3, lon=-118.3, gs=None)]])
    tracker.start(make_aircraft('abc', lat=34.0, lon=-118.0))

    tracker.step()
    tracker.step()

    assert tracker.anchor == (34.1, -118.1)
    assert tracker.misses == 1
    assert client.get_aircraft.call_args_list[1][0] == (34.1, -118.1, 10)

    tracker.step()
    assert tracker.misses == 0
    assert tracker.detail.speed == round(400 * 1.852)


def test_lost_after_consecutive_misses_then_reacquired():
    listener = Mock()
    tracker, client = make_tracker([[], [], [], [], [make_aircraft('abc', lat=35.0, lon=-119.0)]], lost_after=3)
    tracker.add_listener(listener)
    tracker.start(make_aircraft('abc', lat=34.0, lon=-118.0))

    states = [tracker.step() for _ in range(4)]
    assert states == [
        TrackingState.FOLLOWING,
        TrackingState.FOLLOWING,
        TrackingState.LOST,
        TrackingState.LOST,
    ]
    # still polling at the stale anchor while lost
    assert client.get_aircraft.call_args_list[3][0] == (34.0, -118.0, 10)

    assert tracker.step() == TrackingState.FOLLOWING
    assert tracker.anchor == (35.0, -119.0)
    assert [c[0][0] for c in listener.call_args_list] == [
        TrackingState.FOLLOWING,
        TrackingState.LOST,
        TrackingState.FOLLOWING,
    ]


def test_route_endpoints_geocoded_once_and_immutable(resolver, airport_geocoder):
    tracker, _ = make_tracker(
        [[make_aircraft('abc', lat=35.0, lon=-120.0)], [make_aircraft('abc', lat=36.0, lon=-121.0)]],
        resolver=resolver,
        geocoder=airport_geocoder,
    )
    tracker.start(make_aircraft('abc', lat=34.0, lon=-118.0))

    tracker.step()
    tracker.enrichment.result(timeout=5)
    assert tracker.route_line == [(33.94, -118.41), (35.0, -120.0), (37.62, -122.38)]

    tracker.step()
    assert tracker.route_line == [(33.94, -118.41), (36.0, -121.0), (37.62, -122.38)]
    assert airport_geocoder.geocode.call_count == 2

    detail = tracker.detail
    assert detail.status == DetailStatus.RESOLVED
    assert detail.registration == 'N12345'
    assert detail.manufacturer == 'Boeing'


def test_stop_returns_to_idle():
    tracker, client = make_tracker([[]])
    tracker.start(make_aircraft('abc'))
    tracker.stop()

    assert tracker.step() == TrackingState.IDLE
    client.get_aircraft.assert_not_called()
    assert tracker.to_dict()['state'] == 'idle'
    assert tracker.route_line == []


def test_to_dict_while_following():
    tracker, _ = make_tracker([[make_aircraft('abc', lat=34.1, lon=-118.1, track=None, calc_track=270)]])
    tracker.start(make_aircraft('abc'))
    tracker.step()

    data = tracker.to_dict()
    assert data['state'] == 'following'
    assert data['target'] == 'abc'
    assert data['anchor'] == [34.1, -118.1]
    assert data['position']['rotation'] == 270
    assert data['route_line'] == [[34.1, -118.1]]
    assert data['detail']['registration'] == 'N1'


class GatedProvider(DetailProvider):
    name = 'gated'

    def __init__(self):
        self.gate = threading.Event()

    def lookup(self, identifier, callsign=None):
        self.gate.wait(5)
        return PartialDetail(registration='N12345', manufacturer='Boeing')


@pytest.fixture
def gated():
    provider = GatedProvider()
    resolver = DetailResolver([provider], max_workers=1)
    yield provider, resolver
    provider.gate.set()
    resolver.shutdown()


def test_slow_enrichment_does_not_delay_queries(gated):
    provider, resolver = gated
    tracker, client = make_tracker(
        [[make_aircraft('abc', lat=34.1, lon=-118.1, alt_baro=30000)], []],
        resolver=resolver,
    )
    tracker.start(make_aircraft('abc', lat=34.0, lon=-118.0))

    assert tracker.step() == TrackingState.FOLLOWING
    client.get_aircraft.assert_called_once_with(34.0, -118.0, 10)
    assert not tracker.enrichment.done()
    assert tracker.detail.status == DetailStatus.PROVISIONAL

    # enrichment is submitted once per session
    pending = tracker.enrichment
    tracker.step()
    assert client.get_aircraft.call_count == 2
    assert tracker.enrichment is pending

    provider.gate.set()
    pending.result(timeout=5)

    detail = tracker.detail
    assert detail.status == DetailStatus.RESOLVED
    assert detail.registration == 'N12345'
    assert detail.altitude == 30000


def test_enrichment_from_previous_session_is_discarded(gated):
    provider, resolver = gated
    tracker, _ = make_tracker([[], []], resolver=resolver)
    tracker.start(make_aircraft('abc'))
    tracker.step()
    stale = tracker.enrichment

    tracker.start(make_aircraft('def', r='N2'))
    provider.gate.set()
    stale.result(timeout=5)

    assert tracker.enrichment is None
    assert tracker.detail.identifier == 'def'
    assert tracker.detail.registration == 'N2'
    assert tracker.detail.status == DetailStatus.PROVISIONAL


def test_route_line_needs_both_endpoints(resolver):
    geocoder = Mock()

    def geocode(airport):
        if airport.iata_code != 'LAX':
            return False
        airport.latitude, airport.longitude = (33.94, -118.41)
        return True

    geocoder.geocode.side_effect = geocode
    tracker, _ = make_tracker([[make_aircraft('abc', lat=35.0, lon=-120.0)]], resolver=resolver, geocoder=geocoder)
    tracker.start(make_aircraft('abc', lat=34.0, lon=-118.0))

    tracker.step()
    tracker.enrichment.result(timeout=5)

    assert tracker.route_line == [(35.0, -120.0)]
    assert tracker.detail.origin.latitude == 33.94
