import threading
from dataclasses import replace

import pytest

from planewatch.config import ProviderConfig
from planewatch.models import DetailStatus, PartialDetail, UNKNOWN
from planewatch.services import detail_resolver
from planewatch.services.detail_resolver import DetailBoard, DetailResolver, build_provisional
from planewatch.services.providers import DetailProvider

from conftest import make_aircraft


class StubProvider(DetailProvider):
    def __init__(self, name, result=None, error=None):
        self.name = name
        self.result = result
        self.error = error
        self.calls = []

    def lookup(self, identifier, callsign=None):
        self.calls.append((identifier, callsign))
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def resolver_factory():
    created = []

    def factory(providers, board=None):
        resolver = DetailResolver(providers, board=board, max_workers=2)
        created.append(resolver)
        return resolver

    yield factory
    for resolver in created:
        resolver.shutdown()


def test_provisional_record_from_telemetry():
    ac = make_aircraft('abc123', r='N1', flight='UAL100', alt_baro=35000, gs=450, desc='', t='B738')

    detail = build_provisional(ac)

    assert detail.identifier == 'abc123'
    assert detail.registration == 'N1'
    assert detail.type == 'B738'
    assert detail.callsign == 'UAL100'
    assert detail.altitude == 35000
    assert detail.speed == 833
    assert detail.manufacturer == UNKNOWN
    assert detail.owner == UNKNOWN
    assert detail.status == DetailStatus.PROVISIONAL


def test_provisional_prefers_description_and_falls_back_to_identifier():
    detail = build_provisional(make_aircraft('~abc123', r='', desc='BOEING 737-800'))

    assert detail.identifier == 'abc123'
    assert detail.registration == 'abc123'
    assert detail.type == 'BOEING 737-800'


def test_second_provider_upgrades_registration_and_type(resolver_factory):
    first = StubProvider('first', result=None)
    second = StubProvider('second', result=PartialDetail(registration='N12345', type='B738'))
    third = StubProvider('third', result=PartialDetail(registration='WRONG'))
    resolver = resolver_factory([first, second, third])

    detail = resolver.enrich(build_provisional(make_aircraft(r='N1', gs=450)))

    assert detail.registration == 'N12345'
    assert detail.type == 'B738'
    assert detail.manufacturer == UNKNOWN
    assert detail.speed == 833
    assert detail.source == 'second'
    assert detail.status == DetailStatus.RESOLVED
    assert third.calls == []


def test_empty_success_and_exceptions_fall_through(resolver_factory):
    empty = StubProvider('empty', result=PartialDetail(manufacturer='Boeing'))
    broken = StubProvider('broken', error=RuntimeError('boom'))
    last = StubProvider('last', result=PartialDetail(type='B738', owner='United Airlines'))
    resolver = resolver_factory([empty, broken, last])

    detail = resolver.enrich(build_provisional(make_aircraft()))

    assert detail.source == 'last'
    assert detail.owner == 'United Airlines'
    # nothing from the empty answer leaks into the record
    assert detail.manufacturer == UNKNOWN


def test_exhausted_chain_keeps_provisional_record(resolver_factory):
    resolver = resolver_factory([StubProvider('a'), StubProvider('b', error=ValueError('bad'))])
    provisional = build_provisional(make_aircraft(r='N1', desc='BOEING 737-800'))

    detail = resolver.enrich(provisional)

    assert detail.status == DetailStatus.EXHAUSTED
    assert detail.registration == 'N1'
    assert detail.type == 'BOEING 737-800'
    assert detail.speed == provisional.speed
    assert resolver.stats['exhausted'] == 1


def test_callsign_passed_to_providers(resolver_factory):
    provider = StubProvider('a', result=PartialDetail(registration='N1'))
    resolver = resolver_factory([provider])

    resolver.enrich(build_provisional(make_aircraft('abc123', flight='UAL100 ')))

    assert provider.calls == [('abc123', 'UAL100')]


def test_dispatch_publishes_provisional_then_enriched(resolver_factory):
    board = DetailBoard()
    published = []
    board.add_listener(lambda detail: published.append(detail.status))
    provider = StubProvider('a', result=PartialDetail(registration='N12345', manufacturer='Boeing'))
    resolver = resolver_factory([provider], board=board)

    future = resolver.dispatch(make_aircraft('abc123'))
    detail = future.result(timeout=5)

    assert published == [DetailStatus.PROVISIONAL, DetailStatus.RESOLVED]
    assert board.current is detail
    assert board.get('ABC123').manufacturer == 'Boeing'
    assert resolver.stats['in_flight'] == 0


class GatedProvider(DetailProvider):
    """Holds each lookup until its identifier's gate is opened."""
    name = 'gated'

    def __init__(self):
        self.gates = {}
        self.calls = []
        self._lock = threading.Lock()

    def gate(self, identifier):
        with self._lock:
            return self.gates.setdefault(identifier, threading.Event())

    def lookup(self, identifier, callsign=None):
        with self._lock:
            self.calls.append(identifier)
        self.gate(identifier).wait(5)
        return PartialDetail(registration=f'N-{identifier}', manufacturer='Boeing')

    def release_all(self):
        with self._lock:
            gates = list(self.gates.values())
        for gate in gates:
            gate.set()


@pytest.fixture
def gated():
    provider = GatedProvider()
    yield provider
    provider.release_all()


def test_repeat_dispatch_ignored_while_in_flight(resolver_factory, gated):
    resolver = resolver_factory([gated])

    first = resolver.dispatch(make_aircraft('abc123'))
    assert resolver.dispatch(make_aircraft('abc123')) is None
    assert resolver.stats['in_flight'] == 1

    gated.gate('abc123').set()
    first.result(timeout=5)

    assert gated.calls == ['abc123']
    assert resolver.stats['in_flight'] == 0
    # a new arrival of the same aircraft resolves again
    again = resolver.dispatch(make_aircraft('abc123'))
    assert again is not None
    again.result(timeout=5)


def test_overlapping_resolutions_last_write_wins(resolver_factory, gated):
    board = DetailBoard()
    published = []
    board.add_listener(lambda detail: published.append((detail.identifier, detail.status)))
    resolver = resolver_factory([gated], board=board)

    first = resolver.dispatch(make_aircraft('aaa111'))
    second = resolver.dispatch(make_aircraft('bbb222'))
    assert board.current.identifier == 'bbb222'

    gated.gate('bbb222').set()
    second.result(timeout=5)
    assert board.current.identifier == 'bbb222'

    # the earlier resolution is not cancelled and lands afterwards
    gated.gate('aaa111').set()
    first.result(timeout=5)

    assert board.current.identifier == 'aaa111'
    assert board.current.registration == 'N-aaa111'
    assert board.get('bbb222').status == DetailStatus.RESOLVED
    assert board.get('aaa111').status == DetailStatus.RESOLVED
    assert published == [
        ('aaa111', DetailStatus.PROVISIONAL),
        ('bbb222', DetailStatus.PROVISIONAL),
        ('bbb222', DetailStatus.RESOLVED),
        ('aaa111', DetailStatus.RESOLVED),
    ]


def test_board_is_bounded():
    board = DetailBoard(max_entries=2)
    for identifier in ('a', 'b', 'c'):
        board.publish(build_provisional(make_aircraft(identifier)))

    assert board.get('a') is None
    assert board.current.identifier == 'c'


def test_from_config_skips_unconfigured_providers(monkeypatch, tmp_path):
    providers = ProviderConfig(
        adsbdb_base_url=None,
        proxy_base_url='http://localhost:8080/api/v1',
        hexdb_base_url='https://hexdb.test/api/v1',
        offline_registry_path=str(tmp_path / 'missing.json'),
    )
    monkeypatch.setattr(detail_resolver, 'config', replace(detail_resolver.config, providers=providers))

    resolver = DetailResolver.from_config()
    try:
        assert [p.name for p in resolver.providers] == ['proxy', 'hexdb']
    finally:
        resolver.shutdown()


def test_counters_consistent_across_workers(resolver_factory):
    resolver = resolver_factory([StubProvider('a', result=PartialDetail(registration='N1'))])

    futures = [
        resolver.submit(resolver.enrich, build_provisional(make_aircraft(f'{i:06x}')))
        for i in range(50)
    ]
    for future in futures:
        future.result(timeout=5)

    assert resolver.stats['resolved'] == 50
    assert resolver.stats['exhausted'] == 0
