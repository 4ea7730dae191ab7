"""
Detail resolver - turns a spotlighted arrival into a descriptive record.

Resolution runs in two steps:

1. Provisional (synchronous, no network): a record built from the feed
   telemetry already at hand is published immediately, so the display
   updates without waiting on any provider.
2. Enrichment: providers are tried in strict priority order and the
   first one that succeeds is merged onto the provisional record.

    1. adsbdb        flight-data aggregator (route + airline)
    2. local proxy   hexdb-format registry behind a local proxy
    3. hexdb.io      public registry
    4. offline       bundled registry file

A provider succeeds only when it answers AND the answer holds a
registration or a type. If every provider fails the provisional record
stays as published; it is never replaced by an all-unknown record.

Resolutions run on a small worker pool and are never cancelled. A late
result is simply published when it lands (last write wins).
"""

import logging
import threading
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from typing import Callable, List, Optional

from planewatch.config import config
from planewatch.models import (
    AircraftDetail,
    AircraftPosition,
    DetailStatus,
    UNKNOWN,
)
from planewatch.services.offline_registry import OfflineRegistry
from planewatch.services.providers import AdsbdbProvider, DetailProvider, HexdbProvider

logger = logging.getLogger(__name__)


def build_provisional(aircraft: AircraftPosition) -> AircraftDetail:
    """
    Build the provisional record from feed telemetry only.

    Speed is derived here, once, and carried unchanged through every
    later stage.
    """
    return AircraftDetail(
        identifier=aircraft.clean_identifier,
        registration=aircraft.registration or aircraft.clean_identifier,
        manufacturer=UNKNOWN,
        type=aircraft.description or aircraft.type_code or UNKNOWN,
        owner=UNKNOWN,
        callsign=aircraft.callsign or None,
        altitude=aircraft.altitude,
        speed=aircraft.derived_speed_kmh(),
    )


class DetailBoard:
    """
    Thread-safe holder of published detail records.

    Keeps the current spotlight plus a bounded history of records by
    identifier, so a selected marker can show what was resolved for it.
    """

    def __init__(self, max_entries: int = 200):
        self._current: Optional[AircraftDetail] = None
        self._by_identifier: 'OrderedDict[str, AircraftDetail]' = OrderedDict()
        self._max_entries = max_entries
        self._lock = threading.RLock()
        self._listeners: List[Callable[[AircraftDetail], None]] = []

    def add_listener(self, callback: Callable[[AircraftDetail], None]) -> None:
        self._listeners.append(callback)

    def publish(self, detail: AircraftDetail) -> None:
        with self._lock:
            self._current = detail
            self._by_identifier[detail.identifier] = detail
            self._by_identifier.move_to_end(detail.identifier)
            while len(self._by_identifier) > self._max_entries:
                self._by_identifier.popitem(last=False)

        for callback in self._listeners:
            try:
                callback(detail)
            except Exception as e:
                logger.error(f'Detail listener error: {e}')

    @property
    def current(self) -> Optional[AircraftDetail]:
        with self._lock:
            return self._current

    def get(self, identifier: str) -> Optional[AircraftDetail]:
        with self._lock:
            return self._by_identifier.get(identifier.replace('~', '').lower())


class DetailResolver:
    """
    Ordered fallback chain of detail providers.

    The chain is a plain list tried front to back; the first useful
    answer short-circuits the rest.
    """

    def __init__(
        self,
        providers: List[DetailProvider],
        board: Optional[DetailBoard] = None,
        max_workers: int = 4,
    ):
        self.providers = list(providers)
        self.board = board or DetailBoard()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix='detail-resolver',
        )
        self._in_flight = set()
        self._lock = threading.RLock()

        # Statistics
        self._resolved = 0
        self._exhausted = 0

    @classmethod
    def from_config(cls, board: Optional[DetailBoard] = None) -> 'DetailResolver':
        """Build the default provider chain. Unconfigured providers are left out."""
        cfg = config.providers
        providers: List[DetailProvider] = []

        if cfg.adsbdb_base_url:
            providers.append(AdsbdbProvider(cfg.adsbdb_base_url, timeout=cfg.timeout))
        if cfg.proxy_base_url:
            providers.append(HexdbProvider(cfg.proxy_base_url, name='proxy', timeout=cfg.timeout))
        if cfg.hexdb_base_url:
            providers.append(HexdbProvider(cfg.hexdb_base_url, timeout=cfg.timeout))
        if cfg.offline_registry_path:
            registry = OfflineRegistry.load(cfg.offline_registry_path)
            if len(registry):
                providers.append(registry)

        logger.info(f'Detail provider chain: {[p.name for p in providers]}')
        return cls(providers, board=board, max_workers=cfg.resolver_workers)

    def enrich(self, provisional: AircraftDetail) -> AircraftDetail:
        """
        Run the provider chain against a provisional record.

        Blocks on network I/O. Returns the enriched record, or the
        provisional record marked exhausted when nothing succeeded.
        """
        identifier = provisional.identifier
        callsign = provisional.callsign

        for provider in self.providers:
            try:
                result = provider.lookup(identifier, callsign)
            except Exception as e:
                logger.warning(f'{provider.name} raised during lookup of {identifier}: {e}')
                continue

            if result is None or not result.is_useful:
                logger.debug(f'{provider.name} had nothing for {identifier}, falling through')
                continue

            with self._lock:
                self._resolved += 1
            logger.info(f'Resolved {identifier} via {provider.name}')
            enriched = provisional.merge(result)
            return replace(enriched, source=provider.name, status=DetailStatus.RESOLVED)

        with self._lock:
            self._exhausted += 1
        logger.info(f'All detail providers failed for {identifier}, keeping provisional record')
        return replace(provisional, status=DetailStatus.EXHAUSTED)

    def dispatch(self, aircraft: AircraftPosition) -> Optional[Future]:
        """
        Start resolution for a spotlighted arrival without blocking.

        The provisional record is published before this returns. At most
        one resolution per identifier is in flight; a repeat dispatch
        while one is running is ignored and returns None.
        """
        identifier = aircraft.clean_identifier
        with self._lock:
            if identifier in self._in_flight:
                logger.debug(f'Resolution already in flight for {identifier}')
                return None
            self._in_flight.add(identifier)

        provisional = build_provisional(aircraft)
        self.board.publish(provisional)

        future = self._executor.submit(self._run, provisional)
        return future

    def _run(self, provisional: AircraftDetail) -> AircraftDetail:
        try:
            detail = self.enrich(provisional)
            self.board.publish(detail)
            return detail
        finally:
            with self._lock:
                self._in_flight.discard(provisional.identifier)

    def submit(self, fn: Callable, *args) -> Future:
        """Run other enrichment work (tracker sessions) on the resolver pool."""
        return self._executor.submit(fn, *args)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)

    @property
    def stats(self) -> dict:
        with self._lock:
            return {
                'providers': [p.name for p in self.providers],
                'in_flight': len(self._in_flight),
                'resolved': self._resolved,
                'exhausted': self._exhausted,
            }
