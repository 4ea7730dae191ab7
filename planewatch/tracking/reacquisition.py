"""
Target reacquisition - keeps following one selected aircraft after it
leaves the main query window.

Each step queries a small fixed radius around an anchor that moves with
the target:

    FOLLOWING --(lost_after_misses consecutive misses)--> LOST
    LOST      --(target found again)--------------------> FOLLOWING

A miss leaves the anchor where it was, so the next step retries at the
same (increasingly stale) point. Polling continues while LOST; the state
only makes the situation visible to the API and to listeners.

Detail enrichment and route endpoint geocoding run once per session on
the resolver's worker pool, so a slow provider never delays a step.
Endpoints never move once placed; only the midpoint of the route line
follows the aircraft.
"""

import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import replace
from enum import Enum
from typing import Callable, List, Optional, Tuple

from planewatch.config import config
from planewatch.ingestion.feed_client import PositionFeedClient
from planewatch.models import KNOTS_TO_KMH, AircraftDetail, AircraftPosition
from planewatch.services.detail_resolver import DetailResolver, build_provisional
from planewatch.services.geocoding import AirportGeocoder

logger = logging.getLogger(__name__)

Coordinate = Tuple[float, float]


class TrackingState(str, Enum):
    IDLE = 'idle'
    FOLLOWING = 'following'
    LOST = 'lost'


class ReacquisitionTracker:
    """
    Follows a single identifier around a moving anchor.

    The tracker owns the anchor; everything it mutates is guarded by one
    lock. Each start() opens a new session, so a step still running for
    a previous target cannot write into the new one.
    """

    def __init__(
        self,
        client: PositionFeedClient,
        resolver: Optional[DetailResolver] = None,
        geocoder: Optional[AirportGeocoder] = None,
        radius_nm: Optional[float] = None,
        lost_after_misses: Optional[int] = None,
    ):
        self.client = client
        self.resolver = resolver
        self.geocoder = geocoder
        self.radius_nm = radius_nm or config.tracking.radius_nm
        self.lost_after_misses = lost_after_misses or config.tracking.lost_after_misses

        self._lock = threading.RLock()
        self._session = 0
        self._state = TrackingState.IDLE
        self._target: Optional[str] = None
        self._anchor: Optional[Coordinate] = None
        self._position: Optional[AircraftPosition] = None
        self._detail: Optional[AircraftDetail] = None
        self._enrichment: Optional[Future] = None
        self._endpoints: Optional[Tuple[Optional[Coordinate], Optional[Coordinate]]] = None
        self._misses = 0
        self._last_seen: float = 0

        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._listeners: List[Callable[[TrackingState, Optional[str]], None]] = []

    def add_listener(self, callback: Callable[[TrackingState, Optional[str]], None]) -> None:
        """Register callback invoked on every state change with (state, identifier)."""
        self._listeners.append(callback)

    @property
    def state(self) -> TrackingState:
        with self._lock:
            return self._state

    @property
    def target(self) -> Optional[str]:
        with self._lock:
            return self._target

    @property
    def anchor(self) -> Optional[Coordinate]:
        with self._lock:
            return self._anchor

    @property
    def detail(self) -> Optional[AircraftDetail]:
        with self._lock:
            return self._detail

    @property
    def enrichment(self) -> Optional[Future]:
        """Pending or finished enrichment of the current session, if any."""
        with self._lock:
            return self._enrichment

    @property
    def misses(self) -> int:
        with self._lock:
            return self._misses

    def start(self, aircraft: AircraftPosition) -> None:
        """Begin following `aircraft` from its last known coordinate."""
        with self._lock:
            self._session += 1
            self._target = aircraft.identifier
            self._anchor = (aircraft.latitude, aircraft.longitude)
            self._position = aircraft
            self._detail = build_provisional(aircraft)
            self._enrichment = None
            self._endpoints = None
            self._misses = 0
            self._last_seen = time.time()
            self._state = TrackingState.FOLLOWING

        logger.info(f'Tracking {aircraft.identifier} from ({aircraft.latitude:.4f}, {aircraft.longitude:.4f})')
        self._notify(TrackingState.FOLLOWING, aircraft.identifier)

    def stop(self) -> None:
        """End the tracking session."""
        with self._lock:
            if self._state == TrackingState.IDLE:
                return
            target = self._target
            self._session += 1
            self._state = TrackingState.IDLE
            self._target = None
            self._anchor = None
            self._position = None
            self._detail = None
            self._enrichment = None
            self._endpoints = None
            self._misses = 0

        logger.info(f'Stopped tracking {target}')
        self._notify(TrackingState.IDLE, target)

    def _enrich(self, session: int) -> None:
        """Resolve details and place route endpoints. Runs on the resolver pool."""
        with self._lock:
            if session != self._session:
                return
            provisional = self._detail

        try:
            detail, endpoints = self._resolve_route(provisional)
        except Exception as e:
            logger.error(f'Tracking enrichment error for {provisional.identifier}: {e}')
            return

        with self._lock:
            if session != self._session:
                logger.debug(f'Discarding enrichment of {provisional.identifier} from an ended session')
                return
            # Keep telemetry that moved on while the providers were queried
            self._detail = replace(
                detail,
                altitude=self._detail.altitude,
                speed=self._detail.speed,
            )
            self._endpoints = endpoints

    def _resolve_route(self, provisional: AircraftDetail) -> Tuple[AircraftDetail, Optional[Tuple]]:
        detail = self.resolver.enrich(provisional)

        endpoints = None
        if detail.has_route:
            # Geocode copies; provider results are cached and shared
            origin = replace(detail.origin)
            destination = replace(detail.destination)
            if self.geocoder:
                self.geocoder.geocode(origin)
                self.geocoder.geocode(destination)
            detail = replace(detail, origin=origin, destination=destination)
            endpoints = (
                (origin.latitude, origin.longitude) if origin.has_coordinates else None,
                (destination.latitude, destination.longitude) if destination.has_coordinates else None,
            )
        return detail, endpoints

    def step(self) -> TrackingState:
        """
        Run one reacquisition cycle.

        The first step of a session hands enrichment to the resolver pool
        and queries the anchor straight away. Returns the state after the
        cycle.
        """
        with self._lock:
            if self._state == TrackingState.IDLE:
                return TrackingState.IDLE
            session = self._session
            target = self._target
            anchor = self._anchor
            if self._enrichment is None and self.resolver:
                self._enrichment = self.resolver.submit(self._enrich, session)

        aircraft = self.client.get_aircraft(anchor[0], anchor[1], self.radius_nm)
        found = next((ac for ac in aircraft if ac.identifier == target), None)

        with self._lock:
            if session != self._session:
                return self._state

            previous_state = self._state
            if found:
                self._apply(found)
                self._misses = 0
                self._state = TrackingState.FOLLOWING
            else:
                self._misses += 1
                if self._misses >= self.lost_after_misses:
                    self._state = TrackingState.LOST
            state = self._state
            misses = self._misses

        if state != previous_state:
            if state == TrackingState.LOST:
                logger.warning(f'Lost {target} after {misses} consecutive misses, still polling at {anchor}')
            else:
                logger.info(f'Reacquired {target}')
            self._notify(state, target)
        elif not found:
            logger.debug(f'{target} not found around {anchor} ({misses} misses)')

        return state

    def _apply(self, aircraft: AircraftPosition) -> None:
        """Move the anchor and push fresh telemetry into the detail. Lock held."""
        self._anchor = (aircraft.latitude, aircraft.longitude)
        self._position = aircraft
        self._last_seen = time.time()

        speed = self._detail.speed
        if aircraft.ground_speed:
            speed = int(round(aircraft.ground_speed * KNOTS_TO_KMH))
        altitude = aircraft.altitude if aircraft.altitude is not None else self._detail.altitude
        self._detail = replace(self._detail, altitude=altitude, speed=speed)

    @property
    def route_line(self) -> List[Coordinate]:
        """
        [origin, current position, destination] once both endpoints are
        placed, otherwise just the current position.
        """
        with self._lock:
            if not self._anchor:
                return []
            origin, destination = self._endpoints or (None, None)
            if origin and destination:
                return [origin, self._anchor, destination]
            return [self._anchor]

    def _notify(self, state: TrackingState, identifier: Optional[str]) -> None:
        for callback in self._listeners:
            try:
                callback(state, identifier)
            except Exception as e:
                logger.error(f'Tracking listener error: {e}')

    def run_continuous(self, interval: Optional[float] = None) -> None:
        """
        Run the tracking loop continuously. Idle steps are no-ops.

        This method blocks - use start_background() for non-blocking.
        """
        interval = interval or config.tracking.interval
        self._running = True

        while self._running:
            try:
                self.step()
            except Exception as e:
                logger.error(f'Tracking step error: {e}')
            time.sleep(interval)

    def start_background(self, interval: Optional[float] = None) -> None:
        """Start the tracking loop in a background thread."""
        if self._thread and self._thread.is_alive():
            logger.warning('Tracker already running')
            return

        self._thread = threading.Thread(
            target=self.run_continuous,
            args=(interval,),
            name='reacquisition-tracker',
            daemon=True,
        )
        self._thread.start()

    def shutdown(self) -> None:
        """Stop the background loop."""
        self._running = False
        if self._thread:
            self._thread.join(timeout=5)

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict for API responses."""
        with self._lock:
            position = self._position
            detail = self._detail
            return {
                'state': self._state.value,
                'target': self._target,
                'anchor': list(self._anchor) if self._anchor else None,
                'misses': self._misses,
                'last_seen': self._last_seen if self._target else None,
                'position': {
                    'latitude': position.latitude,
                    'longitude': position.longitude,
                    'heading': position.heading,
                    'rotation': position.rotation,
                } if position else None,
                'detail': detail.to_dict() if detail else None,
                'route_line': [list(point) for point in self.route_line],
                'radius_nm': self.radius_nm,
            }
