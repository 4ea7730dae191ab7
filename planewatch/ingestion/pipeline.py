"""
Watch pipeline - orchestrates one poll cycle from feed to display.

Pipeline stages:
1. Fetch: query the position feed around the reference point
2. Filter: drop non-standard sources, apply model selection
3. Novelty: diff against the previous cycle's seen set (every
   arrival_check_every polls)
4. Dispatch: hand the spotlighted arrival to the detail resolver
5. Publish: pass the filtered list to update callbacks (marker reconciler)

Filtering always precedes novelty detection, which precedes dispatch.
Dispatch never blocks the cycle; resolutions finish on the resolver's
worker pool.
"""

import logging
import threading
import time
from typing import Callable, Iterable, List, Optional, Tuple

from planewatch.config import config
from planewatch.ingestion.feed_client import PositionFeedClient
from planewatch.ingestion.novelty import NoveltyDetector
from planewatch.ingestion.taxonomy import TaxonomyFilter
from planewatch.models import AircraftPosition
from planewatch.services.detail_resolver import DetailResolver

logger = logging.getLogger(__name__)


class WatchPipeline:
    """
    Manages the poll lifecycle.

    Coordinates fetching, filtering, novelty detection and resolver
    dispatch. Can run as a background thread for continuous polling;
    cycles run back to back on that thread and never overlap.
    """

    def __init__(
        self,
        taxonomy_filter: TaxonomyFilter,
        client: Optional[PositionFeedClient] = None,
        novelty: Optional[NoveltyDetector] = None,
        resolver: Optional[DetailResolver] = None,
        reference: Optional[Tuple[float, float]] = None,
        radius_nm: Optional[float] = None,
        selection: Optional[Iterable[str]] = None,
        include_non_standard: Optional[bool] = None,
        arrival_check_every: Optional[int] = None,
    ):
        """
        Initialize the watch pipeline.

        Args:
            taxonomy_filter: Model filter applied to every raw list
            client: Position feed client (created from config if None)
            novelty: Arrival detector (fresh one if None)
            resolver: Detail resolver; no enrichment is dispatched if None
            reference: (lat, lon) query center
            radius_nm: Query radius in nautical miles
            selection: Selected model names (empty = everything)
            include_non_standard: Keep relayed/derived sources
            arrival_check_every: Run novelty detection every N polls
        """
        self.client = client or PositionFeedClient.from_config()
        self.taxonomy_filter = taxonomy_filter
        self.novelty = novelty or NoveltyDetector()
        self.resolver = resolver

        self.reference = reference
        self.radius_nm = radius_nm or config.feed.default_radius_nm
        self.selection = frozenset(config.filter.selection if selection is None else selection)
        self.include_non_standard = (
            config.filter.include_non_standard if include_non_standard is None else include_non_standard
        )

        self.arrival_check_every = max(1, arrival_check_every or config.feed.arrival_check_every)

        self._lock = threading.RLock()
        self._current: List[AircraftPosition] = []
        self._raw_count = 0

        # State tracking
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._interval = config.feed.poll_interval
        self._last_fetch_time: float = 0
        self._next_fetch_time: float = 0
        self._fetch_count: int = 0
        self._error_count: int = 0

        # Callbacks for external integration
        self._on_update_callbacks: List[Callable[[List[AircraftPosition]], None]] = []

    def set_reference(self, lat: float, lon: float, radius_nm: Optional[float] = None) -> None:
        """Move the query center (and optionally change the radius)."""
        with self._lock:
            self.reference = (lat, lon)
            if radius_nm:
                self.radius_nm = radius_nm
        logger.info(f'Reference set to ({lat:.4f}, {lon:.4f}), radius {self.radius_nm:g} NM')

    def set_selection(self, selection: Iterable[str], include_non_standard: Optional[bool] = None) -> None:
        """Change the model selection. Applies from the next cycle."""
        with self._lock:
            self.selection = frozenset(selection)
            if include_non_standard is not None:
                self.include_non_standard = include_non_standard
        logger.info(f'Model selection: {sorted(self.selection) or "all"}')

    def add_update_callback(self, callback: Callable[[List[AircraftPosition]], None]) -> None:
        """
        Register callback to be invoked after each cycle.

        Callback receives the filtered list (possibly empty).
        """
        self._on_update_callbacks.append(callback)

    @property
    def current(self) -> List[AircraftPosition]:
        """Filtered list of the last completed cycle."""
        with self._lock:
            return list(self._current)

    def fetch_and_process(self) -> int:
        """
        Execute one poll cycle.

        Returns count of aircraft passing the filter, or -1 on error.
        """
        with self._lock:
            reference = self.reference
            radius_nm = self.radius_nm
            selection = self.selection
            include_non_standard = self.include_non_standard

        if not reference:
            logger.warning('No reference point set, skipping fetch')
            return -1

        try:
            # Stage 1: Fetch. Failures come back as an empty list
            raw = self.client.get_aircraft(reference[0], reference[1], radius_nm)
            self._last_fetch_time = time.time()
            self._fetch_count += 1

            # Stage 2: Filter
            filtered = self.taxonomy_filter.apply(
                raw,
                selection=selection,
                include_non_standard=include_non_standard,
            )

            # Stage 3: Novelty, on arrival-check cycles only
            if self._fetch_count % self.arrival_check_every == 0:
                arrivals = self.novelty.observe(filtered)

                # Stage 4: Dispatch the spotlighted arrival only
                spotlight = self.novelty.spotlight(arrivals)
                if spotlight and self.resolver:
                    self.resolver.dispatch(spotlight)

            with self._lock:
                self._current = filtered
                self._raw_count = len(raw)

            logger.debug(f'Cycle {self._fetch_count}: {len(raw)} in range, {len(filtered)} after filter')

        except Exception as e:
            self._error_count += 1
            logger.error(f'Poll cycle error: {e}')
            return -1

        # Stage 5: Notify callbacks
        for callback in self._on_update_callbacks:
            try:
                callback(filtered)
            except Exception as e:
                logger.error(f'Update callback error: {e}')

        return len(filtered)

    def run_continuous(self, interval: Optional[float] = None) -> None:
        """
        Run poll loop continuously.

        This method blocks - use start_background() for non-blocking.
        """
        self._interval = interval or config.feed.poll_interval
        self._running = True

        logger.info(f'Starting continuous polling (interval={self._interval}s)')

        while self._running:
            self.fetch_and_process()
            self._next_fetch_time = time.time() + self._interval
            time.sleep(self._interval)

        logger.info('Polling stopped')

    def start_background(self, interval: Optional[float] = None) -> None:
        """Start polling in background thread."""
        if self._thread and self._thread.is_alive():
            logger.warning('Polling already running')
            return

        self._thread = threading.Thread(
            target=self.run_continuous,
            args=(interval,),
            name='watch-pipeline',
            daemon=True,
        )
        self._thread.start()
        logger.info('Background polling started')

    def stop(self) -> None:
        """Stop background polling."""
        self._running = False
        if self._thread:
            self._thread.join(timeout=5)
        logger.info('Polling stopped')

    @property
    def next_refresh_in(self) -> float:
        """Seconds until the next poll (0 when not running)."""
        if not self._running:
            return 0.0
        return max(0.0, round(self._next_fetch_time - time.time(), 1))

    @property
    def next_arrival_check_in(self) -> float:
        """Seconds until the next poll that checks for arrivals (0 when not running)."""
        if not self._running:
            return 0.0
        polls_left = self.arrival_check_every - self._fetch_count % self.arrival_check_every
        return round(self.next_refresh_in + (polls_left - 1) * self._interval, 1)

    @property
    def stats(self) -> dict:
        """Get pipeline statistics."""
        with self._lock:
            raw_count = self._raw_count
            current_count = len(self._current)
        return {
            'fetch_count': self._fetch_count,
            'error_count': self._error_count,
            'last_fetch_time': self._last_fetch_time,
            'next_refresh_in': self.next_refresh_in,
            'next_arrival_check_in': self.next_arrival_check_in,
            'arrival_check_every': self.arrival_check_every,
            'running': self._running,
            'in_range': raw_count,
            'visible': current_count,
            'feed': self.client.stats,
            'novelty': self.novelty.stats,
        }
