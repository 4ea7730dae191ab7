"""
Arrival detection across poll cycles.

The seen set is rebuilt wholesale from every cycle's filtered list
rather than diffed incrementally, so it can never drift out of step
with what the feed last reported. An aircraft that disappears for one
cycle and comes back is therefore new again.
"""

import logging
import threading
from typing import Callable, FrozenSet, List, Optional

from planewatch.models import AircraftPosition

logger = logging.getLogger(__name__)


class NoveltyDetector:
    """
    Tracks identifiers seen in the previous cycle and reports arrivals.

    An arrival is present now, absent last cycle, and has a non-empty
    registration (without one there is nothing useful to resolve).
    """

    def __init__(self):
        self._seen: FrozenSet[str] = frozenset()
        self._lock = threading.RLock()
        self._on_arrival_callbacks: List[Callable[[AircraftPosition], None]] = []
        self._arrival_count = 0

    @property
    def seen(self) -> FrozenSet[str]:
        with self._lock:
            return self._seen

    def add_arrival_callback(self, callback: Callable[[AircraftPosition], None]) -> None:
        """
        Register callback invoked with the spotlighted arrival of a cycle.

        Used for alerting (sound, notification).
        """
        self._on_arrival_callbacks.append(callback)

    def observe(self, filtered: List[AircraftPosition]) -> List[AircraftPosition]:
        """
        Compute arrivals for this cycle and replace the seen set.

        Returns arrivals in feed order.
        """
        with self._lock:
            previous = self._seen
            arrivals = [
                ac for ac in filtered
                if ac.identifier not in previous and ac.registration
            ]
            self._seen = frozenset(ac.identifier for ac in filtered)

        if arrivals:
            self._arrival_count += len(arrivals)
            logger.info(
                f'{len(arrivals)} new aircraft detected: '
                f'{", ".join(ac.registration for ac in arrivals[:5])}'
            )
            self._notify(arrivals[0])

        return arrivals

    @staticmethod
    def spotlight(arrivals: List[AircraftPosition]) -> Optional[AircraftPosition]:
        """Only the first arrival of a cycle is resolved and alerted."""
        return arrivals[0] if arrivals else None

    def _notify(self, aircraft: AircraftPosition) -> None:
        for callback in self._on_arrival_callbacks:
            try:
                callback(aircraft)
            except Exception as e:
                logger.error(f'Arrival callback error: {e}')

    @property
    def stats(self) -> dict:
        with self._lock:
            return {
                'seen': len(self._seen),
                'arrivals': self._arrival_count,
            }
