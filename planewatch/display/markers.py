"""
Marker reconciler - keeps a keyed collection of map markers in step
with the filtered aircraft list.

Markers are persistent handles. A marker for an aircraft that is still
present is updated in place (position, rotation, variant); it is only
destroyed once the aircraft leaves the filtered list. Recreating a
marker for a mere position change would restart its animation on the
map.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from planewatch.models import AircraftPosition

logger = logging.getLogger(__name__)

SELECTED = 'selected'
UNSELECTED = 'unselected'


class Marker:
    """Visual handle for one aircraft."""

    def __init__(self, aircraft: AircraftPosition, on_select: Callable[[str], None]):
        self.identifier = aircraft.identifier
        self.on_select = on_select
        self.variant = UNSELECTED
        self.destroyed = False
        self.apply(aircraft)

    def apply(self, aircraft: AircraftPosition) -> None:
        """Move the marker to the aircraft's latest telemetry."""
        self.latitude = aircraft.latitude
        self.longitude = aircraft.longitude
        self.rotation = aircraft.rotation
        self.registration = aircraft.registration or None
        self.type_code = aircraft.type_code or None

    def set_selected(self, selected: bool) -> None:
        self.variant = SELECTED if selected else UNSELECTED

    def select(self) -> None:
        """Selection handler, as triggered by a click on the marker."""
        self.on_select(self.identifier)

    def destroy(self) -> None:
        self.destroyed = True

    def to_dict(self) -> dict:
        return {
            'identifier': self.identifier,
            'registration': self.registration,
            'type_code': self.type_code,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'rotation': self.rotation,
            'variant': self.variant,
        }

    def __repr__(self) -> str:
        return f'<Marker {self.identifier} {self.variant}>'


@dataclass
class ReconcileResult:
    created: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)


class MarkerReconciler:
    """
    Synchronizes markers 1:1 with identifiers of the filtered list.

    Selection listeners receive the identifier and the aircraft position
    the marker was last updated from.
    """

    def __init__(self):
        self._markers: Dict[str, Marker] = {}
        self._positions: Dict[str, AircraftPosition] = {}
        self._selected_id: Optional[str] = None
        self._lock = threading.RLock()
        self._selection_listeners: List[Callable[[str, AircraftPosition], None]] = []

    def add_selection_listener(self, callback: Callable[[str, AircraftPosition], None]) -> None:
        self._selection_listeners.append(callback)

    @property
    def selected_id(self) -> Optional[str]:
        with self._lock:
            return self._selected_id

    @property
    def markers(self) -> Dict[str, Marker]:
        """Snapshot of the current collection."""
        with self._lock:
            return dict(self._markers)

    def get(self, identifier: str) -> Optional[Marker]:
        with self._lock:
            return self._markers.get(identifier.lower())

    def reconcile(
        self,
        filtered: List[AircraftPosition],
        selected_id: Optional[str] = None,
    ) -> ReconcileResult:
        """
        Bring the marker collection in line with `filtered`.

        `selected_id` overrides the current selection when given.
        """
        result = ReconcileResult()

        with self._lock:
            if selected_id is not None:
                self._selected_id = selected_id

            current_ids = {ac.identifier for ac in filtered}

            for identifier in list(self._markers):
                if identifier not in current_ids:
                    self._markers.pop(identifier).destroy()
                    self._positions.pop(identifier, None)
                    result.removed.append(identifier)

            for ac in filtered:
                marker = self._markers.get(ac.identifier)
                if marker:
                    marker.apply(ac)
                    result.updated.append(ac.identifier)
                else:
                    marker = Marker(ac, on_select=self.select)
                    self._markers[ac.identifier] = marker
                    result.created.append(ac.identifier)
                self._positions[ac.identifier] = ac
                # Variant follows the selection every cycle, not only at creation
                marker.set_selected(ac.identifier == self._selected_id)

        if result.created or result.removed:
            logger.debug(
                f'Markers: +{len(result.created)} -{len(result.removed)} '
                f'~{len(result.updated)}'
            )
        return result

    def select(self, identifier: str) -> bool:
        """
        Mark `identifier` as selected and notify listeners.

        Returns False if there is no marker for it.
        """
        identifier = identifier.lower()
        with self._lock:
            if identifier not in self._markers:
                return False
            self._selected_id = identifier
            for key, marker in self._markers.items():
                marker.set_selected(key == identifier)
            aircraft = self._positions[identifier]

        logger.info(f'Selected {identifier}')
        for callback in self._selection_listeners:
            try:
                callback(identifier, aircraft)
            except Exception as e:
                logger.error(f'Selection listener error: {e}')
        return True

    def clear_selection(self) -> None:
        with self._lock:
            self._selected_id = None
            for marker in self._markers.values():
                marker.set_selected(False)

    def to_dict(self) -> dict:
        with self._lock:
            return {
                'selected': self._selected_id,
                'count': len(self._markers),
                'markers': [m.to_dict() for m in self._markers.values()],
            }
