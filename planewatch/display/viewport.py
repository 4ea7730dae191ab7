"""
Viewport geometry - map bounds and range ring around the reference point.

Rebuilding the geometry is tied to the reference coordinate and radius
only. Aircraft set churn happens every cycle and must never trigger a
rebuild.
"""

import logging
import threading
from typing import List, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

METERS_PER_NM = 1852.0
METERS_PER_DEGREE = 111320.0

RING_POINTS = 64


def range_ring(lat: float, lon: float, radius_nm: float, points: int = RING_POINTS) -> np.ndarray:
    """
    Closed polygon approximating a circle of radius_nm around (lat, lon).

    Returns an array of shape (points + 1, 2) holding (lat, lon) rows;
    the last row repeats the first. Equirectangular approximation, fine
    at the tens-of-miles scale involved.
    """
    radius_m = radius_nm * METERS_PER_NM
    angles = np.linspace(0.0, 2 * np.pi, points, endpoint=False)

    dlat = (radius_m * np.cos(angles)) / METERS_PER_DEGREE
    # Longitude degrees shrink with latitude; clamp near the poles
    cos_lat = max(np.cos(np.radians(lat)), 1e-6)
    dlon = (radius_m * np.sin(angles)) / (METERS_PER_DEGREE * cos_lat)

    ring = np.column_stack((lat + dlat, lon + dlon))
    return np.vstack((ring, ring[:1]))


class Viewport:
    """Bounds and range ring for the current reference point and radius."""

    def __init__(self):
        self._key: Optional[Tuple[float, float, float]] = None
        self._ring: Optional[np.ndarray] = None
        self._bounds: Optional[Tuple[float, float, float, float]] = None
        self._lock = threading.RLock()
        self.rebuild_count = 0

    def ensure(self, lat: float, lon: float, radius_nm: float) -> bool:
        """
        Make the geometry match (lat, lon, radius_nm).

        Returns True if it had to be rebuilt.
        """
        key = (lat, lon, radius_nm)
        with self._lock:
            if key == self._key:
                return False

            ring = range_ring(lat, lon, radius_nm)
            self._ring = ring
            self._bounds = (
                float(ring[:, 0].min()),
                float(ring[:, 1].min()),
                float(ring[:, 0].max()),
                float(ring[:, 1].max()),
            )
            self._key = key
            self.rebuild_count += 1

        logger.debug(f'Viewport rebuilt for ({lat:.4f}, {lon:.4f}) r={radius_nm:g} NM')
        return True

    @property
    def center(self) -> Optional[Tuple[float, float]]:
        with self._lock:
            return self._key[:2] if self._key else None

    @property
    def bounds(self) -> Optional[Tuple[float, float, float, float]]:
        """(min_lat, min_lon, max_lat, max_lon) or None before the first build."""
        with self._lock:
            return self._bounds

    @property
    def ring(self) -> List[List[float]]:
        with self._lock:
            return self._ring.tolist() if self._ring is not None else []

    def to_dict(self) -> dict:
        with self._lock:
            key = self._key
        return {
            'center': list(key[:2]) if key else None,
            'radius_nm': key[2] if key else None,
            'bounds': self.bounds,
            'ring': self.ring,
            'rebuild_count': self.rebuild_count,
        }
