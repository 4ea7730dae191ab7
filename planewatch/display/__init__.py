"""
Display state: map markers and viewport geometry.
"""

from planewatch.display.markers import Marker, MarkerReconciler, ReconcileResult
from planewatch.display.viewport import Viewport, range_ring

__all__ = ['Marker', 'MarkerReconciler', 'ReconcileResult', 'Viewport', 'range_ring']
