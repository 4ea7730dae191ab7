"""
API module for PlaneWatch.

Provides REST endpoints for:
- Aircraft, markers and detail records
- Reference location and model filter
- Reacquisition tracking
"""

from planewatch.api.aircraft import aircraft_bp
from planewatch.api.location import location_bp
from planewatch.api.tracking import tracking_bp

__all__ = ['aircraft_bp', 'location_bp', 'tracking_bp']
