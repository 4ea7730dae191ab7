"""
Data models for PlaneWatch.

Plain dataclasses, nothing is persisted:
1. AircraftPosition - fresh feed entries, replaced every poll cycle
2. AircraftDetail - descriptive record built by the detail resolver
"""

from planewatch.models.aircraft import AircraftPosition, GROUND, MACH_TO_KMH, KNOTS_TO_KMH
from planewatch.models.detail import (
    AircraftDetail,
    AirlineInfo,
    AirportInfo,
    DetailStatus,
    PartialDetail,
    UNKNOWN,
    is_known,
)

__all__ = [
    'AircraftPosition',
    'GROUND',
    'MACH_TO_KMH',
    'KNOTS_TO_KMH',
    'AircraftDetail',
    'AirlineInfo',
    'AirportInfo',
    'DetailStatus',
    'PartialDetail',
    'UNKNOWN',
    'is_known',
]
