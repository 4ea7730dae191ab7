"""
External integration services.

Handles third-party API calls with caching and graceful degradation
when services are unavailable: the detail provider chain, the offline
registry and geocoding.
"""

from planewatch.services.detail_resolver import DetailBoard, DetailResolver, build_provisional
from planewatch.services.geocoding import AirportGeocoder, detect_observer_location, search_location
from planewatch.services.offline_registry import OfflineRegistry
from planewatch.services.providers import AdsbdbProvider, DetailProvider, HexdbProvider

__all__ = [
    'DetailBoard',
    'DetailResolver',
    'build_provisional',
    'AirportGeocoder',
    'detect_observer_location',
    'search_location',
    'OfflineRegistry',
    'AdsbdbProvider',
    'DetailProvider',
    'HexdbProvider',
]
