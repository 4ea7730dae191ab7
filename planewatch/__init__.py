"""
PlaneWatch Package.

Live aircraft surveillance client built with Flask, requests, and NumPy.

Modules:
    api/         REST endpoints for aircraft, markers, location and tracking
    models/      Dataclasses for feed positions and resolved detail records
    ingestion/   Position feed polling, taxonomy filter and arrival detection
    services/    Detail provider chain, offline registry and geocoding
    display/     Marker reconciliation and viewport geometry
    tracking/    Re-acquisition of one selected aircraft
    config.py    Centralized configuration from environment variables
"""

__version__ = '1.0.0'
