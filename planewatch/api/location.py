"""
Reference location API endpoints.

Provides endpoints for:
- GET /api/location - Current reference point and radius
- POST /api/location - Set reference point and/or radius
- POST /api/location/search - Geocode free text and move there
"""

import logging

from flask import Blueprint, jsonify, request, current_app

from planewatch.services.geocoding import search_location

logger = logging.getLogger(__name__)

location_bp = Blueprint('location', __name__, url_prefix='/api/location')

MAX_RADIUS_NM = 250


def _apply_reference(lat: float, lon: float, radius_nm: float) -> None:
    pipeline = current_app.config['PIPELINE']
    viewport = current_app.config['VIEWPORT']

    pipeline.set_reference(lat, lon, radius_nm)
    viewport.ensure(lat, lon, pipeline.radius_nm)


def _location_response(source: str = 'configured'):
    pipeline = current_app.config['PIPELINE']
    reference = pipeline.reference
    return {
        'location': {
            'latitude': reference[0] if reference else None,
            'longitude': reference[1] if reference else None,
        },
        'radius_nm': pipeline.radius_nm,
        'source': source,
    }


@location_bp.route('', methods=['GET', 'POST'])
def reference_location():
    """
    Get or set the reference point.

    GET: Returns current reference point
    POST: Set new reference point
        Body: {"latitude": float, "longitude": float, "radius_nm": float (optional)}

    Only the viewport is rebuilt; markers follow on the next cycle.
    """
    if request.method == 'GET':
        return jsonify(_location_response(current_app.config.get('LOCATION_SOURCE', 'configured')))

    data = request.get_json(silent=True)
    if not data:
        return jsonify({'error': 'JSON body required'}), 400

    pipeline = current_app.config['PIPELINE']
    reference = pipeline.reference or (None, None)

    lat = data.get('latitude', reference[0])
    lon = data.get('longitude', reference[1])
    radius_nm = data.get('radius_nm', pipeline.radius_nm)

    if lat is None or lon is None:
        return jsonify({'error': 'latitude and longitude required'}), 400

    try:
        lat = float(lat)
        lon = float(lon)
        radius_nm = float(radius_nm)
    except (ValueError, TypeError):
        return jsonify({'error': 'Invalid latitude, longitude or radius'}), 400

    # Validate ranges
    if not (-90 <= lat <= 90):
        return jsonify({'error': 'Latitude must be between -90 and 90'}), 400
    if not (-180 <= lon <= 180):
        return jsonify({'error': 'Longitude must be between -180 and 180'}), 400
    if not (0 < radius_nm <= MAX_RADIUS_NM):
        return jsonify({'error': f'radius_nm must be between 0 and {MAX_RADIUS_NM}'}), 400

    _apply_reference(lat, lon, radius_nm)
    current_app.config['LOCATION_SOURCE'] = 'manual'

    return jsonify({
        'success': True,
        **_location_response('manual'),
    })


@location_bp.route('/search', methods=['POST'])
def search():
    """
    Geocode a place name and make it the reference point.

    Body: {"query": "Heathrow"}
    """
    data = request.get_json(silent=True) or {}
    query = data.get('query')
    if not isinstance(query, str) or not query.strip():
        return jsonify({'error': 'query required'}), 400

    result = search_location(query)
    if not result:
        return jsonify({'success': False, 'error': f'No location found for {query!r}'}), 404

    pipeline = current_app.config['PIPELINE']
    _apply_reference(result.latitude, result.longitude, pipeline.radius_nm)
    current_app.config['LOCATION_SOURCE'] = 'search'
    logger.info(f'Reference moved to {result.display_name}')

    return jsonify({
        'success': True,
        'name': result.display_name,
        **_location_response('search'),
    })
