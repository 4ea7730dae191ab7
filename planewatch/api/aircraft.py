"""
Aircraft and display API endpoints.

Provides endpoints for:
- GET /api/aircraft - Filtered aircraft list of the last poll cycle
- GET /api/markers - Marker states and viewport geometry
- POST /api/markers/<identifier>/select - Select a marker (starts tracking)
- GET /api/detail - Detail record of the spotlighted arrival
- GET /api/detail/<identifier> - Last published detail for an aircraft
- GET /api/filter, POST /api/filter - Model selection
- GET /api/taxonomy - Manufacturer and model reference
"""

import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, jsonify, request, current_app

from planewatch.ingestion.taxonomy import OTHERS

logger = logging.getLogger(__name__)

aircraft_bp = Blueprint('aircraft', __name__, url_prefix='/api')


@aircraft_bp.route('/aircraft', methods=['GET'])
def list_aircraft():
    """
    List aircraft that passed the filter in the last cycle.

    Query parameters:
    - limit: int, max results to return (default 200)

    Response includes the countdown to the next poll.
    """
    start_time = time.perf_counter()
    pipeline = current_app.config['PIPELINE']

    try:
        limit = min(int(request.args.get('limit', 200)), 1000)
    except ValueError:
        return jsonify({'error': 'limit must be an integer'}), 400

    aircraft = pipeline.current
    taxonomy = current_app.config['TAXONOMY']

    results = []
    for ac in aircraft[:limit]:
        item = ac.to_dict()
        item['model'] = taxonomy.classify(ac) or OTHERS
        results.append(item)

    stats = pipeline.stats
    query_time_ms = (time.perf_counter() - start_time) * 1000

    return jsonify({
        'aircraft': results,
        'count': len(aircraft),
        'in_range': stats['in_range'],
        'next_refresh_in': stats['next_refresh_in'],
        'next_arrival_check_in': stats['next_arrival_check_in'],
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'query_time_ms': round(query_time_ms, 2),
    })


@aircraft_bp.route('/markers', methods=['GET'])
def list_markers():
    """Marker collection plus the viewport it lives in."""
    reconciler = current_app.config['MARKERS']
    viewport = current_app.config['VIEWPORT']

    return jsonify({
        **reconciler.to_dict(),
        'viewport': viewport.to_dict(),
    })


@aircraft_bp.route('/markers/<identifier>/select', methods=['POST'])
def select_marker(identifier: str):
    """
    Select a marker, as a click on the map would.

    Selection starts the reacquisition tracker for that aircraft.
    """
    reconciler = current_app.config['MARKERS']

    if not reconciler.select(identifier):
        return jsonify({'error': f'No marker for {identifier}'}), 404

    tracker = current_app.config['TRACKER']
    return jsonify({
        'success': True,
        'selected': reconciler.selected_id,
        'tracking': tracker.to_dict(),
    })


@aircraft_bp.route('/detail', methods=['GET'])
def current_detail():
    """
    Detail record of the current spotlight.

    The record is provisional until a provider answers; 'status' tells
    which stage it is in.
    """
    board = current_app.config['DETAIL_BOARD']
    detail = board.current

    return jsonify({
        'detail': detail.to_dict() if detail else None,
    })


@aircraft_bp.route('/detail/<identifier>', methods=['GET'])
def detail_for(identifier: str):
    """Last detail record published for one aircraft."""
    board = current_app.config['DETAIL_BOARD']
    detail = board.get(identifier)

    if not detail:
        return jsonify({'error': f'No detail for {identifier}'}), 404

    return jsonify({'detail': detail.to_dict()})


@aircraft_bp.route('/filter', methods=['GET', 'POST'])
def model_filter():
    """
    Get or set the model selection.

    GET: Returns current selection
    POST: Set new selection
        Body: {"selection": [model names], "include_non_standard": bool}

    An empty selection shows every model. "Others" selects aircraft
    matching no known model.
    """
    pipeline = current_app.config['PIPELINE']

    if request.method == 'GET':
        return jsonify({
            'selection': sorted(pipeline.selection),
            'include_non_standard': pipeline.include_non_standard,
        })

    data = request.get_json(silent=True)
    if not data:
        return jsonify({'error': 'JSON body required'}), 400

    selection = data.get('selection', [])
    if not isinstance(selection, list) or not all(isinstance(name, str) for name in selection):
        return jsonify({'error': 'selection must be a list of model names'}), 400

    taxonomy = current_app.config['TAXONOMY']
    known = set(taxonomy.model_names) | {OTHERS}
    unknown = sorted(set(selection) - known)
    if unknown:
        return jsonify({'error': f'Unknown models: {", ".join(unknown)}'}), 400

    include_non_standard = data.get('include_non_standard')
    if include_non_standard is not None and not isinstance(include_non_standard, bool):
        return jsonify({'error': 'include_non_standard must be a boolean'}), 400

    pipeline.set_selection(selection, include_non_standard)

    return jsonify({
        'success': True,
        'selection': sorted(pipeline.selection),
        'include_non_standard': pipeline.include_non_standard,
    })


@aircraft_bp.route('/taxonomy', methods=['GET'])
def get_taxonomy():
    """Manufacturers and their models, with match patterns and images."""
    taxonomy = current_app.config['TAXONOMY']
    return jsonify({
        'manufacturers': taxonomy.to_dict(),
        'models': taxonomy.model_names,
        'others': OTHERS,
    })
