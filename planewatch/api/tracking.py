"""
Reacquisition tracking API endpoints.

Provides endpoints for:
- GET /api/tracking - Tracker state, anchor, live detail and route line
- DELETE /api/tracking - Stop following the selected aircraft
"""

import logging

from flask import Blueprint, jsonify, current_app

logger = logging.getLogger(__name__)

tracking_bp = Blueprint('tracking', __name__, url_prefix='/api/tracking')


@tracking_bp.route('', methods=['GET'])
def tracking_status():
    """
    Current tracking session.

    'state' is idle, following or lost. A lost target is still polled at
    its last anchor and returns to following once seen again.
    """
    tracker = current_app.config['TRACKER']
    return jsonify(tracker.to_dict())


@tracking_bp.route('', methods=['DELETE'])
def stop_tracking():
    """End the session and clear the marker selection."""
    tracker = current_app.config['TRACKER']
    reconciler = current_app.config['MARKERS']

    target = tracker.target
    tracker.stop()
    reconciler.clear_selection()

    return jsonify({
        'success': True,
        'stopped': target,
    })
