"""
PlaneWatch Flask Application.

Main entry point for the web application. Initializes:
- Taxonomy and model filter
- Detail resolver chain
- Watch pipeline (poll loop)
- Marker reconciler and viewport
- Reacquisition tracker
- API routes

Usage:
    python -m planewatch.app

Or with gunicorn:
    gunicorn 'planewatch.app:create_app()'
"""

import logging
import os
from typing import Optional, Tuple

from flask import Flask
from flask_cors import CORS

from planewatch.config import config
from planewatch.api import aircraft_bp, location_bp, tracking_bp
from planewatch.display import MarkerReconciler, Viewport
from planewatch.ingestion import PositionFeedClient, Taxonomy, TaxonomyFilter, WatchPipeline
from planewatch.models import AircraftDetail, AircraftPosition
from planewatch.services import AirportGeocoder, DetailBoard, DetailResolver, detect_observer_location
from planewatch.tracking import ReacquisitionTracker, TrackingState

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
)
logger = logging.getLogger(__name__)


def create_app(
    start_background: bool = True,
    location: Optional[Tuple[float, float]] = None,
    client: Optional[PositionFeedClient] = None,
    resolver: Optional[DetailResolver] = None,
) -> Flask:
    """
    Application factory for Flask.

    Args:
        start_background: Whether to start the poll and tracking loops.
                          Set to False for testing.
        location: Reference point; detected when None
        client: Position feed client (created from config if None)
        resolver: Detail resolver (created from config if None)

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__)

    # Configuration
    app.config['SECRET_KEY'] = config.secret_key

    # Enable CORS for API endpoints
    CORS(app, resources={r'/api/*': {'origins': '*'}})

    # Register API blueprints
    app.register_blueprint(aircraft_bp)
    app.register_blueprint(location_bp)
    app.register_blueprint(tracking_bp)

    # Determine reference location
    if location:
        app.config['LOCATION_SOURCE'] = 'manual'
    else:
        location = detect_observer_location()
        app.config['LOCATION_SOURCE'] = 'configured' if config.user_location else 'detected'

    taxonomy = Taxonomy.load(config.filter.taxonomy_path)
    client = client or PositionFeedClient.from_config()

    board = resolver.board if resolver else DetailBoard()
    resolver = resolver or DetailResolver.from_config(board)

    pipeline = WatchPipeline(
        taxonomy_filter=TaxonomyFilter(taxonomy),
        client=client,
        resolver=resolver,
        reference=location,
    )
    reconciler = MarkerReconciler()
    viewport = Viewport()
    viewport.ensure(location[0], location[1], pipeline.radius_nm)

    tracker = ReacquisitionTracker(
        client=client,
        resolver=resolver,
        geocoder=AirportGeocoder(),
    )

    def on_cycle(filtered):
        reference = pipeline.reference
        viewport.ensure(reference[0], reference[1], pipeline.radius_nm)
        reconciler.reconcile(filtered)

    def on_arrival(aircraft: AircraftPosition):
        logger.info(f'Arrival alert: {aircraft.registration} {aircraft.type_code or aircraft.description}')

    def on_detail(detail: AircraftDetail):
        logger.debug(f'Published {detail.identifier} ({detail.status.value}, source={detail.source})')

    def on_select(identifier: str, aircraft: AircraftPosition):
        tracker.start(aircraft)

    def on_tracking_change(state: TrackingState, identifier: Optional[str]):
        if state == TrackingState.IDLE:
            reconciler.clear_selection()

    pipeline.add_update_callback(on_cycle)
    pipeline.novelty.add_arrival_callback(on_arrival)
    board.add_listener(on_detail)
    reconciler.add_selection_listener(on_select)
    tracker.add_listener(on_tracking_change)

    app.config['TAXONOMY'] = taxonomy
    app.config['PIPELINE'] = pipeline
    app.config['RESOLVER'] = resolver
    app.config['DETAIL_BOARD'] = board
    app.config['MARKERS'] = reconciler
    app.config['VIEWPORT'] = viewport
    app.config['TRACKER'] = tracker

    if start_background:
        pipeline.start_background()
        tracker.start_background()
        logger.info(f'Watching {location} with radius {pipeline.radius_nm:g} NM')

    # -------------------------------------------------------------------------
    # Routes
    # -------------------------------------------------------------------------

    @app.route('/health')
    def health():
        """Simple health check endpoint."""
        return {
            'status': 'ok',
            'pipeline': pipeline.stats,
            'resolver': resolver.stats,
            'tracking': tracker.state.value,
        }

    # -------------------------------------------------------------------------
    # Error handlers
    # -------------------------------------------------------------------------

    @app.errorhandler(404)
    def not_found(e):
        return {'error': 'Not found'}, 404

    @app.errorhandler(500)
    def server_error(e):
        logger.error(f'Server error: {e}')
        return {'error': 'Internal server error'}, 500

    return app


def run_development_server():
    """Run the development server."""
    app = create_app()

    # Get port from environment or default
    port = int(os.environ.get('PORT', 5000))

    logger.info(f'Starting PlaneWatch on http://localhost:{port}')

    app.run(
        host='0.0.0.0',
        port=port,
        debug=config.debug,
        use_reloader=False,  # Disable reloader to prevent duplicate poll threads
    )


if __name__ == '__main__':
    run_development_server()
