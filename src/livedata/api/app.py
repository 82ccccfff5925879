"""
Flask application factory for the live data read API.

The factory takes its collaborators as arguments so tests and the sync
runner can hand in their own service, scheduler and database.
"""

import time
from typing import Optional

from flask import Flask, g, jsonify, request
from flask_cors import CORS

from ..database.connection import Database
from ..processor.background_sync import BackgroundSyncService
from ..processor.live_data_service import LiveDataService
from ..utils.config import FLASK_DEBUG, FLASK_ENV, SECRET_KEY
from ..utils.logger import log_api_request, logger
from .middleware.error_handler import register_error_handlers
from .routes.health import health_bp
from .routes.parks import parks_bp
from .routes.sync import sync_bp

API_PREFIX = '/api'
BLUEPRINTS = (health_bp, parks_bp, sync_bp)


def create_app(
    service: Optional[LiveDataService] = None,
    sync_service: Optional[BackgroundSyncService] = None,
    db: Optional[Database] = None
) -> Flask:
    """
    Build the API app.

    Without arguments a database is opened from configuration and a fresh
    ``LiveDataService`` reads from it. ``sync_service`` is optional; the
    /api/sync routes answer 503 when it is missing.
    """
    app = Flask(__name__)
    app.config.update(ENV=FLASK_ENV, DEBUG=FLASK_DEBUG, SECRET_KEY=SECRET_KEY)
    # Responses list fields in the order the serializers build them
    app.json.sort_keys = False

    CORS(app, resources={
        f"{API_PREFIX}/*": {
            "origins": "*",
            "methods": ["GET", "POST", "OPTIONS"],
            "allow_headers": ["Content-Type"]
        }
    })

    if db is None:
        db = service.db if service is not None else Database()
    app.extensions['livedata_db'] = db
    app.extensions['live_data_service'] = service or LiveDataService(db)
    app.extensions['sync_service'] = sync_service

    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint, url_prefix=API_PREFIX)
    register_error_handlers(app)

    @app.before_request
    def mark_start():
        g.request_started = time.monotonic()

    @app.after_request
    def record_request(response):
        started = g.pop("request_started", None)
        if started is not None:
            elapsed_ms = round((time.monotonic() - started) * 1000, 2)
            log_api_request(request.method, request.path, response.status_code, elapsed_ms)
        return response

    @app.route('/')
    def index():
        return jsonify({
            "name": "Waylight Live Data API",
            "version": "1.0.0",
            "status": "running",
            "endpoints": {
                "health": f"{API_PREFIX}/health",
                "parks": f"{API_PREFIX}/parks",
                "sync": f"{API_PREFIX}/sync/status"
            }
        })

    logger.info("API app ready", extra={"flask_env": FLASK_ENV, "debug": FLASK_DEBUG})
    return app
