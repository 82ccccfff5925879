"""
GET /api/health: database reachability plus how recently each source synced.
"""

from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify

from ...database.repositories.live_data_repository import LiveDataRepository
from ...processor.live_data_transformer import QUEUE_TIMES_SOURCE, THEMEPARKS_SOURCE
from ...utils.logger import logger
from ...utils.timezone import parse_timestamp, utc_now_iso

health_bp = Blueprint('health', __name__)

STALE_AFTER_MINUTES = 30
SYNC_SOURCES = (THEMEPARKS_SOURCE, QUEUE_TIMES_SOURCE)


def _source_check(status, now: datetime) -> dict:
    if status is None:
        return {"status": "no_data", "message": "No sync has run yet"}

    age_minutes = int((now - parse_timestamp(status.last_sync_at)).total_seconds() / 60)
    if age_minutes >= STALE_AFTER_MINUTES:
        state = "stale"
    elif status.last_error:
        state = "degraded"
    else:
        state = "healthy"
    return {
        "status": state,
        "last_sync_at": status.last_sync_at,
        "age_minutes": age_minutes,
        "last_error": status.last_error
    }


@health_bp.route('/health', methods=['GET'])
def health_check():
    """
    503 when the database is unreachable. Otherwise 200, with an overall
    status of "degraded" if any source is stale or last failed.
    """
    db = current_app.extensions['livedata_db']
    report = {
        "status": "healthy",
        "timestamp": utc_now_iso(),
        "api_version": "1.0.0",
        "checks": {}
    }
    checks = report["checks"]

    if not db.test_connection():
        checks["database"] = {"status": "unhealthy", "message": "Cannot reach the database"}
        report["status"] = "unhealthy"
        return jsonify(report), 503
    checks["database"] = {"status": "healthy", "message": "Connected"}

    try:
        with db.session_scope() as session:
            repo = LiveDataRepository(session)
            statuses = {source: repo.get_sync_status(source) for source in SYNC_SOURCES}
    except Exception as e:
        logger.error("Could not read sync status for health check", extra={"error": str(e)})
        statuses = {}

    now = datetime.now(timezone.utc)
    for source, status in statuses.items():
        checks[source] = _source_check(status, now)

    if any(check["status"] in ("stale", "degraded") for check in checks.values()):
        report["status"] = "degraded"
    return jsonify(report), 200
