"""
Waylight Live Data - Sync API Routes
Sync health per upstream source and a manual full-sync trigger.
"""

from flask import Blueprint, current_app, jsonify

from ...utils.logger import logger

sync_bp = Blueprint('sync', __name__)


def _sync_service():
    return current_app.extensions.get('sync_service')


@sync_bp.route('/sync/status', methods=['GET'])
def get_sync_status():
    """Stored sync status per source plus the scheduler configuration."""
    sync_service = _sync_service()
    if sync_service is None:
        return jsonify({"success": False, "error": "Background sync is not configured"}), 503

    stats = sync_service.get_sync_stats()
    return jsonify({
        "success": True,
        "running": sync_service.is_running,
        "config": sync_service.get_config().to_dict(),
        "sources": {name: status.to_dict() if status else None for name, status in stats.items()}
    }), 200


@sync_bp.route('/sync/run', methods=['POST'])
def run_sync():
    """Run one full sync pass now and clear the read cache."""
    sync_service = _sync_service()
    if sync_service is None:
        return jsonify({"success": False, "error": "Background sync is not configured"}), 503

    logger.info("Manual sync triggered")
    result = sync_service.run_full_sync()
    current_app.extensions['live_data_service'].clear_cache()

    success = all(source.success for source in result.sources.values())
    return jsonify({"success": success, "result": result.to_dict()}), 200
