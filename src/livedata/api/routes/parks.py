"""
Waylight Live Data - Parks API Routes
=====================================

Read-only endpoints over the cached live data service.

GET /parks                               -> supported parks
GET /parks/<id>/live                     -> full live park record
GET /parks/<id>/wait-times               -> attraction wait times
GET /parks/<id>/wait-times/<attraction>  -> one attraction
GET /parks/<id>/entertainment            -> show schedule
GET /parks/<id>/crowd-predictions?days=N -> crowd forecast (1-30 days)
GET /parks/<id>/hours?date=YYYY-MM-DD    -> hours for a day
"""

from datetime import date

from flask import Blueprint, current_app, jsonify, request

from ...models.park_mapping import default_registry

parks_bp = Blueprint('parks', __name__)

MAX_PREDICTION_DAYS = 30


def _service():
    return current_app.extensions['live_data_service']


@parks_bp.route('/parks', methods=['GET'])
def list_parks():
    """Supported parks with their display names."""
    return jsonify({
        "success": True,
        "parks": [
            {"id": mapping.internal_id, "name": mapping.display_name, "timezone": mapping.timezone}
            for mapping in default_registry
        ]
    }), 200


@parks_bp.route('/parks/<park_id>/live', methods=['GET'])
def get_park_live(park_id: str):
    park = _service().get_park_data(park_id)
    return jsonify({"success": True, "park": park.to_dict()}), 200


@parks_bp.route('/parks/<park_id>/wait-times', methods=['GET'])
def get_wait_times(park_id: str):
    attractions = _service().get_attraction_wait_times(park_id)
    return jsonify({
        "success": True,
        "park_id": park_id,
        "attractions": [a.to_dict() for a in attractions]
    }), 200


@parks_bp.route('/parks/<park_id>/wait-times/<attraction_id>', methods=['GET'])
def get_attraction(park_id: str, attraction_id: str):
    attraction = _service().get_attraction_status(park_id, attraction_id)
    return jsonify({"success": True, "attraction": attraction.to_dict()}), 200


@parks_bp.route('/parks/<park_id>/entertainment', methods=['GET'])
def get_entertainment(park_id: str):
    schedule = _service().get_entertainment_schedule(park_id)
    return jsonify({
        "success": True,
        "park_id": park_id,
        "entertainment": [e.to_dict() for e in schedule]
    }), 200


@parks_bp.route('/parks/<park_id>/crowd-predictions', methods=['GET'])
def get_crowd_predictions(park_id: str):
    """
    Crowd forecast for a park.

    Query Parameters:
        days (int): Number of days starting today (default: 7, max: 30)
    """
    try:
        days = int(request.args.get('days', 7))
    except ValueError:
        return jsonify({"success": False, "error": "Invalid days. Must be an integer"}), 400

    if not 1 <= days <= MAX_PREDICTION_DAYS:
        return jsonify({
            "success": False,
            "error": f"Invalid days. Must be between 1 and {MAX_PREDICTION_DAYS}"
        }), 400

    crowd_data = _service().get_crowd_predictions(park_id, days)
    return jsonify({"success": True, "crowd_predictions": crowd_data.to_dict()}), 200


@parks_bp.route('/parks/<park_id>/hours', methods=['GET'])
def get_park_hours(park_id: str):
    """
    Operating hours for a park.

    Query Parameters:
        date (str): YYYY-MM-DD (default: current live record)
    """
    date_param = request.args.get('date')
    if date_param is None:
        park = _service().get_park_data(park_id)
    else:
        try:
            day = date.fromisoformat(date_param)
        except ValueError:
            return jsonify({"success": False, "error": "Invalid date. Use YYYY-MM-DD"}), 400
        park = _service().get_park_data_for_date(park_id, day)

    data = park.to_dict()
    return jsonify({
        "success": True,
        "park_id": park_id,
        "hours": data["hours"],
        "status": data["status"],
        "data_source": park.data_source,
        "is_estimated": park.is_estimated,
        "last_updated": park.last_updated
    }), 200
