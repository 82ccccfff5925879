"""
JSON error bodies for the API.

Live data errors keep their structured ``{code, message, details, timestamp}``
payload; everything else gets a short ``{success, error, message}`` body.
"""

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from ...collector.errors import LiveDataError
from ...utils.logger import logger

STATUS_BY_CODE = {
    'NOT_FOUND': 404,
    'CONFIG_ERROR': 404,
    'RATE_LIMITED': 429,
}
# Network, parse and API failures all come from an upstream
DEFAULT_UPSTREAM_STATUS = 502

SERVER_ERROR_MESSAGE = "Something went wrong while handling the request."


def status_for(error: LiveDataError) -> int:
    return STATUS_BY_CODE.get(error.code, DEFAULT_UPSTREAM_STATUS)


def _failure(status: int, label: str, message: str):
    return jsonify({"success": False, "error": label, "message": message}), status


def register_error_handlers(app: Flask):
    @app.errorhandler(LiveDataError)
    def live_data_error(error: LiveDataError):
        status = status_for(error)
        logger.warning("Request failed with %s", error.code, extra={
            "error_code": error.code,
            "error_message": error.message,
            "status_code": status,
        })
        return jsonify({"success": False, "error": error.to_dict()}), status

    @app.errorhandler(400)
    def bad_request(error):
        return _failure(400, "Bad Request", getattr(error, 'description', None) or "Malformed request")

    @app.errorhandler(404)
    def not_found(error):
        return _failure(404, "Not Found", "No such resource")

    @app.errorhandler(500)
    def server_error(error):
        logger.error("Unhandled server error: %s", error, exc_info=True)
        return _failure(500, "Internal Server Error", SERVER_ERROR_MESSAGE)

    @app.errorhandler(Exception)
    def unexpected(error):
        if isinstance(error, HTTPException):
            return error
        logger.error("Unhandled %s: %s", type(error).__name__, error, exc_info=True)
        return _failure(500, "Internal Server Error", SERVER_ERROR_MESSAGE)
