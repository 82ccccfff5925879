"""
JSON logging for sync passes, calendar imports and API requests.

Every record is one JSON object on stdout; the helpers below attach an
``event_type`` plus whatever fields that event carries.
"""

import logging
import sys
from typing import Optional

from pythonjsonlogger import jsonlogger

from .config import LOG_LEVEL, config


def setup_logger(name: str = __name__) -> logging.Logger:
    """
    Return the named logger with a JSON stdout handler attached once.

    Extra fields passed via ``extra=`` become top-level JSON keys:

        >>> log = setup_logger(__name__)
        >>> log.info("Sync completed", extra={"service_name": "themeparks_api", "parks_synced": 4})
    """
    log = logging.getLogger(name)
    if log.handlers:
        return log

    level = getattr(logging, LOG_LEVEL.upper(), logging.INFO)
    stdout = logging.StreamHandler(sys.stdout)
    stdout.setFormatter(jsonlogger.JsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    ))
    stdout.setLevel(level)

    log.setLevel(level)
    log.addHandler(stdout)
    # Records stay off the root logger
    log.propagate = False
    return log


logger = setup_logger('waylight_livedata')


def log_sync_start(service_name: str, park_count: int):
    """Log the start of a per-source sync pass."""
    logger.info("Sync started", extra={
        "event_type": "sync_start",
        "service_name": service_name,
        "park_count": park_count,
        "environment": config.environment
    })


def log_sync_complete(service_name: str, duration_ms: float, parks_synced: int, parks_failed: int):
    """Log the end of a per-source sync pass."""
    logger.info("Sync completed", extra={
        "event_type": "sync_complete",
        "service_name": service_name,
        "duration_ms": duration_ms,
        "parks_synced": parks_synced,
        "parks_failed": parks_failed
    })


def log_sync_error(error: Exception, service_name: str, park_id: Optional[str] = None, attempt: Optional[int] = None):
    """Log a sync failure with context."""
    logger.error("Sync failed", extra={
        "event_type": "sync_error",
        "service_name": service_name,
        "park_id": park_id,
        "attempt": attempt,
        "error_type": type(error).__name__,
        "error_message": str(error)
    })


def log_import_progress(current_park: str, parks_completed: int, total_parks: int,
                        records_imported: int, status: str):
    """Log bulk import progress."""
    logger.info("Import progress", extra={
        "event_type": "import_progress",
        "current_park": current_park,
        "parks_completed": parks_completed,
        "total_parks": total_parks,
        "records_imported": records_imported,
        "status": status
    })


def log_api_request(method: str, path: str, status_code: int, duration_ms: float):
    """One record per handled request, written from the app's after_request hook."""
    logger.info("API request", extra=dict(
        event_type="api_request", method=method, path=path,
        status_code=status_code, duration_ms=duration_ms,
    ))


def log_database_error(error: Exception, query_context: Optional[str] = None):
    """Logged with the traceback; ``query_context`` says what was being attempted."""
    logger.error("Database error", exc_info=True, extra=dict(
        event_type="database_error", query_context=query_context,
        error_type=type(error).__name__, error_message=str(error),
    ))
