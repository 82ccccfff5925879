"""
Waylight Live Data - Error Taxonomy
Typed errors raised by the upstream clients and repositories.

Every error carries a machine-readable code plus a structured payload
({code, message, details, timestamp}) so the crowd-prediction read and the
bulk import summary can surface failures to callers.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with a trailing Z."""
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


class LiveDataError(Exception):
    """Base class for all live data errors."""

    code = 'API_ERROR'

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.timestamp = utc_timestamp()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the structured error shape."""
        return {
            "code": self.code,
            "message": self.message,
            "details": {key: _safe(value) for key, value in self.details.items()},
            "timestamp": self.timestamp,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class NetworkError(LiveDataError):
    """Transport failure or timeout talking to an upstream source."""
    code = 'NETWORK_ERROR'


class ApiError(LiveDataError):
    """Non-2xx response (other than 429), or a storage failure."""
    code = 'API_ERROR'


class ParseError(LiveDataError):
    """A 2xx response whose payload did not have the expected shape."""
    code = 'PARSE_ERROR'


class RateLimitedError(LiveDataError):
    """Upstream answered HTTP 429."""
    code = 'RATE_LIMITED'


class NotFoundError(LiveDataError):
    """The requested record does not exist. Absence, not failure."""
    code = 'NOT_FOUND'


class ParkMappingError(LiveDataError):
    """A park id is missing from the mapping registry. Configuration error."""
    code = 'CONFIG_ERROR'


def is_retryable(error: BaseException) -> bool:
    """
    Decide whether a failed park sync is worth another attempt.

    Configuration errors never heal on their own; everything else (network,
    upstream, parse and storage failures) gets retried.
    """
    return not isinstance(error, ParkMappingError)


def _safe(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (list, tuple)):
        return [_safe(item) for item in value]
    if isinstance(value, dict):
        return {str(k): _safe(v) for k, v in value.items()}
    return str(value)
