"""
Waylight Live Data - Base HTTP Client
Shared request, caching and error-classification logic for the upstream clients.

Each client owns a requests.Session and a private TTL cache keyed by the exact
request. A fresh cache hit performs no I/O. Failures are classified into the
live data error taxonomy:

- timeout / connection failure -> NetworkError
- HTTP 429                     -> RateLimitedError
- any other non-2xx            -> ApiError
- 2xx with an unreadable body  -> ParseError
"""

from typing import Any, Callable, Dict, Optional

import requests

from ..utils.cache import TTLCache
from ..utils.config import HTTP_TIMEOUT_SECONDS, USER_AGENT
from ..utils.logger import logger
from .errors import ApiError, NetworkError, ParseError, RateLimitedError


def _url_category(key: str) -> str:
    # https://api.themeparks.wiki/v1/entity/... -> "entity"
    parts = key.split('/')
    return parts[4] if len(parts) > 4 and parts[4] else 'general'


class BaseApiClient:
    """
    Base class for upstream clients.

    Subclasses set ``service_name`` and ``default_cache_ttl_ms`` and build
    their URLs on top of ``base_url``.
    """

    service_name = 'upstream'
    default_cache_ttl_ms = 5 * 60 * 1000
    accept = 'application/json'

    def __init__(
        self,
        base_url: str,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        cache: Optional[TTLCache] = None,
        category_fn: Optional[Callable[[str], str]] = None
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.cache = cache or TTLCache(
            default_ttl_ms=self.default_cache_ttl_ms,
            category_fn=category_fn or _url_category
        )
        self.session = requests.Session()
        self.session.headers.update({
            'User-Agent': USER_AGENT,
            'Accept': self.accept
        })

    def _request(self, url: str) -> requests.Response:
        """
        GET a URL and classify transport and status failures.

        Raises:
            NetworkError: On timeout or connection failure
            RateLimitedError: On HTTP 429
            ApiError: On any other non-2xx status
        """
        logger.debug(f"Fetching {url}", extra={"service_name": self.service_name})
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.Timeout as e:
            raise NetworkError(
                f"{self.service_name} request timed out after {self.timeout}s",
                details={"url": url, "error": str(e)}
            ) from e
        except requests.RequestException as e:
            raise NetworkError(
                f"{self.service_name} request failed: {e}",
                details={"url": url, "error": str(e)}
            ) from e

        status = response.status_code
        if status == 429:
            raise RateLimitedError(
                f"{self.service_name} rate limit exceeded",
                details={"url": url, "status": status}
            )
        if not 200 <= status < 300:
            raise ApiError(
                f"HTTP {status}: {getattr(response, 'reason', '') or 'request failed'}",
                details={"url": url, "status": status}
            )
        return response

    def fetch_json(self, url: str, ttl_ms: Optional[int] = None, cache_key: Optional[str] = None) -> Any:
        """
        GET a JSON document through the cache.

        Raises:
            ParseError: If a 2xx body is not valid JSON
            (plus everything _request raises)
        """
        key = cache_key or url
        entry = self.cache.get_entry(key)
        if entry is not None:
            return entry.value

        response = self._request(url)
        try:
            data = response.json()
        except ValueError as e:
            raise ParseError(
                f"Invalid JSON from {self.service_name}",
                details={"url": url, "error": str(e)}
            ) from e

        self.cache.set(key, data, ttl_ms)
        return data

    def fetch_text(self, url: str, ttl_ms: Optional[int] = None, cache_key: Optional[str] = None,
                   parse: Optional[Callable[[str], Any]] = None) -> Any:
        """
        GET a text document through the cache.

        Args:
            parse: Optional transform applied before caching (the parsed value
                is what gets cached)
        """
        key = cache_key or url
        entry = self.cache.get_entry(key)
        if entry is not None:
            return entry.value

        text = self._request(url).text
        value = parse(text) if parse else text
        self.cache.set(key, value, ttl_ms)
        return value

    def clear_cache(self, pattern: Optional[str] = None) -> int:
        """Drop cached responses whose key contains ``pattern`` (all when None)."""
        return self.cache.invalidate(pattern)

    def get_cache_stats(self) -> Dict[str, Dict[str, Any]]:
        return self.cache.get_stats()

    def close(self):
        """Close the HTTP session."""
        self.session.close()
