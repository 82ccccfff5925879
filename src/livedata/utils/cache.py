"""
TTL Cache
=========

A simple, thread-safe in-memory cache where every entry carries its own TTL.

Features:
- Per-entry TTL (wait times, park hours and crowd data expire at different rates)
- Lazy expiration: entries are only checked (and dropped) when read
- Substring invalidation for category-scoped clears
- Stats grouped by key category for monitoring

Usage:
    from livedata.utils.cache import TTLCache

    cache = TTLCache(default_ttl_ms=5 * 60 * 1000)
    cache.set("wait_times_epcot", waits, ttl_ms=5 * 60 * 1000)

    entry = cache.get_entry("wait_times_epcot")
    if entry is not None:
        return entry.value
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

T = TypeVar('T')


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value with the time it was captured and how long it lives."""
    value: T
    captured_at_ms: int
    ttl_ms: int

    def is_fresh(self, at_ms: Optional[int] = None) -> bool:
        """True while ``now - captured_at < ttl``."""
        current = now_ms() if at_ms is None else at_ms
        return current - self.captured_at_ms < self.ttl_ms


def _iso(epoch_ms: int) -> str:
    return datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc).isoformat().replace('+00:00', 'Z')


class TTLCache:
    """
    Thread-safe in-memory cache with per-entry TTL.

    Attributes:
        _entries: Dictionary of key -> CacheEntry
        _lock: Threading lock for thread safety
        default_ttl_ms: TTL applied when set() is called without one
    """

    def __init__(self, default_ttl_ms: int = 5 * 60 * 1000,
                 category_fn: Optional[Callable[[str], str]] = None):
        """
        Initialize cache.

        Args:
            default_ttl_ms: Time-to-live for entries stored without an explicit TTL
            category_fn: Maps a key to its stats category (default: text before the
                first underscore)
        """
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = Lock()
        self.default_ttl_ms = default_ttl_ms
        self._category_fn = category_fn or (lambda key: key.split('_')[0] or 'general')

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        """
        Get the cache entry for a key if it is still fresh.

        Expired entries are removed here; there is no background sweep.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if not entry.is_fresh():
                del self._entries[key]
                return None
            return entry

    def get(self, key: str, default: Any = None) -> Any:
        """Get cached value if valid, otherwise ``default``."""
        entry = self.get_entry(key)
        return default if entry is None else entry.value

    def set(self, key: str, value: Any, ttl_ms: Optional[int] = None) -> None:
        """Store value in cache, stamped with the current time."""
        entry = CacheEntry(
            value=value,
            captured_at_ms=now_ms(),
            ttl_ms=self.default_ttl_ms if ttl_ms is None else ttl_ms
        )
        with self._lock:
            self._entries[key] = entry

    def get_or_compute(self, key: str, compute_fn: Callable[[], T], ttl_ms: Optional[int] = None) -> T:
        """
        Get cached value or compute and cache new value.

        The compute function runs outside the lock so a slow upstream call
        does not block readers of other keys.
        """
        entry = self.get_entry(key)
        if entry is not None:
            return entry.value

        result = compute_fn()
        self.set(key, result, ttl_ms)
        return result

    def invalidate(self, pattern: Optional[str] = None) -> int:
        """
        Clear entries whose key contains ``pattern``, or every entry.

        Returns:
            Number of entries removed
        """
        with self._lock:
            if pattern is None:
                removed = len(self._entries)
                self._entries.clear()
                return removed

            doomed = [key for key in self._entries if pattern in key]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get_entry(key) is not None

    def get_stats(self) -> Dict[str, Dict[str, Any]]:
        """
        Get cache statistics grouped by key category.

        Returns:
            {category: {"size", "oldest_entry", "newest_entry"}}
        """
        with self._lock:
            entries = list(self._entries.items())

        stats: Dict[str, Dict[str, Any]] = {}
        for key, entry in entries:
            category = self._category_fn(key)
            bucket = stats.setdefault(category, {
                "size": 0,
                "oldest_ms": entry.captured_at_ms,
                "newest_ms": entry.captured_at_ms,
            })
            bucket["size"] += 1
            bucket["oldest_ms"] = min(bucket["oldest_ms"], entry.captured_at_ms)
            bucket["newest_ms"] = max(bucket["newest_ms"], entry.captured_at_ms)

        return {
            category: {
                "size": bucket["size"],
                "oldest_entry": _iso(bucket["oldest_ms"]),
                "newest_entry": _iso(bucket["newest_ms"]),
            }
            for category, bucket in stats.items()
        }
