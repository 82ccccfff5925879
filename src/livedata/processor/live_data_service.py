"""
Waylight Live Data - Live Data Service
The read path for live data: an in-memory TTL cache in front of the database.

Every read applies the same precedence:
1. Fresh cache entry -> returned with no I/O
2. Cache miss -> repository; a hit is cached with the category TTL
3. Repository miss or error -> a conservative fallback, which is NOT cached so
   the next background sync is picked up on the following read

Fallbacks: empty lists for wait times and entertainment, a default-hours
record for park data. Crowd predictions synthesize a flat forecast on a miss
but surface repository errors to the caller; they are the one read without a
safe default.
"""

import threading
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional, Union

from ..collector.errors import ApiError, LiveDataError, NotFoundError
from ..database.connection import Database
from ..database.repositories.crowd_prediction_repository import CrowdPredictionRepository
from ..database.repositories.live_data_repository import LiveDataRepository
from ..models.live_data import (
    CanonicalAttraction,
    CanonicalEntertainment,
    CanonicalPark,
    ParkCrowdData,
    ParkHours,
    ParkStatus,
)
from ..models.park_mapping import ParkMappingRegistry, default_registry
from ..utils.cache import TTLCache
from ..utils.logger import logger
from ..utils.timezone import get_today_for_park, local_date, utc_now_iso
from .live_data_transformer import THEMEPARKS_SOURCE, synthesize_predictions

DEFAULT_CROWD_LEVEL = 5

# clear_cache() accepts these friendly names as well as raw key fragments
CACHE_CATEGORY_ALIASES = {
    'park_hours': 'park_data',
    'crowds': 'crowd_predictions',
}


@dataclass
class RefreshIntervals:
    """Cache TTLs per data category, in milliseconds."""
    wait_times: int = 5 * 60 * 1000
    park_hours: int = 60 * 60 * 1000
    crowd_predictions: int = 24 * 60 * 60 * 1000
    entertainment: int = 30 * 60 * 1000


@dataclass
class EnabledFeatures:
    wait_times: bool = True
    park_hours: bool = True
    crowd_predictions: bool = True
    ride_status: bool = True
    entertainment: bool = True


@dataclass
class LiveDataConfig:
    refresh_intervals: RefreshIntervals = field(default_factory=RefreshIntervals)
    enabled_features: EnabledFeatures = field(default_factory=EnabledFeatures)


class RepeatingTimer:
    """
    Calls ``fn`` every ``interval_seconds`` on a daemon thread until cancelled.

    Exceptions from ``fn`` are logged and never stop the timer.
    """

    def __init__(self, interval_seconds: float, fn: Callable[[], object], name: Optional[str] = None):
        self.interval_seconds = interval_seconds
        self.fn = fn
        self.name = name or getattr(fn, '__name__', 'timer')
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name=f"livedata-refresh-{self.name}", daemon=True)

    def start(self) -> "RepeatingTimer":
        self._thread.start()
        return self

    def cancel(self) -> None:
        self._stop.set()

    @property
    def is_alive(self) -> bool:
        return self._thread.is_alive() and not self._stop.is_set()

    def tick(self) -> None:
        """Run the callback once, absorbing failures."""
        try:
            self.fn()
        except Exception as e:
            logger.warning(f"Auto-refresh failed for {self.name}", extra={
                "timer": self.name,
                "error": str(e),
                "error_type": type(e).__name__
            })

    def _run(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            self.tick()


class LiveDataService:
    """
    Cached read facade over the live data repositories.

    Cache keys:
        park_data_{park}, park_data_{park}_{date}, wait_times_{park},
        entertainment_{park}, crowd_predictions_{park}_{days}
    """

    def __init__(
        self,
        db: Database,
        config: Optional[LiveDataConfig] = None,
        cache: Optional[TTLCache] = None,
        registry: ParkMappingRegistry = default_registry
    ):
        self.db = db
        self.config = config or LiveDataConfig()
        self.cache = cache or TTLCache()
        self.registry = registry
        self._refresh_timers: Dict[str, RepeatingTimer] = {}
        self._error_handlers: Dict[str, Callable[[Exception], None]] = {}

    def update_config(self, config: LiveDataConfig) -> None:
        """Swap configuration; running auto-refresh timers are stopped."""
        self.config = replace(config)
        self.stop_auto_refresh()

    # === Park data ===

    def get_park_data(self, park_id: str) -> CanonicalPark:
        """
        Current park data, never failing for a supported park.

        Raises:
            ParkMappingError: If the park is not supported
        """
        self.registry.get(park_id)
        if not self.config.enabled_features.park_hours:
            return self._fallback_park(park_id)

        cache_key = f"park_data_{park_id}"
        entry = self.cache.get_entry(cache_key)
        if entry is not None:
            return entry.value

        try:
            with self.db.session_scope() as session:
                park = LiveDataRepository(session).get_park(park_id)
        except Exception as e:
            self._handle_error('get_park_data', e)
            logger.warning(f"Database failed for {park_id}, falling back to default park data")
            return self._fallback_park(park_id)

        if park is None:
            return self._fallback_park(park_id)

        self.cache.set(cache_key, park, self.config.refresh_intervals.park_hours)
        return park

    def get_park_data_for_date(self, park_id: str, for_date: Union[date, str]) -> CanonicalPark:
        """
        Park hours for a specific day.

        Only the current sync is stored, so a real record exists only when the
        stored park was last updated on ``for_date`` (park-local). Any other day
        gets an hours-unknown record marked ``unavailable``.

        Raises:
            ParkMappingError: If the park is not supported
        """
        mapping = self.registry.get(park_id)
        if not self.config.enabled_features.park_hours:
            return self._fallback_park(park_id)
        day = for_date if isinstance(for_date, date) else date.fromisoformat(for_date)

        cache_key = f"park_data_{park_id}_{day.isoformat()}"
        entry = self.cache.get_entry(cache_key)
        if entry is not None:
            return entry.value

        try:
            with self.db.session_scope() as session:
                park = LiveDataRepository(session).get_park(park_id)
        except Exception as e:
            self._handle_error('get_park_data_for_date', e)
            logger.warning(f"Database failed for {park_id} on {day}, falling back to default park data")
            return self._fallback_park(park_id)

        if park is not None and local_date(park.last_updated, mapping.timezone) == day:
            dated = CanonicalPark(
                park_id=park_id,
                status=park.status,
                hours=park.hours,
                last_updated=park.last_updated,
                crowd_level=park.crowd_level,
                data_source=THEMEPARKS_SOURCE,
            )
            self.cache.set(cache_key, dated, self.config.refresh_intervals.park_hours)
            return dated

        return CanonicalPark(
            park_id=park_id,
            status=ParkStatus.OPERATING,
            hours=ParkHours(regular_open=None, regular_close=None),
            last_updated=utc_now_iso(),
            data_source='unavailable',
            is_estimated=True,
        )

    def get_multiple_park_data(self, park_ids: List[str]) -> List[CanonicalPark]:
        """Park data for several parks; parks that fail are left out."""
        parks = []
        for park_id in park_ids:
            try:
                parks.append(self.get_park_data(park_id))
            except Exception as e:
                logger.warning(f"Failed to get data for park {park_id}", extra={"error": str(e)})
        return parks

    def _fallback_park(self, park_id: str) -> CanonicalPark:
        return CanonicalPark(
            park_id=park_id,
            status=ParkStatus.OPERATING,
            hours=ParkHours.default(),
            last_updated=utc_now_iso(),
            data_source='fallback',
            is_estimated=True,
        )

    # === Attractions ===

    def get_attraction_wait_times(self, park_id: str) -> List[CanonicalAttraction]:
        """
        Stored wait times, or [] when disabled, missing or failing.

        Raises:
            ParkMappingError: If the park is not supported
        """
        self.registry.get(park_id)
        if not self.config.enabled_features.wait_times:
            return []

        cache_key = f"wait_times_{park_id}"
        entry = self.cache.get_entry(cache_key)
        if entry is not None:
            return entry.value

        try:
            with self.db.session_scope() as session:
                wait_times = LiveDataRepository(session).get_attraction_wait_times(park_id)
        except Exception as e:
            self._handle_error('get_attraction_wait_times', e)
            return []

        if wait_times:
            self.cache.set(cache_key, wait_times, self.config.refresh_intervals.wait_times)
        return wait_times

    def get_attraction_status(self, park_id: str, attraction_id: str) -> CanonicalAttraction:
        """
        One attraction's live status, looked up through the wait-times read.

        Raises:
            ApiError: If ride status is disabled
            NotFoundError: If the park has no such attraction stored
        """
        if not self.config.enabled_features.ride_status:
            raise ApiError("Ride status feature is disabled", details={"park_id": park_id})

        for attraction in self.get_attraction_wait_times(park_id):
            if attraction.external_id == attraction_id:
                return attraction

        raise NotFoundError(
            f"Attraction {attraction_id} not found in {park_id}",
            details={"park_id": park_id, "attraction_id": attraction_id}
        )

    # === Entertainment ===

    def get_entertainment_schedule(self, park_id: str) -> List[CanonicalEntertainment]:
        """
        Stored show schedule, or [] when disabled, missing or failing.

        Raises:
            ParkMappingError: If the park is not supported
        """
        self.registry.get(park_id)
        if not self.config.enabled_features.entertainment:
            return []

        cache_key = f"entertainment_{park_id}"
        entry = self.cache.get_entry(cache_key)
        if entry is not None:
            return entry.value

        try:
            with self.db.session_scope() as session:
                schedule = LiveDataRepository(session).get_entertainment_schedule(park_id)
        except Exception as e:
            self._handle_error('get_entertainment_schedule', e)
            return []

        if schedule:
            self.cache.set(cache_key, schedule, self.config.refresh_intervals.entertainment)
        return schedule

    # === Crowd predictions ===

    def get_crowd_predictions(self, park_id: str, days: int = 7) -> ParkCrowdData:
        """
        Crowd forecast for ``days`` days starting today (park-local).

        Stored predictions are cached. Without any, a flat forecast is built from
        the park's current crowd level (or level 5) and returned uncached.

        Raises:
            ApiError: If the feature is disabled, or wrapping a storage failure
            ParkMappingError: If the park is not supported
            LiveDataError: Repository errors are surfaced, not swallowed
        """
        if not self.config.enabled_features.crowd_predictions:
            raise ApiError("Crowd predictions feature is disabled", details={"park_id": park_id})

        mapping = self.registry.get(park_id)
        cache_key = f"crowd_predictions_{park_id}_{days}"
        entry = self.cache.get_entry(cache_key)
        if entry is not None:
            return entry.value

        today = get_today_for_park(mapping.timezone)
        end = today + timedelta(days=max(days, 1) - 1)

        try:
            with self.db.session_scope() as session:
                stored = CrowdPredictionRepository(session).get_crowd_predictions_for_range(park_id, today, end)
                current_level = None if stored else LiveDataRepository(session).get_park_crowd_level(park_id)
        except LiveDataError as e:
            self._handle_error('get_crowd_predictions', e)
            raise
        except Exception as e:
            error = ApiError(f"Failed to load crowd predictions for {park_id}: {e}", details={"park_id": park_id})
            self._handle_error('get_crowd_predictions', error)
            raise error from e

        if stored:
            crowd_data = ParkCrowdData(park_id=park_id, predictions=stored, last_updated=utc_now_iso())
            self.cache.set(cache_key, crowd_data, self.config.refresh_intervals.crowd_predictions)
            return crowd_data

        if current_level:
            return synthesize_predictions(park_id, current_level, days, 'live_crowd_level', start=today)
        return synthesize_predictions(park_id, DEFAULT_CROWD_LEVEL, days, 'fallback', start=today)

    # === Auto-refresh ===

    def start_auto_refresh(self, park_ids: List[str]) -> None:
        """
        Proactively re-read wait times and park data for each supported park.

        Two timers per park run on the wait-times and park-hours cadences.
        Unsupported ids are skipped.
        """
        intervals = self.config.refresh_intervals
        for park_id in park_ids:
            if not self.registry.is_supported(park_id):
                continue

            timers = {
                f"{park_id}_wait_times": (intervals.wait_times, lambda p=park_id: self.get_attraction_wait_times(p)),
                f"{park_id}_park_hours": (intervals.park_hours, lambda p=park_id: self.get_park_data(p)),
            }
            for name, (interval_ms, fn) in timers.items():
                existing = self._refresh_timers.pop(name, None)
                if existing is not None:
                    existing.cancel()
                self._refresh_timers[name] = RepeatingTimer(interval_ms / 1000.0, fn, name=name).start()

        logger.info("Auto-refresh started", extra={"timers": sorted(self._refresh_timers)})

    def stop_auto_refresh(self) -> None:
        for timer in self._refresh_timers.values():
            timer.cancel()
        self._refresh_timers.clear()

    @property
    def refresh_timer_names(self) -> List[str]:
        return sorted(self._refresh_timers)

    # === Cache management ===

    def clear_cache(self, category: Optional[str] = None) -> int:
        """
        Invalidate cached reads.

        Args:
            category: None or 'all' clears everything; otherwise entries whose
                key contains the category (aliases: park_hours, crowds)

        Returns:
            Number of entries removed
        """
        if category is None or category == 'all':
            return self.cache.invalidate()
        return self.cache.invalidate(CACHE_CATEGORY_ALIASES.get(category, category))

    def get_cache_stats(self):
        return self.cache.get_stats()

    # === Error handling ===

    def on_error(self, operation: str, handler: Callable[[Exception], None]) -> None:
        """Register a handler for failures of one read operation (e.g. 'get_park_data')."""
        self._error_handlers[operation] = handler

    def _handle_error(self, operation: str, error: Exception) -> None:
        handler = self._error_handlers.get(operation)
        if handler is not None:
            handler(error)
            return
        logger.error(f"LiveDataService {operation} error", extra={
            "operation": operation,
            "error": str(error),
            "error_type": type(error).__name__
        })
