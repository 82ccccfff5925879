"""
Waylight Live Data - Background Sync Service
Periodically pulls live data from the upstream APIs into the database.

Each full pass fans out one task per enabled source (ThemeParks.wiki hours and
waits, Queue-Times crowd levels). The two run concurrently and are isolated:
one source failing never stops the other from finishing or recording its sync
status. Within a source, parks run one after another to respect upstream rate
limits; each park gets its own retry loop with linear backoff.

Usage:
    service = BackgroundSyncService(db, ThemeParksWikiClient(), QueueTimesClient())
    service.start()   # one pass now, then every sync_interval_minutes
    ...
    service.stop()
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from functools import partial
from typing import Any, Callable, Dict, List, Optional

from ..collector.errors import is_retryable
from ..database.connection import Database
from ..database.repositories.crowd_prediction_repository import CrowdPredictionRepository
from ..database.repositories.live_data_repository import LiveDataRepository
from ..models.live_data import SyncStatus
from ..models.park_mapping import SUPPORTED_PARK_IDS, ParkMappingRegistry, default_registry
from ..utils.config import (
    SYNC_ENABLED_PARKS, SYNC_INTERVAL_MINUTES, SYNC_QUEUE_TIMES_ENABLED, SYNC_RETENTION_HOURS,
    SYNC_RETRY_ATTEMPTS, SYNC_RETRY_DELAY_MS, SYNC_THEMEPARKS_ENABLED
)
from ..utils.logger import logger, log_sync_complete, log_sync_error, log_sync_start
from ..utils.retry import call_with_retry, linear_delay
from ..utils.timezone import get_now_utc, get_today_for_park, utc_now_iso
from .live_data_transformer import (
    QUEUE_TIMES_SOURCE,
    THEMEPARKS_SOURCE,
    attraction_to_row,
    entertainment_to_row,
    park_to_row,
    prediction_to_row,
)


@dataclass
class SyncConfig:
    """Scheduler settings. Defaults mirror the SYNC_* configuration keys."""
    sync_interval_minutes: int = 15
    enabled_parks: List[str] = field(default_factory=lambda: list(SUPPORTED_PARK_IDS))
    themeparks_enabled: bool = True
    queue_times_enabled: bool = True
    retry_attempts: int = 3
    retry_delay_ms: int = 5000
    retention_hours: int = 24

    @classmethod
    def from_env(cls) -> "SyncConfig":
        return cls(
            sync_interval_minutes=SYNC_INTERVAL_MINUTES,
            enabled_parks=list(SYNC_ENABLED_PARKS) or list(SUPPORTED_PARK_IDS),
            themeparks_enabled=SYNC_THEMEPARKS_ENABLED,
            queue_times_enabled=SYNC_QUEUE_TIMES_ENABLED,
            retry_attempts=SYNC_RETRY_ATTEMPTS,
            retry_delay_ms=SYNC_RETRY_DELAY_MS,
            retention_hours=SYNC_RETENTION_HOURS,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sync_interval_minutes": self.sync_interval_minutes,
            "enabled_parks": list(self.enabled_parks),
            "enabled_services": {
                "themeparks": self.themeparks_enabled,
                "queue_times": self.queue_times_enabled,
            },
            "retry_attempts": self.retry_attempts,
            "retry_delay_ms": self.retry_delay_ms,
            "retention_hours": self.retention_hours,
        }


@dataclass
class SourceSyncResult:
    """Outcome of one source's pass over the enabled parks."""
    service_name: str
    parks_synced: List[str] = field(default_factory=list)
    parks_failed: Dict[str, str] = field(default_factory=dict)
    duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        return not self.parks_failed

    def error_message(self) -> Optional[str]:
        if self.success:
            return None
        return "Failed parks: " + "; ".join(f"{park_id} ({error})" for park_id, error in self.parks_failed.items())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service_name": self.service_name,
            "success": self.success,
            "parks_synced": list(self.parks_synced),
            "parks_failed": dict(self.parks_failed),
            "duration_ms": self.duration_ms,
        }


@dataclass
class SyncRunResult:
    """Outcome of one full pass."""
    started_at: str
    duration_ms: float = 0.0
    sources: Dict[str, SourceSyncResult] = field(default_factory=dict)
    cleanup: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at,
            "duration_ms": self.duration_ms,
            "sources": {name: result.to_dict() for name, result in self.sources.items()},
            "cleanup": dict(self.cleanup),
        }


class BackgroundSyncService:
    """
    Scheduler for upstream -> database synchronization.

    Every unit of work (one park, one status update, one cleanup) opens its own
    session, so the two source tasks never share a Session across threads.
    """

    def __init__(
        self,
        db: Database,
        themeparks_client,
        queue_times_client,
        config: Optional[SyncConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        registry: ParkMappingRegistry = default_registry
    ):
        self.db = db
        self.themeparks_client = themeparks_client
        self.queue_times_client = queue_times_client
        self.config = config or SyncConfig()
        self.registry = registry
        self._sleep = sleep

        self._state_lock = threading.Lock()
        self._running = False
        self._stop_event: Optional[threading.Event] = None
        self._timer_thread: Optional[threading.Thread] = None

    # === Lifecycle ===

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """
        Run one full pass synchronously, then schedule a pass every
        ``sync_interval_minutes`` on a daemon thread.
        """
        with self._state_lock:
            if self._running:
                logger.info("Background sync service is already running")
                return
            self._running = True
            stop_event = threading.Event()
            self._stop_event = stop_event

        logger.info("Starting background sync service", extra=self.config.to_dict())
        self.run_full_sync()

        interval_seconds = self.config.sync_interval_minutes * 60
        self._timer_thread = threading.Thread(
            target=self._timer_loop,
            args=(stop_event, interval_seconds),
            name="livedata-sync-timer",
            daemon=True
        )
        self._timer_thread.start()
        logger.info(f"Background sync scheduled every {self.config.sync_interval_minutes} minutes")

    def _timer_loop(self, stop_event: threading.Event, interval_seconds: float) -> None:
        while not stop_event.wait(interval_seconds):
            try:
                self.run_full_sync()
            except Exception as e:
                logger.error("Scheduled sync failed", extra={
                    "error": str(e),
                    "error_type": type(e).__name__
                }, exc_info=True)

    def stop(self) -> None:
        """Disarm the timer. A pass already in flight runs to completion."""
        with self._state_lock:
            if not self._running:
                return
            self._running = False
            if self._stop_event is not None:
                self._stop_event.set()
            self._stop_event = None
            self._timer_thread = None
        logger.info("Background sync service stopped")

    def update_config(self, **changes) -> SyncConfig:
        """
        Replace configuration fields; restarts the schedule if running.

        Raises:
            TypeError: On an unknown field name
        """
        self.config = replace(self.config, **changes)
        if self._running:
            logger.info("Restarting sync service with new configuration")
            self.stop()
            self.start()
        return self.get_config()

    def get_config(self) -> SyncConfig:
        return replace(self.config, enabled_parks=list(self.config.enabled_parks))

    # === Passes ===

    def run_full_sync(self) -> SyncRunResult:
        """
        Sync every enabled source, then purge stale rows.

        Never raises: source failures are recorded in the result and in
        live_sync_status.
        """
        started = time.monotonic()
        run = SyncRunResult(started_at=utc_now_iso())
        logger.info("Starting full sync", extra={"parks": list(self.config.enabled_parks)})

        tasks = []
        if self.config.themeparks_enabled:
            tasks.append((THEMEPARKS_SOURCE, self._sync_park_from_themeparks))
        if self.config.queue_times_enabled:
            tasks.append((QUEUE_TIMES_SOURCE, self._sync_park_from_queue_times))

        if tasks:
            with ThreadPoolExecutor(max_workers=len(tasks), thread_name_prefix="livedata-sync") as executor:
                futures = {
                    name: executor.submit(self._sync_source, name, park_fn)
                    for name, park_fn in tasks
                }
                for name, future in futures.items():
                    try:
                        run.sources[name] = future.result()
                    except Exception as e:
                        # _sync_source absorbs park errors; this is a bug guard for the pass
                        log_sync_error(e, name)
                        run.sources[name] = SourceSyncResult(name, parks_failed={"*": str(e)})

        run.cleanup = self._cleanup_old_data()
        run.duration_ms = round((time.monotonic() - started) * 1000, 2)
        logger.info("Full sync completed", extra={"duration_ms": run.duration_ms})
        return run

    def _sync_source(self, service_name: str, park_fn: Callable[[str], None]) -> SourceSyncResult:
        started = time.monotonic()
        parks = list(self.config.enabled_parks)
        result = SourceSyncResult(service_name)
        log_sync_start(service_name, len(parks))

        for park_id in parks:
            try:
                call_with_retry(
                    partial(park_fn, park_id),
                    max_attempts=self.config.retry_attempts,
                    delay_fn=linear_delay(self.config.retry_delay_ms),
                    is_retryable=is_retryable,
                    sleep=self._sleep,
                    on_retry=partial(self._log_retry, service_name, park_id),
                )
                result.parks_synced.append(park_id)
            except Exception as e:
                log_sync_error(e, service_name, park_id=park_id, attempt=self.config.retry_attempts)
                result.parks_failed[park_id] = str(e)

        self._record_status(service_name, result)
        result.duration_ms = round((time.monotonic() - started) * 1000, 2)
        log_sync_complete(service_name, result.duration_ms, len(result.parks_synced), len(result.parks_failed))
        return result

    def _log_retry(self, service_name: str, park_id: str, attempt: int, error: BaseException, delay: float) -> None:
        logger.warning(f"Sync attempt {attempt} failed for {park_id}, retrying", extra={
            "service_name": service_name,
            "park_id": park_id,
            "attempt": attempt,
            "delay_seconds": delay,
            "error": str(error)
        })

    def _record_status(self, service_name: str, result: SourceSyncResult) -> None:
        try:
            with self.db.session_scope() as session:
                LiveDataRepository(session).update_sync_status(
                    service_name, result.success, result.error_message()
                )
        except Exception as e:
            log_sync_error(e, service_name)

    def _sync_park_from_themeparks(self, park_id: str) -> None:
        mapping = self.registry.get(park_id)
        park = self.themeparks_client.fetch_park(park_id)

        row = park_to_row(park, mapping.themeparks_wiki_id, mapping.display_name)
        if park.crowd_level is None:
            # Leave the Queue-Times level written by the other source untouched
            del row['crowd_level']

        with self.db.session_scope() as session:
            repo = LiveDataRepository(session)
            repo.upsert_park(row)
            repo.upsert_attractions([attraction_to_row(park_id, a) for a in park.attractions])
            repo.upsert_entertainment([entertainment_to_row(park_id, e) for e in park.entertainment])

        logger.info(f"Successfully synced {park_id}", extra={
            "service_name": THEMEPARKS_SOURCE,
            "park_id": park_id,
            "attractions": len(park.attractions),
            "entertainment": len(park.entertainment)
        })

    def _sync_park_from_queue_times(self, park_id: str) -> None:
        mapping = self.registry.get(park_id)
        crowd_data = self.queue_times_client.get_crowd_predictions(park_id)

        today = get_today_for_park(mapping.timezone).isoformat()
        crowd_level = next(
            (p.crowd_level for p in crowd_data.predictions if p.date == today), None
        )

        with self.db.session_scope() as session:
            CrowdPredictionRepository(session).upsert_crowd_predictions(
                [prediction_to_row(p) for p in crowd_data.predictions]
            )

            if crowd_level is not None:
                repo = LiveDataRepository(session)
                row = repo.get_park_row(park_id)
                if row is not None:
                    row['crowd_level'] = crowd_level
                    row['last_updated'] = get_now_utc().replace(tzinfo=None)
                    repo.upsert_park(row)

        logger.info(f"Successfully synced crowd data for {park_id}", extra={
            "service_name": QUEUE_TIMES_SOURCE,
            "park_id": park_id,
            "crowd_level": crowd_level,
            "predictions": len(crowd_data.predictions)
        })

    def _cleanup_old_data(self) -> Dict[str, int]:
        deleted: Dict[str, int] = {}
        try:
            with self.db.session_scope() as session:
                deleted.update(LiveDataRepository(session).clean_old_data(self.config.retention_hours))
        except Exception as e:
            logger.error("Live data cleanup failed", extra={"error": str(e)})
        return deleted

    # === Stats ===

    def get_sync_stats(self) -> Dict[str, Optional[SyncStatus]]:
        """Stored sync status per source (None for a source that never ran)."""
        with self.db.session_scope() as session:
            repo = LiveDataRepository(session)
            return {
                "themeparks": repo.get_sync_status(THEMEPARKS_SOURCE),
                "queue_times": repo.get_sync_status(QUEUE_TIMES_SOURCE),
            }
