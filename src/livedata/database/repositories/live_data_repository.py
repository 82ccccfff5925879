"""
Live Data Repository
====================

Repository for the live_parks, live_attractions, live_entertainment and
live_sync_status tables using SQLAlchemy ORM.

Features:
- Idempotent upserts keyed by natural key (SELECT then UPDATE or INSERT)
- Reads hand back canonical models, not ORM rows
- Absence is None or []; storage failures raise ApiError
- Structured logging
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...collector.errors import ApiError
from ...models.live_data import (
    AttractionStatus,
    CanonicalAttraction,
    CanonicalEntertainment,
    CanonicalPark,
    EntertainmentStatus,
    LightningLane,
    ParkHours,
    ParkStatus,
    SingleRider,
    SyncStatus,
)
from ...models.orm_live import LiveAttraction, LiveEntertainment, LivePark, LiveSyncStatus
from ...utils.timezone import get_now_utc, to_iso

logger = logging.getLogger(__name__)

# Park rows outlive attraction/entertainment rows
PARK_RETENTION_DAYS = 7


def _storage_error(operation: str, error: Exception, **details: Any) -> ApiError:
    logger.error(
        f"Failed to {operation}",
        extra={'error': str(error), 'error_type': type(error).__name__, **details}
    )
    return ApiError(f"Failed to {operation}: {error}", details={**details, 'error': str(error)})


def _utcnow() -> datetime:
    return get_now_utc().replace(tzinfo=None)


class LiveDataRepository:
    """
    Repository for live park state using SQLAlchemy ORM.

    Row dictionaries passed to the upsert methods use the ORM column names
    (see processor.live_data_transformer for the builders).
    """

    def __init__(self, session: Session):
        """
        Initialize repository with SQLAlchemy session.

        Args:
            session: SQLAlchemy session object
        """
        self.session = session

    # === Parks ===

    def upsert_park(self, row: Dict[str, Any]) -> None:
        """
        Insert or update a park row. Unique key: park_id

        Raises:
            ValueError: If park_id is missing
            ApiError: On storage failure
        """
        if not row.get('park_id'):
            raise ValueError("Required field: park_id")

        try:
            existing = self.session.execute(
                select(LivePark).where(LivePark.park_id == row['park_id'])
            ).scalar_one_or_none()

            if existing:
                for key, value in row.items():
                    if hasattr(existing, key):
                        setattr(existing, key, value)
            else:
                self.session.add(LivePark(**row))

            self.session.flush()
            logger.debug("Upserted park", extra={'park_id': row['park_id']})
        except SQLAlchemyError as e:
            raise _storage_error("upsert park data", e, park_id=row['park_id']) from e

    def get_park(self, park_id: str) -> Optional[CanonicalPark]:
        """
        Get the stored park with its attractions and entertainment.

        Returns:
            CanonicalPark, or None if the park has never been synced

        Raises:
            ApiError: On storage failure
        """
        try:
            park = self.session.execute(
                select(LivePark).where(LivePark.park_id == park_id)
            ).scalar_one_or_none()
            if park is None:
                return None

            attractions = self._query_attractions(park_id)
            entertainment = self._query_entertainment(park_id)
        except SQLAlchemyError as e:
            raise _storage_error("fetch park data", e, park_id=park_id) from e

        return CanonicalPark(
            park_id=park.park_id,
            status=ParkStatus(park.status),
            hours=ParkHours(
                regular_open=park.regular_open,
                regular_close=park.regular_close,
                early_entry_open=park.early_entry_open,
                extended_evening_close=park.extended_evening_close,
            ),
            crowd_level=park.crowd_level,
            last_updated=to_iso(park.last_updated),
            attractions=[_attraction_from_row(a) for a in attractions],
            entertainment=[_entertainment_from_row(e) for e in entertainment],
        )

    def get_park_crowd_level(self, park_id: str) -> Optional[int]:
        """Stored crowd level for a park, without loading its children."""
        try:
            return self.session.execute(
                select(LivePark.crowd_level).where(LivePark.park_id == park_id)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise _storage_error("fetch park crowd level", e, park_id=park_id) from e

    def get_park_row(self, park_id: str) -> Optional[Dict[str, Any]]:
        """Stored park row as a dictionary (used when rewriting a single field)."""
        try:
            park = self.session.execute(
                select(LivePark).where(LivePark.park_id == park_id)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise _storage_error("fetch park data", e, park_id=park_id) from e

        if park is None:
            return None
        return {
            'park_id': park.park_id,
            'external_id': park.external_id,
            'name': park.name,
            'status': park.status,
            'regular_open': park.regular_open,
            'regular_close': park.regular_close,
            'early_entry_open': park.early_entry_open,
            'extended_evening_close': park.extended_evening_close,
            'crowd_level': park.crowd_level,
            'last_updated': park.last_updated,
        }

    def get_multiple_parks(self, park_ids: List[str]) -> List[CanonicalPark]:
        """
        Get several parks; ids with no stored row are skipped.

        Raises:
            ApiError: On storage failure
        """
        parks = []
        for park_id in park_ids:
            park = self.get_park(park_id)
            if park is not None:
                parks.append(park)
        return parks

    # === Attractions ===

    def upsert_attractions(self, rows: List[Dict[str, Any]]) -> int:
        """
        Insert or update attraction rows. Unique key: (park_id, external_id)

        Returns:
            Number of rows written

        Raises:
            ApiError: On storage failure
        """
        if not rows:
            return 0

        try:
            for row in rows:
                existing = self.session.execute(
                    select(LiveAttraction).where(
                        LiveAttraction.park_id == row['park_id'],
                        LiveAttraction.external_id == row['external_id'],
                    )
                ).scalar_one_or_none()

                if existing:
                    for key, value in row.items():
                        if hasattr(existing, key):
                            setattr(existing, key, value)
                else:
                    self.session.add(LiveAttraction(**row))

            # Flush once at the end of the batch
            self.session.flush()
        except SQLAlchemyError as e:
            raise _storage_error("upsert attraction data", e, count=len(rows)) from e

        logger.debug(f"Upserted {len(rows)} attractions")
        return len(rows)

    def get_attraction_wait_times(self, park_id: str) -> List[CanonicalAttraction]:
        """
        Get stored attractions for a park, ordered by name.

        Raises:
            ApiError: On storage failure
        """
        try:
            rows = self._query_attractions(park_id)
        except SQLAlchemyError as e:
            raise _storage_error("fetch attraction wait times", e, park_id=park_id) from e
        return [_attraction_from_row(row) for row in rows]

    def _query_attractions(self, park_id: str) -> List[LiveAttraction]:
        return list(self.session.execute(
            select(LiveAttraction)
            .where(LiveAttraction.park_id == park_id)
            .order_by(LiveAttraction.name)
        ).scalars())

    # === Entertainment ===

    def upsert_entertainment(self, rows: List[Dict[str, Any]]) -> int:
        """
        Insert or update entertainment rows. Unique key: (park_id, external_id)

        Returns:
            Number of rows written

        Raises:
            ApiError: On storage failure
        """
        if not rows:
            return 0

        try:
            for row in rows:
                existing = self.session.execute(
                    select(LiveEntertainment).where(
                        LiveEntertainment.park_id == row['park_id'],
                        LiveEntertainment.external_id == row['external_id'],
                    )
                ).scalar_one_or_none()

                if existing:
                    for key, value in row.items():
                        if hasattr(existing, key):
                            setattr(existing, key, value)
                else:
                    self.session.add(LiveEntertainment(**row))

            self.session.flush()
        except SQLAlchemyError as e:
            raise _storage_error("upsert entertainment data", e, count=len(rows)) from e

        logger.debug(f"Upserted {len(rows)} entertainment entries")
        return len(rows)

    def get_entertainment_schedule(self, park_id: str) -> List[CanonicalEntertainment]:
        """
        Get stored entertainment for a park, ordered by name.

        Raises:
            ApiError: On storage failure
        """
        try:
            rows = self._query_entertainment(park_id)
        except SQLAlchemyError as e:
            raise _storage_error("fetch entertainment schedule", e, park_id=park_id) from e
        return [_entertainment_from_row(row) for row in rows]

    def _query_entertainment(self, park_id: str) -> List[LiveEntertainment]:
        return list(self.session.execute(
            select(LiveEntertainment)
            .where(LiveEntertainment.park_id == park_id)
            .order_by(LiveEntertainment.name)
        ).scalars())

    # === Sync status ===

    def get_sync_status(self, service_name: str) -> Optional[SyncStatus]:
        """
        Get the sync health record for an upstream service.

        Returns:
            SyncStatus, or None if the service has never synced
        """
        try:
            row = self.session.execute(
                select(LiveSyncStatus).where(LiveSyncStatus.service_name == service_name)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise _storage_error("fetch sync status", e, service_name=service_name) from e

        if row is None:
            return None
        return SyncStatus(
            service_name=row.service_name,
            last_sync_at=to_iso(row.last_sync_at),
            last_success_at=to_iso(row.last_success_at) if row.last_success_at else None,
            last_error=row.last_error,
            total_syncs=row.total_syncs,
            successful_syncs=row.successful_syncs,
            failed_syncs=row.failed_syncs,
        )

    def update_sync_status(self, service_name: str, success: bool, error_message: Optional[str] = None) -> SyncStatus:
        """
        Record the outcome of one sync pass.

        Counters only ever increase: total_syncs always, plus successful_syncs
        or failed_syncs. A success clears last_error.

        Raises:
            ApiError: On storage failure
        """
        now = _utcnow()
        try:
            row = self.session.execute(
                select(LiveSyncStatus).where(LiveSyncStatus.service_name == service_name)
            ).scalar_one_or_none()

            if row is None:
                row = LiveSyncStatus(
                    service_name=service_name,
                    last_sync_at=now,
                    total_syncs=0,
                    successful_syncs=0,
                    failed_syncs=0,
                )
                self.session.add(row)

            row.last_sync_at = now
            row.total_syncs += 1
            if success:
                row.successful_syncs += 1
                row.last_success_at = now
                row.last_error = None
            else:
                row.failed_syncs += 1
                row.last_error = error_message or 'Unknown error'

            self.session.flush()
        except SQLAlchemyError as e:
            raise _storage_error("update sync status", e, service_name=service_name) from e

        logger.info("Sync status updated", extra={
            'service_name': service_name,
            'success': success,
            'total_syncs': row.total_syncs
        })
        return self.get_sync_status(service_name)

    # === Retention ===

    def clean_old_data(self, max_age_hours: int = 24) -> Dict[str, int]:
        """
        Delete stale live data.

        Attractions and entertainment older than ``max_age_hours`` go, parks
        are kept for PARK_RETENTION_DAYS.

        Returns:
            Rows deleted per table
        """
        now = _utcnow()
        cutoff = now - timedelta(hours=max_age_hours)
        park_cutoff = now - timedelta(days=PARK_RETENTION_DAYS)

        try:
            attractions = self.session.execute(
                delete(LiveAttraction).where(LiveAttraction.last_updated < cutoff)
            ).rowcount
            entertainment = self.session.execute(
                delete(LiveEntertainment).where(LiveEntertainment.last_updated < cutoff)
            ).rowcount
            parks = self.session.execute(
                delete(LivePark).where(LivePark.last_updated < park_cutoff)
            ).rowcount
        except SQLAlchemyError as e:
            raise _storage_error("clean old live data", e, max_age_hours=max_age_hours) from e

        deleted = {
            'live_attractions': attractions or 0,
            'live_entertainment': entertainment or 0,
            'live_parks': parks or 0,
        }
        logger.info("Cleaned old live data", extra={'deleted': deleted, 'max_age_hours': max_age_hours})
        return deleted


def _attraction_from_row(row: LiveAttraction) -> CanonicalAttraction:
    return CanonicalAttraction(
        external_id=row.external_id,
        name=row.name,
        wait_time_minutes=row.wait_time,
        status=AttractionStatus(row.status),
        last_updated=to_iso(row.last_updated),
        lightning_lane=(
            LightningLane(available=True, return_time=row.lightning_lane_return_time)
            if row.lightning_lane_available else None
        ),
        single_rider=(
            SingleRider(available=True, wait_time=row.single_rider_wait_time)
            if row.single_rider_available else None
        ),
    )


def _entertainment_from_row(row: LiveEntertainment) -> CanonicalEntertainment:
    return CanonicalEntertainment(
        external_id=row.external_id,
        name=row.name,
        show_times=list(row.show_times or []),
        status=EntertainmentStatus(row.status),
        next_show_time=row.next_show_time,
        last_updated=to_iso(row.last_updated),
    )
