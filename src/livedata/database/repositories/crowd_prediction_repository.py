"""
Crowd Prediction Repository
===========================

Repository for the park_crowd_predictions table using SQLAlchemy ORM.

Unique key: (park_id, prediction_date). Upserts update in place, so
re-importing a calendar only refreshes levels and synced_at.
"""

import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...collector.errors import ApiError
from ...models.live_data import CrowdPrediction
from ...models.orm_crowd import ParkCrowdPrediction
from ...utils.timezone import get_today_for_park, to_iso

logger = logging.getLogger(__name__)

DateLike = Union[date, str]


def _as_date(value: DateLike) -> date:
    return value if isinstance(value, date) else date.fromisoformat(value)


def _query_error(message: str, error: Exception, **details: Any) -> ApiError:
    logger.error(message, extra={'error': str(error), 'error_type': type(error).__name__, **details})
    return ApiError(f"{message}: {error}", details={**details, 'error': str(error)})


class CrowdPredictionRepository:
    """Repository for daily crowd predictions."""

    def __init__(self, session: Session):
        self.session = session

    def upsert_crowd_predictions(self, rows: List[Dict[str, Any]]) -> int:
        """
        Insert or update prediction rows.

        Args:
            rows: Dictionaries keyed by column name (see prediction_to_row)

        Returns:
            Number of rows written

        Raises:
            ApiError: On storage failure
        """
        if not rows:
            return 0

        try:
            for row in rows:
                values = dict(row)
                values['prediction_date'] = _as_date(values['prediction_date'])

                existing = self.session.execute(
                    select(ParkCrowdPrediction).where(
                        ParkCrowdPrediction.park_id == values['park_id'],
                        ParkCrowdPrediction.prediction_date == values['prediction_date'],
                    )
                ).scalar_one_or_none()

                if existing:
                    for key, value in values.items():
                        if hasattr(existing, key):
                            setattr(existing, key, value)
                else:
                    self.session.add(ParkCrowdPrediction(**values))

            self.session.flush()
        except SQLAlchemyError as e:
            raise _query_error("Failed to upsert crowd predictions", e, count=len(rows)) from e

        logger.info(f"Upserted {len(rows)} crowd predictions")
        return len(rows)

    def get_crowd_predictions_for_range(self, park_id: str, start: DateLike, end: DateLike) -> List[CrowdPrediction]:
        """
        Predictions for one park with start <= date <= end, ordered by date.

        Raises:
            ApiError: On storage failure
        """
        try:
            rows = self.session.execute(
                select(ParkCrowdPrediction)
                .where(
                    ParkCrowdPrediction.park_id == park_id,
                    ParkCrowdPrediction.prediction_date >= _as_date(start),
                    ParkCrowdPrediction.prediction_date <= _as_date(end),
                )
                .order_by(ParkCrowdPrediction.prediction_date)
            ).scalars()
            return [_prediction_from_row(row) for row in rows]
        except SQLAlchemyError as e:
            raise _query_error("Failed to fetch crowd predictions", e,
                               park_id=park_id, start=str(start), end=str(end)) from e

    def get_crowd_prediction_for_date(self, park_id: str, prediction_date: DateLike) -> Optional[CrowdPrediction]:
        """Prediction for one park on one day, or None."""
        try:
            row = self.session.execute(
                select(ParkCrowdPrediction).where(
                    ParkCrowdPrediction.park_id == park_id,
                    ParkCrowdPrediction.prediction_date == _as_date(prediction_date),
                )
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise _query_error("Failed to fetch crowd prediction", e,
                               park_id=park_id, date=str(prediction_date)) from e
        return _prediction_from_row(row) if row else None

    def get_multiple_park_crowd_predictions(
        self,
        park_ids: List[str],
        start: DateLike,
        end: DateLike
    ) -> Dict[str, List[CrowdPrediction]]:
        """
        Predictions for several parks over a range.

        Returns:
            park_id -> predictions ordered by date (every requested id is present)
        """
        result: Dict[str, List[CrowdPrediction]] = {park_id: [] for park_id in park_ids}
        if not park_ids:
            return result

        try:
            rows = self.session.execute(
                select(ParkCrowdPrediction)
                .where(
                    ParkCrowdPrediction.park_id.in_(park_ids),
                    ParkCrowdPrediction.prediction_date >= _as_date(start),
                    ParkCrowdPrediction.prediction_date <= _as_date(end),
                )
                .order_by(ParkCrowdPrediction.park_id, ParkCrowdPrediction.prediction_date)
            ).scalars()
            for row in rows:
                result[row.park_id].append(_prediction_from_row(row))
        except SQLAlchemyError as e:
            raise _query_error("Failed to fetch multiple park crowd predictions", e, park_ids=park_ids) from e
        return result

    def get_crowd_predictions_by_level(
        self,
        park_id: str,
        max_crowd_level: int,
        start: DateLike,
        end: DateLike
    ) -> List[CrowdPrediction]:
        """Quietest days first: predictions at or below ``max_crowd_level``."""
        try:
            rows = self.session.execute(
                select(ParkCrowdPrediction)
                .where(
                    ParkCrowdPrediction.park_id == park_id,
                    ParkCrowdPrediction.crowd_level <= max_crowd_level,
                    ParkCrowdPrediction.prediction_date >= _as_date(start),
                    ParkCrowdPrediction.prediction_date <= _as_date(end),
                )
                .order_by(ParkCrowdPrediction.crowd_level, ParkCrowdPrediction.prediction_date)
            ).scalars()
            return [_prediction_from_row(row) for row in rows]
        except SQLAlchemyError as e:
            raise _query_error("Failed to fetch crowd predictions by level", e,
                               park_id=park_id, max_crowd_level=max_crowd_level) from e

    def cleanup_old_predictions(self, today: Optional[date] = None) -> int:
        """
        Delete predictions dated before yesterday.

        Args:
            today: Reference date (default: today at the park)

        Returns:
            Number of rows deleted
        """
        cutoff = (today or get_today_for_park()) - timedelta(days=1)
        try:
            deleted = self.session.execute(
                delete(ParkCrowdPrediction).where(ParkCrowdPrediction.prediction_date < cutoff)
            ).rowcount or 0
        except SQLAlchemyError as e:
            raise _query_error("Failed to clean up old crowd predictions", e, cutoff=cutoff.isoformat()) from e

        logger.info(f"Cleaned up {deleted} old crowd predictions", extra={'cutoff': cutoff.isoformat()})
        return deleted

    def get_crowd_prediction_stats(self, park_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Summary of stored predictions, optionally for one park.

        Returns:
            Dictionary with total_predictions, date_range, avg_crowd_level and
            last_sync_time (empty strings / 0 when nothing is stored)
        """
        query = select(
            func.count(ParkCrowdPrediction.id),
            func.min(ParkCrowdPrediction.prediction_date),
            func.max(ParkCrowdPrediction.prediction_date),
            func.avg(ParkCrowdPrediction.crowd_level),
            func.max(ParkCrowdPrediction.synced_at),
        )
        if park_id:
            query = query.where(ParkCrowdPrediction.park_id == park_id)

        try:
            total, earliest, latest, avg_level, last_sync = self.session.execute(query).one()
        except SQLAlchemyError as e:
            raise _query_error("Failed to fetch crowd prediction stats", e, park_id=park_id) from e

        if not total:
            return {
                'total_predictions': 0,
                'date_range': {'earliest': '', 'latest': ''},
                'avg_crowd_level': 0,
                'last_sync_time': '',
            }

        return {
            'total_predictions': total,
            'date_range': {'earliest': str(earliest), 'latest': str(latest)},
            'avg_crowd_level': round(float(avg_level), 2),
            'last_sync_time': to_iso(last_sync) if last_sync else '',
        }


def _prediction_from_row(row: ParkCrowdPrediction) -> CrowdPrediction:
    return CrowdPrediction(
        park_id=row.park_id,
        date=row.prediction_date.isoformat(),
        crowd_level=row.crowd_level,
        description=row.crowd_level_description,
        recommendation=row.recommendation,
        data_source=row.data_source,
        confidence_score=row.confidence_score,
        last_updated=to_iso(row.synced_at),
    )
