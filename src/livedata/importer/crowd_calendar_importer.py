"""
Crowd Calendar Importer
Loads a year of Thrill Data crowd predictions for every supported park.

Parks are processed one at a time with a pause between them so the scrape
target isn't hammered. A failing park is recorded and skipped; the import
never aborts part way.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from ..collector.errors import ApiError
from ..database.connection import Database
from ..database.repositories.crowd_prediction_repository import CrowdPredictionRepository
from ..models.park_mapping import SUPPORTED_PARK_IDS
from ..processor.live_data_transformer import prediction_to_row
from ..utils.config import IMPORT_DELAY_SECONDS
from ..utils.logger import log_import_progress

logger = logging.getLogger(__name__)

STATUS_STARTING = 'starting'
STATUS_IN_PROGRESS = 'in_progress'
STATUS_COMPLETED = 'completed'
STATUS_ERROR = 'error'


@dataclass
class ImportProgress:
    """Progress information reported after every park."""
    current_park: str
    parks_completed: int
    total_parks: int
    records_imported: int
    status: str
    error: Optional[str] = None

    @property
    def percent_complete(self) -> float:
        if self.total_parks == 0:
            return 0.0
        return (self.parks_completed / self.total_parks) * 100


@dataclass
class ImportResult:
    """Result of a completed import. ``success`` means at least one park imported rows."""
    success: bool = False
    records_imported: int = 0
    parks_processed: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    date_range: Dict[str, str] = field(default_factory=lambda: {'start': '', 'end': ''})

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'records_imported': self.records_imported,
            'parks_processed': list(self.parks_processed),
            'errors': list(self.errors),
            'date_range': dict(self.date_range),
        }


class CrowdCalendarImporter:
    """
    Imports crowd calendar predictions into park_crowd_predictions.

    Features:
    - Sequential per-park processing with a configurable delay
    - Per-park error capture (never aborts the batch)
    - Progress callbacks for monitoring
    - Idempotent: re-running a year overwrites by (park_id, date)
    """

    def __init__(
        self,
        db: Database,
        scrape_client,
        park_ids: Optional[List[str]] = None,
        delay_seconds: float = IMPORT_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize importer.

        Args:
            db: Database providing sessions
            scrape_client: Client exposing fetch_crowd_predictions_for_year()
            park_ids: Parks to import (default: every supported park)
            delay_seconds: Pause before the next park
            sleep: Sleep function (injected by tests)
        """
        self.db = db
        self.scrape_client = scrape_client
        self.park_ids = list(park_ids) if park_ids is not None else list(SUPPORTED_PARK_IDS)
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    def import_year(
        self,
        year: int,
        on_progress: Optional[Callable[[ImportProgress], None]] = None
    ) -> ImportResult:
        """
        Import every park's calendar for ``year``.

        Args:
            year: Calendar year to import
            on_progress: Called at start, before and after each park, and at the end

        Returns:
            ImportResult summarizing records, processed parks and errors
        """
        result = ImportResult()
        total_parks = len(self.park_ids)
        parks_completed = 0

        def report(current_park: str, status: str, error: Optional[str] = None):
            progress = ImportProgress(
                current_park=current_park,
                parks_completed=parks_completed,
                total_parks=total_parks,
                records_imported=result.records_imported,
                status=status,
                error=error,
            )
            log_import_progress(current_park, parks_completed, total_parks, result.records_imported, status)
            if on_progress:
                on_progress(progress)

        logger.info(f"Starting crowd calendar import for {year}", extra={'parks': self.park_ids})
        report('', STATUS_STARTING)

        for index, park_id in enumerate(self.park_ids):
            report(park_id, STATUS_IN_PROGRESS)

            try:
                imported = self._import_park(park_id, year, result)
                if imported:
                    logger.info(f"Imported {imported} predictions for {park_id}")
                else:
                    logger.warning(f"No predictions found for {park_id}")
                    result.errors.append(f"No predictions found for {park_id}")
            except Exception as e:
                message = getattr(e, 'message', None) or str(e) or f"Unknown error for {park_id}"
                logger.error(f"Failed to import {park_id}", extra={'park_id': park_id, 'error': message})
                result.errors.append(f"{park_id}: {message}")

            parks_completed += 1
            report(park_id, STATUS_IN_PROGRESS)

            if index < total_parks - 1:
                self._sleep(self.delay_seconds)

        result.success = len(result.parks_processed) > 0
        report('', STATUS_COMPLETED if result.success else STATUS_ERROR,
               error=None if result.success else '; '.join(result.errors) or None)

        logger.info("Crowd calendar import finished", extra=result.to_dict())
        return result

    def _import_park(self, park_id: str, year: int, result: ImportResult) -> int:
        predictions = self.scrape_client.fetch_crowd_predictions_for_year(park_id, year)
        if not predictions:
            return 0

        with self.db.session_scope() as session:
            CrowdPredictionRepository(session).upsert_crowd_predictions(
                [prediction_to_row(p) for p in predictions]
            )

        result.records_imported += len(predictions)
        result.parks_processed.append(park_id)

        dates = sorted(p.date for p in predictions)
        if not result.date_range['start'] or dates[0] < result.date_range['start']:
            result.date_range['start'] = dates[0]
        if not result.date_range['end'] or dates[-1] > result.date_range['end']:
            result.date_range['end'] = dates[-1]

        return len(predictions)

    def get_import_stats(self) -> Dict[str, Any]:
        """
        Totals across all parks plus per-park prediction counts.

        Raises:
            ApiError: If the statistics query fails
        """
        try:
            with self.db.session_scope() as session:
                repo = CrowdPredictionRepository(session)
                stats = repo.get_crowd_prediction_stats()
                stats['park_counts'] = {
                    park_id: repo.get_crowd_prediction_stats(park_id)['total_predictions']
                    for park_id in self.park_ids
                }
                return stats
        except ApiError:
            raise
        except Exception as e:
            raise ApiError("Failed to get import statistics", details={'error': str(e)}) from e

    def cleanup_old_predictions(self, today: Optional[date] = None) -> int:
        """
        Delete predictions dated before yesterday. Never run by the sync
        scheduler, since it would also remove historical imports.

        Raises:
            ApiError: If the delete fails
        """
        with self.db.session_scope() as session:
            return CrowdPredictionRepository(session).cleanup_old_predictions(today=today)
