"""
Waylight Live Data - Thrill Data Crowd Calendar Client
Scrapes a year of predicted average waits from the Thrill Data crowd calendar
and turns them into crowd predictions.
"""

from typing import List, Optional

from ..models.live_data import CrowdPrediction
from ..models.park_mapping import THRILL_DATA, ParkMappingRegistry, default_registry
from ..processor.live_data_transformer import transform_calendar_days
from ..utils.cache import TTLCache
from ..utils.config import HTTP_TIMEOUT_SECONDS, THRILL_DATA_BASE_URL
from ..utils.logger import logger
from .base_client import BaseApiClient
from .calendar_parser import parse_calendar


class ThrillDataClient(BaseApiClient):
    """
    Client for Thrill Data crowd calendar pages.

    The parsed calendar (not the raw HTML) is cached for 24 hours under
    ``thrill_data_{url}``.
    """

    service_name = 'thrill_data'
    default_cache_ttl_ms = 24 * 60 * 60 * 1000
    accept = 'text/html,application/xhtml+xml'

    def __init__(
        self,
        base_url: str = THRILL_DATA_BASE_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        registry: ParkMappingRegistry = default_registry,
        cache: Optional[TTLCache] = None
    ):
        super().__init__(base_url, timeout=timeout, cache=cache,
                         category_fn=lambda key: 'thrill_data_predictions')
        self.registry = registry

    def calendar_url(self, slug: str, year: int) -> str:
        return f"{self.base_url}/{slug}/calendar/{year}"

    def fetch_crowd_predictions_for_year(self, park_id: str, year: int) -> List[CrowdPrediction]:
        """
        Crowd predictions for every day the calendar covers in ``year``.

        Returns:
            Predictions sorted by date; [] when the page holds no calendar data

        Raises:
            ParkMappingError: If the park has no Thrill Data slug
            NetworkError, RateLimitedError, ApiError: On transport failures
        """
        slug = self.registry.get_external_id(park_id, THRILL_DATA)
        url = self.calendar_url(slug, year)

        days = self.fetch_text(url, cache_key=f"thrill_data_{url}", parse=parse_calendar)
        if not days:
            logger.warning("No structured calendar data found", extra={
                "park_id": park_id,
                "year": year,
                "url": url
            })
            return []

        return transform_calendar_days(park_id, days)
