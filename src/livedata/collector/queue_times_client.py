"""
Waylight Live Data - Queue-Times.com API Client
Fetches crowd-level forecasts for parks.
"""

from typing import Optional

from ..models.live_data import ParkCrowdData
from ..models.park_mapping import QUEUE_TIMES, ParkMappingRegistry, default_registry
from ..processor.live_data_transformer import transform_queue_times_forecast
from ..utils.cache import TTLCache
from ..utils.config import HTTP_TIMEOUT_SECONDS, QUEUE_TIMES_API_BASE_URL
from ..utils.logger import logger
from ..utils.timezone import get_today_for_park
from .base_client import BaseApiClient
from .errors import LiveDataError


class QueueTimesClient(BaseApiClient):
    """
    Client for Queue-Times.com park documents.

    Forecasts change daily, so responses are cached for 24 hours.
    """

    service_name = 'queue_times'
    default_cache_ttl_ms = 24 * 60 * 60 * 1000

    def __init__(
        self,
        base_url: str = QUEUE_TIMES_API_BASE_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        registry: ParkMappingRegistry = default_registry,
        cache: Optional[TTLCache] = None
    ):
        super().__init__(base_url, timeout=timeout, cache=cache,
                         category_fn=lambda key: 'crowd_predictions')
        self.registry = registry

    def get_park_queue_times(self, queue_times_id: str):
        """
        Fetch the park document (includes the forecast list).

        Args:
            queue_times_id: Queue-Times.com numeric park id
        """
        return self.fetch_json(f"{self.base_url}/parks/{queue_times_id}/queue_times.json")

    def get_crowd_predictions(self, park_id: str, days: int = 30) -> ParkCrowdData:
        """
        Crowd forecast for the next ``days`` days.

        Raises:
            ParkMappingError: If the park has no Queue-Times id
            ParseError: If the document has no forecast list
            NetworkError, RateLimitedError, ApiError: On transport failures
        """
        queue_times_id = self.registry.get_external_id(park_id, QUEUE_TIMES)
        payload = self.get_park_queue_times(queue_times_id)
        return transform_queue_times_forecast(park_id, payload, days)

    def get_current_crowd_level(self, park_id: str) -> Optional[int]:
        """
        Today's forecast crowd level, or None.

        The crowd signal is supplementary: upstream failures are logged and
        reported as None. Mapping errors still raise.
        """
        try:
            crowd_data = self.get_crowd_predictions(park_id, days=1)
        except LiveDataError as e:
            if e.code == 'CONFIG_ERROR':
                raise
            logger.warning(f"Failed to get current crowd level for {park_id}", extra={
                "park_id": park_id,
                "error_code": e.code,
                "error": e.message
            })
            return None

        today = get_today_for_park(self.registry.get(park_id).timezone).isoformat()
        for prediction in crowd_data.predictions:
            if prediction.date == today:
                return prediction.crowd_level
        return None
