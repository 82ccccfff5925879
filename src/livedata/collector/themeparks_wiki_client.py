"""
Waylight Live Data - ThemeParks.wiki API Client
Fetches live park data (hours, attraction waits, show times).

API Documentation: https://api.themeparks.wiki/docs/v1/
"""

from typing import List, Optional

from ..models.live_data import CanonicalAttraction, CanonicalEntertainment, CanonicalPark
from ..models.park_mapping import THEMEPARKS_WIKI, ParkMappingRegistry, default_registry
from ..processor.live_data_transformer import transform_themeparks_live
from ..utils.cache import TTLCache
from ..utils.config import HTTP_TIMEOUT_SECONDS, THEMEPARKS_WIKI_API_BASE_URL
from ..utils.logger import logger
from ..utils.timezone import get_today_for_park
from .base_client import BaseApiClient


class ThemeParksWikiClient(BaseApiClient):
    """
    Client for the ThemeParks.wiki live endpoint.

    Responses are cached for 5 minutes per URL, so the narrower wait-time and
    entertainment calls reuse the park fetch.
    """

    service_name = 'themeparks_wiki'
    default_cache_ttl_ms = 5 * 60 * 1000

    def __init__(
        self,
        base_url: str = THEMEPARKS_WIKI_API_BASE_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        registry: ParkMappingRegistry = default_registry,
        cache: Optional[TTLCache] = None
    ):
        super().__init__(base_url, timeout=timeout, cache=cache)
        self.registry = registry

    def get_entity_live(self, entity_id: str):
        """
        Fetch live data (wait times, status, operating hours) for an entity.

        Args:
            entity_id: ThemeParks.wiki entity UUID (park)

        Returns:
            Raw payload: an entity array or an object with liveData

        Raises:
            NetworkError, RateLimitedError, ApiError, ParseError
        """
        return self.fetch_json(f"{self.base_url}/entity/{entity_id}/live")

    def fetch_park(self, park_id: str) -> CanonicalPark:
        """
        Fetch and canonicalize a park's live data.

        Args:
            park_id: Internal park id (e.g. 'magic-kingdom')

        Raises:
            ParkMappingError: If the park has no ThemeParks.wiki id
            ParseError: If the payload has no entity for the park
            NetworkError, RateLimitedError, ApiError: On transport failures
        """
        mapping = self.registry.get(park_id)
        external_id = self.registry.get_external_id(park_id, THEMEPARKS_WIKI)

        payload = self.get_entity_live(external_id)
        park = transform_themeparks_live(
            park_id,
            external_id,
            payload,
            today=get_today_for_park(mapping.timezone)
        )

        logger.debug(f"Fetched live data for {park_id}", extra={
            "park_id": park_id,
            "attractions": len(park.attractions),
            "entertainment": len(park.entertainment)
        })
        return park

    def get_attraction_wait_times(self, park_id: str) -> List[CanonicalAttraction]:
        return self.fetch_park(park_id).attractions

    def get_entertainment_schedule(self, park_id: str) -> List[CanonicalEntertainment]:
        return self.fetch_park(park_id).entertainment
