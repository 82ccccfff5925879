"""
Waylight Live Data - Park Mapping Registry
Translates internal park ids to each upstream source's identifier.

Services:
- themeparks_wiki: ThemeParks.wiki entity UUID
- queue_times: Queue-Times.com numeric park id
- thrill_data: Thrill Data crowd calendar URL slug
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional

from livedata.collector.errors import ParkMappingError

THEMEPARKS_WIKI = 'themeparks_wiki'
QUEUE_TIMES = 'queue_times'
THRILL_DATA = 'thrill_data'

SERVICES = (THEMEPARKS_WIKI, QUEUE_TIMES, THRILL_DATA)


@dataclass(frozen=True)
class ParkMapping:
    """
    One park's identity across the upstream services.

    Attributes:
        internal_id: Our park id (e.g. 'magic-kingdom')
        external_id_by_service: service name -> upstream id
        display_name: Human readable name
        timezone: IANA timezone used to decide what "today" means for the park
    """
    internal_id: str
    external_id_by_service: Mapping[str, str]
    display_name: str
    timezone: str = 'America/New_York'

    def __post_init__(self):
        # Freeze the mapping so a shared registry can't be mutated in place
        object.__setattr__(self, 'external_id_by_service', MappingProxyType(dict(self.external_id_by_service)))

    def external_id(self, service: str) -> Optional[str]:
        """Upstream id for a service, or None when the park isn't on it."""
        return self.external_id_by_service.get(service)

    @property
    def themeparks_wiki_id(self) -> Optional[str]:
        return self.external_id(THEMEPARKS_WIKI)

    @property
    def queue_times_id(self) -> Optional[str]:
        return self.external_id(QUEUE_TIMES)

    @property
    def thrill_data_id(self) -> Optional[str]:
        return self.external_id(THRILL_DATA)


PARK_MAPPINGS: List[ParkMapping] = [
    ParkMapping(
        internal_id='magic-kingdom',
        external_id_by_service={
            THEMEPARKS_WIKI: '1c84a229-8862-4648-9c71-378ddd2c7693',
            QUEUE_TIMES: '1',
            THRILL_DATA: 'magic-kingdom',
        },
        display_name='Magic Kingdom',
    ),
    ParkMapping(
        internal_id='epcot',
        external_id_by_service={
            THEMEPARKS_WIKI: '47f90d2c-e191-4239-a466-5892ef59a88b',
            QUEUE_TIMES: '2',
            THRILL_DATA: 'epcot',
        },
        display_name='EPCOT',
    ),
    ParkMapping(
        internal_id='hollywood-studios',
        external_id_by_service={
            THEMEPARKS_WIKI: '288747d1-8b4f-4a64-867e-ea7c9b27bad8',
            QUEUE_TIMES: '3',
            THRILL_DATA: 'hollywood-studios',
        },
        display_name="Disney's Hollywood Studios",
    ),
    ParkMapping(
        internal_id='animal-kingdom',
        external_id_by_service={
            THEMEPARKS_WIKI: 'cae8aa89-c4b7-4bfd-a2a8-9adaaa4d0df7',
            QUEUE_TIMES: '4',
            THRILL_DATA: 'animal-kingdom',
        },
        display_name="Disney's Animal Kingdom",
    ),
]


class ParkMappingRegistry:
    """
    Immutable lookup table over a list of ParkMapping.

    Raises:
        ValueError: If two mappings share an internal id
    """

    def __init__(self, mappings: Iterable[ParkMapping]):
        self._by_id: Dict[str, ParkMapping] = {}
        for mapping in mappings:
            if mapping.internal_id in self._by_id:
                raise ValueError(f"Duplicate park mapping for '{mapping.internal_id}'")
            self._by_id[mapping.internal_id] = mapping

    @property
    def park_ids(self) -> List[str]:
        return list(self._by_id)

    def find(self, park_id: str) -> Optional[ParkMapping]:
        return self._by_id.get(park_id)

    def get(self, park_id: str) -> ParkMapping:
        """
        Look up a park, failing fast when it is not configured.

        Raises:
            ParkMappingError: If the park id is unknown
        """
        mapping = self._by_id.get(park_id)
        if mapping is None:
            raise ParkMappingError(
                f"No mapping found for park: {park_id}",
                details={"park_id": park_id, "supported": self.park_ids}
            )
        return mapping

    def get_external_id(self, park_id: str, service: str) -> str:
        """
        Upstream id for a park on a service.

        Raises:
            ParkMappingError: If the park is unknown or has no id for the service
        """
        external_id = self.get(park_id).external_id(service)
        if not external_id:
            raise ParkMappingError(
                f"No {service} mapping found for park: {park_id}",
                details={"park_id": park_id, "service": service}
            )
        return external_id

    def find_park_id(self, service: str, external_id: str) -> Optional[str]:
        """Reverse lookup: internal park id for an upstream id."""
        for mapping in self._by_id.values():
            if mapping.external_id(service) == external_id:
                return mapping.internal_id
        return None

    def is_supported(self, park_id: str) -> bool:
        return park_id in self._by_id

    def __iter__(self):
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)


default_registry = ParkMappingRegistry(PARK_MAPPINGS)

SUPPORTED_PARK_IDS: List[str] = default_registry.park_ids


def get_park_mapping(park_id: str) -> ParkMapping:
    return default_registry.get(park_id)


def find_park_mapping(park_id: str) -> Optional[ParkMapping]:
    return default_registry.find(park_id)


def get_external_id(park_id: str, service: str) -> str:
    return default_registry.get_external_id(park_id, service)


def get_park_id_for_external(service: str, external_id: str) -> Optional[str]:
    return default_registry.find_park_id(service, external_id)


def is_park_supported(park_id: str) -> bool:
    return default_registry.is_supported(park_id)
