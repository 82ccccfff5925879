"""
Waylight Live Data - Canonical Live Data Models
Source-agnostic representation of park, attraction, entertainment and crowd data.

Every upstream client translates into these types; the repository stores them
and the read service hands them out. Each model exposes to_dict() producing the
camelCase JSON shape served by the API.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ParkStatus(str, Enum):
    OPERATING = "operating"
    CLOSED = "closed"
    LIMITED = "limited"


class AttractionStatus(str, Enum):
    OPERATING = "operating"
    DOWN = "down"
    DELAYED = "delayed"
    TEMPORARY_CLOSURE = "temporary_closure"


class EntertainmentStatus(str, Enum):
    OPERATING = "operating"
    CANCELLED = "cancelled"
    DELAYED = "delayed"


# Canonical "no wait time reported", distinct from 0 (walk-on)
UNKNOWN_WAIT_TIME = -1

DEFAULT_REGULAR_OPEN = "09:00"
DEFAULT_REGULAR_CLOSE = "22:00"


@dataclass
class ParkHours:
    """Operating hours for a single day. Times are upstream ISO strings or HH:MM."""
    regular_open: Optional[str]
    regular_close: Optional[str]
    early_entry_open: Optional[str] = None
    extended_evening_close: Optional[str] = None

    @classmethod
    def default(cls) -> "ParkHours":
        return cls(regular_open=DEFAULT_REGULAR_OPEN, regular_close=DEFAULT_REGULAR_CLOSE)

    def to_dict(self) -> Dict[str, Any]:
        hours: Dict[str, Any] = {
            "regular": {"open": self.regular_open, "close": self.regular_close}
        }
        if self.early_entry_open:
            hours["earlyEntry"] = {"open": self.early_entry_open}
        if self.extended_evening_close:
            hours["extendedEvening"] = {"close": self.extended_evening_close}
        return hours


@dataclass
class LightningLane:
    available: bool
    return_time: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"available": self.available}
        if self.return_time:
            data["returnTime"] = self.return_time
        return data


@dataclass
class SingleRider:
    available: bool
    wait_time: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"available": self.available}
        if self.wait_time is not None:
            data["waitTime"] = self.wait_time
        return data


@dataclass
class CanonicalAttraction:
    external_id: str
    wait_time_minutes: int
    status: AttractionStatus
    last_updated: str
    name: Optional[str] = None
    lightning_lane: Optional[LightningLane] = None
    single_rider: Optional[SingleRider] = None

    @property
    def has_known_wait(self) -> bool:
        return self.wait_time_minutes != UNKNOWN_WAIT_TIME

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.external_id,
            "waitTime": self.wait_time_minutes,
            "status": self.status.value,
            "lastUpdated": self.last_updated,
        }
        if self.name:
            data["name"] = self.name
        if self.lightning_lane is not None:
            data["lightningLane"] = self.lightning_lane.to_dict()
        if self.single_rider is not None:
            data["singleRider"] = self.single_rider.to_dict()
        return data


@dataclass
class CanonicalEntertainment:
    external_id: str
    show_times: List[str]
    status: EntertainmentStatus
    last_updated: str
    name: Optional[str] = None
    next_show_time: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.external_id,
            "showTimes": list(self.show_times),
            "status": self.status.value,
            "lastUpdated": self.last_updated,
        }
        if self.name:
            data["name"] = self.name
        if self.next_show_time:
            data["nextShowTime"] = self.next_show_time
        return data


@dataclass
class CanonicalPark:
    """A park's full live picture. Rebuilt wholesale on every sync pass."""
    park_id: str
    status: ParkStatus
    hours: ParkHours
    last_updated: str
    crowd_level: Optional[int] = None
    attractions: List[CanonicalAttraction] = field(default_factory=list)
    entertainment: List[CanonicalEntertainment] = field(default_factory=list)
    data_source: Optional[str] = None
    is_estimated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "parkId": self.park_id,
            "status": self.status.value,
            "hours": self.hours.to_dict(),
            "lastUpdated": self.last_updated,
            "attractions": [a.to_dict() for a in self.attractions],
            "entertainment": [e.to_dict() for e in self.entertainment],
        }
        if self.crowd_level is not None:
            data["crowdLevel"] = self.crowd_level
        if self.data_source:
            data["dataSource"] = self.data_source
        if self.is_estimated:
            data["isEstimated"] = True
        return data


@dataclass
class CrowdPrediction:
    """A 1-10 crowd level for one park on one date. Unique per (park_id, date)."""
    park_id: str
    date: str  # YYYY-MM-DD
    crowd_level: int
    description: str
    data_source: str
    last_updated: str
    recommendation: Optional[str] = None
    confidence_score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "parkId": self.park_id,
            "date": self.date,
            "level": self.crowd_level,
            "description": self.description,
            "dataSource": self.data_source,
            "lastUpdated": self.last_updated,
        }
        if self.recommendation:
            data["recommendation"] = self.recommendation
        if self.confidence_score is not None:
            data["confidenceScore"] = self.confidence_score
        return data


@dataclass
class ParkCrowdData:
    park_id: str
    predictions: List[CrowdPrediction]
    last_updated: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parkId": self.park_id,
            "predictions": [p.to_dict() for p in self.predictions],
            "lastUpdated": self.last_updated,
        }


@dataclass
class SyncStatus:
    service_name: str
    last_sync_at: Optional[str]
    total_syncs: int = 0
    successful_syncs: int = 0
    failed_syncs: int = 0
    last_success_at: Optional[str] = None
    last_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "serviceName": self.service_name,
            "lastSyncAt": self.last_sync_at,
            "lastSuccessAt": self.last_success_at,
            "lastError": self.last_error,
            "totalSyncs": self.total_syncs,
            "successfulSyncs": self.successful_syncs,
            "failedSyncs": self.failed_syncs,
        }
