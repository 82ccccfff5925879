"""
Waylight Live Data - Live Data Transformer
Pure functions translating upstream payloads into canonical models, and
canonical models into repository rows.

Status vocabularies are translated through explicit tables. Anything an
upstream reports that we don't recognise maps to the most conservative
canonical value (closed / down / cancelled): availability data is best-effort.
"""

from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from ..collector.calendar_parser import CalendarDay
from ..collector.errors import ParseError
from ..models.live_data import (
    UNKNOWN_WAIT_TIME,
    AttractionStatus,
    CanonicalAttraction,
    CanonicalEntertainment,
    CanonicalPark,
    CrowdPrediction,
    EntertainmentStatus,
    LightningLane,
    ParkCrowdData,
    ParkHours,
    ParkStatus,
    SingleRider,
)
from ..utils.timezone import get_now_utc, get_today_for_park, parse_timestamp, to_db_datetime, to_iso

THEMEPARKS_SOURCE = 'themeparks_api'
QUEUE_TIMES_SOURCE = 'queue_times_api'
THRILL_DATA_SOURCE = 'thrill_data_api'

# Stored park rows fall back to these when upstream omits hours
STORED_DEFAULT_OPEN = '09:00'
STORED_DEFAULT_CLOSE = '21:00'

PARK_STATUS_MAP = {
    'operating': ParkStatus.OPERATING,
    'closed': ParkStatus.CLOSED,
    'limited': ParkStatus.LIMITED,
    'refurbishment': ParkStatus.LIMITED,
}

ATTRACTION_STATUS_MAP = {
    'operating': AttractionStatus.OPERATING,
    'down': AttractionStatus.DOWN,
    'delayed': AttractionStatus.DELAYED,
    'closed': AttractionStatus.TEMPORARY_CLOSURE,
    'refurbishment': AttractionStatus.TEMPORARY_CLOSURE,
}

ENTERTAINMENT_STATUS_MAP = {
    'operating': EntertainmentStatus.OPERATING,
    'delayed': EntertainmentStatus.DELAYED,
    'closed': EntertainmentStatus.CANCELLED,
    'cancelled': EntertainmentStatus.CANCELLED,
    'refurbishment': EntertainmentStatus.CANCELLED,
    'down': EntertainmentStatus.CANCELLED,
}

QUEUE_TIMES_RECOMMENDATIONS = [
    (2, 'Perfect day to visit! Short wait times expected.'),
    (4, 'Great day to visit with manageable crowds.'),
    (6, 'Moderate crowds. Consider Lightning Lanes for popular attractions.'),
    (8, 'Busy day. Arrive early and use Lightning Lanes strategically.'),
    (10, 'Very busy day. Early arrival and Lightning Lanes highly recommended.'),
]

CALENDAR_RECOMMENDATIONS = [
    (2, 'Perfect day to visit! Very short wait times expected.'),
    (4, 'Great day to visit with manageable crowds.'),
    (6, 'Moderate crowds. Plan your must-do attractions early.'),
    (8, 'Busy day. Arrive early and consider Lightning Lanes for popular attractions.'),
    (10, 'Very busy day. Early arrival and strategic planning highly recommended.'),
]


# === Status translation ===

def _status_text(value: Any) -> str:
    # ThemeParks.wiki sends "OPERATING"; older payloads nest it as {"status": "OPERATING"}
    if isinstance(value, dict):
        value = value.get('status')
    return str(value or '').strip().lower()


def map_park_status(status: Any) -> ParkStatus:
    return PARK_STATUS_MAP.get(_status_text(status), ParkStatus.CLOSED)


def map_attraction_status(status: Any) -> AttractionStatus:
    return ATTRACTION_STATUS_MAP.get(_status_text(status), AttractionStatus.DOWN)


def map_entertainment_status(status: Any) -> EntertainmentStatus:
    return ENTERTAINMENT_STATUS_MAP.get(_status_text(status), EntertainmentStatus.CANCELLED)


# === Crowd levels ===

def crowd_level_description(level: int) -> str:
    """Human label for a 1-10 crowd level."""
    if level <= 2:
        return 'Very Low'
    if level <= 4:
        return 'Low'
    if level <= 6:
        return 'Moderate'
    if level <= 8:
        return 'High'
    return 'Very High'


def _recommend(level: int, table) -> str:
    for max_level, text in table:
        if level <= max_level:
            return text
    return table[-1][1]


def crowd_recommendation(level: int) -> str:
    """Visit advice attached to Queue-Times forecasts."""
    return _recommend(level, QUEUE_TIMES_RECOMMENDATIONS)


def calendar_recommendation(level: int) -> str:
    """Visit advice attached to crowd calendar imports."""
    return _recommend(level, CALENDAR_RECOMMENDATIONS)


# === ThemeParks.wiki ===

def extract_park_hours(park_entity: Dict[str, Any], today: date) -> ParkHours:
    """
    Pick today's hours out of a park entity's operatingHours.

    OPERATING gives regular hours (falling back to the first entry for today),
    EXTRA_HOURS gives early entry and PRIVATE gives extended evening. With no
    entry for today the default 09:00-22:00 is returned.
    """
    today_str = today.isoformat()
    todays = [
        entry for entry in (park_entity.get('operatingHours') or [])
        if isinstance(entry, dict) and str(entry.get('date', ''))[:10] == today_str
    ]
    if not todays:
        return ParkHours.default()

    def first_of(kind: str) -> Optional[Dict[str, Any]]:
        return next((entry for entry in todays if entry.get('type') == kind), None)

    regular = first_of('OPERATING') or todays[0]
    early_entry = first_of('EXTRA_HOURS')
    extended = first_of('PRIVATE')

    return ParkHours(
        regular_open=regular.get('startTime'),
        regular_close=regular.get('endTime'),
        early_entry_open=early_entry.get('startTime') if early_entry else None,
        extended_evening_close=extended.get('endTime') if extended else None,
    )


def _wait_minutes(queue_entry: Any) -> Optional[int]:
    if not isinstance(queue_entry, dict):
        return None
    value = queue_entry.get('waitTime')
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _lightning_lane(queue: Dict[str, Any]) -> Optional[LightningLane]:
    fast_lane = queue.get('fastLane')
    if isinstance(fast_lane, dict):
        return_time = fast_lane.get('returnTime')
        if isinstance(return_time, dict):
            return_time = return_time.get('fastLane')
        return LightningLane(available=bool(fast_lane.get('available')), return_time=return_time)

    for key in ('RETURN_TIME', 'PAID_RETURN_TIME'):
        entry = queue.get(key)
        if isinstance(entry, dict):
            return LightningLane(
                available=entry.get('state') == 'AVAILABLE',
                return_time=entry.get('returnStart'),
            )
    return None


def _single_rider(queue: Dict[str, Any]) -> Optional[SingleRider]:
    entry = queue.get('singleRider', queue.get('SINGLE_RIDER'))
    if entry is None:
        return None
    return SingleRider(available=True, wait_time=_wait_minutes(entry))


def transform_attraction(entity: Dict[str, Any], now: Optional[datetime] = None) -> CanonicalAttraction:
    """
    Canonical attraction from a ThemeParks.wiki ATTRACTION entity.

    Standby wait comes from queue.standBy (or queue.STANDBY); missing means -1.
    """
    queue = entity.get('queue') or {}
    standby = queue.get('standBy', queue.get('STANDBY'))
    wait = _wait_minutes(standby)

    return CanonicalAttraction(
        external_id=str(entity['id']),
        name=entity.get('name'),
        wait_time_minutes=UNKNOWN_WAIT_TIME if wait is None else wait,
        status=map_attraction_status(entity.get('status')),
        last_updated=entity.get('lastUpdate') or to_iso(now or get_now_utc()),
        lightning_lane=_lightning_lane(queue),
        single_rider=_single_rider(queue),
    )


def transform_entertainment(entity: Dict[str, Any], now: Optional[datetime] = None) -> CanonicalEntertainment:
    """Canonical entertainment from a SHOW entity; next show is the first start after ``now``."""
    current = now or get_now_utc()
    show_times = [
        show['startTime'] for show in (entity.get('showtimes') or [])
        if isinstance(show, dict) and show.get('startTime')
    ]

    next_show = None
    for start in show_times:
        try:
            if parse_timestamp(start) > current:
                next_show = start
                break
        except ValueError:
            continue

    return CanonicalEntertainment(
        external_id=str(entity['id']),
        name=entity.get('name'),
        show_times=show_times,
        status=map_entertainment_status(entity.get('status')),
        next_show_time=next_show,
        last_updated=entity.get('lastUpdate') or to_iso(current),
    )


def _live_entities(payload: Any) -> List[Dict[str, Any]]:
    if isinstance(payload, list):
        return [entity for entity in payload if isinstance(entity, dict)]
    if isinstance(payload, dict):
        live = payload.get('liveData')
        if not isinstance(live, list):
            raise ParseError("Live payload has no liveData list", details={"keys": sorted(payload)})
        entities = [entity for entity in live if isinstance(entity, dict)]
        # The /live document itself describes the park
        if payload.get('id') is not None:
            entities.insert(0, payload)
        return entities
    raise ParseError("Unexpected live payload type", details={"type": type(payload).__name__})


def transform_themeparks_live(
    park_id: str,
    external_id: str,
    payload: Any,
    now: Optional[datetime] = None,
    today: Optional[date] = None
) -> CanonicalPark:
    """
    Canonical park from a ThemeParks.wiki /entity/{id}/live payload.

    Args:
        park_id: Internal park id
        external_id: The park's ThemeParks.wiki UUID
        payload: Array of entities, or an object carrying liveData
        now: Reference time for next-show selection
        today: Park-local date used to pick operating hours

    Raises:
        ParseError: If the payload is malformed or has no park entity
    """
    current = now or get_now_utc()
    entities = _live_entities(payload)

    park_entity = next((entity for entity in entities if entity.get('id') == external_id), None)
    if park_entity is None:
        raise ParseError(
            f"Park data not found for {park_id}",
            details={"park_id": park_id, "external_id": external_id}
        )

    try:
        attractions = [
            transform_attraction(entity, current)
            for entity in entities if entity.get('entityType') == 'ATTRACTION'
        ]
        entertainment = [
            transform_entertainment(entity, current)
            for entity in entities if entity.get('entityType') == 'SHOW'
        ]
        hours = extract_park_hours(park_entity, today or get_today_for_park())
    except (KeyError, TypeError, AttributeError) as e:
        raise ParseError(
            f"Failed to parse park data for {park_id}",
            details={"park_id": park_id, "error": str(e)}
        ) from e

    return CanonicalPark(
        park_id=park_id,
        status=map_park_status(park_entity.get('status')),
        hours=hours,
        last_updated=park_entity.get('lastUpdate') or to_iso(current),
        attractions=attractions,
        entertainment=entertainment,
        data_source=THEMEPARKS_SOURCE,
    )


# === Queue-Times ===

def transform_queue_times_forecast(
    park_id: str,
    payload: Any,
    days: int = 30,
    now: Optional[datetime] = None
) -> ParkCrowdData:
    """
    Canonical crowd data from a Queue-Times park document.

    Raises:
        ParseError: If the forecast list is missing or malformed
    """
    forecast = payload.get('forecast') if isinstance(payload, dict) else None
    if not isinstance(forecast, list):
        raise ParseError(f"Failed to parse crowd data for {park_id}", details={"park_id": park_id})

    stamp = to_iso(now or get_now_utc())
    predictions = []
    try:
        for entry in forecast[:max(days, 0)]:
            level = int(entry['crowd_level'])
            predictions.append(CrowdPrediction(
                park_id=park_id,
                date=str(entry['date'])[:10],
                crowd_level=level,
                description=crowd_level_description(level),
                recommendation=crowd_recommendation(level),
                data_source=QUEUE_TIMES_SOURCE,
                last_updated=stamp,
            ))
    except (KeyError, TypeError, ValueError) as e:
        raise ParseError(
            f"Failed to parse crowd data for {park_id}",
            details={"park_id": park_id, "error": str(e)}
        ) from e

    return ParkCrowdData(park_id=park_id, predictions=predictions, last_updated=stamp)


# === Crowd calendar ===

def transform_calendar_days(
    park_id: str,
    days: Iterable[CalendarDay],
    now: Optional[datetime] = None
) -> List[CrowdPrediction]:
    """Crowd predictions from parsed calendar days."""
    stamp = to_iso(now or get_now_utc())
    return [
        CrowdPrediction(
            park_id=park_id,
            date=day.date,
            crowd_level=day.crowd_level,
            description=crowd_level_description(day.crowd_level),
            recommendation=calendar_recommendation(day.crowd_level),
            data_source=THRILL_DATA_SOURCE,
            last_updated=stamp,
        )
        for day in days
    ]


def synthesize_predictions(park_id: str, level: int, days: int, data_source: str,
                           start: Optional[date] = None, now: Optional[datetime] = None) -> ParkCrowdData:
    """A flat forecast of ``level`` for ``days`` consecutive days starting at ``start``."""
    first = start or get_today_for_park()
    stamp = to_iso(now or get_now_utc())
    return ParkCrowdData(
        park_id=park_id,
        predictions=[
            CrowdPrediction(
                park_id=park_id,
                date=(first + timedelta(days=offset)).isoformat(),
                crowd_level=level,
                description=crowd_level_description(level),
                data_source=data_source,
                last_updated=stamp,
            )
            for offset in range(max(days, 0))
        ],
        last_updated=stamp,
    )


# === Repository rows ===

def name_from_external_id(external_id: str) -> str:
    """Readable fallback name: 'space-mountain' -> 'Space Mountain'."""
    return ' '.join(word[:1].upper() + word[1:] for word in str(external_id).split('-'))


def park_to_row(park: CanonicalPark, external_id: str, name: str) -> Dict[str, Any]:
    return {
        'park_id': park.park_id,
        'external_id': external_id,
        'name': name,
        'status': park.status.value,
        'regular_open': park.hours.regular_open or STORED_DEFAULT_OPEN,
        'regular_close': park.hours.regular_close or STORED_DEFAULT_CLOSE,
        'early_entry_open': park.hours.early_entry_open,
        'extended_evening_close': park.hours.extended_evening_close,
        'crowd_level': park.crowd_level,
        'last_updated': to_db_datetime(park.last_updated),
    }


def attraction_to_row(park_id: str, attraction: CanonicalAttraction) -> Dict[str, Any]:
    lightning_lane = attraction.lightning_lane
    single_rider = attraction.single_rider
    return {
        'park_id': park_id,
        'external_id': attraction.external_id,
        'name': attraction.name or name_from_external_id(attraction.external_id),
        'wait_time': attraction.wait_time_minutes,
        'status': attraction.status.value,
        'lightning_lane_available': bool(lightning_lane and lightning_lane.available),
        'lightning_lane_return_time': lightning_lane.return_time if lightning_lane else None,
        'single_rider_available': bool(single_rider and single_rider.available),
        'single_rider_wait_time': single_rider.wait_time if single_rider else None,
        'last_updated': to_db_datetime(attraction.last_updated),
    }


def entertainment_to_row(park_id: str, entertainment: CanonicalEntertainment) -> Dict[str, Any]:
    return {
        'park_id': park_id,
        'external_id': entertainment.external_id,
        'name': entertainment.name or name_from_external_id(entertainment.external_id),
        'show_times': list(entertainment.show_times),
        'status': entertainment.status.value,
        'next_show_time': entertainment.next_show_time,
        'last_updated': to_db_datetime(entertainment.last_updated),
    }


def prediction_to_row(prediction: CrowdPrediction) -> Dict[str, Any]:
    return {
        'park_id': prediction.park_id,
        'prediction_date': date.fromisoformat(prediction.date),
        'crowd_level': prediction.crowd_level,
        'crowd_level_description': prediction.description,
        'recommendation': prediction.recommendation,
        'data_source': prediction.data_source,
        'confidence_score': prediction.confidence_score,
        'synced_at': to_db_datetime(prediction.last_updated),
    }
