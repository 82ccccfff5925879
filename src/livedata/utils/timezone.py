"""
Waylight Live Data - Timezone Utilities
Provides UTC timestamp handling and park-local "today".

Storage keeps naive UTC datetimes; the canonical models and the API carry
ISO-8601 strings with a trailing Z. Upstream timestamps arrive with offsets
(ThemeParks.wiki reports park-local times such as 2025-03-14T09:00:00-04:00).
"""

from datetime import date, datetime, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

from dateutil.parser import isoparse

# Walt Disney World parks all run on Eastern Time
DEFAULT_PARK_TZ = ZoneInfo('America/New_York')
UTC_TZ = timezone.utc


def get_now_utc() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC_TZ)


def utc_now_iso() -> str:
    """Current time as an ISO-8601 string with a trailing Z."""
    return to_iso(get_now_utc())


def to_iso(value: datetime) -> str:
    """
    Format a datetime as ISO-8601 UTC.

    Naive datetimes are assumed to already be UTC (that is how they are stored).
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC_TZ)
    return value.astimezone(UTC_TZ).isoformat().replace('+00:00', 'Z')


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse an upstream timestamp into an aware datetime.

    Args:
        value: ISO-8601 string or datetime; None passes through

    Returns:
        Aware datetime (naive inputs are treated as UTC), or None

    Raises:
        ValueError: If the string is not ISO-8601
    """
    if value is None:
        return None
    parsed = value if isinstance(value, datetime) else isoparse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC_TZ)
    return parsed


def to_db_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Convert a timestamp to the naive UTC datetime stored in the database."""
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    return parsed.astimezone(UTC_TZ).replace(tzinfo=None)


def get_today_for_park(tz: Union[str, ZoneInfo, None] = None) -> date:
    """
    Get the current calendar date at the park.

    Args:
        tz: IANA name or ZoneInfo (default: America/New_York)
    """
    zone = ZoneInfo(tz) if isinstance(tz, str) else (tz or DEFAULT_PARK_TZ)
    return datetime.now(zone).date()


def local_date(value: Union[str, datetime], tz: Union[str, ZoneInfo, None] = None) -> date:
    """Calendar date of a timestamp at the park."""
    zone = ZoneInfo(tz) if isinstance(tz, str) else (tz or DEFAULT_PARK_TZ)
    return parse_timestamp(value).astimezone(zone).date()
