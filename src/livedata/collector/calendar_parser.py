"""
Waylight Live Data - Crowd Calendar Parser
Recovers (date, average wait) pairs from a Thrill Data crowd calendar page.

The page layout is not a stable contract, so extraction is an ordered list of
regex strategies, most specific first. Each strategy is a pure function of the
page text; the first one that yields anything wins. An empty result means "no
data for this period", not a failure.
"""

import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

# Wait-time buckets: (max minutes inclusive, color level, crowd level 1-10)
WAIT_TIME_BUCKETS: List[Tuple[int, str, int]] = [
    (19, 'Lowest', 2),
    (25, 'Lower', 4),
    (31, 'Average', 6),
    (37, 'Higher', 8),
]
HIGHEST_BUCKET = ('Highest', 10)

ISO_DATE = r'(\d{4}-\d{2}-\d{2})'

# "2025-03-14": 27
JSON_ENTRY_PATTERN = re.compile(r'"' + ISO_DATE + r'"\s*:\s*(\d+)')

# <td data-date="2025-03-14" ... data-wait-time="27">
DATA_ATTR_TAG_PATTERN = re.compile(r'<[^<>]*\bdata-date=["\']' + ISO_DATE + r'["\'][^<>]*>', re.IGNORECASE)
DATA_WAIT_PATTERN = re.compile(r'\bdata-wait(?:-time)?=["\'](\d+)["\']', re.IGNORECASE)

# 2025-03-14</span> <span class="wait">27 min
VISIBLE_TEXT_PATTERN = re.compile(ISO_DATE + r'(?:[^0-9]|<[^>]*>){0,120}?(\d{1,3})\s*min', re.IGNORECASE)


@dataclass(frozen=True)
class CalendarDay:
    """One calendar cell: the average posted wait predicted for a date."""
    date: str  # YYYY-MM-DD
    wait_time_minutes: int

    @property
    def color_level(self) -> str:
        return wait_time_to_color_level(self.wait_time_minutes)

    @property
    def crowd_level(self) -> int:
        return wait_time_to_crowd_level(self.wait_time_minutes)


def wait_time_to_color_level(wait_time: int) -> str:
    """Bucket an average wait (Thrill Data's range is roughly 14-41 min)."""
    for max_minutes, color, _ in WAIT_TIME_BUCKETS:
        if wait_time <= max_minutes:
            return color
    return HIGHEST_BUCKET[0]


def wait_time_to_crowd_level(wait_time: int) -> int:
    """Map an average wait onto the 1-10 crowd scale (2/4/6/8/10)."""
    for max_minutes, _, level in WAIT_TIME_BUCKETS:
        if wait_time <= max_minutes:
            return level
    return HIGHEST_BUCKET[1]


def _collect(pairs) -> List[CalendarDay]:
    # Last value wins for a repeated date
    by_date: Dict[str, int] = {}
    for day, minutes in pairs:
        by_date[day] = int(minutes)
    return [CalendarDay(date=day, wait_time_minutes=by_date[day]) for day in sorted(by_date)]


def parse_json_entries(html: str) -> List[CalendarDay]:
    """Strategy 1: embedded script data, ``"YYYY-MM-DD": N``."""
    return _collect(JSON_ENTRY_PATTERN.findall(html))


def parse_data_attributes(html: str) -> List[CalendarDay]:
    """Strategy 2: elements carrying ``data-date`` and ``data-wait``/``data-wait-time``."""
    pairs = []
    for tag in DATA_ATTR_TAG_PATTERN.finditer(html):
        wait = DATA_WAIT_PATTERN.search(tag.group(0))
        if wait:
            pairs.append((tag.group(1), wait.group(1)))
    return _collect(pairs)


def parse_visible_text(html: str) -> List[CalendarDay]:
    """Strategy 3: rendered text, an ISO date followed shortly by ``N min``."""
    return _collect(VISIBLE_TEXT_PATTERN.findall(html))


STRATEGIES: List[Callable[[str], List[CalendarDay]]] = [
    parse_json_entries,
    parse_data_attributes,
    parse_visible_text,
]


def parse_calendar(html: str) -> List[CalendarDay]:
    """
    Run the strategies in order and return the first non-empty result.

    Returns:
        Days sorted by date, or [] when nothing could be recovered
    """
    for strategy in STRATEGIES:
        days = strategy(html)
        if days:
            return days
    return []
