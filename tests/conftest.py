"""
Waylight Live Data - pytest Configuration and Fixtures

Provides shared test fixtures for:
- A throwaway SQLite database per test
- Upstream payload samples (ThemeParks.wiki live, Queue-Times forecast)
- Calendar HTML snippets

Dates: fixtures are written for Friday 2025-03-14 16:00 UTC (noon in
Orlando). Tests that depend on "today" freeze time there.
"""

import pytest

from livedata.database.connection import Database

MAGIC_KINGDOM_UUID = '1c84a229-8862-4648-9c71-378ddd2c7693'


@pytest.fixture
def db(tmp_path):
    """File-backed SQLite database with every table created."""
    database = Database(f"sqlite:///{tmp_path / 'livedata_test.db'}")
    database.create_all()
    yield database
    database.close()


@pytest.fixture
def themeparks_live_payload():
    """
    ThemeParks.wiki /entity/{uuid}/live payload for Magic Kingdom.

    Space Mountain: 45 min standby, Lightning Lane available.
    Haunted Mansion: down, no wait reported.
    Festival of Fantasy: two parades, one already past at 16:00 UTC.
    """
    return [
        {
            "id": MAGIC_KINGDOM_UUID,
            "name": "Magic Kingdom Park",
            "entityType": "PARK",
            "status": "OPERATING",
            "lastUpdate": "2025-03-14T15:55:00Z",
            "operatingHours": [
                {"type": "OPERATING", "date": "2025-03-14",
                 "startTime": "2025-03-14T09:00:00-04:00", "endTime": "2025-03-14T23:00:00-04:00"},
                {"type": "EXTRA_HOURS", "date": "2025-03-14",
                 "startTime": "2025-03-14T08:30:00-04:00", "endTime": "2025-03-14T09:00:00-04:00"},
                {"type": "OPERATING", "date": "2025-03-15",
                 "startTime": "2025-03-15T08:00:00-04:00", "endTime": "2025-03-15T23:00:00-04:00"},
            ],
        },
        {
            "id": "space-mountain",
            "name": "Space Mountain",
            "entityType": "ATTRACTION",
            "status": "OPERATING",
            "lastUpdate": "2025-03-14T15:55:00Z",
            "queue": {
                "STANDBY": {"waitTime": 45},
                "RETURN_TIME": {"state": "AVAILABLE", "returnStart": "2025-03-14T14:05:00-04:00"},
            },
        },
        {
            "id": "haunted-mansion",
            "name": "Haunted Mansion",
            "entityType": "ATTRACTION",
            "status": "DOWN",
            "lastUpdate": "2025-03-14T15:50:00Z",
            "queue": {"STANDBY": {"waitTime": None}},
        },
        {
            "id": "festival-of-fantasy",
            "name": "Festival of Fantasy Parade",
            "entityType": "SHOW",
            "status": "OPERATING",
            "lastUpdate": "2025-03-14T15:55:00Z",
            "showtimes": [
                {"type": "Performance Time", "startTime": "2025-03-14T11:00:00-04:00"},
                {"type": "Performance Time", "startTime": "2025-03-14T15:00:00-04:00"},
            ],
        },
    ]


@pytest.fixture
def queue_times_payload():
    """Queue-Times park document with a three-day forecast starting 2025-03-14."""
    return {
        "lands": [],
        "rides": [],
        "forecast": [
            {"date": "2025-03-14", "crowd_level": 7},
            {"date": "2025-03-15", "crowd_level": 9},
            {"date": "2025-03-16", "crowd_level": 3},
        ],
    }


@pytest.fixture
def calendar_html_json():
    """Calendar page with the data embedded in a script block."""
    return """
    <html><body>
      <script>
        window.calendarData = {"2025-03-01": 18, "2025-03-02": 24, "2025-03-03": 41};
      </script>
    </body></html>
    """


@pytest.fixture
def calendar_html_attributes():
    """Calendar page with data-* attributes on the day cells."""
    return """
    <table class="calendar">
      <tr>
        <td class="day" data-date="2025-04-01" data-wait-time="30">1</td>
        <td class="day" data-date="2025-04-02" data-wait="36">2</td>
        <td class="day" data-date="2025-04-03">3</td>
      </tr>
    </table>
    """


@pytest.fixture
def calendar_html_text():
    """Calendar page where only the rendered text carries the data."""
    return """
    <div class="cell"><span class="date">2025-05-10</span> <span class="wait">22 min</span></div>
    <div class="cell"><span class="date">2025-05-11</span> <span class="wait">38 min</span></div>
    """
