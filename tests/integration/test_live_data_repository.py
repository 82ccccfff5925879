"""
Live Data Repository Integration Tests

Runs the repository against a real SQLite database:
- Upserts are idempotent on their natural keys
- Reads hand back canonical models
- Sync status counters
- Retention cleanup
"""

from datetime import datetime, timedelta

import pytest
from freezegun import freeze_time
from sqlalchemy import func, select

from livedata.collector.errors import ApiError
from livedata.database.repositories.live_data_repository import LiveDataRepository
from livedata.models.live_data import AttractionStatus, ParkStatus
from livedata.models.orm_live import LiveAttraction, LivePark

MOCKED_NOW_UTC = "2025-03-14T16:00:00Z"
NOW_NAIVE = datetime(2025, 3, 14, 16, 0)


def park_row(**overrides):
    row = {
        'park_id': 'magic-kingdom',
        'external_id': '1c84a229-8862-4648-9c71-378ddd2c7693',
        'name': 'Magic Kingdom',
        'status': 'operating',
        'regular_open': '2025-03-14T09:00:00-04:00',
        'regular_close': '2025-03-14T23:00:00-04:00',
        'early_entry_open': None,
        'extended_evening_close': None,
        'crowd_level': None,
        'last_updated': NOW_NAIVE,
    }
    row.update(overrides)
    return row


def attraction_row(external_id='space-mountain', **overrides):
    row = {
        'park_id': 'magic-kingdom',
        'external_id': external_id,
        'name': external_id.replace('-', ' ').title(),
        'wait_time': 45,
        'status': 'operating',
        'lightning_lane_available': False,
        'lightning_lane_return_time': None,
        'single_rider_available': False,
        'single_rider_wait_time': None,
        'last_updated': NOW_NAIVE,
    }
    row.update(overrides)
    return row


@pytest.mark.integration
class TestParkUpsert:

    def test_insert_then_read(self, db):
        with db.session_scope() as session:
            LiveDataRepository(session).upsert_park(park_row(crowd_level=6))

        with db.session_scope() as session:
            park = LiveDataRepository(session).get_park('magic-kingdom')

        assert park.status == ParkStatus.OPERATING
        assert park.crowd_level == 6
        assert park.hours.regular_close == '2025-03-14T23:00:00-04:00'
        assert park.last_updated == "2025-03-14T16:00:00Z"

    def test_upsert_twice_keeps_one_row(self, db):
        with db.session_scope() as session:
            repo = LiveDataRepository(session)
            repo.upsert_park(park_row())
            repo.upsert_park(park_row(status='closed'))

        with db.session_scope() as session:
            count = session.execute(select(func.count(LivePark.id))).scalar_one()
            park = LiveDataRepository(session).get_park('magic-kingdom')

        assert count == 1
        assert park.status == ParkStatus.CLOSED

    def test_missing_park_id_rejected(self, db):
        with db.session_scope() as session:
            with pytest.raises(ValueError):
                LiveDataRepository(session).upsert_park(park_row(park_id=None))

    def test_unknown_park_is_none(self, db):
        with db.session_scope() as session:
            repo = LiveDataRepository(session)
            assert repo.get_park('epcot') is None
            assert repo.get_park_crowd_level('epcot') is None
            assert repo.get_park_row('epcot') is None

    def test_get_multiple_parks_skips_missing(self, db):
        with db.session_scope() as session:
            repo = LiveDataRepository(session)
            repo.upsert_park(park_row())
            parks = repo.get_multiple_parks(['magic-kingdom', 'epcot'])

        assert [p.park_id for p in parks] == ['magic-kingdom']


@pytest.mark.integration
class TestAttractionsAndEntertainment:

    def test_attraction_upsert_is_idempotent(self, db):
        with db.session_scope() as session:
            repo = LiveDataRepository(session)
            assert repo.upsert_attractions([attraction_row(), attraction_row('haunted-mansion')]) == 2
            repo.upsert_attractions([attraction_row(wait_time=60)])

        with db.session_scope() as session:
            count = session.execute(select(func.count(LiveAttraction.id))).scalar_one()
            waits = LiveDataRepository(session).get_attraction_wait_times('magic-kingdom')

        assert count == 2
        # Ordered by name
        assert [a.external_id for a in waits] == ['haunted-mansion', 'space-mountain']
        assert waits[1].wait_time_minutes == 60

    def test_lightning_lane_round_trip(self, db):
        with db.session_scope() as session:
            LiveDataRepository(session).upsert_attractions([attraction_row(
                status='down',
                lightning_lane_available=True,
                lightning_lane_return_time='2025-03-14T14:05:00-04:00',
            )])

        with db.session_scope() as session:
            attraction = LiveDataRepository(session).get_attraction_wait_times('magic-kingdom')[0]

        assert attraction.status == AttractionStatus.DOWN
        assert attraction.lightning_lane.return_time == '2025-03-14T14:05:00-04:00'
        assert attraction.single_rider is None

    def test_empty_batches(self, db):
        with db.session_scope() as session:
            repo = LiveDataRepository(session)
            assert repo.upsert_attractions([]) == 0
            assert repo.upsert_entertainment([]) == 0
            assert repo.get_attraction_wait_times('epcot') == []
            assert repo.get_entertainment_schedule('epcot') == []

    def test_entertainment_show_times_stored_as_json(self, db):
        with db.session_scope() as session:
            LiveDataRepository(session).upsert_entertainment([{
                'park_id': 'magic-kingdom',
                'external_id': 'festival-of-fantasy',
                'name': 'Festival of Fantasy Parade',
                'show_times': ['2025-03-14T11:00:00-04:00', '2025-03-14T15:00:00-04:00'],
                'status': 'operating',
                'next_show_time': '2025-03-14T15:00:00-04:00',
                'last_updated': NOW_NAIVE,
            }])

        with db.session_scope() as session:
            show = LiveDataRepository(session).get_entertainment_schedule('magic-kingdom')[0]

        assert show.show_times == ['2025-03-14T11:00:00-04:00', '2025-03-14T15:00:00-04:00']
        assert show.next_show_time == '2025-03-14T15:00:00-04:00'

    def test_park_read_includes_children(self, db):
        with db.session_scope() as session:
            repo = LiveDataRepository(session)
            repo.upsert_park(park_row())
            repo.upsert_attractions([attraction_row()])

        with db.session_scope() as session:
            park = LiveDataRepository(session).get_park('magic-kingdom')

        assert [a.external_id for a in park.attractions] == ['space-mountain']
        assert park.entertainment == []


@pytest.mark.integration
class TestSyncStatus:

    @freeze_time(MOCKED_NOW_UTC)
    def test_counters_accumulate(self, db):
        with db.session_scope() as session:
            repo = LiveDataRepository(session)
            repo.update_sync_status('themeparks_api', True)
            repo.update_sync_status('themeparks_api', False, 'Failed parks: epcot (timeout)')
            status = repo.update_sync_status('themeparks_api', False)

        assert status.total_syncs == 3
        assert status.successful_syncs == 1
        assert status.failed_syncs == 2
        assert status.last_error == 'Unknown error'
        assert status.last_success_at == "2025-03-14T16:00:00Z"

    def test_success_clears_last_error(self, db):
        with db.session_scope() as session:
            repo = LiveDataRepository(session)
            repo.update_sync_status('queue_times_api', False, 'boom')
            status = repo.update_sync_status('queue_times_api', True)

        assert status.last_error is None

    def test_never_synced_is_none(self, db):
        with db.session_scope() as session:
            assert LiveDataRepository(session).get_sync_status('themeparks_api') is None


@pytest.mark.integration
class TestCleanup:

    @freeze_time(MOCKED_NOW_UTC)
    def test_removes_stale_rows_only(self, db):
        with db.session_scope() as session:
            repo = LiveDataRepository(session)
            repo.upsert_park(park_row(last_updated=NOW_NAIVE - timedelta(days=2)))
            repo.upsert_park(park_row(park_id='epcot', last_updated=NOW_NAIVE - timedelta(days=8)))
            repo.upsert_attractions([
                attraction_row('fresh', last_updated=NOW_NAIVE - timedelta(hours=1)),
                attraction_row('stale', last_updated=NOW_NAIVE - timedelta(hours=25)),
            ])

        with db.session_scope() as session:
            deleted = LiveDataRepository(session).clean_old_data(24)

        assert deleted == {'live_attractions': 1, 'live_entertainment': 0, 'live_parks': 1}
        with db.session_scope() as session:
            repo = LiveDataRepository(session)
            assert [a.external_id for a in repo.get_attraction_wait_times('magic-kingdom')] == ['fresh']
            assert repo.get_park('magic-kingdom') is not None
            assert repo.get_park('epcot') is None


@pytest.mark.integration
class TestStorageErrors:

    def test_query_failure_raises_api_error(self, db):
        with db.session_scope() as session:
            LiveDataRepository(session).upsert_park(park_row())

        # Simulate a broken schema
        with db.get_engine().begin() as conn:
            conn.exec_driver_sql("DROP TABLE live_attractions")

        with pytest.raises(ApiError) as exc_info:
            with db.session_scope() as session:
                LiveDataRepository(session).get_park('magic-kingdom')

        assert "Failed to fetch park data" in exc_info.value.message
