"""
Live Data Service Tests

Read precedence (cache -> database -> fallback), feature flags, the
auto-refresh timers and cache management. Runs against the throwaway SQLite
database from conftest.
"""

from datetime import date
from unittest.mock import Mock, patch

import pytest
from freezegun import freeze_time

from livedata.collector.errors import ApiError, NotFoundError, ParkMappingError
from livedata.database.repositories.crowd_prediction_repository import CrowdPredictionRepository
from livedata.database.repositories.live_data_repository import LiveDataRepository
from livedata.models.live_data import ParkHours, ParkStatus
from livedata.processor.live_data_service import (
    EnabledFeatures,
    LiveDataConfig,
    LiveDataService,
    RepeatingTimer,
)
from livedata.processor.live_data_transformer import (
    attraction_to_row,
    entertainment_to_row,
    park_to_row,
    prediction_to_row,
    transform_queue_times_forecast,
    transform_themeparks_live,
)

MOCKED_NOW_UTC = "2025-03-14T16:00:00Z"
MAGIC_KINGDOM_UUID = '1c84a229-8862-4648-9c71-378ddd2c7693'


def seed_magic_kingdom(db, payload, crowd_level=None):
    park = transform_themeparks_live('magic-kingdom', MAGIC_KINGDOM_UUID, payload)
    with db.session_scope() as session:
        repo = LiveDataRepository(session)
        row = park_to_row(park, MAGIC_KINGDOM_UUID, 'Magic Kingdom')
        row['crowd_level'] = crowd_level
        repo.upsert_park(row)
        repo.upsert_attractions([attraction_to_row('magic-kingdom', a) for a in park.attractions])
        repo.upsert_entertainment([entertainment_to_row('magic-kingdom', e) for e in park.entertainment])


def service_with(db, **features):
    return LiveDataService(db, LiveDataConfig(enabled_features=EnabledFeatures(**features)))


@freeze_time(MOCKED_NOW_UTC)
class TestParkData:

    def test_stored_park_is_returned_and_cached(self, db, themeparks_live_payload):
        seed_magic_kingdom(db, themeparks_live_payload, crowd_level=6)
        service = LiveDataService(db)

        park = service.get_park_data('magic-kingdom')

        assert park.status == ParkStatus.OPERATING
        assert park.crowd_level == 6
        assert park.is_estimated is False
        assert 'park_data_magic-kingdom' in service.cache

    def test_cache_hit_skips_database(self, db, themeparks_live_payload):
        seed_magic_kingdom(db, themeparks_live_payload)
        service = LiveDataService(db)
        first = service.get_park_data('magic-kingdom')

        with patch.object(LiveDataRepository, 'get_park') as mock_get_park:
            second = service.get_park_data('magic-kingdom')

        mock_get_park.assert_not_called()
        assert second is first

    def test_fallback_for_never_synced_park_is_not_cached(self, db):
        service = LiveDataService(db)

        park = service.get_park_data('epcot')

        assert park.data_source == 'fallback'
        assert park.is_estimated is True
        assert park.hours == ParkHours.default()
        assert len(service.cache) == 0

    def test_database_failure_falls_back_and_reports(self, db):
        service = LiveDataService(db)
        handler = Mock()
        service.on_error('get_park_data', handler)

        with patch.object(LiveDataRepository, 'get_park', side_effect=ApiError("Failed to fetch park data")):
            park = service.get_park_data('epcot')

        assert park.data_source == 'fallback'
        handler.assert_called_once()
        assert isinstance(handler.call_args[0][0], ApiError)

    def test_unsupported_park(self, db):
        with pytest.raises(ParkMappingError):
            LiveDataService(db).get_park_data('disneyland')

    def test_park_hours_disabled_returns_fallback(self, db, themeparks_live_payload):
        seed_magic_kingdom(db, themeparks_live_payload)
        park = service_with(db, park_hours=False).get_park_data('magic-kingdom')
        assert park.data_source == 'fallback'

    def test_multiple_parks_skip_failures(self, db):
        parks = LiveDataService(db).get_multiple_park_data(['epcot', 'disneyland'])
        assert [p.park_id for p in parks] == ['epcot']


@freeze_time(MOCKED_NOW_UTC)
class TestParkDataForDate:

    def test_same_local_day_uses_stored_hours(self, db, themeparks_live_payload):
        seed_magic_kingdom(db, themeparks_live_payload)

        park = LiveDataService(db).get_park_data_for_date('magic-kingdom', '2025-03-14')

        assert park.hours.regular_open == "2025-03-14T09:00:00-04:00"
        assert park.data_source == 'themeparks_api'
        assert park.is_estimated is False

    def test_other_day_is_unavailable(self, db, themeparks_live_payload):
        seed_magic_kingdom(db, themeparks_live_payload)

        park = LiveDataService(db).get_park_data_for_date('magic-kingdom', date(2025, 3, 20))

        assert park.data_source == 'unavailable'
        assert park.hours.regular_open is None
        assert park.is_estimated is True

    def test_park_hours_disabled_skips_cache_and_database(self, db, themeparks_live_payload):
        seed_magic_kingdom(db, themeparks_live_payload)
        service = service_with(db, park_hours=False)

        with patch.object(LiveDataRepository, 'get_park') as mock_get_park:
            park = service.get_park_data_for_date('magic-kingdom', '2025-03-14')

        mock_get_park.assert_not_called()
        assert park.data_source == 'fallback'
        assert len(service.cache) == 0


@freeze_time(MOCKED_NOW_UTC)
class TestWaitTimesAndEntertainment:

    def test_wait_times_from_database(self, db, themeparks_live_payload):
        seed_magic_kingdom(db, themeparks_live_payload)
        service = LiveDataService(db)

        waits = {a.external_id: a.wait_time_minutes for a in service.get_attraction_wait_times('magic-kingdom')}

        assert waits == {'space-mountain': 45, 'haunted-mansion': -1}
        assert 'wait_times_magic-kingdom' in service.cache

    def test_empty_results_are_not_cached(self, db):
        service = LiveDataService(db)

        assert service.get_attraction_wait_times('epcot') == []
        assert service.get_entertainment_schedule('epcot') == []
        assert len(service.cache) == 0

    def test_database_failure_returns_empty(self, db):
        service = LiveDataService(db)
        with patch.object(LiveDataRepository, 'get_attraction_wait_times', side_effect=ApiError("down")):
            assert service.get_attraction_wait_times('epcot') == []

    def test_disabled_features_return_empty(self, db, themeparks_live_payload):
        seed_magic_kingdom(db, themeparks_live_payload)
        service = service_with(db, wait_times=False, entertainment=False)

        assert service.get_attraction_wait_times('magic-kingdom') == []
        assert service.get_entertainment_schedule('magic-kingdom') == []

    def test_entertainment_schedule(self, db, themeparks_live_payload):
        seed_magic_kingdom(db, themeparks_live_payload)

        schedule = LiveDataService(db).get_entertainment_schedule('magic-kingdom')

        assert [e.external_id for e in schedule] == ['festival-of-fantasy']
        assert schedule[0].next_show_time == "2025-03-14T15:00:00-04:00"

    @pytest.mark.parametrize("read", ['get_attraction_wait_times', 'get_entertainment_schedule'])
    def test_unsupported_park(self, db, read):
        service = LiveDataService(db)
        with patch.object(LiveDataRepository, read) as mock_read:
            with pytest.raises(ParkMappingError):
                getattr(service, read)('disneyland')
        mock_read.assert_not_called()


class TestWaitTimeExpiry:

    def test_default_ttl_is_five_minutes(self, db, themeparks_live_payload):
        with freeze_time(MOCKED_NOW_UTC) as frozen:
            seed_magic_kingdom(db, themeparks_live_payload)
            service = LiveDataService(db)
            first = service.get_attraction_wait_times('magic-kingdom')

            with patch.object(LiveDataRepository, 'get_attraction_wait_times', return_value=first) as mock_read:
                frozen.tick(240)
                assert service.get_attraction_wait_times('magic-kingdom') is first
                assert mock_read.call_count == 0

                frozen.tick(120)
                service.get_attraction_wait_times('magic-kingdom')
                assert mock_read.call_count == 1


@freeze_time(MOCKED_NOW_UTC)
class TestAttractionStatus:

    def test_found(self, db, themeparks_live_payload):
        seed_magic_kingdom(db, themeparks_live_payload)
        attraction = LiveDataService(db).get_attraction_status('magic-kingdom', 'space-mountain')
        assert attraction.wait_time_minutes == 45

    def test_not_found(self, db, themeparks_live_payload):
        seed_magic_kingdom(db, themeparks_live_payload)
        with pytest.raises(NotFoundError) as exc_info:
            LiveDataService(db).get_attraction_status('magic-kingdom', 'tron')
        assert exc_info.value.details == {'park_id': 'magic-kingdom', 'attraction_id': 'tron'}

    def test_ride_status_disabled(self, db):
        with pytest.raises(ApiError) as exc_info:
            service_with(db, ride_status=False).get_attraction_status('magic-kingdom', 'space-mountain')
        assert "disabled" in exc_info.value.message


@freeze_time(MOCKED_NOW_UTC)
class TestCrowdPredictions:

    def test_stored_predictions_are_cached(self, db, queue_times_payload):
        crowd_data = transform_queue_times_forecast('epcot', queue_times_payload)
        with db.session_scope() as session:
            CrowdPredictionRepository(session).upsert_crowd_predictions(
                [prediction_to_row(p) for p in crowd_data.predictions]
            )
        service = LiveDataService(db)

        result = service.get_crowd_predictions('epcot', days=2)

        assert [(p.date, p.crowd_level) for p in result.predictions] == [('2025-03-14', 7), ('2025-03-15', 9)]
        assert 'crowd_predictions_epcot_2' in service.cache

    def test_synthesized_from_live_crowd_level(self, db, themeparks_live_payload):
        seed_magic_kingdom(db, themeparks_live_payload, crowd_level=8)
        service = LiveDataService(db)

        result = service.get_crowd_predictions('magic-kingdom', days=3)

        assert [p.date for p in result.predictions] == ['2025-03-14', '2025-03-15', '2025-03-16']
        assert {p.crowd_level for p in result.predictions} == {8}
        assert {p.data_source for p in result.predictions} == {'live_crowd_level'}
        assert len(service.cache) == 0

    def test_synthesized_default_level(self, db):
        result = LiveDataService(db).get_crowd_predictions('animal-kingdom', days=2)

        assert [p.crowd_level for p in result.predictions] == [5, 5]
        assert result.predictions[0].data_source == 'fallback'

    def test_repository_errors_propagate(self, db):
        service = LiveDataService(db)
        handler = Mock()
        service.on_error('get_crowd_predictions', handler)

        with patch.object(CrowdPredictionRepository, 'get_crowd_predictions_for_range',
                          side_effect=ApiError("Failed to fetch crowd predictions")):
            with pytest.raises(ApiError):
                service.get_crowd_predictions('epcot')

        handler.assert_called_once()

    def test_feature_disabled(self, db):
        with pytest.raises(ApiError):
            service_with(db, crowd_predictions=False).get_crowd_predictions('epcot')

    def test_unsupported_park(self, db):
        with pytest.raises(ParkMappingError):
            LiveDataService(db).get_crowd_predictions('disneyland')


class TestAutoRefresh:

    def test_timer_names_per_park(self, db):
        service = LiveDataService(db)
        try:
            service.start_auto_refresh(['magic-kingdom', 'disneyland', 'epcot'])
            assert service.refresh_timer_names == [
                'epcot_park_hours', 'epcot_wait_times',
                'magic-kingdom_park_hours', 'magic-kingdom_wait_times',
            ]
        finally:
            service.stop_auto_refresh()

        assert service.refresh_timer_names == []

    def test_restarting_replaces_timers(self, db):
        service = LiveDataService(db)
        try:
            service.start_auto_refresh(['epcot'])
            first = service._refresh_timers['epcot_wait_times']
            service.start_auto_refresh(['epcot'])
            assert service._refresh_timers['epcot_wait_times'] is not first
            assert first.is_alive is False
        finally:
            service.stop_auto_refresh()

    def test_update_config_stops_timers(self, db):
        service = LiveDataService(db)
        service.start_auto_refresh(['epcot'])
        service.update_config(LiveDataConfig())
        assert service.refresh_timer_names == []

    def test_tick_absorbs_errors(self):
        fn = Mock(side_effect=RuntimeError("database unavailable"))
        timer = RepeatingTimer(60, fn, name='epcot_wait_times')

        timer.tick()
        timer.tick()

        assert fn.call_count == 2


@freeze_time(MOCKED_NOW_UTC)
class TestCacheManagement:

    def _warm(self, db, payload):
        seed_magic_kingdom(db, payload, crowd_level=4)
        service = LiveDataService(db)
        service.get_park_data('magic-kingdom')
        service.get_attraction_wait_times('magic-kingdom')
        service.get_entertainment_schedule('magic-kingdom')
        return service

    def test_clear_by_alias(self, db, themeparks_live_payload):
        service = self._warm(db, themeparks_live_payload)

        assert service.clear_cache('park_hours') == 1
        assert 'park_data_magic-kingdom' not in service.cache
        assert 'wait_times_magic-kingdom' in service.cache

    def test_clear_all(self, db, themeparks_live_payload):
        service = self._warm(db, themeparks_live_payload)

        assert service.clear_cache('all') == 3
        assert service.get_cache_stats() == {}
