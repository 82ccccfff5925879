"""
Live Data Transformer Tests

Pure translation from upstream payloads to canonical models and rows.
"""

from datetime import date, datetime, timezone

import pytest

from livedata.collector.calendar_parser import CalendarDay
from livedata.collector.errors import ParseError
from livedata.models.live_data import (
    AttractionStatus,
    CanonicalPark,
    EntertainmentStatus,
    ParkHours,
    ParkStatus,
)
from livedata.processor.live_data_transformer import (
    attraction_to_row,
    calendar_recommendation,
    crowd_level_description,
    extract_park_hours,
    map_attraction_status,
    map_entertainment_status,
    map_park_status,
    name_from_external_id,
    park_to_row,
    prediction_to_row,
    synthesize_predictions,
    transform_attraction,
    transform_calendar_days,
    transform_entertainment,
    transform_queue_times_forecast,
    transform_themeparks_live,
)

NOW = datetime(2025, 3, 14, 16, 0, tzinfo=timezone.utc)
TODAY = date(2025, 3, 14)
MAGIC_KINGDOM_UUID = '1c84a229-8862-4648-9c71-378ddd2c7693'


class TestStatusMaps:

    @pytest.mark.parametrize("raw,expected", [
        ("OPERATING", ParkStatus.OPERATING),
        ("Closed", ParkStatus.CLOSED),
        ("REFURBISHMENT", ParkStatus.LIMITED),
        ("SOMETHING_NEW", ParkStatus.CLOSED),
        (None, ParkStatus.CLOSED),
    ])
    def test_park_status(self, raw, expected):
        assert map_park_status(raw) == expected

    @pytest.mark.parametrize("raw,expected", [
        ("OPERATING", AttractionStatus.OPERATING),
        ("DOWN", AttractionStatus.DOWN),
        ("CLOSED", AttractionStatus.TEMPORARY_CLOSURE),
        ("REFURBISHMENT", AttractionStatus.TEMPORARY_CLOSURE),
        ("unknown", AttractionStatus.DOWN),
    ])
    def test_attraction_status(self, raw, expected):
        assert map_attraction_status(raw) == expected

    def test_attraction_status_accepts_nested_object(self):
        assert map_attraction_status({"status": "DELAYED"}) == AttractionStatus.DELAYED

    @pytest.mark.parametrize("raw,expected", [
        ("OPERATING", EntertainmentStatus.OPERATING),
        ("DELAYED", EntertainmentStatus.DELAYED),
        ("CLOSED", EntertainmentStatus.CANCELLED),
        ("bogus", EntertainmentStatus.CANCELLED),
    ])
    def test_entertainment_status(self, raw, expected):
        assert map_entertainment_status(raw) == expected


class TestCrowdText:

    @pytest.mark.parametrize("level,description", [
        (1, 'Very Low'), (2, 'Very Low'), (3, 'Low'), (4, 'Low'),
        (5, 'Moderate'), (6, 'Moderate'), (7, 'High'), (8, 'High'),
        (9, 'Very High'), (10, 'Very High'),
    ])
    def test_descriptions(self, level, description):
        assert crowd_level_description(level) == description

    def test_calendar_recommendation(self):
        assert calendar_recommendation(2).startswith('Perfect day')
        assert calendar_recommendation(10).startswith('Very busy day')


class TestParkHours:

    def test_picks_todays_entries(self, themeparks_live_payload):
        hours = extract_park_hours(themeparks_live_payload[0], TODAY)

        assert hours.regular_open == "2025-03-14T09:00:00-04:00"
        assert hours.regular_close == "2025-03-14T23:00:00-04:00"
        assert hours.early_entry_open == "2025-03-14T08:30:00-04:00"
        assert hours.extended_evening_close is None

    def test_extended_evening_from_private_hours(self):
        entity = {"operatingHours": [
            {"type": "OPERATING", "date": "2025-03-14", "startTime": "a", "endTime": "b"},
            {"type": "PRIVATE", "date": "2025-03-14", "startTime": "c", "endTime": "d"},
        ]}
        assert extract_park_hours(entity, TODAY).extended_evening_close == "d"

    def test_first_entry_when_no_operating_type(self):
        entity = {"operatingHours": [
            {"type": "TICKETED_EVENT", "date": "2025-03-14", "startTime": "x", "endTime": "y"},
        ]}
        hours = extract_park_hours(entity, TODAY)
        assert (hours.regular_open, hours.regular_close) == ("x", "y")

    def test_default_when_no_entry_for_today(self, themeparks_live_payload):
        assert extract_park_hours(themeparks_live_payload[0], date(2025, 3, 20)) == ParkHours.default()

    def test_default_when_hours_missing(self):
        assert extract_park_hours({}, TODAY) == ParkHours("09:00", "22:00")


class TestAttractions:

    def test_missing_wait_is_minus_one(self):
        attraction = transform_attraction({"id": "x", "status": "OPERATING", "queue": {}}, NOW)
        assert attraction.wait_time_minutes == -1
        assert attraction.has_known_wait is False

    def test_zero_wait_is_walk_on(self):
        attraction = transform_attraction({"id": "x", "queue": {"standBy": {"waitTime": 0}}}, NOW)
        assert attraction.wait_time_minutes == 0
        assert attraction.has_known_wait is True

    def test_fast_lane_shape(self):
        entity = {"id": "x", "queue": {"fastLane": {"available": True, "returnTime": "13:05"}}}
        lightning_lane = transform_attraction(entity, NOW).lightning_lane
        assert lightning_lane.available is True
        assert lightning_lane.return_time == "13:05"

    def test_paid_return_time_sold_out(self):
        entity = {"id": "x", "queue": {"PAID_RETURN_TIME": {"state": "FINISHED", "returnStart": None}}}
        assert transform_attraction(entity, NOW).lightning_lane.available is False

    def test_single_rider(self):
        entity = {"id": "x", "queue": {"SINGLE_RIDER": {"waitTime": 10}}}
        single_rider = transform_attraction(entity, NOW).single_rider
        assert single_rider.available is True
        assert single_rider.wait_time == 10

    def test_last_updated_defaults_to_now(self):
        assert transform_attraction({"id": "x"}, NOW).last_updated == "2025-03-14T16:00:00Z"


class TestEntertainment:

    def test_next_show_is_first_future_start(self, themeparks_live_payload):
        show = transform_entertainment(themeparks_live_payload[3], NOW)
        assert show.show_times == ["2025-03-14T11:00:00-04:00", "2025-03-14T15:00:00-04:00"]
        assert show.next_show_time == "2025-03-14T15:00:00-04:00"

    def test_no_future_shows(self):
        entity = {"id": "x", "showtimes": [{"startTime": "2025-03-14T08:00:00Z"}]}
        assert transform_entertainment(entity, NOW).next_show_time is None


class TestThemeParksLive:

    def test_entity_array(self, themeparks_live_payload):
        park = transform_themeparks_live('magic-kingdom', MAGIC_KINGDOM_UUID, themeparks_live_payload,
                                         now=NOW, today=TODAY)

        assert park.data_source == 'themeparks_api'
        assert park.last_updated == "2025-03-14T15:55:00Z"
        assert [a.external_id for a in park.attractions] == ['space-mountain', 'haunted-mansion']
        assert [e.external_id for e in park.entertainment] == ['festival-of-fantasy']

    def test_object_with_live_data(self, themeparks_live_payload):
        park_entity, *children = themeparks_live_payload
        payload = dict(park_entity, liveData=children)

        park = transform_themeparks_live('magic-kingdom', MAGIC_KINGDOM_UUID, payload, now=NOW, today=TODAY)

        assert park.status == ParkStatus.OPERATING
        assert len(park.attractions) == 2

    def test_missing_park_entity(self, themeparks_live_payload):
        with pytest.raises(ParseError):
            transform_themeparks_live('magic-kingdom', 'other-uuid', themeparks_live_payload, now=NOW, today=TODAY)

    def test_object_without_live_data(self):
        with pytest.raises(ParseError):
            transform_themeparks_live('magic-kingdom', MAGIC_KINGDOM_UUID, {"id": MAGIC_KINGDOM_UUID})

    def test_attraction_without_id(self, themeparks_live_payload):
        themeparks_live_payload.append({"entityType": "ATTRACTION", "name": "Nameless"})
        with pytest.raises(ParseError):
            transform_themeparks_live('magic-kingdom', MAGIC_KINGDOM_UUID, themeparks_live_payload,
                                      now=NOW, today=TODAY)


class TestQueueTimesForecast:

    def test_truncates_to_days(self, queue_times_payload):
        crowd_data = transform_queue_times_forecast('epcot', queue_times_payload, days=2, now=NOW)
        assert [p.crowd_level for p in crowd_data.predictions] == [7, 9]
        assert crowd_data.predictions[1].description == 'Very High'
        assert crowd_data.predictions[0].recommendation.startswith('Busy day')
        assert crowd_data.last_updated == "2025-03-14T16:00:00Z"

    def test_bad_entry_is_parse_error(self):
        with pytest.raises(ParseError):
            transform_queue_times_forecast('epcot', {"forecast": [{"date": "2025-03-14"}]})


class TestCalendarAndSynthesis:

    def test_calendar_days(self):
        predictions = transform_calendar_days('epcot', [CalendarDay('2025-03-14', 33)], now=NOW)
        assert predictions[0].crowd_level == 8
        assert predictions[0].description == 'High'
        assert predictions[0].data_source == 'thrill_data_api'

    def test_synthesize_flat_forecast(self):
        crowd_data = synthesize_predictions('epcot', 5, 3, 'fallback', start=TODAY, now=NOW)
        assert [p.date for p in crowd_data.predictions] == ['2025-03-14', '2025-03-15', '2025-03-16']
        assert {p.crowd_level for p in crowd_data.predictions} == {5}
        assert {p.data_source for p in crowd_data.predictions} == {'fallback'}


class TestRows:

    def test_name_from_external_id(self):
        assert name_from_external_id('space-mountain') == 'Space Mountain'

    def test_park_row_defaults_hours(self):
        park = CanonicalPark(
            park_id='epcot',
            status=ParkStatus.CLOSED,
            hours=ParkHours(regular_open=None, regular_close=None),
            last_updated="2025-03-14T16:00:00Z",
        )
        row = park_to_row(park, 'uuid', 'EPCOT')

        assert (row['regular_open'], row['regular_close']) == ('09:00', '21:00')
        assert row['status'] == 'closed'
        assert row['last_updated'] == datetime(2025, 3, 14, 16, 0)

    def test_attraction_row_uses_fallback_name(self):
        attraction = transform_attraction({"id": "big-thunder", "queue": {"STANDBY": {"waitTime": 30}}}, NOW)
        row = attraction_to_row('magic-kingdom', attraction)

        assert row['name'] == 'Big Thunder'
        assert row['wait_time'] == 30
        assert row['lightning_lane_available'] is False

    def test_prediction_row(self):
        prediction = synthesize_predictions('epcot', 4, 1, 'fallback', start=TODAY, now=NOW).predictions[0]
        row = prediction_to_row(prediction)

        assert row['prediction_date'] == TODAY
        assert row['crowd_level_description'] == 'Low'
        assert row['synced_at'] == datetime(2025, 3, 14, 16, 0)
