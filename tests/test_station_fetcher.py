"""Tests for the USGS station fetcher: retry policy, parsing and grouping."""

from unittest.mock import MagicMock

import pytest
import requests

from conftest import make_payload, make_points, make_response, make_series, NO_DATA
from floodwatch.pipeline.bbox import build_bounding_box
from floodwatch.pipeline.station_fetcher import StationFetcher, group_by_station
from floodwatch.utils.exceptions import (
    UpstreamRejected,
    UpstreamTimeout,
    UpstreamUnavailable,
)


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def fetcher(session, fake_clock):
    return StationFetcher(session=session, sleep=fake_clock.sleep)


@pytest.fixture
def bbox():
    return build_bounding_box(30.0, -97.0, 10)


class TestRetryPolicy:
    """Tests for the fixed-delay retry loop"""

    def test_succeeds_after_transient_failures(self, fetcher, session, fake_clock, bbox, two_station_payload):
        """Two connection errors then success: three calls, ~1 s apart"""
        session.get.side_effect = [
            requests.ConnectionError("reset"),
            requests.ConnectionError("reset"),
            make_response(200, two_station_payload),
        ]

        payload = fetcher.fetch_payload(bbox)

        assert payload == two_station_payload
        assert session.get.call_count == 3
        assert fake_clock.sleeps == [pytest.approx(1.0, abs=0.2)] * 2

    def test_gives_up_after_three_timeouts(self, fetcher, session, fake_clock, bbox):
        session.get.side_effect = requests.Timeout("read timed out")

        with pytest.raises(UpstreamTimeout) as exc_info:
            fetcher.fetch_payload(bbox)

        assert session.get.call_count == 3
        assert len(fake_clock.sleeps) == 2
        assert exc_info.value.status_code == 408
        assert exc_info.value.code == "EXTERNAL_API_TIMEOUT"

    def test_server_errors_are_retried(self, fetcher, session, fake_clock, bbox):
        session.get.return_value = make_response(503, {"error": "maintenance"})

        with pytest.raises(UpstreamUnavailable) as exc_info:
            fetcher.fetch_payload(bbox)

        assert session.get.call_count == 3
        assert exc_info.value.status == 503

    def test_client_error_is_not_retried(self, fetcher, session, fake_clock, bbox):
        """A 4xx answer is final: one call, no sleep"""
        session.get.return_value = make_response(400, {"error": "bad bBox"})

        with pytest.raises(UpstreamRejected) as exc_info:
            fetcher.fetch_payload(bbox)

        assert session.get.call_count == 1
        assert fake_clock.sleeps == []
        assert exc_info.value.status == 400
        assert "rejected" in exc_info.value.message

    def test_unexpected_structure(self, fetcher, session, bbox):
        session.get.return_value = make_response(200, {"value": {"queryInfo": {}}})

        with pytest.raises(UpstreamUnavailable) as exc_info:
            fetcher.fetch_payload(bbox)

        assert exc_info.value.message == "USGS API returned unexpected structure"

    def test_invalid_json(self, fetcher, session, bbox):
        session.get.return_value = make_response(200, invalid_json=True)

        with pytest.raises(UpstreamUnavailable):
            fetcher.fetch_payload(bbox)


class TestRequestParameters:
    """Tests for the query sent upstream"""

    def test_bbox_query(self, fetcher, session, bbox, two_station_payload):
        session.get.return_value = make_response(200, two_station_payload)

        fetcher.fetch_payload(bbox)

        params = session.get.call_args.kwargs["params"]
        assert params["bBox"] == bbox.to_param()
        assert params["parameterCd"] == "00060,00065,00010,00045"
        assert params["siteType"] == "ST"
        assert params["period"] == "P7D"
        assert params["format"] == "json"
        assert session.get.call_args.kwargs["timeout"] == 10

    def test_site_query(self, fetcher, session, two_station_payload):
        session.get.return_value = make_response(200, two_station_payload)

        fetcher.fetch_site_payload("08158000", ["00065"])

        params = session.get.call_args.kwargs["params"]
        assert params["sites"] == "08158000"
        assert params["parameterCd"] == "00065"
        assert "bBox" not in params


class TestGroupByStation:
    """Tests for grouping per-parameter series into stations"""

    def test_malformed_entry_is_skipped(self, two_station_payload):
        """Two stations, one malformed: one station comes back, no error"""
        stations = group_by_station(two_station_payload)

        assert len(stations) == 1
        assert stations[0].site_id == "08158000"

    def test_parameters_grouped_by_site(self, area_payload):
        stations = {s.site_id: s for s in group_by_station(area_payload)}

        assert set(stations) == {"08158000", "08158100", "08158200", "08159000"}
        assert set(stations["08158000"].parameters) == {"00060", "00065"}
        assert stations["08158000"].latitude == 30.01
        assert stations["08158000"].latest_value("00060") == 150.0
        assert stations["08158000"].latest_value("00065") == 8.0
        assert stations["08158200"].latest_value("00060") is None

    def test_latest_reading_skips_no_data(self):
        points = make_points([5.0, 6.0, NO_DATA])
        stations = group_by_station(make_payload(make_series("08158000", "00065", points)))

        reading = stations[0].reading("00065")
        assert reading.value == 6.0
        assert reading.date_time == points[1]["dateTime"]
        assert reading.point_count == 3

    def test_latest_reading_is_chronological(self):
        """Points are not assumed to arrive in order"""
        points = make_points([1.0, 2.0, 3.0])
        points.reverse()
        stations = group_by_station(make_payload(make_series("08158000", "00065", points)))

        assert stations[0].latest_value("00065") == 3.0

    def test_latest_reading_across_dst_change(self):
        """Readings on either side of a clock change are compared as instants"""
        points = [
            {"value": "1.0", "dateTime": "2024-11-03T01:45:00.000-05:00"},
            {"value": "9.0", "dateTime": "2024-11-03T01:15:00.000-06:00"},
        ]
        stations = group_by_station(make_payload(make_series("08158000", "00065", points)))

        reading = stations[0].reading("00065")
        assert reading.value == 9.0
        assert reading.date_time == "2024-11-03T01:15:00.000-06:00"

    def test_non_numeric_values(self):
        points = [{"value": "Ice", "dateTime": "2024-05-01T00:00:00.000-05:00"}]
        stations = group_by_station(make_payload(make_series("08158000", "00060", points)))

        assert stations[0].latest_value("00060") is None

    def test_empty_payload(self):
        assert group_by_station({}) == []
        assert group_by_station(make_payload()) == []


def test_fetch_stations_groups_payload(fetcher, session, bbox, area_payload):
    session.get.return_value = make_response(200, area_payload)

    stations = fetcher.fetch_stations(bbox)

    assert [s.site_id for s in stations] == ["08158000", "08158100", "08158200", "08159000"]
