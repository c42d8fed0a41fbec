"""Shared fixtures: synthetic upstream payloads, fake HTTP responses and a fake clock."""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from unittest.mock import MagicMock

import pytest
import requests

NO_DATA = -999999.0


class FakeClock:
    """Manually advanced monotonic clock that also records sleeps."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def make_response(status: int = 200, payload: Any = None, invalid_json: bool = False) -> MagicMock:
    """Build a requests.Response stand-in."""
    response = MagicMock(spec=requests.Response)
    response.status_code = status
    response.text = "" if payload is None else str(payload)
    if invalid_json:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.json.return_value = payload
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"HTTP {status}")
    return response


def make_points(values: list[float], start: Optional[datetime] = None, step_minutes: int = 15) -> list[dict]:
    """USGS ``{value, dateTime}`` points at a fixed cadence."""
    start = start or datetime(2024, 5, 1, tzinfo=timezone(timedelta(hours=-5)))
    return [
        {
            "value": str(v),
            "qualifiers": ["P"],
            "dateTime": (start + timedelta(minutes=i * step_minutes)).isoformat(timespec="milliseconds"),
        }
        for i, v in enumerate(values)
    ]


def make_series(
    site_id: str,
    parameter_code: str,
    points: list[dict],
    lat: float = 30.0,
    lng: float = -97.0,
    name: Optional[str] = None,
    unit: str = "ft3/s",
) -> dict:
    """One USGS IV timeSeries entry."""
    return {
        "sourceInfo": {
            "siteName": name or f"TEST RIVER AT SITE {site_id}",
            "siteCode": [{"value": site_id, "network": "NWIS", "agencyCode": "USGS"}],
            "geoLocation": {"geogLocation": {"srs": "EPSG:4326", "latitude": lat, "longitude": lng}},
        },
        "variable": {
            "variableCode": [{"value": parameter_code, "network": "NWIS"}],
            "variableName": f"Parameter {parameter_code}",
            "unit": {"unitCode": unit},
            "noDataValue": NO_DATA,
        },
        "values": [{"value": points}],
        "name": f"USGS:{site_id}:{parameter_code}:00000",
    }


def make_payload(*entries: dict) -> dict:
    return {"name": "ns1:timeSeriesResponseType", "value": {"timeSeries": list(entries)}}


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def two_station_payload() -> dict:
    """Two stations, one of which only has a malformed entry."""
    good = make_series("08158000", "00060", make_points([100, 110, 120]))
    malformed = make_series("08158050", "00065", make_points([4.0, 4.2]))
    malformed["sourceInfo"].pop("siteCode")
    return make_payload(good, malformed)


@pytest.fixture
def area_payload() -> dict:
    """
    Stations around (30.0, -97.0):

    - 08158000: flow + stage, ~0.9 miles away
    - 08158100: stage only, ~3.5 miles away
    - 08158200: water temperature only (no flow or stage)
    - 08159000: flow + stage but ~45 miles away
    """
    return make_payload(
        make_series("08158000", "00060", make_points([100, 100, 100, 100, 100, 150]), lat=30.01, lng=-97.01),
        make_series("08158000", "00065", make_points([5.0, 5.5, 6.0, 6.5, 7.0, 8.0]), lat=30.01, lng=-97.01, unit="ft"),
        make_series("08158100", "00065", make_points([2.0, 2.1, 2.2]), lat=30.05, lng=-97.0, unit="ft"),
        make_series("08158200", "00010", make_points([21.5, 21.7]), lat=30.02, lng=-97.0, unit="deg C"),
        make_series("08159000", "00060", make_points([300, 310]), lat=30.5, lng=-97.5),
        make_series("08159000", "00065", make_points([3.0, 3.1]), lat=30.5, lng=-97.5, unit="ft"),
    )


@pytest.fixture
def nwps_not_found_session() -> MagicMock:
    """Session whose NWPS lookups all return 404."""
    session = MagicMock(spec=requests.Session)
    session.get.return_value = make_response(404, {"code": 404, "message": "not found"})
    return session
