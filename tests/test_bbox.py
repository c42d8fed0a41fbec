"""Tests for the bounding box builder and distance helpers."""

import math

import pytest

from floodwatch.pipeline.bbox import (
    BoundingBox,
    Coordinate,
    build_bounding_box,
    clamp_radius,
    haversine_miles,
)


class TestBuildBoundingBox:
    """Tests for build_bounding_box"""

    def test_austin_ten_miles(self):
        """Latitude span is radius/69, longitude span corrected by cos(lat)"""
        bbox = build_bounding_box(30.0, -97.0, 10)

        lat_delta = 10 / 69
        lng_delta = lat_delta / math.cos(math.radians(30))

        assert bbox.min_lat == pytest.approx(30 - lat_delta, abs=1e-6)
        assert bbox.max_lat == pytest.approx(30 + lat_delta, abs=1e-6)
        assert bbox.min_lng == pytest.approx(-97 - lng_delta, abs=1e-6)
        assert bbox.max_lng == pytest.approx(-97 + lng_delta, abs=1e-6)

    @pytest.mark.parametrize("lat,lng,radius", [
        (0.0, 0.0, 1),
        (30.0, -97.0, 10),
        (-45.5, 170.25, 100),
        (89.9, -179.9, 50),
        (-90.0, 180.0, 0.1),
        (64.8, -147.7, 75),
    ])
    def test_contains_center_and_stays_on_globe(self, lat, lng, radius):
        """The box always contains its center and never leaves the valid ranges"""
        bbox = build_bounding_box(lat, lng, radius)

        assert bbox.contains(lat, lng)
        assert -90 <= bbox.min_lat <= bbox.max_lat <= 90
        assert -180 <= bbox.min_lng <= bbox.max_lng <= 180

    def test_pole_longitude_spans_globe(self):
        """At the pole the longitude span is clamped rather than infinite"""
        bbox = build_bounding_box(90.0, 10.0, 10)

        assert bbox.min_lng == -180.0
        assert bbox.max_lng == 180.0
        assert bbox.max_lat == 90.0

    def test_out_of_range_center_is_clamped(self):
        bbox = build_bounding_box(120.0, -250.0, 5)

        assert bbox.contains(90.0, -180.0)

    def test_param_has_seven_decimals(self):
        """USGS bBox is west,south,east,north with at most 7 decimals"""
        bbox = build_bounding_box(30.123456789, -97.987654321, 3.3)

        parts = bbox.to_param().split(",")
        assert len(parts) == 4
        assert all(len(p.split(".")[1]) == 7 for p in parts)
        assert float(parts[0]) == bbox.min_lng
        assert float(parts[1]) == bbox.min_lat

    def test_param_order(self):
        bbox = BoundingBox(min_lat=1.0, min_lng=2.0, max_lat=3.0, max_lng=4.0)

        assert bbox.to_param() == "2.0000000,1.0000000,4.0000000,3.0000000"


class TestRadius:
    """Tests for radius clamping"""

    def test_clamps_small_and_large(self):
        assert clamp_radius(0) == 0.1
        assert clamp_radius(-5) == 0.1
        assert clamp_radius(500) == 100.0
        assert clamp_radius(25) == 25

    def test_zero_radius_box_still_contains_center(self):
        bbox = build_bounding_box(40.0, -75.0, 0)

        assert bbox.min_lat < 40.0 < bbox.max_lat


class TestHaversine:
    """Tests for great-circle distance"""

    def test_same_point(self):
        assert haversine_miles(30.0, -97.0, 30.0, -97.0) == 0.0

    def test_one_degree_latitude(self):
        """One degree of latitude is about 69 miles"""
        assert haversine_miles(30.0, -97.0, 31.0, -97.0) == pytest.approx(69.1, abs=0.1)

    def test_symmetric(self):
        a = haversine_miles(30.0, -97.0, 30.5, -97.5)
        b = haversine_miles(30.5, -97.5, 30.0, -97.0)
        assert a == pytest.approx(b)


class TestCoordinate:
    def test_clamped(self):
        coord = Coordinate.clamped(95.0, -181.0)

        assert coord.to_dict() == {"lat": 90.0, "lng": -180.0}
