"""
Geo-Query Builder

Converts a center point and radius into the bounding box used to query the
spatially-indexed USGS Instantaneous Values service, plus the great-circle
distance used to trim the box back down to a circle.
"""

import math
from dataclasses import dataclass

MILES_PER_DEGREE_LAT = 69.0
EARTH_RADIUS_MILES = 3959.0
MIN_RADIUS_MILES = 0.1
MAX_RADIUS_MILES = 100.0
BBOX_DECIMALS = 7  # USGS rejects bBox values with more precision
_COS_EPSILON = 1e-6


@dataclass(frozen=True)
class Coordinate:
    """A latitude/longitude pair, always clamped to the valid globe."""
    lat: float
    lng: float

    @classmethod
    def clamped(cls, lat: float, lng: float) -> "Coordinate":
        return cls(lat=clamp(lat, -90.0, 90.0), lng=clamp(lng, -180.0, 180.0))

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lng": self.lng}


@dataclass(frozen=True)
class BoundingBox:
    """Rectangular lat/lng region."""
    min_lat: float
    min_lng: float
    max_lat: float
    max_lng: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lng <= lng <= self.max_lng

    def to_param(self) -> str:
        """Format as the USGS ``bBox`` parameter: west,south,east,north."""
        return ",".join(
            f"{v:.{BBOX_DECIMALS}f}"
            for v in (self.min_lng, self.min_lat, self.max_lng, self.max_lat)
        )


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def clamp_radius(radius_miles: float) -> float:
    return clamp(radius_miles, MIN_RADIUS_MILES, MAX_RADIUS_MILES)


def _floor_to_precision(value: float) -> float:
    scale = 10 ** BBOX_DECIMALS
    return math.floor(value * scale) / scale


def _ceil_to_precision(value: float) -> float:
    scale = 10 ** BBOX_DECIMALS
    return math.ceil(value * scale) / scale


def build_bounding_box(lat: float, lng: float, radius_miles: float) -> BoundingBox:
    """
    Build a bounding box around a center point.

    Uses the 69 miles-per-degree approximation for latitude and corrects the
    longitude span by cos(lat). Near the poles the cosine is floored so the
    longitude span stays finite before being clamped to the globe.

    Args:
        lat: Center latitude (clamped to [-90, 90])
        lng: Center longitude (clamped to [-180, 180])
        radius_miles: Search radius (clamped to [0.1, 100])

    Returns:
        BoundingBox containing the center, within global lat/lng ranges,
        with bounds capped at 7 decimal places.
    """
    center = Coordinate.clamped(lat, lng)
    radius = clamp_radius(radius_miles)

    lat_delta = radius / MILES_PER_DEGREE_LAT
    cos_lat = max(abs(math.cos(math.radians(center.lat))), _COS_EPSILON)
    lng_delta = radius / (MILES_PER_DEGREE_LAT * cos_lat)

    # Round outward so precision capping never pulls a bound past the center
    return BoundingBox(
        min_lat=clamp(_floor_to_precision(center.lat - lat_delta), -90.0, 90.0),
        min_lng=clamp(_floor_to_precision(center.lng - lng_delta), -180.0, 180.0),
        max_lat=clamp(_ceil_to_precision(center.lat + lat_delta), -90.0, 90.0),
        max_lng=clamp(_ceil_to_precision(center.lng + lng_delta), -180.0, 180.0),
    )


def haversine_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in miles."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
