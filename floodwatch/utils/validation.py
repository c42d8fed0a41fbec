"""
Input validation for coordinates, search radius and USGS site ids.

Every validator raises ValidationError listing all violated constraints, so
callers can reject a request before any upstream call is made.
"""

import math
import re
from typing import Any, Optional

from .exceptions import ValidationError

MIN_RADIUS = 0.1
MAX_RADIUS = 100.0
SITE_ID_PATTERN = re.compile(r"^\d{8,15}$")


def _parse_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def validate_coordinates(lat: Any, lng: Any) -> tuple[float, float]:
    """
    Parse and range-check a latitude/longitude pair.

    Returns:
        (lat, lng) as floats.

    Raises:
        ValidationError: with one message per violated constraint.
    """
    errors = []

    lat_num = _parse_number(lat)
    if lat_num is None:
        errors.append("Latitude must be a valid number")
    elif not -90 <= lat_num <= 90:
        errors.append("Latitude must be between -90 and 90 degrees")

    lng_num = _parse_number(lng)
    if lng_num is None:
        errors.append("Longitude must be a valid number")
    elif not -180 <= lng_num <= 180:
        errors.append("Longitude must be between -180 and 180 degrees")

    if errors:
        raise ValidationError("Invalid coordinates", errors)
    return lat_num, lng_num


def validate_radius(radius: Any, min_radius: float = MIN_RADIUS, max_radius: float = MAX_RADIUS) -> float:
    """Parse a radius in miles and clamp it to [min_radius, max_radius]."""
    radius_num = _parse_number(radius)
    if radius_num is None:
        raise ValidationError("Invalid radius", ["Radius must be a valid number"])
    return max(min_radius, min(max_radius, radius_num))


def validate_site_id(site_id: Any) -> str:
    """Check that a USGS site id is 8-15 digits."""
    if site_id is None or (isinstance(site_id, str) and not site_id.strip()):
        raise ValidationError("Invalid site ID", ["Site ID is required"])

    value = str(site_id).strip()
    if not SITE_ID_PATTERN.match(value):
        raise ValidationError("Invalid site ID", ["Site ID must be 8-15 digits"])
    return value
