"""Utility modules for the FloodWatch river monitor."""

from .config import config, Config
from .cache import ResponseCache, RateLimiter
from .http import create_session
from .exceptions import (
    FloodWatchError,
    ValidationError,
    UpstreamError,
    UpstreamTimeout,
    UpstreamRejected,
    UpstreamUnavailable,
    PartialStationFailure,
    RateLimited,
)
from .validation import validate_coordinates, validate_radius, validate_site_id
