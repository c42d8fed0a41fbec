"""
Exceptions for FloodWatch operations.

Every error carries a machine-readable ``code`` and the HTTP ``status_code``
it maps to, so callers can turn it into a structured error body.
"""

from typing import Any, Optional


class FloodWatchError(Exception):
    """Base exception for FloodWatch errors."""

    code = "GENERAL_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(FloodWatchError):
    """Malformed coordinates, radius or site id. Raised before any network call."""

    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message, details=list(errors or []))
        self.errors = list(errors or [])


class UpstreamError(FloodWatchError):
    """Error talking to an upstream provider (USGS, NWPS, NOAA)."""

    code = "EXTERNAL_API_ERROR"
    status_code = 500

    def __init__(self, message: str, status: Optional[int] = None, details: Any = None):
        super().__init__(message, details=details)
        self.status = status


class UpstreamTimeout(UpstreamError):
    """Upstream call did not answer within its timeout."""

    code = "EXTERNAL_API_TIMEOUT"
    status_code = 408


class UpstreamRejected(UpstreamError):
    """Upstream answered 4xx. Not retried."""

    code = "EXTERNAL_API_REJECTED"


class UpstreamUnavailable(UpstreamError):
    """Upstream answered 5xx, dropped the connection, or sent an unexpected shape."""

    pass


class PartialStationFailure(FloodWatchError):
    """Enrichment of a single station failed; the station is left out of the batch."""

    def __init__(self, station_id: str, cause: Exception):
        super().__init__(f"Station {station_id} enrichment failed: {cause}")
        self.station_id = station_id
        self.cause = cause


class RateLimited(FloodWatchError):
    """Local gate tripped before dispatching to an upstream endpoint class."""

    code = "RATE_LIMIT_EXCEEDED"
    status_code = 429

    def __init__(self, endpoint_class: str, retry_after: float):
        super().__init__(
            "Too many requests. Please try again in a moment.",
            details={"endpoint": endpoint_class, "retryAfter": round(retry_after, 3)},
        )
        self.endpoint_class = endpoint_class
        self.retry_after = retry_after
