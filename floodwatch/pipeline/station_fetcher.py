"""
Fetches live gauge telemetry from the USGS Instantaneous Values service.

One bounding-box query returns a time series per (station x parameter);
entries are grouped back into one record per station. Requests are retried a
fixed number of times with a fixed delay; 4xx answers are final.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

import pandas as pd
import requests

from floodwatch.utils.config import config
from floodwatch.utils.exceptions import (
    UpstreamError,
    UpstreamRejected,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from floodwatch.utils.http import create_session, raise_for_upstream_status
from .bbox import BoundingBox

logger = logging.getLogger(__name__)


@dataclass
class ParameterReading:
    """Latest reading of one parameter at one station."""
    code: str
    name: str
    unit: str
    value: Optional[float]
    date_time: Optional[str]
    point_count: int = 0


@dataclass
class RawStation:
    """A station as grouped from the upstream payload, before enrichment."""
    site_id: str
    name: str
    latitude: Optional[float]
    longitude: Optional[float]
    parameters: dict[str, ParameterReading] = field(default_factory=dict)

    def reading(self, code: str) -> Optional[ParameterReading]:
        return self.parameters.get(code)

    def latest_value(self, code: str) -> Optional[float]:
        reading = self.parameters.get(code)
        return reading.value if reading is not None else None


def _safe_float(value: Any) -> Optional[float]:
    """Safely convert a value to float, returning None if not possible."""
    if value is None:
        return None
    try:
        return float(value)
    except (ValueError, TypeError):
        return None


def _first(items: Any) -> Optional[dict]:
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return None


def series_site_id(entry: dict) -> Optional[str]:
    """Site code of a timeSeries entry, or None if the entry is malformed."""
    site_code = _first((entry.get("sourceInfo") or {}).get("siteCode"))
    value = site_code.get("value") if site_code else None
    return str(value) if value else None


def series_parameter_code(entry: dict) -> Optional[str]:
    """Parameter code of a timeSeries entry, or None if the entry is malformed."""
    variable_code = _first((entry.get("variable") or {}).get("variableCode"))
    value = variable_code.get("value") if variable_code else None
    return str(value) if value else None


def series_values(entry: dict) -> list[dict]:
    """Raw ``{value, dateTime}`` points of a timeSeries entry (possibly empty)."""
    block = _first(entry.get("values"))
    points = block.get("value") if block else None
    return [p for p in points if isinstance(p, dict)] if isinstance(points, list) else []


def series_no_data_value(entry: dict) -> Optional[float]:
    return _safe_float((entry.get("variable") or {}).get("noDataValue"))


def _latest_reading(code: str, entry: dict) -> ParameterReading:
    """Pick the chronologically latest usable point of a series."""
    variable = entry.get("variable") or {}
    no_data = series_no_data_value(entry)
    points = series_values(entry)

    rows = []
    for point in points:
        value = _safe_float(point.get("value"))
        date_time = point.get("dateTime")
        if value is None or date_time is None or value == no_data:
            continue
        rows.append((str(date_time), value))

    latest_value = None
    latest_time = None
    if rows:
        # Offsets shift across DST inside the window, so compare as UTC instants
        df = pd.DataFrame(rows, columns=["timestamp", "value"])
        df["parsed_time"] = pd.to_datetime(df["timestamp"], utc=True, errors="coerce", format="ISO8601")
        df = df[df["parsed_time"].notna()].sort_values("parsed_time", kind="mergesort")
        if not df.empty:
            latest = df.iloc[-1]
            latest_time = str(latest["timestamp"])
            latest_value = float(latest["value"])

    return ParameterReading(
        code=code,
        name=variable.get("variableName", ""),
        unit=(variable.get("unit") or {}).get("unitCode", ""),
        value=latest_value,
        date_time=latest_time,
        point_count=len(points),
    )


def group_by_station(payload: dict) -> list[RawStation]:
    """
    Group a USGS IV payload into one RawStation per site code.

    Entries without a site code or a variable code are skipped; the rest of
    the batch is kept.

    Args:
        payload: Parsed JSON from the IV service

    Returns:
        Stations in first-seen order.
    """
    stations: dict[str, RawStation] = {}
    skipped = 0

    for idx, entry in enumerate(time_series_entries(payload)):
        try:
            site_id = series_site_id(entry)
            parameter_code = series_parameter_code(entry)
            if not site_id or not parameter_code:
                logger.debug(f"Skipping timeSeries entry at index {idx}: missing site or variable code")
                skipped += 1
                continue

            if site_id not in stations:
                source_info = entry.get("sourceInfo") or {}
                geog = (source_info.get("geoLocation") or {}).get("geogLocation") or {}
                stations[site_id] = RawStation(
                    site_id=site_id,
                    name=source_info.get("siteName") or f"Site {site_id}",
                    latitude=_safe_float(geog.get("latitude")),
                    longitude=_safe_float(geog.get("longitude")),
                )

            stations[site_id].parameters[parameter_code] = _latest_reading(parameter_code, entry)
        except (AttributeError, TypeError) as e:
            logger.debug(f"Error parsing timeSeries entry at index {idx}: {e}")
            skipped += 1

    if skipped:
        logger.warning(f"Skipped {skipped} malformed timeSeries entries")
    logger.info(f"Grouped timeSeries into {len(stations)} stations")

    return list(stations.values())


def _raw_time_series(payload: Any) -> Optional[list]:
    value = payload.get("value") if isinstance(payload, dict) else None
    series = value.get("timeSeries") if isinstance(value, dict) else None
    return series if isinstance(series, list) else None


def time_series_entries(payload: Any) -> list[dict]:
    """The ``value.timeSeries`` list of a payload, or an empty list."""
    series = _raw_time_series(payload)
    if series is None:
        return []
    return [entry for entry in series if isinstance(entry, dict)]


class StationFetcher:
    """Client for the USGS Instantaneous Values service."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        max_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
        timeout: Optional[float] = None
    ):
        """
        Initialize the fetcher.

        Args:
            session: HTTP session (default: pooled session from create_session)
            sleep: Function used to wait between attempts
            max_attempts: Total attempts per request (default: from config)
            retry_delay: Seconds between attempts (default: from config)
            timeout: Per-request timeout in seconds (default: from config)
        """
        self.session = session or create_session()
        self._sleep = sleep
        self.max_attempts = max_attempts or config.usgs.max_attempts
        self.retry_delay = config.usgs.retry_delay if retry_delay is None else retry_delay
        self.timeout = timeout or config.usgs.timeout
        self.url = f"{config.usgs.base_url}/iv/"

    def fetch_payload(
        self,
        bbox: BoundingBox,
        parameter_codes: Optional[Iterable[str]] = None
    ) -> dict:
        """Fetch the raw IV payload for every stream site inside ``bbox``."""
        params = self._base_params(parameter_codes)
        params["bBox"] = bbox.to_param()
        params["siteType"] = config.usgs.site_type
        logger.info(f"Requesting USGS IV data with bBox={params['bBox']}")
        return self._get_with_retry(params)

    def fetch_site_payload(
        self,
        site_id: str,
        parameter_codes: Optional[Iterable[str]] = None
    ) -> dict:
        """Fetch the raw IV payload for a single site."""
        params = self._base_params(parameter_codes)
        params["sites"] = site_id
        logger.info(f"Requesting USGS IV data for site {site_id}")
        return self._get_with_retry(params)

    def fetch_stations(
        self,
        bbox: BoundingBox,
        parameter_codes: Optional[Iterable[str]] = None
    ) -> list[RawStation]:
        """
        Fetch and group all stations inside a bounding box.

        Raises:
            UpstreamError: after the retry policy is exhausted, or immediately
                for a 4xx answer.
        """
        return group_by_station(self.fetch_payload(bbox, parameter_codes))

    def _base_params(self, parameter_codes: Optional[Iterable[str]]) -> dict:
        codes = list(parameter_codes) if parameter_codes else list(config.usgs.parameter_codes)
        return {
            "format": "json",
            "parameterCd": ",".join(codes),
            "period": config.usgs.period,
        }

    def _get_with_retry(self, params: dict) -> dict:
        last_error: Optional[UpstreamError] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                start_time = time.time()
                response = self.session.get(self.url, params=params, timeout=self.timeout)
                elapsed = time.time() - start_time
            except requests.Timeout as e:
                last_error = UpstreamTimeout(
                    f"USGS request timed out after {self.timeout}s", details=str(e)
                )
            except requests.RequestException as e:
                last_error = UpstreamUnavailable(f"USGS network error: {e}", details=str(e))
            else:
                try:
                    raise_for_upstream_status(response, "USGS")
                except UpstreamRejected as e:
                    logger.error(f"USGS rejected request (HTTP {e.status}): {e.details}")
                    raise
                except UpstreamUnavailable as e:
                    last_error = e
                else:
                    logger.info(f"USGS responded in {elapsed:.1f}s (attempt {attempt})")
                    return self._parse_payload(response)

            if attempt < self.max_attempts:
                logger.warning(
                    f"USGS attempt {attempt}/{self.max_attempts} failed: {last_error.message}; "
                    f"retrying in {self.retry_delay:.0f}s"
                )
                self._sleep(self.retry_delay)

        logger.error(f"USGS request failed after {self.max_attempts} attempts: {last_error.message}")
        raise last_error

    @staticmethod
    def _parse_payload(response: requests.Response) -> dict:
        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamUnavailable(
                "USGS returned invalid JSON", status=response.status_code, details=str(e)
            ) from e

        if _raw_time_series(payload) is None:
            raise UpstreamUnavailable(
                "USGS API returned unexpected structure",
                status=response.status_code,
                details=payload if isinstance(payload, dict) else str(payload)[:500],
            )
        return payload
