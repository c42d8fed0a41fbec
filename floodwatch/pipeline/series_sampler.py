"""
Series Extractor / Sampler

Pulls one parameter's time series for one station out of a USGS IV payload,
orders it chronologically and thins it to a bounded number of points for
display, never dropping the most recent observation.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import pandas as pd

from floodwatch.utils.config import config
from .station_fetcher import (
    series_no_data_value,
    series_parameter_code,
    series_site_id,
    series_values,
    time_series_entries,
)

logger = logging.getLogger(__name__)


@dataclass
class SeriesPoint:
    """One observation: ISO-8601 timestamp and value (0 when unparsable)."""
    timestamp: str
    value: float


def _find_series(raw_response: Any, parameter_code: str, station_id: str) -> Optional[dict]:
    for entry in time_series_entries(raw_response):
        try:
            if series_parameter_code(entry) == parameter_code and series_site_id(entry) == station_id:
                return entry
        except (AttributeError, TypeError):
            continue
    return None


def extract_series(
    raw_response: Any,
    parameter_code: str,
    station_id: str,
    drop_missing: bool = False
) -> list[SeriesPoint]:
    """
    Extract a single parameter's series for a station, sorted ascending.

    Values that cannot be parsed (or equal the upstream no-data sentinel) are
    coerced to 0, or dropped when ``drop_missing`` is set. Points without a
    parsable timestamp are always dropped.

    Args:
        raw_response: Parsed USGS IV payload
        parameter_code: USGS parameter code (e.g., "00065")
        station_id: USGS site code
        drop_missing: Drop missing readings instead of zeroing them (used
            where a 0 would be read as a real measurement, e.g. flow trend)

    Returns:
        Chronologically ordered points; empty if the series is absent.
    """
    entry = _find_series(raw_response, parameter_code, station_id)
    if entry is None:
        logger.debug(f"No {parameter_code} series for site {station_id}")
        return []

    points = series_values(entry)
    if not points:
        return []

    df = pd.DataFrame({
        "timestamp": [p.get("dateTime") for p in points],
        "value": [p.get("value") for p in points],
    })
    df["value"] = pd.to_numeric(df["value"], errors="coerce").astype(float)

    no_data = series_no_data_value(entry)
    if no_data is not None:
        df.loc[df["value"] == no_data, "value"] = float("nan")

    if drop_missing:
        df = df[df["value"].notna()].copy()
    else:
        df["value"] = df["value"].fillna(0.0)

    df["parsed_time"] = pd.to_datetime(df["timestamp"], utc=True, errors="coerce", format="ISO8601")
    dropped = int(df["parsed_time"].isna().sum())
    if dropped:
        logger.debug(f"Dropped {dropped} points with unparsable timestamps for site {station_id}")
    df = df[df["parsed_time"].notna()].sort_values("parsed_time", kind="mergesort")

    return [
        SeriesPoint(timestamp=str(ts), value=float(value))
        for ts, value in zip(df["timestamp"], df["value"])
    ]


def downsample(
    points: list[SeriesPoint],
    min_points: Optional[int] = None,
    max_points: Optional[int] = None
) -> list[SeriesPoint]:
    """
    Thin a chronological series to at most ``max_points`` (plus the last point).

    target = clamp(total, min_points, max_points); every
    floor(total / target)-th point is kept, and the final point is appended if
    the stride skipped it. Short series come back unchanged.
    """
    if min_points is None:
        min_points = config.sampling.min_points
    if max_points is None:
        max_points = config.sampling.max_points

    total = len(points)
    if total == 0:
        return []

    target = min(max_points, max(min_points, total))
    stride = max(1, total // target)

    sampled = list(points[::stride])
    if (total - 1) % stride != 0:
        sampled.append(points[-1])

    if stride > 1:
        logger.debug(f"Sampled {len(sampled)} points from {total} total points")
    return sampled


def sample_series(raw_response: Any, parameter_code: str, station_id: str) -> list[SeriesPoint]:
    """Extract and downsample in one step."""
    return downsample(extract_series(raw_response, parameter_code, station_id))


def build_historical_data(
    stage_points: list[SeriesPoint],
    flow_points: list[SeriesPoint]
) -> list[dict]:
    """
    Pair sampled stage points with the discharge observed at the same instant.

    Returns:
        List of {"timestamp", "level", "flow"} dicts; flow is 0 when no
        discharge reading shares the timestamp.
    """
    flow_by_time = {p.timestamp: p.value for p in flow_points}
    return [
        {
            "timestamp": p.timestamp,
            "level": p.value,
            "flow": flow_by_time.get(p.timestamp, 0.0),
        }
        for p in stage_points
    ]
