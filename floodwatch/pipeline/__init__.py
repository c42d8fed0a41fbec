"""
Flood-risk pipeline

Turns a center point and radius into a list of nearby river gauges, each
enriched with a sampled stage history, flow trend, flood stage thresholds
(official NWPS set or a calculated fallback) and a weighted risk score.
"""

from .bbox import Coordinate, BoundingBox, build_bounding_box, haversine_miles
from .station_fetcher import StationFetcher, RawStation, group_by_station
from .series_sampler import SeriesPoint, extract_series, downsample, sample_series
from .trend_detector import calculate_flow_trend, TrendResult
from .flood_thresholds import (
    FloodStageSet,
    resolve_flood_stages,
    calculate_fallback_flood_stages,
    determine_flood_status
)
from .risk_scorer import score_risk, RiskScore
from .weather_fetcher import WeatherFetcher, WeatherData, PrecipitationPeriod
from .river_service import RiverService, Station, FloodStatus
