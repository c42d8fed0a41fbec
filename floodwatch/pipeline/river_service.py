"""
River Service

Wires the pipeline together for each request:
validate -> cache -> bounding box -> USGS fetch -> per-station
enrichment in a thread pool (series, trend, flood stages, risk) -> assemble.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Optional

import requests
from tqdm import tqdm

from floodwatch.utils.cache import ResponseCache, RateLimiter
from floodwatch.utils.config import config
from floodwatch.utils.exceptions import (
    PartialStationFailure,
    RateLimited,
    UpstreamError,
)
from floodwatch.utils.http import create_session
from floodwatch.utils.validation import validate_coordinates, validate_radius, validate_site_id
from . import weather_fetcher
from .bbox import Coordinate, build_bounding_box, haversine_miles
from .flood_thresholds import (
    FloodStageSet,
    determine_flood_status,
    determine_risk_label,
    resolve_flood_stages,
)
from .risk_scorer import RiskScore, determine_risk_level, score_risk
from .series_sampler import build_historical_data, downsample, extract_series
from .station_fetcher import (
    RawStation,
    StationFetcher,
    group_by_station,
    series_parameter_code,
    series_site_id,
    series_values,
    time_series_entries,
)
from .trend_detector import TrendResult, calculate_flow_trend, summarize_trends
from .weather_fetcher import PrecipitationPeriod, WeatherData, WeatherFetcher

logger = logging.getLogger(__name__)

MAX_STATIONS = 200
MAX_STATIONS_WIDE = 100   # Cap when the radius exceeds WIDE_RADIUS_MILES
WIDE_RADIUS_MILES = 25.0


@dataclass
class Station:
    """A fully enriched monitoring station, built fresh for each request."""
    id: str
    name: str
    location: Coordinate
    distance: float
    flow: Optional[float]
    stage: Optional[float]
    unit: Optional[str]
    last_updated: Optional[str]
    flood_stages: FloodStageSet
    risk: RiskScore
    risk_level: str
    flood_status: str
    trend: TrendResult
    water_temp: Optional[float] = None
    precipitation: Optional[float] = None
    historical_data: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location.to_dict(),
            "distance": round(self.distance, 2),
            "flow": self.flow,
            "stage": self.stage,
            "unit": self.unit,
            "lastUpdated": self.last_updated,
            "historicalData": self.historical_data,
            "floodStages": self.flood_stages.to_dict(),
            "waterTemp": self.water_temp,
            "precipitation": self.precipitation,
            "riskScore": round(self.risk.score, 2),
            "riskFactors": self.risk.to_dict(),
            "riskLevel": self.risk_level,
            "floodStatus": self.flood_status,
            "flowTrend": self.trend.label,
            "flowTrendRate": self.trend.flow_trend,
        }


@dataclass
class FloodStatus:
    """Flood stage summary for a single site."""
    site_id: str
    current_stage: Optional[float]
    flood_stages: FloodStageSet
    status: str
    risk: str

    def to_dict(self) -> dict:
        return {
            "siteId": self.site_id,
            "currentStage": self.current_stage,
            "floodStages": self.flood_stages.to_dict(),
            "status": self.status,
            "risk": self.risk,
        }


def station_cap(radius: float) -> int:
    """Maximum number of stations returned for a search radius."""
    return MAX_STATIONS_WIDE if radius > WIDE_RADIUS_MILES else MAX_STATIONS


class RiverService:
    """Per-request orchestration of the flood-risk pipeline."""

    def __init__(
        self,
        fetcher: Optional[StationFetcher] = None,
        weather: Optional[WeatherFetcher] = None,
        cache: Optional[ResponseCache] = None,
        rate_limiter: Optional[RateLimiter] = None,
        session: Optional[requests.Session] = None,
        max_workers: Optional[int] = None,
        show_progress: bool = False
    ):
        """
        Initialize the service.

        Args:
            fetcher: USGS client (default: StationFetcher sharing ``session``)
            weather: NOAA client (default: WeatherFetcher)
            cache: Response cache (default: a new ResponseCache)
            rate_limiter: Upstream gate (default: spacing from config)
            session: HTTP session used for NWPS flood-stage lookups
            max_workers: Thread pool size for station enrichment
            show_progress: Show a tqdm progress bar over the fan-out
        """
        self.session = session or create_session()
        self.fetcher = fetcher or StationFetcher(session=self.session)
        self.weather = weather or WeatherFetcher()
        # An empty ResponseCache is falsy, so test against None explicitly
        self.cache = cache if cache is not None else ResponseCache()
        if rate_limiter is None:
            rate_limiter = RateLimiter(
                config.cache.spacing_by_class(),
                default_spacing=config.cache.rate_limit_seconds,
            )
        self.rate_limiter = rate_limiter
        self.max_workers = max_workers if max_workers is not None else config.max_workers
        self.show_progress = show_progress

    # ------------------------------------------------------------------
    # Nearby stations
    # ------------------------------------------------------------------

    def get_nearby_stations(self, lat: Any, lng: Any, radius: Any) -> dict:
        """
        Find monitored river stations around a point, enriched with flood risk.

        Args:
            lat: Center latitude
            lng: Center longitude
            radius: Search radius in miles (clamped to [0.1, 100])

        Returns:
            {"rivers": [...], "totalFound": n, "radius": r, "message": str}

        Raises:
            ValidationError: for malformed input, before any network call
            UpstreamError: if the USGS fetch fails after retries
        """
        lat, lng = validate_coordinates(lat, lng)
        radius = validate_radius(radius)

        key = ResponseCache.make_key("rivers", lat, lng, radius)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"Cache hit for nearby stations at ({lat:.4f}, {lng:.4f}) r={radius}")
            return cached

        bbox = build_bounding_box(lat, lng, radius)
        payload = self.fetcher.fetch_payload(bbox)
        raw_stations = group_by_station(payload)
        logger.info(f"Found {len(raw_stations)} stations in bounding box {bbox.to_param()}")

        precipitation, precipitation_known = self._precipitation_outlook(lat, lng)
        center = Coordinate(lat=lat, lng=lng)

        stations = self._enrich_stations(raw_stations, payload, center, radius, precipitation)
        stations.sort(key=lambda s: s.distance)

        total_found = len(stations)
        stations = stations[:station_cap(radius)]
        summarize_trends({s.id: s.trend for s in stations})

        result = {
            "rivers": [s.to_dict() for s in stations],
            "totalFound": total_found,
            "radius": radius,
            "message": f"Found {total_found} river monitoring stations within {radius:g} miles",
        }

        if precipitation_known:
            self.cache.set(key, result, config.cache.station_ttl_seconds)
        else:
            logger.info("Precipitation outlook was rate-limited, not caching nearby result")
        return result

    def _enrich_stations(
        self,
        raw_stations: list[RawStation],
        payload: dict,
        center: Coordinate,
        radius: float,
        precipitation: float
    ) -> list[Station]:
        stations = []
        failures = 0

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(self._build_station, raw, payload, center, radius, precipitation): raw.site_id
                for raw in raw_stations
            }

            for future in tqdm(
                as_completed(futures),
                total=len(futures),
                desc="Enriching stations",
                disable=not self.show_progress
            ):
                site_id = futures[future]
                try:
                    station = future.result()
                except Exception as e:
                    failure = PartialStationFailure(site_id, e)
                    logger.warning(failure.message)
                    failures += 1
                    continue
                if station is not None:
                    stations.append(station)

        if failures:
            logger.warning(f"{failures} of {len(raw_stations)} stations failed enrichment")
        logger.info(f"Enriched {len(stations)} stations within {radius:g} miles")
        return stations

    def _build_station(
        self,
        raw: RawStation,
        payload: dict,
        center: Coordinate,
        radius: float,
        precipitation: float
    ) -> Optional[Station]:
        """Enrich one station, or return None if it is out of range or has no data."""
        flow_reading = raw.reading(config.usgs.discharge_param)
        stage_reading = raw.reading(config.usgs.gage_height_param)
        flow = flow_reading.value if flow_reading else None
        stage = stage_reading.value if stage_reading else None

        if flow is None and stage is None:
            return None
        if raw.latitude is None or raw.longitude is None:
            logger.debug(f"Station {raw.site_id} has no location, skipping")
            return None

        distance = haversine_miles(center.lat, center.lng, raw.latitude, raw.longitude)
        if not math.isfinite(distance) or distance > radius:
            return None

        stage_points = downsample(extract_series(payload, config.usgs.gage_height_param, raw.site_id))
        flow_points = extract_series(payload, config.usgs.discharge_param, raw.site_id)
        trend = calculate_flow_trend(
            extract_series(payload, config.usgs.discharge_param, raw.site_id, drop_missing=True)
        )

        flood_stages = resolve_flood_stages(raw.site_id, stage, session=self.session)
        if stage is not None:
            risk = score_risk(stage, flood_stages, trend.flow_trend, precipitation)
        else:
            risk = RiskScore.zero()

        units = [r.unit for r in (flow_reading, stage_reading) if r is not None and r.unit]
        times = [r.date_time for r in (flow_reading, stage_reading) if r is not None and r.date_time]

        return Station(
            id=raw.site_id,
            name=raw.name,
            location=Coordinate(lat=raw.latitude, lng=raw.longitude),
            distance=distance,
            flow=flow,
            stage=stage,
            unit=units[0] if units else None,
            last_updated=times[0] if times else None,
            flood_stages=flood_stages,
            risk=risk,
            risk_level=determine_risk_level(risk.score, stage, flood_stages),
            flood_status=determine_flood_status(stage, flood_stages),
            trend=trend,
            water_temp=raw.latest_value(config.usgs.water_temp_param),
            precipitation=raw.latest_value(config.usgs.precipitation_param),
            historical_data=build_historical_data(stage_points, flow_points),
        )

    def _precipitation_outlook(self, lat: float, lng: float) -> tuple[float, bool]:
        """
        Precipitation factor for the risk model.

        Returns:
            (factor, known). The factor is 0 if the forecast is unavailable;
            ``known`` is False only when the lookup was rate-limited, since a
            later request could still get the real outlook.
        """
        try:
            periods = self.get_precipitation(lat, lng)
        except RateLimited as e:
            logger.warning(f"Precipitation forecast rate-limited, assuming none: {e.message}")
            return 0.0, False
        except UpstreamError as e:
            logger.warning(f"Precipitation forecast unavailable, assuming none: {e.message}")
            return 0.0, True
        return weather_fetcher.precipitation_factor(periods), True

    # ------------------------------------------------------------------
    # Single site
    # ------------------------------------------------------------------

    def get_flood_stage(self, site_id: Any) -> FloodStatus:
        """
        Current stage, flood thresholds, status and coarse risk for one site.

        Raises:
            ValidationError: for malformed site ids
            UpstreamError: if the USGS fetch fails after retries
        """
        site_id = validate_site_id(site_id)
        payload = self.fetcher.fetch_site_payload(site_id, [config.usgs.gage_height_param])

        stations = {s.site_id: s for s in group_by_station(payload)}
        station = stations.get(site_id)
        current_stage = station.latest_value(config.usgs.gage_height_param) if station else None

        flood_stages = resolve_flood_stages(site_id, current_stage, session=self.session)
        status = FloodStatus(
            site_id=site_id,
            current_stage=current_stage,
            flood_stages=flood_stages,
            status=determine_flood_status(current_stage, flood_stages),
            risk=determine_risk_label(current_stage, flood_stages),
        )
        logger.info(f"Site {site_id}: stage={current_stage} status={status.status} ({flood_stages.source})")
        return status

    def get_flow_data(self, site_id: Any) -> list[dict]:
        """
        Raw 7-day discharge and stage series for one site, one entry per parameter.

        Raises:
            ValidationError: for malformed site ids
            UpstreamError: if the USGS fetch fails after retries
        """
        site_id = validate_site_id(site_id)
        codes = [config.usgs.discharge_param, config.usgs.gage_height_param]
        payload = self.fetcher.fetch_site_payload(site_id, codes)

        flow_data = []
        for entry in time_series_entries(payload):
            variable = entry.get("variable") or {}
            flow_data.append({
                "siteId": series_site_id(entry),
                "siteName": (entry.get("sourceInfo") or {}).get("siteName"),
                "parameterCode": series_parameter_code(entry),
                "parameter": variable.get("variableName"),
                "unit": (variable.get("unit") or {}).get("unitCode"),
                "values": [
                    {
                        "time": point.get("dateTime"),
                        "value": point.get("value"),
                        "qualifiers": point.get("qualifiers", []),
                    }
                    for point in series_values(entry)
                ],
            })
        return flow_data

    # ------------------------------------------------------------------
    # Weather
    # ------------------------------------------------------------------

    def get_current_weather(self, lat: Any, lng: Any) -> WeatherData:
        """
        Current conditions and precipitation forecast, cached per coordinate.

        Raises:
            ValidationError, RateLimited, UpstreamError
        """
        lat, lng = validate_coordinates(lat, lng)

        key = ResponseCache.make_key("weather", lat, lng)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"Cache hit for weather at ({lat:.4f}, {lng:.4f})")
            return cached

        self.rate_limiter.acquire("weather")
        weather = self.weather.fetch_current_weather(lat, lng)

        self.cache.set(key, weather, config.cache.weather_ttl_seconds)
        return weather

    def get_precipitation(self, lat: Any, lng: Any) -> list[PrecipitationPeriod]:
        """
        Forecast periods that mention rain or storms.

        Raises:
            ValidationError, RateLimited, UpstreamError
        """
        lat, lng = validate_coordinates(lat, lng)

        key = ResponseCache.make_key("precipitation", lat, lng)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        self.rate_limiter.acquire("precipitation")
        periods = self.weather.fetch_precipitation_forecast(lat, lng)

        self.cache.set(key, periods, config.cache.weather_ttl_seconds)
        return periods

    def close(self) -> None:
        """Release pooled HTTP connections."""
        self.session.close()
        if self.weather.session is not self.session:
            self.weather.session.close()
        if self.fetcher.session is not self.session:
            self.fetcher.session.close()
