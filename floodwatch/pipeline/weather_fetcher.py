"""
Fetches current weather and the precipitation outlook from the NOAA/NWS API.

The NWS API is navigated in hops: the points endpoint resolves a coordinate
to its forecast URL and its list of observation stations; the nearest
station's latest observation gives current conditions.
"""

import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Optional

import requests

from floodwatch.utils.config import config
from floodwatch.utils.exceptions import UpstreamTimeout, UpstreamUnavailable
from floodwatch.utils.http import create_session, raise_for_upstream_status

logger = logging.getLogger(__name__)

MS_TO_MPH = 2.237
DEFAULT_PRESSURE = 1013


@dataclass
class PrecipitationPeriod:
    """A forecast period that mentions rain or storms."""
    time: str
    forecast: str
    precipitation: float  # Probability of precipitation, 0-100


@dataclass
class CurrentConditions:
    """Latest observation, converted to US units."""
    temperature_f: Optional[float]
    humidity: Optional[float]
    pressure: float
    description: str
    icon: str
    wind_speed_mph: float
    wind_direction: float
    precipitation_last_hour: float


@dataclass
class WeatherData:
    """Current conditions plus precipitation forecast for a coordinate."""
    current: CurrentConditions
    precipitation: list[PrecipitationPeriod] = field(default_factory=list)
    location: dict = field(default_factory=dict)
    station: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def get_weather_icon(description: Optional[str]) -> str:
    """Map an NWS text description to an icon code."""
    if not description:
        return "01d"

    desc = description.lower()
    if "clear" in desc:
        return "01d"
    if "cloud" in desc:
        return "03d"
    if "rain" in desc:
        return "10d"
    if "snow" in desc:
        return "13d"
    if "thunder" in desc:
        return "11d"
    if "fog" in desc or "mist" in desc:
        return "50d"
    return "01d"


def _quantity(properties: dict, name: str) -> Optional[float]:
    """Read an NWS ``{"value": ..., "unitCode": ...}`` quantity."""
    raw = (properties.get(name) or {}).get("value")
    try:
        return float(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


def parse_observation(observation: dict) -> CurrentConditions:
    """Turn a latest-observation payload into CurrentConditions."""
    properties = observation.get("properties") or {}
    temp_c = _quantity(properties, "temperature")
    wind_ms = _quantity(properties, "windSpeed")
    description = properties.get("textDescription") or "Unknown"

    return CurrentConditions(
        temperature_f=temp_c * 9 / 5 + 32 if temp_c is not None else None,
        humidity=_quantity(properties, "relativeHumidity"),
        pressure=_quantity(properties, "barometricPressure") or DEFAULT_PRESSURE,
        description=description,
        icon=get_weather_icon(properties.get("textDescription")),
        wind_speed_mph=wind_ms * MS_TO_MPH if wind_ms is not None else 0.0,
        wind_direction=_quantity(properties, "windDirection") or 0.0,
        precipitation_last_hour=_quantity(properties, "precipitationLastHour") or 0.0,
    )


def parse_precipitation_periods(forecast: dict) -> list[PrecipitationPeriod]:
    """Keep forecast periods whose short forecast mentions rain or storms."""
    periods = (forecast.get("properties") or {}).get("periods") or []
    result = []
    for period in periods:
        short = (period.get("shortForecast") or "").lower()
        if "rain" not in short and "storm" not in short:
            continue
        probability = (period.get("probabilityOfPrecipitation") or {}).get("value")
        result.append(PrecipitationPeriod(
            time=period.get("startTime", ""),
            forecast=period.get("shortForecast", ""),
            precipitation=float(probability) if probability is not None else 0.0,
        ))
    return result


def precipitation_factor(periods: list[PrecipitationPeriod]) -> float:
    """Mean probability of precipitation across rainy periods, scaled to [0, 1]."""
    if not periods:
        return 0.0
    mean = sum(p.precipitation for p in periods) / len(periods)
    return max(0.0, min(1.0, mean / 100.0))


class WeatherFetcher:
    """Client for the NOAA/NWS weather API."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: Optional[float] = None):
        self.session = session or create_session(config.noaa.user_agent)
        self.timeout = timeout or config.noaa.timeout
        self.base_url = config.noaa.base_url

    def _get_json(self, url: str) -> Any:
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.Timeout as e:
            raise UpstreamTimeout(
                "Weather service request timed out. Please try again.", details=str(e)
            ) from e
        except requests.RequestException as e:
            raise UpstreamUnavailable(f"Weather service network error: {e}", details=str(e)) from e

        raise_for_upstream_status(response, "NOAA")

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamUnavailable("NOAA returned invalid JSON", status=response.status_code) from e

    def _points(self, lat: float, lng: float) -> dict:
        data = self._get_json(f"{self.base_url}/points/{lat:.4f},{lng:.4f}")
        properties = data.get("properties") if isinstance(data, dict) else None
        if not properties or not properties.get("forecast"):
            raise UpstreamUnavailable("NOAA points response missing forecast data", details=data)
        return properties

    def fetch_precipitation_forecast(self, lat: float, lng: float) -> list[PrecipitationPeriod]:
        """Fetch forecast periods with rain or storms for a coordinate."""
        points = self._points(lat, lng)
        forecast = self._get_json(points["forecast"])
        periods = parse_precipitation_periods(forecast if isinstance(forecast, dict) else {})
        logger.info(f"Found {len(periods)} rainy forecast periods for ({lat:.4f}, {lng:.4f})")
        return periods

    def fetch_current_weather(self, lat: float, lng: float) -> WeatherData:
        """
        Fetch the latest observation and the precipitation outlook.

        Raises:
            UpstreamTimeout, UpstreamRejected, UpstreamUnavailable
        """
        points = self._points(lat, lng)

        stations_url = points.get("observationStations")
        if not stations_url:
            raise UpstreamUnavailable("NOAA points response missing observation stations")
        stations = self._get_json(stations_url)
        features = stations.get("features") if isinstance(stations, dict) else None
        if not features:
            raise UpstreamUnavailable("No NOAA observation stations near this location")

        station_id = (features[0].get("properties") or {}).get("stationIdentifier")
        if not station_id:
            raise UpstreamUnavailable("NOAA observation station has no identifier")

        observation = self._get_json(f"{self.base_url}/stations/{station_id}/observations/latest")
        forecast = self._get_json(points["forecast"])

        return WeatherData(
            current=parse_observation(observation if isinstance(observation, dict) else {}),
            precipitation=parse_precipitation_periods(forecast if isinstance(forecast, dict) else {}),
            location={"lat": lat, "lng": lng},
            station=station_id,
        )
