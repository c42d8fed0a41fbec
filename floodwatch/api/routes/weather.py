"""Weather routes backed by the NOAA/NWS API."""

from dataclasses import asdict

from fastapi import APIRouter, Depends

from floodwatch.api.dependencies import get_river_service
from floodwatch.api.responses import success_body
from floodwatch.pipeline.river_service import RiverService

router = APIRouter(prefix="/weather", tags=["weather"])


@router.get("/current/{lat}/{lng}")
def get_current_weather(
    lat: str,
    lng: str,
    service: RiverService = Depends(get_river_service),
) -> dict:
    """Get current conditions and the rain forecast for a location."""
    weather = service.get_current_weather(lat, lng)
    meta = {
        "coordinates": weather.location,
        "dataSource": "NOAA/NWS Real-time",
        "station": weather.station,
    }
    return success_body(weather.to_dict(), "Current weather data", meta)


@router.get("/precipitation/{lat}/{lng}")
def get_precipitation(
    lat: str,
    lng: str,
    service: RiverService = Depends(get_river_service),
) -> dict:
    """Get forecast periods that mention rain or storms."""
    periods = service.get_precipitation(lat, lng)
    meta = {
        "coordinates": {"lat": float(lat), "lng": float(lng)},
        "dataSource": "NOAA/NWS Forecast",
        "periods": len(periods),
    }
    return success_body([asdict(p) for p in periods], "Precipitation forecast data", meta)
