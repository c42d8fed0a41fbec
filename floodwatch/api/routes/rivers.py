"""River gauge routes."""

from fastapi import APIRouter, Depends

from floodwatch.api.dependencies import get_river_service
from floodwatch.pipeline.river_service import RiverService

router = APIRouter(prefix="/rivers", tags=["rivers"])


@router.get("/nearby/{lat}/{lng}/{radius}")
def get_nearby_rivers(
    lat: str,
    lng: str,
    radius: str,
    service: RiverService = Depends(get_river_service),
) -> dict:
    """Get monitored rivers within ``radius`` miles, with flood risk.

    Path parameters are taken as strings so malformed numbers produce a
    structured validation error rather than a framework 422.
    """
    return service.get_nearby_stations(lat, lng, radius)


@router.get("/flood-stage/{site_id}")
def get_flood_stage(
    site_id: str,
    service: RiverService = Depends(get_river_service),
) -> dict:
    """Get current stage, flood thresholds and status for one USGS site."""
    return service.get_flood_stage(site_id).to_dict()


@router.get("/flow/{site_id}")
def get_flow_data(
    site_id: str,
    service: RiverService = Depends(get_river_service),
) -> list:
    """Get the raw 7-day discharge and stage series for one USGS site."""
    return service.get_flow_data(site_id)
