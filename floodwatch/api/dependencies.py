"""Shared service instance for request handlers."""

from typing import Optional

from floodwatch.pipeline.river_service import RiverService

_river_service: Optional[RiverService] = None


def get_river_service() -> RiverService:
    """Get or create the RiverService used by the API.

    Returns:
        RiverService instance
    """
    global _river_service
    if _river_service is None:
        _river_service = RiverService()
    return _river_service


def close_river_service() -> None:
    """Release the service's HTTP connections, if it was created."""
    global _river_service
    if _river_service is not None:
        _river_service.close()
        _river_service = None
