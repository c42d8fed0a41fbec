"""
Flood-Stage Resolver

Fetches official flood stage thresholds from the NOAA National Water
Prediction Service (NWPS). These thresholds define when a site reaches Action
Stage, Minor Flood, Moderate Flood, and Major Flood. When NWPS has no complete
set for a site, thresholds are derived from the current stage instead.
"""

import logging
import math
from dataclasses import dataclass, asdict
from typing import Any, Optional

import requests

from floodwatch.utils.config import config
from floodwatch.utils.http import create_session

logger = logging.getLogger(__name__)

SOURCE_OFFICIAL = "official"
SOURCE_CALCULATED = "calculated"
TIERS = ("action", "minor", "moderate", "major")


@dataclass(frozen=True)
class FloodStageSet:
    """Stage thresholds in feet, strictly increasing from action to major."""
    action: float
    minor: float
    moderate: float
    major: float
    source: str

    def is_monotonic(self) -> bool:
        return self.action < self.minor < self.moderate < self.major

    def to_dict(self) -> dict:
        return asdict(self)


def _tier_value(raw: Any) -> Optional[float]:
    """NWPS reports a tier either as a number or as {"stage": number}."""
    if isinstance(raw, dict):
        raw = raw.get("stage")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) and value else None


def fetch_official_flood_stages(
    site_id: str,
    session: Optional[requests.Session] = None
) -> Optional[FloodStageSet]:
    """
    Fetch official flood stage thresholds for a single USGS site.

    Only a complete set is returned: if any of the four tiers is missing,
    zero, or the tiers are not strictly increasing, the whole set is ignored.

    Args:
        site_id: USGS site identifier
        session: HTTP session (default: a new pooled session)

    Returns:
        FloodStageSet with source "official", or None if not available.
    """
    url = f"{config.nwps.base_url}/gauges"
    http = session or create_session()

    try:
        response = http.get(url, params={"site.usgs": site_id}, timeout=config.nwps.timeout)

        if response.status_code == 404:
            # Gauge not in NWPS system
            return None

        response.raise_for_status()
        data = response.json()

        features = data.get("features") or []
        if not features:
            logger.debug(f"No NWPS gauge found for USGS site {site_id}")
            return None

        flood_stages = (features[0].get("properties") or {}).get("floodStages") or {}
        values = {tier: _tier_value(flood_stages.get(tier)) for tier in TIERS}

        if any(v is None for v in values.values()):
            logger.debug(f"Incomplete NWPS flood stages for {site_id}: {values}")
            return None

        stages = FloodStageSet(source=SOURCE_OFFICIAL, **values)
        if not stages.is_monotonic():
            logger.warning(f"Non-monotonic NWPS flood stages for {site_id}: {values}")
            return None

        return stages

    except requests.exceptions.Timeout:
        logger.warning(f"Timeout fetching NWPS flood stages for {site_id}")
        return None
    except requests.exceptions.RequestException as e:
        logger.debug(f"Error fetching NWPS flood stages for {site_id}: {e}")
        return None
    except (ValueError, AttributeError, TypeError, IndexError) as e:
        logger.debug(f"Error parsing NWPS flood stages for {site_id}: {e}")
        return None
    finally:
        if session is None:
            http.close()


def calculate_fallback_flood_stages(current_stage: Optional[float]) -> FloodStageSet:
    """
    Derive thresholds proportional to the current stage.

    base = max(current_stage, 1); each tier is a multiple of base with a floor
    (1, 2, 3, 4 ft), which keeps the tiers strictly increasing for any input.
    """
    stage = current_stage if current_stage is not None and math.isfinite(current_stage) else 0.0
    base = max(stage, 1.0)
    return FloodStageSet(
        action=max(1.0, base * 0.8),
        minor=max(2.0, base * 1.2),
        moderate=max(3.0, base * 1.5),
        major=max(4.0, base * 2.0),
        source=SOURCE_CALCULATED,
    )


def resolve_flood_stages(
    station_id: str,
    current_stage: Optional[float],
    session: Optional[requests.Session] = None
) -> FloodStageSet:
    """
    Get the best available flood stages: official preferred, calculated otherwise.

    Never raises; any lookup failure results in the calculated set.
    """
    official = fetch_official_flood_stages(station_id, session=session)
    if official is not None:
        return official

    logger.info(f"Using calculated fallback flood stages for USGS site {station_id}")
    return calculate_fallback_flood_stages(current_stage)


def determine_flood_status(current_stage: Optional[float], stages: FloodStageSet) -> str:
    """
    Determine flood status based on current stage and thresholds.

    Returns:
        Flood status string.
    """
    if current_stage is None or not math.isfinite(current_stage):
        return "Unknown"

    # Check from most severe to least severe
    if current_stage >= stages.major:
        return "Major Flood"
    if current_stage >= stages.moderate:
        return "Moderate Flood"
    if current_stage >= stages.minor:
        return "Minor Flood"
    if current_stage >= stages.action:
        return "Action Stage"

    return "Normal"


def determine_risk_label(current_stage: Optional[float], stages: FloodStageSet) -> str:
    """Coarse High/Medium/Low label from stage alone."""
    if current_stage is None or not math.isfinite(current_stage):
        return "Unknown"
    if current_stage >= stages.moderate:
        return "High"
    if current_stage >= stages.minor:
        return "Medium"
    return "Low"
