"""
Flood risk scoring.

Combines how close the river is to major flood stage, how fast discharge is
changing, and the precipitation outlook into a single 0-100 score using a
fixed weighted model.
"""

import logging
import math
from dataclasses import dataclass, asdict
from typing import Optional

from .flood_thresholds import FloodStageSet

logger = logging.getLogger(__name__)

STAGE_WEIGHT = 0.55
TREND_WEIGHT = 0.30
PRECIP_WEIGHT = 0.15


@dataclass(frozen=True)
class RiskScore:
    """Weighted score with its 0-100 sub-scores."""
    score: float
    stage_factor: float
    trend_factor: float
    precip_factor: float

    @classmethod
    def zero(cls) -> "RiskScore":
        return cls(score=0.0, stage_factor=0.0, trend_factor=0.0, precip_factor=0.0)

    def to_dict(self) -> dict:
        return {k: round(v, 2) for k, v in asdict(self).items()}


def _bounded(value: float) -> float:
    return max(0.0, min(100.0, value))


def stage_factor(current_stage: float, reference_stage: float) -> float:
    """
    Sub-score for the ratio of current stage to the reference (major) stage.

    Rises quadratically up to 70% of the reference, then linearly through
    the 70-90% and 90-100% bands, and saturates just above flood stage.
    """
    ratio = max(0.0, current_stage / reference_stage)

    if ratio < 0.7:
        factor = (ratio / 0.7) ** 2 * 30
    elif ratio < 0.9:
        factor = 30 + ((ratio - 0.7) / 0.2) * 40
    elif ratio < 1.0:
        factor = 70 + ((ratio - 0.9) / 0.1) * 25
    else:
        factor = 95 + min(5.0, (ratio - 1.0) * 20)

    return _bounded(factor)


def trend_factor(flow_trend: float) -> float:
    """Sub-score for the normalized flow-change rate."""
    if flow_trend > 0.5:
        factor = 60 + (flow_trend - 0.5) * 80   # Rapid rise
    elif flow_trend > 0.2:
        factor = 30 + (flow_trend - 0.2) * 100  # Moderate rise
    elif flow_trend > -0.2:
        factor = 10 + (flow_trend + 0.2) * 50   # Stable / slow change
    else:
        factor = max(0.0, 10 + flow_trend * 25)  # Falling

    return _bounded(factor)


def precipitation_factor(precipitation: float) -> float:
    """Sub-score for a 0-1 precipitation outlook."""
    return _bounded(precipitation * 100)


def score_risk(
    current_stage: Optional[float],
    flood_stages: FloodStageSet,
    flow_trend: float,
    precipitation: float
) -> RiskScore:
    """
    Score flood risk for one station.

    The stage ratio is always taken against ``flood_stages.major``.
    Any arithmetic failure (missing stage, zero threshold, non-finite input)
    yields a zero score instead of an exception.

    Args:
        current_stage: Current gage height in feet
        flood_stages: Resolved thresholds for the station
        flow_trend: Fractional flow change over the trend window
        precipitation: Precipitation outlook in [0, 1]

    Returns:
        RiskScore with score in [0, 100].
    """
    try:
        stage = stage_factor(current_stage, flood_stages.major)
        trend = trend_factor(flow_trend)
        precip = precipitation_factor(precipitation)

        weighted = stage * STAGE_WEIGHT + trend * TREND_WEIGHT + precip * PRECIP_WEIGHT
        if not all(math.isfinite(v) for v in (stage, trend, precip, weighted)):
            raise ValueError(f"non-finite risk inputs: {current_stage}, {flow_trend}, {precipitation}")

        return RiskScore(
            score=_bounded(weighted),
            stage_factor=stage,
            trend_factor=trend,
            precip_factor=precip,
        )
    except (ArithmeticError, TypeError, ValueError, AttributeError) as e:
        logger.warning(f"Risk score unavailable, assuming minimum: {e}")
        return RiskScore.zero()


def determine_risk_level(
    score: float,
    current_stage: Optional[float],
    flood_stages: FloodStageSet
) -> str:
    """High / Medium / Low from the score and the stage relative to the tiers."""
    stage = current_stage if current_stage is not None and math.isfinite(current_stage) else 0.0
    minor_ratio = stage / flood_stages.minor if flood_stages.minor else 0.0

    # High risk conditions
    if stage >= flood_stages.moderate or score >= 75:
        return "High"
    if stage >= flood_stages.minor and score >= 50:
        return "High"
    if minor_ratio > 0.9 and score >= 60:
        return "High"

    # Medium risk conditions
    if stage >= flood_stages.action or score >= 50:
        return "Medium"
    if minor_ratio > 0.7 and score >= 30:
        return "Medium"

    return "Low"
