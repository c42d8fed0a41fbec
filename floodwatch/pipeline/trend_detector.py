"""
Flow Trend Detection

Identifies whether discharge at a site is rising, falling, or stable from its
most recent readings, and produces the normalized flow-change rate used by the
risk scorer.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from floodwatch.utils.config import config
from .series_sampler import SeriesPoint

logger = logging.getLogger(__name__)


@dataclass
class TrendResult:
    """Result of trend analysis for a single site."""
    trend: str          # "rising" | "falling" | "stable" | "unknown"
    flow_trend: float   # Fractional change over the window, (last - first) / first
    data_points: int    # Number of readings used

    @property
    def label(self) -> str:
        return {
            "rising": "Increasing",
            "falling": "Decreasing",
            "stable": "Stable",
        }.get(self.trend, "Unknown")


def calculate_flow_trend(
    flow_points: list[SeriesPoint],
    window: Optional[int] = None,
    rising_threshold: Optional[float] = None,
    falling_threshold: Optional[float] = None
) -> TrendResult:
    """
    Calculate the normalized flow change over the most recent readings.

    Algorithm:
    1. Take the last ``window`` readings (chronological), keeping finite values
    2. flow_trend = (last - first) / first
    3. Classify: rising (> threshold), falling (< threshold), stable (between)

    Args:
        flow_points: Chronologically ordered discharge readings
        window: Number of most recent readings to use (default: from config)
        rising_threshold: Fractional change to classify as rising
        falling_threshold: Fractional change to classify as falling

    Returns:
        TrendResult with classification and rate. Fewer than two usable
        readings, or a zero starting flow, give a rate of 0.
    """
    if window is None:
        window = config.sampling.trend_window
    if rising_threshold is None:
        rising_threshold = config.sampling.rising_threshold
    if falling_threshold is None:
        falling_threshold = config.sampling.falling_threshold

    flows = np.array([p.value for p in flow_points[-window:]], dtype=float)
    flows = flows[np.isfinite(flows)]
    data_points = int(flows.size)

    # Not enough data
    if data_points < 2:
        return TrendResult(trend="unknown", flow_trend=0.0, data_points=data_points)

    first, last = flows[0], flows[-1]
    if abs(first) < 1e-10:  # Avoid division by zero
        return TrendResult(trend="stable", flow_trend=0.0, data_points=data_points)

    flow_trend = float((last - first) / first)

    if flow_trend > rising_threshold:
        trend = "rising"
    elif flow_trend < falling_threshold:
        trend = "falling"
    else:
        trend = "stable"

    return TrendResult(trend=trend, flow_trend=round(flow_trend, 4), data_points=data_points)


def summarize_trends(results: dict[str, TrendResult]) -> dict[str, int]:
    """Count sites per trend class and log the summary."""
    trends = [r.trend for r in results.values()]
    summary = {name: trends.count(name) for name in ("rising", "falling", "stable", "unknown")}
    logger.info(
        f"Trend summary: {summary['rising']} rising, {summary['falling']} falling, "
        f"{summary['stable']} stable, {summary['unknown']} unknown"
    )
    return summary
