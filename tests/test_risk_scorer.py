"""Tests for the weighted flood risk model."""

import pytest

from floodwatch.pipeline.flood_thresholds import FloodStageSet, SOURCE_CALCULATED, SOURCE_OFFICIAL
from floodwatch.pipeline.risk_scorer import (
    RiskScore,
    determine_risk_level,
    precipitation_factor,
    score_risk,
    stage_factor,
    trend_factor,
)

STAGES = FloodStageSet(action=8.0, minor=10.0, moderate=13.0, major=16.0, source=SOURCE_OFFICIAL)


class TestStageFactor:
    """Tests for the stage ratio sub-score"""

    def test_half_of_major(self):
        """Stage 8 against major 16: ratio 0.5, factor ~15.3"""
        assert stage_factor(8.0, 16.0) == pytest.approx(15.31, abs=0.01)

    def test_band_edges_are_continuous(self):
        assert stage_factor(0.7 * 16, 16.0) == pytest.approx(30.0)
        assert stage_factor(0.9 * 16, 16.0) == pytest.approx(70.0)
        assert stage_factor(16.0, 16.0) == pytest.approx(95.0)

    def test_saturates_above_major(self):
        assert stage_factor(100.0, 16.0) == 100.0

    def test_negative_stage(self):
        assert stage_factor(-2.0, 16.0) == 0.0


class TestTrendFactor:
    """Tests for the flow trend sub-score"""

    @pytest.mark.parametrize("flow_trend,expected", [
        (0.0, 20.0),
        (0.3, 40.0),
        (0.6, 68.0),
        (-0.5, 0.0),
        (-1.0, 0.0),
        (5.0, 100.0),
    ])
    def test_values(self, flow_trend, expected):
        assert trend_factor(flow_trend) == pytest.approx(expected)


class TestPrecipitationFactor:
    def test_scaled_and_bounded(self):
        assert precipitation_factor(0.4) == pytest.approx(40.0)
        assert precipitation_factor(1.5) == 100.0
        assert precipitation_factor(-1.0) == 0.0


class TestScoreRisk:
    """Tests for the combined score"""

    def test_weights(self):
        risk = score_risk(8.0, STAGES, 0.0, 0.0)

        expected = risk.stage_factor * 0.55 + 20.0 * 0.30
        assert risk.score == pytest.approx(expected)
        assert risk.stage_factor == pytest.approx(15.31, abs=0.01)
        assert risk.trend_factor == pytest.approx(20.0)
        assert risk.precip_factor == 0.0

    def test_monotonic_in_stage(self):
        """For fixed stages, raising the stage never lowers the score"""
        previous = -1.0
        for i in range(0, 201):
            stage = i * 0.2
            risk = score_risk(stage, STAGES, 0.1, 0.3)
            assert 0.0 <= risk.score <= 100.0
            assert risk.score >= previous
            previous = risk.score

    @pytest.mark.parametrize("stage,flow_trend,precip", [
        (1000.0, 50.0, 10.0),
        (-50.0, -50.0, -10.0),
        (16.0, 0.5, 1.0),
    ])
    def test_bounded(self, stage, flow_trend, precip):
        risk = score_risk(stage, STAGES, flow_trend, precip)

        assert 0.0 <= risk.score <= 100.0

    def test_zero_major_gives_zero(self):
        broken = FloodStageSet(action=0.0, minor=0.0, moderate=0.0, major=0.0, source=SOURCE_CALCULATED)

        assert score_risk(5.0, broken, 0.2, 0.5) == RiskScore.zero()

    def test_missing_stage_gives_zero(self):
        assert score_risk(None, STAGES, 0.2, 0.5) == RiskScore.zero()

    def test_to_dict_rounds(self):
        data = score_risk(8.0, STAGES, 0.0, 0.0).to_dict()

        assert set(data) == {"score", "stage_factor", "trend_factor", "precip_factor"}
        assert data["stage_factor"] == 15.31


class TestRiskLevel:
    """Tests for High / Medium / Low"""

    def test_high_at_moderate_stage(self):
        assert determine_risk_level(10.0, 13.0, STAGES) == "High"

    def test_high_on_score(self):
        assert determine_risk_level(80.0, 2.0, STAGES) == "High"

    def test_medium_at_action(self):
        assert determine_risk_level(10.0, 8.5, STAGES) == "Medium"

    def test_low(self):
        assert determine_risk_level(10.0, 2.0, STAGES) == "Low"

    def test_missing_stage(self):
        assert determine_risk_level(0.0, None, STAGES) == "Low"
