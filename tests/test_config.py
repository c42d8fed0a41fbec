"""Tests for configuration defaults."""

from floodwatch.utils.config import CacheConfig, Config, SamplingConfig, USGSConfig, config


class TestConfig:
    """Tests for config sections"""

    def test_usgs_defaults(self):
        usgs = USGSConfig()

        assert usgs.parameter_codes == ("00060", "00065", "00010", "00045")
        assert usgs.period == "P7D"
        assert usgs.site_type == "ST"
        assert usgs.max_attempts == 3
        assert usgs.retry_delay == 1.0

    def test_sampling_defaults(self):
        sampling = SamplingConfig()

        assert (sampling.min_points, sampling.max_points) == (20, 100)
        assert sampling.trend_window == 6

    def test_rate_limit_classes(self):
        spacing = CacheConfig(rate_limit_seconds=2.0).spacing_by_class()

        assert spacing == {"weather": 2.0, "precipitation": 2.0}

    def test_load(self):
        loaded = Config.load()

        assert loaded.max_workers >= 1
        assert loaded.nwps.base_url.startswith("https://")
        assert isinstance(config, Config)
