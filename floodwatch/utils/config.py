"""
Configuration management for the FloodWatch river monitor.
"""

import os
from dataclasses import dataclass, field
from dotenv import load_dotenv

load_dotenv()


@dataclass
class USGSConfig:
    """USGS Instantaneous Values fetching configuration."""
    base_url: str = os.getenv("USGS_BASE_URL", "https://waterservices.usgs.gov/nwis")
    discharge_param: str = "00060"      # Discharge (cubic feet per second)
    gage_height_param: str = "00065"    # Gage height (feet)
    water_temp_param: str = "00010"     # Water temperature (degrees C)
    precipitation_param: str = "00045"  # Precipitation total (inches)
    period: str = "P7D"                 # Lookback window
    site_type: str = "ST"               # Stream sites only
    timeout: float = float(os.getenv("USGS_TIMEOUT", "10"))
    max_attempts: int = 3
    retry_delay: float = 1.0            # Fixed, not exponential

    @property
    def parameter_codes(self) -> tuple:
        return (
            self.discharge_param,
            self.gage_height_param,
            self.water_temp_param,
            self.precipitation_param,
        )


@dataclass
class NWPSConfig:
    """NOAA National Water Prediction Service (official flood stages)."""
    base_url: str = os.getenv("NWPS_BASE_URL", "https://api.water.noaa.gov/nwps/v1")
    timeout: float = float(os.getenv("NWPS_TIMEOUT", "8"))


@dataclass
class NOAAConfig:
    """NOAA/NWS weather API configuration."""
    base_url: str = os.getenv("NOAA_BASE_URL", "https://api.weather.gov")
    timeout: float = float(os.getenv("NOAA_TIMEOUT", "10"))
    # NWS rejects requests without an identifying User-Agent
    user_agent: str = os.getenv("NOAA_USER_AGENT", "FloodWatch/1.0 (floodwatch@example.com)")


@dataclass
class CacheConfig:
    """In-memory cache and upstream rate-limit settings."""
    station_ttl_seconds: float = float(os.getenv("STATION_CACHE_TTL", "120"))  # 2 minutes
    weather_ttl_seconds: float = float(os.getenv("WEATHER_CACHE_TTL", "300"))  # 5 minutes
    rate_limit_seconds: float = float(os.getenv("RATE_LIMIT_SECONDS", "1.0"))
    rate_limited_classes: tuple = ("weather", "precipitation")

    def spacing_by_class(self) -> dict[str, float]:
        return {name: self.rate_limit_seconds for name in self.rate_limited_classes}


@dataclass
class SamplingConfig:
    """Historical series downsampling and trend window."""
    min_points: int = 20
    max_points: int = 100
    trend_window: int = 6               # Most recent readings used for flow trend
    rising_threshold: float = 0.05      # Fractional change to classify as rising
    falling_threshold: float = -0.05    # Fractional change to classify as falling


@dataclass
class APIConfig:
    """HTTP server settings."""
    host: str = os.getenv("API_HOST", "0.0.0.0")
    port: int = int(os.getenv("API_PORT", "5001"))


@dataclass
class Config:
    """Main configuration container."""
    usgs: USGSConfig
    nwps: NWPSConfig
    noaa: NOAAConfig
    cache: CacheConfig
    sampling: SamplingConfig
    api: APIConfig = field(default_factory=APIConfig)
    max_workers: int = 10  # For concurrent.futures parallelization

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment."""
        return cls(
            usgs=USGSConfig(),
            nwps=NWPSConfig(),
            noaa=NOAAConfig(),
            cache=CacheConfig(),
            sampling=SamplingConfig(),
            api=APIConfig(),
            max_workers=int(os.getenv("MAX_WORKERS", "10"))
        )


# Global config instance
config = Config.load()
