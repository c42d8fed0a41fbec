"""FloodWatch: live river flood-risk monitor built on USGS, NWPS and NOAA data."""

__version__ = "1.0.0"
