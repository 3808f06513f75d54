"""Trend intelligence pipeline: niche resolution, multi-source fetching, scoring and market signals."""

__version__ = "0.1.0"
