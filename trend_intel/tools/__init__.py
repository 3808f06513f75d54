"""Trend data source adapters."""

from typing import List, Optional

import httpx

from ..config import Settings, get_settings
from .base import DateWindow, TrendSource
from .google_cse_tool import GoogleCseSource
from .serpapi_tool import SerpApiTrendsSource
from .tiktok_tool import TikTokSource
from .youtube_tool import YouTubeSource


def build_default_sources(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[TrendSource]:
    """All known adapters, configured or not (availability is checked per run)."""
    settings = settings or get_settings()
    return [
        SerpApiTrendsSource(settings, transport),
        YouTubeSource(settings, transport),
        GoogleCseSource(settings, transport),
        TikTokSource(settings, transport),
    ]


__all__ = [
    "DateWindow", "TrendSource",
    "SerpApiTrendsSource", "YouTubeSource", "GoogleCseSource", "TikTokSource",
    "build_default_sources",
]
