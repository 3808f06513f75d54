"""
Google Trends via SerpAPI — search interest and growth rates.

Timeline values are weekly relative interest (0-100). Growth over N days
compares the latest value with the value ceil(N/7) weeks earlier.
"""

import logging
import math
from typing import List, Optional

import httpx

from ..schemas import Platform, TrendDataPoint
from .base import DateWindow, TrendSource

logger = logging.getLogger(__name__)

SERPAPI_URL = "https://serpapi.com/search.json"


def calc_growth_rate(values: List[float], days: int) -> float:
    """Percent change between the latest weekly value and the one `days` back."""
    if len(values) < 2:
        return 0.0
    weeks_back = math.ceil(days / 7)
    current_idx = len(values) - 1
    past_idx = max(0, current_idx - weeks_back)
    current, past = values[current_idx], values[past_idx]
    if past == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - past) / past * 100, 1)


def serpapi_date_range(window: DateWindow) -> str:
    """Closest Google Trends preset covering the window."""
    if window.days <= 7:
        return "now 7-d"
    if window.days <= 30:
        return "today 1-m"
    if window.days <= 90:
        return "today 3-m"
    return "today 12-m"


class SerpApiTrendsSource(TrendSource):
    """Google Trends interest over time (SerpAPI google_trends engine)."""

    name = "google_trends"
    label = "Google Trends (SerpAPI)"
    env_key = "SERPAPI_KEY"
    platform = Platform.GOOGLE.value
    confidence = 0.90
    setup_hint = "Get a key at serpapi.com."

    def is_configured(self) -> bool:
        return bool(self.settings.serpapi_key)

    async def _fetch_keyword(
        self,
        client: httpx.AsyncClient,
        keyword: str,
        window: DateWindow,
        niche_id: str,
    ) -> Optional[TrendDataPoint]:
        params = {
            "engine": "google_trends",
            "q": keyword,
            "geo": self.settings.trend_geo,
            "data_type": "TIMESERIES",
            "date": serpapi_date_range(window),
            "api_key": self.settings.serpapi_key,
        }
        response = await client.get(SERPAPI_URL, params=params)
        response.raise_for_status()
        data = response.json()
        if data.get("error"):
            raise ValueError(f"SerpAPI: {data['error']}")

        timeline = (data.get("interest_over_time") or {}).get("timeline_data") or []
        if not timeline:
            raise ValueError(f"No timeline data for '{keyword}'")

        values = []
        for entry in timeline:
            entry_values = entry.get("values") or [{}]
            values.append(float(entry_values[0].get("extracted_value") or 0))

        rising = [q.get("query") for q in (data.get("related_queries") or {}).get("rising", [])[:10]]
        return self._point(
            niche_id, keyword, window,
            search_volume=values[-1],
            growth_rate_7d=calc_growth_rate(values, 7),
            growth_rate_30d=calc_growth_rate(values, 30),
            growth_rate_90d=calc_growth_rate(values, 90),
            raw_data={
                "rising_queries": [q for q in rising if q],
                "timeline_points": len(values),
            },
        )
