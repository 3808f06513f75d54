"""
Google Custom Search — content density, ads and affiliate saturation.
"""

import logging
from typing import Dict, List, Optional
from urllib.parse import urlparse

import httpx

from ..schemas import TrendDataPoint
from .base import DateWindow, TrendSource

logger = logging.getLogger(__name__)

CSE_URL = "https://www.googleapis.com/customsearch/v1"
MAX_CONTENT_DENSITY = 50_000

# Result text fragments that indicate affiliate / marketplace content
AFFILIATE_INDICATORS = [
    "amazon.", "tokopedia.", "shopee.", "bukalapak.", "lazada.",
    "affiliate", "review", "best-", "top-10", "rekomendasi",
    "link.to", "bit.ly", "shope.ee", "s.shopee",
]


def count_affiliate_results(items: List[Dict]) -> int:
    count = 0
    for item in items:
        text = f"{item.get('link', '')} {item.get('title', '')} {item.get('snippet', '')}".lower()
        if any(ind in text for ind in AFFILIATE_INDICATORS):
            count += 1
    return count


def has_sponsored_results(items: List[Dict]) -> bool:
    return any(
        "sponsored" in (item.get("title") or "").lower()
        or "iklan" in (item.get("snippet") or "").lower()
        for item in items
    )


class GoogleCseSource(TrendSource):
    """Web search saturation signals per keyword."""

    name = "google_cse"
    label = "Google Custom Search"
    env_key = "GOOGLE_CSE_API_KEY"
    platform = "google_search"
    confidence = 0.75
    setup_hint = "Set GOOGLE_CSE_API_KEY and GOOGLE_CSE_CX."

    def is_configured(self) -> bool:
        return bool(self.settings.google_cse_api_key and self.settings.google_cse_cx)

    async def _fetch_keyword(
        self,
        client: httpx.AsyncClient,
        keyword: str,
        window: DateWindow,
        niche_id: str,
    ) -> Optional[TrendDataPoint]:
        response = await client.get(CSE_URL, params={
            "key": self.settings.google_cse_api_key,
            "cx": self.settings.google_cse_cx,
            "q": keyword,
            "gl": self.settings.trend_geo.lower(),
            "lr": f"lang_{self.settings.trend_language}",
            "num": 10,
        })
        response.raise_for_status()
        data = response.json()
        if data.get("error"):
            raise ValueError(f"Google CSE: {data['error'].get('message', data['error'])}")

        total_results = int((data.get("searchInformation") or {}).get("totalResults") or 0)
        items = data.get("items") or []
        domains = [urlparse(i.get("link", "")).hostname for i in items]
        domains = [d for d in domains if d][:5]
        sponsored = has_sponsored_results(items)
        affiliate = count_affiliate_results(items)

        return self._point(
            niche_id, keyword, window,
            cpc=0.5 if sponsored else None,
            affiliate_density=affiliate / 10,
            ads_density=0.5 if sponsored else 0.1,
            content_density=float(min(MAX_CONTENT_DENSITY, total_results)),
            creator_density=float(len(set(domains))),
            raw_data={
                "total_results": total_results,
                "top_domains": domains,
                "has_ads": sponsored,
                "affiliate_indicators": affiliate,
            },
        )
