"""
TikTok via RapidAPI — social engagement velocity.
"""

import logging
from typing import Optional

import httpx

from ..schemas import Platform, TrendDataPoint
from .base import DateWindow, TrendSource

logger = logging.getLogger(__name__)


def _stat(video: dict, key: str) -> float:
    stats = video.get("stats") or {}
    return float(stats.get(key) or video.get(key) or 0)


class TikTokSource(TrendSource):
    """Recent TikTok posts per keyword (RapidAPI tiktok-data)."""

    name = "tiktok_rapidapi"
    label = "TikTok (RapidAPI)"
    env_key = "RAPIDAPI_KEY"
    platform = Platform.TIKTOK.value
    confidence = 0.75
    max_keywords = 5
    setup_hint = "Get a key at rapidapi.com."

    def is_configured(self) -> bool:
        return bool(self.settings.rapidapi_key)

    async def _fetch_keyword(
        self,
        client: httpx.AsyncClient,
        keyword: str,
        window: DateWindow,
        niche_id: str,
    ) -> Optional[TrendDataPoint]:
        host = self.settings.tiktok_rapidapi_host
        response = await client.get(
            f"https://{host}/search/posts",
            params={"keyword": keyword, "count": 10, "offset": 0},
            headers={"X-RapidAPI-Key": self.settings.rapidapi_key, "X-RapidAPI-Host": host},
        )
        response.raise_for_status()
        data = response.json()
        videos = (data.get("data") or {}).get("videos") or data.get("itemList") or data.get("items") or []

        count = len(videos)
        if count == 0:
            return self._point(
                niche_id, keyword, window,
                search_volume=0.0, content_density=0.0, creator_density=0.0,
                raw_data={"video_count": 0},
            )

        views = sum(_stat(v, "playCount") for v in videos) / count
        likes = sum(_stat(v, "diggCount") for v in videos) / count
        shares = sum(_stat(v, "shareCount") for v in videos) / count
        comments = sum(_stat(v, "commentCount") for v in videos) / count
        followers = max(
            float(((v.get("author") or {}).get("stats") or {}).get("followerCount")
                  or (v.get("authorStats") or {}).get("followerCount") or 0)
            for v in videos
        )
        rate = round((likes + comments + shares) / views * 100, 2) if views > 0 else 0.0

        return self._point(
            niche_id, keyword, window,
            search_volume=float(min(100, count * 10)),
            content_density=float(count),
            creator_density=float(min(count, 10)),
            engagement_velocity=min(10.0, rate),
            raw_data={
                "video_count": count,
                "avg_views": round(views),
                "avg_likes": round(likes),
                "avg_shares": round(shares),
                "avg_comments": round(comments),
                "top_creator_followers": followers,
                "engagement_rate": rate,
            },
        )
