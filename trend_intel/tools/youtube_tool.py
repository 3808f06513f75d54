"""
YouTube Data API v3 — video volume, engagement and creator density.

Three calls per keyword: search (recent videos), videos (statistics) and
channels (subscriber count of the top result). The last two are
best-effort; a failed stats call leaves engagement unknown.
"""

import logging
from typing import Optional

import httpx

from ..schemas import Platform, TrendDataPoint
from .base import DateWindow, TrendSource

logger = logging.getLogger(__name__)

YOUTUBE_API = "https://www.googleapis.com/youtube/v3"

MAX_ENGAGEMENT = 10.0


def engagement_velocity(avg_views: float, avg_likes: float, avg_comments: float) -> float:
    """(likes + 3·comments) per 100 views, capped at 10."""
    if avg_views <= 0:
        return 0.0
    return round(min(MAX_ENGAGEMENT, (avg_likes + avg_comments * 3) / avg_views * 100), 2)


def competition_from_subscribers(subscribers: int) -> float:
    if subscribers > 100_000:
        return 0.8
    if subscribers > 10_000:
        return 0.5
    if subscribers > 1_000:
        return 0.3
    return 0.1


class YouTubeSource(TrendSource):
    """Recent-video statistics per keyword."""

    name = "youtube_api"
    label = "YouTube Data API v3"
    env_key = "YOUTUBE_API_KEY"
    platform = Platform.YOUTUBE.value
    confidence = 0.85
    setup_hint = "Enable YouTube Data API v3 in the GCP console."

    def is_configured(self) -> bool:
        return bool(self.settings.youtube_api_key)

    async def _fetch_keyword(
        self,
        client: httpx.AsyncClient,
        keyword: str,
        window: DateWindow,
        niche_id: str,
    ) -> Optional[TrendDataPoint]:
        key = self.settings.youtube_api_key
        response = await client.get(f"{YOUTUBE_API}/search", params={
            "part": "snippet",
            "q": keyword,
            "type": "video",
            "order": "relevance",
            "maxResults": 15,
            "publishedAfter": window.start_datetime.isoformat() + "Z",
            "relevanceLanguage": self.settings.trend_language,
            "regionCode": self.settings.trend_geo,
            "key": key,
        })
        response.raise_for_status()
        data = response.json()
        if data.get("error"):
            raise ValueError(f"YouTube API: {data['error'].get('message', data['error'])}")

        total_results = int((data.get("pageInfo") or {}).get("totalResults") or 0)
        items = data.get("items") or []
        video_ids = [i.get("id", {}).get("videoId") for i in items if i.get("id", {}).get("videoId")]
        channels = {i.get("snippet", {}).get("channelId") for i in items} - {None}

        avg_views = avg_likes = avg_comments = 0.0
        engagement = None
        if video_ids:
            stats = await client.get(f"{YOUTUBE_API}/videos", params={
                "part": "statistics", "id": ",".join(video_ids), "key": key,
            })
            if stats.status_code == 200:
                videos = stats.json().get("items") or []
                if videos:
                    n = len(videos)
                    avg_views = sum(int(v.get("statistics", {}).get("viewCount", 0)) for v in videos) / n
                    avg_likes = sum(int(v.get("statistics", {}).get("likeCount", 0)) for v in videos) / n
                    avg_comments = sum(int(v.get("statistics", {}).get("commentCount", 0)) for v in videos) / n
                    engagement = engagement_velocity(avg_views, avg_likes, avg_comments)
            else:
                logger.debug(f"[youtube] stats HTTP {stats.status_code} for '{keyword}'")

        top_subs = 0
        top_channel = items[0].get("snippet", {}).get("channelId") if items else None
        if top_channel:
            channel = await client.get(f"{YOUTUBE_API}/channels", params={
                "part": "statistics", "id": top_channel, "key": key,
            })
            if channel.status_code == 200:
                ch_items = channel.json().get("items") or []
                if ch_items:
                    top_subs = int(ch_items[0].get("statistics", {}).get("subscriberCount", 0))

        return self._point(
            niche_id, keyword, window,
            search_volume=float(min(100, round(total_results / 500))),
            content_density=float(total_results),
            creator_density=float(len(channels)),
            ads_density=competition_from_subscribers(top_subs),
            engagement_velocity=engagement,
            raw_data={
                "avg_views": round(avg_views),
                "avg_likes": round(avg_likes),
                "avg_comments": round(avg_comments),
                "total_results": total_results,
                "unique_channels": len(channels),
                "top_channel_subs": top_subs,
            },
        )
