"""
Source adapter base — one capability shared by every trend data source.

    fetch(keywords, window) -> SourceResult

An adapter never raises for expected failures (missing key, HTTP error,
timeout, malformed payload). It returns SourceResult.failure(...) with a
SourceError instead, so one broken source cannot abort the others.
Per-keyword failures are kept in `keyword_errors` as long as at least one
keyword produced a point.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional

import httpx

from ..config import Settings, get_settings
from ..schemas import SourceErrorKind, SourceResult, TrendDataPoint, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DateWindow:
    """Inclusive date range a fetch should cover."""
    start: date
    end: date

    @classmethod
    def last_days(cls, days: int, end: Optional[date] = None) -> "DateWindow":
        end = end or utcnow().date()
        return cls(start=end - timedelta(days=days), end=end)

    @property
    def days(self) -> int:
        return (self.end - self.start).days

    @property
    def start_datetime(self) -> datetime:
        return datetime.combine(self.start, time.min)


class TrendSource(ABC):
    """Base class for trend data source adapters."""

    name: str = ""
    label: str = ""
    env_key: str = ""
    platform: str = ""
    confidence: float = 0.5
    max_keywords: Optional[int] = None
    setup_hint: str = ""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    @abstractmethod
    def is_configured(self) -> bool:
        ...

    @abstractmethod
    async def _fetch_keyword(
        self,
        client: httpx.AsyncClient,
        keyword: str,
        window: DateWindow,
        niche_id: str,
    ) -> Optional[TrendDataPoint]:
        """Fetch one keyword. Raise httpx.HTTPError or ValueError on failure."""

    @property
    def keyword_limit(self) -> int:
        limit = self.settings.max_keywords_per_fetch
        if self.max_keywords is not None:
            limit = min(limit, self.max_keywords)
        return limit

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.source_timeout_seconds,
            transport=self._transport,
        )

    def _point(self, niche_id: str, keyword: str, window: DateWindow, **metrics) -> TrendDataPoint:
        return TrendDataPoint(
            niche_id=niche_id,
            keyword=keyword,
            platform=self.platform,
            date=window.end,
            source=self.name,
            confidence=self.confidence,
            fetched_at=utcnow(),
            **metrics,
        )

    async def fetch(self, keywords: List[str], window: DateWindow, niche_id: str = "") -> SourceResult:
        if not self.is_configured():
            return SourceResult.failure(
                self.name, SourceErrorKind.UNCONFIGURED,
                f"{self.env_key} not set. {self.setup_hint}".strip(),
            )

        points: List[TrendDataPoint] = []
        errors: List[str] = []
        kinds: List[SourceErrorKind] = []

        async with self._client() as client:
            for keyword in keywords[:self.keyword_limit]:
                try:
                    point = await self._fetch_keyword(client, keyword, window, niche_id)
                except httpx.TimeoutException as e:
                    kinds.append(SourceErrorKind.TIMEOUT)
                    errors.append(f"{keyword}: timeout ({type(e).__name__})")
                except httpx.HTTPStatusError as e:
                    kinds.append(SourceErrorKind.HTTP)
                    errors.append(f"{keyword}: HTTP {e.response.status_code}")
                except httpx.HTTPError as e:
                    kinds.append(SourceErrorKind.HTTP)
                    errors.append(f"{keyword}: {type(e).__name__}: {e}")
                except (ValueError, KeyError, TypeError) as e:
                    kinds.append(SourceErrorKind.PARSE)
                    errors.append(f"{keyword}: {e}")
                else:
                    if point is not None:
                        points.append(point)

        if errors:
            logger.warning(f"[{self.name}] {len(errors)} keyword(s) failed: {errors[:3]}")
        if not points and errors:
            return SourceResult.failure(self.name, kinds[0], "; ".join(errors[:5]))

        logger.info(f"[{self.name}] {len(points)} data point(s) for {niche_id or 'niche'}")
        return SourceResult.success(self.name, points, errors)
