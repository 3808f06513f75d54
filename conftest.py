"""Shared fixtures: isolated settings, a file-backed SQLite store, fake sources."""

import asyncio
from datetime import date, datetime
from typing import Dict, Optional

import pytest

from trend_intel.config import Settings
from trend_intel.database import Database
from trend_intel.schemas import TrendDataPoint
from trend_intel.tools import TrendSource


def make_settings(**overrides) -> Settings:
    values = dict(
        serpapi_key="",
        youtube_api_key="",
        google_cse_api_key="",
        google_cse_cx="",
        rapidapi_key="",
        database_url="sqlite:///:memory:",
        source_timeout_seconds=2.0,
        fetch_stage_timeout_seconds=5.0,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


class StaticSource(TrendSource):
    """In-process source returning canned metrics per keyword."""

    def __init__(
        self,
        settings: Settings,
        name: str = "static",
        platform: str = "google",
        confidence: float = 0.9,
        metrics: Optional[Dict[str, dict]] = None,
        default_metrics: Optional[dict] = None,
        delay: float = 0.0,
        error: Optional[Exception] = None,
        configured: bool = True,
    ):
        super().__init__(settings)
        self.name = name
        self.label = name.title()
        self.env_key = f"{name.upper()}_KEY"
        self.platform = platform
        self.confidence = confidence
        self.metrics = metrics or {}
        self.default_metrics = default_metrics if default_metrics is not None else {"search_volume": 50.0}
        self.delay = delay
        self.error = error
        self.configured = configured
        self.calls = 0

    def is_configured(self) -> bool:
        return self.configured

    async def fetch(self, keywords, window, niche_id=""):
        self.calls += 1
        return await super().fetch(keywords, window, niche_id)

    async def _fetch_keyword(self, client, keyword, window, niche_id):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self._point(niche_id, keyword, window, **self.metrics.get(keyword, self.default_metrics))


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def db(tmp_path) -> Database:
    database = Database(f"sqlite:///{tmp_path / 'trends.db'}")
    database.create_tables()
    return database


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def source_factory():
    return StaticSource


@pytest.fixture
def make_point():
    def _make(
        keyword: str = "investasi untuk pemula",
        niche_id: str = "audience.finance",
        platform: str = "google",
        day: date = date(2026, 3, 1),
        confidence: float = 0.9,
        fetched_at: Optional[datetime] = None,
        **metrics,
    ) -> TrendDataPoint:
        return TrendDataPoint(
            niche_id=niche_id,
            keyword=keyword,
            platform=platform,
            date=day,
            source="test",
            confidence=confidence,
            fetched_at=fetched_at or datetime(2026, 3, 1, 12, 0, 0),
            **metrics,
        )
    return _make
