"""
Multi-source fan-out: isolation of failures, timeouts, merge and refresh log.
"""

import asyncio
from datetime import date, datetime, timedelta

import pytest

from trend_intel.errors import NoDataSources
from trend_intel.schemas import SourceErrorKind
from trend_intel.tools import DateWindow
from trend_intel.trends.fetcher import TrendDataFetcher

WINDOW = DateWindow(start=date(2026, 2, 1), end=date(2026, 3, 1))
KEYWORDS = ["investasi untuk pemula", "tips investasi", "reksa dana"]


def _refresh(fetcher, keywords=KEYWORDS, niche_id="audience.finance"):
    return asyncio.run(fetcher.refresh_niche_data(niche_id, keywords, WINDOW))


def test_all_sources_merge_into_store(db, settings, source_factory):
    google = source_factory(settings, name="google_trends", platform="google")
    youtube = source_factory(settings, name="youtube_api", platform="youtube", confidence=0.85)
    fetcher = TrendDataFetcher(db, [google, youtube], settings)

    result = _refresh(fetcher)
    assert result.sources_attempted == ["google_trends", "youtube_api"]
    assert result.sources_succeeded == ["google_trends", "youtube_api"]
    assert result.errors == []
    assert result.points_fetched == 6
    assert result.points_written == 6
    assert result.has_new_data
    assert db.get_data_stats("audience.finance")["keyword_count"] == 3


def test_failing_source_does_not_abort_others(db, settings, source_factory):
    good = source_factory(settings, name="google_trends")
    bad = source_factory(settings, name="youtube_api", platform="youtube", error=ValueError("garbage"))
    result = _refresh(TrendDataFetcher(db, [good, bad], settings))

    assert result.sources_succeeded == ["google_trends"]
    assert len(result.errors) == 1
    assert result.errors[0].source == "youtube_api"
    assert result.errors[0].kind == SourceErrorKind.PARSE
    assert result.points_written == 3


def test_crashing_adapter_is_reported(db, settings, source_factory):
    class Crashing(source_factory):
        async def fetch(self, keywords, window, niche_id=""):
            raise RuntimeError("kaboom")

    result = _refresh(TrendDataFetcher(db, [Crashing(settings, name="broken"), source_factory(settings)], settings))
    assert result.errors[0].kind == SourceErrorKind.CRASHED
    assert "kaboom" in result.errors[0].message
    assert result.sources_succeeded == ["static"]


def test_slow_source_times_out(db, settings_factory, source_factory):
    settings = settings_factory(source_timeout_seconds=0.3)
    slow = source_factory(settings, name="slow", delay=2.0)
    fast = source_factory(settings, name="fast", platform="youtube")
    result = _refresh(TrendDataFetcher(db, [slow, fast], settings))

    assert result.sources_succeeded == ["fast"]
    assert result.errors[0].source == "slow"
    assert result.errors[0].kind == SourceErrorKind.TIMEOUT


def test_stage_timeout_cancels_unfinished_sources(db, settings_factory, source_factory):
    settings = settings_factory(source_timeout_seconds=5.0, fetch_stage_timeout_seconds=0.3)
    slow = source_factory(settings, name="slow", delay=2.0)
    fast = source_factory(settings, name="fast", platform="youtube")
    result = _refresh(TrendDataFetcher(db, [slow, fast], settings))

    assert result.sources_succeeded == ["fast"]
    assert result.errors[0].message == "fetch stage timeout"


def test_no_configured_source_raises(db, settings, source_factory):
    fetcher = TrendDataFetcher(db, [source_factory(settings, configured=False)], settings)
    assert not fetcher.has_any_data_source()
    with pytest.raises(NoDataSources):
        _refresh(fetcher)


def test_unconfigured_sources_are_skipped(db, settings, source_factory):
    off = source_factory(settings, name="off", configured=False)
    on = source_factory(settings, name="on")
    result = _refresh(TrendDataFetcher(db, [off, on], settings))
    assert result.sources_attempted == ["on"]
    assert off.calls == 0


def test_keywords_are_deduplicated(db, settings, source_factory):
    source = source_factory(settings)
    result = _refresh(TrendDataFetcher(db, [source], settings), ["Tips Investasi", "tips  investasi", "emas"])
    assert result.keywords == ["tips investasi", "emas"]
    assert result.points_fetched == 2


def test_second_fetch_of_same_day_writes_nothing(db, settings, source_factory):
    fetcher = TrendDataFetcher(db, [source_factory(settings, confidence=0.9)], settings)
    _refresh(fetcher)
    weaker = TrendDataFetcher(db, [source_factory(settings, confidence=0.5)], settings)
    result = _refresh(weaker)
    assert result.points_fetched == 3
    assert result.points_written == 0
    assert not result.has_new_data


def test_refresh_log_and_staleness(db, settings, source_factory):
    fetcher = TrendDataFetcher(db, [source_factory(settings)], settings)
    assert fetcher.needs_refresh("audience.finance")

    _refresh(fetcher)
    last = fetcher.last_refreshed_at("audience.finance")
    assert last is not None
    assert not fetcher.needs_refresh("audience.finance", now=last + timedelta(hours=1))
    assert fetcher.needs_refresh("audience.finance", now=last + timedelta(hours=24))


def test_failed_refresh_does_not_count_as_fresh(db, settings, source_factory):
    broken = source_factory(settings, error=ValueError("garbage"))
    _refresh(TrendDataFetcher(db, [broken], settings))
    assert db.get_last_refresh("audience.finance") is None


def test_stored_points_count_when_log_is_empty(db, settings, make_point):
    db.upsert_data_points([make_point(fetched_at=datetime(2026, 3, 1, 9))])
    fetcher = TrendDataFetcher(db, [], settings)
    assert fetcher.last_refreshed_at("audience.finance") == datetime(2026, 3, 1, 9)
