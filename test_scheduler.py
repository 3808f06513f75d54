"""
Pipeline scheduler: stage machine outcomes, concurrency policy, cancellation, health.
"""

import asyncio

import pytest

from trend_intel.errors import ConcurrentRunConflict
from trend_intel.schemas import DataSource, PipelineStage, RunOutcome
from trend_intel.trends.fetcher import TrendDataFetcher
from trend_intel.trends.niche_resolver import NicheResolver
from trend_intel.trends.run_registry import CancellationToken, RunRegistry
from trend_intel.trends.scheduler import TrendPipelineScheduler

PATH = "content_monetization"


def _scheduler(db, settings, sources):
    return TrendPipelineScheduler(
        db,
        fetcher=TrendDataFetcher(db, sources, settings),
        resolver=NicheResolver.from_database(db),
        settings=settings,
    )


def _run(scheduler, path_id=PATH, niche="investasi", **kwargs):
    return asyncio.run(scheduler.run_full_pipeline(path_id, niche, **kwargs))


# ════════════════════════════════════════════════════════════════════
# Outcomes
# ════════════════════════════════════════════════════════════════════

def test_successful_run(db, settings, source_factory):
    events = []
    scheduler = _scheduler(db, settings, [source_factory(settings)])
    result = _run(scheduler, observer=events.append)

    assert result.status == RunOutcome.SUCCESS
    assert result.stage == PipelineStage.DONE
    assert result.niche_id == "audience.finance"
    assert result.keywords_scored == 10
    assert result.signals_created == 10
    assert result.fetch.points_written == 10
    assert result.errors == []
    assert result.completed_at is not None

    stages = [e.stage for e in events]
    assert stages[0] == PipelineStage.FETCHING
    assert stages[-1] == PipelineStage.DONE
    assert PipelineStage.SIGNALING in stages
    percents = [e.percent for e in events]
    assert percents == sorted(percents)
    assert percents[-1] == 100
    assert len(db.get_market_signals(PATH)) == 10


def test_no_sources_and_no_data_fails(db, settings, source_factory):
    scheduler = _scheduler(db, settings, [source_factory(settings, configured=False)])
    result = _run(scheduler)
    assert result.status == RunOutcome.FAILED
    assert result.reason == "no_data"
    assert result.failed_stage == PipelineStage.FETCHING
    assert db.get_trend_scores("audience.finance") == []


def test_stored_data_is_scored_without_sources(db, settings, source_factory, make_point):
    db.upsert_data_points([make_point(keyword=kw) for kw in ("a", "b", "c")])
    scheduler = _scheduler(db, settings, [source_factory(settings, configured=False)])
    result = _run(scheduler)
    assert result.status == RunOutcome.SUCCESS
    assert result.keywords_scored == 3
    assert "No data source configured; scoring stored data" in result.warnings


def test_nothing_new_is_partial(db, settings, source_factory):
    source = source_factory(settings, confidence=0.9)
    scheduler = _scheduler(db, settings, [source])
    assert _run(scheduler).status == RunOutcome.SUCCESS

    source.confidence = 0.5
    result = _run(scheduler)
    assert result.status == RunOutcome.PARTIAL
    assert result.stage == PipelineStage.PARTIAL_DONE
    assert result.reason == "no_new_data"
    assert result.signals_updated == 10


def test_too_few_keywords_is_partial(db, settings, source_factory):
    scheduler = _scheduler(db, settings, [source_factory(settings)])
    result = _run(scheduler, path_id="coffee_roasting", niche="kopi susu")
    assert result.status == RunOutcome.PARTIAL
    assert result.reason == "insufficient_data"
    assert result.niche_id == "coffee_roasting.default"
    assert any("No taxonomy niche" in w for w in result.warnings)
    assert db.get_market_signals("coffee_roasting") == []


def test_source_errors_become_warnings(db, settings, source_factory):
    good = source_factory(settings, name="good")
    bad = source_factory(settings, name="bad", platform="youtube", error=ValueError("garbage"))
    result = _run(_scheduler(db, settings, [good, bad]))
    assert result.status == RunOutcome.SUCCESS
    assert any(w.startswith("bad [parse]") for w in result.warnings)


def test_unexpected_error_is_internal_error(db, settings, source_factory):
    scheduler = _scheduler(db, settings, [source_factory(settings)])

    def explode(niche_id, min_keywords=None):
        raise RuntimeError("boom")

    scheduler.engine.score_niche = explode
    result = _run(scheduler)
    assert result.status == RunOutcome.FAILED
    assert result.reason == "internal_error"
    assert result.failed_stage == PipelineStage.SCORING
    assert "RuntimeError: boom" in result.errors


# ════════════════════════════════════════════════════════════════════
# Cancellation + observers
# ════════════════════════════════════════════════════════════════════

def test_cancel_between_stages(db, settings, source_factory):
    token = CancellationToken()

    def observer(progress):
        if progress.stage == PipelineStage.SCORING:
            token.cancel()

    scheduler = _scheduler(db, settings, [source_factory(settings)])
    result = _run(scheduler, observer=observer, cancel_token=token)
    assert result.status == RunOutcome.FAILED
    assert result.reason == "cancelled"
    assert result.failed_stage == PipelineStage.SIGNALING
    # Scoring finished before the cancel point
    assert len(db.get_trend_scores("audience.finance")) == 10
    assert db.get_market_signals(PATH) == []


def test_cancelled_before_start(db, settings, source_factory):
    token = CancellationToken()
    token.cancel()
    source = source_factory(settings)
    result = _run(_scheduler(db, settings, [source]), cancel_token=token)
    assert result.reason == "cancelled"
    assert source.calls == 0


def test_failing_observer_does_not_break_run(db, settings, source_factory):
    def observer(progress):
        raise ValueError("listener gone")

    result = _run(_scheduler(db, settings, [source_factory(settings)]), observer=observer)
    assert result.status == RunOutcome.SUCCESS


# ════════════════════════════════════════════════════════════════════
# Concurrency
# ════════════════════════════════════════════════════════════════════

def test_concurrent_callers_join_one_run(db, settings, source_factory):
    source = source_factory(settings, delay=0.01)
    scheduler = _scheduler(db, settings, [source])

    async def both():
        return await asyncio.gather(
            scheduler.run_full_pipeline(PATH, "investasi"),
            scheduler.run_full_pipeline(PATH, "investasi"),
        )

    first, second = asyncio.run(both())
    assert source.calls == 1
    assert first.run_id == second.run_id
    assert not first.joined
    assert second.joined
    assert second.status == RunOutcome.SUCCESS


def test_economic_model_id_joins_path_run(db, settings, source_factory):
    source = source_factory(settings, delay=0.01)
    scheduler = _scheduler(db, settings, [source])

    async def both():
        return await asyncio.gather(
            scheduler.run_full_pipeline("audience_based", "investasi"),
            scheduler.run_full_pipeline(PATH, "investasi"),
        )

    first, second = asyncio.run(both())
    assert source.calls == 1
    assert first.run_id == second.run_id
    assert first.path_id == second.path_id == PATH
    assert not first.joined
    assert second.joined
    assert [r.run_id for r in scheduler.registry.list_runs(PATH)] == [first.run_id]


def test_concurrent_caller_rejected(db, settings_factory, source_factory):
    settings = settings_factory(concurrent_run_policy="reject")
    source = source_factory(settings, delay=0.01)
    scheduler = _scheduler(db, settings, [source])

    async def both():
        return await asyncio.gather(
            scheduler.run_full_pipeline(PATH, "investasi"),
            scheduler.run_full_pipeline(PATH, "investasi"),
        )

    first, second = asyncio.run(both())
    assert first.status == RunOutcome.SUCCESS
    assert second.status == RunOutcome.FAILED
    assert second.reason == "concurrent_run_conflict"
    assert second.run_id == first.run_id
    assert source.calls == 1


def test_registry_history(db, settings, source_factory):
    scheduler = _scheduler(db, settings, [source_factory(settings)])
    result = _run(scheduler)
    assert not scheduler.registry.is_running(PATH)
    runs = scheduler.registry.list_runs(PATH)
    assert [r.run_id for r in runs] == [result.run_id]
    assert runs[0].result is result
    assert scheduler.registry.get_run(result.run_id) is runs[0]


def test_registry_rejects_second_begin():
    registry = RunRegistry()
    run = registry.begin(PATH)
    with pytest.raises(ConcurrentRunConflict) as exc:
        registry.begin(PATH)
    assert exc.value.run_id == run.run_id
    assert registry.join(PATH) is run
    assert run.joiners == 1


# ════════════════════════════════════════════════════════════════════
# Health + freshness
# ════════════════════════════════════════════════════════════════════

def test_health_with_nothing_configured(db, settings, source_factory):
    scheduler = _scheduler(db, settings, [source_factory(settings, configured=False)])
    health = scheduler.check_pipeline_health("audience.finance")
    assert not health.healthy
    assert health.apis_configured == 0
    assert health.apis_total == 1
    assert health.missing_keys == ["STATIC_KEY"]
    assert "No trend data fetched yet" in health.warnings
    assert health.recommendations[0].startswith("Configure at least one API key")


def test_health_after_run(db, settings, source_factory):
    scheduler = _scheduler(db, settings, [source_factory(settings)])
    _run(scheduler)
    health = scheduler.check_pipeline_health("audience.finance")
    assert health.healthy
    assert health.data_fresh
    assert health.keyword_count == 10
    assert health.has_enough_data


def test_refresh_if_stale(db, settings, source_factory):
    source = source_factory(settings)
    scheduler = _scheduler(db, settings, [source])
    assert scheduler.needs_refresh(PATH, "investasi")

    first = asyncio.run(scheduler.refresh_if_stale(PATH, "investasi"))
    assert first.status == RunOutcome.SUCCESS
    assert asyncio.run(scheduler.refresh_if_stale(PATH, "investasi")) is None
    assert source.calls == 1


# ════════════════════════════════════════════════════════════════════
# Rescore
# ════════════════════════════════════════════════════════════════════

def test_rescore_existing_data_without_fetching(db, settings, source_factory):
    source = source_factory(settings)
    scheduler = _scheduler(db, settings, [source])
    _run(scheduler)

    insight = scheduler.rescore_existing_data("audience_based", "investasi")
    assert source.calls == 1
    assert insight.niche_id == "audience.finance"
    assert insight.data_source == DataSource.REAL
    assert len(insight.scores) == 10
    assert len(db.get_trend_scores("audience.finance")) == 10
    assert len(db.get_market_signals(PATH)) == 10


def test_rescore_refused_while_run_in_flight(db, settings, source_factory):
    scheduler = _scheduler(db, settings, [source_factory(settings)])
    run = scheduler.registry.begin(PATH)
    with pytest.raises(ConcurrentRunConflict) as exc:
        scheduler.rescore_existing_data("audience_based", "investasi")
    assert exc.value.run_id == run.run_id


def test_rescore_with_too_few_keywords_writes_nothing(db, settings, source_factory, make_point):
    db.upsert_data_points([make_point(keyword="a")])
    scheduler = _scheduler(db, settings, [source_factory(settings)])
    insight = scheduler.rescore_existing_data(PATH, "investasi")
    assert db.get_trend_scores("audience.finance") == []
    assert db.get_market_signals(PATH) == []
    assert [s.keyword for s in insight.scores] == ["a"]
