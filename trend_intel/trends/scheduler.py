"""
Trend Pipeline Scheduler — runs resolve → fetch → score → signal → clean for one path.

Stage machine per path_id:

    IDLE → FETCHING → SCORING → SIGNALING → CLEANING → DONE
                                                     ↘ PARTIAL_DONE
    any stage → FAILED

PARTIAL_DONE: the fetch brought nothing new but stored data exists, or the
niche has too few keywords to score. FAILED: no data at all, a store failure,
cancellation, or an unexpected error. Whatever happens, the caller gets a
PipelineResult back; nothing is raised.

Concurrent calls for the same path go through the RunRegistry: with the
"join" policy the second caller awaits the in-flight run's result, with
"reject" it gets a FAILED result immediately.
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import List, Optional

from ..config import Settings, get_settings
from ..database import Database
from ..errors import (
    ConcurrentRunConflict, InsufficientData, NoDataSources, PersistenceError,
    PipelineCancelled,
)
from ..schemas import (
    NicheResolution, PipelineHealth, PipelineProgress, PipelineResult,
    PipelineStage, RunOutcome, TrendInsight, utcnow,
)
from .engine import TrendIntelligenceEngine
from .fetcher import TrendDataFetcher
from .market_signals import MarketSignalService
from .niche_resolver import NicheResolver
from .run_registry import (
    STAGE_PROGRESS, CancellationToken, PipelineRun, ProgressObserver, RunRegistry,
)

logger = logging.getLogger(__name__)

JOIN = "join"
REJECT = "reject"


class TrendPipelineScheduler:
    """Orchestrates full pipeline runs and answers health / freshness queries."""

    def __init__(
        self,
        db: Database,
        fetcher: Optional[TrendDataFetcher] = None,
        engine: Optional[TrendIntelligenceEngine] = None,
        signals: Optional[MarketSignalService] = None,
        resolver: Optional[NicheResolver] = None,
        registry: Optional[RunRegistry] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.resolver = resolver or NicheResolver.from_database(db)
        self.fetcher = fetcher or TrendDataFetcher(db, settings=self.settings)
        self.engine = engine or TrendIntelligenceEngine(db, self.resolver, self.settings)
        self.signals = signals or MarketSignalService(db, self.settings)
        self.registry = registry or RunRegistry()

    # ── Entry point ───────────────────────────────────────────────────

    async def run_full_pipeline(
        self,
        path_id: str,
        niche: Optional[str] = None,
        sub_sector: Optional[str] = None,
        observer: Optional[ProgressObserver] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> PipelineResult:
        """Run (or join) the pipeline for `path_id`. Never raises.

        Economic model ids share the registry slot of the path they map to.
        """
        path_id = self.resolver.map_path_id(path_id)
        if self.settings.concurrent_run_policy == JOIN:
            active = self.registry.join(path_id, observer)
            if active is not None and active.task is not None:
                logger.info(f"[{active.run_id}] joining in-flight run for {path_id}")
                result = await asyncio.shield(active.task)
                return result.model_copy(update={"joined": True})

        try:
            run = self.registry.begin(path_id, observer)
        except ConcurrentRunConflict as e:
            logger.warning(str(e))
            now = utcnow()
            return PipelineResult(
                run_id=e.run_id,
                path_id=path_id,
                status=RunOutcome.FAILED,
                stage=PipelineStage.FAILED,
                reason=e.code,
                errors=[str(e)],
                started_at=now,
                completed_at=now,
            )

        run.task = asyncio.ensure_future(self._execute(run, niche, sub_sector, cancel_token))
        return await asyncio.shield(run.task)

    async def _execute(
        self,
        run: PipelineRun,
        niche: Optional[str],
        sub_sector: Optional[str],
        cancel_token: Optional[CancellationToken],
    ) -> PipelineResult:
        result = PipelineResult(run_id=run.run_id, path_id=run.path_id)
        t0 = time.monotonic()
        logger.info("=" * 50)
        logger.info(f"PIPELINE RUN {run.run_id} — path {run.path_id}")
        logger.info("=" * 50)
        try:
            await self._run_stages(run, result, niche, sub_sector, cancel_token)
        except PipelineCancelled as e:
            logger.info(f"[{run.run_id}] {e}")
            self._fail(run, result, PipelineStage(e.stage), e.code, str(e))
        except Exception as e:
            logger.exception(f"[{run.run_id}] pipeline crashed in {run.stage.value}")
            self._fail(run, result, run.stage, "internal_error", f"{type(e).__name__}: {e}")
        finally:
            result.completed_at = utcnow()
            result.duration_ms = int((time.monotonic() - t0) * 1000)
            self.registry.finish(run, result)
        logger.info(
            f"[{run.run_id}] {result.status.value} ({result.reason or 'ok'}) in {result.duration_ms}ms"
        )
        return result

    # ── Stages ────────────────────────────────────────────────────────

    async def _run_stages(
        self,
        run: PipelineRun,
        result: PipelineResult,
        niche: Optional[str],
        sub_sector: Optional[str],
        cancel_token: Optional[CancellationToken],
    ):
        self._check_cancel(cancel_token, PipelineStage.FETCHING)
        resolution = self.resolver.resolve_user_niche(run.path_id, niche, sub_sector)
        result.niche_id = resolution.niche_id
        if resolution.is_default:
            result.warnings.append(f"No taxonomy niche for path '{run.path_id}', using {resolution.niche_id}")
        partial_reason = None

        # FETCHING
        self._enter(run, PipelineStage.FETCHING, f"Fetching trend data for {resolution.label}")
        try:
            has_stored = self.db.get_data_stats(resolution.niche_id)["points_count"] > 0
            outcome = await self._fetch_stage(result, resolution, has_stored)
        except PersistenceError as e:
            return self._fail(run, result, PipelineStage.FETCHING, e.code, str(e))
        if outcome == "no_data":
            return self._fail(run, result, PipelineStage.FETCHING, "no_data",
                              "No data source configured and no stored data")
        if outcome == "no_new_data":
            partial_reason = "no_new_data"
        self._progress(run, f"Fetch complete ({outcome})", 40)

        # SCORING
        self._check_cancel(cancel_token, PipelineStage.SCORING)
        self._enter(run, PipelineStage.SCORING, f"Scoring keywords for {resolution.niche_id}")
        try:
            scores = self.engine.score_niche(resolution.niche_id)
        except InsufficientData as e:
            result.warnings.append(str(e))
            return self._finish(run, result, PipelineStage.PARTIAL_DONE, e.code)
        except PersistenceError as e:
            return self._fail(run, result, PipelineStage.SCORING, e.code, str(e))
        result.keywords_scored = len(scores)
        self._progress(run, f"Scored {len(scores)} keywords", 65)

        # SIGNALING
        self._check_cancel(cancel_token, PipelineStage.SIGNALING)
        self._enter(run, PipelineStage.SIGNALING, "Generating market signals")
        try:
            generated = self.signals.generate_signals_from_trend_scores(resolution.path_id, scores)
        except PersistenceError as e:
            return self._fail(run, result, PipelineStage.SIGNALING, e.code, str(e))
        result.signals_created = generated.created
        result.signals_updated = generated.updated
        result.hot_keywords = generated.hot_count
        result.warnings.extend(generated.errors)
        self._progress(run, f"{generated.created + generated.updated} signals, {generated.hot_count} hot", 80)

        # CLEANING
        self._check_cancel(cancel_token, PipelineStage.CLEANING)
        self._enter(run, PipelineStage.CLEANING, "Removing stale data")
        cutoff = (utcnow() - timedelta(days=self.settings.data_retention_days)).date()
        try:
            result.stale_points_removed = self.db.purge_data_points_older_than(cutoff)
        except PersistenceError as e:
            return self._fail(run, result, PipelineStage.CLEANING, e.code, str(e))
        cleanup = self.signals.cleanup_stale_signals(path_id=resolution.path_id)
        result.stale_signals_removed = cleanup.removed
        if cleanup.errors:
            return self._fail(run, result, PipelineStage.CLEANING, "persistence_error", "; ".join(cleanup.errors))
        self._progress(run, f"Removed {result.stale_points_removed} points, {cleanup.removed} signals", 95)

        if partial_reason:
            return self._finish(run, result, PipelineStage.PARTIAL_DONE, partial_reason)
        return self._finish(run, result, PipelineStage.DONE)

    async def _fetch_stage(
        self,
        result: PipelineResult,
        resolution: NicheResolution,
        has_stored: bool,
    ) -> str:
        """Returns "fetched", "no_new_data", "skipped" or "no_data"."""
        if not self.fetcher.has_any_data_source():
            if not has_stored:
                return "no_data"
            result.warnings.append("No data source configured; scoring stored data")
            return "skipped"

        try:
            fetch = await self.fetcher.refresh_niche_data(resolution.niche_id, resolution.keywords)
        except NoDataSources:
            return "skipped" if has_stored else "no_data"
        result.fetch = fetch
        result.warnings.extend(str(err) for err in fetch.errors)
        if fetch.has_new_data:
            return "fetched"
        return "no_new_data" if has_stored else "no_data"

    # ── State machine helpers ─────────────────────────────────────────

    @staticmethod
    def _check_cancel(token: Optional[CancellationToken], next_stage: PipelineStage):
        if token is not None and token.cancelled:
            raise PipelineCancelled(next_stage.value)

    def _emit(self, run: PipelineRun, stage: PipelineStage, message: str, percent: int):
        run.emit(PipelineProgress(
            run_id=run.run_id,
            path_id=run.path_id,
            stage=stage,
            message=message,
            percent=percent,
        ))

    def _enter(self, run: PipelineRun, stage: PipelineStage, message: str):
        logger.info(f"[{run.run_id}] {stage.value.upper()}: {message}")
        self._emit(run, stage, message, STAGE_PROGRESS[stage])

    def _progress(self, run: PipelineRun, message: str, percent: int):
        self._emit(run, run.stage, message, percent)

    def _finish(
        self,
        run: PipelineRun,
        result: PipelineResult,
        stage: PipelineStage,
        reason: Optional[str] = None,
    ):
        result.stage = stage
        result.status = RunOutcome.SUCCESS if stage == PipelineStage.DONE else RunOutcome.PARTIAL
        result.reason = reason
        self._emit(run, stage, reason or "Pipeline complete", 100)

    def _fail(
        self,
        run: PipelineRun,
        result: PipelineResult,
        failed_stage: PipelineStage,
        reason: str,
        message: str,
    ):
        logger.warning(f"[{run.run_id}] FAILED in {failed_stage.value}: {message}")
        result.stage = PipelineStage.FAILED
        result.status = RunOutcome.FAILED
        result.failed_stage = failed_stage
        result.reason = reason
        result.errors.append(message)
        self._emit(run, PipelineStage.FAILED, message, 100)

    # ── Rescore ───────────────────────────────────────────────────────

    def rescore_existing_data(
        self,
        path_id: str,
        niche: Optional[str] = None,
        sub_sector: Optional[str] = None,
    ) -> Optional[TrendInsight]:
        """Re-score stored data and regenerate signals without fetching.

        Used after the scoring rules change. A niche with too few keywords
        keeps its stored scores and signals.

        Raises:
            ConcurrentRunConflict: a pipeline run for the path is in flight.
            PersistenceError: the store rejected a write.
        """
        path_id = self.resolver.map_path_id(path_id)
        active = self.registry.get_active(path_id)
        if active is not None:
            raise ConcurrentRunConflict(path_id, active.run_id)

        resolution = self.resolver.resolve_user_niche(path_id, niche, sub_sector)
        try:
            scores = self.engine.score_niche(resolution.niche_id)
        except InsufficientData as e:
            logger.info(f"Rescore of {resolution.niche_id} skipped: {e}")
        else:
            generated = self.signals.generate_signals_from_trend_scores(resolution.path_id, scores)
            logger.info(
                f"Rescored {resolution.niche_id}: {len(scores)} keywords, "
                f"{generated.created + generated.updated} signals"
            )
        return self.engine.compute_trend_insight(path_id, niche, sub_sector, resolution=resolution)

    # ── Health & freshness ────────────────────────────────────────────

    def check_pipeline_health(self, niche_id: Optional[str] = None) -> PipelineHealth:
        """Read-only readiness report: sources, freshness and data volume."""
        statuses = self.fetcher.get_data_source_status()
        configured = sum(1 for s in statuses if s.available)
        stats = self.db.get_data_stats(niche_id)
        last = self.db.get_last_refresh(niche_id) or stats["last_fetched_at"]
        window = timedelta(hours=self.settings.staleness_window_hours)
        fresh = last is not None and utcnow() - last < window
        required = self.settings.min_keywords_for_scoring
        enough = stats["keyword_count"] >= required

        warnings: List[str] = []
        recommendations: List[str] = []
        missing = [s.key for s in statuses if not s.available]

        warnings.extend(self.fetcher.checker.get_critical_issues())
        if configured == 0:
            recommendations.append(f"Configure at least one API key: {', '.join(missing)}")
        else:
            recommendations.extend(s.reason for s in statuses if not s.available and s.reason)

        if last is None:
            warnings.append("No trend data fetched yet")
            recommendations.append("Run the pipeline to fetch initial data")
        elif not fresh:
            age_h = int((utcnow() - last).total_seconds() // 3600)
            warnings.append(f"Trend data is {age_h}h old (window {self.settings.staleness_window_hours}h)")
            recommendations.append("Refresh trend data")

        if not enough:
            warnings.append(f"Only {stats['keyword_count']} keyword(s) tracked, need {required}")
            recommendations.append("Track more keywords for this niche")

        return PipelineHealth(
            healthy=configured > 0 and fresh and enough,
            apis_configured=configured,
            apis_total=len(statuses),
            sources=statuses,
            has_minimum_setup=configured > 0,
            missing_keys=missing,
            niche_id=niche_id,
            last_data_at=last,
            data_fresh=fresh,
            keyword_count=stats["keyword_count"],
            data_points_count=stats["points_count"],
            has_enough_data=enough,
            warnings=warnings,
            recommendations=recommendations,
        )

    def needs_refresh(
        self,
        path_id: str,
        niche: Optional[str] = None,
        sub_sector: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        resolution = self.resolver.resolve_user_niche(path_id, niche, sub_sector)
        return self.fetcher.needs_refresh(resolution.niche_id, now)

    async def refresh_if_stale(
        self,
        path_id: str,
        niche: Optional[str] = None,
        sub_sector: Optional[str] = None,
        observer: Optional[ProgressObserver] = None,
    ) -> Optional[PipelineResult]:
        """Run the pipeline only when the niche's data is stale; None when fresh."""
        if not self.needs_refresh(path_id, niche, sub_sector):
            logger.info(f"Data for {path_id} is fresh, skipping refresh")
            return None
        return await self.run_full_pipeline(path_id, niche, sub_sector, observer)
