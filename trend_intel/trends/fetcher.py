"""
Trend Data Fetcher — fans out to every configured source and merges the results.

Each adapter runs concurrently under its own timeout; the whole fan-out runs
under a stage timeout after which unfinished adapters are cancelled. Whatever
succeeded is merged into the store in one transaction. A failing adapter
never aborts the others: its failure is reported in FetchResult.errors.
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from ..config import Settings, get_settings
from ..database import Database
from ..errors import NoDataSources
from ..schemas import (
    DataSourceStatus, FetchResult, SourceErrorKind, SourceResult, utcnow,
)
from ..tools import DateWindow, TrendSource, build_default_sources
from ..tools.api_checker import APIChecker
from .merge import merge_data_points

logger = logging.getLogger(__name__)

__all__ = ["TrendDataFetcher", "merge_data_points"]


def _dedupe_keywords(keywords: List[str]) -> List[str]:
    seen = set()
    result = []
    for kw in keywords:
        key = " ".join(kw.split()).lower()
        if key and key not in seen:
            seen.add(key)
            result.append(key)
    return result


class TrendDataFetcher:
    """Multi-source trend fetcher backed by the SQL store."""

    def __init__(
        self,
        db: Database,
        sources: Optional[List[TrendSource]] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.sources = sources if sources is not None else build_default_sources(self.settings)
        self.checker = APIChecker(self.sources, self.settings)

    # ── Source status ─────────────────────────────────────────────────

    def get_data_source_status(self) -> List[DataSourceStatus]:
        return self.checker.get_data_source_status()

    def has_any_data_source(self) -> bool:
        return self.checker.has_any_data_source()

    def configured_sources(self) -> List[TrendSource]:
        return [s for s in self.sources if s.is_configured()]

    # ── Freshness ─────────────────────────────────────────────────────

    def last_refreshed_at(self, niche_id: str) -> Optional[datetime]:
        """Newest successful fetch for the niche (refresh log, else newest point)."""
        last = self.db.get_last_refresh(niche_id)
        if last is None:
            last = self.db.get_data_stats(niche_id)["last_fetched_at"]
        return last

    def needs_refresh(self, niche_id: str, now: Optional[datetime] = None) -> bool:
        last = self.last_refreshed_at(niche_id)
        if last is None:
            return True
        now = now or utcnow()
        return now - last >= timedelta(hours=self.settings.staleness_window_hours)

    # ── Fetch ─────────────────────────────────────────────────────────

    async def _fetch_one(
        self,
        source: TrendSource,
        keywords: List[str],
        window: DateWindow,
        niche_id: str,
    ) -> SourceResult:
        try:
            return await asyncio.wait_for(
                source.fetch(keywords, window, niche_id),
                timeout=self.settings.source_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"[TIMEOUT] {source.label}: no response in {self.settings.source_timeout_seconds}s, skipping")
            return SourceResult.failure(source.name, SourceErrorKind.TIMEOUT, "source timeout")
        except Exception as e:
            logger.exception(f"[{source.name}] adapter crashed")
            return SourceResult.failure(source.name, SourceErrorKind.CRASHED, f"{type(e).__name__}: {e}")

    async def refresh_niche_data(
        self,
        niche_id: str,
        keywords: List[str],
        window: Optional[DateWindow] = None,
    ) -> FetchResult:
        """Fetch all configured sources for the niche and merge into the store.

        Raises:
            NoDataSources: no adapter is configured.
            PersistenceError: the merge transaction failed (nothing written).
        """
        sources = self.configured_sources()
        if not sources:
            raise NoDataSources()

        keywords = _dedupe_keywords(keywords)
        window = window or DateWindow.last_days(self.settings.fetch_window_days)
        started_at = utcnow()
        t0 = time.monotonic()

        tasks: Dict[asyncio.Task, TrendSource] = {
            asyncio.ensure_future(self._fetch_one(src, keywords, window, niche_id)): src
            for src in sources
        }
        done, pending = await asyncio.wait(
            tasks.keys(), timeout=self.settings.fetch_stage_timeout_seconds,
        )
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(f"Fetch stage timeout: cancelled {[tasks[t].name for t in pending]}")

        results: List[SourceResult] = []
        for task, src in tasks.items():
            if task in pending:
                results.append(SourceResult.failure(src.name, SourceErrorKind.TIMEOUT, "fetch stage timeout"))
            else:
                results.append(task.result())

        fetched = [p for r in results for p in r.points]
        points = merge_data_points([], fetched)
        written = self.db.upsert_data_points(points) if points else 0

        for r in results:
            status = "failed" if not r.succeeded else ("partial" if r.keyword_errors else "success")
            error = str(r.error) if r.error else ("; ".join(r.keyword_errors) or None)
            self.db.record_refresh(
                niche_id=niche_id,
                source=r.source,
                status=status,
                keywords_count=len({p.keyword for p in r.points}),
                points_count=len(r.points),
                error=error,
                started_at=started_at,
            )

        result = FetchResult(
            niche_id=niche_id,
            keywords=keywords,
            sources_attempted=[s.name for s in sources],
            sources_succeeded=[r.source for r in results if r.succeeded],
            errors=[r.error for r in results if r.error is not None],
            points_fetched=len(fetched),
            points_written=written,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
        logger.info(
            f"Fetched {niche_id}: {len(result.sources_succeeded)}/{len(sources)} sources ok, "
            f"{result.points_fetched} points, {written} written"
        )
        return result
