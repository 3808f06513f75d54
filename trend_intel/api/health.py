"""Health check router -- pipeline readiness and data source status."""

from typing import Optional

from fastapi import APIRouter

from trend_intel import __version__
from trend_intel.api.dependencies import AppSettings, Scheduler
from trend_intel.api.schemas import SourcesResponse
from trend_intel.schemas import PipelineHealth

router = APIRouter()


@router.get("/")
async def root(settings: AppSettings):
    return {
        "service": "Trend Intelligence API",
        "version": __version__,
        "geo": settings.trend_geo,
        "concurrent_run_policy": settings.concurrent_run_policy,
    }


@router.get("/health", response_model=PipelineHealth)
async def health(scheduler: Scheduler, niche_id: Optional[str] = None):
    return scheduler.check_pipeline_health(niche_id)


@router.get("/sources", response_model=SourcesResponse)
async def sources(scheduler: Scheduler):
    fetcher = scheduler.fetcher
    statuses = fetcher.get_data_source_status()
    return SourcesResponse(
        has_any_data_source=fetcher.has_any_data_source(),
        configured=sum(1 for s in statuses if s.available),
        total=len(statuses),
        sources=statuses,
        issues=fetcher.checker.get_critical_issues(),
    )
