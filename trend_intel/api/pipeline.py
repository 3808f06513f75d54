"""Pipeline API router -- trigger runs and inspect a path's recent runs.

POST /pipeline/run awaits the run and returns its PipelineResult. A second
request for a path whose run is still in flight joins that run (or gets a
failed result under the "reject" policy); the scheduler decides.
POST /pipeline/rescore re-scores stored data without fetching.
"""

import logging

from fastapi import APIRouter, HTTPException

from trend_intel.api.dependencies import Scheduler
from trend_intel.api.schemas import PipelineRunRequest, RunListResponse, RunSummaryResponse
from trend_intel.errors import ConcurrentRunConflict
from trend_intel.schemas import PipelineResult, TrendInsight
from trend_intel.trends.run_registry import PipelineRun

logger = logging.getLogger(__name__)

router = APIRouter()


def _summary(run: PipelineRun) -> RunSummaryResponse:
    return RunSummaryResponse(
        run_id=run.run_id,
        path_id=run.path_id,
        stage=run.stage.value,
        in_flight=run.in_flight,
        progress_pct=run.progress_pct,
        message=run.message,
        status=run.result.status.value if run.result else None,
        reason=run.result.reason if run.result else None,
        started_at=run.started_at,
        completed_at=run.completed_at,
    )


@router.post("/run", response_model=PipelineResult)
async def run_pipeline(body: PipelineRunRequest, scheduler: Scheduler):
    """Run the full pipeline for a path (resolve, fetch, score, signal, clean)."""
    logger.info(f"Pipeline requested for {body.path_id} (niche={body.niche}, sub_sector={body.sub_sector})")
    if body.only_if_stale:
        result = await scheduler.refresh_if_stale(body.path_id, body.niche, body.sub_sector)
        if result is not None:
            return result
        # Fresh: report the latest finished run without starting a new one
        for run in scheduler.registry.list_runs(scheduler.resolver.map_path_id(body.path_id)):
            if run.result is not None:
                return run.result
        return PipelineResult(
            run_id="",
            path_id=body.path_id,
            reason="fresh",
            warnings=["Data is fresh, no run started"],
        )
    return await scheduler.run_full_pipeline(body.path_id, body.niche, body.sub_sector)


@router.post("/rescore", response_model=TrendInsight)
async def rescore(body: PipelineRunRequest, scheduler: Scheduler):
    """Re-score stored data and regenerate signals without fetching."""
    try:
        insight = scheduler.rescore_existing_data(body.path_id, body.niche, body.sub_sector)
    except ConcurrentRunConflict as e:
        raise HTTPException(status_code=409, detail=str(e))
    if insight is None:
        raise HTTPException(status_code=404, detail=f"No trend data for path '{body.path_id}'")
    return insight


@router.get("/runs/{path_id}", response_model=RunListResponse)
async def list_runs(path_id: str, scheduler: Scheduler, limit: int = 20):
    path_id = scheduler.resolver.map_path_id(path_id)
    runs = scheduler.registry.list_runs(path_id, limit=limit)
    active = scheduler.registry.get_active(path_id)
    return RunListResponse(
        path_id=path_id,
        running=active is not None,
        active_run_id=active.run_id if active else None,
        runs=[_summary(r) for r in runs],
    )
