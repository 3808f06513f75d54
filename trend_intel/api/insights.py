"""Insights router -- trend insights and market signals per path."""

from typing import Dict, List, Optional

from fastapi import APIRouter, HTTPException

from trend_intel.api.dependencies import Scheduler, Signals
from trend_intel.api.schemas import BriefResponse, MarketFocusResponse, SignalListResponse
from trend_intel.schemas import MarketSignal, SignalRefreshResult, TrendInsight
from trend_intel.trends.engine import format_brief_for_prompt

router = APIRouter()


@router.get("/insights/{path_id}", response_model=TrendInsight)
async def get_insight(
    path_id: str,
    scheduler: Scheduler,
    niche: Optional[str] = None,
    sub_sector: Optional[str] = None,
):
    insight = scheduler.engine.compute_trend_insight(path_id, niche, sub_sector)
    if insight is None:
        raise HTTPException(status_code=404, detail=f"No trend data for path '{path_id}'")
    return insight


@router.get("/insights/{path_id}/brief", response_model=BriefResponse)
async def get_brief(
    path_id: str,
    scheduler: Scheduler,
    niche: Optional[str] = None,
    sub_sector: Optional[str] = None,
):
    """Scores-only brief of the insight, plus its plain-text rendering."""
    brief = scheduler.engine.compute_trend_brief(path_id, niche, sub_sector)
    if brief is None:
        raise HTTPException(status_code=404, detail=f"No trend data for path '{path_id}'")
    return BriefResponse(brief=brief, prompt=format_brief_for_prompt(brief))


@router.get("/signals", response_model=List[MarketSignal])
async def get_hot_signals(signals: Signals, limit: int = 50):
    """Hot signals across every path."""
    return signals.load_hot_signals(limit=limit)


@router.get("/signals/{path_id}", response_model=SignalListResponse)
async def get_signals(
    path_id: str,
    scheduler: Scheduler,
    signals: Signals,
    hot_only: bool = False,
    limit: int = 20,
):
    resolved = scheduler.resolver.map_path_id(path_id)
    items = signals.load_path_signals(resolved, limit=limit, hot_only=hot_only)
    return SignalListResponse(
        path_id=resolved,
        count=len(items),
        hot_count=sum(1 for s in items if s.is_hot),
        signals=items,
    )


@router.get("/signals/{path_id}/focus", response_model=MarketFocusResponse)
async def get_market_focus(path_id: str, scheduler: Scheduler, signals: Signals):
    focus = signals.get_path_market_focus(scheduler.resolver.map_path_id(path_id))
    if focus is None:
        raise HTTPException(status_code=404, detail=f"No market signals for path '{path_id}'")
    return focus


@router.get("/focus", response_model=Dict[str, MarketFocusResponse])
async def get_all_market_focus(signals: Signals):
    """Market focus of every path with signals."""
    return signals.get_all_path_market_focus()


@router.post("/signals/refresh", response_model=SignalRefreshResult)
async def refresh_all_signals(signals: Signals):
    """Regenerate every path's signals from the stored trend scores."""
    return signals.refresh_all_signals()
