"""API request/response schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from trend_intel.schemas import DataSourceStatus, MarketSignal, TrendBrief


# -- Pipeline --

class PipelineRunRequest(BaseModel):
    path_id: str
    niche: Optional[str] = None
    sub_sector: Optional[str] = None
    only_if_stale: bool = False  # Skip the run when the niche's data is fresh


class RunSummaryResponse(BaseModel):
    run_id: str
    path_id: str
    stage: str
    in_flight: bool = False
    progress_pct: int
    message: str = ""
    status: Optional[str] = None  # success | partial | failed, None while in flight
    reason: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None


class RunListResponse(BaseModel):
    path_id: str
    running: bool
    active_run_id: Optional[str] = None
    runs: List[RunSummaryResponse] = Field(default_factory=list)


# -- Sources --

class SourcesResponse(BaseModel):
    has_any_data_source: bool
    configured: int
    total: int
    sources: List[DataSourceStatus] = Field(default_factory=list)
    issues: List[str] = Field(default_factory=list)


# -- Signals --

class SignalListResponse(BaseModel):
    path_id: str
    count: int
    hot_count: int
    signals: List[MarketSignal] = Field(default_factory=list)


class MarketFocusResponse(BaseModel):
    path_id: str
    top_keyword: str
    trend_score: float
    trend_direction: str
    suggestion: str = ""
    hot_count: int = 0
    total_signals: int = 0
    heat_score: int = 0


# -- Insights --

class BriefResponse(BaseModel):
    brief: TrendBrief
    prompt: str
