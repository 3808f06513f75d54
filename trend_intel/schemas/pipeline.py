"""
Pipeline models: source results, fetch summaries, progress events,
run results and health reports.
"""

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, Field

from trend_intel.schemas.base import (
    PipelineStage, RunOutcome, SourceErrorKind, utcnow,
)
from trend_intel.schemas.trends import TrendDataPoint


class SourceError(BaseModel):
    """A source failure, reported as a value instead of raised."""
    source: str
    kind: SourceErrorKind
    message: str = ""

    def __str__(self) -> str:
        return f"{self.source} [{self.kind.value}] {self.message}".strip()


class SourceResult(BaseModel):
    """Either the points a source returned, or why it returned none."""
    source: str
    points: List[TrendDataPoint] = Field(default_factory=list)
    error: Optional[SourceError] = None
    keyword_errors: List[str] = Field(default_factory=list)

    @classmethod
    def success(cls, source: str, points: List[TrendDataPoint], keyword_errors: Optional[List[str]] = None) -> "SourceResult":
        return cls(source=source, points=points, keyword_errors=keyword_errors or [])

    @classmethod
    def failure(cls, source: str, kind: SourceErrorKind, message: str = "") -> "SourceResult":
        return cls(source=source, error=SourceError(source=source, kind=kind, message=message))

    @property
    def succeeded(self) -> bool:
        return self.error is None


class DataSourceStatus(BaseModel):
    """Configuration status of one data source (no network calls)."""
    name: str
    label: str
    key: str
    available: bool
    reason: str = ""


class FetchResult(BaseModel):
    """Summary of one refresh of a niche's data."""
    niche_id: str
    keywords: List[str] = Field(default_factory=list)
    sources_attempted: List[str] = Field(default_factory=list)
    sources_succeeded: List[str] = Field(default_factory=list)
    errors: List[SourceError] = Field(default_factory=list)
    points_fetched: int = 0
    points_written: int = 0
    duration_ms: int = 0

    @property
    def has_new_data(self) -> bool:
        return self.points_written > 0


class PipelineProgress(BaseModel):
    """Progress event emitted at each stage transition."""
    run_id: str = ""
    path_id: str = ""
    stage: PipelineStage
    message: str = ""
    percent: int = Field(ge=0, le=100, default=0)
    timestamp: dt.datetime = Field(default_factory=utcnow)


class PipelineResult(BaseModel):
    """Caller-facing result of run_full_pipeline; never raised, always returned."""
    run_id: str
    path_id: str
    niche_id: str = ""
    status: RunOutcome = RunOutcome.SUCCESS
    stage: PipelineStage = PipelineStage.IDLE
    reason: Optional[str] = None
    failed_stage: Optional[PipelineStage] = None
    fetch: Optional[FetchResult] = None
    keywords_scored: int = 0
    hot_keywords: int = 0
    signals_created: int = 0
    signals_updated: int = 0
    stale_signals_removed: int = 0
    stale_points_removed: int = 0
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    joined: bool = False
    started_at: dt.datetime = Field(default_factory=utcnow)
    completed_at: Optional[dt.datetime] = None
    duration_ms: int = 0


class PipelineHealth(BaseModel):
    """Read-only readiness report for the pipeline."""
    healthy: bool = False
    apis_configured: int = 0
    apis_total: int = 0
    sources: List[DataSourceStatus] = Field(default_factory=list)
    has_minimum_setup: bool = False
    missing_keys: List[str] = Field(default_factory=list)
    niche_id: Optional[str] = None
    last_data_at: Optional[dt.datetime] = None
    data_fresh: bool = False
    keyword_count: int = 0
    data_points_count: int = 0
    has_enough_data: bool = False
    warnings: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    checked_at: dt.datetime = Field(default_factory=utcnow)
