"""
Trend models: taxonomy nodes, raw data points, scores and insights.
"""

import datetime as dt
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, Field, field_validator

from trend_intel.schemas.base import (
    DataSource, LifecycleStage, RiskLevel, utcnow,
)


class NicheTaxonomyNode(BaseModel):
    """One node of the niche tree (root = a business path)."""
    id: str
    parent_id: Optional[str] = None
    label: str
    path_id: str
    depth: int = Field(ge=0, default=0)
    aliases: Set[str] = Field(default_factory=set)
    track_keywords: List[str] = Field(default_factory=list)

    class Config:
        frozen = True


class NicheResolution(BaseModel):
    """Result of resolving a user's interest to a taxonomy node."""
    niche_id: str
    label: str
    path_id: str
    keywords: List[str] = Field(default_factory=list)
    aliases: List[str] = Field(default_factory=list)
    platforms: List[str] = Field(default_factory=list)
    monetization_signals: List[str] = Field(default_factory=list)
    depth: int = 0
    is_default: bool = False


class TrendDataPoint(BaseModel):
    """
    One observation of a keyword on a platform for a day.

    Numeric fields are optional: None means the source did not report the
    metric. Scoring treats a missing metric as neutral, never as zero.
    Natural key: (niche_id, keyword, platform, date).
    """
    niche_id: str
    keyword: str
    platform: str
    date: dt.date
    search_volume: Optional[float] = None
    growth_rate_7d: Optional[float] = None
    growth_rate_30d: Optional[float] = None
    growth_rate_90d: Optional[float] = None
    cpc: Optional[float] = None
    affiliate_density: Optional[float] = None
    ads_density: Optional[float] = None
    content_density: Optional[float] = None
    creator_density: Optional[float] = None
    engagement_velocity: Optional[float] = None
    source: str = ""
    confidence: float = Field(ge=0.0, le=1.0, default=0.5)
    fetched_at: dt.datetime = Field(default_factory=utcnow)
    raw_data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("keyword")
    @classmethod
    def _normalize_keyword(cls, v: str) -> str:
        v = " ".join(v.split()).lower()
        if not v:
            raise ValueError("keyword must not be empty")
        return v

    @property
    def natural_key(self) -> tuple:
        return (self.niche_id, self.keyword, self.platform, self.date)


class Subscores(BaseModel):
    """The four 0-100 components of the opportunity score."""
    momentum: float = Field(ge=0.0, le=100.0)
    monetization: float = Field(ge=0.0, le=100.0)
    supply_gap: float = Field(ge=0.0, le=100.0)
    competition: float = Field(ge=0.0, le=100.0)


class TrendScore(BaseModel):
    """Deterministic opportunity score of one keyword within a niche."""
    niche_id: str
    keyword: str
    score: float = Field(ge=0.0, le=100.0)
    subscores: Subscores
    lifecycle: LifecycleStage
    risk: RiskLevel = RiskLevel.LOW
    risk_factors: List[str] = Field(default_factory=list)
    search_volume: float = 0.0
    growth_rate_7d: Optional[float] = None
    confidence: float = Field(ge=0.0, le=1.0, default=0.5)
    is_breakout: bool = False
    sustainability_days: int = 30
    data_points_count: int = 0
    platforms: List[str] = Field(default_factory=list)
    data_source: DataSource = DataSource.REAL
    last_updated: dt.datetime = Field(default_factory=utcnow)


class TrendInsight(BaseModel):
    """Aggregated view of a niche's keyword scores."""
    path_id: str
    niche_id: str
    niche_label: str = ""
    scores: List[TrendScore] = Field(default_factory=list)
    overall_score: float = 0.0
    data_points_total: float = 0.0
    growth_keywords: int = 0
    mature_keywords: int = 0
    last_updated: dt.datetime = Field(default_factory=utcnow)
    data_source: DataSource = DataSource.REAL
    top_opportunity: Optional[TrendScore] = None
    hot_keywords: List[str] = Field(default_factory=list)
    breakout_keywords: List[str] = Field(default_factory=list)
    lifecycle_summary: Dict[str, int] = Field(default_factory=dict)  # stage -> keyword count

    @property
    def top_keywords(self) -> List[str]:
        return [s.keyword for s in self.scores[:5]]


class BriefKeyword(BaseModel):
    keyword: str
    score: float
    lifecycle: LifecycleStage
    momentum: float
    monetization: float
    supply_gap: float
    competition: float
    risk: RiskLevel
    sustainability_days: int


class TrendBrief(BaseModel):
    """
    Scores-only summary of an insight for downstream text generation.

    Built from TrendScore values alone; nothing read from a brief ever
    flows back into scoring.
    """
    niche_id: str
    niche_label: str
    data_source: DataSource = DataSource.REAL
    generated_at: dt.datetime = Field(default_factory=utcnow)
    data_points_used: int = 0
    top_keywords: List[BriefKeyword] = Field(default_factory=list)
    avg_opportunity: float = 0.0
    hot_count: int = 0
    breakout_count: int = 0
    dominant_lifecycle: str = "unknown"
    overall_risk: str = "unknown"
