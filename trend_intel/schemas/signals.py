"""
Market signal models (persisted, per business path).
"""

import datetime as dt
from typing import Any, Dict, List
from uuid import uuid4

from pydantic import BaseModel, Field

from trend_intel.schemas.base import TrendDirection, utcnow


class MarketSignal(BaseModel):
    """A top keyword for a path, with direction, hotness and a suggestion."""
    id: str = Field(default_factory=lambda: str(uuid4()))
    path_id: str
    niche_id: str
    keyword: str
    trend_score: float = Field(ge=0.0, le=100.0)
    trend_direction: TrendDirection = TrendDirection.STABLE
    source: str = "trend_intelligence_engine"
    confidence: float = Field(ge=0.0, le=1.0, default=0.5)
    is_hot: bool = False
    suggestion: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)
    last_updated: dt.datetime = Field(default_factory=utcnow)


class SignalGenerationResult(BaseModel):
    """Outcome of turning one path's trend scores into market signals."""
    path_id: str
    created: int = 0
    updated: int = 0
    signals: List[MarketSignal] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)

    @property
    def hot_count(self) -> int:
        return sum(1 for s in self.signals if s.is_hot)


class CleanupResult(BaseModel):
    """Signals removed by a cleanup pass, per path."""
    removed: int = 0
    per_path: Dict[str, int] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)


class SignalRefreshResult(BaseModel):
    """Outcome of regenerating every path's signals from stored scores."""
    created: int = 0
    updated: int = 0
    per_path: Dict[str, int] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)
