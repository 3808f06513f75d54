"""
Schemas package — all data models for the trend intelligence pipeline.

Models are organized by domain in submodules:
  - base.py: Common enums (lifecycle, risk, direction, stages)
  - trends.py: NicheTaxonomyNode, NicheResolution, TrendDataPoint, TrendScore, TrendInsight, TrendBrief
  - signals.py: MarketSignal, SignalGenerationResult, SignalRefreshResult, CleanupResult
  - pipeline.py: SourceResult, FetchResult, PipelineProgress, PipelineResult, PipelineHealth
"""

# base.py — enums
from trend_intel.schemas.base import (
    LifecycleStage, RiskLevel, TrendDirection, DataSource, Platform,
    PipelineStage, RunOutcome, SourceErrorKind, utcnow,
)

# trends.py — taxonomy, data points, scores
from trend_intel.schemas.trends import (
    NicheTaxonomyNode, NicheResolution, TrendDataPoint,
    Subscores, TrendScore, TrendInsight, BriefKeyword, TrendBrief,
)

# signals.py — market signals
from trend_intel.schemas.signals import (
    MarketSignal, SignalGenerationResult, SignalRefreshResult, CleanupResult,
)

# pipeline.py — fetch / run / health
from trend_intel.schemas.pipeline import (
    SourceError, SourceResult, DataSourceStatus, FetchResult,
    PipelineProgress, PipelineResult, PipelineHealth,
)

__all__ = [
    # base
    "LifecycleStage", "RiskLevel", "TrendDirection", "DataSource", "Platform",
    "PipelineStage", "RunOutcome", "SourceErrorKind", "utcnow",
    # trends
    "NicheTaxonomyNode", "NicheResolution", "TrendDataPoint",
    "Subscores", "TrendScore", "TrendInsight", "BriefKeyword", "TrendBrief",
    # signals
    "MarketSignal", "SignalGenerationResult", "SignalRefreshResult", "CleanupResult",
    # pipeline
    "SourceError", "SourceResult", "DataSourceStatus", "FetchResult",
    "PipelineProgress", "PipelineResult", "PipelineHealth",
]
