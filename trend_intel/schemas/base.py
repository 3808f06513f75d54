"""
Common enums shared across the pipeline.

These define the vocabulary of the system: lifecycle stages, risk levels,
signal directions, data provenance and pipeline stages.
"""

from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    """Naive UTC timestamp (the store keeps naive UTC datetimes)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ══════════════════════════════════════════════════════════════════════════════
# ENUMS - Classification Types
# ══════════════════════════════════════════════════════════════════════════════

class LifecycleStage(str, Enum):
    """
    Keyword lifecycle stage, assigned by an ordered decision chain.

    The five named stages follow a keyword from first social buzz to
    commoditisation. MATURE is the neutral bucket for keywords that match
    none of the rules.
    """
    SOCIAL_SPIKE = "social_spike"
    SEARCH_INCREASE = "search_increase"
    AFFILIATE_FLOOD = "affiliate_flood"
    SATURATION = "saturation"
    MARGIN_COLLAPSE = "margin_collapse"
    MATURE = "mature"

    @property
    def is_growth(self) -> bool:
        return self in (LifecycleStage.SOCIAL_SPIKE, LifecycleStage.SEARCH_INCREASE)


class RiskLevel(str, Enum):
    """Opportunity risk level."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TrendDirection(str, Enum):
    """Short-term direction of a market signal."""
    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"


class DataSource(str, Enum):
    """Provenance of scores and insights."""
    REAL = "real"
    FALLBACK = "fallback"


class Platform(str, Enum):
    """Platforms trend data points are collected from."""
    GOOGLE = "google"
    YOUTUBE = "youtube"
    TIKTOK = "tiktok"
    MARKETPLACE = "marketplace"


class PipelineStage(str, Enum):
    """Per-path pipeline state machine."""
    IDLE = "idle"
    FETCHING = "fetching"
    SCORING = "scoring"
    SIGNALING = "signaling"
    CLEANING = "cleaning"
    DONE = "done"
    PARTIAL_DONE = "partial_done"
    FAILED = "failed"


class RunOutcome(str, Enum):
    """Caller-facing outcome of a pipeline run."""
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class SourceErrorKind(str, Enum):
    """Why a source adapter produced no data."""
    UNCONFIGURED = "unconfigured"
    HTTP = "http"
    TIMEOUT = "timeout"
    PARSE = "parse"
    CRASHED = "crashed"
