"""
Demo trend data for deployments without any configured source.

Scores built here are tagged DataSource.FALLBACK. They are only ever returned
from compute_trend_insight, never persisted and never turned into signals.
"""

from typing import Dict, List, Optional, Tuple

from ..schemas import (
    DataSource, LifecycleStage, RiskLevel, Subscores, TrendScore,
    utcnow,
)

# keyword, score, search volume, competition (0-1), 7d growth (0-1), stage, risk
_DemoRow = Tuple[str, float, float, float, float, LifecycleStage, RiskLevel]

_GROWTH = LifecycleStage.SEARCH_INCREASE
_MATURE = LifecycleStage.MATURE

DEMO_TRENDS: Dict[str, List[_DemoRow]] = {
    "default": [
        ("ai automation", 85, 50_000, 0.3, 0.45, _GROWTH, RiskLevel.LOW),
        ("no-code tools", 78, 35_000, 0.4, 0.35, _GROWTH, RiskLevel.LOW),
        ("virtual assistant", 72, 40_000, 0.5, 0.25, _GROWTH, RiskLevel.MEDIUM),
        ("content creation", 80, 60_000, 0.6, 0.30, _MATURE, RiskLevel.MEDIUM),
        ("social media marketing", 75, 80_000, 0.7, 0.20, _MATURE, RiskLevel.MEDIUM),
        ("chatgpt prompts", 90, 100_000, 0.5, 0.65, _GROWTH, RiskLevel.LOW),
    ],
    "writing": [
        ("blog writing", 70, 45_000, 0.5, 0.20, _MATURE, RiskLevel.MEDIUM),
        ("copywriting", 75, 40_000, 0.6, 0.25, _MATURE, RiskLevel.MEDIUM),
        ("seo content", 82, 55_000, 0.4, 0.35, _GROWTH, RiskLevel.LOW),
    ],
    "design": [
        ("ui design", 78, 50_000, 0.5, 0.28, _MATURE, RiskLevel.MEDIUM),
        ("canva templates", 85, 70_000, 0.4, 0.40, _GROWTH, RiskLevel.LOW),
        ("social media design", 76, 60_000, 0.6, 0.25, _MATURE, RiskLevel.MEDIUM),
    ],
    "tech": [
        ("web development", 80, 80_000, 0.6, 0.22, _MATURE, RiskLevel.MEDIUM),
        ("frontend developer", 75, 45_000, 0.5, 0.20, _MATURE, RiskLevel.MEDIUM),
        ("react tutorials", 85, 55_000, 0.4, 0.38, _GROWTH, RiskLevel.LOW),
    ],
}


def _demo_key(niche: Optional[str]) -> str:
    """First word of the niche label, e.g. "Writing services" -> "writing"."""
    if not niche:
        return "default"
    first = niche.strip().lower().split(" ")[0]
    return first if first in DEMO_TRENDS else "default"


def get_demo_scores(niche_id: str, niche: Optional[str] = None) -> List[TrendScore]:
    now = utcnow()
    scores = []
    for keyword, score, volume, competition, growth, stage, risk in DEMO_TRENDS[_demo_key(niche)]:
        scores.append(TrendScore(
            niche_id=niche_id,
            keyword=keyword,
            score=score,
            subscores=Subscores(
                momentum=min(100.0, 50.0 + growth * 100),
                monetization=50.0,
                supply_gap=round(100.0 - competition * 100, 2),
                competition=round(competition * 100, 2),
            ),
            lifecycle=stage,
            risk=risk,
            search_volume=volume,
            growth_rate_7d=round(growth * 100, 1),
            confidence=0.3,
            data_points_count=0,
            data_source=DataSource.FALLBACK,
            last_updated=now,
        ))
    return scores

