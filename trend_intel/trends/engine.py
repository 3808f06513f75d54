"""
Trend Intelligence Engine — turns stored data points into keyword scores.

Per niche run:
  1. Load the niche's data points
  2. Per (keyword, platform): latest snapshot, plus the one before it
  3. Per keyword: fold the platforms' latest snapshots into one composite
     point (confidence-weighted mean of each reported metric), and the
     older snapshots into the previous composite
  4. Score the composite (subscores, lifecycle, risk)
  5. Replace the niche's stored scores in one transaction

Insights aggregate a niche's stored scores for presentation. When the niche
has no stored scores yet, the data points of the niche and its ancestors are
scored on the fly (nothing is written). When there is no data at all and
fallback data is allowed, a demo insight tagged "fallback" is returned.

A TrendBrief is the scores-only digest of an insight handed to downstream
text generation; format_brief_for_prompt renders it as a plain-text block.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from ..config import Settings, get_settings
from ..database import Database
from ..errors import InsufficientData, MixedDataSourceError
from ..schemas import (
    BriefKeyword, DataSource, LifecycleStage, NicheResolution, RiskLevel, TrendBrief,
    TrendDataPoint, TrendInsight, TrendScore, utcnow,
)
from .fallback import get_demo_scores
from .niche_resolver import NicheResolver
from .scoring import HOT_SCORE_THRESHOLD, is_hot, score_data_point

logger = logging.getLogger(__name__)

_METRICS = (
    "search_volume", "growth_rate_7d", "growth_rate_30d", "growth_rate_90d",
    "cpc", "affiliate_density", "ads_density", "content_density",
    "creator_density", "engagement_velocity",
)

BRIEF_KEYWORDS = 10


def _snapshot_key(point: TrendDataPoint) -> tuple:
    return (point.date, point.fetched_at)


def latest_snapshots(
    points: List[TrendDataPoint],
) -> Dict[str, Dict[str, Tuple[TrendDataPoint, Optional[TrendDataPoint]]]]:
    """keyword -> platform -> (latest, previous or None)."""
    grouped: Dict[str, Dict[str, List[TrendDataPoint]]] = defaultdict(lambda: defaultdict(list))
    for p in points:
        grouped[p.keyword][p.platform].append(p)

    result: Dict[str, Dict[str, Tuple[TrendDataPoint, Optional[TrendDataPoint]]]] = {}
    for keyword, by_platform in grouped.items():
        result[keyword] = {}
        for platform, snaps in by_platform.items():
            snaps = sorted(snaps, key=_snapshot_key, reverse=True)
            result[keyword][platform] = (snaps[0], snaps[1] if len(snaps) > 1 else None)
    return result


def composite_point(points: List[TrendDataPoint]) -> TrendDataPoint:
    """Fold several platforms' snapshots of one keyword into a single point.

    Each metric is the confidence-weighted mean over the snapshots that
    report it; a metric nobody reports stays None.
    """
    if len(points) == 1:
        return points[0]

    metrics = {}
    for name in _METRICS:
        reported = [(getattr(p, name), p.confidence) for p in points if getattr(p, name) is not None]
        if not reported:
            metrics[name] = None
            continue
        weight = sum(c for _, c in reported)
        if weight > 0:
            metrics[name] = sum(v * c for v, c in reported) / weight
        else:
            metrics[name] = sum(v for v, _ in reported) / len(reported)

    newest = max(points, key=_snapshot_key)
    return TrendDataPoint(
        niche_id=newest.niche_id,
        keyword=newest.keyword,
        platform="composite",
        date=newest.date,
        source="composite",
        confidence=round(sum(p.confidence for p in points) / len(points), 4),
        fetched_at=newest.fetched_at,
        **metrics,
    )


def build_insight(
    path_id: str,
    niche_id: str,
    niche_label: str,
    scores: List[TrendScore],
    hot_threshold: float = HOT_SCORE_THRESHOLD,
) -> TrendInsight:
    """Aggregate scores into an insight.

    Raises:
        MixedDataSourceError: scores mix real and fallback provenance.
    """
    sources = sorted({s.data_source.value for s in scores})
    if len(sources) > 1:
        raise MixedDataSourceError(sources)
    data_source = DataSource(sources[0]) if sources else DataSource.REAL

    ordered = sorted(scores, key=lambda s: (-s.score, -s.search_volume, s.keyword))
    growth = sum(1 for s in ordered if s.lifecycle.is_growth)
    overall = round(sum(s.score for s in ordered) / len(ordered), 2) if ordered else 0.0
    lifecycle_summary = {stage.value: 0 for stage in LifecycleStage}
    for s in ordered:
        lifecycle_summary[s.lifecycle.value] += 1

    return TrendInsight(
        path_id=path_id,
        niche_id=niche_id,
        niche_label=niche_label,
        scores=ordered,
        overall_score=overall,
        data_points_total=sum(s.search_volume for s in ordered),
        growth_keywords=growth,
        mature_keywords=len(ordered) - growth,
        last_updated=max((s.last_updated for s in ordered), default=utcnow()),
        data_source=data_source,
        top_opportunity=ordered[0] if ordered else None,
        hot_keywords=[s.keyword for s in ordered if is_hot(s, hot_threshold)],
        breakout_keywords=[s.keyword for s in ordered if s.is_breakout],
        lifecycle_summary=lifecycle_summary,
    )


# ── Brief ────────────────────────────────────────────────────────────────────

def _overall_risk(scores: List[TrendScore]) -> str:
    if not scores:
        return "unknown"
    for level in (RiskLevel.HIGH, RiskLevel.MEDIUM):
        if sum(1 for s in scores if s.risk == level) / len(scores) > 0.5:
            return level.value
    return RiskLevel.LOW.value


def generate_trend_brief(insight: TrendInsight) -> TrendBrief:
    """Scores-only digest of an insight: top keywords plus market summary."""
    dominant = "unknown"
    if insight.scores:
        # max() keeps the first of equal counts, i.e. lifecycle chain order
        dominant = max(insight.lifecycle_summary.items(), key=lambda kv: kv[1])[0]

    return TrendBrief(
        niche_id=insight.niche_id,
        niche_label=insight.niche_label,
        data_source=insight.data_source,
        data_points_used=sum(s.data_points_count for s in insight.scores),
        top_keywords=[
            BriefKeyword(
                keyword=s.keyword,
                score=s.score,
                lifecycle=s.lifecycle,
                momentum=s.subscores.momentum,
                monetization=s.subscores.monetization,
                supply_gap=s.subscores.supply_gap,
                competition=s.subscores.competition,
                risk=s.risk,
                sustainability_days=s.sustainability_days,
            )
            for s in insight.scores[:BRIEF_KEYWORDS]
        ],
        avg_opportunity=insight.overall_score,
        hot_count=len(insight.hot_keywords),
        breakout_count=len(insight.breakout_keywords),
        dominant_lifecycle=dominant,
        overall_risk=_overall_risk(insight.scores),
    )


def format_brief_for_prompt(brief: TrendBrief) -> str:
    if not brief.top_keywords:
        return "[TREND DATA] No trend data available for this niche yet."

    lines = [
        f"[TREND INTELLIGENCE DATA: {brief.niche_label}]",
        f"Generated: {brief.generated_at.date().isoformat()}",
        f"Data source: {brief.data_source.value}",
        f"Data points analyzed: {brief.data_points_used}",
        f"Average opportunity score: {round(brief.avg_opportunity)}/100",
        f"Hot keywords: {brief.hot_count} | Breakout: {brief.breakout_count}",
        f"Dominant lifecycle: {brief.dominant_lifecycle}",
        f"Overall risk: {brief.overall_risk}",
        "",
        "TOP KEYWORD SCORES (ordered by opportunity):",
    ]
    for kw in brief.top_keywords:
        lines.append(
            f'- "{kw.keyword}": opportunity {round(kw.score)}/100 '
            f"(momentum {round(kw.momentum)}, monetization {round(kw.monetization)}, "
            f"supply gap {round(kw.supply_gap)}, competition {round(kw.competition)}) "
            f"[{kw.lifecycle.value}] [risk: {kw.risk.value}] [~{kw.sustainability_days}d window]"
        )
    lines += [
        "",
        "Every content suggestion must cite the opportunity scores above.",
        "Prefer keywords scoring above 40 in the search_increase stage.",
        "Avoid saturation and margin_collapse keywords unless there is a new angle.",
    ]
    return "\n".join(lines)

class TrendIntelligenceEngine:
    """Scores niches and builds insights from the SQL store."""

    def __init__(
        self,
        db: Database,
        resolver: Optional[NicheResolver] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.resolver = resolver or NicheResolver.from_database(db)

    # ── Scoring ───────────────────────────────────────────────────────

    def compute_scores(self, points: List[TrendDataPoint]) -> List[TrendScore]:
        """Score every keyword in `points` (pure, nothing is written)."""
        scores = []
        for keyword, by_platform in sorted(latest_snapshots(points).items()):
            latest = [pair[0] for pair in by_platform.values()]
            older = [pair[1] for pair in by_platform.values() if pair[1] is not None]
            count = sum(1 for p in points if p.keyword == keyword)
            scores.append(score_data_point(
                composite_point(latest),
                previous=composite_point(older) if older else None,
                data_points_count=count,
                platforms=sorted(by_platform),
            ))
        return scores

    def score_niche(self, niche_id: str, min_keywords: Optional[int] = None) -> List[TrendScore]:
        """Recompute and persist the niche's scores.

        Raises:
            InsufficientData: fewer distinct keywords than required (nothing written).
            PersistenceError: the store rejected the write.
        """
        required = self.settings.min_keywords_for_scoring if min_keywords is None else min_keywords
        points = self.db.get_data_points([niche_id])
        keywords = {p.keyword for p in points}
        if len(keywords) < required:
            raise InsufficientData(niche_id, len(keywords), required)

        scores = self.compute_scores(points)
        self.db.replace_trend_scores(niche_id, scores)
        logger.info(
            f"Scored {niche_id}: {len(scores)} keywords from {len(points)} points "
            f"(top: {max(scores, key=lambda s: s.score).keyword if scores else '-'})"
        )
        return scores

    # ── Insights ──────────────────────────────────────────────────────

    def compute_trend_insight(
        self,
        path_id: str,
        niche: Optional[str] = None,
        sub_sector: Optional[str] = None,
        resolution: Optional[NicheResolution] = None,
    ) -> Optional[TrendInsight]:
        """Insight for the user's niche; None when no data and fallback is off."""
        resolution = resolution or self.resolver.resolve_user_niche(path_id, niche, sub_sector)
        hot = self.settings.hot_score_threshold
        scores = self.db.get_trend_scores(resolution.niche_id)
        if scores:
            return build_insight(path_id, resolution.niche_id, resolution.label, scores, hot)

        points = self.db.get_data_points(self.lineage_ids(resolution.niche_id))
        if points:
            logger.info(f"No scores for {resolution.niche_id}, scoring {len(points)} stored points on the fly")
            scores = [
                s.model_copy(update={"niche_id": resolution.niche_id})
                for s in self.compute_scores(points)
            ]
            return build_insight(path_id, resolution.niche_id, resolution.label, scores, hot)

        if not self.settings.allow_fallback_data:
            logger.info(f"No data for {resolution.niche_id} and fallback disabled")
            return None

        logger.info(f"No data for {resolution.niche_id}, returning demo insight")
        label = niche or resolution.label
        return build_insight(
            path_id, resolution.niche_id, label, get_demo_scores(resolution.niche_id, label), hot,
        )

    def lineage_ids(self, niche_id: str) -> List[str]:
        """The niche followed by its ancestors up to the root."""
        return [niche_id] + [n.id for n in self.resolver.get_ancestors(niche_id)]

    def compute_trend_brief(
        self,
        path_id: str,
        niche: Optional[str] = None,
        sub_sector: Optional[str] = None,
    ) -> Optional[TrendBrief]:
        insight = self.compute_trend_insight(path_id, niche, sub_sector)
        return generate_trend_brief(insight) if insight is not None else None
