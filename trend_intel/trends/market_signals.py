"""
Market Signal Service — turns a path's trend scores into persisted signals.

Generation:
  1. Drop fallback scores (demo data never becomes a signal)
  2. Order by score desc, search volume desc, keyword; first occurrence per keyword
  3. Keep the top K
  4. Direction from 7-day growth, hotness from score + lifecycle
  5. Suggestion from a fixed (lifecycle, direction) template table
  6. Upsert the whole batch on (path_id, keyword) in one transaction

Cleanup removes, per path, signals older than the max age and signals whose
backing trend score no longer exists.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from ..config import Settings, get_settings
from ..database import Database
from ..errors import PersistenceError
from ..schemas import (
    CleanupResult, DataSource, LifecycleStage, MarketSignal, RiskLevel,
    SignalGenerationResult, SignalRefreshResult, TrendDirection, TrendScore, utcnow,
)
from .scoring import is_hot
from .taxonomy import build_default_taxonomy

logger = logging.getLogger(__name__)

SIGNAL_SOURCE = "trend_intelligence_engine"
DIRECTION_THRESHOLD = 5.0

_S = LifecycleStage
_D = TrendDirection

SUGGESTION_TEMPLATES: Dict[tuple, str] = {
    (_S.SOCIAL_SPIKE, _D.RISING): 'Buzz around "{keyword}" is climbing on social platforms. Publish short-form content now, before search demand catches up.',
    (_S.SOCIAL_SPIKE, _D.STABLE): '"{keyword}" is getting social attention but search has not moved yet. Test a few posts and watch for search growth.',
    (_S.SOCIAL_SPIKE, _D.FALLING): 'The social spike on "{keyword}" is fading. Only invest if you can ride existing audience interest.',
    (_S.SEARCH_INCREASE, _D.RISING): 'Sweet spot: search demand for "{keyword}" is growing ({score}/100). Focus content on it for the next ~{days} days.',
    (_S.SEARCH_INCREASE, _D.STABLE): 'Search demand for "{keyword}" is established ({score}/100). Build evergreen content and capture the supply gap.',
    (_S.SEARCH_INCREASE, _D.FALLING): 'Search growth for "{keyword}" is slowing week over week. Monetize existing content rather than starting new series.',
    (_S.AFFILIATE_FLOOD, _D.RISING): 'Affiliates are piling into "{keyword}". Monetize now while CPC is high and differentiate with first-hand reviews.',
    (_S.AFFILIATE_FLOOD, _D.STABLE): '"{keyword}" is crowded with affiliate offers. Find an unusual angle or a narrower sub-niche.',
    (_S.AFFILIATE_FLOOD, _D.FALLING): 'Affiliate margins on "{keyword}" are under pressure. Avoid new affiliate-only content here.',
    (_S.SATURATION, _D.RISING): '"{keyword}" still draws interest but content supply is saturated. Only enter with a clearly unique angle.',
    (_S.SATURATION, _D.STABLE): '"{keyword}" is saturated (competition {competition}/100). Pivot to a more specific sub-niche.',
    (_S.SATURATION, _D.FALLING): 'Interest in saturated "{keyword}" is dropping. Not recommended for new content.',
    (_S.MARGIN_COLLAPSE, _D.RISING): 'Search for "{keyword}" ticked up but margins have collapsed. Treat it as an audience builder, not a revenue source.',
    (_S.MARGIN_COLLAPSE, _D.STABLE): 'Margins on "{keyword}" have collapsed. Shift effort to a fresher keyword.',
    (_S.MARGIN_COLLAPSE, _D.FALLING): '"{keyword}" is declining on every signal. Exit and redirect effort.',
    (_S.MATURE, _D.RISING): '"{keyword}" shows upward momentum ({score}/100). Worth exploring.',
    (_S.MATURE, _D.STABLE): '"{keyword}" is stable ({score}/100). Good fit for evergreen content.',
    (_S.MATURE, _D.FALLING): '"{keyword}" is cooling off. Keep existing content updated but avoid heavy new investment.',
}

BREAKOUT_PREFIX = "Breakout detected, window ~{days} days. "


def detect_direction(score: TrendScore) -> TrendDirection:
    growth = score.growth_rate_7d or 0.0
    if growth > DIRECTION_THRESHOLD:
        return TrendDirection.RISING
    if growth < -DIRECTION_THRESHOLD:
        return TrendDirection.FALLING
    return TrendDirection.STABLE


def generate_suggestion(score: TrendScore, direction: TrendDirection) -> str:
    text = SUGGESTION_TEMPLATES[(score.lifecycle, direction)].format(
        keyword=score.keyword,
        score=round(score.score),
        competition=round(score.subscores.competition),
        days=score.sustainability_days,
    )
    if score.is_breakout:
        text = BREAKOUT_PREFIX.format(days=score.sustainability_days) + text
    return text


def signal_confidence(score: TrendScore) -> float:
    """Coverage, risk and lifecycle heuristic, capped at 0.95."""
    base = 0.5
    if score.data_points_count >= 4:
        base += 0.2
    elif score.data_points_count >= 2:
        base += 0.1
    if score.risk == RiskLevel.LOW:
        base += 0.1
    if score.lifecycle.is_growth:
        base += 0.1
    return round(min(0.95, base), 2)


def rank_scores(scores: List[TrendScore]) -> List[TrendScore]:
    """Score desc, search volume desc, keyword asc; first occurrence per keyword."""
    ordered = sorted(scores, key=lambda s: (-s.score, -s.search_volume, s.keyword))
    seen = set()
    ranked = []
    for s in ordered:
        if s.keyword in seen:
            continue
        seen.add(s.keyword)
        ranked.append(s)
    return ranked


class MarketSignalService:
    """Generates, stores and cleans up per-path market signals."""

    def __init__(self, db: Database, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    def build_signal(self, path_id: str, score: TrendScore, now: Optional[datetime] = None) -> MarketSignal:
        direction = detect_direction(score)
        return MarketSignal(
            path_id=path_id,
            niche_id=score.niche_id,
            keyword=score.keyword,
            trend_score=score.score,
            trend_direction=direction,
            source=SIGNAL_SOURCE,
            confidence=signal_confidence(score),
            is_hot=is_hot(score, self.settings.hot_score_threshold),
            suggestion=generate_suggestion(score, direction),
            metadata={
                "lifecycle_stage": score.lifecycle.value,
                "momentum": score.subscores.momentum,
                "monetization": score.subscores.monetization,
                "supply_gap": score.subscores.supply_gap,
                "competition": score.subscores.competition,
                "risk_level": score.risk.value,
                "risk_factors": score.risk_factors,
                "is_breakout": score.is_breakout,
                "sustainability_days": score.sustainability_days,
                "data_points_count": score.data_points_count,
                "platforms": score.platforms,
            },
            last_updated=now or utcnow(),
        )

    def generate_signals_from_trend_scores(
        self,
        path_id: str,
        scores: List[TrendScore],
    ) -> SignalGenerationResult:
        """Upsert the path's top-K signals from `scores`.

        Raises:
            PersistenceError: the batch upsert failed (nothing written).
        """
        result = SignalGenerationResult(path_id=path_id)
        real = [s for s in scores if s.data_source == DataSource.REAL]
        skipped = len(scores) - len(real)
        if skipped:
            logger.warning(f"Ignoring {skipped} fallback scores for path {path_id}")
        if not real:
            result.errors.append(f"No real trend scores for path {path_id}")
            return result

        now = utcnow()
        top = rank_scores(real)[: self.settings.signal_top_k]
        signals = [self.build_signal(path_id, s, now) for s in top]

        created, updated, stored = self.db.upsert_market_signals(signals)
        result.created = created
        result.updated = updated
        result.signals = stored
        logger.info(
            f"Signals for {path_id}: {created} created, {updated} updated, "
            f"{result.hot_count} hot"
        )
        return result

    def cleanup_stale_signals(
        self,
        max_age_days: Optional[int] = None,
        now: Optional[datetime] = None,
        path_id: Optional[str] = None,
    ) -> CleanupResult:
        """Delete signals older than `max_age_days` or without a backing score.

        Each path is cleaned in its own transaction; a failing path is
        reported in `errors` and the others still run.
        """
        max_age = self.settings.signal_max_age_days if max_age_days is None else max_age_days
        cutoff = (now or utcnow()) - timedelta(days=max_age)
        result = CleanupResult()

        paths = [path_id] if path_id else self.db.list_signal_paths()
        for pid in paths:
            try:
                removed = self.db.delete_stale_signals(pid, cutoff)
            except PersistenceError as e:
                result.errors.append(f"{pid}: {e}")
                continue
            if removed:
                result.per_path[pid] = removed
                result.removed += removed
        if result.removed:
            logger.info(f"Removed {result.removed} stale signals across {len(result.per_path)} paths")
        return result

    def refresh_all_signals(self) -> SignalRefreshResult:
        """Regenerate every path's signals from the trend scores already stored.

        Scores of all niches under one path are ranked together. A path whose
        upsert fails is reported in `errors` and the others still run.
        """
        node_paths = {n.id: n.path_id for n in (self.db.get_taxonomy_nodes() or build_default_taxonomy())}
        by_path: Dict[str, List[TrendScore]] = {}
        for niche_id in self.db.list_scored_niches():
            # Default niches are "<path>.default"
            path_id = node_paths.get(niche_id) or niche_id.split(".")[0]
            by_path.setdefault(path_id, []).extend(self.db.get_trend_scores(niche_id))

        result = SignalRefreshResult()
        for path_id, scores in sorted(by_path.items()):
            try:
                generated = self.generate_signals_from_trend_scores(path_id, scores)
            except PersistenceError as e:
                result.errors.append(f"{path_id}: {e}")
                continue
            result.created += generated.created
            result.updated += generated.updated
            result.per_path[path_id] = generated.created + generated.updated
            result.errors.extend(generated.errors)
        logger.info(
            f"Refreshed signals for {len(result.per_path)} paths: "
            f"{result.created} created, {result.updated} updated"
        )
        return result

    # ── Reads ─────────────────────────────────────────────────────────

    def load_path_signals(self, path_id: str, limit: int = 20, hot_only: bool = False) -> List[MarketSignal]:
        return self.db.get_market_signals(path_id=path_id, hot_only=hot_only, limit=limit)

    def load_hot_signals(self, limit: int = 50) -> List[MarketSignal]:
        return self.db.get_market_signals(hot_only=True, limit=limit)

    def get_path_market_focus(self, path_id: str) -> Optional[Dict[str, Any]]:
        """Top keyword and confidence-weighted heat of a path's signals."""
        signals = self.load_path_signals(path_id)
        if not signals:
            return None

        top = signals[0]
        total_confidence = sum(s.confidence for s in signals)
        weighted = sum(s.trend_score * s.confidence for s in signals)
        heat = round(weighted / total_confidence) if total_confidence > 0 else 0
        return {
            "path_id": path_id,
            "top_keyword": top.keyword,
            "trend_score": top.trend_score,
            "trend_direction": top.trend_direction.value,
            "suggestion": top.suggestion,
            "hot_count": sum(1 for s in signals if s.is_hot),
            "total_signals": len(signals),
            "heat_score": heat,
        }

    def get_all_path_market_focus(self) -> Dict[str, Dict[str, Any]]:
        """Market focus of every path that has signals, keyed by path_id."""
        focus = {}
        for path_id in self.db.list_signal_paths():
            summary = self.get_path_market_focus(path_id)
            if summary is not None:
                focus[path_id] = summary
        return focus
