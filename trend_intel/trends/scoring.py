"""
Opportunity scoring — four 0-100 subscores combined into one score.

    score = momentum * 0.35 + monetization * 0.30 + supply_gap * 0.25 - competition * 0.10

Every raw metric is normalized to 0-100 first. A metric the source did not
report normalizes to the neutral 50, so a missing value neither helps nor
hurts a keyword. Signed growth rates map onto 0-100 around 50 (no change):

    growth_norm = 50 + 50 * clamp(growth / cap, -1, 1)

Scoring is pure: the same data point (and previous snapshot) always yields
the same TrendScore apart from its timestamp.
"""

from typing import List, Optional, Tuple

from ..schemas import (
    DataSource, LifecycleStage, RiskLevel, Subscores, TrendDataPoint, TrendScore,
    utcnow,
)
from .lifecycle import MAX_ENGAGEMENT, classify_lifecycle

NEUTRAL = 50.0

# Normalization caps
GROWTH_CAP_7D = 50.0
GROWTH_CAP_30D = 100.0
GROWTH_CAP_90D = 200.0
MAX_CPC = 5.0
MAX_SEARCH_VOLUME = 100.0
MAX_CONTENT = 50_000.0
MAX_CREATOR = 2_000.0

# Score weights
WEIGHTS = {
    "momentum": 0.35,
    "monetization": 0.30,
    "supply_gap": 0.25,
    "competition": -0.10,
}

# Risk rules (factor, points)
RISK_LOW_CONFIDENCE = ("data_limited", 20)
RISK_HIGH_COMPETITION = ("high_competition", 25)
RISK_SATURATING = ("market_saturating", 30)
RISK_MARGIN_COLLAPSE = ("margin_collapse", 40)
RISK_AFFILIATE_FLOOD = ("affiliate_flood", 15)
RISK_VOLATILE_SPIKE = ("volatile_spike", 15)
RISK_LOW_MONETIZATION = ("low_monetization_signal", 10)
RISK_HIGH_AT = 40
RISK_MEDIUM_AT = 20

BREAKOUT_GROWTH_7D = 200.0
HOT_SCORE_THRESHOLD = 45.0

SUSTAINABILITY_BASE_DAYS = {
    LifecycleStage.SOCIAL_SPIKE: 90,
    LifecycleStage.SEARCH_INCREASE: 60,
    LifecycleStage.AFFILIATE_FLOOD: 30,
    LifecycleStage.SATURATION: 14,
    LifecycleStage.MARGIN_COLLAPSE: 7,
    LifecycleStage.MATURE: 30,
}
MIN_SUSTAINABILITY_DAYS = 7


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


# ── Normalization ────────────────────────────────────────────────────────────

def normalize_growth(growth: Optional[float], cap: float) -> float:
    if growth is None:
        return NEUTRAL
    return NEUTRAL + NEUTRAL * clamp(growth / cap, -1.0, 1.0)


def normalize_magnitude(value: Optional[float], cap: float) -> float:
    if value is None:
        return NEUTRAL
    return clamp(100.0 * value / cap)


def normalize_density(value: Optional[float]) -> float:
    """Densities are 0-1 ratios."""
    if value is None:
        return NEUTRAL
    return clamp(value * 100.0)


# ── Subscores ────────────────────────────────────────────────────────────────

def momentum_score(point: TrendDataPoint) -> float:
    return clamp(
        normalize_growth(point.growth_rate_7d, GROWTH_CAP_7D) * 0.40
        + normalize_growth(point.growth_rate_30d, GROWTH_CAP_30D) * 0.30
        + normalize_growth(point.growth_rate_90d, GROWTH_CAP_90D) * 0.15
        + normalize_magnitude(point.engagement_velocity, MAX_ENGAGEMENT) * 0.15
    )


def monetization_score(point: TrendDataPoint) -> float:
    return clamp(
        normalize_magnitude(point.cpc, MAX_CPC) * 0.40
        + normalize_density(point.affiliate_density) * 0.35
        + normalize_density(point.ads_density) * 0.25
    )


def supply_gap_score(point: TrendDataPoint) -> float:
    """High demand with little content behind it scores high."""
    volume = normalize_magnitude(point.search_volume, MAX_SEARCH_VOLUME)
    creators = normalize_magnitude(point.creator_density, MAX_CREATOR)
    demand = volume * 0.7 + (100.0 - creators) * 0.3
    supply = normalize_magnitude(point.content_density, MAX_CONTENT)
    return clamp(NEUTRAL + (demand - supply) / 2.0)


def competition_score(point: TrendDataPoint) -> float:
    return clamp(
        normalize_magnitude(point.content_density, MAX_CONTENT) * 0.6
        + normalize_density(point.ads_density) * 0.4
    )


def compute_subscores(point: TrendDataPoint) -> Subscores:
    return Subscores(
        momentum=round(momentum_score(point), 2),
        monetization=round(monetization_score(point), 2),
        supply_gap=round(supply_gap_score(point), 2),
        competition=round(competition_score(point), 2),
    )


def compute_opportunity_score(subscores: Subscores) -> float:
    raw = (
        subscores.momentum * WEIGHTS["momentum"]
        + subscores.monetization * WEIGHTS["monetization"]
        + subscores.supply_gap * WEIGHTS["supply_gap"]
        + subscores.competition * WEIGHTS["competition"]
    )
    return round(clamp(raw), 2)


# ── Risk ─────────────────────────────────────────────────────────────────────

def assess_risk(
    point: TrendDataPoint,
    subscores: Subscores,
    lifecycle: LifecycleStage,
) -> Tuple[RiskLevel, List[str]]:
    """Additive risk points; >= 40 is high, >= 20 medium."""
    hits = []
    if point.confidence < 0.5:
        hits.append(RISK_LOW_CONFIDENCE)
    if subscores.competition > 70:
        hits.append(RISK_HIGH_COMPETITION)
    if lifecycle == LifecycleStage.SATURATION:
        hits.append(RISK_SATURATING)
    elif lifecycle == LifecycleStage.MARGIN_COLLAPSE:
        hits.append(RISK_MARGIN_COLLAPSE)
    elif lifecycle == LifecycleStage.AFFILIATE_FLOOD:
        hits.append(RISK_AFFILIATE_FLOOD)
    if (
        point.growth_rate_7d is not None and point.growth_rate_30d is not None
        and point.growth_rate_7d > 80 and point.growth_rate_30d < 20
    ):
        hits.append(RISK_VOLATILE_SPIKE)
    if (
        point.cpc is not None and point.affiliate_density is not None
        and point.cpc < 0.3 and point.affiliate_density < 0.2
    ):
        hits.append(RISK_LOW_MONETIZATION)

    total = sum(points for _, points in hits)
    if total >= RISK_HIGH_AT:
        level = RiskLevel.HIGH
    elif total >= RISK_MEDIUM_AT:
        level = RiskLevel.MEDIUM
    else:
        level = RiskLevel.LOW
    return level, [factor for factor, _ in hits]


def estimate_sustainability_days(lifecycle: LifecycleStage, subscores: Subscores) -> int:
    days = SUSTAINABILITY_BASE_DAYS[lifecycle]
    if subscores.momentum > 60:
        days += 15
    if subscores.competition > 50:
        days -= 10
    return max(MIN_SUSTAINABILITY_DAYS, days)


def is_breakout(point: TrendDataPoint) -> bool:
    return point.growth_rate_7d is not None and point.growth_rate_7d > BREAKOUT_GROWTH_7D


def is_hot(score: TrendScore, threshold: float = HOT_SCORE_THRESHOLD) -> bool:
    """Strong score while search demand is still climbing."""
    return score.score > threshold and score.lifecycle == LifecycleStage.SEARCH_INCREASE


# ── Entry point ──────────────────────────────────────────────────────────────

def score_data_point(
    point: TrendDataPoint,
    previous: Optional[TrendDataPoint] = None,
    data_points_count: int = 1,
    platforms: Optional[List[str]] = None,
) -> TrendScore:
    """Score one (composite) data point.

    Args:
        point: Latest observation of the keyword.
        previous: Older observation used for CPC / engagement direction.
        data_points_count: Number of raw observations behind `point`.
        platforms: Platforms the observations came from.
    """
    subscores = compute_subscores(point)
    lifecycle = classify_lifecycle(point, previous)
    risk, factors = assess_risk(point, subscores, lifecycle)
    return TrendScore(
        niche_id=point.niche_id,
        keyword=point.keyword,
        score=compute_opportunity_score(subscores),
        subscores=subscores,
        lifecycle=lifecycle,
        risk=risk,
        risk_factors=factors,
        search_volume=point.search_volume or 0.0,
        growth_rate_7d=point.growth_rate_7d,
        confidence=point.confidence,
        is_breakout=is_breakout(point),
        sustainability_days=estimate_sustainability_days(lifecycle, subscores),
        data_points_count=data_points_count,
        platforms=platforms if platforms is not None else [point.platform],
        data_source=DataSource.REAL,
        last_updated=utcnow(),
    )
