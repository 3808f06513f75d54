"""
Lifecycle classification — ordered decision chain, first matching rule wins.

    1. social_spike      engagement jumps while search growth is still low
    2. search_increase   search growth > 20% (30d) and CPC trending up
    3. affiliate_flood   high CPC and affiliate density
    4. saturation        dense content with flat or falling engagement
    5. margin_collapse   CPC and engagement falling, content far above demand
    -  mature            nothing matched

CPC and engagement direction come from the previous snapshot of the same
keyword/platform when available, otherwise from single-point proxies.
Missing metrics never satisfy a rule.
"""

from typing import Optional

from ..schemas import LifecycleStage, TrendDataPoint

MAX_ENGAGEMENT = 10.0

SOCIAL_SPIKE_ENGAGEMENT_GROWTH_PCT = 50.0
SOCIAL_SPIKE_MAX_SEARCH_GROWTH_30D = 10.0
SEARCH_INCREASE_GROWTH_30D = 20.0
AFFILIATE_FLOOD_CPC = 1.50
AFFILIATE_FLOOD_DENSITY = 0.60
SATURATION_CONTENT_DENSITY = 15_000
ENGAGEMENT_FLAT_BELOW = 3.0
ENGAGEMENT_DECLINING_BELOW = 1.5
MARGIN_COLLAPSE_SUPPLY_RATIO = 500.0

CPC_TOLERANCE = 0.01
ENGAGEMENT_TOLERANCE = 0.1


def _sign(delta: float, tolerance: float) -> int:
    if delta > tolerance:
        return 1
    if delta < -tolerance:
        return -1
    return 0


def cpc_direction(point: TrendDataPoint, previous: Optional[TrendDataPoint] = None) -> int:
    """+1 rising, -1 falling, 0 flat or unknown."""
    if point.cpc is None:
        return 0
    if previous is not None and previous.cpc is not None:
        return _sign(point.cpc - previous.cpc, CPC_TOLERANCE)
    # Proxy: paid demand follows short-term search momentum
    if point.cpc <= 0 or point.growth_rate_7d is None:
        return 0
    return _sign(point.growth_rate_7d, 0.0)


def engagement_direction(point: TrendDataPoint, previous: Optional[TrendDataPoint] = None) -> int:
    """+1 rising, -1 falling, 0 flat; unknown engagement counts as flat."""
    if point.engagement_velocity is None:
        return 0
    if previous is not None and previous.engagement_velocity is not None:
        return _sign(point.engagement_velocity - previous.engagement_velocity, ENGAGEMENT_TOLERANCE)
    if point.engagement_velocity < ENGAGEMENT_DECLINING_BELOW:
        return -1
    if point.engagement_velocity < ENGAGEMENT_FLAT_BELOW:
        return 0
    return 1


def engagement_growth_pct(point: TrendDataPoint, previous: Optional[TrendDataPoint] = None) -> Optional[float]:
    """Engagement growth vs the previous snapshot, or share of max engagement without one."""
    eng = point.engagement_velocity
    if eng is None:
        return None
    if previous is not None and previous.engagement_velocity:
        return (eng - previous.engagement_velocity) / previous.engagement_velocity * 100
    return eng / MAX_ENGAGEMENT * 100


def _is_social_spike(point: TrendDataPoint, previous: Optional[TrendDataPoint]) -> bool:
    growth = engagement_growth_pct(point, previous)
    return (
        growth is not None
        and point.growth_rate_30d is not None
        and growth > SOCIAL_SPIKE_ENGAGEMENT_GROWTH_PCT
        and point.growth_rate_30d < SOCIAL_SPIKE_MAX_SEARCH_GROWTH_30D
    )


def _is_search_increase(point: TrendDataPoint, previous: Optional[TrendDataPoint]) -> bool:
    return (
        point.growth_rate_30d is not None
        and point.growth_rate_30d > SEARCH_INCREASE_GROWTH_30D
        and cpc_direction(point, previous) > 0
    )


def _is_affiliate_flood(point: TrendDataPoint) -> bool:
    return (
        point.cpc is not None and point.affiliate_density is not None
        and point.cpc >= AFFILIATE_FLOOD_CPC
        and point.affiliate_density >= AFFILIATE_FLOOD_DENSITY
    )


def _is_saturation(point: TrendDataPoint, previous: Optional[TrendDataPoint]) -> bool:
    return (
        point.content_density is not None
        and point.content_density >= SATURATION_CONTENT_DENSITY
        and point.engagement_velocity is not None
        and engagement_direction(point, previous) <= 0
    )


def _is_margin_collapse(point: TrendDataPoint, previous: Optional[TrendDataPoint]) -> bool:
    if point.content_density is None:
        return False
    demand = max(point.search_volume or 0.0, 1.0)
    return (
        cpc_direction(point, previous) < 0
        and engagement_direction(point, previous) < 0
        and point.content_density / demand >= MARGIN_COLLAPSE_SUPPLY_RATIO
    )


def classify_lifecycle(point: TrendDataPoint, previous: Optional[TrendDataPoint] = None) -> LifecycleStage:
    if _is_social_spike(point, previous):
        return LifecycleStage.SOCIAL_SPIKE
    if _is_search_increase(point, previous):
        return LifecycleStage.SEARCH_INCREASE
    if _is_affiliate_flood(point):
        return LifecycleStage.AFFILIATE_FLOOD
    if _is_saturation(point, previous):
        return LifecycleStage.SATURATION
    if _is_margin_collapse(point, previous):
        return LifecycleStage.MARGIN_COLLAPSE
    return LifecycleStage.MATURE


# Chain position, used to break ties deterministically when aggregating
LIFECYCLE_ORDER = {stage: i for i, stage in enumerate(LifecycleStage)}
