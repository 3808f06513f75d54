"""
Lifecycle decision chain: each rule, rule order, and snapshot-based directions.
"""

from trend_intel.schemas import LifecycleStage
from trend_intel.trends.lifecycle import (
    classify_lifecycle, cpc_direction, engagement_direction, engagement_growth_pct,
)


def test_no_metrics_is_mature(make_point):
    assert classify_lifecycle(make_point()) == LifecycleStage.MATURE


def test_social_spike_from_single_point(make_point):
    point = make_point(engagement_velocity=6.0, growth_rate_30d=5.0)
    assert classify_lifecycle(point) == LifecycleStage.SOCIAL_SPIKE


def test_social_spike_needs_low_search_growth(make_point):
    point = make_point(engagement_velocity=6.0, growth_rate_30d=15.0)
    assert classify_lifecycle(point) != LifecycleStage.SOCIAL_SPIKE


def test_engagement_alone_is_not_a_social_spike(make_point):
    # A social-only point carries no search growth to compare against
    point = make_point(platform="youtube", engagement_velocity=6.0)
    assert classify_lifecycle(point) == LifecycleStage.MATURE
    assert classify_lifecycle(make_point(platform="tiktok", engagement_velocity=9.5)) == LifecycleStage.MATURE


def test_social_spike_against_previous_snapshot(make_point):
    previous = make_point(engagement_velocity=2.0)
    current = make_point(engagement_velocity=3.5, growth_rate_30d=2.0)
    assert engagement_growth_pct(current, previous) == 75.0
    assert classify_lifecycle(current, previous) == LifecycleStage.SOCIAL_SPIKE


def test_search_increase(make_point):
    point = make_point(growth_rate_7d=10.0, growth_rate_30d=30.0, cpc=1.0)
    assert classify_lifecycle(point) == LifecycleStage.SEARCH_INCREASE


def test_search_increase_requires_rising_cpc(make_point):
    previous = make_point(cpc=1.5)
    current = make_point(growth_rate_7d=10.0, growth_rate_30d=30.0, cpc=1.0)
    assert cpc_direction(current, previous) == -1
    assert classify_lifecycle(current, previous) == LifecycleStage.MATURE


def test_affiliate_flood(make_point):
    point = make_point(cpc=2.0, affiliate_density=0.7)
    assert classify_lifecycle(point) == LifecycleStage.AFFILIATE_FLOOD


def test_saturation(make_point):
    point = make_point(content_density=20_000, engagement_velocity=2.0)
    assert classify_lifecycle(point) == LifecycleStage.SATURATION


def test_saturation_not_when_engagement_rising(make_point):
    previous = make_point(engagement_velocity=3.0)
    current = make_point(content_density=20_000, engagement_velocity=4.0)
    assert engagement_direction(current, previous) == 1
    assert classify_lifecycle(current, previous) == LifecycleStage.MATURE


def test_margin_collapse(make_point):
    previous = make_point(cpc=1.0, engagement_velocity=2.0)
    current = make_point(cpc=0.5, engagement_velocity=1.0, content_density=10_000, search_volume=10)
    assert classify_lifecycle(current, previous) == LifecycleStage.MARGIN_COLLAPSE


def test_first_matching_rule_wins(make_point):
    # Matches both search_increase and affiliate_flood
    point = make_point(growth_rate_7d=10.0, growth_rate_30d=30.0, cpc=2.0, affiliate_density=0.7)
    assert classify_lifecycle(point) == LifecycleStage.SEARCH_INCREASE


def test_beginner_investing_keyword_is_search_increase(make_point):
    point = make_point(
        search_volume=74, growth_rate_7d=12.5, growth_rate_30d=28.3, growth_rate_90d=45.0,
        cpc=1.20, affiliate_density=0.65, ads_density=0.55, content_density=8500,
        creator_density=320, engagement_velocity=4.2,
    )
    assert classify_lifecycle(point) == LifecycleStage.SEARCH_INCREASE


def test_direction_proxies(make_point):
    assert cpc_direction(make_point(cpc=1.0, growth_rate_7d=-3)) == -1
    assert cpc_direction(make_point(cpc=0.0, growth_rate_7d=10)) == 0
    assert cpc_direction(make_point()) == 0
    assert engagement_direction(make_point(engagement_velocity=1.0)) == -1
    assert engagement_direction(make_point(engagement_velocity=2.0)) == 0
    assert engagement_direction(make_point(engagement_velocity=5.0)) == 1
    assert engagement_direction(make_point()) == 0


def test_directions_within_tolerance_are_flat(make_point):
    previous = make_point(cpc=1.000, engagement_velocity=3.00)
    current = make_point(cpc=1.005, engagement_velocity=3.05)
    assert cpc_direction(current, previous) == 0
    assert engagement_direction(current, previous) == 0
