"""
Opportunity scoring: normalization, subscores, risk and the combined score.
"""

import pytest

from trend_intel.schemas import LifecycleStage, RiskLevel, Subscores
from trend_intel.trends.scoring import (
    assess_risk, compute_opportunity_score, compute_subscores, estimate_sustainability_days,
    normalize_density, normalize_growth, normalize_magnitude, score_data_point,
)

SCENARIO = dict(
    search_volume=74, growth_rate_7d=12.5, growth_rate_30d=28.3, growth_rate_90d=45.0,
    cpc=1.20, affiliate_density=0.65, ads_density=0.55, content_density=8500,
    creator_density=320, engagement_velocity=4.2,
)


# ════════════════════════════════════════════════════════════════════
# Normalization
# ════════════════════════════════════════════════════════════════════

def test_growth_normalization_is_centered_and_clamped():
    assert normalize_growth(0, 50) == 50
    assert normalize_growth(25, 50) == 75
    assert normalize_growth(500, 50) == 100
    assert normalize_growth(-500, 50) == 0
    assert normalize_growth(None, 50) == 50


def test_magnitude_and_density_normalization():
    assert normalize_magnitude(2.5, 5.0) == 50
    assert normalize_magnitude(80_000, 50_000) == 100
    assert normalize_magnitude(-1, 5.0) == 0
    assert normalize_density(0.65) == pytest.approx(65)
    assert normalize_density(None) == 50


# ════════════════════════════════════════════════════════════════════
# Subscores + score
# ════════════════════════════════════════════════════════════════════

def test_missing_metrics_score_neutral(make_point):
    point = make_point()
    subs = compute_subscores(point)
    assert subs == Subscores(momentum=50, monetization=50, supply_gap=50, competition=50)
    assert compute_opportunity_score(subs) == 40.0


def test_best_case_point(make_point):
    point = make_point(
        search_volume=100, growth_rate_7d=50, growth_rate_30d=100, growth_rate_90d=200,
        engagement_velocity=10, cpc=5, affiliate_density=1, ads_density=1,
        content_density=0, creator_density=0,
    )
    subs = compute_subscores(point)
    assert subs.momentum == 100
    assert subs.monetization == 100
    assert subs.supply_gap == 100
    assert subs.competition == 40
    assert compute_opportunity_score(subs) == 86.0


def test_scenario_keyword_subscores(make_point):
    score = score_data_point(make_point(**SCENARIO))
    assert score.subscores.momentum == pytest.approx(59.73, abs=0.01)
    assert score.subscores.monetization == pytest.approx(46.1, abs=0.01)
    assert score.subscores.supply_gap == pytest.approx(80.0, abs=0.01)
    assert score.subscores.competition == pytest.approx(32.2, abs=0.01)
    assert score.score == pytest.approx(51.52, abs=0.01)
    assert score.lifecycle == LifecycleStage.SEARCH_INCREASE
    assert score.risk == RiskLevel.LOW
    assert score.risk_factors == []


def test_score_is_clamped_to_range(make_point):
    worst = make_point(
        search_volume=0, growth_rate_7d=-100, growth_rate_30d=-100, growth_rate_90d=-300,
        engagement_velocity=0, cpc=0, affiliate_density=0, ads_density=1,
        content_density=100_000, creator_density=5_000,
    )
    score = score_data_point(worst)
    assert 0.0 <= score.score <= 100.0
    assert score.score == 0.0


_EXTREMES = {
    "search_volume": (0, 100, 10_000),
    "growth_rate_7d": (-100, 0, 1_000),
    "growth_rate_30d": (-100, 0, 1_000),
    "growth_rate_90d": (-100, 0, 1_000),
    "cpc": (0, 5, 50),
    "affiliate_density": (0, 0.5, 1),
    "ads_density": (0, 0.5, 1),
    "content_density": (0, 50_000, 5_000_000),
    "creator_density": (0, 2_000, 100_000),
    "engagement_velocity": (0, 10, 100),
}


def _sweep_points():
    cases = [{}]
    for pick in (0, 1, 2):
        cases.append({name: values[pick] for name, values in _EXTREMES.items()})
    # Good on one axis, worst or missing on the rest
    for name, values in _EXTREMES.items():
        cases.append({name: values[2]})
        cases.append({other: v[0] for other, v in _EXTREMES.items() if other != name})
    cases.append({"growth_rate_7d": 1_000, "growth_rate_30d": -100, "content_density": 0})
    cases.append({"cpc": 50, "affiliate_density": 1, "ads_density": 1, "content_density": 5_000_000})
    return cases


@pytest.mark.parametrize("metrics", _sweep_points())
@pytest.mark.parametrize("confidence", [0.0, 0.3, 1.0])
def test_score_and_subscores_stay_in_range(make_point, metrics, confidence):
    score = score_data_point(make_point(confidence=confidence, **metrics))
    assert 0.0 <= score.score <= 100.0
    for value in score.subscores.model_dump().values():
        assert 0.0 <= value <= 100.0
    assert score.sustainability_days >= 7


def test_scoring_is_deterministic(make_point):
    a = score_data_point(make_point(**SCENARIO))
    b = score_data_point(make_point(**SCENARIO))
    assert a.model_dump(exclude={"last_updated"}) == b.model_dump(exclude={"last_updated"})


# ════════════════════════════════════════════════════════════════════
# Risk, breakout, sustainability
# ════════════════════════════════════════════════════════════════════

def test_low_confidence_is_medium_risk(make_point):
    point = make_point(confidence=0.3)
    subs = compute_subscores(point)
    level, factors = assess_risk(point, subs, LifecycleStage.MATURE)
    assert level == RiskLevel.MEDIUM
    assert factors == ["data_limited"]


def test_risk_points_accumulate_to_high(make_point):
    point = make_point(confidence=0.3, cpc=0.1, affiliate_density=0.1)
    subs = Subscores(momentum=50, monetization=10, supply_gap=50, competition=80)
    level, factors = assess_risk(point, subs, LifecycleStage.SATURATION)
    assert level == RiskLevel.HIGH
    assert factors == ["data_limited", "high_competition", "market_saturating", "low_monetization_signal"]


def test_low_monetization_needs_both_metrics(make_point):
    point = make_point(cpc=0.1)
    level, factors = assess_risk(point, compute_subscores(point), LifecycleStage.MATURE)
    assert "low_monetization_signal" not in factors
    assert level == RiskLevel.LOW


def test_volatile_spike_flag(make_point):
    point = make_point(growth_rate_7d=120, growth_rate_30d=5)
    _, factors = assess_risk(point, compute_subscores(point), LifecycleStage.MATURE)
    assert "volatile_spike" in factors


def test_breakout_above_200_percent(make_point):
    assert score_data_point(make_point(growth_rate_7d=250)).is_breakout
    assert not score_data_point(make_point(growth_rate_7d=200)).is_breakout
    assert not score_data_point(make_point()).is_breakout


def test_sustainability_window():
    neutral = Subscores(momentum=50, monetization=50, supply_gap=50, competition=50)
    strong = Subscores(momentum=80, monetization=50, supply_gap=50, competition=20)
    crowded = Subscores(momentum=30, monetization=50, supply_gap=50, competition=90)
    assert estimate_sustainability_days(LifecycleStage.MATURE, neutral) == 30
    assert estimate_sustainability_days(LifecycleStage.SEARCH_INCREASE, strong) == 75
    assert estimate_sustainability_days(LifecycleStage.MARGIN_COLLAPSE, crowded) == 7


def test_score_carries_representative_values(make_point):
    score = score_data_point(make_point(**SCENARIO), data_points_count=3, platforms=["google", "youtube"])
    assert score.search_volume == 74
    assert score.growth_rate_7d == 12.5
    assert score.data_points_count == 3
    assert score.platforms == ["google", "youtube"]
    assert score.data_source.value == "real"
