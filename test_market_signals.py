"""
Market signals: direction, hotness, suggestions, top-K upsert and cleanup.
"""

from datetime import timedelta

import pytest

from trend_intel.schemas import (
    DataSource, LifecycleStage, MarketSignal, RiskLevel, Subscores, TrendDirection,
    TrendScore, utcnow,
)
from trend_intel.trends.market_signals import (
    SUGGESTION_TEMPLATES, MarketSignalService, detect_direction, generate_suggestion,
    rank_scores, signal_confidence,
)

PATH = "content_monetization"


def _score(keyword, score=60.0, lifecycle=LifecycleStage.SEARCH_INCREASE, growth=10.0, volume=50.0, **kw):
    return TrendScore(
        niche_id="audience.finance",
        keyword=keyword,
        score=score,
        subscores=Subscores(momentum=60, monetization=50, supply_gap=50, competition=30),
        lifecycle=lifecycle,
        growth_rate_7d=growth,
        search_volume=volume,
        **kw,
    )


@pytest.fixture
def service(db, settings):
    return MarketSignalService(db, settings)


# ════════════════════════════════════════════════════════════════════
# Per-signal rules
# ════════════════════════════════════════════════════════════════════

def test_direction_thresholds():
    assert detect_direction(_score("a", growth=5.1)) == TrendDirection.RISING
    assert detect_direction(_score("a", growth=5.0)) == TrendDirection.STABLE
    assert detect_direction(_score("a", growth=-5.0)) == TrendDirection.STABLE
    assert detect_direction(_score("a", growth=-5.1)) == TrendDirection.FALLING
    assert detect_direction(_score("a", growth=None)) == TrendDirection.STABLE


def test_hot_needs_score_and_search_increase(service):
    assert service.build_signal(PATH, _score("a", score=46)).is_hot
    assert not service.build_signal(PATH, _score("a", score=45)).is_hot
    assert not service.build_signal(PATH, _score("a", score=90, lifecycle=LifecycleStage.MATURE)).is_hot


def test_every_stage_and_direction_has_a_suggestion():
    assert len(SUGGESTION_TEMPLATES) == len(LifecycleStage) * len(TrendDirection)
    for stage in LifecycleStage:
        for direction in TrendDirection:
            text = generate_suggestion(_score("reksa dana", lifecycle=stage), direction)
            assert "reksa dana" in text


def test_breakout_suggestion_prefix():
    text = generate_suggestion(_score("a", is_breakout=True, sustainability_days=75), TrendDirection.RISING)
    assert text.startswith("Breakout detected, window ~75 days.")


def test_signal_confidence_heuristic():
    strong = _score("a", data_points_count=4, risk=RiskLevel.LOW)
    weak = _score("b", data_points_count=1, risk=RiskLevel.HIGH, lifecycle=LifecycleStage.MATURE)
    assert signal_confidence(strong) == 0.9
    assert signal_confidence(weak) == 0.5


def test_signal_metadata(service):
    signal = service.build_signal(PATH, _score("a", platforms=["google", "youtube"]))
    assert signal.source == "trend_intelligence_engine"
    assert signal.metadata["lifecycle_stage"] == "search_increase"
    assert signal.metadata["platforms"] == ["google", "youtube"]
    assert signal.trend_direction == TrendDirection.RISING


def test_rank_keeps_first_occurrence_per_keyword():
    ranked = rank_scores([
        _score("b", score=50),
        _score("a", score=70),
        _score("a", score=40),
        _score("c", score=50, volume=90),
    ])
    assert [(s.keyword, s.score) for s in ranked] == [("a", 70), ("c", 50), ("b", 50)]


# ════════════════════════════════════════════════════════════════════
# Generation
# ════════════════════════════════════════════════════════════════════

def test_top_k_upsert(db, settings_factory):
    service = MarketSignalService(db, settings_factory(signal_top_k=2))
    result = service.generate_signals_from_trend_scores(PATH, [
        _score("a", score=80), _score("b", score=30), _score("c", score=55),
    ])
    assert (result.created, result.updated) == (2, 0)
    assert [s.keyword for s in service.load_path_signals(PATH)] == ["a", "c"]
    assert result.hot_count == 2


def test_regeneration_updates_in_place(service):
    first = service.generate_signals_from_trend_scores(PATH, [_score("a", score=80)])
    second = service.generate_signals_from_trend_scores(PATH, [_score("a", score=40, growth=-20)])
    assert (second.created, second.updated) == (0, 1)
    assert second.signals[0].id == first.signals[0].id
    stored = service.load_path_signals(PATH)
    assert len(stored) == 1
    assert stored[0].trend_direction == TrendDirection.FALLING
    assert not stored[0].is_hot


def test_fallback_scores_never_become_signals(service):
    demo = _score("a").model_copy(update={"data_source": DataSource.FALLBACK})
    result = service.generate_signals_from_trend_scores(PATH, [demo])
    assert result.created == 0
    assert result.errors == [f"No real trend scores for path {PATH}"]
    assert service.load_path_signals(PATH) == []


def test_fallback_scores_are_filtered_from_mixed_input(service):
    demo = _score("demo", score=99).model_copy(update={"data_source": DataSource.FALLBACK})
    result = service.generate_signals_from_trend_scores(PATH, [demo, _score("real")])
    assert [s.keyword for s in result.signals] == ["real"]


def test_hot_signals_across_paths(service):
    service.generate_signals_from_trend_scores(PATH, [_score("a", score=80), _score("b", score=20)])
    service.generate_signals_from_trend_scores("micro_service", [_score("c", score=70)])
    assert [s.keyword for s in service.load_hot_signals()] == ["a", "c"]


def test_hot_only_filter_applies_before_limit(service):
    service.generate_signals_from_trend_scores(PATH, [
        _score("m1", score=90, lifecycle=LifecycleStage.MATURE),
        _score("m2", score=85, lifecycle=LifecycleStage.MATURE),
        _score("m3", score=80, lifecycle=LifecycleStage.MATURE),
        _score("hot", score=50),
    ])
    assert [s.keyword for s in service.load_path_signals(PATH, limit=2)] == ["m1", "m2"]
    assert [s.keyword for s in service.load_path_signals(PATH, limit=2, hot_only=True)] == ["hot"]


def _in_niche(score, niche_id):
    return score.model_copy(update={"niche_id": niche_id})


def test_refresh_all_signals(db, service):
    db.replace_trend_scores("audience.finance", [_score("a", score=80), _score("b")])
    db.replace_trend_scores("audience.finance.crypto", [_in_niche(_score("c", score=70), "audience.finance.crypto")])
    db.replace_trend_scores("skill.copywriting", [_in_niche(_score("d"), "skill.copywriting")])
    db.replace_trend_scores("coffee_roasting.default", [_in_niche(_score("e"), "coffee_roasting.default")])

    result = service.refresh_all_signals()
    assert (result.created, result.updated) == (5, 0)
    assert result.errors == []
    assert result.per_path == {PATH: 3, "micro_service": 1, "coffee_roasting": 1}
    # Niches of one path are ranked together
    assert [s.keyword for s in service.load_path_signals(PATH)] == ["a", "c", "b"]

    again = service.refresh_all_signals()
    assert (again.created, again.updated) == (0, 5)


# ════════════════════════════════════════════════════════════════════
# Cleanup + focus
# ════════════════════════════════════════════════════════════════════

def test_cleanup_removes_aged_signals(db, service):
    db.replace_trend_scores("audience.finance", [_score("a"), _score("b")])
    service.generate_signals_from_trend_scores(PATH, [_score("a"), _score("b")])

    assert service.cleanup_stale_signals().removed == 0
    result = service.cleanup_stale_signals(now=utcnow() + timedelta(days=31))
    assert result.removed == 2
    assert result.per_path == {PATH: 2}


def test_cleanup_removes_orphans(db, service):
    db.replace_trend_scores("audience.finance", [_score("a"), _score("b")])
    service.generate_signals_from_trend_scores(PATH, [_score("a"), _score("b")])
    db.replace_trend_scores("audience.finance", [_score("a")])

    result = service.cleanup_stale_signals(path_id=PATH)
    assert result.removed == 1
    assert [s.keyword for s in service.load_path_signals(PATH)] == ["a"]


def test_market_focus(db, service):
    assert service.get_path_market_focus(PATH) is None
    db.upsert_market_signals([
        MarketSignal(path_id=PATH, niche_id="audience.finance", keyword="a", trend_score=80,
                     confidence=0.9, is_hot=True, suggestion="go"),
        MarketSignal(path_id=PATH, niche_id="audience.finance", keyword="b", trend_score=40, confidence=0.5),
    ])
    focus = service.get_path_market_focus(PATH)
    assert focus["top_keyword"] == "a"
    assert focus["suggestion"] == "go"
    assert focus["hot_count"] == 1
    assert focus["total_signals"] == 2
    assert focus["heat_score"] == 66


def test_all_path_market_focus(service):
    assert service.get_all_path_market_focus() == {}
    service.generate_signals_from_trend_scores(PATH, [_score("a", score=80), _score("b", score=40)])
    service.generate_signals_from_trend_scores("micro_service", [_score("c", score=70)])

    focus = service.get_all_path_market_focus()
    assert sorted(focus) == [PATH, "micro_service"]
    assert focus[PATH] == service.get_path_market_focus(PATH)
    assert focus[PATH]["top_keyword"] == "a"
    assert focus["micro_service"]["total_signals"] == 1
