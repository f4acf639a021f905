"""Tests for the quick score, dimension combination and version comparison."""
from prd_validator.services.scoring import (
    BENCHMARKS,
    Dimension,
    combine_scores,
    generate_comparison_insights,
    quick_score,
)
from prd_validator.services.structure_validator import REQUIRED_SECTIONS
from prd_validator.utils.helpers import round_half_up


def _full_prd() -> dict:
    return {
        "sections": {name: "x" * 2500 for name in REQUIRED_SECTIONS},
        "metrics": ["20% growth"],
        "stakeholders": ["for Retail Managers"],
    }


# ---------------------------------------------------------------------------
# Quick score
# ---------------------------------------------------------------------------

def test_full_quick_score_is_100():
    result = quick_score(_full_prd())
    assert result.overall_score == 100
    assert result.breakdown == {"sections": 40, "content": 30, "metrics": 30}


def test_empty_quick_score_is_zero():
    result = quick_score({})
    assert result.overall_score == 0
    assert result.breakdown == {"sections": 0, "content": 0, "metrics": 0}
    assert quick_score(None).overall_score == 0


def test_short_sections_earn_nothing():
    data = {"sections": {name: "x" * 100 for name in REQUIRED_SECTIONS}}
    assert quick_score(data).overall_score == 0


def test_sections_and_metrics_without_bulk_content():
    data = {
        "sections": {"solution": "y" * 101, "features": "z" * 101},
        "metrics": ["10 users"],
    }
    result = quick_score(data)
    # 2 x 8 for sections + 15 for metrics
    assert result.overall_score == 31
    # breakdown splits the final score, not the components
    assert result.breakdown == {"sections": 12, "content": 9, "metrics": 9}


def test_content_thresholds():
    medium = {"sections": {"appendix": "a" * 6000}}
    large = {"sections": {"appendix": "a" * 11000}}
    assert quick_score(medium).overall_score == 18
    assert quick_score(large).overall_score == 30


# ---------------------------------------------------------------------------
# Combination
# ---------------------------------------------------------------------------

def test_combine_two_dimensions():
    assert combine_scores({Dimension.COMPLETENESS: 80, Dimension.CLARITY: 60}) == 70


def test_combine_nothing_is_zero():
    assert combine_scores({}) == 0
    assert combine_scores({Dimension.CLARITY: None}) == 0


def test_combine_skips_missing_and_rounds_half_up():
    scores = {"completeness": 70, "clarity": 71, "market_fit": None}
    assert combine_scores(scores) == 71


def test_combine_ignores_documented_weights():
    scores = {d: s for d, s in zip(Dimension, (100, 0, 0, 0))}
    assert combine_scores(scores) == 25


def test_round_half_up():
    assert round_half_up(70.5) == 71
    assert round_half_up(70.49) == 70
    assert round_half_up(0.5) == 1


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------

def test_comparison_insights():
    insights = generate_comparison_insights(
        [
            {"version": "v1", "overall_score": 50},
            {"version": "v2", "overall_score": 81},
            {"version": "v3", "overall_score": 81},
        ]
    )
    assert insights["best_version"] == "v2"
    assert insights["improvements"] == ["Average score: 71", "Score range: 50 - 81"]
    assert insights["regressions"] == []
    assert len(insights["recommendations"]) == 1


def test_comparison_insights_small_spread_has_no_recommendation():
    insights = generate_comparison_insights(
        [{"version": "a", "overall_score": 70}, {"version": "b", "overall_score": 75}]
    )
    assert insights["best_version"] == "b"
    assert insights["recommendations"] == []


def test_comparison_insights_empty():
    assert generate_comparison_insights([])["best_version"] is None


def test_benchmarks_cover_every_dimension():
    assert set(BENCHMARKS) == {d.value for d in Dimension}
    for bands in BENCHMARKS.values():
        assert set(bands) == {"excellent", "good", "fair", "poor"}


def test_malformed_sections_earn_nothing():
    assert quick_score({"sections": {"solution": 5}}).overall_score == 0
    assert quick_score({"sections": ["solution"]}).overall_score == 0
    assert quick_score(["not", "a", "mapping"]).overall_score == 0
