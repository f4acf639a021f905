"""
Local PRD scoring: quick score, AI dimension combination, version comparison.

Nothing in this module performs I/O. ``quick_score`` is the cheap estimate
used when a full AI analysis is not wanted; ``combine_scores`` folds the
per-dimension scores returned by the AI collaborator into one number.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from prd_validator.services.prd_extractor import StructuredData, sections_of
from prd_validator.services.structure_validator import REQUIRED_SECTIONS
from prd_validator.utils.helpers import compact_json, round_half_up

logger = logging.getLogger(__name__)


class Dimension(str, enum.Enum):
    """Aspects of a PRD scored by the AI collaborator."""

    COMPLETENESS = "completeness"
    CLARITY = "clarity"
    MARKET_FIT = "market_fit"
    COMPETITIVE_POSITIONING = "competitive_positioning"


# Weights advertised by the product's scoring framework. combine_scores does
# not apply them; the overall score is an unweighted mean.
DOCUMENTED_DIMENSION_WEIGHTS: Dict[Dimension, float] = {
    Dimension.COMPLETENESS: 0.40,
    Dimension.CLARITY: 0.25,
    Dimension.MARKET_FIT: 0.20,
    Dimension.COMPETITIVE_POSITIONING: 0.15,
}

# Quick-score budget: 40 for sections, 30 for content size, 30 for metrics
SECTION_POINTS_TOTAL = 40
CONTENT_POINTS_TOTAL = 30
METRIC_POINTS_TOTAL = 30
SECTION_MIN_LENGTH = 100
CONTENT_THRESHOLDS = ((5000, 0.6), (10000, 0.4))

BENCHMARKS: Dict[str, Dict[str, Dict[str, Any]]] = {
    "completeness": {
        "excellent": {"min": 85, "description": "Comprehensive PRD with all required sections"},
        "good": {"min": 70, "max": 84, "description": "Well-structured PRD with minor gaps"},
        "fair": {"min": 55, "max": 69, "description": "Basic PRD with several missing elements"},
        "poor": {"max": 54, "description": "Incomplete PRD requiring significant work"},
    },
    "clarity": {
        "excellent": {"min": 90, "description": "Crystal clear, unambiguous language"},
        "good": {"min": 75, "max": 89, "description": "Clear with minor ambiguities"},
        "fair": {"min": 60, "max": 74, "description": "Generally clear with some confusion"},
        "poor": {"max": 59, "description": "Unclear language and structure"},
    },
    "market_fit": {
        "excellent": {"min": 80, "description": "Strong market validation and positioning"},
        "good": {"min": 65, "max": 79, "description": "Good market understanding"},
        "fair": {"min": 50, "max": 64, "description": "Basic market awareness"},
        "poor": {"max": 49, "description": "Weak market validation"},
    },
    "competitive_positioning": {
        "excellent": {"min": 85, "description": "Clear competitive advantage"},
        "good": {"min": 70, "max": 84, "description": "Good competitive awareness"},
        "fair": {"min": 55, "max": 69, "description": "Basic competitive analysis"},
        "poor": {"max": 54, "description": "Limited competitive understanding"},
    },
}


@dataclass(frozen=True)
class QuickScore:
    """Approximate overall score computed without any AI call."""

    overall_score: int
    breakdown: Dict[str, int] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# Quick score
# ---------------------------------------------------------------------------

def _as_mapping(data: Union[StructuredData, Mapping[str, Any], None]) -> Mapping[str, Any]:
    if isinstance(data, StructuredData):
        return data.to_dict()
    if not isinstance(data, Mapping):
        return {}
    return data


def quick_score(structured_data: Union[StructuredData, Mapping[str, Any], None]) -> QuickScore:
    """
    Estimate a 0-100 score from section lengths, content size and metrics.

    The returned breakdown splits the *final* score 40/30/30 for display; it
    does not report the component sums that produced it.
    """
    data = _as_mapping(structured_data)
    sections = sections_of(data)
    score = 0.0

    per_section = SECTION_POINTS_TOTAL / len(REQUIRED_SECTIONS)
    for section in REQUIRED_SECTIONS:
        text = sections.get(section)
        if text and len(text) > SECTION_MIN_LENGTH:
            score += per_section

    total_content = len(compact_json(data))
    for threshold, share in CONTENT_THRESHOLDS:
        if total_content > threshold:
            score += CONTENT_POINTS_TOTAL * share

    if data.get("metrics"):
        score += METRIC_POINTS_TOTAL * 0.5
    if data.get("stakeholders"):
        score += METRIC_POINTS_TOTAL * 0.5

    overall = max(0, min(round_half_up(score), 100))
    return QuickScore(
        overall_score=overall,
        breakdown={
            "sections": round_half_up(overall * 0.4),
            "content": round_half_up(overall * 0.3),
            "metrics": round_half_up(overall * 0.3),
        },
    )


# ---------------------------------------------------------------------------
# Dimension combination
# ---------------------------------------------------------------------------

def combine_scores(scores: Mapping[Union[Dimension, str], Optional[float]]) -> int:
    """
    Unweighted mean of the dimension scores that are present.

    ``None`` entries and absent dimensions are skipped rather than counted as
    zero. Returns 0 when no dimension has a score.
    """
    present = [float(value) for value in scores.values() if value is not None]
    if not present:
        return 0
    return round_half_up(sum(present) / len(present))


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------

def generate_comparison_insights(comparisons: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Summarise a list of ``{"version": str, "overall_score": int, ...}`` items.

    The best version is the first one with the highest overall score.
    """
    insights: Dict[str, Any] = {
        "best_version": None,
        "improvements": [],
        "regressions": [],
        "recommendations": [],
    }
    if not comparisons:
        return insights

    best = comparisons[0]
    for current in comparisons[1:]:
        if current["overall_score"] > best["overall_score"]:
            best = current
    insights["best_version"] = best["version"]

    scores: List[int] = [c["overall_score"] for c in comparisons]
    average = sum(scores) / len(scores)
    high, low = max(scores), min(scores)

    insights["improvements"].append(f"Average score: {round_half_up(average)}")
    insights["improvements"].append(f"Score range: {low} - {high}")

    if high - low > 20:
        insights["recommendations"].append(
            "Significant score variations detected - consider standardizing PRD format"
        )
    return insights
