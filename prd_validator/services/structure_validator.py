"""
PRD structure validation.

Scores which of the recognised sections a PRD contains. Required sections
are worth 20 points and optional ones 10 (maximum 140); the overall score is
the earned share of that maximum. Each present section also receives a
0-100 completeness sub-score from simple text-quality signals. The sub-score
is informational and does not feed the overall percentage.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from prd_validator.errors import MissingInputError
from prd_validator.services.prd_extractor import (
    SECTION_PATTERNS,
    SectionName,
    StructuredData,
    sections_of,
)
from prd_validator.utils.helpers import humanize_section_name, round_half_up, word_count

logger = logging.getLogger(__name__)

REQUIRED_SECTIONS: tuple = (
    SectionName.PROBLEM_STATEMENT.value,
    SectionName.SOLUTION.value,
    SectionName.TARGET_MARKET.value,
    SectionName.SUCCESS_METRICS.value,
    SectionName.FEATURES.value,
)
OPTIONAL_SECTIONS: tuple = (
    SectionName.USER_PERSONAS.value,
    SectionName.TIMELINE.value,
    SectionName.RISKS.value,
    SectionName.COMPETITIVE_ANALYSIS.value,
)

REQUIRED_SECTION_POINTS = 20
OPTIONAL_SECTION_POINTS = 10
MAX_POINTS = (
    len(REQUIRED_SECTIONS) * REQUIRED_SECTION_POINTS
    + len(OPTIONAL_SECTIONS) * OPTIONAL_SECTION_POINTS
)

_PATTERNS_BY_NAME = dict(SECTION_PATTERNS)
_USER_FOCUS = re.compile(r"\b(user|customer|stakeholder|target)\b", re.IGNORECASE)
_DIGIT = re.compile(r"\d")


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SectionAnalysis:
    """Presence, points awarded and completeness for one section."""

    present: bool
    score: int
    completeness: int


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validate_structure."""

    overall_score: int
    completeness_score: int
    section_analysis: Dict[str, SectionAnalysis] = field(default_factory=dict)
    missing_sections: List[str] = field(default_factory=list)
    strengths: List[str] = field(default_factory=list)
    areas_for_improvement: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Scoring helpers
# ---------------------------------------------------------------------------

def section_completeness(text: Optional[str]) -> int:
    """
    Score the quality of a block of section text on a 0-100 scale.

    Text shorter than 50 characters scores 0. Otherwise points are added for
    length, structure (colons, line breaks), numbers, sentence endings and a
    user-focused vocabulary, capped at 100.
    """
    if not text or len(text) < 50:
        return 0

    score = 0
    words = word_count(text)
    if words > 100:
        score += 30
    elif words > 50:
        score += 20

    if ":" in text:
        score += 10
    if _DIGIT.search(text):
        score += 10
    if len(text) > 200:
        score += 20
    if len(text.split("\n")) > 3:
        score += 10
    if text.endswith((".", "!", "?")):
        score += 10
    if _USER_FOCUS.search(text):
        score += 10

    return min(score, 100)


def section_in_content(content: Optional[str], section: str) -> bool:
    """True if the section's header pattern occurs anywhere in *content*."""
    pattern = _PATTERNS_BY_NAME.get(section)
    return bool(content and pattern and pattern.search(content))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def validate_structure(
    structured_data: Union[StructuredData, Mapping[str, Any], None] = None,
    content: Optional[str] = None,
) -> ValidationResult:
    """
    Check a PRD for required and optional sections.

    Args:
        structured_data: Output of ``parse`` (or an equivalent mapping).
        content:         Raw PRD text; used as a looser presence check and as
                         completeness fallback.

    Raises:
        MissingInputError: neither argument was supplied.
    """
    if structured_data is None and not content:
        raise MissingInputError("Either structured_data or content is required")

    sections = sections_of(structured_data)

    section_analysis: Dict[str, SectionAnalysis] = {}
    missing_sections: List[str] = []
    strengths: List[str] = []
    areas_for_improvement: List[str] = []
    recommendations: List[str] = []
    earned = 0

    for section in REQUIRED_SECTIONS + OPTIONAL_SECTIONS:
        required = section in REQUIRED_SECTIONS
        points = REQUIRED_SECTION_POINTS if required else OPTIONAL_SECTION_POINTS
        label = humanize_section_name(section)
        section_text = sections.get(section)

        if section_text or section_in_content(content, section):
            earned += points
            section_analysis[section] = SectionAnalysis(
                present=True,
                score=points,
                completeness=section_completeness(section_text or content),
            )
            strengths.append(f"Strong {label}" if required else f"Includes {label}")
            continue

        section_analysis[section] = SectionAnalysis(present=False, score=0, completeness=0)
        if required:
            missing_sections.append(section)
            recommendations.append(f"Add a comprehensive {label} section")
        else:
            areas_for_improvement.append(f"Consider adding {label}")

    overall = round_half_up(earned / MAX_POINTS * 100)

    if overall < 60:
        recommendations.append("Focus on adding missing required sections first")
    elif overall < 80:
        recommendations.append("Consider adding optional sections to improve completeness")
    else:
        recommendations.append("Great structure! Consider adding more detail to existing sections")

    logger.info(
        "validate_structure: %d/%d points, %d required sections missing",
        earned,
        MAX_POINTS,
        len(missing_sections),
    )

    return ValidationResult(
        overall_score=overall,
        completeness_score=overall,
        section_analysis=section_analysis,
        missing_sections=missing_sections,
        strengths=strengths,
        areas_for_improvement=areas_for_improvement,
        recommendations=recommendations,
    )
