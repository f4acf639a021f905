"""
Heuristic structure extraction for PRD text.

Splits raw document text into the nine recognised PRD sections and pulls
flat lists of metrics, stakeholders, features and risks out of the whole
text with regular expressions. Every function here is pure and synchronous;
an absence of matches is a normal, empty result.

Public API
----------
parse(raw_text)            -> StructuredData
parse_sections(raw_text)   -> Dict[str, str]
split_header(line)         -> (section_name, inline_text) | None
render_sections(sections)  -> str
extract_metrics / extract_stakeholders / extract_features / extract_risks
"""
from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Pattern, Tuple

from prd_validator.utils.helpers import unique

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section names
# ---------------------------------------------------------------------------

class SectionName(str, enum.Enum):
    """The fixed set of PRD sections the extractor recognises."""

    PROBLEM_STATEMENT = "problemStatement"
    SOLUTION = "solution"
    TARGET_MARKET = "targetMarket"
    USER_PERSONAS = "userPersonas"
    FEATURES = "features"
    SUCCESS_METRICS = "successMetrics"
    TIMELINE = "timeline"
    RISKS = "risks"
    COMPETITIVE_ANALYSIS = "competitiveAnalysis"


# Evaluation order matters: the first pattern that matches a line wins.
# "Proposed Solution" is caught by the bare "solution" alternative, and a
# line such as "Target Users" only reaches userPersonas because it does not
# contain "target market".
SECTION_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = (
    (SectionName.PROBLEM_STATEMENT.value,
     re.compile(r"problem\s+statement|problem\s+definition", re.IGNORECASE)),
    (SectionName.SOLUTION.value,
     re.compile(r"solution|proposed\s+solution", re.IGNORECASE)),
    (SectionName.TARGET_MARKET.value,
     re.compile(r"target\s+market|market\s+analysis", re.IGNORECASE)),
    (SectionName.USER_PERSONAS.value,
     re.compile(r"user\s+personas|target\s+users", re.IGNORECASE)),
    (SectionName.FEATURES.value,
     re.compile(r"features|functional\s+requirements", re.IGNORECASE)),
    (SectionName.SUCCESS_METRICS.value,
     re.compile(r"success\s+metrics|kpis|key\s+performance\s+indicators", re.IGNORECASE)),
    (SectionName.TIMELINE.value,
     re.compile(r"timeline|roadmap|milestones", re.IGNORECASE)),
    (SectionName.RISKS.value,
     re.compile(r"risks|challenges|assumptions", re.IGNORECASE)),
    (SectionName.COMPETITIVE_ANALYSIS.value,
     re.compile(r"competitive\s+analysis|competitors", re.IGNORECASE)),
)

SECTION_NAMES: Tuple[str, ...] = tuple(name for name, _ in SECTION_PATTERNS)

# Body text sharing the header line, e.g. "Solution: An automated invoicing app."
_INLINE_BODY = re.compile(r"\s*[:\-]\s*(\S.*)")

# Canonical heading text per section; each heading matches its own pattern
# before any earlier one.
SECTION_HEADINGS: Dict[str, str] = {
    SectionName.PROBLEM_STATEMENT.value: "Problem Statement",
    SectionName.SOLUTION.value: "Solution",
    SectionName.TARGET_MARKET.value: "Target Market",
    SectionName.USER_PERSONAS.value: "User Personas",
    SectionName.FEATURES.value: "Features",
    SectionName.SUCCESS_METRICS.value: "Success Metrics",
    SectionName.TIMELINE.value: "Timeline",
    SectionName.RISKS.value: "Risks",
    SectionName.COMPETITIVE_ANALYSIS.value: "Competitive Analysis",
}


# ---------------------------------------------------------------------------
# Feature-extractor patterns
# ---------------------------------------------------------------------------

# A run of capitalised words on a single line, e.g. "Small Business Owners"
_CAPITALISED_RUN = r"[A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+)*"

METRIC_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"\d+(?:\.\d+)?%\s*(?:increase|decrease|growth|reduction)", re.IGNORECASE),
    re.compile(r"\d+(?:,\d{3})*\s*(?:users|customers|revenue|conversions)", re.IGNORECASE),
    re.compile(r"(?:target|goal|objective).*?\d+(?:\.\d+)?", re.IGNORECASE),
)

STAKEHOLDER_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(
        r"\b(?i:stakeholders?|users?|customers?|target\s+audience)\b.*?" + _CAPITALISED_RUN
    ),
    re.compile(r"\b(?i:for|targeting)[ \t]+" + _CAPITALISED_RUN),
)

FEATURE_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"(?:feature|functionality|capability):\s*[^\n]+", re.IGNORECASE),
    re.compile(r"(?:will|should|must)\s+(?:support|provide|enable|allow)\s+[^\n]+", re.IGNORECASE),
)

RISK_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"(?:risk|challenge|concern|threat):\s*[^\n]+", re.IGNORECASE),
    re.compile(r"(?:potential|possible|likely)\s+(?:risk|issue|problem)\s*[^\n]+", re.IGNORECASE),
)


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StructuredData:
    """
    Sections and flat candidate lists extracted from one PRD text.

    Attributes:
        sections:     section name -> body text, only for detected sections.
        metrics:      numeric / percentage / KPI fragments.
        stakeholders: audience and role fragments.
        features:     capability fragments.
        risks:        risk and challenge fragments.
        timeline:     reserved; the extractor never fills it.

    List entries are unverified free text and are unique within each list.
    """

    sections: Dict[str, str] = field(default_factory=dict)
    metrics: List[str] = field(default_factory=list)
    stakeholders: List[str] = field(default_factory=list)
    features: List[str] = field(default_factory=list)
    risks: List[str] = field(default_factory=list)
    timeline: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sections": dict(self.sections),
            "metrics": list(self.metrics),
            "stakeholders": list(self.stakeholders),
            "features": list(self.features),
            "risks": list(self.risks),
            "timeline": self.timeline,
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "StructuredData":
        """
        Build from a JSON-style mapping, keeping only recognised section keys.

        Malformed parts (a non-object ``sections``, non-text section bodies,
        non-list candidate lists) are dropped rather than raising.
        """
        sections = sections_of(data)
        return cls(
            sections={k: v for k, v in sections.items() if k in SECTION_NAMES},
            metrics=_text_list(data.get("metrics")),
            stakeholders=_text_list(data.get("stakeholders")),
            features=_text_list(data.get("features")),
            risks=_text_list(data.get("risks")),
            timeline=data.get("timeline"),
        )


def sections_of(data: Any) -> Dict[str, str]:
    """
    Non-empty text sections of a ``StructuredData`` or JSON-style mapping.

    Anything that is not a mapping of text bodies yields no sections.
    """
    if isinstance(data, StructuredData):
        return dict(data.sections)
    if not isinstance(data, Mapping):
        return {}
    sections = data.get("sections")
    if not isinstance(sections, Mapping):
        return {}
    return {k: v for k, v in sections.items() if isinstance(v, str) and v}


def _text_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return unique([str(item) for item in value if item is not None])


# ---------------------------------------------------------------------------
# Section extraction
# ---------------------------------------------------------------------------

def split_header(line: str) -> Optional[Tuple[str, str]]:
    """
    Match *line* against the section patterns in order.

    Returns ``(section_name, inline_text)`` for the first pattern that occurs,
    where *inline_text* is whatever follows the heading after a ``:`` or ``-``
    separator ("" if nothing does), or None when no pattern occurs.
    """
    for name, pattern in SECTION_PATTERNS:
        match = pattern.search(line)
        if match:
            inline = _INLINE_BODY.match(line[match.end():])
            return name, inline.group(1).strip() if inline else ""
    return None


def match_section(line: str) -> Optional[str]:
    """Return the first section name whose pattern occurs in *line*, else None."""
    header = split_header(line)
    return header[0] if header else None


def parse_sections(raw_text: str) -> Dict[str, str]:
    """
    Partition *raw_text* into named sections.

    A line matching a section pattern opens that section; following non-empty
    lines are its body. Text after the heading on the header line itself
    ("Solution: An automated invoicing app.") is the first body line. Text
    before the first header is dropped. When a section name appears again,
    the later body replaces the earlier one. Headers without any body lines
    produce no entry.
    """
    sections: Dict[str, str] = {}
    current: Optional[str] = None
    body: List[str] = []

    def _flush() -> None:
        if current is not None and body:
            sections[current] = "\n".join(body)

    for raw_line in (raw_text or "").split("\n"):
        line = raw_line.strip()

        header = split_header(line)
        if header is not None:
            _flush()
            current, inline = header
            body = [inline] if inline else []
        elif current is not None and line:
            body.append(line)

    _flush()
    return sections


def render_sections(sections: Mapping[str, str]) -> str:
    """Rebuild PRD text from a sections mapping using canonical headings."""
    blocks: List[str] = []
    for name in SECTION_NAMES:
        text = sections.get(name)
        if text:
            blocks.append(f"{SECTION_HEADINGS[name]}\n{text}")
    return "\n\n".join(blocks)


# ---------------------------------------------------------------------------
# Feature extractors
# ---------------------------------------------------------------------------

def _collect(text: str, patterns: Tuple[Pattern[str], ...]) -> List[str]:
    """Run every pattern over *text*; return stripped, de-duplicated full matches."""
    found: List[str] = []
    for pattern in patterns:
        for match in pattern.finditer(text or ""):
            fragment = match.group(0).strip()
            if fragment:
                found.append(fragment)
    return unique(found)


def extract_metrics(text: str) -> List[str]:
    """Percent changes, user/customer/revenue counts, and target/goal figures."""
    return _collect(text, METRIC_PATTERNS)


def extract_stakeholders(text: str) -> List[str]:
    """Capitalised names following audience keywords or "for"/"targeting"."""
    return _collect(text, STAKEHOLDER_PATTERNS)


def extract_features(text: str) -> List[str]:
    return _collect(text, FEATURE_PATTERNS)


def extract_risks(text: str) -> List[str]:
    return _collect(text, RISK_PATTERNS)


def parse(raw_text: str) -> StructuredData:
    """Run section detection and all feature extractors over *raw_text*."""
    data = StructuredData(
        sections=parse_sections(raw_text),
        metrics=extract_metrics(raw_text),
        stakeholders=extract_stakeholders(raw_text),
        features=extract_features(raw_text),
        risks=extract_risks(raw_text),
    )
    logger.debug(
        "parse: %d sections, %d metrics, %d stakeholders, %d features, %d risks",
        len(data.sections),
        len(data.metrics),
        len(data.stakeholders),
        len(data.features),
        len(data.risks),
    )
    return data
