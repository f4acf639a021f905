"""
Export formatting for validation results.
"""
from __future__ import annotations

import copy
import csv
import io
from typing import Any, Dict, Mapping

SENSITIVE_KEYS = frozenset({"apiKeys", "api_keys", "tokens", "secrets"})

# (row label, key in the results mapping, key of the score inside it, assessment)
_CSV_ROWS = (
    ("Completeness", "completeness", ("completenessScore", "score"), "Comprehensive"),
    ("Clarity", "clarity", ("clarityScore", "score"), "Clear"),
    ("Market Fit", "market_fit", ("marketFitScore", "score"), "Validated"),
    ("Competitive Positioning", "competitive_positioning", ("positioningScore", "score"), "Strong"),
)


def clean_for_export(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Deep copy of *data* without top-level credential-like keys."""
    cleaned = copy.deepcopy(dict(data))
    for key in SENSITIVE_KEYS:
        cleaned.pop(key, None)
    return cleaned


def _score_of(section: Mapping[str, Any], keys) -> Any:
    for key in keys:
        if section.get(key) is not None:
            return section[key]
    return "N/A"


def to_csv(data: Mapping[str, Any]) -> str:
    """Render one ``Metric,Score,Assessment`` row per analysed dimension plus the overall score."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["Metric", "Score", "Assessment"])

    for label, key, score_keys, assessment in _CSV_ROWS:
        section = data.get(key)
        if isinstance(section, Mapping):
            writer.writerow([label, _score_of(section, score_keys), assessment])

    overall = data.get("overall_score")
    writer.writerow(["Overall Score", "N/A" if overall is None else overall, "Balanced"])
    return buffer.getvalue().rstrip("\n")
