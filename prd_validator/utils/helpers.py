"""
Common utility functions and helpers.
"""
from typing import Any, List
import json
import math
import re


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer, halves away from zero for positive values.

    Python's built-in ``round`` uses banker's rounding (``round(70.5) == 70``);
    scores are always rounded half-up.

    Args:
        value: Number to round

    Returns:
        Rounded integer
    """
    return int(math.floor(value + 0.5))


def humanize_section_name(name: str) -> str:
    """
    Turn a camel-case section key into lower-case words.

    Args:
        name: Section key such as ``successMetrics``

    Returns:
        Label such as ``success metrics``
    """
    return re.sub(r"([A-Z])", r" \1", name).lower().strip()


def word_count(text: str) -> int:
    """Count whitespace-separated words."""
    return len(text.split())


def compact_json(data: Any) -> str:
    """
    Serialise *data* without insignificant whitespace.

    Args:
        data: JSON-compatible object

    Returns:
        JSON text
    """
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False, default=str)


def unique(items: List[str]) -> List[str]:
    """
    Drop exact duplicates while keeping first-seen order.

    Args:
        items: Strings, possibly repeated

    Returns:
        List of distinct strings
    """
    return list(dict.fromkeys(items))

