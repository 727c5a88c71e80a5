"""Weighted similarity between two error signals.

Used only when an incoming signal has no exact key match, to decide whether
it should be folded into an existing entry. The score is a weighted sum:

    code equality        0.4
    message similarity   0.3  (normalized Levenshtein)
    status equality      0.2
    context similarity   0.1

It is a best-effort noise filter, not a classifier.
"""

import json
from collections.abc import Mapping
from typing import Any, Optional

from error_dedup.keys import MAX_CONTEXT_DEPTH

CODE_WEIGHT = 0.4
MESSAGE_WEIGHT = 0.3
STATUS_WEIGHT = 0.2
CONTEXT_WEIGHT = 0.1

DEFAULT_THRESHOLD = 0.8


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance with unit insert/delete/substitute costs."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    # Two rows of the DP matrix are enough.
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(
                current[j - 1] + 1,
                previous[j] + 1,
                previous[j - 1] + cost,
            ))
        previous = current
    return previous[-1]


def string_similarity(a: str, b: str) -> float:
    """1 - distance / longest length; two empty strings score 1."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - edit_distance(a, b) / longest


def _leaf(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def values_match(a: Any, b: Any, max_depth: int = MAX_CONTEXT_DEPTH, _depth: int = 0) -> bool:
    """Structural equality of two context values, bounded by *max_depth*.

    Anything nested deeper than *max_depth* compares as different.
    """
    if _depth > max_depth:
        return False
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        if set(map(str, a)) != set(map(str, b)):
            return False
        b_by_key = {str(k): v for k, v in b.items()}
        return all(
            values_match(v, b_by_key[str(k)], max_depth, _depth + 1)
            for k, v in a.items()
        )
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        if len(a) != len(b):
            return False
        return all(
            values_match(x, y, max_depth, _depth + 1) for x, y in zip(a, b)
        )
    if isinstance(a, (Mapping, list, tuple)) or isinstance(b, (Mapping, list, tuple)):
        return False
    return _leaf(a) == _leaf(b)


def context_similarity(
    a: Optional[Mapping[str, Any]],
    b: Optional[Mapping[str, Any]],
    max_depth: int = MAX_CONTEXT_DEPTH,
) -> float:
    """Share of common keys whose values match.

    Both absent scores 1, one absent scores 0, no common keys scores 0.
    A context that is not a mapping counts as absent.
    """
    if not isinstance(a, Mapping):
        a = None
    if not isinstance(b, Mapping):
        b = None
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0

    common = [key for key in a if key in b]
    if not common:
        return 0.0

    matching = sum(
        1 for key in common if values_match(a[key], b[key], max_depth, 1)
    )
    return matching / len(common)


def similarity(a, b, max_depth: int = MAX_CONTEXT_DEPTH) -> float:
    """Composite similarity score of two signals, in [0, 1]."""
    score = 0.0
    if a.code == b.code:
        score += CODE_WEIGHT
    score += MESSAGE_WEIGHT * string_similarity(a.message, b.message)
    if a.status_code == b.status_code:
        score += STATUS_WEIGHT
    score += CONTEXT_WEIGHT * context_similarity(
        getattr(a, "context", None), getattr(b, "context", None), max_depth
    )
    # Trim float noise so weights summing to a threshold compare as equal.
    return round(score, 10)


def is_similar(a, b, threshold: float = DEFAULT_THRESHOLD,
               max_depth: int = MAX_CONTEXT_DEPTH) -> bool:
    return similarity(a, b, max_depth) >= threshold
