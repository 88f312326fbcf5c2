"""Confidence scoring and destructive-change detection.

Both functions are pure heuristics over the compact JSON serialization
of the previous and proposed states. They decide whether a proposed
change may commit automatically or must wait for confirmation.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from pydantic_core import to_jsonable_python

MODEL_WEIGHT = 0.4
SIMILARITY_WEIGHT = 0.3
CLARITY_WEIGHT = 0.3
CLEAR_INTENT_LENGTH = 50


def _plain(value: Any) -> Any:
    return to_jsonable_python(value)


def serialize_state(value: Any) -> str:
    """Compact JSON of ``value`` (pydantic models dumped, keys in insertion order)."""
    return json.dumps(_plain(value), separators=(",", ":"), ensure_ascii=False)


def structural_difference(previous_state: Any, new_state: Any) -> float:
    """Fraction of positions at which the two serializations differ.

    Characters are compared index by index up to the shorter length; the
    ratio is taken over the longer length, so appended text counts as
    difference.
    """
    prev = serialize_state(previous_state)
    new = serialize_state(new_state)
    longest = max(len(prev), len(new))
    if longest == 0:
        return 0.0
    same = sum(1 for a, b in zip(prev, new) if a == b)
    return 1 - same / longest


def calculate_confidence(
    previous_state: Any,
    new_state: Any,
    intent: str,
    model_confidence: float = 0.7,
) -> float:
    """Blend model confidence, structural similarity and intent clarity.

    ``0.4 * model + 0.3 * (1 - difference) + 0.3 * min(1, len(intent) / 50)``,
    clamped to [0, 1].
    """
    difference = structural_difference(previous_state, new_state)
    clarity = min(1.0, len(intent) / CLEAR_INTENT_LENGTH)
    confidence = (
        model_confidence * MODEL_WEIGHT
        + (1 - difference) * SIMILARITY_WEIGHT
        + clarity * CLARITY_WEIGHT
    )
    return max(0.0, min(1.0, confidence))


def _emptied(previous: Any, new: Any) -> bool:
    return (
        isinstance(previous, list)
        and isinstance(new, list)
        and len(previous) > 0
        and len(new) == 0
    )


def is_destructive_change(
    previous_state: Any,
    new_state: Any,
    *,
    min_size: int = 50,
    shrink_ratio: float = 0.3,
) -> bool:
    """Flag changes that look like data loss.

    A heuristic, not a semantic diff. A change is destructive when either:

    * the previous serialization is longer than ``min_size`` characters
      and the new one is shorter than ``shrink_ratio`` of it, or
    * a non-empty array became empty, either the state itself or one of
      its top-level fields.

    Losing a single element from a large nested array is not detected.
    """
    prev_size = len(serialize_state(previous_state))
    new_size = len(serialize_state(new_state))
    if prev_size > min_size and new_size < prev_size * shrink_ratio:
        return True

    # tuples serialize as JSON arrays, so compare the plain forms
    previous = _plain(previous_state)
    new = _plain(new_state)
    if _emptied(previous, new):
        return True
    if isinstance(previous, Mapping) and isinstance(new, Mapping):
        return any(_emptied(value, new.get(key)) for key, value in previous.items())
    return False
