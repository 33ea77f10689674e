"""Summary statistics shared by the metric modules."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

import numpy as np


@dataclass(slots=True)
class StatsSummary:
    avg: float
    median: float
    min: float
    max: float
    count: int


def calculate_stats(values: Iterable[float]) -> StatsSummary:
    """Mean, median, min, max and count of a sample.

    The median is the element at index ``n // 2`` of the ascending sort, so
    an even-sized sample reports the upper of the two middle values
    (``[1, 2, 3, 4]`` -> 3). Downstream reports depend on this rule; do not
    swap in the textbook median.

    An empty sample yields all zeros.
    """
    arr = np.asarray(list(values), dtype=float)
    if arr.size == 0:
        return StatsSummary(avg=0.0, median=0.0, min=0.0, max=0.0, count=0)
    ordered = np.sort(arr)
    return StatsSummary(
        avg=float(arr.sum() / arr.size),
        median=float(ordered[arr.size // 2]),
        min=float(ordered[0]),
        max=float(ordered[-1]),
        count=int(arr.size),
    )


def mean(values: Iterable[float]) -> float:
    """Arithmetic mean, 0.0 for an empty sample."""
    data = list(values)
    if not data:
        return 0.0
    return float(sum(data) / len(data))


def pick_max(mapping: Mapping[str, float]) -> tuple[str | None, float]:
    """Key with the largest strictly positive value.

    Ties go to the first key in iteration order (insertion order for dicts).
    Returns ``(None, 0.0)`` when no value is above zero.
    """
    best_key: str | None = None
    best_value = 0.0
    for key, value in mapping.items():
        if value > best_value:
            best_key = key
            best_value = value
    return best_key, best_value


def percentage(part: float, whole: float) -> float:
    return (part / whole) * 100 if whole > 0 else 0.0
