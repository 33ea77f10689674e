"""Creation vs completion throughput and work size binning."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from team_perf.core.config import DEFAULT_SETTINGS, NO_ESTIMATE_LABEL, AnalysisSettings
from team_perf.core.mappers import work_items_to_dataframe
from team_perf.core.models import WorkItem


@dataclass(slots=True)
class MonthPattern:
    created: int
    completed: int
    delta: int


@dataclass(slots=True)
class WorkPatternsResult:
    creation_vs_completion: dict[str, MonthPattern] = field(default_factory=dict)
    size_distribution: dict[str, int] = field(default_factory=dict)


def size_bucket_edges(settings: AnalysisSettings = DEFAULT_SETTINGS) -> tuple[list[float], list[str]]:
    """Bin edges and labels for :func:`pandas.cut` from ``settings.size_buckets``.

    The first bucket is open to the left so small negative corrections still
    land in the smallest bucket.
    """
    labels = [label for label, _ in settings.size_buckets]
    edges = [-np.inf] + [float(upper) for _, upper in settings.size_buckets]
    return edges, labels


def bucket_sizes(hours: pd.Series, settings: AnalysisSettings = DEFAULT_SETTINGS) -> pd.Series:
    """Label each value with its size bucket (right-inclusive edges).

    Missing and zero values are labelled :data:`NO_ESTIMATE_LABEL`.
    """
    edges, labels = size_bucket_edges(settings)
    numeric = pd.to_numeric(hours, errors="coerce")
    binned = pd.cut(numeric.where(numeric != 0), bins=edges, labels=labels, right=True)
    return binned.astype(object).where(binned.notna(), NO_ESTIMATE_LABEL)


def analyze_work_patterns(
    work_items: Iterable[WorkItem],
    *,
    settings: AnalysisSettings = DEFAULT_SETTINGS,
) -> WorkPatternsResult:
    """Items created and completed per month, and completed-work size distribution.

    Completion is counted in the close month of items in a completed state.
    Every item lands in exactly one size bucket.
    """
    df = work_items_to_dataframe(work_items, settings)
    result = WorkPatternsResult()
    labels = [label for label, _ in settings.size_buckets] + [NO_ESTIMATE_LABEL]
    result.size_distribution = dict.fromkeys(labels, 0)
    if df.empty:
        return result

    created = df["created_dt"].dropna().dt.strftime("%Y-%m").value_counts()
    done = df[df["state"].isin(settings.completed_states)]
    completed = done["closed_dt"].dropna().dt.strftime("%Y-%m").value_counts()
    for month in sorted(set(created.index) | set(completed.index)):
        c_in = int(created.get(month, 0))
        c_out = int(completed.get(month, 0))
        result.creation_vs_completion[str(month)] = MonthPattern(created=c_in, completed=c_out, delta=c_out - c_in)

    for label, count in bucket_sizes(df["completed_work"], settings).value_counts().items():
        result.size_distribution[str(label)] = int(count)
    return result
