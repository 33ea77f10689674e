"""Cycle time: whole days from creation to close for completed work items."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from team_perf.core.config import DEFAULT_SETTINGS, AnalysisSettings
from team_perf.core.mappers import work_items_to_dataframe
from team_perf.core.models import TeamMember, WorkItem, roster_names

from .stats import StatsSummary, calculate_stats


@dataclass(slots=True)
class CycleTimeResult:
    by_member: dict[str, StatsSummary] = field(default_factory=dict)
    by_month: dict[str, StatsSummary] = field(default_factory=dict)
    by_type: dict[str, StatsSummary] = field(default_factory=dict)
    overall: StatsSummary = field(default_factory=lambda: calculate_stats([]))


def add_cycle_time_days(df: pd.DataFrame, settings: AnalysisSettings = DEFAULT_SETTINGS) -> pd.DataFrame:
    """Completed rows of ``df`` with a ``cycle_days`` column.

    Rows missing either timestamp, and rows closing before they were
    created, are dropped.
    """
    if df.empty:
        return df.assign(cycle_days=pd.Series(dtype="int64"))
    done = df[df["state"].isin(settings.completed_states)]
    done = done[done["created_dt"].notna() & done["closed_dt"].notna()].copy()
    seconds = (done["closed_dt"] - done["created_dt"]).dt.total_seconds()
    done["cycle_days"] = np.floor(seconds / 86400.0).astype("int64")
    return done[done["cycle_days"] >= 0]


def _grouped_stats(df: pd.DataFrame, column: str, *, min_count: int = 1) -> dict[str, StatsSummary]:
    out: dict[str, StatsSummary] = {}
    for key, group in df.groupby(column, sort=True):
        if len(group) < min_count:
            continue
        out[str(key)] = calculate_stats(group["cycle_days"].tolist())
    return out


def analyze_cycle_time(
    work_items: Iterable[WorkItem],
    team_members: Sequence[TeamMember],
    *,
    settings: AnalysisSettings = DEFAULT_SETTINGS,
) -> CycleTimeResult:
    """Cycle time statistics per roster member, creation month and work item type.

    Types with fewer than ``settings.min_type_samples`` completed items are
    left out of ``by_type``.
    """
    df = add_cycle_time_days(work_items_to_dataframe(work_items, settings), settings)
    result = CycleTimeResult()
    if df.empty:
        return result

    for member in roster_names(team_members):
        days = df.loc[df["assignee"] == member, "cycle_days"].tolist()
        if days:
            result.by_member[member] = calculate_stats(days)

    dated = df.assign(month=df["created_dt"].dt.strftime("%Y-%m"))
    result.by_month = _grouped_stats(dated, "month")
    result.by_type = _grouped_stats(df, "work_item_type", min_count=settings.min_type_samples)
    result.overall = calculate_stats(df["cycle_days"].tolist())
    return result
