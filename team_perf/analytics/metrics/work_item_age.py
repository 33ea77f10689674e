"""Aging of incomplete work items (pure functions)."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from team_perf.core.config import DEFAULT_AGE_THRESHOLD_DAYS, DEFAULT_SETTINGS, AnalysisSettings
from team_perf.core.fields import resolve_now
from team_perf.core.mappers import work_items_to_dataframe
from team_perf.core.models import TeamMember, WorkItem, roster_names

from .stats import calculate_stats


@dataclass(slots=True)
class MemberAge:
    count: int
    avg_age_days: float
    max_age_days: float
    items_over_threshold: int


@dataclass(slots=True)
class OverallAge:
    total_items: int = 0
    avg_age_days: float = 0.0
    items_over_threshold: int = 0


@dataclass(slots=True)
class WorkItemAgeResult:
    by_member: dict[str, MemberAge] = field(default_factory=dict)
    overall: OverallAge = field(default_factory=OverallAge)
    age_threshold_days: float = DEFAULT_AGE_THRESHOLD_DAYS


def add_age_days(df: pd.DataFrame, now, settings: AnalysisSettings = DEFAULT_SETTINGS) -> pd.DataFrame:
    """Open rows of ``df`` (not completed, not removed) with an ``age_days`` column."""
    if df.empty:
        return df.assign(age_days=pd.Series(dtype="int64"))
    state = df["state"]
    open_rows = df[state.notna() & (state != "") & ~state.isin(settings.backlog_excluded_states)]
    open_rows = open_rows[open_rows["created_dt"].notna()].copy()
    seconds = (now - open_rows["created_dt"]).dt.total_seconds()
    open_rows["age_days"] = np.floor(seconds / 86400.0).astype("int64")
    return open_rows


def analyze_work_item_age(
    work_items: Iterable[WorkItem],
    team_members: Sequence[TeamMember],
    age_threshold_days: float = DEFAULT_AGE_THRESHOLD_DAYS,
    *,
    now=None,
    settings: AnalysisSettings = DEFAULT_SETTINGS,
) -> WorkItemAgeResult:
    """Age in whole days of each open item assigned to a roster member.

    ``items_over_threshold`` counts ages strictly greater than
    ``age_threshold_days``.
    """
    current = resolve_now(now)
    roster = roster_names(team_members)
    df = add_age_days(work_items_to_dataframe(work_items, settings), current, settings)
    result = WorkItemAgeResult(age_threshold_days=age_threshold_days)
    if df.empty:
        return result
    df = df[df["assignee"].isin(roster)]

    for member in roster:
        ages = df.loc[df["assignee"] == member, "age_days"].tolist()
        if not ages:
            continue
        stats = calculate_stats(ages)
        result.by_member[member] = MemberAge(
            count=stats.count,
            avg_age_days=stats.avg,
            max_age_days=stats.max,
            items_over_threshold=sum(1 for age in ages if age > age_threshold_days),
        )

    all_ages = df["age_days"].tolist()
    result.overall = OverallAge(
        total_items=len(all_ages),
        avg_age_days=calculate_stats(all_ages).avg,
        items_over_threshold=sum(1 for age in all_ages if age > age_threshold_days),
    )
    return result
