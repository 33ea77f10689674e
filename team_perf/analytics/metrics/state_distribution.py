"""State counts per change month and per roster member."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

import pandas as pd

from team_perf.core.config import DEFAULT_SETTINGS, AnalysisSettings
from team_perf.core.mappers import work_items_to_dataframe
from team_perf.core.models import TeamMember, WorkItem, roster_names


@dataclass(slots=True)
class StateDistributionResult:
    by_month: dict[str, dict[str, int]] = field(default_factory=dict)
    by_member: dict[str, dict[str, int]] = field(default_factory=dict)
    overall: dict[str, int] = field(default_factory=dict)


def _counts(states: pd.Series) -> dict[str, int]:
    # value_counts sorts by frequency; keep first-seen order instead
    counts: dict[str, int] = {}
    for state in states:
        counts[state] = counts.get(state, 0) + 1
    return counts


def analyze_state_distribution(
    work_items: Iterable[WorkItem],
    team_members: Sequence[TeamMember],
    *,
    settings: AnalysisSettings = DEFAULT_SETTINGS,
) -> StateDistributionResult:
    """Current state counts bucketed by ``System.ChangedDate`` month and by assignee.

    Every roster member gets an entry, empty when nothing is assigned to them.
    """
    df = work_items_to_dataframe(work_items, settings)
    roster = roster_names(team_members)
    result = StateDistributionResult(by_member={member: {} for member in roster})
    if df.empty:
        return result
    df = df.assign(state=df["state"].fillna(settings.unknown_label).astype(str))

    months = df["changed_dt"].dt.strftime("%Y-%m")
    for month, rows in df.groupby(months, sort=True):
        result.by_month[str(month)] = _counts(rows["state"])

    for member in roster:
        result.by_member[member] = _counts(df.loc[df["assignee"] == member, "state"])

    result.overall = _counts(df["state"])
    return result
