"""Time spent per workflow state and bottleneck detection."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from team_perf.core.config import DEFAULT_SETTINGS, AnalysisSettings, Fields
from team_perf.core.fields import extract_field, resolve_now
from team_perf.core.models import TeamMember, UpdateEvent, WorkItem, roster_names

from .stats import mean, pick_max
from .status_flow import fold_timeline, iter_member_timelines


@dataclass(slots=True)
class WorkItemStateBreakdown:
    id: int
    title: str
    assigned_to: str
    total_cycle_time: int
    state_breakdown: dict[str, int]
    longest_state: str | None
    longest_state_days: int


@dataclass(slots=True)
class MemberTimeInState:
    avg_time_in_states: dict[str, float]
    total_items: int
    bottleneck_state: str | None
    bottleneck_avg_days: float


@dataclass(slots=True)
class OverallStateTime:
    avg_time_by_state: dict[str, float] = field(default_factory=dict)
    items_analyzed: int = 0
    common_bottleneck: str | None = None


@dataclass(slots=True)
class TimeInStateResult:
    by_member: dict[str, MemberTimeInState] = field(default_factory=dict)
    by_work_item: list[WorkItemStateBreakdown] = field(default_factory=list)
    overall: OverallStateTime = field(default_factory=OverallStateTime)


def average_by_key(samples: dict[str, list[int]]) -> dict[str, float]:
    return {key: mean(values) for key, values in samples.items() if values}


def analyze_time_in_state(
    work_items: Iterable[WorkItem],
    updates: Iterable[UpdateEvent],
    team_members: Sequence[TeamMember],
    *,
    now=None,
    settings: AnalysisSettings = DEFAULT_SETTINGS,
) -> TimeInStateResult:
    """Per-item state breakdown plus per-member and team state averages.

    Parameters
    ----------
    work_items : Iterable[WorkItem]
        Current snapshots; only items assigned to a roster member count.
    updates : Iterable[UpdateEvent]
        Raw update events for any subset of the items, in any order.
    team_members : Sequence[TeamMember]
        Roster used as the assignee filter.
    now : datetime-like, optional
        End of every still-open trailing interval. Defaults to the wall clock.
    settings : AnalysisSettings
        Policy constants (interval plausibility bound, labels).

    Returns
    -------
    TimeInStateResult
        ``by_work_item`` includes the trailing interval up to ``now``. The
        member and team averages pool only intervals closed by a later
        transition, so a long-idle current state does not skew them.
        Bottlenecks are the states with the highest average; ties go to
        the state seen first.
    """
    current = resolve_now(now)
    roster = roster_names(team_members)
    member_samples: dict[str, dict[str, list[int]]] = {member: {} for member in roster}
    member_counts: dict[str, int] = dict.fromkeys(roster, 0)
    team_samples: dict[str, list[int]] = {}
    result = TimeInStateResult()

    for item, assignee, timeline in iter_member_timelines(work_items, updates, roster, settings):
        folded = fold_timeline(timeline, current, max_days=settings.max_interval_days)
        if folded.is_empty:
            continue
        longest, longest_days = folded.longest()
        result.by_work_item.append(
            WorkItemStateBreakdown(
                id=item.id,
                title=str(extract_field(item, Fields.TITLE, "")),
                assigned_to=assignee,
                total_cycle_time=folded.total_days,
                state_breakdown=dict(folded.durations),
                longest_state=longest,
                longest_state_days=longest_days,
            )
        )
        member_counts[assignee] += 1
        for state, days in folded.closed_intervals:
            member_samples[assignee].setdefault(state, []).append(days)
            team_samples.setdefault(state, []).append(days)

    for member in roster:
        if member_counts[member] == 0:
            continue
        averages = average_by_key(member_samples[member])
        bottleneck, bottleneck_days = pick_max(averages)
        result.by_member[member] = MemberTimeInState(
            avg_time_in_states=averages,
            total_items=member_counts[member],
            bottleneck_state=bottleneck,
            bottleneck_avg_days=float(bottleneck_days),
        )

    team_averages = average_by_key(team_samples)
    result.overall = OverallStateTime(
        avg_time_by_state=team_averages,
        items_analyzed=len(result.by_work_item),
        common_bottleneck=pick_max(team_averages)[0],
    )
    return result
