"""Flow efficiency: share of elapsed time spent in active states."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from team_perf.core.config import DEFAULT_SETTINGS, EFFICIENCY_FLOOR_LABEL, AnalysisSettings, Fields
from team_perf.core.fields import extract_field, resolve_now
from team_perf.core.models import TeamMember, UpdateEvent, WorkItem, roster_names

from .stats import mean, percentage
from .status_flow import ACTIVE, WAIT, StateClassifier, fold_timeline, iter_member_timelines, make_classifier


@dataclass(slots=True)
class WorkItemFlowEfficiency:
    id: int
    title: str
    assigned_to: str
    active_time: int
    wait_time: int
    total_time: int
    efficiency_pct: float


@dataclass(slots=True)
class MemberFlowEfficiency:
    avg_efficiency_pct: float
    avg_active_time: float
    avg_wait_time: float
    avg_total_time: float
    items_analyzed: int
    efficiency_rating: str


@dataclass(slots=True)
class OverallFlowEfficiency:
    avg_efficiency_pct: float = 0.0
    rating_counts: dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class FlowEfficiencyResult:
    by_member: dict[str, MemberFlowEfficiency] = field(default_factory=dict)
    by_work_item: list[WorkItemFlowEfficiency] = field(default_factory=list)
    overall: OverallFlowEfficiency = field(default_factory=OverallFlowEfficiency)


def flow_classifier(settings: AnalysisSettings = DEFAULT_SETTINGS) -> StateClassifier:
    """Active/wait classifier; states in neither allowlist count as wait."""
    return make_classifier(settings.flow_active_states, settings.flow_wait_states, unclassified=WAIT)


def efficiency_rating(pct: float, settings: AnalysisSettings = DEFAULT_SETTINGS) -> str:
    """Rating band for an efficiency percentage (lower bounds inclusive).

    >>> efficiency_rating(40.0)
    'Excellent'
    >>> efficiency_rating(14.9)
    'Poor'
    """
    for label, lower in settings.efficiency_bands:
        if pct >= lower:
            return label
    return EFFICIENCY_FLOOR_LABEL


def rating_labels(settings: AnalysisSettings = DEFAULT_SETTINGS) -> list[str]:
    return [label for label, _ in settings.efficiency_bands] + [EFFICIENCY_FLOOR_LABEL]


def analyze_flow_efficiency(
    work_items: Iterable[WorkItem],
    updates: Iterable[UpdateEvent],
    team_members: Sequence[TeamMember],
    *,
    now=None,
    settings: AnalysisSettings = DEFAULT_SETTINGS,
) -> FlowEfficiencyResult:
    """Per-item efficiency, averaged per member without duration weighting.

    Items with no active or wait time after folding are left out.
    """
    current = resolve_now(now)
    roster = roster_names(team_members)
    classify = flow_classifier(settings)
    per_member: dict[str, list[WorkItemFlowEfficiency]] = {member: [] for member in roster}
    result = FlowEfficiencyResult()

    for item, assignee, timeline in iter_member_timelines(work_items, updates, roster, settings):
        folded = fold_timeline(timeline, current, classify=classify, max_days=settings.max_interval_days)
        if folded.is_empty:
            continue
        active = folded.durations.get(ACTIVE, 0)
        wait = folded.durations.get(WAIT, 0)
        entry = WorkItemFlowEfficiency(
            id=item.id,
            title=str(extract_field(item, Fields.TITLE, "")),
            assigned_to=assignee,
            active_time=active,
            wait_time=wait,
            total_time=active + wait,
            efficiency_pct=percentage(active, active + wait),
        )
        result.by_work_item.append(entry)
        per_member[assignee].append(entry)

    for member, entries in per_member.items():
        if not entries:
            continue
        avg_pct = mean(e.efficiency_pct for e in entries)
        result.by_member[member] = MemberFlowEfficiency(
            avg_efficiency_pct=avg_pct,
            avg_active_time=mean(e.active_time for e in entries),
            avg_wait_time=mean(e.wait_time for e in entries),
            avg_total_time=mean(e.total_time for e in entries),
            items_analyzed=len(entries),
            efficiency_rating=efficiency_rating(avg_pct, settings),
        )

    counts = dict.fromkeys(rating_labels(settings), 0)
    for entry in result.by_work_item:
        counts[efficiency_rating(entry.efficiency_pct, settings)] += 1
    result.overall = OverallFlowEfficiency(
        avg_efficiency_pct=mean(e.efficiency_pct for e in result.by_work_item),
        rating_counts=counts,
    )
    return result
