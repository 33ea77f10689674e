"""Sprint / iteration analytics: completion, unplanned work and velocity trend."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from team_perf.core.config import DEFAULT_SETTINGS, NO_SPRINT, AnalysisSettings, Fields
from team_perf.core.fields import assigned_to_name, days_between, extract_field, parse_date
from team_perf.core.models import TeamMember, UpdateEvent, WorkItem, roster_names

from .stats import mean, percentage
from .status_flow import group_updates_by_item

INCREASING = "increasing"
STABLE = "stable"
DECREASING = "decreasing"


@dataclass(slots=True)
class SprintMetrics:
    sprint_name: str
    first_seen: str | None
    total_items: int
    completed_items: int
    completion_rate: float
    unplanned_items: int
    unplanned_ratio: float
    carryover_items: int
    velocity: int


@dataclass(slots=True)
class MemberSprintMetrics:
    total_sprints: int
    avg_items_per_sprint: float
    avg_completion_rate: float
    avg_unplanned_ratio: float
    best_sprint: str | None
    worst_sprint: str | None


@dataclass(slots=True)
class OverallSprintMetrics:
    total_sprints: int = 0
    avg_velocity: float = 0.0
    avg_completion_rate: float = 0.0
    avg_unplanned_ratio: float = 0.0
    velocity_trend: str = STABLE


@dataclass(slots=True)
class SprintAnalysisResult:
    by_sprint: dict[str, SprintMetrics] = field(default_factory=dict)
    by_member: dict[str, MemberSprintMetrics] = field(default_factory=dict)
    overall: OverallSprintMetrics = field(default_factory=OverallSprintMetrics)


@dataclass(slots=True)
class _SprintItem:
    item_id: int
    assignee: str
    sprint: str
    completed: bool
    unplanned: bool
    seen: datetime | None


def extract_sprint_name(iteration_path: str | None, *, unknown: str = DEFAULT_SETTINGS.unknown_label) -> str:
    """Final ``\\``-separated segment of an iteration path.

    >>> extract_sprint_name("Project\\\\Release 1\\\\Sprint 5")
    'Sprint 5'
    >>> extract_sprint_name(None)
    'No Sprint'
    """
    if not iteration_path:
        return NO_SPRINT
    return str(iteration_path).split("\\")[-1] or unknown


def sprint_entry_date(
    sprint: str,
    updates: Sequence[UpdateEvent],
    *,
    unknown: str = DEFAULT_SETTINGS.unknown_label,
) -> datetime | None:
    """Timestamp of the first update moving the item into ``sprint``, if any."""
    for update in updates:
        change = update.change(Fields.ITERATION_PATH)
        if change is None or not change.new_value:
            continue
        if extract_sprint_name(change.new_value, unknown=unknown) == sprint:
            return update.revised_date
    return None


def is_unplanned(created: datetime | None, entered: datetime | None, gap_days: int) -> bool:
    """Added to the sprint more than ``gap_days`` whole days after creation.

    Unknown dates count as planned.
    """
    if created is None or entered is None:
        return False
    return days_between(created, entered) > gap_days


def velocity_trend(velocities: Sequence[float], settings: AnalysisSettings = DEFAULT_SETTINGS) -> str:
    """Compare mean velocity of the later half of sprints against the earlier half.

    With an odd count the middle sprint belongs to the later half.
    """
    if len(velocities) < settings.velocity_trend_min_sprints:
        return STABLE
    midpoint = len(velocities) // 2
    first = mean(velocities[:midpoint])
    second = mean(velocities[midpoint:])
    if second > first * (1 + settings.velocity_trend_tolerance):
        return INCREASING
    if second < first * (1 - settings.velocity_trend_tolerance):
        return DECREASING
    return STABLE


def _classify_items(
    work_items: Iterable[WorkItem],
    updates: Iterable[UpdateEvent],
    roster: Sequence[str],
    settings: AnalysisSettings,
) -> list[_SprintItem]:
    members = set(roster)
    grouped = group_updates_by_item(updates)
    rows: list[_SprintItem] = []
    for item in work_items:
        assignee = assigned_to_name(
            extract_field(item, Fields.ASSIGNED_TO),
            unassigned=settings.unassigned_label,
            unknown=settings.unknown_label,
        )
        if assignee not in members:
            continue
        sprint = extract_sprint_name(extract_field(item, Fields.ITERATION_PATH), unknown=settings.unknown_label)
        created = parse_date(extract_field(item, Fields.CREATED_DATE))
        entered = sprint_entry_date(sprint, grouped.get(item.id, []), unknown=settings.unknown_label)
        rows.append(
            _SprintItem(
                item_id=item.id,
                assignee=assignee,
                sprint=sprint,
                completed=extract_field(item, Fields.STATE) in settings.completed_states,
                unplanned=is_unplanned(created, entered, settings.unplanned_gap_days),
                seen=entered if entered is not None else created,
            )
        )
    return rows


def _chronological(earliest: dict[str, datetime | None]) -> list[str]:
    """Sprint names by earliest date; undated sprints keep encounter order at the end."""
    dated = sorted((s for s, seen in earliest.items() if seen is not None), key=earliest.__getitem__)
    return dated + [s for s, seen in earliest.items() if seen is None]


def _rates(rows: Sequence[_SprintItem]) -> tuple[float, float]:
    total = len(rows)
    completed = sum(1 for r in rows if r.completed)
    unplanned = sum(1 for r in rows if r.unplanned)
    return percentage(completed, total), percentage(unplanned, total)


def analyze_sprints(
    work_items: Iterable[WorkItem],
    updates: Iterable[UpdateEvent],
    team_members: Sequence[TeamMember],
    *,
    settings: AnalysisSettings = DEFAULT_SETTINGS,
) -> SprintAnalysisResult:
    """Per-sprint, per-member and team sprint metrics for roster-assigned items.

    Sprints are reported in chronological order of the earliest date any of
    their items entered them (creation date when no move was recorded).
    ``No Sprint`` is reported but left out of the velocity trend.
    """
    roster = roster_names(team_members)
    rows = _classify_items(work_items, updates, roster, settings)
    result = SprintAnalysisResult()
    if not rows:
        return result

    by_sprint: dict[str, list[_SprintItem]] = {}
    for row in rows:
        by_sprint.setdefault(row.sprint, []).append(row)

    earliest: dict[str, datetime | None] = {}
    for sprint, sprint_rows in by_sprint.items():
        dates = [r.seen for r in sprint_rows if r.seen is not None]
        earliest[sprint] = min(dates) if dates else None

    for sprint in _chronological(earliest):
        sprint_rows = by_sprint[sprint]
        completion, unplanned_ratio = _rates(sprint_rows)
        completed = sum(1 for r in sprint_rows if r.completed)
        seen = earliest[sprint]
        result.by_sprint[sprint] = SprintMetrics(
            sprint_name=sprint,
            first_seen=seen.strftime("%Y-%m-%d") if seen is not None else None,
            total_items=len(sprint_rows),
            completed_items=completed,
            completion_rate=completion,
            unplanned_items=sum(1 for r in sprint_rows if r.unplanned),
            unplanned_ratio=unplanned_ratio,
            carryover_items=len(sprint_rows) - completed,
            velocity=completed,
        )

    for member in roster:
        member_rows: dict[str, list[_SprintItem]] = {}
        for row in rows:
            if row.assignee == member:
                member_rows.setdefault(row.sprint, []).append(row)
        if not member_rows:
            continue
        rates = {sprint: _rates(sprint_rows) for sprint, sprint_rows in member_rows.items()}
        completion_rates = {sprint: rate[0] for sprint, rate in rates.items()}
        result.by_member[member] = MemberSprintMetrics(
            total_sprints=len(member_rows),
            avg_items_per_sprint=mean(len(r) for r in member_rows.values()),
            avg_completion_rate=mean(completion_rates.values()),
            avg_unplanned_ratio=mean(rate[1] for rate in rates.values()),
            # max/min return the first sprint reaching the extreme
            best_sprint=max(completion_rates, key=completion_rates.__getitem__),
            worst_sprint=min(completion_rates, key=completion_rates.__getitem__),
        )

    sprints = list(result.by_sprint.values())
    trend_velocities = [s.velocity for s in sprints if s.sprint_name != NO_SPRINT]
    result.overall = OverallSprintMetrics(
        total_sprints=len(sprints),
        avg_velocity=mean(s.velocity for s in sprints),
        avg_completion_rate=mean(s.completion_rate for s in sprints),
        avg_unplanned_ratio=mean(s.unplanned_ratio for s in sprints),
        velocity_trend=velocity_trend(trend_velocities, settings),
    )
    return result
