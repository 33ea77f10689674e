"""Daily work in progress per member, reconstructed from update events.

An *active period* is a span during which an item is both in a WIP-active
state and assigned to one person. Periods are rebuilt by replaying each
item's updates in revision order; a day counts an item for a member when the
day's UTC midnight falls inside one of that member's periods for the item.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import pandas as pd

from team_perf.core.config import DEFAULT_SETTINGS, AnalysisSettings, Fields
from team_perf.core.fields import assigned_to_name, extract_field, parse_date, resolve_now
from team_perf.core.models import TeamMember, UpdateEvent, WorkItem, roster_names

from .stats import mean
from .status_flow import group_updates_by_item, initial_state


@dataclass(slots=True)
class ActivePeriod:
    work_item_id: int
    assigned_to: str
    start: datetime
    end: datetime | None = None  # None while still active

    def covers(self, instant: datetime, now: datetime) -> bool:
        end = self.end if self.end is not None else now
        return self.start <= instant <= end


@dataclass(slots=True)
class MemberWipStats:
    avg_wip: float
    max_wip: int
    max_wip_date: str | None
    days_over_warning: int
    days_over_critical: int
    total_days_tracked: int
    wip_distribution: dict[int, int]


@dataclass(slots=True)
class DateWipSnapshot:
    date: str
    member_wip: dict[str, int]
    total_wip: int


@dataclass(slots=True)
class OverallWipStats:
    avg_wip_across_team: float = 0.0
    peak_wip_date: str | None = None
    peak_wip_count: int = 0
    high_concurrency_days: int = 0


@dataclass(slots=True)
class DailyWipResult:
    by_member: dict[str, MemberWipStats] = field(default_factory=dict)
    by_date: dict[str, DateWipSnapshot] = field(default_factory=dict)
    overall: OverallWipStats = field(default_factory=OverallWipStats)
    thresholds: tuple[int, int] = DEFAULT_SETTINGS.wip_thresholds


def _assignee_or_none(value: Any, settings: AnalysisSettings) -> str | None:
    name = assigned_to_name(value, unassigned=settings.unassigned_label, unknown=settings.unknown_label)
    return None if name == settings.unassigned_label else name


def initial_assignee(item: WorkItem, updates: Sequence[UpdateEvent], settings: AnalysisSettings) -> str | None:
    """Assignee at creation: revision 1, else the first reassignment's old value, else the snapshot."""
    for update in updates:
        if update.rev == 1:
            change = update.change(Fields.ASSIGNED_TO)
            if change is not None:
                return _assignee_or_none(change.new_value, settings)
            break
    for update in updates:
        change = update.change(Fields.ASSIGNED_TO)
        if update.rev > 1 and change is not None:
            return _assignee_or_none(change.old_value, settings)
    return _assignee_or_none(extract_field(item, Fields.ASSIGNED_TO), settings)


def build_active_periods(
    item: WorkItem,
    updates: Sequence[UpdateEvent],
    settings: AnalysisSettings = DEFAULT_SETTINGS,
) -> list[ActivePeriod]:
    """Replay one item's updates (sorted by revision) into active periods.

    A period opens when the item is WIP-active and assigned, and closes on
    leaving the active states or on unassignment. Reassignment while active
    closes the previous owner's period and opens the new owner's at the same
    timestamp. Updates without a usable timestamp are ignored.
    """
    active_states = settings.wip_active_states
    state = initial_state(item, updates)
    assignee = initial_assignee(item, updates, settings)
    periods: list[ActivePeriod] = []
    current: ActivePeriod | None = None

    created = parse_date(extract_field(item, Fields.CREATED_DATE))
    if created is not None and state in active_states and assignee:
        current = ActivePeriod(item.id, assignee, created)

    for update in updates:
        if update.rev <= 1 or update.revised_date is None:
            continue
        state_change = update.change(Fields.STATE)
        assign_change = update.change(Fields.ASSIGNED_TO)
        if state_change is None and assign_change is None:
            continue
        if state_change is not None and state_change.new_value:
            state = str(state_change.new_value)
        if assign_change is not None:
            assignee = _assignee_or_none(assign_change.new_value, settings)

        is_open = state in active_states and assignee is not None
        if current is not None and (not is_open or current.assigned_to != assignee):
            current.end = update.revised_date
            periods.append(current)
            current = None
        if is_open and current is None:
            current = ActivePeriod(item.id, assignee, update.revised_date)

    if current is not None:
        periods.append(current)
    return periods


def collect_active_periods(
    work_items: Iterable[WorkItem],
    updates: Iterable[UpdateEvent],
    settings: AnalysisSettings = DEFAULT_SETTINGS,
) -> list[ActivePeriod]:
    grouped = group_updates_by_item(updates)
    periods: list[ActivePeriod] = []
    for item in work_items:
        periods.extend(build_active_periods(item, grouped.get(item.id, []), settings))
    return periods


def _default_start(work_items: Iterable[WorkItem], now: pd.Timestamp) -> pd.Timestamp:
    created = [parse_date(extract_field(item, Fields.CREATED_DATE)) for item in work_items]
    created = [ts for ts in created if ts is not None]
    return min(created) if created else now


def analyze_daily_wip(
    work_items: Iterable[WorkItem],
    updates: Iterable[UpdateEvent],
    team_members: Sequence[TeamMember],
    start=None,
    end=None,
    *,
    now=None,
    settings: AnalysisSettings = DEFAULT_SETTINGS,
) -> DailyWipResult:
    """Count concurrently active items per roster member for each day in ``[start, end]``.

    Parameters
    ----------
    work_items, updates : Iterable
        Snapshots and their raw update events.
    team_members : Sequence[TeamMember]
        Only periods owned by roster members are counted.
    start, end : date-like, optional
        Inclusive day range. ``start`` defaults to the earliest creation
        date, ``end`` to ``now``.
    now : datetime-like, optional
        End of still-open periods.

    Returns
    -------
    DailyWipResult
        Per-member daily statistics, per-date snapshots and team summary.
        Maximum and peak dates keep the first day reaching the value.
    """
    items = list(work_items)
    current = resolve_now(now)
    roster = roster_names(team_members)
    members = set(roster)
    warning, critical = settings.wip_thresholds
    result = DailyWipResult(thresholds=(warning, critical))

    range_start = parse_date(start) if start is not None else _default_start(items, current)
    range_end = parse_date(end) if end is not None else current
    if range_start is None or range_end is None:
        raise ValueError(f"Invalid WIP date range: {start!r} .. {end!r}")
    days = pd.date_range(range_start.normalize(), range_end, freq="D")

    periods = [p for p in collect_active_periods(items, updates, settings) if p.assigned_to in members]
    counts: dict[str, list[int]] = {member: [] for member in roster}
    team_totals: list[tuple[str, int]] = []

    for day in days:
        label = day.strftime("%Y-%m-%d")
        active: dict[str, set[int]] = {member: set() for member in roster}
        for period in periods:
            if period.covers(day, current):
                active[period.assigned_to].add(period.work_item_id)
        member_wip = {member: len(ids) for member, ids in active.items()}
        total = sum(member_wip.values())
        for member, wip in member_wip.items():
            counts[member].append(wip)
        result.by_date[label] = DateWipSnapshot(date=label, member_wip=member_wip, total_wip=total)
        team_totals.append((label, total))

    labels = list(result.by_date)
    for member in roster:
        series = counts[member]
        max_wip, max_date = 0, None
        distribution: dict[int, int] = {}
        for label, wip in zip(labels, series, strict=True):
            if wip > max_wip:
                max_wip, max_date = wip, label
            distribution[wip] = distribution.get(wip, 0) + 1
        result.by_member[member] = MemberWipStats(
            avg_wip=mean(series),
            max_wip=max_wip,
            max_wip_date=max_date,
            days_over_warning=sum(1 for w in series if w > warning),
            days_over_critical=sum(1 for w in series if w > critical),
            total_days_tracked=len(series),
            wip_distribution=distribution,
        )

    overall = OverallWipStats(avg_wip_across_team=mean(total for _, total in team_totals))
    for label, total in team_totals:
        if total > overall.peak_wip_count:
            overall.peak_wip_count, overall.peak_wip_date = total, label
    if roster:
        overall.high_concurrency_days = sum(
            1 for _, total in team_totals if total / len(roster) > settings.team_high_wip_average
        )
    result.overall = overall
    return result
