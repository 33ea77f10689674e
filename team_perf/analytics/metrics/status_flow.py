"""State timeline reconstruction and interval folding.

This module turns the unordered update events of a work item into an ordered
state timeline and folds that timeline into time spent per state. Time in
state, flow efficiency and other timeline consumers share these functions and
differ only in the classifier they layer on top.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from team_perf.core.config import DEFAULT_SETTINGS, MAX_INTERVAL_DAYS, AnalysisSettings, Fields
from team_perf.core.fields import assigned_to_name, days_between, extract_field, parse_date, within_plausible_range
from team_perf.core.models import UpdateEvent, WorkItem

from .stats import pick_max

StateClassifier = Callable[[str], str]

ACTIVE = "active"
WAIT = "wait"
OTHER = "other"


@dataclass(frozen=True, slots=True)
class TimelineEntry:
    state: str
    start: datetime


@dataclass(slots=True)
class FoldedTimeline:
    """Result of folding one timeline.

    ``durations`` keeps first-seen key order, which makes the longest-state
    tie-break deterministic. ``closed_intervals`` holds the accepted
    ``(key, days)`` samples between consecutive entries; the trailing open
    interval is counted in ``durations`` only.
    """

    durations: dict[str, int] = field(default_factory=dict)
    closed_intervals: list[tuple[str, int]] = field(default_factory=list)
    total_days: int = 0

    @property
    def is_empty(self) -> bool:
        return self.total_days == 0

    def longest(self) -> tuple[str | None, int]:
        key, days = pick_max(self.durations)
        return key, int(days)


def group_updates_by_item(updates: Iterable[UpdateEvent]) -> dict[int, list[UpdateEvent]]:
    """Group update events per work item, each group sorted by revision."""
    grouped: defaultdict[int, list[UpdateEvent]] = defaultdict(list)
    for update in updates:
        grouped[update.work_item_id].append(update)
    for events in grouped.values():
        events.sort(key=lambda u: u.rev)
    return dict(grouped)


def _is_transition(update: UpdateEvent) -> bool:
    change = update.change(Fields.STATE)
    return change is not None and bool(change.old_value) and bool(change.new_value)


def initial_state(item: WorkItem, updates: Sequence[UpdateEvent]) -> str | None:
    """State the item was created in.

    Revision 1's new state when recorded; otherwise the old value of the
    earliest transition; otherwise the snapshot's current state.
    """
    for update in updates:
        if update.rev == 1:
            change = update.change(Fields.STATE)
            if change is not None and change.new_value:
                return str(change.new_value)
            break
    for update in updates:
        if update.rev > 1 and _is_transition(update):
            return str(update.change(Fields.STATE).old_value)
    current = extract_field(item, Fields.STATE)
    return str(current) if current else None


def build_state_timeline(item: WorkItem, updates: Sequence[UpdateEvent]) -> list[TimelineEntry]:
    """Reconstruct the ordered ``(state, start)`` timeline of one work item.

    Parameters
    ----------
    item : WorkItem
        Snapshot supplying the creation timestamp (and fallback state).
    updates : Sequence[UpdateEvent]
        The item's own update events sorted by revision
        (see :func:`group_updates_by_item`).

    Returns
    -------
    list[TimelineEntry]
        Timeline anchored at creation, followed by every recorded state
        transition (revision > 1 with both old and new values). Transitions
        without a usable timestamp are dropped. Fewer than two entries means
        the item has no measurable history.
    """
    timeline: list[TimelineEntry] = []
    created = parse_date(extract_field(item, Fields.CREATED_DATE))
    first_state = initial_state(item, updates)
    if created is not None and first_state:
        timeline.append(TimelineEntry(first_state, created))

    for update in updates:
        if update.rev <= 1 or not _is_transition(update):
            continue
        if update.revised_date is None:
            continue
        timeline.append(TimelineEntry(str(update.change(Fields.STATE).new_value), update.revised_date))
    return timeline


def timeline_is_usable(timeline: Sequence[TimelineEntry]) -> bool:
    return len(timeline) >= 2


def fold_timeline(
    timeline: Sequence[TimelineEntry],
    now: datetime,
    *,
    classify: StateClassifier | None = None,
    max_days: int = MAX_INTERVAL_DAYS,
) -> FoldedTimeline:
    """Fold a timeline into whole days per state.

    Each interval is attributed to the state it starts in (or to
    ``classify(state)`` when a classifier is given). Intervals shorter than
    0 or longer than ``max_days`` whole days are dropped entirely. The last
    entry stays open until ``now`` and is subject to the same bound.
    """
    folded = FoldedTimeline()
    if not timeline:
        return folded

    def _key(state: str) -> str:
        return classify(state) if classify is not None else state

    def _add(key: str, days: int) -> None:
        folded.durations[key] = folded.durations.get(key, 0) + days
        folded.total_days += days

    for current, following in zip(timeline, timeline[1:], strict=False):
        days = days_between(current.start, following.start)
        if not within_plausible_range(days, max_days):
            continue
        key = _key(current.state)
        _add(key, days)
        folded.closed_intervals.append((key, days))

    last = timeline[-1]
    trailing = days_between(last.start, now)
    if within_plausible_range(trailing, max_days):
        _add(_key(last.state), trailing)
    return folded


def longest_state(durations: Mapping[str, float]) -> tuple[str | None, float]:
    """Largest accumulated duration; first key wins ties."""
    return pick_max(durations)


def make_classifier(
    active_states: Iterable[str],
    wait_states: Iterable[str],
    *,
    unclassified: str = OTHER,
) -> StateClassifier:
    """Classifier mapping a state label to ``active``, ``wait`` or ``unclassified``."""
    active = frozenset(active_states)
    wait = frozenset(wait_states)

    def classify(state: str) -> str:
        if state in active:
            return ACTIVE
        if state in wait:
            return WAIT
        return unclassified

    return classify


def iter_member_timelines(
    work_items: Iterable[WorkItem],
    updates: Iterable[UpdateEvent],
    roster: Sequence[str],
    settings: AnalysisSettings = DEFAULT_SETTINGS,
) -> Iterator[tuple[WorkItem, str, list[TimelineEntry]]]:
    """Yield ``(item, assignee, timeline)`` for roster-assigned items with usable history.

    Items without update events or with fewer than two timeline entries are
    skipped silently.
    """
    members = set(roster)
    grouped = group_updates_by_item(updates)
    for item in work_items:
        assignee = assigned_to_name(
            extract_field(item, Fields.ASSIGNED_TO),
            unassigned=settings.unassigned_label,
            unknown=settings.unknown_label,
        )
        if assignee not in members:
            continue
        item_updates = grouped.get(item.id)
        if not item_updates:
            continue
        timeline = build_state_timeline(item, item_updates)
        if timeline_is_usable(timeline):
            yield item, assignee, timeline
