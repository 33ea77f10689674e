"""Reopened / reactivated work item detection."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from team_perf.core.config import DEFAULT_SETTINGS, AnalysisSettings, Fields
from team_perf.core.fields import assigned_to_name, extract_field
from team_perf.core.models import WorkItem

from .stats import percentage


@dataclass(slots=True)
class ReworkItem:
    id: int
    state: str
    reason: str
    assigned_to: str


@dataclass(slots=True)
class ReworkResult:
    rework_count: int = 0
    rework_rate_pct: float = 0.0
    items: list[ReworkItem] = field(default_factory=list)
    by_member: dict[str, int] = field(default_factory=dict)


def is_rework(reason: str | None, keywords: Iterable[str]) -> bool:
    """True when ``reason`` contains any keyword, ignoring case."""
    if not reason:
        return False
    text = str(reason).lower()
    return any(keyword.lower() in text for keyword in keywords)


def analyze_reopened_items(
    work_items: Iterable[WorkItem],
    *,
    settings: AnalysisSettings = DEFAULT_SETTINGS,
) -> ReworkResult:
    """Items whose ``System.Reason`` marks them as reopened.

    The rate is taken over every input item, not only completed ones.
    """
    items = list(work_items)
    result = ReworkResult()
    for item in items:
        reason = extract_field(item, Fields.REASON, "")
        if not is_rework(reason, settings.rework_keywords):
            continue
        assignee = assigned_to_name(
            extract_field(item, Fields.ASSIGNED_TO),
            unassigned=settings.unassigned_label,
            unknown=settings.unknown_label,
        )
        result.items.append(
            ReworkItem(
                id=item.id,
                state=str(extract_field(item, Fields.STATE, "")),
                reason=str(reason),
                assigned_to=assignee,
            )
        )
        result.by_member[assignee] = result.by_member.get(assignee, 0) + 1

    result.rework_count = len(result.items)
    result.rework_rate_pct = percentage(result.rework_count, len(items))
    return result
