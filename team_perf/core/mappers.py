"""Mapping raw work item / update JSON into models and DataFrames."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

import pandas as pd

from .config import DEFAULT_SETTINGS, AnalysisSettings, Fields
from .fields import assigned_to_name, extract_field, parse_date
from .models import AssignedTo, FieldChange, Person, TeamMember, UpdateEvent, WorkItem


def map_person(value: Any) -> AssignedTo:
    if value is None or isinstance(value, str | Person):
        return value
    if isinstance(value, Mapping):
        if not value:
            return None
        return Person(
            display_name=value.get("displayName"),
            unique_name=value.get("uniqueName"),
            id=value.get("id"),
        )
    return str(value)


def map_work_item(raw: Mapping[str, Any]) -> WorkItem:
    fields = dict(raw.get("fields") or {})
    if Fields.ASSIGNED_TO in fields:
        fields[Fields.ASSIGNED_TO] = map_person(fields[Fields.ASSIGNED_TO])
    rev = raw.get("rev")
    return WorkItem(id=int(raw["id"]), fields=fields, rev=int(rev) if rev is not None else None)


def _map_change(value: Any) -> FieldChange:
    if isinstance(value, FieldChange):
        return value
    if not isinstance(value, Mapping):
        return FieldChange(new_value=value)
    return FieldChange(old_value=value.get("oldValue"), new_value=value.get("newValue"))


def map_update(raw: Mapping[str, Any]) -> UpdateEvent:
    """Map one ADO ``workitems/{id}/updates`` record.

    The owning item id is ``workItemId``; older exports only carry ``id``.
    """
    item_id = raw.get("workItemId")
    if item_id is None:
        item_id = raw.get("id")
    revised_by = raw.get("revisedBy")
    if isinstance(revised_by, Mapping):
        revised_by = revised_by.get("displayName") or revised_by.get("name")
    changes = {name: _map_change(value) for name, value in (raw.get("fields") or {}).items()}
    return UpdateEvent(
        work_item_id=int(item_id),
        rev=int(raw.get("rev") or 0),
        revised_date=parse_date(raw.get("revisedDate")),
        revised_by=revised_by,
        fields=changes,
    )


def map_team_member(raw: Mapping[str, Any] | str) -> TeamMember:
    if isinstance(raw, str):
        return TeamMember(display_name=raw.strip())
    name = raw.get("display_name") or raw.get("displayName") or ""
    return TeamMember(
        display_name=str(name).strip(),
        ado_identity=raw.get("ado_identity") or raw.get("adoIdentity"),
        email=raw.get("email"),
        status=raw.get("status"),
        role=raw.get("role"),
    )


def _closed_value(item: WorkItem):
    return extract_field(item, Fields.CLOSED_DATE) or extract_field(item, Fields.COMMON_CLOSED_DATE)


def work_items_to_dataframe(
    items: Iterable[WorkItem],
    settings: AnalysisSettings = DEFAULT_SETTINGS,
) -> pd.DataFrame:
    """Flatten snapshots into one row per item with parsed timestamp columns.

    Timestamp columns (``created_dt``, ``changed_dt``, ``closed_dt``) are UTC
    and ``NaT`` when missing or unparsable; effort columns are numeric with
    ``NaN`` for missing values.
    """
    rows = []
    for item in items:
        rows.append(
            {
                "id": item.id,
                "title": extract_field(item, Fields.TITLE, ""),
                "work_item_type": extract_field(item, Fields.WORK_ITEM_TYPE, settings.unknown_label),
                "state": extract_field(item, Fields.STATE),
                "assignee": assigned_to_name(
                    extract_field(item, Fields.ASSIGNED_TO),
                    unassigned=settings.unassigned_label,
                    unknown=settings.unknown_label,
                ),
                "reason": extract_field(item, Fields.REASON, ""),
                "iteration_path": extract_field(item, Fields.ITERATION_PATH),
                "created": extract_field(item, Fields.CREATED_DATE),
                "changed": extract_field(item, Fields.CHANGED_DATE),
                "closed": _closed_value(item),
                "original_estimate": extract_field(item, Fields.ORIGINAL_ESTIMATE),
                "completed_work": extract_field(item, Fields.COMPLETED_WORK),
                "remaining_work": extract_field(item, Fields.REMAINING_WORK),
            }
        )
    columns = [
        "id",
        "title",
        "work_item_type",
        "state",
        "assignee",
        "reason",
        "iteration_path",
        "created",
        "changed",
        "closed",
        "original_estimate",
        "completed_work",
        "remaining_work",
    ]
    df = pd.DataFrame(rows, columns=columns)
    for src, dest in (("created", "created_dt"), ("changed", "changed_dt"), ("closed", "closed_dt")):
        df[dest] = pd.Series([parse_date(v) for v in df[src]], index=df.index, dtype="datetime64[ns, UTC]")
    for col in ("original_estimate", "completed_work", "remaining_work"):
        df[col] = pd.to_numeric(df[col], errors="coerce")
    return df
