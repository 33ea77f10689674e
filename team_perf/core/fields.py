"""Safe field access and timestamp helpers for work item snapshots.

Upstream data is assumed imperfect: absent fields, ``None`` values and
unparsable timestamps are normal and resolve to defaults instead of raising.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import datetime
from typing import Any

import pandas as pd
import pytz

from .config import UNASSIGNED, UNKNOWN
from .models import AssignedTo, Person, WorkItem

SECONDS_PER_DAY = 86400.0
# ADO stamps the latest revision with 9999-01-01 instead of a real date
SENTINEL_YEAR = 9999


def extract_field(item: WorkItem, name: str, default: Any = None) -> Any:
    """Return ``item.fields[name]`` or ``default`` when missing or null."""
    value = item.fields.get(name) if item.fields else None
    return default if value is None else value


def assigned_to_name(
    value: AssignedTo | Mapping,
    *,
    unassigned: str = UNASSIGNED,
    unknown: str = UNKNOWN,
) -> str:
    """Normalize an assignee value to a display name.

    Parameters
    ----------
    value : str | Person | Mapping | None
        Bare display name, structured identity, raw identity mapping
        (``{"displayName": ...}``) or nothing.
    unassigned : str
        Returned when there is no assignee.
    unknown : str
        Returned when a structured assignee has no display name.

    Returns
    -------
    str
        Canonical display name.

    Examples
    --------
    >>> assigned_to_name("Ada Lovelace")
    'Ada Lovelace'
    >>> assigned_to_name(None)
    'Unassigned'
    >>> assigned_to_name({"uniqueName": "ada@example.com"})
    'Unknown'
    """
    if value is None:
        return unassigned
    if isinstance(value, str):
        text = value.strip()
        return text or unassigned
    if isinstance(value, Person):
        return value.display_name or unknown
    if isinstance(value, Mapping):
        if not value:
            return unassigned
        return value.get("displayName") or value.get("display_name") or unknown
    return unknown


def parse_date(value: Any) -> pd.Timestamp | None:
    """Parse a timestamp-like value into a UTC ``pd.Timestamp``.

    Naive values are taken as UTC. Returns None for empty, unparsable or
    out-of-range input (e.g. the ``9999-01-01`` sentinel revision date).
    """
    if value is None or value == "":
        return None
    try:
        ts = pd.to_datetime(value, utc=True, errors="coerce")
    except (TypeError, ValueError, OverflowError):
        return None
    if ts is None or pd.isna(ts) or ts.year >= SENTINEL_YEAR:
        return None
    return ts


def month_key(value: Any) -> str | None:
    """``YYYY-MM`` of a timestamp-like value, or None."""
    ts = parse_date(value)
    if ts is None:
        return None
    return ts.strftime("%Y-%m")


def days_between(start: datetime, end: datetime) -> int:
    """Whole days from ``start`` to ``end`` (floored, may be negative)."""
    return math.floor((end - start).total_seconds() / SECONDS_PER_DAY)


def now_utc() -> pd.Timestamp:
    return pd.Timestamp.now(tz=pytz.UTC)


def resolve_now(now: Any = None) -> pd.Timestamp:
    """Injected ``now`` when given (parsed as UTC), else the wall clock."""
    if now is None:
        return now_utc()
    ts = parse_date(now)
    if ts is None:
        raise ValueError(f"Invalid 'now' value: {now!r}")
    return ts


def within_plausible_range(days: int, max_days: int) -> bool:
    return 0 <= days <= max_days
