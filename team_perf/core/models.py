"""Domain data models for work items, update events, and the team roster."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True, slots=True)
class Person:
    """Structured identity as returned for ``System.AssignedTo``."""

    display_name: str | None
    unique_name: str | None = None
    id: str | None = None


# Assignee values arrive either as a bare display name or a structured identity
AssignedTo = str | Person | None


@dataclass(frozen=True, slots=True)
class WorkItem:
    id: int
    fields: dict[str, Any] = field(default_factory=dict)
    rev: int | None = None


@dataclass(frozen=True, slots=True)
class FieldChange:
    old_value: Any = None
    new_value: Any = None


@dataclass(frozen=True, slots=True)
class UpdateEvent:
    work_item_id: int
    rev: int
    revised_date: datetime | None
    revised_by: str | None = None
    fields: dict[str, FieldChange] = field(default_factory=dict)

    def change(self, name: str) -> FieldChange | None:
        return self.fields.get(name)


@dataclass(frozen=True, slots=True)
class TeamMember:
    display_name: str
    ado_identity: str | None = None
    email: str | None = None
    status: str | None = None
    role: str | None = None


def roster_names(team_members) -> list[str]:
    """Display names in roster order, duplicates dropped."""
    seen: set[str] = set()
    names: list[str] = []
    for member in team_members:
        name = member.display_name
        if name and name not in seen:
            names.append(name)
            seen.add(name)
    return names
