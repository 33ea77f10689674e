"""Loading materialized exports (JSON work items / updates, YAML roster and config)."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .config import AnalysisConfig, settings_from_mapping
from .errors import ConfigError, DataLoadError
from .mappers import map_team_member, map_update, map_work_item
from .models import TeamMember, UpdateEvent, WorkItem
from .validation import validate_work_item_ids

logger = logging.getLogger(__name__)

# YAML keys accepted for each config field (snake_case first, then legacy camelCase)
_CONFIG_KEYS: dict[str, tuple[str, ...]] = {
    "data_file": ("data_file", "dataFile", "work_items_file"),
    "history_file": ("history_file", "historyFile", "updates_file"),
    "team_members_file": ("team_members_file", "teamMembersFile", "roster_file"),
    "output_dir": ("output_dir", "outputDir"),
    "date_range_start": ("date_range_start", "dateRangeStart"),
    "date_range_end": ("date_range_end", "dateRangeEnd"),
    "metrics": ("metrics",),
    "age_threshold_days": ("age_threshold_days", "ageThresholdDays"),
    "high_variance_threshold_pct": ("high_variance_threshold_pct", "highVarianceThresholdPct"),
}
_PATH_KEYS = ("data_file", "history_file", "team_members_file", "output_dir")


@dataclass(slots=True)
class AnalysisDataset:
    work_items: list[WorkItem]
    updates: list[UpdateEvent] = field(default_factory=list)
    team_members: list[TeamMember] = field(default_factory=list)
    config: AnalysisConfig = field(default_factory=AnalysisConfig)
    source: str = "in-memory"

    @property
    def has_history(self) -> bool:
        return bool(self.updates)


def _read_json(path: Path) -> Any:
    if not path.exists():
        raise DataLoadError(path, "Data file not found")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise DataLoadError(path, f"Invalid JSON ({exc.msg} at line {exc.lineno})") from exc


def _read_yaml(path: Path) -> Any:
    if not path.exists():
        raise DataLoadError(path, "File not found")
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise DataLoadError(path, f"Invalid YAML ({exc})") from exc


def load_work_items(path: str | Path) -> list[WorkItem]:
    """Load a JSON array of work items.

    Raises
    ------
    DataLoadError
        File missing, invalid JSON, not an array, empty, or an entry without
        a positive integer ``id``.
    """
    path = Path(path)
    data = _read_json(path)
    if not isinstance(data, list):
        raise DataLoadError(path, "Expected a JSON array of work items")
    if not data:
        raise DataLoadError(path, "No work items found")
    try:
        items = [map_work_item(raw) for raw in data]
    except (KeyError, TypeError, ValueError) as exc:
        raise DataLoadError(path, f"Malformed work item ({exc!r})") from exc
    problems = validate_work_item_ids([item.id for item in items])
    if problems:
        raise DataLoadError(path, "; ".join(problems))
    logger.info("Loaded %d work items from %s", len(items), path)
    return items


def load_work_item_updates(path: str | Path) -> list[UpdateEvent]:
    """Load update events from a JSON array or an ADO ``{"value": [...]}`` envelope."""
    path = Path(path)
    data = _read_json(path)
    if isinstance(data, dict) and isinstance(data.get("value"), list):
        data = data["value"]
    if not isinstance(data, list):
        raise DataLoadError(path, "Expected a JSON array of work item updates")
    try:
        updates = [map_update(raw) for raw in data]
    except (KeyError, TypeError, ValueError) as exc:
        raise DataLoadError(path, f"Malformed work item update ({exc!r})") from exc
    logger.info("Loaded %d update events from %s", len(updates), path)
    return updates


def has_history_data(path: str | Path | None) -> bool:
    """True when ``path`` points at an existing, non-empty history file."""
    if not path:
        return False
    candidate = Path(path)
    return candidate.is_file() and candidate.stat().st_size > 0


def load_team_members(path: str | Path) -> list[TeamMember]:
    """Load the roster from a YAML list or a mapping with a ``members`` list."""
    path = Path(path)
    data = _read_yaml(path)
    if isinstance(data, dict):
        data = data.get("members", data.get("team_members"))
    if not isinstance(data, list):
        raise DataLoadError(path, "Expected a list of team members")
    members = []
    for raw in data:
        if not isinstance(raw, dict | str):
            raise DataLoadError(path, f"Unsupported team member entry {raw!r}")
        members.append(map_team_member(raw))
    return members


def _lookup(raw: dict, name: str):
    for key in _CONFIG_KEYS[name]:
        if key in raw:
            return raw[key]
    return None


def load_analysis_config(path: str | Path) -> AnalysisConfig:
    """Parse the YAML analysis config.

    Relative file paths are resolved against the config file's directory.
    Policy overrides live under ``policy:``.
    """
    path = Path(path)
    raw = _read_yaml(path) or {}
    if not isinstance(raw, dict):
        raise DataLoadError(path, "Expected a mapping at the top level")

    values: dict[str, Any] = {}
    for name in _CONFIG_KEYS:
        value = _lookup(raw, name)
        if value is None:
            continue
        if name in _PATH_KEYS:
            value = str((path.parent / str(value)).resolve())
        elif name == "metrics" and isinstance(value, str):
            value = [part.strip() for part in value.split(",") if part.strip()]
        elif name in {"date_range_start", "date_range_end"}:
            value = str(value)
        values[name] = value

    try:
        values["settings"] = settings_from_mapping(raw.get("policy"))
    except (TypeError, ValueError) as exc:
        raise ConfigError([f"policy: {exc}"], source=str(path)) from exc
    return AnalysisConfig(**values)


def load_dataset(config: AnalysisConfig, *, source: str | None = None) -> AnalysisDataset:
    """Load every input named by ``config``.

    A missing history file is not an error; the dataset simply carries no
    update events and deep metrics are skipped.
    """
    if not config.data_file:
        raise ConfigError(["data_file is required"])
    work_items = load_work_items(config.data_file)
    updates: list[UpdateEvent] = []
    if has_history_data(config.history_file):
        updates = load_work_item_updates(config.history_file)
    else:
        logger.info("No history file found at %s; deep metrics will be skipped", config.history_file)
    members: Sequence[TeamMember] = []
    if config.team_members_file:
        members = load_team_members(config.team_members_file)
    return AnalysisDataset(
        work_items=work_items,
        updates=updates,
        team_members=list(members),
        config=config,
        source=source or str(config.data_file),
    )
