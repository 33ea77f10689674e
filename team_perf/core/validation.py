"""Validation of analysis configuration, roster and work item ids.

Each ``validate_*`` function returns a list of human-readable problems (empty
when valid); :func:`ensure_valid` turns a non-empty list into a
:class:`~team_perf.core.errors.ConfigError`.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from datetime import date
from pathlib import Path

from .config import BASE_METRICS, DEEP_METRICS, AnalysisConfig, normalize_metric_name
from .errors import ConfigError
from .models import TeamMember

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def is_valid_date(value) -> bool:
    """True for a real calendar date written as ``YYYY-MM-DD``."""
    if not isinstance(value, str) or not _DATE_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def _is_number(value) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def validate_analysis_config(config: AnalysisConfig, *, check_files: bool = True) -> list[str]:
    errors: list[str] = []
    if not config.data_file:
        errors.append("Missing required field: data_file")
    elif check_files and not Path(config.data_file).exists():
        errors.append(f"Data file not found: {config.data_file}")
    if not config.output_dir:
        errors.append("Missing required field: output_dir")

    start, end = config.date_range_start, config.date_range_end
    for name, value in (("date_range_start", start), ("date_range_end", end)):
        if value and not is_valid_date(value):
            errors.append(f"Invalid {name} format. Expected YYYY-MM-DD, got: {value}")
    if is_valid_date(start) and is_valid_date(end) and start > end:
        errors.append(f"date_range_start must be before date_range_end ({start} > {end})")

    age = config.age_threshold_days
    if not _is_number(age) or age <= 0:
        errors.append("age_threshold_days must be a positive number")
    variance = config.high_variance_threshold_pct
    if not _is_number(variance) or not 0 <= variance <= 100:
        errors.append("high_variance_threshold_pct must be a number between 0 and 100")

    known = set(BASE_METRICS) | set(DEEP_METRICS) | {"all"}
    for metric in config.metrics or []:
        if normalize_metric_name(metric) not in known:
            errors.append(f"Unknown metric: {metric}")
    return errors


def validate_team_members(members: Sequence[TeamMember]) -> list[str]:
    errors: list[str] = []
    if not members:
        return ["Team members list is empty"]
    seen: set[str] = set()
    for index, member in enumerate(members):
        name = member.display_name
        if not isinstance(name, str) or not name.strip():
            errors.append(f"Team member at index {index} is missing display_name")
            continue
        if name in seen:
            errors.append(f"Duplicate team member: {name}")
        seen.add(name)
    return errors


def validate_work_item_ids(ids: Iterable) -> list[str]:
    errors: list[str] = []
    for index, value in enumerate(ids):
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            errors.append(f"Invalid work item id at index {index}: {value!r} (must be a positive integer)")
    return errors


def ensure_valid(errors: list[str], *, source: str | None = None) -> None:
    if errors:
        raise ConfigError(errors, source=source)
