"""Central configuration, policy constants, and shared field names."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from dataclasses import fields as dc_fields

# =============================================================================
# Work Item Field Reference Names
# =============================================================================


class Fields:
    WORK_ITEM_TYPE = "System.WorkItemType"
    TITLE = "System.Title"
    STATE = "System.State"
    ASSIGNED_TO = "System.AssignedTo"
    CREATED_DATE = "System.CreatedDate"
    CHANGED_DATE = "System.ChangedDate"
    CLOSED_DATE = "System.ClosedDate"
    COMMON_CLOSED_DATE = "Microsoft.VSTS.Common.ClosedDate"
    ITERATION_PATH = "System.IterationPath"
    AREA_PATH = "System.AreaPath"
    REASON = "System.Reason"
    STATE_CHANGE_DATE = "Microsoft.VSTS.Common.StateChangeDate"
    ORIGINAL_ESTIMATE = "Microsoft.VSTS.Scheduling.OriginalEstimate"
    COMPLETED_WORK = "Microsoft.VSTS.Scheduling.CompletedWork"
    REMAINING_WORK = "Microsoft.VSTS.Scheduling.RemainingWork"


# =============================================================================
# Sentinels
# =============================================================================
UNASSIGNED = "Unassigned"
UNKNOWN = "Unknown"
NO_SPRINT = "No Sprint"

# =============================================================================
# Workflow State Allowlists
# =============================================================================
COMPLETED_STATES: frozenset[str] = frozenset({"Done", "5 - Done", "Closed"})

# Removed items are neither finished work nor backlog
BACKLOG_EXCLUDED_STATES: frozenset[str] = COMPLETED_STATES | {"Removed"}

FLOW_ACTIVE_STATES: frozenset[str] = frozenset(
    {
        "Active",
        "In Progress",
        "2 - Active",
        "Resolved",
        "3 - Resolved",
        "3.2 - QA in Progress",
    }
)

FLOW_WAIT_STATES: frozenset[str] = frozenset(
    {
        "New",
        "To Do",
        "Blocked",
        "On Hold",
        "Ready for Test",
    }
)

WIP_ACTIVE_STATES: frozenset[str] = frozenset({"Active", "In Progress", "2 - Active", "3 - Resolved"})

REWORK_KEYWORDS: tuple[str, ...] = ("reactivated", "reopened")

# =============================================================================
# Thresholds
# =============================================================================
MAX_INTERVAL_DAYS: int = 365  # plausibility bound for any single interval
UNPLANNED_GAP_DAYS: int = 3  # creation -> sprint entry gap for mid-sprint additions
WIP_THRESHOLDS: tuple[int, int] = (3, 5)
TEAM_HIGH_WIP_AVERAGE: float = 3.0
VELOCITY_TREND_TOLERANCE: float = 0.1
VELOCITY_TREND_MIN_SPRINTS: int = 4
MIN_TYPE_SAMPLES: int = 3
DEFAULT_AGE_THRESHOLD_DAYS: int = 60
DEFAULT_HIGH_VARIANCE_THRESHOLD_PCT: float = 50.0

# (label, lower bound %) checked top-down, lower bound inclusive
EFFICIENCY_BANDS: tuple[tuple[str, float], ...] = (
    ("Excellent", 40.0),
    ("Good", 25.0),
    ("Fair", 15.0),
)
EFFICIENCY_FLOOR_LABEL = "Poor"

# Completed-work hour buckets, right-inclusive upper edges
SIZE_BUCKETS: tuple[tuple[str, float], ...] = (
    ("Tiny (0-2h)", 2.0),
    ("Small (2-8h)", 8.0),
    ("Medium (8-20h)", 20.0),
    ("Large (20-40h)", 40.0),
    ("XLarge (>40h)", float("inf")),
)
NO_ESTIMATE_LABEL = "No estimate"

# =============================================================================
# Metric Registry Names
# =============================================================================
BASE_METRICS: Sequence[str] = (
    "cycle_time",
    "estimation_accuracy",
    "work_item_age",
    "work_patterns",
    "state_distribution",
    "reopened_items",
)

DEEP_METRICS: Sequence[str] = (
    "time_in_state",
    "daily_wip",
    "flow_efficiency",
    "sprint_analysis",
)

# Accept the camelCase names used by older config files
METRIC_ALIASES: dict[str, str] = {
    "cycletime": "cycle_time",
    "estimationaccuracy": "estimation_accuracy",
    "workitemage": "work_item_age",
    "workpatterns": "work_patterns",
    "statedistribution": "state_distribution",
    "reopeneditems": "reopened_items",
    "timeinstate": "time_in_state",
    "dailywip": "daily_wip",
    "flowefficiency": "flow_efficiency",
    "sprintanalysis": "sprint_analysis",
}


def normalize_metric_name(name: str) -> str:
    """Map a metric name in any supported spelling to its registry key.

    >>> normalize_metric_name("flowEfficiency")
    'flow_efficiency'
    >>> normalize_metric_name("daily-wip")
    'daily_wip'
    """
    text = str(name).strip()
    key = text.replace("_", "").replace("-", "").lower()
    return METRIC_ALIASES.get(key, text)


@dataclass(frozen=True, slots=True)
class AnalysisSettings:
    """Policy knobs shared by every metric.

    Metrics accept ``settings=`` and fall back to :data:`DEFAULT_SETTINGS`;
    tests and config files override individual fields with
    :func:`dataclasses.replace`.
    """

    unassigned_label: str = UNASSIGNED
    unknown_label: str = UNKNOWN
    completed_states: frozenset[str] = COMPLETED_STATES
    backlog_excluded_states: frozenset[str] = BACKLOG_EXCLUDED_STATES
    flow_active_states: frozenset[str] = FLOW_ACTIVE_STATES
    flow_wait_states: frozenset[str] = FLOW_WAIT_STATES
    wip_active_states: frozenset[str] = WIP_ACTIVE_STATES
    rework_keywords: tuple[str, ...] = REWORK_KEYWORDS
    max_interval_days: int = MAX_INTERVAL_DAYS
    unplanned_gap_days: int = UNPLANNED_GAP_DAYS
    wip_thresholds: tuple[int, int] = WIP_THRESHOLDS
    team_high_wip_average: float = TEAM_HIGH_WIP_AVERAGE
    velocity_trend_tolerance: float = VELOCITY_TREND_TOLERANCE
    velocity_trend_min_sprints: int = VELOCITY_TREND_MIN_SPRINTS
    min_type_samples: int = MIN_TYPE_SAMPLES
    efficiency_bands: tuple[tuple[str, float], ...] = EFFICIENCY_BANDS
    size_buckets: tuple[tuple[str, float], ...] = SIZE_BUCKETS


DEFAULT_SETTINGS = AnalysisSettings()

# Settings whose YAML value is a list but whose field is a frozenset
_SET_FIELDS = {
    "completed_states",
    "backlog_excluded_states",
    "flow_active_states",
    "flow_wait_states",
    "wip_active_states",
}


def settings_from_mapping(overrides: dict | None, base: AnalysisSettings = DEFAULT_SETTINGS) -> AnalysisSettings:
    """Build settings from a ``policy:`` mapping (unknown keys raise ValueError)."""
    if not overrides:
        return base
    known = {f.name for f in dc_fields(AnalysisSettings)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ValueError(f"Unknown policy setting(s): {', '.join(unknown)}")
    values = {}
    for key, value in overrides.items():
        if key in _SET_FIELDS:
            values[key] = frozenset(str(v) for v in value)
        elif key == "rework_keywords":
            values[key] = tuple(str(v).lower() for v in value)
        elif key == "wip_thresholds":
            values[key] = tuple(int(v) for v in value)
        elif key in {"efficiency_bands", "size_buckets"}:
            values[key] = tuple((str(label), float(bound)) for label, bound in value)
        else:
            values[key] = value
    return replace(base, **values)


@dataclass(slots=True)
class AnalysisConfig:
    data_file: str | None = None
    history_file: str | None = None
    team_members_file: str | None = None
    output_dir: str = "analysis"
    date_range_start: str | None = None
    date_range_end: str | None = None
    metrics: list[str] = field(default_factory=lambda: ["all"])
    age_threshold_days: float = DEFAULT_AGE_THRESHOLD_DAYS
    high_variance_threshold_pct: float = DEFAULT_HIGH_VARIANCE_THRESHOLD_PCT
    settings: AnalysisSettings = DEFAULT_SETTINGS


@dataclass(slots=True)
class OutputSettings:
    json_filename: str = "analysis_results.json"
    summary_suffix: str = "_summary.csv"
    encoding: str = "utf-8"


OUTPUT = OutputSettings()
