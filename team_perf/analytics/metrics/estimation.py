"""Estimation accuracy: original estimate vs completed work."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

import pandas as pd

from team_perf.core.config import DEFAULT_HIGH_VARIANCE_THRESHOLD_PCT, DEFAULT_SETTINGS, AnalysisSettings
from team_perf.core.mappers import work_items_to_dataframe
from team_perf.core.models import TeamMember, WorkItem, roster_names

from .stats import calculate_stats, mean


@dataclass(slots=True)
class EstimationTotals:
    total_estimate: float = 0.0
    total_actual: float = 0.0
    variance_pct: float = 0.0
    item_count: int = 0


@dataclass(slots=True)
class MemberEstimation(EstimationTotals):
    avg_variance: float = 0.0
    median_variance: float = 0.0
    high_variance_items: int = 0


@dataclass(slots=True)
class EstimationResult:
    by_member: dict[str, MemberEstimation] = field(default_factory=dict)
    by_month: dict[str, EstimationTotals] = field(default_factory=dict)
    overall: MemberEstimation = field(default_factory=MemberEstimation)


def estimated_items(df: pd.DataFrame) -> pd.DataFrame:
    """Rows with a positive estimate and non-zero completed work, plus ``variance_pct``."""
    if df.empty:
        return df.assign(variance_pct=pd.Series(dtype="float64"))
    est = df["original_estimate"]
    actual = df["completed_work"]
    mask = est.notna() & (est > 0) & actual.notna() & (actual != 0)
    out = df[mask].copy()
    out["variance_pct"] = (out["completed_work"] - out["original_estimate"]) / out["original_estimate"] * 100
    return out


def _totals(rows: pd.DataFrame) -> dict:
    total_estimate = float(rows["original_estimate"].sum())
    total_actual = float(rows["completed_work"].sum())
    variance = (total_actual - total_estimate) / total_estimate * 100 if total_estimate > 0 else 0.0
    return {
        "total_estimate": total_estimate,
        "total_actual": total_actual,
        "variance_pct": float(variance),
        "item_count": int(len(rows)),
    }


def _member_summary(rows: pd.DataFrame, threshold: float) -> MemberEstimation:
    variances = [float(v) for v in rows["variance_pct"]]
    return MemberEstimation(
        **_totals(rows),
        avg_variance=mean(variances),
        median_variance=calculate_stats(variances).median,
        high_variance_items=sum(1 for v in variances if abs(v) > threshold),
    )


def analyze_estimation_accuracy(
    work_items: Iterable[WorkItem],
    team_members: Sequence[TeamMember],
    high_variance_threshold: float = DEFAULT_HIGH_VARIANCE_THRESHOLD_PCT,
    *,
    settings: AnalysisSettings = DEFAULT_SETTINGS,
) -> EstimationResult:
    """Estimate vs actual per roster member, per creation month and overall.

    An item counts as high variance when ``|variance_pct|`` is strictly
    above ``high_variance_threshold``.
    """
    df = estimated_items(work_items_to_dataframe(work_items, settings))
    result = EstimationResult()
    if df.empty:
        return result

    for member in roster_names(team_members):
        rows = df[df["assignee"] == member]
        if not rows.empty:
            result.by_member[member] = _member_summary(rows, high_variance_threshold)

    months = df["created_dt"].dt.strftime("%Y-%m")
    for month, rows in df.groupby(months, sort=True):
        result.by_month[str(month)] = EstimationTotals(**_totals(rows))

    result.overall = _member_summary(df, high_variance_threshold)
    return result
