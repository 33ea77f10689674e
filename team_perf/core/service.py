"""AnalysisService: runs the metric modules over one loaded dataset."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import asdict, dataclass, field, is_dataclass
from typing import Any

from team_perf.analytics.metrics.cycle_time import analyze_cycle_time
from team_perf.analytics.metrics.daily_wip import analyze_daily_wip
from team_perf.analytics.metrics.estimation import analyze_estimation_accuracy
from team_perf.analytics.metrics.flow_efficiency import analyze_flow_efficiency
from team_perf.analytics.metrics.rework import analyze_reopened_items
from team_perf.analytics.metrics.sprints import analyze_sprints
from team_perf.analytics.metrics.state_distribution import analyze_state_distribution
from team_perf.analytics.metrics.time_in_state import analyze_time_in_state
from team_perf.analytics.metrics.work_item_age import analyze_work_item_age
from team_perf.analytics.metrics.work_patterns import analyze_work_patterns

from .config import BASE_METRICS, DEEP_METRICS, normalize_metric_name
from .errors import ConfigError
from .fields import resolve_now
from .loader import AnalysisDataset

logger = logging.getLogger(__name__)

MetricRunner = Callable[[AnalysisDataset, Any], Any]


def _cycle_time(ds: AnalysisDataset, now) -> Any:
    return analyze_cycle_time(ds.work_items, ds.team_members, settings=ds.config.settings)


def _estimation(ds: AnalysisDataset, now) -> Any:
    return analyze_estimation_accuracy(
        ds.work_items,
        ds.team_members,
        ds.config.high_variance_threshold_pct,
        settings=ds.config.settings,
    )


def _work_item_age(ds: AnalysisDataset, now) -> Any:
    return analyze_work_item_age(
        ds.work_items,
        ds.team_members,
        ds.config.age_threshold_days,
        now=now,
        settings=ds.config.settings,
    )


def _work_patterns(ds: AnalysisDataset, now) -> Any:
    return analyze_work_patterns(ds.work_items, settings=ds.config.settings)


def _state_distribution(ds: AnalysisDataset, now) -> Any:
    return analyze_state_distribution(ds.work_items, ds.team_members, settings=ds.config.settings)


def _reopened(ds: AnalysisDataset, now) -> Any:
    return analyze_reopened_items(ds.work_items, settings=ds.config.settings)


def _time_in_state(ds: AnalysisDataset, now) -> Any:
    return analyze_time_in_state(ds.work_items, ds.updates, ds.team_members, now=now, settings=ds.config.settings)


def _daily_wip(ds: AnalysisDataset, now) -> Any:
    return analyze_daily_wip(
        ds.work_items,
        ds.updates,
        ds.team_members,
        ds.config.date_range_start,
        ds.config.date_range_end,
        now=now,
        settings=ds.config.settings,
    )


def _flow_efficiency(ds: AnalysisDataset, now) -> Any:
    return analyze_flow_efficiency(ds.work_items, ds.updates, ds.team_members, now=now, settings=ds.config.settings)


def _sprints(ds: AnalysisDataset, now) -> Any:
    return analyze_sprints(ds.work_items, ds.updates, ds.team_members, settings=ds.config.settings)


DEFAULT_REGISTRY: dict[str, MetricRunner] = {
    "cycle_time": _cycle_time,
    "estimation_accuracy": _estimation,
    "work_item_age": _work_item_age,
    "work_patterns": _work_patterns,
    "state_distribution": _state_distribution,
    "reopened_items": _reopened,
    "time_in_state": _time_in_state,
    "daily_wip": _daily_wip,
    "flow_efficiency": _flow_efficiency,
    "sprint_analysis": _sprints,
}


@dataclass(slots=True)
class AnalysisMetadata:
    analyzed_at: str
    data_source: str
    team_members_count: int
    work_items_count: int
    date_range_start: str | None
    date_range_end: str | None
    history_data_available: bool
    metrics_run: list[str] = field(default_factory=list)
    metrics_skipped: list[str] = field(default_factory=list)


@dataclass(slots=True)
class AnalysisResult:
    metadata: AnalysisMetadata
    metrics: dict[str, Any] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict[str, Any]:
        return {
            "metadata": asdict(self.metadata),
            "metrics": {name: asdict(value) if is_dataclass(value) else value for name, value in self.metrics.items()},
            "failures": dict(self.failures),
        }


def resolve_metrics(requested: str | Iterable[str] | None) -> list[str]:
    """Expand ``"all"`` and normalize names, keeping registry order.

    Raises
    ------
    ConfigError
        For names outside the registry.
    """
    if requested is None or isinstance(requested, str):
        requested = [requested or "all"]
    names = [normalize_metric_name(n) for n in requested]
    if "all" in names:
        return [*BASE_METRICS, *DEEP_METRICS]
    unknown = [n for n in names if n not in DEFAULT_REGISTRY]
    if unknown:
        raise ConfigError([f"Unknown metric: {n}" for n in unknown])
    return [n for n in (*BASE_METRICS, *DEEP_METRICS) if n in names]


class AnalysisService:
    def __init__(self, registry: dict[str, MetricRunner] | None = None):
        self.registry = dict(registry or DEFAULT_REGISTRY)

    def run(
        self,
        dataset: AnalysisDataset,
        metrics: str | Sequence[str] | None = "all",
        *,
        now=None,
    ) -> AnalysisResult:
        """Run the requested metrics and collect their results.

        Deep metrics are skipped when the dataset has no update events. A
        metric that raises is logged and recorded in ``failures``; the other
        metrics still run.
        """
        current = resolve_now(now)
        names = resolve_metrics(metrics)
        config = dataset.config
        meta = AnalysisMetadata(
            analyzed_at=current.isoformat(),
            data_source=dataset.source,
            team_members_count=len(dataset.team_members),
            work_items_count=len(dataset.work_items),
            date_range_start=config.date_range_start,
            date_range_end=config.date_range_end,
            history_data_available=dataset.has_history,
        )
        result = AnalysisResult(metadata=meta)
        logger.info(
            "Analyzing %d work items, %d update events, %d team members",
            len(dataset.work_items),
            len(dataset.updates),
            len(dataset.team_members),
        )

        for name in names:
            if name in DEEP_METRICS and not dataset.has_history:
                logger.info("Skipping %s: no work item history available", name)
                meta.metrics_skipped.append(name)
                continue
            runner = self.registry.get(name)
            if runner is None:
                meta.metrics_skipped.append(name)
                continue
            started = time.perf_counter()
            try:
                result.metrics[name] = runner(dataset, current)
            except Exception as exc:
                logger.exception("Metric %s failed", name)
                result.failures[name] = f"{type(exc).__name__}: {exc}"
                continue
            meta.metrics_run.append(name)
            logger.debug("Metric %s finished in %.3fs", name, time.perf_counter() - started)
        return result
