"""Command line entry point: ``team-perf --config analysis.yaml``."""

from __future__ import annotations

import argparse
import logging
import sys

from team_perf.core.errors import AnalysisError
from team_perf.core.loader import load_analysis_config, load_dataset
from team_perf.core.service import AnalysisResult, AnalysisService
from team_perf.core.validation import ensure_valid, validate_analysis_config, validate_team_members
from team_perf.reports.writers import OUTPUT_FORMATS, write_results

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="team-perf", description="Team performance analysis for ADO work items")
    parser.add_argument("--config", required=True, help="Path to the YAML analysis config")
    parser.add_argument(
        "--metrics",
        default=None,
        help="Comma-separated metrics to run (default: config value or all)",
    )
    parser.add_argument("--format", dest="output_format", choices=OUTPUT_FORMATS, default="both")
    parser.add_argument("--output-dir", default=None, help="Override the config output directory")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def key_insights(result: AnalysisResult) -> list[str]:
    """A few headline numbers for the console."""
    lines: list[str] = []
    metrics = result.metrics
    if "cycle_time" in metrics and metrics["cycle_time"].overall.count:
        overall = metrics["cycle_time"].overall
        lines.append(f"Cycle time: median {overall.median:.1f} days over {overall.count} completed items")
    if "reopened_items" in metrics:
        rework = metrics["reopened_items"]
        lines.append(f"Rework: {rework.rework_count} items ({rework.rework_rate_pct:.1f}%)")
    if "work_item_age" in metrics:
        age = metrics["work_item_age"]
        lines.append(
            f"Backlog: {age.overall.items_over_threshold} of {age.overall.total_items} open items "
            f"older than {age.age_threshold_days:g} days"
        )
    if "time_in_state" in metrics and metrics["time_in_state"].overall.common_bottleneck:
        lines.append(f"Common bottleneck state: {metrics['time_in_state'].overall.common_bottleneck}")
    if "flow_efficiency" in metrics and metrics["flow_efficiency"].by_work_item:
        lines.append(f"Flow efficiency: {metrics['flow_efficiency'].overall.avg_efficiency_pct:.1f}%")
    if "daily_wip" in metrics and metrics["daily_wip"].overall.peak_wip_date:
        wip = metrics["daily_wip"].overall
        lines.append(f"Peak team WIP: {wip.peak_wip_count} items on {wip.peak_wip_date}")
    if "sprint_analysis" in metrics and metrics["sprint_analysis"].overall.total_sprints:
        sprints = metrics["sprint_analysis"].overall
        lines.append(f"Velocity trend across {sprints.total_sprints} sprints: {sprints.velocity_trend}")
    return lines


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        config = load_analysis_config(args.config)
        if args.metrics:
            config.metrics = [m.strip() for m in args.metrics.split(",") if m.strip()]
        if args.output_dir:
            config.output_dir = args.output_dir
        ensure_valid(validate_analysis_config(config), source=args.config)
        dataset = load_dataset(config)
        if dataset.team_members:
            ensure_valid(validate_team_members(dataset.team_members), source=config.team_members_file)
        else:
            logger.warning("No team members configured; per-member breakdowns will be empty")
        result = AnalysisService().run(dataset, config.metrics)
        written = write_results(result, config.output_dir, args.output_format)
    except (AnalysisError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Analyzed {result.metadata.work_items_count} work items; wrote {len(written)} file(s) to {config.output_dir}")
    for line in key_insights(result):
        print(f"  - {line}")
    for name, message in result.failures.items():
        print(f"  ! {name} failed: {message}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
