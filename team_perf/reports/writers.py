"""Writing analysis results: full JSON document plus per-metric CSV summaries."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import pandas as pd

from team_perf.core.config import OUTPUT
from team_perf.core.service import AnalysisResult

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("json", "csv", "both")

# metric -> (section of the metric payload, name of the key column)
SUMMARY_SECTIONS: dict[str, tuple[str, str | None]] = {
    "cycle_time": ("by_member", "member"),
    "estimation_accuracy": ("by_member", "member"),
    "work_item_age": ("by_member", "member"),
    "work_patterns": ("creation_vs_completion", "month"),
    "state_distribution": ("by_member", "member"),
    "reopened_items": ("items", None),
    "time_in_state": ("by_member", "member"),
    "daily_wip": ("by_member", "member"),
    "flow_efficiency": ("by_member", "member"),
    "sprint_analysis": ("by_sprint", "sprint"),
}


def _is_scalar(value: Any) -> bool:
    return value is None or isinstance(value, str | int | float | bool)


def section_frame(section: Any, key_column: str | None) -> pd.DataFrame:
    """One row per entry of a metric section; nested values are left out."""
    if isinstance(section, dict):
        rows = []
        for key, values in section.items():
            row = {key_column or "key": key}
            if isinstance(values, dict):
                row.update({k: v for k, v in values.items() if _is_scalar(v)})
            else:
                row["value"] = values
            rows.append(row)
        return pd.DataFrame(rows, columns=None if rows else [key_column or "key"])
    if isinstance(section, list):
        return pd.DataFrame([{k: v for k, v in row.items() if _is_scalar(v)} for row in section])
    return pd.DataFrame()


def summary_frames(result: AnalysisResult) -> dict[str, pd.DataFrame]:
    """Tabular summary per computed metric."""
    payload = result.to_dict()["metrics"]
    frames: dict[str, pd.DataFrame] = {}
    for name, data in payload.items():
        section_name, key_column = SUMMARY_SECTIONS.get(name, ("by_member", "member"))
        frame = section_frame(data.get(section_name, {}), key_column)
        if name == "state_distribution" and not frame.empty:
            counts = frame.columns.drop(key_column)
            frame[counts] = frame[counts].fillna(0).astype(int)
        frames[name] = frame
    return frames


def write_json(result: AnalysisResult, output_dir: str | Path) -> Path:
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    path = out / OUTPUT.json_filename
    with path.open("w", encoding=OUTPUT.encoding) as fh:
        json.dump(result.to_dict(), fh, indent=2, ensure_ascii=False)
    logger.info("Wrote %s", path)
    return path


def write_summaries(result: AnalysisResult, output_dir: str | Path) -> list[Path]:
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    written = []
    for name, frame in summary_frames(result).items():
        path = out / f"{name}{OUTPUT.summary_suffix}"
        frame.to_csv(path, index=False, encoding=OUTPUT.encoding)
        written.append(path)
    logger.info("Wrote %d summary tables to %s", len(written), out)
    return written


def write_results(result: AnalysisResult, output_dir: str | Path, output_format: str = "both") -> list[Path]:
    """Write results in ``json``, ``csv`` or ``both`` formats; returns the files written."""
    if output_format not in OUTPUT_FORMATS:
        raise ValueError(f"Unsupported output format {output_format!r}; expected one of {OUTPUT_FORMATS}")
    written: list[Path] = []
    if output_format in {"json", "both"}:
        written.append(write_json(result, output_dir))
    if output_format in {"csv", "both"}:
        written.extend(write_summaries(result, output_dir))
    return written
