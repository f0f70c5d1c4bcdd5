#!/usr/bin/env python3
"""Combine per-run summary CSV files and report per-metric statistics."""
from __future__ import annotations

import argparse
import re
import sys
from pathlib import Path
from typing import Iterable, Sequence

import pandas as pd

DEFAULT_COMBINED_FILENAME = "runs_combined.csv"
DEFAULT_STATS_FILENAME = "runs_stats.csv"
REQUIRED_COLUMNS = ("run", "seed", "activation_count", "normal_refresh_count", "remedial_refresh_count")
STAT_COLUMNS = (
    "activation_count",
    "normal_refresh_count",
    "remedial_refresh_count",
    "alarms_raised",
    "alarms_overflowed",
    "rule_violations",
    "hammered_rows",
    "max_hammer",
    "max_ratio",
)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Combine summary_*.csv files from simulator output directories."
    )
    parser.add_argument(
        "directories",
        nargs="+",
        type=Path,
        help="Directories to scan for summary*.csv files.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        help="Directory where output files will be written (defaults to current directory).",
    )
    return parser.parse_args(argv)


RUN_DIR_PATTERN = re.compile(r"(site|sweep)_\w+$")


def _candidate_directories(root: Path) -> list[Path]:
    candidates = [root]
    for child in sorted(root.iterdir()):
        if child.is_dir() and RUN_DIR_PATTERN.fullmatch(child.name):
            candidates.append(child)
    return candidates


def discover_summary_files(directories: Sequence[Path]) -> list[Path]:
    discovered: list[Path] = []
    seen: set[Path] = set()
    for directory in directories:
        if not directory.exists():
            raise FileNotFoundError(f"directory not found: {directory}")
        if not directory.is_dir():
            raise NotADirectoryError(f"not a directory: {directory}")
        for candidate_dir in _candidate_directories(directory):
            for candidate in sorted(candidate_dir.glob("summary*.csv")):
                if candidate in seen:
                    continue
                seen.add(candidate)
                discovered.append(candidate)
    return discovered


def _require_columns(path: Path, columns: Iterable[str]) -> None:
    available = set(columns)
    missing = [column for column in REQUIRED_COLUMNS if column not in available]
    if missing:
        joined = ", ".join(missing)
        raise ValueError(f"{path} missing required columns: {joined}")


def combine_summaries(paths: Sequence[Path]) -> pd.DataFrame:
    frames = []
    for path in paths:
        df = pd.read_csv(path)
        _require_columns(path, df.columns)
        df.insert(0, "source", str(path))
        frames.append(df)
    if not frames:
        return pd.DataFrame(columns=["source", *REQUIRED_COLUMNS])
    return pd.concat(frames, ignore_index=True)


def summarize(combined: pd.DataFrame) -> pd.DataFrame:
    cols = [c for c in STAT_COLUMNS if c in combined.columns]
    if combined.empty or not cols:
        return pd.DataFrame(columns=["metric", "mean", "min", "max"])
    stats = combined[cols].agg(["mean", "min", "max"]).T
    stats.index.name = "metric"
    return stats.reset_index()


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        files = discover_summary_files(args.directories)
    except (FileNotFoundError, NotADirectoryError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    try:
        combined = combine_summaries(files)
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if not files:
        print("warning: no summary CSV files found", file=sys.stderr)

    base_dir = args.output_dir or Path.cwd()
    base_dir.mkdir(parents=True, exist_ok=True)
    combined.to_csv(base_dir / DEFAULT_COMBINED_FILENAME, index=False, lineterminator="\n")
    summarize(combined).to_csv(base_dir / DEFAULT_STATS_FILENAME, index=False, lineterminator="\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
