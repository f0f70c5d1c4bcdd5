from __future__ import annotations

import argparse
import csv
import json
import logging
import os
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional

import yaml

from simcfg import apply_overrides, ensure_min_cfg, load_cfg
from simulation import SimulationResult, run_once
from telemetry import RunReport
from workload import WORKLOAD_KINDS


# ------------------------------
# CSV helpers
# ------------------------------
def _date_stamp() -> str:
    # yymmdd
    return datetime.now().strftime("%y%m%d")


def _run_id_str(i: int) -> str:
    # 1-based, 7 digits like 0000001
    return f"{i:07d}"


def _ensure_dir(p: str) -> None:
    d = os.path.dirname(p)
    if d:
        os.makedirs(d, exist_ok=True)


def _csv_write(path: str, rows: List[Dict[str, Any]], fieldnames: List[str]) -> None:
    _ensure_dir(path)
    with open(path, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=fieldnames, quoting=csv.QUOTE_MINIMAL)
        w.writeheader()
        for r in rows:
            w.writerow(r)


def _run_path(out_dir: str, stem: str, run_idx: int, ext: str = "csv") -> str:
    return os.path.join(out_dir, f"{stem}_{_date_stamp()}_{_run_id_str(run_idx + 1)}.{ext}")


SUMMARY_FIELDS = [
    "run",
    "seed",
    "status",
    "ticks_executed",
    "activation_count",
    "normal_refresh_count",
    "remedial_refresh_count",
    "fine_refresh_count",
    "forfeited_actions",
    "alarms_raised",
    "alarms_enqueued",
    "alarms_overflowed",
    "rule_violations",
    "hammered_rows",
    "halted",
    "halt_reason",
    "max_hammer",
    "max_hammer_row",
    "max_ratio",
]


# ------------------------------
# Exports
# ------------------------------
def export_summary(report: RunReport, res: SimulationResult, *, seed: int, out_dir: str, run_idx: int) -> str:
    row = report.summary_row()
    row.update(
        {
            "run": run_idx + 1,
            "seed": int(seed),
            "status": res["status"],
            "ticks_executed": res["ticks_executed"],
            "max_ratio": round(float(res["max_ratio"]), 6),
        }
    )
    path = _run_path(out_dir, "summary", run_idx)
    _csv_write(path, [row], SUMMARY_FIELDS)
    return path


def export_queue_histogram(report: RunReport, *, out_dir: str, run_idx: int) -> str:
    path = _run_path(out_dir, "queue_histogram", run_idx)
    _csv_write(path, report.histogram_rows(), ["queue_length", "count"])
    return path


def export_rule_violations(report: RunReport, *, out_dir: str, run_idx: int) -> str:
    path = _run_path(out_dir, "rule_violations", run_idx)
    _csv_write(path, report.rule_violations, ["timestamp", "refresh_postponement"])
    return path


def export_overflow_events(report: RunReport, *, out_dir: str, run_idx: int) -> str:
    path = _run_path(out_dir, "overflow_events", run_idx)
    _csv_write(path, report.overflow_events, ["timestamp", "aggressor_row", "severity"])
    return path


def export_hammered_rows(report: RunReport, *, out_dir: str, run_idx: int) -> str:
    path = _run_path(out_dir, "hammered_rows", run_idx)
    _csv_write(path, report.hammered_rows, ["row", "hammer", "timestamp"])
    return path


def save_snapshot(report: RunReport, res: SimulationResult, cfg: Dict[str, Any], *, out_dir: str, run_idx: int) -> str:
    snap = {"config": cfg, "result": dict(res), "report": report.to_dict()}
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    fname = f"snapshots/run_snapshot_{ts}_{_run_id_str(run_idx + 1)}.json"
    path_tmp = os.path.join(out_dir, fname + ".tmp")
    path = os.path.join(out_dir, fname)
    _ensure_dir(path)
    with open(path_tmp, "w", encoding="utf-8") as f:
        json.dump(snap, f, ensure_ascii=False)
        f.flush()
        os.fsync(f.fileno())
    os.replace(path_tmp, path)
    return path


# ------------------------------
# Runner
# ------------------------------
def main(argv: Optional[List[str]] = None) -> int:
    p = argparse.ArgumentParser(description="Run the Panopticon bank simulator and export reports")
    p.add_argument("--config", default="config.yaml", help="Path to YAML config")
    p.add_argument("--ticks", "-t", type=int, default=None, help="Activation slots per run (overrides simulation.ticks)")
    p.add_argument("--num-runs", "-n", type=int, default=1, help="Number of runs")
    p.add_argument("--seed", type=int, default=None, help="Base RNG seed; run i uses seed+i")
    p.add_argument(
        "--postponement-threshold",
        type=float,
        default=None,
        help="Override workload.postponement_threshold (ratio at which the workload yields to refresh)",
    )
    p.add_argument("--workload", choices=list(WORKLOAD_KINDS), default=None, help="Override workload.kind")
    p.add_argument("--out-dir", default="out", help="Output directory root")
    p.add_argument("--plots", action="store_true", help="Also render histogram/hammer plots (matplotlib)")
    p.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ...)")
    args = p.parse_args(argv)

    logging.basicConfig(level=str(args.log_level).upper(), format="%(levelname)s %(name)s: %(message)s")
    logger = logging.getLogger("panopticon")

    try:
        cfg = ensure_min_cfg(load_cfg(args.config))
    except (OSError, yaml.YAMLError) as e:
        print(f"Error: cannot load config {args.config}: {e}", file=sys.stderr)
        return 2

    base_seed = int(args.seed) if args.seed is not None else int(cfg["simulation"]["seed"])
    os.makedirs(args.out_dir, exist_ok=True)
    for i in range(args.num_runs):
        seed_i = base_seed + i
        cfg_run = apply_overrides(
            cfg,
            ticks=args.ticks,
            seed=seed_i,
            postponement_threshold=args.postponement_threshold,
            workload_kind=args.workload,
        )
        try:
            bank, res = run_once(cfg_run, logger=logger)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2
        report = RunReport.from_bank(bank)

        files = [
            export_summary(report, res, seed=seed_i, out_dir=args.out_dir, run_idx=i),
            export_queue_histogram(report, out_dir=args.out_dir, run_idx=i),
            export_rule_violations(report, out_dir=args.out_dir, run_idx=i),
            export_overflow_events(report, out_dir=args.out_dir, run_idx=i),
            export_hammered_rows(report, out_dir=args.out_dir, run_idx=i),
            save_snapshot(report, res, cfg_run, out_dir=args.out_dir, run_idx=i),
        ]
        if args.plots:
            import viz_tools

            files.append(viz_tools.plot_queue_histogram(report, _run_path(args.out_dir, "queue_histogram", i, "png")))
            files.append(viz_tools.plot_hammer_profile(bank, _run_path(args.out_dir, "hammer_profile", i, "png")))

        # Brief run summary
        print("Run", i + 1, "results:")
        print("  status=", res["status"], "ticks=", res["ticks_executed"], "seed=", seed_i)
        if res["halt_reason"]:
            print("  halt_reason=", res["halt_reason"])
        print(
            f"  activations= {report.activation_count}  normal_refresh= {report.normal_refresh_count}"
            f"  remedial_refresh= {report.remedial_refresh_count}"
        )
        print(
            f"  alarms= {report.alarms_raised}  overflowed= {len(report.overflow_events)}"
            f"  violations= {len(report.rule_violations)}  hammered= {len(report.hammered_rows)}"
        )
        print("  queue_histogram=", report.queue_histogram)
        print("  files:")
        for pth in files:
            print("   -", pth)

    return 0


if __name__ == "__main__":
    sys.exit(main())
