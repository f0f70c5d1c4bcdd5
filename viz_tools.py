# viz_tools.py
# Tabular + plot views over a finished run
# - report_to_frames: RunReport -> pandas DataFrames (summary, histogram, logs)
# - hammer_frame: per-row counter/hammer snapshot of a bank
# - plot_queue_histogram / plot_hammer_profile: write PNG files
#
# Requirements: pandas, matplotlib

from __future__ import annotations
from typing import Dict, Optional, Tuple
import os
import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from bank import Bank
from telemetry import RunReport

OVERFLOW_COLOR = "#e74c3c"  # red
QUEUE_COLOR = "#3498db"     # blue
HAMMER_COLOR = "#9b59b6"    # purple


def report_to_frames(report: RunReport) -> Dict[str, pd.DataFrame]:
    frames = {
        "summary": pd.DataFrame([report.summary_row()]),
        "queue_histogram": pd.DataFrame(report.histogram_rows()),
        "rule_violations": pd.DataFrame(report.rule_violations, columns=["timestamp", "refresh_postponement"]),
        "overflow_events": pd.DataFrame(report.overflow_events, columns=["timestamp", "aggressor_row", "severity"]),
        "hammered_rows": pd.DataFrame(report.hammered_rows, columns=["row", "hammer", "timestamp"]),
    }
    h = frames["queue_histogram"]
    total = int(h["count"].sum())
    h["share"] = (h["count"] / total) if total else 0.0
    return frames


def hammer_frame(bank: Bank, rows: Optional[Tuple[int, int]] = None) -> pd.DataFrame:
    """Per-row snapshot; ``rows=(lo, hi)`` limits to a half-open row window."""
    lo, hi = rows if rows is not None else (0, bank.state.rows)
    idx = np.arange(lo, hi)
    return pd.DataFrame(
        {
            "row": idx,
            "counter": bank.state.counters[lo:hi].astype(np.int64),
            "hammer": bank.state.hammer[lo:hi].astype(np.int64),
        }
    )


def _save(fig, out_path: str) -> str:
    d = os.path.dirname(out_path)
    if d:
        os.makedirs(d, exist_ok=True)
    fig.tight_layout()
    fig.savefig(out_path)
    plt.close(fig)
    return out_path


def plot_queue_histogram(report: RunReport, out_path: str,
                         figsize: Tuple[float, float] = (8, 4),
                         title: Optional[str] = None) -> str:
    """
    Bar chart of queue depth seen by each alarm; the last bar is the overflow bucket.
    """
    h = pd.DataFrame(report.histogram_rows())
    colors = [QUEUE_COLOR] * (len(h) - 1) + [OVERFLOW_COLOR]
    fig, ax = plt.subplots(figsize=figsize)
    ax.bar(h["queue_length"], h["count"], color=colors)
    ax.set_xlabel("queue length at alarm")
    ax.set_ylabel("alarms")
    ax.set_title(title or f"Alarm queue occupancy ({report.alarms_raised} alarms)")
    ax.grid(axis="y", linestyle="--", alpha=0.35)
    return _save(fig, out_path)


def plot_hammer_profile(bank: Bank, out_path: str,
                        rows: Optional[Tuple[int, int]] = None,
                        figsize: Tuple[float, float] = (12, 4),
                        title: Optional[str] = None) -> str:
    """
    Cumulative hammer per row since last refresh, with the hammered threshold as a dashed line.
    When ``rows`` is None the window is centered on the most disturbed row.
    """
    if rows is None:
        top = int(np.argmax(bank.state.hammer)) if bank.state.rows else 0
        rows = (max(0, top - 64), min(bank.state.rows, top + 64))
    df = hammer_frame(bank, rows)
    fig, ax = plt.subplots(figsize=figsize)
    ax.plot(df["row"], df["hammer"], color=HAMMER_COLOR, linewidth=1.0)
    ax.axhline(bank.cfg.hammered_threshold, color=OVERFLOW_COLOR, linestyle="--", linewidth=1.0,
               label="MAC x adjacent multiplier")
    ax.set_xlabel("row")
    ax.set_ylabel("cumulative hammer")
    ax.set_title(title or f"Hammer profile rows [{rows[0]}, {rows[1]})")
    ax.legend(loc="upper right", frameon=False)
    return _save(fig, out_path)
