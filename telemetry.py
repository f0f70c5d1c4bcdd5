from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from bank import Bank

HISTOGRAM_OVERFLOW_LABEL = "overflow"


@dataclass
class RunReport:
    """Everything a run exposes for reporting. Not part of the modeled hardware."""

    activation_count: int
    normal_refresh_count: int
    remedial_refresh_count: int
    fine_refresh_count: int
    forfeited_actions: int
    alarms_raised: int
    alarms_enqueued: int
    queue_histogram: List[int]
    rule_violations: List[Dict[str, Any]] = field(default_factory=list)
    overflow_events: List[Dict[str, Any]] = field(default_factory=list)
    hammered_rows: List[Dict[str, Any]] = field(default_factory=list)
    halted: bool = False
    halt_reason: Optional[str] = None
    max_hammer: int = 0
    max_hammer_row: int = 0

    @classmethod
    def from_bank(cls, bank: Bank) -> "RunReport":
        sched = bank.scheduler
        hammer = bank.state.hammer
        top = int(np.argmax(hammer)) if hammer.size else 0
        return cls(
            activation_count=int(bank.clock.activation_count),
            normal_refresh_count=int(sched.normal_refresh_count),
            remedial_refresh_count=int(sched.remedial_refresh_count),
            fine_refresh_count=int(sched.fine_refresh_count),
            forfeited_actions=int(sched.forfeited_actions),
            alarms_raised=int(bank.queue.alarms_raised),
            alarms_enqueued=int(bank.queue.enqueued_total),
            queue_histogram=[int(v) for v in bank.queue.histogram.tolist()],
            rule_violations=[r.to_row() for r in bank.rule_violations.records],
            overflow_events=[e.to_row() for e in bank.queue.overflow],
            hammered_rows=[r.to_row() for r in bank.hammered_rows.records],
            halted=bank.halted,
            halt_reason=bank.halt_reason,
            max_hammer=int(hammer[top]) if hammer.size else 0,
            max_hammer_row=top,
        )

    def summary_row(self) -> Dict[str, Any]:
        return {
            "activation_count": self.activation_count,
            "normal_refresh_count": self.normal_refresh_count,
            "remedial_refresh_count": self.remedial_refresh_count,
            "fine_refresh_count": self.fine_refresh_count,
            "forfeited_actions": self.forfeited_actions,
            "alarms_raised": self.alarms_raised,
            "alarms_enqueued": self.alarms_enqueued,
            "alarms_overflowed": len(self.overflow_events),
            "rule_violations": len(self.rule_violations),
            "hammered_rows": len(self.hammered_rows),
            "halted": int(self.halted),
            "halt_reason": self.halt_reason or "",
            "max_hammer": self.max_hammer,
            "max_hammer_row": self.max_hammer_row,
        }

    def histogram_rows(self) -> List[Dict[str, Any]]:
        cap = len(self.queue_histogram) - 1
        return [
            {"queue_length": (str(i) if i < cap else HISTOGRAM_OVERFLOW_LABEL), "count": int(v)}
            for i, v in enumerate(self.queue_histogram)
        ]

    def to_dict(self) -> Dict[str, Any]:
        out = self.summary_row()
        out["queue_histogram"] = list(self.queue_histogram)
        out["rule_violation_log"] = list(self.rule_violations)
        out["overflow_log"] = list(self.overflow_events)
        out["hammered_row_log"] = list(self.hammered_rows)
        return out
