from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

import numpy as np


class Severity(Enum):
    ADJACENT = 1
    DISTANT = 2


@dataclass(frozen=True)
class AlarmEntry:
    timestamp: int  # activation count at detection; telemetry only
    aggressor_row: int
    severity: Severity

    def to_row(self) -> Dict[str, Any]:
        return {
            "timestamp": int(self.timestamp),
            "aggressor_row": int(self.aggressor_row),
            "severity": self.severity.name,
        }


class AlarmQueue:
    """On-chip FIFO of pending remediations.

    ``raise_alarm`` never blocks: once ``capacity`` entries are pending, new
    entries land in ``overflow`` instead (an attacker has outrun the queue).
    ``histogram[n]`` counts alarms that found ``n`` entries already queued;
    ``histogram[capacity]`` counts overflows.
    """

    def __init__(self, capacity: int = 8, *, logger: Optional[Any] = None) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be > 0, got {capacity}")
        self.capacity: int = int(capacity)
        self._q: Deque[AlarmEntry] = deque()
        self.overflow: List[AlarmEntry] = []
        self.histogram: np.ndarray = np.zeros(self.capacity + 1, dtype=np.int64)
        self.alarms_raised: int = 0
        self.enqueued_total: int = 0
        self._logger = logger

    def __len__(self) -> int:
        return len(self._q)

    def is_empty(self) -> bool:
        return not self._q

    def raise_alarm(self, row: int, severity: Severity, timestamp: int) -> AlarmEntry:
        entry = AlarmEntry(timestamp=int(timestamp), aggressor_row=int(row), severity=severity)
        self.alarms_raised += 1
        depth = len(self._q)
        if depth < self.capacity:
            self._q.append(entry)
            self.histogram[depth] += 1
            self.enqueued_total += 1
            if self._logger is not None and hasattr(self._logger, "debug"):
                self._logger.debug(
                    "alarm %s row=%d depth=%d t=%d", severity.name, entry.aggressor_row, depth, entry.timestamp
                )
        else:
            self.overflow.append(entry)
            self.histogram[self.capacity] += 1
            if len(self.overflow) == 1 and self._logger is not None and hasattr(self._logger, "warning"):
                self._logger.warning(
                    "alarm queue overflow: row=%d t=%d (further overflows are logged silently)",
                    entry.aggressor_row,
                    entry.timestamp,
                )
        return entry

    def dequeue(self) -> Optional[AlarmEntry]:
        if not self._q:
            return None
        return self._q.popleft()

    def pending(self) -> List[AlarmEntry]:
        return list(self._q)
