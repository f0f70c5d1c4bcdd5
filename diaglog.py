from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class LogOutcome(Enum):
    RECORDED = 0
    OVERFLOWED = 1  # terminal: the run must stop


@dataclass(frozen=True)
class RuleViolation:
    timestamp: int
    refresh_postponement: int

    def to_row(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class HammeredRow:
    row: int
    hammer: int
    timestamp: int

    def to_row(self) -> Dict[str, Any]:
        return asdict(self)


class BoundedLog(Generic[T]):
    """Append-only diagnostic log holding at most ``capacity`` records.

    An append that finds the log full is not stored; it flips the log into
    its terminal ``overflowed`` state and every later append reports
    ``OVERFLOWED`` as well.
    """

    def __init__(self, name: str, capacity: int = 20) -> None:
        self.name = str(name)
        self.capacity = int(capacity)
        self.records: List[T] = []
        self.overflowed: bool = False
        self.overflow_record: Optional[T] = None

    def __len__(self) -> int:
        return len(self.records)

    def append(self, record: T) -> LogOutcome:
        if self.overflowed:
            return LogOutcome.OVERFLOWED
        if len(self.records) >= self.capacity:
            self.overflowed = True
            self.overflow_record = record
            return LogOutcome.OVERFLOWED
        self.records.append(record)
        return LogOutcome.RECORDED
