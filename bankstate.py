from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from alarmqueue import Severity
from simcfg import COUNTER_MASK, BankConfig

HAMMER_MASK = 0xFFFFFFFF


def bit_toggles(before: int, after: int, mask: int) -> int:
    """Return the bits of *mask* whose value differs between *before* and *after*.

    This is a toggle detector, not a magnitude comparison. A counter bit of
    weight 2**k flips every 2**k increments (0->1 and later 1->0, including
    across the 16-bit wrap), so an alarm bit reported here fires again on
    every periodic flip, not only the first time the counter passes it.
    """
    return (before & mask) ^ (after & mask)


class BankState:
    """Per-row counters and disturbance accumulators of one bank.

    counters : 16-bit activation counters (wrap silently at 65536)
    hammer   : 32-bit weighted disturbance since the row's last refresh
               (simulation-only; real hardware has no such array)
    current_row : last row activated
    """

    def __init__(self, cfg: BankConfig, *, rng: Optional[np.random.Generator] = None) -> None:
        self.cfg = cfg
        self.rows: int = int(cfg.rows_per_bank)
        if cfg.counter_init == "random":
            gen = rng if rng is not None else np.random.default_rng(cfg.seed)
            self.counters: np.ndarray = gen.integers(0, COUNTER_MASK + 1, size=self.rows, dtype=np.uint16)
        else:
            self.counters = np.zeros(self.rows, dtype=np.uint16)
        self.hammer: np.ndarray = np.zeros(self.rows, dtype=np.uint32)
        self.current_row: int = 0
        self._mask: int = cfg.alarm_mask
        self._distant: int = int(cfg.distant_alarm_threshold)
        self._adjacent: int = int(cfg.adjacent_alarm_threshold)
        adj = int(cfg.adjacent_disturb_multiplier)
        self._disturb: Tuple[Tuple[int, int], ...] = ((-2, 1), (-1, adj), (1, adj), (2, 1))

    def in_range(self, row: int) -> bool:
        return 0 <= row < self.rows

    def activate(self, row: int) -> Optional[Severity]:
        """Count one activation of *row*; return the alarm it raises, if any.

        Distant wins over adjacent when both bits toggle on the same
        increment; at most one alarm per activation.
        """
        if not self.in_range(row):
            raise IndexError(f"row {row} outside bank of {self.rows} rows")
        self.current_row = row
        before = int(self.counters[row])
        after = (before + 1) & COUNTER_MASK
        self.counters[row] = after
        for off, weight in self._disturb:
            n = row + off
            if 0 <= n < self.rows:
                self.hammer[n] = (int(self.hammer[n]) + weight) & HAMMER_MASK
        toggled = bit_toggles(before, after, self._mask)
        if toggled & self._distant:
            return Severity.DISTANT
        if toggled & self._adjacent:
            return Severity.ADJACENT
        return None

    def clear_counter_bit(self, row: int, bit: int) -> None:
        self.counters[row] = int(self.counters[row]) & ~int(bit) & COUNTER_MASK

    def reset_hammer(self, row: int) -> None:
        self.hammer[row] = 0

    def counter(self, row: int) -> int:
        return int(self.counters[row])

    def hammer_of(self, row: int) -> int:
        return int(self.hammer[row])
