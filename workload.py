from __future__ import annotations

import random
from typing import Any, Dict, Optional, Tuple

from simcfg import ensure_min_cfg, is_single_bit

Decision = Tuple[bool, Optional[int]]


class Workload:
    """Activation source for the tick loop.

    ``decide(postponement_ratio)`` returns ``(True, row)`` to spend the tick
    on activating *row*, or ``(False, None)`` to yield it to refresh.
    Strategies only read the ratio; they never touch bank state.
    """

    def __init__(self, rows: int, *, postponement_threshold: float = 1.0) -> None:
        if rows <= 0:
            raise ValueError(f"rows must be > 0, got {rows}")
        self.rows = int(rows)
        self.postponement_threshold = float(postponement_threshold)
        self.issued: int = 0
        # every decide() call, yielded or not
        self.ticks: int = 0

    def should_yield(self, postponement_ratio: float) -> bool:
        return postponement_ratio >= self.postponement_threshold

    def decide(self, postponement_ratio: float) -> Decision:
        self.ticks += 1
        if self.should_yield(postponement_ratio):
            return (False, None)
        row = self.next_row()
        self.issued += 1
        return (True, row)

    def next_row(self) -> int:
        """Row for the current tick; subclasses must override."""
        raise NotImplementedError


class BandedAttackWorkload(Workload):
    """Sustained attacker concentrated in a narrow band, plus background.

    The phase follows ticks, yielded ones included: the activation on every
    ``background_period``-th tick targets a uniformly random row, and every
    other activation is folded into ``band_width`` rows starting at
    ``band_offset``. A yield on a background tick skips that background slot.
    """

    def __init__(
        self,
        rows: int,
        rng: random.Random,
        *,
        postponement_threshold: float = 1.0,
        band_offset: int = 8,
        band_width: int = 16,
        background_period: int = 8,
    ) -> None:
        super().__init__(rows, postponement_threshold=postponement_threshold)
        if not is_single_bit(int(band_width)):
            raise ValueError(f"band_width must be a power of two, got {band_width}")
        if band_offset < 0 or band_offset + band_width > rows:
            raise ValueError(f"band [{band_offset}, {band_offset + band_width}) outside bank of {rows} rows")
        if background_period <= 0:
            raise ValueError(f"background_period must be > 0, got {background_period}")
        self._rng = rng
        self.band_offset = int(band_offset)
        self.band_mask = int(band_width) - 1
        self.background_period = int(background_period)

    def next_row(self) -> int:
        row = self._rng.randrange(self.rows)
        if self.ticks % self.background_period != 0:
            row = (row & self.band_mask) + self.band_offset
        return row


class SingleRowWorkload(Workload):
    def __init__(self, rows: int, target_row: int, *, postponement_threshold: float = 1.0) -> None:
        super().__init__(rows, postponement_threshold=postponement_threshold)
        if not 0 <= target_row < rows:
            raise ValueError(f"target_row {target_row} outside bank of {rows} rows")
        self.target_row = int(target_row)

    def next_row(self) -> int:
        return self.target_row


class DoubleSidedWorkload(Workload):
    """Alternates the two rows sandwiching ``target_row``."""

    def __init__(self, rows: int, target_row: int, *, postponement_threshold: float = 1.0) -> None:
        super().__init__(rows, postponement_threshold=postponement_threshold)
        if not 1 <= target_row < rows - 1:
            raise ValueError(f"target_row {target_row} needs both neighbors inside bank of {rows} rows")
        self.target_row = int(target_row)

    def next_row(self) -> int:
        return self.target_row - 1 if self.issued % 2 == 0 else self.target_row + 1


WORKLOAD_KINDS = ("default", "single", "double")


def make_workload(cfg: Dict[str, Any], rows: int, rng: Optional[random.Random] = None) -> Workload:
    c = ensure_min_cfg(cfg)
    wl = c["workload"]
    kind = str(wl["kind"]).lower()
    threshold = float(wl["postponement_threshold"])
    if kind == "default":
        if rng is None:
            rng = random.Random(int(c["simulation"]["seed"]))
        return BandedAttackWorkload(
            rows,
            rng,
            postponement_threshold=threshold,
            band_offset=int(wl["band_offset"]),
            band_width=int(wl["band_width"]),
            background_period=int(wl["background_period"]),
        )
    if kind == "single":
        return SingleRowWorkload(rows, int(wl["target_row"]), postponement_threshold=threshold)
    if kind == "double":
        return DoubleSidedWorkload(rows, int(wl["target_row"]), postponement_threshold=threshold)
    raise ValueError(f"unknown workload kind {kind!r}; expected one of {WORKLOAD_KINDS}")
