from __future__ import annotations

import random
from typing import Any, Dict, Optional, Tuple, TypedDict

import numpy as np

from bank import Bank
from simcfg import BankConfig, ensure_min_cfg
from workload import Workload, make_workload


class SimulationResult(TypedDict):
    status: str  # "completed" | "aborted"
    ticks_requested: int
    ticks_executed: int
    halt_reason: Optional[str]
    final_ratio: float
    max_ratio: float


def run_ticks(bank: Bank, workload: Workload, ticks: int) -> SimulationResult:
    """Drive *bank* with *workload* for up to *ticks* activation slots.

    Each tick either activates one row (postponing refresh) or yields to
    refresh. The loop ends early only when a bounded diagnostic log of the
    bank overflows.
    """
    ratio = bank.clock.ratio()
    max_ratio = ratio
    executed = 0
    for _ in range(int(ticks)):
        consumed, row = workload.decide(ratio)
        if consumed:
            if row is None:
                raise ValueError("workload consumed a tick without naming a row")
            bank.activate(row)
        ratio = bank.advance(1, consumed)
        executed += 1
        if ratio > max_ratio:
            max_ratio = ratio
        if bank.halted:
            break
    return SimulationResult(
        status="aborted" if bank.halted else "completed",
        ticks_requested=int(ticks),
        ticks_executed=executed,
        halt_reason=bank.halt_reason,
        final_ratio=float(ratio),
        max_ratio=float(max_ratio),
    )


def run_once(
    cfg: Dict[str, Any],
    *,
    ticks: Optional[int] = None,
    logger: Optional[Any] = None,
    workload: Optional[Workload] = None,
) -> Tuple[Bank, SimulationResult]:
    c = ensure_min_cfg(cfg)
    bank_cfg = BankConfig.from_cfg(c)
    seed = bank_cfg.seed
    bank = Bank(bank_cfg, rng=np.random.default_rng(seed), logger=logger)
    if workload is None:
        workload = make_workload(c, bank_cfg.rows_per_bank, rng=random.Random(seed))
    n = int(c["simulation"]["ticks"]) if ticks is None else int(ticks)
    res = run_ticks(bank, workload, n)
    if res["status"] == "aborted" and logger is not None and hasattr(logger, "warning"):
        logger.warning("run aborted after %d ticks: %s log overflowed", res["ticks_executed"], res["halt_reason"])
    return bank, res
