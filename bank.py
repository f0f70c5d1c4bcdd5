from __future__ import annotations

from typing import Any, Optional

import numpy as np

from alarmqueue import AlarmQueue, Severity
from bankstate import BankState
from diaglog import BoundedLog, HammeredRow, RuleViolation
from refreshsched import RefreshScheduler
from simcfg import BankConfig
from simclock import Clock

HALT_RULE_VIOLATIONS = "rule_violations"
HALT_HAMMERED_ROWS = "hammered_rows"


class Bank:
    """One bank's complete mitigation state: counters, alarm queue, refresh
    scheduler, clock and bounded diagnostic logs.

    Instances share nothing, so several banks can be simulated side by side.
    """

    def __init__(
        self,
        cfg: BankConfig,
        *,
        rng: Optional[np.random.Generator] = None,
        logger: Optional[Any] = None,
    ) -> None:
        self.cfg = cfg
        self._logger = logger
        self.state = BankState(cfg, rng=rng)
        self.queue = AlarmQueue(cfg.alarm_queue_capacity, logger=logger)
        self.rule_violations: BoundedLog[RuleViolation] = BoundedLog(HALT_RULE_VIOLATIONS, cfg.diag_log_capacity)
        self.hammered_rows: BoundedLog[HammeredRow] = BoundedLog(HALT_HAMMERED_ROWS, cfg.diag_log_capacity)
        self.clock = Clock(cfg, self.rule_violations, logger=logger)
        self.scheduler = RefreshScheduler(
            cfg,
            self.state,
            self.queue,
            self.hammered_rows,
            self.clock,
            self.activate,
            logger=logger,
        )
        self.clock.bind(self.scheduler)

    def activate(self, row: int) -> Optional[Severity]:
        sev = self.state.activate(row)
        if sev is not None:
            self.queue.raise_alarm(row, sev, self.clock.activation_count)
        return sev

    def advance(self, delta: int, is_postponing: bool) -> float:
        return self.clock.advance(delta, is_postponing)

    @property
    def halted(self) -> bool:
        return self.rule_violations.overflowed or self.hammered_rows.overflowed

    @property
    def halt_reason(self) -> Optional[str]:
        if self.rule_violations.overflowed:
            return HALT_RULE_VIOLATIONS
        if self.hammered_rows.overflowed:
            return HALT_HAMMERED_ROWS
        return None
