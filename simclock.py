from __future__ import annotations

from typing import Any, Optional

from diaglog import BoundedLog, LogOutcome, RuleViolation
from simcfg import BankConfig


class Clock:
    """Simulated time in activation units plus the refresh backlog.

    ``refresh_postponement`` grows by one per elapsed activation slot and
    shrinks by one interval per fine refresh; it never goes below zero.
    """

    def __init__(
        self,
        cfg: BankConfig,
        violations: BoundedLog[RuleViolation],
        *,
        scheduler: Optional[Any] = None,
        logger: Optional[Any] = None,
    ) -> None:
        self.cfg = cfg
        self._violations = violations
        self._scheduler = scheduler
        self._logger = logger
        self.activation_count: int = 0
        self.refresh_postponement: int = 0

    def bind(self, scheduler: Any) -> None:
        self._scheduler = scheduler

    @property
    def interval(self) -> int:
        return self.cfg.activations_per_fine_refresh_interval

    @property
    def ceiling(self) -> int:
        return self.cfg.max_refresh_postponement * self.interval

    def ratio(self) -> float:
        return self.refresh_postponement / float(self.interval)

    def advance(self, delta: int, is_postponing: bool) -> float:
        """Advance by *delta* activation slots and return the postponement ratio.

        A postponing slot was spent on an activation instead of refresh and
        is checked against the postponement ceiling. A non-postponing slot
        runs exactly one fine refresh when at least one interval is due;
        a larger backlog is worked off over the following yielded slots.
        """
        self.activation_count += int(delta)
        self.refresh_postponement += int(delta)
        if is_postponing:
            if self.refresh_postponement > self.ceiling:
                rec = RuleViolation(
                    timestamp=int(self.activation_count),
                    refresh_postponement=int(self.refresh_postponement),
                )
                outcome = self._violations.append(rec)
                if self._logger is not None and hasattr(self._logger, "warning"):
                    self._logger.warning(
                        "refresh postponement %d exceeds ceiling %d at t=%d (%d/%d)%s",
                        rec.refresh_postponement,
                        self.ceiling,
                        rec.timestamp,
                        len(self._violations),
                        self._violations.capacity,
                        " -> halting" if outcome is LogOutcome.OVERFLOWED else "",
                    )
        elif self._scheduler is not None:
            if self.refresh_postponement >= self.interval and not self._scheduler.hammered_overflowed:
                self._scheduler.run_fine_refresh()
        return self.ratio()
