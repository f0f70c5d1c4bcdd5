from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, TypedDict

from alarmqueue import AlarmEntry, AlarmQueue, Severity
from bankstate import BankState
from diaglog import BoundedLog, HammeredRow, LogOutcome
from simcfg import REFRESH_ACTIONS, BankConfig

_ADJACENT_OFFSETS = (-1, 1)
_DISTANT_OFFSETS = (-2, 2)


class RefreshResult(TypedDict):
    alarm: Optional[AlarmEntry]
    remedial: int
    regular: int
    forfeited: int
    halted: bool


class RefreshScheduler:
    """Spends the 4 actions of each fine-granularity refresh interval.

    One pending alarm (oldest first) is serviced per interval and takes
    priority over round-robin regular refresh. Remediation targets that fall
    outside the bank are forfeited, not handed to regular refresh.
    """

    def __init__(
        self,
        cfg: BankConfig,
        state: BankState,
        queue: AlarmQueue,
        hammered: BoundedLog[HammeredRow],
        clock: Any,
        activate: Callable[[int], Optional[Severity]],
        *,
        logger: Optional[Any] = None,
    ) -> None:
        self.cfg = cfg
        self._state = state
        self._queue = queue
        self._hammered = hammered
        self._clock = clock
        self._activate = activate
        self._logger = logger
        self.refresh_cycle: int = 0
        self.normal_refresh_count: int = 0
        self.remedial_refresh_count: int = 0
        self.fine_refresh_count: int = 0
        self.forfeited_actions: int = 0

    # -----------------
    # Public API
    # -----------------
    def run_fine_refresh(self) -> RefreshResult:
        clk = self._clock
        interval = self.cfg.activations_per_fine_refresh_interval
        clk.refresh_postponement = max(0, clk.refresh_postponement - interval)
        self.fine_refresh_count += 1

        budget = REFRESH_ACTIONS
        remedial = 0
        forfeited = 0
        entry = self._queue.dequeue()
        if entry is not None:
            offsets: List[int] = list(_ADJACENT_OFFSETS)
            if entry.severity is Severity.DISTANT:
                offsets.extend(_DISTANT_OFFSETS)
            for off in offsets:
                budget -= 1
                if self.hammered_overflowed:
                    continue
                victim = entry.aggressor_row + off
                if not self._state.in_range(victim):
                    forfeited += 1
                    continue
                self.refresh_row(victim, False)
                remedial += 1
            if self._logger is not None and hasattr(self._logger, "debug"):
                self._logger.debug(
                    "remedial refresh %s row=%d refreshed=%d forfeited=%d",
                    entry.severity.name,
                    entry.aggressor_row,
                    remedial,
                    forfeited,
                )

        regular = 0
        for _ in range(budget):
            if self.hammered_overflowed:
                break
            self.refresh_row(self.refresh_cycle, self.cfg.enable_partial_zero_bit)
            self.refresh_cycle = (self.refresh_cycle + 1) % self._state.rows
            regular += 1

        self.remedial_refresh_count += remedial
        self.normal_refresh_count += regular
        self.forfeited_actions += forfeited
        # the interval costs its full length in activation time however the actions went
        clk.activation_count += REFRESH_ACTIONS
        clk.refresh_postponement += REFRESH_ACTIONS
        return RefreshResult(
            alarm=entry, remedial=remedial, regular=regular, forfeited=forfeited, halted=self.hammered_overflowed
        )

    def refresh_row(self, row: int, zero_one_bit: bool) -> None:
        st = self._state
        acc = st.hammer_of(row)
        if acc >= self.cfg.hammered_threshold:
            rec = HammeredRow(row=int(row), hammer=acc, timestamp=int(self._clock.activation_count))
            outcome = self._hammered.append(rec)
            if self._logger is not None and hasattr(self._logger, "warning"):
                self._logger.warning(
                    "hammered row=%d hammer=%d t=%d (%d/%d)%s",
                    rec.row,
                    rec.hammer,
                    rec.timestamp,
                    len(self._hammered),
                    self._hammered.capacity,
                    " -> halting" if outcome is LogOutcome.OVERFLOWED else "",
                )
        # a refresh is itself an activation and disturbs the row's own neighbors
        self._activate(row)
        if zero_one_bit:
            st.clear_counter_bit(row, self.cfg.partial_zero_bit)
        st.reset_hammer(row)

    @property
    def hammered_overflowed(self) -> bool:
        """True once the hammered-row log has overflowed.

        Only this halt cause stops refresh actions mid-interval. A
        rule-violation overflow is seen through ``Bank.halted`` and ends the
        run in the tick loop.
        """
        return self._hammered.overflowed

    def stats(self) -> Dict[str, int]:
        return {
            "normal_refresh_count": self.normal_refresh_count,
            "remedial_refresh_count": self.remedial_refresh_count,
            "fine_refresh_count": self.fine_refresh_count,
            "forfeited_actions": self.forfeited_actions,
            "refresh_cycle": self.refresh_cycle,
        }
