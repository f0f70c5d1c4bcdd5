from __future__ import annotations

import unittest

from alarmqueue import Severity
from bank import HALT_HAMMERED_ROWS, Bank
from simcfg import BankConfig


def _bank(**kw) -> Bank:
    # thresholds far above anything these tests count to: no refresh-induced alarms
    base = dict(
        rows_per_bank=16,
        counter_init="zero",
        adjacent_alarm_threshold=1 << 14,
        distant_alarm_threshold=1 << 15,
        activations_per_fine_refresh_interval=10,
        max_refresh_postponement=2,
    )
    base.update(kw)
    return Bank(BankConfig(**base))


def _record_refreshes(bank: Bank) -> list:
    seen = []
    orig = bank.scheduler.refresh_row

    def _spy(row, zero_one_bit):
        seen.append(row)
        orig(row, zero_one_bit)

    bank.scheduler.refresh_row = _spy  # type: ignore[method-assign]
    return seen


class RemedialRefreshTests(unittest.TestCase):
    def test_adjacent_alarm_refreshes_neighbors_then_two_regular(self) -> None:
        bank = _bank()
        seen = _record_refreshes(bank)
        bank.queue.raise_alarm(5, Severity.ADJACENT, 0)
        res = bank.scheduler.run_fine_refresh()
        self.assertEqual(seen, [4, 6, 0, 1])
        self.assertEqual((res["remedial"], res["regular"], res["forfeited"]), (2, 2, 0))
        self.assertEqual(res["alarm"].aggressor_row, 5)
        self.assertEqual(bank.scheduler.refresh_cycle, 2)
        self.assertEqual(bank.scheduler.remedial_refresh_count, 2)
        self.assertEqual(bank.scheduler.normal_refresh_count, 2)
        self.assertEqual(bank.clock.activation_count, 4)
        self.assertEqual(bank.clock.refresh_postponement, 4)

    def test_distant_alarm_uses_all_four_actions(self) -> None:
        bank = _bank()
        seen = _record_refreshes(bank)
        bank.queue.raise_alarm(8, Severity.DISTANT, 0)
        res = bank.scheduler.run_fine_refresh()
        self.assertEqual(seen, [7, 9, 6, 10])
        self.assertEqual((res["remedial"], res["regular"]), (4, 0))
        self.assertEqual(bank.scheduler.refresh_cycle, 0)

    def test_out_of_range_neighbors_are_forfeited_not_reassigned(self) -> None:
        bank = _bank()
        seen = _record_refreshes(bank)
        bank.queue.raise_alarm(0, Severity.DISTANT, 0)
        res = bank.scheduler.run_fine_refresh()
        self.assertEqual(seen, [1, 2])
        self.assertEqual((res["remedial"], res["regular"], res["forfeited"]), (2, 0, 2))
        self.assertEqual(bank.scheduler.refresh_cycle, 0)

        seen.clear()
        bank.queue.raise_alarm(15, Severity.ADJACENT, 0)
        res = bank.scheduler.run_fine_refresh()
        self.assertEqual(seen, [14, 0, 1])
        self.assertEqual((res["remedial"], res["regular"], res["forfeited"]), (1, 2, 1))
        self.assertEqual(bank.clock.activation_count, 8)

    def test_one_alarm_per_interval_oldest_first(self) -> None:
        bank = _bank()
        bank.queue.raise_alarm(3, Severity.ADJACENT, 0)
        bank.queue.raise_alarm(9, Severity.ADJACENT, 1)
        first = bank.scheduler.run_fine_refresh()
        self.assertEqual(first["alarm"].aggressor_row, 3)
        self.assertEqual(len(bank.queue), 1)
        second = bank.scheduler.run_fine_refresh()
        self.assertEqual(second["alarm"].aggressor_row, 9)
        self.assertIsNone(bank.scheduler.run_fine_refresh()["alarm"])


class RegularRefreshTests(unittest.TestCase):
    def test_round_robin_visits_every_row_once_per_pass(self) -> None:
        bank = _bank()
        seen = _record_refreshes(bank)
        for _ in range(12):  # 48 actions = 3 passes over 16 rows
            bank.scheduler.run_fine_refresh()
        self.assertEqual(seen, list(range(16)) * 3)
        self.assertEqual(bank.state.counters.tolist(), [3] * 16)

    def test_postponement_is_floored_at_zero(self) -> None:
        bank = _bank()
        bank.clock.refresh_postponement = 3
        bank.scheduler.run_fine_refresh()
        self.assertEqual(bank.clock.refresh_postponement, 4)

    def test_partial_zero_bit_clears_on_regular_refresh_only(self) -> None:
        bank = _bank(enable_partial_zero_bit=True, partial_zero_bit=256)
        bank.state.counters[0] = 256
        bank.state.counters[4] = 256
        bank.queue.raise_alarm(5, Severity.ADJACENT, 0)
        bank.scheduler.run_fine_refresh()  # remedial 4, 6; regular 0, 1
        self.assertEqual(bank.state.counter(0), 1)
        self.assertEqual(bank.state.counter(4), 257)

    def test_partial_zero_bit_disabled_keeps_count(self) -> None:
        bank = _bank()
        bank.state.counters[0] = 256
        bank.scheduler.run_fine_refresh()
        self.assertEqual(bank.state.counter(0), 257)


class RefreshRowTests(unittest.TestCase):
    def test_refresh_row_resets_hammer_and_disturbs_neighbors(self) -> None:
        bank = _bank()
        bank.state.hammer[3] = 50
        bank.scheduler.refresh_row(3, False)
        self.assertEqual(bank.state.hammer_of(3), 0)
        self.assertEqual(bank.state.hammer.tolist()[1:6], [1, 8, 0, 8, 1])
        self.assertEqual(bank.state.counter(3), 1)

    def test_hammered_row_is_logged_with_timestamp(self) -> None:
        bank = _bank(mac=1, adjacent_disturb_multiplier=8)
        bank.clock.activation_count = 77
        bank.state.hammer[3] = 7
        bank.scheduler.refresh_row(3, False)
        self.assertEqual(len(bank.hammered_rows), 0)
        bank.state.hammer[3] = 8
        bank.scheduler.refresh_row(3, False)
        self.assertEqual([r.to_row() for r in bank.hammered_rows.records], [{"row": 3, "hammer": 8, "timestamp": 77}])
        self.assertFalse(bank.halted)

    def test_hammered_log_overflow_halts_and_stops_the_interval(self) -> None:
        bank = _bank(mac=1, diag_log_capacity=2)
        seen = _record_refreshes(bank)
        bank.state.hammer[0:4] = 100
        res = bank.scheduler.run_fine_refresh()
        self.assertTrue(res["halted"])
        self.assertTrue(bank.scheduler.hammered_overflowed)
        self.assertTrue(bank.halted)
        self.assertEqual(bank.halt_reason, HALT_HAMMERED_ROWS)
        self.assertEqual(len(bank.hammered_rows), 2)
        self.assertEqual(bank.hammered_rows.overflow_record.row, 2)
        # the overflowing refresh itself completes; nothing after it runs
        self.assertEqual(seen, [0, 1, 2])
        self.assertEqual(res["regular"], 3)


def test_refresh_activation_can_raise_alarm() -> None:
    bank = _bank(adjacent_alarm_threshold=1, distant_alarm_threshold=2)
    bank.scheduler.run_fine_refresh()
    # each of rows 0..3 went 0 -> 1 through the refresh self-activation
    assert [e.aggressor_row for e in bank.queue.pending()] == [0, 1, 2, 3]
    assert all(e.severity is Severity.ADJACENT for e in bank.queue.pending())


if __name__ == "__main__":
    unittest.main()
