from __future__ import annotations

import unittest

from alarmqueue import AlarmQueue, Severity


class RecorderLogger:
    def __init__(self):
        self.records = []

    def debug(self, msg, *args):
        self.records.append(("debug", msg % args if args else msg))

    def warning(self, msg, *args):
        self.records.append(("warning", msg % args if args else msg))


class AlarmQueueTests(unittest.TestCase):
    def test_overflow_goes_to_log_and_last_histogram_bucket(self) -> None:
        q = AlarmQueue(8)
        for row in range(10):
            q.raise_alarm(row, Severity.ADJACENT, timestamp=row * 3)
        self.assertEqual(len(q), 8)
        self.assertEqual(q.histogram.tolist(), [1, 1, 1, 1, 1, 1, 1, 1, 2])
        self.assertEqual([e.aggressor_row for e in q.overflow], [8, 9])
        self.assertEqual(q.alarms_raised, q.enqueued_total + len(q.overflow))

    def test_dequeue_is_fifo_and_frees_a_slot(self) -> None:
        q = AlarmQueue(8)
        for row in range(8):
            q.raise_alarm(row, Severity.DISTANT if row % 2 else Severity.ADJACENT, timestamp=row)
        first = q.dequeue()
        assert first is not None
        self.assertEqual((first.aggressor_row, first.severity, first.timestamp), (0, Severity.ADJACENT, 0))
        q.raise_alarm(42, Severity.DISTANT, timestamp=99)
        self.assertEqual(q.histogram[7], 2)
        self.assertEqual(len(q.overflow), 0)
        self.assertEqual([e.aggressor_row for e in q.pending()], [1, 2, 3, 4, 5, 6, 7, 42])

    def test_dequeue_empty_returns_none(self) -> None:
        q = AlarmQueue(2)
        self.assertTrue(q.is_empty())
        self.assertIsNone(q.dequeue())

    def test_rejects_non_positive_capacity(self) -> None:
        with self.assertRaises(ValueError):
            AlarmQueue(0)


def test_overflow_warns_once() -> None:
    log = RecorderLogger()
    q = AlarmQueue(1, logger=log)
    for row in range(4):
        q.raise_alarm(row, Severity.ADJACENT, timestamp=row)
    warnings = [m for (lvl, m) in log.records if lvl == "warning"]
    assert len(warnings) == 1
    assert "row=1" in warnings[0]
    assert len(q.overflow) == 3


def test_entry_to_row_is_flat() -> None:
    q = AlarmQueue(1)
    e = q.raise_alarm(5, Severity.DISTANT, timestamp=17)
    assert e.to_row() == {"timestamp": 17, "aggressor_row": 5, "severity": "DISTANT"}


if __name__ == "__main__":
    unittest.main()
