from __future__ import annotations

import random

import pytest

from workload import (
    BandedAttackWorkload,
    DoubleSidedWorkload,
    SingleRowWorkload,
    make_workload,
)


def test_banded_workload_concentrates_seven_of_eight() -> None:
    wl = BandedAttackWorkload(65536, random.Random(1))
    rows = [wl.decide(0.0)[1] for _ in range(800)]
    banded = [r for i, r in enumerate(rows) if (i + 1) % 8 != 0]
    assert len(banded) == 700
    assert all(8 <= r < 24 for r in banded)
    background = [r for i, r in enumerate(rows) if (i + 1) % 8 == 0]
    # background traffic is unconstrained, so some of it lands outside the band
    assert any(not 8 <= r < 24 for r in background)


class _FixedRandom(random.Random):
    def randrange(self, *args, **kwargs):
        return 1000


def test_background_slot_follows_ticks_across_yields() -> None:
    wl = BandedAttackWorkload(4096, _FixedRandom(0), postponement_threshold=1.0)
    # ticks 4 and 12 yield to refresh
    ratios = [0.0, 0.0, 0.0, 1.5, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 2.0, 0.0, 0.0, 0.0, 0.0]
    rows = [wl.decide(r)[1] for r in ratios]
    band = (1000 & 15) + 8
    assert rows == [band, band, band, None, band, band, band, 1000] * 2
    assert wl.ticks == 16
    assert wl.issued == 14


def test_yield_on_background_tick_skips_that_slot() -> None:
    wl = BandedAttackWorkload(4096, _FixedRandom(0))
    rows = [wl.decide(1.0 if i == 7 else 0.0)[1] for i in range(9)]
    assert rows[7] is None
    assert 1000 not in rows
    assert rows[8] == (1000 & 15) + 8


def test_workload_yields_at_threshold() -> None:
    wl = BandedAttackWorkload(1024, random.Random(0), postponement_threshold=1.0)
    assert wl.decide(1.0) == (False, None)
    assert wl.decide(3.5) == (False, None)
    assert wl.issued == 0
    consumed, row = wl.decide(0.99)
    assert consumed and row is not None
    assert wl.issued == 1


def test_same_seed_same_sequence() -> None:
    a = BandedAttackWorkload(4096, random.Random(5))
    b = BandedAttackWorkload(4096, random.Random(5))
    assert [a.decide(0.0) for _ in range(64)] == [b.decide(0.0) for _ in range(64)]


def test_single_and_double_sided() -> None:
    s = SingleRowWorkload(64, 10)
    assert [s.decide(0.0) for _ in range(3)] == [(True, 10)] * 3
    d = DoubleSidedWorkload(64, 10)
    assert [d.decide(0.0)[1] for _ in range(4)] == [9, 11, 9, 11]
    assert d.decide(2.0) == (False, None)
    assert d.decide(0.0)[1] == 9


@pytest.mark.parametrize(
    "factory",
    [
        lambda: BandedAttackWorkload(64, random.Random(0), band_width=12),
        lambda: BandedAttackWorkload(16, random.Random(0), band_offset=8, band_width=16),
        lambda: BandedAttackWorkload(64, random.Random(0), background_period=0),
        lambda: SingleRowWorkload(64, 64),
        lambda: DoubleSidedWorkload(64, 0),
        lambda: make_workload({"workload": {"kind": "nope"}}, 64),
    ],
)
def test_invalid_workloads_rejected(factory) -> None:
    with pytest.raises(ValueError):
        factory()


def test_make_workload_kinds() -> None:
    assert isinstance(make_workload({}, 1024), BandedAttackWorkload)
    wl = make_workload({"workload": {"kind": "SINGLE", "target_row": 7, "postponement_threshold": 2.0}}, 1024)
    assert isinstance(wl, SingleRowWorkload)
    assert wl.target_row == 7
    assert wl.postponement_threshold == 2.0
    assert isinstance(make_workload({"workload": {"kind": "double", "target_row": 7}}, 1024), DoubleSidedWorkload)
