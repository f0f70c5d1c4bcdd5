from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml


# Fixed by the fine-granularity refresh command; not configurable.
REFRESH_ACTIONS = 4
COUNTER_BITS = 16
COUNTER_MASK = (1 << COUNTER_BITS) - 1

_COUNTER_INIT_MODES = ("random", "zero")


def is_single_bit(value: int) -> bool:
    return value > 0 and (value & (value - 1)) == 0


def _flag(val: Any) -> bool:
    if isinstance(val, str):
        lowered = val.strip().lower()
        return lowered not in ("", "0", "false", "no", "off")
    return bool(val)


def load_cfg(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def ensure_min_cfg(cfg: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    c = dict(cfg or {})
    bank = dict(c.get("bank", {}) or {})
    bank.setdefault("rows_per_bank", 65536)
    bank.setdefault("counter_init", "random")
    c["bank"] = bank

    alarm = dict(c.get("alarm", {}) or {})
    alarm.setdefault("queue_capacity", 8)
    alarm.setdefault("adjacent_threshold", 512)
    alarm.setdefault("distant_threshold", 1024)
    c["alarm"] = alarm

    ref = dict(c.get("refresh", {}) or {})
    ref.setdefault("activations_per_fine_refresh_interval", 40)
    ref.setdefault("max_refresh_postponement", 8)
    ref.setdefault("enable_partial_zero_bit", False)
    ref.setdefault("partial_zero_bit", 256)
    c["refresh"] = ref

    ham = dict(c.get("hammer", {}) or {})
    ham.setdefault("mac", 1500)
    ham.setdefault("adjacent_disturb_multiplier", 8)
    c["hammer"] = ham

    diag = dict(c.get("diagnostics", {}) or {})
    diag.setdefault("log_capacity", 20)
    c["diagnostics"] = diag

    wl = dict(c.get("workload", {}) or {})
    wl.setdefault("kind", "default")
    wl.setdefault("postponement_threshold", 1.0)
    wl.setdefault("band_offset", 8)
    wl.setdefault("band_width", 16)
    wl.setdefault("background_period", 8)
    wl.setdefault("target_row", 1024)
    c["workload"] = wl

    sim = dict(c.get("simulation", {}) or {})
    sim.setdefault("ticks", 10_000_000)
    sim.setdefault("seed", 42)
    c["simulation"] = sim
    return c


def apply_overrides(
    cfg: Dict[str, Any],
    *,
    ticks: Optional[int] = None,
    seed: Optional[int] = None,
    postponement_threshold: Optional[float] = None,
    workload_kind: Optional[str] = None,
) -> Dict[str, Any]:
    c = dict(cfg)
    sim = dict(c.get("simulation", {}) or {})
    if ticks is not None:
        sim["ticks"] = int(ticks)
    if seed is not None:
        sim["seed"] = int(seed)
    c["simulation"] = sim
    wl = dict(c.get("workload", {}) or {})
    if postponement_threshold is not None:
        wl["postponement_threshold"] = float(postponement_threshold)
    if workload_kind is not None:
        wl["kind"] = str(workload_kind)
    c["workload"] = wl
    return c


@dataclass(frozen=True)
class BankConfig:
    """Per-run bank parameters. Immutable once built; see ``from_cfg``."""

    rows_per_bank: int = 65536
    alarm_queue_capacity: int = 8
    activations_per_fine_refresh_interval: int = 40
    max_refresh_postponement: int = 8
    mac: int = 1500
    adjacent_disturb_multiplier: int = 8
    adjacent_alarm_threshold: int = 512
    distant_alarm_threshold: int = 1024
    enable_partial_zero_bit: bool = False
    partial_zero_bit: int = 256
    diag_log_capacity: int = 20
    counter_init: str = "random"
    seed: int = 42

    def __post_init__(self) -> None:
        if self.rows_per_bank <= 0:
            raise ValueError(f"rows_per_bank must be > 0, got {self.rows_per_bank}")
        if self.alarm_queue_capacity <= 0:
            raise ValueError(f"alarm_queue_capacity must be > 0, got {self.alarm_queue_capacity}")
        if self.activations_per_fine_refresh_interval <= REFRESH_ACTIONS:
            # each refresh interval adds REFRESH_ACTIONS back to the backlog
            raise ValueError(
                "activations_per_fine_refresh_interval must be > "
                f"{REFRESH_ACTIONS}, got {self.activations_per_fine_refresh_interval}"
            )
        if self.max_refresh_postponement < 0:
            raise ValueError(f"max_refresh_postponement must be >= 0, got {self.max_refresh_postponement}")
        if self.mac < 0:
            raise ValueError(f"mac must be >= 0, got {self.mac}")
        if self.adjacent_disturb_multiplier < 0:
            raise ValueError(
                f"adjacent_disturb_multiplier must be >= 0, got {self.adjacent_disturb_multiplier}"
            )
        for name in ("adjacent_alarm_threshold", "distant_alarm_threshold", "partial_zero_bit"):
            v = getattr(self, name)
            if not is_single_bit(v) or v > COUNTER_MASK:
                raise ValueError(f"{name} must be a single power-of-two bit of a 16-bit counter, got {v}")
        if self.diag_log_capacity < 0:
            raise ValueError(f"diag_log_capacity must be >= 0, got {self.diag_log_capacity}")
        if self.counter_init not in _COUNTER_INIT_MODES:
            raise ValueError(f"counter_init must be one of {_COUNTER_INIT_MODES}, got {self.counter_init!r}")

    @property
    def alarm_mask(self) -> int:
        return self.distant_alarm_threshold | self.adjacent_alarm_threshold

    @property
    def hammered_threshold(self) -> int:
        return self.mac * self.adjacent_disturb_multiplier

    @classmethod
    def from_cfg(cls, cfg: Dict[str, Any]) -> "BankConfig":
        c = ensure_min_cfg(cfg)
        bank, alarm, ref = c["bank"], c["alarm"], c["refresh"]
        ham, diag, sim = c["hammer"], c["diagnostics"], c["simulation"]
        return cls(
            rows_per_bank=int(bank["rows_per_bank"]),
            alarm_queue_capacity=int(alarm["queue_capacity"]),
            activations_per_fine_refresh_interval=int(ref["activations_per_fine_refresh_interval"]),
            max_refresh_postponement=int(ref["max_refresh_postponement"]),
            mac=int(ham["mac"]),
            adjacent_disturb_multiplier=int(ham["adjacent_disturb_multiplier"]),
            adjacent_alarm_threshold=int(alarm["adjacent_threshold"]),
            distant_alarm_threshold=int(alarm["distant_threshold"]),
            enable_partial_zero_bit=_flag(ref["enable_partial_zero_bit"]),
            partial_zero_bit=int(ref["partial_zero_bit"]),
            diag_log_capacity=int(diag["log_capacity"]),
            counter_init=str(bank["counter_init"]),
            seed=int(sim["seed"]),
        )
