"""
YCSB core workloads A-F.

Each workload loads ``keyspace_size`` records (``user0000000000`` ...) during
setup, then mixes reads, updates, inserts, scans and read-modify-writes in
the standard YCSB proportions. Keys are drawn from a scrambled Zipfian
(theta = 0.99), uniform or "latest" distribution.
"""

from __future__ import annotations

import itertools
import random
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

import numpy as np

from stratabench.core.config import WorkloadSettings
from stratabench.engine.base import StorageEngine
from stratabench.workloads.base import FunctionWorkload, Operation, Workload, register_workload

GROUP = "ycsb"

ZIPFIAN_THETA = 0.99

FNV_OFFSET_BASIS = 0xCBF29CE484222325
FNV_PRIME = 0x100000001B3
_U64 = (1 << 64) - 1


class Op(Enum):
    READ = "read"
    UPDATE = "update"
    INSERT = "insert"
    SCAN = "scan"
    READ_MODIFY_WRITE = "rmw"


class Distribution(Enum):
    ZIPFIAN = "zipfian"
    UNIFORM = "uniform"
    LATEST = "latest"


@dataclass(frozen=True)
class WorkloadSpec:
    label: str
    name: str
    description: str
    read: float = 0.0
    update: float = 0.0
    insert: float = 0.0
    scan: float = 0.0
    rmw: float = 0.0
    distribution: Distribution = Distribution.ZIPFIAN

    def choose(self, r: float) -> Op:
        """Map r in [0, 1) to an operation by cumulative proportion."""
        cumulative = 0.0
        for op, share in (
            (Op.READ, self.read),
            (Op.UPDATE, self.update),
            (Op.INSERT, self.insert),
            (Op.SCAN, self.scan),
        ):
            cumulative += share
            if r < cumulative:
                return op
        return Op.READ_MODIFY_WRITE

    def mix_label(self) -> str:
        """Short summary like ``"50r/50u, zipfian"``."""
        parts = [
            f"{int(round(share * 100))}{suffix}"
            for share, suffix in (
                (self.read, "r"),
                (self.update, "u"),
                (self.insert, "i"),
                (self.scan, "s"),
                (self.rmw, "rmw"),
            )
            if share > 0
        ]
        return f"{'/'.join(parts)}, {self.distribution.value}"


WORKLOAD_A = WorkloadSpec("a", "Update Heavy", "session store", read=0.50, update=0.50)
WORKLOAD_B = WorkloadSpec("b", "Read Mostly", "photo tagging", read=0.95, update=0.05)
WORKLOAD_C = WorkloadSpec("c", "Read Only", "user profile cache", read=1.0)
WORKLOAD_D = WorkloadSpec("d", "Read Latest", "user status", read=0.95, insert=0.05, distribution=Distribution.LATEST)
WORKLOAD_E = WorkloadSpec("e", "Short Ranges", "threaded conversations", insert=0.05, scan=0.95)
WORKLOAD_F = WorkloadSpec("f", "Read-Modify-Write", "user database", read=0.50, rmw=0.50)

ALL_WORKLOADS: Dict[str, WorkloadSpec] = {
    w.label: w for w in (WORKLOAD_A, WORKLOAD_B, WORKLOAD_C, WORKLOAD_D, WORKLOAD_E, WORKLOAD_F)
}


def workload_by_label(label: str) -> Optional[WorkloadSpec]:
    return ALL_WORKLOADS.get(label.lower())


# =============================================================================
# Key choosers
# =============================================================================

def ycsb_key(index: int) -> str:
    return f"user{index:010}"


def fnv1a_64(value: int) -> int:
    """FNV-1a over the 8 little-endian bytes of ``value``."""
    h = FNV_OFFSET_BASIS
    for _ in range(8):
        h ^= value & 0xFF
        h = (h * FNV_PRIME) & _U64
        value >>= 8
    return h


def zeta(n: int, theta: float, start: int = 0) -> float:
    """Sum of 1 / i**theta for i in (start, n]."""
    if n <= start:
        return 0.0
    return float(np.sum(1.0 / np.arange(start + 1, n + 1, dtype=np.float64) ** theta))


class ZipfianGenerator:
    """Scrambled Zipfian over [0, num_items); hot items spread by FNV-1a."""

    def __init__(self, num_items: int, theta: float = ZIPFIAN_THETA):
        if num_items <= 0:
            raise ValueError(f"num_items must be positive, got {num_items}")
        self.theta = theta
        self.alpha = 1.0 / (1.0 - theta)
        self.zeta_2 = zeta(2, theta)
        self.num_items = 0
        self.zeta_n = 0.0
        self.resize(num_items)

    def resize(self, num_items: int) -> None:
        # zeta(n) extends incrementally when the item count grows
        if num_items < self.num_items:
            self.zeta_n = zeta(num_items, self.theta)
        else:
            self.zeta_n += zeta(num_items, self.theta, start=self.num_items)
        self.num_items = num_items
        if num_items > 1:
            self.eta = (1.0 - (2.0 / num_items) ** (1.0 - self.theta)) / (1.0 - self.zeta_2 / self.zeta_n)
        else:
            self.eta = 0.0

    def raw(self, rng: random.Random) -> int:
        u = rng.random()
        uz = u * self.zeta_n
        if uz < 1.0:
            return 0
        if uz < 1.0 + 0.5 ** self.theta:
            return 1
        spread = self.num_items * (self.eta * u - self.eta + 1.0) ** self.alpha
        return min(int(spread), self.num_items - 1)

    def next(self, rng: random.Random) -> int:
        return fnv1a_64(self.raw(rng)) % self.num_items


class UniformGenerator:
    def __init__(self, num_items: int):
        self.num_items = num_items

    def next(self, rng: random.Random) -> int:
        return rng.randrange(self.num_items)


class LatestGenerator:
    """Zipfian over the distance from the most recently inserted key."""

    def __init__(self, record_count: int):
        self.max_key = record_count
        self.zipfian = ZipfianGenerator(record_count)

    def set_max_key(self, max_key: int) -> None:
        if max_key != self.max_key:
            self.max_key = max_key
            self.zipfian.resize(max(max_key, 1))

    def next(self, rng: random.Random) -> int:
        distance = self.zipfian.raw(rng)
        if distance >= self.max_key:
            return 0
        return self.max_key - 1 - distance


def key_chooser(distribution: Distribution, num_items: int):
    if distribution is Distribution.ZIPFIAN:
        return ZipfianGenerator(num_items)
    if distribution is Distribution.UNIFORM:
        return UniformGenerator(num_items)
    return LatestGenerator(num_items)


# =============================================================================
# Workloads
# =============================================================================

def ycsb_workload(spec: WorkloadSpec, settings: WorkloadSettings) -> Workload:
    record_count = settings.keyspace_size
    value = b"\x42" * settings.value_size
    update_value = b"\x43" * settings.value_size
    # shared so concurrent inserters never collide; restarted by every load phase
    insert_keys = [itertools.count(record_count)]

    def setup(engine: StorageEngine) -> None:
        insert_keys[0] = itertools.count(record_count)
        for i in range(record_count):
            engine.kv_put(ycsb_key(i), value)

    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        chooser = key_chooser(spec.distribution, record_count)

        def op():
            kind = spec.choose(rng.random())
            if kind is Op.INSERT:
                index = next(insert_keys[0])
                if isinstance(chooser, LatestGenerator):
                    chooser.set_max_key(index + 1)
                engine.kv_put(ycsb_key(index), value)
                return
            key = ycsb_key(chooser.next(rng))
            if kind is Op.READ:
                engine.kv_get(key)
            elif kind is Op.UPDATE:
                engine.kv_put(key, update_value)
            elif kind is Op.SCAN:
                engine.kv_list(key)
            else:
                engine.kv_get(key)
                engine.kv_put(key, update_value)

        return op

    return FunctionWorkload(
        f"ycsb/workload-{spec.label}",
        make,
        setup=setup,
        description=f"{spec.name} ({spec.mix_label()}) - {spec.description}",
        parameters={
            "workload": spec.label,
            "workload_name": spec.name,
            "mix": spec.mix_label(),
            "distribution": spec.distribution.value,
            "record_count": record_count,
            "value_size": settings.value_size,
        },
    )


def _register(spec: WorkloadSpec) -> None:
    @register_workload(f"ycsb/workload-{spec.label}", GROUP)
    def build(settings: WorkloadSettings) -> Workload:
        return ycsb_workload(spec, settings)


for _spec in ALL_WORKLOADS.values():
    _register(_spec)


__all__ = [
    "GROUP",
    "Op",
    "Distribution",
    "WorkloadSpec",
    "ALL_WORKLOADS",
    "workload_by_label",
    "ycsb_key",
    "fnv1a_64",
    "zeta",
    "ZipfianGenerator",
    "UniformGenerator",
    "LatestGenerator",
    "key_chooser",
    "ycsb_workload",
]
