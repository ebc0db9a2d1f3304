"""
Fill-level workloads: kv latency as the keyspace grows.

A ``FillLevelWorkload`` is populated to ``level`` keys before warmup; the
runner measures one copy per configured level (``at_level``) and records
the level in the ``fill_level`` metric.
"""

from __future__ import annotations

import itertools
import random
from typing import Dict

from stratabench.core.config import WorkloadSettings
from stratabench.engine.base import StorageEngine
from stratabench.workloads.base import Operation, Scalar, Workload, register_workload
from stratabench.workloads.primitives import kv_key, kv_value

GROUP = "fill-level"

KINDS = ("kv_get", "kv_put")


class FillLevelWorkload(Workload):
    """kv get or put against a keyspace pre-filled to ``level`` keys."""

    isolated = True

    def __init__(self, kind: str, level: int, value_size: int):
        if kind not in KINDS:
            raise ValueError(f"unknown fill-level operation {kind!r}")
        if level <= 0:
            raise ValueError(f"fill level must be positive, got {level}")
        self.kind = kind
        self.level = level
        self.value_size = value_size
        self.name = f"fill/{kind}/{level}"
        self.description = f"{kind} with {level:,} keys resident"
        self._value = kv_value(value_size)

    def at_level(self, level: int) -> "FillLevelWorkload":
        return FillLevelWorkload(self.kind, level, self.value_size)

    def setup(self, engine: StorageEngine) -> None:
        for i in range(self.level):
            engine.kv_put(kv_key(i), self._value)

    def operation(self, engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        level = self.level
        if self.kind == "kv_get":
            return lambda: engine.kv_get(kv_key(rng.randrange(level)))

        # overwrite resident keys so the fill level stays put
        counter = itertools.count(worker_id)
        value = self._value
        return lambda: engine.kv_put(kv_key(next(counter) % level), value)

    def parameters(self) -> Dict[str, Scalar]:
        return {"operation": self.kind, "fill_level": self.level, "value_size": self.value_size}


@register_workload("fill/kv_get", GROUP)
def fill_kv_get(settings: WorkloadSettings) -> Workload:
    return FillLevelWorkload("kv_get", settings.fill_levels[0], settings.value_size)


@register_workload("fill/kv_put", GROUP)
def fill_kv_put(settings: WorkloadSettings) -> Workload:
    return FillLevelWorkload("kv_put", settings.fill_levels[0], settings.value_size)


__all__ = ["GROUP", "KINDS", "FillLevelWorkload"]
