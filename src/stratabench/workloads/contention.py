"""
Concurrency workloads for the thread-count sweep.

- ``contention/hot_key``: every worker read-modify-writes the same state
  cell through compare-and-swap. Conflicts surface as aborts.
- ``contention/independent_keys``: the same operation, one cell per worker.
  The abort rate should stay at zero.
- ``contention/read_only``: uniform kv gets over a populated keyspace.
"""

from __future__ import annotations

import random

from stratabench.core.config import WorkloadSettings
from stratabench.engine.base import StorageEngine
from stratabench.workloads.base import FunctionWorkload, Operation, Workload, register_workload
from stratabench.workloads.primitives import kv_key, kv_value

GROUP = "concurrency"

HOT_CELL = "cell:hot"
INDEPENDENT_CELLS = 1024


def _increment(engine: StorageEngine, cell: str) -> None:
    current = engine.state_read(cell)
    value, version = current if current is not None else (0, 0)
    engine.state_cas(cell, version, value + 1)


@register_workload("contention/hot_key", GROUP)
def hot_key(settings: WorkloadSettings) -> Workload:
    def setup(engine: StorageEngine) -> None:
        engine.state_set(HOT_CELL, 0)

    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        return lambda: _increment(engine, HOT_CELL)

    return FunctionWorkload(
        "contention/hot_key",
        make,
        setup=setup,
        description="CAS increments on a single shared cell",
        isolated=True,
    )


@register_workload("contention/independent_keys", GROUP)
def independent_keys(settings: WorkloadSettings) -> Workload:
    def setup(engine: StorageEngine) -> None:
        for i in range(INDEPENDENT_CELLS):
            engine.state_set(f"cell:ind:{i}", 0)

    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        cell = f"cell:ind:{worker_id % INDEPENDENT_CELLS}"
        return lambda: _increment(engine, cell)

    return FunctionWorkload(
        "contention/independent_keys",
        make,
        setup=setup,
        description="CAS increments, one cell per worker",
        isolated=True,
    )


@register_workload("contention/read_only", GROUP)
def read_only(settings: WorkloadSettings) -> Workload:
    value = kv_value(settings.value_size)
    keyspace = settings.keyspace_size

    def setup(engine: StorageEngine) -> None:
        for i in range(keyspace):
            engine.kv_put(kv_key(i), value)

    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        return lambda: engine.kv_get(kv_key(rng.randrange(keyspace)))

    return FunctionWorkload(
        "contention/read_only",
        make,
        setup=setup,
        parameters={"keyspace": keyspace, "value_size": settings.value_size},
        description="Uniform kv gets over a fixed keyspace",
    )


__all__ = ["GROUP", "HOT_CELL"]
