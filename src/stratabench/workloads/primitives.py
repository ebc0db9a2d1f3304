"""
Per-primitive latency workloads.

One workload per engine entry point: kv, state cells, events, JSON
documents, vectors and branches. Identities read
``<primitive>/<op>/<durability>``. Workers write to their own key ranges so
these workloads stay contention free when run with several threads.
"""

from __future__ import annotations

import itertools
import random

import numpy as np

from stratabench.core.config import WorkloadSettings
from stratabench.engine.base import StorageEngine
from stratabench.workloads.base import FunctionWorkload, Operation, Workload, register_workload

GROUP = "latency"

PRELOAD_COUNT = 1_000
LIST_PREFIX_COUNT = 1_000
EVENT_TYPES = 10
VECTOR_DIM = 128
VECTOR_COLLECTION = "bench"
VECTOR_POOL = 256


def kv_key(i: int, prefix: str = "key:") -> str:
    return f"{prefix}{i:010}"


def kv_value(size: int) -> bytes:
    return b"v" * size


# =============================================================================
# Key-value
# =============================================================================

@register_workload("kv/put", GROUP)
def kv_put(settings: WorkloadSettings) -> Workload:
    value = kv_value(settings.value_size)

    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        counter = itertools.count()
        prefix = f"put:{worker_id}:"

        def op():
            engine.kv_put(kv_key(next(counter) % settings.keyspace_size, prefix), value)

        return op

    return FunctionWorkload("kv/put", make, parameters={"value_size": settings.value_size})


@register_workload("kv/get", GROUP)
def kv_get(settings: WorkloadSettings) -> Workload:
    value = kv_value(settings.value_size)

    def setup(engine: StorageEngine) -> None:
        for i in range(PRELOAD_COUNT):
            engine.kv_put(kv_key(i), value)

    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        counter = itertools.count()

        def op():
            return engine.kv_get(kv_key(next(counter) % PRELOAD_COUNT))

        return op

    return FunctionWorkload(
        "kv/get", make, setup=setup, parameters={"value_size": settings.value_size, "preload": PRELOAD_COUNT}
    )


@register_workload("kv/delete", GROUP)
def kv_delete(settings: WorkloadSettings) -> Workload:
    value = kv_value(settings.value_size)

    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        counter = itertools.count()
        prefix = f"del:{worker_id}:"

        def op():
            # put + delete, so every delete removes a live key
            key = kv_key(next(counter), prefix)
            engine.kv_put(key, value)
            engine.kv_delete(key)

        return op

    return FunctionWorkload("kv/delete", make, parameters={"value_size": settings.value_size})


@register_workload("kv/list_prefix", GROUP)
def kv_list_prefix(settings: WorkloadSettings) -> Workload:
    value = kv_value(settings.value_size)

    def setup(engine: StorageEngine) -> None:
        for i in range(LIST_PREFIX_COUNT):
            engine.kv_put(kv_key(i, "alpha:"), value)
            engine.kv_put(kv_key(i, "beta:"), value)

    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        return lambda: engine.kv_list("alpha:")

    return FunctionWorkload(
        "kv/list_prefix", make, setup=setup, parameters={"keys_per_prefix": LIST_PREFIX_COUNT}
    )


# =============================================================================
# State cells
# =============================================================================

@register_workload("state/set", GROUP)
def state_set(settings: WorkloadSettings) -> Workload:
    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        counter = itertools.count()
        cell = f"cell:set:{worker_id}"
        return lambda: engine.state_set(cell, next(counter))

    return FunctionWorkload("state/set", make)


@register_workload("state/read", GROUP)
def state_read(settings: WorkloadSettings) -> Workload:
    def setup(engine: StorageEngine) -> None:
        engine.state_set("cell:read", 42)

    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        return lambda: engine.state_read("cell:read")

    return FunctionWorkload("state/read", make, setup=setup)


@register_workload("state/cas", GROUP)
def state_cas(settings: WorkloadSettings) -> Workload:
    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        cell = f"cell:cas:{worker_id}"
        version = [engine.state_set(cell, 0)]
        counter = itertools.count(1)

        def op():
            version[0] = engine.state_cas(cell, version[0], next(counter))

        return op

    return FunctionWorkload("state/cas", make)


# =============================================================================
# Events
# =============================================================================

@register_workload("event/append", GROUP)
def event_append(settings: WorkloadSettings) -> Workload:
    payload = kv_value(settings.value_size)

    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        return lambda: engine.event_append("bench", payload)

    return FunctionWorkload("event/append", make, parameters={"payload_size": settings.value_size})


def _populate_events(engine: StorageEngine, payload: bytes) -> None:
    for i in range(PRELOAD_COUNT):
        engine.event_append(f"type-{i % EVENT_TYPES}", payload)


@register_workload("event/read", GROUP)
def event_read(settings: WorkloadSettings) -> Workload:
    payload = kv_value(settings.value_size)

    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        return lambda: engine.event_read(rng.randint(1, PRELOAD_COUNT))

    return FunctionWorkload(
        "event/read",
        make,
        setup=lambda engine: _populate_events(engine, payload),
        parameters={"events": PRELOAD_COUNT},
    )


@register_workload("event/read_by_type", GROUP)
def event_read_by_type(settings: WorkloadSettings) -> Workload:
    payload = kv_value(settings.value_size)

    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        return lambda: engine.event_read_by_type(f"type-{rng.randrange(EVENT_TYPES)}")

    return FunctionWorkload(
        "event/read_by_type",
        make,
        setup=lambda engine: _populate_events(engine, payload),
        parameters={"events": PRELOAD_COUNT, "event_types": EVENT_TYPES},
    )


# =============================================================================
# JSON documents
# =============================================================================

def _document(i: int) -> dict:
    return {"name": f"user-{i}", "profile": {"name": f"User {i}", "age": 20 + i % 50}, "stats": {"count": 0}}


def _populate_documents(engine: StorageEngine) -> None:
    for i in range(PRELOAD_COUNT):
        engine.json_set_root(kv_key(i, "doc:"), _document(i))


@register_workload("json/set_root", GROUP)
def json_set_root(settings: WorkloadSettings) -> Workload:
    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        counter = itertools.count()
        prefix = f"doc:{worker_id}:"

        def op():
            i = next(counter)
            engine.json_set_root(kv_key(i % settings.keyspace_size, prefix), _document(i))

        return op

    return FunctionWorkload("json/set_root", make)


@register_workload("json/set_path", GROUP)
def json_set_path(settings: WorkloadSettings) -> Workload:
    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        key = f"doc:path:{worker_id}"
        engine.json_set_root(key, _document(worker_id))
        counter = itertools.count()
        return lambda: engine.json_set_path(key, "$.stats.count", next(counter))

    return FunctionWorkload("json/set_path", make)


@register_workload("json/get", GROUP)
def json_get(settings: WorkloadSettings) -> Workload:
    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        return lambda: engine.json_get(kv_key(rng.randrange(PRELOAD_COUNT), "doc:"), "$.profile.name")

    return FunctionWorkload("json/get", make, setup=_populate_documents, parameters={"documents": PRELOAD_COUNT})


@register_workload("json/list", GROUP)
def json_list(settings: WorkloadSettings) -> Workload:
    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        return lambda: engine.json_list("doc:")

    return FunctionWorkload("json/list", make, setup=_populate_documents, parameters={"documents": PRELOAD_COUNT})


# =============================================================================
# Vectors
# =============================================================================

def _vector_pool(rng: random.Random, n: int = VECTOR_POOL) -> np.ndarray:
    return np.random.default_rng(rng.getrandbits(32)).random((n, VECTOR_DIM), dtype=np.float32)


def _populate_vectors(engine: StorageEngine) -> None:
    pool = _vector_pool(random.Random(0), PRELOAD_COUNT)
    for i, vec in enumerate(pool):
        engine.vector_upsert(VECTOR_COLLECTION, kv_key(i, "vec:"), vec)


@register_workload("vector/upsert", GROUP)
def vector_upsert(settings: WorkloadSettings) -> Workload:
    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        pool = _vector_pool(rng)
        counter = itertools.count()
        prefix = f"vec:{worker_id}:"

        def op():
            i = next(counter)
            engine.vector_upsert(VECTOR_COLLECTION, kv_key(i % settings.keyspace_size, prefix), pool[i % len(pool)])

        return op

    return FunctionWorkload("vector/upsert", make, parameters={"dim": VECTOR_DIM})


@register_workload("vector/search", GROUP)
def vector_search(settings: WorkloadSettings) -> Workload:
    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        queries = _vector_pool(rng)
        counter = itertools.count()
        return lambda: engine.vector_search(VECTOR_COLLECTION, queries[next(counter) % len(queries)], k=10)

    return FunctionWorkload(
        "vector/search",
        make,
        setup=_populate_vectors,
        parameters={"dim": VECTOR_DIM, "vectors": PRELOAD_COUNT, "k": 10},
        heavy=True,
    )


@register_workload("vector/get", GROUP)
def vector_get(settings: WorkloadSettings) -> Workload:
    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        return lambda: engine.vector_get(VECTOR_COLLECTION, kv_key(rng.randrange(PRELOAD_COUNT), "vec:"))

    return FunctionWorkload(
        "vector/get", make, setup=_populate_vectors, parameters={"dim": VECTOR_DIM, "vectors": PRELOAD_COUNT}
    )


# =============================================================================
# Branches
# =============================================================================

@register_workload("branch/create", GROUP)
def branch_create(settings: WorkloadSettings) -> Workload:
    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        counter = itertools.count()
        return lambda: engine.branch_create(f"bench-{worker_id}-{next(counter)}")

    return FunctionWorkload("branch/create", make, heavy=True)


@register_workload("branch/switch", GROUP)
def branch_switch(settings: WorkloadSettings) -> Workload:
    def setup(engine: StorageEngine) -> None:
        engine.branch_create("bench-switch")

    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        targets = itertools.cycle(["bench-switch", "default"])
        return lambda: engine.branch_switch(next(targets))

    return FunctionWorkload("branch/switch", make, setup=setup, heavy=True)


@register_workload("branch/delete", GROUP)
def branch_delete(settings: WorkloadSettings) -> Workload:
    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        counter = itertools.count()

        def op():
            # create + delete, so every delete removes a live branch
            name = f"bench-del-{worker_id}-{next(counter)}"
            engine.branch_create(name)
            engine.branch_delete(name)

        return op

    return FunctionWorkload("branch/delete", make, heavy=True)


__all__ = ["GROUP", "kv_key", "kv_value"]
