"""
redis-benchmark equivalent suite.

Runs the operations of the default ``redis-benchmark`` suite through the
engine's primitives so the numbers can sit next to a Redis run on the same
hardware. Not an apples-to-apples comparison: the engine is embedded, Redis
pays for a network round trip and RESP encoding.

Every test gets a fresh engine, so a prefix scan never walks keys left
behind by an earlier test.
"""

from __future__ import annotations

import random

from stratabench.core.config import WorkloadSettings
from stratabench.engine.base import DurabilityMode, StorageEngine
from stratabench.workloads.base import FunctionWorkload, Operation, OperationFactory, Workload, register_workload

GROUP = "redis-compare"

KEYSPACE_SIZE = 100_000
WARMUP_REQUESTS = 1_000
INCR_CELLS = 1_000
HSET_DOCS = 100
LRANGE_KEYS = 100
EVENT_READ_MAX = 10_000
MSET_KEYS = 10

# What each durability mode is comparable to on the Redis side.
REDIS_PERSISTENCE = {
    DurabilityMode.CACHE: 'Redis no persistence (save "", appendonly no)',
    DurabilityMode.FLUSH: "Redis appendfsync everysec (default)",
    DurabilityMode.ALWAYS: "Redis appendfsync always",
}


def _rand_key(rng: random.Random, keyspace: int = KEYSPACE_SIZE, prefix: str = "key:") -> str:
    return f"{prefix}{rng.randrange(keyspace):012}"


def _redis_test(
    test: str,
    redis_equiv: str,
    settings: WorkloadSettings,
    make: OperationFactory,
    setup=None,
) -> Workload:
    return FunctionWorkload(
        f"redis/{test}",
        make,
        setup=setup,
        parameters={
            "redis_equiv": redis_equiv,
            "payload_size": settings.redis_payload_size,
            "requests": settings.redis_requests,
        },
        isolated=True,
    )


@register_workload("redis/PING", GROUP)
def ping(settings: WorkloadSettings) -> Workload:
    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        return engine.ping

    return _redis_test("PING", "PING_INLINE", settings, make)


@register_workload("redis/SET", GROUP)
def set_(settings: WorkloadSettings) -> Workload:
    value = b"x" * settings.redis_payload_size

    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        return lambda: engine.kv_put(_rand_key(rng), value)

    return _redis_test("SET", "SET", settings, make)


@register_workload("redis/GET", GROUP)
def get(settings: WorkloadSettings) -> Workload:
    value = b"x" * settings.redis_payload_size
    keyspace = min(settings.redis_requests, KEYSPACE_SIZE)

    def setup(engine: StorageEngine) -> None:
        for i in range(keyspace):
            engine.kv_put(f"key:{i:012}", value)

    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        return lambda: engine.kv_get(_rand_key(rng, keyspace))

    return _redis_test("GET", "GET", settings, make, setup)


@register_workload("redis/INCR", GROUP)
def incr(settings: WorkloadSettings) -> Workload:
    cells = min(settings.redis_requests, INCR_CELLS)

    def setup(engine: StorageEngine) -> None:
        for i in range(cells):
            engine.state_set(f"counter:{i}", 0)

    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        def op():
            cell = f"counter:{rng.randrange(cells)}"
            current = engine.state_read(cell)
            value = current[0] if current is not None and isinstance(current[0], int) else 0
            engine.state_set(cell, value + 1)

        return op

    return _redis_test("INCR", "INCR", settings, make, setup)


@register_workload("redis/HSET", GROUP)
def hset(settings: WorkloadSettings) -> Workload:
    value = b"x" * settings.redis_payload_size

    def setup(engine: StorageEngine) -> None:
        for i in range(HSET_DOCS):
            engine.json_set_root(f"myhash:{i}", {})

    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        def op():
            key = f"myhash:{rng.randrange(HSET_DOCS)}"
            engine.json_set_path(key, f"$.element_{rng.randrange(KEYSPACE_SIZE)}", value)

        return op

    return _redis_test("HSET", "HSET", settings, make, setup)


@register_workload("redis/MSET", GROUP)
def mset(settings: WorkloadSettings) -> Workload:
    value = b"x" * settings.redis_payload_size

    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        def op():
            for _ in range(MSET_KEYS):
                engine.kv_put(_rand_key(rng), value)

        return op

    return _redis_test("MSET", f"MSET ({MSET_KEYS} keys)", settings, make)


@register_workload("redis/XADD", GROUP)
def xadd(settings: WorkloadSettings) -> Workload:
    payload = {"myfield": b"x" * settings.redis_payload_size}

    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        return lambda: engine.event_append("mystream", payload)

    return _redis_test("XADD", "XADD", settings, make)


@register_workload("redis/LRANGE_100", GROUP)
def lrange_100(settings: WorkloadSettings) -> Workload:
    value = b"x" * settings.redis_payload_size

    def setup(engine: StorageEngine) -> None:
        for i in range(LRANGE_KEYS):
            engine.kv_put(f"listkey:{i:06}", value)

    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        return lambda: engine.kv_list("listkey:")

    return _redis_test("LRANGE_100", "LRANGE_100 (kv_list)", settings, make, setup)


@register_workload("redis/STATE_SET", GROUP)
def state_set(settings: WorkloadSettings) -> Workload:
    value = b"x" * settings.redis_payload_size

    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        return lambda: engine.state_set(f"cell:{rng.randrange(INCR_CELLS)}", value)

    return _redis_test("STATE_SET", "(engine unique)", settings, make)


@register_workload("redis/STATE_READ", GROUP)
def state_read(settings: WorkloadSettings) -> Workload:
    value = b"x" * settings.redis_payload_size
    cells = min(settings.redis_requests, INCR_CELLS)

    def setup(engine: StorageEngine) -> None:
        for i in range(cells):
            engine.state_set(f"rcell:{i}", value)

    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        return lambda: engine.state_read(f"rcell:{rng.randrange(cells)}")

    return _redis_test("STATE_READ", "(engine unique)", settings, make, setup)


@register_workload("redis/EVENT_READ", GROUP)
def event_read(settings: WorkloadSettings) -> Workload:
    payload = {"data": b"x" * settings.redis_payload_size}
    events = min(settings.redis_requests, EVENT_READ_MAX)

    def setup(engine: StorageEngine) -> None:
        for _ in range(events):
            engine.event_append("readstream", payload)

    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        return lambda: engine.event_read(rng.randrange(events) + 1)

    return _redis_test("EVENT_READ", "(engine unique)", settings, make, setup)


@register_workload("redis/KV_DELETE", GROUP)
def kv_delete(settings: WorkloadSettings) -> Workload:
    value = b"x" * settings.redis_payload_size
    keyspace = min(settings.redis_requests, KEYSPACE_SIZE)

    def setup(engine: StorageEngine) -> None:
        for i in range(keyspace):
            engine.kv_put(f"dkey:{i:012}", value)

    def make(engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        return lambda: engine.kv_delete(_rand_key(rng, keyspace, "dkey:"))

    return _redis_test("KV_DELETE", "DEL (bonus)", settings, make, setup)


__all__ = ["GROUP", "KEYSPACE_SIZE", "WARMUP_REQUESTS", "REDIS_PERSISTENCE"]
