"""
Concurrency Sweep Tests
=======================
Sweep points, worker fan-out, failure recording and throughput scaling.
"""

import threading
import time

import pytest

from stratabench.core.config import DriverSettings, WorkloadSettings
from stratabench.core.exceptions import EngineError, TransientAbortError
from stratabench.core.sweep import ConcurrencySweep, SweepPoint, default_thread_counts, run_point
from stratabench.engine.base import DurabilityMode
from stratabench.engine.memory import InMemoryEngine
from stratabench.workloads import FunctionWorkload, get_workload


SHORT = DriverSettings(warmup_seconds=0, measure_seconds=0.05, seed=1)


class SlowReadEngine(InMemoryEngine):
    """kv_get sleeps outside the engine lock, like a read that waits on I/O."""

    READ_DELAY = 0.0005

    def kv_get(self, key):
        time.sleep(self.READ_DELAY)
        return super().kv_get(key)


def noop_workload(name="test/noop", **kwargs):
    return FunctionWorkload(name, lambda engine, worker_id, rng: (lambda: None), **kwargs)


class TestDefaultThreadCounts:
    @pytest.mark.parametrize(
        "cores,expected",
        [
            (1, (1, 2)),
            (2, (1, 2, 4)),
            (3, (1, 2, 4, 6)),
            (4, (1, 2, 4, 8)),
            (6, (1, 2, 4, 8, 12)),
        ],
    )
    def test_powers_of_two_up_to_twice_cores(self, cores, expected):
        assert default_thread_counts(cores) == expected

    def test_detected_cores(self):
        counts = default_thread_counts()
        assert counts[0] == 1
        assert list(counts) == sorted(counts)


class TestRunPoint:
    def test_single_worker(self, engine):
        point = run_point(noop_workload(), engine, SHORT, threads=1)
        assert point.threads == 1
        assert point.completed > 0
        assert point.metrics.samples == point.completed
        assert point.ops_per_sec > 0
        assert point.benchmark == "test/noop/t1/cache"

    def test_multiple_workers_share_engine(self, engine):
        seen = set()
        lock = threading.Lock()

        def make(eng, worker_id, rng):
            def op():
                with lock:
                    seen.add(threading.get_ident())
                eng.kv_put(f"w{worker_id}", 1)

            return op

        point = run_point(FunctionWorkload("test/fanout", make), engine, SHORT, threads=4)
        assert point.threads == 4
        assert len(seen) == 4
        assert point.completed == point.metrics.samples
        assert engine.kv_list("w") == ["w0", "w1", "w2", "w3"]

    def test_op_budget_is_per_worker(self, engine):
        settings = DriverSettings(warmup_seconds=0, measure_seconds=None, measure_ops=25)
        point = run_point(noop_workload(), engine, settings, threads=3)
        assert point.completed == 75

    def test_abort_rate(self, engine):
        def make(eng, worker_id, rng):
            calls = [0]

            def op():
                calls[0] += 1
                if calls[0] % 2 == 0:
                    raise TransientAbortError("cell:hot")

            return op

        settings = DriverSettings(warmup_seconds=0, measure_seconds=None, measure_ops=10)
        point = run_point(FunctionWorkload("test/abort", make), engine, settings, threads=2)
        assert point.completed == 10
        assert point.aborted == 10
        assert point.abort_rate_pct == 50.0
        assert point.metrics.samples == 10

    def test_failing_worker_stops_siblings(self, engine):
        def make(eng, worker_id, rng):
            def op():
                if worker_id == 0:
                    raise EngineError("kv_put", "disk full")

            return op

        settings = DriverSettings(warmup_seconds=0, measure_seconds=30)
        start = time.monotonic()
        with pytest.raises(EngineError):
            run_point(FunctionWorkload("test/fail", make), engine, settings, threads=3)
        assert time.monotonic() - start < 10

    def test_wal_delta_covers_measurement_only(self):
        with InMemoryEngine("flush") as eng:
            eng.kv_put("preloaded", b"x")
            settings = DriverSettings(warmup_seconds=0, measure_seconds=None, measure_ops=20,
                                      durability=DurabilityMode.FLUSH)
            point = run_point(get_workload("kv/put"), eng, settings, threads=2)
        assert point.wal.wal_appends == 40
        assert point.wal.sync_calls == 0

    def test_fsync_counted_in_always_mode(self):
        with InMemoryEngine("always") as eng:
            settings = DriverSettings(warmup_seconds=0, measure_seconds=None, measure_ops=5,
                                      durability=DurabilityMode.ALWAYS)
            point = run_point(get_workload("kv/put"), eng, settings)
        assert point.wal.wal_appends == 5
        assert point.wal.sync_calls == 5

    def test_invalid_thread_count(self, engine):
        with pytest.raises(ValueError):
            run_point(noop_workload(), engine, SHORT, threads=0)


class TestConcurrencySweep:
    def test_points_in_ascending_thread_order(self):
        sweep = ConcurrencySweep(
            noop_workload(),
            InMemoryEngine,
            SHORT,
            thread_counts=[4, 1, 2, 2],
            durability_modes=[DurabilityMode.CACHE],
        )
        points = sweep.run()
        assert [p.threads for p in points] == [1, 2, 4]
        assert [p.benchmark for p in points] == ["test/noop/t1/cache", "test/noop/t2/cache", "test/noop/t4/cache"]

    def test_modes_outer_threads_inner(self):
        sweep = ConcurrencySweep(
            noop_workload(),
            InMemoryEngine,
            DriverSettings(warmup_seconds=0, measure_seconds=None, measure_ops=10),
            thread_counts=[1, 2],
            durability_modes=[DurabilityMode.CACHE, DurabilityMode.FLUSH],
        )
        points = sweep.run()
        assert [(p.durability, p.threads) for p in points] == [
            (DurabilityMode.CACHE, 1),
            (DurabilityMode.CACHE, 2),
            (DurabilityMode.FLUSH, 1),
            (DurabilityMode.FLUSH, 2),
        ]

    def test_failure_recorded_and_sweep_continues(self):
        def make(eng, worker_id, rng):
            def op():
                raise EngineError("kv_get", "corrupt page")

            return op

        sweep = ConcurrencySweep(
            FunctionWorkload("test/broken", make),
            InMemoryEngine,
            SHORT,
            thread_counts=[1, 2],
            durability_modes=[DurabilityMode.CACHE],
        )
        points = sweep.run()
        assert len(points) == 2
        assert all(p.failed for p in points)
        assert "EngineError" in points[0].error
        assert points[0].metrics is None

    def test_engine_rebuilt_for_isolated_workloads(self):
        built = []

        def factory(mode):
            eng = InMemoryEngine(mode)
            built.append(eng)
            return eng

        ConcurrencySweep(
            noop_workload(isolated=True),
            factory,
            SHORT,
            thread_counts=[1, 2, 4],
            durability_modes=[DurabilityMode.CACHE],
        ).run()
        assert len(built) == 3

    def test_engine_shared_across_thread_counts(self):
        built = []

        def factory(mode):
            eng = InMemoryEngine(mode)
            built.append(eng)
            return eng

        ConcurrencySweep(
            noop_workload(),
            factory,
            SHORT,
            thread_counts=[1, 2, 4],
            durability_modes=[DurabilityMode.CACHE],
        ).run()
        assert len(built) == 1

    def test_independent_keys_never_abort(self):
        settings = DriverSettings(warmup_seconds=0, measure_seconds=0.1, seed=3)
        points = ConcurrencySweep(
            get_workload("contention/independent_keys"),
            InMemoryEngine,
            settings,
            thread_counts=[1, 4],
            durability_modes=[DurabilityMode.CACHE],
        ).run()
        assert all(not p.failed for p in points)
        assert all(p.aborted == 0 for p in points)

    def test_read_only_throughput_scales(self):
        """Throughput never drops as workers are added to an I/O-bound read path."""
        settings = DriverSettings(warmup_seconds=0.05, measure_seconds=0.3, seed=11)
        workload = get_workload("contention/read_only", WorkloadSettings(keyspace_size=1000))
        points = ConcurrencySweep(
            workload,
            SlowReadEngine,
            settings,
            thread_counts=[1, 2, 4],
            durability_modes=[DurabilityMode.CACHE],
        ).run()
        throughput = [p.ops_per_sec for p in points]
        assert all(not p.failed for p in points)
        assert throughput[0] <= throughput[1] <= throughput[2]


class TestSweepPoint:
    def test_abort_rate_without_attempts(self):
        point = SweepPoint("x", "x", DurabilityMode.CACHE, 1)
        assert point.abort_rate_pct == 0.0
        assert not point.failed

    def test_summary_mentions_failure(self):
        point = SweepPoint("kv/put/t1/cache", "kv/put", DurabilityMode.CACHE, 1, error="EngineError: boom")
        assert "FAILED" in point.summary()
