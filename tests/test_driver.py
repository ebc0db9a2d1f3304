"""
Workload Driver Tests
=====================
Warmup/measurement phases, abort accounting and cancellation, driven by a
manually advanced clock so every count is exact.
"""

import threading

import pytest

from stratabench.core.config import DriverSettings
from stratabench.core.driver import MeasurementWindow, WorkloadDriver, worker_rng
from stratabench.core.exceptions import EngineError, TransientAbortError


def ticking_op(clock, durations):
    """Operation that advances the clock by the next duration on every call."""
    it = iter(durations)
    calls = []

    def op():
        calls.append(1)
        clock.advance(next(it))

    op.calls = calls
    return op


class TestMeasurement:
    def test_one_to_thousand_end_to_end(self, clock):
        op = ticking_op(clock, range(1, 1001))
        settings = DriverSettings(warmup_seconds=0, measure_seconds=None, measure_ops=1000)
        result = WorkloadDriver(op, settings, clock=clock).run()

        m = result.sampler.snapshot()
        assert result.completed == 1000
        assert result.aborted == 0
        assert m.p50_ns == 500
        assert m.min_ns == 1
        assert m.max_ns == 1000
        assert m.avg_ns == 500
        assert m.samples == 1000

    def test_deadline_stops_new_operations(self, clock):
        # 300ns per op against a 1000ns window: ops start at 0, 300, 600, 900
        op = ticking_op(clock, [300] * 100)
        settings = DriverSettings(warmup_seconds=0, measure_seconds=1e-6)
        result = WorkloadDriver(op, settings, clock=clock).run()
        assert result.completed == 4
        assert result.finished_ns == 1200

    def test_warmup_is_discarded(self, clock):
        op = ticking_op(clock, [100] * 15)
        settings = DriverSettings(warmup_seconds=1e-6, measure_seconds=None, measure_ops=5)
        result = WorkloadDriver(op, settings, clock=clock).run()
        assert len(op.calls) == 15
        assert result.completed == 5
        assert result.sampler.count == 5

    def test_window_start_is_after_warmup(self, clock):
        op = ticking_op(clock, [100] * 15)
        settings = DriverSettings(warmup_seconds=1e-6, measure_seconds=None, measure_ops=5)
        window = MeasurementWindow(1, None, clock)
        WorkloadDriver(op, settings, clock=clock).run(window)
        assert window.start_ns == 1000


class TestAborts:
    def test_aborts_counted_not_sampled(self, clock):
        calls = [0]

        def op():
            calls[0] += 1
            clock.advance(10)
            if calls[0] % 2 == 0:
                raise TransientAbortError("cell:hot")

        settings = DriverSettings(warmup_seconds=0, measure_seconds=None, measure_ops=10)
        result = WorkloadDriver(op, settings, clock=clock).run()
        assert result.completed == 5
        assert result.aborted == 5
        assert result.attempted == 10
        assert result.sampler.count == 5

    def test_aborts_during_warmup_are_ignored(self, clock):
        def op():
            clock.advance(100)
            raise TransientAbortError("cell:hot")

        settings = DriverSettings(warmup_seconds=1e-6, measure_seconds=None, measure_ops=3)
        result = WorkloadDriver(op, settings, clock=clock).run()
        assert result.aborted == 3
        assert result.completed == 0
        assert result.sampler.snapshot() is None


class TestFailures:
    def test_fatal_error_propagates_and_cancels(self, clock):
        def op():
            clock.advance(10)
            raise EngineError("kv_put", "disk full")

        settings = DriverSettings(warmup_seconds=0, measure_seconds=None, measure_ops=10)
        window = MeasurementWindow(1, None, clock)
        with pytest.raises(EngineError):
            WorkloadDriver(op, settings, clock=clock).run(window)
        assert window.stop.is_set()

    def test_cancel_releases_waiting_workers(self):
        window = MeasurementWindow(2, 1.0)
        errors = []

        def waiter():
            try:
                window.wait()
            except threading.BrokenBarrierError as e:
                errors.append(e)

        t = threading.Thread(target=waiter)
        t.start()
        window.cancel()
        t.join(timeout=5)
        assert not t.is_alive()
        assert len(errors) == 1


class TestMeasurementWindow:
    def test_on_open_runs_once_before_start(self, clock):
        opened = []
        window = MeasurementWindow(1, 0.5, clock, on_open=lambda: opened.append(clock()))
        clock.advance(50)
        window.wait()
        assert opened == [50]
        assert window.start_ns == 50
        assert window.deadline_ns == 50 + 500_000_000

    def test_no_deadline_without_duration(self, clock):
        window = MeasurementWindow(1, None, clock)
        window.wait()
        assert window.deadline_ns is None


class TestWorkerRng:
    def test_seeded_streams_are_reproducible(self):
        a = worker_rng(7, 0, "workload").random()
        b = worker_rng(7, 0, "workload").random()
        assert a == b

    def test_streams_are_independent(self):
        assert worker_rng(7, 0, "workload").random() != worker_rng(7, 1, "workload").random()
        assert worker_rng(7, 0, "workload").random() != worker_rng(7, 0, "sampler").random()
