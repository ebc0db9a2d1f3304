"""
Workload Driver.

Runs one worker's share of a sweep point: a warmup phase whose results are
discarded, then a measurement phase whose per-operation durations go into a
private ``LatencySampler``. Nothing on the measurement path takes a lock or
logs; workers only synchronise on the ``MeasurementWindow`` barrier.
"""

from __future__ import annotations

import random
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from stratabench.core.config import DriverSettings
from stratabench.core.exceptions import TransientAbortError
from stratabench.core.sampler import LatencySampler

Clock = Callable[[], int]

NS_PER_SEC = 1_000_000_000


def worker_rng(seed: Optional[int], worker_id: int, stream: str) -> random.Random:
    """Independent, reproducible random source per worker and purpose."""
    if seed is None:
        return random.Random()
    return random.Random(f"{seed}:{worker_id}:{stream}")


class MeasurementWindow:
    """
    Shared start barrier and deadline for the workers of one sweep point.

    The last worker to reach the barrier opens the window: the start time and
    the deadline are fixed once, for everybody. A worker may finish the
    operation in flight when the deadline passes but must not start another.
    """

    def __init__(
        self,
        parties: int,
        measure_seconds: Optional[float],
        clock: Clock = time.perf_counter_ns,
        on_open: Optional[Callable[[], None]] = None,
    ):
        self.parties = parties
        self._measure_ns = int(measure_seconds * NS_PER_SEC) if measure_seconds else None
        self._clock = clock
        self._on_open = on_open
        self._barrier = threading.Barrier(parties, action=self._open)
        self.stop = threading.Event()
        self.start_ns: Optional[int] = None
        self.deadline_ns: Optional[int] = None

    def _open(self) -> None:
        if self._on_open is not None:
            self._on_open()
        self.start_ns = self._clock()
        if self._measure_ns is not None:
            self.deadline_ns = self.start_ns + self._measure_ns

    def wait(self) -> None:
        """Block until every worker has finished warmup. Raises BrokenBarrierError if cancelled."""
        self._barrier.wait()

    def cancel(self) -> None:
        """Stop all workers: nobody starts a new operation, nobody waits at the barrier."""
        self.stop.set()
        self._barrier.abort()


@dataclass
class WorkerResult:
    """What one worker measured."""

    worker_id: int
    sampler: LatencySampler
    completed: int
    aborted: int
    finished_ns: int

    @property
    def attempted(self) -> int:
        return self.completed + self.aborted


class WorkloadDriver:
    """
    Drive one operation closure through warmup and measurement.

    Failure policy: ``TransientAbortError`` counts as an attempt and an abort
    and is excluded from latency samples. Any other exception cancels the
    window (so sibling workers stop too) and propagates.
    """

    def __init__(
        self,
        operation: Callable[[], object],
        settings: DriverSettings,
        worker_id: int = 0,
        clock: Clock = time.perf_counter_ns,
        sampler: Optional[LatencySampler] = None,
    ):
        self.operation = operation
        self.settings = settings
        self.worker_id = worker_id
        self.clock = clock
        self.sampler = sampler or LatencySampler(
            capacity=settings.reservoir_capacity,
            rng=worker_rng(settings.seed, worker_id, "sampler"),
        )

    def warmup(self, window: MeasurementWindow) -> None:
        if self.settings.warmup_seconds <= 0:
            return
        op = self.operation
        clock = self.clock
        deadline = clock() + int(self.settings.warmup_seconds * NS_PER_SEC)
        while not window.stop.is_set() and clock() < deadline:
            try:
                op()
            except TransientAbortError:
                pass

    def measure(self, window: MeasurementWindow) -> WorkerResult:
        op = self.operation
        clock = self.clock
        observe = self.sampler.observe
        stop = window.stop
        deadline = window.deadline_ns
        budget = self.settings.measure_ops
        completed = 0
        aborted = 0

        while not stop.is_set():
            if budget is not None and completed + aborted >= budget:
                break
            t0 = clock()
            if deadline is not None and t0 >= deadline:
                break
            try:
                op()
            except TransientAbortError:
                aborted += 1
                continue
            observe(clock() - t0)
            completed += 1

        return WorkerResult(
            worker_id=self.worker_id,
            sampler=self.sampler,
            completed=completed,
            aborted=aborted,
            finished_ns=clock(),
        )

    def run(self, window: Optional[MeasurementWindow] = None) -> WorkerResult:
        """Warm up, wait for the shared start, then measure."""
        if window is None:
            window = MeasurementWindow(1, self.settings.measure_seconds, self.clock)
        try:
            self.warmup(window)
            window.wait()
            return self.measure(window)
        except threading.BrokenBarrierError:
            raise
        except BaseException:
            window.cancel()
            raise


__all__ = [
    "Clock",
    "NS_PER_SEC",
    "MeasurementWindow",
    "WorkerResult",
    "WorkloadDriver",
    "worker_rng",
]
