"""
Concurrency Sweep Orchestrator.

For every (durability mode x thread count) combination, spawns exactly N
workers that share one engine handle, runs them through a common
measurement window, then merges their private samplers. Sweep points run
strictly one after another.
"""

from __future__ import annotations

import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import psutil
from loguru import logger

from stratabench.core.config import DriverSettings
from stratabench.core.driver import (
    NS_PER_SEC,
    Clock,
    MeasurementWindow,
    WorkerResult,
    WorkloadDriver,
    worker_rng,
)
from stratabench.core.exceptions import SweepPointError
from stratabench.core.sampler import LatencySampler, MeasurementMetrics
from stratabench.engine.base import ALL_DURABILITY_MODES, DurabilityMode, StorageEngine, WalCounters
from stratabench.engine.loader import EngineFactory
from stratabench.workloads.base import Scalar, Workload


@dataclass
class SweepPoint:
    """One fully measured (workload, durability, thread count) configuration."""

    benchmark: str
    workload: str
    durability: DurabilityMode
    threads: int
    metrics: Optional[MeasurementMetrics] = None
    ops_per_sec: Optional[float] = None
    completed: int = 0
    aborted: int = 0
    wall_ns: int = 0
    wal: Optional[WalCounters] = None
    error: Optional[str] = None
    parameters: Dict[str, Scalar] = field(default_factory=dict)

    @property
    def attempted(self) -> int:
        return self.completed + self.aborted

    @property
    def abort_rate_pct(self) -> float:
        if self.attempted == 0:
            return 0.0
        return self.aborted / self.attempted * 100.0

    @property
    def failed(self) -> bool:
        return self.error is not None

    def summary(self) -> str:
        if self.failed:
            return f"{self.benchmark}: FAILED ({self.error})"
        m = self.metrics
        p50 = m.p50_ns if m else 0
        p99 = m.p99_ns if m else 0
        return (
            f"{self.benchmark}: {self.ops_per_sec or 0.0:,.0f} ops/s, "
            f"p50={p50}ns p99={p99}ns, aborts={self.abort_rate_pct:.2f}%"
        )


def default_thread_counts(physical_cores: Optional[int] = None) -> Tuple[int, ...]:
    """Powers of two from 1 up to (and including) twice the physical core count."""
    if physical_cores is None:
        physical_cores = psutil.cpu_count(logical=False) or os.cpu_count() or 1
    upper = max(2 * physical_cores, 1)
    counts = []
    n = 1
    while n < upper:
        counts.append(n)
        n *= 2
    counts.append(upper)
    return tuple(counts)


def _root_cause(errors: Sequence[BaseException]) -> BaseException:
    for e in errors:
        if not isinstance(e, threading.BrokenBarrierError):
            return e
    return errors[0]


def run_point(
    workload: Workload,
    engine: StorageEngine,
    settings: DriverSettings,
    threads: int = 1,
    clock: Clock = time.perf_counter_ns,
    benchmark: Optional[str] = None,
) -> SweepPoint:
    """
    Measure one sweep point. Raises whatever the first failing worker raised.

    A single worker runs in the calling thread; N > 1 workers run on a pool
    of exactly N threads.
    """
    if threads <= 0:
        raise ValueError(f"threads must be positive, got {threads}")

    wal_at_open: Dict[str, Optional[WalCounters]] = {}

    def _snapshot_wal() -> None:
        wal_at_open["counters"] = engine.wal_counters()

    window = MeasurementWindow(threads, settings.measure_seconds, clock, on_open=_snapshot_wal)
    drivers = [
        WorkloadDriver(
            workload.operation(engine, i, worker_rng(settings.seed, i, "workload")),
            settings,
            worker_id=i,
            clock=clock,
        )
        for i in range(threads)
    ]

    results: List[WorkerResult] = []
    if threads == 1:
        results.append(drivers[0].run(window))
    else:
        errors: List[BaseException] = []
        with ThreadPoolExecutor(max_workers=threads, thread_name_prefix="stratabench-worker") as pool:
            futures = [pool.submit(d.run, window) for d in drivers]
            for future in futures:
                try:
                    results.append(future.result())
                except Exception as e:
                    errors.append(e)
        if errors:
            raise _root_cause(errors)

    wal = None
    before = wal_at_open.get("counters")
    after = engine.wal_counters()
    if before is not None and after is not None:
        wal = after - before

    merged = LatencySampler.merge(
        [r.sampler for r in results],
        capacity=settings.reservoir_capacity,
        rng=worker_rng(settings.seed, -1, "merge"),
    )
    end_ns = max(r.finished_ns for r in results)
    wall_ns = max(end_ns - window.start_ns, 0)
    completed = sum(r.completed for r in results)
    ops_per_sec = completed / (wall_ns / NS_PER_SEC) if wall_ns > 0 else 0.0

    return SweepPoint(
        benchmark=benchmark or workload.identity(settings.durability, threads),
        workload=workload.name,
        durability=settings.durability,
        threads=threads,
        metrics=merged.snapshot(),
        ops_per_sec=ops_per_sec,
        completed=completed,
        aborted=sum(r.aborted for r in results),
        wall_ns=wall_ns,
        wal=wal,
        parameters=workload.parameters(),
    )


class ConcurrencySweep:
    """
    Sweep one workload across durability modes and thread counts.

    Engine state carries over between thread counts of the same durability
    mode unless the workload is ``isolated``, in which case each thread count
    gets a freshly built and populated engine. A failing point is recorded
    and the engine is rebuilt for the next one.
    """

    def __init__(
        self,
        workload: Workload,
        engine_factory: EngineFactory,
        settings: DriverSettings,
        thread_counts: Optional[Iterable[int]] = None,
        durability_modes: Iterable[DurabilityMode] = ALL_DURABILITY_MODES,
        clock: Clock = time.perf_counter_ns,
    ):
        self.workload = workload
        self.engine_factory = engine_factory
        self.settings = settings
        counts = thread_counts if thread_counts is not None else default_thread_counts()
        self.thread_counts = tuple(sorted(set(counts)))
        self.durability_modes = tuple(durability_modes)
        self.clock = clock

    def _fresh_engine(self, mode: DurabilityMode) -> StorageEngine:
        engine = self.engine_factory(mode)
        self.workload.setup(engine)
        return engine

    def run(self) -> List[SweepPoint]:
        points: List[SweepPoint] = []
        for mode in self.durability_modes:
            settings = replace(self.settings, durability=mode)
            engine: Optional[StorageEngine] = None
            try:
                for threads in self.thread_counts:
                    identity = self.workload.identity(mode, threads)
                    try:
                        if engine is None or self.workload.isolated:
                            if engine is not None:
                                engine.close()
                            engine = self._fresh_engine(mode)
                        logger.info(f"Measuring {identity} ({threads} worker(s))")
                        point = run_point(self.workload, engine, settings, threads, self.clock)
                        logger.info(point.summary())
                    except Exception as e:
                        err = SweepPointError(identity, e)
                        logger.error(str(err))
                        point = SweepPoint(
                            benchmark=identity,
                            workload=self.workload.name,
                            durability=mode,
                            threads=threads,
                            error=f"{type(e).__name__}: {e}",
                            parameters=self.workload.parameters(),
                        )
                        if engine is not None:
                            engine.close()
                            engine = None
                    points.append(point)
            finally:
                if engine is not None:
                    engine.close()
        return points


__all__ = [
    "SweepPoint",
    "ConcurrencySweep",
    "default_thread_counts",
    "run_point",
]
