"""
Benchmark runner.

Turns one benchmark-category invocation into one result document:

    latency        every selected workload, single worker, fixed op count
    concurrency    thread-count sweep per workload (ConcurrencySweep)
    redis-compare  redis-benchmark equivalents, fresh engine per test
    fill-level     kv latency at each configured fill level

A workload that fails is recorded as a failed entry and the run moves on.
"""

from __future__ import annotations

import time
from dataclasses import replace
from typing import Iterable, List, Optional, Sequence

from loguru import logger

from stratabench.core.config import BenchConfig, DriverSettings
from stratabench.core.driver import Clock
from stratabench.core.recorder import ResultRecorder
from stratabench.core.schema import CATEGORIES
from stratabench.core.sweep import ConcurrencySweep, SweepPoint, run_point
from stratabench.engine.base import DurabilityMode
from stratabench.engine.loader import EngineFactory, resolve_engine_factory
from stratabench.workloads import Workload, get_workload, list_workloads
from stratabench.workloads.fill_level import FillLevelWorkload
from stratabench.workloads.redis_compare import REDIS_PERSISTENCE


class BenchmarkRunner:
    """
    Main benchmark runner.

    Orchestrates:
    - Resolving workloads and the engine factory
    - Running each category with explicit, immutable driver settings
    - Collecting entries into a ResultRecorder
    """

    def __init__(
        self,
        config: BenchConfig,
        engine_factory: Optional[EngineFactory] = None,
        clock: Clock = time.perf_counter_ns,
    ):
        self.config = config
        self.engine_factory = engine_factory or resolve_engine_factory(config.engine_factory)
        self.clock = clock

    # -- helpers ----------------------------------------------------------

    def _recorder(self, category: str) -> ResultRecorder:
        return ResultRecorder(
            category,
            sdk=self.config.output.sdk,
            results_dir=self.config.output.results_dir,
        )

    def _workloads(self, keys: Optional[Sequence[str]], default_group: str) -> List[Workload]:
        selected = list(keys) if keys else list_workloads(default_group)
        return [get_workload(key, self.config.workloads) for key in selected]

    def _modes(self, modes: Optional[Iterable[DurabilityMode]]) -> List[DurabilityMode]:
        return list(modes) if modes else list(self.config.sweep.durability_modes)

    def _op_budget_settings(self, workload: Workload, ops: int) -> DriverSettings:
        capacity = self.config.workloads.heavy_reservoir_capacity if workload.heavy else self.config.driver.reservoir_capacity
        return replace(
            self.config.driver,
            measure_seconds=None,
            measure_ops=ops,
            reservoir_capacity=capacity,
        )

    def _measure_once(self, workload: Workload, mode: DurabilityMode, settings: DriverSettings) -> SweepPoint:
        """Fresh engine, setup, one single-worker point. Failures become a failed point."""
        identity = workload.identity(mode)
        settings = replace(settings, durability=mode)
        logger.info(f"Measuring {identity}")
        try:
            with self.engine_factory(mode) as engine:
                workload.setup(engine)
                point = run_point(workload, engine, settings, 1, self.clock, benchmark=identity)
        except Exception as e:
            logger.error(f"Benchmark {identity} failed: {e}")
            return SweepPoint(
                benchmark=identity,
                workload=workload.name,
                durability=mode,
                threads=1,
                error=f"{type(e).__name__}: {e}",
                parameters=workload.parameters(),
            )
        logger.info(point.summary())
        return point

    # -- categories -------------------------------------------------------

    def run_latency(
        self,
        workloads: Optional[Sequence[str]] = None,
        durability_modes: Optional[Iterable[DurabilityMode]] = None,
    ) -> ResultRecorder:
        recorder = self._recorder("latency")
        for workload in self._workloads(workloads, "latency"):
            settings = self._op_budget_settings(workload, self.config.workloads.latency_ops)
            for mode in self._modes(durability_modes):
                recorder.record_sweep_point(self._measure_once(workload, mode, settings))
        return recorder

    def run_concurrency(
        self,
        workloads: Optional[Sequence[str]] = None,
        durability_modes: Optional[Iterable[DurabilityMode]] = None,
        thread_counts: Optional[Sequence[int]] = None,
    ) -> ResultRecorder:
        recorder = self._recorder("concurrency")
        counts = thread_counts or self.config.sweep.thread_counts
        for workload in self._workloads(workloads, "concurrency"):
            logger.info("-" * 72)
            logger.info(f"Sweeping {workload.name}")
            logger.info("-" * 72)
            sweep = ConcurrencySweep(
                workload,
                self.engine_factory,
                self.config.driver,
                thread_counts=counts,
                durability_modes=self._modes(durability_modes),
                clock=self.clock,
            )
            for point in sweep.run():
                recorder.record_sweep_point(point)
        return recorder

    def run_redis_compare(
        self,
        workloads: Optional[Sequence[str]] = None,
        durability_modes: Optional[Iterable[DurabilityMode]] = None,
    ) -> ResultRecorder:
        recorder = self._recorder("redis-compare")
        for mode in self._modes(durability_modes):
            logger.info(f"--- durability: {mode.label} (comparable to: {REDIS_PERSISTENCE[mode]}) ---")
            for workload in self._workloads(workloads, "redis-compare"):
                settings = self._op_budget_settings(workload, self.config.workloads.redis_requests)
                point = self._measure_once(workload, mode, settings)
                recorder.record_sweep_point(point, {"redis_persistence": REDIS_PERSISTENCE[mode]})
        return recorder

    def run_fill_level(
        self,
        workloads: Optional[Sequence[str]] = None,
        durability_modes: Optional[Iterable[DurabilityMode]] = None,
        fill_levels: Optional[Sequence[int]] = None,
    ) -> ResultRecorder:
        recorder = self._recorder("fill-level")
        levels = fill_levels or self.config.workloads.fill_levels
        for base in self._workloads(workloads, "fill-level"):
            if not isinstance(base, FillLevelWorkload):
                logger.warning(f"Skipping {base.name}: not a fill-level workload")
                continue
            for level in sorted(set(levels)):
                workload = base.at_level(level)
                settings = self._op_budget_settings(workload, self.config.workloads.latency_ops)
                for mode in self._modes(durability_modes):
                    point = self._measure_once(workload, mode, settings)
                    recorder.record_sweep_point(point, fill_level=level)
        return recorder

    def run(
        self,
        category: str,
        workloads: Optional[Sequence[str]] = None,
        durability_modes: Optional[Iterable[DurabilityMode]] = None,
        thread_counts: Optional[Sequence[int]] = None,
    ) -> ResultRecorder:
        """Run one category and return the filled recorder (not yet saved)."""
        if category not in CATEGORIES:
            raise ValueError(f"unknown category {category!r}, expected one of {CATEGORIES}")
        logger.info(f"Running {category} benchmarks...")
        start = time.time()
        if category == "latency":
            recorder = self.run_latency(workloads, durability_modes)
        elif category == "concurrency":
            recorder = self.run_concurrency(workloads, durability_modes, thread_counts)
        elif category == "redis-compare":
            recorder = self.run_redis_compare(workloads, durability_modes)
        else:
            recorder = self.run_fill_level(workloads, durability_modes)
        failed = sum(1 for e in recorder.entries if e.failed)
        logger.info(
            f"{category}: {len(recorder)} result(s), {failed} failed, in {time.time() - start:.1f}s"
        )
        return recorder


__all__ = ["BenchmarkRunner"]
