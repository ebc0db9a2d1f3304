"""
StrataBench - Benchmark Harness for a Multi-Primitive Storage Engine
====================================================================

Produces latency and throughput measurements for the engine's key-value,
state-cell, event-log, JSON, vector and branch primitives under configurable
concurrency and durability, stores them in a portable result document, and
compares two documents metric by metric.

Main Components:
    - LatencySampler: fixed-capacity reservoir, nearest-rank percentiles
    - WorkloadDriver: warmup + measurement phases, abort accounting
    - ConcurrencySweep: durability mode x thread count sweep points
    - ResultRecorder: result document assembly and persistence
    - compare: cross-run delta report with direction-aware verdicts

Quick Start:
    from stratabench import LatencySampler

    sampler = LatencySampler(capacity=10_000)
    for ns in durations:
        sampler.observe(ns)
    print(sampler.snapshot())
"""

from stratabench.version import __version__

from stratabench.core.comparison import ComparisonReport, compare, compare_files
from stratabench.core.config import BenchConfig, DriverSettings, get_config, load_config
from stratabench.core.driver import MeasurementWindow, WorkloadDriver
from stratabench.core.exceptions import (
    SchemaError,
    SchemaVersionMismatchError,
    StrataBenchError,
    TransientAbortError,
)
from stratabench.core.recorder import ResultRecorder
from stratabench.core.sampler import LatencySampler, MeasurementMetrics
from stratabench.core.schema import SCHEMA_VERSION, ResultDocument, load_document
from stratabench.core.sweep import ConcurrencySweep, SweepPoint, run_point
from stratabench.engine import DurabilityMode, InMemoryEngine, StorageEngine

__all__ = [
    "__version__",
    "LatencySampler",
    "MeasurementMetrics",
    "WorkloadDriver",
    "MeasurementWindow",
    "ConcurrencySweep",
    "SweepPoint",
    "run_point",
    "ResultRecorder",
    "ResultDocument",
    "SCHEMA_VERSION",
    "load_document",
    "ComparisonReport",
    "compare",
    "compare_files",
    "BenchConfig",
    "DriverSettings",
    "load_config",
    "get_config",
    "DurabilityMode",
    "StorageEngine",
    "InMemoryEngine",
    "StrataBenchError",
    "TransientAbortError",
    "SchemaError",
    "SchemaVersionMismatchError",
]
