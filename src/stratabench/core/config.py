"""
StrataBench Configuration System
================================
Immutable, validated configuration with environment variable overrides.

The core (sampler, driver, sweep) never reads this module's singleton: the
runner and CLI build explicit settings values and pass them down, so each
sweep point is reproducible from its inputs alone.
"""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional, Tuple

import yaml

from stratabench.core.exceptions import ConfigurationError
from stratabench.core.sampler import DEFAULT_CAPACITY, HEAVY_CAPACITY
from stratabench.engine.base import ALL_DURABILITY_MODES, DurabilityMode
from stratabench.engine.loader import DEFAULT_ENGINE_FACTORY


@dataclass(frozen=True)
class DriverSettings:
    """Settings for one Workload Driver invocation."""

    durability: DurabilityMode = DurabilityMode.CACHE
    warmup_seconds: float = 1.0
    measure_seconds: Optional[float] = 5.0
    measure_ops: Optional[int] = None
    reservoir_capacity: int = DEFAULT_CAPACITY
    seed: Optional[int] = None

    def __post_init__(self):
        if self.warmup_seconds < 0:
            raise ConfigurationError("warmup_seconds", f"must be >= 0, got {self.warmup_seconds}")
        if self.measure_seconds is None and self.measure_ops is None:
            raise ConfigurationError("measure_seconds", "either measure_seconds or measure_ops is required")
        if self.measure_seconds is not None and self.measure_seconds <= 0:
            raise ConfigurationError("measure_seconds", f"must be > 0, got {self.measure_seconds}")
        if self.measure_ops is not None and self.measure_ops <= 0:
            raise ConfigurationError("measure_ops", f"must be > 0, got {self.measure_ops}")
        if self.reservoir_capacity <= 0:
            raise ConfigurationError("reservoir_capacity", f"must be > 0, got {self.reservoir_capacity}")


@dataclass(frozen=True)
class SweepSettings:
    thread_counts: Optional[Tuple[int, ...]] = None  # None = 1..2x physical cores
    durability_modes: Tuple[DurabilityMode, ...] = ALL_DURABILITY_MODES


@dataclass(frozen=True)
class WorkloadSettings:
    keyspace_size: int = 100_000
    value_size: int = 128
    latency_ops: int = 10_000
    heavy_reservoir_capacity: int = HEAVY_CAPACITY
    fill_levels: Tuple[int, ...] = (1_000, 10_000, 100_000)
    redis_requests: int = 100_000
    redis_payload_size: int = 3


@dataclass(frozen=True)
class OutputSettings:
    results_dir: str = "results"
    sdk: str = "python"
    log_level: str = "INFO"


@dataclass(frozen=True)
class ComparisonSettings:
    tolerance_pct: float = 1.0


@dataclass(frozen=True)
class BenchConfig:
    """Root configuration for the benchmark harness."""

    engine_factory: str = DEFAULT_ENGINE_FACTORY
    driver: DriverSettings = field(default_factory=DriverSettings)
    sweep: SweepSettings = field(default_factory=SweepSettings)
    workloads: WorkloadSettings = field(default_factory=WorkloadSettings)
    output: OutputSettings = field(default_factory=OutputSettings)
    comparison: ComparisonSettings = field(default_factory=ComparisonSettings)


def _env_override(key: str, default):
    """Check for STRATABENCH_<KEY> environment variable override."""
    env_key = f"STRATABENCH_{key.upper()}"
    val = os.environ.get(env_key)
    if val is None:
        return default
    if isinstance(default, bool):
        return val.lower() in ("true", "1", "yes")
    try:
        if isinstance(default, int):
            return int(val)
        if isinstance(default, float):
            return float(val)
    except ValueError as e:
        raise ConfigurationError(key.lower(), f"cannot parse {env_key}={val!r}: {e}") from e
    return val


def _parse_optional_seed(value: Optional[object]) -> Optional[int]:
    """Parse a seed. Missing or empty values mean "use OS entropy"."""
    if value is None or value == "":
        return None
    try:
        parsed = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError("seed", f"expected an integer, got {value!r}") from e
    if parsed < 0:
        raise ConfigurationError("seed", f"must be >= 0, got {parsed}")
    return parsed


def parse_int_list(value, key: str) -> Tuple[int, ...]:
    """Accept ``"1,2,4"`` or ``[1, 2, 4]``; reject empty or non-positive entries."""
    if isinstance(value, str):
        items = [v for v in (p.strip() for p in value.split(",")) if v]
    else:
        items = list(value)
    try:
        parsed = tuple(int(v) for v in items)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(key, f"expected a list of integers, got {value!r}") from e
    if not parsed:
        raise ConfigurationError(key, "must not be empty")
    if any(v <= 0 for v in parsed):
        raise ConfigurationError(key, f"entries must be positive, got {parsed}")
    return parsed


def parse_durability_modes(value, key: str = "durability_modes") -> Tuple[DurabilityMode, ...]:
    items = value.split(",") if isinstance(value, str) else list(value)
    try:
        modes = tuple(DurabilityMode.parse(v) for v in items if str(v).strip())
    except ValueError as e:
        raise ConfigurationError(key, str(e)) from e
    if not modes:
        raise ConfigurationError(key, "must not be empty")
    return modes


def load_config(path: Optional[Path] = None) -> BenchConfig:
    """
    Load configuration from YAML file with environment variable overrides.

    Priority: ENV > YAML > defaults.

    Args:
        path: Path to a YAML file. If None, searches ./stratabench.yaml.

    Returns:
        Validated BenchConfig instance.

    Raises:
        ConfigurationError: If any value is out of range.
    """
    if path is None:
        candidate = Path("stratabench.yaml")
        if candidate.exists():
            path = candidate

    raw = {}
    if path is not None and Path(path).exists():
        with open(path) as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ConfigurationError("stratabench", f"{path} must contain a mapping")
        raw = loaded.get("stratabench") or {}

    driver_raw = raw.get("driver") or {}
    sweep_raw = raw.get("sweep") or {}
    workloads_raw = raw.get("workloads") or {}
    output_raw = raw.get("output") or {}
    comparison_raw = raw.get("comparison") or {}

    driver = DriverSettings(
        warmup_seconds=_env_override("WARMUP_SECONDS", float(driver_raw.get("warmup_seconds", 1.0))),
        measure_seconds=_env_override("MEASURE_SECONDS", float(driver_raw.get("measure_seconds", 5.0))),
        reservoir_capacity=_env_override(
            "RESERVOIR_CAPACITY", int(driver_raw.get("reservoir_capacity", DEFAULT_CAPACITY))
        ),
        seed=_parse_optional_seed(os.environ.get("STRATABENCH_SEED", driver_raw.get("seed"))),
    )

    threads_raw = os.environ.get("STRATABENCH_THREAD_COUNTS", sweep_raw.get("thread_counts"))
    modes_raw = os.environ.get("STRATABENCH_DURABILITY_MODES", sweep_raw.get("durability_modes"))
    sweep = SweepSettings(
        thread_counts=parse_int_list(threads_raw, "thread_counts") if threads_raw else None,
        durability_modes=parse_durability_modes(modes_raw) if modes_raw else ALL_DURABILITY_MODES,
    )

    fill_raw = workloads_raw.get("fill_levels")
    workloads = WorkloadSettings(
        keyspace_size=_env_override("KEYSPACE_SIZE", int(workloads_raw.get("keyspace_size", 100_000))),
        value_size=_env_override("VALUE_SIZE", int(workloads_raw.get("value_size", 128))),
        latency_ops=_env_override("LATENCY_OPS", int(workloads_raw.get("latency_ops", 10_000))),
        heavy_reservoir_capacity=int(workloads_raw.get("heavy_reservoir_capacity", HEAVY_CAPACITY)),
        fill_levels=parse_int_list(fill_raw, "fill_levels") if fill_raw else (1_000, 10_000, 100_000),
        redis_requests=_env_override("REDIS_REQUESTS", int(workloads_raw.get("redis_requests", 100_000))),
        redis_payload_size=int(workloads_raw.get("redis_payload_size", 3)),
    )
    for key in ("keyspace_size", "value_size", "latency_ops", "heavy_reservoir_capacity", "redis_requests"):
        if getattr(workloads, key) <= 0:
            raise ConfigurationError(key, f"must be > 0, got {getattr(workloads, key)}")

    output = OutputSettings(
        results_dir=_env_override("RESULTS_DIR", output_raw.get("results_dir", "results")),
        sdk=output_raw.get("sdk", "python"),
        log_level=_env_override("LOG_LEVEL", output_raw.get("log_level", "INFO")).upper(),
    )

    comparison = ComparisonSettings(
        tolerance_pct=_env_override("TOLERANCE_PCT", float(comparison_raw.get("tolerance_pct", 1.0))),
    )
    if comparison.tolerance_pct < 0:
        raise ConfigurationError("tolerance_pct", f"must be >= 0, got {comparison.tolerance_pct}")

    return BenchConfig(
        engine_factory=_env_override("ENGINE_FACTORY", raw.get("engine_factory", DEFAULT_ENGINE_FACTORY)),
        driver=driver,
        sweep=sweep,
        workloads=workloads,
        output=output,
        comparison=comparison,
    )


def quick_config(config: BenchConfig) -> BenchConfig:
    """Shrink a configuration for smoke runs: short windows, small keyspaces."""
    return replace(
        config,
        driver=replace(config.driver, warmup_seconds=0.1, measure_seconds=0.5),
        sweep=replace(config.sweep, thread_counts=config.sweep.thread_counts or (1, 2, 4)),
        workloads=replace(
            config.workloads,
            keyspace_size=min(config.workloads.keyspace_size, 10_000),
            latency_ops=min(config.workloads.latency_ops, 1_000),
            fill_levels=tuple(level for level in config.workloads.fill_levels if level <= 10_000) or (1_000,),
            redis_requests=min(config.workloads.redis_requests, 10_000),
        ),
    )


# Module-level singleton (lazy-loaded)
_CONFIG: Optional[BenchConfig] = None


def get_config() -> BenchConfig:
    """Get or initialize the global config singleton."""
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = load_config()
    return _CONFIG


def reset_config():
    """Reset the global config singleton (useful for testing)."""
    global _CONFIG
    _CONFIG = None


__all__ = [
    "DriverSettings",
    "SweepSettings",
    "WorkloadSettings",
    "OutputSettings",
    "ComparisonSettings",
    "BenchConfig",
    "load_config",
    "quick_config",
    "get_config",
    "reset_config",
    "parse_int_list",
    "parse_durability_modes",
]
