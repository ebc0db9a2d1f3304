"""
Workload contract and registry.

A workload knows how to prepare an engine (``setup``) and how to build the
per-worker operation closure that the driver times. Closures own all their
per-worker state (counters, RNG, key choosers) so workers never share
anything but the engine handle.
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Tuple, Union

from stratabench.core.config import WorkloadSettings
from stratabench.core.exceptions import WorkloadNotFoundError
from stratabench.engine.base import DurabilityMode, StorageEngine

Scalar = Union[str, int, float, bool]
Operation = Callable[[], object]
OperationFactory = Callable[[StorageEngine, int, random.Random], Operation]
SetupFn = Callable[[StorageEngine], None]


class Workload(ABC):
    """
    Base class for all workloads.

    Attributes:
        name: Identity prefix, e.g. ``"kv/put/128B"``. The durability label
            (and thread count for sweeps) is appended by the caller.
        heavy: Use the small reservoir reserved for expensive operations.
        isolated: Needs a freshly populated engine for every thread count.
    """

    name: str = ""
    description: str = ""
    heavy: bool = False
    isolated: bool = False

    def setup(self, engine: StorageEngine) -> None:
        """Populate the engine before warmup. Not timed."""

    @abstractmethod
    def operation(self, engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        """Return the zero-argument closure one worker invokes repeatedly."""

    def parameters(self) -> Dict[str, Scalar]:
        return {}

    def identity(self, durability: DurabilityMode, threads: Optional[int] = None) -> str:
        if threads is None:
            return f"{self.name}/{durability.label}"
        return f"{self.name}/t{threads}/{durability.label}"

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class FunctionWorkload(Workload):
    """Workload assembled from plain callables."""

    def __init__(
        self,
        name: str,
        make_operation: OperationFactory,
        setup: Optional[SetupFn] = None,
        parameters: Optional[Dict[str, Scalar]] = None,
        description: str = "",
        heavy: bool = False,
        isolated: bool = False,
    ):
        self.name = name
        self.description = description
        self.heavy = heavy
        self.isolated = isolated
        self._make_operation = make_operation
        self._setup = setup
        self._parameters = dict(parameters or {})

    def setup(self, engine: StorageEngine) -> None:
        if self._setup is not None:
            self._setup(engine)

    def operation(self, engine: StorageEngine, worker_id: int, rng: random.Random) -> Operation:
        return self._make_operation(engine, worker_id, rng)

    def parameters(self) -> Dict[str, Scalar]:
        return dict(self._parameters)


# =============================================================================
# Registry
# =============================================================================

WorkloadBuilder = Callable[[WorkloadSettings], Workload]

_REGISTRY: Dict[str, Tuple[str, WorkloadBuilder]] = {}


def register_workload(key: str, group: str) -> Callable[[WorkloadBuilder], WorkloadBuilder]:
    """Decorator registering a builder under ``key`` in a category group."""

    def decorator(builder: WorkloadBuilder) -> WorkloadBuilder:
        if key in _REGISTRY:
            raise ValueError(f"workload {key!r} registered twice")
        _REGISTRY[key] = (group, builder)
        return builder

    return decorator


def _ensure_loaded() -> None:
    # Importing the modules runs their @register_workload decorators.
    from stratabench.workloads import contention, fill_level, primitives, redis_compare, ycsb  # noqa: F401


def get_workload(key: str, settings: Optional[WorkloadSettings] = None) -> Workload:
    _ensure_loaded()
    try:
        _, builder = _REGISTRY[key]
    except KeyError:
        raise WorkloadNotFoundError(key, {"available": sorted(_REGISTRY)}) from None
    return builder(settings or WorkloadSettings())


def list_workloads(group: Optional[str] = None) -> List[str]:
    """Registered keys, in registration order, optionally filtered by group."""
    _ensure_loaded()
    return [k for k, (g, _) in _REGISTRY.items() if group is None or g == group]


def workload_group(key: str) -> str:
    _ensure_loaded()
    try:
        return _REGISTRY[key][0]
    except KeyError:
        raise WorkloadNotFoundError(key) from None


__all__ = [
    "Scalar",
    "Operation",
    "OperationFactory",
    "Workload",
    "FunctionWorkload",
    "register_workload",
    "get_workload",
    "list_workloads",
    "workload_group",
]
