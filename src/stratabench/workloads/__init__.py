"""
Workload Definitions
====================
Operation closures the driver times, grouped by benchmark category:

    - latency:        one workload per engine primitive (primitives.py)
    - concurrency:    hot-key, independent-key and read-only sweeps (contention.py)
    - ycsb:           YCSB core workloads A-F (ycsb.py)
    - redis-compare:  redis-benchmark equivalents (redis_compare.py)
    - fill-level:     kv latency at increasing keyspace sizes (fill_level.py)
"""

from .base import (
    FunctionWorkload,
    Operation,
    OperationFactory,
    Scalar,
    Workload,
    get_workload,
    list_workloads,
    register_workload,
    workload_group,
)

__all__ = [
    "FunctionWorkload",
    "Operation",
    "OperationFactory",
    "Scalar",
    "Workload",
    "get_workload",
    "list_workloads",
    "register_workload",
    "workload_group",
]
