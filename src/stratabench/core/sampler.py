"""
Latency Sampler
===============
Fixed-capacity reservoir over a stream of per-operation durations.

Percentile rule (nearest rank): sort the reservoir, take
``index = ceil(q * n) - 1`` clamped to ``[0, n - 1]``. The same rule is used
for single samplers and for merged samplers so a comparison never sees a
spurious delta caused by a change of estimator.

Mean, count, min and max come from running accumulators over the whole
stream. Only the percentiles are reservoir-derived.
"""

from __future__ import annotations

import math
import random
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

DEFAULT_CAPACITY = 10_000
HEAVY_CAPACITY = 200

PERCENTILES = (0.50, 0.95, 0.99)


@dataclass(frozen=True)
class MeasurementMetrics:
    """Read-only snapshot of a finished measurement window (nanoseconds)."""

    p50_ns: int
    p95_ns: int
    p99_ns: int
    min_ns: int
    max_ns: int
    avg_ns: int
    samples: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def nearest_rank_index(q: float, n: int) -> int:
    """Index of the q-th percentile in a sorted array of length n."""
    if n <= 0:
        raise ValueError("nearest_rank_index requires a non-empty population")
    idx = math.ceil(q * n) - 1
    return min(max(idx, 0), n - 1)


def percentile(sorted_values: Sequence[int], q: float) -> int:
    """Nearest-rank percentile of an already sorted sequence."""
    return int(sorted_values[nearest_rank_index(q, len(sorted_values))])


class LatencySampler:
    """
    Reservoir sampler (Algorithm R) for integer nanosecond durations.

    ``observe`` is O(1) and never grows the buffer past the capacity it was
    created with. The random source is injectable so tests can pin outcomes;
    when omitted a fresh ``random.Random()`` seeded from OS entropy is used.
    """

    __slots__ = ("capacity", "_buf", "_filled", "_count", "_total", "_min", "_max", "_rng")

    def __init__(self, capacity: int = DEFAULT_CAPACITY, rng: Optional[random.Random] = None):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._buf = np.zeros(capacity, dtype=np.int64)
        self._filled = 0
        self._count = 0
        self._total = 0
        self._min: Optional[int] = None
        self._max: Optional[int] = None
        self._rng = rng if rng is not None else random.Random()

    def observe(self, duration_ns: int) -> None:
        """Admit one sample."""
        if duration_ns < 0:
            raise ValueError(f"durations must be non-negative, got {duration_ns}")
        self._count += 1
        self._total += duration_ns
        if self._min is None or duration_ns < self._min:
            self._min = duration_ns
        if self._max is None or duration_ns > self._max:
            self._max = duration_ns

        if self._filled < self.capacity:
            self._buf[self._filled] = duration_ns
            self._filled += 1
            return

        # Keep with probability capacity / count, replacing a uniform slot.
        j = self._rng.randrange(self._count)
        if j < self.capacity:
            self._buf[j] = duration_ns

    def observe_many(self, durations: Iterable[int]) -> None:
        for d in durations:
            self.observe(d)

    @property
    def count(self) -> int:
        """True number of samples observed, independent of capacity."""
        return self._count

    @property
    def total_ns(self) -> int:
        return self._total

    def __len__(self) -> int:
        return self._filled

    def reservoir(self) -> np.ndarray:
        """Copy of the retained samples, in slot order."""
        return self._buf[: self._filled].copy()

    def snapshot(self) -> Optional[MeasurementMetrics]:
        """
        Derive metrics without mutating the sampler.

        Returns None when nothing was observed.
        """
        if self._count == 0:
            return None
        ordered = np.sort(self._buf[: self._filled])
        p50, p95, p99 = (percentile(ordered, q) for q in PERCENTILES)
        return MeasurementMetrics(
            p50_ns=p50,
            p95_ns=p95,
            p99_ns=p99,
            min_ns=int(self._min),
            max_ns=int(self._max),
            avg_ns=self._total // self._count,
            samples=self._count,
        )

    @classmethod
    def merge(
        cls,
        samplers: Sequence["LatencySampler"],
        capacity: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ) -> "LatencySampler":
        """
        Pool several samplers into one of fixed capacity.

        When no source has evicted anything and every retained sample fits,
        the merged reservoir is the plain union. Otherwise each slot is filled
        by picking a source sampler with probability proportional to its true
        observed count (not its reservoir size), then taking the next element
        of that sampler's shuffled reservoir, cycling once it is used up. The
        merged reservoir holds at most the retained sample count. Count, total,
        min and max are combined exactly.
        """
        if not samplers:
            raise ValueError("merge requires at least one sampler")
        capacity = capacity or max(s.capacity for s in samplers)
        rng = rng if rng is not None else random.Random()
        merged = cls(capacity=capacity, rng=rng)

        live = [s for s in samplers if s.count > 0]
        merged._count = sum(s.count for s in live)
        merged._total = sum(s.total_ns for s in live)
        if live:
            merged._min = min(s._min for s in live)
            merged._max = max(s._max for s in live)

        pools: List[List[int]] = [s.reservoir().tolist() for s in live]
        retained = sum(len(p) for p in pools)

        saturated = any(s.count > len(s) for s in live)
        if not saturated and retained <= capacity:
            values = [v for pool in pools for v in pool]
        else:
            for pool in pools:
                rng.shuffle(pool)
            weights = [s.count for s in live]
            taken = [0] * len(pools)
            values = []
            for _ in range(min(capacity, retained)):
                (i,) = rng.choices(range(len(pools)), weights=weights)
                pool = pools[i]
                values.append(pool[taken[i] % len(pool)])
                taken[i] += 1

        merged._buf[: len(values)] = values
        merged._filled = len(values)
        return merged


__all__ = [
    "DEFAULT_CAPACITY",
    "HEAVY_CAPACITY",
    "PERCENTILES",
    "MeasurementMetrics",
    "LatencySampler",
    "nearest_rank_index",
    "percentile",
]
