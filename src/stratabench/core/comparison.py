"""
Comparison Engine.

Matches the entries of two result documents by benchmark identity and
computes a per-metric percent change with a direction-aware verdict:

- ``*_ns`` latencies, ``abort_rate_pct`` and ``wal_*_per_op`` improve when
  they go down.
- ``ops_per_sec`` improves when it goes up.
- ``samples``, ``threads`` and ``fill_level`` describe the run and have no
  direction; they are always neutral.

Changes within ``tolerance_pct`` are neutral. A zero baseline with a
non-zero candidate yields an ``UNDEFINED`` delta instead of an infinity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from loguru import logger

from stratabench.core.schema import METRIC_FIELDS, ResultDocument, ResultEntry, load_document
from stratabench.core.exceptions import SchemaVersionMismatchError

DEFAULT_TOLERANCE_PCT = 1.0


class Direction(Enum):
    LOWER_IS_BETTER = "lower"
    HIGHER_IS_BETTER = "higher"
    NONE = "none"


class Change(str, Enum):
    IMPROVED = "improved"
    REGRESSED = "regressed"
    NEUTRAL = "neutral"
    UNDEFINED = "undefined"


_UNDIRECTED = {"samples", "threads", "fill_level"}


def metric_direction(metric: str) -> Direction:
    if metric in _UNDIRECTED:
        return Direction.NONE
    if metric == "ops_per_sec":
        return Direction.HIGHER_IS_BETTER
    if metric.endswith("_ns") or metric == "abort_rate_pct" or (
        metric.startswith("wal_") and metric.endswith("_per_op")
    ):
        return Direction.LOWER_IS_BETTER
    return Direction.NONE


def percent_change(baseline: float, candidate: float) -> Optional[float]:
    """(candidate - baseline) / baseline * 100; None when undefined."""
    if baseline == 0:
        return 0.0 if candidate == 0 else None
    return (candidate - baseline) / baseline * 100.0


def classify(metric: str, change_pct: Optional[float], tolerance_pct: float = DEFAULT_TOLERANCE_PCT) -> Change:
    if change_pct is None:
        return Change.UNDEFINED
    direction = metric_direction(metric)
    if direction is Direction.NONE or abs(change_pct) <= tolerance_pct:
        return Change.NEUTRAL
    went_down = change_pct < 0
    if direction is Direction.LOWER_IS_BETTER:
        return Change.IMPROVED if went_down else Change.REGRESSED
    return Change.REGRESSED if went_down else Change.IMPROVED


@dataclass
class MetricDelta:
    metric: str
    baseline: float
    candidate: float
    change_pct: Optional[float]
    change: Change

    @property
    def undefined(self) -> bool:
        return self.change is Change.UNDEFINED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric,
            "baseline": self.baseline,
            "candidate": self.candidate,
            "change_pct": self.change_pct,
            "change": self.change.value,
        }


@dataclass
class EntryComparison:
    benchmark: str
    category: str
    deltas: List[MetricDelta] = field(default_factory=list)

    @property
    def regressed(self) -> bool:
        return any(d.change is Change.REGRESSED for d in self.deltas)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "benchmark": self.benchmark,
            "category": self.category,
            "deltas": [d.to_dict() for d in self.deltas],
        }


@dataclass
class ComparisonReport:
    baseline_name: str
    candidate_name: str
    tolerance_pct: float
    matched: List[EntryComparison] = field(default_factory=list)
    additions: List[str] = field(default_factory=list)
    removals: List[str] = field(default_factory=list)

    @property
    def deltas(self) -> List[MetricDelta]:
        return [d for e in self.matched for d in e.deltas]

    @property
    def regressions(self) -> List[EntryComparison]:
        return [e for e in self.matched if e.regressed]

    @property
    def has_regressions(self) -> bool:
        return any(e.regressed for e in self.matched)

    def count(self, change: Change) -> int:
        return sum(1 for d in self.deltas if d.change is change)

    def summary(self) -> str:
        return (
            f"Compared: {len(self.matched)} | Baseline only: {len(self.removals)} | "
            f"Candidate only: {len(self.additions)}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "baseline": self.baseline_name,
            "candidate": self.candidate_name,
            "tolerance_pct": self.tolerance_pct,
            "matched": [e.to_dict() for e in self.matched],
            "additions": list(self.additions),
            "removals": list(self.removals),
            "summary": {
                "compared": len(self.matched),
                "improved": self.count(Change.IMPROVED),
                "regressed": self.count(Change.REGRESSED),
                "neutral": self.count(Change.NEUTRAL),
                "undefined": self.count(Change.UNDEFINED),
            },
        }


def _index(doc: ResultDocument, name: str) -> Dict[str, ResultEntry]:
    index: Dict[str, ResultEntry] = {}
    for entry in doc.results:
        if entry.benchmark in index:
            logger.warning(f"Duplicate benchmark {entry.benchmark!r} in {name}, keeping the first entry")
            continue
        index[entry.benchmark] = entry
    return index


def compare_entries(
    baseline: ResultEntry,
    candidate: ResultEntry,
    tolerance_pct: float = DEFAULT_TOLERANCE_PCT,
) -> EntryComparison:
    """Deltas for every metric populated in both entries, in schema order."""
    old = baseline.metrics.to_dict()
    new = candidate.metrics.to_dict()
    deltas = []
    for metric in METRIC_FIELDS:
        if metric not in old or metric not in new:
            continue
        pct = percent_change(old[metric], new[metric])
        deltas.append(MetricDelta(metric, old[metric], new[metric], pct, classify(metric, pct, tolerance_pct)))
    return EntryComparison(candidate.benchmark, candidate.category, deltas)


def compare(
    baseline: ResultDocument,
    candidate: ResultDocument,
    tolerance_pct: float = DEFAULT_TOLERANCE_PCT,
    baseline_name: str = "baseline",
    candidate_name: str = "candidate",
) -> ComparisonReport:
    """
    Compare two result documents.

    Matched entries follow the candidate's order; removals follow the
    baseline's order.

    Raises:
        SchemaVersionMismatchError: The documents use different schema versions.
    """
    if baseline.schema_version != candidate.schema_version:
        raise SchemaVersionMismatchError(
            baseline.schema_version,
            candidate.schema_version,
            baseline=baseline_name,
            candidate=candidate_name,
        )
    if tolerance_pct < 0:
        raise ValueError(f"tolerance_pct must be >= 0, got {tolerance_pct}")

    old = _index(baseline, baseline_name)
    new = _index(candidate, candidate_name)

    report = ComparisonReport(baseline_name, candidate_name, tolerance_pct)
    for identity, entry in new.items():
        if identity in old:
            report.matched.append(compare_entries(old[identity], entry, tolerance_pct))
        else:
            report.additions.append(identity)
    report.removals = [identity for identity in old if identity not in new]

    logger.debug(report.summary())
    return report


def compare_files(
    baseline_path: Union[str, Path],
    candidate_path: Union[str, Path],
    tolerance_pct: float = DEFAULT_TOLERANCE_PCT,
) -> ComparisonReport:
    """Load, validate and compare two result files."""
    baseline = load_document(baseline_path)
    candidate = load_document(candidate_path)
    return compare(baseline, candidate, tolerance_pct, str(baseline_path), str(candidate_path))


__all__ = [
    "DEFAULT_TOLERANCE_PCT",
    "Direction",
    "Change",
    "MetricDelta",
    "EntryComparison",
    "ComparisonReport",
    "metric_direction",
    "percent_change",
    "classify",
    "compare_entries",
    "compare",
    "compare_files",
]
