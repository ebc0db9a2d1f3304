"""
Result Document schema.

The on-disk contract shared by every benchmark category and by the
comparison tool::

    {
      "schema_version": 1,
      "metadata": {"timestamp": ..., "git_commit": ..., "sdk": ..., "hardware": {...}},
      "results": [
        {"benchmark": "kv/put/128B/cache", "category": "latency",
         "parameters": {...}, "metrics": {"p50_ns": ..., ...}},
      ]
    }

Every metric is optional and absent metrics are omitted from the JSON, never
written as null. ``from_dict`` validates as it goes and reports the offending
field through ``ResultParseError``.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from stratabench.core.exceptions import ResultParseError

SCHEMA_VERSION = 1

CATEGORIES = ("latency", "concurrency", "redis-compare", "fill-level")

Scalar = Union[str, int, float, bool]


def _drop_none(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


@dataclass
class HardwareInfo:
    cpu: str
    cores: int
    ram_gb: int
    os: str
    arch: str

    def to_dict(self) -> Dict[str, Any]:
        return {"cpu": self.cpu, "cores": self.cores, "ram_gb": self.ram_gb, "os": self.os, "arch": self.arch}


@dataclass
class RunMetadata:
    timestamp: str
    sdk: str
    sdk_version: str
    git_commit: Optional[str] = None
    git_branch: Optional[str] = None
    git_dirty: Optional[bool] = None
    hardware: Optional[HardwareInfo] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "timestamp": self.timestamp,
                "git_commit": self.git_commit,
                "git_branch": self.git_branch,
                "git_dirty": self.git_dirty,
                "sdk": self.sdk,
                "sdk_version": self.sdk_version,
                "hardware": self.hardware.to_dict() if self.hardware else None,
            }
        )


@dataclass
class BenchmarkMetrics:
    """All-optional metric payload of one result entry."""

    ops_per_sec: Optional[float] = None
    p50_ns: Optional[int] = None
    p95_ns: Optional[int] = None
    p99_ns: Optional[int] = None
    min_ns: Optional[int] = None
    max_ns: Optional[int] = None
    avg_ns: Optional[int] = None
    samples: Optional[int] = None
    wal_appends_per_op: Optional[float] = None
    wal_syncs_per_op: Optional[float] = None
    threads: Optional[int] = None
    abort_rate_pct: Optional[float] = None
    fill_level: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({f.name: getattr(self, f.name) for f in fields(self)})

    def items(self):
        """Populated (name, value) pairs in schema order."""
        return self.to_dict().items()

    def is_empty(self) -> bool:
        return not self.to_dict()


METRIC_FIELDS = tuple(f.name for f in fields(BenchmarkMetrics))
_FLOAT_METRICS = {"ops_per_sec", "wal_appends_per_op", "wal_syncs_per_op", "abort_rate_pct"}


@dataclass
class ResultEntry:
    benchmark: str
    category: str
    parameters: Dict[str, Scalar] = field(default_factory=dict)
    metrics: BenchmarkMetrics = field(default_factory=BenchmarkMetrics)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "benchmark": self.benchmark,
            "category": self.category,
            "parameters": dict(self.parameters),
            "metrics": self.metrics.to_dict(),
        }

    @property
    def failed(self) -> bool:
        return self.parameters.get("status") == "failed"


@dataclass
class ResultDocument:
    metadata: RunMetadata
    results: List[ResultEntry] = field(default_factory=list)
    schema_version: int = SCHEMA_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "metadata": self.metadata.to_dict(),
            "results": [r.to_dict() for r in self.results],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def identities(self) -> List[str]:
        return [r.benchmark for r in self.results]

    @classmethod
    def from_dict(cls, data: Any, document: str = "<memory>") -> "ResultDocument":
        return _DocumentParser(document).parse(data)

    @classmethod
    def from_json(cls, text: str, document: str = "<memory>") -> "ResultDocument":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ResultParseError(document, f"not valid JSON: {e}") from e
        return cls.from_dict(data, document)


class _DocumentParser:
    """Validating reader; every failure names the document and the field."""

    def __init__(self, document: str):
        self.document = document

    def fail(self, field_name: Optional[str], reason: str) -> ResultParseError:
        return ResultParseError(self.document, reason, field=field_name)

    def mapping(self, value: Any, name: str) -> Dict[str, Any]:
        if not isinstance(value, dict):
            raise self.fail(name, f"expected an object, got {type(value).__name__}")
        return value

    def required(self, obj: Dict[str, Any], key: str, prefix: str) -> Any:
        if key not in obj:
            raise self.fail(f"{prefix}{key}", "missing required field")
        return obj[key]

    def string(self, value: Any, name: str) -> str:
        if not isinstance(value, str):
            raise self.fail(name, f"expected a string, got {type(value).__name__}")
        return value

    def integer(self, value: Any, name: str) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise self.fail(name, f"expected an integer, got {value!r}")
        return value

    def number(self, value: Any, name: str) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise self.fail(name, f"expected a number, got {value!r}")
        if isinstance(value, float) and not math.isfinite(value):
            raise self.fail(name, f"expected a finite number, got {value!r}")
        return value

    def parse(self, data: Any) -> ResultDocument:
        root = self.mapping(data, "<root>")
        version = self.integer(self.required(root, "schema_version", ""), "schema_version")
        metadata = self.metadata(self.required(root, "metadata", ""))
        raw_results = self.required(root, "results", "")
        if not isinstance(raw_results, list):
            raise self.fail("results", "expected an array")
        results = [self.entry(r, f"results[{i}]") for i, r in enumerate(raw_results)]
        return ResultDocument(metadata=metadata, results=results, schema_version=version)

    def metadata(self, value: Any) -> RunMetadata:
        m = self.mapping(value, "metadata")
        hardware = None
        if m.get("hardware") is not None:
            h = self.mapping(m["hardware"], "metadata.hardware")
            hardware = HardwareInfo(
                cpu=self.string(self.required(h, "cpu", "metadata.hardware."), "metadata.hardware.cpu"),
                cores=self.integer(self.required(h, "cores", "metadata.hardware."), "metadata.hardware.cores"),
                ram_gb=self.integer(self.required(h, "ram_gb", "metadata.hardware."), "metadata.hardware.ram_gb"),
                os=self.string(self.required(h, "os", "metadata.hardware."), "metadata.hardware.os"),
                arch=self.string(self.required(h, "arch", "metadata.hardware."), "metadata.hardware.arch"),
            )
        dirty = m.get("git_dirty")
        if dirty is not None and not isinstance(dirty, bool):
            raise self.fail("metadata.git_dirty", f"expected a boolean, got {dirty!r}")
        return RunMetadata(
            timestamp=self.string(self.required(m, "timestamp", "metadata."), "metadata.timestamp"),
            sdk=self.string(self.required(m, "sdk", "metadata."), "metadata.sdk"),
            sdk_version=self.string(self.required(m, "sdk_version", "metadata."), "metadata.sdk_version"),
            git_commit=self.string(m["git_commit"], "metadata.git_commit") if m.get("git_commit") is not None else None,
            git_branch=self.string(m["git_branch"], "metadata.git_branch") if m.get("git_branch") is not None else None,
            git_dirty=dirty,
            hardware=hardware,
        )

    def entry(self, value: Any, where: str) -> ResultEntry:
        e = self.mapping(value, where)
        benchmark = self.string(self.required(e, "benchmark", f"{where}."), f"{where}.benchmark")
        category = self.string(self.required(e, "category", f"{where}."), f"{where}.category")
        if category not in CATEGORIES:
            raise self.fail(f"{where}.category", f"unknown category {category!r}")

        params = self.mapping(e.get("parameters", {}), f"{where}.parameters")
        for key, v in params.items():
            if not isinstance(v, (str, int, float, bool)):
                raise self.fail(f"{where}.parameters.{key}", f"expected a scalar, got {type(v).__name__}")

        raw_metrics = self.mapping(self.required(e, "metrics", f"{where}."), f"{where}.metrics")
        metrics: Dict[str, Any] = {}
        for name, v in raw_metrics.items():
            if name not in METRIC_FIELDS:
                # Unknown metrics from a newer writer are ignored.
                continue
            if v is None:
                continue
            fname = f"{where}.metrics.{name}"
            metrics[name] = self.number(v, fname) if name in _FLOAT_METRICS else self.integer(v, fname)

        return ResultEntry(
            benchmark=benchmark,
            category=category,
            parameters=dict(params),
            metrics=BenchmarkMetrics(**metrics),
        )


def load_document(path: Union[str, Path]) -> ResultDocument:
    """Read and validate a result file. Raises ResultParseError."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ResultParseError(str(path), f"cannot read file: {e}") from e
    except UnicodeDecodeError as e:
        raise ResultParseError(str(path), f"not valid UTF-8: {e}") from e
    return ResultDocument.from_json(text, document=str(path))


__all__ = [
    "SCHEMA_VERSION",
    "CATEGORIES",
    "METRIC_FIELDS",
    "HardwareInfo",
    "RunMetadata",
    "BenchmarkMetrics",
    "ResultEntry",
    "ResultDocument",
    "load_document",
]
