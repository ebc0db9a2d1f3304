"""
Result Recorder.

Collects the measurements of one benchmark-category invocation and turns
them into a single ``ResultDocument`` with a run-metadata header. Metadata
probes (git, hardware) are best effort: whatever is unavailable is left out
of the document instead of failing the run.
"""

from __future__ import annotations

import os
import platform
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import psutil
from loguru import logger

from stratabench.core.sampler import MeasurementMetrics
from stratabench.core.schema import (
    CATEGORIES,
    BenchmarkMetrics,
    HardwareInfo,
    ResultDocument,
    ResultEntry,
    RunMetadata,
    Scalar,
)
from stratabench.core.sweep import SweepPoint
from stratabench.engine.base import WalCounters
from stratabench.version import __version__

GIT_TIMEOUT_SECONDS = 5


# =============================================================================
# Run context probes
# =============================================================================

def _git(*args: str, cwd: Optional[Path] = None) -> Optional[str]:
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=GIT_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"git {' '.join(args)} unavailable: {e}")
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip()


def capture_git(cwd: Optional[Path] = None) -> Tuple[Optional[str], Optional[str], Optional[bool]]:
    """Short commit, branch name and dirty flag; each None when unknown."""
    commit = _git("rev-parse", "--short", "HEAD", cwd=cwd) or None
    branch = _git("rev-parse", "--abbrev-ref", "HEAD", cwd=cwd) or None
    status = _git("status", "--porcelain", cwd=cwd)
    dirty = None if status is None else bool(status)
    return commit, branch, dirty


def _cpu_model() -> str:
    try:
        with open("/proc/cpuinfo") as f:
            for line in f:
                if line.startswith("model name"):
                    return line.split(":", 1)[1].strip()
    except OSError:
        pass
    return platform.processor() or platform.machine() or "unknown"


def capture_hardware() -> Optional[HardwareInfo]:
    """Describe the host, or None when it cannot be probed."""
    try:
        cores = psutil.cpu_count(logical=True) or os.cpu_count() or 0
        ram_gb = round(psutil.virtual_memory().total / (1024 ** 3))
        return HardwareInfo(
            cpu=_cpu_model(),
            cores=int(cores),
            ram_gb=int(ram_gb),
            os=platform.system().lower() or "unknown",
            arch=platform.machine() or "unknown",
        )
    except (OSError, psutil.Error) as e:
        logger.warning(f"Hardware probe failed, omitting hardware metadata: {e}")
        return None


def result_filename(category: str, timestamp: str, commit: Optional[str]) -> str:
    """``<category>-<timestamp with ':' and '.' as '-'>-<commit or unknown>.json``"""
    safe_ts = timestamp.replace(":", "-").replace(".", "-")
    return f"{category}-{safe_ts}-{commit or 'unknown'}.json"


# =============================================================================
# Recorder
# =============================================================================

def _per_op(wal: Optional[WalCounters], ops: Optional[int]) -> Tuple[Optional[float], Optional[float]]:
    if wal is None or not wal.moved or not ops:
        return None, None
    return wal.wal_appends / ops, wal.sync_calls / ops


class ResultRecorder:
    """
    Accumulates entries for one category and builds the result document.

    Example:
        recorder = ResultRecorder("latency")
        recorder.record_metrics("kv/put/128B/cache", sampler.snapshot())
        path = recorder.save()
    """

    def __init__(
        self,
        category: str,
        sdk: str = "python",
        sdk_version: str = __version__,
        results_dir: Union[str, Path] = "results",
        capture_context: bool = True,
    ):
        if category not in CATEGORIES:
            raise ValueError(f"unknown category {category!r}, expected one of {CATEGORIES}")
        self.category = category
        self.sdk = sdk
        self.sdk_version = sdk_version
        self.results_dir = Path(results_dir)
        self.capture_context = capture_context
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.entries: List[ResultEntry] = []

    def __len__(self) -> int:
        return len(self.entries)

    def record(
        self,
        benchmark: str,
        metrics: Optional[BenchmarkMetrics] = None,
        parameters: Optional[Dict[str, Scalar]] = None,
    ) -> ResultEntry:
        entry = ResultEntry(
            benchmark=benchmark,
            category=self.category,
            parameters=dict(parameters or {}),
            metrics=metrics or BenchmarkMetrics(),
        )
        self.entries.append(entry)
        return entry

    def record_metrics(
        self,
        benchmark: str,
        metrics: Optional[MeasurementMetrics],
        parameters: Optional[Dict[str, Scalar]] = None,
        ops_per_sec: Optional[float] = None,
        wal: Optional[WalCounters] = None,
        ops: Optional[int] = None,
        threads: Optional[int] = None,
        abort_rate_pct: Optional[float] = None,
        fill_level: Optional[int] = None,
    ) -> ResultEntry:
        """Record a sampler snapshot plus whichever extra metrics apply."""
        latency = metrics.to_dict() if metrics is not None else {}
        if ops is None and metrics is not None:
            ops = metrics.samples
        appends, syncs = _per_op(wal, ops)
        payload = BenchmarkMetrics(
            ops_per_sec=ops_per_sec,
            wal_appends_per_op=appends,
            wal_syncs_per_op=syncs,
            threads=threads,
            abort_rate_pct=abort_rate_pct,
            fill_level=fill_level,
            **latency,
        )
        return self.record(benchmark, payload, parameters)

    def record_sweep_point(
        self,
        point: SweepPoint,
        parameters: Optional[Dict[str, Scalar]] = None,
        fill_level: Optional[int] = None,
    ) -> ResultEntry:
        params: Dict[str, Scalar] = dict(point.parameters)
        params.update(parameters or {})
        params.setdefault("durability", point.durability.label)
        if point.failed:
            return self.record_failure(point.benchmark, point.error or "unknown error", params)
        return self.record_metrics(
            point.benchmark,
            point.metrics,
            params,
            ops_per_sec=point.ops_per_sec,
            wal=point.wal,
            ops=point.completed,
            threads=point.threads,
            abort_rate_pct=point.abort_rate_pct,
            fill_level=fill_level,
        )

    def record_failure(
        self,
        benchmark: str,
        error: Union[str, BaseException],
        parameters: Optional[Dict[str, Scalar]] = None,
    ) -> ResultEntry:
        params: Dict[str, Scalar] = dict(parameters or {})
        params["status"] = "failed"
        params["error"] = error if isinstance(error, str) else f"{type(error).__name__}: {error}"
        return self.record(benchmark, BenchmarkMetrics(), params)

    def metadata(self) -> RunMetadata:
        commit = branch = dirty = None
        hardware = None
        if self.capture_context:
            commit, branch, dirty = capture_git()
            hardware = capture_hardware()
        return RunMetadata(
            timestamp=self.timestamp,
            sdk=self.sdk,
            sdk_version=self.sdk_version,
            git_commit=commit,
            git_branch=branch,
            git_dirty=dirty,
            hardware=hardware,
        )

    def build(self) -> ResultDocument:
        return ResultDocument(metadata=self.metadata(), results=list(self.entries))

    def save(self, document: Optional[ResultDocument] = None) -> Path:
        """Write the document under ``results_dir`` and return its path."""
        document = document or self.build()
        self.results_dir.mkdir(parents=True, exist_ok=True)
        path = self.results_dir / result_filename(
            self.category, document.metadata.timestamp, document.metadata.git_commit
        )
        with open(path, "w", encoding="utf-8") as f:
            f.write(document.to_json())
            f.write("\n")
        logger.info(f"Saved {len(document.results)} {self.category} result(s) to {path}")
        return path


__all__ = [
    "ResultRecorder",
    "capture_git",
    "capture_hardware",
    "result_filename",
]
