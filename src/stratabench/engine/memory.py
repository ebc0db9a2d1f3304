"""
In-process reference engine.

Implements every primitive of ``StorageEngine`` on plain dictionaries guarded
by a single lock. Durability modes are honoured with a real write-ahead log:
``cache`` never touches disk, ``flush`` appends and flushes every write,
``always`` additionally fsyncs. State cells use version-based optimistic
concurrency so contended workloads produce genuine aborts.
"""

from __future__ import annotations

import os
import shutil
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from stratabench.core.exceptions import EngineError, TransientAbortError
from stratabench.engine.base import DurabilityMode, StorageEngine, WalCounters

DEFAULT_BRANCH = "default"


@dataclass
class _BranchData:
    kv: Dict[str, Any] = field(default_factory=dict)
    state: Dict[str, Tuple[Any, int]] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)
    docs: Dict[str, Any] = field(default_factory=dict)
    vectors: Dict[str, Dict[str, np.ndarray]] = field(default_factory=dict)


def _split_path(path: str) -> List[str]:
    if path in ("$", ""):
        return []
    if not path.startswith("$."):
        raise EngineError("json_path", f"unsupported path {path!r}", {"path": path})
    return path[2:].split(".")


def _payload_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return repr(value).encode("utf-8")


class InMemoryEngine(StorageEngine):
    """Dictionary-backed engine with a real WAL for ``flush`` and ``always``."""

    def __init__(
        self,
        durability: "DurabilityMode | str" = DurabilityMode.CACHE,
        data_dir: Optional[str] = None,
    ):
        self.durability = DurabilityMode.parse(durability)
        self._lock = threading.RLock()
        self._branches: Dict[str, _BranchData] = {DEFAULT_BRANCH: _BranchData()}
        self._current = DEFAULT_BRANCH
        self._appends = 0
        self._syncs = 0
        self._closed = False

        self._owns_dir = False
        self._wal = None
        if self.durability is not DurabilityMode.CACHE:
            if data_dir is None:
                data_dir = tempfile.mkdtemp(prefix="stratabench_")
                self._owns_dir = True
            self._data_dir = Path(data_dir)
            self._data_dir.mkdir(parents=True, exist_ok=True)
            self._wal = open(self._data_dir / "wal.log", "ab")
            logger.debug(f"Opened WAL at {self._data_dir / 'wal.log'} ({self.durability.label})")

    # -- internals --------------------------------------------------------

    @property
    def _data(self) -> _BranchData:
        return self._branches[self._current]

    def _log(self, op: str, key: str, value: Any = b"") -> None:
        if self._wal is None:
            return
        payload = _payload_bytes(value)
        header = f"{op} {self._current}/{key} {len(payload)}\n".encode("utf-8")
        try:
            self._wal.write(header + payload)
            self._wal.flush()
            self._appends += 1
            if self.durability is DurabilityMode.ALWAYS:
                os.fsync(self._wal.fileno())
                self._syncs += 1
        except OSError as e:
            raise EngineError(op, f"WAL write failed: {e}", {"key": key}) from e

    def _check_open(self, op: str) -> None:
        if self._closed:
            raise EngineError(op, "engine is closed")

    # -- lifecycle --------------------------------------------------------

    def ping(self) -> bool:
        self._check_open("ping")
        return True

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self._wal is not None:
                self._wal.close()
                self._wal = None
            if self._owns_dir:
                shutil.rmtree(self._data_dir, ignore_errors=True)

    def wal_counters(self) -> Optional[WalCounters]:
        return WalCounters(wal_appends=self._appends, sync_calls=self._syncs)

    # -- key-value --------------------------------------------------------

    def kv_put(self, key: str, value: Any) -> None:
        with self._lock:
            self._check_open("kv_put")
            self._log("kv_put", key, value)
            self._data.kv[key] = value

    def kv_get(self, key: str) -> Optional[Any]:
        with self._lock:
            self._check_open("kv_get")
            return self._data.kv.get(key)

    def kv_delete(self, key: str) -> bool:
        with self._lock:
            self._check_open("kv_delete")
            self._log("kv_delete", key)
            return self._data.kv.pop(key, None) is not None

    def kv_list(self, prefix: Optional[str] = None) -> List[str]:
        with self._lock:
            self._check_open("kv_list")
            keys = self._data.kv.keys()
            if prefix:
                return sorted(k for k in keys if k.startswith(prefix))
            return sorted(keys)

    # -- state cells ------------------------------------------------------

    def state_set(self, cell: str, value: Any) -> int:
        with self._lock:
            self._check_open("state_set")
            _, version = self._data.state.get(cell, (None, 0))
            self._log("state_set", cell, value)
            self._data.state[cell] = (value, version + 1)
            return version + 1

    def state_read(self, cell: str) -> Optional[Tuple[Any, int]]:
        with self._lock:
            self._check_open("state_read")
            return self._data.state.get(cell)

    def state_cas(self, cell: str, expected_version: int, value: Any) -> int:
        with self._lock:
            self._check_open("state_cas")
            _, version = self._data.state.get(cell, (None, 0))
            if version != expected_version:
                raise TransientAbortError(
                    cell,
                    "Version conflict",
                    {"expected": expected_version, "actual": version},
                )
            self._log("state_cas", cell, value)
            self._data.state[cell] = (value, version + 1)
            return version + 1

    # -- event log --------------------------------------------------------

    def event_append(self, event_type: str, payload: Any) -> int:
        with self._lock:
            self._check_open("event_append")
            events = self._data.events
            self._log("event_append", event_type, payload)
            events.append({"sequence": len(events) + 1, "event_type": event_type, "payload": payload})
            return len(events)

    def event_read(self, sequence: int) -> Optional[Dict[str, Any]]:
        with self._lock:
            self._check_open("event_read")
            events = self._data.events
            if 1 <= sequence <= len(events):
                return events[sequence - 1]
            return None

    def event_read_by_type(self, event_type: str) -> List[Dict[str, Any]]:
        with self._lock:
            self._check_open("event_read_by_type")
            return [e for e in self._data.events if e["event_type"] == event_type]

    # -- JSON documents ---------------------------------------------------

    def json_set_root(self, key: str, document: Any) -> None:
        with self._lock:
            self._check_open("json_set_root")
            self._log("json_set", key, document)
            self._data.docs[key] = document

    def json_set_path(self, key: str, path: str, value: Any) -> None:
        parts = _split_path(path)
        with self._lock:
            self._check_open("json_set_path")
            if not parts:
                self.json_set_root(key, value)
                return
            doc = self._data.docs.get(key)
            if not isinstance(doc, dict):
                raise EngineError("json_set_path", f"document {key!r} missing or not an object")
            node = doc
            for part in parts[:-1]:
                child = node.get(part)
                if not isinstance(child, dict):
                    child = {}
                    node[part] = child
                node = child
            self._log("json_set", f"{key}:{path}", value)
            node[parts[-1]] = value

    def json_get(self, key: str, path: str = "$") -> Optional[Any]:
        parts = _split_path(path)
        with self._lock:
            self._check_open("json_get")
            node = self._data.docs.get(key)
            for part in parts:
                if not isinstance(node, dict) or part not in node:
                    return None
                node = node[part]
            return node

    def json_list(self, prefix: Optional[str] = None) -> List[str]:
        with self._lock:
            self._check_open("json_list")
            keys = self._data.docs.keys()
            if prefix:
                return sorted(k for k in keys if k.startswith(prefix))
            return sorted(keys)

    # -- vectors ----------------------------------------------------------

    def vector_upsert(self, collection: str, key: str, vector: Sequence[float]) -> None:
        arr = np.asarray(vector, dtype=np.float32)
        if arr.ndim != 1:
            raise EngineError("vector_upsert", f"expected a 1-d vector, got shape {arr.shape}")
        with self._lock:
            self._check_open("vector_upsert")
            coll = self._data.vectors.setdefault(collection, {})
            if coll:
                dim = len(next(iter(coll.values())))
                if dim != len(arr):
                    raise EngineError(
                        "vector_upsert",
                        f"dimension mismatch: collection has {dim}, got {len(arr)}",
                        {"collection": collection},
                    )
            self._log("vector_upsert", f"{collection}/{key}", arr.tobytes())
            coll[key] = arr

    def vector_search(self, collection: str, query: Sequence[float], k: int = 10) -> List[Tuple[str, float]]:
        q = np.asarray(query, dtype=np.float32)
        with self._lock:
            self._check_open("vector_search")
            coll = self._data.vectors.get(collection)
            if not coll:
                return []
            keys = list(coll.keys())
            matrix = np.stack([coll[key] for key in keys])
        norms = np.linalg.norm(matrix, axis=1) * (np.linalg.norm(q) or 1.0)
        scores = matrix @ q / np.where(norms == 0, 1.0, norms)
        k = min(k, len(keys))
        top = np.argpartition(-scores, k - 1)[:k]
        top = top[np.argsort(-scores[top])]
        return [(keys[i], float(scores[i])) for i in top]

    def vector_get(self, collection: str, key: str) -> Optional[Sequence[float]]:
        with self._lock:
            self._check_open("vector_get")
            return self._data.vectors.get(collection, {}).get(key)

    # -- branches ---------------------------------------------------------

    def branch_create(self, name: str) -> None:
        with self._lock:
            self._check_open("branch_create")
            if name in self._branches:
                raise EngineError("branch_create", f"branch {name!r} already exists")
            self._log("branch_create", name)
            self._branches[name] = _BranchData()

    def branch_switch(self, name: str) -> None:
        with self._lock:
            self._check_open("branch_switch")
            if name not in self._branches:
                raise EngineError("branch_switch", f"branch {name!r} does not exist")
            self._current = name

    def branch_delete(self, name: str) -> None:
        with self._lock:
            self._check_open("branch_delete")
            if name == DEFAULT_BRANCH:
                raise EngineError("branch_delete", "cannot delete the default branch")
            if name == self._current:
                raise EngineError("branch_delete", f"cannot delete the current branch {name!r}")
            if name not in self._branches:
                raise EngineError("branch_delete", f"branch {name!r} does not exist")
            self._log("branch_delete", name)
            del self._branches[name]

    @property
    def current_branch(self) -> str:
        return self._current


__all__ = ["InMemoryEngine", "DEFAULT_BRANCH"]
