"""
Storage engine contract consumed by the benchmark harness.

The harness treats the engine as a black box: it only invokes one entry point
per primitive operation and times it. Implementations raise
``TransientAbortError`` for contention aborts and anything else for hard
failures.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple


class DurabilityMode(str, Enum):
    """Persistence guarantee traded against write latency."""

    CACHE = "cache"    # no fsync, nothing leaves process memory
    FLUSH = "flush"    # writes flushed to OS buffers
    ALWAYS = "always"  # fsync on every write

    @property
    def label(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: "str | DurabilityMode") -> "DurabilityMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"unknown durability mode {value!r}; expected one of "
                f"{', '.join(m.value for m in cls)}"
            ) from None


ALL_DURABILITY_MODES: Tuple[DurabilityMode, ...] = tuple(DurabilityMode)


@dataclass(frozen=True)
class WalCounters:
    """Cumulative write-ahead-log activity of an engine."""

    wal_appends: int = 0
    sync_calls: int = 0

    def __sub__(self, other: "WalCounters") -> "WalCounters":
        return WalCounters(
            wal_appends=self.wal_appends - other.wal_appends,
            sync_calls=self.sync_calls - other.sync_calls,
        )

    @property
    def moved(self) -> bool:
        return self.wal_appends > 0 or self.sync_calls > 0


class StorageEngine(ABC):
    """
    Abstract interface for the multi-primitive storage engine.

    All engines benchmarked by the harness must implement this interface.
    """

    durability: DurabilityMode

    # -- lifecycle --------------------------------------------------------

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        """Release resources. Idempotent."""

    def wal_counters(self) -> Optional[WalCounters]:
        """Cumulative WAL counters, or None if the engine does not track them."""
        return None

    def __enter__(self) -> "StorageEngine":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # -- key-value --------------------------------------------------------

    @abstractmethod
    def kv_put(self, key: str, value: Any) -> None: ...

    @abstractmethod
    def kv_get(self, key: str) -> Optional[Any]: ...

    @abstractmethod
    def kv_delete(self, key: str) -> bool: ...

    @abstractmethod
    def kv_list(self, prefix: Optional[str] = None) -> List[str]: ...

    # -- state cells ------------------------------------------------------

    @abstractmethod
    def state_set(self, cell: str, value: Any) -> int:
        """Unconditionally write a cell. Returns the new version."""

    @abstractmethod
    def state_read(self, cell: str) -> Optional[Tuple[Any, int]]:
        """Return ``(value, version)`` or None."""

    @abstractmethod
    def state_cas(self, cell: str, expected_version: int, value: Any) -> int:
        """Compare-and-swap on version. Raises TransientAbortError on conflict."""

    # -- event log --------------------------------------------------------

    @abstractmethod
    def event_append(self, event_type: str, payload: Any) -> int:
        """Append an event. Returns its 1-based sequence number."""

    @abstractmethod
    def event_read(self, sequence: int) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def event_read_by_type(self, event_type: str) -> List[Dict[str, Any]]: ...

    # -- JSON documents ---------------------------------------------------

    @abstractmethod
    def json_set_root(self, key: str, document: Any) -> None: ...

    @abstractmethod
    def json_set_path(self, key: str, path: str, value: Any) -> None: ...

    @abstractmethod
    def json_get(self, key: str, path: str = "$") -> Optional[Any]: ...

    @abstractmethod
    def json_list(self, prefix: Optional[str] = None) -> List[str]: ...

    # -- vectors ----------------------------------------------------------

    @abstractmethod
    def vector_upsert(self, collection: str, key: str, vector: Sequence[float]) -> None: ...

    @abstractmethod
    def vector_search(self, collection: str, query: Sequence[float], k: int = 10) -> List[Tuple[str, float]]: ...

    @abstractmethod
    def vector_get(self, collection: str, key: str) -> Optional[Sequence[float]]: ...

    # -- branches ---------------------------------------------------------

    @abstractmethod
    def branch_create(self, name: str) -> None: ...

    @abstractmethod
    def branch_switch(self, name: str) -> None: ...

    @abstractmethod
    def branch_delete(self, name: str) -> None: ...


__all__ = [
    "DurabilityMode",
    "ALL_DURABILITY_MODES",
    "WalCounters",
    "StorageEngine",
]
