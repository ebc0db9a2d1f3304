"""Storage engine contract and the in-process reference engine."""

from .base import ALL_DURABILITY_MODES, DurabilityMode, StorageEngine, WalCounters
from .loader import DEFAULT_ENGINE_FACTORY, EngineFactory, resolve_engine_factory
from .memory import InMemoryEngine

__all__ = [
    "ALL_DURABILITY_MODES",
    "DurabilityMode",
    "StorageEngine",
    "WalCounters",
    "DEFAULT_ENGINE_FACTORY",
    "EngineFactory",
    "resolve_engine_factory",
    "InMemoryEngine",
]
