"""
Engine factory resolution.

Engines are named by an import path of the form ``"package.module:attr"``;
``attr`` must be callable as ``attr(durability)`` and return a
``StorageEngine``.
"""

from __future__ import annotations

import importlib
from typing import Callable

from stratabench.core.exceptions import ConfigurationError
from stratabench.engine.base import DurabilityMode, StorageEngine

EngineFactory = Callable[[DurabilityMode], StorageEngine]

DEFAULT_ENGINE_FACTORY = "stratabench.engine.memory:InMemoryEngine"


def resolve_engine_factory(spec: str) -> EngineFactory:
    """Import and return the factory named by ``spec``."""
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(
            config_key="engine_factory",
            reason=f"expected 'module:attribute', got {spec!r}",
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(
            config_key="engine_factory",
            reason=f"cannot import {module_name!r}: {e}",
        ) from e
    factory = getattr(module, attr, None)
    if factory is None or not callable(factory):
        raise ConfigurationError(
            config_key="engine_factory",
            reason=f"{module_name!r} has no callable {attr!r}",
        )
    return factory


__all__ = ["EngineFactory", "DEFAULT_ENGINE_FACTORY", "resolve_engine_factory"]
