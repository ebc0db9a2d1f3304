import sys
import random
from pathlib import Path

import pytest


# Ensure local src/ package imports work without editable install.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from stratabench.core.schema import (  # noqa: E402
    BenchmarkMetrics,
    ResultDocument,
    ResultEntry,
    RunMetadata,
)
from stratabench.engine.memory import InMemoryEngine  # noqa: E402


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow-running (skipped unless --run-slow)"
    )


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow flag is passed."""
    if config.getoption("--run-slow", default=False):
        return
    skip_slow = pytest.mark.skip(reason="Slow test skipped. Use --run-slow to run.")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


def pytest_addoption(parser):
    """Add custom command-line options for pytest."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Run slow tests"
    )


# =============================================================================
# Fixtures
# =============================================================================

class FakeClock:
    """Manually advanced nanosecond clock."""

    def __init__(self, start: int = 0):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ns: int) -> None:
        self.now += ns


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rng():
    """Seeded random source so reservoir outcomes are reproducible."""
    return random.Random(1234)


@pytest.fixture
def engine():
    """In-memory engine in cache mode, closed after the test."""
    eng = InMemoryEngine("cache")
    yield eng
    eng.close()


def make_metadata(**overrides) -> RunMetadata:
    fields = {
        "timestamp": "2026-01-15T10:30:00.123456+00:00",
        "sdk": "python",
        "sdk_version": "0.1.0",
        "git_commit": "abc1234",
    }
    fields.update(overrides)
    return RunMetadata(**fields)


def make_document(entries, schema_version: int = 1, category: str = "latency") -> ResultDocument:
    """
    Build a document from ``(benchmark, metrics_dict)`` pairs.

    Usage:
        doc = make_document([("kv/put/cache", {"p50_ns": 1000})])
    """
    results = [
        ResultEntry(benchmark=name, category=category, metrics=BenchmarkMetrics(**metrics))
        for name, metrics in entries
    ]
    return ResultDocument(metadata=make_metadata(), results=results, schema_version=schema_version)


@pytest.fixture(scope="session")
def document_factory():
    return make_document
