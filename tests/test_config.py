"""
StrataBench Test Suite - Configuration Tests
"""

import os
from dataclasses import FrozenInstanceError

import pytest
import yaml

from stratabench.core.config import (
    BenchConfig,
    DriverSettings,
    get_config,
    load_config,
    parse_durability_modes,
    parse_int_list,
    quick_config,
    reset_config,
)
from stratabench.core.exceptions import ConfigurationError
from stratabench.engine.base import ALL_DURABILITY_MODES, DurabilityMode


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Reset global config singleton and STRATABENCH_* env between tests."""
    for key in list(os.environ):
        if key.startswith("STRATABENCH_"):
            monkeypatch.delenv(key)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def sample_config_path(tmp_path):
    """Create a temporary stratabench.yaml."""
    config_data = {
        "stratabench": {
            "driver": {"warmup_seconds": 0.5, "measure_seconds": 2.0, "seed": 99},
            "sweep": {"thread_counts": [1, 2, 8], "durability_modes": ["cache", "always"]},
            "workloads": {"keyspace_size": 5000, "fill_levels": [100, 1000]},
            "output": {"results_dir": "out", "log_level": "debug"},
            "comparison": {"tolerance_pct": 2.5},
        }
    }
    path = tmp_path / "stratabench.yaml"
    with open(path, "w") as f:
        yaml.dump(config_data, f)
    return path


class TestDefaults:
    def test_load_without_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        cfg = load_config()
        assert cfg == BenchConfig()
        assert cfg.driver.warmup_seconds == 1.0
        assert cfg.driver.measure_seconds == 5.0
        assert cfg.driver.seed is None
        assert cfg.sweep.thread_counts is None
        assert cfg.sweep.durability_modes == ALL_DURABILITY_MODES
        assert cfg.comparison.tolerance_pct == 1.0

    def test_frozen(self):
        with pytest.raises(FrozenInstanceError):
            BenchConfig().driver.warmup_seconds = 3.0

    def test_singleton(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert get_config() is get_config()


class TestYaml:
    def test_values_loaded(self, sample_config_path):
        cfg = load_config(sample_config_path)
        assert cfg.driver.warmup_seconds == 0.5
        assert cfg.driver.measure_seconds == 2.0
        assert cfg.driver.seed == 99
        assert cfg.sweep.thread_counts == (1, 2, 8)
        assert cfg.sweep.durability_modes == (DurabilityMode.CACHE, DurabilityMode.ALWAYS)
        assert cfg.workloads.keyspace_size == 5000
        assert cfg.workloads.fill_levels == (100, 1000)
        assert cfg.output.results_dir == "out"
        assert cfg.output.log_level == "DEBUG"
        assert cfg.comparison.tolerance_pct == 2.5

    def test_env_overrides_yaml(self, sample_config_path, monkeypatch):
        monkeypatch.setenv("STRATABENCH_MEASURE_SECONDS", "0.25")
        monkeypatch.setenv("STRATABENCH_THREAD_COUNTS", "4,16")
        monkeypatch.setenv("STRATABENCH_SEED", "0")
        cfg = load_config(sample_config_path)
        assert cfg.driver.measure_seconds == 0.25
        assert cfg.sweep.thread_counts == (4, 16)
        assert cfg.driver.seed == 0

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_bad_env_value(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("STRATABENCH_KEYSPACE_SIZE", "lots")
        with pytest.raises(ConfigurationError) as exc:
            load_config()
        assert exc.value.config_key == "keyspace_size"

    def test_negative_tolerance(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("stratabench:\n  comparison:\n    tolerance_pct: -2\n")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_bad_seed(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("stratabench:\n  driver:\n    seed: abc\n")
        with pytest.raises(ConfigurationError):
            load_config(path)


class TestDriverSettings:
    def test_requires_duration_or_budget(self):
        with pytest.raises(ConfigurationError):
            DriverSettings(measure_seconds=None, measure_ops=None)

    def test_op_budget_only(self):
        s = DriverSettings(measure_seconds=None, measure_ops=100)
        assert s.measure_ops == 100

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"warmup_seconds": -1},
            {"measure_seconds": 0},
            {"measure_ops": 0},
            {"reservoir_capacity": 0},
        ],
    )
    def test_out_of_range(self, kwargs):
        with pytest.raises(ConfigurationError):
            DriverSettings(**kwargs)


class TestParsers:
    def test_int_list(self):
        assert parse_int_list("1, 2,4", "threads") == (1, 2, 4)
        assert parse_int_list([8, 16], "threads") == (8, 16)

    @pytest.mark.parametrize("value", ["", "1,x", "0,2", "-1"])
    def test_int_list_rejects(self, value):
        with pytest.raises(ConfigurationError):
            parse_int_list(value, "threads")

    def test_durability_modes(self):
        assert parse_durability_modes("Cache, flush") == (DurabilityMode.CACHE, DurabilityMode.FLUSH)

    def test_unknown_durability_mode(self):
        with pytest.raises(ConfigurationError):
            parse_durability_modes("sometimes")


class TestQuickConfig:
    def test_shrinks(self):
        cfg = quick_config(BenchConfig())
        assert cfg.driver.warmup_seconds == 0.1
        assert cfg.driver.measure_seconds == 0.5
        assert cfg.sweep.thread_counts == (1, 2, 4)
        assert cfg.workloads.keyspace_size == 10_000
        assert cfg.workloads.latency_ops == 1_000
        assert cfg.workloads.fill_levels == (1_000, 10_000)

    def test_keeps_explicit_thread_counts(self, sample_config_path):
        cfg = quick_config(load_config(sample_config_path))
        assert cfg.sweep.thread_counts == (1, 2, 8)
        assert cfg.workloads.keyspace_size == 5000
