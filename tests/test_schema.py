"""
Result Document Schema Tests
============================
Serialisation shape and the validating parser.
"""

import json

import pytest

from stratabench.core.exceptions import ResultParseError
from stratabench.core.schema import (
    SCHEMA_VERSION,
    BenchmarkMetrics,
    HardwareInfo,
    ResultDocument,
    ResultEntry,
    RunMetadata,
    load_document,
)


def full_document() -> ResultDocument:
    return ResultDocument(
        metadata=RunMetadata(
            timestamp="2026-01-15T10:30:00+00:00",
            sdk="python",
            sdk_version="0.1.0",
            git_commit="abc1234",
            git_branch="main",
            git_dirty=False,
            hardware=HardwareInfo(cpu="Test CPU", cores=8, ram_gb=16, os="linux", arch="x86_64"),
        ),
        results=[
            ResultEntry(
                benchmark="kv/put/cache",
                category="latency",
                parameters={"durability": "cache", "value_size": 128},
                metrics=BenchmarkMetrics(
                    p50_ns=1200, p95_ns=2000, p99_ns=3100, min_ns=800, max_ns=9000,
                    avg_ns=1400, samples=10_000, ops_per_sec=700_000.5, threads=1,
                    abort_rate_pct=0.0,
                ),
            ),
            ResultEntry(
                benchmark="kv/get/cache",
                category="latency",
                parameters={"durability": "cache", "status": "failed", "error": "EngineError: boom"},
            ),
        ],
    )


def valid_raw() -> dict:
    return full_document().to_dict()


class TestSerialisation:
    def test_top_level_shape(self):
        data = valid_raw()
        assert data["schema_version"] == SCHEMA_VERSION
        assert set(data) == {"schema_version", "metadata", "results"}
        assert data["metadata"]["hardware"]["cores"] == 8

    def test_absent_metrics_are_omitted(self):
        data = valid_raw()
        metrics = data["results"][0]["metrics"]
        assert "wal_appends_per_op" not in metrics
        assert "fill_level" not in metrics
        assert None not in metrics.values()
        assert data["results"][1]["metrics"] == {}

    def test_absent_metadata_is_omitted(self):
        meta = RunMetadata(timestamp="t", sdk="python", sdk_version="0.1.0")
        assert meta.to_dict() == {"timestamp": "t", "sdk": "python", "sdk_version": "0.1.0"}

    def test_json_round_trip(self):
        doc = full_document()
        parsed = ResultDocument.from_json(doc.to_json())
        assert parsed.to_dict() == doc.to_dict()
        assert parsed.results[1].failed
        assert not parsed.results[0].failed

    def test_identities_in_order(self):
        assert full_document().identities() == ["kv/put/cache", "kv/get/cache"]

    def test_metrics_items_in_schema_order(self):
        m = BenchmarkMetrics(samples=3, ops_per_sec=1.0, p50_ns=2)
        assert [k for k, _ in m.items()] == ["ops_per_sec", "p50_ns", "samples"]
        assert BenchmarkMetrics().is_empty()


class TestParser:
    def test_not_json(self):
        with pytest.raises(ResultParseError) as exc:
            ResultDocument.from_json("{not json", document="broken.json")
        assert "broken.json" in str(exc.value)

    def test_root_must_be_object(self):
        with pytest.raises(ResultParseError):
            ResultDocument.from_dict([1, 2, 3])

    @pytest.mark.parametrize("field", ["schema_version", "metadata", "results"])
    def test_missing_top_level_field(self, field):
        data = valid_raw()
        del data[field]
        with pytest.raises(ResultParseError) as exc:
            ResultDocument.from_dict(data, "doc.json")
        assert exc.value.field == field

    def test_entry_without_metrics(self):
        data = valid_raw()
        del data["results"][1]["metrics"]
        with pytest.raises(ResultParseError) as exc:
            ResultDocument.from_dict(data)
        assert exc.value.field == "results[1].metrics"

    def test_failed_entry_keeps_empty_metrics(self):
        assert valid_raw()["results"][1]["metrics"] == {}
        assert ResultDocument.from_dict(valid_raw()).results[1].failed

    def test_missing_timestamp(self):
        data = valid_raw()
        del data["metadata"]["timestamp"]
        with pytest.raises(ResultParseError) as exc:
            ResultDocument.from_dict(data)
        assert exc.value.field == "metadata.timestamp"

    def test_unknown_category(self):
        data = valid_raw()
        data["results"][1]["category"] = "throughput"
        with pytest.raises(ResultParseError) as exc:
            ResultDocument.from_dict(data)
        assert exc.value.field == "results[1].category"

    def test_metric_wrong_type(self):
        data = valid_raw()
        data["results"][0]["metrics"]["p50_ns"] = "fast"
        with pytest.raises(ResultParseError) as exc:
            ResultDocument.from_dict(data)
        assert exc.value.field == "results[0].metrics.p50_ns"

    def test_integer_metric_rejects_float(self):
        data = valid_raw()
        data["results"][0]["metrics"]["samples"] = 1.5
        with pytest.raises(ResultParseError):
            ResultDocument.from_dict(data)

    def test_float_metric_accepts_integer(self):
        data = valid_raw()
        data["results"][0]["metrics"]["ops_per_sec"] = 1000
        doc = ResultDocument.from_dict(data)
        assert doc.results[0].metrics.ops_per_sec == 1000

    def test_non_scalar_parameter(self):
        data = valid_raw()
        data["results"][0]["parameters"]["nested"] = {"a": 1}
        with pytest.raises(ResultParseError) as exc:
            ResultDocument.from_dict(data)
        assert exc.value.field == "results[0].parameters.nested"

    def test_unknown_metric_ignored(self):
        data = valid_raw()
        data["results"][0]["metrics"]["p999_ns"] = 12345
        doc = ResultDocument.from_dict(data)
        assert "p999_ns" not in doc.results[0].metrics.to_dict()

    def test_null_metric_treated_as_absent(self):
        data = valid_raw()
        data["results"][0]["metrics"]["fill_level"] = None
        doc = ResultDocument.from_dict(data)
        assert doc.results[0].metrics.fill_level is None

    def test_missing_hardware_is_fine(self):
        data = valid_raw()
        del data["metadata"]["hardware"]
        assert ResultDocument.from_dict(data).metadata.hardware is None

    def test_other_schema_version_still_parses(self):
        data = valid_raw()
        data["schema_version"] = 2
        assert ResultDocument.from_dict(data).schema_version == 2


class TestLoadDocument:
    def test_load_from_disk(self, tmp_path):
        path = tmp_path / "latency.json"
        path.write_text(json.dumps(valid_raw()))
        doc = load_document(path)
        assert doc.results[0].metrics.p50_ns == 1200

    def test_missing_file(self, tmp_path):
        with pytest.raises(ResultParseError) as exc:
            load_document(tmp_path / "nope.json")
        assert "nope.json" in str(exc.value)

    def test_not_utf8(self, tmp_path):
        path = tmp_path / "garbled.json"
        path.write_bytes(b"\xff\xfe{not utf8")
        with pytest.raises(ResultParseError) as exc:
            load_document(path)
        assert "garbled.json" in str(exc.value)
