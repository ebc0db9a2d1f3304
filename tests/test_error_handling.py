"""
StrataBench Test Suite - Error Taxonomy
"""

from stratabench.core.exceptions import (
    ConfigurationError,
    EngineError,
    ErrorCategory,
    IrrecoverableError,
    RecoverableError,
    ResultParseError,
    SchemaError,
    SchemaVersionMismatchError,
    StrataBenchError,
    SweepPointError,
    TransientAbortError,
)


class TestHierarchy:
    def test_transient_abort_is_recoverable(self):
        err = TransientAbortError("cell:hot")
        assert isinstance(err, RecoverableError)
        assert err.recoverable
        assert err.category is ErrorCategory.CONTENTION
        assert err.context["resource"] == "cell:hot"

    def test_engine_error_is_irrecoverable(self):
        err = EngineError("kv_put", "disk full", {"key": "a"})
        assert isinstance(err, IrrecoverableError)
        assert not err.recoverable
        assert err.context == {"operation": "kv_put", "key": "a"}

    def test_schema_errors(self):
        assert issubclass(ResultParseError, SchemaError)
        assert issubclass(SchemaVersionMismatchError, SchemaError)
        assert issubclass(SchemaError, StrataBenchError)


class TestMessages:
    def test_parse_error_names_document_and_field(self):
        err = ResultParseError("run.json", "missing required field", field="metadata.sdk")
        assert "run.json" in str(err)
        assert "metadata.sdk" in str(err)
        assert err.to_dict()["code"] == "RESULT_PARSE_ERROR"

    def test_version_mismatch(self):
        err = SchemaVersionMismatchError(1, 2, baseline="a.json", candidate="b.json")
        assert "a.json has v1" in str(err)
        assert "b.json has v2" in str(err)

    def test_sweep_point_error_keeps_cause(self):
        cause = EngineError("kv_get", "corrupt page")
        err = SweepPointError("kv/get/t4/cache", cause)
        assert err.cause is cause
        assert err.context["cause"] == "EngineError"

    def test_configuration_error_key(self):
        err = ConfigurationError("thread_counts", "must not be empty")
        assert err.config_key == "thread_counts"
        assert err.to_dict()["context"] == {"config_key": "thread_counts"}
