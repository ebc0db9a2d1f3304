"""
StrataBench Exceptions
======================

Error taxonomy for the benchmark harness.

Exception Hierarchy:
    StrataBenchError (base)
    ├── RecoverableError (transient, expected under load)
    │   └── TransientAbortError
    ├── IrrecoverableError (fatal to the unit of work that raised it)
    │   ├── EngineError
    │   ├── SweepPointError
    │   ├── ConfigurationError
    │   └── WorkloadNotFoundError
    └── SchemaError (fatal to a comparison run)
        ├── ResultParseError
        └── SchemaVersionMismatchError

Usage Guidelines:
    - Engines raise TransientAbortError for optimistic-concurrency conflicts.
      The workload driver counts these and keeps going.
    - Any other exception escaping an operation is fatal to the sweep point.
    - SchemaError subclasses always name the offending document (and field
      where there is one) so the comparison CLI can print a precise diagnostic.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCategory(Enum):
    """Categories for error classification."""
    ENGINE = "ENGINE"
    CONTENTION = "CONTENTION"
    CONFIG = "CONFIG"
    SCHEMA = "SCHEMA"
    WORKLOAD = "WORKLOAD"
    SYSTEM = "SYSTEM"


class StrataBenchError(Exception):
    """
    Base exception for all harness errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        context: Additional context about the error
        recoverable: Whether the error is expected to go away on its own
    """

    error_code: str = "STRATABENCH_ERROR"
    recoverable: bool = False
    category: ErrorCategory = ErrorCategory.SYSTEM

    def __init__(
        self,
        message: str,
        context: Optional[dict] = None,
        error_code: Optional[str] = None,
        recoverable: Optional[bool] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        if error_code is not None:
            self.error_code = error_code
        if recoverable is not None:
            self.recoverable = recoverable

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} | context={self.context}"
        return self.message

    def to_dict(self) -> dict:
        """Convert exception to a JSON-friendly dictionary."""
        result = {
            "error": self.message,
            "code": self.error_code,
            "recoverable": self.recoverable,
        }
        if self.context:
            result["context"] = self.context
        return result


class RecoverableError(StrataBenchError):
    """Base class for transient errors."""
    recoverable = True


class IrrecoverableError(StrataBenchError):
    """Base class for errors that end the current unit of work."""
    recoverable = False


# =============================================================================
# Engine Errors
# =============================================================================

class TransientAbortError(RecoverableError):
    """
    Raised by an engine when an operation lost an optimistic-concurrency race.

    The operation did not complete its intended work. Drivers count it as an
    attempt and an abort and exclude it from latency samples.
    """
    error_code = "TRANSIENT_ABORT"
    category = ErrorCategory.CONTENTION

    def __init__(self, resource: str, reason: str = "Concurrent modification", context: Optional[dict] = None):
        ctx = {"resource": resource}
        if context:
            ctx.update(context)
        super().__init__(f"{reason} on '{resource}'", ctx)
        self.resource = resource


class EngineError(IrrecoverableError):
    """Hard engine failure: I/O, corruption or invalid argument."""
    error_code = "ENGINE_ERROR"
    category = ErrorCategory.ENGINE

    def __init__(self, operation: str, reason: str, context: Optional[dict] = None):
        ctx = {"operation": operation}
        if context:
            ctx.update(context)
        super().__init__(f"Engine operation '{operation}' failed: {reason}", ctx)
        self.operation = operation
        self.reason = reason


class SweepPointError(IrrecoverableError):
    """A sweep point could not be measured. Wraps the underlying failure."""
    error_code = "SWEEP_POINT_ERROR"
    category = ErrorCategory.ENGINE

    def __init__(self, identity: str, cause: BaseException, context: Optional[dict] = None):
        ctx = {"benchmark": identity, "cause": type(cause).__name__}
        if context:
            ctx.update(context)
        super().__init__(f"Benchmark '{identity}' failed: {cause}", ctx)
        self.identity = identity
        self.cause = cause


# =============================================================================
# Configuration / Workload Errors
# =============================================================================

class ConfigurationError(IrrecoverableError):
    """Raised when a configuration value is invalid."""
    error_code = "CONFIGURATION_ERROR"
    category = ErrorCategory.CONFIG

    def __init__(self, config_key: str, reason: str, context: Optional[dict] = None):
        ctx = {"config_key": config_key}
        if context:
            ctx.update(context)
        super().__init__(f"Configuration error for '{config_key}': {reason}", ctx)
        self.config_key = config_key


class WorkloadNotFoundError(IrrecoverableError):
    """Raised when a workload name is not registered."""
    error_code = "WORKLOAD_NOT_FOUND"
    category = ErrorCategory.WORKLOAD

    def __init__(self, name: str, context: Optional[dict] = None):
        ctx = {"workload": name}
        if context:
            ctx.update(context)
        super().__init__(f"Unknown workload '{name}'", ctx)
        self.name = name


# =============================================================================
# Schema Errors
# =============================================================================

class SchemaError(StrataBenchError):
    """Base exception for malformed or incompatible result documents."""
    error_code = "SCHEMA_ERROR"
    category = ErrorCategory.SCHEMA
    recoverable = False


class ResultParseError(SchemaError):
    """A result document could not be read, decoded or validated."""
    error_code = "RESULT_PARSE_ERROR"

    def __init__(
        self,
        document: str,
        reason: str,
        field: Optional[str] = None,
        context: Optional[dict] = None,
    ):
        ctx: dict[str, Any] = {"document": document}
        if field is not None:
            ctx["field"] = field
        if context:
            ctx.update(context)
        where = f" (field '{field}')" if field is not None else ""
        super().__init__(f"Invalid result document {document}{where}: {reason}", ctx)
        self.document = document
        self.field = field
        self.reason = reason


class SchemaVersionMismatchError(SchemaError):
    """The two documents of a comparison use different schema versions."""
    error_code = "SCHEMA_VERSION_MISMATCH"

    def __init__(
        self,
        baseline_version: int,
        candidate_version: int,
        baseline: str = "baseline",
        candidate: str = "candidate",
    ):
        super().__init__(
            f"Schema version mismatch: {baseline} has v{baseline_version}, "
            f"{candidate} has v{candidate_version}",
            {
                "baseline": baseline,
                "candidate": candidate,
                "baseline_version": baseline_version,
                "candidate_version": candidate_version,
            },
        )
        self.baseline_version = baseline_version
        self.candidate_version = candidate_version


__all__ = [
    "ErrorCategory",
    "StrataBenchError",
    "RecoverableError",
    "IrrecoverableError",
    "TransientAbortError",
    "EngineError",
    "SweepPointError",
    "ConfigurationError",
    "WorkloadNotFoundError",
    "SchemaError",
    "ResultParseError",
    "SchemaVersionMismatchError",
]
