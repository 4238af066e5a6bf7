"""
Result types for explicit success/failure tracking in witness generation.

This module provides structured result types that carry success/failure
information, enabling zero silent failures during witness generation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from witness_toolkit.shared.exceptions import RetryableException

T = TypeVar("T")


class ErrorSeverity(Enum):
    """Severity levels for processing errors."""

    WARNING = "warning"  # Continue processing, log issue
    ERROR = "error"  # Skip this item, continue others
    CRITICAL = "critical"  # Stop processing entirely


@dataclass
class ProcessingError:
    """
    Represents a single processing error with context.

    Attributes:
        source: Component that generated the error (e.g., "slot_discovery", "proof_fetch")
        message: Human-readable error description
        severity: How severe the error is (affects control flow)
        context: Additional context like contract, holder, block, error_kind
        exception: Original exception if available
    """

    source: str
    message: str
    severity: ErrorSeverity
    context: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[Exception] = None

    @property
    def error_kind(self) -> Optional[str]:
        """Class name of the underlying exception, if any."""
        if self.exception is not None:
            return type(self.exception).__name__
        return self.context.get("error_kind")

    @property
    def retryable(self) -> bool:
        """Whether the underlying failure is worth retrying later."""
        return isinstance(self.exception, RetryableException)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "source": self.source,
            "message": self.message,
            "severity": self.severity.value,
            "error_kind": self.error_kind,
            "retryable": self.retryable,
            "context": self.context,
        }


@dataclass
class Result(Generic[T]):
    """
    Result type that carries success/failure information.

    This is a simple Result/Either monad pattern that makes error handling
    explicit and prevents silent failures.

    Attributes:
        success: Whether the operation succeeded
        data: The result data if successful
        errors: List of errors encountered (can have errors even on success for warnings)
    """

    success: bool
    data: Optional[T] = None
    errors: List[ProcessingError] = field(default_factory=list)

    @classmethod
    def ok(cls, data: T) -> "Result[T]":
        """Create a successful result with data."""
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: ProcessingError) -> "Result[T]":
        """Create a failed result with an error."""
        return cls(success=False, errors=[error])

    @classmethod
    def fail_with_message(
        cls,
        source: str,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[Dict[str, Any]] = None,
        exception: Optional[Exception] = None,
    ) -> "Result[T]":
        """Create a failed result with a message (convenience method)."""
        error = ProcessingError(
            source=source,
            message=message,
            severity=severity,
            context=context or {},
            exception=exception,
        )
        return cls(success=False, errors=[error])

    @classmethod
    def from_exception(
        cls,
        source: str,
        exception: Exception,
        context: Optional[Dict[str, Any]] = None,
    ) -> "Result[T]":
        """Create a failed result that preserves the exception kind."""
        merged = dict(getattr(exception, "context", {}) or {})
        merged.update(context or {})
        merged["error_kind"] = type(exception).__name__
        merged["retryable"] = isinstance(exception, RetryableException)
        message = getattr(exception, "message", None) or str(exception)
        return cls.fail_with_message(
            source=source,
            message=message,
            severity=ErrorSeverity.ERROR,
            context=merged,
            exception=exception,
        )

    def add_error(self, error: ProcessingError) -> "Result[T]":
        """Add an error to the result (for warnings on success)."""
        self.errors.append(error)
        return self

    def add_warning(
        self,
        source: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> "Result[T]":
        """Add a warning to the result (convenience method)."""
        self.errors.append(
            ProcessingError(
                source=source,
                message=message,
                severity=ErrorSeverity.WARNING,
                context=context or {},
            )
        )
        return self

    def has_errors(self) -> bool:
        """Check if result has any ERROR or CRITICAL level errors."""
        return any(
            e.severity in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
            for e in self.errors
        )

    def has_warnings(self) -> bool:
        """Check if result has any WARNING level errors."""
        return any(e.severity == ErrorSeverity.WARNING for e in self.errors)

    def get_error_messages(self) -> List[str]:
        """Get all error messages as strings."""
        return [e.message for e in self.errors]

    def unwrap(self) -> T:
        """Return the data, re-raising the original failure otherwise."""
        if self.success:
            return self.data
        for error in self.errors:
            if error.exception is not None:
                raise error.exception
        raise RuntimeError("; ".join(self.get_error_messages()))


@dataclass
class WitnessBatchSummary:
    """
    Summary of a batch witness generation run.

    Keeps every per-request result so callers can tell "try again later"
    (retryable failures) from "this contract needs manual slot
    configuration" (non-retryable failures).
    """

    requested: int = 0
    succeeded: int = 0
    failed: int = 0
    results: List[Result] = field(default_factory=list)

    def add(self, result: Result) -> None:
        """Record one request's result."""
        self.requested += 1
        if result.success:
            self.succeeded += 1
        else:
            self.failed += 1
        self.results.append(result)

    def errors(self) -> List[ProcessingError]:
        """All ERROR/CRITICAL entries across the batch."""
        return [
            e
            for r in self.results
            for e in r.errors
            if e.severity in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
        ]

    def warning_count(self) -> int:
        """Count total warnings."""
        return sum(
            1
            for r in self.results
            for e in r.errors
            if e.severity == ErrorSeverity.WARNING
        )

    def retryable_failures(self) -> List[ProcessingError]:
        """Errors worth retrying later."""
        return [e for e in self.errors() if e.retryable]

    def to_dict(self) -> Dict[str, Any]:
        """Convert summary to dictionary for JSON serialization."""
        return {
            "requested": self.requested,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "success_rate": (
                f"{self.succeeded}/{self.requested}"
                if self.requested
                else "N/A"
            ),
            "warning_count": self.warning_count(),
            "errors": [e.to_dict() for e in self.errors()],
        }
