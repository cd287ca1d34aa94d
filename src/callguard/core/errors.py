"""
Structured error types for callguard.

Every failure that leaves the execution layer is a ``CallguardError``.
Instead of a bare exception with a bag of optional attributes, each
error carries an explicit ``ErrorKind`` plus the structured fields
needed for retry decisions, metrics and health reporting.

Architecture:
    ::

        CallguardError  (kind, retryable, context, cause)
          ├── ApiError               ─ classified failure of a wrapped call
          │                            (status, code, service, operation,
          │                             timestamp, details, attempt)
          ├── CircuitOpenError       ─ breaker OPEN, call never attempted
          ├── BurstLimitError        ─ hard burst ceiling hit
          ├── OperationTimeoutError  ─ timeout race lost (also a TimeoutError)
          └── InvalidConfigError     ─ rejected configuration value

Examples:
    >>> err = ApiError("Bad request", kind=ErrorKind.CLIENT_ERROR, status=400,
    ...                service="voice", operation="create_call", retryable=False)
    >>> err.to_dict()["kind"]
    'ClientError'

Tags:
    error-handling, exception-hierarchy, retry-logic, callguard
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


class ErrorKind(str, Enum):
    """Classification of a failed outbound call."""

    CLIENT_ERROR = "ClientError"
    SERVER_ERROR = "ServerError"
    RATE_LIMITED = "RateLimited"
    TIMEOUT = "Timeout"
    CIRCUIT_OPEN = "CircuitOpen"
    BURST_LIMIT = "BurstLimit"
    NETWORK = "Network"
    UNKNOWN = "Unknown"


class CallguardError(Exception):
    """Base class for all callguard errors.

    Subclasses set ``default_kind`` and ``default_retryable``; both can
    be overridden per instance.
    """

    default_kind: ErrorKind = ErrorKind.UNKNOWN
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind | None = None,
        retryable: bool | None = None,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or {}
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return self.message

    def with_context(self, **kwargs: Any) -> CallguardError:
        """Add context to this error (fluent API)."""
        self.context.update(kwargs)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "kind": self.kind.value,
            "retryable": self.retryable,
        }
        if self.context:
            result["context"] = dict(self.context)
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, kind={self.kind.value})"


class ApiError(CallguardError):
    """A classified failure of a wrapped operation.

    Attributes:
        status: HTTP status reported by the downstream service, if any
        code: Provider-specific error code, if any
        service: Service key the call was made under
        operation: Operation name the call was made under
        timestamp: When the failure was observed
        details: Arbitrary provider payload
        attempt: Zero-based attempt index that produced this error
    """

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        status: int | None = None,
        code: str | None = None,
        service: str = "",
        operation: str = "",
        retryable: bool = True,
        timestamp: datetime | None = None,
        details: Any = None,
        attempt: int | None = None,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(
            message, kind=kind, retryable=retryable, context=context, cause=cause
        )
        self.status = status
        self.code = code
        self.service = service
        self.operation = operation
        self.timestamp = timestamp or utcnow()
        self.details = details
        self.attempt = attempt

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result.update(
            {
                "service": self.service,
                "operation": self.operation,
                "timestamp": self.timestamp.isoformat(),
            }
        )
        if self.status is not None:
            result["status"] = self.status
        if self.code is not None:
            result["code"] = self.code
        if self.details is not None:
            result["details"] = self.details
        if self.attempt is not None:
            result["attempt"] = self.attempt
        return result


class CircuitOpenError(CallguardError):
    """Raised when a circuit is open and the call was not attempted."""

    default_kind = ErrorKind.CIRCUIT_OPEN
    default_retryable = True

    def __init__(
        self,
        message: str = "Circuit breaker is OPEN - operation not allowed",
        *,
        remaining_ms: float | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.remaining_ms = remaining_ms


class BurstLimitError(CallguardError):
    """Raised when the rate limiter's hard burst ceiling is reached."""

    default_kind = ErrorKind.BURST_LIMIT
    default_retryable = True

    def __init__(
        self,
        message: str = "Rate limit exceeded - burst limit reached",
        *,
        burst_limit: int | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.burst_limit = burst_limit


class OperationTimeoutError(CallguardError, TimeoutError):
    """Raised when an operation loses the race against its timer.

    Inherits from built-in TimeoutError for broad exception handling.
    """

    default_kind = ErrorKind.TIMEOUT
    default_retryable = True

    def __init__(self, timeout_ms: float, label: str = "operation"):
        self.timeout_ms = timeout_ms
        self.label = label
        super().__init__(f"{label} timed out after {_format_ms(timeout_ms)}ms")


class InvalidConfigError(CallguardError):
    """A configuration value was rejected."""

    default_retryable = False

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for '{key}': {value!r}")


def _format_ms(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


__all__ = [
    "ErrorKind",
    "CallguardError",
    "ApiError",
    "CircuitOpenError",
    "BurstLimitError",
    "OperationTimeoutError",
    "InvalidConfigError",
    "utcnow",
]
