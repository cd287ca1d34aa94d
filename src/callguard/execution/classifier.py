"""Failure classification — retryable or not, and what kind.

Rules, in order:

1. Circuit-open, burst-limit and timeout-race errors keep their own
   kind.  An ``ApiError`` without a status keeps its kind when one was
   given.  Any other callguard error is classified like a foreign one.
2. HTTP status, when present:
   - 429 → RateLimited (retryable), 408 → Timeout (retryable)
   - other 4xx → ClientError (not retryable)
   - 5xx → ServerError (retryable)
3. Built-in ``TimeoutError`` / ``ConnectionError`` → Timeout / Network.
4. Message text (case-insensitive):
   - network, timeout, connection, econnreset, enotfound → retryable
   - unauthorized, forbidden, invalid api key → not retryable
   - anything else → Unknown, retryable

Status is read from ``error.status``, ``error.status_code`` or
``error.response.status_code`` so httpx/requests exceptions classify
without adapters.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from callguard.core.errors import (
    ApiError,
    BurstLimitError,
    CallguardError,
    CircuitOpenError,
    ErrorKind,
    OperationTimeoutError,
    utcnow,
)

_PIPELINE_ERRORS = (CircuitOpenError, BurstLimitError, OperationTimeoutError)

_NETWORK_PATTERNS = ("network", "timeout", "connection", "econnreset", "enotfound")
_AUTH_PATTERNS = ("unauthorized", "forbidden", "invalid api key")


def _as_status(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    return None


def extract_status(error: BaseException) -> int | None:
    """Best-effort HTTP status of ``error``."""
    for attr in ("status", "status_code"):
        status = _as_status(getattr(error, attr, None))
        if status is not None:
            return status
    response = getattr(error, "response", None)
    if response is not None:
        return _as_status(getattr(response, "status_code", None))
    return None


def _message_of(error: BaseException) -> str:
    if isinstance(error, CallguardError):
        return error.message
    return str(error)


def _classify_status(status: int) -> tuple[ErrorKind, bool] | None:
    if 400 <= status < 500:
        if status == 429:
            return ErrorKind.RATE_LIMITED, True
        if status == 408:
            return ErrorKind.TIMEOUT, True
        return ErrorKind.CLIENT_ERROR, False
    if status >= 500:
        return ErrorKind.SERVER_ERROR, True
    return None


def _classify_message(message: str) -> tuple[ErrorKind, bool]:
    text = message.lower()
    if any(pattern in text for pattern in _NETWORK_PATTERNS):
        kind = ErrorKind.TIMEOUT if "timeout" in text else ErrorKind.NETWORK
        return kind, True
    if any(pattern in text for pattern in _AUTH_PATTERNS):
        return ErrorKind.CLIENT_ERROR, False
    return ErrorKind.UNKNOWN, True


def classify(error: BaseException) -> tuple[ErrorKind, bool]:
    """Return ``(kind, retryable)`` for ``error``."""
    if isinstance(error, _PIPELINE_ERRORS):
        return error.kind, error.retryable

    status = extract_status(error)
    if status is not None:
        verdict = _classify_status(status)
        if verdict is not None:
            return verdict

    if isinstance(error, ApiError) and error.kind != ErrorKind.UNKNOWN:
        return error.kind, error.retryable

    if isinstance(error, TimeoutError):
        return ErrorKind.TIMEOUT, True
    if isinstance(error, ConnectionError):
        return ErrorKind.NETWORK, True

    return _classify_message(_message_of(error))


def is_retryable(error: BaseException) -> bool:
    """Whether a failed attempt may be retried."""
    return classify(error)[1]


def enhance(
    error: BaseException,
    service: str,
    operation: str,
    attempt: int | None = None,
    timestamp: datetime | None = None,
) -> ApiError:
    """Wrap ``error`` into an ``ApiError`` carrying call metadata.

    An existing ``ApiError`` is updated in place and returned.  When
    ``attempt`` is given, `` (attempt N)`` is appended to the message
    (``N`` is one-based).
    """
    kind, retryable = classify(error)
    when = timestamp or utcnow()

    if isinstance(error, ApiError):
        api_error = error
        api_error.kind = kind
        api_error.retryable = retryable
        api_error.service = service
        api_error.operation = operation
        api_error.timestamp = when
        if api_error.status is None:
            api_error.status = extract_status(error)
    else:
        code = getattr(error, "code", None)
        context = dict(error.context) if isinstance(error, CallguardError) else None
        api_error = ApiError(
            _message_of(error) or error.__class__.__name__,
            kind=kind,
            status=extract_status(error),
            code=code if isinstance(code, str) else None,
            service=service,
            operation=operation,
            retryable=retryable,
            timestamp=when,
            details=getattr(error, "details", None),
            context=context,
            cause=error,
        )

    if attempt is not None:
        api_error.attempt = attempt
        api_error.message = f"{api_error.message} (attempt {attempt + 1})"
        api_error.args = (api_error.message,)

    return api_error


__all__ = ["classify", "is_retryable", "enhance", "extract_status"]
