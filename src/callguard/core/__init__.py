"""Callguard Core -- logging, errors and settings shared by every module.

Architecture::

    errors.py     Structured error hierarchy (CallguardError, ApiError, ...)
    logging.py    structlog configuration + get_logger
    settings.py   Environment-driven settings (CALLGUARD_*)
"""

from callguard.core.errors import (
    ApiError,
    BurstLimitError,
    CallguardError,
    CircuitOpenError,
    ErrorKind,
    InvalidConfigError,
    OperationTimeoutError,
)
from callguard.core.logging import configure_logging, get_logger

__all__ = [
    "ApiError",
    "BurstLimitError",
    "CallguardError",
    "CircuitOpenError",
    "ErrorKind",
    "InvalidConfigError",
    "OperationTimeoutError",
    "configure_logging",
    "get_logger",
]
