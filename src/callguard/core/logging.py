"""
Callguard Logging - Structured logging for the execution layer.

Every component of callguard logs through structlog so that retry
attempts, circuit transitions and throttling decisions end up as
queryable events instead of free-form text.

Architecture:
    ::

        configure_logging(level="INFO", json_format=True, service="callguard")
            │
            ▼
        structlog processor chain:
          1. TimeStamper (iso)
          2. add_log_level / add_logger_name
          3. add_service_metadata
          4. elasticsearch_compatible   (JSON only)
          5. JSONRenderer | ConsoleRenderer

        logger = get_logger(__name__)
        logger.warning("retry.attempt_failed", service="voice", attempt=2)

Examples:
    >>> from callguard.core.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", service="callguard")
    >>> logger = get_logger(__name__)
    >>> logger.info("circuit.state_changed", old="closed", new="open")

Tags:
    logging, structlog, observability, callguard
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

_SERVICE_NAME = "callguard"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service.name", _SERVICE_NAME)
    return event_dict


def _elasticsearch_compatible(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Make field names Elasticsearch/ECS compatible."""
    if "timestamp" in event_dict:
        event_dict["@timestamp"] = event_dict.pop("timestamp")

    if "level" in event_dict:
        event_dict["log.level"] = event_dict.pop("level")

    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "callguard",
    add_timestamp: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Service name to include in logs
        add_timestamp: Include ISO timestamp in logs
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    if json_format is None:
        json_format = not sys.stdout.isatty()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]

    if add_timestamp:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        shared_processors.append(_elasticsearch_compatible)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (usually ``get_logger(__name__)``)."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs.

    Example:
        bind_context(service_key="voice", request_id="abc123")
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context."""
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Context manager for scoped logging context.

    Values bound by an enclosing context for the same keys are restored
    on exit.

    Example:
        async with LogContext(service_key="llm", operation="summarize"):
            await orchestrator.execute_with_retry(...)
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs
        self._previous: dict[str, Any] = {}

    def _bind(self) -> None:
        current = structlog.contextvars.get_contextvars()
        self._previous = {key: current[key] for key in self._context if key in current}
        bind_context(**self._context)

    def _restore(self) -> None:
        unbind_context(*self._context.keys())
        if self._previous:
            bind_context(**self._previous)

    def __enter__(self) -> "LogContext":
        self._bind()
        return self

    def __exit__(self, *args) -> None:
        self._restore()

    async def __aenter__(self) -> "LogContext":
        self._bind()
        return self

    async def __aexit__(self, *args) -> None:
        self._restore()


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
