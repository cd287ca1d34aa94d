"""Timeout race for async operations.

``execute_with_timeout`` races an operation against a timer.  If the
timer wins, the caller gets ``OperationTimeoutError`` immediately; the
operation itself keeps running in the background because cancellation
here is cooperative: only the *wait* is abandoned.  Callers must not
assume resources held by an abandoned operation are released.

Example::

    summary = await execute_with_timeout(
        lambda: llm.summarize(transcript), 30_000, "llm.summarize"
    )
    # OperationTimeoutError: llm.summarize timed out after 30000ms
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from callguard.core.errors import OperationTimeoutError
from callguard.core.logging import get_logger

from .clock import Clock, SystemClock

T = TypeVar("T")

logger = get_logger(__name__)


def _consume_result(task: asyncio.Future) -> None:
    # Abandoned operations may fail later; retrieve the exception so the
    # loop does not report it as never retrieved.
    if not task.cancelled() and task.exception() is not None:
        logger.debug("timeout.abandoned_operation_failed", error=str(task.exception()))


async def execute_with_timeout(
    operation: Callable[[], Awaitable[T]],
    timeout_ms: float,
    label: str = "operation",
    *,
    clock: Clock | None = None,
) -> T:
    """Await ``operation()`` for at most ``timeout_ms`` milliseconds.

    Raises:
        OperationTimeoutError: ``"<label> timed out after <timeout_ms>ms"``
    """
    clock = clock or SystemClock()
    task = asyncio.ensure_future(operation())
    timer = asyncio.ensure_future(clock.sleep(timeout_ms))

    try:
        done, _ = await asyncio.wait({task, timer}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        if not timer.done():
            timer.cancel()

    if task in done:
        return task.result()

    task.add_done_callback(_consume_result)
    logger.debug("timeout.expired", label=label, timeout_ms=timeout_ms)
    raise OperationTimeoutError(timeout_ms, label)


__all__ = ["execute_with_timeout"]
