"""Batch execution — bounded fan-out through the retry pipeline.

WHY
───
Collaborators often need to fire many calls at the same service (fetch
every transcript of a campaign, sync a page of call records).  Running
them all at once would immediately hit the burst limit; running them one
by one is slow.  ``execute_batch`` splits the work into chunks of
``concurrency`` and runs each chunk with ``asyncio.gather``, every item
going through ``execute_with_retry`` individually.

ARCHITECTURE
────────────
::

    operations ──► chunk[0:c] ──gather──► chunk[c:2c] ──gather──► ...
                     │
                     └── each item: execute_with_retry(op, key, "name[i]")

    fail_fast=True      first failure aborts the batch (re-raised)
    collect_errors=True failures kept in BatchResult.errors

``results`` keeps successful values in chunk order; failed entries are
dropped, so indices do not line up with the input list.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from callguard.core.errors import ApiError, InvalidConfigError
from callguard.core.logging import LogContext, get_logger

from .classifier import enhance

T = TypeVar("T")

logger = get_logger(__name__)

RetryExecutor = Callable[[Callable[[], Awaitable[Any]], str, str], Awaitable[Any]]


@dataclass
class BatchResult(Generic[T]):
    """Aggregate result of a batch."""

    results: list[T] = field(default_factory=list)
    errors: list[ApiError] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.results)

    @property
    def failure_count(self) -> int:
        return len(self.errors)

    def to_dict(self) -> dict[str, Any]:
        """Serialise for logging / API responses."""
        return {
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "errors": [error.to_dict() for error in self.errors],
        }


@dataclass
class _Outcome:
    ok: bool
    value: Any = None
    error: ApiError | None = None


async def run_batch(
    execute: RetryExecutor,
    operations: Sequence[Callable[[], Awaitable[T]]],
    service_key: str,
    operation_name: str,
    *,
    concurrency: int = 5,
    fail_fast: bool = False,
    collect_errors: bool = True,
) -> BatchResult[T]:
    """Run ``operations`` through ``execute`` in chunks of ``concurrency``.

    Args:
        execute: Retry pipeline, normally ``ResilienceOrchestrator.execute_with_retry``
        operations: Zero-argument async callables
        service_key: Service key shared by every item
        operation_name: Base name; items run as ``"<name>[<index>]"``
        concurrency: Items per chunk
        fail_fast: Re-raise the first failure instead of collecting
        collect_errors: Keep failures in ``BatchResult.errors``

    Raises:
        ApiError: First failure, when ``fail_fast`` is set
    """
    if concurrency < 1:
        raise InvalidConfigError("batch.concurrency", concurrency, "concurrency must be >= 1")

    batch_id = str(uuid.uuid4())
    result: BatchResult[T] = BatchResult()

    logger.info(
        "batch.start",
        batch_id=batch_id,
        service=service_key,
        operation=operation_name,
        items=len(operations),
        concurrency=concurrency,
    )

    async def _run_one(index: int, operation: Callable[[], Awaitable[T]]) -> _Outcome:
        try:
            value = await execute(operation, service_key, f"{operation_name}[{index}]")
        except Exception as exc:
            error = enhance(exc, service_key, operation_name)
            if fail_fast:
                raise error
            return _Outcome(ok=False, error=error)
        return _Outcome(ok=True, value=value)

    async with LogContext(batch_id=batch_id):
        for start in range(0, len(operations), concurrency):
            chunk = operations[start : start + concurrency]
            outcomes = await asyncio.gather(
                *[_run_one(start + offset, operation) for offset, operation in enumerate(chunk)]
            )

            for outcome in outcomes:
                if outcome.ok:
                    result.results.append(outcome.value)
                elif collect_errors and outcome.error is not None:
                    result.errors.append(outcome.error)

    logger.info(
        "batch.complete",
        batch_id=batch_id,
        service=service_key,
        operation=operation_name,
        succeeded=result.success_count,
        failed=result.failure_count,
    )

    return result


__all__ = ["BatchResult", "run_batch"]
