"""Clock abstraction for time-dependent resilience logic.

Breakers, limiters, backoff and timeouts all read time and sleep.  They
do so through a ``Clock`` so tests can drive virtual time instead of
waiting on real timers.

Times are milliseconds on a monotonic scale; ``wall()`` is only used for
human-facing timestamps (metrics, error records).

Example:
    >>> clock = ManualClock()
    >>> clock.now()
    0.0
    >>> clock.advance(1500)
    >>> clock.now()
    1500.0
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import time
from datetime import UTC, datetime, timedelta
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Source of time and sleeping for the execution layer."""

    def now(self) -> float:
        """Monotonic time in milliseconds."""
        ...

    async def sleep(self, ms: float) -> None:
        """Suspend the current task for ``ms`` milliseconds."""
        ...

    def wall(self) -> datetime:
        """Timezone-aware wall-clock time."""
        ...


class SystemClock:
    """Real time backed by ``time.monotonic`` and ``asyncio.sleep``."""

    def now(self) -> float:
        return time.monotonic() * 1000.0

    async def sleep(self, ms: float) -> None:
        await asyncio.sleep(max(0.0, ms) / 1000.0)

    def wall(self) -> datetime:
        return datetime.now(UTC)


class ManualClock:
    """Virtual clock for deterministic tests.

    ``sleep`` registers a deadline and waits for virtual time to reach
    it.  Time moves in two ways:

    - ``advance(ms)`` releases every sleeper whose deadline falls inside
      the step, earliest deadline first.
    - with ``auto_advance`` (the default), a driver task lets the loop
      run ``settle_ticks`` iterations, then jumps time to the earliest
      pending deadline.

    Concurrent sleepers therefore finish in deadline order and share the
    same timeline: five parallel ``sleep(100)`` calls end at 100ms, not
    500ms.  ``sleeps`` records every requested sleep.
    """

    def __init__(
        self,
        start_ms: float = 0.0,
        epoch: datetime | None = None,
        *,
        auto_advance: bool = True,
        settle_ticks: int = 10,
    ):
        self._now = float(start_ms)
        self._epoch = epoch or datetime(2026, 1, 1, tzinfo=UTC)
        self.auto_advance = auto_advance
        self.settle_ticks = settle_ticks
        self.sleeps: list[float] = []
        self._sleepers: list[tuple[float, int, asyncio.Future[None]]] = []
        self._sequence = itertools.count()
        self._driver: asyncio.Task[None] | None = None

    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        """Number of sleepers still waiting for their deadline."""
        return sum(1 for _, _, waiter in self._sleepers if not waiter.done())

    def advance(self, ms: float) -> None:
        """Move virtual time forward by ``ms`` milliseconds."""
        if ms < 0:
            raise ValueError("Cannot move a clock backwards")
        self._release_until(self._now + ms)

    async def sleep(self, ms: float) -> None:
        self.sleeps.append(ms)
        if ms <= 0:
            await asyncio.sleep(0)
            return

        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[None] = loop.create_future()
        heapq.heappush(self._sleepers, (self._now + ms, next(self._sequence), waiter))
        if self.auto_advance and not self._driving(loop):
            self._driver = loop.create_task(self._drive())
        await waiter

    def wall(self) -> datetime:
        return self._epoch + timedelta(milliseconds=self._now)

    def _release_until(self, target: float) -> None:
        while self._sleepers and self._sleepers[0][0] <= target:
            deadline, _, waiter = heapq.heappop(self._sleepers)
            if waiter.done():
                continue
            self._now = max(self._now, deadline)
            waiter.set_result(None)
        self._now = max(self._now, target)

    def _driving(self, loop: asyncio.AbstractEventLoop) -> bool:
        driver = self._driver
        return driver is not None and not driver.done() and driver.get_loop() is loop

    def _drop_cancelled(self) -> None:
        while self._sleepers and self._sleepers[0][2].done():
            heapq.heappop(self._sleepers)

    async def _drive(self) -> None:
        while self._sleepers:
            for _ in range(self.settle_ticks):
                await asyncio.sleep(0)
            self._drop_cancelled()
            if not self._sleepers:
                break
            self._release_until(self._sleepers[0][0])
