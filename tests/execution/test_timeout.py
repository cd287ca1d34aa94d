"""Tests for the timeout race."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from callguard.core.errors import ErrorKind, OperationTimeoutError
from callguard.execution.clock import SystemClock
from callguard.execution.timeout import execute_with_timeout


class TestExecuteWithTimeout:
    @pytest.mark.asyncio
    async def test_returns_result_when_fast(self, clock):
        result = await execute_with_timeout(AsyncMock(return_value="done"), 500, "fetch", clock=clock)

        assert result == "done"

    @pytest.mark.asyncio
    async def test_propagates_operation_error(self, clock):
        with pytest.raises(ValueError, match="bad payload"):
            await execute_with_timeout(AsyncMock(side_effect=ValueError("bad payload")), 500, clock=clock)

    @pytest.mark.asyncio
    async def test_times_out_with_virtual_clock(self, clock):
        never = asyncio.Event()

        with pytest.raises(OperationTimeoutError) as exc_info:
            await execute_with_timeout(never.wait, 250, "wait_for_event", clock=clock)

        assert str(exc_info.value) == "wait_for_event timed out after 250ms"
        assert exc_info.value.kind == ErrorKind.TIMEOUT
        assert clock.sleeps == [250]

    @pytest.mark.asyncio
    async def test_times_out_in_real_time(self):
        async def slow():
            await asyncio.sleep(1.0)
            return "late"

        loop = asyncio.get_running_loop()
        started = loop.time()
        with pytest.raises(OperationTimeoutError, match="x timed out after 50ms"):
            await execute_with_timeout(slow, 50, "x", clock=SystemClock())

        assert loop.time() - started < 0.9

    @pytest.mark.asyncio
    async def test_default_label(self, clock):
        with pytest.raises(OperationTimeoutError, match="^operation timed out after 10ms$"):
            await execute_with_timeout(asyncio.Event().wait, 10, clock=clock)

    @pytest.mark.asyncio
    async def test_is_builtin_timeout_error(self, clock):
        with pytest.raises(TimeoutError):
            await execute_with_timeout(asyncio.Event().wait, 10, clock=clock)

    @pytest.mark.asyncio
    async def test_abandoned_operation_keeps_running(self):
        finished = asyncio.Event()

        async def slow():
            await asyncio.sleep(0.05)
            finished.set()

        with pytest.raises(OperationTimeoutError):
            await execute_with_timeout(slow, 10, "slow", clock=SystemClock())

        await asyncio.wait_for(finished.wait(), timeout=1.0)
        assert finished.is_set()

    @pytest.mark.asyncio
    async def test_slower_virtual_operation_loses_race(self, clock):
        with pytest.raises(OperationTimeoutError, match="x timed out after 500ms"):
            await execute_with_timeout(lambda: clock.sleep(1000), 500, "x", clock=clock)

        assert clock.now() == 500.0

    @pytest.mark.asyncio
    async def test_faster_virtual_operation_wins_race(self, clock):
        async def fetch():
            await clock.sleep(200)
            return "payload"

        result = await execute_with_timeout(fetch, 500, "fetch", clock=clock)

        assert result == "payload"
        assert clock.now() == 200.0
