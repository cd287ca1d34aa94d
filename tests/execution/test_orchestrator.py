"""Tests for ResilienceOrchestrator.

Covers the retry pipeline end to end on a virtual clock:
- retry / no-retry decisions by failure kind
- breaker and limiter integration
- metrics bookkeeping and health verdicts
"""

import asyncio
from dataclasses import replace
from unittest.mock import AsyncMock

import pytest
import structlog

from callguard.core.errors import ApiError, ErrorKind, InvalidConfigError, OperationTimeoutError
from callguard.core.logging import LogContext
from callguard.execution.circuit_breaker import CircuitBreakerState
from callguard.execution.config import CircuitBreakerConfig, RateLimitConfig
from callguard.execution.health import HealthStatus
from callguard.execution.orchestrator import ResilienceOrchestrator
from tests._support import FixedJitter, HttpError


def _with(config, clock, **sections):
    return ResilienceOrchestrator(replace(config, **sections), clock=clock, name="test")


class TestExecuteWithRetry:
    @pytest.mark.asyncio
    async def test_returns_result_on_first_success(self, orchestrator, clock):
        operation = AsyncMock(return_value={"id": "call-1"})

        result = await orchestrator.execute_with_retry(operation, "voice", "create_call")

        assert result == {"id": "call-1"}
        operation.assert_awaited_once()
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_retries_network_error(self, orchestrator, clock):
        operation = AsyncMock(side_effect=[RuntimeError("Network error"), "ok"])

        result = await orchestrator.execute_with_retry(operation, "voice", "create_call")

        assert result == "ok"
        assert operation.await_count == 2
        assert clock.sleeps == [100.0]

    @pytest.mark.asyncio
    async def test_does_not_retry_client_error(self, orchestrator, clock):
        operation = AsyncMock(side_effect=HttpError(401, "Unauthorized"))

        with pytest.raises(ApiError) as exc_info:
            await orchestrator.execute_with_retry(operation, "voice", "create_call")

        error = exc_info.value
        operation.assert_awaited_once()
        assert error.kind == ErrorKind.CLIENT_ERROR
        assert error.status == 401
        assert error.retryable is False
        assert error.service == "voice"
        assert error.operation == "create_call"
        assert error.message == "Unauthorized (attempt 1)"
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_exhausts_retries_with_backoff(self, orchestrator, clock):
        operation = AsyncMock(side_effect=HttpError(500, "Internal error"))

        with pytest.raises(ApiError) as exc_info:
            await orchestrator.execute_with_retry(operation, "llm", "summarize", max_retries=2)

        error = exc_info.value
        assert operation.await_count == 3
        assert error.status == 500
        assert error.kind == ErrorKind.SERVER_ERROR
        assert error.attempt == 2
        assert error.message.endswith("(attempt 3)")
        assert isinstance(error.__cause__, HttpError)
        assert clock.sleeps == [100.0, 200.0]

    @pytest.mark.asyncio
    async def test_zero_retries_is_single_attempt(self, orchestrator):
        operation = AsyncMock(side_effect=RuntimeError("Network error"))

        with pytest.raises(ApiError):
            await orchestrator.execute_with_retry(operation, "voice", "dial", max_retries=0)

        operation.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_overrides_do_not_leak(self, orchestrator, clock):
        operation = AsyncMock(side_effect=[RuntimeError("timeout"), "ok"])

        await orchestrator.execute_with_retry(operation, "voice", "dial", base_delay_ms=10)

        assert clock.sleeps == [10.0]
        assert orchestrator.config.retry.base_delay_ms == 100

    @pytest.mark.asyncio
    async def test_unknown_override_rejected(self, orchestrator):
        operation = AsyncMock(return_value="ok")

        with pytest.raises(InvalidConfigError):
            await orchestrator.execute_with_retry(operation, "voice", "dial", retries=2)

        operation.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_jitter_source_is_used(self, fast_config, clock):
        config = replace(fast_config, retry=replace(fast_config.retry, jitter_enabled=True))
        orchestrator = ResilienceOrchestrator(config, clock=clock, rng=FixedJitter(position=1.0))
        operation = AsyncMock(side_effect=[RuntimeError("Network error"), "ok"])

        await orchestrator.execute_with_retry(operation, "voice", "dial")

        assert clock.sleeps == [pytest.approx(125.0)]


class TestCircuitIntegration:
    @pytest.mark.asyncio
    async def test_circuit_opens_mid_retry(self, fast_config, clock):
        orchestrator = _with(
            fast_config,
            clock,
            circuit_breaker=CircuitBreakerConfig(failure_threshold=2, recovery_timeout_ms=60000),
        )
        operation = AsyncMock(side_effect=HttpError(503, "Unavailable"))

        with pytest.raises(ApiError) as exc_info:
            await orchestrator.execute_with_retry(operation, "voice", "dial")

        assert operation.await_count == 2
        assert exc_info.value.kind == ErrorKind.CIRCUIT_OPEN
        assert exc_info.value.message.startswith("Circuit breaker is OPEN")
        assert orchestrator.get_circuit_state("voice") == CircuitBreakerState.OPEN

    @pytest.mark.asyncio
    async def test_trips_recorded_and_health_unhealthy(self, fast_config, clock):
        orchestrator = _with(fast_config, clock, circuit_breaker=CircuitBreakerConfig(failure_threshold=3))
        await orchestrator.execute_with_retry(AsyncMock(return_value="ok"), "voice", "dial")

        for _ in range(3):
            with pytest.raises(ApiError):
                await orchestrator.execute_with_retry(
                    AsyncMock(side_effect=HttpError(400, "Bad request")), "voice", "dial"
                )

        metrics = orchestrator.get_metrics("voice")
        health = orchestrator.get_health_status()["voice"]
        assert metrics.circuit_breaker_trips == 1
        assert metrics.success_rate == 0.25
        assert health.status == HealthStatus.UNHEALTHY
        assert health.circuit_breaker_state == CircuitBreakerState.OPEN

    @pytest.mark.asyncio
    async def test_services_are_isolated(self, fast_config, clock):
        orchestrator = _with(fast_config, clock, circuit_breaker=CircuitBreakerConfig(failure_threshold=1))

        with pytest.raises(ApiError):
            await orchestrator.execute_with_retry(AsyncMock(side_effect=HttpError(400)), "voice", "dial")

        assert await orchestrator.execute_with_retry(AsyncMock(return_value=1), "llm", "chat") == 1
        assert orchestrator.get_circuit_state("llm") == CircuitBreakerState.CLOSED


class TestRateLimitIntegration:
    @pytest.mark.asyncio
    async def test_burst_limit_surfaces_as_api_error(self, fast_config, clock):
        orchestrator = _with(fast_config, clock, rate_limit=RateLimitConfig(requests_per_second=1, burst_limit=1))
        await orchestrator.execute_with_retry(AsyncMock(return_value="ok"), "voice", "dial", max_retries=0)
        operation = AsyncMock(return_value="ok")

        with pytest.raises(ApiError) as exc_info:
            await orchestrator.execute_with_retry(operation, "voice", "dial", max_retries=0)

        assert exc_info.value.kind == ErrorKind.BURST_LIMIT
        operation.assert_not_awaited()


class TestMetrics:
    @pytest.mark.asyncio
    async def test_degraded_after_mixed_results(self, orchestrator):
        await orchestrator.execute_with_retry(AsyncMock(return_value="ok"), "voice", "dial")
        for _ in range(3):
            with pytest.raises(ApiError):
                await orchestrator.execute_with_retry(
                    AsyncMock(side_effect=HttpError(400, "Bad request")), "voice", "dial"
                )

        metrics = orchestrator.get_metrics("voice")
        assert metrics.total_requests == 4
        assert metrics.successful_requests == 1
        assert metrics.failed_requests == 3
        assert metrics.success_rate == 0.25
        assert metrics.last_error.status == 400
        assert orchestrator.get_health_status()["voice"].status == HealthStatus.DEGRADED
        assert orchestrator.health_report().status == HealthStatus.DEGRADED

    @pytest.mark.asyncio
    async def test_counts_every_attempt(self, orchestrator):
        operation = AsyncMock(side_effect=[RuntimeError("Network error"), RuntimeError("Network error"), "ok"])

        await orchestrator.execute_with_retry(operation, "voice", "dial")

        metrics = orchestrator.get_metrics("voice")
        assert metrics.total_requests == 3
        assert metrics.failed_requests == 2
        assert metrics.retry_attempts == 2

    @pytest.mark.asyncio
    async def test_average_response_time(self, orchestrator, clock):
        async def take(ms):
            clock.advance(ms)
            return ms

        await orchestrator.execute_with_retry(lambda: take(40), "db", "query")
        await orchestrator.execute_with_retry(lambda: take(60), "db", "query")

        metrics = orchestrator.get_metrics("db")
        assert metrics.average_response_time == pytest.approx(50.0)
        assert metrics.last_success == clock.wall()

    @pytest.mark.asyncio
    async def test_disabled_metrics(self, fast_config, clock):
        orchestrator = _with(fast_config, clock, enable_metrics=False)

        await orchestrator.execute_with_retry(AsyncMock(return_value="ok"), "voice", "dial")

        assert orchestrator.get_metrics("voice") is None
        assert orchestrator.get_all_metrics() == {}
        assert orchestrator.get_health_status() == {}

    @pytest.mark.asyncio
    async def test_reset_metrics_keeps_breaker(self, fast_config, clock):
        orchestrator = _with(fast_config, clock, circuit_breaker=CircuitBreakerConfig(failure_threshold=1))
        with pytest.raises(ApiError):
            await orchestrator.execute_with_retry(AsyncMock(side_effect=HttpError(400)), "voice", "dial")
        await orchestrator.execute_with_retry(AsyncMock(return_value=1), "llm", "chat")

        orchestrator.reset_metrics("voice")

        assert orchestrator.get_metrics("voice") is None
        assert orchestrator.get_metrics("llm") is not None
        assert orchestrator.get_circuit_state("voice") == CircuitBreakerState.OPEN

        orchestrator.reset_all_metrics()
        assert orchestrator.get_all_metrics() == {}

    def test_unknown_service_defaults(self, orchestrator):
        assert orchestrator.get_metrics("nothing") is None
        assert orchestrator.get_circuit_state("nothing") == CircuitBreakerState.CLOSED
        assert orchestrator.health_report().status == HealthStatus.HEALTHY


class TestExecuteWithTimeout:
    @pytest.mark.asyncio
    async def test_delegates_to_race(self, orchestrator, clock):
        assert await orchestrator.execute_with_timeout(AsyncMock(return_value=5), 100, "fast") == 5

    @pytest.mark.asyncio
    async def test_uses_orchestrator_clock(self, orchestrator, clock):
        with pytest.raises(OperationTimeoutError, match="slow timed out after 300ms"):
            await orchestrator.execute_with_timeout(asyncio.Event().wait, 300, "slow")

        assert clock.sleeps == [300]


class TestLogContext:
    @pytest.mark.asyncio
    async def test_call_labels_bound_while_running(self, orchestrator):
        seen = {}

        async def operation():
            seen.update(structlog.contextvars.get_contextvars())
            return "ok"

        await orchestrator.execute_with_retry(operation, "voice", "create_call")

        assert seen == {"orchestrator": "test", "service": "voice", "operation": "create_call"}
        assert structlog.contextvars.get_contextvars() == {}

    @pytest.mark.asyncio
    async def test_caller_context_restored(self, orchestrator):
        with LogContext(operation="campaign_sync", request_id="r1"):
            await orchestrator.execute_with_retry(AsyncMock(return_value=1), "voice", "dial")

            assert structlog.contextvars.get_contextvars() == {
                "operation": "campaign_sync",
                "request_id": "r1",
            }
