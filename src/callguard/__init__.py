"""
Callguard - resilient execution layer for outbound service calls.

    from callguard import ResilienceOrchestrator, get_profile

    voice = ResilienceOrchestrator(get_profile("voice"), name="voice")
    call = await voice.execute_with_retry(lambda: client.create_call(payload), "voice", "create_call")
"""

__version__ = "0.1.0"

from callguard.core.errors import (
    ApiError,
    BurstLimitError,
    CallguardError,
    CircuitOpenError,
    ErrorKind,
    OperationTimeoutError,
)
from callguard.execution import (
    DEFAULT_PROFILES,
    BatchResult,
    CircuitBreakerState,
    ErrorHandlerConfig,
    HealthStatus,
    ResilienceOrchestrator,
    get_profile,
)

__all__ = [
    "ApiError",
    "BurstLimitError",
    "CallguardError",
    "CircuitOpenError",
    "ErrorKind",
    "OperationTimeoutError",
    "DEFAULT_PROFILES",
    "BatchResult",
    "CircuitBreakerState",
    "ErrorHandlerConfig",
    "HealthStatus",
    "ResilienceOrchestrator",
    "get_profile",
    "__version__",
]
