"""
Resilience primitives: retries, circuit breakers, retry budgets, backpressure.

These building blocks protect callers of an unreliable dependency from retry
amplification. All modules are async-first where they touch the operation
under protection, structured-logging enabled, and export Prometheus metrics.

Keep modules small, composable, and configuration-driven via
`polite_retry.core.config`.
"""

from .backpressure import (
    BACKPRESSURE_HEADERS,
    BackpressureMiddleware,
    BackpressureSignal,
    BackpressureTracker,
    RequestCounter,
    RequestCounterMiddleware,
    create_load_level_calculator,
)
from .budget import AdaptiveRetryBudget, RetryMetrics
from .circuit_breaker import CircuitBreaker, CircuitState
from .errors import (
    AttemptTimeoutError,
    CircuitOpenError,
    PoliteRetryError,
    RetryCancelledError,
)
from .monitoring import ResilienceHealthChecker
from .retry import (
    BackoffCalculator,
    JitterStrategy,
    RetryOptions,
    RetryOrchestrator,
    RetryResult,
    calculate_backoff,
    retry,
    retry_with_budget,
    retry_with_circuit_breaker,
    retry_with_protection,
    retry_with_result,
    retryable,
)

__all__ = [
    "retry",
    "retry_with_result",
    "retry_with_circuit_breaker",
    "retry_with_budget",
    "retry_with_protection",
    "retryable",
    "RetryOptions",
    "RetryResult",
    "RetryOrchestrator",
    "BackoffCalculator",
    "JitterStrategy",
    "calculate_backoff",
    "CircuitBreaker",
    "CircuitState",
    "AdaptiveRetryBudget",
    "RetryMetrics",
    "BACKPRESSURE_HEADERS",
    "BackpressureSignal",
    "BackpressureTracker",
    "BackpressureMiddleware",
    "RequestCounter",
    "RequestCounterMiddleware",
    "create_load_level_calculator",
    "ResilienceHealthChecker",
    "PoliteRetryError",
    "CircuitOpenError",
    "AttemptTimeoutError",
    "RetryCancelledError",
]
