from .backoff import JitterStrategy, calculate_backoff
from .decorators import (
    retry,
    retry_with_budget,
    retry_with_circuit_breaker,
    retry_with_protection,
    retry_with_result,
    retryable,
)
from .options import RetryOptions, RetryResult, resolve_options
from .orchestrator import RetryOrchestrator
from .strategies import BackoffCalculator

__all__ = [
    "retry",
    "retry_with_result",
    "retry_with_circuit_breaker",
    "retry_with_budget",
    "retry_with_protection",
    "retryable",
    "RetryOptions",
    "RetryResult",
    "resolve_options",
    "RetryOrchestrator",
    "BackoffCalculator",
    "JitterStrategy",
    "calculate_backoff",
]
