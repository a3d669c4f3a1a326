from polite_retry.resilience.errors import CircuitOpenError

from .breaker import CircuitBreaker, CircuitState
from .monitoring import circuit_metrics
from .policies import FailureWindow

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "CircuitOpenError",
    "FailureWindow",
    "circuit_metrics",
]
