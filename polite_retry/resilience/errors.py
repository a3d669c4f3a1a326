from __future__ import annotations

import asyncio
from typing import Optional


class PoliteRetryError(Exception):
    """Base class for errors raised by the resilience primitives themselves.

    Errors raised by the protected operation are never wrapped in this type;
    they reach the caller unchanged.
    """


class CircuitOpenError(PoliteRetryError, RuntimeError):
    """Raised when a circuit breaker rejects a call.

    Distinguishes "the dependency is known-bad" from "this call failed".
    """

    def __init__(
        self, message: str = "Circuit breaker is open", *, circuit: Optional[str] = None
    ) -> None:
        super().__init__(message)
        self.circuit = circuit


class AttemptTimeoutError(PoliteRetryError, asyncio.TimeoutError):
    """Raised when a single attempt exceeds its per-try deadline."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Operation timed out after {timeout}s")
        self.timeout = timeout


class RetryCancelledError(PoliteRetryError):
    """Raised when a caller-supplied cancel event aborts a retry sequence."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Retry cancelled after {attempts} attempt(s)")
        self.attempts = attempts
