from __future__ import annotations

import functools
import time
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, TypeVar

from .options import RetryOptions, RetryResult, resolve_options
from .orchestrator import RetryOrchestrator

if TYPE_CHECKING:
    from polite_retry.resilience.budget import AdaptiveRetryBudget
    from polite_retry.resilience.circuit_breaker import CircuitBreaker

T = TypeVar("T")


async def retry(
    fn: Callable[[], Awaitable[T]],
    options: Optional[RetryOptions] = None,
    **overrides: Any,
) -> T:
    """
    Retry an async operation with exponential backoff and jitter.

    Example:
        >>> result = await retry(fetch_profile, max_retries=3, jitter="full")
    """
    return await RetryOrchestrator(resolve_options(options, **overrides)).execute(fn)


async def retry_with_result(
    fn: Callable[[], Awaitable[T]],
    options: Optional[RetryOptions] = None,
    *,
    circuit_breaker: Optional["CircuitBreaker"] = None,
    budget: Optional["AdaptiveRetryBudget"] = None,
    **overrides: Any,
) -> RetryResult[T]:
    """Like `retry`, but reports the outcome as a `RetryResult` instead of raising."""
    orchestrator: RetryOrchestrator[T] = RetryOrchestrator(
        resolve_options(options, **overrides),
        circuit_breaker=circuit_breaker,
        budget=budget,
    )
    started = time.monotonic()
    try:
        value = await orchestrator.execute(fn)
    except Exception as exc:  # noqa: BLE001 - surfaced through the result
        return RetryResult(
            success=False,
            attempts=orchestrator.attempts,
            total_time=time.monotonic() - started,
            error=exc,
        )
    return RetryResult(
        success=True,
        attempts=orchestrator.attempts,
        total_time=time.monotonic() - started,
        result=value,
    )


async def retry_with_circuit_breaker(
    fn: Callable[[], Awaitable[T]],
    circuit_breaker: "CircuitBreaker",
    options: Optional[RetryOptions] = None,
    **overrides: Any,
) -> T:
    """Retry behind a circuit breaker; raises `CircuitOpenError` once it trips."""
    return await RetryOrchestrator(
        resolve_options(options, **overrides), circuit_breaker=circuit_breaker
    ).execute(fn)


async def retry_with_budget(
    fn: Callable[[], Awaitable[T]],
    budget: "AdaptiveRetryBudget",
    options: Optional[RetryOptions] = None,
    **overrides: Any,
) -> T:
    """
    Retry with Adaptive Retry Budgeting.

    When the budget denies a retry the last operation error is raised as-is.
    """
    return await RetryOrchestrator(
        resolve_options(options, **overrides), budget=budget
    ).execute(fn)


async def retry_with_protection(
    fn: Callable[[], Awaitable[T]],
    *,
    circuit_breaker: "CircuitBreaker",
    budget: "AdaptiveRetryBudget",
    options: Optional[RetryOptions] = None,
    **overrides: Any,
) -> T:
    """
    Retry with both a circuit breaker and an adaptive budget.

    The breaker (binary, cheap) is consulted before the budget (gradual).
    """
    return await RetryOrchestrator(
        resolve_options(options, **overrides),
        circuit_breaker=circuit_breaker,
        budget=budget,
    ).execute(fn)


def retryable(
    options: Optional[RetryOptions] = None,
    *,
    circuit_breaker: Optional["CircuitBreaker"] = None,
    budget: Optional["AdaptiveRetryBudget"] = None,
    **overrides: Any,
):
    """
    Decorator retrying every call of an async function.

    Example:
        >>> @retryable(max_retries=3, jitter="full")
        ... async def fetch_data(item_id: str) -> dict: ...
    """
    resolved = resolve_options(options, **overrides)

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        call_options = (
            resolved
            if resolved.name
            else replace(resolved, name=getattr(func, "__name__", None))
        )

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            orchestrator: RetryOrchestrator[T] = RetryOrchestrator(
                call_options, circuit_breaker=circuit_breaker, budget=budget
            )
            return await orchestrator.execute(lambda: func(*args, **kwargs))

        return wrapper

    return decorator
