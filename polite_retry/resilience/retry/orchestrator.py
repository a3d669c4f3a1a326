from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Awaitable, Callable, Generic, Optional, TypeVar

from polite_retry.resilience.errors import (
    AttemptTimeoutError,
    CircuitOpenError,
    RetryCancelledError,
)
from polite_retry.resilience.observers import notify
from polite_retry.utils.logger import get_logger

from .monitoring import retry_metrics
from .options import RetryOptions
from .strategies import BackoffCalculator

if TYPE_CHECKING:
    from polite_retry.resilience.budget import AdaptiveRetryBudget
    from polite_retry.resilience.circuit_breaker import CircuitBreaker

logger = get_logger(__name__)

T = TypeVar("T")


class RetryOrchestrator(Generic[T]):
    """
    Drives the attempts of one logical call.

    Create one per call; `attempts` reports how many times the operation was
    invoked. An attached circuit breaker is consulted before the first attempt
    and after every failure, and always wins over the remaining retry quota.
    An attached budget is asked for permission before each retry.
    """

    def __init__(
        self,
        options: Optional[RetryOptions] = None,
        *,
        circuit_breaker: Optional["CircuitBreaker"] = None,
        budget: Optional["AdaptiveRetryBudget"] = None,
    ) -> None:
        self.options = options or RetryOptions.from_settings()
        self.circuit_breaker = circuit_breaker
        self.budget = budget
        self.attempts = 0
        self._operation = self.options.name or "operation"

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        options = self.options
        breaker = self.circuit_breaker
        operation = options.name or getattr(fn, "__name__", "operation")
        self._operation = operation
        backoff = BackoffCalculator.from_options(options)

        if breaker is not None and not breaker.is_allowed():
            retry_metrics.inc_gave_up(operation, "circuit_open")
            logger.warning(
                "retry_circuit_open", operation=operation, circuit=breaker.name, attempt=0
            )
            raise CircuitOpenError(circuit=breaker.name)

        attempt = 0
        while True:
            if options.cancel_event is not None and options.cancel_event.is_set():
                raise self._cancelled(operation)

            self.attempts += 1
            retry_metrics.inc_attempt(operation)
            try:
                result = await self._attempt(fn)
            except RetryCancelledError:
                raise
            except Exception as exc:
                error = exc
            else:
                self._record(success=True)
                return result

            self._record(success=False)

            if attempt >= options.max_retries:
                retry_metrics.inc_gave_up(operation, "exhausted")
                logger.error(
                    "retry_exhausted",
                    operation=operation,
                    attempts=self.attempts,
                    error=str(error),
                )
                raise error

            if not options.should_retry(error):
                retry_metrics.inc_gave_up(operation, "not_retryable")
                logger.info(
                    "retry_not_retryable",
                    operation=operation,
                    attempts=self.attempts,
                    error_type=type(error).__name__,
                )
                raise error

            if breaker is not None and not breaker.is_allowed():
                retry_metrics.inc_gave_up(operation, "circuit_open")
                logger.warning(
                    "retry_circuit_open",
                    operation=operation,
                    circuit=breaker.name,
                    attempt=self.attempts,
                )
                raise CircuitOpenError(
                    "Circuit opened during retry sequence", circuit=breaker.name
                ) from error

            if self.budget is not None and not await self.budget.should_retry():
                retry_metrics.inc_gave_up(operation, "budget_denied")
                logger.info(
                    "retry_budget_denied",
                    operation=operation,
                    budget=self.budget.name,
                    attempts=self.attempts,
                )
                raise error

            delay = backoff.next_delay(attempt)
            retry_metrics.inc_retry(operation)
            logger.warning(
                "retry_attempt",
                operation=operation,
                attempt=attempt + 1,
                next_delay_s=round(delay, 3),
                error=str(error),
            )
            notify(options.on_retry, error, attempt + 1, delay)
            await self._sleep(delay, operation)
            attempt += 1

    def _record(self, *, success: bool) -> None:
        if self.circuit_breaker is not None:
            if success:
                self.circuit_breaker.record_success()
            else:
                self.circuit_breaker.record_failure()
        if self.budget is not None:
            self.budget.record_outcome(success)

    async def _attempt(self, fn: Callable[[], Awaitable[T]]) -> T:
        awaitable: Awaitable[T] = fn()
        if self.options.timeout is not None:
            awaitable = self._with_timeout(awaitable, self.options.timeout)
        return await self._race_cancel(awaitable)

    @staticmethod
    async def _with_timeout(awaitable: Awaitable[T], timeout: float) -> T:
        # A TimeoutError raised by the operation itself is an operation error;
        # only an expired deadline becomes AttemptTimeoutError.
        task = asyncio.ensure_future(awaitable)
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout)
        finally:
            if not task.done():
                task.cancel()
        if task not in done:
            raise AttemptTimeoutError(timeout)
        return task.result()

    async def _race_cancel(self, awaitable: Awaitable[T]) -> T:
        event = self.options.cancel_event
        if event is None:
            return await awaitable

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for pending in (task, waiter):
                if not pending.done():
                    pending.cancel()

        if task in done:
            return task.result()
        raise self._cancelled(self._operation)

    async def _sleep(self, delay: float, operation: str) -> None:
        event = self.options.cancel_event
        if event is None:
            await asyncio.sleep(delay)
            return
        try:
            await asyncio.wait_for(event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise self._cancelled(operation)

    def _cancelled(self, operation: str) -> RetryCancelledError:
        retry_metrics.inc_gave_up(operation, "cancelled")
        logger.info("retry_cancelled", operation=operation, attempts=self.attempts)
        return RetryCancelledError(self.attempts)

