from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from typing import Any, Callable, Generic, Optional, TypeVar

from polite_retry.core.config import Settings, get_settings

from .backoff import JitterStrategy

T = TypeVar("T")


@dataclass
class RetryOptions:
    """
    Per-call retry configuration. Durations are in seconds.

    - retry_if: consulted once per failure; returning False stops retrying.
    - on_retry: ``(error, attempt_number, delay)`` before each backoff sleep.
    - timeout: per-attempt deadline; unset means attempts may run forever.
    - cancel_event: setting it aborts the in-flight attempt and any pending
      sleep with `RetryCancelledError`.
    - name: label used in logs and metrics; defaults to the function name.
    """

    max_retries: int = 3
    initial_delay: float = 0.1
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    jitter: JitterStrategy = JitterStrategy.FULL
    retry_if: Optional[Callable[[Exception], bool]] = None
    on_retry: Optional[Callable[[Exception, int, float], Any]] = None
    timeout: Optional[float] = None
    cancel_event: Optional[asyncio.Event] = None
    name: Optional[str] = None

    def __post_init__(self) -> None:
        self.jitter = JitterStrategy(self.jitter)
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0 when set")

    @classmethod
    def from_settings(
        cls, settings: Optional[Settings] = None, **overrides: Any
    ) -> "RetryOptions":
        settings = settings or get_settings()
        params: dict[str, Any] = {
            "max_retries": settings.RETRY_MAX_RETRIES,
            "initial_delay": settings.RETRY_INITIAL_DELAY_SECONDS,
            "max_delay": settings.RETRY_MAX_DELAY_SECONDS,
            "backoff_multiplier": settings.RETRY_BACKOFF_MULTIPLIER,
            "jitter": settings.RETRY_JITTER,
            "timeout": settings.RETRY_TIMEOUT_SECONDS,
        }
        params.update(overrides)
        return cls(**params)

    def should_retry(self, error: Exception) -> bool:
        return True if self.retry_if is None else bool(self.retry_if(error))


def resolve_options(
    options: Optional[RetryOptions] = None, **overrides: Any
) -> RetryOptions:
    """
    Combine an optional base `RetryOptions` with keyword overrides.

    Without a base, defaults come from `Settings` (``POLITE_RETRY_RETRY_*``).
    """
    if options is None:
        return RetryOptions.from_settings(**overrides)
    return replace(options, **overrides) if overrides else options


@dataclass
class RetryResult(Generic[T]):
    """Outcome of `retry_with_result`: never raised, always inspectable."""

    success: bool
    attempts: int
    total_time: float
    result: Optional[T] = None
    error: Optional[Exception] = None
