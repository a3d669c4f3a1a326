from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from polite_retry.core.config import Settings, get_settings
from polite_retry.resilience.errors import CircuitOpenError
from polite_retry.resilience.observers import notify
from polite_retry.utils.logger import get_logger

from .monitoring import circuit_metrics
from .policies import FailureWindow

logger = get_logger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """
    Sliding-window circuit breaker with a single-probe HALF-OPEN state.

    - CLOSED: calls pass through; once the window of the last `window_size`
      outcomes is full and its failure rate reaches `failure_threshold`, OPEN.
    - OPEN: calls are rejected until `reset_timeout` seconds have elapsed since
      the last recorded failure, then HALF_OPEN.
    - HALF_OPEN: exactly one probe is allowed; its success closes the circuit
      with a fresh window, its failure re-opens it.

    Safe to share across coroutines and threads. `on_state_change` fires once
    per actual transition, outside the internal lock.
    """

    name: str = "default"
    failure_threshold: float = 0.5
    window_size: int = 10
    reset_timeout: float = 30.0
    on_state_change: Optional[Callable[[CircuitState], Any]] = None
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _window: FailureWindow = field(init=False, repr=False)
    _last_failure_time: Optional[float] = field(default=None, init=False)
    _half_open_attempts: int = field(default=0, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        if not 0.0 <= self.failure_threshold <= 1.0:
            raise ValueError("failure_threshold must be within [0, 1]")
        if self.reset_timeout < 0:
            raise ValueError("reset_timeout must be >= 0")
        self._window = FailureWindow(self.window_size)

    @classmethod
    def from_settings(
        cls, name: str = "default", settings: Optional[Settings] = None, **overrides: Any
    ) -> "CircuitBreaker":
        settings = settings or get_settings()
        params: dict[str, Any] = {
            "failure_threshold": settings.CIRCUIT_BREAKER_FAILURE_THRESHOLD,
            "window_size": settings.CIRCUIT_BREAKER_WINDOW_SIZE,
            "reset_timeout": settings.CIRCUIT_BREAKER_RESET_TIMEOUT_SECONDS,
        }
        params.update(overrides)
        return cls(name=name, **params)

    # Lock must be held by callers of the underscore helpers below.

    def _transition(self, new_state: CircuitState) -> Optional[CircuitState]:
        if self._state == new_state:
            return None
        prev = self._state
        self._state = new_state
        self._half_open_attempts = 0
        logger.warning(
            "circuit_state_change",
            circuit=self.name,
            from_state=prev.value,
            to_state=new_state.value,
        )
        circuit_metrics.set_state(self.name, new_state)
        return new_state

    def _resolve_timeout(self) -> Optional[CircuitState]:
        if self._state != CircuitState.OPEN:
            return None
        since = self.clock() - (self._last_failure_time or 0.0)
        if since >= self.reset_timeout:
            return self._transition(CircuitState.HALF_OPEN)
        return None

    def _announce(self, changed: Optional[CircuitState]) -> None:
        if changed is not None:
            notify(self.on_state_change, changed)

    def get_state(self) -> CircuitState:
        with self._lock:
            changed = self._resolve_timeout()
            state = self._state
        self._announce(changed)
        return state

    @property
    def state(self) -> CircuitState:
        return self.get_state()

    def get_failure_rate(self) -> float:
        with self._lock:
            return self._window.failure_rate

    @property
    def failure_rate(self) -> float:
        return self.get_failure_rate()

    def is_allowed(self) -> bool:
        """Whether a call may be attempted now. Consumes the HALF_OPEN probe slot."""
        with self._lock:
            changed = self._resolve_timeout()
            if self._state == CircuitState.CLOSED:
                allowed = True
            elif self._state == CircuitState.HALF_OPEN:
                self._half_open_attempts += 1
                allowed = self._half_open_attempts <= 1
            else:
                allowed = False
        self._announce(changed)
        if not allowed:
            circuit_metrics.inc_blocked(self.name)
        return allowed

    def record_success(self) -> None:
        with self._lock:
            self._window.record(False)
            changed = None
            if self._state == CircuitState.HALF_OPEN:
                changed = self._transition(CircuitState.CLOSED)
                self._window.clear()
        circuit_metrics.inc_success(self.name)
        self._announce(changed)

    def record_failure(self) -> None:
        with self._lock:
            self._window.record(True)
            self._last_failure_time = self.clock()
            changed = None
            if self._state == CircuitState.HALF_OPEN:
                changed = self._transition(CircuitState.OPEN)
            elif (
                self._state == CircuitState.CLOSED
                and self._window.is_full
                and self._window.failure_rate >= self.failure_threshold
            ):
                changed = self._transition(CircuitState.OPEN)
        circuit_metrics.inc_failure(self.name)
        self._announce(changed)

    def reset(self) -> None:
        """Force the circuit CLOSED and forget all recorded outcomes."""
        with self._lock:
            self._window.clear()
            self._last_failure_time = None
            self._half_open_attempts = 0
            changed = self._transition(CircuitState.CLOSED)
        self._announce(changed)

    async def call(
        self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any
    ) -> Any:
        """Invoke an async function through the circuit breaker."""
        if not self.is_allowed():
            logger.info("circuit_call_blocked", circuit=self.name)
            raise CircuitOpenError(
                f"Circuit '{self.name}' is {self._state.value}", circuit=self.name
            )

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise

        self.record_success()
        return result

    async def __call__(
        self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any
    ) -> Any:
        return await self.call(func, *args, **kwargs)

    def decorate(self, func: Callable[..., Awaitable[Any]]):
        """Decorator for async call-sites."""

        async def wrapper(*args: Any, **kwargs: Any):
            return await self.call(func, *args, **kwargs)

        wrapper.__name__ = getattr(func, "__name__", "circuit_wrapper")
        wrapper.__doc__ = func.__doc__
        return wrapper
