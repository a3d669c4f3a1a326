"""
Adaptive Retry Budgeting (ARB).

Bounds the fraction of traffic that may be retries, even while the circuit is
closed, because retries are themselves load on a degraded dependency. Outcomes
are observed per call into an exponential moving average of the failure rate;
the budget itself is only adjusted on a fixed interval (AIMD style), which
keeps the control loop from oscillating on noisy per-call signals.
"""

from __future__ import annotations

import inspect
import random
import threading
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from polite_retry.core.config import Settings, get_settings
from polite_retry.resilience.observers import notify, running_loop
from polite_retry.utils.logger import get_logger

from .monitoring import budget_metrics

logger = get_logger(__name__)

# Budget debited for every admitted retry.
RETRY_COST = 0.01

# Smallest budget change reported to `on_budget_change`.
CHANGE_EPSILON = 0.001

BackpressureCheck = Callable[[], Union[bool, Awaitable[bool]]]


@dataclass(frozen=True)
class RetryMetrics:
    """Cumulative counters collected by an `AdaptiveRetryBudget`."""

    total_requests: int
    successful_requests: int
    failed_requests: int
    total_retries: int
    failure_rate: float
    retry_amplification_factor: float


class AdaptiveRetryBudget:
    """
    Probabilistic, self-tuning limit on retry volume.

    Share one instance per downstream dependency. A daemon thread adjusts the
    budget every `adjustment_interval` seconds whether or not traffic flows;
    call `dispose()` (or use the instance as a context manager) to stop it.

    `on_budget_change` runs on that thread. An async observer is scheduled on
    the event loop that was running when the budget was created; a budget
    created outside any loop drops async observers with a warning.
    """

    def __init__(
        self,
        name: str = "default",
        *,
        initial_budget: float = 0.2,
        budget_increase_rate: float = 0.1,
        budget_decrease_rate: float = 0.5,
        high_failure_threshold: float = 0.3,
        low_failure_threshold: float = 0.05,
        adjustment_interval: float = 1.0,
        ema_alpha: float = 0.1,
        on_budget_change: Optional[Callable[[float, float], Any]] = None,
        check_backpressure: Optional[BackpressureCheck] = None,
        auto_adjust: bool = True,
    ) -> None:
        if initial_budget < 0:
            raise ValueError("initial_budget must be >= 0")
        if not 0.0 <= budget_decrease_rate <= 1.0:
            raise ValueError("budget_decrease_rate must be within [0, 1]")
        if budget_increase_rate < 0:
            raise ValueError("budget_increase_rate must be >= 0")
        if not 0.0 < ema_alpha <= 1.0:
            raise ValueError("ema_alpha must be within (0, 1]")
        if adjustment_interval <= 0:
            raise ValueError("adjustment_interval must be > 0")

        self.name = name
        self.initial_budget = initial_budget
        self.budget_increase_rate = budget_increase_rate
        self.budget_decrease_rate = budget_decrease_rate
        self.high_failure_threshold = high_failure_threshold
        self.low_failure_threshold = low_failure_threshold
        self.adjustment_interval = adjustment_interval
        self.ema_alpha = ema_alpha
        self.on_budget_change = on_budget_change
        self.check_backpressure = check_backpressure
        self._loop = running_loop()

        self._lock = threading.Lock()
        self._budget = initial_budget
        self._failure_rate = 0.0
        self._total_requests = 0
        self._successful_requests = 0
        self._failed_requests = 0
        self._total_retries = 0

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        budget_metrics.set_budget(self.name, self._budget, self._failure_rate)
        if auto_adjust:
            self._start_adjuster()

    @classmethod
    def from_settings(
        cls, name: str = "default", settings: Optional[Settings] = None, **overrides: Any
    ) -> "AdaptiveRetryBudget":
        settings = settings or get_settings()
        params: dict[str, Any] = {
            "initial_budget": settings.BUDGET_INITIAL,
            "budget_increase_rate": settings.BUDGET_INCREASE_RATE,
            "budget_decrease_rate": settings.BUDGET_DECREASE_RATE,
            "high_failure_threshold": settings.BUDGET_HIGH_FAILURE_THRESHOLD,
            "low_failure_threshold": settings.BUDGET_LOW_FAILURE_THRESHOLD,
            "adjustment_interval": settings.BUDGET_ADJUSTMENT_INTERVAL_SECONDS,
            "ema_alpha": settings.BUDGET_EMA_ALPHA,
        }
        params.update(overrides)
        return cls(name, **params)

    @property
    def budget(self) -> float:
        with self._lock:
            return self._budget

    @property
    def failure_rate(self) -> float:
        with self._lock:
            return self._failure_rate

    def record_outcome(self, success: bool) -> None:
        """Record one attempt outcome and fold it into the failure-rate EMA."""
        with self._lock:
            self._total_requests += 1
            if success:
                self._successful_requests += 1
            else:
                self._failed_requests += 1
            failed = 0.0 if success else 1.0
            self._failure_rate = (
                1 - self.ema_alpha
            ) * self._failure_rate + self.ema_alpha * failed

    async def should_retry(self) -> bool:
        """
        Decide whether one more retry may be spent.

        Denies outright while the downstream signals backpressure or the
        budget is exhausted; otherwise admits with probability
        ``min(budget, 1 - failure_rate)``.
        A backpressure check that raises is logged and treated as "not
        overloaded".
        """
        if self.check_backpressure is not None:
            try:
                overloaded = self.check_backpressure()
                if inspect.isawaitable(overloaded):
                    overloaded = await overloaded
            except Exception as exc:  # noqa: BLE001 - treated as not overloaded
                logger.warning(
                    "backpressure_check_failed", budget=self.name, error=str(exc)
                )
                overloaded = False
            if overloaded:
                budget_metrics.inc_denied(self.name, "backpressure")
                logger.info("retry_budget_backpressure", budget=self.name)
                return False
        return self.should_retry_sync()

    def should_retry_sync(self) -> bool:
        """Same as `should_retry` without consulting backpressure."""
        with self._lock:
            if self._budget <= 0:
                admitted = False
                reason = "exhausted"
            else:
                probability = min(self._budget, 1 - self._failure_rate)
                admitted = random.random() < probability
                reason = "probability"
                if admitted:
                    self._budget = max(0.0, self._budget - RETRY_COST)
                    self._total_retries += 1

        if admitted:
            budget_metrics.inc_admitted(self.name)
        else:
            budget_metrics.inc_denied(self.name, reason)
        return admitted

    def adjust_budget(self) -> None:
        """
        Run one adjustment tick.

        - failure rate above `high_failure_threshold`: multiply the budget by
          ``1 - budget_decrease_rate``
        - failure rate below `low_failure_threshold`: add
          `budget_increase_rate`, capped at `initial_budget`
        """
        with self._lock:
            previous = self._budget
            if self._failure_rate > self.high_failure_threshold:
                self._budget = self._budget * (1 - self.budget_decrease_rate)
            elif self._failure_rate < self.low_failure_threshold:
                self._budget = min(
                    self.initial_budget, self._budget + self.budget_increase_rate
                )
            budget = self._budget
            failure_rate = self._failure_rate

        budget_metrics.set_budget(self.name, budget, failure_rate)
        if abs(previous - budget) > CHANGE_EPSILON:
            logger.info(
                "budget_adjusted",
                budget=self.name,
                previous=round(previous, 4),
                current=round(budget, 4),
                failure_rate=round(failure_rate, 4),
            )
            notify(self.on_budget_change, budget, failure_rate, loop=self._loop)

    def get_metrics(self) -> RetryMetrics:
        with self._lock:
            base_requests = self._total_requests - self._total_retries
            amplification = (
                self._total_requests / base_requests if base_requests > 0 else 1.0
            )
            return RetryMetrics(
                total_requests=self._total_requests,
                successful_requests=self._successful_requests,
                failed_requests=self._failed_requests,
                total_retries=self._total_retries,
                failure_rate=self._failure_rate,
                retry_amplification_factor=amplification,
            )

    def reset(self) -> None:
        """Restore the initial budget and zero all counters; keeps adjusting."""
        with self._lock:
            self._budget = self.initial_budget
            self._failure_rate = 0.0
            self._total_requests = 0
            self._successful_requests = 0
            self._failed_requests = 0
            self._total_retries = 0
        budget_metrics.set_budget(self.name, self.initial_budget, 0.0)

    def dispose(self) -> None:
        """Stop the periodic adjustment thread. Safe to call more than once."""
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.adjustment_interval + 1.0)
            logger.debug("budget_disposed", budget=self.name)

    @property
    def is_disposed(self) -> bool:
        return self._stop.is_set()

    def _start_adjuster(self) -> None:
        self._thread = threading.Thread(
            target=self._run_adjuster,
            name=f"polite-retry-budget-{self.name}",
            daemon=True,
        )
        self._thread.start()
        logger.debug(
            "budget_adjuster_started",
            budget=self.name,
            interval_s=self.adjustment_interval,
        )

    def _run_adjuster(self) -> None:
        while not self._stop.wait(self.adjustment_interval):
            try:
                self.adjust_budget()
            except Exception as exc:  # noqa: BLE001 - keep the adjuster alive
                logger.error("budget_adjust_failed", budget=self.name, error=str(exc))

    def __enter__(self) -> "AdaptiveRetryBudget":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.dispose()

    def __repr__(self) -> str:
        return (
            f"AdaptiveRetryBudget(name={self.name!r}, budget={self.budget:.4f}, "
            f"failure_rate={self.failure_rate:.4f})"
        )
