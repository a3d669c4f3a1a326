from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Iterable, Optional

from polite_retry.resilience.backpressure import BackpressureTracker
from polite_retry.resilience.budget import AdaptiveRetryBudget
from polite_retry.resilience.circuit_breaker import CircuitBreaker, CircuitState
from polite_retry.utils.logger import get_logger

logger = get_logger(__name__)


class ResilienceHealthChecker:
    """Collects basic health indicators for registered resilience components."""

    def __init__(
        self,
        *,
        circuits: Optional[Iterable[CircuitBreaker]] = None,
        budgets: Optional[Iterable[AdaptiveRetryBudget]] = None,
        backpressure: Optional[BackpressureTracker] = None,
    ) -> None:
        self._circuits: Dict[str, CircuitBreaker] = {}
        self._budgets: Dict[str, AdaptiveRetryBudget] = {}
        self._backpressure = backpressure
        for breaker in circuits or ():
            self.register_circuit(breaker)
        for budget in budgets or ():
            self.register_budget(budget)

    def register_circuit(self, breaker: CircuitBreaker) -> None:
        if breaker.name in self._circuits:
            logger.warning("health_circuit_replaced", circuit=breaker.name)
        self._circuits[breaker.name] = breaker

    def register_budget(self, budget: AdaptiveRetryBudget) -> None:
        if budget.name in self._budgets:
            logger.warning("health_budget_replaced", budget=budget.name)
        self._budgets[budget.name] = budget

    def snapshot(self) -> Dict[str, Any]:
        """
        Build a point-in-time snapshot of resilience health.

        `healthy` is False while any circuit is OPEN or any tracked service
        signals overload.
        """
        circuits = {
            name: {
                "state": breaker.get_state().value,
                "failure_rate": breaker.get_failure_rate(),
            }
            for name, breaker in self._circuits.items()
        }
        budgets = {
            name: {"budget": budget.budget, **asdict(budget.get_metrics())}
            for name, budget in self._budgets.items()
        }

        backpressure: Dict[str, Any] = {}
        if self._backpressure is not None:
            for service in self._backpressure.services():
                signal = self._backpressure.get_signal(service)
                if signal is not None:
                    backpressure[service] = {
                        "overloaded": signal.is_overloaded,
                        "load_level": signal.load_level,
                        "retry_after": signal.retry_after,
                    }

        healthy = all(
            c["state"] != CircuitState.OPEN.value for c in circuits.values()
        ) and not any(s["overloaded"] for s in backpressure.values())

        return {
            "healthy": healthy,
            "circuits": circuits,
            "budgets": budgets,
            "backpressure": backpressure,
        }
