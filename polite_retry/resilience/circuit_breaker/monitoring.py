from __future__ import annotations

from prometheus_client import Counter, Gauge

from polite_retry.core.config import get_settings

_STATE = {
    "closed": 0,
    "half_open": 0.5,
    "open": 1,
}


class _CircuitMetrics:
    def __init__(self) -> None:
        self.circuit_state = Gauge(
            "polite_retry_circuit_state",
            "Circuit state (0=closed,0.5=half,1=open)",
            ["circuit"],
        )
        self.circuit_success_total = Counter(
            "polite_retry_circuit_success_total",
            "Successful calls recorded by circuit",
            ["circuit"],
        )
        self.circuit_failure_total = Counter(
            "polite_retry_circuit_failure_total",
            "Failed calls recorded by circuit",
            ["circuit"],
        )
        self.circuit_blocked_total = Counter(
            "polite_retry_circuit_blocked_total",
            "Calls rejected by an OPEN or busy HALF_OPEN circuit",
            ["circuit"],
        )

    @property
    def enabled(self) -> bool:
        return get_settings().METRICS_ENABLED

    def set_state(self, circuit: str, state) -> None:
        if self.enabled:
            self.circuit_state.labels(circuit=circuit).set(_STATE[state.value])

    def inc_success(self, circuit: str) -> None:
        if self.enabled:
            self.circuit_success_total.labels(circuit=circuit).inc()

    def inc_failure(self, circuit: str) -> None:
        if self.enabled:
            self.circuit_failure_total.labels(circuit=circuit).inc()

    def inc_blocked(self, circuit: str) -> None:
        if self.enabled:
            self.circuit_blocked_total.labels(circuit=circuit).inc()


circuit_metrics = _CircuitMetrics()
