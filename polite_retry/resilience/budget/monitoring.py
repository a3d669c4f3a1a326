from __future__ import annotations

from prometheus_client import Counter, Gauge

from polite_retry.core.config import get_settings


class _BudgetMetrics:
    def __init__(self) -> None:
        self.budget_value = Gauge(
            "polite_retry_budget_value",
            "Current retry budget as a fraction of base load",
            ["budget"],
        )
        self.budget_failure_rate = Gauge(
            "polite_retry_budget_failure_rate",
            "Failure rate EMA observed by the retry budget",
            ["budget"],
        )
        self.retries_admitted_total = Counter(
            "polite_retry_budget_retries_admitted_total",
            "Retries admitted by the retry budget",
            ["budget"],
        )
        self.retries_denied_total = Counter(
            "polite_retry_budget_retries_denied_total",
            "Retries denied by the retry budget",
            ["budget", "reason"],
        )

    @property
    def enabled(self) -> bool:
        return get_settings().METRICS_ENABLED

    def set_budget(self, budget: str, value: float, failure_rate: float) -> None:
        if self.enabled:
            self.budget_value.labels(budget=budget).set(value)
            self.budget_failure_rate.labels(budget=budget).set(failure_rate)

    def inc_admitted(self, budget: str) -> None:
        if self.enabled:
            self.retries_admitted_total.labels(budget=budget).inc()

    def inc_denied(self, budget: str, reason: str) -> None:
        if self.enabled:
            self.retries_denied_total.labels(budget=budget, reason=reason).inc()


budget_metrics = _BudgetMetrics()
