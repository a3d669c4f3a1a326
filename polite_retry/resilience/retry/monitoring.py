from __future__ import annotations

from prometheus_client import Counter

from polite_retry.core.config import get_settings


class _RetryMetrics:
    def __init__(self) -> None:
        self.attempts_total = Counter(
            "polite_retry_attempts_total",
            "Attempts made by retry loops, first tries included",
            ["operation"],
        )
        self.retries_total = Counter(
            "polite_retry_retries_total",
            "Retries scheduled after a failed attempt",
            ["operation"],
        )
        self.gave_up_total = Counter(
            "polite_retry_gave_up_total",
            "Retry loops that surfaced a final error",
            ["operation", "reason"],
        )

    @property
    def enabled(self) -> bool:
        return get_settings().METRICS_ENABLED

    def inc_attempt(self, operation: str) -> None:
        if self.enabled:
            self.attempts_total.labels(operation=operation).inc()

    def inc_retry(self, operation: str) -> None:
        if self.enabled:
            self.retries_total.labels(operation=operation).inc()

    def inc_gave_up(self, operation: str, reason: str) -> None:
        if self.enabled:
            self.gave_up_total.labels(operation=operation, reason=reason).inc()


retry_metrics = _RetryMetrics()
