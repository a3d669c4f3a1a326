"""
Shared pytest fixtures for the polite-retry test-suite.
"""

import os
from typing import Callable, Generator, List

import pytest

# Settings are read once at import time; pin the test environment first.
os.environ.setdefault("POLITE_RETRY_APP_ENV", "test")

from polite_retry.resilience.budget import AdaptiveRetryBudget  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_budget() -> Generator[Callable[..., AdaptiveRetryBudget], None, None]:
    """Factory for budgets that are always disposed after the test."""
    created: List[AdaptiveRetryBudget] = []

    def factory(**kwargs) -> AdaptiveRetryBudget:
        kwargs.setdefault("auto_adjust", False)
        budget = AdaptiveRetryBudget(**kwargs)
        created.append(budget)
        return budget

    yield factory

    for budget in created:
        budget.dispose()
