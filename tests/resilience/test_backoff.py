import random

import pytest

from polite_retry.resilience.retry.backoff import JitterStrategy, calculate_backoff
from polite_retry.resilience.retry.strategies import BackoffCalculator


def test_no_jitter_is_exact_and_capped():
    for attempt in range(10):
        expected = min(0.1 * 2**attempt, 5.0)
        assert calculate_backoff(attempt, 0.1, 5.0, 2.0, "none") == expected


def test_full_jitter_stays_within_capped_delay():
    samples = [calculate_backoff(3, 0.1, 0.5, 2.0, "full") for _ in range(200)]
    assert all(0.0 <= s <= 0.5 for s in samples)
    assert len(set(samples)) > 1


def test_equal_jitter_keeps_half_as_floor():
    for attempt in range(6):
        capped = min(0.1 * 2**attempt, 2.0)
        for _ in range(50):
            delay = calculate_backoff(attempt, 0.1, 2.0, 2.0, JitterStrategy.EQUAL)
            assert capped / 2 <= delay <= capped


def test_decorrelated_jitter_uses_previous_delay():
    for _ in range(100):
        delay = calculate_backoff(0, 0.1, 30.0, 2.0, "decorrelated", previous_delay=0.5)
        assert 0.1 <= delay <= 1.5


def test_decorrelated_jitter_defaults_previous_to_initial_and_caps():
    for _ in range(100):
        delay = calculate_backoff(4, 0.1, 30.0, 2.0, "decorrelated")
        assert 0.1 <= delay <= 0.3 + 1e-9
        assert calculate_backoff(0, 0.1, 0.2, 2.0, "decorrelated", 10.0) <= 0.2


def test_unknown_jitter_rejected():
    with pytest.raises(ValueError):
        calculate_backoff(0, 0.1, 1.0, 2.0, "sideways")


def test_calculator_threads_previous_delay(monkeypatch):
    monkeypatch.setattr(random, "uniform", lambda low, high: high)
    calc = BackoffCalculator(initial_delay=0.1, max_delay=10.0, jitter="decorrelated")

    assert calc(0) == pytest.approx(0.3)
    assert calc(1) == pytest.approx(0.9)
    assert calc.previous_delay == pytest.approx(0.9)

    calc.reset()
    assert calc.previous_delay == 0.1


def test_calculator_delays_sequence():
    calc = BackoffCalculator(initial_delay=0.1, max_delay=0.3, jitter="none")
    assert list(calc.delays(4)) == pytest.approx([0.1, 0.2, 0.3, 0.3])
