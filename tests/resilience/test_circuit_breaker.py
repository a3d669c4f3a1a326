import asyncio
import threading
from unittest.mock import Mock

import pytest

from polite_retry.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitOpenError,
    CircuitState,
)


def _trip(cb: CircuitBreaker) -> None:
    for _ in range(cb.window_size):
        cb.record_failure()


def test_opens_when_full_window_reaches_threshold():
    cb = CircuitBreaker(failure_threshold=0.5, window_size=4)

    cb.record_success()
    cb.record_success()
    cb.record_failure()
    cb.record_failure()

    assert cb.state == "open"
    assert cb.is_allowed() is False


def test_stays_closed_until_window_is_full():
    cb = CircuitBreaker(failure_threshold=0.5, window_size=4)
    for _ in range(3):
        cb.record_failure()

    assert cb.get_state() == CircuitState.CLOSED
    assert cb.get_failure_rate() == 1.0


def test_stays_closed_below_threshold():
    cb = CircuitBreaker(failure_threshold=0.5, window_size=4)
    for _ in range(3):
        cb.record_success()
    cb.record_failure()

    assert cb.get_state() == CircuitState.CLOSED
    assert cb.failure_rate == 0.25


def test_window_evicts_oldest_outcomes():
    cb = CircuitBreaker(failure_threshold=0.9, window_size=5)
    for _ in range(4):
        cb.record_failure()
    for _ in range(50):
        cb.record_success()

    assert len(cb._window) == 5
    assert cb.get_failure_rate() == 0.0


def test_half_open_after_reset_timeout_allows_single_probe(fake_clock):
    cb = CircuitBreaker(window_size=2, reset_timeout=30.0, clock=fake_clock)
    _trip(cb)
    assert cb.get_state() == CircuitState.OPEN

    fake_clock.advance(29.5)
    assert cb.get_state() == CircuitState.OPEN

    fake_clock.advance(0.5)
    assert cb.get_state() == CircuitState.HALF_OPEN
    assert cb.is_allowed() is True
    assert cb.is_allowed() is False


def test_half_open_success_closes_and_clears_window(fake_clock):
    cb = CircuitBreaker(window_size=3, reset_timeout=1.0, clock=fake_clock)
    _trip(cb)
    fake_clock.advance(1.0)
    assert cb.is_allowed() is True

    cb.record_success()

    assert cb.get_state() == CircuitState.CLOSED
    assert len(cb._window) == 0
    assert cb.get_failure_rate() == 0.0


def test_half_open_failure_reopens(fake_clock):
    cb = CircuitBreaker(window_size=2, reset_timeout=1.0, clock=fake_clock)
    _trip(cb)
    fake_clock.advance(1.0)
    assert cb.get_state() == CircuitState.HALF_OPEN

    cb.record_failure()

    assert cb.get_state() == CircuitState.OPEN
    assert cb.is_allowed() is False


def test_state_change_callback_fires_once_per_transition(fake_clock):
    observer = Mock()
    cb = CircuitBreaker(
        window_size=2, reset_timeout=1.0, on_state_change=observer, clock=fake_clock
    )

    _trip(cb)
    cb.record_failure()  # already open
    fake_clock.advance(1.0)
    cb.get_state()
    cb.get_state()
    cb.record_success()
    cb.reset()  # already closed

    assert [c.args[0] for c in observer.call_args_list] == [
        CircuitState.OPEN,
        CircuitState.HALF_OPEN,
        CircuitState.CLOSED,
    ]


def test_failing_observer_does_not_corrupt_state():
    def explode(state):
        raise RuntimeError("observer down")

    cb = CircuitBreaker(window_size=2, on_state_change=explode)
    _trip(cb)

    assert cb.get_state() == CircuitState.OPEN


def test_reset_forces_closed():
    cb = CircuitBreaker(window_size=2)
    _trip(cb)

    cb.reset()

    assert cb.get_state() == CircuitState.CLOSED
    assert cb.is_allowed() is True
    assert cb.get_failure_rate() == 0.0


def test_invalid_configuration_rejected():
    with pytest.raises(ValueError):
        CircuitBreaker(window_size=0)
    with pytest.raises(ValueError):
        CircuitBreaker(failure_threshold=1.5)


def test_from_settings_uses_defaults():
    cb = CircuitBreaker.from_settings("payments", window_size=7)

    assert cb.name == "payments"
    assert cb.window_size == 7
    assert cb.failure_threshold == 0.5
    assert cb.reset_timeout == 30.0


def test_concurrent_recording_keeps_window_bounded():
    cb = CircuitBreaker(failure_threshold=1.0, window_size=10)

    def worker():
        for i in range(500):
            if i % 2:
                cb.record_failure()
            else:
                cb.record_success()

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(cb._window) == 10


@pytest.mark.asyncio
async def test_call_blocks_without_invoking_when_open():
    cb = CircuitBreaker(name="blocked", window_size=1)
    cb.record_failure()
    func = Mock()

    async def guarded():
        func()

    with pytest.raises(CircuitOpenError):
        await cb.call(guarded)
    func.assert_not_called()


@pytest.mark.asyncio
async def test_call_records_outcomes(fake_clock):
    cb = CircuitBreaker(window_size=2, reset_timeout=0.5, clock=fake_clock)

    async def failing():
        raise RuntimeError("boom")

    for _ in range(2):
        with pytest.raises(RuntimeError):
            await cb.call(failing)
    assert cb.get_state() == CircuitState.OPEN

    fake_clock.advance(0.5)

    @cb.decorate
    async def success():
        await asyncio.sleep(0)
        return "ok"

    assert await success() == "ok"
    assert cb.get_state() == CircuitState.CLOSED
