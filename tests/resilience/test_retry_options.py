import asyncio

import pytest

from polite_retry.core.config import Settings
from polite_retry.resilience.retry import JitterStrategy, RetryOptions, resolve_options
from polite_retry.resilience.retry import options as retry_options


def test_defaults():
    options = RetryOptions()

    assert options.max_retries == 3
    assert options.initial_delay == 0.1
    assert options.max_delay == 30.0
    assert options.backoff_multiplier == 2.0
    assert options.jitter is JitterStrategy.FULL
    assert options.timeout is None


def test_jitter_string_is_coerced():
    assert RetryOptions(jitter="equal").jitter is JitterStrategy.EQUAL


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_retries": -1},
        {"initial_delay": -0.1},
        {"max_delay": -1.0},
        {"timeout": 0},
        {"jitter": "sideways"},
    ],
)
def test_invalid_options_rejected(kwargs):
    with pytest.raises(ValueError):
        RetryOptions(**kwargs)


def test_should_retry_defaults_to_true():
    assert RetryOptions().should_retry(ValueError()) is True
    assert RetryOptions(retry_if=lambda e: False).should_retry(ValueError()) is False


def test_resolve_options_applies_overrides():
    event = asyncio.Event()
    base = RetryOptions(max_retries=5, name="base")

    resolved = resolve_options(base, max_retries=1, cancel_event=event)

    assert resolved.max_retries == 1
    assert resolved.name == "base"
    assert resolved.cancel_event is event
    assert base.max_retries == 5
    assert resolve_options(base) is base
    assert resolve_options(max_retries=2).max_retries == 2


def test_from_settings_with_overrides():
    options = RetryOptions.from_settings(max_retries=7)

    assert options.max_retries == 7
    assert options.initial_delay == 0.1
    assert options.jitter is JitterStrategy.FULL


def test_resolve_options_without_base_reads_settings(monkeypatch):
    configured = Settings(_env_file=None, RETRY_MAX_RETRIES=6, RETRY_JITTER="equal")
    monkeypatch.setattr(retry_options, "get_settings", lambda: configured)

    resolved = resolve_options(initial_delay=0.5)

    assert resolved.max_retries == 6
    assert resolved.jitter is JitterStrategy.EQUAL
    assert resolved.initial_delay == 0.5
    assert RetryOptions().max_retries == 3
