import pytest
from pydantic import ValidationError

from polite_retry.core.config import Settings, get_settings


def test_defaults(monkeypatch):
    monkeypatch.delenv("POLITE_RETRY_APP_ENV", raising=False)
    settings = Settings(_env_file=None)

    assert settings.APP_ENV == "development"
    assert settings.is_development is True
    assert settings.RETRY_MAX_RETRIES == 3
    assert settings.RETRY_JITTER == "full"
    assert settings.CIRCUIT_BREAKER_WINDOW_SIZE == 10
    assert settings.BUDGET_INITIAL == 0.2
    assert settings.BACKPRESSURE_TTL_SECONDS == 30.0


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("POLITE_RETRY_RETRY_MAX_RETRIES", "5")
    monkeypatch.setenv("POLITE_RETRY_RETRY_JITTER", "decorrelated")
    monkeypatch.setenv("POLITE_RETRY_METRICS_ENABLED", "false")

    settings = Settings(_env_file=None)

    assert settings.RETRY_MAX_RETRIES == 5
    assert settings.RETRY_JITTER == "decorrelated"
    assert settings.METRICS_ENABLED is False


def test_production_environment_is_not_development():
    assert Settings(_env_file=None, APP_ENV="production").is_development is False


@pytest.mark.parametrize(
    "kwargs",
    [
        {"RETRY_MAX_RETRIES": -1},
        {"RETRY_JITTER": "sideways"},
        {"CIRCUIT_BREAKER_WINDOW_SIZE": 0},
        {"CIRCUIT_BREAKER_FAILURE_THRESHOLD": 1.5},
        {"BUDGET_ADJUSTMENT_INTERVAL_SECONDS": 0},
        {"RETRY_INITIAL_DELAY_SECONDS": 5.0, "RETRY_MAX_DELAY_SECONDS": 1.0},
        {"BUDGET_LOW_FAILURE_THRESHOLD": 0.5, "BUDGET_HIGH_FAILURE_THRESHOLD": 0.3},
    ],
)
def test_invalid_values_rejected(kwargs):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **kwargs)


def test_get_settings_is_cached():
    assert get_settings() is get_settings()
