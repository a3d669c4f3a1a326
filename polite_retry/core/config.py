# polite_retry/core/config.py
from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Library settings, loaded from environment variables and/or .env file.

    Every variable is read with the ``POLITE_RETRY_`` prefix, e.g.
    ``POLITE_RETRY_RETRY_MAX_RETRIES=5``. All durations are in seconds.

    The retry helpers (`retry`, `retryable`, ...) and every `from_settings()`
    constructor start from these values. Constructing `RetryOptions`,
    `CircuitBreaker` or `AdaptiveRetryBudget` directly uses the built-in
    defaults instead.
    """

    # Environment settings
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    METRICS_ENABLED: bool = True

    # Retry loop defaults
    RETRY_MAX_RETRIES: int = Field(default=3, ge=0)
    RETRY_INITIAL_DELAY_SECONDS: float = Field(default=0.1, ge=0)
    RETRY_MAX_DELAY_SECONDS: float = Field(default=30.0, ge=0)
    RETRY_BACKOFF_MULTIPLIER: float = Field(default=2.0, gt=0)
    RETRY_JITTER: Literal["none", "full", "equal", "decorrelated"] = "full"
    RETRY_TIMEOUT_SECONDS: Optional[float] = Field(default=None, gt=0)

    # Circuit breaker defaults
    CIRCUIT_BREAKER_FAILURE_THRESHOLD: float = Field(default=0.5, ge=0, le=1)
    CIRCUIT_BREAKER_WINDOW_SIZE: int = Field(default=10, ge=1)
    CIRCUIT_BREAKER_RESET_TIMEOUT_SECONDS: float = Field(default=30.0, ge=0)

    # Adaptive retry budget defaults
    BUDGET_INITIAL: float = Field(default=0.2, ge=0, le=1)
    BUDGET_INCREASE_RATE: float = Field(default=0.1, ge=0)
    BUDGET_DECREASE_RATE: float = Field(default=0.5, ge=0, le=1)
    BUDGET_HIGH_FAILURE_THRESHOLD: float = Field(default=0.3, ge=0, le=1)
    BUDGET_LOW_FAILURE_THRESHOLD: float = Field(default=0.05, ge=0, le=1)
    BUDGET_ADJUSTMENT_INTERVAL_SECONDS: float = Field(default=1.0, gt=0)
    BUDGET_EMA_ALPHA: float = Field(default=0.1, gt=0, le=1)

    # Backpressure defaults
    BACKPRESSURE_TTL_SECONDS: float = Field(default=30.0, ge=0)
    BACKPRESSURE_OVERLOAD_THRESHOLD: float = Field(default=0.8, ge=0, le=1)

    @property
    def is_development(self) -> bool:
        return self.APP_ENV.lower() in ("development", "dev", "local")

    @model_validator(mode="after")
    def _check_ranges(self) -> "Settings":
        """Reject threshold and delay pairs that cannot both hold."""
        if self.RETRY_INITIAL_DELAY_SECONDS > self.RETRY_MAX_DELAY_SECONDS:
            raise ValueError(
                "RETRY_INITIAL_DELAY_SECONDS must not exceed RETRY_MAX_DELAY_SECONDS"
            )
        if self.BUDGET_LOW_FAILURE_THRESHOLD > self.BUDGET_HIGH_FAILURE_THRESHOLD:
            raise ValueError(
                "BUDGET_LOW_FAILURE_THRESHOLD must not exceed "
                "BUDGET_HIGH_FAILURE_THRESHOLD"
            )
        return self

    model_config = SettingsConfigDict(
        env_prefix="POLITE_RETRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()


settings = get_settings()
