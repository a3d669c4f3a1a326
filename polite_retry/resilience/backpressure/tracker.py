"""
Client-side tracking of backpressure signals sent by downstream services.

A service tells its callers to back off through response headers (or gRPC
metadata mapped onto the same keys). The tracker keeps the most recent signal
per service and treats it as absent once older than `ttl` seconds. Expiry is
checked lazily on read; there is no background sweep.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Mapping, Optional

from polite_retry.core.config import Settings, get_settings
from polite_retry.utils.logger import get_logger

logger = get_logger(__name__)


class BACKPRESSURE_HEADERS:
    LOAD_LEVEL = "X-Backpressure"  # 0.0 (idle) .. 1.0 (saturated)
    RETRY_AFTER = "Retry-After"  # seconds
    SHEDDING = "X-Load-Shedding"  # "true" / "1"


_TRUTHY = {"true", "1"}


@dataclass(frozen=True)
class BackpressureSignal:
    is_overloaded: bool
    load_level: Optional[float] = None
    retry_after: Optional[float] = None
    observed_at: float = 0.0


def _parse_float(raw: Optional[str]) -> Optional[float]:
    if raw is None or not str(raw).strip():
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return None if math.isnan(value) else value


class BackpressureTracker:
    """Per-service store of the most recent backpressure signal."""

    def __init__(
        self,
        *,
        ttl: float = 30.0,
        overload_threshold: float = 0.8,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl < 0:
            raise ValueError("ttl must be >= 0")
        self.ttl = ttl
        self.overload_threshold = overload_threshold
        self._clock = clock
        self._signals: Dict[str, BackpressureSignal] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls, settings: Optional[Settings] = None, **overrides: Any
    ) -> "BackpressureTracker":
        settings = settings or get_settings()
        params: dict[str, Any] = {
            "ttl": settings.BACKPRESSURE_TTL_SECONDS,
            "overload_threshold": settings.BACKPRESSURE_OVERLOAD_THRESHOLD,
        }
        params.update(overrides)
        return cls(**params)

    def record_signal(
        self, service_id: str, signal: BackpressureSignal
    ) -> BackpressureSignal:
        """Store `signal` for `service_id`, stamped with the arrival time."""
        stamped = replace(signal, observed_at=self._clock())
        with self._lock:
            self._signals[service_id] = stamped
        logger.debug(
            "backpressure_signal_recorded",
            service=service_id,
            overloaded=stamped.is_overloaded,
            load_level=stamped.load_level,
            retry_after_s=stamped.retry_after,
        )
        return stamped

    def record_from_headers(
        self, service_id: str, headers: Mapping[str, str]
    ) -> Optional[BackpressureSignal]:
        """
        Extract and record a signal from response headers.

        Looks up `X-Backpressure`, `Retry-After` and `X-Load-Shedding`
        case-insensitively. Nothing is recorded when none of them carries a
        signal, so an earlier signal is left to expire on its own.
        """
        lowered = {str(k).lower(): v for k, v in headers.items()}
        load_level = _parse_float(lowered.get(BACKPRESSURE_HEADERS.LOAD_LEVEL.lower()))
        retry_after = _parse_float(
            lowered.get(BACKPRESSURE_HEADERS.RETRY_AFTER.lower())
        )
        shedding_raw = lowered.get(BACKPRESSURE_HEADERS.SHEDDING.lower())
        shedding = str(shedding_raw).strip().lower() in _TRUTHY if shedding_raw else False

        if load_level is None and retry_after is None and not shedding:
            return None

        overloaded = shedding or (
            load_level is not None and load_level >= self.overload_threshold
        )
        return self.record_signal(
            service_id,
            BackpressureSignal(
                is_overloaded=overloaded,
                load_level=load_level,
                retry_after=retry_after,
            ),
        )

    def get_signal(self, service_id: str) -> Optional[BackpressureSignal]:
        """Return the current signal for `service_id`, evicting it once stale."""
        with self._lock:
            signal = self._signals.get(service_id)
            if signal is None:
                return None
            if self._clock() - signal.observed_at > self.ttl:
                del self._signals[service_id]
                expired = True
            else:
                expired = False
        if expired:
            logger.debug("backpressure_signal_expired", service=service_id)
            return None
        return signal

    def is_overloaded(self, service_id: str) -> bool:
        signal = self.get_signal(service_id)
        return bool(signal and signal.is_overloaded)

    def get_load_level(self, service_id: str) -> Optional[float]:
        signal = self.get_signal(service_id)
        return signal.load_level if signal else None

    def get_retry_after(self, service_id: str) -> Optional[float]:
        signal = self.get_signal(service_id)
        return signal.retry_after if signal else None

    def overload_check(self, service_id: str) -> Callable[[], bool]:
        """Predicate for `AdaptiveRetryBudget(check_backpressure=...)`."""

        def check() -> bool:
            return self.is_overloaded(service_id)

        return check

    def services(self) -> list[str]:
        with self._lock:
            return list(self._signals)

    def clear(self) -> None:
        with self._lock:
            self._signals.clear()
