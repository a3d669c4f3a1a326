from __future__ import annotations

import threading
from typing import Callable, Optional

import psutil


class RequestCounter:
    """Thread-safe count of in-flight requests and the peak observed."""

    def __init__(self) -> None:
        self._count = 0
        self._max_observed = 0
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        return self._count

    @property
    def max_observed(self) -> int:
        return self._max_observed

    def increment(self) -> None:
        with self._lock:
            self._count += 1
            if self._count > self._max_observed:
                self._max_observed = self._count

    def decrement(self) -> None:
        with self._lock:
            self._count = max(0, self._count - 1)

    def reset(self) -> None:
        with self._lock:
            self._count = 0
            self._max_observed = 0


def create_load_level_calculator(
    *,
    max_concurrent_requests: Optional[int] = None,
    get_current_requests: Optional[Callable[[], int]] = None,
    max_memory_mb: Optional[float] = None,
    max_cpu_percent: Optional[float] = None,
    get_cpu_percent: Optional[Callable[[], float]] = None,
) -> Callable[[], float]:
    """
    Build a load-level function for `BackpressureMiddleware`.

    Each configured indicator (concurrent requests, process RSS memory, CPU
    percent) is normalized against its maximum and capped at 1.0; the load
    level is the highest of them, or 0.0 when none is configured. CPU usage
    defaults to ``psutil.cpu_percent()`` when `max_cpu_percent` is given
    without `get_cpu_percent`.
    """
    process = psutil.Process() if max_memory_mb else None
    if max_cpu_percent and get_cpu_percent is None:
        get_cpu_percent = lambda: psutil.cpu_percent(interval=None)  # noqa: E731

    def load_level() -> float:
        levels: list[float] = []

        if max_concurrent_requests and get_current_requests is not None:
            levels.append(min(1.0, get_current_requests() / max_concurrent_requests))

        if process is not None and max_memory_mb:
            memory_mb = process.memory_info().rss / (1024 * 1024)
            levels.append(min(1.0, memory_mb / max_memory_mb))

        if max_cpu_percent and get_cpu_percent is not None:
            levels.append(min(1.0, get_cpu_percent() / max_cpu_percent))

        return max(levels) if levels else 0.0

    return load_level
