from __future__ import annotations

from collections import deque
from typing import Deque


class FailureWindow:
    """
    Fixed-capacity sliding window of call outcomes (True = failure).

    Oldest outcomes are evicted first once `size` outcomes are held, so the
    failure rate reflects recent behaviour only. Not thread-safe on its own;
    the owning breaker serializes access.
    """

    def __init__(self, size: int) -> None:
        if size < 1:
            raise ValueError("window size must be >= 1")
        self.size = size
        self._outcomes: Deque[bool] = deque(maxlen=size)

    def record(self, failed: bool) -> None:
        self._outcomes.append(failed)

    def clear(self) -> None:
        self._outcomes.clear()

    @property
    def is_full(self) -> bool:
        return len(self._outcomes) == self.size

    @property
    def failure_count(self) -> int:
        return sum(self._outcomes)

    @property
    def failure_rate(self) -> float:
        if not self._outcomes:
            return 0.0
        return self.failure_count / len(self._outcomes)

    def __len__(self) -> int:
        return len(self._outcomes)
