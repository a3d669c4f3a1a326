from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterator, Optional

from .backoff import JitterStrategy, calculate_backoff

if TYPE_CHECKING:
    from .options import RetryOptions


@dataclass
class BackoffCalculator:
    """
    Exponential backoff with jitter that remembers the last delay it chose.

    One instance belongs to a single retry loop; the remembered delay feeds
    decorrelated jitter on the next call.
    """

    initial_delay: float = 0.1
    max_delay: float = 30.0
    multiplier: float = 2.0
    jitter: JitterStrategy = JitterStrategy.FULL
    previous_delay: Optional[float] = field(default=None)

    def __post_init__(self) -> None:
        self.jitter = JitterStrategy(self.jitter)
        if self.previous_delay is None:
            self.previous_delay = self.initial_delay

    @classmethod
    def from_options(cls, options: "RetryOptions") -> "BackoffCalculator":
        return cls(
            initial_delay=options.initial_delay,
            max_delay=options.max_delay,
            multiplier=options.backoff_multiplier,
            jitter=options.jitter,
        )

    def next_delay(self, attempt: int) -> float:
        delay = calculate_backoff(
            attempt,
            self.initial_delay,
            self.max_delay,
            self.multiplier,
            self.jitter,
            self.previous_delay,
        )
        self.previous_delay = delay
        return delay

    __call__ = next_delay

    def delays(self, count: int) -> Iterator[float]:
        """Yield the delays for attempts ``0 .. count-1``."""
        for attempt in range(count):
            yield self.next_delay(attempt)

    def reset(self) -> None:
        self.previous_delay = self.initial_delay
