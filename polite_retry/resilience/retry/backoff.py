"""
Backoff delay computation with jitter to desynchronize concurrent retriers.

Follows the AWS Architecture Blog "Exponential Backoff and Jitter" formulas.
All delays are in seconds.
"""

from __future__ import annotations

import random
from enum import Enum
from typing import Optional, Union


class JitterStrategy(str, Enum):
    NONE = "none"
    FULL = "full"
    EQUAL = "equal"
    DECORRELATED = "decorrelated"


def calculate_backoff(
    attempt: int,
    initial_delay: float,
    max_delay: float,
    multiplier: float = 2.0,
    jitter: Union[JitterStrategy, str] = JitterStrategy.FULL,
    previous_delay: Optional[float] = None,
) -> float:
    """
    Calculate the delay before the retry following `attempt` (0-indexed).

    - NONE: ``min(initial_delay * multiplier**attempt, max_delay)``. Deterministic,
      and prone to synchronized retry storms; use it in tests only.
    - FULL: uniform in ``[0, capped]``.
    - EQUAL: ``capped/2 + uniform(0, capped/2)``, which keeps a floor.
    - DECORRELATED: ``uniform(initial_delay, previous_delay * 3)`` capped at
      `max_delay`. The caller threads the previously chosen delay back in.

    `multiplier` is not validated; values <= 1 simply produce no growth.
    """
    strategy = JitterStrategy(jitter)
    capped = min(initial_delay * (multiplier**attempt), max_delay)

    if strategy is JitterStrategy.NONE:
        return capped
    if strategy is JitterStrategy.FULL:
        return random.random() * capped
    if strategy is JitterStrategy.EQUAL:
        return capped / 2 + random.random() * capped / 2

    prev = initial_delay if previous_delay is None else previous_delay
    return min(random.uniform(initial_delay, prev * 3), max_delay)
