"""Shared exponential backoff with jitter."""

from __future__ import annotations

import random


def backoff_delay(
    attempt: int,
    initial_delay: float = 0.5,
    max_delay: float = 5.0,
    backoff_factor: float = 2.0,
    jitter: float = 0.1,
) -> float:
    """Compute the delay before retry ``attempt`` (0-indexed).

    Delay formula: ``min(max_delay, initial_delay * factor^attempt) * (1 + uniform(0, jitter))``
    """
    delay = min(max_delay, max(0.0, initial_delay * (backoff_factor**attempt)))
    return delay + delay * jitter * random.random()
