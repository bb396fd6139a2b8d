"""Retry policy for puzzle and page fetches: backoff with jitter."""

import logging
import random

logger = logging.getLogger("frcsolve")


def calculate_backoff(
    attempt: int,
    base: float = 0.5,
    max_delay: float = 8.0,
) -> float:
    """Exponential backoff with jitter.

    Returns delay in seconds: min(base * 2^attempt, max_delay) + jitter.
    Jitter is uniform random in [0, 0.5 * delay].
    """
    delay = min(base * (2**attempt), max_delay)
    jitter = random.uniform(0, delay * 0.5)
    return delay + jitter


class RetryState:
    """Tracks retries for a single request.

    Connection errors and 5xx responses share one counter; anything
    else is returned to the caller as-is.
    """

    def __init__(self, max_retries: int):
        self.max_retries = max_retries
        self.retries = 0

    @property
    def can_retry(self) -> bool:
        return self.retries < self.max_retries

    def use_retry(self) -> float:
        """Consume a retry and return the delay to wait before it."""
        self.retries += 1
        return calculate_backoff(self.retries - 1)
