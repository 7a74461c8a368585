"""
Exponential backoff schedule with jitter
"""

import random
from typing import Iterator, Optional

from core.config import settings


class ExponentialBackoff:
    """
    Bounded exponential backoff.

    The n-th delay (0-based) is ``min_delay * factor ** n`` scaled by a
    random factor in ``[1 - jitter, 1 + jitter]``, never below ``min_delay``
    and capped at ``max_delay``. With the default factor of 2 and a jitter
    of at most 1/3 consecutive delays never decrease before reaching the
    cap, while concurrent senders still spread their retries apart.

    Attributes:
        max_attempts: Total number of attempts, the first one included
        min_delay: Delay before the second attempt, in seconds
        max_delay: Upper bound for any delay, in seconds
        factor: Growth factor between consecutive delays
        jitter: Relative amount of randomness applied to each delay
    """

    def __init__(
        self,
        max_attempts: Optional[int] = None,
        min_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
        factor: float = 2.0,
        jitter: Optional[float] = None,
        rng: Optional[random.Random] = None
    ):
        self.max_attempts = settings.MAX_ATTEMPTS if max_attempts is None else max_attempts
        self.min_delay = settings.MIN_BACKOFF if min_delay is None else min_delay
        self.max_delay = settings.MAX_BACKOFF if max_delay is None else max_delay
        self.factor = factor
        self.jitter = settings.BACKOFF_JITTER if jitter is None else jitter
        self._rng = rng or random.Random()

        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if not 0 <= self.jitter < 1:
            raise ValueError("jitter must be in [0, 1)")
        if self.min_delay > self.max_delay:
            raise ValueError("min_delay cannot exceed max_delay")

    def delay(self, retry: int) -> float:
        """Delay to wait after the ``retry``-th failed attempt (0-based)."""
        # Cap the exponent so huge attempt counts do not overflow
        base = self.min_delay * self.factor ** min(retry, 64)
        if self.jitter:
            base *= self._rng.uniform(1 - self.jitter, 1 + self.jitter)
        return min(max(base, self.min_delay), self.max_delay)

    def delays(self) -> Iterator[float]:
        """Delays between consecutive attempts, ``max_attempts - 1`` of them."""
        for retry in range(self.max_attempts - 1):
            yield self.delay(retry)
