"""Token bucket rate limiter.

Guards outbound calls that must not hammer a remote service (the JWKS
endpoint). The bucket refills continuously (not in fixed windows), so short
bursts are allowed as long as the average rate stays under the limit.

Usage:
    bucket = TokenBucket(rate=5 / 60, capacity=5)  # 5 requests/minute
    if not bucket.try_acquire():
        ...  # over the limit, fail fast
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable


class TokenBucket:
    """Thread-safe token bucket that refills at a constant rate.

    Track the number of available tokens and the last time we checked. On each
    try_acquire(), add the tokens accumulated since the last check (up to
    capacity), then consume one if available. Never blocks.
    """

    def __init__(
        self,
        rate: float,
        capacity: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if rate <= 0:
            raise ValueError("rate must be positive")
        self.rate = rate
        self.capacity = capacity if capacity is not None else rate
        self.tokens = self.capacity
        self._clock = clock
        self._last_refill = clock()
        self._lock = threading.Lock()

    @classmethod
    def per_minute(cls, requests: int, **kwargs) -> TokenBucket:
        """Bucket allowing `requests` calls per minute, all available up front."""
        return cls(rate=requests / 60.0, capacity=float(requests), **kwargs)

    def try_acquire(self) -> bool:
        """Consume a token if one is available. Returns False when empty."""
        with self._lock:
            self._refill()
            if self.tokens < 1.0:
                return False
            self.tokens -= 1.0
            return True

    def _refill(self) -> None:
        """Add tokens based on elapsed time since last refill."""
        now = self._clock()
        elapsed = now - self._last_refill
        self.tokens = min(self.capacity, self.tokens + elapsed * self.rate)
        self._last_refill = now
