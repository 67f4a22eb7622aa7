"""
Rate limiting service for outbound attempts.

Token bucket admission shared by every worker of a run, implemented in its
virtual-scheduling form: instead of counting tokens, the limiter keeps the
theoretical arrival time (TAT) of the next permit. A caller is admitted
once `now >= tat - (burst - 1) * interval`, which is exactly a bucket of
`burst` tokens refilled at `rate` tokens per second.
"""

import threading
import time
from typing import Optional

from credtest.utils.cancellation import CancellationToken


class RateLimiter:
    """
    Thread-safe token bucket.

    Permits are reserved under a lock in arrival order, so admission is
    FIFO by arrival and no caller can be starved. The lock only covers the
    reservation; callers sleep outside of it.

    Example:
        >>> limiter = RateLimiter(rate=10, burst=10)
        >>> limiter.acquire()  # returns immediately while tokens remain
        True
    """

    def __init__(self, rate: float, burst: Optional[int] = None):
        """
        Initialize rate limiter.

        Args:
            rate: Sustained permits per second
            burst: Bucket capacity (defaults to max(1, int(rate)))
        """
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")
        if burst is None:
            burst = max(1, int(rate))
        if burst < 1:
            raise ValueError(f"burst must be at least 1, got {burst}")

        self.rate = float(rate)
        self.burst = int(burst)
        self._interval = 1.0 / self.rate
        self._tolerance = (self.burst - 1) * self._interval
        self._tat = time.monotonic()
        self._lock = threading.Lock()

    def _reserve(self) -> float:
        """Consume one token and return the monotonic time it becomes usable."""
        with self._lock:
            now = time.monotonic()
            ready_at = max(now, self._tat - self._tolerance)
            self._tat = max(self._tat, now) + self._interval
            return ready_at

    def acquire(self, cancel_token: Optional[CancellationToken] = None) -> bool:
        """
        Block until a permit is available.

        Args:
            cancel_token: Caller's cancellation token; wakes the wait early

        Returns:
            True once admitted, False if the caller was cancelled while waiting
        """
        ready_at = self._reserve()

        while True:
            delay = ready_at - time.monotonic()
            if delay <= 0:
                return True
            if cancel_token is None:
                time.sleep(delay)
            elif cancel_token.wait(delay):
                return False
