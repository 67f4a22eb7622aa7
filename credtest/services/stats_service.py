"""
Statistics collection service for a credential testing run.

Holds the attempts and successes counters shared by every worker and the
progress reporter.
"""

import threading
import time
from dataclasses import dataclass


@dataclass(frozen=True)
class StatsSnapshot:
    """
    Point-in-time view of a run's counters.

    Attributes:
        attempts: Credential pairs tested so far
        successes: Credential pairs accepted so far
        elapsed: Seconds since the collector was created
    """
    attempts: int
    successes: int
    elapsed: float

    @property
    def rate(self) -> float:
        """Attempts per second, 0.0 before any time has elapsed."""
        if self.elapsed <= 0:
            return 0.0
        return self.attempts / self.elapsed


class StatsCollector:
    """
    Concurrent attempts/successes counters with a fixed monotonic start time.

    Every mutation is an increment under a single lock; callers never see
    or write the raw counters. Because both counters share the lock, a
    snapshot always satisfies successes <= attempts.

    Example:
        >>> stats = StatsCollector()
        >>> stats.record_attempt()
        >>> stats.record_success()
        >>> stats.snapshot().attempts
        1
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._attempts = 0
        self._successes = 0
        self.start_time = time.monotonic()

    def record_attempt(self) -> None:
        with self._lock:
            self._attempts += 1

    def record_success(self) -> None:
        """
        Count an accepted pair.

        The attempt must already have been recorded.

        Raises:
            ValueError: If this would make successes exceed attempts
        """
        with self._lock:
            if self._successes >= self._attempts:
                raise ValueError("record_attempt() must precede record_success()")
            self._successes += 1

    @property
    def attempts(self) -> int:
        with self._lock:
            return self._attempts

    @property
    def successes(self) -> int:
        with self._lock:
            return self._successes

    def elapsed(self) -> float:
        return max(0.0, time.monotonic() - self.start_time)

    def snapshot(self) -> StatsSnapshot:
        with self._lock:
            attempts = self._attempts
            successes = self._successes
        return StatsSnapshot(attempts, successes, self.elapsed())
