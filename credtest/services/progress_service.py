"""
Periodic progress reporting service.

Renders a StatsCollector snapshot on a fixed interval from a background
thread whose lifetime is tied to the run that started it.
"""

import threading
from functools import partial
from typing import Callable, Optional

from credtest.services.stats_service import StatsCollector, StatsSnapshot
from credtest.utils.logger import Logger


def format_progress(snapshot: StatsSnapshot) -> str:
    """
    Render one progress line.

    Example:
        >>> format_progress(StatsSnapshot(40, 2, 5.0))
        'Progress: 40 attempts (2 success) | 8.00 attempts/sec | Elapsed: 5s'
    """
    return (
        f"Progress: {snapshot.attempts} attempts ({snapshot.successes} success) | "
        f"{snapshot.rate:.2f} attempts/sec | Elapsed: {int(snapshot.elapsed)}s"
    )


class ProgressReporter:
    """
    Background reporter emitting a progress line every `interval` seconds.

    The reporter only reads the collector; it never blocks or mutates the
    run. Use start()/stop() or the context manager form:

        >>> with ProgressReporter(stats, interval=5.0):
        ...     attacker.run(config, stats)
    """

    def __init__(
        self,
        stats: StatsCollector,
        interval: float = 5.0,
        emit: Optional[Callable[[str], None]] = None,
        logger: Optional[Logger] = None
    ):
        """
        Initialize progress reporter.

        Args:
            stats: Collector to sample
            interval: Seconds between progress lines
            emit: Line sink (defaults to flushed print on stdout)
            logger: Logger instance
        """
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")

        self.stats = stats
        self.interval = interval
        self.emit = emit or partial(print, flush=True)
        self.logger = logger or Logger()
        self.ticks = 0
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def report(self) -> str:
        """Take a snapshot and emit it immediately."""
        line = format_progress(self.stats.snapshot())
        self.emit(line)
        self.ticks += 1
        return line

    def _loop(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                self.report()
            except Exception as e:
                # A broken sink must not take the run down with it
                self.logger.error(f"Progress report failed: {str(e)}")

    def start(self) -> "ProgressReporter":
        if self.running:
            return self
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop,
            name="progress-reporter",
            daemon=True
        )
        self._thread.start()
        self.logger.debug(f"Progress reporter started (every {self.interval}s)")
        return self

    def stop(self, final_report: bool = False) -> None:
        """
        Stop the reporter thread and wait for it to exit.

        Args:
            final_report: Emit one last line after the thread has stopped
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        if final_report:
            self.report()

    def __enter__(self) -> "ProgressReporter":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
