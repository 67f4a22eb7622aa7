"""
Main credential testing orchestrator.

Walks the username x password cross product, dispatching each pair to the
configured prober under a rate limit, a concurrency bound and a
per-attempt timeout, and folds every outcome into the run's statistics.
"""

import itertools
import threading
import time
from collections import Counter, deque
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Deque, Dict, Iterator, List, Optional, Sequence, Tuple

from credtest.core.interfaces import (
    IProber, AttemptOutcome, ProbeResult, Success, Failure, TimedOut
)
from credtest.core.exceptions import ConfigurationError, ProbeFailure, ProbeTimeout
from credtest.services.progress_service import ProgressReporter
from credtest.services.rate_limiter import RateLimiter
from credtest.services.stats_service import StatsCollector, StatsSnapshot
from credtest.utils.cancellation import CancellationToken
from credtest.utils.logger import Logger
from credtest.utils.stats import LatencySummary, summarize_latencies


# How often blocked waits re-check the cancellation token
_POLL_INTERVAL = 0.1

# Latencies kept for the end-of-run summary
LATENCY_SAMPLES = 10000


@dataclass(frozen=True)
class AttackConfig:
    """
    Configuration for one credential testing run. Immutable once built.

    Attributes:
        target: Target address handed to the prober
        usernames: Usernames, in dispatch order
        passwords: Password candidates, in dispatch order
        concurrency: Maximum unresolved probes at any time
        timeout: Per-attempt timeout in seconds
        max_attempts: Optional cap on pairs dispatched (None = unbounded)
        rate: Sustained attempts per second
        burst: Rate limiter bucket capacity (None = max(1, int(rate)))
        report_interval: Seconds between progress lines
    """
    target: str
    usernames: Sequence[str]
    passwords: Sequence[str]
    concurrency: int = 4
    timeout: float = 1.0
    max_attempts: Optional[int] = None
    rate: float = 10.0
    burst: Optional[int] = None
    report_interval: float = 5.0

    def __post_init__(self):
        object.__setattr__(self, 'usernames', tuple(self.usernames))
        object.__setattr__(self, 'passwords', tuple(self.passwords))

    @classmethod
    def from_settings(
        cls,
        target: str,
        usernames: Sequence[str],
        passwords: Sequence[str],
        threads: int = 4,
        timeout_ms: int = 1000,
        max_attempts: Optional[int] = None,
        rate: float = 10.0,
        burst: Optional[int] = None,
        report_interval: float = 5.0
    ) -> "AttackConfig":
        """Build a validated config from user-facing units (timeout in ms)."""
        config = cls(
            target=target,
            usernames=usernames,
            passwords=passwords,
            concurrency=threads,
            timeout=timeout_ms / 1000.0,
            max_attempts=max_attempts,
            rate=rate,
            burst=burst,
            report_interval=report_interval
        )
        config.validate()
        return config

    @property
    def total_pairs(self) -> int:
        return len(self.usernames) * len(self.passwords)

    def validate(self) -> None:
        """
        Check the run invariants.

        Raises:
            ConfigurationError: On the first violated invariant
        """
        if not self.target:
            raise ConfigurationError("Target is required")
        if not self.usernames:
            raise ConfigurationError("Username list is empty")
        if not self.passwords:
            raise ConfigurationError("Password list is empty")
        if self.concurrency < 1:
            raise ConfigurationError(f"Concurrency must be at least 1, got {self.concurrency}")
        if self.timeout <= 0:
            raise ConfigurationError(f"Timeout must be positive, got {self.timeout}")
        if self.rate <= 0:
            raise ConfigurationError(f"Rate must be positive, got {self.rate}")
        if self.burst is not None and self.burst < 1:
            raise ConfigurationError(f"Burst must be at least 1, got {self.burst}")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ConfigurationError(f"Max attempts must be at least 1, got {self.max_attempts}")
        if self.report_interval <= 0:
            raise ConfigurationError(f"Report interval must be positive, got {self.report_interval}")


@dataclass
class AttackReport:
    """Summary of a finished run."""
    snapshot: StatsSnapshot
    dispatched: int
    total_pairs: int
    cancelled: bool = False
    found: List[Success] = field(default_factory=list)
    outcome_counts: Dict[str, int] = field(default_factory=dict)
    latency: Optional[LatencySummary] = None

    @property
    def completed(self) -> bool:
        return self.dispatched == self.total_pairs


def _print_success(record: str) -> None:
    print(f"[SUCCESS] {record}", flush=True)


class CredentialAttacker:
    """
    Rate-limited, concurrency-bounded credential tester.

    Algorithm:
    1. Walk usernames in order, and for each one every password in order
    2. Stop dispatching when the cap is reached or the run is cancelled
    3. Take a concurrency slot, then a rate limiter permit
    4. Run the probe on a worker thread, waiting at most `timeout`
    5. Record one attempt per pair; record and emit successes

    A probe that overruns its timeout is classified TimedOut and abandoned;
    its concurrency slot is only freed once the probe itself returns, so
    no more than `concurrency` probes are ever unresolved.

    Example:
        >>> attacker = CredentialAttacker(SimulatedProber("admin123"))
        >>> config = AttackConfig("10.0.0.5", ["alice", "bob"], ["x", "admin123"])
        >>> report = attacker.run(config)
        >>> report.snapshot.successes
        2
    """

    def __init__(
        self,
        prober: IProber,
        logger: Optional[Logger] = None,
        success_emit: Optional[Callable[[str], None]] = None,
        progress_emit: Optional[Callable[[str], None]] = None
    ):
        """
        Initialize credential attacker.

        Args:
            prober: Capability that tests one credential pair
            logger: Logger instance
            success_emit: Sink for success records (defaults to stdout)
            progress_emit: Sink for progress lines (defaults to stdout)
        """
        self.prober = prober
        self.logger = logger or Logger()
        self.success_emit = success_emit or _print_success
        self.progress_emit = progress_emit or partial(print, flush=True)

    @staticmethod
    def iter_pairs(config: AttackConfig) -> Iterator[Tuple[str, str]]:
        """Credential pairs in dispatch order (username-major, password-minor)."""
        return itertools.product(config.usernames, config.passwords)

    def run(
        self,
        config: AttackConfig,
        stats: Optional[StatsCollector] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> AttackReport:
        """
        Test every credential pair of the configuration.

        Returns once every pair has been dispatched (or the cap was reached,
        or the run was cancelled) and every dispatched probe has resolved.

        Args:
            config: Run configuration
            stats: Collector to update (a fresh one is created if omitted)
            cancel_token: Run-wide cancellation signal

        Returns:
            AttackReport for the run

        Raises:
            ConfigurationError: If the configuration is invalid; nothing is attempted
        """
        config.validate()
        stats = stats or StatsCollector()
        cancel_token = cancel_token or CancellationToken()

        self.logger.info(f"\n{'='*60}")
        self.logger.info(f"Starting credential test against {config.target}")
        self.logger.info(f"{'='*60}")
        self.logger.info(
            f"{len(config.usernames)} usernames x {len(config.passwords)} passwords "
            f"= {config.total_pairs} pairs"
            + (f" (capped at {config.max_attempts})" if config.max_attempts else "")
        )
        self.logger.info(
            f"Concurrency: {config.concurrency} | Timeout: {config.timeout:.3f}s | "
            f"Rate: {config.rate:g}/s"
        )

        limiter = RateLimiter(config.rate, config.burst)
        slots = threading.BoundedSemaphore(config.concurrency)
        run_state = _RunState()
        dispatched = 0

        reporter = ProgressReporter(
            stats,
            interval=config.report_interval,
            emit=self.progress_emit,
            logger=self.logger
        )

        probe_pool = ThreadPoolExecutor(max_workers=config.concurrency, thread_name_prefix="probe")
        attempt_pool = ThreadPoolExecutor(max_workers=config.concurrency, thread_name_prefix="attempt")

        reporter.start()
        try:
            for username, password in self.iter_pairs(config):
                if cancel_token.cancelled:
                    break

                if config.max_attempts is not None and dispatched >= config.max_attempts:
                    self.logger.info(f"Attempt cap of {config.max_attempts} reached")
                    break

                if not self._acquire_slot(slots, cancel_token, run_state, config):
                    break

                if not limiter.acquire(cancel_token):
                    slots.release()
                    break

                started = time.monotonic()
                probe_future = probe_pool.submit(
                    self.prober.probe, config.target, username, password, config.timeout
                )
                probe_future.add_done_callback(lambda _f: slots.release())

                attempt_future = attempt_pool.submit(
                    self._attempt, config, stats, run_state,
                    username, password, probe_future, started
                )
                attempt_future.add_done_callback(self._log_attempt_error)
                dispatched += 1
        finally:
            # Drain classification first, then any abandoned probes
            attempt_pool.shutdown(wait=True)
            probe_pool.shutdown(wait=True)
            reporter.stop()

        cancelled = cancel_token.cancelled and dispatched < self._dispatch_limit(config)
        if cancelled:
            self.logger.warning(f"Run cancelled ({cancel_token.reason}) after {dispatched} pairs")

        report = AttackReport(
            snapshot=stats.snapshot(),
            dispatched=dispatched,
            total_pairs=config.total_pairs,
            cancelled=cancelled,
            found=list(run_state.found),
            outcome_counts=dict(run_state.counts),
            latency=summarize_latencies(list(run_state.latencies))
        )

        self.logger.info(
            f"Run finished: {report.snapshot.attempts} attempts, "
            f"{report.snapshot.successes} successes in {report.snapshot.elapsed:.2f}s"
        )
        return report

    @staticmethod
    def _dispatch_limit(config: AttackConfig) -> int:
        if config.max_attempts is None:
            return config.total_pairs
        return min(config.total_pairs, config.max_attempts)

    def _acquire_slot(
        self,
        slots: threading.BoundedSemaphore,
        cancel_token: CancellationToken,
        run_state: "_RunState",
        config: AttackConfig
    ) -> bool:
        stall_warned = False
        while not slots.acquire(timeout=_POLL_INTERVAL):
            if cancel_token.cancelled:
                return False
            if not stall_warned and run_state.abandoned >= config.concurrency:
                self.logger.warning(
                    f"All {config.concurrency} slots are held by timed-out probes "
                    f"that have not returned; dispatch is stalled until they do"
                )
                stall_warned = True
        if cancel_token.cancelled:
            slots.release()
            return False
        return True

    def _log_attempt_error(self, attempt_future: Future) -> None:
        error = attempt_future.exception()
        if error is not None:
            self.logger.error(f"Attempt task failed: {type(error).__name__}: {str(error)}")

    def _attempt(
        self,
        config: AttackConfig,
        stats: StatsCollector,
        run_state: "_RunState",
        username: str,
        password: str,
        probe_future: Future,
        started: float
    ) -> AttemptOutcome:
        """Wait for one probe, classify it and record the outcome."""
        remaining = max(0.0, config.timeout - (time.monotonic() - started))

        try:
            result = probe_future.result(timeout=remaining)
            if not isinstance(result, ProbeResult):
                outcome = Failure(
                    username, password, f"invalid prober result: {type(result).__name__}"
                )
            elif result.success:
                outcome = Success(username, password)
            else:
                outcome = Failure(username, password, result.reason or "rejected")
        except (FuturesTimeoutError, TimeoutError, ProbeTimeout):
            # Abandoned: whatever the probe returns later is discarded
            outcome = TimedOut(username, password)
            if not probe_future.done():
                run_state.abandon(probe_future)
        except ProbeFailure as e:
            outcome = Failure(username, password, e.reason)
        except Exception as e:
            outcome = Failure(username, password, f"{type(e).__name__}: {str(e)}")

        latency = time.monotonic() - started
        self._record(config, stats, run_state, outcome, latency)
        return outcome

    def _record(
        self,
        config: AttackConfig,
        stats: StatsCollector,
        run_state: "_RunState",
        outcome: AttemptOutcome,
        latency: float
    ) -> None:
        stats.record_attempt()
        run_state.add(outcome, latency)

        if isinstance(outcome, Success):
            stats.record_success()
            record = outcome.record(config.target)
            self.logger.info(f"[+] Valid credentials: {record}")
            try:
                self.success_emit(record)
            except Exception as e:
                self.logger.error(f"Failed to emit success record {record}: {str(e)}")
        elif isinstance(outcome, TimedOut):
            self.logger.warning(f"Timeout after {config.timeout:.3f}s for user '{outcome.username}'")
        else:
            self.logger.debug(f"Rejected user '{outcome.username}': {outcome.reason}")


class _RunState:
    """Per-run outcome bookkeeping shared by the attempt threads."""

    def __init__(self, latency_samples: int = LATENCY_SAMPLES):
        self._lock = threading.Lock()
        self.counts: Counter = Counter()
        self.found: List[Success] = []
        # Most recent answered-probe latencies only
        self.latencies: Deque[float] = deque(maxlen=latency_samples)
        self.abandoned = 0

    def add(self, outcome: AttemptOutcome, latency: float) -> None:
        with self._lock:
            self.counts[outcome.kind] += 1
            if isinstance(outcome, Success):
                self.found.append(outcome)
            if not isinstance(outcome, TimedOut):
                self.latencies.append(latency)

    def abandon(self, probe_future: Future) -> None:
        """Track a timed-out probe that still holds its concurrency slot."""
        with self._lock:
            self.abandoned += 1
        probe_future.add_done_callback(self._abandoned_done)

    def _abandoned_done(self, _future: Future) -> None:
        with self._lock:
            self.abandoned -= 1
