"""
Unit tests for the credential testing engine.

Run with: pytest tests/test_credential_attacker.py -v
"""

import itertools
import threading
import time
from unittest.mock import Mock

import pytest

from credtest.attack.credential_attacker import AttackConfig, CredentialAttacker, _RunState
from credtest.core.exceptions import ConfigurationError, ProbeFailure, ProbeTimeout
from credtest.core.interfaces import IProber, ProbeResult, Success, Failure, TimedOut
from credtest.services.stats_service import StatsCollector, StatsSnapshot
from credtest.utils.cancellation import CancellationToken
from credtest.utils.logger import Logger


def make_config(usernames, passwords, **overrides):
    settings = dict(concurrency=2, timeout=1.0, rate=1000.0, report_interval=5.0)
    settings.update(overrides)
    return AttackConfig("10.0.0.5", usernames, passwords, **settings)


class TrackingProber(IProber):
    """Records the peak number of probes running at once."""

    def __init__(self, delay):
        self.delay = delay
        self.current = 0
        self.peak = 0
        self._lock = threading.Lock()

    def probe(self, target, username, password, timeout):
        with self._lock:
            self.current += 1
            self.peak = max(self.peak, self.current)
        try:
            time.sleep(self.delay)
            return ProbeResult(success=False, reason="nope")
        finally:
            with self._lock:
                self.current -= 1


class RaisingProber(IProber):
    """Raises the configured exception for every pair."""

    def __init__(self, exc):
        self.exc = exc

    def probe(self, target, username, password, timeout):
        raise self.exc


class TestAttackConfig:
    """Test configuration validation."""

    def test_lists_become_tuples(self):
        config = make_config(["alice"], ["x"])

        assert config.usernames == ("alice",)
        assert config.passwords == ("x",)
        assert config.total_pairs == 1

    def test_from_settings_converts_milliseconds(self):
        config = AttackConfig.from_settings("host", ["a"], ["b"], threads=3, timeout_ms=250)

        assert config.timeout == 0.25
        assert config.concurrency == 3

    @pytest.mark.parametrize("overrides", [
        {"concurrency": 0},
        {"timeout": 0},
        {"rate": 0},
        {"rate": -1.0},
        {"max_attempts": 0},
        {"burst": 0},
        {"report_interval": 0},
    ])
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ConfigurationError):
            make_config(["alice"], ["x"], **overrides).validate()

    @pytest.mark.parametrize("usernames,passwords", [
        ([], ["x"]),
        (["alice"], []),
    ])
    def test_empty_lists_rejected(self, usernames, passwords):
        with pytest.raises(ConfigurationError):
            make_config(usernames, passwords).validate()


class TestCredentialAttacker:
    """Test the attack engine end to end with stub probers."""

    def test_finds_matching_password_for_every_user(self, password_prober, logger, lines):
        attacker = CredentialAttacker(password_prober, logger=logger, success_emit=lines.append)
        stats = StatsCollector()

        report = attacker.run(make_config(["alice", "bob"], ["x", "admin123"]), stats)

        assert stats.attempts == 4
        assert stats.successes == 2
        assert {(s.username, s.password) for s in report.found} == {
            ("alice", "admin123"), ("bob", "admin123")
        }
        assert sorted(lines) == ["alice:admin123@10.0.0.5", "bob:admin123@10.0.0.5"]
        assert report.outcome_counts == {"success": 2, "failure": 2}
        assert report.completed is True
        assert report.cancelled is False

    def test_every_pair_attempted_once(self, password_prober, logger):
        usernames = ["u1", "u2", "u3"]
        passwords = ["p1", "p2", "p3", "p4", "p5"]
        attacker = CredentialAttacker(password_prober, logger=logger, success_emit=lambda r: None)

        report = attacker.run(make_config(usernames, passwords, concurrency=4))

        assert report.snapshot.attempts == 15
        assert report.dispatched == 15
        assert sorted(password_prober.calls) == sorted(itertools.product(usernames, passwords))

    def test_dispatch_order_is_username_major(self, password_prober, logger):
        usernames = ["alice", "bob"]
        passwords = ["a", "b", "c"]
        attacker = CredentialAttacker(password_prober, logger=logger)

        attacker.run(make_config(usernames, passwords, concurrency=1))

        assert password_prober.calls == [
            ("alice", "a"), ("alice", "b"), ("alice", "c"),
            ("bob", "a"), ("bob", "b"), ("bob", "c"),
        ]

    def test_cap_stops_dispatching(self, password_prober, logger):
        usernames = ["u1", "u2", "u3"]
        passwords = ["p1", "p2", "p3", "p4", "p5"]
        attacker = CredentialAttacker(password_prober, logger=logger)

        report = attacker.run(make_config(usernames, passwords, concurrency=3, max_attempts=5))

        assert report.snapshot.attempts == 5
        assert report.dispatched == 5
        assert report.completed is False
        assert sorted(password_prober.calls) == sorted(
            list(itertools.product(usernames, passwords))[:5]
        )

    def test_cap_larger_than_pairs(self, password_prober, logger):
        attacker = CredentialAttacker(password_prober, logger=logger)

        report = attacker.run(make_config(["a"], ["x", "y"], max_attempts=10))

        assert report.snapshot.attempts == 2

    def test_slow_prober_times_out(self, slow_prober, logger):
        attacker = CredentialAttacker(slow_prober, logger=logger)

        report = attacker.run(make_config(["alice", "bob"], ["x", "admin123"], timeout=0.05))

        assert report.snapshot.attempts == 4
        # Late answers from abandoned probes are discarded
        assert report.snapshot.successes == 0
        assert report.outcome_counts == {"timeout": 4}
        assert report.found == []

    def test_prober_exception_is_failure(self, logger):
        attacker = CredentialAttacker(RaisingProber(ConnectionRefusedError("refused")), logger=logger)

        report = attacker.run(make_config(["alice"], ["x", "y"]))

        assert report.snapshot.attempts == 2
        assert report.snapshot.successes == 0
        assert report.outcome_counts == {"failure": 2}

    def test_probe_failure_reason_kept(self, logger):
        outcomes = []
        attacker = CredentialAttacker(RaisingProber(ProbeFailure("connection reset")), logger=logger)
        original_record = attacker._record

        def capture(config, stats, run_state, outcome, latency):
            outcomes.append(outcome)
            original_record(config, stats, run_state, outcome, latency)

        attacker._record = capture
        attacker.run(make_config(["alice"], ["x"]))

        assert outcomes == [Failure("alice", "x", "connection reset")]

    def test_prober_raising_timeout_is_timed_out(self, logger):
        attacker = CredentialAttacker(RaisingProber(ProbeTimeout("10.0.0.5", 1.0)), logger=logger)

        report = attacker.run(make_config(["alice"], ["x"]))

        assert report.outcome_counts == {"timeout": 1}
        assert report.snapshot.attempts == 1

    @pytest.mark.parametrize("returned", [True, False, None, "ok"])
    def test_non_result_return_is_failure(self, returned, logger):
        class LooseProber(IProber):
            def probe(self, target, username, password, timeout):
                return returned

        attacker = CredentialAttacker(LooseProber(), logger=logger)

        report = attacker.run(make_config(["alice", "bob"], ["x", "admin123"]))

        assert report.dispatched == 4
        assert report.snapshot.attempts == report.dispatched
        assert report.snapshot.successes == 0
        assert report.outcome_counts == {"failure": 4}

    def test_invalid_result_reason(self, logger):
        outcomes = []

        class BoolProber(IProber):
            def probe(self, target, username, password, timeout):
                return password == "admin123"

        attacker = CredentialAttacker(BoolProber(), logger=logger)
        original_record = attacker._record

        def capture(config, stats, run_state, outcome, latency):
            outcomes.append(outcome)
            original_record(config, stats, run_state, outcome, latency)

        attacker._record = capture
        attacker.run(make_config(["alice"], ["admin123"]))

        assert outcomes == [Failure("alice", "admin123", "invalid prober result: bool")]

    def test_attempt_task_errors_are_logged(self):
        logger = Mock(spec=Logger)
        stats = Mock(spec=StatsCollector)
        stats.record_attempt.side_effect = RuntimeError("counter broken")
        stats.snapshot.return_value = StatsSnapshot(0, 0, 0.1)
        attacker = CredentialAttacker(RaisingProber(ProbeFailure("rejected")), logger=logger)

        attacker.run(make_config(["alice"], ["x"]), stats)

        errors = [call.args[0] for call in logger.error.call_args_list]
        assert any("counter broken" in message for message in errors)

    def test_stall_warning_when_slots_held_by_timed_out_probes(self):
        logger = Mock(spec=Logger)
        prober = TrackingProber(delay=0.4)
        attacker = CredentialAttacker(prober, logger=logger)

        report = attacker.run(make_config(["alice"], ["x", "y"], concurrency=1, timeout=0.01))

        assert report.outcome_counts == {"timeout": 2}
        warnings = [call.args[0] for call in logger.warning.call_args_list]
        assert any("stalled" in message for message in warnings)

    def test_concurrency_bound_respected(self, logger):
        prober = TrackingProber(delay=0.02)
        attacker = CredentialAttacker(prober, logger=logger)

        report = attacker.run(make_config(["a", "b", "c", "d"], ["1", "2", "3", "4", "5"], concurrency=3))

        assert report.snapshot.attempts == 20
        assert 1 <= prober.peak <= 3

    def test_abandoned_probes_still_hold_slots(self, logger):
        prober = TrackingProber(delay=0.1)
        attacker = CredentialAttacker(prober, logger=logger)

        report = attacker.run(make_config(["a", "b"], ["1", "2", "3"], concurrency=2, timeout=0.01))

        assert report.outcome_counts == {"timeout": 6}
        assert prober.peak <= 2
        assert prober.current == 0

    def test_successes_never_exceed_attempts_mid_run(self, password_prober, logger):
        prober = password_prober
        prober.delay = 0.005
        attacker = CredentialAttacker(prober, logger=logger, success_emit=lambda r: None)
        stats = StatsCollector()
        config = make_config([f"user{i}" for i in range(10)], ["x", "admin123", "y"], concurrency=4)

        worker = threading.Thread(target=attacker.run, args=(config, stats))
        worker.start()
        snapshots = []
        while worker.is_alive():
            snapshots.append(stats.snapshot())
            time.sleep(0.001)
        worker.join()
        snapshots.append(stats.snapshot())

        assert all(s.successes <= s.attempts for s in snapshots)
        elapsed = [s.elapsed for s in snapshots]
        assert elapsed == sorted(elapsed)
        assert snapshots[-1].attempts == 30
        assert snapshots[-1].successes == 10

    def test_rate_limit_paces_attempts(self, password_prober, logger):
        attacker = CredentialAttacker(password_prober, logger=logger)
        config = make_config(["a"], ["1", "2", "3", "4", "5", "6"], rate=20.0, burst=1, concurrency=6)

        start = time.monotonic()
        attacker.run(config)
        elapsed = time.monotonic() - start

        # First permit is free, the other five are 50ms apart
        assert elapsed >= 0.25 - 0.01

    def test_invalid_config_attempts_nothing(self, password_prober, logger):
        attacker = CredentialAttacker(password_prober, logger=logger)
        stats = StatsCollector()

        with pytest.raises(ConfigurationError):
            attacker.run(make_config(["alice"], ["x"], concurrency=0), stats)

        assert stats.attempts == 0
        assert password_prober.calls == []


class TestCancellation:
    """Test run-wide cancellation."""

    def test_cancel_before_start(self, password_prober, logger):
        token = CancellationToken()
        token.cancel("operator abort")
        attacker = CredentialAttacker(password_prober, logger=logger)

        report = attacker.run(make_config(["alice"], ["x", "y"]), cancel_token=token)

        assert report.cancelled is True
        assert report.dispatched == 0
        assert report.snapshot.attempts == 0
        assert password_prober.calls == []

    def test_cancel_mid_run(self, logger):
        token = CancellationToken()

        class CancellingProber(IProber):
            def __init__(self):
                self.calls = 0

            def probe(self, target, username, password, timeout):
                self.calls += 1
                if self.calls == 3:
                    token.cancel("enough")
                return ProbeResult(success=False)

        prober = CancellingProber()
        attacker = CredentialAttacker(prober, logger=logger)

        report = attacker.run(make_config(["a", "b"], ["1", "2", "3"], concurrency=1), cancel_token=token)

        assert report.cancelled is True
        assert report.dispatched == 3
        assert report.snapshot.attempts == 3
        assert token.reason == "enough"


class TestProgressDuringRun:
    """Test the reporter lifecycle inside a run."""

    def test_progress_lines_emitted_and_reporter_stopped(self, password_prober, logger, lines):
        prober = password_prober
        prober.delay = 0.02
        attacker = CredentialAttacker(prober, logger=logger, progress_emit=lines.append)

        attacker.run(make_config(["a", "b"], ["1", "2", "3", "4", "5"], concurrency=1, report_interval=0.03))

        assert lines
        assert all(line.startswith("Progress: ") for line in lines)
        assert not any(t.name == "progress-reporter" for t in threading.enumerate())


class TestOutcomeModel:
    """Test the attempt outcome variants."""

    def test_kinds(self):
        assert Success("a", "b").kind == "success"
        assert Failure("a", "b", "bad").kind == "failure"
        assert TimedOut("a", "b").kind == "timeout"

    def test_only_success_is_success(self):
        assert Success("a", "b").is_success is True
        assert Failure("a", "b", "bad").is_success is False
        assert TimedOut("a", "b").is_success is False

    def test_success_record_format(self):
        assert Success("alice", "admin123").record("10.0.0.5") == "alice:admin123@10.0.0.5"

    def test_outcomes_are_immutable(self):
        outcome = Success("alice", "admin123")

        with pytest.raises(AttributeError):
            outcome.username = "bob"


class TestRunState:
    """Test per-run bookkeeping."""

    def test_latency_samples_are_bounded(self):
        state = _RunState(latency_samples=3)

        for i in range(5):
            state.add(Failure("alice", str(i), "rejected"), latency=float(i))

        assert list(state.latencies) == [2.0, 3.0, 4.0]
        assert state.counts["failure"] == 5

    def test_timeouts_not_sampled(self):
        state = _RunState()

        state.add(TimedOut("alice", "x"), latency=1.0)

        assert len(state.latencies) == 0
