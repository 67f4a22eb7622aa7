"""Shared pytest fixtures and stub probers."""

import threading
import time

import pytest

from credtest.core.interfaces import IProber, ProbeResult
from credtest.utils.logger import Logger


class PasswordProber(IProber):
    """Accepts one password for every username and remembers every call."""

    def __init__(self, valid_password="admin123", delay=0.0):
        self.valid_password = valid_password
        self.delay = delay
        self.calls = []
        self._lock = threading.Lock()

    def probe(self, target, username, password, timeout):
        with self._lock:
            self.calls.append((username, password))
        if self.delay:
            time.sleep(self.delay)
        if password == self.valid_password:
            return ProbeResult(success=True)
        return ProbeResult(success=False, reason="invalid credentials")


class SlowProber(IProber):
    """Never answers within the timeout."""

    def __init__(self, delay):
        self.delay = delay

    def probe(self, target, username, password, timeout):
        time.sleep(self.delay)
        return ProbeResult(success=True)


@pytest.fixture
def logger():
    return Logger(console=False)


@pytest.fixture
def lines():
    """Collects emitted output lines; safe to append from worker threads."""
    return []


@pytest.fixture
def password_prober():
    """Prober that succeeds only for 'admin123'."""
    return PasswordProber("admin123")


@pytest.fixture
def slow_prober():
    """Prober that always takes 0.3s to answer."""
    return SlowProber(0.3)
