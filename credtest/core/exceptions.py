"""
Custom exceptions for the credential testing engine.

Provides specific, meaningful exceptions for the different failure modes
of a single attempt and of the run as a whole.
"""


class CredTestException(Exception):
    """Base exception for all credential testing errors."""
    pass


class ProbeFailure(CredTestException):
    """Raised by a prober when a credential pair is rejected or the connection fails."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class ProbeTimeout(CredTestException):
    """Raised when a probe does not answer within the per-attempt timeout."""

    def __init__(self, target: str, timeout: float):
        self.target = target
        self.timeout = timeout
        super().__init__(f"No answer from {target} within {timeout:.3f}s")


class ConfigurationError(CredTestException):
    """Raised when configuration is invalid or missing."""
    pass


class ProberLoadError(ConfigurationError):
    """Raised when the configured prober cannot be resolved or created."""

    def __init__(self, spec: str, reason: str):
        self.spec = spec
        self.reason = reason
        super().__init__(f"Cannot load prober '{spec}': {reason}")
