"""
Abstract interfaces and data model for the credential testing engine.

This module defines the contracts (interfaces) that concrete probers and
loggers must follow, and the immutable outcome types produced for every
credential pair that is tested.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar, Optional


@dataclass(frozen=True)
class ProbeResult:
    """
    Answer returned by a prober for one credential pair.

    Attributes:
        success: Whether the target accepted the credentials
        reason: Optional explanation when the credentials were rejected
    """
    success: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class AttemptOutcome:
    """
    Classified result of testing a single credential pair.

    Exactly one outcome is produced per pair dispatched by the engine.
    Concrete variants are Success, Failure and TimedOut.
    """
    username: str
    password: str

    kind: ClassVar[str] = "unknown"

    @property
    def is_success(self) -> bool:
        return self.kind == "success"


@dataclass(frozen=True)
class Success(AttemptOutcome):
    """The target accepted the credential pair."""
    kind: ClassVar[str] = "success"

    def record(self, target: str) -> str:
        """Greppable success record: username:password@target."""
        return f"{self.username}:{self.password}@{target}"


@dataclass(frozen=True)
class Failure(AttemptOutcome):
    """The pair was rejected or the connection failed for a non-timeout reason."""
    reason: str
    kind: ClassVar[str] = "failure"


@dataclass(frozen=True)
class TimedOut(AttemptOutcome):
    """The prober did not answer within the per-attempt timeout."""
    kind: ClassVar[str] = "timeout"


class IProber(ABC):
    """
    Interface for a single authentication attempt against a target.

    The engine never speaks a wire protocol itself. Protocol-specific
    modules implement this interface and are selected by configuration.
    One prober instance serves every worker thread of a run, so `probe`
    must be thread-safe and open its own connection per call.
    """

    @abstractmethod
    def probe(
        self,
        target: str,
        username: str,
        password: str,
        timeout: float
    ) -> ProbeResult:
        """
        Test one credential pair against the target.

        Args:
            target: Target address
            username: Username to authenticate as
            password: Password candidate
            timeout: Seconds the attempt may take

        Returns:
            ProbeResult telling whether the credentials were accepted

        Raises:
            ProbeFailure: If the connection failed for a non-timeout reason
            ProbeTimeout: If the prober gave up waiting on the target
        """
        pass

    def close(self) -> None:
        """Release any resources held by the prober."""
        pass


class ILogger(ABC):
    """Interface for logging functionality."""

    @abstractmethod
    def debug(self, message: str) -> None:
        """Log debug message."""
        pass

    @abstractmethod
    def info(self, message: str) -> None:
        """Log info message."""
        pass

    @abstractmethod
    def warning(self, message: str) -> None:
        """Log warning message."""
        pass

    @abstractmethod
    def error(self, message: str) -> None:
        """Log error message."""
        pass
