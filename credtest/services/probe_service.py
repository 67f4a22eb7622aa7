"""
Prober implementations and configuration-driven prober selection.

Only the simulated prober ships with the engine. Protocol-specific probers
live in their own modules and are referenced from configuration as
"package.module:ClassName".
"""

import importlib
import time
from typing import Any, Dict, Optional

from credtest.core.interfaces import IProber, ProbeResult
from credtest.core.exceptions import ProbeTimeout, ProberLoadError
from credtest.utils.logger import Logger


class SimulatedProber(IProber):
    """
    Offline prober that accepts a single configured password for any user.

    Useful for dry runs of a configuration (rate, concurrency, timeout)
    without touching a real target.

    Example:
        >>> prober = SimulatedProber(valid_password="admin123")
        >>> prober.probe("10.0.0.5", "alice", "admin123", timeout=1.0).success
        True
    """

    def __init__(self, valid_password: str = "admin123", delay: float = 0.0):
        """
        Args:
            valid_password: The password reported as correct
            delay: Simulated round-trip time in seconds
        """
        self.valid_password = valid_password
        self.delay = delay

    def probe(
        self,
        target: str,
        username: str,
        password: str,
        timeout: float
    ) -> ProbeResult:
        if self.delay > 0:
            time.sleep(min(self.delay, timeout))
            if self.delay > timeout:
                raise ProbeTimeout(target, timeout)

        if password == self.valid_password:
            return ProbeResult(success=True)
        return ProbeResult(success=False, reason="invalid credentials")


BUILTIN_PROBERS = {
    "simulated": SimulatedProber,
}


def load_prober(
    spec: str,
    options: Optional[Dict[str, Any]] = None,
    logger: Optional[Logger] = None
) -> IProber:
    """
    Resolve and instantiate the prober named by configuration.

    Args:
        spec: A built-in name ("simulated") or "package.module:ClassName"
        options: Keyword arguments passed to the prober's constructor
        logger: Logger instance

    Returns:
        Ready-to-use prober

    Raises:
        ProberLoadError: If the prober cannot be imported or constructed
    """
    logger = logger or Logger()
    options = options or {}

    if spec in BUILTIN_PROBERS:
        prober_class = BUILTIN_PROBERS[spec]
    else:
        module_name, sep, class_name = spec.partition(":")
        if not sep or not module_name or not class_name:
            raise ProberLoadError(spec, "expected a built-in name or 'package.module:ClassName'")

        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            raise ProberLoadError(spec, str(e))

        prober_class = getattr(module, class_name, None)
        if prober_class is None:
            raise ProberLoadError(spec, f"module '{module_name}' has no attribute '{class_name}'")

    if not (isinstance(prober_class, type) and issubclass(prober_class, IProber)):
        raise ProberLoadError(spec, "not an IProber implementation")

    try:
        prober = prober_class(**options)
    except TypeError as e:
        raise ProberLoadError(spec, f"bad prober options: {str(e)}")

    logger.info(f"Using prober '{spec}' ({prober_class.__name__})")
    return prober
