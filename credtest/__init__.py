"""Concurrent, rate-limited credential testing engine."""

__version__ = "0.1"
