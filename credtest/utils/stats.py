"""
Statistical utility functions for probe latency.

Summarizes how long the engine waited on answered probes so that an
operator can tune the per-attempt timeout and concurrency.
"""

from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np
from scipy import stats


@dataclass(frozen=True)
class LatencySummary:
    """
    Distribution of probe latencies in seconds.

    Attributes:
        count: Number of latencies summarized
        mean: Arithmetic mean
        median: Median (robust to slow outliers)
        p95: 95th percentile
        ci_low: Lower bound of the 95% confidence interval of the mean
        ci_high: Upper bound of the 95% confidence interval of the mean
    """
    count: int
    mean: float
    median: float
    p95: float
    ci_low: float
    ci_high: float


EMPTY_SUMMARY = LatencySummary(0, 0.0, 0.0, 0.0, 0.0, 0.0)


def calculate_confidence_interval(
    data: Sequence[float],
    confidence: float = 0.95
) -> Tuple[float, float]:
    """
    Calculate confidence interval for the mean.

    Uses t-distribution for small sample sizes.

    Args:
        data: List of numerical values
        confidence: Confidence level (0-1)

    Returns:
        Tuple of (lower_bound, upper_bound)
    """
    if len(data) < 2:
        value = float(data[0]) if data else 0.0
        return (value, value)

    n = len(data)
    mean = float(np.mean(data))
    std_err = float(stats.sem(data))

    if std_err == 0:
        return (mean, mean)

    t_value = stats.t.ppf((1 + confidence) / 2, n - 1)
    margin_of_error = float(t_value * std_err)

    return (mean - margin_of_error, mean + margin_of_error)


def summarize_latencies(latencies: List[float]) -> LatencySummary:
    """
    Summarize a list of probe latencies.

    Example:
        >>> summary = summarize_latencies([0.1, 0.2, 0.3])
        >>> round(summary.median, 2)
        0.2
    """
    if not latencies:
        return EMPTY_SUMMARY

    data = np.asarray(latencies, dtype=float)
    ci_low, ci_high = calculate_confidence_interval(latencies)

    return LatencySummary(
        count=int(data.size),
        mean=float(np.mean(data)),
        median=float(np.median(data)),
        p95=float(np.percentile(data, 95)),
        ci_low=ci_low,
        ci_high=ci_high
    )
