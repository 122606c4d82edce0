"""Metric helper functions for creating metric records."""

import time
from collections.abc import Sequence

from harness_observability.core.models import (
    CounterMetric,
    GaugeMetric,
    HistogramMetric,
    TimerMetric,
)

DEFAULT_HISTOGRAM_BUCKETS = (0.1, 0.5, 1, 2, 5, 10)
INF_BUCKET = "le_+Inf"


def format_boundary(boundary: float) -> str:
    """Render a bucket boundary in its shortest exact form (``1``, ``0.25``).

    Integral boundaries drop the trailing ``.0``; others use ``repr`` so
    distinct boundaries never share a key.
    """
    number = float(boundary)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def bucket_key(boundary: float) -> str:
    return f"le_{format_boundary(boundary)}"


def counter(
    name: str,
    value: float = 1.0,
    labels: dict[str, str] | None = None,
) -> CounterMetric:
    """Create a counter record.

    Args:
        name: Metric name (e.g., "test_executions_total")
        value: Increment value (default: 1.0)
        labels: Optional dimension labels

    Returns:
        CounterMetric with current timestamp
    """
    return CounterMetric(
        name=name,
        timestamp=time.time(),
        value=value,
        labels=dict(labels or {}),
    )


def gauge(
    name: str,
    value: float,
    labels: dict[str, str] | None = None,
) -> GaugeMetric:
    """Create a gauge record.

    Args:
        name: Metric name (e.g., "healing_success_rate")
        value: Current gauge value
        labels: Optional dimension labels

    Returns:
        GaugeMetric with current timestamp
    """
    return GaugeMetric(
        name=name,
        timestamp=time.time(),
        value=value,
        labels=dict(labels or {}),
    )


def histogram(
    name: str,
    value: float,
    labels: dict[str, str] | None = None,
    buckets: Sequence[float] | None = None,
) -> HistogramMetric:
    """Create a histogram record for a single observation.

    Each boundary ``b`` gets a ``le_{b}`` key set to 1 when ``value <= b``
    and 0 otherwise; ``le_+Inf`` is always 1.

    Args:
        name: Metric name (e.g., "healing_duration_seconds")
        value: Observed value
        labels: Optional dimension labels
        buckets: Ascending bucket boundaries (default: DEFAULT_HISTOGRAM_BUCKETS)

    Returns:
        HistogramMetric holding one observation
    """
    boundaries = buckets if buckets is not None else DEFAULT_HISTOGRAM_BUCKETS
    counts = {bucket_key(b): 1 if value <= b else 0 for b in boundaries}
    # +Inf always contains the observation
    counts[INF_BUCKET] = 1
    return HistogramMetric(
        name=name,
        timestamp=time.time(),
        buckets=counts,
        sum=value,
        count=1,
        labels=dict(labels or {}),
    )


def timer(
    name: str,
    duration_ms: float,
    labels: dict[str, str] | None = None,
) -> TimerMetric:
    """Create a timer record with a duration in milliseconds."""
    return TimerMetric(
        name=name,
        timestamp=time.time(),
        duration=duration_ms,
        unit="ms",
        labels=dict(labels or {}),
    )
