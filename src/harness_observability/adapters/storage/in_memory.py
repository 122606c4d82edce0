"""In-memory metric series storage.

Each metric name owns a bounded or unbounded deque of observations in
insertion order. Observations older than the retention window are evicted
on write for the series being written, and for every series on ``prune``.
"""

import time
from collections import deque
from collections.abc import Sequence

from harness_observability.core.models import Metric


class InMemoryMetricSeriesStorage:
    """In-memory implementation of MetricSeriesStoragePort.

    Args:
        retention_seconds: Maximum age of an observation; None keeps all.
        max_length: Optional cap per series. When a series is full the
            oldest observation is evicted to make room.
    """

    def __init__(
        self,
        retention_seconds: float | None = None,
        max_length: int | None = None,
    ) -> None:
        self._series: dict[str, deque[Metric]] = {}
        self._retention_seconds = retention_seconds
        self._max_length = max_length

    def configure(
        self,
        retention_seconds: float | None,
        max_length: int | None,
    ) -> None:
        """Apply new bounds; existing series are re-bounded in place."""
        self._retention_seconds = retention_seconds
        if max_length != self._max_length:
            self._max_length = max_length
            for name, series in self._series.items():
                self._series[name] = deque(series, maxlen=max_length)
        self.prune_expired()

    def ensure(self, name: str) -> None:
        if name not in self._series:
            self._series[name] = deque(maxlen=self._max_length)

    def write(self, metric: Metric) -> None:
        """Append an observation, evicting expired ones from its series."""
        self.ensure(metric.name)
        series = self._series[metric.name]
        series.append(metric)
        if self._retention_seconds is not None:
            self._evict(series, time.time() - self._retention_seconds)

    def read(self, name: str) -> Sequence[Metric]:
        return list(self._series.get(name, ()))

    def names(self) -> list[str]:
        return list(self._series)

    def count(self) -> int:
        """Return the number of stored observations across all series."""
        return sum(len(series) for series in self._series.values())

    def prune(self, cutoff: float) -> int:
        """Drop observations with ``timestamp <= cutoff`` from every series."""
        return sum(self._evict(series, cutoff) for series in self._series.values())

    def prune_expired(self) -> int:
        """Apply the retention window to every series."""
        if self._retention_seconds is None:
            return 0
        return self.prune(time.time() - self._retention_seconds)

    def clear(self) -> None:
        self._series.clear()

    @staticmethod
    def _evict(series: deque[Metric], cutoff: float) -> int:
        # Series are appended in time order, so expired records sit at the left
        removed = 0
        while series and series[0].timestamp <= cutoff:
            series.popleft()
            removed += 1
        return removed
