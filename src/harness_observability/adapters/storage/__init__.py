"""Storage adapters implementing core ports."""

from harness_observability.adapters.storage.in_memory import (
    InMemoryMetricSeriesStorage,
)
from harness_observability.adapters.storage.log_file import RotatingLogFile

__all__ = [
    "InMemoryMetricSeriesStorage",
    "RotatingLogFile",
]
