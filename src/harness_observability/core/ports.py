"""Port interfaces for storage and rendering adapters.

These protocols define the contracts the services depend on. Concrete
implementations live under ``harness_observability.adapters``.
"""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from harness_observability.core.models import Metric, ReportData, ReportTemplate


@runtime_checkable
class MetricSeriesStoragePort(Protocol):
    """Port for per-name metric series storage.

    Series preserve insertion order. Examples: InMemoryMetricSeriesStorage.
    """

    def configure(self, retention_seconds: float | None, max_length: int | None) -> None:
        """Apply a new retention window and per-series cap."""
        ...

    def ensure(self, name: str) -> None:
        """Create an empty series for ``name`` if none exists."""
        ...

    def write(self, metric: Metric) -> None:
        """Append a metric record to the series for ``metric.name``."""
        ...

    def read(self, name: str) -> Sequence[Metric]:
        """Return the series for ``name`` (empty if unknown)."""
        ...

    def names(self) -> list[str]:
        """Return every series name, in creation order."""
        ...

    def prune(self, cutoff: float) -> int:
        """Drop records with ``timestamp <= cutoff``; return how many."""
        ...

    def prune_expired(self) -> int:
        """Apply the configured retention window to every series."""
        ...

    def clear(self) -> None:
        """Remove every series."""
        ...


@runtime_checkable
class LogSinkPort(Protocol):
    """Port for persistent log line destinations.

    Examples: RotatingLogFile.
    """

    def configure(self, max_file_size: str | int, max_files: int) -> None:
        """Apply new rotation limits."""
        ...

    def write(self, line: str) -> None:
        """Append one line; a trailing newline is added by the sink."""
        ...

    def read_lines(self) -> list[str]:
        """Return the non-empty lines of the active file."""
        ...

    def size(self) -> int | None:
        """Return the active file size in bytes, or None if it is absent."""
        ...


@runtime_checkable
class ReportRenderer(Protocol):
    """Turns a report envelope into the text written to disk.

    Renderers with ``uses_template`` set receive the resolved HTML template;
    the others receive None. Examples: JsonReportRenderer, HtmlReportRenderer.
    """

    uses_template: bool

    def render(self, report: ReportData, template: ReportTemplate | None) -> str:
        """Render ``report``; ``template`` is None for template-free formats."""
        ...
