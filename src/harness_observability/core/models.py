"""Core domain models for observability data."""

from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass, field
from typing import Any, Literal

LogLevel = Literal["debug", "info", "warn", "error"]
LogFormat = Literal["json", "text"]
MetricType = Literal["counter", "gauge", "histogram", "timer"]
HealthState = Literal["healthy", "degraded", "unhealthy"]
ReportType = Literal["test-execution", "healing-summary", "system-health", "performance"]
ReportFormat = Literal["json", "html", "pdf"]
EventType = Literal["log", "metric", "health", "trace"]

HEALTH_STATES: tuple[str, ...] = ("healthy", "degraded", "unhealthy")
REPORT_TYPES: tuple[str, ...] = (
    "test-execution",
    "healing-summary",
    "system-health",
    "performance",
)


def _without_none(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


# === Metrics ===


@dataclass(frozen=True)
class CounterMetric:
    """A single counter increment.

    Attributes:
        name: Registered metric name.
        timestamp: Unix timestamp in seconds.
        value: Increment amount.
        labels: Key-value pairs for metric dimensions.
    """

    name: str
    timestamp: float
    value: float
    labels: dict[str, str] = field(default_factory=dict)
    type: Literal["counter"] = field(default="counter", init=False)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class GaugeMetric:
    """A point-in-time gauge reading."""

    name: str
    timestamp: float
    value: float
    labels: dict[str, str] = field(default_factory=dict)
    type: Literal["gauge"] = field(default="gauge", init=False)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class HistogramMetric:
    """One histogram observation.

    Attributes:
        buckets: Mapping of ``le_<boundary>`` keys to 0/1, plus ``le_+Inf``.
        sum: The observed value.
        count: Always 1; each record is one discrete observation.
    """

    name: str
    timestamp: float
    buckets: dict[str, int]
    sum: float
    count: int = 1
    labels: dict[str, str] = field(default_factory=dict)
    type: Literal["histogram"] = field(default="histogram", init=False)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TimerMetric:
    """A measured duration."""

    name: str
    timestamp: float
    duration: float
    unit: Literal["ms", "s", "us"] = "ms"
    labels: dict[str, str] = field(default_factory=dict)
    type: Literal["timer"] = field(default="timer", init=False)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


Metric = CounterMetric | GaugeMetric | HistogramMetric | TimerMetric


@dataclass(frozen=True)
class MetricRegistration:
    """Declared shape of a metric name.

    Attributes:
        name: Unique metric name.
        type: One of counter, gauge, histogram, timer.
        description: Help text used in Prometheus output.
        labels: Expected label keys (advisory only).
        buckets: Ascending histogram boundaries.
    """

    name: str
    type: MetricType
    description: str
    labels: tuple[str, ...] = ()
    buckets: tuple[float, ...] | None = None


@dataclass(frozen=True)
class MetricsData:
    """Flattened snapshot of every recorded metric."""

    metrics: list[Metric]
    timestamp: float
    source: str
    metadata: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "metrics": [metric.to_dict() for metric in self.metrics],
            "timestamp": self.timestamp,
            "source": self.source,
            "metadata": dict(self.metadata),
        }


# === Logging ===


@dataclass(frozen=True)
class LogContext:
    """Where a log entry comes from.

    Only ``component`` is required; the remaining fields are optional
    correlation identifiers.
    """

    component: str
    operation: str | None = None
    request_id: str | None = None
    user_id: str | None = None
    test_id: str | None = None
    engine_id: str | None = None

    def to_dict(self) -> dict[str, str]:
        return _without_none(asdict(self))


@dataclass(frozen=True)
class ErrorInfo:
    """Serializable description of an exception."""

    name: str
    message: str
    stack: str | None = None

    def to_dict(self) -> dict[str, str]:
        return _without_none(asdict(self))


@dataclass(frozen=True)
class LogEntry:
    """A structured log entry.

    Attributes:
        level: One of debug, info, warn, error.
        message: The log message.
        timestamp: Unix timestamp in seconds.
        context: Originating component and correlation identifiers.
        data: Optional free-form structured payload.
        error: Optional exception description.
    """

    level: LogLevel
    message: str
    timestamp: float
    context: LogContext
    data: dict[str, Any] | None = None
    error: ErrorInfo | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "level": self.level,
            "message": self.message,
            "timestamp": self.timestamp,
            "context": self.context.to_dict(),
        }
        if self.data is not None:
            result["data"] = self.data
        if self.error is not None:
            result["error"] = self.error.to_dict()
        return result


# === Health ===


@dataclass(frozen=True)
class CheckOutcome:
    """Value returned by a health check function."""

    status: HealthState
    details: dict[str, Any] = field(default_factory=dict)
    error: str | None = None


CheckFunction = Callable[[], Awaitable[CheckOutcome]]


@dataclass(frozen=True)
class HealthCheck:
    """A registered health check.

    Attributes:
        name: Unique check name.
        check: Coroutine function returning a CheckOutcome.
        timeout: Budget for a single run, in milliseconds.
        interval: Delay between scheduled runs, in milliseconds.
        critical: Whether the check can push the system status to unhealthy.
    """

    name: str
    check: CheckFunction
    timeout: float = 5000
    interval: float = 30000
    critical: bool = False


@dataclass(frozen=True)
class HealthCheckResult:
    """Outcome of the most recent run of a check."""

    name: str
    status: HealthState
    duration: float
    timestamp: float
    details: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _without_none(asdict(self))


@dataclass(frozen=True)
class HealthStatus:
    """Health of a single component as reported to consumers."""

    status: HealthState
    component: str
    timestamp: float
    uptime: float
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class HealthSummary:
    total_components: int
    healthy_components: int
    degraded_components: int
    unhealthy_components: int
    uptime: float


@dataclass(frozen=True)
class SystemHealth:
    """Aggregate system health computed from the latest check results."""

    status: HealthState
    timestamp: float
    components: list[HealthStatus]
    summary: HealthSummary

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# === Reporting ===


@dataclass(frozen=True)
class ReportTemplate:
    """An HTML skeleton with ``{{variable}}`` placeholders."""

    id: str
    name: str
    description: str
    type: ReportType
    template: str
    variables: tuple[str, ...] = ()


@dataclass(frozen=True)
class TimeRange:
    start: float
    end: float


@dataclass(frozen=True)
class ReportMetadata:
    version: str
    generator: str
    format: ReportFormat


@dataclass(frozen=True)
class ReportData:
    """Envelope describing a generated report."""

    id: str
    type: ReportType
    title: str
    description: str
    generated_at: float
    time_range: TimeRange
    data: Any
    metadata: ReportMetadata

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ReportOptions:
    """Parameters of a single report generation request."""

    type: ReportType
    format: ReportFormat
    data: Any
    title: str | None = None
    description: str | None = None
    time_range: TimeRange | None = None
    template_id: str | None = None
    output_path: str | None = None


# === Events ===


@dataclass(frozen=True)
class ObservabilityEvent:
    """Notification dispatched to event listeners."""

    type: EventType
    timestamp: float
    source: str
    data: Any
