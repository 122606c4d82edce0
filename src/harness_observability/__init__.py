"""Observability core for the self-healing test automation harness.

Structured logging, metrics, health monitoring and report generation
behind a single ObservabilityManager facade.
"""

from harness_observability.adapters.logging import ObservabilityLogHandler
from harness_observability.adapters.storage import (
    InMemoryMetricSeriesStorage,
    RotatingLogFile,
)
from harness_observability.core.config import (
    HealthConfig,
    LoggingConfig,
    MetricsConfig,
    ObservabilityConfig,
    ReportingConfig,
    TracingConfig,
    default_config,
)
from harness_observability.core.models import (
    CheckOutcome,
    HealthCheck,
    HealthCheckResult,
    HealthStatus,
    LogContext,
    LogEntry,
    MetricRegistration,
    ObservabilityEvent,
    ReportData,
    ReportOptions,
    ReportTemplate,
    SystemHealth,
    TimeRange,
)
from harness_observability.services.collector import MetricsCollector
from harness_observability.services.events import EventBus
from harness_observability.services.logger import StructuredLogger
from harness_observability.services.manager import ComponentLogger, ObservabilityManager
from harness_observability.services.monitor import HealthMonitor
from harness_observability.services.reports import (
    ReportGenerationError,
    ReportGenerator,
    TemplateNotFoundError,
)

__all__ = [
    "CheckOutcome",
    "ComponentLogger",
    "EventBus",
    "HealthCheck",
    "HealthCheckResult",
    "HealthConfig",
    "HealthMonitor",
    "HealthStatus",
    "InMemoryMetricSeriesStorage",
    "LogContext",
    "LogEntry",
    "LoggingConfig",
    "MetricRegistration",
    "MetricsCollector",
    "MetricsConfig",
    "ObservabilityConfig",
    "ObservabilityEvent",
    "ObservabilityLogHandler",
    "ObservabilityManager",
    "ReportData",
    "ReportGenerationError",
    "ReportGenerator",
    "ReportOptions",
    "ReportTemplate",
    "ReportingConfig",
    "RotatingLogFile",
    "StructuredLogger",
    "SystemHealth",
    "TemplateNotFoundError",
    "TimeRange",
    "TracingConfig",
    "default_config",
]
