"""Facade coordinating logging, metrics, health and reporting."""

import logging
import time
from collections.abc import Mapping
from typing import Any, TextIO

from harness_observability.core.config import ObservabilityConfig
from harness_observability.core.logs import coerce_context
from harness_observability.core.models import (
    CheckFunction,
    CheckOutcome,
    ErrorInfo,
    HealthCheck,
    HealthStatus,
    LogContext,
    LogLevel,
    Metric,
    MetricRegistration,
    ObservabilityEvent,
    ReportData,
    ReportOptions,
    SystemHealth,
)
from harness_observability.services.collector import MetricsCollector
from harness_observability.services.events import EventBus, EventListener
from harness_observability.services.health_checks import EngineProvider
from harness_observability.services.logger import StructuredLogger
from harness_observability.services.monitor import HealthMonitor
from harness_observability.services.reports import ReportGenerator

logger = logging.getLogger(__name__)

MANAGER_COMPONENT = "observability-manager"
HEALTH_CONTEXT = LogContext(component="health-monitor", operation="health-check")

MANAGER_REGISTRATIONS: tuple[MetricRegistration, ...] = (
    MetricRegistration(
        "observability_events_total",
        "counter",
        "Total observability events processed",
        ("type", "source"),
    ),
    MetricRegistration(
        "log_entries_total",
        "counter",
        "Total log entries created",
        ("level", "component"),
    ),
    MetricRegistration(
        "health_checks_total",
        "counter",
        "Total health checks performed",
        ("check_name", "status"),
    ),
    MetricRegistration(
        "reports_generated_total",
        "counter",
        "Total reports generated",
        ("type", "format"),
    ),
    MetricRegistration(
        "health_check_duration",
        "timer",
        "Time spent performing on-demand health checks",
        ("check_name",),
    ),
    MetricRegistration(
        "report_generation_duration",
        "timer",
        "Time spent generating reports",
        ("type", "format"),
    ),
)


def _error_message(error: BaseException | ErrorInfo | None) -> str | None:
    if error is None:
        return None
    if isinstance(error, ErrorInfo):
        return error.message
    return str(error)


def _outcome_field(outcome: Any, name: str) -> Any:
    if isinstance(outcome, Mapping):
        return outcome.get(name)
    return getattr(outcome, name, None)


class ComponentLogger:
    """Logger bound to one context, routed through the manager.

    Entries written here are counted and emitted as events like any
    other ``ObservabilityManager.log`` call.
    """

    def __init__(self, manager: "ObservabilityManager", context: LogContext) -> None:
        self._manager = manager
        self.context = context

    def debug(self, message: str, data: dict[str, Any] | None = None) -> None:
        self._manager.log("debug", message, self.context, data)

    def info(self, message: str, data: dict[str, Any] | None = None) -> None:
        self._manager.log("info", message, self.context, data)

    def warn(self, message: str, data: dict[str, Any] | None = None) -> None:
        self._manager.log("warn", message, self.context, data)

    def error(
        self,
        message: str,
        error: BaseException | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        self._manager.log("error", message, self.context, data, error)


class ObservabilityManager:
    """Builds the four subsystems from one configuration and fronts them.

    Every log, health check, report and event passes through here so it
    can be counted in the metrics collector and published on the event
    bus. Counting is best effort: a failed count is dropped and never
    fails the operation being counted.

    Example:
        ```python
        manager = ObservabilityManager({"logging": {"level": "debug"}})
        log = manager.create_logger("playwright-engine")
        log.info("Test started", {"test_id": "login"})
        ```

    Args:
        config: Configuration value or a nested mapping accepted by
            ``ObservabilityConfig.from_dict``. Defaults apply when omitted.
        stream: Console stream for the logger (defaults to stdout).
        engine_provider: Source of engine names for the ``test_engines`` check.
    """

    def __init__(
        self,
        config: ObservabilityConfig | Mapping[str, Any] | None = None,
        stream: TextIO | None = None,
        engine_provider: EngineProvider | None = None,
    ) -> None:
        if config is None:
            config = ObservabilityConfig()
        elif not isinstance(config, ObservabilityConfig):
            config = ObservabilityConfig.from_dict(config)
        self._config = config
        self._destroyed = False
        self._health_wired = False

        self._logger = StructuredLogger(config.logging, stream=stream)
        self._collector = MetricsCollector(config.metrics)
        self._monitor = HealthMonitor(config.health, engine_provider=engine_provider)
        self._reports = ReportGenerator(config.reporting)
        self._bus = EventBus(on_error=self._listener_failed)

        if config.health.enabled:
            self._wire_health()
        for registration in MANAGER_REGISTRATIONS:
            self._collector.register(registration)

    # === Subsystems ===

    @property
    def logging_service(self) -> StructuredLogger:
        return self._logger

    @property
    def metrics_collector(self) -> MetricsCollector:
        return self._collector

    @property
    def health_monitor(self) -> HealthMonitor:
        return self._monitor

    @property
    def report_generator(self) -> ReportGenerator:
        return self._reports

    # === Health integration ===

    def _wire_health(self) -> None:
        if self._health_wired:
            return
        self._health_wired = True
        self._monitor.add_check_wrapper(self._observe_check)
        for check in (
            HealthCheck("logging_service", self._check_logging, 2000, 60000, critical=True),
            HealthCheck("metrics_collector", self._check_metrics, 2000, 45000, critical=False),
            HealthCheck("report_generator", self._check_reports, 2000, 120000, critical=False),
        ):
            self._monitor.register(check)

    def _observe_check(self, name: str, function: CheckFunction) -> CheckFunction:
        async def observed() -> CheckOutcome:
            try:
                outcome = await function()
            except Exception as exc:
                self._logger.error(f"Health check error: {name}", HEALTH_CONTEXT, exc)
                raise
            if _outcome_field(outcome, "status") == "unhealthy":
                self._logger.warn(
                    f"Health check failed: {name}",
                    HEALTH_CONTEXT,
                    {"health_check": name, "error": _outcome_field(outcome, "error")},
                )
            return outcome

        return observed

    async def _check_logging(self) -> CheckOutcome:
        stats = self._logger.get_log_stats()
        return CheckOutcome(status="healthy", details=stats)

    async def _check_metrics(self) -> CheckOutcome:
        summary = self._collector.get_metrics_summary()
        return CheckOutcome(
            status="healthy" if summary["total_metrics"] > 0 else "degraded",
            details=summary,
        )

    async def _check_reports(self) -> CheckOutcome:
        templates = self._reports.get_available_templates()
        return CheckOutcome(
            status="healthy" if templates else "degraded",
            details={
                "available_templates": len(templates),
                "template_types": [template.type for template in templates],
            },
        )

    # === Metrics side channel ===

    def _count(self, name: str, labels: dict[str, str]) -> None:
        if not self._collector.config.enabled:
            return
        try:
            self._collector.increment_counter(name, labels)
        except Exception:
            logger.debug("Dropped %s observation", name, exc_info=True)

    # === Events ===

    def emit_event(self, event: ObservabilityEvent) -> None:
        """Count the event and deliver it to the listeners for its type."""
        self._count("observability_events_total", {"type": event.type, "source": event.source})
        self._bus.emit(event)

    def add_event_listener(self, event_type: str, listener: EventListener) -> None:
        self._bus.add_listener(event_type, listener)

    def remove_event_listener(self, event_type: str, listener: EventListener) -> bool:
        return self._bus.remove_listener(event_type, listener)

    def _listener_failed(self, event: ObservabilityEvent, exc: Exception) -> None:
        self._logger.error(
            "Event listener error",
            LogContext(component=MANAGER_COMPONENT, operation="emit-event"),
            exc,
            {"event_type": event.type, "source": event.source},
        )

    # === Facade ===

    def log(
        self,
        level: LogLevel,
        message: str,
        context: LogContext | Mapping[str, Any] | str,
        data: dict[str, Any] | None = None,
        error: BaseException | ErrorInfo | None = None,
    ) -> None:
        """Write a log entry, count it and publish a ``log`` event.

        The event carries the error message rather than the exception.
        """
        entry_context = coerce_context(context)
        self._count("log_entries_total", {"level": level, "component": entry_context.component})
        self._logger.log(level, message, entry_context, data, error)
        self.emit_event(
            ObservabilityEvent(
                type="log",
                timestamp=time.time(),
                source=entry_context.component,
                data={
                    "level": level,
                    "message": message,
                    "context": entry_context.to_dict(),
                    "data": data,
                    "error": _error_message(error),
                },
            )
        )

    def track_metric(self, metric: Metric) -> None:
        """Publish a ``metric`` event; the collector is not written to."""
        self.emit_event(
            ObservabilityEvent(
                type="metric",
                timestamp=time.time(),
                source="metrics-collector",
                data=metric,
            )
        )

    async def perform_health_check(
        self, name: str | None = None
    ) -> HealthStatus | SystemHealth | None:
        """Run one check on demand, or snapshot the whole system.

        Returns:
            The component's status for ``name`` (None if no such check), or
            the aggregated system health when ``name`` is omitted.
        """
        timer_id = self._collector.start_timer(
            "health_check_duration", {"check_name": name or "all"}
        )
        try:
            result: HealthStatus | SystemHealth | None
            if name:
                check_result = await self._monitor.run_single_check(name)
                result = None
                if check_result is not None:
                    result = HealthStatus(
                        status=check_result.status,
                        component=name,
                        timestamp=check_result.timestamp,
                        uptime=self._monitor.uptime(),
                        details=dict(check_result.details),
                    )
                    self._count(
                        "health_checks_total", {"check_name": name, "status": result.status}
                    )
            else:
                result = self._monitor.get_system_health()
                self._count(
                    "health_checks_total", {"check_name": "system", "status": result.status}
                )

            self.emit_event(
                ObservabilityEvent(
                    type="health",
                    timestamp=time.time(),
                    source="health-monitor",
                    data=result,
                )
            )
            return result
        finally:
            self._collector.end_timer(timer_id, "health_check_duration")

    async def generate_report(
        self, options: ReportOptions | None = None, **fields: Any
    ) -> ReportData:
        """Generate a report, counting successes and logging failures.

        Accepts a ReportOptions or its fields as keyword arguments. Errors
        from the generator are logged and re-raised.
        """
        if options is None:
            options = ReportOptions(**fields)
        labels = {"type": options.type, "format": options.format}
        context = LogContext(component=MANAGER_COMPONENT, operation="generate-report")
        timer_id = self._collector.start_timer("report_generation_duration", labels)
        try:
            report = await self._reports.generate_report(options)
        except Exception as exc:
            self.log("error", "Failed to generate report", context, labels, exc)
            raise
        finally:
            self._collector.end_timer(timer_id, "report_generation_duration")

        self._count("reports_generated_total", labels)
        self.log(
            "info",
            "Report generated successfully",
            context,
            {"report_id": report.id, **labels},
        )
        return report

    def create_logger(
        self,
        context: LogContext | Mapping[str, Any] | str,
        operation: str | None = None,
    ) -> ComponentLogger:
        """Return a logger bound to ``context`` (a component name or context)."""
        bound = coerce_context(context)
        if operation is not None:
            bound = coerce_context({**bound.to_dict(), "operation": operation})
        return ComponentLogger(self, bound)

    def get_observability_summary(self) -> dict[str, Any]:
        """Snapshot of every subsystem, suitable for a status endpoint."""
        return {
            "logging": self._logger.get_log_stats(),
            "metrics": self._collector.get_metrics_summary(),
            "health": self._monitor.get_system_health().to_dict(),
            "reports": {
                "available_templates": len(self._reports.get_available_templates()),
                "supported_formats": self._reports.supported_formats(),
            },
            "events": {
                "registered_listeners": self._bus.listener_types(),
                "total_listeners": self._bus.listener_count(),
            },
        }

    # === Configuration ===

    def get_config(self) -> ObservabilityConfig:
        return self._config

    def update_config(self, partial: Mapping[str, Any]) -> ObservabilityConfig:
        """Merge ``partial`` into a new config version and apply it everywhere.

        Each subsystem whose section changed receives the new section.

        Raises:
            ValueError: ``partial`` names an unknown section or option.
        """
        previous = self._config
        config = previous.merged(partial)
        self._config = config

        if config.logging != previous.logging:
            self._logger.update_config(config.logging)
        if config.metrics != previous.metrics:
            self._collector.update_config(config.metrics)
            for registration in MANAGER_REGISTRATIONS:
                if not self._collector.is_registered(registration.name):
                    self._collector.register(registration)
        if config.health != previous.health:
            self._monitor.update_config(config.health)
            if config.health.enabled:
                self._wire_health()
        if config.reporting != previous.reporting:
            self._reports.update_config(config.reporting)

        self.log(
            "info",
            "Observability configuration updated",
            LogContext(component=MANAGER_COMPONENT, operation="update-config"),
            {"updated_fields": list(partial), "version": config.version},
        )
        return config

    # === Lifecycle ===

    def start(self) -> None:
        """Start background collection and health checks.

        Must be called from a running event loop to have any effect when
        the manager was constructed outside one.
        """
        self.log(
            "info",
            "Starting observability services",
            LogContext(component=MANAGER_COMPONENT, operation="start"),
        )
        self._collector.start()
        self._monitor.start()

    def stop(self) -> None:
        """Cancel background work; recorded data and registrations are kept."""
        self.log(
            "info",
            "Stopping observability services",
            LogContext(component=MANAGER_COMPONENT, operation="stop"),
        )
        self._collector.stop()
        self._monitor.stop()

    def destroy(self) -> None:
        """Release every subsystem and drop all listeners.

        Safe to call more than once.
        """
        if self._destroyed:
            return
        self._destroyed = True
        self._monitor.destroy()
        self._collector.destroy()
        self._reports.destroy()
        self._logger.destroy()
        self._bus.clear()
