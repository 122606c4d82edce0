"""In-memory metrics collector with typed registrations."""

import asyncio
import logging
import os
import time
import uuid
from collections import Counter
from collections.abc import Awaitable, Callable, Iterator, Sequence
from contextlib import contextmanager
from typing import Any, TypeVar

import psutil

from harness_observability.adapters.storage.in_memory import InMemoryMetricSeriesStorage
from harness_observability.core.config import MetricsConfig
from harness_observability.core.encoding.prometheus import encode_metrics
from harness_observability.core.metrics import counter, gauge, histogram, timer
from harness_observability.core.models import (
    Metric,
    MetricRegistration,
    MetricsData,
    MetricType,
)
from harness_observability.core.ports import MetricSeriesStoragePort

logger = logging.getLogger(__name__)

T = TypeVar("T")

SOURCE = "test-automation-harness"
SECONDS_PER_DAY = 24 * 60 * 60

DEFAULT_REGISTRATIONS: tuple[MetricRegistration, ...] = (
    MetricRegistration(
        "test_executions_total",
        "counter",
        "Total number of test executions",
        ("engine", "status"),
    ),
    MetricRegistration(
        "test_execution_duration_seconds",
        "histogram",
        "Test execution duration in seconds",
        ("engine", "test_type"),
        (0.1, 0.5, 1, 2, 5, 10, 30, 60, 120),
    ),
    MetricRegistration(
        "healing_attempts_total",
        "counter",
        "Total number of healing attempts",
        ("strategy", "failure_type", "success"),
    ),
    MetricRegistration(
        "healing_success_rate",
        "gauge",
        "Current healing success rate",
        ("strategy",),
    ),
    MetricRegistration(
        "healing_duration_seconds",
        "histogram",
        "Healing attempt duration in seconds",
        ("strategy", "failure_type"),
        (0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5),
    ),
    MetricRegistration(
        "http_requests_total",
        "counter",
        "Total number of HTTP requests",
        ("method", "endpoint", "status_code"),
    ),
    MetricRegistration(
        "http_request_duration_seconds",
        "histogram",
        "HTTP request duration in seconds",
        ("method", "endpoint"),
        (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
    ),
    MetricRegistration(
        "system_cpu_usage_percent",
        "gauge",
        "Current CPU usage percentage",
        ("type",),
    ),
    MetricRegistration(
        "system_memory_usage_bytes",
        "gauge",
        "Current memory usage in bytes",
        ("type",),
    ),
    MetricRegistration(
        "event_loop_lag_seconds",
        "gauge",
        "Delay between scheduling and running an event loop callback",
    ),
    MetricRegistration(
        "active_test_engines",
        "gauge",
        "Number of currently active test engines",
        ("engine_type",),
    ),
)


class MetricsCollector:
    """Registry and in-memory store for counters, gauges, histograms and timers.

    A metric can only be recorded under a name registered with the same
    type; anything else logs a warning and records nothing. When the
    collector is disabled every recording call is a no-op.

    While an event loop is running the collector also samples process
    memory, CPU and event loop lag every ``config.interval`` milliseconds
    and applies the retention window.

    Args:
        config: Metrics section of the observability configuration.
        storage: Series store; defaults to an in-memory store bounded by
            the configured retention and ``max_series_length``.
    """

    def __init__(
        self,
        config: MetricsConfig | None = None,
        storage: MetricSeriesStoragePort | None = None,
    ) -> None:
        self._config = config or MetricsConfig()
        self._storage = storage or InMemoryMetricSeriesStorage(
            retention_seconds=self._config.retention * SECONDS_PER_DAY,
            max_length=self._config.max_series_length,
        )
        self._registrations: dict[str, MetricRegistration] = {}
        self._timers: dict[str, tuple[float, dict[str, str]]] = {}
        self._task: asyncio.Task[None] | None = None
        self._process = psutil.Process()

        if self._config.enabled:
            self._register_defaults()
            self.start()

    @property
    def config(self) -> MetricsConfig:
        return self._config

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _register_defaults(self) -> None:
        for registration in DEFAULT_REGISTRATIONS:
            self.register(registration)

    # === Registration ===

    def register(self, registration: MetricRegistration) -> None:
        """Register or replace a metric; its existing series is kept."""
        self._registrations[registration.name] = registration
        self._storage.ensure(registration.name)

    def get_registrations(self) -> list[MetricRegistration]:
        return list(self._registrations.values())

    def is_registered(self, name: str, metric_type: MetricType | None = None) -> bool:
        registration = self._registrations.get(name)
        if registration is None:
            return False
        return metric_type is None or registration.type == metric_type

    def _registration_for(self, name: str, metric_type: MetricType) -> MetricRegistration | None:
        registration = self._registrations.get(name)
        if registration is None or registration.type != metric_type:
            logger.warning("%s metric '%s' not registered", metric_type.capitalize(), name)
            return None
        return registration

    # === Recording ===

    def increment_counter(
        self,
        name: str,
        labels: dict[str, str] | None = None,
        value: float = 1,
    ) -> None:
        if not self._config.enabled:
            return
        if self._registration_for(name, "counter") is None:
            return
        self._storage.write(counter(name, value, labels))

    def set_gauge(self, name: str, labels: dict[str, str] | None, value: float) -> None:
        if not self._config.enabled:
            return
        if self._registration_for(name, "gauge") is None:
            return
        self._storage.write(gauge(name, value, labels))

    def observe_histogram(self, name: str, labels: dict[str, str] | None, value: float) -> None:
        """Record one observation against the registration's buckets."""
        if not self._config.enabled:
            return
        registration = self._registration_for(name, "histogram")
        if registration is None:
            return
        self._storage.write(histogram(name, value, labels, registration.buckets))

    # === Timers ===

    def start_timer(self, name: str, labels: dict[str, str] | None = None) -> str:
        """Start a timer and return the id to pass to ``end_timer``."""
        timer_id = f"{name}_{uuid.uuid4().hex}"
        self._timers[timer_id] = (time.perf_counter(), dict(labels or {}))
        return timer_id

    def end_timer(self, timer_id: str, name: str) -> float | None:
        """Stop a timer and record its duration in milliseconds.

        If a histogram named ``{name}_duration_seconds`` is registered the
        duration is observed there as well, in seconds.

        Returns:
            The measured duration, or None if the timer id is unknown.
        """
        pending = self._timers.pop(timer_id, None)
        if pending is None:
            logger.warning("Timer '%s' not found", timer_id)
            return None
        started, labels = pending
        duration = (time.perf_counter() - started) * 1000
        if not self._config.enabled:
            return duration
        if self._registration_for(name, "timer") is None:
            return duration

        self._storage.write(timer(name, duration, labels))
        histogram_name = f"{name}_duration_seconds"
        if histogram_name in self._registrations:
            self.observe_histogram(histogram_name, labels, duration / 1000)
        return duration

    def pending_timers(self) -> int:
        return len(self._timers)

    def time(
        self,
        name: str,
        labels: dict[str, str] | None,
        operation: Callable[[], T],
    ) -> T:
        """Run ``operation`` and record how long it took, even if it raises."""
        timer_id = self.start_timer(name, labels)
        try:
            return operation()
        finally:
            self.end_timer(timer_id, name)

    async def time_async(
        self,
        name: str,
        labels: dict[str, str] | None,
        operation: Callable[[], Awaitable[T]],
    ) -> T:
        timer_id = self.start_timer(name, labels)
        try:
            return await operation()
        finally:
            self.end_timer(timer_id, name)

    @contextmanager
    def timed(self, name: str, labels: dict[str, str] | None = None) -> Iterator[None]:
        """Context manager form of ``time``.

        Example:
            ```python
            with collector.timed("report_generation_duration"):
                render()
            ```
        """
        timer_id = self.start_timer(name, labels)
        try:
            yield
        finally:
            self.end_timer(timer_id, name)

    # === Self-collection ===

    def start(self) -> None:
        """Start the periodic collection task if a loop is running.

        Does nothing when disabled, when the interval is not positive or
        when the task is already running.
        """
        if self.running or not self._config.enabled or self._config.interval <= 0:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; metrics collection not started")
            return
        self._task = loop.create_task(self._collection_loop())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _collection_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.interval / 1000)
            try:
                await self.collect_system_metrics()
                self.cleanup_old_metrics()
            except Exception:
                logger.exception("Metrics collection tick failed")

    async def collect_system_metrics(self) -> None:
        """Record process memory, CPU and event loop lag gauges."""
        try:
            memory = self._process.memory_info()
            self.set_gauge("system_memory_usage_bytes", {"type": "rss"}, memory.rss)
            self.set_gauge("system_memory_usage_bytes", {"type": "vms"}, memory.vms)

            cpu = self._process.cpu_times()
            self.set_gauge("system_cpu_usage_percent", {"type": "user"}, cpu.user)
            self.set_gauge("system_cpu_usage_percent", {"type": "system"}, cpu.system)
            self.set_gauge(
                "system_cpu_usage_percent",
                {"type": "percent"},
                self._process.cpu_percent(interval=None),
            )
        except psutil.Error as exc:
            logger.warning("Failed to collect system metrics: %s", exc)

        started = time.perf_counter()
        await asyncio.sleep(0)
        self.set_gauge("event_loop_lag_seconds", {}, time.perf_counter() - started)

    def cleanup_old_metrics(self) -> int:
        """Drop observations older than the retention window."""
        return self._storage.prune_expired()

    # === Queries ===

    def get_all_metrics(self) -> MetricsData:
        metrics: list[Metric] = []
        for name in self._storage.names():
            metrics.extend(self._storage.read(name))
        return MetricsData(
            metrics=metrics,
            timestamp=time.time(),
            source=SOURCE,
            metadata={
                "collection_interval": self._config.interval,
                "total_metrics": len(metrics),
                "environment": os.environ.get("ENVIRONMENT", "development"),
            },
        )

    def get_metrics(self, name: str) -> Sequence[Metric]:
        return self._storage.read(name)

    def get_prometheus_metrics(self) -> str:
        return encode_metrics(self._registrations.values(), self._storage.read)

    def get_metrics_summary(self) -> dict[str, Any]:
        by_type: Counter[str] = Counter()
        total = 0
        for name in self._storage.names():
            for metric in self._storage.read(name):
                by_type[metric.type] += 1
                total += 1
        try:
            memory_usage = self._process.memory_info().rss
        except psutil.Error:
            memory_usage = 0
        return {
            "total_metrics": total,
            "metrics_by_type": dict(by_type),
            "registered_metrics": len(self._registrations),
            "memory_usage": memory_usage,
        }

    def clear_metrics(self) -> None:
        """Drop every observation; registrations are kept."""
        self._storage.clear()
        for name in self._registrations:
            self._storage.ensure(name)

    # === Lifecycle ===

    def update_config(self, config: MetricsConfig) -> None:
        """Apply a new metrics section, restarting collection if needed."""
        previous = self._config
        self._config = config
        self._storage.configure(config.retention * SECONDS_PER_DAY, config.max_series_length)
        if config.enabled and not previous.enabled:
            self._register_defaults()
        if config.interval != previous.interval or not config.enabled:
            self.stop()
        self.start()

    def destroy(self) -> None:
        """Stop collection and drop all observations and pending timers.

        Safe to call more than once.
        """
        self.stop()
        self._storage.clear()
        self._timers.clear()
