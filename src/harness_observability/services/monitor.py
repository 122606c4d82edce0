"""Scheduled health checks and system status aggregation."""

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

from harness_observability.core.config import HealthConfig
from harness_observability.core.health import aggregate_status
from harness_observability.core.models import (
    HEALTH_STATES,
    CheckFunction,
    CheckOutcome,
    HealthCheck,
    HealthCheckResult,
    HealthStatus,
    HealthSummary,
    SystemHealth,
)
from harness_observability.services.health_checks import EngineProvider, default_health_checks

logger = logging.getLogger(__name__)

TIMEOUT_ERROR = "Health check timeout"

# Receives the check name and the function to run; returns the function to run instead
CheckWrapper = Callable[[str, CheckFunction], CheckFunction]


def _coerce_outcome(value: Any) -> CheckOutcome:
    if isinstance(value, CheckOutcome):
        return value
    if isinstance(value, Mapping):
        return CheckOutcome(
            status=value.get("status"),  # type: ignore[arg-type]
            details=dict(value.get("details") or {}),
            error=value.get("error"),
        )
    raise TypeError(f"Health check returned {type(value).__name__}, expected CheckOutcome")


class HealthMonitor:
    """Runs registered health checks on their own schedules.

    Each check runs immediately when scheduled and then every
    ``check.interval`` milliseconds on a dedicated asyncio task. Only the
    latest result per check is kept. Scheduling needs a running event
    loop; a monitor created outside one schedules its checks on ``start()``.

    Args:
        config: Health section of the observability configuration.
        engine_provider: Returns the names of the available test engines
            for the ``test_engines`` check.
    """

    def __init__(
        self,
        config: HealthConfig | None = None,
        engine_provider: EngineProvider | None = None,
    ) -> None:
        self._config = config or HealthConfig()
        self._engine_provider = engine_provider
        self._checks: dict[str, HealthCheck] = {}
        self._results: dict[str, HealthCheckResult] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._wrappers: list[CheckWrapper] = []
        self._started_at = time.time()
        self._started = False

        if self._config.enabled:
            for check in default_health_checks(engine_provider):
                self.register(check)
            self.start()

    @property
    def config(self) -> HealthConfig:
        return self._config

    def uptime(self) -> float:
        """Milliseconds since the monitor was created."""
        return (time.time() - self._started_at) * 1000

    # === Registration ===

    def register(self, check: HealthCheck) -> None:
        """Add or replace a check, scheduling it if the monitor is running."""
        self._checks[check.name] = check
        if self._started and self._config.enabled:
            self._schedule(check)

    def unregister(self, name: str) -> None:
        """Remove a check, cancel its task and forget its last result."""
        self._checks.pop(name, None)
        self._results.pop(name, None)
        task = self._tasks.pop(name, None)
        if task is not None:
            task.cancel()

    def add_check_wrapper(self, wrapper: CheckWrapper) -> None:
        """Wrap every check function from now on; wrappers nest in order."""
        self._wrappers.append(wrapper)

    def get_registered_checks(self) -> list[HealthCheck]:
        return list(self._checks.values())

    # === Scheduling ===

    def start(self) -> None:
        """Schedule every registered check if an event loop is running."""
        if not self._config.enabled:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; health checks not scheduled")
            return
        self._started = True
        for check in self._checks.values():
            if check.name not in self._tasks:
                self._schedule(check)

    def stop(self) -> None:
        """Cancel every scheduled check; registrations and results are kept."""
        for task in self._tasks.values():
            task.cancel()
        self._tasks.clear()
        self._started = False

    def _schedule(self, check: HealthCheck) -> None:
        previous = self._tasks.pop(check.name, None)
        if previous is not None:
            previous.cancel()
        self._tasks[check.name] = asyncio.get_running_loop().create_task(
            self._check_loop(check), name=f"health-check:{check.name}"
        )

    async def _check_loop(self, check: HealthCheck) -> None:
        while True:
            try:
                await self._run_check(check)
            except Exception:
                logger.exception("Health check loop for %s failed", check.name)
            await asyncio.sleep(check.interval / 1000)

    # === Execution ===

    def _wrapped(self, check: HealthCheck) -> CheckFunction:
        function = check.check
        for wrapper in self._wrappers:
            function = wrapper(check.name, function)
        return function

    async def _run_check(self, check: HealthCheck) -> HealthCheckResult:
        started = time.perf_counter()
        try:
            # wait_for cancels the check coroutine when the timeout expires
            value = await asyncio.wait_for(self._wrapped(check)(), timeout=check.timeout / 1000)
            outcome = _coerce_outcome(value)
        except TimeoutError:
            outcome = CheckOutcome(status="unhealthy", error=TIMEOUT_ERROR)
        except Exception as exc:
            outcome = CheckOutcome(status="unhealthy", error=str(exc) or type(exc).__name__)

        if outcome.status not in HEALTH_STATES:
            logger.warning(
                "Health check %s returned invalid status %r", check.name, outcome.status
            )
            outcome = CheckOutcome(
                status="unhealthy",
                details=outcome.details,
                error=f"Invalid health status: {outcome.status!r}",
            )

        result = HealthCheckResult(
            name=check.name,
            status=outcome.status,
            duration=round((time.perf_counter() - started) * 1000, 2),
            timestamp=time.time(),
            details=dict(outcome.details or {}),
            error=outcome.error,
        )
        # A check unregistered or replaced mid-run does not record a result
        if self._checks.get(check.name) is check:
            self._results[check.name] = result
        return result

    async def run_all_checks(self) -> dict[str, HealthCheckResult]:
        """Run every check once, concurrently, and return the latest results."""
        await asyncio.gather(
            *(self._run_check(check) for check in list(self._checks.values())),
            return_exceptions=True,
        )
        return dict(self._results)

    async def run_single_check(self, name: str) -> HealthCheckResult | None:
        check = self._checks.get(name)
        if check is None:
            logger.warning("Health check '%s' not registered", name)
            return None
        await self._run_check(check)
        return self._results.get(name)

    # === Queries ===

    def get_component_health(self, name: str) -> HealthStatus | None:
        result = self._results.get(name)
        if result is None or name not in self._checks:
            return None
        details = dict(result.details)
        if result.error:
            details["last_error"] = result.error
        return HealthStatus(
            status=result.status,
            component=name,
            timestamp=result.timestamp,
            uptime=self.uptime(),
            details=details,
        )

    def get_system_health(self) -> SystemHealth:
        """Aggregate the latest results into one status.

        Checks that have not produced a result yet are left out.
        """
        components: list[HealthStatus] = []
        statuses = []
        for name, check in self._checks.items():
            component = self.get_component_health(name)
            if component is None:
                continue
            components.append(component)
            statuses.append((component.status, check.critical))

        def count(state: str) -> int:
            return sum(1 for component in components if component.status == state)

        return SystemHealth(
            status=aggregate_status(statuses),
            timestamp=time.time(),
            components=components,
            summary=HealthSummary(
                total_components=len(components),
                healthy_components=count("healthy"),
                degraded_components=count("degraded"),
                unhealthy_components=count("unhealthy"),
                uptime=self.uptime(),
            ),
        )

    def get_health_history(self, name: str, limit: int = 100) -> list[HealthCheckResult]:
        """Return past results for a check; only the latest one is kept."""
        result = self._results.get(name)
        if result is None or limit <= 0:
            return []
        return [result]

    def get_health_stats(self) -> dict[str, Any]:
        counts = dict.fromkeys(HEALTH_STATES, 0)
        critical = 0
        last_check_time: float | None = None
        for name, result in self._results.items():
            counts[result.status] += 1
            check = self._checks.get(name)
            if check is not None and check.critical:
                critical += 1
            if last_check_time is None or result.timestamp > last_check_time:
                last_check_time = result.timestamp
        return {
            "total_checks": len(self._checks),
            "healthy_checks": counts["healthy"],
            "degraded_checks": counts["degraded"],
            "unhealthy_checks": counts["unhealthy"],
            "critical_checks": critical,
            "last_check_time": last_check_time,
            "uptime_seconds": int(self.uptime() // 1000),
        }

    # === Lifecycle ===

    def update_config(self, config: HealthConfig) -> None:
        """Apply a new health section; disabling stops every scheduled check."""
        previous = self._config
        self._config = config
        if not config.enabled:
            self.stop()
            return
        if not previous.enabled:
            for check in default_health_checks(self._engine_provider):
                self._checks.setdefault(check.name, check)
            self.start()

    def destroy(self) -> None:
        """Cancel all tasks and drop checks, results and wrappers.

        Safe to call more than once.
        """
        self.stop()
        self._checks.clear()
        self._results.clear()
        self._wrappers.clear()
