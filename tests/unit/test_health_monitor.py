"""Tests for HealthMonitor and the built-in health checks."""

import asyncio
import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from harness_observability.core.config import HealthConfig
from harness_observability.core.models import CheckFunction, CheckOutcome, HealthCheck
from harness_observability.services.health_checks import (
    check_api_responsiveness,
    check_event_loop_lag,
    check_file_system,
    check_system_memory,
    default_health_checks,
    engines_check,
)
from harness_observability.services.monitor import TIMEOUT_ERROR, HealthMonitor

pytestmark = [pytest.mark.unit, pytest.mark.tier(1)]

DEFAULT_NAMES = {
    "system_memory",
    "event_loop_lag",
    "file_system",
    "api_responsiveness",
    "test_engines",
}


def _static(status: str, **details) -> CheckFunction:
    async def check() -> CheckOutcome:
        return CheckOutcome(status=status, details=details)  # type: ignore[arg-type]

    return check


def _without_defaults(monitor: HealthMonitor) -> HealthMonitor:
    for name in DEFAULT_NAMES:
        monitor.unregister(name)
    return monitor


@pytest.fixture
def monitor() -> Iterator[HealthMonitor]:
    """Monitor without default checks, built outside an event loop."""
    instance = _without_defaults(HealthMonitor(HealthConfig()))
    yield instance
    instance.destroy()


class TestRegistration:
    """Tests for check registration."""

    def test_enabled_monitor_registers_defaults(self) -> None:
        monitor = HealthMonitor(HealthConfig())

        assert {c.name for c in monitor.get_registered_checks()} == DEFAULT_NAMES

    def test_disabled_monitor_registers_nothing(self) -> None:
        assert HealthMonitor(HealthConfig(enabled=False)).get_registered_checks() == []

    def test_register_replaces_same_name(self, monitor: HealthMonitor) -> None:
        monitor.register(HealthCheck("db", _static("healthy")))
        monitor.register(HealthCheck("db", _static("degraded"), critical=True))

        [check] = monitor.get_registered_checks()
        assert check.critical is True

    async def test_unregister_forgets_result(self, monitor: HealthMonitor) -> None:
        monitor.register(HealthCheck("db", _static("healthy")))
        await monitor.run_single_check("db")

        monitor.unregister("db")

        assert monitor.get_component_health("db") is None
        assert monitor.get_health_history("db") == []


class TestRunCheck:
    """Tests for running a single check."""

    async def test_records_healthy_result(self, monitor: HealthMonitor) -> None:
        monitor.register(HealthCheck("db", _static("healthy", connections=3)))

        result = await monitor.run_single_check("db")

        assert result is not None
        assert result.status == "healthy"
        assert result.details == {"connections": 3}
        assert result.error is None
        assert result.duration >= 0

    async def test_mapping_outcome_is_accepted(self, monitor: HealthMonitor) -> None:
        async def check():
            return {"status": "degraded", "details": {"queue": 12}}

        monitor.register(HealthCheck("queue", check))

        result = await monitor.run_single_check("queue")

        assert result.status == "degraded"
        assert result.details == {"queue": 12}

    async def test_timeout_becomes_unhealthy(self, monitor: HealthMonitor) -> None:
        """A check exceeding its timeout is cut short and reported unhealthy."""

        async def slow() -> CheckOutcome:
            await asyncio.sleep(5)
            return CheckOutcome(status="healthy")

        monitor.register(HealthCheck("slow", slow, timeout=50))

        result = await monitor.run_single_check("slow")

        assert result.status == "unhealthy"
        assert result.error == TIMEOUT_ERROR
        assert result.duration < 1000

    async def test_exception_becomes_unhealthy(self, monitor: HealthMonitor) -> None:
        async def broken() -> CheckOutcome:
            raise ConnectionError("database unreachable")

        monitor.register(HealthCheck("db", broken))

        result = await monitor.run_single_check("db")

        assert result.status == "unhealthy"
        assert result.error == "database unreachable"

    async def test_exception_without_message_uses_type_name(self, monitor: HealthMonitor) -> None:
        async def broken() -> CheckOutcome:
            raise RuntimeError()

        monitor.register(HealthCheck("db", broken))

        assert (await monitor.run_single_check("db")).error == "RuntimeError"

    async def test_invalid_status_is_clamped(
        self, monitor: HealthMonitor, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A status outside healthy/degraded/unhealthy counts as unhealthy."""
        monitor.register(HealthCheck("odd", _static("maybe")))

        with caplog.at_level(logging.WARNING):
            result = await monitor.run_single_check("odd")

        assert result.status == "unhealthy"
        assert result.error == "Invalid health status: 'maybe'"
        assert "invalid status" in caplog.text

    async def test_unknown_check_returns_none(self, monitor: HealthMonitor) -> None:
        assert await monitor.run_single_check("missing") is None

    async def test_run_all_checks(self, monitor: HealthMonitor) -> None:
        monitor.register(HealthCheck("a", _static("healthy")))
        monitor.register(HealthCheck("b", _static("degraded")))

        results = await monitor.run_all_checks()

        assert {name: r.status for name, r in results.items()} == {
            "a": "healthy",
            "b": "degraded",
        }


class TestWrappers:
    async def test_wrappers_nest_in_registration_order(self, monitor: HealthMonitor) -> None:
        calls: list[str] = []

        def wrapper(label: str):
            def wrap(name: str, function: CheckFunction) -> CheckFunction:
                async def wrapped() -> CheckOutcome:
                    calls.append(f"{label}:{name}")
                    return await function()

                return wrapped

            return wrap

        monitor.add_check_wrapper(wrapper("inner"))
        monitor.add_check_wrapper(wrapper("outer"))
        monitor.register(HealthCheck("db", _static("healthy")))

        await monitor.run_single_check("db")

        assert calls == ["outer:db", "inner:db"]

    async def test_wrapper_can_change_outcome(self, monitor: HealthMonitor) -> None:
        def degrade(name: str, function: CheckFunction) -> CheckFunction:
            async def wrapped() -> CheckOutcome:
                await function()
                return CheckOutcome(status="degraded")

            return wrapped

        monitor.add_check_wrapper(degrade)
        monitor.register(HealthCheck("db", _static("healthy")))

        assert (await monitor.run_single_check("db")).status == "degraded"


class TestQueries:
    """Tests for component and system health."""

    async def test_component_health_reports_last_error(self, monitor: HealthMonitor) -> None:
        async def broken() -> CheckOutcome:
            raise OSError("disk full")

        monitor.register(HealthCheck("disk", broken))
        await monitor.run_single_check("disk")

        component = monitor.get_component_health("disk")

        assert component.status == "unhealthy"
        assert component.component == "disk"
        assert component.details["last_error"] == "disk full"
        assert component.uptime >= 0

    def test_component_without_result_is_none(self, monitor: HealthMonitor) -> None:
        monitor.register(HealthCheck("db", _static("healthy")))

        assert monitor.get_component_health("db") is None

    async def test_system_health_aggregates(self, monitor: HealthMonitor) -> None:
        monitor.register(HealthCheck("db", _static("healthy"), critical=True))
        monitor.register(HealthCheck("cache", _static("unhealthy"), critical=False))
        monitor.register(HealthCheck("pending", _static("healthy")))
        await monitor.run_single_check("db")
        await monitor.run_single_check("cache")

        health = monitor.get_system_health()

        assert health.status == "degraded"
        assert [c.component for c in health.components] == ["db", "cache"]
        assert health.summary.total_components == 2
        assert health.summary.healthy_components == 1
        assert health.summary.unhealthy_components == 1

    async def test_critical_unhealthy_makes_system_unhealthy(self, monitor: HealthMonitor) -> None:
        monitor.register(HealthCheck("db", _static("unhealthy"), critical=True))
        await monitor.run_all_checks()

        assert monitor.get_system_health().status == "unhealthy"

    def test_empty_system_is_healthy(self, monitor: HealthMonitor) -> None:
        health = monitor.get_system_health()

        assert health.status == "healthy"
        assert health.components == []

    async def test_history_holds_latest_result(self, monitor: HealthMonitor) -> None:
        monitor.register(HealthCheck("db", _static("healthy")))
        await monitor.run_single_check("db")
        await monitor.run_single_check("db")

        assert len(monitor.get_health_history("db")) == 1
        assert monitor.get_health_history("db", limit=0) == []

    async def test_stats(self, monitor: HealthMonitor) -> None:
        monitor.register(HealthCheck("db", _static("healthy"), critical=True))
        monitor.register(HealthCheck("cache", _static("degraded")))
        monitor.register(HealthCheck("never", _static("healthy")))
        await monitor.run_single_check("db")
        result = await monitor.run_single_check("cache")

        stats = monitor.get_health_stats()

        assert stats["total_checks"] == 3
        assert stats["healthy_checks"] == 1
        assert stats["degraded_checks"] == 1
        assert stats["unhealthy_checks"] == 0
        assert stats["critical_checks"] == 1
        assert stats["last_check_time"] == result.timestamp
        assert stats["uptime_seconds"] >= 0


class TestScheduling:
    """Tests for the per-check background tasks."""

    def test_nothing_scheduled_without_loop(self, monitor: HealthMonitor) -> None:
        monitor.register(HealthCheck("db", _static("healthy")))
        monitor.start()

        assert monitor.get_component_health("db") is None

    async def test_checks_run_on_their_interval(self) -> None:
        """A registered check runs immediately and then once per interval."""
        monitor = _without_defaults(HealthMonitor(HealthConfig()))
        calls = 0

        async def counting() -> CheckOutcome:
            nonlocal calls
            calls += 1
            return CheckOutcome(status="healthy")

        try:
            monitor.register(HealthCheck("tick", counting, interval=20))
            await asyncio.sleep(0.15)
        finally:
            monitor.destroy()

        assert calls >= 2
        settled = calls
        await asyncio.sleep(0.05)
        assert calls == settled

    async def test_unregistered_check_stops_running(self) -> None:
        monitor = _without_defaults(HealthMonitor(HealthConfig()))
        calls = 0

        async def counting() -> CheckOutcome:
            nonlocal calls
            calls += 1
            return CheckOutcome(status="healthy")

        try:
            monitor.register(HealthCheck("tick", counting, interval=10))
            await asyncio.sleep(0.03)
            monitor.unregister("tick")
            settled = calls
            await asyncio.sleep(0.05)
        finally:
            monitor.destroy()

        assert calls == settled

    async def test_disable_stops_scheduling(self) -> None:
        monitor = _without_defaults(HealthMonitor(HealthConfig()))
        try:
            monitor.update_config(HealthConfig(enabled=False))
            monitor.register(HealthCheck("db", _static("healthy"), interval=10))
            await asyncio.sleep(0.03)

            assert monitor.get_component_health("db") is None
        finally:
            monitor.destroy()

    async def test_reenable_restores_defaults(self) -> None:
        monitor = _without_defaults(HealthMonitor(HealthConfig()))
        try:
            monitor.update_config(HealthConfig(enabled=False))
            monitor.update_config(HealthConfig(enabled=True))

            assert {c.name for c in monitor.get_registered_checks()} == DEFAULT_NAMES
        finally:
            monitor.destroy()

    def test_destroy_is_idempotent(self, monitor: HealthMonitor) -> None:
        monitor.register(HealthCheck("db", _static("healthy")))

        monitor.destroy()
        monitor.destroy()

        assert monitor.get_registered_checks() == []


class TestBuiltinChecks:
    """Tests for the default health check functions."""

    async def test_system_memory(self) -> None:
        outcome = await check_system_memory()

        assert outcome.status in {"healthy", "degraded", "unhealthy"}
        assert set(outcome.details) == {"rss", "vms", "usage_percent"}

    async def test_event_loop_lag(self) -> None:
        outcome = await check_event_loop_lag()

        assert outcome.details["threshold"] == {"degraded": 50, "unhealthy": 100}
        assert outcome.details["lag_ms"] >= 0

    async def test_file_system(self, tmp_path: Path) -> None:
        outcome = await check_file_system(tmp_path)

        assert outcome.status == "healthy"
        assert outcome.details == {"can_write": True, "can_read": True, "can_delete": True}
        assert list(tmp_path.iterdir()) == []

    async def test_file_system_default_directory(self) -> None:
        assert (await check_file_system()).status == "healthy"

    async def test_file_system_removes_file_when_read_fails(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def unreadable(self: Path, *args: object, **kwargs: object) -> str:
            raise PermissionError("read denied")

        monkeypatch.setattr(Path, "read_text", unreadable)

        outcome = await check_file_system(tmp_path)

        assert outcome.status == "unhealthy"
        assert outcome.error == "read denied"
        assert list(tmp_path.iterdir()) == []

    async def test_api_responsiveness(self) -> None:
        outcome = await check_api_responsiveness()

        assert outcome.status == "healthy"
        assert outcome.details["response_time_ms"] >= 0

    async def test_engines_check(self) -> None:
        outcome = await engines_check(lambda: ["playwright"])()

        assert outcome.status == "healthy"
        assert outcome.details["engines"] == [{"name": "playwright", "status": "healthy"}]

    async def test_no_engines_is_unhealthy(self) -> None:
        assert (await engines_check(lambda: [])()).status == "unhealthy"

    def test_default_check_settings(self) -> None:
        checks = {c.name: c for c in default_health_checks()}

        assert checks["system_memory"].critical
        assert checks["event_loop_lag"].timeout == 2000
        assert not checks["file_system"].critical
        assert checks["test_engines"].interval == 45000
