"""BDD step definitions for health aggregation features."""

import asyncio
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

import pytest
from pytest_bdd import given, parsers, then, when

from harness_observability.core.config import HealthConfig
from harness_observability.core.models import CheckFunction, CheckOutcome, HealthCheck
from harness_observability.services.monitor import HealthMonitor


@dataclass
class HealthScenarioContext:
    """Shared state between the steps of one scenario."""

    monitor: HealthMonitor = field(default_factory=lambda: HealthMonitor(HealthConfig()))
    results: dict[str, Any] = field(default_factory=dict)


def run_async(coro: Any) -> Any:
    """Run a coroutine in a new event loop (steps are synchronous)."""
    return asyncio.run(coro)


def _reporting(status: str) -> CheckFunction:
    async def check() -> CheckOutcome:
        return CheckOutcome(status=status)  # type: ignore[arg-type]

    return check


async def _hang() -> CheckOutcome:
    await asyncio.sleep(5)
    return CheckOutcome(status="healthy")


@pytest.fixture
def ctx() -> Iterator[HealthScenarioContext]:
    """Fresh scenario context for each test."""
    context = HealthScenarioContext()
    yield context
    context.monitor.destroy()


# === Given ===


@given("a health monitor without default checks")
def step_monitor_without_defaults(ctx: HealthScenarioContext) -> None:
    for check in ctx.monitor.get_registered_checks():
        ctx.monitor.unregister(check.name)


@given(parsers.parse('a critical check "{name}" reporting "{status}"'))
def step_critical_check(ctx: HealthScenarioContext, name: str, status: str) -> None:
    ctx.monitor.register(HealthCheck(name, _reporting(status), critical=True))


@given(parsers.parse('a non-critical check "{name}" reporting "{status}"'))
def step_non_critical_check(ctx: HealthScenarioContext, name: str, status: str) -> None:
    ctx.monitor.register(HealthCheck(name, _reporting(status), critical=False))


@given(parsers.parse('a critical check "{name}" that hangs with a {timeout:d}ms timeout'))
def step_hanging_check(ctx: HealthScenarioContext, name: str, timeout: int) -> None:
    ctx.monitor.register(HealthCheck(name, _hang, timeout=timeout, critical=True))


# === When ===


@when("all checks are run")
def step_run_all(ctx: HealthScenarioContext) -> None:
    ctx.results = run_async(ctx.monitor.run_all_checks())


@when(parsers.parse('a critical check "{name}" reporting "{status}" is registered afterwards'))
def step_register_late(ctx: HealthScenarioContext, name: str, status: str) -> None:
    ctx.monitor.register(HealthCheck(name, _reporting(status), critical=True))


# === Then ===


@then(parsers.parse('the system status is "{status}"'))
def step_system_status(ctx: HealthScenarioContext, status: str) -> None:
    assert ctx.monitor.get_system_health().status == status


@then(
    parsers.parse(
        "the summary counts {healthy:d} healthy, {degraded:d} degraded "
        "and {unhealthy:d} unhealthy components"
    )
)
def step_summary_counts(
    ctx: HealthScenarioContext, healthy: int, degraded: int, unhealthy: int
) -> None:
    summary = ctx.monitor.get_system_health().summary
    assert (
        summary.healthy_components,
        summary.degraded_components,
        summary.unhealthy_components,
    ) == (healthy, degraded, unhealthy)


@then(parsers.parse('the component "{name}" reports the error "{error}"'))
def step_component_error(ctx: HealthScenarioContext, name: str, error: str) -> None:
    component = ctx.monitor.get_component_health(name)
    assert component is not None
    assert component.details["last_error"] == error


@then(parsers.parse("the system reports {count:d} component"))
def step_component_count(ctx: HealthScenarioContext, count: int) -> None:
    assert ctx.monitor.get_system_health().summary.total_components == count
