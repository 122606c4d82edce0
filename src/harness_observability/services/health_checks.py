"""Built-in health checks for the process running the harness."""

import asyncio
import tempfile
import time
import uuid
from collections.abc import Callable, Sequence
from pathlib import Path

import psutil

from harness_observability.core.models import (
    CheckFunction,
    CheckOutcome,
    HealthCheck,
    HealthState,
)

MEMORY_LIMIT_BYTES = 1024 * 1024 * 1024
DEFAULT_ENGINES: tuple[str, ...] = ("playwright", "jest")

EngineProvider = Callable[[], Sequence[str]]


def _by_threshold(value: float, degraded: float, unhealthy: float) -> HealthState:
    if value > unhealthy:
        return "unhealthy"
    if value > degraded:
        return "degraded"
    return "healthy"


async def check_system_memory() -> CheckOutcome:
    """Compare the process resident set size with a 1 GiB budget."""
    memory = psutil.Process().memory_info()
    usage_percent = memory.rss / MEMORY_LIMIT_BYTES * 100
    return CheckOutcome(
        status=_by_threshold(usage_percent, 70, 90),
        details={
            "rss": memory.rss,
            "vms": memory.vms,
            "usage_percent": round(usage_percent, 2),
        },
    )


async def check_event_loop_lag() -> CheckOutcome:
    started = time.perf_counter()
    await asyncio.sleep(0)
    lag_ms = (time.perf_counter() - started) * 1000
    return CheckOutcome(
        status=_by_threshold(lag_ms, 50, 100),
        details={
            "lag_ms": round(lag_ms, 2),
            "threshold": {"degraded": 50, "unhealthy": 100},
        },
    )


def _exercise_directory(directory: Path) -> CheckOutcome:
    marker = directory / f"health-check-{uuid.uuid4().hex}"
    try:
        try:
            marker.write_text("health-check", encoding="utf-8")
            content = marker.read_text(encoding="utf-8")
        finally:
            marker.unlink(missing_ok=True)
    except OSError as exc:
        return CheckOutcome(
            status="unhealthy",
            details={"can_write": False, "can_read": False, "can_delete": False},
            error=str(exc),
        )
    return CheckOutcome(
        status="healthy" if content == "health-check" else "unhealthy",
        details={"can_write": True, "can_read": True, "can_delete": True},
    )


async def check_file_system(directory: str | Path | None = None) -> CheckOutcome:
    """Write, read back and delete a marker file, off the event loop.

    Uses the temp directory unless ``directory`` is given. The marker file
    is removed even when reading it back fails.
    """
    target = Path(directory) if directory is not None else Path(tempfile.gettempdir())
    return await asyncio.to_thread(_exercise_directory, target)


async def check_api_responsiveness() -> CheckOutcome:
    started = time.perf_counter()
    await asyncio.sleep(0.001)
    response_ms = (time.perf_counter() - started) * 1000
    return CheckOutcome(
        status=_by_threshold(response_ms, 500, 1000),
        details={
            "response_time_ms": round(response_ms, 2),
            "threshold": {"degraded": 500, "unhealthy": 1000},
        },
    )


def engines_check(provider: EngineProvider) -> CheckFunction:
    """Build a check reporting on the engines named by ``provider``.

    No engines at all is unhealthy.
    """

    async def check_test_engines() -> CheckOutcome:
        engines = list(provider())
        return CheckOutcome(
            status="healthy" if engines else "unhealthy",
            details={
                "total_engines": len(engines),
                "healthy_engines": len(engines),
                "engines": [{"name": name, "status": "healthy"} for name in engines],
            },
        )

    return check_test_engines


def default_health_checks(engine_provider: EngineProvider | None = None) -> list[HealthCheck]:
    """Return the checks registered by an enabled HealthMonitor."""
    provider = engine_provider or (lambda: DEFAULT_ENGINES)
    return [
        HealthCheck("system_memory", check_system_memory, 1000, 30000, critical=True),
        HealthCheck("event_loop_lag", check_event_loop_lag, 2000, 15000, critical=True),
        HealthCheck("file_system", check_file_system, 5000, 60000, critical=False),
        HealthCheck("api_responsiveness", check_api_responsiveness, 2000, 30000, critical=True),
        HealthCheck("test_engines", engines_check(provider), 3000, 45000, critical=False),
    ]
