"""Aggregation of individual check results into a system status."""

from collections.abc import Iterable

from harness_observability.core.models import HealthState


def aggregate_status(results: Iterable[tuple[HealthState, bool]]) -> HealthState:
    """Combine ``(status, critical)`` pairs into one overall status.

    Starting from healthy:
    - a critical degraded check lowers healthy to degraded;
    - a critical unhealthy check forces unhealthy;
    - a non-critical unhealthy check lowers healthy to degraded;
    - a non-critical degraded check has no effect.

    Overall unhealthy therefore requires at least one critical check to be
    unhealthy.
    """
    overall: HealthState = "healthy"
    for status, critical in results:
        if status == "degraded":
            if critical and overall == "healthy":
                overall = "degraded"
        elif status == "unhealthy":
            if critical:
                overall = "unhealthy"
            elif overall == "healthy":
                overall = "degraded"
    return overall


def format_uptime(uptime_ms: float) -> str:
    """Render a duration in milliseconds as ``1d 2h 3m`` style text."""
    seconds = int(uptime_ms // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24
    if days > 0:
        return f"{days}d {hours % 24}h {minutes % 60}m"
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"
