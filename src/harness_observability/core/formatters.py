"""Turn report payloads into HTML fragments for template variables.

Payloads are plain mappings supplied by the caller; missing fields fall
back to neutral defaults so a sparse payload still renders.
"""

from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from html import escape
from typing import Any

from harness_observability.core.health import format_uptime


def _text(value: Any, default: str = "N/A") -> str:
    if value is None or value == "":
        return default
    return escape(str(value))


def _as_mapping(data: Any) -> Mapping[str, Any]:
    if hasattr(data, "to_dict"):
        data = data.to_dict()
    return data if isinstance(data, Mapping) else {}


def _round(value: float, digits: int = 2) -> float | int:
    rounded = round(float(value), digits)
    return int(rounded) if rounded.is_integer() else rounded


def format_test_details(tests: list[Mapping[str, Any]]) -> str:
    if not tests:
        return "<p>No test details available</p>"
    rows = "".join(
        f"""
        <tr>
          <td>{_text(test.get("name"), "Unknown")}</td>
          <td class="status-{_text(test.get("status"), "unknown")}">{_text(test.get("status"), "Unknown")}</td>
          <td>{_text(test.get("duration"))}</td>
          <td>{_text(test.get("engine"))}</td>
        </tr>"""
        for test in tests
    )
    return f"""
      <table>
        <thead>
          <tr><th>Test Name</th><th>Status</th><th>Duration</th><th>Engine</th></tr>
        </thead>
        <tbody>{rows}
        </tbody>
      </table>"""


def format_strategies(strategies: list[Mapping[str, Any]]) -> str:
    return "".join(
        f"""
      <div class="strategy">
        <h3>{_text(strategy.get("strategyName"), "Unknown")}</h3>
        <p><strong>Success Rate:</strong> {round(float(strategy.get("successRate", 0)) * 100)}%</p>
        <p><strong>Total Attempts:</strong> {int(strategy.get("totalAttempts", 0))}</p>
        <p><strong>Average Duration:</strong> {round(float(strategy.get("averageDuration", 0)))}ms</p>
      </div>"""
        for strategy in strategies
    )


def format_failure_types(failure_types: Mapping[str, int]) -> str:
    if not failure_types:
        return "<p>No failure types recorded</p>"
    return "".join(
        f"""
      <div class="failure-type"><strong>{escape(str(kind))}:</strong> {count} occurrences</div>"""
        for kind, count in failure_types.items()
    )


def format_components(components: list[Mapping[str, Any]]) -> str:
    fragments = []
    for component in components:
        details = component.get("details") or {}
        checked_at = datetime.fromtimestamp(float(component.get("timestamp", 0)), tz=UTC)
        error = ""
        if details.get("last_error"):
            error = f"<p><strong>Error:</strong> {_text(details['last_error'])}</p>"
        status = _text(component.get("status"), "unknown")
        fragments.append(
            f"""
      <div class="component">
        <h3>{_text(component.get("component"), "Unknown")}</h3>
        <p><strong>Status:</strong> <span class="status status-{status}">{status}</span></p>
        <p><strong>Last Check:</strong> {checked_at.strftime("%Y-%m-%d %H:%M:%S")} UTC</p>
        {error}
      </div>"""
        )
    return "".join(fragments)


def format_system_metrics(summary: Mapping[str, Any]) -> str:
    return f"""
      <div class="metric">
        <p><strong>Total Components:</strong> {summary.get("total_components", 0)}</p>
        <p><strong>Healthy Components:</strong> {summary.get("healthy_components", 0)}</p>
        <p><strong>Degraded Components:</strong> {summary.get("degraded_components", 0)}</p>
        <p><strong>Unhealthy Components:</strong> {summary.get("unhealthy_components", 0)}</p>
      </div>"""


def format_performance_metrics(metrics: list[Mapping[str, Any]]) -> str:
    return "".join(
        f"""
      <div class="metric">
        <h3>{_text(metric.get("component"))} - {_text(metric.get("operation"))}</h3>
        <p><strong>Response Time:</strong> {_text(metric.get("responseTime"))}ms</p>
        <p><strong>Throughput:</strong> {_text(metric.get("throughput"))} req/s</p>
        <p><strong>Error Rate:</strong> {_text(metric.get("errorRate"))}%</p>
      </div>"""
        for metric in metrics
    )


def format_trends(trends: list[Mapping[str, Any]]) -> str:
    return "".join(
        f"""
      <div class="trend">
        <p><strong>{_text(trend.get("metric"))}:</strong> {_text(trend.get("trend"))} ({_text(trend.get("change"))})</p>
      </div>"""
        for trend in trends
    )


def format_recommendations(recommendations: list[str]) -> str:
    if not recommendations:
        return "<p>No recommendations available</p>"
    items = "".join(f"<li>{escape(str(rec))}</li>" for rec in recommendations)
    return f"<ul>{items}</ul>"


def execution_report_variables(data: Any) -> dict[str, str]:
    payload = _as_mapping(data)
    return {
        "totalTests": str(payload.get("totalTests", 0)),
        "passedTests": str(payload.get("passedTests", 0)),
        "failedTests": str(payload.get("failedTests", 0)),
        "executionTime": _text(payload.get("executionTime"), "0ms"),
        "testDetails": format_test_details(payload.get("tests") or []),
    }


def healing_report_variables(data: Any) -> dict[str, str]:
    payload = _as_mapping(data)
    return {
        "totalAttempts": str(payload.get("totalAttempts", 0)),
        "successRate": str(_round(payload.get("successRate", 0))),
        "strategies": format_strategies(payload.get("strategies") or []),
        "failureTypes": format_failure_types(payload.get("failureTypes") or {}),
    }


def health_report_variables(data: Any) -> dict[str, str]:
    payload = _as_mapping(data)
    summary = payload.get("summary") or {}
    return {
        "overallStatus": _text(payload.get("status"), "unknown"),
        "uptime": format_uptime(float(summary.get("uptime", 0))),
        "components": format_components(payload.get("components") or []),
        "metrics": format_system_metrics(summary),
    }


def performance_report_variables(data: Any) -> dict[str, str]:
    payload = _as_mapping(data)
    return {
        "metrics": format_performance_metrics(payload.get("metrics") or []),
        "trends": format_trends(payload.get("trends") or []),
        "recommendations": format_recommendations(payload.get("recommendations") or []),
    }


TYPE_VARIABLES: dict[str, Callable[[Any], dict[str, str]]] = {
    "test-execution": execution_report_variables,
    "healing-summary": healing_report_variables,
    "system-health": health_report_variables,
    "performance": performance_report_variables,
}
