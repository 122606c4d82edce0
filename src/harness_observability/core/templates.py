"""Report templates and ``{{variable}}`` substitution."""

import re
from collections.abc import Mapping
from typing import Any

from harness_observability.core.models import ReportTemplate

_PLACEHOLDER = re.compile(r"\{\{([^{}]+)\}\}")

_BASE_CSS = """\
        body { font-family: Arial, sans-serif; margin: 20px; }
        .header { background: #f5f5f5; padding: 20px; border-radius: 8px; }"""

_HEADER = """\
    <div class="header">
        <h1>{{title}}</h1>
        <p>{{description}}</p>
        <p><strong>Generated:</strong> {{generatedAt}}</p>
        <p><strong>Time Range:</strong> {{timeRange}}</p>
    </div>"""


def render_template(template: str, variables: Mapping[str, Any]) -> str:
    """Replace every ``{{name}}`` with ``str(variables[name])``.

    Placeholders without a matching variable are left untouched.
    """

    def substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in variables:
            return match.group(0)
        return str(variables[name])

    return _PLACEHOLDER.sub(substitute, template)


def _page(css: str, body: str, header: str = _HEADER) -> str:
    return f"""
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{{{{title}}}}</title>
    <style>
{_BASE_CSS}
{css}
    </style>
</head>
<body>
{header}
{body}
</body>
</html>"""


TEST_EXECUTION_TEMPLATE = _page(
    """\
        .summary { display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 20px; margin: 20px 0; }
        .metric { background: white; padding: 15px; border: 1px solid #ddd; border-radius: 4px; text-align: center; }
        .metric-value { font-size: 24px; font-weight: bold; color: #2196F3; }
        table { width: 100%; border-collapse: collapse; }
        th, td { padding: 12px; text-align: left; border-bottom: 1px solid #ddd; }
        .status-passed { color: #4CAF50; }
        .status-failed { color: #f44336; }""",
    """\
    <div class="summary">
        <div class="metric"><div class="metric-value">{{totalTests}}</div><div>Total Tests</div></div>
        <div class="metric"><div class="metric-value status-passed">{{passedTests}}</div><div>Passed</div></div>
        <div class="metric"><div class="metric-value status-failed">{{failedTests}}</div><div>Failed</div></div>
        <div class="metric"><div class="metric-value">{{executionTime}}</div><div>Execution Time</div></div>
    </div>
    <div class="details">
        <h2>Test Details</h2>
        {{testDetails}}
    </div>""",
)

HEALING_SUMMARY_TEMPLATE = _page(
    """\
        .summary { display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 20px; margin: 20px 0; }
        .metric { background: white; padding: 15px; border: 1px solid #ddd; border-radius: 4px; text-align: center; }
        .metric-value { font-size: 24px; font-weight: bold; color: #FF9800; }
        .strategy { margin: 10px 0; padding: 15px; background: #f9f9f9; border-radius: 4px; }""",
    """\
    <div class="summary">
        <div class="metric"><div class="metric-value">{{totalAttempts}}</div><div>Total Attempts</div></div>
        <div class="metric"><div class="metric-value">{{successRate}}%</div><div>Success Rate</div></div>
    </div>
    <div class="strategies">
        <h2>Healing Strategies</h2>
        {{strategies}}
    </div>
    <div class="failure-types">
        <h2>Failure Types</h2>
        {{failureTypes}}
    </div>""",
)

SYSTEM_HEALTH_TEMPLATE = _page(
    """\
        .status { display: inline-block; padding: 5px 10px; border-radius: 4px; color: white; }
        .status-healthy { background: #4CAF50; }
        .status-degraded { background: #FF9800; }
        .status-unhealthy { background: #f44336; }
        .component { margin: 10px 0; padding: 15px; background: #f9f9f9; border-radius: 4px; }""",
    """\
    <div class="components">
        <h2>Component Health</h2>
        {{components}}
    </div>
    <div class="metrics">
        <h2>System Metrics</h2>
        {{metrics}}
    </div>""",
    header="""\
    <div class="header">
        <h1>{{title}}</h1>
        <p>{{description}}</p>
        <p><strong>Generated:</strong> {{generatedAt}}</p>
        <p><strong>Overall Status:</strong> <span class="status status-{{overallStatus}}">{{overallStatus}}</span></p>
        <p><strong>Uptime:</strong> {{uptime}}</p>
    </div>""",
)

PERFORMANCE_TEMPLATE = _page(
    """\
        .metric { margin: 10px 0; padding: 15px; background: #f9f9f9; border-radius: 4px; }""",
    """\
    <div class="metrics">
        <h2>Performance Metrics</h2>
        {{metrics}}
    </div>
    <div class="trends">
        <h2>Trends</h2>
        {{trends}}
    </div>
    <div class="recommendations">
        <h2>Recommendations</h2>
        {{recommendations}}
    </div>""",
)


def default_templates() -> list[ReportTemplate]:
    """Return the built-in ``{type}-default`` templates."""
    return [
        ReportTemplate(
            id="test-execution-default",
            name="Test Execution Report",
            description="Comprehensive test execution summary",
            type="test-execution",
            template=TEST_EXECUTION_TEMPLATE,
            variables=(
                "title",
                "timeRange",
                "totalTests",
                "passedTests",
                "failedTests",
                "executionTime",
                "testDetails",
            ),
        ),
        ReportTemplate(
            id="healing-summary-default",
            name="Healing Summary Report",
            description="Self-healing performance analysis",
            type="healing-summary",
            template=HEALING_SUMMARY_TEMPLATE,
            variables=(
                "title",
                "timeRange",
                "totalAttempts",
                "successRate",
                "strategies",
                "failureTypes",
            ),
        ),
        ReportTemplate(
            id="system-health-default",
            name="System Health Report",
            description="System health and performance overview",
            type="system-health",
            template=SYSTEM_HEALTH_TEMPLATE,
            variables=("title", "generatedAt", "overallStatus", "components", "uptime", "metrics"),
        ),
        ReportTemplate(
            id="performance-default",
            name="Performance Report",
            description="System performance analysis",
            type="performance",
            template=PERFORMANCE_TEMPLATE,
            variables=("title", "timeRange", "metrics", "trends", "recommendations"),
        ),
    ]
