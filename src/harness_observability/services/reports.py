"""Report generation from templates into JSON, HTML or PDF placeholders."""

import asyncio
import base64
import json
import logging
import random
import string
import time
from datetime import UTC, datetime
from html import escape
from pathlib import Path
from typing import Any

from harness_observability.core.config import ReportingConfig
from harness_observability.core.encoding.text import format_timestamp
from harness_observability.core.formatters import TYPE_VARIABLES
from harness_observability.core.models import (
    ReportData,
    ReportMetadata,
    ReportOptions,
    ReportTemplate,
    TimeRange,
)
from harness_observability.core.ports import ReportRenderer
from harness_observability.core.templates import default_templates, render_template

logger = logging.getLogger(__name__)

REPORT_VERSION = "1.0.0"
GENERATOR = "test-automation-harness"
DEFAULT_TIME_RANGE_SECONDS = 24 * 60 * 60
SECONDS_PER_DAY = 24 * 60 * 60

DEFAULT_TITLES = {
    "test-execution": "Test Execution Report",
    "healing-summary": "Healing Summary Report",
    "system-health": "System Health Report",
    "performance": "Performance Report",
}
DEFAULT_DESCRIPTIONS = {
    "test-execution": "Comprehensive analysis of test execution results",
    "healing-summary": "Summary of self-healing activities and performance",
    "system-health": "Overview of system health and component status",
    "performance": "Performance metrics and analysis",
}

_ID_ALPHABET = string.ascii_lowercase + string.digits


class ReportGenerationError(Exception):
    """Raised when a report cannot be generated."""


class TemplateNotFoundError(ReportGenerationError):
    """Raised when an HTML report names a template that does not exist."""


def _json_data(data: Any) -> str:
    return json.dumps(data, indent=2, default=str)


class JsonReportRenderer:
    """Pretty-printed JSON of the whole report envelope."""

    uses_template = False

    def render(self, report: ReportData, template: ReportTemplate | None) -> str:
        return json.dumps(report.to_dict(), indent=2, default=str)


class HtmlReportRenderer:
    """Fills a template with the base and per-type variables."""

    uses_template = True

    def variables(self, report: ReportData) -> dict[str, str]:
        variables = {
            "title": escape(report.title),
            "description": escape(report.description),
            "generatedAt": format_timestamp(report.generated_at),
            "timeRange": (
                f"{format_timestamp(report.time_range.start)} - "
                f"{format_timestamp(report.time_range.end)}"
            ),
            "data": escape(_json_data(report.data)),
        }
        type_variables = TYPE_VARIABLES.get(report.type)
        if type_variables is not None:
            variables.update(type_variables(report.data))
        return variables

    def render(self, report: ReportData, template: ReportTemplate | None) -> str:
        if template is None:
            raise TemplateNotFoundError(f"No template for {report.type} report")
        return render_template(template.template, self.variables(report))


class PdfPlaceholderRenderer:
    """Stand-in for PDF output: base64 of a plain-text summary.

    The HTML is still rendered so template errors surface the same way.
    """

    uses_template = True

    def __init__(self, html: HtmlReportRenderer | None = None) -> None:
        self._html = html or HtmlReportRenderer()

    def render(self, report: ReportData, template: ReportTemplate | None) -> str:
        self._html.render(report, template)
        text = (
            f"PDF Report: {report.title}\n\n"
            f"Generated: {format_timestamp(report.generated_at)}\n\n"
            f"Data: {_json_data(report.data)}"
        )
        return base64.b64encode(text.encode("utf-8")).decode("ascii")


def generate_report_id() -> str:
    """Return ``report_<epoch ms>_<9 random base36 chars>``."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"report_{int(time.time() * 1000)}_{suffix}"


class ReportGenerator:
    """Builds report envelopes and writes their rendered content to disk.

    Args:
        config: Reporting section of the observability configuration.
    """

    def __init__(self, config: ReportingConfig | None = None) -> None:
        self._config = config or ReportingConfig()
        self._templates: dict[str, ReportTemplate] = {
            template.id: template for template in default_templates()
        }
        html = HtmlReportRenderer()
        self._renderers: dict[str, ReportRenderer] = {
            "json": JsonReportRenderer(),
            "html": html,
            "pdf": PdfPlaceholderRenderer(html),
        }

    @property
    def config(self) -> ReportingConfig:
        return self._config

    # === Templates and renderers ===

    def register_template(self, template: ReportTemplate) -> None:
        self._templates[template.id] = template

    def get_template(self, template_id: str) -> ReportTemplate | None:
        return self._templates.get(template_id)

    def get_available_templates(self) -> list[ReportTemplate]:
        return list(self._templates.values())

    def register_renderer(self, report_format: str, renderer: ReportRenderer) -> None:
        """Add or replace the renderer used for ``report_format``."""
        self._renderers[report_format] = renderer

    def supported_formats(self) -> list[str]:
        return list(self._renderers)

    def _resolve_template(self, report: ReportData, template_id: str | None) -> ReportTemplate:
        key = template_id or f"{report.type}-default"
        template = self._templates.get(key)
        if template is None:
            raise TemplateNotFoundError(f"Template not found: {template_id or 'default'}")
        return template

    # === Generation ===

    def render_report(
        self,
        report: ReportData,
        template_id: str | None = None,
    ) -> str:
        """Render ``report`` in the format recorded in its metadata.

        Raises:
            ValueError: No renderer is registered for the format.
            TemplateNotFoundError: A template-based format has no template.
        """
        report_format = report.metadata.format
        renderer = self._renderers.get(report_format)
        if renderer is None:
            raise ValueError(f"Unsupported report format: {report_format}")
        template = self._resolve_template(report, template_id) if renderer.uses_template else None
        return renderer.render(report, template)

    async def generate_report(self, options: ReportOptions) -> ReportData:
        """Build, render and optionally save a report.

        The content is written to ``options.output_path`` or, when an output
        directory is configured, to ``{type}_{YYYY-MM-DD}_{id}.{format}``
        inside it.

        Raises:
            ReportGenerationError: Reporting is disabled.
            TemplateNotFoundError: The HTML template does not exist.
            ValueError: The format is not supported.
            OSError: The report could not be written.
        """
        if not self._config.enabled:
            raise ReportGenerationError("Report generation is disabled")

        now = time.time()
        report = ReportData(
            id=generate_report_id(),
            type=options.type,
            title=options.title or DEFAULT_TITLES.get(options.type, "Report"),
            description=options.description
            or DEFAULT_DESCRIPTIONS.get(options.type, "Automated report"),
            generated_at=now,
            time_range=options.time_range or TimeRange(now - DEFAULT_TIME_RANGE_SECONDS, now),
            data=options.data,
            metadata=ReportMetadata(
                version=REPORT_VERSION,
                generator=GENERATOR,
                format=options.format,
            ),
        )
        content = self.render_report(report, options.template_id)

        output_path = options.output_path or self._default_output_path(report)
        if output_path is not None:
            await asyncio.to_thread(self._save, Path(output_path), content)
            logger.debug("Report %s written to %s", report.id, output_path)
        return report

    def _default_output_path(self, report: ReportData) -> Path | None:
        if not self._config.output_dir:
            return None
        day = datetime.fromtimestamp(report.generated_at, tz=UTC).strftime("%Y-%m-%d")
        filename = f"{report.type}_{day}_{report.id}.{report.metadata.format}"
        return Path(self._config.output_dir) / filename

    @staticmethod
    def _save(path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    # === Maintenance ===

    async def cleanup_old_reports(self) -> list[Path]:
        """Delete files in the output directory older than the retention window.

        Failures are logged and skipped.

        Returns:
            The paths that were deleted.
        """
        if not self._config.output_dir:
            return []
        return await asyncio.to_thread(self._cleanup, Path(self._config.output_dir))

    def _cleanup(self, directory: Path) -> list[Path]:
        cutoff = time.time() - self._config.retention * SECONDS_PER_DAY
        deleted: list[Path] = []
        try:
            entries = list(directory.iterdir())
        except FileNotFoundError:
            return deleted
        except OSError:
            logger.exception("Failed to list report directory %s", directory)
            return deleted
        for path in entries:
            try:
                if path.is_file() and path.stat().st_mtime < cutoff:
                    path.unlink()
                    deleted.append(path)
            except OSError:
                logger.exception("Failed to remove old report %s", path)
        return deleted

    def update_config(self, config: ReportingConfig) -> None:
        self._config = config

    def destroy(self) -> None:
        """Forget every registered template."""
        self._templates.clear()
