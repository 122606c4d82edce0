"""FastAPI router exposing the observability manager over HTTP."""

import json
from typing import Any, Literal

from fastapi import APIRouter, HTTPException, Query, Response
from pydantic import BaseModel, Field

from harness_observability.core.models import (
    ReportFormat,
    ReportOptions,
    ReportType,
    TimeRange,
)
from harness_observability.services.manager import ObservabilityManager
from harness_observability.services.reports import ReportGenerationError

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


class ReportRequest(BaseModel):
    """Body of ``POST /reports``."""

    type: ReportType
    format: ReportFormat = "json"
    data: Any = None
    title: str | None = None
    description: str | None = None
    start: float | None = Field(default=None, description="Unix timestamp")
    end: float | None = Field(default=None, description="Unix timestamp")
    template_id: str | None = None


def create_observability_router(manager: ObservabilityManager) -> APIRouter:
    """Create a FastAPI router for health, metrics, logs and reports.

    Args:
        manager: The manager whose subsystems back every endpoint.

    Returns:
        APIRouter with /health, /metrics, /logs, /summary and /reports.
    """
    router = APIRouter()

    @router.get("/health")
    async def get_health() -> dict[str, Any]:
        """Return the aggregated system health."""
        health = await manager.perform_health_check()
        return health.to_dict() if health is not None else {}

    @router.get("/health/{name}")
    async def get_component_health(name: str) -> dict[str, Any]:
        """Run one check on demand and return its status."""
        status = await manager.perform_health_check(name)
        if status is None:
            raise HTTPException(status_code=404, detail=f"Health check '{name}' not found")
        return status.to_dict()

    @router.get("/metrics")
    async def get_metrics(
        name: str | None = Query(default=None),
        format: Literal["json", "prometheus"] = Query(default="json"),
    ) -> Response:
        """Return recorded metrics as JSON or Prometheus text.

        Args:
            name: Restrict JSON output to one metric name.
            format: ``json`` (default) or ``prometheus``.
        """
        collector = manager.metrics_collector
        if format == "prometheus":
            return Response(
                content=collector.get_prometheus_metrics(),
                media_type=PROMETHEUS_CONTENT_TYPE,
            )
        if name is not None:
            metrics = [metric.to_dict() for metric in collector.get_metrics(name)]
            return _json({"name": name, "metrics": metrics})
        return _json(collector.get_all_metrics().to_dict())

    @router.get("/logs")
    async def get_logs(count: int = Query(default=100, ge=1, le=10000)) -> Response:
        """Return the most recent log file entries as NDJSON.

        Only available when the log file is written in JSON format.
        """
        entries = manager.logging_service.get_recent_logs(count)
        body = "".join(json.dumps(entry) + "\n" for entry in entries)
        return Response(content=body, media_type="application/x-ndjson")

    @router.get("/logs/stats")
    async def get_log_stats() -> dict[str, Any]:
        return manager.logging_service.get_log_stats()

    @router.get("/summary")
    async def get_summary() -> dict[str, Any]:
        return manager.get_observability_summary()

    @router.post("/reports", status_code=201)
    async def create_report(request: ReportRequest) -> dict[str, Any]:
        """Generate a report and return its envelope."""
        time_range = None
        if request.start is not None and request.end is not None:
            time_range = TimeRange(request.start, request.end)
        options = ReportOptions(
            type=request.type,
            format=request.format,
            data=request.data,
            title=request.title,
            description=request.description,
            time_range=time_range,
            template_id=request.template_id,
        )
        try:
            report = await manager.generate_report(options)
        except ReportGenerationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return report.to_dict()

    return router


def _json(payload: dict[str, Any]) -> Response:
    return Response(content=json.dumps(payload, default=str), media_type="application/json")
