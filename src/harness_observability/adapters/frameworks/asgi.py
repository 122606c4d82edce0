"""ASGI middleware recording HTTP request metrics and logs.

Works with any ASGI framework (FastAPI, Starlette) and reports through an
ObservabilityManager, so request logs are counted and published as events
like any other entry.
"""

import fnmatch
import time
import uuid
from collections.abc import Callable, Coroutine
from typing import TYPE_CHECKING, Any

from harness_observability.core.models import LogContext, LogLevel

if TYPE_CHECKING:
    from harness_observability.services.manager import ObservabilityManager

# ASGI type aliases
Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]

REQUEST_COUNTER = "http_requests_total"
REQUEST_HISTOGRAM = "http_request_duration_seconds"
COMPONENT = "http"


def _extract_request_id(scope: Scope, header_name: str = "X-Request-ID") -> str:
    """Return the request id header value, or a new UUID if it is absent."""
    header_bytes = header_name.lower().encode()
    headers: list[tuple[bytes, bytes]] = scope.get("headers", [])
    for name, value in headers:
        if name.lower() == header_bytes:
            return value.decode("utf-8", errors="replace")
    return str(uuid.uuid4())


def _log_level_for_status(status_code: int) -> LogLevel:
    """Map a response status to a log level: 4xx warn, 5xx error, else info."""
    if 400 <= status_code < 500:
        return "warn"
    if 500 <= status_code < 600:
        return "error"
    return "info"


class ASGIObservabilityMiddleware:
    """Wraps an ASGI app to time, count and log every HTTP request.

    Counts ``http_requests_total{method,endpoint,status_code}``, observes
    ``http_request_duration_seconds{method,endpoint}`` and writes one log
    entry per request. An exception from the app is recorded as a 500 and
    re-raised.

    Args:
        app: The ASGI application to wrap.
        manager: Manager receiving the metrics and logs.
        exclude_paths: Paths to skip; exact matches or wildcard patterns
            such as ``"/internal/*"``.
        request_id_header: Header carrying the request id.
    """

    def __init__(
        self,
        app: ASGIApp,
        manager: "ObservabilityManager",
        exclude_paths: list[str] | None = None,
        request_id_header: str = "X-Request-ID",
    ) -> None:
        self.app = app
        self.manager = manager
        self.exclude_paths = exclude_paths or []
        self.request_id_header = request_id_header

    def _path_excluded(self, path: str) -> bool:
        return any(fnmatch.fnmatch(path, pattern) for pattern in self.exclude_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start_time = time.perf_counter()
        request_id = _extract_request_id(scope, self.request_id_header)
        captured: dict[str, Any] = {"status": None, "exception": None}

        async def wrapped_send(message: dict[str, Any]) -> None:
            if message["type"] == "http.response.start":
                captured["status"] = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, wrapped_send)
        except Exception as e:
            captured["exception"] = e
            captured["status"] = 500

        duration = time.perf_counter() - start_time
        if not self._path_excluded(scope["path"]):
            self._record(scope, request_id, captured, duration)
        if captured["exception"] is not None:
            raise captured["exception"]

    def _record(
        self,
        scope: Scope,
        request_id: str,
        captured: dict[str, Any],
        duration: float,
    ) -> None:
        method = scope["method"]
        path = scope["path"]
        status_code = captured["status"] or 0
        collector = self.manager.metrics_collector

        collector.increment_counter(
            REQUEST_COUNTER,
            {"method": method, "endpoint": path, "status_code": str(status_code)},
        )
        collector.observe_histogram(
            REQUEST_HISTOGRAM, {"method": method, "endpoint": path}, duration
        )

        data: dict[str, Any] = {
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": round(duration * 1000, 2),
        }
        self.manager.log(
            _log_level_for_status(status_code),
            f"{method} {path}",
            LogContext(component=COMPONENT, operation="request", request_id=request_id),
            data,
            captured["exception"],
        )
