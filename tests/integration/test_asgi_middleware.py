"""Test ASGI middleware HTTP request metrics and logging."""

import pytest

from harness_observability.adapters.frameworks.asgi import (
    ASGIObservabilityMiddleware,
    _extract_request_id,
    _log_level_for_status,
)
from harness_observability.core.models import ObservabilityEvent
from harness_observability.services.manager import ObservabilityManager

pytestmark = [
    pytest.mark.integration,
    pytest.mark.tier(2),
]


def _status_app(status: int):
    async def app(scope, receive, send) -> None:
        await send({"type": "http.response.start", "status": status, "headers": []})
        await send({"type": "http.response.body", "body": b""})

    return app


def _request_logs(manager: ObservabilityManager) -> list[dict]:
    return [
        entry
        for entry in manager.logging_service.get_recent_logs()
        if entry["context"]["component"] == "http"
    ]


async def test_middleware_increments_request_counter(
    basic_asgi_app, asgi_scope, asgi_send_capture, manager
):
    """Each HTTP request adds one counter observation with method, endpoint and status."""
    middleware = ASGIObservabilityMiddleware(basic_asgi_app, manager)
    send, _responses = asgi_send_capture

    await middleware(asgi_scope(method="GET", path="/api/tests"), lambda: None, send)
    await middleware(asgi_scope(method="POST", path="/api/tests"), lambda: None, send)

    counters = manager.metrics_collector.get_metrics("http_requests_total")
    assert [c.labels for c in counters] == [
        {"method": "GET", "endpoint": "/api/tests", "status_code": "200"},
        {"method": "POST", "endpoint": "/api/tests", "status_code": "200"},
    ]


async def test_middleware_observes_duration_histogram(
    basic_asgi_app, asgi_scope, asgi_send_capture, manager
):
    """Request duration is observed in seconds against the HTTP buckets."""
    middleware = ASGIObservabilityMiddleware(basic_asgi_app, manager)
    send, _responses = asgi_send_capture

    await middleware(asgi_scope(path="/api/runs"), lambda: None, send)

    [observation] = manager.metrics_collector.get_metrics("http_request_duration_seconds")
    assert observation.labels == {"method": "GET", "endpoint": "/api/runs"}
    assert 0 <= observation.sum < 1
    assert "le_0.005" in observation.buckets


async def test_middleware_passes_response_through(
    basic_asgi_app, asgi_scope, asgi_send_capture, manager
):
    middleware = ASGIObservabilityMiddleware(basic_asgi_app, manager)
    send, responses = asgi_send_capture

    await middleware(asgi_scope(), lambda: None, send)

    assert responses[0]["status"] == 200
    assert responses[1]["body"] == b"OK"


async def test_middleware_logs_request(basic_asgi_app, asgi_scope, asgi_send_capture, manager):
    """One log entry per request, carrying the request id header."""
    middleware = ASGIObservabilityMiddleware(basic_asgi_app, manager)
    send, _responses = asgi_send_capture

    await middleware(
        asgi_scope(path="/api/tests", headers=[(b"x-request-id", b"req-42")]),
        lambda: None,
        send,
    )

    [entry] = _request_logs(manager)
    assert entry["message"] == "GET /api/tests"
    assert entry["level"] == "info"
    assert entry["context"] == {
        "component": "http",
        "operation": "request",
        "request_id": "req-42",
    }
    assert entry["data"]["status_code"] == 200
    assert entry["data"]["duration_ms"] >= 0


async def test_middleware_publishes_log_event(
    basic_asgi_app, asgi_scope, asgi_send_capture, manager
):
    """Request logs go through the manager and reach event listeners."""
    events: list[ObservabilityEvent] = []
    manager.add_event_listener("log", events.append)
    middleware = ASGIObservabilityMiddleware(basic_asgi_app, manager)
    send, _responses = asgi_send_capture

    await middleware(asgi_scope(), lambda: None, send)

    assert [event.source for event in events] == ["http"]


@pytest.mark.parametrize(
    ("status", "level"),
    [(200, "info"), (302, "info"), (404, "warn"), (503, "error")],
)
async def test_middleware_log_level_follows_status(
    asgi_scope, asgi_send_capture, manager, status, level
):
    middleware = ASGIObservabilityMiddleware(_status_app(status), manager)
    send, _responses = asgi_send_capture

    await middleware(asgi_scope(), lambda: None, send)

    [entry] = _request_logs(manager)
    assert entry["level"] == level


async def test_middleware_records_exception_as_500(asgi_scope, asgi_send_capture, manager):
    """An exception from the app is recorded as a 500 and re-raised."""

    async def failing_app(scope, receive, send) -> None:
        raise RuntimeError("handler crashed")

    middleware = ASGIObservabilityMiddleware(failing_app, manager)
    send, _responses = asgi_send_capture

    with pytest.raises(RuntimeError, match="handler crashed"):
        await middleware(asgi_scope(), lambda: None, send)

    [counter] = manager.metrics_collector.get_metrics("http_requests_total")
    assert counter.labels["status_code"] == "500"
    [entry] = _request_logs(manager)
    assert entry["level"] == "error"
    assert entry["error"]["message"] == "handler crashed"


@pytest.mark.parametrize("path", ["/health", "/internal/debug"])
async def test_middleware_skips_excluded_paths(
    basic_asgi_app, asgi_scope, asgi_send_capture, manager, path
):
    """Excluded paths, exact or wildcard, are served but not recorded."""
    middleware = ASGIObservabilityMiddleware(
        basic_asgi_app, manager, exclude_paths=["/health", "/internal/*"]
    )
    send, responses = asgi_send_capture

    await middleware(asgi_scope(path=path), lambda: None, send)

    assert responses[0]["status"] == 200
    assert manager.metrics_collector.get_metrics("http_requests_total") == []
    assert _request_logs(manager) == []


async def test_middleware_ignores_non_http_scopes(manager):
    calls: list[str] = []

    async def app(scope, receive, send) -> None:
        calls.append(scope["type"])

    middleware = ASGIObservabilityMiddleware(app, manager)

    await middleware({"type": "lifespan"}, lambda: None, lambda message: None)

    assert calls == ["lifespan"]
    assert manager.metrics_collector.get_metrics("http_requests_total") == []


async def test_middleware_custom_request_id_header(
    basic_asgi_app, asgi_scope, asgi_send_capture, manager
):
    middleware = ASGIObservabilityMiddleware(
        basic_asgi_app, manager, request_id_header="X-Correlation-ID"
    )
    send, _responses = asgi_send_capture

    await middleware(
        asgi_scope(headers=[(b"x-correlation-id", b"corr-7")]), lambda: None, send
    )

    [entry] = _request_logs(manager)
    assert entry["context"]["request_id"] == "corr-7"


class TestHelpers:
    """Tests for the middleware helper functions."""

    def test_request_id_generated_when_missing(self) -> None:
        first = _extract_request_id({"headers": []})
        second = _extract_request_id({"headers": []})

        assert first != second
        assert len(first) == 36

    def test_request_id_header_is_case_insensitive(self) -> None:
        scope = {"headers": [(b"X-Request-Id", b"abc")]}

        assert _extract_request_id(scope) == "abc"

    @pytest.mark.parametrize(
        ("status", "level"),
        [(100, "info"), (201, "info"), (400, "warn"), (499, "warn"), (500, "error"), (0, "info")],
    )
    def test_log_level_for_status(self, status: int, level: str) -> None:
        assert _log_level_for_status(status) == level
