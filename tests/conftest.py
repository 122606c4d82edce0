"""Shared test fixtures for all test modules."""

import io
from collections.abc import Iterator
from pathlib import Path

import httpx
import pytest

from harness_observability.core.config import ObservabilityConfig
from harness_observability.services.manager import ObservabilityManager


@pytest.fixture
def console() -> io.StringIO:
    """Capture console output of loggers under test."""
    return io.StringIO()


@pytest.fixture
def log_path(tmp_path: Path) -> Path:
    """Provide a temporary log file path inside a not-yet-created directory."""
    return tmp_path / "logs" / "harness.log"


@pytest.fixture
def reports_dir(tmp_path: Path) -> Path:
    return tmp_path / "reports"


@pytest.fixture
def manager_config(log_path: Path, reports_dir: Path) -> ObservabilityConfig:
    """Configuration writing JSON logs and reports under tmp_path.

    Self-collection is disabled so recorded metrics are deterministic.
    """
    return ObservabilityConfig.from_dict(
        {
            "logging": {"level": "debug", "format": "json", "file": str(log_path)},
            "metrics": {"interval": 0},
            "reporting": {"outputDir": str(reports_dir)},
        }
    )


@pytest.fixture
def manager(
    manager_config: ObservabilityConfig, console: io.StringIO
) -> Iterator[ObservabilityManager]:
    """Manager built outside any event loop, so nothing is scheduled."""
    instance = ObservabilityManager(manager_config, stream=console)
    yield instance
    instance.destroy()


# === ASGI Test Fixtures ===


@pytest.fixture
def basic_asgi_app():
    """Basic ASGI app fixture that returns 200 OK."""
    from harness_observability.adapters.frameworks.asgi import Receive, Scope, Send

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        await send({"type": "http.response.start", "status": 200, "headers": []})
        await send({"type": "http.response.body", "body": b"OK"})

    return app


@pytest.fixture
def asgi_scope():
    """Factory fixture for creating ASGI scope dicts."""
    from harness_observability.adapters.frameworks.asgi import Scope

    def _scope(method: str = "GET", path: str = "/test", headers=None) -> Scope:
        return {
            "type": "http",
            "method": method,
            "path": path,
            "query_string": b"",
            "headers": headers or [],
        }

    return _scope


@pytest.fixture
def asgi_send_capture():
    """Fixture that returns a send callable and a responses list for capture."""
    responses: list[dict[str, object]] = []

    async def send(message: dict[str, object]) -> None:
        responses.append(message)

    return send, responses


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Usage:
        async def test_something(asgi_test_client):
            async with asgi_test_client(app) as client:
                response = await client.get("/endpoint")
    """

    def _get_client(app):
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        )

    return _get_client
