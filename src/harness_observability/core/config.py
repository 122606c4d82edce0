"""Configuration for the observability subsystems.

The configuration is an immutable value. ``ObservabilityConfig.merged``
returns a new instance with an incremented ``version``; the manager hands
the new sections to every subsystem so none of them keeps reading a stale
copy.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from typing import Any

from harness_observability.core.models import LogFormat, LogLevel, ReportFormat

_FILE_SIZE_UNITS = {
    "B": 1,
    "KB": 1024,
    "MB": 1024 * 1024,
    "GB": 1024 * 1024 * 1024,
}
_FILE_SIZE_PATTERN = re.compile(r"^(\d+)([A-Z]+)$")
DEFAULT_MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024


def parse_file_size(size: str | int) -> int:
    """Parse a size string such as ``"10MB"`` into bytes.

    Integers are taken as a byte count. Unparsable strings fall back to
    10MB; unknown units are treated as bytes.
    """
    if isinstance(size, int):
        return size
    match = _FILE_SIZE_PATTERN.match(size.strip())
    if not match:
        return DEFAULT_MAX_FILE_SIZE_BYTES
    amount, unit = match.groups()
    return int(amount) * _FILE_SIZE_UNITS.get(unit, 1)


@dataclass(frozen=True)
class LoggingConfig:
    level: LogLevel = "info"
    format: LogFormat = "text"
    file: str | None = None
    max_file_size: str = "10MB"
    max_files: int = 5
    include_stack_trace: bool = True


@dataclass(frozen=True)
class MetricsConfig:
    """Metrics collector settings.

    Attributes:
        enabled: When False every recording call is a no-op.
        interval: Self-collection period in milliseconds; <= 0 disables it.
        retention: Maximum age of observations in days.
        export_format: Advisory only; Prometheus export is always available.
        max_series_length: Optional cap on observations kept per metric name.
        endpoint: Stored for external exporters, unused here.
    """

    enabled: bool = True
    interval: float = 5000
    retention: float = 7
    export_format: str = "json"
    max_series_length: int | None = None
    endpoint: str | None = None


@dataclass(frozen=True)
class HealthConfig:
    enabled: bool = True
    interval: float = 30000
    timeout: float = 5000


@dataclass(frozen=True)
class ReportingConfig:
    """Report generator settings.

    ``schedule`` is a cron expression kept for an external scheduler; the
    generator never acts on it.
    """

    enabled: bool = True
    schedule: str = "0 0 * * *"
    formats: tuple[ReportFormat, ...] = ("json", "html")
    output_dir: str | None = "./reports"
    retention: float = 30


@dataclass(frozen=True)
class TracingConfig:
    enabled: bool = False
    endpoint: str | None = None
    sample_rate: float = 0.1
    service_name: str = "test-automation-harness"


_SECTIONS: dict[str, type] = {
    "logging": LoggingConfig,
    "metrics": MetricsConfig,
    "health": HealthConfig,
    "reporting": ReportingConfig,
    "tracing": TracingConfig,
}


def _snake_case(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def _build_section(section_type: type, values: Mapping[str, Any]) -> Any:
    known = {f.name for f in fields(section_type)}
    kwargs: dict[str, Any] = {}
    for key, value in values.items():
        name = _snake_case(key)
        if name not in known:
            raise ValueError(f"Unknown {section_type.__name__} option: {key}")
        if isinstance(value, list):
            value = tuple(value)
        kwargs[name] = value
    return section_type(**kwargs)


@dataclass(frozen=True)
class ObservabilityConfig:
    """Complete observability configuration.

    Attributes:
        enabled: Master switch, stored for collaborators.
        version: Incremented by every ``merged`` call.
    """

    enabled: bool = True
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    health: HealthConfig = field(default_factory=HealthConfig)
    reporting: ReportingConfig = field(default_factory=ReportingConfig)
    tracing: TracingConfig = field(default_factory=TracingConfig)
    version: int = 1

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "ObservabilityConfig":
        """Build a config from a nested mapping.

        Keys may be camelCase (``maxFileSize``) or snake_case
        (``max_file_size``). Missing sections use their defaults.
        """
        return cls().merged(values, bump_version=False)

    def merged(
        self, partial: Mapping[str, Any], *, bump_version: bool = True
    ) -> "ObservabilityConfig":
        """Return a copy with ``partial`` merged in section by section.

        Section values may be section dataclasses (replacing the section) or
        mappings (overriding individual options).
        """
        updates: dict[str, Any] = {}
        for key, value in partial.items():
            name = _snake_case(key)
            if name in _SECTIONS:
                current = getattr(self, name)
                if isinstance(value, _SECTIONS[name]):
                    updates[name] = value
                else:
                    merged = {f.name: getattr(current, f.name) for f in fields(current)}
                    merged.update({_snake_case(k): v for k, v in value.items()})
                    updates[name] = _build_section(_SECTIONS[name], merged)
            elif name == "enabled":
                updates[name] = bool(value)
            else:
                raise ValueError(f"Unknown observability option: {key}")
        if bump_version:
            updates["version"] = self.version + 1
        return replace(self, **updates)


def default_config() -> ObservabilityConfig:
    """Return the default configuration."""
    return ObservabilityConfig()
