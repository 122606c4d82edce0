"""Prometheus text exposition encoder."""

import math
from collections.abc import Callable, Iterable, Sequence

from harness_observability.core.metrics import INF_BUCKET
from harness_observability.core.models import (
    HistogramMetric,
    Metric,
    MetricRegistration,
    TimerMetric,
)


def _escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _format_labels(labels: dict[str, str], extra: tuple[str, str] | None = None) -> str:
    pairs = [f'{key}="{_escape_label_value(str(value))}"' for key, value in labels.items()]
    if extra is not None:
        pairs.append(f'{extra[0]}="{extra[1]}"')
    return "{" + ",".join(pairs) + "}" if pairs else ""


def format_value(value: float) -> str:
    """Render a sample value (integers without a trailing ``.0``)."""
    number = float(value)
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "+Inf" if number > 0 else "-Inf"
    if number.is_integer():
        return str(int(number))
    return repr(number)


def _bucket_label(key: str) -> str:
    if key == INF_BUCKET:
        return "+Inf"
    return key.removeprefix("le_")


def _sample_lines(name: str, metric: Metric) -> list[str]:
    if isinstance(metric, HistogramMetric):
        lines = [
            f"{name}_bucket{_format_labels(metric.labels, ('le', _bucket_label(key)))} {count}"
            for key, count in metric.buckets.items()
        ]
        labels = _format_labels(metric.labels)
        lines.append(f"{name}_sum{labels} {format_value(metric.sum)}")
        lines.append(f"{name}_count{labels} {metric.count}")
        return lines
    if isinstance(metric, TimerMetric):
        return [f"{name}{_format_labels(metric.labels)} {format_value(metric.duration)}"]
    return [f"{name}{_format_labels(metric.labels)} {format_value(metric.value)}"]


def encode_metrics(
    registrations: Iterable[MetricRegistration],
    series: Callable[[str], Sequence[Metric]],
) -> str:
    """Encode recorded observations in Prometheus text format.

    Registrations without observations are skipped. Every observation is
    emitted as its own sample; histograms expand to ``_bucket``, ``_sum``
    and ``_count`` lines.

    Args:
        registrations: Declared metrics, in output order.
        series: Lookup returning the observations recorded for a name.

    Returns:
        Exposition text with a blank line after each metric family.
    """
    lines: list[str] = []
    for registration in registrations:
        metrics = series(registration.name)
        if not metrics:
            continue
        lines.append(f"# HELP {registration.name} {registration.description}")
        lines.append(f"# TYPE {registration.name} {registration.type}")
        for metric in metrics:
            lines.extend(_sample_lines(registration.name, metric))
        lines.append("")
    return "\n".join(lines)
