"""Human-readable single-line encoding of log entries."""

import json
import re
from datetime import UTC, datetime

from harness_observability.core.models import LogEntry

LEVEL_COLORS = {
    "debug": "\x1b[36m",
    "info": "\x1b[32m",
    "warn": "\x1b[33m",
    "error": "\x1b[31m",
}
RESET = "\x1b[0m"

# Matches the padded level tag, e.g. "[INFO ]" or "[ERROR]"
LEVEL_TAG_PATTERN = re.compile(r"\[(DEBUG|INFO|WARN|ERROR)\s*\]")


def format_timestamp(timestamp: float) -> str:
    """Render a Unix timestamp as ISO-8601 UTC with millisecond precision."""
    moment = datetime.fromtimestamp(timestamp, tz=UTC)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def encode_text(
    entry: LogEntry,
    include_stack_trace: bool = True,
    colorize: bool = False,
) -> str:
    """Format a log entry as ``[timestamp] [LEVEL] [component] message``.

    The operation and request id are appended when present, followed by
    optional indented ``Data:``, ``Error:`` and ``Stack:`` blocks.

    Args:
        entry: The entry to format.
        include_stack_trace: Whether to emit the ``Stack:`` block.
        colorize: Wrap the header in the ANSI colour for the level.
    """
    color = LEVEL_COLORS.get(entry.level, "") if colorize else ""
    reset = RESET if colorize else ""
    level = entry.level.upper().ljust(5)
    context = entry.context

    line = (
        f"{color}[{format_timestamp(entry.timestamp)}] [{level}] "
        f"[{context.component}]{reset} {entry.message}"
    )
    if context.operation:
        line += f" ({context.operation})"
    if context.request_id:
        line += f" [req:{context.request_id}]"
    if entry.data:
        line += f"\n  Data: {json.dumps(entry.data, indent=2, default=str)}"
    if entry.error is not None:
        line += f"\n  Error: {entry.error.name}: {entry.error.message}"
        if include_stack_trace and entry.error.stack:
            line += f"\n  Stack: {entry.error.stack}"
    return line
