"""Log helper functions for creating LogEntry objects."""

import time
import traceback
from collections.abc import Mapping
from dataclasses import fields
from typing import Any

from harness_observability.core.models import ErrorInfo, LogContext, LogEntry, LogLevel

LEVEL_PRIORITIES: dict[str, int] = {"debug": 0, "info": 1, "warn": 2, "error": 3}

_CONTEXT_FIELDS = frozenset(f.name for f in fields(LogContext))
_CONTEXT_ALIASES = {
    "requestId": "request_id",
    "userId": "user_id",
    "testId": "test_id",
    "engineId": "engine_id",
}


def level_priority(level: str) -> int:
    """Return the priority of a level; unknown levels rank as info."""
    return LEVEL_PRIORITIES.get(level, LEVEL_PRIORITIES["info"])


def should_log(level: str, minimum: str) -> bool:
    """Return True if an entry at ``level`` passes the ``minimum`` filter."""
    return level_priority(level) >= level_priority(minimum)


def coerce_context(context: LogContext | Mapping[str, Any] | str) -> LogContext:
    """Build a LogContext from a LogContext, a mapping or a component name.

    Mappings without a ``component`` key are attributed to ``"unknown"``.
    Keys that are not context fields are ignored.
    """
    if isinstance(context, LogContext):
        return context
    if isinstance(context, str):
        return LogContext(component=context)
    values: dict[str, Any] = {}
    for key, value in context.items():
        name = _CONTEXT_ALIASES.get(key, key)
        if name in _CONTEXT_FIELDS and value is not None:
            values[name] = str(value)
    values.setdefault("component", "unknown")
    return LogContext(**values)


def error_info(exc: BaseException, include_stack: bool = True) -> ErrorInfo:
    """Describe an exception as a serializable ErrorInfo.

    Args:
        exc: The exception to describe.
        include_stack: Whether to render the formatted traceback.

    Returns:
        ErrorInfo with the exception class name, message and optional stack.
    """
    stack = None
    if include_stack:
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return ErrorInfo(name=type(exc).__name__, message=str(exc), stack=stack)


def log(
    level: LogLevel,
    message: str,
    context: LogContext | Mapping[str, Any] | str,
    data: dict[str, Any] | None = None,
    error: BaseException | ErrorInfo | None = None,
) -> LogEntry:
    """Create a log entry with automatic timestamp.

    Args:
        level: Log level (debug, info, warn or error)
        message: The log message
        context: Originating component and correlation identifiers
        data: Optional structured payload
        error: Optional exception or pre-built ErrorInfo

    Returns:
        LogEntry with current timestamp
    """
    if isinstance(error, BaseException):
        error = error_info(error)
    return LogEntry(
        level=level,
        message=message,
        timestamp=time.time(),
        context=coerce_context(context),
        data=data,
        error=error,
    )