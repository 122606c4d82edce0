"""Python logging handler adapter for harness_observability.

This adapter bridges Python's standard library logging module to an
ObservabilityManager, so records from third-party libraries are counted,
written and published like any other log entry.
"""

import logging
from typing import TYPE_CHECKING

from harness_observability.core.logs import error_info
from harness_observability.core.models import LogContext, LogLevel

if TYPE_CHECKING:
    from harness_observability.services.manager import ObservabilityManager

# Standard LogRecord attributes that should not be treated as extra fields
_STANDARD_LOGRECORD_ATTRS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)

# Records from this package are its own diagnostics; forwarding them would recurse
_OWN_LOGGER_PREFIX = "harness_observability"


def _level_for(levelno: int) -> LogLevel:
    if levelno >= logging.ERROR:
        return "error"
    if levelno >= logging.WARNING:
        return "warn"
    if levelno >= logging.INFO:
        return "info"
    return "debug"


class ObservabilityLogHandler(logging.Handler):
    """Logging handler that forwards records to ``ObservabilityManager.log``.

    The logger name becomes the entry's component and the function name its
    operation. Extra attributes passed via ``extra=`` become entry data.

    Example:
        ```python
        from harness_observability import ObservabilityLogHandler, ObservabilityManager

        manager = ObservabilityManager()
        logging.getLogger().addHandler(ObservabilityLogHandler(manager))
        ```
    """

    def __init__(self, manager: "ObservabilityManager", level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self._manager = manager

    def emit(self, record: logging.LogRecord) -> None:
        if record.name.startswith(_OWN_LOGGER_PREFIX):
            return
        try:
            data = {
                key: value
                for key, value in record.__dict__.items()
                if key not in _STANDARD_LOGRECORD_ATTRS
                and isinstance(value, (str, int, float, bool))
            }
            error = None
            if record.exc_info and record.exc_info[1] is not None:
                error = error_info(record.exc_info[1])
            self._manager.log(
                _level_for(record.levelno),
                record.getMessage(),
                LogContext(component=record.name, operation=record.funcName or None),
                data or None,
                error,
            )
        except Exception:
            self.handleError(record)
