"""Structured logger writing to the console and an optional rotated file."""

import json
import logging
import sys
from collections.abc import Mapping
from typing import Any, TextIO

from harness_observability.adapters.storage.log_file import RotatingLogFile
from harness_observability.core.config import LoggingConfig
from harness_observability.core.encoding.ndjson import encode_log
from harness_observability.core.encoding.text import LEVEL_TAG_PATTERN, encode_text
from harness_observability.core.logs import LEVEL_PRIORITIES, coerce_context, should_log
from harness_observability.core.logs import log as build_entry
from harness_observability.core.models import ErrorInfo, LogContext, LogEntry, LogLevel
from harness_observability.core.ports import LogSinkPort

logger = logging.getLogger(__name__)


class StructuredLogger:
    """Level-filtered logger with text or JSON output.

    Every accepted entry is written to the console stream, coloured by
    level in text mode, and appended to the log file when one is
    configured. Entries below the configured level reach no sink.

    Args:
        config: Logging section of the observability configuration.
        stream: Console destination; defaults to ``sys.stdout`` at write time.
        context: Extra context merged into every entry (used by ``child``).
        sink: Shared file sink; created from ``config.file`` when omitted.
    """

    def __init__(
        self,
        config: LoggingConfig | None = None,
        stream: TextIO | None = None,
        context: Mapping[str, Any] | None = None,
        sink: LogSinkPort | None = None,
    ) -> None:
        self._config = config or LoggingConfig()
        self._stream = stream
        self._extra_context = dict(context or {})
        if sink is None and self._config.file:
            sink = RotatingLogFile(
                self._config.file,
                max_file_size=self._config.max_file_size,
                max_files=self._config.max_files,
            )
        self._sink: LogSinkPort | None = sink

    @property
    def config(self) -> LoggingConfig:
        return self._config

    @property
    def sink(self) -> LogSinkPort | None:
        return self._sink

    def log(
        self,
        level: LogLevel,
        message: str,
        context: LogContext | Mapping[str, Any] | str,
        data: dict[str, Any] | None = None,
        error: BaseException | ErrorInfo | None = None,
    ) -> LogEntry | None:
        """Build an entry and write it if ``level`` passes the filter.

        Returns:
            The written entry, or None when it was filtered out.
        """
        if not should_log(level, self._config.level):
            return None
        entry_context = coerce_context(context)
        if self._extra_context:
            entry_context = coerce_context({**entry_context.to_dict(), **self._extra_context})
        entry = build_entry(level, message, entry_context, data or None, error)
        self._write(entry)
        return entry

    def debug(self, message: str, context: Any, data: dict[str, Any] | None = None) -> None:
        self.log("debug", message, context, data)

    def info(self, message: str, context: Any, data: dict[str, Any] | None = None) -> None:
        self.log("info", message, context, data)

    def warn(self, message: str, context: Any, data: dict[str, Any] | None = None) -> None:
        self.log("warn", message, context, data)

    def error(
        self,
        message: str,
        context: Any,
        error: BaseException | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        self.log("error", message, context, data, error)

    def child(self, **context: Any) -> "StructuredLogger":
        """Return a logger sharing this one's config and file sink.

        The keyword arguments (``operation="sync"``, ``test_id="t1"``)
        override the matching context fields of every entry it writes.
        """
        return StructuredLogger(
            self._config,
            stream=self._stream,
            context={**self._extra_context, **context},
            sink=self._sink,
        )

    def _write(self, entry: LogEntry) -> None:
        include_stack = self._config.include_stack_trace
        stream = self._stream or sys.stdout
        try:
            print(encode_text(entry, include_stack, colorize=True), file=stream)
        except (OSError, ValueError):
            logger.exception("Failed to write log entry to console")

        if self._sink is None:
            return
        if self._config.format == "json":
            line = encode_log(entry)
        else:
            line = encode_text(entry, include_stack)
        self._sink.write(line)

    def get_recent_logs(self, count: int = 100) -> list[dict[str, Any]]:
        """Return the last ``count`` entries of the log file as dicts.

        Only JSON files can be read back; text format yields an empty list.
        Unparsable lines are skipped.
        """
        if self._sink is None or self._config.format != "json" or count <= 0:
            return []
        entries = []
        for line in self._sink.read_lines()[-count:]:
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return entries

    def get_log_stats(self) -> dict[str, Any]:
        """Count the entries in the active log file by level.

        Returns:
            ``total_entries``, ``entries_by_level`` and ``file_size``
            (None when no file is configured or it does not exist).
        """
        by_level = dict.fromkeys(LEVEL_PRIORITIES, 0)
        stats: dict[str, Any] = {
            "total_entries": 0,
            "entries_by_level": by_level,
            "file_size": None,
        }
        if self._sink is None:
            return stats
        stats["file_size"] = self._sink.size()
        for line in self._sink.read_lines():
            level = self._line_level(line)
            if level is None:
                continue
            by_level[level] = by_level.get(level, 0) + 1
            stats["total_entries"] += 1
        return stats

    def _line_level(self, line: str) -> str | None:
        if self._config.format == "json":
            try:
                level = json.loads(line).get("level")
            except (json.JSONDecodeError, AttributeError):
                return None
            return level if isinstance(level, str) else None
        match = LEVEL_TAG_PATTERN.search(line)
        return match.group(1).lower() if match else None

    def update_config(self, config: LoggingConfig) -> None:
        """Apply a new logging section, reopening the file sink if it moved."""
        previous = self._config
        self._config = config
        if config.file != previous.file:
            self._sink = (
                RotatingLogFile(config.file, config.max_file_size, config.max_files)
                if config.file
                else None
            )
        elif self._sink is not None:
            self._sink.configure(config.max_file_size, config.max_files)

    def destroy(self) -> None:
        """Detach the file sink; later entries go to the console only."""
        self._sink = None
