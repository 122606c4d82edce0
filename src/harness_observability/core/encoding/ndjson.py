"""NDJSON encoder for log entries."""

import json

from harness_observability.core.models import LogEntry


def encode_log(entry: LogEntry) -> str:
    """Encode a single log entry as one JSON object without a newline.

    Values in ``data`` that JSON cannot represent are rendered with ``str``.
    """
    return json.dumps(entry.to_dict(), default=str)

