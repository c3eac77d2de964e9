"""Custom logging handlers.

Provides JSONFormatter for structured log output. Deployment runs write one
JSON object per line so a log shipper can group records by run_id.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any


class JSONFormatter(logging.Formatter):
    """Format log records as JSON objects.

    Each log entry is a valid JSON object with:
    - timestamp: ISO-8601 UTC
    - level: Log level name
    - message: Log message
    - context: Run context plus any extra attributes
    """

    # Standard LogRecord attributes to exclude from context
    _STANDARD_ATTRS: frozenset[str] = frozenset(
        {
            "name",
            "msg",
            "args",
            "levelname",
            "levelno",
            "pathname",
            "filename",
            "module",
            "lineno",
            "funcName",
            "created",
            "msecs",
            "relativeCreated",
            "thread",
            "threadName",
            "processName",
            "process",
            "message",
            "exc_info",
            "exc_text",
            "stack_info",
            "taskName",
            # Run context fields (added by RunContextFilter)
            "device_id",
            "profile_name",
            "run_id",
            "run_tag",
        }
    )

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON.

        Args:
            record: Log record to format.

        Returns:
            One line of JSON; values that are not JSON types are stringified.
        """
        # Timestamp comes from the record, not from formatting time
        record_time = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_entry: dict[str, Any] = {
            "timestamp": record_time.isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
        }

        # Root logger name carries no information
        if record.name and record.name != "root":
            log_entry["logger"] = record.name

        # Anything passed via extra= that is not a LogRecord attribute
        context = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self._STANDARD_ATTRS and not key.startswith("_")
        }

        # Run context is added explicitly so an extra={'device_id': ...}
        # cannot shadow it under another name.
        for field in ("device_id", "profile_name", "run_id"):
            value = getattr(record, field, None)
            if value:
                context[field] = value

        if context:
            log_entry["context"] = context

        # Traceback text, formatted like the text formatter would
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)
