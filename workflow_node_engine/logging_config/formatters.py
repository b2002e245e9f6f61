"""
Log formatters for console and log-aggregator output.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_RECORD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName",
    "relativeCreated", "thread", "threadName", "exc_info",
    "exc_text", "stack_info", "taskName", "execution_id",
}


class SimpleFormatter(logging.Formatter):
    """
    Single-line text formatter.
    Example: INFO:     2025-08-11 14:03:25 - workflow_node_engine.core.debug_runner - [debug_runner.py:88] [Exec:debug-1a2b] - Debugging node
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        file_location = f"{record.filename}:{record.lineno}"

        execution = ""
        if getattr(record, "execution_id", None):
            execution = f" [Exec:{record.execution_id}]"

        formatted = (
            f"{record.levelname}:     {timestamp} - {record.name} - "
            f"[{file_location}]{execution} - {record.getMessage()}"
        )

        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"

        return formatted


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter, one object per line, for log aggregation queries.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "file": f"{record.filename}:{record.lineno}",
            "function": record.funcName,
        }

        if getattr(record, "execution_id", None):
            log_obj["execution_id"] = record.execution_id

        if record.exc_info:
            log_obj["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else "Unknown",
                "message": str(record.exc_info[1]) if record.exc_info[1] else "",
                "traceback": self.formatException(record.exc_info),
            }

        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }
        if extra_fields:
            log_obj["extra"] = extra_fields

        return json.dumps(log_obj, ensure_ascii=False, default=str)
