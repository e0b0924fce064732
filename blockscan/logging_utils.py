"""
Logging utilities for the block scanner.

Plain text logging for interactive use, and single-line JSON logging
for running the scanner from cron jobs or containers whose logs are
shipped to a log aggregator.
"""

import json
import logging
import sys
import uuid
from datetime import UTC, datetime
from typing import Any

# Attributes every LogRecord carries; anything else came from ``extra``.
_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "taskName", "message",
}

# Where in the bucket a record happened; always present in JSON output.
SCAN_CONTEXT_FIELDS = ("backend", "tenant_id", "block_id")

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _plain(value: Any) -> Any:
    """Reduce a context value to something JSON can carry."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (uuid.UUID, datetime)):
        return str(value)
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_plain(v) for v in value]
    return str(value)


class StructuredJsonFormatter(logging.Formatter):
    """
    JSON formatter for scan logs.

    Every line carries ``time`` (when the record was created, UTC),
    ``level``, ``logger``, ``msg`` and the scan context fields
    ``backend``, ``tenant_id`` and ``block_id`` (null when not known), so
    lines for one block can be filtered without parsing messages. Other
    ``extra`` fields follow; block ids and timestamps are written as
    strings. Exceptions add ``error_type`` and ``traceback``.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_obj: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in SCAN_CONTEXT_FIELDS:
            log_obj[key] = _plain(getattr(record, key, None))

        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or key in log_obj or key.startswith("_"):
                continue
            log_obj[key] = _plain(value)

        if record.exc_info and record.exc_info[0] is not None:
            log_obj["error_type"] = record.exc_info[0].__name__
            log_obj["traceback"] = self.formatException(record.exc_info)

        return json.dumps(log_obj)


def configure_logging(
    level: int = logging.WARNING,
    json_output: bool = False,
    logger_name: str | None = None,
) -> logging.Logger:
    """
    Configure logging for command line use.

    Logs go to stderr so that tables and JSON written to stdout stay
    machine readable.

    Args:
        level: Logging level (default: WARNING)
        json_output: Emit single-line JSON instead of plain text
        logger_name: Specific logger to configure (default: root logger)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(StructuredJsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    logger.addHandler(handler)
    logger.setLevel(level)

    return logger

