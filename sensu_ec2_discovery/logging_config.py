"""Log output for a discovery pass: one line per event, JSON or key=value text."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

from .config import LoggingConfig

# ``extra=`` keys emitted by the pipeline and registry client, in output order.
EXTRA_FIELDS = (
    "region", "entity", "endpoint", "outcome", "status", "total_instances",
    "created_count", "already_exists_count", "failed_count", "regions_failed", "elapsed_seconds",
)

# SDK and transport loggers that are chatty at INFO/DEBUG.
QUIET_LOGGERS = ("boto3", "botocore", "urllib3", "s3transfer")


def structured_fields(record: logging.LogRecord) -> dict[str, Any]:
    """The EXTRA_FIELDS present on ``record``, skipping unset ones."""
    return {key: getattr(record, key) for key in EXTRA_FIELDS if getattr(record, key, None) is not None}


class JSONFormatter(logging.Formatter):
    """One JSON object per line; region worker threads are identified by name."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.threadName and record.threadName != "MainThread":
            payload["thread"] = record.threadName
        payload.update(structured_fields(record))

        if record.exc_info and record.exc_info[1]:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """Plain text with structured fields appended as ``key=value`` pairs."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = structured_fields(record)
        if not fields:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in fields.items())
        # Tracebacks follow the first line; keep the pairs on the message line.
        head, sep, tail = line.partition("\n")
        return f"{head} {pairs}{sep}{tail}"


def configure_logging(config: LoggingConfig, stream: TextIO | None = None) -> logging.Handler:
    """Route all records to a single stderr handler and return that handler."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    for old in root.handlers[:]:
        root.removeHandler(old)
        old.close()

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(JSONFormatter() if config.format == "json" else TextFormatter())
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler
