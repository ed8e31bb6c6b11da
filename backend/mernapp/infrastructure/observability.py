"""Structured Logging — one line per event, pipeline context attached as fields.

Invariants:
    - Every line has timestamp, level, logger and message
    - Pipeline extras (request_id, stage, tier, error_code, ...) appear only when set
    - setup_logging is idempotent: repeated calls replace, never stack, its handler

Design Decisions:
    - Both formats share PIPELINE_FIELDS: JSON for log shippers, key=value suffix for
      terminals, so a development log shows the same context as production
    - Stdlib logging only; callers pass context through `extra=`
"""

import json
import logging
from datetime import datetime, timezone

PIPELINE_FIELDS = (
    "request_id", "method", "path", "stage", "operation_id", "tier",
    "error_code", "status_code", "state", "attempt", "retry_in_seconds",
)


def pipeline_fields(record: logging.LogRecord) -> dict:
    return {
        key: record.__dict__[key]
        for key in PIPELINE_FIELDS
        if record.__dict__.get(key) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **pipeline_fields(record),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Classic text line followed by key=value pairs for pipeline fields."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = pipeline_fields(record)
        if not fields:
            return line
        suffix = " ".join(f"{k}={v}" for k, v in fields.items())
        head, sep, tail = line.partition("\n")
        return f"{head} [{suffix}]{sep}{tail}"


_handler: logging.Handler | None = None


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Install the single application handler on the root logger."""
    global _handler
    if _handler is not None:
        logging.root.removeHandler(_handler)
    _handler = logging.StreamHandler()
    _handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())
    logging.root.addHandler(_handler)
    numeric = logging.getLevelName(level.upper())
    logging.root.setLevel(numeric if isinstance(numeric, int) else logging.INFO)
