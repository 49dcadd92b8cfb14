"""Log formatters for JSON and human-readable output."""

import json
import logging
from datetime import UTC, datetime

# Fields set through log_ride_request_context, in display order
CONTEXT_FIELDS = ("ride_request_id", "ride_id", "driver_id", "passenger_id")


def _context_of(record: logging.LogRecord) -> dict[str, object]:
    return {f: getattr(record, f) for f in CONTEXT_FIELDS if getattr(record, f, None)}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shippers in deployed environments."""

    def __init__(self, environment: str = "development", service: str = "ridepool"):
        super().__init__()
        self.environment = environment
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service,
            "env": self.environment,
            "correlation_id": getattr(record, "correlation_id", "-"),
            **_context_of(record),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class DevFormatter(logging.Formatter):
    """Human-readable format for development.

    Ride context is appended as ``key=value`` pairs so a request's lines can
    be grepped by id.
    """

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s [%(levelname)8s] [corr=%(correlation_id)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        line = super().format(record)
        context = _context_of(record)
        if not context:
            return line
        suffix = " ".join(f"{k}={v}" for k, v in context.items())
        head, sep, tail = line.partition("\n")
        return f"{head} | {suffix}{sep}{tail}"
