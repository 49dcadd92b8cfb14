"""Root logger configuration for the service process."""

import logging
import sys

from ridepool.core.correlation import CorrelationFilter

from .context import ContextFilter
from .filters import PIIFilter
from .formatters import DevFormatter, JSONFormatter

# Libraries whose INFO output drowns the service's own lines
QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "uvicorn.access")

# uvicorn installs no handlers when run with log_config=None; route them to root
UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    environment: str = "development",
) -> logging.Handler:
    """Install one stdout handler on the root logger and return it.

    Filters run in order: ride context first, so an explicit
    ``correlation_id`` from the context wins over the ambient one, then
    masking on the final message.
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter(environment) if json_output else DevFormatter())
    handler.addFilter(ContextFilter())
    handler.addFilter(CorrelationFilter())
    handler.addFilter(PIIFilter())

    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper()))

    for name in UVICORN_LOGGERS:
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return handler
