from .context import ContextFilter, LogContext, log_context, log_ride_request_context
from .filters import PIIFilter, mask_pii
from .formatters import DevFormatter, JSONFormatter
from .setup import setup_logging

__all__ = [
    "ContextFilter",
    "DevFormatter",
    "JSONFormatter",
    "LogContext",
    "PIIFilter",
    "log_context",
    "log_ride_request_context",
    "mask_pii",
    "setup_logging",
]
