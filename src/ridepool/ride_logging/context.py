"""Task-local logging context for adding fields to log records."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

_context: ContextVar[dict[str, Any] | None] = ContextVar("log_context", default=None)


class LogContext:
    """Context-variable storage for log context fields.

    Each asyncio task sees its own copy, so concurrent request handlers do
    not leak fields into each other's records.
    """

    @classmethod
    def get(cls) -> dict[str, Any]:
        return _context.get() or {}


class ContextFilter(logging.Filter):
    """Injects LogContext fields into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in LogContext.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Context manager that sets logging context fields.

    Fields are injected into log records via ContextFilter, which must
    be attached to the handler (see setup_logging).
    """
    token = _context.set({**LogContext.get(), **kwargs})
    try:
        yield
    finally:
        _context.reset(token)


@contextmanager
def log_ride_request_context(ride_request_id: str, **kwargs: Any) -> Iterator[None]:
    """Convenience context manager for ride request operations."""
    correlation_id = kwargs.pop("correlation_id", ride_request_id)
    with log_context(ride_request_id=ride_request_id, correlation_id=correlation_id, **kwargs):
        yield
