"""Correlation ids that follow one HTTP request or ride request through the logs.

The API layer opens a correlation per HTTP request (taken from the caller's
``X-Request-ID`` header or generated), and acceptance narrows it to the ride
request id. Log records and published notifications carry whichever id is
innermost.
"""

import logging
import re
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from uuid import uuid4

CORRELATION_HEADER = "X-Request-ID"

# Caller-supplied ids are echoed into logs and headers, so keep them short and printable
_ACCEPTED_ID = re.compile(r"[A-Za-z0-9._:-]{1,128}")

current_correlation_id: ContextVar[str | None] = ContextVar(
    "correlation_id", default=None
)


def resolve_correlation_id(supplied: str | None) -> str:
    """The caller's id when it is usable, otherwise a fresh one."""
    if supplied and _ACCEPTED_ID.fullmatch(supplied):
        return supplied
    return uuid4().hex


@contextmanager
def with_correlation(correlation_id: str) -> Iterator[None]:
    """Context manager to set correlation ID for a block of code.

    Usage:
        with with_correlation(ride_request.id):
            logger.info("Accepting ride request")  # record carries correlation_id
    """
    token = current_correlation_id.set(correlation_id)
    try:
        yield
    finally:
        current_correlation_id.reset(token)


def get_current_correlation_id() -> str | None:
    return current_correlation_id.get()


class CorrelationFilter(logging.Filter):
    """Stamps ``correlation_id`` on records that were not given one explicitly."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "correlation_id", None):
            record.correlation_id = current_correlation_id.get() or "-"
        return True
