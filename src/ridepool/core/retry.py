"""Exponential backoff for collaborators that fail transiently."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from .exceptions import TransientError

T = TypeVar("T")
logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    max_attempts: int = 3
    base_delay: float = 0.5
    multiplier: float = 2.0
    max_delay: float = 30.0
    retryable_exceptions: tuple[type[Exception], ...] = field(
        default_factory=lambda: (TransientError,)
    )

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number ``attempt + 1``, capped at max_delay."""
        return min(self.base_delay * (self.multiplier**attempt), self.max_delay)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    operation_name: str = "operation",
    on_retry: Callable[[Exception, int], None] | None = None,
) -> T:
    """Await ``operation`` until it succeeds or the attempts run out.

    Only ``config.retryable_exceptions`` are retried; anything else and the
    final failure propagate unchanged.
    """
    config = config or RetryConfig()
    attempt = 0
    while True:
        try:
            return await operation()
        except config.retryable_exceptions as e:
            if attempt + 1 >= config.max_attempts:
                logger.error(f"{operation_name} gave up after {config.max_attempts} attempts: {e}")
                raise

            delay = config.delay_for(attempt)
            logger.warning(
                f"{operation_name} attempt {attempt + 1}/{config.max_attempts} failed, "
                f"retrying in {delay:.1f}s: {e}"
            )
            if on_retry:
                on_retry(e, attempt)
            await asyncio.sleep(delay)
            attempt += 1
