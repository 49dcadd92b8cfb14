import asyncio
import contextvars
import functools
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, ParamSpec, TypeVar

from ridepool.core.exceptions import (
    CollaboratorTimeoutError,
    CollaboratorUnavailableError,
    RidepoolError,
)

T = TypeVar("T")
P = ParamSpec("P")
logger = logging.getLogger(__name__)


async def call_with_timeout(
    awaitable: Awaitable[T],
    timeout: float | None,
    collaborator: str,
) -> T:
    """Await a collaborator call with an upper time bound.

    Errors already in the service taxonomy pass through unchanged; anything
    else the collaborator raises becomes CollaboratorUnavailableError.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except TimeoutError as e:
        logger.warning("%s did not answer within %ss", collaborator, timeout)
        raise CollaboratorTimeoutError(
            f"{collaborator} timed out",
            details={"collaborator": collaborator, "timeout": timeout},
        ) from e
    except RidepoolError:
        raise
    except Exception as e:
        raise CollaboratorUnavailableError(
            f"{collaborator} is unavailable",
            details={"collaborator": collaborator, "error": str(e)},
        ) from e


async def run_blocking(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a blocking call (database unit of work) on the default executor.

    The caller's context variables travel with the call, so log context and
    correlation ids still reach records emitted from the worker thread.
    """
    loop = asyncio.get_running_loop()
    ctx = contextvars.copy_context()
    return await loop.run_in_executor(None, functools.partial(ctx.run, func, *args, **kwargs))


async def gather_or_cancel(*coros: Coroutine[Any, Any, T]) -> list[T]:
    """Run coroutines concurrently; the first failure cancels the rest.

    The failing exception is raised as-is rather than inside an
    ExceptionGroup, so callers keep handling the service taxonomy.
    """
    try:
        async with asyncio.TaskGroup() as tg:
            tasks = [tg.create_task(coro) for coro in coros]
    except ExceptionGroup as eg:
        raise eg.exceptions[0] from None
    return [task.result() for task in tasks]
