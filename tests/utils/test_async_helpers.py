import asyncio
import contextvars
import threading

import pytest

from ridepool.core.exceptions import (
    CollaboratorTimeoutError,
    CollaboratorUnavailableError,
    NoRouteFoundError,
)
from ridepool.utils.async_helpers import call_with_timeout, gather_or_cancel, run_blocking


@pytest.mark.unit
class TestCallWithTimeout:
    async def test_returns_result(self):
        async def answer():
            return 42

        assert await call_with_timeout(answer(), 1.0, "answer") == 42

    async def test_timeout_becomes_collaborator_timeout(self):
        async def slow():
            await asyncio.sleep(1)

        with pytest.raises(CollaboratorTimeoutError) as exc_info:
            await call_with_timeout(slow(), 0.01, "slow service")

        assert exc_info.value.details["collaborator"] == "slow service"

    async def test_service_errors_pass_through(self):
        async def no_route():
            raise NoRouteFoundError("nope")

        with pytest.raises(NoRouteFoundError):
            await call_with_timeout(no_route(), 1.0, "router")

    async def test_unknown_errors_become_unavailable(self):
        async def broken():
            raise RuntimeError("socket closed")

        with pytest.raises(CollaboratorUnavailableError) as exc_info:
            await call_with_timeout(broken(), 1.0, "fare provider")

        assert not isinstance(exc_info.value, CollaboratorTimeoutError)
        assert "socket closed" in exc_info.value.details["error"]


@pytest.mark.unit
class TestGatherOrCancel:
    async def test_results_in_argument_order(self):
        async def value(v, delay):
            await asyncio.sleep(delay)
            return v

        assert await gather_or_cancel(value("a", 0.02), value("b", 0.0)) == ["a", "b"]

    async def test_first_failure_raised_bare_and_siblings_cancelled(self):
        cancelled = []

        async def fails():
            raise NoRouteFoundError("no path")

        async def slow(name):
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled.append(name)
                raise

        with pytest.raises(NoRouteFoundError):
            await gather_or_cancel(slow("eta"), fails(), slow("fare"))

        assert sorted(cancelled) == ["eta", "fare"]


@pytest.mark.unit
class TestRunBlocking:
    async def test_runs_off_the_loop_thread(self):
        loop_thread = threading.get_ident()

        worker_thread = await run_blocking(threading.get_ident)

        assert worker_thread != loop_thread

    async def test_context_variables_reach_worker(self):
        request_id: contextvars.ContextVar[str] = contextvars.ContextVar("request_id")
        request_id.set("rr-1")

        assert await run_blocking(request_id.get) == "rr-1"
