"""Per-request correlation for HTTP calls."""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ridepool.core.correlation import (
    CORRELATION_HEADER,
    resolve_correlation_id,
    with_correlation,
)


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Run each request under a correlation id and echo it in the response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = resolve_correlation_id(request.headers.get(CORRELATION_HEADER))
        with with_correlation(correlation_id):
            response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response
