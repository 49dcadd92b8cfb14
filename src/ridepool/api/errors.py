"""Mapping of service errors onto HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ridepool.core.exceptions import (
    BAD_REQUEST,
    NOT_FOUND,
    SERVER_ERROR,
    SERVICE_UNAVAILABLE,
    RidepoolError,
)

logger = logging.getLogger(__name__)

STATUS_BY_CLASSIFICATION = {
    BAD_REQUEST: 400,
    NOT_FOUND: 404,
    SERVICE_UNAVAILABLE: 503,
    SERVER_ERROR: 500,
}


def error_body(message: str, classification: str) -> dict[str, str]:
    return {"detail": message, "error": classification}


async def ridepool_error_handler(request: Request, exc: RidepoolError) -> JSONResponse:
    status_code = STATUS_BY_CLASSIFICATION.get(exc.classification, 500)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message} {exc.details}")
        # Server-side failures keep their internals in the logs
        message = exc.message if status_code == 503 else "Internal server error"
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
        message = exc.message
    return JSONResponse(status_code=status_code, content=error_body(message, exc.classification))


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    fields = [".".join(str(loc) for loc in err["loc"]) for err in exc.errors()]
    return JSONResponse(
        status_code=400,
        content=error_body(f"Invalid request: {', '.join(fields)}", BAD_REQUEST),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500, content=error_body("Internal server error", SERVER_ERROR)
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RidepoolError, ridepool_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(
        RequestValidationError, request_validation_error_handler  # type: ignore[arg-type]
    )
    app.add_exception_handler(Exception, unhandled_error_handler)
