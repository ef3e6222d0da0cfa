"""Exception handlers mapping the error taxonomy to HTTP responses."""

from __future__ import annotations

from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..errors import ServiceError
from ..logging import get_logger


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    logger = get_logger()
    if exc.http_status >= 500:
        logger.log_error(exc, f"{request.method} {request.url.path} failed")
    else:
        logger.debug("Request rejected", path=request.url.path, status=exc.http_status, code=exc.code.value)
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if location:
        message = f"{location}: {message}"
    return JSONResponse(status_code=400, content={"error": "Validation error", "message": message})


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unmatched routes and methods get the same body shape as service errors."""
    try:
        title = HTTPStatus(exc.status_code).phrase
    except ValueError:
        title = "HTTP error"
    content = {"error": title}
    if exc.detail and exc.detail != title:
        content["message"] = str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    get_logger().log_error(exc, f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "message": str(exc)},
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)


__all__ = [
    "install_error_handlers",
    "service_error_handler",
    "http_error_handler",
    "unhandled_error_handler",
]
