"""Request validation and HTTP error rendering."""

from logging import getLogger
from typing import cast

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.status import HTTP_400_BAD_REQUEST

from app.configs import file_logger
from app.errors.base import error_body
from app.utils.helpers import host

logger = file_logger(getLogger(__name__))


async def validation_exception_handler(
    request: Request,
    exc: Exception,
) -> ORJSONResponse:
    """
    Handle request validation errors with the standard error envelope.

    Args:
        request: The incoming request.
        exc: The RequestValidationError exception.

    Returns:
        ORJSONResponse with formatted validation errors.
    """
    validation_error = cast(RequestValidationError, exc)

    formatted_errors = [
        {
            "field": ".".join(str(loc) for loc in error.get("loc", [])[1:]),  # Skip 'body'
            "message": error.get("msg", "Invalid value"),
            "type": error.get("type", "validation_error"),
        }
        for error in validation_error.errors()
    ]

    logger.warning(
        f"Validation error for ip: {host(request)} for endpoint {request.url.path}: "
        f"{len(formatted_errors)} error(s)",
    )
    return ORJSONResponse(
        status_code=HTTP_400_BAD_REQUEST,
        content=error_body("Validation error", errors=formatted_errors),
    )


async def http_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    """Render ``HTTPException`` in the standard error envelope."""
    http_exc = cast(StarletteHTTPException, exc)
    return ORJSONResponse(
        status_code=http_exc.status_code,
        content=error_body(str(http_exc.detail)),
        headers=http_exc.headers,
    )
