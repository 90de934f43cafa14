"""
Exception handlers that turn errors into the standard error envelope.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from stepper.api.responses import error_content
from stepper.exceptions import (
    StepperError,
    UnauthorizedError,
    ExternalServiceError,
)

logger = logging.getLogger(__name__)

NOT_AUTHENTICATED = "User is not authenticated."
UNAUTHORIZED_ACCESS = "Unauthorized access."
EXTERNAL_SERVICE_ERROR = "An external service error occurred."
UNEXPECTED_ERROR = "An unexpected error occurred."


def _public_message(exc: StepperError) -> str:
    if isinstance(exc, ExternalServiceError):
        return EXTERNAL_SERVICE_ERROR
    if isinstance(exc, UnauthorizedError) and not exc.message:
        return UNAUTHORIZED_ACCESS
    return exc.message or UNEXPECTED_ERROR


async def stepper_exception_handler(request: Request, exc: StepperError) -> JSONResponse:
    message = _public_message(exc)
    if exc.status_code >= 500:
        logger.error(
            f"Handled exception ({exc.status_code}) in {request.method} {request.url.path}: {exc.message}"
        )
    else:
        logger.warning(f"Handled exception ({exc.status_code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=error_content(message))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.warning(f"Handled exception ({exc.status_code}): {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_content(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    logger.warning(f"Handled exception (400): {'; '.join(messages)}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error_content(*messages))


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort for anything the typed handlers did not claim."""
    logger.error(
        f"Unhandled exception in {request.method} {request.url.path}: {exc}",
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_content(UNEXPECTED_ERROR),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers with the FastAPI application."""
    app.add_exception_handler(StepperError, stepper_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    logger.debug("Exception handlers registered successfully")
