"""
Central API router and exception handlers for the ExamForge backend.

This module provides:
- A central router that includes the attempt and report routers
- Exception handlers that turn PlatformError and request validation errors
  into the standard error envelope
"""

import logging
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from backend.attempts.router import router as attempts_router
from backend.common.error_handling import (
    ErrorSeverity,
    InvalidRequestError,
    PlatformError,
    error_response,
    http_status_for,
    log_error,
)
from backend.reports.router import router as reports_router

# Configure logging
logger = logging.getLogger(__name__)

# Create main API router
main_router = APIRouter()
main_router.include_router(attempts_router, prefix="/assessments", tags=["attempts"])
main_router.include_router(reports_router, prefix="/reports", tags=["reports"])


async def platform_exception_handler(request: Request, exc: PlatformError) -> JSONResponse:
    """
    Map a PlatformError to its HTTP status and the error envelope.

    Client errors are logged at INFO; server-side failures at ERROR with the
    stack trace.
    """
    status_code = http_status_for(exc)
    if status_code >= 500 or exc.severity == ErrorSeverity.CRITICAL:
        log_error(exc, context={"path": request.url.path, "method": request.method})
    else:
        logger.info(f"{request.method} {request.url.path} -> {status_code} {exc.code.value}: {exc.message}")
    return JSONResponse(status_code=status_code, content=error_response(exc))


# Common validation error handler
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle validation errors and return a standardized response.

    Args:
        request: The incoming request
        exc: The validation exception

    Returns:
        A 400 JSON response with error details
    """
    error_details = []
    for error in exc.errors():
        error_details.append({
            "location": list(error.get("loc", [])),
            "message": error.get("msg", "Unknown validation error"),
            "type": error.get("type", "")
        })

    error = InvalidRequestError("Validation error", details={"errors": error_details})
    return JSONResponse(status_code=http_status_for(error), content=error_response(error))
