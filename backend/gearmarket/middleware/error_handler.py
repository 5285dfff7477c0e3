"""
Global error handling middleware.

WHAT: Translate exceptions to appropriate HTTP responses
WHY: Consistent error responses with proper status codes
HOW: FastAPI exception handlers for custom exceptions
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from datetime import datetime
import math

from ..utils.exceptions import (
    MarketplaceError,
    NotFoundError,
    ForbiddenError,
    InvalidStateError,
    ValidationFailedError,
    RateLimitedError,
    ConflictError,
    UpstreamFailureError,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

STATUS_BY_ERROR = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    InvalidStateError: status.HTTP_400_BAD_REQUEST,
    ValidationFailedError: status.HTTP_400_BAD_REQUEST,
    RateLimitedError: status.HTTP_429_TOO_MANY_REQUESTS,
    ConflictError: status.HTTP_409_CONFLICT,
    UpstreamFailureError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_code_for(exc: MarketplaceError) -> int:
    for error_type, status_code in STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def _printable_input(value):
    # JSON responses reject NaN and Infinity
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    return value


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """
    Handle FastAPI RequestValidationError.

    WHAT: Request validation failed
    WHY: Invalid request payload
    HOW: Return 400 with field errors
    """
    logger.warning(f"Validation error: {exc.errors()}")

    # Clean up error details to be JSON serializable
    cleaned_errors = []
    for error in exc.errors():
        cleaned_error = {
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
            "input": _printable_input(error.get("input"))
        }
        # Convert ctx errors to strings
        if "ctx" in error:
            cleaned_error["ctx"] = {
                k: str(v) if isinstance(v, Exception) else v
                for k, v in error["ctx"].items()
            }
        cleaned_errors.append(cleaned_error)

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "details": jsonable_encoder(cleaned_errors),
            "timestamp": datetime.now().isoformat()
        }
    )


async def marketplace_exception_handler(request: Request, exc: MarketplaceError):
    """
    Handle MarketplaceError and its subclasses.

    WHAT: Domain error raised by the engine or a service
    WHY: Callers get a stable error code and a readable message
    HOW: Map the exception type to a status code, log by severity
    """
    status_code = status_code_for(exc)

    if status_code >= 500:
        logger.error(f"Marketplace error: {exc.code} - {exc.message}")
    else:
        logger.warning(f"Marketplace error: {exc.code} - {exc.message}")

    headers = None
    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(exc.wait_hours * 3600)}

    return JSONResponse(
        status_code=status_code,
        headers=headers,
        content={
            "error": exc.code,
            "message": exc.message,
            "details": exc.details,
            "timestamp": datetime.now().isoformat()
        }
    )


def register_exception_handlers(app):
    """
    Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(MarketplaceError, marketplace_exception_handler)

    logger.info("Exception handlers registered")
