"""
Custom business exceptions for the marketplace API.

WHAT: Domain-specific exceptions that map to HTTP status codes
WHY: Consistent error handling across the engine and API endpoints
HOW: Custom exception classes with stable error codes and messages
"""

from typing import Optional, List, Dict, Any


class MarketplaceError(Exception):
    """Base class for business logic exceptions."""

    code = "MARKETPLACE_ERROR"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(MarketplaceError):
    """Raised when a listing, offer or conversation does not exist."""

    code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            message=f"{resource} not found",
            details={"resource": resource.lower(), "id": resource_id}
        )


class ForbiddenError(MarketplaceError):
    """Raised when the acting user is not the party a transition requires."""

    code = "FORBIDDEN"

    def __init__(self, message: str = "Not authorized", details: Optional[Any] = None):
        super().__init__(message=message, details=details)


class InvalidStateError(MarketplaceError):
    """Raised when a transition is not legal from the current status."""

    code = "INVALID_STATE"

    def __init__(self, message: str, current_status: Optional[str] = None):
        super().__init__(
            message=message,
            details={"current_status": current_status} if current_status else None
        )


class ValidationFailedError(MarketplaceError):
    """Raised for amounts out of bounds or missing required fields."""

    code = "VALIDATION_FAILED"

    def __init__(self, message: str, field_errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(
            message=message,
            details={"field_errors": field_errors} if field_errors else None
        )


class RateLimitedError(MarketplaceError):
    """Raised when a buyer re-offers on a listing inside the cooldown window."""

    code = "RATE_LIMITED"

    def __init__(self, wait_hours: int):
        super().__init__(
            message=f"Please wait {wait_hours} more hours before making another offer",
            details={"retry_after_hours": wait_hours}
        )
        self.wait_hours = wait_hours


class ConflictError(MarketplaceError):
    """Raised when a concurrent request modified the same record first."""

    code = "CONFLICT"

    def __init__(self, message: str = "The record was modified by another request, please retry"):
        super().__init__(message=message)


class UpstreamFailureError(MarketplaceError):
    """Raised when the database or notification store is unavailable."""

    code = "UPSTREAM_FAILURE"

    def __init__(self, message: str = "Storage is temporarily unavailable"):
        super().__init__(message=message)
