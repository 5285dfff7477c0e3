"""
Unit tests for domain error mapping.

WHAT: Test error codes, messages and HTTP status mapping
WHY: Clients branch on status code and error code
HOW: Instantiate each MarketplaceError subclass directly
"""

import pytest

from gearmarket.middleware.error_handler import status_code_for
from gearmarket.utils.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    MarketplaceError,
    NotFoundError,
    RateLimitedError,
    UpstreamFailureError,
    ValidationFailedError,
)


@pytest.mark.unit
@pytest.mark.parametrize("error, status_code, code", [
    (NotFoundError("Offer", "o1"), 404, "NOT_FOUND"),
    (ForbiddenError(), 403, "FORBIDDEN"),
    (InvalidStateError("Offer is no longer pending", "declined"), 400, "INVALID_STATE"),
    (ValidationFailedError("bad amount"), 400, "VALIDATION_FAILED"),
    (RateLimitedError(3), 429, "RATE_LIMITED"),
    (ConflictError(), 409, "CONFLICT"),
    (UpstreamFailureError(), 503, "UPSTREAM_FAILURE"),
    (MarketplaceError("generic"), 400, "MARKETPLACE_ERROR"),
])
def test_status_code_mapping(error, status_code, code):
    assert status_code_for(error) == status_code
    assert error.code == code


@pytest.mark.unit
def test_not_found_details():
    error = NotFoundError("Listing", "abc")
    assert error.message == "Listing not found"
    assert error.details == {"resource": "listing", "id": "abc"}


@pytest.mark.unit
def test_invalid_state_carries_current_status():
    assert InvalidStateError("nope", "accepted").details == {"current_status": "accepted"}
    assert InvalidStateError("nope").details is None


@pytest.mark.unit
def test_rate_limited_message():
    error = RateLimitedError(5)
    assert error.message == "Please wait 5 more hours before making another offer"
    assert error.wait_hours == 5
