"""
Listing service.

WHAT: Create and fetch listings
WHY: Offers need a listing with a price and an offer policy to negotiate over
HOW: Validates threshold rules, then writes through ListingRepository
"""

import math
from typing import Optional

from sqlalchemy.orm import sessionmaker

from ..core.database import session_scope
from ..core.models import Listing
from ..core.repositories import ListingRepository
from ..utils.exceptions import NotFoundError, ValidationFailedError
from ..utils.logger import get_logger

logger = get_logger(__name__)


def validate_offer_policy(price: float, minimum_offer: Optional[float], auto_accept_price: Optional[float]):
    """
    Check a listing's thresholds against its price.

    Raises:
        ValidationFailedError: non-finite amounts, minimum_offer >= price or auto_accept_price > price
    """
    for name, value in (("price", price), ("minimum_offer", minimum_offer), ("auto_accept_price", auto_accept_price)):
        if value is not None and not math.isfinite(value):
            raise ValidationFailedError(
                f"{name} must be a finite number",
                field_errors=[{"field": name, "error": "must be a finite number"}]
            )

    field_errors = []
    if price < 0:
        field_errors.append({"field": "price", "error": "Price cannot be negative"})
    if minimum_offer is not None and minimum_offer >= price:
        field_errors.append({"field": "minimum_offer", "error": "Minimum offer must be less than listing price"})
    if auto_accept_price is not None and auto_accept_price > price:
        field_errors.append({
            "field": "auto_accept_price",
            "error": "Auto-accept price cannot be higher than listing price"
        })
    if field_errors:
        raise ValidationFailedError(field_errors[0]["error"], field_errors=field_errors)


class ListingService:
    """Listing CRUD used by the listings endpoints and tests."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def create_listing(self, seller_id: str, **fields) -> Listing:
        validate_offer_policy(
            fields.get("price", 0),
            fields.get("minimum_offer"),
            fields.get("auto_accept_price"),
        )
        with session_scope(self.session_factory) as db:
            listing = ListingRepository(db).add(Listing(seller_id=seller_id, **fields))
        logger.info(f"Created listing {listing.id} for seller {seller_id} at ${listing.price}")
        return listing

    def get_listing(self, listing_id: str) -> Listing:
        with session_scope(self.session_factory) as db:
            listing = ListingRepository(db).get(listing_id)
            if listing is None:
                raise NotFoundError("Listing", listing_id)
        return listing
