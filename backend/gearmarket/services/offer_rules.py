"""
Offer rules.

WHAT: Pure business rules for offers (auto-response, expiry, counter bounds, cooldown)
WHY: Keep the state machine's guards testable without a database
HOW: Plain functions over Offer attributes and timestamps
"""

import math
from datetime import datetime, timedelta
from typing import Optional

from ..core.models import Offer, OfferStatus

AUTO_ACCEPT = "accept"
AUTO_DECLINE = "decline"


def check_auto_response(offer: Offer) -> Optional[str]:
    """
    Decide whether a pending offer is answered automatically.

    Auto-accept wins when both thresholds would apply.

    Returns:
        "accept", "decline" or None when the seller must respond manually
    """
    if offer.status != OfferStatus.PENDING:
        return None

    if offer.auto_accept_price is not None and offer.offer_amount >= offer.auto_accept_price:
        return AUTO_ACCEPT

    if offer.minimum_offer is not None and offer.offer_amount < offer.minimum_offer:
        return AUTO_DECLINE

    return None


def is_expired(offer: Offer, now: datetime) -> bool:
    """A pending offer is expired once now is past its deadline."""
    return offer.status == OfferStatus.PENDING and now > offer.expires_at


def is_valid_amount(amount: Optional[float]) -> bool:
    """Money amounts must be finite and greater than zero."""
    return amount is not None and math.isfinite(amount) and amount > 0


def expiry_from(start: datetime, hours: int) -> datetime:
    return start + timedelta(hours=hours)


def counter_amount_error(offer: Offer, counter_amount: float) -> Optional[str]:
    """Reason a counter amount is out of bounds, or None if it is acceptable."""
    if not is_valid_amount(counter_amount):
        return "Counter offer must be a positive amount"
    if counter_amount <= offer.offer_amount:
        return "Counter offer must be higher than the original offer"
    if counter_amount > offer.original_price:
        return "Counter offer cannot exceed the listing price"
    return None


def remaining_cooldown_hours(last_offer_at: datetime, now: datetime, cooldown_hours: int) -> int:
    """
    Whole hours a buyer still has to wait before re-offering, rounded up.

    Returns 0 once the cooldown has elapsed.
    """
    elapsed = (now - last_offer_at).total_seconds() / 3600
    if elapsed >= cooldown_hours:
        return 0
    return math.ceil(cooldown_hours - elapsed)
