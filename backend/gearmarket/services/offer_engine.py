"""
Offer negotiation engine.

WHAT: Lifecycle of a buyer/seller negotiation over one listing
WHY: Central place for the offer state machine and its side effects
HOW: Each operation opens a unit of work, applies one transition to the
     offer (plus listing and sibling offers on acceptance), queues
     conversation notifications, and returns the updated offer

States: pending -> {accepted, declined, countered, withdrawn, expired};
countered -> {accepted, declined, withdrawn}. Everything else is terminal.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy.orm import sessionmaker

from ..core.config import settings
from ..core.context import NegotiationContext, unit_of_work
from ..core.models import (
    ListingStatus, Offer, OfferAction, OfferHistoryEntry, OfferStatus,
    ACTIVE_OFFER_STATUSES,
)
from . import offer_rules as rules
from .notifications import Notification, NotificationSink
from ..utils.exceptions import (
    ForbiddenError, InvalidStateError, NotFoundError, RateLimitedError, ValidationFailedError,
)
from ..utils.logger import get_logger
from ..utils.time import Clock, utcnow

logger = get_logger(__name__)


@dataclass
class OfferCreation:
    """Result of create_offer."""
    offer: Offer
    auto_response: Optional[str] = None


@dataclass
class ReceivedOffers:
    """Seller's received-offers view with per-status counts."""
    offers: List[Offer]
    stats: Dict[str, int] = field(default_factory=dict)


def _money(amount: float) -> str:
    return f"${amount:g}"


class OfferNegotiationEngine:
    """
    Offer state machine over injected store handles.

    Args:
        session_factory: SQLAlchemy session factory for the marketplace database
        notifier: Sink that receives queued notifications after each commit
        clock: Returns naive UTC "now"; injectable for tests
        expiry_hours: Offer validity window, also applied after a counter
        cooldown_hours: Minimum wait between a buyer's active offers on one listing
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        notifier: Optional[NotificationSink] = None,
        clock: Clock = utcnow,
        expiry_hours: int = settings.OFFER_EXPIRY_HOURS,
        cooldown_hours: int = settings.OFFER_COOLDOWN_HOURS,
    ):
        self.session_factory = session_factory
        self.notifier = notifier
        self.clock = clock
        self.expiry_hours = expiry_hours
        self.cooldown_hours = cooldown_hours

    def _unit_of_work(self):
        return unit_of_work(self.session_factory, self.clock(), self.notifier)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _load_offer(ctx: NegotiationContext, offer_id: str) -> Offer:
        offer = ctx.offers.get_with_history(offer_id)
        if offer is None:
            raise NotFoundError("Offer", offer_id)
        return offer

    @staticmethod
    def _record(
        ctx: NegotiationContext,
        offer: Offer,
        action: OfferAction,
        actor_id: Optional[str],
        amount: Optional[float] = None,
        message: Optional[str] = None,
    ):
        offer.history.append(OfferHistoryEntry(
            action=action,
            amount=offer.offer_amount if amount is None else amount,
            message=message,
            actor_id=actor_id,
            timestamp=ctx.now,
        ))

    @staticmethod
    def _require_seller(offer: Offer, actor_id: str):
        if offer.seller_id != actor_id:
            raise ForbiddenError(details={"offer_id": offer.id})

    @staticmethod
    def _require_buyer(offer: Offer, actor_id: str):
        if offer.buyer_id != actor_id:
            raise ForbiddenError(details={"offer_id": offer.id})

    def _transition(
        self,
        ctx: NegotiationContext,
        offer: Offer,
        status: OfferStatus,
        actor_id: Optional[str],
        amount: Optional[float] = None,
        message: Optional[str] = None,
    ):
        previous = offer.status
        offer.status = status
        if status == OfferStatus.ACCEPTED:
            offer.accepted_at = ctx.now
        elif status == OfferStatus.DECLINED:
            offer.declined_at = ctx.now
        self._record(ctx, offer, OfferAction(status.value), actor_id, amount, message)
        logger.info(f"Offer {offer.id}: {previous.value} -> {status.value} (actor={actor_id})")

    def _complete_sale(self, ctx: NegotiationContext, offer: Offer, price: float):
        """
        Mark the listing sold and decline every other pending offer on it.

        Runs inside the caller's unit of work so the offer, listing and
        sibling writes commit together.
        """
        if not ctx.listings.mark_sold(offer.listing_id, offer.buyer_id, price, ctx.now):
            raise InvalidStateError("Listing is no longer available")

        siblings = ctx.offers.pending_for_listing(offer.listing_id, except_offer_id=offer.id)
        for sibling in siblings:
            self._transition(ctx, sibling, OfferStatus.DECLINED, offer.seller_id,
                             message="Listing sold to another buyer")
        if siblings:
            logger.info(f"Declined {len(siblings)} other pending offers on listing {offer.listing_id}")

    def _expire(self, ctx: NegotiationContext, offer: Offer):
        self._transition(ctx, offer, OfferStatus.EXPIRED, None)
        ctx.outbox.notify(Notification(
            sender_id=offer.seller_id,
            receiver_id=offer.buyer_id,
            listing_id=offer.listing_id,
            text=f"Your offer of {_money(offer.offer_amount)} has expired.",
            offer_id=offer.id,
            amount=offer.offer_amount,
            action=OfferAction.EXPIRED.value,
        ))

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create_offer(
        self,
        listing_id: str,
        buyer_id: str,
        offer_amount: float,
        message: Optional[str] = None,
    ) -> OfferCreation:
        """
        Create an offer and evaluate the listing's auto-response thresholds.

        WHAT: Validate listing policy, snapshot thresholds, auto accept/decline
        WHY: Buyer never observes a transient pending state when a threshold applies
        HOW: Auto-response is decided before any notification is queued

        Raises:
            ValidationFailedError: non-positive or non-finite amount
            NotFoundError: listing missing
            InvalidStateError: listing unavailable or not accepting offers
            ForbiddenError: buyer owns the listing
            RateLimitedError: active offer younger than the cooldown
        """
        if not rules.is_valid_amount(offer_amount):
            raise ValidationFailedError(
                "Offer amount must be greater than zero",
                field_errors=[{"field": "offer_amount", "error": "must be a finite number > 0"}]
            )

        with self._unit_of_work() as ctx:
            listing = ctx.listings.get(listing_id)
            if listing is None:
                raise NotFoundError("Listing", listing_id)
            if listing.status != ListingStatus.AVAILABLE:
                raise InvalidStateError("Listing is no longer available", listing.status.value)
            if not listing.accepts_offers:
                raise InvalidStateError("This listing does not accept offers")
            if listing.seller_id == buyer_id:
                raise ForbiddenError("You cannot make an offer on your own listing")

            existing = ctx.offers.find_active(listing_id, buyer_id)
            if existing is not None:
                wait_hours = rules.remaining_cooldown_hours(existing.created_at, ctx.now, self.cooldown_hours)
                if wait_hours > 0:
                    raise RateLimitedError(wait_hours)
                self._transition(ctx, existing, OfferStatus.WITHDRAWN, buyer_id,
                                 message="Superseded by a new offer")

            offer = Offer(
                listing_id=listing.id,
                buyer_id=buyer_id,
                seller_id=listing.seller_id,
                offer_amount=offer_amount,
                original_price=listing.price,
                message=message,
                auto_accept_price=listing.auto_accept_price,
                minimum_offer=listing.minimum_offer,
                status=OfferStatus.PENDING,
                expires_at=rules.expiry_from(ctx.now, self.expiry_hours),
                created_at=ctx.now,
                updated_at=ctx.now,
            )
            offer.history = []
            self._record(ctx, offer, OfferAction.CREATED, buyer_id, message=message)
            ctx.offers.add(offer)

            auto_response = rules.check_auto_response(offer)

            if auto_response == rules.AUTO_ACCEPT:
                self._transition(ctx, offer, OfferStatus.ACCEPTED, listing.seller_id,
                                 message="Automatically accepted")
                self._complete_sale(ctx, offer, offer.offer_amount)
                ctx.outbox.notify(Notification(
                    sender_id=listing.seller_id,
                    receiver_id=buyer_id,
                    listing_id=listing.id,
                    text=(
                        f"Great news! Your offer of {_money(offer_amount)} has been automatically "
                        f"accepted. Please proceed with payment."
                    ),
                    offer_id=offer.id,
                    amount=offer_amount,
                    action=OfferAction.ACCEPTED.value,
                    sale_price=offer_amount,
                ))
                ctx.outbox.notify(Notification(
                    sender_id=buyer_id,
                    receiver_id=listing.seller_id,
                    listing_id=listing.id,
                    text=(
                        f"{listing.title} sold for {_money(offer_amount)}: the offer met your "
                        f"auto-accept price of {_money(listing.auto_accept_price)}."
                    ),
                    offer_id=offer.id,
                    amount=offer_amount,
                    action=OfferAction.ACCEPTED.value,
                    sale_price=offer_amount,
                ))
            elif auto_response == rules.AUTO_DECLINE:
                self._transition(ctx, offer, OfferStatus.DECLINED, listing.seller_id,
                                 message="Below minimum offer")
                ctx.outbox.notify(Notification(
                    sender_id=listing.seller_id,
                    receiver_id=buyer_id,
                    listing_id=listing.id,
                    text=f"Your offer of {_money(offer_amount)} is below the minimum acceptable price for this item.",
                    offer_id=offer.id,
                    amount=offer_amount,
                    action=OfferAction.DECLINED.value,
                ))
            else:
                ctx.outbox.notify(Notification(
                    sender_id=buyer_id,
                    receiver_id=listing.seller_id,
                    listing_id=listing.id,
                    text=message or f"Offer of {_money(offer_amount)} for {listing.title}",
                    offer_id=offer.id,
                    amount=offer_amount,
                    action=OfferAction.CREATED.value,
                ))

            ctx.offers.flush()
            logger.info(
                f"Created offer {offer.id} on listing {listing.id} by {buyer_id} "
                f"for {_money(offer_amount)} (auto_response={auto_response})"
            )

        return OfferCreation(offer=offer, auto_response=auto_response)

    def get_offer(self, offer_id: str, actor_id: str) -> Offer:
        """Fetch an offer visible to its buyer or seller."""
        with self._unit_of_work() as ctx:
            offer = self._load_offer(ctx, offer_id)
            if actor_id not in (offer.buyer_id, offer.seller_id):
                raise ForbiddenError(details={"offer_id": offer_id})
        return offer

    def list_received(
        self,
        seller_id: str,
        status: Optional[OfferStatus] = None,
        listing_id: Optional[str] = None,
    ) -> ReceivedOffers:
        """
        Seller's offers, newest first. Stale pending offers are expired on read.

        The status filter applies after lazy expiry, so offers that expired
        during this read are not reported as pending.
        """
        with self._unit_of_work() as ctx:
            offers = ctx.offers.list_for_seller(seller_id, status=status, listing_id=listing_id)
            for offer in offers:
                if rules.is_expired(offer, ctx.now):
                    self._expire(ctx, offer)
            ctx.offers.flush()

        if status is not None:
            offers = [o for o in offers if o.status == status]

        stats = {
            key.value: sum(1 for o in offers if o.status == key)
            for key in (OfferStatus.PENDING, OfferStatus.ACCEPTED, OfferStatus.DECLINED, OfferStatus.EXPIRED)
        }
        return ReceivedOffers(offers=offers, stats=stats)

    def list_sent(self, buyer_id: str, status: Optional[OfferStatus] = None) -> List[Offer]:
        with self._unit_of_work() as ctx:
            return ctx.offers.list_for_buyer(buyer_id, status=status)

    def accept(self, offer_id: str, actor_id: str) -> Offer:
        """
        Seller accepts a pending offer.

        An offer found past its deadline is expired (and that is committed)
        before the request is rejected.
        """
        expired = False
        with self._unit_of_work() as ctx:
            offer = self._load_offer(ctx, offer_id)
            self._require_seller(offer, actor_id)
            if offer.status != OfferStatus.PENDING:
                raise InvalidStateError("Offer is no longer pending", offer.status.value)

            if rules.is_expired(offer, ctx.now):
                self._expire(ctx, offer)
                expired = True
            else:
                self._transition(ctx, offer, OfferStatus.ACCEPTED, actor_id)
                self._complete_sale(ctx, offer, offer.offer_amount)
                ctx.outbox.notify(Notification(
                    sender_id=offer.seller_id,
                    receiver_id=offer.buyer_id,
                    listing_id=offer.listing_id,
                    text=(
                        f"Congratulations! Your offer of {_money(offer.offer_amount)} has been accepted. "
                        f"Please proceed with payment to complete the purchase."
                    ),
                    offer_id=offer.id,
                    amount=offer.offer_amount,
                    action=OfferAction.ACCEPTED.value,
                    sale_price=offer.offer_amount,
                ))
            ctx.offers.flush()

        if expired:
            raise InvalidStateError("Offer has expired", OfferStatus.EXPIRED.value)
        return offer

    def decline(self, offer_id: str, actor_id: str, reason: Optional[str] = None) -> Offer:
        with self._unit_of_work() as ctx:
            offer = self._load_offer(ctx, offer_id)
            self._require_seller(offer, actor_id)
            if offer.status != OfferStatus.PENDING:
                raise InvalidStateError("Offer is no longer pending", offer.status.value)

            self._transition(ctx, offer, OfferStatus.DECLINED, actor_id, message=reason)
            ctx.outbox.notify(Notification(
                sender_id=offer.seller_id,
                receiver_id=offer.buyer_id,
                listing_id=offer.listing_id,
                text=reason or f"Your offer of {_money(offer.offer_amount)} has been declined.",
                offer_id=offer.id,
                amount=offer.offer_amount,
                action=OfferAction.DECLINED.value,
            ))
            ctx.offers.flush()
        return offer

    def counter(
        self,
        offer_id: str,
        actor_id: str,
        counter_amount: float,
        counter_message: Optional[str] = None,
    ) -> Offer:
        """
        Seller proposes a different price.

        The counter must sit strictly above the buyer's offer and at or below
        the snapshotted listing price. The offer's deadline restarts.
        """
        with self._unit_of_work() as ctx:
            offer = self._load_offer(ctx, offer_id)
            self._require_seller(offer, actor_id)
            if offer.status != OfferStatus.PENDING:
                raise InvalidStateError("Offer is no longer pending", offer.status.value)

            error = rules.counter_amount_error(offer, counter_amount)
            if error:
                raise ValidationFailedError(error, field_errors=[{"field": "counter_amount", "error": error}])

            offer.counter_amount = counter_amount
            offer.counter_message = counter_message
            offer.countered_at = ctx.now
            offer.expires_at = rules.expiry_from(ctx.now, self.expiry_hours)
            self._transition(ctx, offer, OfferStatus.COUNTERED, actor_id,
                             amount=counter_amount, message=counter_message)
            ctx.outbox.notify(Notification(
                sender_id=offer.seller_id,
                receiver_id=offer.buyer_id,
                listing_id=offer.listing_id,
                text=f"Counter offer: {_money(counter_amount)}. {counter_message or ''}".strip(),
                offer_id=offer.id,
                amount=counter_amount,
                action=OfferAction.COUNTERED.value,
            ))
            ctx.offers.flush()
        return offer

    def withdraw(self, offer_id: str, actor_id: str) -> Offer:
        with self._unit_of_work() as ctx:
            offer = self._load_offer(ctx, offer_id)
            self._require_buyer(offer, actor_id)
            if offer.status not in ACTIVE_OFFER_STATUSES:
                raise InvalidStateError("Offer cannot be withdrawn", offer.status.value)

            self._transition(ctx, offer, OfferStatus.WITHDRAWN, actor_id)
            ctx.offers.flush()
        return offer

    def respond_to_counter(self, offer_id: str, actor_id: str, accept: bool) -> Offer:
        """Buyer accepts (the counter becomes the sale price) or declines a counter-offer."""
        with self._unit_of_work() as ctx:
            offer = self._load_offer(ctx, offer_id)
            self._require_buyer(offer, actor_id)
            if offer.status != OfferStatus.COUNTERED:
                raise InvalidStateError("No counter offer to respond to", offer.status.value)

            if accept:
                price = offer.counter_amount
                offer.offer_amount = price
                self._transition(ctx, offer, OfferStatus.ACCEPTED, actor_id, amount=price)
                self._complete_sale(ctx, offer, price)
                ctx.outbox.notify(Notification(
                    sender_id=offer.buyer_id,
                    receiver_id=offer.seller_id,
                    listing_id=offer.listing_id,
                    text=f"Counter offer of {_money(price)} accepted! Ready to proceed with payment.",
                    offer_id=offer.id,
                    amount=price,
                    action=OfferAction.ACCEPTED.value,
                    sale_price=price,
                ))
            else:
                self._transition(ctx, offer, OfferStatus.DECLINED, actor_id,
                                 amount=offer.counter_amount)
            ctx.offers.flush()
        return offer

    def sweep_expired(self, limit: Optional[int] = None) -> int:
        """
        Expire every pending offer past its deadline.

        Safe to run repeatedly: offers already expired are not selected again.

        Returns:
            Number of offers expired by this sweep
        """
        with self._unit_of_work() as ctx:
            stale = ctx.offers.expired_pending(ctx.now, limit=limit)
            for offer in stale:
                self._expire(ctx, offer)
            ctx.offers.flush()

        if stale:
            logger.info(f"Expiration sweep expired {len(stale)} offers")
        return len(stale)

    def offer_stats(self, user_id: str) -> dict:
        """Per-status aggregates of the user's offers as seller and as buyer."""
        with self._unit_of_work() as ctx:
            seller_rows = ctx.offers.stats_as_seller(user_id)
            buyer_rows = ctx.offers.stats_as_buyer(user_id)

        return {
            "as_seller": [
                {
                    "status": status.value,
                    "count": count,
                    "total_value": total or 0.0,
                    "avg_offer": avg_offer,
                    "avg_percentage": avg_pct,
                }
                for status, count, total, avg_offer, avg_pct in seller_rows
            ],
            "as_buyer": [
                {"status": status.value, "count": count, "total_value": total or 0.0}
                for status, count, total in buyer_rows
            ],
        }
