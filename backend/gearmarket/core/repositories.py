"""
Repositories over the marketplace tables.

WHAT: One explicit repository per entity, bound to a single session
WHY: The engine receives its store handles instead of reaching for globals
HOW: Thin query wrappers; callers own the transaction
"""

from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from .models import (
    Listing, ListingStatus, Offer, OfferStatus, ACTIVE_OFFER_STATUSES,
    Conversation, Message,
)


class ListingRepository:
    """Listing Store."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, listing_id: str) -> Optional[Listing]:
        return self.db.get(Listing, listing_id)

    def add(self, listing: Listing) -> Listing:
        self.db.add(listing)
        self.db.flush()
        return listing

    def mark_sold(self, listing_id: str, buyer_id: str, price: float, sold_at: datetime) -> bool:
        """
        Conditionally mark a listing sold.

        Only an ``available`` listing is updated, so concurrent acceptances
        leave exactly one sold_to/sold_price pair. Returns False if another
        request got there first or the listing is no longer available.
        """
        result = self.db.execute(
            update(Listing)
            .where(Listing.id == listing_id, Listing.status == ListingStatus.AVAILABLE)
            .values(
                status=ListingStatus.SOLD,
                sold_to=buyer_id,
                sold_price=price,
                sold_at=sold_at,
                updated_at=sold_at,
            )
            .execution_options(synchronize_session=False)
        )
        listing = self.db.get(Listing, listing_id)
        if listing is not None:
            self.db.refresh(listing)
        return result.rowcount == 1


class OfferRepository:
    """Offer persistence and the queries the negotiation engine needs."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, offer_id: str) -> Optional[Offer]:
        return self.db.get(Offer, offer_id)

    def get_with_history(self, offer_id: str) -> Optional[Offer]:
        stmt = select(Offer).options(selectinload(Offer.history)).where(Offer.id == offer_id)
        return self.db.scalars(stmt).first()

    def add(self, offer: Offer) -> Offer:
        self.db.add(offer)
        self.db.flush()
        return offer

    def flush(self):
        self.db.flush()

    def find_active(self, listing_id: str, buyer_id: str) -> Optional[Offer]:
        """Buyer's pending or countered offer on a listing, newest first."""
        stmt = (
            select(Offer)
            .where(
                Offer.listing_id == listing_id,
                Offer.buyer_id == buyer_id,
                Offer.status.in_(ACTIVE_OFFER_STATUSES),
            )
            .order_by(Offer.created_at.desc())
        )
        return self.db.scalars(stmt).first()

    def pending_for_listing(self, listing_id: str, except_offer_id: Optional[str] = None) -> List[Offer]:
        stmt = select(Offer).where(
            Offer.listing_id == listing_id,
            Offer.status == OfferStatus.PENDING,
        )
        if except_offer_id is not None:
            stmt = stmt.where(Offer.id != except_offer_id)
        return list(self.db.scalars(stmt))

    def list_for_seller(
        self,
        seller_id: str,
        status: Optional[OfferStatus] = None,
        listing_id: Optional[str] = None,
    ) -> List[Offer]:
        stmt = (
            select(Offer)
            .options(selectinload(Offer.history), selectinload(Offer.listing))
            .where(Offer.seller_id == seller_id)
        )
        if status is not None:
            stmt = stmt.where(Offer.status == status)
        if listing_id is not None:
            stmt = stmt.where(Offer.listing_id == listing_id)
        return list(self.db.scalars(stmt.order_by(Offer.created_at.desc())))

    def list_for_buyer(self, buyer_id: str, status: Optional[OfferStatus] = None) -> List[Offer]:
        stmt = (
            select(Offer)
            .options(selectinload(Offer.history), selectinload(Offer.listing))
            .where(Offer.buyer_id == buyer_id)
        )
        if status is not None:
            stmt = stmt.where(Offer.status == status)
        return list(self.db.scalars(stmt.order_by(Offer.created_at.desc())))

    def expired_pending(self, now: datetime, limit: Optional[int] = None) -> List[Offer]:
        """Pending offers whose deadline has passed."""
        stmt = (
            select(Offer)
            .where(Offer.status == OfferStatus.PENDING, Offer.expires_at < now)
            .order_by(Offer.expires_at)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.db.scalars(stmt))

    def stats_as_seller(self, seller_id: str) -> Sequence:
        stmt = (
            select(
                Offer.status,
                func.count(Offer.id),
                func.sum(Offer.offer_amount),
                func.avg(Offer.offer_amount),
                func.avg(Offer.offer_amount / Offer.original_price * 100),
            )
            .where(Offer.seller_id == seller_id)
            .group_by(Offer.status)
        )
        return self.db.execute(stmt).all()

    def stats_as_buyer(self, buyer_id: str) -> Sequence:
        stmt = (
            select(Offer.status, func.count(Offer.id), func.sum(Offer.offer_amount))
            .where(Offer.buyer_id == buyer_id)
            .group_by(Offer.status)
        )
        return self.db.execute(stmt).all()


class ConversationRepository:
    """Conversations and their messages."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, conversation_id: str) -> Optional[Conversation]:
        return self.db.get(Conversation, conversation_id)

    def find_or_create(self, participants: Sequence[str], listing_id: str) -> Conversation:
        """Unique conversation for a participant pair and listing, in any order."""
        first, second = sorted(participants)
        stmt = select(Conversation).where(
            Conversation.listing_id == listing_id,
            Conversation.participant_a == first,
            Conversation.participant_b == second,
        )
        conversation = self.db.scalars(stmt).first()
        if conversation is None:
            conversation = Conversation(
                listing_id=listing_id,
                participant_a=first,
                participant_b=second,
                unread_counts={first: 0, second: 0},
            )
            self.db.add(conversation)
            self.db.flush()
        return conversation

    def add_message(self, message: Message) -> Message:
        self.db.add(message)
        self.db.flush()
        return message

    def for_user(self, user_id: str) -> List[Conversation]:
        stmt = (
            select(Conversation)
            .where((Conversation.participant_a == user_id) | (Conversation.participant_b == user_id))
            .order_by(Conversation.last_message_at.desc())
        )
        return list(self.db.scalars(stmt))

    def messages(self, conversation_id: str) -> List[Message]:
        stmt = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at)
        )
        return list(self.db.scalars(stmt))

    def unread_messages_for(self, conversation_id: str, receiver_id: str) -> List[Message]:
        stmt = select(Message).where(
            Message.conversation_id == conversation_id,
            Message.receiver_id == receiver_id,
            Message.read.is_(False),
        )
        return list(self.db.scalars(stmt))
