"""
ORM models for marketplace persistence.

WHAT: SQLAlchemy models for listings, offers, offer history, conversations, messages
WHY: Persist the negotiation lifecycle and the conversations that narrate it
HOW: Declarative models with proper constraints, relationships, and indexes
"""

from uuid import uuid4
from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime, Text, JSON,
    ForeignKey, CheckConstraint, UniqueConstraint, Index, Enum as SQLEnum
)
from sqlalchemy.ext.mutable import MutableDict
from sqlalchemy.orm import relationship
import enum

from .database import Base
from ..utils.time import utcnow


def _new_id() -> str:
    return str(uuid4())


# Enums for status fields
class ListingStatus(str, enum.Enum):
    """Listing status values."""
    AVAILABLE = "available"
    PENDING = "pending"
    SOLD = "sold"
    INACTIVE = "inactive"
    REMOVED = "removed"


class OfferStatus(str, enum.Enum):
    """Offer negotiation states."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    COUNTERED = "countered"
    EXPIRED = "expired"
    WITHDRAWN = "withdrawn"


class OfferAction(str, enum.Enum):
    """Actions recorded in an offer's history."""
    CREATED = "created"
    COUNTERED = "countered"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"
    WITHDRAWN = "withdrawn"


class ConversationStatus(str, enum.Enum):
    """Conversation status values."""
    ACTIVE = "active"
    ARCHIVED = "archived"
    BLOCKED = "blocked"


ACTIVE_OFFER_STATUSES = (OfferStatus.PENDING, OfferStatus.COUNTERED)


class Listing(Base):
    """
    Listing table - an item for sale.

    WHAT: Price, offer policy and sale information for one piece of gear
    WHY: Offers snapshot its thresholds and mark it sold on acceptance
    HOW: Threshold CHECKs mirror the listing form rules
    """
    __tablename__ = "listings"

    id = Column(String(36), primary_key=True, default=_new_id)
    seller_id = Column(String(100), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    brand = Column(String(50), nullable=True)
    size = Column(String(20), nullable=True)
    condition = Column(String(30), nullable=True)
    price = Column(Float, nullable=False)
    accepts_offers = Column(Boolean, nullable=False, default=False)
    minimum_offer = Column(Float, nullable=True)
    auto_accept_price = Column(Float, nullable=True)
    status = Column(SQLEnum(ListingStatus), nullable=False, default=ListingStatus.AVAILABLE)
    sold_to = Column(String(100), nullable=True)
    sold_price = Column(Float, nullable=True)
    sold_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    offers = relationship("Offer", back_populates="listing")

    # Constraints
    __table_args__ = (
        CheckConstraint("price >= 0", name="check_listing_price_non_negative"),
        CheckConstraint(
            "minimum_offer IS NULL OR minimum_offer < price",
            name="check_minimum_offer_below_price"
        ),
        CheckConstraint(
            "auto_accept_price IS NULL OR auto_accept_price <= price",
            name="check_auto_accept_not_above_price"
        ),
        Index("idx_listing_seller_status", "seller_id", "status"),
    )

    def __repr__(self):
        return f"<Listing(id={self.id}, title={self.title}, price=${self.price}, status={self.status})>"


class Offer(Base):
    """
    Offer table - a buyer's proposed price for a listing.

    WHAT: One negotiation between one buyer and one seller over one listing
    WHY: Track the state machine, snapshotted thresholds and counter-offer
    HOW: version column gives optimistic concurrency on every UPDATE
    """
    __tablename__ = "offers"

    id = Column(String(36), primary_key=True, default=_new_id)
    listing_id = Column(String(36), ForeignKey("listings.id"), nullable=False)
    buyer_id = Column(String(100), nullable=False)
    seller_id = Column(String(100), nullable=False)
    offer_amount = Column(Float, nullable=False)
    original_price = Column(Float, nullable=False)
    message = Column(String(500), nullable=True)
    status = Column(SQLEnum(OfferStatus), nullable=False, default=OfferStatus.PENDING)

    # Thresholds copied from the listing when the offer was made
    auto_accept_price = Column(Float, nullable=True)
    minimum_offer = Column(Float, nullable=True)

    counter_amount = Column(Float, nullable=True)
    counter_message = Column(String(500), nullable=True)
    countered_at = Column(DateTime, nullable=True)

    expires_at = Column(DateTime, nullable=False)
    accepted_at = Column(DateTime, nullable=True)
    declined_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    version = Column(Integer, nullable=False)

    # Relationships
    listing = relationship("Listing", back_populates="offers")
    history = relationship(
        "OfferHistoryEntry",
        back_populates="offer",
        order_by="OfferHistoryEntry.id",
        cascade="all, delete-orphan"
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("offer_amount > 0", name="check_offer_amount_positive"),
        Index("idx_offer_listing_status", "listing_id", "status"),
        Index("idx_offer_buyer_status", "buyer_id", "status"),
        Index("idx_offer_seller_status", "seller_id", "status"),
        Index("idx_offer_expires_at", "expires_at"),
    )

    @property
    def counter_offer(self):
        """Counter-offer as a dict, or None if the seller never countered."""
        if self.counter_amount is None:
            return None
        return {
            "amount": self.counter_amount,
            "message": self.counter_message,
            "created_at": self.countered_at,
        }

    def __repr__(self):
        return f"<Offer(id={self.id}, amount=${self.offer_amount}, status={self.status})>"


class OfferHistoryEntry(Base):
    """
    OfferHistoryEntry table - append-only negotiation narrative.

    WHAT: One row per status transition of an offer
    WHY: Display and audit the full negotiation
    HOW: Ordered by autoincrement id under the parent offer
    """
    __tablename__ = "offer_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    offer_id = Column(String(36), ForeignKey("offers.id", ondelete="CASCADE"), nullable=False)
    action = Column(SQLEnum(OfferAction), nullable=False)
    amount = Column(Float, nullable=True)
    message = Column(String(1000), nullable=True)
    actor_id = Column(String(100), nullable=True)
    timestamp = Column(DateTime, nullable=False, default=utcnow)

    offer = relationship("Offer", back_populates="history")

    def __repr__(self):
        return f"<OfferHistoryEntry(offer={self.offer_id}, action={self.action}, amount={self.amount})>"


class Conversation(Base):
    """
    Conversation table - messages between two users about one listing.

    WHAT: Buyer/seller thread with per-participant unread counters
    WHY: Negotiation transitions are announced here
    HOW: Participants stored sorted so lookups are order independent
    """
    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, default=_new_id)
    listing_id = Column(String(36), ForeignKey("listings.id"), nullable=False)
    participant_a = Column(String(100), nullable=False)
    participant_b = Column(String(100), nullable=False)
    last_message_at = Column(DateTime, nullable=True)
    unread_counts = Column(MutableDict.as_mutable(JSON), nullable=False, default=dict)
    status = Column(SQLEnum(ConversationStatus), nullable=False, default=ConversationStatus.ACTIVE)
    resulted_in_sale = Column(Boolean, nullable=False, default=False)
    sale_price = Column(Float, nullable=True)
    sold_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    messages = relationship(
        "Message",
        back_populates="conversation",
        order_by="Message.created_at",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("listing_id", "participant_a", "participant_b", name="unique_conversation"),
        Index("idx_conversation_last_message", "last_message_at"),
    )

    @property
    def participants(self) -> list:
        return [self.participant_a, self.participant_b]

    def unread_for(self, user_id: str) -> int:
        return self.unread_counts.get(user_id, 0)

    def __repr__(self):
        return f"<Conversation(id={self.id}, listing={self.listing_id})>"


class Message(Base):
    """
    Message table - one entry in a conversation.

    WHAT: Text from sender to receiver, optionally describing an offer event
    WHY: Notification sink for negotiation transitions
    HOW: offer_id/offer_amount/offer_action populated for offer messages
    """
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=_new_id)
    conversation_id = Column(String(36), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False)
    sender_id = Column(String(100), nullable=False)
    receiver_id = Column(String(100), nullable=False)
    listing_id = Column(String(36), nullable=True)
    text = Column(String(1000), nullable=False)
    is_offer = Column(Boolean, nullable=False, default=False)
    offer_id = Column(String(36), nullable=True)
    offer_amount = Column(Float, nullable=True)
    offer_action = Column(String(20), nullable=True)
    read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    conversation = relationship("Conversation", back_populates="messages")

    __table_args__ = (
        Index("idx_message_conversation_created", "conversation_id", "created_at"),
        Index("idx_message_receiver_read", "receiver_id", "read"),
    )

    def __repr__(self):
        return f"<Message(id={self.id}, sender={self.sender_id}, offer_action={self.offer_action})>"
