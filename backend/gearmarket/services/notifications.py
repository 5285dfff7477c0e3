"""
Conversation-backed notification sink.

WHAT: Announce negotiation transitions as conversation messages
WHY: Buyers and sellers follow offers in their shared conversation
HOW: Engine queues notifications in an Outbox during the unit of work;
     ConversationNotifier delivers them after commit in their own transaction
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Protocol

from sqlalchemy.orm import sessionmaker

from ..core.database import session_scope
from ..core.models import Message
from ..core.repositories import ConversationRepository
from ..utils.logger import get_logger
from ..utils.time import utcnow

logger = get_logger(__name__)


@dataclass
class Notification:
    """One message to append to a buyer/seller conversation."""
    sender_id: str
    receiver_id: str
    listing_id: str
    text: str
    offer_id: Optional[str] = None
    amount: Optional[float] = None
    action: Optional[str] = None
    # Set when the notification announces a completed sale
    sale_price: Optional[float] = None
    created_at: Optional[datetime] = None

    @property
    def participants(self) -> List[str]:
        return [self.sender_id, self.receiver_id]


class NotificationSink(Protocol):
    def deliver(self, notifications: List[Notification]) -> int: ...


@dataclass
class Outbox:
    """Notifications queued by one unit of work."""
    items: List[Notification] = field(default_factory=list)

    def notify(self, notification: Notification):
        self.items.append(notification)

    def drain(self) -> List[Notification]:
        items, self.items = self.items, []
        return items


def append_notification(repo: ConversationRepository, notification: Notification) -> Message:
    """
    Append a notification to its conversation.

    WHAT: find-or-create the conversation, add the message, bump unread count
    WHY: Receiver sees a badge until they open the conversation
    HOW: Mutates Conversation.unread_counts (MutableDict) in place
    """
    sent_at = notification.created_at or utcnow()
    conversation = repo.find_or_create(notification.participants, notification.listing_id)

    message = Message(
        conversation_id=conversation.id,
        sender_id=notification.sender_id,
        receiver_id=notification.receiver_id,
        listing_id=notification.listing_id,
        text=notification.text[:1000],
        is_offer=notification.offer_id is not None,
        offer_id=notification.offer_id,
        offer_amount=notification.amount,
        offer_action=notification.action,
        created_at=sent_at,
    )
    repo.add_message(message)

    conversation.last_message_at = sent_at
    conversation.unread_counts[notification.receiver_id] = conversation.unread_for(notification.receiver_id) + 1

    if notification.sale_price is not None:
        conversation.resulted_in_sale = True
        conversation.sale_price = notification.sale_price
        conversation.sold_at = sent_at

    return message


class ConversationNotifier:
    """
    Deliver queued notifications into conversations.

    Each notification is written in its own transaction. Failures are logged
    and swallowed: the negotiation transition that produced them has already
    committed.
    """

    def __init__(self, session_factory: sessionmaker, clock: Callable[[], datetime] = utcnow):
        self.session_factory = session_factory
        self.clock = clock

    def deliver(self, notifications: List[Notification]) -> int:
        delivered = 0
        for notification in notifications:
            if notification.created_at is None:
                notification.created_at = self.clock()
            try:
                with session_scope(self.session_factory) as db:
                    append_notification(ConversationRepository(db), notification)
                delivered += 1
            except Exception as e:
                logger.error(
                    f"Failed to deliver {notification.action or 'message'} notification "
                    f"for offer {notification.offer_id}: {e}",
                    exc_info=True
                )
        return delivered
