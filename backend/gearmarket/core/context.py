"""
Negotiation context and unit of work.

WHAT: Store handles for one engine operation, committed together
WHY: Offer, listing and sibling-offer writes must commit or fail as one
HOW: One session per operation; database errors are translated to domain
     errors and queued notifications are delivered only after commit
"""

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from .database import session_scope
from .repositories import ListingRepository, OfferRepository, ConversationRepository
from ..services.notifications import NotificationSink, Outbox
from ..utils.exceptions import ConflictError, UpstreamFailureError
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class NegotiationContext:
    """Everything an engine transition may touch."""
    listings: ListingRepository
    offers: OfferRepository
    conversations: ConversationRepository
    outbox: Outbox
    now: datetime


@contextmanager
def unit_of_work(
    session_factory: sessionmaker,
    now: datetime,
    notifier: Optional[NotificationSink] = None,
) -> Iterator[NegotiationContext]:
    """
    Run one engine operation in a single transaction.

    Raises:
        ConflictError: a concurrent request updated the same offer first
        UpstreamFailureError: the database rejected or failed the write
    """
    outbox = Outbox()
    try:
        with session_scope(session_factory) as db:
            yield NegotiationContext(
                listings=ListingRepository(db),
                offers=OfferRepository(db),
                conversations=ConversationRepository(db),
                outbox=outbox,
                now=now,
            )
    except StaleDataError as e:
        logger.warning(f"Concurrent modification detected: {e}")
        raise ConflictError() from e
    except SQLAlchemyError as e:
        logger.error(f"Database error during negotiation operation: {e}", exc_info=True)
        raise UpstreamFailureError() from e

    pending = outbox.drain()
    if pending and notifier is not None:
        notifier.deliver(pending)
