"""
Schema and constraint tests.

WHAT: Test CHECK constraints, unique constraints, foreign keys and cascades
WHY: Ensure data integrity at database level
HOW: Insert invalid data and verify IntegrityError is raised
"""

import pytest
from datetime import datetime, timedelta
from sqlalchemy.exc import IntegrityError

from gearmarket.core.models import (
    Conversation, Listing, Offer, OfferAction, OfferHistoryEntry, OfferStatus,
)

NOW = datetime(2024, 5, 1, 12, 0, 0)


@pytest.fixture
def db_session(session_factory):
    """Plain session over the per-test in-memory database."""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def listing(db_session):
    listing = Listing(seller_id="seller_1", title="DMM chalk bag", price=25.0, accepts_offers=True)
    db_session.add(listing)
    db_session.commit()
    return listing


def new_offer(listing, **overrides):
    fields = dict(
        listing_id=listing.id,
        buyer_id="buyer_1",
        seller_id=listing.seller_id,
        offer_amount=20.0,
        original_price=listing.price,
        status=OfferStatus.PENDING,
        expires_at=NOW + timedelta(hours=48),
    )
    fields.update(overrides)
    return Offer(**fields)


@pytest.mark.unit
class TestListingConstraints:

    def test_minimum_offer_must_be_below_price(self, db_session):
        db_session.add(Listing(seller_id="s", title="Rope", price=100.0, minimum_offer=100.0))
        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_auto_accept_cannot_exceed_price(self, db_session):
        db_session.add(Listing(seller_id="s", title="Rope", price=100.0, auto_accept_price=101.0))
        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_defaults(self, listing):
        assert listing.status.value == "available"
        assert listing.sold_to is None
        assert len(listing.id) == 36


@pytest.mark.unit
class TestOfferConstraints:

    def test_offer_amount_must_be_positive(self, db_session, listing):
        db_session.add(new_offer(listing, offer_amount=0))
        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_offer_requires_existing_listing(self, db_session):
        db_session.add(Offer(
            listing_id="missing", buyer_id="b", seller_id="s", offer_amount=10.0,
            original_price=20.0, status=OfferStatus.PENDING, expires_at=NOW,
        ))
        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_version_increments_on_update(self, db_session, listing):
        offer = new_offer(listing)
        db_session.add(offer)
        db_session.commit()
        assert offer.version == 1

        offer.status = OfferStatus.DECLINED
        db_session.commit()
        assert offer.version == 2

    def test_history_is_ordered_and_cascades(self, db_session, listing):
        offer = new_offer(listing)
        offer.history = [
            OfferHistoryEntry(action=OfferAction.CREATED, amount=20.0, actor_id="buyer_1", timestamp=NOW),
            OfferHistoryEntry(action=OfferAction.DECLINED, amount=20.0, actor_id="seller_1", timestamp=NOW),
        ]
        db_session.add(offer)
        db_session.commit()

        db_session.refresh(offer)
        assert [h.action for h in offer.history] == [OfferAction.CREATED, OfferAction.DECLINED]

        db_session.delete(offer)
        db_session.commit()
        assert db_session.query(OfferHistoryEntry).count() == 0

    def test_counter_offer_view(self, listing):
        offer = new_offer(listing)
        assert offer.counter_offer is None

        offer.counter_amount = 22.0
        offer.counter_message = "22 and it's yours"
        offer.countered_at = NOW
        assert offer.counter_offer == {"amount": 22.0, "message": "22 and it's yours", "created_at": NOW}


@pytest.mark.unit
class TestConversationConstraints:

    def test_one_conversation_per_pair_and_listing(self, db_session, listing):
        db_session.add(Conversation(listing_id=listing.id, participant_a="a", participant_b="b"))
        db_session.commit()

        db_session.add(Conversation(listing_id=listing.id, participant_a="a", participant_b="b"))
        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_unread_for_defaults_to_zero(self, db_session, listing):
        conversation = Conversation(listing_id=listing.id, participant_a="a", participant_b="b")
        db_session.add(conversation)
        db_session.commit()

        assert conversation.unread_counts == {}
        assert conversation.unread_for("a") == 0
