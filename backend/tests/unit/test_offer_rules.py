"""
Unit tests for offer rules.

WHAT: Test auto-response, expiry, counter bounds and cooldown helpers
WHY: These guards drive every transition of the state machine
HOW: Build unsaved Offer objects and call the pure functions
"""

import pytest
from datetime import datetime, timedelta

from gearmarket.core.models import Offer, OfferStatus
from gearmarket.services import offer_rules as rules
from gearmarket.services.listing_service import validate_offer_policy
from gearmarket.utils.exceptions import ValidationFailedError

NOW = datetime(2024, 5, 1, 12, 0, 0)


def make_offer(**overrides) -> Offer:
    fields = dict(
        listing_id="l1",
        buyer_id="b1",
        seller_id="s1",
        offer_amount=60.0,
        original_price=100.0,
        status=OfferStatus.PENDING,
        expires_at=NOW + timedelta(hours=48),
    )
    fields.update(overrides)
    return Offer(**fields)


@pytest.mark.unit
class TestCheckAutoResponse:

    def test_accepts_at_or_above_auto_accept_price(self):
        assert rules.check_auto_response(make_offer(offer_amount=95, auto_accept_price=90)) == "accept"
        assert rules.check_auto_response(make_offer(offer_amount=90, auto_accept_price=90)) == "accept"

    def test_declines_below_minimum_offer(self):
        assert rules.check_auto_response(make_offer(offer_amount=40, minimum_offer=50)) == "decline"

    def test_amount_equal_to_minimum_is_not_declined(self):
        assert rules.check_auto_response(make_offer(offer_amount=50, minimum_offer=50)) is None

    def test_no_thresholds_means_manual_review(self):
        assert rules.check_auto_response(make_offer()) is None

    def test_auto_accept_wins_over_minimum(self):
        # Misconfigured thresholds: minimum above auto-accept
        offer = make_offer(offer_amount=85, auto_accept_price=80, minimum_offer=90)
        assert rules.check_auto_response(offer) == "accept"

    def test_only_pending_offers_get_auto_response(self):
        offer = make_offer(offer_amount=95, auto_accept_price=90, status=OfferStatus.DECLINED)
        assert rules.check_auto_response(offer) is None


@pytest.mark.unit
class TestIsExpired:

    def test_not_expired_before_deadline(self):
        offer = make_offer(expires_at=NOW)
        assert not rules.is_expired(offer, NOW)

    def test_expired_after_deadline(self):
        offer = make_offer(expires_at=NOW)
        assert rules.is_expired(offer, NOW + timedelta(seconds=1))

    def test_non_pending_offers_never_expire(self):
        offer = make_offer(expires_at=NOW, status=OfferStatus.COUNTERED)
        assert not rules.is_expired(offer, NOW + timedelta(days=3))


@pytest.mark.unit
@pytest.mark.parametrize("amount, expected", [
    (60.0, "Counter offer must be higher than the original offer"),
    (55.0, "Counter offer must be higher than the original offer"),
    (100.01, "Counter offer cannot exceed the listing price"),
    (100.0, None),
    (60.5, None),
    (float("inf"), "Counter offer must be a positive amount"),
    (float("nan"), "Counter offer must be a positive amount"),
])
def test_counter_amount_bounds(amount, expected):
    assert rules.counter_amount_error(make_offer(offer_amount=60.0), amount) == expected


@pytest.mark.unit
class TestCooldown:

    def test_rounds_remaining_hours_up(self):
        assert rules.remaining_cooldown_hours(NOW, NOW + timedelta(hours=1, minutes=30), 24) == 23

    def test_zero_once_elapsed(self):
        assert rules.remaining_cooldown_hours(NOW, NOW + timedelta(hours=24), 24) == 0
        assert rules.remaining_cooldown_hours(NOW, NOW + timedelta(days=3), 24) == 0

    def test_full_window_right_after_offer(self):
        assert rules.remaining_cooldown_hours(NOW, NOW, 24) == 24


@pytest.mark.unit
@pytest.mark.parametrize("amount, valid", [
    (0.01, True),
    (0, False),
    (-1.0, False),
    (None, False),
    (float("inf"), False),
    (float("-inf"), False),
    (float("nan"), False),
])
def test_is_valid_amount(amount, valid):
    assert rules.is_valid_amount(amount) is valid


@pytest.mark.unit
def test_expiry_from_adds_hours():
    assert rules.expiry_from(NOW, 48) == NOW + timedelta(hours=48)


@pytest.mark.unit
@pytest.mark.parametrize("fields", [
    {"price": float("inf"), "minimum_offer": None, "auto_accept_price": None},
    {"price": 100.0, "minimum_offer": float("nan"), "auto_accept_price": None},
    {"price": 100.0, "minimum_offer": None, "auto_accept_price": float("inf")},
])
def test_listing_policy_rejects_non_finite_amounts(fields):
    with pytest.raises(ValidationFailedError, match="finite"):
        validate_offer_policy(**fields)
