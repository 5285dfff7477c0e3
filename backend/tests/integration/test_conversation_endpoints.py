"""
Integration tests for conversation endpoints.

WHAT: Test that offer transitions show up as conversation messages
WHY: Conversations are how buyers and sellers learn about each transition
HOW: Drive offers over HTTP, then read conversations as each participant
"""

import pytest

API = "/api/v1"


def as_user(user_id):
    return {"X-User-Id": user_id}


@pytest.fixture
def negotiation(client, clock):
    """A listing with one countered offer: seller_1 sells, buyer_1 buys."""
    listing = client.post(
        f"{API}/listings",
        json={"title": "Mammut 9.5 rope", "price": 120.0, "accepts_offers": True},
        headers=as_user("seller_1"),
    ).json()
    offer = client.post(
        f"{API}/offers",
        json={"listing_id": listing["id"], "offer_amount": 80.0},
        headers=as_user("buyer_1"),
    ).json()["offer"]
    clock.advance(minutes=5)
    client.put(
        f"{API}/offers/{offer['id']}/counter",
        json={"counter_amount": 100.0},
        headers=as_user("seller_1"),
    )
    return {"listing": listing, "offer": offer}


@pytest.mark.integration
def test_each_party_sees_their_unread_count(client, negotiation):
    seller_view = client.get(f"{API}/conversations", headers=as_user("seller_1")).json()
    buyer_view = client.get(f"{API}/conversations", headers=as_user("buyer_1")).json()

    assert len(seller_view) == 1
    assert seller_view[0]["id"] == buyer_view[0]["id"]
    assert seller_view[0]["participants"] == ["buyer_1", "seller_1"]
    assert seller_view[0]["unread_count"] == 1
    assert buyer_view[0]["unread_count"] == 1


@pytest.mark.integration
def test_messages_in_order(client, negotiation):
    conversation_id = client.get(f"{API}/conversations", headers=as_user("buyer_1")).json()[0]["id"]

    messages = client.get(f"{API}/conversations/{conversation_id}/messages", headers=as_user("buyer_1")).json()

    assert [m["offer_action"] for m in messages] == ["created", "countered"]
    assert messages[1]["offer_amount"] == 100.0
    assert all(m["offer_id"] == negotiation["offer"]["id"] for m in messages)


@pytest.mark.integration
def test_mark_read_resets_only_reader(client, negotiation):
    conversation_id = client.get(f"{API}/conversations", headers=as_user("buyer_1")).json()[0]["id"]

    response = client.put(f"{API}/conversations/{conversation_id}/read", headers=as_user("buyer_1"))
    assert response.status_code == 200
    assert response.json()["unread_count"] == 0

    messages = client.get(f"{API}/conversations/{conversation_id}/messages", headers=as_user("buyer_1")).json()
    assert messages[1]["read"] is True
    assert messages[0]["read"] is False

    seller_view = client.get(f"{API}/conversations", headers=as_user("seller_1")).json()
    assert seller_view[0]["unread_count"] == 1


@pytest.mark.integration
def test_outsiders_cannot_read(client, negotiation):
    conversation_id = client.get(f"{API}/conversations", headers=as_user("buyer_1")).json()[0]["id"]

    response = client.get(f"{API}/conversations/{conversation_id}/messages", headers=as_user("buyer_9"))
    assert response.status_code == 403

    missing = client.get(f"{API}/conversations/nope/messages", headers=as_user("buyer_1"))
    assert missing.status_code == 404


@pytest.mark.integration
def test_sale_is_recorded_on_conversation(client, negotiation, clock):
    clock.advance(minutes=5)
    client.put(
        f"{API}/offers/{negotiation['offer']['id']}/respond-counter",
        json={"accept": True},
        headers=as_user("buyer_1"),
    )

    conversation = client.get(f"{API}/conversations", headers=as_user("seller_1")).json()[0]
    assert conversation["resulted_in_sale"] is True
    assert conversation["sale_price"] == 100.0
