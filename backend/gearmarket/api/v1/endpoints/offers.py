"""
Offer endpoints.

WHAT: Create, list and transition offers
WHY: HTTP surface of the offer negotiation engine
HOW: Thin handlers; the engine raises MarketplaceError subclasses which
     the global handlers translate to HTTP responses
"""

from typing import Optional

from fastapi import APIRouter, Depends, status

from ..deps import get_actor_id, get_offer_engine
from ....core.models import OfferStatus
from ....models.api_schemas import (
    CreateOfferRequest,
    CreateOfferResponse,
    CounterOfferRequest,
    DeclineOfferRequest,
    OfferActionResponse,
    OfferResponse,
    OfferStatsResponse,
    ReceivedOffersResponse,
    RespondCounterRequest,
    SentOffersResponse,
)
from ....services.offer_engine import OfferNegotiationEngine
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post("/offers", response_model=CreateOfferResponse, status_code=status.HTTP_201_CREATED)
def create_offer(
    request: CreateOfferRequest,
    actor_id: str = Depends(get_actor_id),
    engine: OfferNegotiationEngine = Depends(get_offer_engine),
):
    """
    Make an offer on a listing.

    WHAT: Create the offer and apply the listing's auto-response thresholds
    WHY: Entry point of a negotiation
    HOW: Delegate to engine.create_offer, report any auto response
    """
    result = engine.create_offer(
        listing_id=request.listing_id,
        buyer_id=actor_id,
        offer_amount=request.offer_amount,
        message=request.message,
    )
    return CreateOfferResponse(
        offer=OfferResponse.model_validate(result.offer),
        auto_response=result.auto_response,
    )


@router.get("/offers/received", response_model=ReceivedOffersResponse)
def get_received_offers(
    status: Optional[OfferStatus] = None,
    listing_id: Optional[str] = None,
    actor_id: str = Depends(get_actor_id),
    engine: OfferNegotiationEngine = Depends(get_offer_engine),
):
    """Offers on the seller's listings, newest first, with per-status counts."""
    received = engine.list_received(actor_id, status=status, listing_id=listing_id)
    return ReceivedOffersResponse(
        offers=[OfferResponse.model_validate(o) for o in received.offers],
        stats=received.stats,
    )


@router.get("/offers/sent", response_model=SentOffersResponse)
def get_sent_offers(
    status: Optional[OfferStatus] = None,
    actor_id: str = Depends(get_actor_id),
    engine: OfferNegotiationEngine = Depends(get_offer_engine),
):
    offers = engine.list_sent(actor_id, status=status)
    return SentOffersResponse(offers=[OfferResponse.model_validate(o) for o in offers])


@router.get("/offers/stats", response_model=OfferStatsResponse)
def get_offer_stats(
    actor_id: str = Depends(get_actor_id),
    engine: OfferNegotiationEngine = Depends(get_offer_engine),
):
    return OfferStatsResponse(**engine.offer_stats(actor_id))


@router.get("/offers/{offer_id}", response_model=OfferResponse)
def get_offer(
    offer_id: str,
    actor_id: str = Depends(get_actor_id),
    engine: OfferNegotiationEngine = Depends(get_offer_engine),
):
    return OfferResponse.model_validate(engine.get_offer(offer_id, actor_id))


@router.put("/offers/{offer_id}/accept", response_model=OfferActionResponse)
def accept_offer(
    offer_id: str,
    actor_id: str = Depends(get_actor_id),
    engine: OfferNegotiationEngine = Depends(get_offer_engine),
):
    offer = engine.accept(offer_id, actor_id)
    return OfferActionResponse(offer=OfferResponse.model_validate(offer), message="Offer accepted successfully")


@router.put("/offers/{offer_id}/decline", response_model=OfferActionResponse)
def decline_offer(
    offer_id: str,
    request: Optional[DeclineOfferRequest] = None,
    actor_id: str = Depends(get_actor_id),
    engine: OfferNegotiationEngine = Depends(get_offer_engine),
):
    reason = request.reason if request else None
    offer = engine.decline(offer_id, actor_id, reason=reason)
    return OfferActionResponse(offer=OfferResponse.model_validate(offer), message="Offer declined")


@router.put("/offers/{offer_id}/counter", response_model=OfferActionResponse)
def counter_offer(
    offer_id: str,
    request: CounterOfferRequest,
    actor_id: str = Depends(get_actor_id),
    engine: OfferNegotiationEngine = Depends(get_offer_engine),
):
    offer = engine.counter(offer_id, actor_id, request.counter_amount, request.counter_message)
    return OfferActionResponse(offer=OfferResponse.model_validate(offer), message="Counter offer sent")


@router.put("/offers/{offer_id}/withdraw", response_model=OfferActionResponse)
def withdraw_offer(
    offer_id: str,
    actor_id: str = Depends(get_actor_id),
    engine: OfferNegotiationEngine = Depends(get_offer_engine),
):
    offer = engine.withdraw(offer_id, actor_id)
    return OfferActionResponse(offer=OfferResponse.model_validate(offer), message="Offer withdrawn")


@router.put("/offers/{offer_id}/respond-counter", response_model=OfferActionResponse)
def respond_to_counter(
    offer_id: str,
    request: RespondCounterRequest,
    actor_id: str = Depends(get_actor_id),
    engine: OfferNegotiationEngine = Depends(get_offer_engine),
):
    offer = engine.respond_to_counter(offer_id, actor_id, request.accept)
    message = "Counter offer accepted" if request.accept else "Counter offer declined"
    return OfferActionResponse(offer=OfferResponse.model_validate(offer), message=message)
