"""
Shared endpoint dependencies.

WHAT: Resolve the acting user and the services wired on app.state
WHY: Endpoints receive their store handles instead of importing globals
HOW: FastAPI Depends() callables reading the request
"""

from typing import Optional

from fastapi import Header, HTTPException, Request, status

from ...services.conversation_service import ConversationService
from ...services.listing_service import ListingService
from ...services.offer_engine import OfferNegotiationEngine


def get_actor_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """
    Acting user id.

    Set by the upstream auth gateway after it validates the session.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header"
        )
    return x_user_id.strip()


def get_offer_engine(request: Request) -> OfferNegotiationEngine:
    return request.app.state.offer_engine


def get_listing_service(request: Request) -> ListingService:
    return request.app.state.listing_service


def get_conversation_service(request: Request) -> ConversationService:
    return request.app.state.conversation_service
