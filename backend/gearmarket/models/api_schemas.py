"""
Pydantic API schemas for the marketplace endpoints.

WHAT: Request and response models for FastAPI
WHY: Type-safe validation and serialization of offers, listings and conversations
HOW: Pydantic v2 models with validators, constraints and ORM attribute loading
"""

from typing import Optional, List, Dict, Literal
from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import datetime

from ..core.config import settings
from ..core.models import ListingStatus, OfferAction, OfferStatus


# ========== Request Schemas ==========

class CreateListingRequest(BaseModel):
    """Request to publish a listing."""
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    brand: Optional[str] = Field(default=None, max_length=50)
    size: Optional[str] = Field(default=None, max_length=20)
    condition: Optional[Literal["new", "likenew", "excellent", "good", "need to resole"]] = "good"
    price: float = Field(..., ge=0, allow_inf_nan=False)
    accepts_offers: bool = False
    minimum_offer: Optional[float] = Field(default=None, gt=0, allow_inf_nan=False)
    auto_accept_price: Optional[float] = Field(default=None, gt=0, allow_inf_nan=False)

    @model_validator(mode='after')
    def validate_thresholds(self):
        """Ensure minimum_offer < price and auto_accept_price <= price."""
        if self.minimum_offer is not None and self.minimum_offer >= self.price:
            raise ValueError(f"minimum_offer ({self.minimum_offer}) must be less than price ({self.price})")
        if self.auto_accept_price is not None and self.auto_accept_price > self.price:
            raise ValueError(
                f"auto_accept_price ({self.auto_accept_price}) cannot be higher than price ({self.price})"
            )
        return self


class CreateOfferRequest(BaseModel):
    """Request to make an offer on a listing."""
    listing_id: str = Field(..., min_length=1)
    offer_amount: float = Field(..., gt=0, allow_inf_nan=False, description="Offered price")
    message: Optional[str] = Field(default=None, max_length=settings.OFFER_MESSAGE_MAX_LENGTH)


class DeclineOfferRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


class CounterOfferRequest(BaseModel):
    """Seller counter-offer."""
    counter_amount: float = Field(..., gt=0, allow_inf_nan=False)
    counter_message: Optional[str] = Field(default=None, max_length=settings.OFFER_MESSAGE_MAX_LENGTH)


class RespondCounterRequest(BaseModel):
    accept: bool


# ========== Response Schemas ==========

class ListingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    seller_id: str
    title: str
    description: Optional[str] = None
    brand: Optional[str] = None
    size: Optional[str] = None
    condition: Optional[str] = None
    price: float
    accepts_offers: bool
    minimum_offer: Optional[float] = None
    auto_accept_price: Optional[float] = None
    status: ListingStatus
    sold_to: Optional[str] = None
    sold_price: Optional[float] = None
    sold_at: Optional[datetime] = None
    created_at: datetime


class CounterOfferInfo(BaseModel):
    amount: float
    message: Optional[str] = None
    created_at: Optional[datetime] = None


class OfferHistoryItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    action: OfferAction
    amount: Optional[float] = None
    message: Optional[str] = None
    actor_id: Optional[str] = None
    timestamp: datetime


class OfferResponse(BaseModel):
    """Offer with its full negotiation history."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    listing_id: str
    buyer_id: str
    seller_id: str
    offer_amount: float
    original_price: float
    message: Optional[str] = None
    status: OfferStatus
    counter_offer: Optional[CounterOfferInfo] = None
    auto_accept_price: Optional[float] = None
    minimum_offer: Optional[float] = None
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    declined_at: Optional[datetime] = None
    created_at: datetime
    history: List[OfferHistoryItem] = Field(default_factory=list)


class CreateOfferResponse(BaseModel):
    success: bool = True
    offer: OfferResponse
    auto_response: Optional[Literal["accept", "decline"]] = None


class OfferActionResponse(BaseModel):
    success: bool = True
    offer: OfferResponse
    message: str


class ReceivedOffersResponse(BaseModel):
    success: bool = True
    offers: List[OfferResponse]
    stats: Dict[str, int]


class SentOffersResponse(BaseModel):
    success: bool = True
    offers: List[OfferResponse]


class SellerStatusStats(BaseModel):
    status: str
    count: int
    total_value: float
    avg_offer: Optional[float] = None
    avg_percentage: Optional[float] = None


class BuyerStatusStats(BaseModel):
    status: str
    count: int
    total_value: float


class OfferStatsResponse(BaseModel):
    success: bool = True
    as_seller: List[SellerStatusStats]
    as_buyer: List[BuyerStatusStats]


class ConversationResponse(BaseModel):
    id: str
    listing_id: str
    participants: List[str]
    last_message_at: Optional[datetime] = None
    unread_count: int
    status: str
    resulted_in_sale: bool
    sale_price: Optional[float] = None


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    conversation_id: str
    sender_id: str
    receiver_id: str
    listing_id: Optional[str] = None
    text: str
    is_offer: bool
    offer_id: Optional[str] = None
    offer_amount: Optional[float] = None
    offer_action: Optional[str] = None
    read: bool
    read_at: Optional[datetime] = None
    created_at: datetime
