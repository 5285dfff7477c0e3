"""
Listing endpoints.

WHAT: Publish and view listings
WHY: Sellers set the price and offer policy that negotiations snapshot
HOW: FastAPI router over ListingService
"""

from fastapi import APIRouter, Depends, status

from ..deps import get_actor_id, get_listing_service
from ....models.api_schemas import CreateListingRequest, ListingResponse
from ....services.listing_service import ListingService

router = APIRouter()


@router.post("/listings", response_model=ListingResponse, status_code=status.HTTP_201_CREATED)
def create_listing(
    request: CreateListingRequest,
    actor_id: str = Depends(get_actor_id),
    listings: ListingService = Depends(get_listing_service),
):
    """Publish a listing; the acting user becomes its seller."""
    listing = listings.create_listing(actor_id, **request.model_dump())
    return ListingResponse.model_validate(listing)


@router.get("/listings/{listing_id}", response_model=ListingResponse)
def get_listing(listing_id: str, listings: ListingService = Depends(get_listing_service)):
    return ListingResponse.model_validate(listings.get_listing(listing_id))
