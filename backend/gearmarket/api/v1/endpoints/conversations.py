"""
Conversation endpoints.

WHAT: Read negotiation notifications and clear unread counts
WHY: Buyers and sellers follow each offer in their shared conversation
HOW: FastAPI router over ConversationService, participants only
"""

from typing import List

from fastapi import APIRouter, Depends

from ..deps import get_actor_id, get_conversation_service
from ....core.models import Conversation
from ....models.api_schemas import ConversationResponse, MessageResponse
from ....services.conversation_service import ConversationService

router = APIRouter()


def _to_response(conversation: Conversation, user_id: str) -> ConversationResponse:
    return ConversationResponse(
        id=conversation.id,
        listing_id=conversation.listing_id,
        participants=conversation.participants,
        last_message_at=conversation.last_message_at,
        unread_count=conversation.unread_for(user_id),
        status=conversation.status.value,
        resulted_in_sale=conversation.resulted_in_sale,
        sale_price=conversation.sale_price,
    )


@router.get("/conversations", response_model=List[ConversationResponse])
def list_conversations(
    actor_id: str = Depends(get_actor_id),
    conversations: ConversationService = Depends(get_conversation_service),
):
    """Conversations the user takes part in, most recent activity first."""
    return [_to_response(c, actor_id) for c in conversations.list_conversations(actor_id)]


@router.get("/conversations/{conversation_id}/messages", response_model=List[MessageResponse])
def list_messages(
    conversation_id: str,
    actor_id: str = Depends(get_actor_id),
    conversations: ConversationService = Depends(get_conversation_service),
):
    messages = conversations.list_messages(conversation_id, actor_id)
    return [MessageResponse.model_validate(m) for m in messages]


@router.put("/conversations/{conversation_id}/read", response_model=ConversationResponse)
def mark_read(
    conversation_id: str,
    actor_id: str = Depends(get_actor_id),
    conversations: ConversationService = Depends(get_conversation_service),
):
    return _to_response(conversations.reset_unread(conversation_id, actor_id), actor_id)
