"""
Conversation service.

WHAT: Read side of buyer/seller conversations
WHY: Users read negotiation notifications and clear their unread badges
HOW: Participant checks over ConversationRepository; reset_unread marks
     messages addressed to the reader as read
"""

from typing import List

from sqlalchemy.orm import sessionmaker

from ..core.database import session_scope
from ..core.models import Conversation, Message
from ..core.repositories import ConversationRepository
from ..utils.exceptions import ForbiddenError, NotFoundError
from ..utils.logger import get_logger
from ..utils.time import Clock, utcnow

logger = get_logger(__name__)


class ConversationService:

    def __init__(self, session_factory: sessionmaker, clock: Clock = utcnow):
        self.session_factory = session_factory
        self.clock = clock

    @staticmethod
    def _participant_conversation(repo: ConversationRepository, conversation_id: str, user_id: str) -> Conversation:
        conversation = repo.get(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation", conversation_id)
        if user_id not in conversation.participants:
            raise ForbiddenError(details={"conversation_id": conversation_id})
        return conversation

    def list_conversations(self, user_id: str) -> List[Conversation]:
        with session_scope(self.session_factory) as db:
            return ConversationRepository(db).for_user(user_id)

    def list_messages(self, conversation_id: str, user_id: str) -> List[Message]:
        with session_scope(self.session_factory) as db:
            repo = ConversationRepository(db)
            self._participant_conversation(repo, conversation_id, user_id)
            return repo.messages(conversation_id)

    def reset_unread(self, conversation_id: str, user_id: str) -> Conversation:
        """Zero the reader's unread count and mark their messages read."""
        now = self.clock()
        with session_scope(self.session_factory) as db:
            repo = ConversationRepository(db)
            conversation = self._participant_conversation(repo, conversation_id, user_id)
            unread = repo.unread_messages_for(conversation_id, user_id)
            for message in unread:
                message.read = True
                message.read_at = now
            conversation.unread_counts[user_id] = 0
        logger.info(f"User {user_id} read {len(unread)} messages in conversation {conversation_id}")
        return conversation
