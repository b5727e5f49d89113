"""
Conversation Store

Lookup, creation and unread bookkeeping for two-party conversations.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID
import logging

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from alumnet.errors import InternalError
from alumnet.models.conversation import Conversation, ConversationUnread, canonical_pair
from alumnet.models.message import Message
from alumnet.models.user import User

logger = logging.getLogger(__name__)


class ConversationStore:
    """Service for the conversation collection"""

    def __init__(self, session: Session):
        self.session = session

    def get(self, conversation_id: UUID) -> Optional[Conversation]:
        return self.session.get(Conversation, conversation_id)

    def get_for_participant(self, conversation_id: UUID, user_id: str) -> Optional[Conversation]:
        """Get conversation only if ``user_id`` takes part in it"""
        statement = select(Conversation).where(
            Conversation.id == conversation_id,
            or_(
                Conversation.participant_a == str(user_id),
                Conversation.participant_b == str(user_id),
            )
        )
        return self.session.exec(statement).first()

    def find_by_pair(self, user_a: str, user_b: str) -> Optional[Conversation]:
        first, second = canonical_pair(user_a, user_b)
        statement = select(Conversation).where(
            Conversation.participant_a == first,
            Conversation.participant_b == second
        )
        return self.session.exec(statement).first()

    def find_or_create(self, user_a: str, user_b: str) -> Conversation:
        """
        Return the conversation between two users, creating it on first contact.

        Two first-contact requests racing for the same pair both may miss the
        lookup; the loser hits the unique pair constraint and re-reads the
        row the winner inserted.
        """
        existing = self.find_by_pair(user_a, user_b)
        if existing:
            return existing

        first, second = canonical_pair(user_a, user_b)
        now = datetime.utcnow()
        conversation = Conversation(
            participant_a=first,
            participant_b=second,
            last_message_time=now,
            created_at=now,
            updated_at=now
        )
        self.session.add(conversation)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            logger.info(f"Conversation {first}/{second} created concurrently, re-fetching")
            existing = self.find_by_pair(first, second)
            if existing is None:
                raise InternalError("Failed to create conversation")
            return existing

        self.session.refresh(conversation)
        logger.info(f"Created conversation {conversation.id} between {first} and {second}")
        return conversation

    def list_for_user(self, user_id: str, page: int = 1, page_size: int = 20) -> Tuple[List[Conversation], int]:
        """Conversations of a user, most recently active first"""
        membership = or_(
            Conversation.participant_a == str(user_id),
            Conversation.participant_b == str(user_id),
        )
        statement = (
            select(Conversation)
            .where(membership)
            .order_by(Conversation.last_message_time.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        conversations = list(self.session.exec(statement).all())

        total = self.session.exec(
            select(func.count()).select_from(Conversation).where(membership)
        ).one()
        return conversations, total

    def conversation_ids_for_user(self, user_id: str) -> List[UUID]:
        statement = select(Conversation.id).where(
            or_(
                Conversation.participant_a == str(user_id),
                Conversation.participant_b == str(user_id),
            )
        )
        return list(self.session.exec(statement).all())

    def increment_unread(self, conversation_id: UUID, recipient_id: str, message: Message) -> None:
        """Bump the recipient's counter and point the conversation at ``message``"""
        result = self.session.execute(
            update(ConversationUnread)
            .where(
                ConversationUnread.conversation_id == conversation_id,
                ConversationUnread.user_id == str(recipient_id),
            )
            .values(count=ConversationUnread.count + 1)
        )
        if result.rowcount == 0:
            self.session.add(ConversationUnread(
                conversation_id=conversation_id,
                user_id=str(recipient_id),
                count=1
            ))

        now = datetime.utcnow()
        self.session.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(
                last_message_id=message.id,
                last_message_time=message.created_at or now,
                updated_at=now,
            )
        )
        self.session.commit()

    def reset_unread(self, conversation_id: UUID, user_id: str) -> None:
        self.session.execute(
            update(ConversationUnread)
            .where(
                ConversationUnread.conversation_id == conversation_id,
                ConversationUnread.user_id == str(user_id),
            )
            .values(count=0)
        )
        self.session.commit()

    def set_last_message(self, conversation_id: UUID, message: Optional[Message]) -> None:
        """Repoint the denormalized last-message pointer (``None`` clears it)"""
        values = {"last_message_id": message.id if message else None, "updated_at": datetime.utcnow()}
        if message is not None:
            values["last_message_time"] = message.created_at
        self.session.execute(
            update(Conversation).where(Conversation.id == conversation_id).values(**values)
        )
        self.session.commit()

    def unread_for(self, conversation_id: UUID, user_id: str) -> int:
        row = self.session.get(ConversationUnread, (conversation_id, str(user_id)))
        return row.count if row else 0

    def resolve_users(self, user_ids: Iterable[str]) -> Dict[str, User]:
        ids = {str(uid) for uid in user_ids if uid}
        if not ids:
            return {}
        users = self.session.exec(select(User).where(User.id.in_(ids))).all()
        return {user.id: user for user in users}
