"""
Conversation Model

A direct-message thread between exactly two users. The participant pair is
stored in canonical (sorted) order and is unique, so a lookup by an
unordered pair always lands on the same row.
"""

from datetime import datetime
from uuid import UUID, uuid4
from typing import Dict, List, Optional, Tuple, TYPE_CHECKING
from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlmodel import SQLModel, Field, Relationship

if TYPE_CHECKING:
    from .message import Message


def canonical_pair(user_a: str, user_b: str) -> Tuple[str, str]:
    """Return the two ids in storage order."""
    first, second = sorted([str(user_a), str(user_b)])
    return first, second


class ConversationUnread(SQLModel, table=True):
    """Unread counter of one participant. A missing row means zero."""
    __tablename__ = "conversation_unread"

    conversation_id: UUID = Field(foreign_key="conversations.id", primary_key=True)
    user_id: str = Field(primary_key=True, max_length=64)
    count: int = Field(default=0)

    conversation: "Conversation" = Relationship(back_populates="unread_rows")


class Conversation(SQLModel, table=True):
    """
    Two-party conversation.

    Relationships:
    - Has many Messages
    - Has up to two ConversationUnread rows (one per participant)
    """
    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("participant_a", "participant_b", name="uq_conversation_pair"),
        CheckConstraint("participant_a < participant_b", name="ck_conversation_pair_order"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    participant_a: str = Field(index=True, max_length=64)
    participant_b: str = Field(index=True, max_length=64)
    last_message_id: Optional[UUID] = Field(default=None)
    last_message_time: datetime = Field(default_factory=datetime.utcnow, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    unread_rows: List[ConversationUnread] = Relationship(
        back_populates="conversation",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "lazy": "select"}
    )
    messages: List["Message"] = Relationship(
        back_populates="conversation",
        sa_relationship_kwargs={"lazy": "select"}
    )

    @property
    def participants(self) -> List[str]:
        return [self.participant_a, self.participant_b]

    @property
    def unread_count(self) -> Dict[str, int]:
        return {row.user_id: row.count for row in self.unread_rows}

    def other_participant(self, user_id: str) -> Optional[str]:
        user_id = str(user_id)
        if user_id == self.participant_a:
            return self.participant_b
        if user_id == self.participant_b:
            return self.participant_a
        return None
