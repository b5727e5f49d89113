"""
Message Model

Individual messages within a two-party conversation. Messages are
soft-deleted only; read receipts are append-only with at most one entry
per reader.
"""

from datetime import datetime
from uuid import UUID, uuid4
from enum import Enum
from typing import List, Optional, TYPE_CHECKING
from sqlalchemy import Column, Index, String, Text
from sqlmodel import SQLModel, Field, Relationship

if TYPE_CHECKING:
    from .conversation import Conversation

MAX_CONTENT_LENGTH = 1000


class MessageType(str, Enum):
    """Message body type. Only TEXT is produced today."""
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"


class MessageRead(SQLModel, table=True):
    """Read receipt: ``user_id`` read ``message_id`` at ``read_at``."""
    __tablename__ = "message_reads"

    message_id: UUID = Field(foreign_key="messages.id", primary_key=True)
    user_id: str = Field(primary_key=True, max_length=64)
    read_at: datetime = Field(default_factory=datetime.utcnow)

    message: "Message" = Relationship(back_populates="read_by")


class Message(SQLModel, table=True):
    """
    Chat message.

    Relationships:
    - Belongs to one Conversation
    - Has many MessageRead receipts, ordered by read time
    """
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    conversation_id: UUID = Field(foreign_key="conversations.id")
    sender_id: str = Field(index=True, max_length=64)
    content: str = Field(sa_column=Column(Text, nullable=False))
    message_type: str = Field(
        default=MessageType.TEXT.value,
        sa_column=Column(String(10), nullable=False, default=MessageType.TEXT.value)
    )
    is_edited: bool = Field(default=False)
    edited_at: Optional[datetime] = Field(default=None)
    is_deleted: bool = Field(default=False, index=True)
    deleted_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    conversation: "Conversation" = Relationship(
        back_populates="messages",
        sa_relationship_kwargs={"lazy": "select"}
    )
    read_by: List[MessageRead] = Relationship(
        back_populates="message",
        sa_relationship_kwargs={
            "lazy": "select",
            "order_by": "MessageRead.read_at",
            "cascade": "all, delete-orphan",
        }
    )

    def is_read_by(self, user_id: str) -> bool:
        return any(receipt.user_id == str(user_id) for receipt in self.read_by)
