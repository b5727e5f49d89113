"""Request and response schemas for the messaging API."""
from datetime import datetime
from math import ceil
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from alumnet.models.conversation import Conversation
from alumnet.models.message import Message
from alumnet.models.user import User


class CamelModel(BaseModel):
    """Serialized with camelCase keys, the shape the React client reads."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# --------------------------------------------------------------------
# Requests
# --------------------------------------------------------------------
class MessageContentRequest(BaseModel):
    """Body of send and edit calls. Content rules are enforced by the service."""
    content: Optional[str] = None


class BulkMessageRequest(BaseModel):
    """Admin fan-out body."""
    recipients: Optional[List[Any]] = None
    content: Optional[str] = None


# --------------------------------------------------------------------
# Responses
# --------------------------------------------------------------------
class UserSummary(CamelModel):
    id: str
    name: str
    role: Optional[str] = None
    profile_url: Optional[str] = None


class ReadReceiptOut(CamelModel):
    user: str
    read_at: datetime


class MessageOut(CamelModel):
    id: str
    conversation: str
    sender: UserSummary
    content: str
    message_type: str
    read_by: List[ReadReceiptOut] = []
    is_edited: bool = False
    edited_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ConversationOut(CamelModel):
    id: str
    participants: List[UserSummary]
    last_message: Optional[MessageOut] = None
    last_message_time: datetime
    unread_counts: Dict[str, int] = Field(default_factory=dict)
    unread_count: Optional[int] = None
    other_participant: Optional[UserSummary] = None
    created_at: datetime
    updated_at: datetime


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_count: int
    has_next_page: bool
    has_prev_page: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(
            current_page=page,
            total_pages=ceil(total / limit) if limit else 0,
            total_count=total,
            has_next_page=page * limit < total,
            has_prev_page=page > 1,
        )


def summarize_user(user_id: str, users: Dict[str, User]) -> UserSummary:
    """Display data for ``user_id``; unknown ids still render with a placeholder name."""
    user = users.get(str(user_id))
    if user is None:
        return UserSummary(id=str(user_id), name="Unknown user")
    return UserSummary(**user.public_profile())


def build_message(message: Message, users: Dict[str, User]) -> MessageOut:
    return MessageOut(
        id=str(message.id),
        conversation=str(message.conversation_id),
        sender=summarize_user(message.sender_id, users),
        content=message.content,
        message_type=message.message_type,
        read_by=[
            ReadReceiptOut(user=receipt.user_id, read_at=receipt.read_at)
            for receipt in message.read_by
        ],
        is_edited=message.is_edited,
        edited_at=message.edited_at,
        created_at=message.created_at,
        updated_at=message.updated_at,
    )


def serialize_message(message: Message, users: Dict[str, User]) -> dict:
    return build_message(message, users).dump()


def serialize_conversation(
    conversation: Conversation,
    users: Dict[str, User],
    last_message: Optional[Message] = None,
    viewer_id: Optional[str] = None,
) -> dict:
    """
    Conversation with participants resolved for display.

    When ``viewer_id`` is given the result also carries the viewer's own
    ``unreadCount`` and the ``otherParticipant``, as list views need.
    """
    unread = conversation.unread_count
    out = ConversationOut(
        id=str(conversation.id),
        participants=[summarize_user(uid, users) for uid in conversation.participants],
        last_message=build_message(last_message, users) if last_message else None,
        last_message_time=conversation.last_message_time,
        unread_counts=unread,
        created_at=conversation.created_at,
        updated_at=conversation.updated_at,
    )
    if viewer_id is not None:
        out.unread_count = unread.get(str(viewer_id), 0)
        other = conversation.other_participant(viewer_id)
        out.other_participant = summarize_user(other, users) if other else None
    return out.dump()
