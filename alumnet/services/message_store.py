"""
Message Store

Ordered, soft-deletable message log per conversation with read receipts
and substring search.
"""

from datetime import datetime
from typing import List, Optional, Sequence, Tuple
from uuid import UUID
import logging

from sqlalchemy import func
from sqlmodel import Session, select

from alumnet.errors import Forbidden, NotFound, ValidationError
from alumnet.models.message import MAX_CONTENT_LENGTH, Message, MessageRead, MessageType

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 50


def clean_content(content: Optional[str]) -> str:
    """
    Trim and validate a message body.

    Raises:
        ValidationError: If the body is missing, blank or longer than 1000 chars
    """
    if content is None or not isinstance(content, str) or not content.strip():
        raise ValidationError("Message content is required")

    content = content.strip()
    if len(content) > MAX_CONTENT_LENGTH:
        raise ValidationError(f"Message content cannot exceed {MAX_CONTENT_LENGTH} characters")
    return content


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class MessageStore:
    """Service for the message collection"""

    def __init__(self, session: Session):
        self.session = session

    def append(
        self,
        conversation_id: UUID,
        sender_id: str,
        content: str,
        message_type: MessageType = MessageType.TEXT
    ) -> Message:
        """Persist a new message. This is the only creation path."""
        content = clean_content(content)
        now = datetime.utcnow()
        message = Message(
            conversation_id=conversation_id,
            sender_id=str(sender_id),
            content=content,
            message_type=MessageType(message_type).value,
            created_at=now,
            updated_at=now
        )
        self.session.add(message)
        self.session.commit()
        self.session.refresh(message)
        return message

    def get_visible(self, message_id: UUID) -> Optional[Message]:
        statement = select(Message).where(
            Message.id == message_id,
            Message.is_deleted == False  # noqa: E712
        )
        return self.session.exec(statement).first()

    def page(self, conversation_id: UUID, page: int = 1, page_size: int = 50) -> Tuple[List[Message], int]:
        """
        One page of visible messages, returned oldest first.

        Pages are cut from the newest end so page 1 is the latest activity.
        """
        visible = (
            Message.conversation_id == conversation_id,
            Message.is_deleted == False  # noqa: E712
        )
        statement = (
            select(Message)
            .where(*visible)
            .order_by(Message.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        newest_first = list(self.session.exec(statement).all())

        total = self.session.exec(
            select(func.count()).select_from(Message).where(*visible)
        ).one()

        newest_first.reverse()
        return newest_first, total

    def mark_read(self, message: Message, reader_id: str) -> bool:
        """Add a read receipt unless the reader already has one. Does not commit."""
        if message.is_read_by(reader_id):
            return False
        receipt = MessageRead(
            message_id=message.id,
            user_id=str(reader_id),
            read_at=datetime.utcnow()
        )
        message.read_by.append(receipt)
        self.session.add(receipt)
        return True

    def mark_read_many(self, messages: Sequence[Message], reader_id: str) -> int:
        """Mark every message not sent by the reader as read; returns how many changed."""
        marked = 0
        for message in messages:
            if message.sender_id == str(reader_id):
                continue
            if self.mark_read(message, reader_id):
                marked += 1
        if marked:
            self.session.commit()
        return marked

    def _owned_visible(self, message_id: UUID, user_id: str) -> Message:
        message = self.get_visible(message_id)
        if message is None:
            raise NotFound("Message not found")
        if message.sender_id != str(user_id):
            raise Forbidden("You can only modify your own messages")
        return message

    def edit(self, message_id: UUID, editor_id: str, new_content: str) -> Message:
        new_content = clean_content(new_content)
        message = self._owned_visible(message_id, editor_id)

        now = datetime.utcnow()
        message.content = new_content
        message.is_edited = True
        message.edited_at = now
        message.updated_at = now
        self.session.add(message)
        self.session.commit()
        self.session.refresh(message)
        return message

    def soft_delete(self, message_id: UUID, requester_id: str) -> Message:
        """Hide a message. Read receipts are kept as historical fact."""
        message = self._owned_visible(message_id, requester_id)

        now = datetime.utcnow()
        message.is_deleted = True
        message.deleted_at = now
        message.updated_at = now
        self.session.add(message)
        self.session.commit()
        self.session.refresh(message)
        return message

    def latest_visible(self, conversation_id: UUID) -> Optional[Message]:
        statement = (
            select(Message)
            .where(
                Message.conversation_id == conversation_id,
                Message.is_deleted == False  # noqa: E712
            )
            .order_by(Message.created_at.desc())
            .limit(1)
        )
        return self.session.exec(statement).first()

    def search(self, query: str, conversation_ids: Sequence[UUID], limit: int = SEARCH_LIMIT) -> List[Message]:
        """Case-insensitive substring match, newest first. No ranking."""
        if not conversation_ids:
            return []

        pattern = f"%{_escape_like(query)}%"
        statement = (
            select(Message)
            .where(
                Message.conversation_id.in_(list(conversation_ids)),
                Message.is_deleted == False,  # noqa: E712
                Message.content.ilike(pattern, escape="\\")
            )
            .order_by(Message.created_at.desc())
            .limit(limit)
        )
        return list(self.session.exec(statement).all())

    def recount_unread(self, conversation_id: UUID, user_id: str) -> int:
        """
        Recompute a participant's unread count from the log.

        Visible messages from the other side without a receipt for ``user_id``.
        Maintenance helper for checking or repairing the counter table by hand;
        the request path keeps counters incrementally and never calls this.
        """
        has_receipt = (
            select(MessageRead.message_id)
            .where(MessageRead.user_id == str(user_id))
        )
        statement = (
            select(func.count())
            .select_from(Message)
            .where(
                Message.conversation_id == conversation_id,
                Message.is_deleted == False,  # noqa: E712
                Message.sender_id != str(user_id),
                Message.id.not_in(has_receipt)
            )
        )
        return self.session.exec(statement).one()
