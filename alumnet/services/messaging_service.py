"""
Messaging Service

Orchestrates the conversation and message stores, the connection gate and
the real-time hub. Transport handlers (REST routes, socket events) only talk
to this layer.

Send pipeline:
    compose -> authorize -> persist -> update-conversation-counters
    -> publish-realtime -> respond

The message write is authoritative. Counter updates and the real-time
publish run after it commits; their failures are logged and never undo the
message.
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from alumnet.errors import Forbidden, NotFound, Unauthorized, ValidationError
from alumnet.middleware.auth import CurrentUser
from alumnet.models.conversation import Conversation
from alumnet.models.message import Message, MessageType
from alumnet.models.user import User, UserRole
from alumnet.realtime import protocol
from alumnet.realtime.hub import RealtimeHub
from alumnet.schemas.messaging import Pagination, serialize_conversation, serialize_message
from alumnet.services.connection_service import ConnectionGate
from alumnet.services.conversation_store import ConversationStore
from alumnet.services.message_store import clean_content, MessageStore
from alumnet.utils.logger import get_logger

logger = get_logger("alumnet.messaging")

MIN_SEARCH_LENGTH = 2
MAX_BULK_RECIPIENTS = 500


def parse_id(value: Any, label: str) -> UUID:
    """Parse a path/query id, raising a 400 instead of a 500 on garbage."""
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {label} ID")


def unique_recipients(recipients: List[Any]) -> List[Any]:
    """Drop repeated recipient ids, keeping first-seen order. Ids compare after stripping."""
    seen = set()
    unique = []
    for recipient_id in recipients:
        key = ("id", recipient_id.strip()) if isinstance(recipient_id, str) else ("raw", repr(recipient_id))
        if key in seen:
            continue
        seen.add(key)
        unique.append(recipient_id)
    return unique


class MessagingService:
    """Service for direct messaging between alumni network users"""

    def __init__(self, session: Session, hub: Optional[RealtimeHub] = None):
        self.session = session
        self.hub = hub
        self.conversations = ConversationStore(session)
        self.messages = MessageStore(session)
        self.gate = ConnectionGate(session)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _render_conversation(self, conversation: Conversation, viewer_id: Optional[str] = None) -> dict:
        last_message = None
        if conversation.last_message_id:
            last_message = self.messages.get_visible(conversation.last_message_id)

        user_ids = set(conversation.participants)
        if last_message:
            user_ids.add(last_message.sender_id)
        users = self.conversations.resolve_users(user_ids)
        return serialize_conversation(conversation, users, last_message=last_message, viewer_id=viewer_id)

    def _render_messages(self, messages: List[Message]) -> List[dict]:
        users = self.conversations.resolve_users(m.sender_id for m in messages)
        return [serialize_message(m, users) for m in messages]

    def _require_participant(self, conversation_id: UUID, user_id: str) -> Conversation:
        conversation = self.conversations.get_for_participant(conversation_id, user_id)
        if conversation is None:
            raise Forbidden("Access denied to this conversation")
        return conversation

    async def _publish(self, conversation_id: UUID, event: str, data: Dict[str, Any]) -> None:
        """Fire-and-forget room emit; an absent hub or empty room is a no-op."""
        if self.hub is None:
            logger.warning("Real-time hub is not available", event=event, conversation_id=str(conversation_id))
            return
        try:
            delivered = await self.hub.emit_to_room(str(conversation_id), event, data)
            logger.debug("Published event", event=event, conversation_id=str(conversation_id), delivered=delivered)
        except Exception:
            logger.exception("Real-time publish failed", event=event, conversation_id=str(conversation_id))

    def _update_counters(self, conversation: Conversation, message: Message) -> None:
        """Best-effort unread increment for the other participant"""
        recipient_id = conversation.other_participant(message.sender_id)
        if recipient_id is None:
            return
        try:
            self.conversations.increment_unread(conversation.id, recipient_id, message)
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception(
                "Error updating conversation counters",
                conversation_id=str(conversation.id),
                message_id=str(message.id),
                recipient_id=recipient_id,
            )

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------
    def get_or_create_conversation(self, current_user: CurrentUser, participant_id: str) -> dict:
        """Find or open the caller's conversation with a peer, gated by connection"""
        if not participant_id or not str(participant_id).strip():
            raise ValidationError("Invalid participant ID")

        participant_id = str(participant_id).strip()
        if participant_id == current_user.user_id:
            raise ValidationError("Cannot start a conversation with yourself")

        if not self.gate.can_message(current_user.user_id, participant_id, sender_is_admin=current_user.is_admin):
            raise Unauthorized("You can only message connected users")

        conversation = self.conversations.find_or_create(current_user.user_id, participant_id)
        return self._render_conversation(conversation)

    def admin_get_or_create_conversation(self, admin: CurrentUser, participant_id: str) -> dict:
        """Admin variant: no connection needed, but the peer must be verified"""
        if not participant_id or participant_id == admin.user_id:
            raise ValidationError("Invalid participant ID")

        if self.gate.verified_user(participant_id) is None:
            raise NotFound("User not found or not verified")

        conversation = self.conversations.find_or_create(admin.user_id, participant_id)
        return self._render_conversation(conversation)

    def list_conversations(self, user_id: str, page: int = 1, limit: int = 20) -> dict:
        conversations, total = self.conversations.list_for_user(user_id, page, limit)
        return {
            "conversations": [self._render_conversation(c, viewer_id=user_id) for c in conversations],
            "pagination": Pagination.build(page, limit, total).dump(),
        }

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------
    def get_messages(self, user_id: str, conversation_id: str, page: int = 1, limit: int = 50) -> dict:
        """
        Message history, oldest first.

        Side effect: everything the other participant sent on this page is
        marked read by the caller and the caller's unread counter is reset.
        """
        conv_id = parse_id(conversation_id, "conversation")
        conversation = self._require_participant(conv_id, user_id)

        messages, total = self.messages.page(conv_id, page, limit)

        try:
            marked = self.messages.mark_read_many(messages, user_id)
            if marked or self.conversations.unread_for(conversation.id, user_id):
                self.conversations.reset_unread(conversation.id, user_id)
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("Error updating read state", conversation_id=str(conv_id), user_id=user_id)

        return {
            "messages": self._render_messages(messages),
            "pagination": Pagination.build(page, limit, total).dump(),
        }

    async def send_message(self, sender_id: str, conversation_id: str, content: Optional[str]) -> dict:
        # compose
        content = clean_content(content)
        conv_id = parse_id(conversation_id, "conversation")

        # authorize
        conversation = self._require_participant(conv_id, sender_id)

        # persist
        message = self.messages.append(conversation.id, sender_id, content, MessageType.TEXT)

        # update-conversation-counters
        self._update_counters(conversation, message)

        payload = self._render_messages([message])[0]

        # publish-realtime
        await self._publish(conversation.id, protocol.NEW_MESSAGE, {
            "message": payload,
            "conversationId": str(conversation.id),
        })

        # respond
        return payload

    async def edit_message(self, user_id: str, message_id: str, content: Optional[str]) -> dict:
        content = clean_content(content)
        msg_id = parse_id(message_id, "message")

        message = self.messages.edit(msg_id, user_id, content)
        payload = self._render_messages([message])[0]

        await self._publish(message.conversation_id, protocol.MESSAGE_EDITED, {
            "message": payload,
            "conversationId": str(message.conversation_id),
        })
        return payload

    async def delete_message(self, user_id: str, message_id: str) -> None:
        msg_id = parse_id(message_id, "message")
        message = self.messages.soft_delete(msg_id, user_id)
        conversation_id = message.conversation_id

        # Keep the denormalized pointer off deleted content (best effort)
        try:
            conversation = self.conversations.get(conversation_id)
            if conversation is not None and conversation.last_message_id == msg_id:
                self.conversations.set_last_message(conversation_id, self.messages.latest_visible(conversation_id))
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("Error repointing last message", conversation_id=str(conversation_id))

        await self._publish(conversation_id, protocol.MESSAGE_DELETED, {
            "messageId": str(msg_id),
            "conversationId": str(conversation_id),
        })

    def search_messages(self, user_id: str, query: Optional[str], conversation_id: Optional[str] = None) -> List[dict]:
        if not query or len(query.strip()) < MIN_SEARCH_LENGTH:
            raise ValidationError(f"Search query must be at least {MIN_SEARCH_LENGTH} characters")

        if conversation_id:
            conv_id = parse_id(conversation_id, "conversation")
            self._require_participant(conv_id, user_id)
            scope = [conv_id]
        else:
            scope = self.conversations.conversation_ids_for_user(user_id)

        messages = self.messages.search(query.strip(), scope)
        return self._render_messages(messages)

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------
    async def admin_send_message(self, admin_id: str, conversation_id: str, content: Optional[str]) -> dict:
        return await self.send_message(admin_id, conversation_id, content)

    def _bulk_recipient(self, recipient_id: Any) -> User:
        """Resolve one bulk recipient or raise with the reason it was skipped"""
        if not isinstance(recipient_id, str) or not recipient_id.strip():
            raise ValidationError("Invalid recipient ID")

        user = self.session.get(User, recipient_id.strip())
        if user is None:
            raise NotFound("User not found")
        if not user.is_verified:
            raise ValidationError("User is not verified")
        if user.role != UserRole.ALUMNI.value:
            raise ValidationError("Recipient is not an alumni member")
        return user

    async def admin_send_bulk(self, admin: CurrentUser, recipients: Optional[List[Any]], content: Optional[str]) -> dict:
        """
        Send the same text to many alumni, one conversation each.

        Recipients are processed sequentially; a failing recipient is
        recorded and the loop moves on.
        """
        content = clean_content(content)

        if not recipients or not isinstance(recipients, list):
            raise ValidationError("Recipients list is required")
        if len(recipients) > MAX_BULK_RECIPIENTS:
            raise ValidationError(f"Cannot message more than {MAX_BULK_RECIPIENTS} recipients at once")
        recipients = unique_recipients(recipients)

        sent_messages = []
        failed_recipients = []

        for recipient_id in recipients:
            try:
                recipient = self._bulk_recipient(recipient_id)
                if recipient.id == admin.user_id:
                    raise ValidationError("Cannot message yourself")

                conversation = self.conversations.find_or_create(admin.user_id, recipient.id)
                message = self.messages.append(conversation.id, admin.user_id, content, MessageType.TEXT)
                self._update_counters(conversation, message)

                await self._publish(conversation.id, protocol.NEW_MESSAGE, {
                    "message": self._render_messages([message])[0],
                    "conversationId": str(conversation.id),
                })

                sent_messages.append({
                    "recipient": recipient.name,
                    "recipientId": recipient.id,
                    "messageId": str(message.id),
                    "conversationId": str(conversation.id),
                })
            except Exception as e:
                self.session.rollback()
                reason = e.message if isinstance(e, (ValidationError, NotFound)) else "Failed to send message"
                logger.warning("Bulk message recipient failed", recipient=str(recipient_id), error=str(e))
                failed_recipients.append({
                    "recipient": str(recipient_id),
                    "error": reason,
                })

        logger.info(
            "Bulk message finished",
            admin_id=admin.user_id,
            total_sent=len(sent_messages),
            total_failed=len(failed_recipients),
        )
        return {
            "sentMessages": sent_messages,
            "failedRecipients": failed_recipients,
            "totalSent": len(sent_messages),
            "totalFailed": len(failed_recipients),
        }
