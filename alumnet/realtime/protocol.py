"""WebSocket message envelope models."""
from typing import Any, Optional

from pydantic import BaseModel

# Client → Server
AUTHENTICATE = "authenticate"
JOIN_CONVERSATION = "joinConversation"
LEAVE_CONVERSATION = "leaveConversation"
TYPING = "typing"
MARK_AS_READ = "markAsRead"

# Server → Client
AUTHENTICATED = "authenticated"
CONNECT_ERROR = "connect_error"
ERROR = "error"
JOINED_CONVERSATION = "joinedConversation"
LEFT_CONVERSATION = "leftConversation"
USER_ONLINE = "userOnline"
USER_OFFLINE = "userOffline"
USER_TYPING = "userTyping"
MESSAGES_READ = "messagesRead"
NEW_MESSAGE = "newMessage"
MESSAGE_EDITED = "messageEdited"
MESSAGE_DELETED = "messageDeleted"

# Close code sent after a failed handshake
AUTH_FAILED_CLOSE_CODE = 4401


class ClientEvent(BaseModel):
    """Client → Server."""

    event: str
    data: Optional[Any] = None


class ServerEvent(BaseModel):
    """Server → Client."""

    event: str
    data: Any = None


class TypingPayload(BaseModel):
    conversationId: str
    isTyping: bool = False


class MarkAsReadPayload(BaseModel):
    conversationId: str
    userId: Optional[str] = None
