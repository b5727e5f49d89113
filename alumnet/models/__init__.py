"""SQLModel tables. Importing this package registers every mapper."""

from .user import User, UserRole
from .connection import Connection, ConnectionRequest, ConnectionType, RequestStatus
from .conversation import Conversation, ConversationUnread, canonical_pair
from .message import MAX_CONTENT_LENGTH, Message, MessageRead, MessageType

__all__ = [
    "User",
    "UserRole",
    "Connection",
    "ConnectionRequest",
    "ConnectionType",
    "RequestStatus",
    "Conversation",
    "ConversationUnread",
    "canonical_pair",
    "MAX_CONTENT_LENGTH",
    "Message",
    "MessageRead",
    "MessageType",
]
