"""Connection and connection-request models backing the messaging gate."""
from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4
from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlmodel import SQLModel, Field


class RequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class ConnectionType(str, Enum):
    ALUMNI = "alumni"
    COLLEAGUE = "colleague"
    MENTOR = "mentor"
    MENTEE = "mentee"
    FRIEND = "friend"
    OTHER = "other"


class ConnectionRequest(SQLModel, table=True):
    """A request from one user to connect with another."""
    __tablename__ = "connection_requests"
    __table_args__ = (
        UniqueConstraint("from_user_id", "to_user_id", name="uq_connection_request_pair"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    from_user_id: str = Field(foreign_key="users.id", index=True, max_length=64)
    to_user_id: str = Field(foreign_key="users.id", index=True, max_length=64)
    status: str = Field(default=RequestStatus.PENDING.value, index=True, max_length=20)
    message: str = Field(default="", max_length=300)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class Connection(SQLModel, table=True):
    """Mutual connection. ``user1_id`` is always the smaller id."""
    __tablename__ = "connections"
    __table_args__ = (
        UniqueConstraint("user1_id", "user2_id", name="uq_connection_pair"),
        CheckConstraint("user1_id < user2_id", name="ck_connection_pair_order"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user1_id: str = Field(foreign_key="users.id", index=True, max_length=64)
    user2_id: str = Field(foreign_key="users.id", index=True, max_length=64)
    connection_type: str = Field(default=ConnectionType.ALUMNI.value, max_length=20)
    connected_at: datetime = Field(default_factory=datetime.utcnow)

    def other_user(self, user_id: str) -> str:
        return self.user2_id if str(user_id) == self.user1_id else self.user1_id
