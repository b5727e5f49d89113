"""Connection request schemas."""
from datetime import datetime
from typing import Dict, Optional

from pydantic import Field

from alumnet.models.connection import Connection, ConnectionRequest
from alumnet.models.user import User
from alumnet.schemas.messaging import CamelModel, UserSummary, summarize_user


class SendRequestBody(CamelModel):
    """Body of POST /connection/request."""
    to_user_id: Optional[str] = None
    message: str = Field(default="", max_length=300)


class ConnectionRequestOut(CamelModel):
    id: str
    from_user: UserSummary
    to_user: UserSummary
    status: str
    message: str
    created_at: datetime
    updated_at: datetime


class ConnectionOut(CamelModel):
    id: str
    connection_type: str
    connected_at: datetime
    connected_user: Optional[UserSummary] = None


def serialize_request(request: ConnectionRequest, users: Dict[str, User]) -> dict:
    return ConnectionRequestOut(
        id=str(request.id),
        from_user=summarize_user(request.from_user_id, users),
        to_user=summarize_user(request.to_user_id, users),
        status=request.status,
        message=request.message,
        created_at=request.created_at,
        updated_at=request.updated_at,
    ).dump()


def serialize_connection(connection: Connection, users: Dict[str, User], viewer_id: str) -> dict:
    return ConnectionOut(
        id=str(connection.id),
        connection_type=connection.connection_type,
        connected_at=connection.connected_at,
        connected_user=summarize_user(connection.other_user(viewer_id), users),
    ).dump()
