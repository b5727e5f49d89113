"""
Connection Service

Connection requests and the gate that decides who may open a conversation
with whom. Accepting a request is the only multi-row transaction in the
messaging stack: a request marked accepted without its Connection row would
block the pair forever, since new requests are refused while one exists.
"""

from datetime import datetime
from typing import Dict, List, Optional, Tuple
from uuid import UUID
import logging

from sqlalchemy import func, or_
from sqlmodel import Session, select

from alumnet.errors import Forbidden, NotFound, ValidationError
from alumnet.models.connection import Connection, ConnectionRequest, ConnectionType, RequestStatus
from alumnet.models.conversation import canonical_pair
from alumnet.models.user import User

logger = logging.getLogger(__name__)


class ConnectionGate:
    """Answers "may A message B"."""

    def __init__(self, session: Session):
        self.session = session

    def find_connection(self, user_a: str, user_b: str) -> Optional[Connection]:
        first, second = canonical_pair(user_a, user_b)
        statement = select(Connection).where(
            Connection.user1_id == first,
            Connection.user2_id == second
        )
        return self.session.exec(statement).first()

    def are_connected(self, user_a: str, user_b: str) -> bool:
        return self.find_connection(user_a, user_b) is not None

    def verified_user(self, user_id: str) -> Optional[User]:
        statement = select(User).where(User.id == str(user_id), User.is_verified == True)  # noqa: E712
        return self.session.exec(statement).first()

    def can_message(self, sender_id: str, peer_id: str, sender_is_admin: bool = False) -> bool:
        """Admins may reach any verified user; everyone else needs a connection."""
        if sender_is_admin:
            return self.verified_user(peer_id) is not None
        return self.are_connected(sender_id, peer_id)


class ConnectionService:
    """Request → pending → {accepted, declined, withdrawn}."""

    def __init__(self, session: Session):
        self.session = session
        self.gate = ConnectionGate(session)

    def _find_request_between(self, user_a: str, user_b: str) -> Optional[ConnectionRequest]:
        statement = select(ConnectionRequest).where(
            or_(
                (ConnectionRequest.from_user_id == user_a) & (ConnectionRequest.to_user_id == user_b),
                (ConnectionRequest.from_user_id == user_b) & (ConnectionRequest.to_user_id == user_a),
            )
        )
        return self.session.exec(statement).first()

    def send_request(self, from_user_id: str, to_user_id: Optional[str], message: str = "") -> ConnectionRequest:
        if not to_user_id:
            raise ValidationError("Target user ID is required")

        to_user_id = str(to_user_id)
        if str(from_user_id) == to_user_id:
            raise ValidationError("Cannot send connection request to yourself")

        message = (message or "").strip()
        if len(message) > 300:
            raise ValidationError("Request message cannot exceed 300 characters")

        if self.session.get(User, to_user_id) is None:
            raise NotFound("User not found")

        if self._find_request_between(from_user_id, to_user_id):
            raise ValidationError("Connection request already exists")

        if self.gate.are_connected(from_user_id, to_user_id):
            raise ValidationError("Already connected with this user")

        request = ConnectionRequest(
            from_user_id=str(from_user_id),
            to_user_id=to_user_id,
            message=message
        )
        self.session.add(request)
        self.session.commit()
        self.session.refresh(request)
        logger.info(f"Connection request {request.id} sent from {from_user_id} to {to_user_id}")
        return request

    def _get_request(self, request_id: UUID) -> ConnectionRequest:
        request = self.session.get(ConnectionRequest, request_id)
        if request is None:
            raise NotFound("Connection request not found")
        return request

    def _create_connection(self, request: ConnectionRequest) -> Connection:
        user1, user2 = canonical_pair(request.from_user_id, request.to_user_id)
        connection = Connection(
            user1_id=user1,
            user2_id=user2,
            connection_type=ConnectionType.ALUMNI.value
        )
        self.session.add(connection)
        return connection

    def accept_request(self, user_id: str, request_id: UUID) -> Tuple[ConnectionRequest, Connection]:
        """Mark the request accepted and create the Connection, both or neither."""
        request = self._get_request(request_id)

        if request.to_user_id != str(user_id):
            raise Forbidden("Not authorized to accept this request")

        if request.status != RequestStatus.PENDING.value:
            raise ValidationError("Request is no longer pending")

        try:
            request.status = RequestStatus.ACCEPTED.value
            request.updated_at = datetime.utcnow()
            self.session.add(request)
            connection = self._create_connection(request)
            self.session.commit()
        except Exception:
            self.session.rollback()
            logger.exception(f"Accepting connection request {request_id} failed, rolled back")
            raise

        self.session.refresh(request)
        self.session.refresh(connection)
        logger.info(f"Connection {connection.id} created from request {request_id}")
        return request, connection

    def decline_request(self, user_id: str, request_id: UUID) -> ConnectionRequest:
        request = self._get_request(request_id)

        if request.to_user_id != str(user_id):
            raise Forbidden("Not authorized to decline this request")

        if request.status != RequestStatus.PENDING.value:
            raise ValidationError("Request is no longer pending")

        request.status = RequestStatus.DECLINED.value
        request.updated_at = datetime.utcnow()
        self.session.add(request)
        self.session.commit()
        self.session.refresh(request)
        return request

    def withdraw_request(self, user_id: str, request_id: UUID) -> None:
        statement = select(ConnectionRequest).where(
            ConnectionRequest.id == request_id,
            ConnectionRequest.from_user_id == str(user_id),
            ConnectionRequest.status == RequestStatus.PENDING.value
        )
        request = self.session.exec(statement).first()
        if request is None:
            raise NotFound("Connection request not found or cannot be withdrawn")

        self.session.delete(request)
        self.session.commit()

    def list_connections(self, user_id: str, page: int = 1, limit: int = 20) -> Tuple[List[Connection], int]:
        membership = or_(Connection.user1_id == str(user_id), Connection.user2_id == str(user_id))
        statement = (
            select(Connection)
            .where(membership)
            .order_by(Connection.connected_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        connections = list(self.session.exec(statement).all())
        total = self.session.exec(select(func.count()).select_from(Connection).where(membership)).one()
        return connections, total

    def list_requests(self, user_id: str, request_type: str = "all") -> Dict[str, List[ConnectionRequest]]:
        """Pending requests, split into sent and received."""
        user_id = str(user_id)
        pending = ConnectionRequest.status == RequestStatus.PENDING.value
        if request_type == "sent":
            condition = ConnectionRequest.from_user_id == user_id
        elif request_type == "received":
            condition = ConnectionRequest.to_user_id == user_id
        else:
            condition = or_(
                ConnectionRequest.from_user_id == user_id,
                ConnectionRequest.to_user_id == user_id
            )

        statement = select(ConnectionRequest).where(pending, condition).order_by(
            ConnectionRequest.created_at.desc()
        )
        requests = list(self.session.exec(statement).all())
        return {
            "sent": [r for r in requests if r.from_user_id == user_id],
            "received": [r for r in requests if r.to_user_id == user_id],
            "all": requests,
        }

    def status(self, user_id: str, target_user_id: str) -> Tuple[str, Optional[object]]:
        """One of connected, request_sent, request_received, not_connected."""
        connection = self.gate.find_connection(user_id, target_user_id)
        if connection:
            return "connected", connection

        request = self._find_request_between(str(user_id), str(target_user_id))
        if request and request.status == RequestStatus.PENDING.value:
            if request.from_user_id == str(user_id):
                return "request_sent", request
            return "request_received", request

        return "not_connected", None

    def remove_connection(self, user_id: str, connection_id: UUID) -> None:
        statement = select(Connection).where(
            Connection.id == connection_id,
            or_(Connection.user1_id == str(user_id), Connection.user2_id == str(user_id))
        )
        connection = self.session.exec(statement).first()
        if connection is None:
            raise NotFound("Connection not found")

        # The accepted request would otherwise block the pair from reconnecting
        request = self._find_request_between(connection.user1_id, connection.user2_id)
        if request is not None:
            self.session.delete(request)
        self.session.delete(connection)
        self.session.commit()
