"""
WebSocket endpoint of the presence and delivery channel.

Connection lifecycle:
    handshake -> authenticated -> joined-rooms(0..n) -> active -> closed

The identity token travels in the first frame
(``{"event": "authenticate", "data": {"token": ...}}``), never in the URL,
so it stays out of access logs.
"""

import asyncio
import json
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PayloadError
from sqlmodel import Session

from alumnet.db.config import engine
from alumnet.errors import AuthenticationError, ValidationError
from alumnet.middleware.auth import decode_access_token, user_from_claims
from alumnet.models.user import User
from alumnet.realtime import protocol
from alumnet.realtime.hub import ClientConnection, RealtimeHub, get_hub
from alumnet.services.conversation_store import ConversationStore
from alumnet.services.messaging_service import parse_id
from alumnet.utils.logger import get_logger

logger = get_logger("alumnet.realtime.socket")

HANDSHAKE_TIMEOUT_SECONDS = 10

router = APIRouter(tags=["Realtime"])


async def _reject(websocket: WebSocket, reason: str) -> None:
    logger.warning("Socket authentication failed", reason=reason)
    await websocket.send_json(
        protocol.ServerEvent(
            event=protocol.CONNECT_ERROR,
            data={"message": f"Authentication error: {reason}"},
        ).model_dump()
    )
    await websocket.close(code=protocol.AUTH_FAILED_CLOSE_CODE)


async def receive_frame(websocket: WebSocket) -> Optional[str]:
    """Next text frame, or None for a binary one. Raises WebSocketDisconnect on close."""
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000))
    return message.get("text")


async def authenticate(websocket: WebSocket) -> Optional[ClientConnection]:
    """Run the handshake. Returns None after rejecting the socket."""
    try:
        raw = await asyncio.wait_for(receive_frame(websocket), timeout=HANDSHAKE_TIMEOUT_SECONDS)
        if raw is None:
            raise ValueError("binary frame")
        frame = protocol.ClientEvent.model_validate(json.loads(raw))
    except asyncio.TimeoutError:
        await _reject(websocket, "Handshake timed out")
        return None
    except (ValueError, PayloadError):
        await _reject(websocket, "Malformed handshake")
        return None

    data = frame.data if isinstance(frame.data, dict) else {}
    token = data.get("token")
    if frame.event != protocol.AUTHENTICATE or not token:
        await _reject(websocket, "No token provided")
        return None

    try:
        current_user = user_from_claims(decode_access_token(token))
    except AuthenticationError:
        await _reject(websocket, "Invalid token")
        return None

    with Session(engine) as session:
        user = session.get(User, current_user.user_id)
        profile = user.public_profile() if user else None

    if profile is None:
        await _reject(websocket, "User not found")
        return None

    return ClientConnection(websocket=websocket, user_id=current_user.user_id, user=profile)


def _conversation_id(data: Any) -> str:
    """Events carry the id either bare or as ``{"conversationId": ...}``."""
    if isinstance(data, dict):
        data = data.get("conversationId")
    return str(parse_id(data, "conversation"))


async def on_join(hub: RealtimeHub, connection: ClientConnection, data: Any) -> None:
    conversation_id = _conversation_id(data)

    with Session(engine) as session:
        member = ConversationStore(session).get_for_participant(parse_id(conversation_id, "conversation"), connection.user_id)
    if member is None:
        raise ValidationError("Access denied to this conversation")

    hub.join(connection, conversation_id)
    logger.debug("Joined conversation room", user_id=connection.user_id, conversation_id=conversation_id)
    await connection.send(protocol.JOINED_CONVERSATION, {"conversationId": conversation_id})


async def on_leave(hub: RealtimeHub, connection: ClientConnection, data: Any) -> None:
    conversation_id = _conversation_id(data)
    hub.leave(connection, conversation_id)
    await connection.send(protocol.LEFT_CONVERSATION, {"conversationId": conversation_id})


def _require_room(connection: ClientConnection, conversation_id: str) -> None:
    if conversation_id not in connection.rooms:
        raise ValidationError("Join the conversation first")


async def on_typing(hub: RealtimeHub, connection: ClientConnection, data: Any) -> None:
    payload = protocol.TypingPayload.model_validate(data)
    conversation_id = _conversation_id(payload.conversationId)
    _require_room(connection, conversation_id)

    await hub.emit_to_room(conversation_id, protocol.USER_TYPING, {
        "userId": connection.user_id,
        "user": {"id": connection.user_id, "name": connection.user.get("name")},
        "isTyping": payload.isTyping,
        "conversationId": conversation_id,
    }, exclude=connection)


async def on_mark_as_read(hub: RealtimeHub, connection: ClientConnection, data: Any) -> None:
    """Relay only; receipts are persisted by the history REST call."""
    payload = protocol.MarkAsReadPayload.model_validate(data)
    conversation_id = _conversation_id(payload.conversationId)
    _require_room(connection, conversation_id)

    await hub.emit_to_room(conversation_id, protocol.MESSAGES_READ, {
        "conversationId": conversation_id,
        "readBy": connection.user_id,
    }, exclude=connection)


HANDLERS: Dict[str, Callable[[RealtimeHub, ClientConnection, Any], Awaitable[None]]] = {
    protocol.JOIN_CONVERSATION: on_join,
    protocol.LEAVE_CONVERSATION: on_leave,
    protocol.TYPING: on_typing,
    protocol.MARK_AS_READ: on_mark_as_read,
}


async def dispatch(hub: RealtimeHub, connection: ClientConnection, raw: str) -> None:
    """Route one client frame; bad frames get an ``error`` event, not a disconnect."""
    try:
        frame = protocol.ClientEvent.model_validate(json.loads(raw))
        handler = HANDLERS.get(frame.event)
        if handler is None:
            raise ValidationError(f"Unknown event: {frame.event}")
        await handler(hub, connection, frame.data)
    except ValidationError as e:
        await connection.send(protocol.ERROR, {"message": e.message})
    except (ValueError, PayloadError):
        await connection.send(protocol.ERROR, {"message": "Malformed event payload"})


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, hub: RealtimeHub = Depends(get_hub)):
    await websocket.accept()

    try:
        connection = await authenticate(websocket)
    except WebSocketDisconnect:
        return
    if connection is None:
        return

    hub.register(connection)
    await connection.send(protocol.AUTHENTICATED, {"userId": connection.user_id, "user": connection.user})
    await hub.broadcast(protocol.USER_ONLINE, {
        "userId": connection.user_id,
        "user": connection.user,
    }, exclude=connection)

    try:
        while True:
            raw = await receive_frame(websocket)
            if raw is None:
                await connection.send(protocol.ERROR, {"message": "Only text frames are supported"})
                continue
            await dispatch(hub, connection, raw)
    except WebSocketDisconnect:
        logger.info("Socket closed by client", user_id=connection.user_id)
    finally:
        if hub.unregister(connection):
            await hub.broadcast(protocol.USER_OFFLINE, {
                "userId": connection.user_id,
                "lastSeen": datetime.utcnow().isoformat(),
            })
