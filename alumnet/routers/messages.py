"""
Messages API Router

Direct messaging between connected users. Every response uses the
``{"success": bool, ...}`` envelope. Routes that publish to the
real-time hub are async; the read-only ones are plain functions and run
in the threadpool.
"""

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from typing import Optional
from sqlmodel import Session

from alumnet.db.config import get_session
from alumnet.middleware.auth import get_current_user, CurrentUser
from alumnet.realtime.hub import RealtimeHub, get_hub
from alumnet.schemas.messaging import MessageContentRequest
from alumnet.services.messaging_service import MessagingService

router = APIRouter(tags=["Messages"])  # No prefix since main.py adds /api/messages


def get_messaging_service(
    session: Session = Depends(get_session),
    hub: RealtimeHub = Depends(get_hub),
) -> MessagingService:
    """Dependency for getting MessagingService instance."""
    return MessagingService(session, hub)


@router.get("/conversation/{participant_id}")
def get_or_create_conversation(
    participant_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    """Get or create the conversation with another (connected) user."""
    conversation = service.get_or_create_conversation(current_user, participant_id)
    return {"success": True, "conversation": conversation}


@router.get("/conversations")
def list_conversations(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    """Conversations of the caller, most recent first, with their unread counts."""
    result = service.list_conversations(current_user.user_id, page, limit)
    return {"success": True, **result}


@router.get("/conversation/{conversation_id}/messages")
def get_conversation_messages(
    conversation_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    """Message history (oldest first). Marks the returned messages as read."""
    result = service.get_messages(current_user.user_id, conversation_id, page, limit)
    return {"success": True, **result}


@router.post("/conversation/{conversation_id}/send", status_code=status.HTTP_201_CREATED)
async def send_message(
    conversation_id: str,
    body: MessageContentRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    """Send a text message into a conversation the caller belongs to."""
    message = await service.send_message(current_user.user_id, conversation_id, body.content)
    return JSONResponse(status_code=status.HTTP_201_CREATED, content={"success": True, "message": message})


@router.put("/message/{message_id}/edit")
async def edit_message(
    message_id: str,
    body: MessageContentRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    message = await service.edit_message(current_user.user_id, message_id, body.content)
    return {"success": True, "message": message}


@router.delete("/message/{message_id}")
async def delete_message(
    message_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    await service.delete_message(current_user.user_id, message_id)
    return {"success": True, "message": "Message deleted successfully"}


@router.get("/search")
def search_messages(
    query: Optional[str] = Query(None),
    conversation_id: Optional[str] = Query(None, alias="conversationId"),
    current_user: CurrentUser = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    """Substring search over the caller's conversations (or one of them)."""
    messages = service.search_messages(current_user.user_id, query, conversation_id)
    return {"success": True, "messages": messages, "count": len(messages)}
